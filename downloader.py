"""
downloader.py — fetch a remote image and save it under a safe local path.

Pipeline for download_image(url, output_dir, filename):
  1. url_safety       → UrlUnsafe before any network traffic
  2. path_safety      → filename checked for traversal before fetching too
  3. HTTP GET         → ≤ MAX_REDIRECTS hops (each hop re-validated),
                        ≤ MAX_DOWNLOAD_BYTES, DOWNLOAD_TIMEOUT_SECS
  4. image_format     → extension from the bytes, never from the server
  5. atomic write     → "<dir>/.<name>.part" then rename; partial files removed

The final name is `filename` without its extension + the detected one, so
"photo.png" holding JPEG bytes is saved as "photo.jpg".
"""
from __future__ import annotations

import asyncio
import contextlib
import logging
import os
from dataclasses import asdict, dataclass
from pathlib import Path
from typing import Any, AsyncIterator, Optional
from urllib.parse import urljoin

import aiohttp

import config
import image_format
import path_safety
from errors import FetchFailure, FormatUndetected, UrlUnsafe
from url_safety import is_safe_url

logger = logging.getLogger(__name__)

_REDIRECT_STATUSES = frozenset({301, 302, 303, 307, 308})
_CHUNK_SIZE = 64 * 1024
_HEADERS = {
    "User-Agent": "image-search-mcp/1.0",
    "Accept": "image/*,*/*;q=0.8",
}


@dataclass(frozen=True)
class ImageProbe:
    url: str
    final_url: str
    status: int
    content_type: Optional[str]
    content_length: Optional[int]

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)


# ── Public API ────────────────────────────────────────────────────────────────

async def download_image(url: str, output_dir: str, filename: str) -> Path:
    """
    Download `url` into `output_dir` and return the absolute path written.

    Raises UrlUnsafe, PathTraversal, FetchFailure or FormatUndetected.
    """
    if not is_safe_url(url):
        raise UrlUnsafe(url)
    path_safety.check_filename(filename)

    logger.info("Downloading image from: %s", url)
    data = await fetch_bytes(url)

    fmt = image_format.detect(data)
    if fmt is None:
        raise FormatUndetected(
            f"Downloaded content from {url} is not a recognised image format"
        )

    name = f"{path_safety.stem(filename)}.{fmt.extension}"
    target = path_safety.resolve(output_dir, name)

    await asyncio.to_thread(_write_atomic, target, data)
    logger.info("Image saved to %s (%d bytes, %s)", target, len(data), fmt.mime_type)
    return target


async def probe_image(url: str) -> ImageProbe:
    """HEAD the URL (following validated redirects) without reading the body."""
    if not is_safe_url(url):
        raise UrlUnsafe(url)

    timeout = aiohttp.ClientTimeout(total=config.PROBE_TIMEOUT_SECS)
    try:
        async with aiohttp.ClientSession(timeout=timeout, headers=_HEADERS) as session:
            async with _open(session, "HEAD", url) as (resp, final_url):
                _raise_for_status(resp, final_url)
                return ImageProbe(
                    url=url,
                    final_url=final_url,
                    status=resp.status,
                    content_type=resp.headers.get("Content-Type"),
                    content_length=_declared_length(resp),
                )
    except (aiohttp.ClientError, asyncio.TimeoutError) as exc:
        raise FetchFailure(f"Failed to fetch image info: {exc}") from exc


async def fetch_bytes(url: str) -> bytes:
    """GET the URL into memory, enforcing the size and redirect limits."""
    timeout = aiohttp.ClientTimeout(total=config.DOWNLOAD_TIMEOUT_SECS)
    limit = config.MAX_DOWNLOAD_BYTES
    try:
        async with aiohttp.ClientSession(timeout=timeout, headers=_HEADERS) as session:
            async with _open(session, "GET", url) as (resp, final_url):
                _raise_for_status(resp, final_url)

                declared = _declared_length(resp)
                if declared is not None and declared > limit:
                    raise FetchFailure(
                        f"Image too large: {declared} bytes (limit {limit})"
                    )

                buf = bytearray()
                async for chunk in resp.content.iter_chunked(_CHUNK_SIZE):
                    buf.extend(chunk)
                    if len(buf) > limit:
                        raise FetchFailure(f"Image too large: exceeded {limit} bytes")
    except (aiohttp.ClientError, asyncio.TimeoutError) as exc:
        raise FetchFailure(f"Failed to download image: {exc!r}") from exc

    if not buf:
        raise FetchFailure(f"Empty response body from {url}")
    return bytes(buf)


# ── HTTP helpers ──────────────────────────────────────────────────────────────

@contextlib.asynccontextmanager
async def _open(
    session: aiohttp.ClientSession, method: str, url: str
) -> AsyncIterator[tuple[aiohttp.ClientResponse, str]]:
    """
    Follow redirects by hand so every Location is checked with is_safe_url.
    Yields (final response, final url).
    """
    current = url
    for _ in range(config.MAX_REDIRECTS + 1):
        async with session.request(method, current, allow_redirects=False) as resp:
            if resp.status not in _REDIRECT_STATUSES:
                yield resp, current
                return

            location = resp.headers.get("Location")
            if not location:
                raise FetchFailure(f"HTTP {resp.status} redirect without Location header")
            nxt = urljoin(current, location)
            if not is_safe_url(nxt):
                raise UrlUnsafe(nxt)
            logger.debug("Redirect %d: %s → %s", resp.status, current, nxt)
            current = nxt

    raise FetchFailure(f"Too many redirects (limit {config.MAX_REDIRECTS})")


def _raise_for_status(resp: aiohttp.ClientResponse, url: str) -> None:
    if not 200 <= resp.status < 300:
        raise FetchFailure(f"HTTP {resp.status} while fetching {url}")


def _declared_length(resp: aiohttp.ClientResponse) -> Optional[int]:
    raw = resp.headers.get("Content-Length")
    try:
        return int(raw) if raw is not None else None
    except ValueError:
        return None


# ── Filesystem ────────────────────────────────────────────────────────────────

def _write_atomic(target: Path, data: bytes) -> None:
    """Write to a temp file next to `target`, then rename over it."""
    tmp = target.with_name(f".{target.name}.part")
    try:
        target.parent.mkdir(parents=True, exist_ok=True)
        with open(tmp, "wb") as fh:
            fh.write(data)
            fh.flush()
            os.fsync(fh.fileno())
        os.replace(tmp, target)
    except OSError as exc:
        with contextlib.suppress(OSError):
            tmp.unlink()
        raise FetchFailure(f"Failed to write {target}: {exc}") from exc
