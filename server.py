"""
server.py — MCP tools exposed to the AI-assistant host.

Tools:
  search_images   query → ranked image results (Google CSE / SerpAPI with failover)
  download_image  image URL → file on disk (validated, format-sniffed, atomic)
  analyze_images  results + criteria → scored, re-ordered, tiered results
  get_image_info  image URL → status / content type / size without downloading
  server_status   active + disabled providers, cache size

Resource:
  search-results://{search_id}  → a recent search_images result set

Each tool's logic lives in a plain `handle_*` coroutine that takes the gateway
explicitly; the registered MCP functions only translate errors into ToolError
so the host gets an isError response with a readable message.
"""
from __future__ import annotations

import asyncio
import json
import logging
from contextlib import asynccontextmanager, suppress
from typing import Any, AsyncIterator

from mcp.server.fastmcp import FastMCP
from mcp.server.fastmcp.exceptions import ToolError

import config
import downloader
import relevance
import result_cache
import scheduler
from errors import ImageSearchError
from image_search import SearchGateway
from search_backends.base import ImageResult

logger = logging.getLogger(__name__)

SERVER_NAME = "image-search"

SERVER_INSTRUCTIONS = """\
Image search tools.
1. search_images finds candidate images (returns a search_id you can re-read
   through the search-results://{search_id} resource).
2. analyze_images ranks results against criteria such as "professional colorful".
3. download_image saves one image; the file extension is taken from the actual
   image bytes, whatever extension you pass in `filename`.
"""


# ── Tool logic ────────────────────────────────────────────────────────────────

async def handle_search(gateway: SearchGateway, query: str, limit: int) -> str:
    logger.info("[Tool] search_images query=%r limit=%d", query, limit)
    results = await gateway.search(query, limit)
    search_id = result_cache.put(query, results)
    payload = {
        "search_id": search_id,
        "provider": gateway.active_backend.name,
        "results": [r.to_dict() for r in results],
    }
    return (
        f'Found {len(results)} images for query "{query}":\n\n'
        + json.dumps(payload, indent=2, ensure_ascii=False)
    )


async def handle_download(image_url: str, output_path: str, filename: str) -> str:
    logger.info("[Tool] download_image url=%s", image_url)
    saved = await downloader.download_image(image_url, output_path, filename)
    return f"Image successfully downloaded to: {saved}"


def handle_analyze(search_results: list[dict[str, Any]], criteria: str) -> str:
    logger.info("[Tool] analyze_images criteria=%r (%d results)", criteria, len(search_results))
    results = [ImageResult.from_dict(raw, index=i) for i, raw in enumerate(search_results)]
    analyzed = relevance.analyze(results, criteria)
    return (
        f'Analyzed {len(analyzed)} images based on criteria: "{criteria}"\n\n'
        + json.dumps([a.to_dict() for a in analyzed], indent=2, ensure_ascii=False)
    )


async def handle_image_info(image_url: str) -> str:
    logger.info("[Tool] get_image_info url=%s", image_url)
    probe = await downloader.probe_image(image_url)
    return json.dumps(probe.to_dict(), indent=2)


def handle_status(gateway: SearchGateway) -> str:
    status = gateway.status()
    status["cached_result_sets"] = result_cache.size()
    return json.dumps(status, indent=2)


def _tool_error(action: str, exc: Exception) -> ToolError:
    if isinstance(exc, ImageSearchError):
        logger.warning("%s failed: %s", action, exc)
    else:
        logger.error("%s failed: %s", action, exc, exc_info=True)
    return ToolError(f"Failed to {action}: {exc}")


# ── Server ────────────────────────────────────────────────────────────────────

@asynccontextmanager
async def _lifespan(server: FastMCP) -> AsyncIterator[None]:
    task = scheduler.start()
    try:
        yield
    finally:
        scheduler.stop()
        task.cancel()
        with suppress(asyncio.CancelledError):
            await task
        logger.info("Cache cleanup scheduler stopped")


def create_server(gateway: SearchGateway, name: str = SERVER_NAME) -> FastMCP:
    mcp = FastMCP(name, instructions=SERVER_INSTRUCTIONS, lifespan=_lifespan)

    @mcp.tool()
    async def search_images(query: str, limit: int = config.DEFAULT_LIMIT) -> str:
        """
        Search for images using Google Image Search.

        Args:
            query: The search query for finding images
            limit: Maximum number of results to return (default: 10)
        """
        try:
            return await handle_search(gateway, query, limit)
        except (ImageSearchError, ValueError) as exc:
            raise _tool_error("search for images", exc) from exc

    @mcp.tool()
    async def download_image(image_url: str, output_path: str, filename: str) -> str:
        """
        Download an image to a local directory.

        Args:
            image_url: URL of the image to download
            output_path: Directory path where the image should be saved
            filename: Filename for the downloaded image (the extension is
                replaced by the detected image format)
        """
        try:
            return await handle_download(image_url, output_path, filename)
        except ImageSearchError as exc:
            raise _tool_error("download image", exc) from exc

    @mcp.tool()
    def analyze_images(search_results: list[dict[str, Any]], criteria: str) -> str:
        """
        Analyze image search results to find the most relevant ones.

        Args:
            search_results: Array of image search results to analyze (objects
                with title, link, original, source and optional width, height,
                is_product)
            criteria: Criteria for selecting the best images
                (e.g., 'professional', 'colorful')
        """
        try:
            return handle_analyze(search_results, criteria)
        except (ImageSearchError, ValueError, TypeError) as exc:
            raise _tool_error("analyze images", exc) from exc

    @mcp.tool()
    async def get_image_info(image_url: str) -> str:
        """
        Fetch status, content type and size of an image URL without downloading it.

        Args:
            image_url: URL of the image to inspect
        """
        try:
            return await handle_image_info(image_url)
        except ImageSearchError as exc:
            raise _tool_error("fetch image info", exc) from exc

    @mcp.tool()
    def server_status() -> str:
        """Show the active search provider, providers disabled by rate limits, and cache size."""
        return handle_status(gateway)

    @mcp.resource("search-results://{search_id}", mime_type="application/json")
    def search_results(search_id: str) -> str:
        """A recent search_images result set (expires after one hour by default)."""
        entry = result_cache.get(search_id)
        if entry is None:
            raise ValueError(f"Unknown or expired search_id: {search_id}")
        return json.dumps(entry.to_dict(), indent=2, ensure_ascii=False)

    logger.info("MCP server '%s' ready (provider: %s)", name, gateway.active_backend.name)
    return mcp
