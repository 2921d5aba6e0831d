"""
SerpAPI Google Images backend.

Sign up at: https://serpapi.com  → SERP_API_KEY
  • Free tier: 100 searches/month
  • One request returns up to ~100 images (page ijn=0)

SerpAPI reports most failures as a JSON body {"error": "..."}, sometimes with
HTTP 200. The gateway fails over when the status is 429/403 or the message
contains one of errors.RATE_LIMIT_PHRASES ("rate limit", "quota",
"limit exceeded"). "Your account has run out of searches" matches none of
them, so it only triggers failover when SerpAPI sends it with HTTP 429.

API docs: https://serpapi.com/google-images-api
"""
from __future__ import annotations

import asyncio
import logging
from typing import Optional

import aiohttp

import config
from errors import ProviderError, is_rate_limited
from search_backends.base import ImageResult, SearchBackend, positive_int

logger = logging.getLogger(__name__)

SEARCH_URL = "https://serpapi.com/search"


class SerpApiBackend(SearchBackend):

    def __init__(self, api_key: str) -> None:
        self._key = api_key

    @property
    def name(self) -> str:
        return "SerpAPI / Google Images"

    async def search(self, query: str, max_results: int = 10) -> list[ImageResult]:
        params = {
            "q":       query,
            "engine":  "google_images",
            "ijn":     "0",
            "api_key": self._key,
        }

        data = await self._fetch(params)
        raw_images = data.get("images_results")
        if not isinstance(raw_images, list) or not raw_images:
            raise ProviderError(self.name, 200, "No image results found (missing 'images_results')")

        items: list[ImageResult] = []
        # Unusable entries (no original URL) are skipped, not counted
        for raw in raw_images:
            item = self._parse_image(raw, fallback_position=len(items) + 1)
            if item:
                items.append(item)
                if len(items) == max_results:
                    break

        logger.info("SerpAPI returned %d images for query '%s'", len(items), query)
        return items

    # ── HTTP helper ───────────────────────────────────────────────────────────

    async def _fetch(self, params: dict) -> dict:
        try:
            async with aiohttp.ClientSession() as session:
                async with session.get(
                    SEARCH_URL,
                    params=params,
                    timeout=aiohttp.ClientTimeout(total=config.SEARCH_TIMEOUT_SECS),
                ) as resp:
                    if resp.status != 200:
                        text = await resp.text()
                        raise ProviderError(self.name, resp.status, text)
                    data = await resp.json(content_type=None)
        except (aiohttp.ClientError, asyncio.TimeoutError) as exc:
            raise ProviderError(self.name, 0, f"request failed: {exc}") from exc

        if not isinstance(data, dict):
            raise ProviderError(self.name, 200, "Unexpected response body")

        # 200 with an error body: promote quota messages to 429 so the status
        # alone tells the story in logs
        error = data.get("error")
        if error:
            err = ProviderError(self.name, 200, str(error))
            if is_rate_limited(err):
                err = ProviderError(self.name, 429, str(error))
            raise err
        return data

    # ── Parser ────────────────────────────────────────────────────────────────

    def _parse_image(self, raw: dict, fallback_position: int) -> Optional[ImageResult]:
        if not isinstance(raw, dict):
            return None
        original = raw.get("original")
        if not original:
            return None

        width = positive_int(raw.get("original_width")) or positive_int(raw.get("width"))
        height = positive_int(raw.get("original_height")) or positive_int(raw.get("height"))

        return ImageResult(
            position=positive_int(raw.get("position")) or fallback_position,
            thumbnail=raw.get("thumbnail", ""),
            source=raw.get("source", ""),
            title=(raw.get("title") or "").strip(),
            link=raw.get("link", ""),
            original=original,
            is_product=bool(raw.get("is_product", False)),
            size=raw.get("size") or None,
            width=width,
            height=height,
        )
