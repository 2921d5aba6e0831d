"""
Google Custom Search JSON API backend (image search).

Setup:
  1. Create a Programmable Search Engine at https://programmablesearchengine.google.com
     with "Image search" and "Search the entire web" switched on → GOOGLE_CSE_ID (cx)
  2. Enable "Custom Search API" in Google Cloud → GOOGLE_API_KEY

Limits:
  • Free tier: 100 queries/day, then $5 per 1,000 (max 10k/day)
  • At most 10 results per request (num=1..10)
  • Daily quota exhaustion is reported as HTTP 403 (sometimes 429)

API docs: https://developers.google.com/custom-search/v1/reference/rest/v1/cse/list
"""
from __future__ import annotations

import asyncio
import logging
from typing import Optional

import aiohttp

import config
from errors import ProviderError
from search_backends.base import ImageResult, SearchBackend, human_size, positive_int

logger = logging.getLogger(__name__)

SEARCH_URL = "https://www.googleapis.com/customsearch/v1"
MAX_PER_REQUEST = 10


class GoogleCSEBackend(SearchBackend):

    def __init__(self, api_key: str, cse_id: str) -> None:
        self._key = api_key
        self._cx = cse_id

    @property
    def name(self) -> str:
        return "Google Custom Search"

    async def search(self, query: str, max_results: int = 10) -> list[ImageResult]:
        """
        One request, `num` capped at the API maximum of 10.
        A response without an `items` field is treated as a failure; Google
        omits it both for zero hits and for several soft-error cases.
        """
        params = {
            "key":        self._key,
            "cx":         self._cx,
            "q":          query,
            "searchType": "image",
            "num":        str(max(1, min(max_results, MAX_PER_REQUEST))),
            "safe":       "active",
        }

        data = await self._fetch(params)
        raw_items = data.get("items")
        if not isinstance(raw_items, list) or not raw_items:
            raise ProviderError(self.name, 200, "No image results found (missing 'items')")

        items: list[ImageResult] = []
        for raw in raw_items:
            item = self._parse_item(raw, position=len(items) + 1)
            if item:
                items.append(item)

        logger.info("Google CSE returned %d images for query '%s'", len(items), query)
        return items[:max_results]

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
        return data

    # ── Parser ────────────────────────────────────────────────────────────────

    def _parse_item(self, raw: dict, position: int) -> Optional[ImageResult]:
        if not isinstance(raw, dict):
            return None
        original = raw.get("link")
        if not original:
            return None

        image = raw.get("image") or {}
        return ImageResult(
            position=position,
            thumbnail=image.get("thumbnailLink", ""),
            source=raw.get("displayLink", ""),
            title=(raw.get("title") or "").strip(),
            link=image.get("contextLink", ""),
            original=original,
            is_product=False,   # CSE can't tell
            size=human_size(image.get("byteSize")),
            width=positive_int(image.get("width")),
            height=positive_int(image.get("height")),
        )
