"""
result_cache.py — recent search results, kept in memory for a while.

Each search_images call stores its results under a short id so the host can
re-read them later through the `search-results://{id}` resource without
spending another API call. Entries expire after RESULT_CACHE_TTL_SECS;
scheduler.py evicts them periodically. Nothing is ever written to disk.
"""
from __future__ import annotations

import logging
import secrets
import time
from dataclasses import dataclass
from typing import Optional

import config
from search_backends.base import ImageResult

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class CachedSearch:
    search_id: str
    query: str
    results: tuple[ImageResult, ...]
    created_at: float

    def to_dict(self) -> dict:
        return {
            "search_id": self.search_id,
            "query": self.query,
            "results": [r.to_dict() for r in self.results],
        }


_entries: dict[str, CachedSearch] = {}


def _ttl() -> float:
    return config.RESULT_CACHE_TTL_SECS


def put(query: str, results: list[ImageResult], now: Optional[float] = None) -> str:
    """Store a result set and return its id."""
    search_id = secrets.token_hex(6)
    while search_id in _entries:
        search_id = secrets.token_hex(6)
    _entries[search_id] = CachedSearch(
        search_id=search_id,
        query=query,
        results=tuple(results),
        created_at=time.monotonic() if now is None else now,
    )
    return search_id


def get(search_id: str, now: Optional[float] = None) -> Optional[CachedSearch]:
    entry = _entries.get(search_id)
    if entry is None:
        return None
    now = time.monotonic() if now is None else now
    if now - entry.created_at > _ttl():
        _entries.pop(search_id, None)
        return None
    return entry


def evict_expired(now: Optional[float] = None) -> int:
    """Drop every entry older than the TTL. Returns how many were removed."""
    now = time.monotonic() if now is None else now
    expired = [sid for sid, e in _entries.items() if now - e.created_at > _ttl()]
    for sid in expired:
        del _entries[sid]
    if expired:
        logger.debug("Evicted %d expired search result set(s)", len(expired))
    return len(expired)


def size() -> int:
    return len(_entries)


def clear() -> None:
    _entries.clear()
