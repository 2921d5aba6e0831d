"""
Abstract base for all image search backends.
Every backend must return the same ImageResult list; the gateway and the
MCP tools don't care which backend produced it.
"""
from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import asdict, dataclass
from typing import Any, Optional


@dataclass(frozen=True)
class ImageResult:
    position: int                   # 1-based rank as returned by the backend
    thumbnail: str
    source: str                     # site name / display domain
    title: str
    link: str                       # page the image appears on
    original: str                   # full-size image URL
    is_product: bool = False
    size: Optional[str] = None      # human-readable, e.g. "245KB" or "1200 × 800"
    width: Optional[int] = None     # > 0 when known
    height: Optional[int] = None    # > 0 when known

    @property
    def area(self) -> Optional[int]:
        if self.width and self.height:
            return self.width * self.height
        return None

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)

    @classmethod
    def from_dict(cls, raw: dict[str, Any], index: int = 0) -> "ImageResult":
        """
        Build from a caller-supplied dict (e.g. analyze_images input).
        `index` is the 0-based position in the caller's list and only
        used when the dict carries no position of its own.
        """
        position = positive_int(raw.get("position")) or index + 1
        return cls(
            position=position,
            thumbnail=str(raw.get("thumbnail") or ""),
            source=str(raw.get("source") or ""),
            title=str(raw.get("title") or ""),
            link=str(raw.get("link") or ""),
            original=str(raw.get("original") or ""),
            is_product=bool(raw.get("is_product", False)),
            size=raw.get("size") or None,
            width=positive_int(raw.get("width")),
            height=positive_int(raw.get("height")),
        )


class SearchBackend(ABC):
    """All backends must implement this interface."""

    @abstractmethod
    async def search(self, query: str, max_results: int) -> list[ImageResult]:
        """
        Search images matching `query`.
        Returns at most max_results ImageResult objects in backend rank order.
        Raises errors.ProviderError on any failed or malformed response.
        """
        ...

    @property
    @abstractmethod
    def name(self) -> str:
        """Human-readable backend name for logs/display."""
        ...


# ── Helpers ────────────────────────────────────────────────────────────────────

def positive_int(value: Any) -> Optional[int]:
    """Coerce '800', 800, 800.0 → 800; zero, negatives and junk → None."""
    if value is None or isinstance(value, bool):
        return None
    try:
        number = int(float(value))
    except (ValueError, TypeError, OverflowError):
        return None
    return number if number > 0 else None


def human_size(num_bytes: Any) -> Optional[str]:
    """12345 → '12KB', 2500000 → '2.4MB'."""
    size = positive_int(num_bytes)
    if size is None:
        return None
    if size < 1024:
        return f"{size}B"
    if size < 1024 * 1024:
        return f"{size // 1024}KB"
    return f"{size / (1024 * 1024):.1f}MB"
