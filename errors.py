"""
errors.py — every failure the server can report.

Hierarchy:
  ImageSearchError
    ├── ConfigurationError   no usable credentials (fatal at startup)
    ├── ProviderError        one search backend failed (failover may recover)
    ├── SearchFailure        every eligible backend failed
    ├── UrlUnsafe            URL rejected before any network call
    ├── PathTraversal        destination filename/path rejected
    ├── FetchFailure         network / size / redirect / write problem
    └── FormatUndetected     downloaded bytes are not a known image format

Validation errors (UrlUnsafe, PathTraversal) are never retried.
Only rate-limited ProviderErrors are retried, once, via failover.
"""
from __future__ import annotations

from typing import Any, Optional

# Literal phrases some backends put in the error body instead of a 429.
# Wording changes upstream will break detection; keep this list in sync.
RATE_LIMIT_PHRASES = ("rate limit", "quota", "limit exceeded")


class ImageSearchError(Exception):
    """Base class. `to_dict()` is what the MCP layer reports back."""

    kind = "error"

    def to_dict(self) -> dict[str, Any]:
        return {"error": str(self), "kind": self.kind}


class ConfigurationError(ImageSearchError):
    kind = "configuration"


class ProviderError(ImageSearchError):
    """
    A single backend call failed.

    status is the HTTP status code, or 0 when no response was received
    (DNS failure, timeout, connection reset, ...).
    """

    kind = "provider"

    def __init__(self, provider: str, status: int, body: str = "") -> None:
        self.provider = provider
        self.status = status
        self.body = body or ""
        super().__init__(f"{provider} error {status}: {self.body[:200]}")

    def is_rate_limited(self) -> bool:
        return is_rate_limited(self)

    def to_dict(self) -> dict[str, Any]:
        result = super().to_dict()
        result["provider"] = self.provider
        result["status"] = self.status
        return result


class SearchFailure(ImageSearchError):
    kind = "search"

    def __init__(self, message: str, last_error: Optional[ProviderError] = None) -> None:
        super().__init__(message)
        self.last_error = last_error


class UrlUnsafe(ImageSearchError):
    kind = "unsafe_url"

    def __init__(self, url: str) -> None:
        self.url = url
        super().__init__("Invalid or unsafe URL")


class PathTraversal(ImageSearchError):
    kind = "path_traversal"


class FetchFailure(ImageSearchError):
    kind = "fetch"


class FormatUndetected(ImageSearchError):
    kind = "format"


def is_rate_limited(error: Exception) -> bool:
    """
    True when a provider error looks like quota / rate-limit exhaustion:
      • HTTP 429
      • HTTP 403 (Google Custom Search reports daily quota exhaustion this way)
      • body mentions one of RATE_LIMIT_PHRASES
    """
    if not isinstance(error, ProviderError):
        return False
    if error.status in (429, 403):
        return True
    body = error.body.lower()
    return any(phrase in body for phrase in RATE_LIMIT_PHRASES)
