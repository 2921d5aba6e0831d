"""
image_search.py — public interface for image search.

The MCP layer imports only from here:
  from image_search import get_gateway, search_images, ImageResult

Two backends, fixed priority order:
  1. Google Custom Search  (GOOGLE_API_KEY + GOOGLE_CSE_ID)
  2. SerpAPI               (SERP_API_KEY)

SEARCH_BACKEND=auto picks the first configured one; google / serpapi force the
starting backend. Whenever the active backend is rate-limited and the other one
is configured, the gateway disables the exhausted backend for the rest of the
process and retries the same query once on the other.

Per call the gateway moves through:
  ACTIVE → (rate-limited, alternate available) → RETRYING_ALTERNATE → done
  ACTIVE / RETRYING_ALTERNATE → (any other failure) → EXHAUSTED → SearchFailure
"""
from __future__ import annotations

import asyncio
import enum
import logging
from dataclasses import dataclass, field
from typing import Optional

import config
import key_store
from errors import ConfigurationError, ProviderError, SearchFailure, is_rate_limited
from search_backends.base import ImageResult, SearchBackend

logger = logging.getLogger(__name__)

__all__ = [
    "ImageResult", "Provider", "ProviderState", "SearchGateway",
    "build_gateway", "get_gateway", "search_images", "backend_name",
]

NO_CONFIG_MESSAGE = (
    "No valid API configuration found. "
    "Please set either (GOOGLE_API_KEY + GOOGLE_CSE_ID) or SERP_API_KEY"
)


class Provider(enum.Enum):
    GOOGLE = "google"
    SERPAPI = "serpapi"


# Failover order.
PRIORITY: tuple[Provider, ...] = (Provider.GOOGLE, Provider.SERPAPI)


class Phase(enum.Enum):
    ACTIVE = "active"
    RETRYING_ALTERNATE = "retrying_alternate"
    EXHAUSTED = "exhausted"


@dataclass
class ProviderState:
    active: Provider
    disabled: set[Provider] = field(default_factory=set)

    def is_disabled(self, provider: Provider) -> bool:
        return provider in self.disabled


class SearchGateway:
    """
    Owns the provider state for one process run.

    `backends` holds only configured providers. State transitions
    (disable current + switch active) happen under an asyncio.Lock so two
    concurrent rate-limit detections can't flip the state twice.
    """

    def __init__(
        self,
        backends: dict[Provider, SearchBackend],
        initial: Optional[Provider] = None,
    ) -> None:
        if not backends:
            raise ConfigurationError(NO_CONFIG_MESSAGE)
        if initial is None:
            initial = next(p for p in PRIORITY if p in backends)
        if initial not in backends:
            raise ConfigurationError(f"Provider {initial.value} is not configured")

        self._backends = dict(backends)
        self.state = ProviderState(active=initial)
        self._lock = asyncio.Lock()

    @property
    def active_backend(self) -> SearchBackend:
        return self._backends[self.state.active]

    @property
    def providers(self) -> list[Provider]:
        return [p for p in PRIORITY if p in self._backends]

    def alternate(self, provider: Provider) -> Optional[Provider]:
        """The next configured, not-yet-disabled provider other than `provider`."""
        for candidate in PRIORITY:
            if candidate is provider or candidate not in self._backends:
                continue
            if not self.state.is_disabled(candidate):
                return candidate
        return None

    def status(self) -> dict:
        return {
            "active": self.state.active.value,
            "active_name": self.active_backend.name,
            "configured": [p.value for p in self.providers],
            "disabled": sorted(p.value for p in self.state.disabled),
        }

    # ── Search ────────────────────────────────────────────────────────────────

    async def search(self, query: str, limit: int = config.DEFAULT_LIMIT) -> list[ImageResult]:
        """
        Search with the active provider; on rate-limiting fail over once.

        Returns at most `limit` results in backend order.
        Raises SearchFailure (chaining the last ProviderError) if nothing worked.
        """
        if not query or not query.strip():
            raise ValueError("query must not be empty")
        if limit < 1:
            raise ValueError("limit must be a positive integer")

        phase = Phase.ACTIVE
        provider = self.state.active
        last_error: Optional[ProviderError] = None

        while phase is not Phase.EXHAUSTED:
            backend = self._backends[provider]
            try:
                results = await backend.search(query, limit)
            except ProviderError as exc:
                last_error = exc
                logger.warning("[%s] search '%s' failed: %s", backend.name, query, exc)
                if phase is Phase.ACTIVE and is_rate_limited(exc):
                    next_provider = await self._fail_over(provider)
                    if next_provider is not None:
                        provider = next_provider
                        phase = Phase.RETRYING_ALTERNATE
                        continue
                phase = Phase.EXHAUSTED
                continue

            logger.info("[%s] '%s' → %d results", backend.name, query, len(results))
            return list(results[:limit])

        raise SearchFailure(f"Image search failed: {last_error}", last_error) from last_error

    async def _fail_over(self, failed: Provider) -> Optional[Provider]:
        """
        Disable `failed` and activate its alternate. Returns the provider to
        retry on, or None when there is nowhere to go.
        """
        async with self._lock:
            if self.state.active is not failed and not self.state.is_disabled(self.state.active):
                # A concurrent call already moved on; use its choice
                return self.state.active

            alternate = self.alternate(failed)
            if alternate is None:
                logger.warning("%s is rate-limited and no alternate provider is available",
                               self._backends[failed].name)
                return None

            self.state.disabled.add(failed)
            self.state.active = alternate
            logger.warning("%s rate-limited, switching to %s for the rest of this run",
                           self._backends[failed].name, self._backends[alternate].name)
            return alternate


# ── Construction ──────────────────────────────────────────────────────────────

def build_gateway() -> SearchGateway:
    """
    Build the gateway from the credentials currently in the environment.
    Raises ConfigurationError when neither provider is fully configured.
    """
    backends: dict[Provider, SearchBackend] = {}

    google = key_store.google_credentials()
    if google:
        backends[Provider.GOOGLE] = _make_google(*google)
    serp_key = key_store.serpapi_credentials()
    if serp_key:
        backends[Provider.SERPAPI] = _make_serpapi(serp_key)

    if not backends:
        raise ConfigurationError(NO_CONFIG_MESSAGE)

    mode = config.SEARCH_BACKEND.lower().strip()
    initial: Optional[Provider] = None
    if mode != "auto":
        try:
            initial = Provider(mode)
        except ValueError:
            raise ConfigurationError(
                f"SEARCH_BACKEND must be auto, google or serpapi (got {mode!r})"
            ) from None
        if initial not in backends:
            raise ConfigurationError(
                f"SEARCH_BACKEND={mode} but its API keys are not set"
            )

    gateway = SearchGateway(backends, initial=initial)
    logger.info(
        "Search providers: %s (active: %s)",
        ", ".join(b.name for b in backends.values()),
        gateway.active_backend.name,
    )
    return gateway


def _make_google(api_key: str, cse_id: str) -> SearchBackend:
    from search_backends.google_cse_backend import GoogleCSEBackend
    logger.info("Google Custom Search key: %s", key_store.mask(api_key))
    return GoogleCSEBackend(api_key=api_key, cse_id=cse_id)


def _make_serpapi(api_key: str) -> SearchBackend:
    from search_backends.serpapi_backend import SerpApiBackend
    logger.info("SerpAPI key: %s", key_store.mask(api_key))
    return SerpApiBackend(api_key=api_key)


# ── Process-wide instance ─────────────────────────────────────────────────────

_gateway: Optional[SearchGateway] = None


def get_gateway() -> SearchGateway:
    """Return the process gateway, building it once on first call."""
    global _gateway
    if _gateway is None:
        _gateway = build_gateway()
    return _gateway


async def search_images(query: str, limit: int = config.DEFAULT_LIMIT) -> list[ImageResult]:
    return await get_gateway().search(query, limit)


def backend_name() -> str:
    try:
        return get_gateway().active_backend.name
    except ConfigurationError:
        return "not configured"
