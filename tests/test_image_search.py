"""
Tests for image_search.py.

Covers:
  - build_gateway(): provider selection from credentials, SEARCH_BACKEND override,
    ConfigurationError when nothing (or only half of Google) is configured
  - SearchGateway.search(): success, limit truncation, failover on 429/403/
    quota text, sticky disabled flag, one-shot failover, non-rate-limit errors
  - concurrent rate-limit detections only flip the state once
  - get_gateway() caching, backend_name()
"""
from __future__ import annotations

import asyncio
from unittest.mock import AsyncMock, MagicMock, patch

import pytest

import config
import image_search
from errors import ConfigurationError, ProviderError, SearchFailure
from image_search import Provider, SearchGateway, build_gateway
from search_backends.base import ImageResult, SearchBackend
from search_backends.google_cse_backend import GoogleCSEBackend
from search_backends.serpapi_backend import SerpApiBackend


def make_result(i: int, prefix: str = "img") -> ImageResult:
    return ImageResult(
        position=i,
        thumbnail=f"https://t.example.com/{prefix}{i}.jpg",
        source="example.com",
        title=f"{prefix} {i}",
        link=f"https://example.com/{prefix}/{i}",
        original=f"https://example.com/{prefix}{i}.jpg",
    )


def make_backend(name: str, results=None, error: Exception | None = None) -> MagicMock:
    backend = MagicMock(spec=SearchBackend)
    backend.name = name
    if error is not None:
        backend.search = AsyncMock(side_effect=error)
    else:
        backend.search = AsyncMock(return_value=results or [])
    return backend


def rate_limited(provider: str = "google", status: int = 429, body: str = "Too Many Requests"):
    return ProviderError(provider, status, body)


# ── build_gateway() ───────────────────────────────────────────────────────────

class TestBuildGateway:
    def test_prefers_google_when_both_configured(self, monkeypatch):
        monkeypatch.setenv("GOOGLE_API_KEY", "google-test-key")
        monkeypatch.setenv("GOOGLE_CSE_ID", "google-test-cse")
        monkeypatch.setenv("SERP_API_KEY", "serp-test-key")

        gateway = build_gateway()

        assert gateway.state.active is Provider.GOOGLE
        assert isinstance(gateway.active_backend, GoogleCSEBackend)
        assert gateway.providers == [Provider.GOOGLE, Provider.SERPAPI]

    def test_serpapi_only(self, monkeypatch):
        monkeypatch.setenv("SERP_API_KEY", "serp-test-key")
        gateway = build_gateway()
        assert gateway.state.active is Provider.SERPAPI
        assert isinstance(gateway.active_backend, SerpApiBackend)
        assert gateway.providers == [Provider.SERPAPI]

    def test_google_only(self, monkeypatch):
        monkeypatch.setenv("GOOGLE_API_KEY", "google-test-key")
        monkeypatch.setenv("GOOGLE_CSE_ID", "google-test-cse")
        gateway = build_gateway()
        assert gateway.providers == [Provider.GOOGLE]

    def test_no_credentials_raises(self):
        with pytest.raises(ConfigurationError, match="No valid API configuration found"):
            build_gateway()

    def test_incomplete_google_raises(self, monkeypatch):
        monkeypatch.setenv("GOOGLE_API_KEY", "google-test-key")
        with pytest.raises(ConfigurationError):
            build_gateway()

    def test_empty_strings_count_as_missing(self, monkeypatch):
        monkeypatch.setenv("GOOGLE_API_KEY", "")
        monkeypatch.setenv("GOOGLE_CSE_ID", "")
        monkeypatch.setenv("SERP_API_KEY", "")
        with pytest.raises(ConfigurationError):
            build_gateway()

    def test_search_backend_forces_serpapi(self, monkeypatch):
        monkeypatch.setenv("GOOGLE_API_KEY", "google-test-key")
        monkeypatch.setenv("GOOGLE_CSE_ID", "google-test-cse")
        monkeypatch.setenv("SERP_API_KEY", "serp-test-key")
        monkeypatch.setattr(config, "SEARCH_BACKEND", "serpapi")

        gateway = build_gateway()

        assert gateway.state.active is Provider.SERPAPI
        assert gateway.alternate(Provider.SERPAPI) is Provider.GOOGLE

    def test_forced_backend_without_keys_raises(self, monkeypatch):
        monkeypatch.setenv("SERP_API_KEY", "serp-test-key")
        monkeypatch.setattr(config, "SEARCH_BACKEND", "google")
        with pytest.raises(ConfigurationError, match="SEARCH_BACKEND=google"):
            build_gateway()

    def test_unknown_search_backend_raises(self, monkeypatch):
        monkeypatch.setenv("SERP_API_KEY", "serp-test-key")
        monkeypatch.setattr(config, "SEARCH_BACKEND", "bing")
        with pytest.raises(ConfigurationError, match="auto, google or serpapi"):
            build_gateway()


class TestGatewayConstruction:
    def test_empty_backends_raise(self):
        with pytest.raises(ConfigurationError):
            SearchGateway({})

    def test_initial_follows_priority(self):
        gateway = SearchGateway({
            Provider.SERPAPI: make_backend("serp"),
            Provider.GOOGLE: make_backend("google"),
        })
        assert gateway.state.active is Provider.GOOGLE
        assert gateway.state.disabled == set()


# ── search() ──────────────────────────────────────────────────────────────────

@pytest.mark.asyncio
class TestSearch:
    async def test_success_returns_active_results(self):
        google = make_backend("google", [make_result(i) for i in range(1, 4)])
        serp = make_backend("serp", [make_result(1, "serp")])
        gateway = SearchGateway({Provider.GOOGLE: google, Provider.SERPAPI: serp})

        results = await gateway.search("cats", 10)

        assert [r.position for r in results] == [1, 2, 3]
        google.search.assert_awaited_once_with("cats", 10)
        serp.search.assert_not_awaited()

    async def test_limit_truncates_twelve_to_five(self):
        backend = make_backend("serp", [make_result(i) for i in range(1, 13)])
        gateway = SearchGateway({Provider.SERPAPI: backend})

        results = await gateway.search("purple gradient ui badges", 5)

        assert len(results) == 5
        assert [r.position for r in results] == [1, 2, 3, 4, 5]

    async def test_failover_on_429_and_sticky(self):
        google = make_backend("google", error=rate_limited())
        serp = make_backend("serp", [make_result(1, "serp"), make_result(2, "serp")])
        gateway = SearchGateway({Provider.GOOGLE: google, Provider.SERPAPI: serp})

        first = await gateway.search("cats", 10)

        assert [r.title for r in first] == ["serp 1", "serp 2"]
        assert gateway.state.active is Provider.SERPAPI
        assert gateway.state.disabled == {Provider.GOOGLE}

        # Second call goes straight to SerpAPI — no new attempt against Google
        second = await gateway.search("dogs", 10)
        assert len(second) == 2
        assert google.search.await_count == 1
        assert serp.search.await_count == 2

    async def test_failover_on_403_quota(self):
        google = make_backend("google", error=rate_limited(status=403, body="Quota exceeded"))
        serp = make_backend("serp", [make_result(1, "serp")])
        gateway = SearchGateway({Provider.GOOGLE: google, Provider.SERPAPI: serp})

        results = await gateway.search("cats", 10)

        assert results[0].title == "serp 1"

    async def test_failover_on_rate_limit_text(self):
        error = ProviderError("serp", 400, "Your plan's rate limit has been hit")
        serp = make_backend("serp", error=error)
        google = make_backend("google", [make_result(1, "google")])
        gateway = SearchGateway({Provider.GOOGLE: google, Provider.SERPAPI: serp},
                                initial=Provider.SERPAPI)

        results = await gateway.search("cats", 10)

        assert results[0].title == "google 1"
        assert gateway.state.active is Provider.GOOGLE
        assert gateway.state.disabled == {Provider.SERPAPI}

    async def test_non_rate_limit_error_propagates_without_failover(self):
        google = make_backend("google", error=ProviderError("google", 500, "backend error"))
        serp = make_backend("serp", [make_result(1)])
        gateway = SearchGateway({Provider.GOOGLE: google, Provider.SERPAPI: serp})

        with pytest.raises(SearchFailure) as excinfo:
            await gateway.search("cats", 10)

        assert excinfo.value.last_error.status == 500
        serp.search.assert_not_awaited()
        assert gateway.state.active is Provider.GOOGLE
        assert gateway.state.disabled == set()

    async def test_missing_results_field_does_not_fail_over(self):
        google = make_backend("google", error=ProviderError("google", 200, "No image results found"))
        serp = make_backend("serp", [make_result(1)])
        gateway = SearchGateway({Provider.GOOGLE: google, Provider.SERPAPI: serp})

        with pytest.raises(SearchFailure):
            await gateway.search("cats", 10)
        serp.search.assert_not_awaited()

    async def test_rate_limited_without_alternate_propagates(self):
        serp = make_backend("serp", error=rate_limited("serp"))
        gateway = SearchGateway({Provider.SERPAPI: serp})

        with pytest.raises(SearchFailure) as excinfo:
            await gateway.search("cats", 10)

        assert isinstance(excinfo.value.__cause__, ProviderError)
        assert gateway.state.disabled == set()

    async def test_both_rate_limited_is_one_shot(self):
        google = make_backend("google", error=rate_limited("google"))
        serp = make_backend("serp", error=rate_limited("serp", body="quota"))
        gateway = SearchGateway({Provider.GOOGLE: google, Provider.SERPAPI: serp})

        with pytest.raises(SearchFailure) as excinfo:
            await gateway.search("cats", 10)

        assert google.search.await_count == 1
        assert serp.search.await_count == 1
        assert excinfo.value.last_error.provider == "serp"
        # never both disabled
        assert gateway.state.disabled == {Provider.GOOGLE}
        assert gateway.state.active is Provider.SERPAPI

    async def test_after_exhaustion_second_call_does_not_retry_google(self):
        google = make_backend("google", error=rate_limited("google"))
        serp = make_backend("serp", error=rate_limited("serp"))
        gateway = SearchGateway({Provider.GOOGLE: google, Provider.SERPAPI: serp})

        with pytest.raises(SearchFailure):
            await gateway.search("cats", 10)
        with pytest.raises(SearchFailure):
            await gateway.search("cats", 10)

        assert google.search.await_count == 1
        assert serp.search.await_count == 2

    @pytest.mark.parametrize("query,limit", [("", 5), ("   ", 5), ("cats", 0), ("cats", -1)])
    async def test_invalid_arguments(self, query, limit):
        gateway = SearchGateway({Provider.SERPAPI: make_backend("serp", [make_result(1)])})
        with pytest.raises(ValueError):
            await gateway.search(query, limit)

    async def test_concurrent_rate_limits_flip_state_once(self):
        release = asyncio.Event()

        async def slow_rate_limit(query, limit):
            await release.wait()
            raise rate_limited("google")

        google = make_backend("google")
        google.search = AsyncMock(side_effect=slow_rate_limit)
        serp = make_backend("serp", [make_result(1, "serp")])
        gateway = SearchGateway({Provider.GOOGLE: google, Provider.SERPAPI: serp})

        tasks = [asyncio.create_task(gateway.search("cats", 5)) for _ in range(3)]
        await asyncio.sleep(0)
        release.set()
        results = await asyncio.gather(*tasks)

        assert all(r[0].title == "serp 1" for r in results)
        assert gateway.state.active is Provider.SERPAPI
        assert gateway.state.disabled == {Provider.GOOGLE}
        assert serp.search.await_count == 3


class TestStatus:
    def test_status_reports_state(self):
        gateway = SearchGateway({
            Provider.GOOGLE: make_backend("Google Custom Search"),
            Provider.SERPAPI: make_backend("SerpAPI / Google Images"),
        })
        gateway.state.disabled.add(Provider.GOOGLE)
        gateway.state.active = Provider.SERPAPI

        status = gateway.status()

        assert status == {
            "active": "serpapi",
            "active_name": "SerpAPI / Google Images",
            "configured": ["google", "serpapi"],
            "disabled": ["google"],
        }


# ── module-level helpers ──────────────────────────────────────────────────────

class TestModuleHelpers:
    def test_get_gateway_is_cached(self, monkeypatch):
        monkeypatch.setenv("SERP_API_KEY", "serp-test-key")
        assert image_search.get_gateway() is image_search.get_gateway()

    def test_backend_name_not_configured(self):
        assert image_search.backend_name() == "not configured"

    def test_backend_name_configured(self, monkeypatch):
        monkeypatch.setenv("SERP_API_KEY", "serp-test-key")
        assert image_search.backend_name() == "SerpAPI / Google Images"

    @pytest.mark.asyncio
    async def test_search_images_uses_gateway(self, monkeypatch):
        backend = make_backend("serp", [make_result(1)])
        monkeypatch.setattr(image_search, "_gateway", SearchGateway({Provider.SERPAPI: backend}))

        results = await image_search.search_images("cats", 3)

        assert len(results) == 1
        backend.search.assert_awaited_once_with("cats", 3)
