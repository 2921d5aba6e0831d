"""
Shared pytest fixtures.

Every test starts with no search credentials in the environment, no cached
gateway and an empty result cache, so tests are fully isolated from each
other and from a developer's real .env.
"""
from __future__ import annotations

import sys
from pathlib import Path
from unittest.mock import AsyncMock, MagicMock

import pytest

# ── Make the project root importable without installing the package ────────────
PROJECT_ROOT = Path(__file__).parent.parent
sys.path.insert(0, str(PROJECT_ROOT))

_CREDENTIAL_VARS = ("GOOGLE_API_KEY", "GOOGLE_CSE_ID", "SERP_API_KEY")


@pytest.fixture(autouse=True)
def clean_env(monkeypatch):
    """Remove credentials and reset process-wide caches for every test."""
    for var in _CREDENTIAL_VARS:
        monkeypatch.delenv(var, raising=False)

    import config
    monkeypatch.setattr(config, "SEARCH_BACKEND", "auto")

    import image_search
    monkeypatch.setattr(image_search, "_gateway", None)

    import result_cache
    result_cache.clear()
    yield
    result_cache.clear()


def fake_session(response: MagicMock, method: str = "get") -> MagicMock:
    """A MagicMock standing in for `aiohttp.ClientSession()` that returns `response`."""
    session = MagicMock()
    setattr(session, method, MagicMock(return_value=response))
    session.__aenter__ = AsyncMock(return_value=session)
    session.__aexit__ = AsyncMock(return_value=False)
    return session


def fake_response(status: int = 200, json_data=None, text: str = "", headers=None) -> MagicMock:
    """A fake aiohttp response usable as an async context manager."""
    resp = MagicMock()
    resp.status = status
    resp.json = AsyncMock(return_value=json_data)
    resp.text = AsyncMock(return_value=text)
    resp.headers = headers or {}
    resp.__aenter__ = AsyncMock(return_value=resp)
    resp.__aexit__ = AsyncMock(return_value=False)
    return resp
