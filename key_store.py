"""
key_store.py — single source of truth for search API credentials.

Keys are read from the environment (populated from .env by config.py) on
every call, so tests and long-running hosts always see the current value.

Key names (env vars are the uppercase equivalent):
  google_api_key  →  GOOGLE_API_KEY
  google_cse_id   →  GOOGLE_CSE_ID
  serp_api_key    →  SERP_API_KEY

Empty strings are treated exactly like missing keys.
"""
from __future__ import annotations

import logging
import os
from typing import Optional

import config  # noqa: F401  (loads .env into the environment)

logger = logging.getLogger(__name__)

KEY_NAMES = ("google_api_key", "google_cse_id", "serp_api_key")


def get(key_name: str) -> Optional[str]:
    """Return the value for key_name, or None if unset / blank."""
    value = os.getenv(key_name.upper(), "").strip()
    return value or None


def google_credentials() -> Optional[tuple[str, str]]:
    """(api_key, cse_id) when both are set, else None."""
    api_key = get("google_api_key")
    cse_id = get("google_cse_id")
    if api_key and cse_id:
        return api_key, cse_id
    if api_key or cse_id:
        logger.warning("Google Custom Search is only partially configured, ignoring it")
    return None


def serpapi_credentials() -> Optional[str]:
    return get("serp_api_key")


def get_all_keys() -> dict[str, Optional[str]]:
    """Return all known keys with their current values."""
    return {name: get(name) for name in KEY_NAMES}


def mask(value: Optional[str]) -> str:
    """Return a masked version safe to write to logs."""
    if not value:
        return "not set"
    if len(value) <= 8:
        return "****"
    return f"{value[:4]}{'*' * (len(value) - 8)}{value[-4:]}"
