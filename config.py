"""
Central configuration — reads from .env file.

Every setting has a sensible default so the server starts with nothing but
one set of search credentials. Credentials themselves are looked up through
key_store.py (which reads the environment fresh on every call), the values
below are only the bootstrap copy used for display and defaults.
"""
import os
from dotenv import load_dotenv

load_dotenv()

# ── Search providers ──────────────────────────────────────────────────────────
# At least one complete set is required:
#   Google Custom Search  → GOOGLE_API_KEY + GOOGLE_CSE_ID
#   SerpAPI               → SERP_API_KEY
GOOGLE_API_KEY: str | None = os.getenv("GOOGLE_API_KEY") or None
GOOGLE_CSE_ID: str | None  = os.getenv("GOOGLE_CSE_ID") or None
SERP_API_KEY: str | None   = os.getenv("SERP_API_KEY") or None

# Which provider starts as active:
#   auto    → Google if its keys are present, otherwise SerpAPI (default)
#   google  → force Google Custom Search (SerpAPI still used for failover)
#   serpapi → force SerpAPI (Google still used for failover)
SEARCH_BACKEND: str = os.getenv("SEARCH_BACKEND", "auto")

DEFAULT_LIMIT: int          = int(os.getenv("DEFAULT_LIMIT", "10"))
SEARCH_TIMEOUT_SECS: float  = float(os.getenv("SEARCH_TIMEOUT_SECS", "15"))

# ── Downloads ─────────────────────────────────────────────────────────────────
DOWNLOAD_TIMEOUT_SECS: float = float(os.getenv("DOWNLOAD_TIMEOUT_SECS", "30"))
PROBE_TIMEOUT_SECS: float    = float(os.getenv("PROBE_TIMEOUT_SECS", "15"))
MAX_DOWNLOAD_BYTES: int      = int(os.getenv("MAX_DOWNLOAD_BYTES", str(50 * 1024 * 1024)))
MAX_REDIRECTS: int           = int(os.getenv("MAX_REDIRECTS", "5"))

# ── Recent search results (served as MCP resources) ───────────────────────────
RESULT_CACHE_TTL_SECS: float     = float(os.getenv("RESULT_CACHE_TTL_SECS", "3600"))
RESULT_CACHE_CLEANUP_SECS: float = float(os.getenv("RESULT_CACHE_CLEANUP_SECS", "300"))

# ── Logging ───────────────────────────────────────────────────────────────────
# stdout belongs to the MCP stdio transport, so logs go to stderr (and
# optionally to LOG_FILE as well).
LOG_LEVEL: str       = os.getenv("LOG_LEVEL", "INFO").upper()
LOG_FILE: str | None = os.getenv("LOG_FILE", "").strip() or None
