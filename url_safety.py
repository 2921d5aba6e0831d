"""
url_safety.py — decide whether a URL may be fetched by the downloader.

Rules:
  • only http:// and https://
  • host must not be localhost or a private / link-local IPv4 prefix
    (127.*, 10.*, 192.168.*, 169.254.*, 172.16.* – 172.31.*)
  • anything that fails to parse is unsafe

This is a plain hostname-string check. A public name that resolves to a
private address (DNS rebinding) is NOT caught here.
"""
from __future__ import annotations

import logging
from urllib.parse import urlparse

logger = logging.getLogger(__name__)

ALLOWED_SCHEMES = frozenset({"http", "https"})
_BLOCKED_PREFIXES = ("127.", "169.254.", "192.168.", "10.")


def is_safe_url(url: str) -> bool:
    try:
        parsed = urlparse(url)
        scheme = parsed.scheme.lower()
        host = parsed.hostname  # lower-cased by urllib, port/userinfo stripped
    except (ValueError, AttributeError, TypeError):
        return False

    if scheme not in ALLOWED_SCHEMES or not host:
        return False

    if _is_internal_host(host):
        logger.warning("Blocked internal host in URL: %s", host)
        return False
    return True


def _is_internal_host(host: str) -> bool:
    host = host.lower()
    if host == "localhost":
        return True
    if host.startswith(_BLOCKED_PREFIXES):
        return True
    return _is_private_172(host)


def _is_private_172(host: str) -> bool:
    """172.16.0.0/12: second octet 16..31."""
    parts = host.split(".")
    if len(parts) < 3 or parts[0] != "172":
        return False
    try:
        return 16 <= int(parts[1]) <= 31
    except ValueError:
        return False
