"""
scheduler.py — background housekeeping for the MCP server.

Every RESULT_CACHE_CLEANUP_SECS the loop wakes up and evicts expired search
result sets from result_cache. Started from server.py's lifespan and stopped
on shutdown.
"""
from __future__ import annotations

import asyncio
import logging

logger = logging.getLogger(__name__)

_running = False


async def _run_cleanup() -> None:
    import result_cache

    try:
        removed = result_cache.evict_expired()
        if removed:
            logger.info("Cache cleanup: removed %d expired result set(s), %d left",
                        removed, result_cache.size())
    except Exception as exc:
        logger.error("Cache cleanup failed: %s", exc)


async def _scheduler_loop() -> None:
    """Background coroutine: wakes periodically and evicts expired entries."""
    import config

    interval = config.RESULT_CACHE_CLEANUP_SECS
    logger.info("Cache cleanup scheduler started (every %.0fs, TTL %.0fs)",
                interval, config.RESULT_CACHE_TTL_SECS)

    while _running:
        try:
            await asyncio.sleep(interval)
            await _run_cleanup()
        except asyncio.CancelledError:
            break


def start() -> asyncio.Task:
    """Start the scheduler as a background asyncio Task."""
    global _running
    _running = True
    return asyncio.create_task(_scheduler_loop())


def stop() -> None:
    global _running
    _running = False
