"""
main.py — Single entry point.

Runs the image search MCP server over stdio:
  host (Claude Desktop, LM Studio, ...)
    └── stdin/stdout  JSON-RPC  ── FastMCP ── tools (server.py)

stdout is the protocol channel, so every log line goes to stderr
(plus LOG_FILE when set).

Exit codes:
  0  clean shutdown
  1  no usable search credentials (or other startup failure)
"""
import logging
import sys

import config

_handlers: list[logging.Handler] = [logging.StreamHandler(sys.stderr)]
if config.LOG_FILE:
    _handlers.append(logging.FileHandler(config.LOG_FILE, encoding="utf-8"))

logging.basicConfig(
    format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
    level=getattr(logging, config.LOG_LEVEL, logging.INFO),
    handlers=_handlers,
)
logging.getLogger("httpx").setLevel(logging.WARNING)
logging.getLogger("httpcore").setLevel(logging.WARNING)
logging.getLogger("aiohttp.access").setLevel(logging.WARNING)

logger = logging.getLogger(__name__)


def main() -> None:
    from errors import ConfigurationError
    from image_search import get_gateway
    from server import create_server

    try:
        gateway = get_gateway()
    except ConfigurationError as exc:
        logger.critical("FATAL: %s", exc)
        sys.exit(1)

    mcp = create_server(gateway)
    logger.info("Image search MCP server starting on stdio")
    try:
        mcp.run()
    except KeyboardInterrupt:
        pass
    logger.info("Goodbye.")


if __name__ == "__main__":
    main()
