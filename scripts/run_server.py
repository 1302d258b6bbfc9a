"""Script to launch the chat proxy server."""

from __future__ import annotations

import argparse
import logging
import os
import sys

import uvicorn

# Ensure src/ is on sys.path (so imports work when run directly)
SRC_DIR = os.path.abspath(os.path.join(os.path.dirname(__file__), "..", "src"))
if SRC_DIR not in sys.path:
    sys.path.insert(0, SRC_DIR)

from chat_proxy.config import load_settings  # noqa: E402
from chat_proxy.server import create_app  # noqa: E402

logger = logging.getLogger("chat_proxy")


def main() -> None:
    parser = argparse.ArgumentParser(description="Run the chat proxy server.")
    parser.add_argument(
        "--config",
        type=str,
        default=None,
        help="Path to a YAML config file (default: $CHAT_PROXY_CONFIG or config/default.yaml)",
    )
    parser.add_argument(
        "--host",
        type=str,
        default=None,
        help="Host to bind the server to (default: server.host from config)",
    )
    parser.add_argument(
        "--port",
        type=int,
        default=None,
        help="Port to bind the server to (default: $MCP_PORT or server.port from config)",
    )
    parser.add_argument(
        "--log-level",
        type=str,
        default=os.environ.get("LOG_LEVEL", "info"),
        help="Logging level (default: info)",
    )
    args = parser.parse_args()

    logging.basicConfig(
        level=args.log_level.upper(),
        format="[%(asctime)s] %(levelname)s %(name)s - %(message)s",
    )

    settings = load_settings(args.config)
    app = create_app(settings=settings)

    host = args.host or settings.host
    port = args.port or settings.port
    logger.info("Chat proxy running at http://%s:%d", host, port)
    logger.info("Upstream AI: %s", settings.upstream_base)

    uvicorn.run(app, host=host, port=port, log_level=args.log_level.lower())


if __name__ == "__main__":
    main()
