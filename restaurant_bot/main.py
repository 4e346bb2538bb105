"""
Server entry point for Restaurant Bot.

Usage:
    # Console script installed with the package
    restaurant-bot

    # Custom bind address
    restaurant-bot --host 127.0.0.1 --port 9001

    # Under an external ASGI server
    uvicorn restaurant_bot.main:get_app --factory
"""

import argparse
import logging
import sys
from typing import List, Optional

import uvicorn
from fastapi import FastAPI

from .app_factory import create_app
from .config import HOST, PORT
from .errors import ConfigurationError
from .logging_config import setup_logging

logger = logging.getLogger(__name__)


def get_app() -> FastAPI:
    """App factory for ``uvicorn --factory``."""
    setup_logging()
    return create_app()


def run(argv: Optional[List[str]] = None) -> None:
    parser = argparse.ArgumentParser(description="Run the restaurant chat-ordering bot")
    parser.add_argument("--host", default=HOST, help=f"Host to bind to (default: {HOST})")
    parser.add_argument("--port", type=int, default=PORT, help=f"Port to run on (default: {PORT})")
    parser.add_argument("--log-level", default=None, help="Overrides LOG_LEVEL")
    args = parser.parse_args(argv)

    setup_logging(args.log_level)

    try:
        app = create_app()
    except ConfigurationError as exc:
        logger.critical("Cannot start: %s", exc)
        sys.exit(1)

    logger.info("Starting server on %s:%d", args.host, args.port)
    uvicorn.run(app, host=args.host, port=args.port)


if __name__ == "__main__":
    run()
