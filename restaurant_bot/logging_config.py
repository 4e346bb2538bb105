"""
Logging setup for the restaurant bot.

Every module logs through ``logging.getLogger(__name__)``, so the whole app
sits under the ``restaurant_bot`` logger:

    restaurant_bot.routes.chat            connections, turns, clear-session
    restaurant_bot.conversation.*         commands and checkout outcomes
    restaurant_bot.services.order         order creation, removal, payment
    restaurant_bot.services.reconciliation payment callbacks
    restaurant_bot.payments               Paystack requests and replies

Usage:
    from restaurant_bot.logging_config import setup_logging
    setup_logging()          # once, before the app is built
    setup_logging("DEBUG")   # explicit level wins over LOG_LEVEL

Environment variables:
    LOG_LEVEL: DEBUG, INFO, WARNING, ERROR or CRITICAL (default: INFO)
"""
import logging
import os
import sys

LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"
LOG_LEVELS = ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL")

# Libraries that log every HTTP request or SQL statement at INFO
CHATTY_LOGGERS = ("httpx", "httpcore", "sqlalchemy.engine")


def setup_logging(level: str = None) -> None:
    """
    Send the app's logs to stdout at ``level``.

    An unknown level falls back to INFO. Below DEBUG the Paystack HTTP
    client and the SQL engine only report warnings.
    """
    if level is None:
        level = os.getenv("LOG_LEVEL", "INFO")
    level = level.upper()
    if level not in LOG_LEVELS:
        level = "INFO"

    numeric_level = getattr(logging, level)

    logging.basicConfig(
        level=numeric_level,
        format=LOG_FORMAT,
        datefmt="%Y-%m-%d %H:%M:%S",
        stream=sys.stdout,
    )
    logging.getLogger("restaurant_bot").setLevel(numeric_level)

    if level != "DEBUG":
        for name in CHATTY_LOGGERS:
            logging.getLogger(name).setLevel(logging.WARNING)

    logging.getLogger(__name__).debug("Logging configured at %s level", level)
