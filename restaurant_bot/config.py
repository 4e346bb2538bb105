"""
Configuration Module for Restaurant Bot
=======================================

This module centralizes all configuration settings, environment variables, and
constants used throughout the application. Values are read from the
environment (a local ``.env`` file is loaded first) and collected into a
``Settings`` object that the app factory passes to every layer.

Configuration Categories:
-------------------------
- **Payment Provider**: Paystack secret key, API base URL, callback URL,
  request timeout and the customer email Paystack requires.

- **Sessions**: Secret used to sign the session cookie and the cookie lifetime.

- **Persistence**: SQLAlchemy database URL and whether to seed the sample menu.

- **Ordering Rules**: Minimum order total and the currency symbol shown to users.

- **Rate Limiting / CORS**: Same semantics as the rest of our services.

Environment Variables:
----------------------
- PAYSTACK_SECRET_KEY: Paystack secret key (required, startup-fatal if missing)
- SESSION_SECRET: Secret used to sign session cookies (required)
- DATABASE_URL: Database URL (default: "sqlite:///./restaurant_bot.db")
- PAYMENT_CALLBACK_URL: Where Paystack sends the customer back after paying
  (default: "http://localhost:9000/payment/callback")
- PAYSTACK_BASE_URL: Paystack API root (default: "https://api.paystack.co")
- PAYMENT_TIMEOUT_SECONDS: Gateway request timeout (default: 10)
- PAYMENT_CUSTOMER_EMAIL: Email sent with each transaction
  (default: "customer@example.com")
- MIN_ORDER_TOTAL: Smallest order total accepted at checkout (default: 100)
- CURRENCY_SYMBOL: Symbol prefixed to prices (default: "₦")
- SESSION_MAX_AGE_SECONDS: Session cookie lifetime (default: 86400)
- SEED_MENU: Seed the sample menu when the catalog is empty (default: "true")
- RATE_LIMIT_ENABLED: Enable/disable rate limiting (default: "true")
- RATE_LIMIT_PAYMENT: Limit for payment endpoints (default: "60 per minute")
- CORS_ORIGINS: Comma-separated allowed origins (default: "*")
- HOST / PORT: Bind address for the server (default: 0.0.0.0:9000)

Usage:
------
    from restaurant_bot.config import load_settings

    settings = load_settings()
    settings.require()  # raises ConfigurationError if credentials are missing
"""

import logging
import os
from dataclasses import dataclass, field
from typing import List

from dotenv import load_dotenv

from .errors import ConfigurationError

load_dotenv()

logger = logging.getLogger(__name__)


def _env_bool(name: str, default: str) -> bool:
    return os.getenv(name, default).strip().lower() == "true"


# =============================================================================
# Payment Provider Configuration
# =============================================================================

PAYSTACK_SECRET_KEY: str = os.getenv("PAYSTACK_SECRET_KEY", "")
PAYSTACK_BASE_URL: str = os.getenv("PAYSTACK_BASE_URL", "https://api.paystack.co")
PAYMENT_CALLBACK_URL: str = os.getenv(
    "PAYMENT_CALLBACK_URL", "http://localhost:9000/payment/callback"
)
PAYMENT_TIMEOUT_SECONDS: float = float(os.getenv("PAYMENT_TIMEOUT_SECONDS", "10"))
PAYMENT_CUSTOMER_EMAIL: str = os.getenv("PAYMENT_CUSTOMER_EMAIL", "customer@example.com")


# =============================================================================
# Session Configuration
# =============================================================================
# The session cookie only carries a random client key; conversation state
# lives in the chat_sessions table.

SESSION_SECRET: str = os.getenv("SESSION_SECRET", "")
SESSION_MAX_AGE_SECONDS: int = int(os.getenv("SESSION_MAX_AGE_SECONDS", "86400"))  # 1 day


# =============================================================================
# Persistence Configuration
# =============================================================================

DATABASE_URL: str = os.getenv("DATABASE_URL", "sqlite:///./restaurant_bot.db")
SEED_MENU: bool = _env_bool("SEED_MENU", "true")


# =============================================================================
# Ordering Rules
# =============================================================================

# Paystack rejects amounts below 100 kobo; we enforce whole currency units.
MIN_ORDER_TOTAL: int = int(os.getenv("MIN_ORDER_TOTAL", "100"))
CURRENCY_SYMBOL: str = os.getenv("CURRENCY_SYMBOL", "₦")

# Minor units per currency unit (kobo per naira)
MINOR_UNITS_PER_UNIT: int = 100


# =============================================================================
# Rate Limiting / CORS / Server
# =============================================================================

RATE_LIMIT_ENABLED: bool = _env_bool("RATE_LIMIT_ENABLED", "true")
RATE_LIMIT_PAYMENT: str = os.getenv("RATE_LIMIT_PAYMENT", "60 per minute")

_cors_origins_env = os.getenv("CORS_ORIGINS", "")
CORS_ORIGINS: List[str] = [
    origin.strip()
    for origin in _cors_origins_env.split(",")
    if origin.strip()
] or ["*"]

HOST: str = os.getenv("HOST", "0.0.0.0")
PORT: int = int(os.getenv("PORT", "9000"))


@dataclass(frozen=True)
class Settings:
    """Resolved configuration handed to the app factory."""

    paystack_secret_key: str
    session_secret: str
    database_url: str = DATABASE_URL
    payment_callback_url: str = PAYMENT_CALLBACK_URL
    paystack_base_url: str = PAYSTACK_BASE_URL
    payment_timeout_seconds: float = PAYMENT_TIMEOUT_SECONDS
    payment_customer_email: str = PAYMENT_CUSTOMER_EMAIL
    min_order_total: int = MIN_ORDER_TOTAL
    currency_symbol: str = CURRENCY_SYMBOL
    session_max_age_seconds: int = SESSION_MAX_AGE_SECONDS
    seed_menu: bool = SEED_MENU
    cors_origins: List[str] = field(default_factory=lambda: list(CORS_ORIGINS))

    def require(self) -> None:
        """
        Fail fast when a credential the app cannot run without is missing.

        Raises:
            ConfigurationError: PAYSTACK_SECRET_KEY or SESSION_SECRET is empty.
        """
        if not self.paystack_secret_key:
            raise ConfigurationError("PAYSTACK_SECRET_KEY is missing")
        if not self.session_secret:
            raise ConfigurationError("SESSION_SECRET is missing")

    @property
    def masked_secret_key(self) -> str:
        """Secret key safe for logs, e.g. ``sk_test_****``."""
        return self.paystack_secret_key[:8] + "****"


def load_settings() -> Settings:
    """Build Settings from the module-level environment values."""
    return Settings(
        paystack_secret_key=PAYSTACK_SECRET_KEY,
        session_secret=SESSION_SECRET,
    )
