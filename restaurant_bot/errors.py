"""
Error types for the restaurant bot.

Every failure the conversation or reconciliation paths can recover from is
raised as one of these. Store and gateway modules translate library errors
(SQLAlchemy, httpx) into them at their boundary so callers never need to know
which library failed.
"""

from typing import Optional


class RestaurantBotError(Exception):
    """Base class for all application errors."""


class ConfigurationError(RestaurantBotError):
    """A required setting is missing. Raised before the app accepts connections."""


class ValidationError(RestaurantBotError):
    """User input did not match the command grammar."""


class NotFoundError(RestaurantBotError):
    """A menu item or order that was referenced no longer exists."""


class PersistenceError(RestaurantBotError):
    """A database read or write failed."""


class GatewayError(RestaurantBotError):
    """
    The payment provider could not be reached or returned an unusable response.

    Attributes:
        provider_message: Message supplied by the provider, safe to show users.
        status_code: HTTP status returned by the provider, if any.
    """

    def __init__(
        self,
        message: str,
        provider_message: Optional[str] = None,
        status_code: Optional[int] = None,
    ):
        super().__init__(message)
        self.provider_message = provider_message
        self.status_code = status_code
