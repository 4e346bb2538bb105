"""
Schemas Package for Restaurant Bot
==================================

Pydantic models used for validation and serialization:

- **menu.py**: Menu item schemas (seeding and lookups)
- **chat.py**: WebSocket event frames
- **payments.py**: Paystack request/response payloads
"""

from .chat import InboundEvent, OutboundEvent
from .menu import MenuItemCreate, MenuItemOut
from .payments import (
    PaymentInitialization,
    PaymentVerification,
    PaystackInitializeRequest,
    PaystackInitializeResponse,
    PaystackVerifyResponse,
)

__all__ = [
    "InboundEvent",
    "OutboundEvent",
    "MenuItemCreate",
    "MenuItemOut",
    "PaymentInitialization",
    "PaymentVerification",
    "PaystackInitializeRequest",
    "PaystackInitializeResponse",
    "PaystackVerifyResponse",
]
