"""
Routes Package for Restaurant Bot
=================================

This package contains the API route definitions. Each module defines a
FastAPI APIRouter with related endpoints grouped together.

Routes:
-------
- chat.py: WebSocket chat connection (``/ws``)
- payment.py: Payment provider callback and receipt page

Route Dependencies:
-------------------
- get_context: Application context (settings, database, gateway, bus)
- limiter.limit(): Rate limiting on the payment endpoints

Error Handling:
---------------
Routes raise HTTPException for error conditions:
- 404: Not found (no paid order for a reference)
- 429: Too many requests (rate limited)
- 500: Unexpected storage failure

Usage:
------
    from restaurant_bot.routes import chat_router, payment_router

    app.include_router(chat_router)
    app.include_router(payment_router)
"""

from .chat import chat_router
from .payment import payment_router, limiter

__all__ = [
    "chat_router",
    "payment_router",
    "limiter",
]
