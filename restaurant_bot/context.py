"""
Application context shared by the HTTP and WebSocket layers.

One ``AppContext`` is built by the app factory and stored on
``app.state.context``. Routes fetch it with ``get_context`` (HTTP) or
``websocket.app.state.context`` (WebSocket) instead of importing module
globals.

Database work is synchronous SQLAlchemy. ``run_db`` runs a store function in
Starlette's thread pool with its own Session, so a slow query never blocks
other connections on the event loop:

    pending = await context.run_db(order_service.find_pending_order, session_token)
"""

from dataclasses import dataclass, field
from typing import Any, Callable, TypeVar

from fastapi import Request
from sqlalchemy.orm import sessionmaker
from starlette.concurrency import run_in_threadpool

from .config import Settings
from .db import session_scope
from .notifications import NotificationBus
from .payments import PaymentGateway

T = TypeVar("T")


@dataclass
class AppContext:
    settings: Settings
    session_factory: sessionmaker
    gateway: PaymentGateway
    bus: NotificationBus = field(default_factory=NotificationBus)

    def _call_with_session(self, fn: Callable[..., T], *args: Any, **kwargs: Any) -> T:
        with session_scope(self.session_factory) as db:
            return fn(db, *args, **kwargs)

    async def run_db(self, fn: Callable[..., T], *args: Any, **kwargs: Any) -> T:
        """Run ``fn(db, *args, **kwargs)`` in a worker thread with a fresh Session."""
        return await run_in_threadpool(self._call_with_session, fn, *args, **kwargs)


def get_context(request: Request) -> AppContext:
    """FastAPI dependency returning the application context."""
    return request.app.state.context
