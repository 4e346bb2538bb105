"""
Services Package for Restaurant Bot
===================================

Service modules that encapsulate business logic and persistence. Store
services take a SQLAlchemy Session as their first argument and return plain
values, so the conversation layer can run them in a worker thread via
``AppContext.run_db``.

Available Services:
-------------------
- **catalog**: Read-only menu lookups and sample menu seeding
- **session**: Chat session state (token, cart, conversation state)
- **cart**: Selection parsing, cart validation and order snapshots
- **order**: Order store and status lifecycle
- **reconciliation**: Applying verified payments to orders

Usage:
------
    from restaurant_bot.services import catalog, order, session
"""

from . import cart
from . import catalog
from . import order
from . import session

__all__ = ["cart", "catalog", "order", "session"]
