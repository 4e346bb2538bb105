"""
Conversation Dispatcher
=======================

Routes one customer message to one of a fixed set of commands:

    1   browse the menu (and start waiting for a selection)
    99  checkout
    98  order history
    97  review the current order
    0   cancel the current order
    *   item selection such as "1,3" (only while waiting for one)

Input is validated against ``COMMAND_PATTERN`` first; anything else gets an
error message and the options menu, and nothing changes.

Turns:
------
A ``ConversationTurn`` is built for every inbound message with explicit
references to the application context, the session loaded for this turn and
the connection to reply to. Handlers are methods on it; the updated session
is returned by ``handle`` so the caller can rebind the connection.

Every session mutation is committed before the message that depends on it is
sent.
"""

import logging
import re
from enum import Enum
from typing import Awaitable, Callable, Dict

from ..context import AppContext
from ..errors import PersistenceError, ValidationError
from ..services import catalog
from ..services import order as order_service
from ..services import session as session_service
from ..services.cart import cart_total, select_items
from ..services.session import ChatSessionState
from . import messages
from .checkout import checkout
from .messages import ChatMessages


logger = logging.getLogger(__name__)

COMMAND_PATTERN = re.compile(r"^(0|1|97|98|99|[0-9]+(,[0-9]+)*)$")


class Command(str, Enum):
    BROWSE = "1"
    CHECKOUT = "99"
    HISTORY = "98"
    REVIEW = "97"
    CANCEL = "0"


def validate_input(raw) -> str:
    """
    Normalize and validate a raw chat message.

    Raises:
        ValidationError: the message is not a command or a list of numbers.
    """
    cleaned = str(raw).strip()
    if not COMMAND_PATTERN.match(cleaned):
        raise ValidationError(f"Invalid input: {cleaned!r}")
    return cleaned


class ConversationTurn:
    """Handles one inbound message for one connection."""

    def __init__(self, context: AppContext, session: ChatSessionState, connection_id: str):
        self.context = context
        self.session = session
        self.connection_id = connection_id
        self.currency = context.settings.currency_symbol

    # ------------------------------------------------------------------
    # Output helpers
    # ------------------------------------------------------------------

    async def say(self, text: str) -> None:
        await self.context.bus.send_message(self.connection_id, text)

    async def send_options(self) -> None:
        await self.say(ChatMessages.OPTIONS)

    async def redirect(self, url: str) -> None:
        await self.context.bus.send_redirect(self.connection_id, url)

    # ------------------------------------------------------------------
    # Entry points
    # ------------------------------------------------------------------

    async def handle(self, raw) -> ChatSessionState:
        try:
            text = validate_input(raw)
        except ValidationError:
            logger.debug("Rejected input on %s: %r", self.connection_id, raw)
            await self.say(ChatMessages.INVALID_INPUT)
            await self.send_options()
            return self.session

        handlers: Dict[str, Callable[[str], Awaitable[None]]] = {
            Command.BROWSE.value: self.browse,
            Command.CHECKOUT.value: self.checkout,
            Command.HISTORY.value: self.history,
            Command.REVIEW.value: self.review,
            Command.CANCEL.value: self.cancel,
        }
        handler = handlers.get(text, self.select)

        try:
            await handler(text)
        except Exception:
            logger.exception("Error handling %r for session %s", text, self.session.session_token)
            await self.say(ChatMessages.GENERIC_ERROR)
            await self.send_options()

        return self.session

    async def handle_clear(self, session_token: str) -> ChatSessionState:
        """
        Reset the session after its order was paid.

        Ignored unless ``session_token`` is the session's current token.
        """
        if session_token != self.session.session_token:
            logger.debug(
                "Ignoring clear for %s on connection bound to %s",
                session_token, self.session.session_token,
            )
            return self.session

        self.session = await self.context.run_db(session_service.regenerate_session, self.session)
        self.context.bus.bind(self.connection_id, self.session.session_token)
        await self.send_options()
        return self.session

    # ------------------------------------------------------------------
    # Command handlers
    # ------------------------------------------------------------------

    async def browse(self, _text: str) -> None:
        try:
            menu = await self.context.run_db(catalog.list_items)
            self.session = await self.context.run_db(
                session_service.apply_session_update,
                self.session,
                cart=[],
                awaiting_selection=bool(menu),
            )
        except PersistenceError:
            logger.exception("Menu error for session %s", self.session.session_token)
            await self.say(ChatMessages.MENU_ERROR)
            await self.send_options()
            return

        if not menu:
            await self.say(ChatMessages.EMPTY_MENU)
            await self.send_options()
            return

        # The next message is expected to be a selection, so no options here
        await self.say(messages.menu_listing(menu, self.currency))

    async def select(self, text: str) -> None:
        if not self.session.awaiting_selection:
            logger.debug("Ignoring %r; session %s is not awaiting a selection", text, self.session.session_token)
            return

        try:
            menu = await self.context.run_db(catalog.list_items)
            selected = select_items(menu, text)
            if selected:
                self.session = await self.context.run_db(
                    session_service.apply_session_update,
                    self.session,
                    cart=[item.id for item in selected],
                    awaiting_selection=False,
                )
                await self.say(messages.items_added(len(selected), cart_total(selected), self.currency))
            else:
                await self.say(ChatMessages.INVALID_SELECTION)
        except PersistenceError:
            logger.exception("Selection error for session %s", self.session.session_token)
            await self.say(ChatMessages.SELECTION_ERROR)

        await self.send_options()

    async def review(self, _text: str) -> None:
        if self.session.has_cart:
            available = await self.context.run_db(catalog.get_items_by_ids, self.session.cart)
            items = [available[item_id] for item_id in self.session.cart if item_id in available]
            await self.say(messages.cart_summary(items, cart_total(items), self.currency))
        else:
            pending = await self.context.run_db(
                order_service.find_pending_order, self.session.session_token
            )
            if pending is not None:
                await self.say(messages.pending_order_summary(pending, self.currency))
            else:
                await self.say(ChatMessages.NO_CURRENT_ORDER)
        await self.send_options()

    async def history(self, _text: str) -> None:
        orders = await self.context.run_db(order_service.list_order_history, self.session.session_token)
        if orders:
            await self.say(messages.order_history(orders, self.currency))
        else:
            await self.say(ChatMessages.NO_HISTORY)
        await self.send_options()

    async def cancel(self, _text: str) -> None:
        await self.context.run_db(order_service.delete_pending_orders, self.session.session_token)
        self.session = await self.context.run_db(
            session_service.apply_session_update,
            self.session,
            cart=[],
            awaiting_selection=False,
        )
        await self.say(ChatMessages.ORDER_CANCELLED)
        await self.send_options()

    async def checkout(self, _text: str) -> None:
        result = await checkout(self.context, self.session)
        self.session = result.session
        if result.ok:
            await self.redirect(result.authorization_url)
            return
        await self.say(result.message)
        await self.send_options()
