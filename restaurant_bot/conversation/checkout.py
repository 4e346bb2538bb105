"""
Checkout flow (command 99).

Resolves the active order, starts a payment with the gateway and reports a
``CheckoutResult``. The caller (the conversation turn) turns the result into
bot messages and a redirect.

Steps:
1. Cart has items: re-validate them against the catalog. Any missing item
   clears the cart and stops; nothing is created and the gateway is not
   called.
2. Cart empty: reuse the session's pending order, if any.
3. Enforce the minimum order total before talking to the gateway.
4. From a cart: create the pending order (snapshot + total), then clear the
   cart.
5. Initialize the payment with reference ``order_<id>`` and store the
   reference on the order.
6. Any failure in 4-5 removes the order created in step 4. When no order was
   created this step does nothing.
"""

import logging
from dataclasses import dataclass
from enum import Enum
from typing import Optional

from ..config import MINOR_UNITS_PER_UNIT
from ..context import AppContext
from ..errors import GatewayError, NotFoundError, PersistenceError, ValidationError
from ..payments import call_with_timeout
from ..services import catalog
from ..services import order as order_service
from ..services import session as session_service
from ..services.cart import build_snapshot, resolve_cart, snapshot_total
from ..services.order import OrderRecord, payment_reference_for
from ..services.session import ChatSessionState
from .messages import ChatMessages, minimum_total, payment_error


logger = logging.getLogger(__name__)


class CheckoutOutcome(str, Enum):
    REDIRECT = "redirect"
    NOTHING_TO_PLACE = "nothing_to_place"
    ITEMS_UNAVAILABLE = "items_unavailable"
    BELOW_MINIMUM = "below_minimum"
    PAYMENT_FAILED = "payment_failed"


@dataclass(frozen=True)
class CheckoutResult:
    outcome: CheckoutOutcome
    session: ChatSessionState
    order: Optional[OrderRecord] = None
    authorization_url: Optional[str] = None
    message: Optional[str] = None

    @property
    def ok(self) -> bool:
        return self.outcome is CheckoutOutcome.REDIRECT


async def _compensate(context: AppContext, order_id: Optional[int]) -> None:
    """Best-effort removal of an order created by a checkout that failed."""
    if order_id is None:
        return
    try:
        await context.run_db(order_service.delete_pending_order, order_id)
    except PersistenceError:
        logger.exception("Could not remove order %s after failed checkout", order_id)


async def checkout(context: AppContext, session: ChatSessionState) -> CheckoutResult:
    settings = context.settings
    currency = settings.currency_symbol
    lines = None
    order = None

    if session.has_cart:
        available = await context.run_db(catalog.get_items_by_ids, session.cart)
        try:
            items = resolve_cart(session.cart, available)
        except NotFoundError:
            logger.info("Cart for session %s references removed menu items", session.session_token)
            session = await context.run_db(session_service.mutate_cart, session, [])
            return CheckoutResult(
                CheckoutOutcome.ITEMS_UNAVAILABLE, session, message=ChatMessages.ITEMS_UNAVAILABLE
            )
        lines = build_snapshot(items)
        total = snapshot_total(lines)
    else:
        order = await context.run_db(order_service.find_pending_order, session.session_token)
        if order is None:
            return CheckoutResult(
                CheckoutOutcome.NOTHING_TO_PLACE, session, message=ChatMessages.NOTHING_TO_PLACE
            )
        total = order.total

    if total < settings.min_order_total:
        return CheckoutResult(
            CheckoutOutcome.BELOW_MINIMUM,
            session,
            order=order,
            message=minimum_total(settings.min_order_total, currency),
        )

    created_order_id = None
    try:
        if lines is not None:
            order = await context.run_db(
                order_service.create_pending_order, session.session_token, lines
            )
            created_order_id = order.id
            session = await context.run_db(session_service.mutate_cart, session, [])

        reference = payment_reference_for(order.id)
        logger.debug("Using Paystack key %s", settings.masked_secret_key)
        initialization = await call_with_timeout(
            context.gateway.initialize(
                order.total * MINOR_UNITS_PER_UNIT,
                reference,
                settings.payment_callback_url,
                email=settings.payment_customer_email,
            ),
            settings.payment_timeout_seconds,
            "initialize",
        )
        order = await context.run_db(order_service.assign_payment_reference, order.id, reference)
    except (GatewayError, PersistenceError, NotFoundError, ValidationError) as exc:
        logger.warning("Checkout failed for session %s: %s", session.session_token, exc)
        await _compensate(context, created_order_id)
        return CheckoutResult(
            CheckoutOutcome.PAYMENT_FAILED,
            session,
            message=payment_error(getattr(exc, "provider_message", None)),
        )

    logger.info("Checkout started for order %s (reference %s)", order.id, order.payment_reference)
    return CheckoutResult(
        CheckoutOutcome.REDIRECT,
        session,
        order=order,
        authorization_url=initialization.authorization_url,
    )
