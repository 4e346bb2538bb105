"""
Payment Reconciliation Service
==============================

Applies a payment-provider callback to the order store exactly once.

Flow:
-----
1. Verify the reference with the gateway (never trust the callback itself).
2. Not successful: no order change, report failure.
3. Successful: conditionally move the matching order from pending to paid.
   - already paid (duplicate callback): no change, still a success
   - no matching order: not found
4. Only when this callback performed the transition, broadcast a
   clear-session signal for the order's session token.

Reconciliation never writes session state; the connection that owns the
session applies the clear itself.
"""

import logging
from dataclasses import dataclass
from enum import Enum
from typing import Optional

from ..context import AppContext
from ..errors import GatewayError, NotFoundError, PersistenceError
from ..payments import call_with_timeout
from . import order as order_service
from .order import OrderRecord


logger = logging.getLogger(__name__)


class ReconciliationStatus(str, Enum):
    PAID = "paid"
    ALREADY_PAID = "already_paid"
    NOT_SUCCESSFUL = "not_successful"
    NOT_FOUND = "not_found"
    ERROR = "error"


@dataclass(frozen=True)
class ReconciliationResult:
    status: ReconciliationStatus
    reference: str
    order: Optional[OrderRecord] = None
    broadcast_count: int = 0

    @property
    def ok(self) -> bool:
        return self.status in (ReconciliationStatus.PAID, ReconciliationStatus.ALREADY_PAID)


async def reconcile_payment(context: AppContext, reference: str) -> ReconciliationResult:
    if not reference:
        return ReconciliationResult(ReconciliationStatus.NOT_FOUND, reference or "")

    try:
        verification = await call_with_timeout(
            context.gateway.verify(reference),
            context.settings.payment_timeout_seconds,
            "verify",
        )
    except GatewayError as exc:
        logger.warning("Could not verify payment %s: %s", reference, exc)
        return ReconciliationResult(ReconciliationStatus.ERROR, reference)

    if not verification.is_successful:
        logger.info("Payment %s not successful (status %s)", reference, verification.status)
        return ReconciliationResult(ReconciliationStatus.NOT_SUCCESSFUL, reference)

    try:
        transition = await context.run_db(order_service.mark_order_paid, reference)
    except NotFoundError as exc:
        logger.warning("Verified payment %s has no payable order: %s", reference, exc)
        return ReconciliationResult(ReconciliationStatus.NOT_FOUND, reference)
    except PersistenceError:
        logger.exception("Failed to record payment %s", reference)
        return ReconciliationResult(ReconciliationStatus.ERROR, reference)

    if not transition.transitioned:
        return ReconciliationResult(ReconciliationStatus.ALREADY_PAID, reference, order=transition.order)

    broadcast_count = context.bus.broadcast_clear(transition.order.session_token)
    return ReconciliationResult(
        ReconciliationStatus.PAID,
        reference,
        order=transition.order,
        broadcast_count=broadcast_count,
    )
