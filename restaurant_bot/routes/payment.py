"""
Payment Routes for Restaurant Bot
=================================

HTTP endpoints the payment provider and the customer's browser hit after
checkout.

Endpoints:
----------
- GET /payment/callback?reference=<ref>: Paystack sends the customer here
  after paying. The reference is verified with Paystack and applied to the
  order. Redirects to ``/receipt?reference=<ref>`` on success and to
  ``/?payment=error`` on any failure.
- GET /receipt?reference=<ref>: HTML receipt for a paid order (404 if there
  is no paid order with that reference).

Rate Limiting:
--------------
Both endpoints share RATE_LIMIT_PAYMENT per client IP.
"""

import logging
from urllib.parse import urlencode

from fastapi import APIRouter, Depends, HTTPException, Query, Request
from fastapi.responses import HTMLResponse, RedirectResponse
from slowapi import Limiter
from slowapi.util import get_remote_address

from ..config import RATE_LIMIT_ENABLED, RATE_LIMIT_PAYMENT
from ..context import AppContext, get_context
from ..db import session_scope
from ..errors import PersistenceError
from ..receipt import render_receipt
from ..services.order import get_paid_order_by_reference
from ..services.reconciliation import reconcile_payment


logger = logging.getLogger(__name__)

payment_router = APIRouter(tags=["Payments"])

limiter = Limiter(key_func=get_remote_address, enabled=RATE_LIMIT_ENABLED)

PAYMENT_ERROR_URL = "/?payment=error"


def get_rate_limit_payment() -> str:
    """Current payment endpoint rate limit (overridable in tests)."""
    return RATE_LIMIT_PAYMENT


@payment_router.get("/payment/callback")
@limiter.limit(get_rate_limit_payment)
async def payment_callback(
    request: Request,
    reference: str = Query(""),
    context: AppContext = Depends(get_context),
):
    result = await reconcile_payment(context, reference)

    if not result.ok:
        logger.info("Payment callback for %r failed: %s", reference, result.status.value)
        return RedirectResponse(url=PAYMENT_ERROR_URL, status_code=303)

    return RedirectResponse(
        url="/receipt?" + urlencode({"reference": reference}),
        status_code=303,
    )


@payment_router.get("/receipt", response_class=HTMLResponse)
@limiter.limit(get_rate_limit_payment)
def payment_receipt(
    request: Request,
    reference: str = Query(...),
    context: AppContext = Depends(get_context),
):
    try:
        with session_scope(context.session_factory) as db:
            order = get_paid_order_by_reference(db, reference)
    except PersistenceError:
        logger.exception("Receipt lookup failed for %s", reference)
        raise HTTPException(status_code=500, detail="Error generating receipt")

    if order is None:
        raise HTTPException(status_code=404, detail="Order not found")

    return HTMLResponse(render_receipt(order, context.settings.currency_symbol))
