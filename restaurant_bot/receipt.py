"""
Receipt page rendering.

Produces the HTML shown after a successful payment. Only paid orders are
rendered; every value inserted into the page is escaped.
"""

from html import escape

from .conversation.messages import format_price
from .services.order import OrderRecord

RESTAURANT_NAME = "Altschool Restaurant"

_PAGE = """<!DOCTYPE html>
<html>
<head>
  <meta charset="utf-8">
  <title>Payment Receipt - {restaurant}</title>
</head>
<body>
  <div class="receipt-container">
    <div class="receipt-header">
      <h1 class="restaurant-name">🍴 {restaurant}</h1>
      <div class="success-badge">✅ Payment Successful</div>
    </div>
    <div class="items-list">
{rows}
    </div>
    <div class="total-section">
      <span class="total-label">Total Amount:</span>
      <span class="total-amount">{total}</span>
    </div>
    <div class="meta-section">
      <p>Payment Reference: {reference}</p>
      <p>Session ID: {session_token}</p>
      <p>Payment Date: {paid_at}</p>
    </div>
    <a href="/" class="back-link">Start New Order →</a>
  </div>
</body>
</html>
"""

_ROW = """      <div class="item-row">
        <span class="item-name">{name}</span>
        <span class="item-price">{price}</span>
      </div>"""


def render_receipt(order: OrderRecord, currency: str = "₦") -> str:
    rows = []
    for line in order.items:
        name = line.name if line.quantity == 1 else f"{line.name} x{line.quantity}"
        rows.append(_ROW.format(
            name=escape(name),
            price=escape(format_price(line.line_total, currency)),
        ))

    paid_at = order.updated_at.strftime("%B %d, %Y %I:%M %p") if order.updated_at else ""

    return _PAGE.format(
        restaurant=escape(RESTAURANT_NAME),
        rows="\n".join(rows),
        total=escape(format_price(order.total, currency)),
        reference=escape(order.payment_reference or ""),
        session_token=escape(order.session_token),
        paid_at=escape(paid_at),
    )
