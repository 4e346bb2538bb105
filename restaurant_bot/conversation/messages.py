"""
Chat messages - single source of truth.

Every string the bot sends lives here. Handlers import from this module
instead of hardcoding text, and the formatting helpers build the multi-line
menu, cart, order and history listings.
"""

from typing import Optional, Sequence

from ..schemas.menu import MenuItemOut
from ..services.cart import OrderLine
from ..services.order import OrderRecord


class ChatMessages:
    """Standard bot messages."""

    WELCOME = "Welcome to Altschool RestaurantBot!"

    OPTIONS = (
        "\nPlease choose an option:\n"
        "1. Place new order\n"
        "99. Checkout order\n"
        "98. Order history\n"
        "97. Current order\n"
        "0. Cancel order"
    )

    # Validation
    INVALID_INPUT = "❌ Invalid input. Please use only numbers and commas."
    INVALID_SELECTION = "❌ Invalid item selection"

    # Browse / review / history / cancel
    SELECTION_PROMPT = "Enter item numbers separated by commas (e.g. 1,3):"
    EMPTY_MENU = "⚠️ The menu is empty right now. Please check back later."
    NO_CURRENT_ORDER = "🛒 No current order"
    NO_HISTORY = "📜 No order history found"
    ORDER_CANCELLED = "❌ Order cancelled successfully"

    # Checkout
    NOTHING_TO_PLACE = "🛒 No order to place"
    ITEMS_UNAVAILABLE = "⚠️ Some items are no longer available. Please create a new order."
    PAYMENT_FAILED = "⚠️ Payment processing failed. Please try again."

    # Errors
    MENU_ERROR = "⚠️ Error loading menu"
    SELECTION_ERROR = "⚠️ Error processing selection"
    GENERIC_ERROR = "⚠️ An error occurred. Please try again."


def format_price(amount: int, currency: str = "₦") -> str:
    return f"{currency}{amount:,}"


def menu_listing(items: Sequence[MenuItemOut], currency: str = "₦") -> str:
    entries = []
    for index, item in enumerate(items, start=1):
        entry = f"{index}. {item.name} - {format_price(item.price, currency)}"
        if item.description:
            entry += f"\n   {item.description}"
        entries.append(entry)
    return "📜 Menu:\n" + "\n\n".join(entries) + "\n\n" + ChatMessages.SELECTION_PROMPT


def items_added(count: int, total: int, currency: str = "₦") -> str:
    return (
        f"✅ Added {count} item(s) to your order!\n"
        f"Current order total: {format_price(total, currency)}"
    )


def _line_text(index: int, line: OrderLine, currency: str) -> str:
    text = f"{index}. {line.name} - {format_price(line.price, currency)}"
    if line.quantity > 1:
        text += f" x{line.quantity}"
    return text


def cart_summary(items: Sequence[MenuItemOut], total: int, currency: str = "₦") -> str:
    lines = "\n".join(
        f"{index}. {item.name} - {format_price(item.price, currency)}"
        for index, item in enumerate(items, start=1)
    )
    return f"Current Order:\n{lines}\nTotal: {format_price(total, currency)}"


def pending_order_summary(order: OrderRecord, currency: str = "₦") -> str:
    lines = "\n".join(
        _line_text(index, line, currency) for index, line in enumerate(order.items, start=1)
    )
    return f"Current Pending Order:\n{lines}\nTotal: {format_price(order.total, currency)}"


def order_history(orders: Sequence[OrderRecord], currency: str = "₦") -> str:
    entries = []
    for order in orders:
        created = order.created_at.strftime("%Y-%m-%d %H:%M") if order.created_at else "-"
        names = ", ".join(line.name for line in order.items)
        entries.append(
            f"Order #{order.id}\n"
            f"📅 {created}\n"
            f"🍔 Items: {names}\n"
            f"💵 Total: {format_price(order.total, currency)}\n"
            f"📦 Status: {order.status}"
        )
    return "Your Order History:\n" + "\n\n".join(entries)


def minimum_total(minimum: int, currency: str = "₦") -> str:
    return f"⚠️ Minimum order amount is {format_price(minimum, currency)}"


def payment_error(provider_message: Optional[str]) -> str:
    """User-facing checkout failure; only the provider's own message is exposed."""
    if provider_message:
        return f"Payment error: {provider_message}"
    return ChatMessages.PAYMENT_FAILED
