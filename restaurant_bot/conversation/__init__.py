"""
Conversation package: command dispatch, checkout flow and bot messages.
"""

from .checkout import CheckoutOutcome, CheckoutResult, checkout
from .dispatcher import COMMAND_PATTERN, Command, ConversationTurn, validate_input
from .messages import ChatMessages

__all__ = [
    "CheckoutOutcome",
    "CheckoutResult",
    "checkout",
    "COMMAND_PATTERN",
    "Command",
    "ConversationTurn",
    "validate_input",
    "ChatMessages",
]
