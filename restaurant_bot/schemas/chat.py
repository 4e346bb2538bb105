"""
Chat Socket Schemas
===================

Every WebSocket frame exchanged with the chat widget is a JSON object with an
``event`` name and a ``data`` payload:

    {"event": "user-message", "data": "1,3"}
    {"event": "bot-message", "data": "Our Menu: ..."}

Inbound events:
---------------
- user-message: the text the customer typed
- clear-session: a session token the widget was told to clear

Outbound events:
----------------
- bot-message: text to display verbatim (may contain line breaks)
- redirect: payment authorization URL to navigate to
- clear-session: session token that has just been paid for
"""

from typing import Literal

from pydantic import BaseModel

USER_MESSAGE = "user-message"
CLEAR_SESSION = "clear-session"
BOT_MESSAGE = "bot-message"
REDIRECT = "redirect"


class InboundEvent(BaseModel):
    event: Literal["user-message", "clear-session"]
    data: str = ""


class OutboundEvent(BaseModel):
    event: Literal["bot-message", "redirect", "clear-session"]
    data: str
