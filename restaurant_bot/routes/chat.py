"""
Chat Routes for Restaurant Bot
==============================

The customer-facing chat runs over a single WebSocket.

Endpoint:
---------
- WS /ws: chat connection (see schemas/chat.py for the frame format)

Connection Flow:
----------------
1. The browser loads ``/`` first, which puts a random client key in its
   signed session cookie.
2. On connect the client key selects (or creates) the chat session, the
   connection registers with the notification bus, and the bot sends the
   welcome message and the options menu.
3. Each ``user-message`` frame is one turn: the session is reloaded, a
   ``ConversationTurn`` handles the text, and the connection is rebound to
   the session's (possibly new) token.
4. A ``clear-session`` signal (from the payment callback or echoed back by
   the widget) regenerates the session when the token matches.

Turns of one connection never overlap: each takes the connection's lock,
which the clear-session handler takes as well.
"""

import logging
import uuid
from typing import Optional

from fastapi import APIRouter, WebSocket, WebSocketDisconnect
from pydantic import ValidationError as PydanticValidationError

from ..context import AppContext
from ..conversation.dispatcher import ConversationTurn
from ..conversation.messages import ChatMessages
from ..errors import PersistenceError
from ..notifications import LiveConnection
from ..schemas.chat import CLEAR_SESSION, InboundEvent
from ..services.session import ChatSessionState, get_or_create_session


logger = logging.getLogger(__name__)

chat_router = APIRouter(tags=["Chat"])

CLIENT_KEY = "client_key"


def client_key_for(websocket: WebSocket) -> str:
    """Client key from the signed session cookie, or a one-off key without one."""
    key = websocket.session.get(CLIENT_KEY) if "session" in websocket.scope else None
    if not key:
        key = uuid.uuid4().hex
        logger.debug("WebSocket without session cookie; using ephemeral client key")
    return key


class ChatConnection:
    """One open chat WebSocket."""

    def __init__(self, context: AppContext, websocket: WebSocket, client_key: str):
        self.context = context
        self.websocket = websocket
        self.client_key = client_key
        self.connection_id = str(uuid.uuid4())
        self.session: Optional[ChatSessionState] = None
        self.live: Optional[LiveConnection] = None

    async def _load_session(self) -> ChatSessionState:
        return await self.context.run_db(get_or_create_session, self.client_key)

    def _rebind(self, session: ChatSessionState) -> None:
        self.session = session
        self.context.bus.bind(self.connection_id, session.session_token)

    async def open(self) -> None:
        self.session = await self._load_session()
        self.live = self.context.bus.register(
            self.connection_id,
            self.websocket.send_json,
            self.session.session_token,
            on_clear=self.apply_clear,
        )
        logger.info("Chat connection %s opened for session %s", self.connection_id, self.session.session_token)
        await self.context.bus.send_message(self.connection_id, ChatMessages.WELCOME)
        await self.context.bus.send_message(self.connection_id, ChatMessages.OPTIONS)

    async def _report_failure(self) -> None:
        await self.context.bus.send_message(self.connection_id, ChatMessages.GENERIC_ERROR)
        await self.context.bus.send_message(self.connection_id, ChatMessages.OPTIONS)

    async def handle_message(self, text: str) -> None:
        async with self.live.lock:
            try:
                session = await self._load_session()
            except PersistenceError:
                logger.exception("Could not load session for connection %s", self.connection_id)
                await self._report_failure()
                return
            turn = ConversationTurn(self.context, session, self.connection_id)
            self._rebind(await turn.handle(text))

    async def apply_clear(self, session_token: str) -> None:
        async with self.live.lock:
            try:
                session = await self._load_session()
                turn = ConversationTurn(self.context, session, self.connection_id)
                self._rebind(await turn.handle_clear(session_token))
            except PersistenceError:
                logger.exception("Could not clear session %s", session_token)
                await self._report_failure()

    async def receive_loop(self) -> None:
        while True:
            raw = await self.websocket.receive_text()
            try:
                event = InboundEvent.model_validate_json(raw)
            except PydanticValidationError:
                logger.debug("Malformed frame on %s: %r", self.connection_id, raw[:200])
                await self.context.bus.send_message(self.connection_id, ChatMessages.INVALID_INPUT)
                await self.context.bus.send_message(self.connection_id, ChatMessages.OPTIONS)
                continue

            if event.event == CLEAR_SESSION:
                await self.apply_clear(event.data)
            else:
                await self.handle_message(event.data)

    def close(self) -> None:
        self.context.bus.unregister(self.connection_id)
        logger.info("Chat connection %s closed", self.connection_id)


@chat_router.websocket("/ws")
async def chat_socket(websocket: WebSocket):
    context: AppContext = websocket.app.state.context
    await websocket.accept()

    connection = ChatConnection(context, websocket, client_key_for(websocket))
    try:
        await connection.open()
        await connection.receive_loop()
    except WebSocketDisconnect:
        logger.debug("Client disconnected from %s", connection.connection_id)
    except PersistenceError:
        logger.exception("Could not open chat session")
        await websocket.close(code=1011)
    finally:
        connection.close()
