"""
Session Management Service for Restaurant Bot
=============================================

This module owns the conversation state of each browser: the session token
orders are filed under, the cart, and whether the bot is waiting for an item
selection.

Storage:
--------
State lives in the ``chat_sessions`` table, one row per client key. The
client key is a random value carried in the browser's signed session cookie,
so a reconnect (or a second tab) finds the same row.

Every turn reloads the row instead of caching it in memory. Two tabs sharing
a cookie may interleave turns; the last write wins for the cart, which never
affects order invariants because orders are only created from a snapshot.

Consistency:
------------
Cart and conversation state are always written together in one commit
(``apply_session_update``). If the commit fails the transaction is rolled
back, ``PersistenceError`` is raised and the caller's ``ChatSessionState``
value is left untouched, so in-memory and stored state never disagree.

Conversation State:
-------------------
``ConversationState`` is a tagged state instead of a loose flag:
- IDLE: free-form numbers are ignored
- AWAITING_SELECTION: the menu was just shown; "1,3" selects items

Usage:
------
    session = get_or_create_session(db, client_key)
    session = apply_session_update(db, session, cart=[1, 3], awaiting_selection=False)
    session = regenerate_session(db, session)
"""

import logging
import uuid
from dataclasses import dataclass, field, replace
from enum import Enum
from typing import List, Optional, Sequence

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session
from sqlalchemy.orm.attributes import flag_modified

from ..errors import PersistenceError
from ..models import ChatSession, Order


logger = logging.getLogger(__name__)


class ConversationState(str, Enum):
    IDLE = "idle"
    AWAITING_SELECTION = "awaiting_selection"


@dataclass(frozen=True)
class ChatSessionState:
    """Snapshot of one chat session as stored after the last commit."""
    client_key: str
    session_token: str
    cart: List[int] = field(default_factory=list)
    state: ConversationState = ConversationState.IDLE

    @property
    def awaiting_selection(self) -> bool:
        return self.state is ConversationState.AWAITING_SELECTION

    @property
    def has_cart(self) -> bool:
        return bool(self.cart)


_UNSET = object()


def _to_state(row: ChatSession) -> ChatSessionState:
    try:
        state = ConversationState(row.conversation_state)
    except ValueError:
        state = ConversationState.IDLE
    return ChatSessionState(
        client_key=row.client_key,
        session_token=row.session_token,
        cart=[int(item_id) for item_id in (row.cart or [])],
        state=state,
    )


def _new_session_token(db: Session) -> str:
    """Generate a token not used by any session or order."""
    while True:
        token = str(uuid.uuid4())
        in_sessions = db.query(ChatSession.id).filter(ChatSession.session_token == token).first()
        in_orders = db.query(Order.id).filter(Order.session_token == token).first()
        if not in_sessions and not in_orders:
            return token


def _load_row(db: Session, client_key: str) -> Optional[ChatSession]:
    return db.query(ChatSession).filter(ChatSession.client_key == client_key).first()


def get_or_create_session(db: Session, client_key: str) -> ChatSessionState:
    """
    Load the session for ``client_key``, creating an empty one if needed.

    Raises:
        PersistenceError: the session could not be read or created.
    """
    try:
        row = _load_row(db, client_key)
        if row is None:
            row = ChatSession(
                client_key=client_key,
                session_token=_new_session_token(db),
                cart=[],
                conversation_state=ConversationState.IDLE.value,
            )
            db.add(row)
            db.commit()
            logger.info("Created chat session %s", row.session_token)
        return _to_state(row)
    except SQLAlchemyError as exc:
        db.rollback()
        raise PersistenceError("Failed to load chat session") from exc


def apply_session_update(
    db: Session,
    session: ChatSessionState,
    cart: Sequence[int] = _UNSET,
    awaiting_selection: Optional[bool] = None,
) -> ChatSessionState:
    """
    Persist a cart and/or conversation state change in a single commit.

    Args:
        db: Database session
        session: State the change is based on
        cart: New cart contents (omit to keep the current cart)
        awaiting_selection: New selection flag (None keeps the current state)

    Returns:
        The new ChatSessionState; ``session`` itself is never modified.

    Raises:
        PersistenceError: the write failed and was rolled back.
    """
    changes = {}
    if cart is not _UNSET:
        changes["cart"] = [int(item_id) for item_id in cart]
    if awaiting_selection is not None:
        changes["state"] = (
            ConversationState.AWAITING_SELECTION if awaiting_selection else ConversationState.IDLE
        )
    updated = replace(session, **changes)

    try:
        row = _load_row(db, session.client_key)
        if row is None:
            row = ChatSession(client_key=session.client_key, session_token=session.session_token)
            db.add(row)
        row.session_token = updated.session_token
        row.cart = list(updated.cart)
        row.conversation_state = updated.state.value

        # Force SQLAlchemy to detect changes to the mutable JSON column
        flag_modified(row, "cart")
        db.commit()
    except SQLAlchemyError as exc:
        db.rollback()
        raise PersistenceError("Failed to save chat session") from exc

    return updated


def mutate_cart(db: Session, session: ChatSessionState, items: Sequence[int]) -> ChatSessionState:
    """Replace the cart, leaving the conversation state as it is."""
    return apply_session_update(db, session, cart=items)


def set_awaiting_selection(db: Session, session: ChatSessionState, awaiting: bool) -> ChatSessionState:
    """Enter or leave the awaiting-selection state, leaving the cart as it is."""
    return apply_session_update(db, session, awaiting_selection=awaiting)


def regenerate_session(db: Session, session: ChatSessionState) -> ChatSessionState:
    """
    Give the session a fresh token with an empty cart in the idle state.

    The new token has never been used by any session or order, so orders
    filed under the old token are no longer reachable from this session.
    """
    try:
        token = _new_session_token(db)
    except SQLAlchemyError as exc:
        db.rollback()
        raise PersistenceError("Failed to generate session token") from exc

    regenerated = replace(session, session_token=token)
    updated = apply_session_update(db, regenerated, cart=[], awaiting_selection=False)
    logger.info("Regenerated session %s -> %s", session.session_token, token)
    return updated
