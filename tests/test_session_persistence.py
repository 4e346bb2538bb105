"""
Tests for session persistence functionality.
"""
import pytest
from sqlalchemy.exc import OperationalError

from restaurant_bot.errors import PersistenceError
from restaurant_bot.models import ChatSession, Order
from restaurant_bot.services.session import (
    ConversationState,
    apply_session_update,
    get_or_create_session,
    mutate_cart,
    regenerate_session,
    set_awaiting_selection,
)


class TestSessionPersistence:
    """Test session save and load from database."""

    def test_get_or_create_session_creates_new_record(self, db_session):
        session = get_or_create_session(db_session, "client-123")

        db_record = db_session.query(ChatSession).filter_by(client_key="client-123").first()
        assert db_record is not None
        assert db_record.session_token == session.session_token
        assert db_record.cart == []
        assert db_record.conversation_state == "idle"
        assert session.state is ConversationState.IDLE
        assert not session.has_cart

    def test_get_or_create_session_returns_existing_record(self, db_session):
        first = get_or_create_session(db_session, "client-456")
        second = get_or_create_session(db_session, "client-456")

        assert first.session_token == second.session_token
        assert db_session.query(ChatSession).count() == 1

    def test_different_clients_get_different_tokens(self, db_session):
        a = get_or_create_session(db_session, "client-a")
        b = get_or_create_session(db_session, "client-b")
        assert a.session_token != b.session_token

    def test_cart_and_state_written_together(self, db_session):
        session = get_or_create_session(db_session, "client-789")

        updated = apply_session_update(db_session, session, cart=[1, 3], awaiting_selection=False)

        assert updated.cart == [1, 3]
        assert updated.state is ConversationState.IDLE
        reloaded = get_or_create_session(db_session, "client-789")
        assert reloaded.cart == [1, 3]

    def test_update_does_not_modify_original_value(self, db_session):
        session = get_or_create_session(db_session, "client-immutable")
        apply_session_update(db_session, session, cart=[2], awaiting_selection=True)

        assert session.cart == []
        assert session.state is ConversationState.IDLE

    def test_awaiting_selection_round_trip(self, db_session):
        session = get_or_create_session(db_session, "client-awaiting")

        session = set_awaiting_selection(db_session, session, True)
        assert get_or_create_session(db_session, "client-awaiting").awaiting_selection

        session = set_awaiting_selection(db_session, session, False)
        assert not get_or_create_session(db_session, "client-awaiting").awaiting_selection

    def test_mutate_cart_keeps_conversation_state(self, db_session):
        session = get_or_create_session(db_session, "client-mutate")
        session = set_awaiting_selection(db_session, session, True)

        session = mutate_cart(db_session, session, [4, 4])

        reloaded = get_or_create_session(db_session, "client-mutate")
        assert reloaded.cart == [4, 4]
        assert reloaded.awaiting_selection

    def test_unknown_stored_state_reads_as_idle(self, db_session):
        get_or_create_session(db_session, "client-weird")
        row = db_session.query(ChatSession).filter_by(client_key="client-weird").first()
        row.conversation_state = "reviewing"
        db_session.commit()

        assert get_or_create_session(db_session, "client-weird").state is ConversationState.IDLE


class TestRegenerateSession:

    def test_regenerate_resets_token_cart_and_state(self, db_session):
        session = get_or_create_session(db_session, "client-regen")
        session = apply_session_update(db_session, session, cart=[1, 2], awaiting_selection=True)

        regenerated = regenerate_session(db_session, session)

        assert regenerated.session_token != session.session_token
        assert regenerated.cart == []
        assert regenerated.state is ConversationState.IDLE
        assert regenerated.client_key == session.client_key
        assert get_or_create_session(db_session, "client-regen").session_token == regenerated.session_token

    def test_new_token_never_matches_existing_orders(self, db_session, monkeypatch):
        session = get_or_create_session(db_session, "client-collide")
        db_session.add(Order(session_token="taken-token", total=1500, status="paid"))
        db_session.commit()

        tokens = iter(["taken-token", "fresh-token"])
        monkeypatch.setattr(
            "restaurant_bot.services.session.uuid.uuid4",
            lambda: next(tokens),
        )

        regenerated = regenerate_session(db_session, session)
        assert regenerated.session_token == "fresh-token"


class TestSessionWriteFailures:

    def test_failed_commit_raises_and_leaves_state_untouched(self, db_session, monkeypatch):
        session = get_or_create_session(db_session, "client-fail")

        def broken_commit():
            raise OperationalError("UPDATE chat_sessions", {}, Exception("disk I/O error"))

        monkeypatch.setattr(db_session, "commit", broken_commit)

        with pytest.raises(PersistenceError):
            apply_session_update(db_session, session, cart=[1], awaiting_selection=False)

        assert session.cart == []
        monkeypatch.undo()
        assert get_or_create_session(db_session, "client-fail").cart == []
