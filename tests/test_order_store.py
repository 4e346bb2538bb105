"""
Tests for the order store and its status lifecycle.
"""
import pytest
from sqlalchemy import event
from sqlalchemy.exc import IntegrityError

from restaurant_bot.errors import NotFoundError, PersistenceError, ValidationError
from restaurant_bot.models import Order, OrderItem
from restaurant_bot.services.cart import OrderLine
from restaurant_bot.services.order import (
    assign_payment_reference,
    create_pending_order,
    delete_pending_order,
    delete_pending_orders,
    find_pending_order,
    get_paid_order_by_reference,
    list_order_history,
    mark_order_paid,
    payment_reference_for,
)

JOLLOF = OrderLine(menu_item_id=1, name="Jollof Rice", price=1500)
SUYA = OrderLine(menu_item_id=3, name="Chicken Suya", price=1200)


def pending_count(db, token):
    return db.query(Order).filter_by(session_token=token, status="pending").count()


class TestCreatePendingOrder:

    def test_total_is_computed_from_snapshot(self, db_session):
        order = create_pending_order(db_session, "tok-1", [JOLLOF, SUYA])

        assert order.total == 2700
        assert order.status == "pending"
        assert order.is_pending
        assert [line.name for line in order.items] == ["Jollof Rice", "Chicken Suya"]
        assert order.payment_reference is None
        assert order.created_at is not None

    def test_quantity_counts_toward_total(self, db_session):
        order = create_pending_order(
            db_session, "tok-q", [OrderLine(menu_item_id=1, name="Jollof Rice", price=1500, quantity=2)]
        )
        assert order.total == 3000
        assert order.items[0].quantity == 2

    def test_empty_snapshot_rejected(self, db_session):
        with pytest.raises(ValidationError):
            create_pending_order(db_session, "tok-empty", [])

    def test_total_below_minimum_rejected(self, db_session):
        with pytest.raises(ValidationError):
            create_pending_order(db_session, "tok-small", [OrderLine(menu_item_id=9, name="Gum", price=50)])

    def test_new_order_replaces_older_pending_order(self, db_session):
        first = create_pending_order(db_session, "tok-2", [JOLLOF])
        second = create_pending_order(db_session, "tok-2", [SUYA])

        assert pending_count(db_session, "tok-2") == 1
        assert find_pending_order(db_session, "tok-2").id == second.id
        assert db_session.query(Order).filter_by(id=first.id).first() is None

    def test_other_sessions_are_untouched(self, db_session):
        create_pending_order(db_session, "tok-a", [JOLLOF])
        create_pending_order(db_session, "tok-b", [SUYA])

        assert pending_count(db_session, "tok-a") == 1
        assert pending_count(db_session, "tok-b") == 1

    def test_database_rejects_second_pending_order(self, db_session):
        db_session.add(Order(session_token="tok-raw", total=1500, status="pending"))
        db_session.commit()
        db_session.add(Order(session_token="tok-raw", total=1200, status="pending"))
        with pytest.raises(IntegrityError):
            db_session.commit()
        db_session.rollback()

    def test_paid_orders_do_not_count_as_pending(self, db_session):
        db_session.add(Order(session_token="tok-mixed", total=1500, status="paid"))
        db_session.commit()

        create_pending_order(db_session, "tok-mixed", [JOLLOF])
        assert db_session.query(Order).filter_by(session_token="tok-mixed").count() == 2


class TestDeletePending:

    def test_cancel_removes_all_pending(self, db_session):
        create_pending_order(db_session, "tok-c", [JOLLOF])

        assert delete_pending_orders(db_session, "tok-c") == 1
        assert pending_count(db_session, "tok-c") == 0

    def test_cancel_with_nothing_pending(self, db_session):
        assert delete_pending_orders(db_session, "tok-none") == 0

    def test_cancel_keeps_paid_orders(self, db_session):
        order = create_pending_order(db_session, "tok-paid", [JOLLOF])
        assign_payment_reference(db_session, order.id, payment_reference_for(order.id))
        mark_order_paid(db_session, payment_reference_for(order.id))

        assert delete_pending_orders(db_session, "tok-paid") == 0
        assert len(list_order_history(db_session, "tok-paid")) == 1

    def test_delete_by_id_none_is_noop(self, db_session):
        assert delete_pending_order(db_session, None) is False

    def test_delete_by_id(self, db_session):
        order = create_pending_order(db_session, "tok-d", [JOLLOF])
        assert delete_pending_order(db_session, order.id) is True
        assert delete_pending_order(db_session, order.id) is False

    def test_delete_by_id_skips_paid_order(self, db_session):
        order = create_pending_order(db_session, "tok-dp", [JOLLOF])
        ref = payment_reference_for(order.id)
        assign_payment_reference(db_session, order.id, ref)
        mark_order_paid(db_session, ref)

        assert delete_pending_order(db_session, order.id) is False
        assert get_paid_order_by_reference(db_session, ref) is not None


class TestPaymentReference:

    def test_reference_format(self):
        assert payment_reference_for(12) == "order_12"

    def test_assign_reference(self, db_session):
        order = create_pending_order(db_session, "tok-r", [JOLLOF])
        updated = assign_payment_reference(db_session, order.id, "order_%d" % order.id)
        assert updated.payment_reference == "order_%d" % order.id

    def test_assigning_same_reference_again_is_noop(self, db_session):
        order = create_pending_order(db_session, "tok-r2", [JOLLOF])
        ref = payment_reference_for(order.id)
        assign_payment_reference(db_session, order.id, ref)
        assert assign_payment_reference(db_session, order.id, ref).payment_reference == ref

    def test_reference_never_changes(self, db_session):
        order = create_pending_order(db_session, "tok-r3", [JOLLOF])
        assign_payment_reference(db_session, order.id, "ref-one")
        with pytest.raises(ValidationError):
            assign_payment_reference(db_session, order.id, "ref-two")

    def test_reference_is_unique(self, db_session):
        first = create_pending_order(db_session, "tok-u1", [JOLLOF])
        second = create_pending_order(db_session, "tok-u2", [SUYA])
        assign_payment_reference(db_session, first.id, "shared-ref")
        with pytest.raises(PersistenceError):
            assign_payment_reference(db_session, second.id, "shared-ref")

    def test_assign_to_missing_order(self, db_session):
        with pytest.raises(NotFoundError):
            assign_payment_reference(db_session, 9999, "order_9999")


class TestMarkOrderPaid:

    def _pending_with_reference(self, db_session, token):
        order = create_pending_order(db_session, token, [JOLLOF, SUYA])
        ref = payment_reference_for(order.id)
        assign_payment_reference(db_session, order.id, ref)
        return ref

    def test_transition_happens_once(self, db_session):
        ref = self._pending_with_reference(db_session, "tok-p")

        first = mark_order_paid(db_session, ref)
        second = mark_order_paid(db_session, ref)

        assert first.transitioned is True
        assert first.order.is_paid
        assert second.transitioned is False
        assert second.order.is_paid
        assert second.order.id == first.order.id

    def test_unknown_reference(self, db_session):
        with pytest.raises(NotFoundError):
            mark_order_paid(db_session, "order_424242")

    def test_cancelled_order_is_not_payable(self, db_session):
        ref = self._pending_with_reference(db_session, "tok-x")
        order = db_session.query(Order).filter_by(payment_reference=ref).first()
        order.status = "cancelled"
        db_session.commit()

        with pytest.raises(NotFoundError):
            mark_order_paid(db_session, ref)

    def test_removed_order_is_not_payable(self, db_session):
        ref = self._pending_with_reference(db_session, "tok-rm")
        delete_pending_orders(db_session, "tok-rm")

        with pytest.raises(NotFoundError):
            mark_order_paid(db_session, ref)

    def test_paid_order_lookup(self, db_session):
        ref = self._pending_with_reference(db_session, "tok-look")
        assert get_paid_order_by_reference(db_session, ref) is None

        mark_order_paid(db_session, ref)
        paid = get_paid_order_by_reference(db_session, ref)
        assert paid.total == 2700
        assert len(paid.items) == 2


class TestOrderHistory:

    def test_history_excludes_pending_and_is_newest_first(self, db_session):
        older = create_pending_order(db_session, "tok-h", [JOLLOF])
        assign_payment_reference(db_session, older.id, payment_reference_for(older.id))
        mark_order_paid(db_session, payment_reference_for(older.id))

        newer = create_pending_order(db_session, "tok-h", [SUYA])
        assign_payment_reference(db_session, newer.id, payment_reference_for(newer.id))
        mark_order_paid(db_session, payment_reference_for(newer.id))

        create_pending_order(db_session, "tok-h", [JOLLOF, SUYA])

        history = list_order_history(db_session, "tok-h")
        assert [order.id for order in history] == [newer.id, older.id]
        assert all(order.status == "paid" for order in history)

    def test_empty_history(self, db_session):
        assert list_order_history(db_session, "tok-nobody") == []


class TestIdsAreNeverReused:

    def test_reference_of_cancelled_order_is_not_handed_out_again(self, db_session):
        first = create_pending_order(db_session, "tok-old", [JOLLOF])
        first_ref = payment_reference_for(first.id)
        assign_payment_reference(db_session, first.id, first_ref)
        delete_pending_orders(db_session, "tok-old")

        second = create_pending_order(db_session, "tok-new", [JOLLOF, SUYA])
        second_ref = payment_reference_for(second.id)
        assign_payment_reference(db_session, second.id, second_ref)

        assert second.id > first.id
        assert second_ref != first_ref

        # A late success callback for the abandoned transaction pays nothing
        with pytest.raises(NotFoundError):
            mark_order_paid(db_session, first_ref)
        assert find_pending_order(db_session, "tok-new").is_pending

    def test_superseded_and_compensated_ids_are_not_reused(self, db_session):
        first = create_pending_order(db_session, "tok-s", [JOLLOF])
        second = create_pending_order(db_session, "tok-s", [SUYA])
        delete_pending_order(db_session, second.id)
        third = create_pending_order(db_session, "tok-s", [JOLLOF])

        assert first.id < second.id < third.id


class TestPaymentDuringRemoval:
    """
    A payment callback commits pending -> paid from its own session while the
    conversation is about to remove the same order.
    """

    def _pay_before_first_delete(self, db_session, payer_session, reference):
        state = {"paid": None}

        @event.listens_for(db_session, "do_orm_execute")
        def pay_first(orm_execute_state):
            if orm_execute_state.is_delete and state["paid"] is None:
                state["paid"] = mark_order_paid(payer_session, reference)

        return state

    def _pending_with_reference(self, db_session, token):
        order = create_pending_order(db_session, token, [JOLLOF, SUYA])
        ref = payment_reference_for(order.id)
        assign_payment_reference(db_session, order.id, ref)
        return order, ref

    def _assert_paid_and_intact(self, session_factory, reference):
        db = session_factory()
        try:
            paid = get_paid_order_by_reference(db, reference)
            assert paid is not None
            assert [line.name for line in paid.items] == ["Jollof Rice", "Chicken Suya"]
        finally:
            db.close()

    def test_cancel_keeps_order_paid_meanwhile(self, session_factory):
        db_session = session_factory()
        payer = session_factory()
        try:
            _, ref = self._pending_with_reference(db_session, "tok-race")
            state = self._pay_before_first_delete(db_session, payer, ref)

            assert delete_pending_orders(db_session, "tok-race") == 0
            assert state["paid"].transitioned is True
        finally:
            db_session.close()
            payer.close()

        self._assert_paid_and_intact(session_factory, ref)

    def test_compensation_keeps_order_paid_meanwhile(self, session_factory):
        db_session = session_factory()
        payer = session_factory()
        try:
            order, ref = self._pending_with_reference(db_session, "tok-comp")
            state = self._pay_before_first_delete(db_session, payer, ref)

            assert delete_pending_order(db_session, order.id) is False
            assert state["paid"].transitioned is True
        finally:
            db_session.close()
            payer.close()

        self._assert_paid_and_intact(session_factory, ref)

    def test_new_order_keeps_older_order_paid_meanwhile(self, session_factory):
        db_session = session_factory()
        payer = session_factory()
        try:
            _, ref = self._pending_with_reference(db_session, "tok-sup")
            self._pay_before_first_delete(db_session, payer, ref)

            newer = create_pending_order(db_session, "tok-sup", [SUYA])
            assert newer.is_pending
        finally:
            db_session.close()
            payer.close()

        self._assert_paid_and_intact(session_factory, ref)

    def test_removal_takes_the_items_with_it(self, db_session):
        order = create_pending_order(db_session, "tok-items", [JOLLOF, SUYA])
        delete_pending_orders(db_session, "tok-items")

        assert db_session.query(OrderItem).filter_by(order_id=order.id).count() == 0
