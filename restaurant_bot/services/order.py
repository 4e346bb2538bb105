"""
Order Store Service for Restaurant Bot
======================================

Durable order records and their status lifecycle. Two independent actors use
this module: the conversation path (create, review, cancel, checkout) and
the payment reconciliation path (mark paid).

Order Lifecycle:
----------------
    pending --(payment verified)--> paid
    pending --(cancel / checkout failure)--> removed

``cancelled`` is a valid stored status, but the conversation path removes
pending orders instead of flagging them, so history only ever lists orders
that were paid.

Concurrency:
------------
Status changes are never read-modify-write. Every change is a bulk UPDATE or
DELETE whose WHERE clause carries ``status = 'pending'`` (order items are
removed only for orders that DELETE actually took), so a payment callback that
races a cancel either pays the order (and the cancel skips it) or finds it
gone (and reports not found). An order can never end up both paid and
removed.

Invariants:
-----------
- At most one pending order per session token. ``create_pending_order``
  removes any older pending order of the session in the same transaction;
  the partial unique index on orders backs this up at the database level.
- ``total`` is computed once from the item snapshot and never recomputed.
- ``payment_reference`` is unique and, once set, never changes. It is
  derived from the order id, and order ids are never reused (AUTOINCREMENT
  on SQLite, a sequence elsewhere), so a removed order's reference is never
  handed to a later order.

All functions return ``OrderRecord`` values rather than ORM objects.
"""

import logging
from dataclasses import dataclass, field
from datetime import datetime
from typing import List, Optional, Sequence

from sqlalchemy import func
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session, selectinload

from ..errors import NotFoundError, PersistenceError, ValidationError
from ..models import (
    ORDER_STATUS_PAID,
    ORDER_STATUS_PENDING,
    Order,
    OrderItem,
)
from .cart import OrderLine, snapshot_total


logger = logging.getLogger(__name__)

MIN_STORED_TOTAL = 100


@dataclass(frozen=True)
class OrderRecord:
    id: int
    session_token: str
    total: int
    status: str
    items: List[OrderLine] = field(default_factory=list)
    payment_reference: Optional[str] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    @property
    def is_pending(self) -> bool:
        return self.status == ORDER_STATUS_PENDING

    @property
    def is_paid(self) -> bool:
        return self.status == ORDER_STATUS_PAID


@dataclass(frozen=True)
class PaymentTransition:
    """Result of applying a verified payment to an order."""
    order: OrderRecord
    transitioned: bool  # False when the order was already paid


def payment_reference_for(order_id: int) -> str:
    """Deterministic provider reference for an order."""
    return f"order_{order_id}"


def _to_record(order: Order) -> OrderRecord:
    return OrderRecord(
        id=order.id,
        session_token=order.session_token,
        total=order.total,
        status=order.status,
        items=[
            OrderLine(
                menu_item_id=item.menu_item_id,
                name=item.name,
                price=item.price,
                quantity=item.quantity,
            )
            for item in order.items
        ],
        payment_reference=order.payment_reference,
        created_at=order.created_at,
        updated_at=order.updated_at,
    )


def _delete_pending(db: Session, *criteria) -> List[int]:
    """
    Delete the orders matching ``criteria`` that are still pending, with
    their items. Does not commit.

    The DELETE itself carries ``status = 'pending'``: an order paid after the
    candidate ids were read survives, items included.

    Returns:
        Ids of the orders actually removed.
    """
    candidates = [
        row.id
        for row in db.query(Order.id).filter(*criteria, Order.status == ORDER_STATUS_PENDING)
    ]
    if not candidates:
        return []

    (
        db.query(Order)
        .filter(Order.id.in_(candidates), Order.status == ORDER_STATUS_PENDING)
        .delete(synchronize_session=False)
    )
    survivors = {row.id for row in db.query(Order.id).filter(Order.id.in_(candidates))}
    removed = [order_id for order_id in candidates if order_id not in survivors]
    if removed:
        (
            db.query(OrderItem)
            .filter(OrderItem.order_id.in_(removed))
            .delete(synchronize_session=False)
        )
    return removed


def _get_order(db: Session, *criteria) -> Optional[Order]:
    return (
        db.query(Order)
        .options(selectinload(Order.items))
        .filter(*criteria)
        .populate_existing()
        .first()
    )


def create_pending_order(
    db: Session,
    session_token: str,
    lines: Sequence[OrderLine],
) -> OrderRecord:
    """
    Create a pending order from a cart snapshot.

    Any older pending order of the same session is removed in the same
    transaction, so the session never has two pending orders.

    Raises:
        ValidationError: no lines, or the total is below the stored minimum.
        PersistenceError: the write failed (including a concurrent create
            for the same session tripping the unique index).
    """
    if not lines:
        raise ValidationError("Cannot create an order without items")

    total = snapshot_total(lines)
    if total < MIN_STORED_TOTAL:
        raise ValidationError(f"Order total {total} is below {MIN_STORED_TOTAL}")

    try:
        for old_id in _delete_pending(db, Order.session_token == session_token):
            logger.info("Removing superseded pending order %s for session %s", old_id, session_token)

        order = Order(
            session_token=session_token,
            total=total,
            status=ORDER_STATUS_PENDING,
        )
        for position, line in enumerate(lines):
            order.items.append(OrderItem(
                position=position,
                menu_item_id=line.menu_item_id,
                name=line.name,
                price=line.price,
                quantity=line.quantity,
            ))
        db.add(order)
        db.commit()
        db.refresh(order)
    except SQLAlchemyError as exc:
        db.rollback()
        raise PersistenceError("Failed to create order") from exc

    logger.info("Created pending order %s (total %s) for session %s", order.id, total, session_token)
    return _to_record(order)


def find_pending_order(db: Session, session_token: str) -> Optional[OrderRecord]:
    try:
        order = _get_order(db, Order.session_token == session_token, Order.status == ORDER_STATUS_PENDING)
    except SQLAlchemyError as exc:
        raise PersistenceError("Failed to load pending order") from exc
    return _to_record(order) if order else None


def list_order_history(db: Session, session_token: str) -> List[OrderRecord]:
    """Return every non-pending order of the session, newest first."""
    try:
        orders = (
            db.query(Order)
            .options(selectinload(Order.items))
            .filter(Order.session_token == session_token, Order.status != ORDER_STATUS_PENDING)
            .order_by(Order.created_at.desc(), Order.id.desc())
            .all()
        )
    except SQLAlchemyError as exc:
        raise PersistenceError("Failed to load order history") from exc
    return [_to_record(order) for order in orders]


def delete_pending_orders(db: Session, session_token: str) -> int:
    """
    Remove every pending order of the session.

    Safe to call when there is nothing to remove.

    Returns:
        Number of orders removed.
    """
    try:
        removed = _delete_pending(db, Order.session_token == session_token)
        db.commit()
    except SQLAlchemyError as exc:
        db.rollback()
        raise PersistenceError("Failed to cancel pending orders") from exc

    if removed:
        logger.info("Removed pending order(s) %s for session %s", removed, session_token)
    return len(removed)


def delete_pending_order(db: Session, order_id: Optional[int]) -> bool:
    """
    Remove one order if it is still pending.

    A None ``order_id`` (the order was never created) is a no-op, as is an
    order that has already been paid or removed.

    Returns:
        True if an order was removed.
    """
    if order_id is None:
        return False

    try:
        removed = _delete_pending(db, Order.id == order_id)
        db.commit()
    except SQLAlchemyError as exc:
        db.rollback()
        raise PersistenceError("Failed to remove pending order") from exc

    if not removed:
        return False

    logger.info("Removed pending order %s", order_id)
    return True


def assign_payment_reference(db: Session, order_id: int, reference: str) -> OrderRecord:
    """
    Record the provider reference on a pending order.

    Assigning the reference an order already has is a no-op.

    Raises:
        NotFoundError: the order no longer exists or is not pending.
        ValidationError: the order already carries a different reference.
        PersistenceError: the write failed (e.g. reference used elsewhere).
    """
    try:
        updated = (
            db.query(Order)
            .filter(
                Order.id == order_id,
                Order.status == ORDER_STATUS_PENDING,
                Order.payment_reference.is_(None),
            )
            .update(
                {Order.payment_reference: reference, Order.updated_at: func.now()},
                synchronize_session=False,
            )
        )
        db.commit()
        order = _get_order(db, Order.id == order_id)
    except IntegrityError as exc:
        db.rollback()
        raise PersistenceError(f"Payment reference {reference} is already in use") from exc
    except SQLAlchemyError as exc:
        db.rollback()
        raise PersistenceError("Failed to save payment reference") from exc

    if order is None or order.status != ORDER_STATUS_PENDING:
        raise NotFoundError(f"Order {order_id} is not pending")
    if not updated and order.payment_reference != reference:
        raise ValidationError(f"Order {order_id} already has payment reference {order.payment_reference}")

    return _to_record(order)


def mark_order_paid(db: Session, reference: str) -> PaymentTransition:
    """
    Move the order with ``reference`` from pending to paid.

    The update is conditional on the order still being pending, so duplicate
    callbacks are harmless: the second one reports ``transitioned=False``.

    Raises:
        NotFoundError: no order carries the reference, or it was cancelled.
        PersistenceError: the write failed.
    """
    try:
        updated = (
            db.query(Order)
            .filter(Order.payment_reference == reference, Order.status == ORDER_STATUS_PENDING)
            .update(
                {Order.status: ORDER_STATUS_PAID, Order.updated_at: func.now()},
                synchronize_session=False,
            )
        )
        db.commit()
        order = _get_order(db, Order.payment_reference == reference)
    except SQLAlchemyError as exc:
        db.rollback()
        raise PersistenceError("Failed to mark order paid") from exc

    if order is None:
        raise NotFoundError(f"No order with payment reference {reference}")
    if order.status != ORDER_STATUS_PAID:
        raise NotFoundError(f"Order {order.id} is {order.status}, not payable")

    if updated:
        logger.info("Order %s paid (reference %s)", order.id, reference)
    else:
        logger.info("Order %s already paid; ignoring duplicate callback", order.id)
    return PaymentTransition(order=_to_record(order), transitioned=bool(updated))


def get_paid_order_by_reference(db: Session, reference: str) -> Optional[OrderRecord]:
    try:
        order = _get_order(db, Order.payment_reference == reference, Order.status == ORDER_STATUS_PAID)
    except SQLAlchemyError as exc:
        raise PersistenceError("Failed to load order") from exc
    return _to_record(order) if order else None
