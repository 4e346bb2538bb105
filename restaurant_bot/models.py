from sqlalchemy import (
    CheckConstraint,
    Column,
    DateTime,
    ForeignKey,
    Index,
    Integer,
    JSON,
    String,
    func,
    text,
)
from sqlalchemy.orm import declarative_base, relationship

Base = declarative_base()


ORDER_STATUS_PENDING = "pending"
ORDER_STATUS_PAID = "paid"
ORDER_STATUS_CANCELLED = "cancelled"
ORDER_STATUSES = (ORDER_STATUS_PENDING, ORDER_STATUS_PAID, ORDER_STATUS_CANCELLED)


class MenuItem(Base):
    __tablename__ = "menu_items"

    id = Column(Integer, primary_key=True, index=True)
    name = Column(String, nullable=False)
    price = Column(Integer, nullable=False)  # whole currency units
    description = Column(String(100), nullable=True)

    __table_args__ = (
        CheckConstraint("price >= 100 AND price <= 10000", name="ck_menu_items_price_range"),
    )


class Order(Base):
    __tablename__ = "orders"

    id = Column(Integer, primary_key=True, index=True)
    session_token = Column(String, nullable=False, index=True)
    total = Column(Integer, nullable=False)
    status = Column(String, nullable=False, default=ORDER_STATUS_PENDING, index=True)  # pending/paid/cancelled
    payment_reference = Column(String, nullable=True, unique=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False, index=True)
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now(), nullable=False)

    items = relationship(
        "OrderItem",
        back_populates="order",
        cascade="all, delete-orphan",
        order_by="OrderItem.position",
    )

    __table_args__ = (
        CheckConstraint("total >= 100", name="ck_orders_min_total"),
        CheckConstraint(
            "status IN ('pending', 'paid', 'cancelled')", name="ck_orders_status"
        ),
        # At most one pending order per session
        Index(
            "uix_orders_one_pending_per_session",
            "session_token",
            unique=True,
            sqlite_where=text("status = 'pending'"),
            postgresql_where=text("status = 'pending'"),
        ),
        Index("ix_orders_session_status_created_at", "session_token", "status", "created_at"),
        # Ids feed payment references, so a removed order's id must never come back
        {"sqlite_autoincrement": True},
    )


class OrderItem(Base):
    """Menu item snapshot taken when the order was created."""
    __tablename__ = "order_items"

    id = Column(Integer, primary_key=True, index=True)
    order_id = Column(Integer, ForeignKey("orders.id", ondelete="CASCADE"), nullable=False, index=True)
    position = Column(Integer, nullable=False, default=0)

    # No FK: the snapshot must survive the menu item being removed
    menu_item_id = Column(Integer, nullable=False)
    name = Column(String, nullable=False)
    price = Column(Integer, nullable=False)
    quantity = Column(Integer, nullable=False, default=1)

    order = relationship("Order", back_populates="items")


class ChatSession(Base):
    """
    Conversation state for one browser, keyed by the client key stored in
    its signed session cookie.
    """
    __tablename__ = "chat_sessions"

    id = Column(Integer, primary_key=True, index=True)
    client_key = Column(String, unique=True, nullable=False, index=True)

    # Token orders are filed under; replaced on reset and after payment
    session_token = Column(String, unique=True, nullable=False, index=True)

    # Ordered list of menu item ids
    cart = Column(JSON, nullable=False, default=list)

    # "idle" or "awaiting_selection"
    conversation_state = Column(String, nullable=False, default="idle")

    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now(), nullable=False)
