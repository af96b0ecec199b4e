"""Order, OrderItem and OrderEvent ORM models."""

import uuid
from datetime import date, datetime
from sqlalchemy import (
    String, Integer, Boolean, Date, DateTime, ForeignKey, Text, JSON,
    Enum as PgEnum,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship
from db.database import Base

ORDER_STATUSES = (
    "pending", "scheduled", "in_progress", "picked_up", "in_process",
    "ready", "out_for_delivery", "delivered", "failed", "cancelled",
)


class Order(Base):
    __tablename__ = "orders"

    id: Mapped[uuid.UUID] = mapped_column(primary_key=True, default=uuid.uuid4)
    order_number: Mapped[str] = mapped_column(String(20), unique=True, nullable=False)
    user_id: Mapped[uuid.UUID] = mapped_column(ForeignKey("users.id", ondelete="CASCADE"), nullable=False)
    # NULL for manually placed orders
    subscription_id: Mapped[uuid.UUID | None] = mapped_column(ForeignKey("subscriptions.id"), index=True)

    # Pickup / delivery
    pickup_address_id: Mapped[uuid.UUID | None] = mapped_column(ForeignKey("addresses.id"))
    delivery_address_id: Mapped[uuid.UUID | None] = mapped_column(ForeignKey("addresses.id"))
    pickup_date: Mapped[date | None] = mapped_column(Date, index=True)
    delivery_date: Mapped[date | None] = mapped_column(Date)
    pickup_time_slot: Mapped[str | None] = mapped_column(String(50))
    delivery_time_slot: Mapped[str | None] = mapped_column(String(50))
    special_instructions: Mapped[str | None] = mapped_column(Text)

    # Pricing (cents)
    subtotal_cents: Mapped[int] = mapped_column(Integer, default=0)
    tax_cents: Mapped[int] = mapped_column(Integer, default=0)
    total_cents: Mapped[int] = mapped_column(Integer, default=0)

    status: Mapped[str] = mapped_column(PgEnum(*ORDER_STATUSES, name="order_status"), default="pending")
    is_auto_scheduled: Mapped[bool] = mapped_column(Boolean, default=False)

    # Timestamps
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=datetime.utcnow)
    updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=datetime.utcnow, onupdate=datetime.utcnow)

    # Relationships
    user = relationship("User", back_populates="orders")
    items = relationship("OrderItem", back_populates="order", lazy="selectin", cascade="all, delete-orphan")
    events = relationship("OrderEvent", back_populates="order", lazy="selectin", order_by="OrderEvent.created_at")


class OrderItem(Base):
    __tablename__ = "order_items"

    id: Mapped[uuid.UUID] = mapped_column(primary_key=True, default=uuid.uuid4)
    order_id: Mapped[uuid.UUID] = mapped_column(ForeignKey("orders.id", ondelete="CASCADE"), nullable=False)
    service_id: Mapped[uuid.UUID] = mapped_column(ForeignKey("services.id"), nullable=False)
    quantity: Mapped[int] = mapped_column(Integer, nullable=False)
    price_cents: Mapped[int] = mapped_column(Integer, nullable=False)
    notes: Mapped[str | None] = mapped_column(Text)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=datetime.utcnow)

    order = relationship("Order", back_populates="items")


class OrderEvent(Base):
    __tablename__ = "order_events"

    id: Mapped[int] = mapped_column(primary_key=True, autoincrement=True)
    order_id: Mapped[uuid.UUID] = mapped_column(ForeignKey("orders.id", ondelete="CASCADE"), nullable=False)
    from_status: Mapped[str | None] = mapped_column(PgEnum(*ORDER_STATUSES, name="order_status"))
    to_status: Mapped[str] = mapped_column(PgEnum(*ORDER_STATUSES, name="order_status"), nullable=False)
    actor_type: Mapped[str] = mapped_column(String(20), nullable=False)  # USER, DRIVER, ADMIN, SYSTEM
    actor_id: Mapped[uuid.UUID | None] = mapped_column()
    metadata_json: Mapped[dict | None] = mapped_column("metadata", JSON, default=dict)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=datetime.utcnow)

    # Relationships
    order = relationship("Order", back_populates="events")
