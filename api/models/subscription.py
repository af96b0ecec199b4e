"""Subscription ORM models — plans, subscriptions and auto-schedule preferences."""

import uuid
from datetime import date, datetime
from sqlalchemy import String, Text, Integer, Boolean, Date, DateTime, ForeignKey, JSON, Enum as PgEnum
from sqlalchemy.orm import Mapped, mapped_column, relationship
from db.database import Base


class SubscriptionPlan(Base):
    __tablename__ = "subscription_plans"

    id: Mapped[uuid.UUID] = mapped_column(primary_key=True, default=uuid.uuid4)
    name: Mapped[str] = mapped_column(String(100), unique=True, nullable=False)
    description: Mapped[str | None] = mapped_column(Text)
    price_per_month_cents: Mapped[int] = mapped_column(Integer, nullable=False)
    pickups_per_month: Mapped[int] = mapped_column(Integer, nullable=False)
    pounds_included: Mapped[int] = mapped_column(Integer, default=0)
    price_per_extra_pound_cents: Mapped[int] = mapped_column(Integer, default=0)
    is_active: Mapped[bool] = mapped_column(Boolean, default=True)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=datetime.utcnow)


class Subscription(Base):
    __tablename__ = "subscriptions"

    id: Mapped[uuid.UUID] = mapped_column(primary_key=True, default=uuid.uuid4)
    user_id: Mapped[uuid.UUID] = mapped_column(ForeignKey("users.id", ondelete="CASCADE"), nullable=False)
    plan_id: Mapped[uuid.UUID] = mapped_column(ForeignKey("subscription_plans.id"), nullable=False)
    status: Mapped[str] = mapped_column(
        PgEnum("active", "paused", "cancelled", "past_due", name="subscription_status"),
        default="active",
    )
    current_period_start: Mapped[date] = mapped_column(Date, nullable=False)
    current_period_end: Mapped[date] = mapped_column(Date, nullable=False)
    stripe_subscription_id: Mapped[str | None] = mapped_column(String(255))
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=datetime.utcnow)
    updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=datetime.utcnow, onupdate=datetime.utcnow)

    # Relationships
    user = relationship("User", back_populates="subscriptions")
    plan = relationship("SubscriptionPlan", lazy="selectin")


class SubscriptionPreferences(Base):
    __tablename__ = "subscription_preferences"

    id: Mapped[uuid.UUID] = mapped_column(primary_key=True, default=uuid.uuid4)
    user_id: Mapped[uuid.UUID] = mapped_column(
        ForeignKey("users.id", ondelete="CASCADE"), unique=True, nullable=False,
    )
    default_pickup_address_id: Mapped[uuid.UUID | None] = mapped_column(
        ForeignKey("addresses.id", ondelete="SET NULL"),
    )
    default_delivery_address_id: Mapped[uuid.UUID | None] = mapped_column(
        ForeignKey("addresses.id", ondelete="SET NULL"),
    )
    preferred_pickup_time_slot: Mapped[str] = mapped_column(String(50), default="8:00 AM - 12:00 PM")
    preferred_delivery_time_slot: Mapped[str] = mapped_column(String(50), default="8:00 AM - 12:00 PM")
    preferred_pickup_day: Mapped[str] = mapped_column(String(10), default="monday")
    lead_time_days: Mapped[int] = mapped_column(Integer, default=1)
    # [{"service_id": "...", "quantity": 1}, ...]
    default_services: Mapped[list | dict | None] = mapped_column(JSON, default=list)
    special_instructions: Mapped[str] = mapped_column(Text, default="")
    auto_schedule_enabled: Mapped[bool] = mapped_column(Boolean, default=True)
    # Decremented only by the order materializer; restored on period rollover.
    pickups_remaining: Mapped[int] = mapped_column(Integer, default=0)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=datetime.utcnow)
    updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=datetime.utcnow, onupdate=datetime.utcnow)
