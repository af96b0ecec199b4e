"""Pydantic schemas for API request/response models and scheduler records."""

from __future__ import annotations
import uuid
from datetime import date, datetime
from enum import Enum
from pydantic import BaseModel, Field, field_validator


# ── Enums ──────────────────────────────────────────────────

class Weekday(str, Enum):
    MONDAY = "monday"
    TUESDAY = "tuesday"
    WEDNESDAY = "wednesday"
    THURSDAY = "thursday"
    FRIDAY = "friday"
    SATURDAY = "saturday"
    SUNDAY = "sunday"


class SubscriptionStatus(str, Enum):
    ACTIVE = "active"
    PAUSED = "paused"
    CANCELLED = "cancelled"
    PAST_DUE = "past_due"


class OrderStatus(str, Enum):
    PENDING = "pending"
    SCHEDULED = "scheduled"
    IN_PROGRESS = "in_progress"
    PICKED_UP = "picked_up"
    IN_PROCESS = "in_process"
    READY = "ready"
    OUT_FOR_DELIVERY = "out_for_delivery"
    DELIVERED = "delivered"
    FAILED = "failed"
    CANCELLED = "cancelled"


# ── Scheduler records ──────────────────────────────────────

class ServiceRequest(BaseModel):
    service_id: uuid.UUID
    quantity: int = Field(default=1, gt=0)


class ScheduleableUser(BaseModel):
    """Join of a user with its active subscription and preferences.

    Carries everything the order materializer needs, so no further lookups
    are made before the write transaction.
    """

    user_id: uuid.UUID
    preferences_id: uuid.UUID
    subscription_id: uuid.UUID
    default_pickup_address_id: uuid.UUID
    default_delivery_address_id: uuid.UUID
    preferred_pickup_time_slot: str = ""
    preferred_delivery_time_slot: str = ""
    preferred_pickup_day: str = ""
    default_services: list[ServiceRequest] = []
    lead_time_days: int = 0
    special_instructions: str = ""
    pickups_remaining: int = 0


class RunFailure(BaseModel):
    user_id: uuid.UUID
    error_type: str
    detail: str


class RunReport(BaseModel):
    run_id: str
    started_at: datetime
    finished_at: datetime | None = None
    attempted: int = 0
    created: int = 0
    skipped: int = 0
    failed: int = 0
    notifications_failed: int = 0
    created_order_ids: list[uuid.UUID] = []
    failures: list[RunFailure] = []


# ── Preferences ────────────────────────────────────────────

class PreferencesUpdate(BaseModel):
    default_pickup_address_id: uuid.UUID | None = None
    default_delivery_address_id: uuid.UUID | None = None
    preferred_pickup_time_slot: str | None = Field(default=None, max_length=50)
    preferred_delivery_time_slot: str | None = Field(default=None, max_length=50)
    preferred_pickup_day: str | None = None
    lead_time_days: int | None = Field(default=None, ge=0, le=30)
    default_services: list[ServiceRequest] | None = None
    special_instructions: str | None = None
    auto_schedule_enabled: bool | None = None

    @field_validator("preferred_pickup_day")
    @classmethod
    def _known_weekday(cls, value: str | None) -> str | None:
        # Stored data may still hold unknown names (they resolve to Monday),
        # but new writes are rejected.
        if value is None:
            return value
        normalized = value.strip().lower()
        if normalized not in {d.value for d in Weekday}:
            raise ValueError(f"Unknown weekday: {value!r}")
        return normalized


class PreferencesResponse(BaseModel):
    id: uuid.UUID
    user_id: uuid.UUID
    default_pickup_address_id: uuid.UUID | None
    default_delivery_address_id: uuid.UUID | None
    preferred_pickup_time_slot: str
    preferred_delivery_time_slot: str
    preferred_pickup_day: str
    lead_time_days: int
    default_services: list | dict | None
    special_instructions: str
    auto_schedule_enabled: bool
    pickups_remaining: int
    next_pickup_date: date | None = None

    class Config:
        from_attributes = True
