"""Auto-scheduler error taxonomy."""

from __future__ import annotations
import uuid


class SchedulingError(Exception):
    """Base class for per-subscriber scheduling outcomes."""

    def __init__(self, message: str, user_id: uuid.UUID | None = None):
        super().__init__(message)
        self.user_id = user_id


class ValidationError(SchedulingError):
    """Stored preferences are malformed; the subscriber is skipped for this run."""


class QuotaExhausted(SchedulingError):
    """No pickups left at write time (lost a race with another writer)."""


class DuplicateSkip(SchedulingError):
    """An open order already covers this subscription's current cycle."""

    def __init__(self, message: str, user_id: uuid.UUID | None = None, order_id: uuid.UUID | None = None):
        super().__init__(message, user_id)
        self.order_id = order_id


class PersistenceError(SchedulingError):
    """Storage fault; nothing from the failed unit of work was committed."""


class NotificationError(Exception):
    """Publishing an order-created event failed. Never affects the order itself."""
