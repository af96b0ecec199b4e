"""
Eligibility Query — Which subscribers are due for an auto-scheduled pickup.

A subscriber is eligible when:
  - the user is active
  - the subscription is active
  - auto-scheduling is enabled in their preferences
  - pickups remain in the current billing period
  - both default addresses are set
"""

from __future__ import annotations
import logging
import uuid
from dataclasses import dataclass, field

from pydantic import TypeAdapter, ValidationError as PydanticValidationError
from sqlalchemy import select, and_
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from models.user import User
from models.subscription import Subscription, SubscriptionPreferences
from schemas import ScheduleableUser, ServiceRequest, SubscriptionStatus
from services.errors import PersistenceError, ValidationError

logger = logging.getLogger(__name__)

_services_adapter = TypeAdapter(list[ServiceRequest])


@dataclass
class RejectedSubscriber:
    user_id: uuid.UUID
    error: ValidationError


@dataclass
class EligibilityResult:
    users: list[ScheduleableUser] = field(default_factory=list)
    rejected: list[RejectedSubscriber] = field(default_factory=list)


def parse_default_services(raw) -> list[ServiceRequest]:
    """Parse stored default service selections. Missing data means no items."""
    if raw is None:
        return []
    return _services_adapter.validate_python(raw)


def scheduleable_users_query():
    return (
        select(
            SubscriptionPreferences.id.label("preferences_id"),
            SubscriptionPreferences.user_id,
            SubscriptionPreferences.default_pickup_address_id,
            SubscriptionPreferences.default_delivery_address_id,
            SubscriptionPreferences.preferred_pickup_time_slot,
            SubscriptionPreferences.preferred_delivery_time_slot,
            SubscriptionPreferences.preferred_pickup_day,
            SubscriptionPreferences.default_services,
            SubscriptionPreferences.lead_time_days,
            SubscriptionPreferences.special_instructions,
            SubscriptionPreferences.pickups_remaining,
            Subscription.id.label("subscription_id"),
        )
        .join(Subscription, and_(
            Subscription.user_id == SubscriptionPreferences.user_id,
            Subscription.status == SubscriptionStatus.ACTIVE.value,
        ))
        .join(User, User.id == SubscriptionPreferences.user_id)
        .where(
            User.status == "active",
            SubscriptionPreferences.auto_schedule_enabled.is_(True),
            SubscriptionPreferences.pickups_remaining > 0,
            SubscriptionPreferences.default_pickup_address_id.is_not(None),
            SubscriptionPreferences.default_delivery_address_id.is_not(None),
        )
        .order_by(SubscriptionPreferences.user_id, Subscription.created_at.desc())
    )


class EligibilityQuery:
    """Read-only snapshot of the subscribers due for scheduling."""

    def __init__(
        self,
        session_factory: async_sessionmaker[AsyncSession],
        log: logging.Logger | logging.LoggerAdapter | None = None,
    ):
        self.session_factory = session_factory
        self.log = log or logger

    async def fetch(self) -> EligibilityResult:
        """Eligible subscribers plus those rejected for malformed preferences."""
        try:
            async with self.session_factory() as db:
                rows = (await db.execute(scheduleable_users_query())).mappings().all()
        except SQLAlchemyError as e:
            raise PersistenceError(f"Failed to query scheduleable users: {e}") from e

        result = EligibilityResult()
        seen: set[uuid.UUID] = set()
        for row in rows:
            # One candidate per user, newest active subscription wins
            if row["user_id"] in seen:
                continue
            seen.add(row["user_id"])

            try:
                services = parse_default_services(row["default_services"])
            except PydanticValidationError as e:
                self.log.warning(
                    "Excluding user %s: malformed default services (%s)",
                    row["user_id"], e.errors(include_url=False),
                )
                result.rejected.append(RejectedSubscriber(
                    user_id=row["user_id"],
                    error=ValidationError(f"Malformed default services: {e}", row["user_id"]),
                ))
                continue

            result.users.append(ScheduleableUser(
                user_id=row["user_id"],
                preferences_id=row["preferences_id"],
                subscription_id=row["subscription_id"],
                default_pickup_address_id=row["default_pickup_address_id"],
                default_delivery_address_id=row["default_delivery_address_id"],
                preferred_pickup_time_slot=row["preferred_pickup_time_slot"] or "",
                preferred_delivery_time_slot=row["preferred_delivery_time_slot"] or "",
                preferred_pickup_day=row["preferred_pickup_day"] or "",
                default_services=services,
                lead_time_days=row["lead_time_days"] or 0,
                special_instructions=row["special_instructions"] or "",
                pickups_remaining=row["pickups_remaining"],
            ))

        self.log.info(
            "Found %d scheduleable users (%d rejected)", len(result.users), len(result.rejected),
        )
        return result

    async def get_scheduleable_users(self) -> list[ScheduleableUser]:
        return (await self.fetch()).users
