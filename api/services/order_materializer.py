"""
Order Materializer — Turns one eligible subscriber into one pending order.

All writes for a subscriber happen in a single transaction:
  - duplicate guard (open order for this subscription on/after today)
  - quota re-check on the locked preferences row
  - order insert, one item per default service, SYSTEM status event
  - pickups_remaining decrement

Overlapping runs are safe: the preferences row is locked FOR UPDATE, and
callers in the same process are serialized per subscription.
"""

from __future__ import annotations
import asyncio
import logging
import random
import string
import uuid
import weakref
from dataclasses import dataclass
from datetime import date, datetime

from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from config import settings
from models.order import Order, OrderItem, OrderEvent
from models.service import Service, SUBSCRIPTION_COVERED_SERVICES
from models.subscription import SubscriptionPreferences
from schemas import OrderStatus, ScheduleableUser, ServiceRequest
from services.errors import DuplicateSkip, PersistenceError, QuotaExhausted, ValidationError
from services.pickup_dates import next_pickup_date, delivery_date_for, scheduler_now

logger = logging.getLogger(__name__)

# Orders in these states still cover the current cycle.
OPEN_ORDER_STATUSES = (OrderStatus.PENDING.value, OrderStatus.SCHEDULED.value)


@dataclass
class MaterializeOutcome:
    user_id: uuid.UUID
    created: bool
    order_id: uuid.UUID | None = None
    order_number: str | None = None
    pickup_date: date | None = None
    skip_reason: str | None = None


@dataclass
class PricedItem:
    service_id: uuid.UUID
    quantity: int
    price_cents: int


def _generate_order_number(now: datetime) -> str:
    """Generate human-readable order number: LND-YYMMDD-XXXX."""
    date_part = now.strftime("%y%m%d")
    rand_part = "".join(random.choices(string.ascii_uppercase + string.digits, k=4))
    return f"LND-{date_part}-{rand_part}"


def calculate_totals(items: list[PricedItem], tax_rate: float) -> tuple[int, int, int]:
    """Return (subtotal, tax, total) in cents."""
    subtotal = sum(i.price_cents * i.quantity for i in items)
    tax = round(subtotal * tax_rate)
    return subtotal, tax, subtotal + tax


class OrderMaterializer:
    def __init__(
        self,
        session_factory: async_sessionmaker[AsyncSession],
        tax_rate: float | None = None,
        delivery_offset_days: int | None = None,
    ):
        self.session_factory = session_factory
        self.tax_rate = settings.TAX_RATE if tax_rate is None else tax_rate
        self.delivery_offset_days = delivery_offset_days
        # Entries live only while some caller holds or waits on the lock
        self._locks: weakref.WeakValueDictionary[uuid.UUID, asyncio.Lock] = weakref.WeakValueDictionary()

    def _lock_for(self, subscription_id: uuid.UUID) -> asyncio.Lock:
        lock = self._locks.get(subscription_id)
        if lock is None:
            lock = asyncio.Lock()
            self._locks[subscription_id] = lock
        return lock

    async def create_order_for_user(
        self,
        user: ScheduleableUser,
        now: datetime | None = None,
        log: logging.Logger | logging.LoggerAdapter | None = None,
    ) -> MaterializeOutcome:
        """
        Create the next recurring order for a subscriber, at most once per cycle.

        Returns:
            MaterializeOutcome with created=True, or created=False for an
            idempotent skip (an open order already exists)

        Raises:
            QuotaExhausted: no pickups left at write time
            ValidationError: a default service is unknown or inactive
            PersistenceError: storage fault, transaction rolled back
        """
        log = log or logger
        now = now or scheduler_now()
        today = now.date()

        pickup_date = next_pickup_date(user.preferred_pickup_day, user.lead_time_days, now)
        delivery_date = delivery_date_for(pickup_date, self.delivery_offset_days)

        lock = self._lock_for(user.subscription_id)
        async with lock:
            try:
                async with self.session_factory() as db, db.begin():
                    prefs = (await db.execute(
                        select(SubscriptionPreferences)
                        .where(SubscriptionPreferences.id == user.preferences_id)
                        .with_for_update()
                    )).scalar_one_or_none()
                    if prefs is None:
                        raise ValidationError("Subscription preferences no longer exist", user.user_id)

                    existing_id = await self._find_open_order(db, user.subscription_id, today)
                    if existing_id is not None:
                        raise DuplicateSkip(
                            f"Open order {existing_id} already covers this cycle",
                            user.user_id, existing_id,
                        )

                    if prefs.pickups_remaining <= 0:
                        raise QuotaExhausted("No pickups remaining this period", user.user_id)

                    items = await self._price_items(db, user)
                    subtotal, tax, total = calculate_totals(items, self.tax_rate)

                    order = Order(
                        id=uuid.uuid4(),
                        order_number=_generate_order_number(now),
                        user_id=user.user_id,
                        subscription_id=user.subscription_id,
                        pickup_address_id=user.default_pickup_address_id,
                        delivery_address_id=user.default_delivery_address_id,
                        pickup_date=pickup_date,
                        delivery_date=delivery_date,
                        pickup_time_slot=user.preferred_pickup_time_slot,
                        delivery_time_slot=user.preferred_delivery_time_slot,
                        special_instructions=user.special_instructions,
                        subtotal_cents=subtotal,
                        tax_cents=tax,
                        total_cents=total,
                        status=OrderStatus.PENDING.value,
                        is_auto_scheduled=True,
                        items=[
                            OrderItem(
                                service_id=item.service_id,
                                quantity=item.quantity,
                                price_cents=item.price_cents,
                            )
                            for item in items
                        ],
                        events=[OrderEvent(
                            to_status=OrderStatus.PENDING.value,
                            actor_type="SYSTEM",
                            metadata_json={"source": "auto_scheduler", "pickup_date": pickup_date.isoformat()},
                        )],
                    )
                    db.add(order)

                    prefs.pickups_remaining -= 1
            except DuplicateSkip as skip:
                log.info("Order already exists for user %s: %s", user.user_id, skip)
                return MaterializeOutcome(
                    user_id=user.user_id,
                    created=False,
                    order_id=skip.order_id,
                    skip_reason="duplicate",
                )
            except SQLAlchemyError as e:
                raise PersistenceError(f"Error creating order: {e}", user.user_id) from e

        log.info(
            "Created auto-scheduled order %s for user %s (pickup: %s)",
            order.order_number, user.user_id, pickup_date.isoformat(),
        )
        return MaterializeOutcome(
            user_id=user.user_id,
            created=True,
            order_id=order.id,
            order_number=order.order_number,
            pickup_date=pickup_date,
        )

    async def _find_open_order(
        self, db: AsyncSession, subscription_id: uuid.UUID, today: date,
    ) -> uuid.UUID | None:
        return (await db.execute(
            select(Order.id)
            .where(
                Order.subscription_id == subscription_id,
                Order.status.in_(OPEN_ORDER_STATUSES),
                Order.pickup_date >= today,
            )
            .limit(1)
        )).scalar_one_or_none()

    async def _price_items(self, db: AsyncSession, user: ScheduleableUser) -> list[PricedItem]:
        requests: list[ServiceRequest] = user.default_services
        if not requests:
            return []

        catalog = {
            s.id: s for s in (await db.execute(
                select(Service).where(Service.id.in_([r.service_id for r in requests]))
            )).scalars().all()
        }

        items = []
        for req in requests:
            service = catalog.get(req.service_id)
            if service is None or not service.is_active:
                raise ValidationError(f"Unknown or inactive service {req.service_id}", user.user_id)
            price = 0 if service.name in SUBSCRIPTION_COVERED_SERVICES else service.base_price_cents
            items.append(PricedItem(service_id=service.id, quantity=req.quantity, price_cents=price))
        return items
