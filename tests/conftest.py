"""Shared fixtures: in-memory SQLite database and subscriber factories."""

import sys
import os
sys.path.insert(0, os.path.join(os.path.dirname(__file__), "..", "api"))
os.environ.setdefault("DATABASE_URL", "sqlite+aiosqlite:///:memory:")

import uuid
from datetime import date, datetime
from types import SimpleNamespace
from zoneinfo import ZoneInfo

import pytest
import pytest_asyncio
from pydantic import ValidationError as PydanticValidationError
from sqlalchemy.ext.asyncio import async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool

from db.database import Base
from models import (
    User, Address, SubscriptionPlan, Subscription, SubscriptionPreferences, Service,
)
from schemas import ScheduleableUser, ServiceRequest

# Wednesday
WEDNESDAY = datetime(2026, 10, 14, 9, 0, tzinfo=ZoneInfo("UTC"))


@pytest.fixture
def now():
    return WEDNESDAY


@pytest_asyncio.fixture
async def session_factory():
    engine = create_async_engine(
        "sqlite+aiosqlite://",
        poolclass=StaticPool,
        connect_args={"check_same_thread": False},
    )
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield async_sessionmaker(engine, expire_on_commit=False)
    await engine.dispose()


@pytest_asyncio.fixture
async def catalog(session_factory):
    """Service catalog: {name: id}."""
    services = [
        Service(name="standard_bag", base_price_cents=3000),
        Service(name="rush_bag", base_price_cents=1000),
        Service(name="bedding", base_price_cents=2500, is_active=False),
    ]
    async with session_factory() as db:
        db.add_all(services)
        await db.commit()
    return {s.name: s.id for s in services}


@pytest_asyncio.fixture
async def plan(session_factory):
    plan = SubscriptionPlan(name="Family Fresh", price_per_month_cents=13000, pickups_per_month=6)
    async with session_factory() as db:
        db.add(plan)
        await db.commit()
    return plan


@pytest.fixture
def make_subscriber(session_factory, catalog, plan):
    """Seed a user + subscription + preferences; returns ids and the ScheduleableUser."""

    async def _make(
        *,
        preferred_pickup_day="friday",
        lead_time_days=2,
        pickups_remaining=4,
        subscription_status="active",
        user_status="active",
        auto_schedule_enabled=True,
        default_services=None,
        with_addresses=True,
    ):
        if default_services is None:
            default_services = [
                {"service_id": str(catalog["standard_bag"]), "quantity": 1},
                {"service_id": str(catalog["rush_bag"]), "quantity": 1},
            ]
        user = User(
            email=f"{uuid.uuid4().hex[:8]}@example.com",
            first_name="Test",
            last_name="User",
            status=user_status,
        )
        async with session_factory() as db:
            db.add(user)
            await db.flush()

            pickup = Address(user_id=user.id, street_address="1 Main St", city="Austin", state="TX", zip_code="78701")
            delivery = Address(user_id=user.id, street_address="9 Side St", city="Austin", state="TX", zip_code="78702")
            db.add_all([pickup, delivery])
            await db.flush()

            subscription = Subscription(
                user_id=user.id,
                plan_id=plan.id,
                status=subscription_status,
                current_period_start=date(2026, 10, 1),
                current_period_end=date(2026, 11, 1),
            )
            prefs = SubscriptionPreferences(
                user_id=user.id,
                default_pickup_address_id=pickup.id if with_addresses else None,
                default_delivery_address_id=delivery.id if with_addresses else None,
                preferred_pickup_time_slot="8:00 AM - 12:00 PM",
                preferred_delivery_time_slot="4:00 PM - 8:00 PM",
                preferred_pickup_day=preferred_pickup_day,
                lead_time_days=lead_time_days,
                default_services=default_services,
                special_instructions="Leave at side door",
                auto_schedule_enabled=auto_schedule_enabled,
                pickups_remaining=pickups_remaining,
            )
            db.add_all([subscription, prefs])
            await db.commit()

        # Only subscribers the eligibility query would accept get a snapshot
        scheduleable = None
        if isinstance(default_services, list) and with_addresses:
            try:
                services = [ServiceRequest(**s) for s in default_services]
            except PydanticValidationError:
                services = None
            if services is not None:
                scheduleable = ScheduleableUser(
                    user_id=user.id,
                    preferences_id=prefs.id,
                    subscription_id=subscription.id,
                    default_pickup_address_id=pickup.id,
                    default_delivery_address_id=delivery.id,
                    preferred_pickup_time_slot=prefs.preferred_pickup_time_slot,
                    preferred_delivery_time_slot=prefs.preferred_delivery_time_slot,
                    preferred_pickup_day=preferred_pickup_day,
                    default_services=services,
                    lead_time_days=lead_time_days,
                    special_instructions=prefs.special_instructions,
                    pickups_remaining=pickups_remaining,
                )

        return SimpleNamespace(
            user_id=user.id,
            subscription_id=subscription.id,
            preferences_id=prefs.id,
            pickup_address_id=pickup.id,
            delivery_address_id=delivery.id,
            scheduleable=scheduleable,
        )

    return _make
