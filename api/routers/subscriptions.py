"""Subscription auto-schedule preference endpoints."""

import uuid
from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy import select, func
from sqlalchemy.ext.asyncio import AsyncSession

from db.database import get_db
from models.user import User, Address
from models.service import Service
from models.subscription import Subscription, SubscriptionPlan, SubscriptionPreferences
from schemas import PreferencesResponse, PreferencesUpdate, SubscriptionStatus
from services.pickup_dates import next_pickup_date

router = APIRouter()

_CLEARABLE_FIELDS = {"default_pickup_address_id", "default_delivery_address_id"}


def _to_response(prefs: SubscriptionPreferences) -> PreferencesResponse:
    response = PreferencesResponse.model_validate(prefs)
    response.next_pickup_date = next_pickup_date(prefs.preferred_pickup_day, prefs.lead_time_days)
    return response


async def _require_user(db: AsyncSession, user_id: uuid.UUID) -> User:
    user = (await db.execute(select(User).where(User.id == user_id))).scalar_one_or_none()
    if not user:
        raise HTTPException(status_code=404, detail="User not found")
    return user


async def _check_address(db: AsyncSession, address_id: uuid.UUID, user_id: uuid.UUID, label: str):
    count = (await db.execute(
        select(func.count(Address.id)).where(Address.id == address_id, Address.user_id == user_id)
    )).scalar() or 0
    if count == 0:
        raise HTTPException(status_code=400, detail=f"Invalid {label} address")


async def _new_preferences(db: AsyncSession, user_id: uuid.UUID) -> SubscriptionPreferences:
    """Defaults for a first save: one standard bag, quota from the active plan."""
    plan_quota = (await db.execute(
        select(SubscriptionPlan.pickups_per_month)
        .join(Subscription, Subscription.plan_id == SubscriptionPlan.id)
        .where(Subscription.user_id == user_id, Subscription.status == SubscriptionStatus.ACTIVE.value)
        .order_by(Subscription.created_at.desc())
        .limit(1)
    )).scalar_one_or_none()

    standard_bag_id = (await db.execute(
        select(Service.id).where(Service.name == "standard_bag", Service.is_active.is_(True)).limit(1)
    )).scalar_one_or_none()

    return SubscriptionPreferences(
        user_id=user_id,
        preferred_pickup_time_slot="8:00 AM - 12:00 PM",
        preferred_delivery_time_slot="8:00 AM - 12:00 PM",
        preferred_pickup_day="monday",
        lead_time_days=1,
        default_services=(
            [{"service_id": str(standard_bag_id), "quantity": 1}] if standard_bag_id else []
        ),
        special_instructions="",
        auto_schedule_enabled=True,
        pickups_remaining=plan_quota or 0,
    )


@router.get("/{user_id}/preferences", response_model=PreferencesResponse)
async def get_preferences(user_id: uuid.UUID, db: AsyncSession = Depends(get_db)):
    """Get a subscriber's auto-schedule preferences."""
    prefs = (await db.execute(
        select(SubscriptionPreferences).where(SubscriptionPreferences.user_id == user_id)
    )).scalar_one_or_none()
    if not prefs:
        raise HTTPException(status_code=404, detail="Preferences not found")
    return _to_response(prefs)


@router.put("/{user_id}/preferences", response_model=PreferencesResponse)
async def save_preferences(
    user_id: uuid.UUID,
    data: PreferencesUpdate,
    db: AsyncSession = Depends(get_db),
):
    """Create or update preferences. pickups_remaining is not writable here."""
    await _require_user(db, user_id)

    if data.default_pickup_address_id:
        await _check_address(db, data.default_pickup_address_id, user_id, "pickup")
    if data.default_delivery_address_id:
        await _check_address(db, data.default_delivery_address_id, user_id, "delivery")

    if data.default_services is not None:
        requested = {s.service_id for s in data.default_services}
        known = set((await db.execute(
            select(Service.id).where(Service.id.in_(requested), Service.is_active.is_(True))
        )).scalars().all())
        missing = requested - known
        if missing:
            raise HTTPException(
                status_code=400,
                detail=f"Unknown services: {', '.join(sorted(str(m) for m in missing))}",
            )

    prefs = (await db.execute(
        select(SubscriptionPreferences).where(SubscriptionPreferences.user_id == user_id)
    )).scalar_one_or_none()
    if prefs is None:
        prefs = await _new_preferences(db, user_id)
        db.add(prefs)

    updates = data.model_dump(exclude_unset=True, exclude={"default_services"})
    for field, value in updates.items():
        # Only the address links may be cleared
        if value is None and field not in _CLEARABLE_FIELDS:
            continue
        setattr(prefs, field, value)
    if data.default_services is not None:
        prefs.default_services = [s.model_dump(mode="json") for s in data.default_services]

    await db.commit()
    await db.refresh(prefs)
    return _to_response(prefs)
