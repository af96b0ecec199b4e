"""Admin endpoints for the subscription auto-scheduler."""

from fastapi import APIRouter, Depends, HTTPException, Request

from schemas import RunReport
from services.auto_scheduler import AutoScheduler
from services.eligibility import EligibilityQuery
from services.errors import PersistenceError
from services.pickup_dates import next_pickup_date

router = APIRouter()


def get_auto_scheduler(request: Request) -> AutoScheduler:
    return request.app.state.auto_scheduler


@router.post("/scheduler/run", response_model=RunReport)
async def run_scheduler(scheduler: AutoScheduler = Depends(get_auto_scheduler)):
    """Manually trigger one scheduling run. Safe to call while a periodic run is in flight."""
    try:
        return await scheduler.run_scheduling_cycle()
    except PersistenceError as e:
        raise HTTPException(status_code=503, detail=f"Scheduling run aborted: {e}")


@router.get("/scheduler/eligible")
async def preview_eligible(scheduler: AutoScheduler = Depends(get_auto_scheduler)):
    """Who the next run would consider, with the pickup date each would get today."""
    try:
        result = await EligibilityQuery(scheduler.session_factory).fetch()
    except PersistenceError as e:
        raise HTTPException(status_code=503, detail=str(e))

    return {
        "eligible": [
            {
                **user.model_dump(mode="json"),
                "next_pickup_date": next_pickup_date(
                    user.preferred_pickup_day, user.lead_time_days,
                ).isoformat(),
            }
            for user in result.users
        ],
        "rejected": [
            {"user_id": str(r.user_id), "error": str(r.error)}
            for r in result.rejected
        ],
    }
