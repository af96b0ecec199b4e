"""
Laundry Subscriptions — FastAPI Backend
Recurring pickup auto-scheduler and its admin surface
"""

import asyncio
import logging
from contextlib import asynccontextmanager, suppress

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from config import settings
from db.database import engine, SessionLocal, create_all
from routers import admin, subscriptions
from services.auto_scheduler import AutoScheduler, scheduler_loop
from services.notifications import build_notifier

logging.basicConfig(
    level=settings.LOG_LEVEL,
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Startup and shutdown events."""
    # Startup
    logger.info("🚀 Laundry Subscriptions API starting...")
    if settings.DB_CREATE_ALL:
        await create_all()

    app.state.auto_scheduler = AutoScheduler(SessionLocal, build_notifier())
    scheduler_task = None
    if settings.SCHEDULER_ENABLED:
        scheduler_task = asyncio.create_task(scheduler_loop(app.state.auto_scheduler))

    yield

    # Shutdown
    if scheduler_task:
        scheduler_task.cancel()
        with suppress(asyncio.CancelledError):
            await scheduler_task
    await engine.dispose()
    logger.info("🛑 Laundry Subscriptions API shut down.")


app = FastAPI(
    title="Laundry Subscriptions API",
    description="Recurring pickup scheduling for subscription laundry service",
    version="1.0.0",
    lifespan=lifespan,
)

# ── CORS ───────────────────────────────────────────────────
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],  # Restrict in production
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# ── Routers ────────────────────────────────────────────────
app.include_router(subscriptions.router, prefix="/api/subscriptions", tags=["Subscriptions"])
app.include_router(admin.router, prefix="/api/admin", tags=["Admin"])


@app.get("/health")
async def health_check():
    return {"status": "healthy", "service": "Laundry Subscriptions API"}


@app.get("/health/db")
async def health_db():
    """Verify DB connection."""
    from sqlalchemy import text
    try:
        async with engine.connect() as conn:
            row = (await conn.execute(text("SELECT COUNT(*) FROM subscription_preferences"))).first()
        return {"status": "ok", "preferences_count": row[0] if row else 0}
    except Exception as e:
        return {"status": "error", "detail": str(e)}
