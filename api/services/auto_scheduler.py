"""
Auto Scheduler — Periodic sweep that books recurring pickups for subscribers.

One run:
  1. Snapshot the eligible subscribers (EligibilityQuery)
  2. Materialize one order per subscriber, in parallel up to MAX_CONCURRENCY
  3. Publish an order-created event per new order (time-bounded, log-only on failure)
  4. Return a RunReport; a single subscriber's failure never aborts the run

Only a failure to read the eligible set aborts a run (PersistenceError), so the
trigger can retry on its next tick.
"""

from __future__ import annotations
import asyncio
import logging
import uuid
from datetime import datetime
from zoneinfo import ZoneInfo

from croniter import croniter
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from config import settings
from schemas import RunFailure, RunReport, ScheduleableUser
from services.eligibility import EligibilityQuery
from services.errors import (
    NotificationError, PersistenceError, QuotaExhausted, SchedulingError, ValidationError,
)
from services.notifications import LogOnlyNotifier, OrderCreatedNotifier
from services.order_materializer import MaterializeOutcome, OrderMaterializer

logger = logging.getLogger(__name__)


class RunLoggerAdapter(logging.LoggerAdapter):
    """Prefixes every record with the run it belongs to."""

    def process(self, msg, kwargs):
        return f"[run {self.extra['run_id']}] {msg}", kwargs


class AutoScheduler:
    def __init__(
        self,
        session_factory: async_sessionmaker[AsyncSession],
        notifier: OrderCreatedNotifier | None = None,
        materializer: OrderMaterializer | None = None,
        max_concurrency: int | None = None,
        notify_timeout: float | None = None,
    ):
        self.session_factory = session_factory
        self.notifier = notifier or LogOnlyNotifier()
        self.materializer = materializer or OrderMaterializer(session_factory)
        self.max_concurrency = max(max_concurrency or settings.SCHEDULER_MAX_CONCURRENCY, 1)
        self.notify_timeout = notify_timeout or settings.NOTIFY_TIMEOUT_SECONDS

    async def run_scheduling_cycle(self, now: datetime | None = None) -> RunReport:
        """
        Run one full scheduling sweep.

        Args:
            now: Reference time for pickup-date math; defaults to the scheduler clock

        Returns:
            RunReport with attempted/created/skipped/failed counts

        Raises:
            PersistenceError: the eligible set could not be read
        """
        report = RunReport(run_id=uuid.uuid4().hex[:12], started_at=datetime.utcnow())
        log = RunLoggerAdapter(logger, {"run_id": report.run_id})
        log.info("Processing auto-scheduled orders...")

        eligible = await EligibilityQuery(self.session_factory, log=log).fetch()

        for rejected in eligible.rejected:
            report.attempted += 1
            self._record_failure(report, rejected.user_id, rejected.error)

        semaphore = asyncio.Semaphore(self.max_concurrency)

        async def process(user: ScheduleableUser) -> None:
            async with semaphore:
                await self._process_user(user, now, log, report)

        await asyncio.gather(*(process(user) for user in eligible.users))

        report.finished_at = datetime.utcnow()
        log.info(
            "Finished processing auto-scheduled orders: attempted=%d created=%d skipped=%d failed=%d",
            report.attempted, report.created, report.skipped, report.failed,
        )
        return report

    async def _process_user(
        self,
        user: ScheduleableUser,
        now: datetime | None,
        log: logging.LoggerAdapter,
        report: RunReport,
    ) -> None:
        report.attempted += 1
        try:
            outcome = await self.materializer.create_order_for_user(user, now=now, log=log)
        except QuotaExhausted as e:
            log.info("User %s has no pickups remaining this period: %s", user.user_id, e)
            report.skipped += 1
            return
        except (ValidationError, PersistenceError) as e:
            log.error("Error creating order for user %s: %s", user.user_id, e)
            self._record_failure(report, user.user_id, e)
            return
        except Exception as e:
            log.exception("Unexpected error creating order for user %s", user.user_id)
            self._record_failure(report, user.user_id, e)
            return

        if not outcome.created:
            report.skipped += 1
            return

        report.created += 1
        report.created_order_ids.append(outcome.order_id)
        await self._notify(outcome, log, report)

    async def _notify(
        self,
        outcome: MaterializeOutcome,
        log: logging.LoggerAdapter,
        report: RunReport,
    ) -> None:
        """Publish order-created; the order stays committed whatever happens here."""
        try:
            await asyncio.wait_for(
                self.notifier.publish_order_created(outcome.user_id, outcome.order_id, outcome.pickup_date),
                timeout=self.notify_timeout,
            )
        except asyncio.TimeoutError:
            report.notifications_failed += 1
            log.warning(
                "Notification timed out after %.1fs: user=%s, order=%s",
                self.notify_timeout, outcome.user_id, outcome.order_id,
            )
        except NotificationError as e:
            report.notifications_failed += 1
            log.warning("Notification failed: user=%s, order=%s, error=%s", outcome.user_id, outcome.order_id, e)
        except Exception as e:
            report.notifications_failed += 1
            log.error("Notification error: user=%s, order=%s, error=%s", outcome.user_id, outcome.order_id, e)

    @staticmethod
    def _record_failure(report: RunReport, user_id: uuid.UUID, error: Exception) -> None:
        report.failed += 1
        report.failures.append(RunFailure(
            user_id=user_id,
            error_type=type(error).__name__,
            detail=str(error),
        ))


# ── Periodic trigger ───────────────────────────────────────

def validate_cron(cron_expr: str) -> None:
    if not croniter.is_valid(cron_expr):
        raise ValueError(f"Invalid cron expression: {cron_expr}")


def compute_next_run(cron_expr: str, timezone: str, from_dt: datetime) -> datetime:
    """Next fire time for a cron expression evaluated in `timezone`, returned in UTC."""
    utc = ZoneInfo("UTC")
    if from_dt.tzinfo is None:
        from_dt = from_dt.replace(tzinfo=utc)
    local = from_dt.astimezone(ZoneInfo(timezone))
    next_local = croniter(cron_expr, local).get_next(datetime)
    return next_local.astimezone(utc)


async def scheduler_loop(
    scheduler: AutoScheduler,
    cron_expr: str | None = None,
    timezone: str | None = None,
    startup_delay: float | None = None,
) -> None:
    """
    Background loop: one run shortly after startup, then one per cron tick.

    Runs are serial within this loop; manual runs from the admin API may
    overlap and are absorbed by the materializer's duplicate guard.
    """
    cron_expr = cron_expr or settings.SCHEDULER_CRON
    timezone = timezone or settings.SCHEDULER_TIMEZONE
    validate_cron(cron_expr)
    if startup_delay is None:
        startup_delay = settings.SCHEDULER_STARTUP_DELAY_SEC

    logger.info("🧺 Auto-scheduler started (cron=%s, tz=%s)", cron_expr, timezone)
    await asyncio.sleep(startup_delay)

    while True:
        try:
            report = await scheduler.run_scheduling_cycle()
            if report.failed:
                logger.warning(
                    "Scheduling run %s finished with %d failures", report.run_id, report.failed,
                )
        except SchedulingError as e:
            logger.error("Scheduling run aborted, retrying next cycle: %s", e)
        except Exception:
            logger.exception("Scheduling run crashed, retrying next cycle")

        now = datetime.now(ZoneInfo("UTC"))
        next_run = compute_next_run(cron_expr, timezone, now)
        await asyncio.sleep(max((next_run - now).total_seconds(), 1.0))
