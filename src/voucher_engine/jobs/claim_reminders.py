"""Background scheduler for claim expiry reminders."""

from __future__ import annotations

import logging
from datetime import datetime, timezone

from apscheduler.schedulers.asyncio import AsyncIOScheduler
from fastapi import FastAPI

from ..core.config import get_settings
from ..core.database import SessionLocal
from ..services.reminder_service import send_due_reminders

logger = logging.getLogger(__name__)

_scheduler = AsyncIOScheduler(timezone="UTC")


async def _execute_claim_reminders() -> None:
    session = SessionLocal()
    try:
        summary = send_due_reminders(session, now=datetime.now(timezone.utc))
        session.commit()
        logger.info("claim reminders completed: %s", summary)
    except Exception:  # pragma: no cover - safeguard for background job
        session.rollback()
        logger.exception("claim reminder job failed")
        raise
    finally:
        session.close()


def register_scheduler(app: FastAPI) -> None:
    """Attach APScheduler lifecycle hooks to the FastAPI app."""

    settings = get_settings()

    @app.on_event("startup")
    async def start_scheduler() -> None:
        if not settings.scheduler_enabled:
            logger.info("claim reminder scheduler disabled")
            return
        if not _scheduler.running:
            _scheduler.add_job(
                _execute_claim_reminders,
                "interval",
                minutes=settings.reminder_interval_minutes,
                id="claim_reminders",
                replace_existing=True,
                misfire_grace_time=600,
            )
            _scheduler.start()
            logger.info("claim reminder scheduler started")

    @app.on_event("shutdown")
    async def shutdown_scheduler() -> None:
        if _scheduler.running:
            _scheduler.shutdown(wait=False)
            logger.info("claim reminder scheduler stopped")


def run_reminders_once(current_time: datetime | None = None) -> dict[str, int]:
    """Convenience helper to run the reminder pass synchronously for manual testing."""

    session = SessionLocal()
    try:
        summary = send_due_reminders(session, now=current_time)
        session.commit()
        return summary
    finally:
        session.close()
