"""Background scheduler that expires and auto-completes sessions."""

from __future__ import annotations

import logging
from datetime import datetime, timezone

from apscheduler.schedulers.asyncio import AsyncIOScheduler
from fastapi import FastAPI

from ..core.config import get_settings
from ..core.database import SessionLocal
from ..services.ledger_engine import LedgerEngine, get_ledger_engine

logger = logging.getLogger(__name__)

_scheduler = AsyncIOScheduler(timezone="UTC")


def run_session_sweep(session, engine: LedgerEngine, *, current_time: datetime | None = None) -> dict[str, int]:
    """Expire stale pending sessions and, if enabled, settle finished ones.

    Returns summary statistics useful for logging/testing.
    """

    now = current_time or datetime.now(timezone.utc)
    summary = {
        "expired": engine.expire_stale_sessions(session, now=now),
        "auto_completed": 0,
    }
    if engine.settings.auto_complete_enabled:
        summary["auto_completed"] = engine.auto_complete_sessions(session, now=now)
    return summary


def _execute_session_sweep() -> None:
    """Run one sweep in its own DB session; the scheduler calls this from a worker thread."""

    session = SessionLocal()
    try:
        summary = run_session_sweep(session, get_ledger_engine())
        logger.info("session sweep completed: %s", summary)
    except Exception:  # pragma: no cover - safeguard for background job
        session.rollback()
        logger.exception("session sweep failed")
        raise
    finally:
        session.close()


def register_scheduler(app: FastAPI) -> None:
    """Attach APScheduler lifecycle hooks to the FastAPI app."""

    settings = get_settings()

    @app.on_event("startup")
    async def start_scheduler() -> None:
        if not _scheduler.running:
            _scheduler.add_job(
                _execute_session_sweep,
                "interval",
                seconds=settings.sweep_interval_seconds,
                id="session_sweep",
                replace_existing=True,
                max_instances=1,
                coalesce=True,
            )
            _scheduler.start()
            logger.info("session sweep scheduler started (every %ss)", settings.sweep_interval_seconds)

    @app.on_event("shutdown")
    async def shutdown_scheduler() -> None:
        if _scheduler.running:
            _scheduler.shutdown(wait=False)
            logger.info("session sweep scheduler stopped")


def run_sweep_once(current_time: datetime | None = None) -> dict[str, int]:
    """Convenience helper to run the sweep synchronously for manual testing."""

    session = SessionLocal()
    try:
        return run_session_sweep(session, get_ledger_engine(), current_time=current_time)
    finally:
        session.close()
