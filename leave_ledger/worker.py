"""Worker process for the scheduled ledger jobs.

Runs an asyncio loop that wakes at midnight UTC and invokes whichever jobs
are due: carryover on Jan 1, expiry on Jan 31, accrual on the 1st of every
month and upcoming-leave reminders daily. Every run is claimed in the
``job_run`` table first, so a restarted worker never repeats a period.
"""

from __future__ import annotations

import asyncio
import logging
from datetime import UTC, datetime
from typing import TYPE_CHECKING

from leave_ledger.config import get_settings
from leave_ledger.db import dispose_engine, get_session_factory
from leave_ledger.main import build_directory, build_notifier
from leave_ledger.services.notification import NotificationBridge
from leave_ledger.services.schedule import (
    JobName,
    build_job,
    claim_run,
    due_jobs,
    finish_run,
    seconds_until_next_run,
)

if TYPE_CHECKING:
    from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

    from leave_ledger.config import Settings
    from leave_ledger.services.directory import EmployeeDirectory
    from leave_ledger.services.notification import Notifier

logger = logging.getLogger(__name__)


async def _run_once(
    name: JobName,
    now: datetime,
    session_factory: async_sessionmaker[AsyncSession],
    notifier: Notifier,
    directory: EmployeeDirectory,
    settings: Settings,
) -> None:
    run = await claim_run(session_factory, name, now.date())
    if run is None:
        return
    job = build_job(name, session_factory, notifier, directory, settings)
    summary = await job.invoke(now, timeout=settings.job_timeout_seconds)
    await finish_run(session_factory, run.id, summary)


async def run_scheduler_loop(*, iterations: int | None = None) -> None:
    """Run due jobs now, then again after every midnight UTC.

    ``iterations`` bounds the number of passes; None runs forever.
    """
    settings = get_settings()
    session_factory = get_session_factory()
    directory = build_directory(settings)
    notifier = build_notifier(settings, directory)

    logger.info("Ledger worker started")
    completed = 0
    try:
        while iterations is None or completed < iterations:
            now = datetime.now(UTC)
            for name in due_jobs(now.date()):
                try:
                    await _run_once(name, now, session_factory, notifier, directory, settings)
                except Exception:
                    logger.exception("%s job failed for %s", name, now.date())

            completed += 1
            if iterations is None or completed < iterations:
                await asyncio.sleep(seconds_until_next_run(datetime.now(UTC)))
    finally:
        if isinstance(notifier, NotificationBridge):
            await notifier.drain()
        await dispose_engine()


def main() -> None:
    """Entry point for the worker process."""
    settings = get_settings()
    logging.basicConfig(level=settings.log_level, format="%(asctime)s %(name)s %(levelname)s %(message)s")
    asyncio.run(run_scheduler_loop())


if __name__ == "__main__":
    main()
