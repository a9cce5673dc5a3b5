"""Which ledger jobs exist, on which calendar days they are due, and which
periods the worker has already run them for.
"""

# ruff: noqa: TC003
from __future__ import annotations

import enum
import logging
import uuid
from datetime import UTC, date, datetime, time, timedelta
from typing import TYPE_CHECKING

from sqlalchemy import update
from sqlalchemy.exc import IntegrityError
from sqlmodel import col

from leave_ledger.models.job_run import JobRun
from leave_ledger.services.accrual import AccrualJob
from leave_ledger.services.carryover import CarryoverJob, ExpiryJob
from leave_ledger.services.reminder import UpcomingLeaveReminderJob

if TYPE_CHECKING:
    from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

    from leave_ledger.config import Settings
    from leave_ledger.services.directory import EmployeeDirectory
    from leave_ledger.services.jobs import JobSummary, LedgerJob
    from leave_ledger.services.notification import Notifier

logger = logging.getLogger(__name__)


class JobName(enum.StrEnum):
    """Scheduled jobs, in the order they run on a day they are all due."""

    CARRYOVER = "carryover"
    EXPIRY = "expiry"
    ACCRUAL = "accrual"
    REMINDERS = "reminders"


def due_jobs(today: date) -> list[JobName]:
    """Jobs due on ``today``.

    Carryover runs on Jan 1 ahead of that month's accrual so the new month's
    credit is not counted as carried-over days. Expiry runs on Jan 31.
    Reminders run every day.
    """
    due: list[JobName] = []
    if today.month == 1 and today.day == 1:
        due.append(JobName.CARRYOVER)
    if today.month == 1 and today.day == 31:
        due.append(JobName.EXPIRY)
    if today.day == 1:
        due.append(JobName.ACCRUAL)
    due.append(JobName.REMINDERS)
    return due


def build_job(
    name: JobName,
    session_factory: async_sessionmaker[AsyncSession],
    notifier: Notifier,
    directory: EmployeeDirectory,
    settings: Settings,
) -> LedgerJob:
    """Instantiate a job wired to the given collaborators and settings."""
    concurrency = settings.job_concurrency
    if name == JobName.ACCRUAL:
        return AccrualJob(
            session_factory,
            notifier,
            concurrency=concurrency,
            include_inactive=settings.accrue_inactive_categories,
        )
    if name == JobName.CARRYOVER:
        return CarryoverJob(session_factory, notifier, concurrency=concurrency)
    if name == JobName.EXPIRY:
        return ExpiryJob(session_factory, notifier, concurrency=concurrency)
    return UpcomingLeaveReminderJob(
        session_factory,
        notifier,
        directory,
        days_in_advance=settings.reminder_days_in_advance,
        concurrency=concurrency,
    )


def period_key(name: JobName, today: date) -> str:
    """The calendar period a run of ``name`` on ``today`` covers.

    Carryover and expiry happen once a year, accrual once a month and
    reminders once a day.
    """
    if name in (JobName.CARRYOVER, JobName.EXPIRY):
        return f"{today:%Y}"
    if name == JobName.ACCRUAL:
        return f"{today:%Y-%m}"
    return today.isoformat()


async def claim_run(
    session_factory: async_sessionmaker[AsyncSession],
    name: JobName,
    today: date,
) -> JobRun | None:
    """Record that ``name`` is about to run for the period containing ``today``.

    Returns None when a run for that period is already recorded. The claim is
    committed before the job starts, so a run that dies halfway is not
    repeated on restart and has to be re-triggered by hand.
    """
    period = period_key(name, today)
    run = JobRun(job=name.value, period=period)
    async with session_factory() as session:
        session.add(run)
        try:
            await session.commit()
        except IntegrityError:
            await session.rollback()
            logger.info("%s job already ran for %s, skipping", name, period)
            return None
    return run


async def finish_run(
    session_factory: async_sessionmaker[AsyncSession],
    run_id: uuid.UUID,
    summary: JobSummary,
) -> None:
    """Store the outcome of a claimed run."""
    async with session_factory() as session:
        await session.execute(
            update(JobRun)
            .where(col(JobRun.id) == run_id)
            .values(
                finished_at=datetime.now(UTC),
                processed=summary.processed,
                skipped=summary.skipped,
                errors=summary.errors,
                deferred=summary.deferred,
            )
        )
        await session.commit()


def seconds_until_next_run(now: datetime) -> float:
    """Seconds from ``now`` to the next midnight UTC."""
    tomorrow = now.astimezone(UTC).date() + timedelta(days=1)
    return (datetime.combine(tomorrow, time.min, tzinfo=UTC) - now).total_seconds()
