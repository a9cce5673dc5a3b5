# ruff: noqa: TC003
from __future__ import annotations

import logging
import uuid
from datetime import date, datetime, timedelta
from typing import TYPE_CHECKING

from sqlalchemy import select
from sqlmodel import col

from leave_ledger.models.application import LeaveApplication
from leave_ledger.models.category import LeaveCategory
from leave_ledger.models.enums import ApplicationStatus
from leave_ledger.services.directory import notification_audience
from leave_ledger.services.jobs import DEFAULT_CONCURRENCY, LedgerJob, Outbox

if TYPE_CHECKING:
    from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

    from leave_ledger.services.directory import EmployeeDirectory
    from leave_ledger.services.notification import Notifier

logger = logging.getLogger(__name__)

DEFAULT_DAYS_IN_ADVANCE = 3


def _format_day(day: date) -> str:
    return f"{day:%b} {day.day}, {day.year}"


def reminder_window(today: date, days_in_advance: int) -> tuple[date, date]:
    """Inclusive range of start dates that get a reminder: tomorrow up to N days after it."""
    tomorrow = today + timedelta(days=1)
    return tomorrow, tomorrow + timedelta(days=days_in_advance)


class UpcomingLeaveReminderJob(LedgerJob):
    """Reminds admins and department managers of approved leave starting soon."""

    name = "upcoming_leave_reminder"

    def __init__(
        self,
        session_factory: async_sessionmaker[AsyncSession],
        notifier: Notifier,
        directory: EmployeeDirectory,
        *,
        days_in_advance: int = DEFAULT_DAYS_IN_ADVANCE,
        concurrency: int = DEFAULT_CONCURRENCY,
    ) -> None:
        super().__init__(session_factory, notifier, concurrency=concurrency)
        self._directory = directory
        self._days_in_advance = days_in_advance

    async def select_targets(self, session: AsyncSession, now: datetime) -> list[uuid.UUID]:
        first, last = reminder_window(now.date(), self._days_in_advance)
        result = await session.execute(
            select(LeaveApplication.id)
            .where(
                col(LeaveApplication.status) == ApplicationStatus.APPROVED.value,
                col(LeaveApplication.start_date) >= first,
                col(LeaveApplication.start_date) <= last,
            )
            .order_by(col(LeaveApplication.start_date))
        )
        return list(result.scalars().all())

    async def process(self, session: AsyncSession, target_id: uuid.UUID, now: datetime) -> Outbox | None:
        application = await session.get(LeaveApplication, target_id)
        if application is None or application.status != ApplicationStatus.APPROVED.value:
            return None

        employee = await self._directory.lookup_by_id(application.employee_id)
        if employee is None:
            logger.info("Employee %s not found in directory, skipping reminder", application.employee_id)
            return None

        recipients = notification_audience(await self._directory.lookup_all(), employee.department)
        if not recipients:
            logger.info("No admins or managers found for employee %s, skipping reminder", employee.name)
            return None

        category = await session.get(LeaveCategory, application.category_id)
        category_name = category.name if category is not None else "unknown"

        outbox = Outbox()
        outbox.add(
            recipients,
            f"Reminder: {employee.name} will be on {category_name} leave starting "
            f"{_format_day(application.start_date)} until {_format_day(application.end_date)}.",
        )
        return outbox
