"""Tests for the upcoming-leave reminder job and the job calendar."""

from __future__ import annotations

import uuid
from datetime import UTC, date, datetime
from decimal import Decimal
from typing import TYPE_CHECKING

import pytest

from leave_ledger.config import Settings
from leave_ledger.models.application import LeaveApplication
from leave_ledger.models.category import LeaveCategory
from leave_ledger.models.enums import ApplicationStatus
from leave_ledger.services import ledger
from leave_ledger.services.accrual import AccrualJob
from leave_ledger.services.carryover import CarryoverJob, ExpiryJob
from leave_ledger.services.directory import EmployeeInfo
from leave_ledger.services.reminder import UpcomingLeaveReminderJob, reminder_window
from leave_ledger.services.schedule import JobName, build_job, due_jobs

if TYPE_CHECKING:
    from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

    from conftest import RecordingNotifier
    from leave_ledger.services.directory import InMemoryEmployeeDirectory

EMPLOYEE_ID = uuid.uuid4()
MANAGER_ID = uuid.uuid4()
OTHER_MANAGER_ID = uuid.uuid4()
ADMIN_ID = uuid.uuid4()

# Monday; the default window covers start dates Tue 2025-03-04 .. Fri 2025-03-07.
NOW = datetime(2025, 3, 3, 8, 0, tzinfo=UTC)


@pytest.fixture(autouse=True)
def _seed_directory(directory: InMemoryEmployeeDirectory) -> None:
    directory.seed(EmployeeInfo(id=EMPLOYEE_ID, name="Ada Employee", department="Engineering", email="ada@example.com"))
    directory.seed(
        EmployeeInfo(
            id=MANAGER_ID, name="Mia Manager", department="Engineering", email="mia@example.com", role="manager"
        )
    )
    directory.seed(
        EmployeeInfo(id=OTHER_MANAGER_ID, name="Sam Sales", department="Sales", email="sam@example.com", role="manager")
    )
    directory.seed(EmployeeInfo(id=ADMIN_ID, name="Ann Admin", email="ann@example.com", role="admin"))


async def _category(session: AsyncSession) -> LeaveCategory:
    category = LeaveCategory(name="Annual", default_annual_allocation=Decimal("20"))
    session.add(category)
    await session.commit()
    return category


async def _application(
    session: AsyncSession,
    category: LeaveCategory,
    start: date,
    end: date,
    *,
    status: ApplicationStatus = ApplicationStatus.APPROVED,
    employee_id: uuid.UUID = EMPLOYEE_ID,
) -> LeaveApplication:
    application = LeaveApplication(
        employee_id=employee_id,
        category_id=category.id,
        start_date=start,
        end_date=end,
        requested_days=1,
        status=status.value,
    )
    session.add(application)
    await session.commit()
    return application


class TestReminderWindow:
    def test_window_starts_tomorrow(self) -> None:
        assert reminder_window(date(2025, 3, 3), 3) == (date(2025, 3, 4), date(2025, 3, 7))

    def test_window_crosses_year_end(self) -> None:
        assert reminder_window(date(2025, 12, 30), 3) == (date(2025, 12, 31), date(2026, 1, 3))


class TestUpcomingLeaveReminderJob:
    async def test_reminds_admins_and_department_managers(
        self,
        db_session: AsyncSession,
        session_factory: async_sessionmaker[AsyncSession],
        directory: InMemoryEmployeeDirectory,
        notifier: RecordingNotifier,
    ) -> None:
        category = await _category(db_session)
        await _application(db_session, category, date(2025, 3, 5), date(2025, 3, 7))

        summary = await UpcomingLeaveReminderJob(session_factory, notifier, directory).invoke(NOW)

        assert summary.processed == 1
        assert len(notifier.sent) == 1
        recipients, message = notifier.sent[0]
        assert set(recipients) == {MANAGER_ID, ADMIN_ID}
        assert message == (
            "Reminder: Ada Employee will be on Annual leave starting Mar 5, 2025 until Mar 7, 2025."
        )

    async def test_only_approved_applications_in_the_window(
        self,
        db_session: AsyncSession,
        session_factory: async_sessionmaker[AsyncSession],
        directory: InMemoryEmployeeDirectory,
        notifier: RecordingNotifier,
    ) -> None:
        category = await _category(db_session)
        await _application(db_session, category, date(2025, 3, 3), date(2025, 3, 4))  # starts today
        await _application(db_session, category, date(2025, 3, 4), date(2025, 3, 4))  # tomorrow
        await _application(db_session, category, date(2025, 3, 7), date(2025, 3, 7))  # last day of window
        await _application(db_session, category, date(2025, 3, 8), date(2025, 3, 10))  # too far out
        await _application(
            db_session, category, date(2025, 3, 5), date(2025, 3, 5), status=ApplicationStatus.PENDING
        )

        summary = await UpcomingLeaveReminderJob(session_factory, notifier, directory).invoke(NOW)

        assert summary.processed == 2
        assert sorted(message for _, message in notifier.sent) == [
            "Reminder: Ada Employee will be on Annual leave starting Mar 4, 2025 until Mar 4, 2025.",
            "Reminder: Ada Employee will be on Annual leave starting Mar 7, 2025 until Mar 7, 2025.",
        ]

    async def test_unknown_employee_is_skipped(
        self,
        db_session: AsyncSession,
        session_factory: async_sessionmaker[AsyncSession],
        directory: InMemoryEmployeeDirectory,
        notifier: RecordingNotifier,
    ) -> None:
        category = await _category(db_session)
        await _application(db_session, category, date(2025, 3, 5), date(2025, 3, 5), employee_id=uuid.uuid4())

        summary = await UpcomingLeaveReminderJob(session_factory, notifier, directory).invoke(NOW)

        assert summary.processed == 0
        assert summary.skipped == 1
        assert notifier.sent == []

    async def test_no_audience_is_skipped(
        self,
        db_session: AsyncSession,
        session_factory: async_sessionmaker[AsyncSession],
        directory: InMemoryEmployeeDirectory,
        notifier: RecordingNotifier,
    ) -> None:
        directory.remove(MANAGER_ID)
        directory.remove(ADMIN_ID)
        category = await _category(db_session)
        await _application(db_session, category, date(2025, 3, 5), date(2025, 3, 5))

        summary = await UpcomingLeaveReminderJob(session_factory, notifier, directory).invoke(NOW)

        assert summary.skipped == 1
        assert notifier.sent == []


class TestDueJobs:
    @pytest.mark.parametrize(
        ("today", "expected"),
        [
            (date(2026, 1, 1), [JobName.CARRYOVER, JobName.ACCRUAL, JobName.REMINDERS]),
            (date(2026, 1, 31), [JobName.EXPIRY, JobName.REMINDERS]),
            (date(2026, 3, 1), [JobName.ACCRUAL, JobName.REMINDERS]),
            (date(2026, 3, 17), [JobName.REMINDERS]),
            (date(2026, 12, 31), [JobName.REMINDERS]),
        ],
    )
    def test_calendar(self, today: date, expected: list[JobName]) -> None:
        assert due_jobs(today) == expected

    def test_carryover_precedes_accrual_on_new_year(self) -> None:
        due = due_jobs(date(2027, 1, 1))
        assert due.index(JobName.CARRYOVER) < due.index(JobName.ACCRUAL)


class TestBuildJob:
    @pytest.mark.parametrize(
        ("name", "job_type"),
        [
            (JobName.ACCRUAL, AccrualJob),
            (JobName.CARRYOVER, CarryoverJob),
            (JobName.EXPIRY, ExpiryJob),
            (JobName.REMINDERS, UpcomingLeaveReminderJob),
        ],
    )
    async def test_builds_each_job(
        self,
        name: JobName,
        job_type: type,
        session_factory: async_sessionmaker[AsyncSession],
        directory: InMemoryEmployeeDirectory,
        notifier: RecordingNotifier,
    ) -> None:
        job = build_job(name, session_factory, notifier, directory, Settings(job_concurrency=2))
        assert isinstance(job, job_type)

    async def test_accrual_honours_inactive_setting(
        self,
        db_session: AsyncSession,
        session_factory: async_sessionmaker[AsyncSession],
        directory: InMemoryEmployeeDirectory,
        notifier: RecordingNotifier,
    ) -> None:
        category = LeaveCategory(
            name="Retired", default_annual_allocation=Decimal("0"), accrual_rate=Decimal("1"), active=False
        )
        db_session.add(category)
        await db_session.commit()
        await ledger.create_missing(db_session, EMPLOYEE_ID, category.id, Decimal("0"))
        await db_session.commit()

        job = build_job(
            JobName.ACCRUAL, session_factory, notifier, directory, Settings(accrue_inactive_categories=True)
        )
        summary = await job.invoke(NOW)

        assert summary.processed == 1
