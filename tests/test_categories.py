"""Tests for leave category management."""

from __future__ import annotations

import uuid
from datetime import date
from decimal import Decimal
from typing import TYPE_CHECKING

import pytest
from sqlalchemy import select
from sqlmodel import col

from leave_ledger.exceptions import CategoryNotFoundError, InvalidStateError, ValidationError
from leave_ledger.models.application import LeaveApplication
from leave_ledger.models.audit import AuditLog
from leave_ledger.models.balance import LeaveBalance
from leave_ledger.schemas.auth import AuthContext
from leave_ledger.schemas.category import CreateCategoryRequest, UpdateCategoryRequest
from leave_ledger.services import category as category_service
from leave_ledger.services import ledger
from leave_ledger.services.directory import EmployeeInfo

if TYPE_CHECKING:
    from sqlalchemy.ext.asyncio import AsyncSession

    from leave_ledger.services.directory import InMemoryEmployeeDirectory

ADMIN = AuthContext(user_id=uuid.uuid4(), role="admin")
ALICE_ID = uuid.uuid4()
BOB_ID = uuid.uuid4()


@pytest.fixture(autouse=True)
def _seed_directory(directory: InMemoryEmployeeDirectory) -> None:
    directory.seed(EmployeeInfo(id=ALICE_ID, name="Alice", department="Engineering", email="alice@example.com"))
    directory.seed(EmployeeInfo(id=BOB_ID, name="Bob", department="Sales", email="bob@example.com"))


def _annual(**overrides: object) -> CreateCategoryRequest:
    fields: dict[str, object] = {
        "name": "Annual",
        "default_annual_allocation": Decimal("20"),
        "accrual_rate": Decimal("1.67"),
        "max_carryover_days": 5,
    }
    fields.update(overrides)
    return CreateCategoryRequest(**fields)  # type: ignore[arg-type]


class TestCreateCategory:
    async def test_seeds_a_row_for_every_known_employee(
        self,
        db_session: AsyncSession,
        directory: InMemoryEmployeeDirectory,
    ) -> None:
        created = await category_service.create_category(db_session, directory, ADMIN, _annual())

        assert created.name == "Annual"
        assert created.max_carryover_days == 5
        rows = await ledger.get_all(db_session, created.id)
        assert {row.employee_id for row in rows} == {ALICE_ID, BOB_ID}
        assert all(row.balance == Decimal("20") for row in rows)
        assert all(row.carried_over == Decimal("0") for row in rows)

    async def test_duplicate_name_is_rejected(
        self,
        db_session: AsyncSession,
        directory: InMemoryEmployeeDirectory,
    ) -> None:
        await category_service.create_category(db_session, directory, ADMIN, _annual())

        with pytest.raises(ValidationError, match="already exists"):
            await category_service.create_category(db_session, directory, ADMIN, _annual())

    async def test_creation_is_audited(
        self,
        db_session: AsyncSession,
        directory: InMemoryEmployeeDirectory,
    ) -> None:
        created = await category_service.create_category(db_session, directory, ADMIN, _annual())

        result = await db_session.execute(select(AuditLog).where(col(AuditLog.entity_id) == created.id))
        entry = result.scalar_one()
        assert entry.action == "CREATE"
        assert entry.actor_id == ADMIN.user_id


class TestUpdateCategory:
    async def test_partial_update(
        self,
        db_session: AsyncSession,
        directory: InMemoryEmployeeDirectory,
    ) -> None:
        created = await category_service.create_category(db_session, directory, ADMIN, _annual())

        updated = await category_service.update_category(
            db_session, ADMIN, created.id, UpdateCategoryRequest(accrual_rate=Decimal("2"))
        )

        assert updated.accrual_rate == Decimal("2")
        assert updated.name == "Annual"
        assert updated.default_annual_allocation == Decimal("20")

    async def test_rename_to_existing_name_is_rejected(
        self,
        db_session: AsyncSession,
        directory: InMemoryEmployeeDirectory,
    ) -> None:
        await category_service.create_category(db_session, directory, ADMIN, _annual())
        sick = await category_service.create_category(db_session, directory, ADMIN, _annual(name="Sick"))

        with pytest.raises(ValidationError, match="already exists"):
            await category_service.update_category(db_session, ADMIN, sick.id, UpdateCategoryRequest(name="Annual"))

    async def test_lowering_the_cap_clamps_carried_over(
        self,
        db_session: AsyncSession,
        directory: InMemoryEmployeeDirectory,
    ) -> None:
        created = await category_service.create_category(db_session, directory, ADMIN, _annual())
        alice = await ledger.get_row(db_session, ALICE_ID, created.id)
        await ledger.apply_carryover(db_session, alice.id, 5)
        await db_session.commit()

        await category_service.update_category(
            db_session, ADMIN, created.id, UpdateCategoryRequest(max_carryover_days=3)
        )

        reloaded = await ledger.get_row_by_id(db_session, alice.id)
        assert reloaded.carried_over == Decimal("3")
        assert reloaded.balance == Decimal("20")

    async def test_clamped_days_move_into_excess(
        self,
        db_session: AsyncSession,
        directory: InMemoryEmployeeDirectory,
    ) -> None:
        created = await category_service.create_category(db_session, directory, ADMIN, _annual())
        alice = await ledger.get_row(db_session, ALICE_ID, created.id)
        await ledger.apply_carryover(db_session, alice.id, 5)
        await db_session.commit()

        await category_service.update_category(
            db_session, ADMIN, created.id, UpdateCategoryRequest(max_carryover_days=3)
        )

        reloaded = await ledger.get_row_by_id(db_session, alice.id)
        assert reloaded.carried_over == Decimal("3")
        assert reloaded.excess_days == Decimal("17")
        assert reloaded.carried_over + reloaded.excess_days == reloaded.balance

        outcome = await ledger.apply_expiry(db_session, alice.id)
        await db_session.commit()

        assert outcome is not None
        assert outcome.expired_days == Decimal("17")
        assert outcome.row.balance == Decimal("3")


    async def test_raising_the_cap_leaves_rows_alone(
        self,
        db_session: AsyncSession,
        directory: InMemoryEmployeeDirectory,
    ) -> None:
        created = await category_service.create_category(db_session, directory, ADMIN, _annual())
        alice = await ledger.get_row(db_session, ALICE_ID, created.id)
        await ledger.apply_carryover(db_session, alice.id, 5)
        await db_session.commit()

        await category_service.update_category(
            db_session, ADMIN, created.id, UpdateCategoryRequest(max_carryover_days=10)
        )

        assert (await ledger.get_row_by_id(db_session, alice.id)).carried_over == Decimal("5")

    async def test_unknown_category(self, db_session: AsyncSession) -> None:
        with pytest.raises(CategoryNotFoundError):
            await category_service.update_category(db_session, ADMIN, uuid.uuid4(), UpdateCategoryRequest(active=False))


class TestDeleteCategory:
    async def test_unused_category_is_deleted(
        self,
        db_session: AsyncSession,
        directory: InMemoryEmployeeDirectory,
    ) -> None:
        directory.remove(ALICE_ID)
        directory.remove(BOB_ID)
        created = await category_service.create_category(db_session, directory, ADMIN, _annual())

        await category_service.delete_category(db_session, ADMIN, created.id)

        with pytest.raises(CategoryNotFoundError):
            await category_service.get_category(db_session, created.id)

    async def test_category_with_balances_is_kept(
        self,
        db_session: AsyncSession,
        directory: InMemoryEmployeeDirectory,
    ) -> None:
        created = await category_service.create_category(db_session, directory, ADMIN, _annual())

        with pytest.raises(InvalidStateError, match="leave balances"):
            await category_service.delete_category(db_session, ADMIN, created.id)

    async def test_category_with_applications_is_kept(
        self,
        db_session: AsyncSession,
        directory: InMemoryEmployeeDirectory,
    ) -> None:
        created = await category_service.create_category(db_session, directory, ADMIN, _annual())
        db_session.add(
            LeaveApplication(
                employee_id=ALICE_ID,
                category_id=created.id,
                start_date=date(2025, 3, 3),
                end_date=date(2025, 3, 3),
                requested_days=1,
            )
        )
        await db_session.commit()

        with pytest.raises(InvalidStateError, match="leave applications"):
            await category_service.delete_category(db_session, ADMIN, created.id)

        remaining = await db_session.execute(select(LeaveBalance).where(col(LeaveBalance.category_id) == created.id))
        assert len(remaining.scalars().all()) == 2


class TestListCategories:
    async def test_ordered_by_name(
        self,
        db_session: AsyncSession,
        directory: InMemoryEmployeeDirectory,
    ) -> None:
        for name in ("Sick", "Annual", "Parental"):
            await category_service.create_category(db_session, directory, ADMIN, _annual(name=name))

        listing = await category_service.list_categories(db_session)

        assert listing.total == 3
        assert [c.name for c in listing.items] == ["Annual", "Parental", "Sick"]
