"""Tests for the ledger store: row creation, guarded debits, carryover and expiry arithmetic."""

from __future__ import annotations

import asyncio
import uuid
from decimal import Decimal
from typing import TYPE_CHECKING

import pytest

from leave_ledger.exceptions import InsufficientBalanceError, LedgerRowMissingError
from leave_ledger.models.balance import LeaveBalance
from leave_ledger.models.category import LeaveCategory
from leave_ledger.services import ledger

if TYPE_CHECKING:
    from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

EMPLOYEE_ID = uuid.uuid4()


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


async def _make_category(session: AsyncSession, *, cap: int = 5, allocation: str = "20") -> LeaveCategory:
    category = LeaveCategory(
        name=f"Annual-{uuid.uuid4().hex[:6]}",
        default_annual_allocation=Decimal(allocation),
        max_carryover_days=cap,
    )
    session.add(category)
    await session.commit()
    return category


async def _make_row(session: AsyncSession, balance: str = "20", *, cap: int = 5) -> LeaveBalance:
    category = await _make_category(session, cap=cap, allocation=balance)
    row = await ledger.create_missing(session, EMPLOYEE_ID, category.id, category.default_annual_allocation)
    assert row is not None
    await session.commit()
    return row


# ---------------------------------------------------------------------------
# Creation and reads
# ---------------------------------------------------------------------------


class TestCreateMissing:
    async def test_creates_row_with_initial_balance(self, db_session: AsyncSession) -> None:
        row = await _make_row(db_session, "20")

        stored = await ledger.get_row(db_session, EMPLOYEE_ID, row.category_id)
        assert stored.balance == Decimal("20")
        assert stored.carried_over == Decimal("0")
        assert stored.excess_days == Decimal("0")
        assert stored.version == 1

    async def test_second_call_is_a_noop(self, db_session: AsyncSession) -> None:
        row = await _make_row(db_session, "20")

        again = await ledger.create_missing(db_session, EMPLOYEE_ID, row.category_id, Decimal("99"))
        await db_session.commit()

        assert again is None
        stored = await ledger.get_row(db_session, EMPLOYEE_ID, row.category_id)
        assert stored.balance == Decimal("20")

    async def test_get_row_missing_pair(self, db_session: AsyncSession) -> None:
        category = await _make_category(db_session)
        with pytest.raises(LedgerRowMissingError):
            await ledger.get_row(db_session, uuid.uuid4(), category.id)

    async def test_find_row_returns_none(self, db_session: AsyncSession) -> None:
        category = await _make_category(db_session)
        assert await ledger.find_row(db_session, uuid.uuid4(), category.id) is None

    async def test_listings(self, db_session: AsyncSession) -> None:
        row = await _make_row(db_session, "20")
        other_employee = uuid.uuid4()
        await ledger.create_missing(db_session, other_employee, row.category_id, Decimal("3"))
        await db_session.commit()

        assert len(await ledger.get_all(db_session, row.category_id)) == 2
        mine = await ledger.get_all_for_employee(db_session, EMPLOYEE_ID)
        assert [r.id for r in mine] == [row.id]


# ---------------------------------------------------------------------------
# Debit / credit
# ---------------------------------------------------------------------------


class TestDebit:
    async def test_debit_reduces_balance_and_bumps_version(self, db_session: AsyncSession) -> None:
        row = await _make_row(db_session, "20")

        updated = await ledger.debit(db_session, row.id, 5)
        await db_session.commit()

        assert updated.balance == Decimal("15")
        assert updated.version == 2

    async def test_debit_entire_balance(self, db_session: AsyncSession) -> None:
        row = await _make_row(db_session, "5")

        updated = await ledger.debit(db_session, row.id, 5)
        await db_session.commit()

        assert updated.balance == Decimal("0")

    async def test_insufficient_balance_leaves_row_untouched(self, db_session: AsyncSession) -> None:
        row = await _make_row(db_session, "3")

        with pytest.raises(InsufficientBalanceError) as exc_info:
            await ledger.debit(db_session, row.id, 5)
        await db_session.rollback()

        assert exc_info.value.available == Decimal("3")
        assert exc_info.value.requested == 5
        assert "Available: 3.00, Requested: 5" in exc_info.value.message
        stored = await ledger.get_row_by_id(db_session, row.id)
        assert stored.balance == Decimal("3")
        assert stored.version == 1

    async def test_debit_sees_concurrent_write_not_stale_read(
        self,
        db_session: AsyncSession,
        session_factory: async_sessionmaker[AsyncSession],
    ) -> None:
        row = await _make_row(db_session, "10")
        loaded = await ledger.get_row_by_id(db_session, row.id)
        assert loaded.balance == Decimal("10")

        async with session_factory() as other:
            await ledger.debit(other, row.id, 8)
            await other.commit()

        # The in-memory copy still says 10, the guard evaluates the stored 2.
        with pytest.raises(InsufficientBalanceError) as exc_info:
            await ledger.debit(db_session, row.id, 5)
        await db_session.rollback()
        assert exc_info.value.available == Decimal("2")

    async def test_concurrent_debits_never_overdraw(
        self,
        db_session: AsyncSession,
        session_factory: async_sessionmaker[AsyncSession],
    ) -> None:
        row = await _make_row(db_session, "10")

        async def attempt() -> bool:
            async with session_factory() as session:
                try:
                    await ledger.debit(session, row.id, 6)
                except InsufficientBalanceError:
                    await session.rollback()
                    return False
                await session.commit()
                return True

        results = await asyncio.gather(attempt(), attempt())

        assert sorted(results) == [False, True]
        stored = await ledger.get_row_by_id(db_session, row.id)
        assert stored.balance == Decimal("4")


class TestCredit:
    async def test_credit_rounds_to_two_places(self, db_session: AsyncSession) -> None:
        row = await _make_row(db_session, "20")

        for _ in range(3):
            await ledger.credit(db_session, row.id, Decimal("1.67"))
        await db_session.commit()

        stored = await ledger.get_row_by_id(db_session, row.id)
        assert stored.balance == Decimal("25.01")
        assert stored.version == 4


# ---------------------------------------------------------------------------
# Carryover and expiry
# ---------------------------------------------------------------------------


class TestCarryover:
    async def test_balance_above_cap(self, db_session: AsyncSession) -> None:
        row = await _make_row(db_session, "15", cap=5)

        updated = await ledger.apply_carryover(db_session, row.id, 5)
        await db_session.commit()

        assert updated.balance == Decimal("15")
        assert updated.carried_over == Decimal("5")
        assert updated.excess_days == Decimal("10")

    async def test_balance_below_cap(self, db_session: AsyncSession) -> None:
        row = await _make_row(db_session, "3", cap=5)

        updated = await ledger.apply_carryover(db_session, row.id, 5)
        await db_session.commit()

        assert updated.carried_over == Decimal("3")
        assert updated.excess_days == Decimal("0")

    async def test_zero_balance(self, db_session: AsyncSession) -> None:
        row = await _make_row(db_session, "0", cap=5)

        updated = await ledger.apply_carryover(db_session, row.id, 5)
        await db_session.commit()

        assert updated.carried_over == Decimal("0")
        assert updated.excess_days == Decimal("0")

    async def test_zero_cap_quarantines_everything(self, db_session: AsyncSession) -> None:
        row = await _make_row(db_session, "7.50", cap=0)

        updated = await ledger.apply_carryover(db_session, row.id, 0)
        await db_session.commit()

        assert updated.carried_over == Decimal("0")
        assert updated.excess_days == Decimal("7.50")


class TestExpiry:
    async def test_writes_off_excess_once(self, db_session: AsyncSession) -> None:
        row = await _make_row(db_session, "15", cap=5)
        await ledger.apply_carryover(db_session, row.id, 5)
        await db_session.commit()

        outcome = await ledger.apply_expiry(db_session, row.id)
        await db_session.commit()

        assert outcome is not None
        assert outcome.expired_days == Decimal("10")
        assert outcome.row.balance == Decimal("5")
        assert outcome.row.excess_days == Decimal("0")

        assert await ledger.apply_expiry(db_session, row.id) is None

    async def test_days_used_since_carryover_still_expire_the_full_excess(self, db_session: AsyncSession) -> None:
        row = await _make_row(db_session, "15", cap=5)
        await ledger.apply_carryover(db_session, row.id, 5)
        await ledger.debit(db_session, row.id, 3)
        await db_session.commit()

        outcome = await ledger.apply_expiry(db_session, row.id)
        await db_session.commit()

        assert outcome is not None
        assert outcome.expired_days == Decimal("10")
        assert outcome.row.balance == Decimal("2")
        assert outcome.row.excess_days == Decimal("0")

    async def test_balance_is_clamped_at_zero(self, db_session: AsyncSession) -> None:
        row = await _make_row(db_session, "15", cap=5)
        await ledger.apply_carryover(db_session, row.id, 5)
        await ledger.debit(db_session, row.id, 12)
        await db_session.commit()

        outcome = await ledger.apply_expiry(db_session, row.id)
        await db_session.commit()

        assert outcome is not None
        assert outcome.expired_days == Decimal("3")
        assert outcome.row.balance == Decimal("0")
        assert outcome.row.excess_days == Decimal("0")


# ---------------------------------------------------------------------------
# Absolute writes
# ---------------------------------------------------------------------------


class TestUpsert:
    async def test_overwrites_with_matching_version(self, db_session: AsyncSession) -> None:
        row = await _make_row(db_session, "20")

        updated = await ledger.upsert(
            db_session, EMPLOYEE_ID, row.category_id, balance=Decimal("12.5"), expected_version=1
        )
        await db_session.commit()

        assert updated.balance == Decimal("12.50")
        assert updated.version == 2

    async def test_stale_version_is_rejected(self, db_session: AsyncSession) -> None:
        row = await _make_row(db_session, "20")
        await ledger.credit(db_session, row.id, 1)
        await db_session.commit()

        with pytest.raises(ledger.StaleRowError):
            await ledger.upsert(db_session, EMPLOYEE_ID, row.category_id, balance=Decimal("0"), expected_version=1)
        await db_session.rollback()

        stored = await ledger.get_row_by_id(db_session, row.id)
        assert stored.balance == Decimal("21")

    async def test_inserts_missing_row(self, db_session: AsyncSession) -> None:
        category = await _make_category(db_session)
        employee_id = uuid.uuid4()

        row = await ledger.upsert(db_session, employee_id, category.id, balance=Decimal("4"))
        await db_session.commit()

        stored = await ledger.get_row(db_session, employee_id, category.id)
        assert stored.id == row.id
        assert stored.balance == Decimal("4")
