"""Ledger store: persistence and atomic mutation of ``LeaveBalance`` rows.

Every write to a row is one of:

* a single conditional ``UPDATE`` whose new value is computed by the database
  from the current row value (debit, credit, carryover), or
* a compare-and-swap on ``version`` retried a bounded number of times
  (absolute admin writes, expiry).

Either way two writers of the same row serialize and the loser computes its
delta from the winner's result. ORM instances are never mutated here; callers
receive freshly loaded rows after each write.
"""

# ruff: noqa: TC003
from __future__ import annotations

import logging
import uuid
from dataclasses import dataclass
from decimal import Decimal
from typing import TYPE_CHECKING, Any

import sqlalchemy as sa
from sqlalchemy import case, func, select, update
from sqlalchemy.exc import IntegrityError
from sqlmodel import col

from leave_ledger.exceptions import (
    AppError,
    InsufficientBalanceError,
    LedgerRowMissingError,
    NotFoundError,
)
from leave_ledger.models.balance import LeaveBalance

if TYPE_CHECKING:
    from sqlalchemy.ext.asyncio import AsyncSession

logger = logging.getLogger(__name__)

TWO_PLACES = Decimal("0.01")
ZERO = Decimal("0")
MAX_CAS_ATTEMPTS = 5

_DAYS = sa.Numeric(10, 2)


class StaleRowError(AppError):
    """A compare-and-swap lost to a concurrent writer more often than allowed."""

    def __init__(self, row_id: uuid.UUID) -> None:
        super().__init__(f"Leave balance {row_id} was modified concurrently, try again", status_code=409)


def quantize_days(value: Decimal | int | float | str) -> Decimal:
    """Round a day quantity to two decimal places."""
    return Decimal(str(value)).quantize(TWO_PLACES)


def _days(value: Decimal | int) -> sa.BindParameter[Decimal]:
    return sa.literal(quantize_days(value), _DAYS)


# ---------------------------------------------------------------------------
# Reads
# ---------------------------------------------------------------------------


async def find_row(
    session: AsyncSession,
    employee_id: uuid.UUID,
    category_id: uuid.UUID,
    *,
    for_update: bool = False,
) -> LeaveBalance | None:
    """Return the row of an (employee, category) pair, or None."""
    query = (
        select(LeaveBalance)
        .where(
            col(LeaveBalance.employee_id) == employee_id,
            col(LeaveBalance.category_id) == category_id,
        )
        .execution_options(populate_existing=True)
    )
    if for_update:
        query = query.with_for_update()
    result = await session.execute(query)
    return result.scalar_one_or_none()


async def get_row(
    session: AsyncSession,
    employee_id: uuid.UUID,
    category_id: uuid.UUID,
    *,
    for_update: bool = False,
) -> LeaveBalance:
    """Return the row of an (employee, category) pair. Raises LedgerRowMissingError."""
    row = await find_row(session, employee_id, category_id, for_update=for_update)
    if row is None:
        raise LedgerRowMissingError
    return row


async def get_row_by_id(
    session: AsyncSession,
    row_id: uuid.UUID,
    *,
    for_update: bool = False,
) -> LeaveBalance:
    """Return a row by primary key. Raises 404 if absent."""
    query = (
        select(LeaveBalance).where(col(LeaveBalance.id) == row_id).execution_options(populate_existing=True)
    )
    if for_update:
        query = query.with_for_update()
    result = await session.execute(query)
    row = result.scalar_one_or_none()
    if row is None:
        raise NotFoundError("Leave balance not found")
    return row


async def get_all(session: AsyncSession, category_id: uuid.UUID) -> list[LeaveBalance]:
    """Every row of one category."""
    result = await session.execute(
        select(LeaveBalance)
        .where(col(LeaveBalance.category_id) == category_id)
        .order_by(col(LeaveBalance.employee_id))
        .execution_options(populate_existing=True)
    )
    return list(result.scalars().all())


async def get_all_for_employee(session: AsyncSession, employee_id: uuid.UUID) -> list[LeaveBalance]:
    """Every row of one employee."""
    result = await session.execute(
        select(LeaveBalance)
        .where(col(LeaveBalance.employee_id) == employee_id)
        .execution_options(populate_existing=True)
    )
    return list(result.scalars().all())


# ---------------------------------------------------------------------------
# Creation
# ---------------------------------------------------------------------------


async def create_missing(
    session: AsyncSession,
    employee_id: uuid.UUID,
    category_id: uuid.UUID,
    initial_balance: Decimal,
) -> LeaveBalance | None:
    """Create the row for an (employee, category) pair unless it already exists.

    Returns the new row, or None when the pair already had one. Safe against
    a concurrent creator thanks to the unique constraint.
    """
    if await find_row(session, employee_id, category_id) is not None:
        return None

    row = LeaveBalance(
        employee_id=employee_id,
        category_id=category_id,
        balance=quantize_days(initial_balance),
        carried_over=ZERO,
        excess_days=ZERO,
    )
    try:
        async with session.begin_nested():
            session.add(row)
            await session.flush()
    except IntegrityError:
        return None  # Created concurrently

    return row


# ---------------------------------------------------------------------------
# Atomic delta writes
# ---------------------------------------------------------------------------


async def _execute_row_update(session: AsyncSession, row_id: uuid.UUID, *where: Any, **values: Any) -> bool:
    """Run one UPDATE against a single row and report whether it matched."""
    result = await session.execute(
        update(LeaveBalance)
        .where(col(LeaveBalance.id) == row_id, *where)
        .values(version=col(LeaveBalance.version) + 1, **values)
        .execution_options(synchronize_session=False)
    )
    return result.rowcount == 1  # type: ignore[attr-defined]


async def debit(session: AsyncSession, row_id: uuid.UUID, days: Decimal | int) -> LeaveBalance:
    """Subtract ``days`` from the balance if, at write time, it covers them.

    Raises InsufficientBalanceError (with the balance the database actually
    held) when the guard fails. The caller owns the transaction.
    """
    amount = _days(days)
    matched = await _execute_row_update(
        session,
        row_id,
        col(LeaveBalance.balance) >= amount,
        balance=func.round(col(LeaveBalance.balance) - amount, 2),
    )
    row = await get_row_by_id(session, row_id)
    if not matched:
        raise InsufficientBalanceError(available=row.balance, requested=days)
    return row


async def credit(session: AsyncSession, row_id: uuid.UUID, days: Decimal | int) -> LeaveBalance:
    """Add ``days`` to the balance."""
    amount = _days(days)
    matched = await _execute_row_update(
        session,
        row_id,
        balance=func.round(col(LeaveBalance.balance) + amount, 2),
    )
    if not matched:
        raise NotFoundError("Leave balance not found")
    return await get_row_by_id(session, row_id)


async def apply_carryover(session: AsyncSession, row_id: uuid.UUID, max_carryover_days: int) -> LeaveBalance:
    """Split the current balance into carried-over days and excess days.

    ``carried_over = min(balance, cap)`` and ``excess_days = max(0, balance - cap)``
    are computed by the database from the row as it is at write time. The
    balance itself is left untouched.
    """
    balance = col(LeaveBalance.balance)
    cap = _days(max_carryover_days)
    zero = _days(0)
    matched = await _execute_row_update(
        session,
        row_id,
        carried_over=case((balance <= zero, zero), (balance < cap, balance), else_=cap),
        excess_days=case((balance > cap, func.round(balance - cap, 2)), else_=zero),
    )
    if not matched:
        raise NotFoundError("Leave balance not found")
    return await get_row_by_id(session, row_id)


# ---------------------------------------------------------------------------
# Compare-and-swap writes
# ---------------------------------------------------------------------------


async def _compare_and_swap(
    session: AsyncSession,
    row_id: uuid.UUID,
    expected_version: int,
    **values: Any,
) -> bool:
    return await _execute_row_update(session, row_id, col(LeaveBalance.version) == expected_version, **values)


@dataclass
class ExpiryOutcome:
    """Result of writing off a row's excess days."""

    row: LeaveBalance
    expired_days: Decimal


def expirable_days(row: LeaveBalance) -> Decimal:
    """The full excess, limited only by what is left on the balance."""
    return min(row.excess_days, max(ZERO, row.balance))


async def apply_expiry(session: AsyncSession, row_id: uuid.UUID) -> ExpiryOutcome | None:
    """Write off the row's excess days and zero them.

    Returns None when the row has no excess days. The whole excess is
    subtracted even if days were used since carryover; only a balance that
    would go negative is clamped at zero.
    """
    for _attempt in range(MAX_CAS_ATTEMPTS):
        row = await get_row_by_id(session, row_id, for_update=True)
        if row.excess_days <= ZERO:
            return None

        expired = expirable_days(row)
        swapped = await _compare_and_swap(
            session,
            row_id,
            row.version,
            balance=func.round(col(LeaveBalance.balance) - _days(expired), 2),
            excess_days=_days(0),
        )
        if swapped:
            return ExpiryOutcome(row=await get_row_by_id(session, row_id), expired_days=expired)
        logger.debug("Expiry CAS lost on leave balance %s, retrying", row_id)

    raise StaleRowError(row_id)


async def upsert(
    session: AsyncSession,
    employee_id: uuid.UUID,
    category_id: uuid.UUID,
    *,
    balance: Decimal | None = None,
    carried_over: Decimal | None = None,
    expected_version: int | None = None,
) -> LeaveBalance:
    """Insert a row or overwrite the given fields of the existing one.

    Overwrites are a compare-and-swap against ``expected_version`` (or the
    version read here when omitted). Raises StaleRowError if another writer
    changed the row in between.
    """
    existing = await find_row(session, employee_id, category_id, for_update=True)
    if existing is None:
        row = LeaveBalance(
            employee_id=employee_id,
            category_id=category_id,
            balance=quantize_days(balance if balance is not None else ZERO),
            carried_over=quantize_days(carried_over if carried_over is not None else ZERO),
        )
        session.add(row)
        await session.flush()
        return row

    values: dict[str, Any] = {}
    if balance is not None:
        values["balance"] = _days(balance)
    if carried_over is not None:
        values["carried_over"] = _days(carried_over)

    version = existing.version if expected_version is None else expected_version
    if not await _compare_and_swap(session, existing.id, version, **values):
        raise StaleRowError(existing.id)
    return await get_row_by_id(session, existing.id)
