# ruff: noqa: TC003
from __future__ import annotations

import logging
import uuid
from collections import defaultdict
from decimal import Decimal
from typing import TYPE_CHECKING

from sqlalchemy import select
from sqlmodel import col

from leave_ledger.exceptions import DirectoryUnavailableError, ValidationError
from leave_ledger.models.balance import LeaveBalance
from leave_ledger.models.category import LeaveCategory
from leave_ledger.models.enums import AuditAction, AuditEntityType
from leave_ledger.schemas.balance import AllBalancesResponse, BalanceListResponse, BalanceResponse, EmployeeBalances
from leave_ledger.services import ledger
from leave_ledger.services.audit import model_to_audit_dict, write_audit_log
from leave_ledger.services.category import get_category_or_404

if TYPE_CHECKING:
    from sqlalchemy.ext.asyncio import AsyncSession

    from leave_ledger.schemas.auth import AuthContext
    from leave_ledger.schemas.balance import AdjustBalanceRequest
    from leave_ledger.services.directory import EmployeeDirectory

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Internal helpers
# ---------------------------------------------------------------------------


def _build_balance_response(row: LeaveBalance, category_name: str) -> BalanceResponse:
    return BalanceResponse(
        id=row.id,
        employee_id=row.employee_id,
        category_id=row.category_id,
        category_name=category_name,
        balance=row.balance,
        carried_over=row.carried_over,
        excess_days=row.excess_days,
        version=row.version,
        updated_at=row.updated_at,
    )


async def _rows_with_category_names(
    session: AsyncSession,
    *filters: object,
) -> list[tuple[LeaveBalance, str]]:
    result = await session.execute(
        select(LeaveBalance, LeaveCategory.name)
        .join(LeaveCategory, col(LeaveCategory.id) == col(LeaveBalance.category_id))
        .where(*filters)  # type: ignore[arg-type]
        .order_by(col(LeaveBalance.employee_id), col(LeaveCategory.name))
        .execution_options(populate_existing=True)
    )
    return [(row, name) for row, name in result.all()]


# ---------------------------------------------------------------------------
# Queries
# ---------------------------------------------------------------------------


async def list_balances_for_employee(session: AsyncSession, employee_id: uuid.UUID) -> BalanceListResponse:
    """Ledger rows of one employee, ordered by category name."""
    rows = await _rows_with_category_names(session, col(LeaveBalance.employee_id) == employee_id)
    return BalanceListResponse(
        items=[_build_balance_response(row, name) for row, name in rows],
        total=len(rows),
    )


async def list_all_balances(session: AsyncSession, directory: EmployeeDirectory) -> AllBalancesResponse:
    """Ledger rows grouped by employee.

    Employees the directory does not know are left out of the listing.
    """
    grouped: dict[uuid.UUID, list[BalanceResponse]] = defaultdict(list)
    for row, name in await _rows_with_category_names(session):
        grouped[row.employee_id].append(_build_balance_response(row, name))

    items: list[EmployeeBalances] = []
    for employee_id, balances in grouped.items():
        employee = await directory.lookup_by_id(employee_id)
        if employee is None:
            logger.debug("Employee %s not in directory, omitted from balance listing", employee_id)
            continue
        items.append(
            EmployeeBalances(
                employee_id=employee.id,
                name=employee.name,
                department=employee.department,
                email=employee.email,
                items=balances,
            )
        )
    return AllBalancesResponse(items=items, total=len(items))


# ---------------------------------------------------------------------------
# Commands
# ---------------------------------------------------------------------------


async def adjust_balance(
    session: AsyncSession,
    auth: AuthContext,
    row_id: uuid.UUID,
    payload: AdjustBalanceRequest,
) -> BalanceResponse:
    """Overwrite the balance and/or carried-over days of one ledger row.

    The write is a compare-and-swap on the row version; on a lost race the
    row is re-read and the checks are repeated a bounded number of times.
    """
    if payload.balance is None and payload.carried_over is None:
        raise ValidationError("Either balance or carried_over must be provided")
    if payload.balance is not None and payload.balance < 0:
        raise ValidationError(f"balance must not be negative, got {payload.balance}")
    if payload.carried_over is not None and payload.carried_over < 0:
        raise ValidationError(f"carried_over must not be negative, got {payload.carried_over}")

    for _attempt in range(ledger.MAX_CAS_ATTEMPTS):
        row = await ledger.get_row_by_id(session, row_id, for_update=True)
        category = await get_category_or_404(session, row.category_id)
        if payload.carried_over is not None and payload.carried_over > Decimal(category.max_carryover_days):
            raise ValidationError(
                f"carried_over cannot exceed the carryover cap of {category.max_carryover_days} days "
                f"for {category.name}, got {payload.carried_over}"
            )

        before_dict = model_to_audit_dict(row)
        try:
            updated = await ledger.upsert(
                session,
                row.employee_id,
                row.category_id,
                balance=payload.balance,
                carried_over=payload.carried_over,
                expected_version=row.version,
            )
        except ledger.StaleRowError:
            await session.rollback()
            logger.debug("Adjustment of leave balance %s lost a race, retrying", row_id)
            continue

        await write_audit_log(
            session,
            actor_id=auth.user_id,
            entity_type=AuditEntityType.BALANCE,
            entity_id=updated.id,
            action=AuditAction.ADJUST,
            before_json=before_dict,
            after_json=model_to_audit_dict(updated),
        )
        await session.commit()
        await session.refresh(updated)
        return _build_balance_response(updated, category.name)

    raise ledger.StaleRowError(row_id)


async def initialize_balances(
    session: AsyncSession,
    directory: EmployeeDirectory,
    auth: AuthContext,
    employee_id: uuid.UUID,
) -> BalanceListResponse:
    """Create the missing ledger rows of a newly onboarded employee.

    Returns only the rows created by this call.
    """
    await directory.refresh()
    if await directory.lookup_by_id(employee_id) is None:
        raise DirectoryUnavailableError(employee_id)

    result = await session.execute(select(LeaveCategory).order_by(col(LeaveCategory.name)))
    created: list[tuple[LeaveBalance, str]] = []
    for category in result.scalars().all():
        row = await ledger.create_missing(session, employee_id, category.id, category.default_annual_allocation)
        if row is None:
            continue
        await write_audit_log(
            session,
            actor_id=auth.user_id,
            entity_type=AuditEntityType.BALANCE,
            entity_id=row.id,
            action=AuditAction.CREATE,
            after_json=model_to_audit_dict(row),
        )
        created.append((row, category.name))

    await session.commit()
    for row, _name in created:
        await session.refresh(row)
    logger.info("Initialized %d ledger rows for employee %s", len(created), employee_id)
    return BalanceListResponse(
        items=[_build_balance_response(row, name) for row, name in created],
        total=len(created),
    )
