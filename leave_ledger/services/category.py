# ruff: noqa: TC003
from __future__ import annotations

import logging
import uuid
from typing import TYPE_CHECKING

from sqlalchemy import func, select, update
from sqlalchemy.exc import IntegrityError
from sqlmodel import col

from leave_ledger.exceptions import CategoryNotFoundError, InvalidStateError, ValidationError
from leave_ledger.models.application import LeaveApplication
from leave_ledger.models.balance import LeaveBalance
from leave_ledger.models.category import LeaveCategory
from leave_ledger.models.enums import AuditAction, AuditEntityType
from leave_ledger.schemas.category import CategoryListResponse, CategoryResponse
from leave_ledger.services import ledger
from leave_ledger.services.audit import model_to_audit_dict, write_audit_log

if TYPE_CHECKING:
    from sqlalchemy.ext.asyncio import AsyncSession

    from leave_ledger.schemas.auth import AuthContext
    from leave_ledger.schemas.category import CreateCategoryRequest, UpdateCategoryRequest
    from leave_ledger.services.directory import EmployeeDirectory

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Internal helpers
# ---------------------------------------------------------------------------


def _build_category_response(category: LeaveCategory) -> CategoryResponse:
    return CategoryResponse(
        id=category.id,
        name=category.name,
        default_annual_allocation=category.default_annual_allocation,
        accrual_rate=category.accrual_rate,
        max_carryover_days=category.max_carryover_days,
        active=category.active,
        created_at=category.created_at,
    )


async def get_category_or_404(session: AsyncSession, category_id: uuid.UUID) -> LeaveCategory:
    """Fetch a category by ID. Raises 404 if not found."""
    result = await session.execute(select(LeaveCategory).where(col(LeaveCategory.id) == category_id))
    category = result.scalar_one_or_none()
    if category is None:
        raise CategoryNotFoundError
    return category


async def _ensure_name_available(
    session: AsyncSession,
    name: str,
    exclude_id: uuid.UUID | None = None,
) -> None:
    query = select(LeaveCategory.id).where(col(LeaveCategory.name) == name)
    if exclude_id is not None:
        query = query.where(col(LeaveCategory.id) != exclude_id)
    if (await session.execute(query)).first() is not None:
        raise ValidationError(f"Leave category '{name}' already exists")


# ---------------------------------------------------------------------------
# Commands
# ---------------------------------------------------------------------------


async def create_category(
    session: AsyncSession,
    directory: EmployeeDirectory,
    auth: AuthContext,
    payload: CreateCategoryRequest,
) -> CategoryResponse:
    """Create a leave category and seed a ledger row for every known employee."""
    await _ensure_name_available(session, payload.name)

    category = LeaveCategory(
        name=payload.name,
        default_annual_allocation=payload.default_annual_allocation,
        accrual_rate=payload.accrual_rate,
        max_carryover_days=payload.max_carryover_days,
        active=payload.active,
    )
    session.add(category)
    try:
        await session.flush()
    except IntegrityError:
        await session.rollback()
        raise ValidationError(f"Leave category '{payload.name}' already exists") from None

    seeded = 0
    for employee in await directory.lookup_all():
        if await ledger.create_missing(session, employee.id, category.id, category.default_annual_allocation):
            seeded += 1

    await write_audit_log(
        session,
        actor_id=auth.user_id,
        entity_type=AuditEntityType.CATEGORY,
        entity_id=category.id,
        action=AuditAction.CREATE,
        after_json=model_to_audit_dict(category),
    )

    await session.commit()
    await session.refresh(category)
    logger.info("Leave category %s created, %d ledger rows seeded", category.name, seeded)
    return _build_category_response(category)


async def update_category(
    session: AsyncSession,
    auth: AuthContext,
    category_id: uuid.UUID,
    payload: UpdateCategoryRequest,
) -> CategoryResponse:
    """Partially update a category.

    Lowering ``max_carryover_days`` clamps the ``carried_over`` of the
    category's ledger rows to the new cap in the same transaction; the
    clamped days join ``excess_days`` and expire with the rest.
    """
    category = await get_category_or_404(session, category_id)
    before_dict = model_to_audit_dict(category)

    changes = {k: v for k, v in payload.model_dump(exclude_unset=True).items() if v is not None}
    if "name" in changes and changes["name"] != category.name:
        await _ensure_name_available(session, changes["name"], exclude_id=category.id)

    previous_cap = category.max_carryover_days
    for field, value in changes.items():
        setattr(category, field, value)
    await session.flush()

    if category.max_carryover_days < previous_cap:
        cap = ledger.quantize_days(category.max_carryover_days)
        result = await session.execute(
            update(LeaveBalance)
            .where(
                col(LeaveBalance.category_id) == category.id,
                col(LeaveBalance.carried_over) > cap,
            )
            .values(
                carried_over=cap,
                excess_days=func.round(
                    col(LeaveBalance.excess_days) + (col(LeaveBalance.carried_over) - cap), 2
                ),
                version=col(LeaveBalance.version) + 1,
            )
            .execution_options(synchronize_session=False)
        )
        logger.info(
            "Carryover cap of %s lowered to %d, %d ledger rows clamped",
            category.name,
            category.max_carryover_days,
            result.rowcount,  # type: ignore[attr-defined]
        )

    await write_audit_log(
        session,
        actor_id=auth.user_id,
        entity_type=AuditEntityType.CATEGORY,
        entity_id=category.id,
        action=AuditAction.UPDATE,
        before_json=before_dict,
        after_json=model_to_audit_dict(category),
    )

    await session.commit()
    await session.refresh(category)
    return _build_category_response(category)


async def delete_category(session: AsyncSession, auth: AuthContext, category_id: uuid.UUID) -> None:
    """Delete a category that no ledger row or application references."""
    category = await get_category_or_404(session, category_id)

    applications = (
        await session.execute(
            select(func.count())
            .select_from(LeaveApplication)
            .where(col(LeaveApplication.category_id) == category.id)
        )
    ).scalar_one()
    if applications:
        raise InvalidStateError("Cannot delete leave category that is associated with leave applications")

    balances = (
        await session.execute(
            select(func.count()).select_from(LeaveBalance).where(col(LeaveBalance.category_id) == category.id)
        )
    ).scalar_one()
    if balances:
        raise InvalidStateError("Cannot delete leave category that is associated with leave balances")

    await write_audit_log(
        session,
        actor_id=auth.user_id,
        entity_type=AuditEntityType.CATEGORY,
        entity_id=category.id,
        action=AuditAction.DELETE,
        before_json=model_to_audit_dict(category),
    )
    await session.delete(category)
    await session.commit()


# ---------------------------------------------------------------------------
# Queries
# ---------------------------------------------------------------------------


async def list_categories(session: AsyncSession) -> CategoryListResponse:
    """All categories ordered by name."""
    result = await session.execute(select(LeaveCategory).order_by(col(LeaveCategory.name)))
    categories = list(result.scalars().all())
    return CategoryListResponse(
        items=[_build_category_response(c) for c in categories],
        total=len(categories),
    )


async def get_category(session: AsyncSession, category_id: uuid.UUID) -> CategoryResponse:
    """Get a single category by ID."""
    return _build_category_response(await get_category_or_404(session, category_id))
