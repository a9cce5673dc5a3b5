# ruff: noqa: TC003
from __future__ import annotations

import logging
import uuid
from datetime import UTC, datetime
from typing import TYPE_CHECKING

from sqlalchemy import func, select, update
from sqlmodel import col

from leave_ledger.exceptions import (
    AppError,
    ApplicationNotFoundError,
    CategoryNotFoundError,
    DirectoryUnavailableError,
    ForbiddenError,
    InsufficientBalanceError,
    InvalidStateError,
    ValidationError,
)
from leave_ledger.models.application import LeaveApplication
from leave_ledger.models.category import LeaveCategory
from leave_ledger.models.enums import ApplicationStatus, AuditAction, AuditEntityType
from leave_ledger.schemas.application import ApplicationListResponse, ApplicationResponse
from leave_ledger.services import ledger
from leave_ledger.services.audit import model_to_audit_dict, write_audit_log
from leave_ledger.services.directory import resolve_employee
from leave_ledger.services.duration import count_business_days

if TYPE_CHECKING:
    from sqlalchemy.ext.asyncio import AsyncSession

    from leave_ledger.schemas.application import CreateApplicationPayload, UpdateStatusPayload
    from leave_ledger.schemas.auth import AuthContext
    from leave_ledger.services.directory import EmployeeDirectory
    from leave_ledger.services.notification import Notifier

logger = logging.getLogger(__name__)

_AUDIT_ACTIONS = {
    ApplicationStatus.APPROVED: AuditAction.APPROVE,
    ApplicationStatus.REJECTED: AuditAction.REJECT,
    ApplicationStatus.PENDING: AuditAction.REOPEN,
}


# ---------------------------------------------------------------------------
# Internal helpers
# ---------------------------------------------------------------------------


def _build_application_response(application: LeaveApplication) -> ApplicationResponse:
    return ApplicationResponse(
        id=application.id,
        employee_id=application.employee_id,
        category_id=application.category_id,
        start_date=application.start_date,
        end_date=application.end_date,
        requested_days=application.requested_days,
        reason=application.reason,
        document_url=application.document_url,
        status=ApplicationStatus(application.status),
        manager_comment=application.manager_comment,
        decided_by=application.decided_by,
        decided_at=application.decided_at,
        created_at=application.created_at,
    )


async def _get_application_or_404(session: AsyncSession, application_id: uuid.UUID) -> LeaveApplication:
    result = await session.execute(
        select(LeaveApplication)
        .where(col(LeaveApplication.id) == application_id)
        .execution_options(populate_existing=True)
    )
    application = result.scalar_one_or_none()
    if application is None:
        raise ApplicationNotFoundError
    return application


async def _get_category_or_404(session: AsyncSession, category_id: uuid.UUID) -> LeaveCategory:
    category = await session.get(LeaveCategory, category_id)
    if category is None:
        raise CategoryNotFoundError
    return category


def _format_period(application: LeaveApplication) -> str:
    return f"{application.start_date.isoformat()} - {application.end_date.isoformat()}"


# ---------------------------------------------------------------------------
# Commands
# ---------------------------------------------------------------------------


async def create_application(
    session: AsyncSession,
    directory: EmployeeDirectory,
    notifier: Notifier,
    auth: AuthContext,
    payload: CreateApplicationPayload,
) -> ApplicationResponse:
    """Apply for leave on behalf of the authenticated employee.

    The balance check here is advisory: the authoritative guard is the
    conditional debit taken when the application is approved.
    """
    if payload.end_date < payload.start_date:
        raise ValidationError("end_date must be on or after start_date")

    requested_days = count_business_days(payload.start_date, payload.end_date)
    if requested_days == 0:
        raise ValidationError("Leave period contains no business days")

    category = await _get_category_or_404(session, payload.category_id)

    employee = await resolve_employee(directory, auth.user_id)
    if employee is None:
        raise DirectoryUnavailableError(auth.user_id)

    row = await ledger.get_row(session, auth.user_id, category.id)
    if row.balance < requested_days:
        raise InsufficientBalanceError(available=row.balance, requested=requested_days)

    application = LeaveApplication(
        employee_id=auth.user_id,
        category_id=category.id,
        start_date=payload.start_date,
        end_date=payload.end_date,
        requested_days=requested_days,
        reason=payload.reason,
        document_url=payload.document_url,
        status=ApplicationStatus.PENDING.value,
    )
    session.add(application)
    await session.flush()

    await write_audit_log(
        session,
        actor_id=auth.user_id,
        entity_type=AuditEntityType.APPLICATION,
        entity_id=application.id,
        action=AuditAction.CREATE,
        after_json=model_to_audit_dict(application),
    )

    await session.commit()
    await session.refresh(application)

    notifier.notify_approvers(
        employee.department,
        f"{employee.name} has submitted a new {category.name} leave request for "
        f"{requested_days} days ({_format_period(application)}).",
    )
    return _build_application_response(application)


async def update_status(
    session: AsyncSession,
    notifier: Notifier,
    auth: AuthContext,
    application_id: uuid.UUID,
    payload: UpdateStatusPayload,
) -> ApplicationResponse:
    """Move an application to a new status, settling the ledger in the same transaction.

    Entering APPROVED debits ``requested_days``; leaving APPROVED credits them
    back. The status change is a compare-and-swap on the status read here, so
    a concurrent decision on the same application fails with 409 instead of
    double-debiting.
    """
    application = await _get_application_or_404(session, application_id)
    previous = ApplicationStatus(application.status)
    target = payload.status

    if previous == target:
        if payload.manager_comment is not None and payload.manager_comment != application.manager_comment:
            application.manager_comment = payload.manager_comment
            await session.commit()
            await session.refresh(application)
        return _build_application_response(application)

    category = await _get_category_or_404(session, application.category_id)
    before_dict = model_to_audit_dict(application)
    decided = target != ApplicationStatus.PENDING
    now = datetime.now(UTC)

    try:
        result = await session.execute(
            update(LeaveApplication)
            .where(
                col(LeaveApplication.id) == application.id,
                col(LeaveApplication.status) == previous.value,
            )
            .values(
                status=target.value,
                manager_comment=(
                    payload.manager_comment if payload.manager_comment is not None else application.manager_comment
                ),
                decided_by=auth.user_id if decided else None,
                decided_at=now if decided else None,
            )
            .execution_options(synchronize_session=False)
        )
        if result.rowcount != 1:  # type: ignore[attr-defined]
            raise InvalidStateError("Leave application was updated concurrently, reload and try again")

        if target == ApplicationStatus.APPROVED or previous == ApplicationStatus.APPROVED:
            row = await ledger.get_row(session, application.employee_id, application.category_id)
            if target == ApplicationStatus.APPROVED:
                await ledger.debit(session, row.id, application.requested_days)
            else:
                await ledger.credit(session, row.id, application.requested_days)

        await session.refresh(application)
        await write_audit_log(
            session,
            actor_id=auth.user_id,
            entity_type=AuditEntityType.APPLICATION,
            entity_id=application.id,
            action=_AUDIT_ACTIONS[target],
            before_json=before_dict,
            after_json=model_to_audit_dict(application),
        )
        await session.commit()
    except AppError:
        await session.rollback()
        raise

    await session.refresh(application)
    logger.info("Leave application %s moved %s -> %s by %s", application.id, previous, target, auth.user_id)

    notifier.notify(
        [application.employee_id],
        f"Your {category.name} leave request for {_format_period(application)} has been {target.value.lower()}.",
    )
    return _build_application_response(application)


async def delete_application(
    session: AsyncSession,
    auth: AuthContext,
    application_id: uuid.UUID,
) -> None:
    """Withdraw a pending application. Only the applicant or an admin may do so."""
    application = await _get_application_or_404(session, application_id)

    if auth.user_id != application.employee_id and not auth.is_admin:
        raise ForbiddenError("Not authorized to delete this leave application")
    if application.status != ApplicationStatus.PENDING.value:
        raise InvalidStateError("Only pending leave applications can be deleted")

    await write_audit_log(
        session,
        actor_id=auth.user_id,
        entity_type=AuditEntityType.APPLICATION,
        entity_id=application.id,
        action=AuditAction.DELETE,
        before_json=model_to_audit_dict(application),
    )
    await session.delete(application)
    await session.commit()


# ---------------------------------------------------------------------------
# Queries
# ---------------------------------------------------------------------------


async def get_application(session: AsyncSession, application_id: uuid.UUID) -> ApplicationResponse:
    """Get a single application by ID."""
    application = await _get_application_or_404(session, application_id)
    return _build_application_response(application)


async def list_applications(
    session: AsyncSession,
    status_filter: ApplicationStatus | None = None,
    employee_id: uuid.UUID | None = None,
    category_id: uuid.UUID | None = None,
    offset: int = 0,
    limit: int = 50,
) -> ApplicationListResponse:
    """List applications with optional filters, newest first."""
    base_filters = []
    if status_filter is not None:
        base_filters.append(col(LeaveApplication.status) == status_filter.value)
    if employee_id is not None:
        base_filters.append(col(LeaveApplication.employee_id) == employee_id)
    if category_id is not None:
        base_filters.append(col(LeaveApplication.category_id) == category_id)

    count_result = await session.execute(select(func.count()).select_from(LeaveApplication).where(*base_filters))
    total = count_result.scalar_one()

    result = await session.execute(
        select(LeaveApplication)
        .where(*base_filters)
        .order_by(col(LeaveApplication.created_at).desc())
        .offset(offset)
        .limit(limit)
    )
    return ApplicationListResponse(
        items=[_build_application_response(a) for a in result.scalars().all()],
        total=total,
    )
