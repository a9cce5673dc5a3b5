# ruff: noqa: B008, TC001, TC003
from __future__ import annotations

import uuid

from fastapi import APIRouter, Query, status

from leave_ledger.api.deps import AuthDep, DirectoryDep, ManagerDep, NotifierDep
from leave_ledger.db import SessionDep
from leave_ledger.exceptions import ForbiddenError
from leave_ledger.models.enums import ApplicationStatus
from leave_ledger.schemas.application import (
    ApplicationListResponse,
    ApplicationResponse,
    CreateApplicationPayload,
    UpdateStatusPayload,
)
from leave_ledger.services import application as application_service

applications_router = APIRouter(prefix="/applications", tags=["applications"])


@applications_router.post("", response_model=ApplicationResponse, status_code=status.HTTP_201_CREATED)
async def create_application(
    payload: CreateApplicationPayload,
    session: SessionDep,
    auth: AuthDep,
    directory: DirectoryDep,
    notifier: NotifierDep,
) -> ApplicationResponse:
    """Apply for leave as the authenticated employee."""
    return await application_service.create_application(session, directory, notifier, auth, payload)


@applications_router.get("", response_model=ApplicationListResponse)
async def list_applications(
    session: SessionDep,
    auth: AuthDep,
    status_filter: ApplicationStatus | None = Query(default=None, alias="status"),
    employee_id: uuid.UUID | None = Query(default=None),
    category_id: uuid.UUID | None = Query(default=None),
    offset: int = Query(default=0, ge=0),
    limit: int = Query(default=50, ge=1, le=100),
) -> ApplicationListResponse:
    """List leave applications. Employees only see their own."""
    if not auth.is_privileged:
        employee_id = auth.user_id
    return await application_service.list_applications(
        session, status_filter, employee_id, category_id, offset, limit
    )


@applications_router.get("/{application_id}", response_model=ApplicationResponse)
async def get_application(
    application_id: uuid.UUID,
    session: SessionDep,
    auth: AuthDep,
) -> ApplicationResponse:
    """Get a single leave application."""
    application = await application_service.get_application(session, application_id)
    if not auth.is_privileged and application.employee_id != auth.user_id:
        raise ForbiddenError("Not authorized to view this leave application")
    return application


@applications_router.patch("/{application_id}/status", response_model=ApplicationResponse)
async def update_application_status(
    application_id: uuid.UUID,
    payload: UpdateStatusPayload,
    session: SessionDep,
    auth: ManagerDep,
    notifier: NotifierDep,
) -> ApplicationResponse:
    """Approve, reject or reopen a leave application (manager or admin)."""
    return await application_service.update_status(session, notifier, auth, application_id, payload)


@applications_router.delete("/{application_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_application(
    application_id: uuid.UUID,
    session: SessionDep,
    auth: AuthDep,
) -> None:
    """Withdraw a pending leave application."""
    await application_service.delete_application(session, auth, application_id)
