# ruff: noqa: B008, TC001, TC003
from __future__ import annotations

import uuid

from fastapi import APIRouter, Query

from leave_ledger.api.deps import AuthDep
from leave_ledger.db import SessionDep
from leave_ledger.schemas.notification import NotificationListResponse, NotificationResponse
from leave_ledger.services import notification as notification_service

notifications_router = APIRouter(prefix="/notifications", tags=["notifications"])


@notifications_router.get("", response_model=NotificationListResponse)
async def list_notifications(
    session: SessionDep,
    auth: AuthDep,
    offset: int = Query(default=0, ge=0),
    limit: int = Query(default=50, ge=1, le=100),
) -> NotificationListResponse:
    """Notifications of the authenticated user, newest first."""
    return await notification_service.list_notifications(session, auth.user_id, offset, limit)


@notifications_router.post("/read-all", response_model=NotificationListResponse)
async def mark_all_read(session: SessionDep, auth: AuthDep) -> NotificationListResponse:
    """Mark every notification of the authenticated user as read."""
    return await notification_service.mark_all_read(session, auth.user_id)


@notifications_router.post("/{notification_id}/read", response_model=NotificationResponse)
async def mark_read(notification_id: uuid.UUID, session: SessionDep, auth: AuthDep) -> NotificationResponse:
    """Mark one notification as read."""
    return await notification_service.mark_read(session, auth.user_id, notification_id)
