# ruff: noqa: TC003
from __future__ import annotations

import uuid
from datetime import datetime

from pydantic import BaseModel


class NotificationResponse(BaseModel):
    """A notification addressed to the current user."""

    id: uuid.UUID
    message: str
    read: bool
    created_at: datetime


class NotificationListResponse(BaseModel):
    """Notifications of the current user, newest first."""

    items: list[NotificationResponse]
    total: int
    unread: int
