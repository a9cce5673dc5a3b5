# ruff: noqa: TC003
from __future__ import annotations

import uuid

import sqlalchemy as sa
from sqlmodel import Field

from leave_ledger.models.base import TimestampMixin, UUIDBase


class Notification(UUIDBase, TimestampMixin, table=True):
    """In-app copy of a message delivered to a user."""

    __tablename__ = "notification"
    __table_args__ = (sa.Index("ix_notification_user_read", "user_id", "read"),)

    user_id: uuid.UUID = Field(index=True)
    message: str
    read: bool = Field(default=False, sa_column_kwargs={"server_default": sa.false()})
