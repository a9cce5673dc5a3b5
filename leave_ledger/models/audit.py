# ruff: noqa: TC003
from __future__ import annotations

import uuid
from datetime import datetime
from typing import Any

import sqlalchemy as sa
from sqlmodel import Field

from leave_ledger.models.base import UUIDBase, _now_utc
from leave_ledger.models.enums import AuditAction, AuditEntityType


class AuditLog(UUIDBase, table=True):
    """Before and after snapshot of one change to a balance, application or category.

    Scheduled jobs write under the nil-UUID system actor. Rows are insert-only.
    """

    __tablename__ = "audit_log"
    __table_args__ = (sa.Index("ix_audit_entity", "entity_type", "entity_id"),)

    actor_id: uuid.UUID
    entity_type: AuditEntityType = Field(sa_type=sa.String(length=50))  # ty: ignore[invalid-argument-type]
    entity_id: uuid.UUID
    action: AuditAction = Field(sa_type=sa.String(length=50))  # ty: ignore[invalid-argument-type]
    before_json: dict[str, Any] | None = Field(default=None, sa_type=sa.JSON)
    after_json: dict[str, Any] | None = Field(default=None, sa_type=sa.JSON)
    created_at: datetime = Field(
        default_factory=_now_utc,
        index=True,
        sa_type=sa.DateTime(timezone=True),  # ty: ignore[invalid-argument-type]
        sa_column_kwargs={"server_default": sa.func.now()},
    )
