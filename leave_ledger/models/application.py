# ruff: noqa: TC003
from __future__ import annotations

import uuid
from datetime import date, datetime

import sqlalchemy as sa
from sqlmodel import Field

from leave_ledger.models.base import TimestampMixin, UpdatedAtMixin, UUIDBase
from leave_ledger.models.enums import ApplicationStatus


class LeaveApplication(UUIDBase, TimestampMixin, UpdatedAtMixin, table=True):
    """An employee's leave application and its approval state."""

    __tablename__ = "leave_application"
    __table_args__ = (sa.Index("ix_leave_application_employee_status", "employee_id", "status"),)

    employee_id: uuid.UUID = Field(index=True)
    category_id: uuid.UUID = Field(
        sa_column=sa.Column(
            sa.Uuid, sa.ForeignKey("leave_category.id", ondelete="RESTRICT"), nullable=False, index=True
        ),
    )
    start_date: date
    end_date: date
    requested_days: int
    reason: str | None = None
    document_url: str | None = Field(default=None, max_length=2048)
    status: str = Field(
        default=ApplicationStatus.PENDING, max_length=50, index=True, sa_column_kwargs={"server_default": "PENDING"}
    )
    manager_comment: str | None = None
    decided_by: uuid.UUID | None = None
    decided_at: datetime | None = Field(default=None, sa_type=sa.DateTime(timezone=True))  # ty: ignore[invalid-argument-type]
