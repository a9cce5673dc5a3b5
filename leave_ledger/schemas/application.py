# ruff: noqa: TC001, TC003
from __future__ import annotations

import uuid
from datetime import date, datetime
from typing import Self

from pydantic import BaseModel, Field, model_validator

from leave_ledger.models.enums import ApplicationStatus

# ---------------------------------------------------------------------------
# Request payloads
# ---------------------------------------------------------------------------


class CreateApplicationPayload(BaseModel):
    """Request body for applying for leave."""

    category_id: uuid.UUID
    start_date: date
    end_date: date
    reason: str | None = Field(default=None, max_length=2000)
    document_url: str | None = Field(default=None, max_length=2048, pattern=r"^https?://")

    @model_validator(mode="after")
    def _validate_dates(self) -> Self:
        if self.end_date < self.start_date:
            msg = "end_date must be on or after start_date"
            raise ValueError(msg)
        return self


class UpdateStatusPayload(BaseModel):
    """Request body for a manager decision."""

    status: ApplicationStatus
    manager_comment: str | None = Field(default=None, max_length=1000)


# ---------------------------------------------------------------------------
# Response schemas
# ---------------------------------------------------------------------------


class ApplicationResponse(BaseModel):
    """A single leave application."""

    id: uuid.UUID
    employee_id: uuid.UUID
    category_id: uuid.UUID
    start_date: date
    end_date: date
    requested_days: int
    reason: str | None
    document_url: str | None
    status: ApplicationStatus
    manager_comment: str | None
    decided_by: uuid.UUID | None
    decided_at: datetime | None
    created_at: datetime


class ApplicationListResponse(BaseModel):
    """Paginated list of leave applications."""

    items: list[ApplicationResponse]
    total: int
