# ruff: noqa: TC003
from __future__ import annotations

import uuid
from datetime import datetime
from decimal import Decimal
from typing import Self

from pydantic import BaseModel, Field, model_validator

# ---------------------------------------------------------------------------
# Request payloads
# ---------------------------------------------------------------------------


class CreateCategoryRequest(BaseModel):
    """Request body for creating a leave category."""

    name: str = Field(min_length=1, max_length=255)
    default_annual_allocation: Decimal = Field(ge=0, max_digits=10, decimal_places=2)
    accrual_rate: Decimal = Field(default=Decimal("0"), ge=0, max_digits=10, decimal_places=2)
    max_carryover_days: int = Field(default=0, ge=0)
    active: bool = True


class UpdateCategoryRequest(BaseModel):
    """Partial update of a leave category. At least one field is required."""

    name: str | None = Field(default=None, min_length=1, max_length=255)
    default_annual_allocation: Decimal | None = Field(default=None, ge=0, max_digits=10, decimal_places=2)
    accrual_rate: Decimal | None = Field(default=None, ge=0, max_digits=10, decimal_places=2)
    max_carryover_days: int | None = Field(default=None, ge=0)
    active: bool | None = None

    @model_validator(mode="after")
    def _require_one_field(self) -> Self:
        if not self.model_fields_set:
            msg = "At least one field must be provided for update"
            raise ValueError(msg)
        return self


# ---------------------------------------------------------------------------
# Response schemas
# ---------------------------------------------------------------------------


class CategoryResponse(BaseModel):
    """A leave category."""

    id: uuid.UUID
    name: str
    default_annual_allocation: Decimal
    accrual_rate: Decimal
    max_carryover_days: int
    active: bool
    created_at: datetime


class CategoryListResponse(BaseModel):
    """All leave categories ordered by name."""

    items: list[CategoryResponse]
    total: int
