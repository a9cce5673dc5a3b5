# ruff: noqa: TC003
from __future__ import annotations

import uuid
from datetime import datetime
from decimal import Decimal
from typing import Self

from pydantic import BaseModel, Field, model_validator

# ---------------------------------------------------------------------------
# Balance response schemas
# ---------------------------------------------------------------------------


class BalanceResponse(BaseModel):
    """One ledger row."""

    id: uuid.UUID
    employee_id: uuid.UUID
    category_id: uuid.UUID
    category_name: str
    balance: Decimal
    carried_over: Decimal
    excess_days: Decimal
    version: int
    updated_at: datetime | None


class BalanceListResponse(BaseModel):
    """Ledger rows of one employee."""

    items: list[BalanceResponse]
    total: int


class EmployeeBalances(BaseModel):
    """Ledger rows grouped under the directory record of their employee."""

    employee_id: uuid.UUID
    name: str
    department: str | None
    email: str
    items: list[BalanceResponse]


class AllBalancesResponse(BaseModel):
    """Ledger rows of every employee known to the directory."""

    items: list[EmployeeBalances]
    total: int


# ---------------------------------------------------------------------------
# Admin payloads
# ---------------------------------------------------------------------------


class AdjustBalanceRequest(BaseModel):
    """Absolute admin correction of a ledger row."""

    balance: Decimal | None = Field(default=None, ge=0, max_digits=10, decimal_places=2)
    carried_over: Decimal | None = Field(default=None, ge=0, max_digits=10, decimal_places=2)

    @model_validator(mode="after")
    def _require_one_field(self) -> Self:
        if self.balance is None and self.carried_over is None:
            msg = "Either balance or carried_over must be provided"
            raise ValueError(msg)
        return self


class InitializeBalancesRequest(BaseModel):
    """Request body for seeding the ledger rows of a newly onboarded employee."""

    employee_id: uuid.UUID
