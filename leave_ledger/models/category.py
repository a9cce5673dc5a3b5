# ruff: noqa: TC003
from __future__ import annotations

from decimal import Decimal

import sqlalchemy as sa
from sqlmodel import Field

from leave_ledger.models.base import TimestampMixin, UUIDBase, day_amount_column


class LeaveCategory(UUIDBase, TimestampMixin, table=True):
    """A leave type (e.g. Annual, Sick) and the rules its ledger rows follow."""

    __tablename__ = "leave_category"
    __table_args__ = (sa.UniqueConstraint("name", name="uq_leave_category_name"),)

    name: str = Field(max_length=255)
    default_annual_allocation: Decimal = Field(default=Decimal("0"), sa_column=day_amount_column())
    accrual_rate: Decimal = Field(default=Decimal("0"), sa_column=day_amount_column())
    max_carryover_days: int = Field(default=0, sa_column_kwargs={"server_default": "0"})
    active: bool = Field(default=True, sa_column_kwargs={"server_default": sa.true()})
