# ruff: noqa: TC003
from __future__ import annotations

import uuid
from decimal import Decimal

import sqlalchemy as sa
from sqlmodel import Field

from leave_ledger.models.base import UpdatedAtMixin, UUIDBase, day_amount_column


class LeaveBalance(UUIDBase, UpdatedAtMixin, table=True):
    """Ledger row: the usable balance of one employee for one leave category.

    ``version`` is bumped by every write so absolute updates can use
    compare-and-swap.
    """

    __tablename__ = "leave_balance"
    __table_args__ = (sa.UniqueConstraint("employee_id", "category_id", name="uq_leave_balance_employee_category"),)

    employee_id: uuid.UUID = Field(index=True)
    category_id: uuid.UUID = Field(
        sa_column=sa.Column(
            sa.Uuid, sa.ForeignKey("leave_category.id", ondelete="RESTRICT"), nullable=False, index=True
        ),
    )
    balance: Decimal = Field(default=Decimal("0"), sa_column=day_amount_column())
    carried_over: Decimal = Field(default=Decimal("0"), sa_column=day_amount_column())
    excess_days: Decimal = Field(default=Decimal("0"), sa_column=day_amount_column())
    version: int = Field(default=1, sa_column_kwargs={"server_default": "1"})
