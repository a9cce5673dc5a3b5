# ruff: noqa: TC003
from __future__ import annotations

from datetime import datetime

import sqlalchemy as sa
from sqlmodel import Field

from leave_ledger.models.base import UUIDBase, _now_utc


class JobRun(UUIDBase, table=True):
    """A scheduled job's run for one calendar period (``accrual`` for ``2026-01``).

    ``(job, period)`` is unique, so a restarted worker finds the periods it
    already handled and does not credit them twice. ``finished_at`` stays
    NULL when the run died before writing its summary.
    """

    __tablename__ = "job_run"
    __table_args__ = (sa.UniqueConstraint("job", "period", name="uq_job_run_job_period"),)

    job: str = Field(max_length=50)
    period: str = Field(max_length=20)
    started_at: datetime = Field(
        default_factory=_now_utc,
        sa_type=sa.DateTime(timezone=True),  # ty: ignore[invalid-argument-type]
        sa_column_kwargs={"server_default": sa.func.now()},
    )
    finished_at: datetime | None = Field(
        default=None,
        sa_type=sa.DateTime(timezone=True),  # ty: ignore[invalid-argument-type]
    )
    processed: int = Field(default=0, sa_column_kwargs={"server_default": "0"})
    skipped: int = Field(default=0, sa_column_kwargs={"server_default": "0"})
    errors: int = Field(default=0, sa_column_kwargs={"server_default": "0"})
    deferred: int = Field(default=0, sa_column_kwargs={"server_default": "0"})
