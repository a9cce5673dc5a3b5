# ruff: noqa: B008, TC001, TC003
"""Admin triggers for the scheduled ledger jobs."""

from __future__ import annotations

from datetime import datetime

from fastapi import APIRouter, Query

from leave_ledger.api.deps import AdminDep, DirectoryDep, NotifierDep
from leave_ledger.config import get_settings
from leave_ledger.db import SessionFactoryDep
from leave_ledger.schemas.jobs import JobSummaryResponse
from leave_ledger.services.schedule import JobName, build_job

jobs_router = APIRouter(prefix="/jobs", tags=["jobs"])


@jobs_router.post("/{job_name}/trigger", response_model=JobSummaryResponse)
async def trigger_job(
    job_name: JobName,
    session_factory: SessionFactoryDep,
    auth: AdminDep,
    directory: DirectoryDep,
    notifier: NotifierDep,
    now: datetime | None = Query(default=None),
) -> JobSummaryResponse:
    """Run one job immediately (admin only).

    ``now`` overrides the invocation time, which only matters for the
    reminder window. Useful for backfills and testing.
    """
    settings = get_settings()
    job = build_job(job_name, session_factory, notifier, directory, settings)
    summary = await job.invoke(now, timeout=settings.job_timeout_seconds)
    return summary.to_response()
