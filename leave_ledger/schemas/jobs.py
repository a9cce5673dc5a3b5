from __future__ import annotations

from datetime import datetime

from pydantic import BaseModel


class JobSummaryResponse(BaseModel):
    """Outcome of one job invocation."""

    job: str
    invoked_at: datetime
    processed: int
    skipped: int
    errors: int
    deferred: int
