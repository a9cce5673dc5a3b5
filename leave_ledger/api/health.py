import logging
from typing import Literal

from fastapi import APIRouter
from pydantic import BaseModel
from sqlalchemy import text

from leave_ledger.api.deps import DirectoryDep
from leave_ledger.config import get_settings
from leave_ledger.db import SessionDep
from leave_ledger.services.directory import CachedEmployeeDirectory

logger = logging.getLogger(__name__)

router = APIRouter(tags=["health"])


class HealthResponse(BaseModel):
    """Service health.

    ``status`` is degraded only when the ledger database is unreachable; a
    stale directory snapshot is reported but still serves lookups.
    """

    status: Literal["ok", "degraded"]
    database: Literal["ok", "unreachable"]
    directory: Literal["fresh", "stale", "static"]
    version: str
    environment: str


def _directory_state(directory: object) -> Literal["fresh", "stale", "static"]:
    if not isinstance(directory, CachedEmployeeDirectory):
        return "static"
    return "stale" if directory.is_stale else "fresh"


@router.get("/health", response_model=HealthResponse)
async def health(session: SessionDep, directory: DirectoryDep) -> HealthResponse:
    """Report database reachability and directory freshness."""
    settings = get_settings()
    database: Literal["ok", "unreachable"] = "ok"

    try:
        await session.execute(text("SELECT 1"))
    except Exception:
        logger.exception("Health check: ledger database unreachable")
        database = "unreachable"

    return HealthResponse(
        status="ok" if database == "ok" else "degraded",
        database=database,
        directory=_directory_state(directory),
        version=settings.app_version,
        environment=settings.environment,
    )
