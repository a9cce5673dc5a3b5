"""Shared runner for the scheduled ledger jobs.

A job selects its target ids once, then processes every target in its own
session and transaction, up to ``concurrency`` at a time. A failing target is
logged and counted; it never cancels its siblings. When a timeout is given,
targets not yet started at the deadline are left alone and reported as
``deferred``; targets already in progress run to completion.
"""

# ruff: noqa: TC003
from __future__ import annotations

import abc
import asyncio
import logging
import uuid
from collections.abc import Sequence
from dataclasses import dataclass, field
from datetime import UTC, datetime
from typing import TYPE_CHECKING, ClassVar

from leave_ledger.schemas.jobs import JobSummaryResponse

if TYPE_CHECKING:
    from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

    from leave_ledger.services.notification import Notifier

logger = logging.getLogger(__name__)

DEFAULT_CONCURRENCY = 8


# ---------------------------------------------------------------------------
# Result dataclasses
# ---------------------------------------------------------------------------


@dataclass
class JobSummary:
    """Outcome of one job invocation."""

    job: str
    invoked_at: datetime
    processed: int = 0
    skipped: int = 0
    errors: int = 0
    deferred: int = 0

    def to_response(self) -> JobSummaryResponse:
        return JobSummaryResponse(
            job=self.job,
            invoked_at=self.invoked_at,
            processed=self.processed,
            skipped=self.skipped,
            errors=self.errors,
            deferred=self.deferred,
        )


@dataclass
class Outbox:
    """Notifications produced by one target, sent only after its commit."""

    messages: list[tuple[Sequence[uuid.UUID], str]] = field(default_factory=list)

    def add(self, recipient_ids: Sequence[uuid.UUID], message: str) -> None:
        self.messages.append((recipient_ids, message))


# ---------------------------------------------------------------------------
# Job base class
# ---------------------------------------------------------------------------


class LedgerJob(abc.ABC):
    """Batch job over independent targets with bounded parallelism."""

    name: ClassVar[str]

    def __init__(
        self,
        session_factory: async_sessionmaker[AsyncSession],
        notifier: Notifier,
        *,
        concurrency: int = DEFAULT_CONCURRENCY,
    ) -> None:
        if concurrency < 1:
            msg = f"concurrency must be at least 1, got {concurrency}"
            raise ValueError(msg)
        self._session_factory = session_factory
        self._notifier = notifier
        self._concurrency = concurrency

    @abc.abstractmethod
    async def select_targets(self, session: AsyncSession, now: datetime) -> list[uuid.UUID]:
        """Ids of everything this invocation should look at."""

    @abc.abstractmethod
    async def process(self, session: AsyncSession, target_id: uuid.UUID, now: datetime) -> Outbox | None:
        """Apply the job to one target inside ``session``.

        Return None when the target turned out to need no work; the runner
        counts it as skipped. The runner commits.
        """

    async def invoke(self, now: datetime | None = None, *, timeout: float | None = None) -> JobSummary:
        """Run the job once over every target and return its summary."""
        now = now or datetime.now(UTC)
        summary = JobSummary(job=self.name, invoked_at=now)

        async with self._session_factory() as session:
            targets = await self.select_targets(session, now)

        loop = asyncio.get_running_loop()
        deadline = loop.time() + timeout if timeout is not None else None
        semaphore = asyncio.Semaphore(self._concurrency)

        async def run_one(target_id: uuid.UUID) -> None:
            async with semaphore:
                if deadline is not None and loop.time() >= deadline:
                    summary.deferred += 1
                    return
                await self._run_target(target_id, now, summary)

        await asyncio.gather(*(run_one(t) for t in targets))

        logger.info(
            "%s job complete: processed=%d skipped=%d errors=%d deferred=%d",
            self.name,
            summary.processed,
            summary.skipped,
            summary.errors,
            summary.deferred,
        )
        return summary

    async def _run_target(self, target_id: uuid.UUID, now: datetime, summary: JobSummary) -> None:
        try:
            async with self._session_factory() as session:
                outbox = await self.process(session, target_id, now)
                await session.commit()
        except Exception:
            logger.exception("%s job failed for target %s", self.name, target_id)
            summary.errors += 1
            return

        if outbox is None:
            summary.skipped += 1
            return

        summary.processed += 1
        for recipient_ids, message in outbox.messages:
            self._notifier.notify(recipient_ids, message)
