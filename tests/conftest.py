from __future__ import annotations

import uuid
from collections.abc import Iterable
from typing import TYPE_CHECKING

import pytest
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine

from leave_ledger.api.deps import get_directory, get_notifier
from leave_ledger.db import engine_options, get_session, get_session_factory
from leave_ledger.main import app
from leave_ledger.models import SQLModel
from leave_ledger.services.directory import InMemoryEmployeeDirectory

if TYPE_CHECKING:
    from collections.abc import AsyncIterator
    from pathlib import Path

    from sqlalchemy.ext.asyncio import AsyncEngine


class RecordingNotifier:
    """Notifier that records every call instead of delivering anything."""

    def __init__(self) -> None:
        self.sent: list[tuple[list[uuid.UUID], str]] = []
        self.approvers: list[tuple[str | None, str]] = []

    def notify(self, recipient_ids: Iterable[uuid.UUID], message: str) -> None:
        self.sent.append((list(recipient_ids), message))

    def notify_approvers(self, department: str | None, message: str) -> None:
        self.approvers.append((department, message))

    def messages_for(self, recipient_id: uuid.UUID) -> list[str]:
        return [message for recipients, message in self.sent if recipient_id in recipients]


@pytest.fixture
async def engine(tmp_path: Path) -> AsyncIterator[AsyncEngine]:
    """A throwaway SQLite database file per test.

    A file (rather than ``:memory:``) lets the per-row sessions of the jobs
    and the notification bridge see each other's committed data.
    """
    url = f"sqlite+aiosqlite:///{tmp_path / 'ledger.db'}"
    _engine = create_async_engine(url, **engine_options(url))
    async with _engine.begin() as conn:
        await conn.run_sync(SQLModel.metadata.create_all)
    yield _engine
    await _engine.dispose()


@pytest.fixture
def session_factory(engine: AsyncEngine) -> async_sessionmaker[AsyncSession]:
    return async_sessionmaker(engine, expire_on_commit=False)


@pytest.fixture
async def db_session(session_factory: async_sessionmaker[AsyncSession]) -> AsyncIterator[AsyncSession]:
    async with session_factory() as session:
        yield session


@pytest.fixture
def directory() -> InMemoryEmployeeDirectory:
    """Empty in-memory employee directory; test modules seed it."""
    return InMemoryEmployeeDirectory()


@pytest.fixture
def notifier() -> RecordingNotifier:
    return RecordingNotifier()


@pytest.fixture
async def async_client(
    session_factory: async_sessionmaker[AsyncSession],
    directory: InMemoryEmployeeDirectory,
    notifier: RecordingNotifier,
) -> AsyncIterator[AsyncClient]:
    """Async HTTP client with the database, directory and notifier dependencies overridden."""

    async def _override_get_session() -> AsyncIterator[AsyncSession]:
        async with session_factory() as session:
            yield session

    app.dependency_overrides[get_session] = _override_get_session
    app.dependency_overrides[get_session_factory] = lambda: session_factory
    app.dependency_overrides[get_directory] = lambda: directory
    app.dependency_overrides[get_notifier] = lambda: notifier
    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as client:
        yield client
    app.dependency_overrides.clear()
