"""Employee directory: the read-only view of the identity service this ledger depends on."""

# ruff: noqa: TC003
from __future__ import annotations

import asyncio
import logging
import time
import uuid
from collections.abc import Callable
from typing import Protocol, runtime_checkable

import httpx
from pydantic import BaseModel, TypeAdapter

from leave_ledger.models.enums import Role

logger = logging.getLogger(__name__)


class EmployeeInfo(BaseModel):
    """Employee metadata from the identity service."""

    id: uuid.UUID
    name: str
    department: str | None = None
    email: str
    role: str = Role.EMPLOYEE


_employee_list_adapter: TypeAdapter[list[EmployeeInfo]] = TypeAdapter(list[EmployeeInfo])


@runtime_checkable
class EmployeeDirectory(Protocol):
    """Interface for the employee directory."""

    async def lookup_by_id(self, employee_id: uuid.UUID) -> EmployeeInfo | None:
        """Fetch one employee. Returns None if not found."""
        ...

    async def lookup_all(self) -> list[EmployeeInfo]:
        """List every known employee."""
        ...

    async def refresh(self) -> None:
        """Reload the directory from its source."""
        ...


def notification_audience(employees: list[EmployeeInfo], department: str | None) -> list[uuid.UUID]:
    """Admins plus the managers of the given department."""
    return [
        e.id
        for e in employees
        if e.role == Role.ADMIN or (e.role == Role.MANAGER and department is not None and e.department == department)
    ]


class InMemoryEmployeeDirectory:
    """In-memory directory for development and tests."""

    def __init__(self) -> None:
        self._employees: dict[uuid.UUID, EmployeeInfo] = {}

    def seed(self, employee: EmployeeInfo) -> None:
        """Seed an employee."""
        self._employees[employee.id] = employee

    def remove(self, employee_id: uuid.UUID) -> None:
        self._employees.pop(employee_id, None)

    async def lookup_by_id(self, employee_id: uuid.UUID) -> EmployeeInfo | None:
        return self._employees.get(employee_id)

    async def lookup_all(self) -> list[EmployeeInfo]:
        return list(self._employees.values())

    async def refresh(self) -> None:
        return None


class EmployeeSource(Protocol):
    """Where a cached directory loads its snapshot from."""

    async def fetch_all(self) -> list[EmployeeInfo]: ...


class HttpEmployeeSource:
    """Loads users from the auth service (``GET {base_url}/auth/users``)."""

    def __init__(self, base_url: str, *, timeout: float = 10.0, transport: httpx.AsyncBaseTransport | None = None) -> None:
        self._base_url = base_url
        self._timeout = timeout
        self._transport = transport

    async def fetch_all(self) -> list[EmployeeInfo]:
        async with httpx.AsyncClient(base_url=self._base_url, timeout=self._timeout, transport=self._transport) as client:
            response = await client.get("auth/users")
            response.raise_for_status()
        payload = response.json()
        return _employee_list_adapter.validate_python(payload.get("users", []))


class CachedEmployeeDirectory:
    """Directory snapshot with an explicit staleness bound.

    Lookups refresh the snapshot when it is older than ``max_age_seconds``.
    A failed refresh keeps serving the previous snapshot, so callers may
    briefly see stale or missing employees.
    """

    def __init__(
        self,
        source: EmployeeSource,
        *,
        max_age_seconds: float = 900,
        monotonic: Callable[[], float] = time.monotonic,
    ) -> None:
        self._source = source
        self._max_age = max_age_seconds
        self._monotonic = monotonic
        self._employees: dict[uuid.UUID, EmployeeInfo] = {}
        self._loaded_at: float | None = None
        self._lock = asyncio.Lock()

    @property
    def is_stale(self) -> bool:
        if self._loaded_at is None:
            return True
        return self._monotonic() - self._loaded_at > self._max_age

    async def refresh(self) -> None:
        if self._lock.locked():
            # A refresh is already in flight; wait for it instead of issuing another.
            async with self._lock:
                return
        async with self._lock:
            try:
                employees = await self._source.fetch_all()
            except (httpx.HTTPError, ValueError):
                logger.exception("Failed to refresh employee directory; keeping %d cached entries", len(self._employees))
                return
            self._employees = {e.id: e for e in employees}
            self._loaded_at = self._monotonic()
            logger.info("Employee directory refreshed: %d employees cached", len(self._employees))

    async def _ensure_fresh(self) -> None:
        if self.is_stale:
            await self.refresh()

    async def lookup_by_id(self, employee_id: uuid.UUID) -> EmployeeInfo | None:
        await self._ensure_fresh()
        return self._employees.get(employee_id)

    async def lookup_all(self) -> list[EmployeeInfo]:
        await self._ensure_fresh()
        return list(self._employees.values())


async def resolve_employee(directory: EmployeeDirectory, employee_id: uuid.UUID) -> EmployeeInfo | None:
    """Look up an employee, forcing one refresh on a miss."""
    employee = await directory.lookup_by_id(employee_id)
    if employee is None:
        await directory.refresh()
        employee = await directory.lookup_by_id(employee_id)
    return employee
