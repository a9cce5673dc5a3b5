# ruff: noqa: TC003
from __future__ import annotations

import uuid

from pydantic import BaseModel

from leave_ledger.models.enums import Role


class AuthContext(BaseModel):
    """Caller identity taken from the ``X-User-Id`` and ``X-Role`` headers.

    The role only gates the admin and manager endpoints. Who manages whom is
    still decided by the employee directory.
    """

    user_id: uuid.UUID
    role: Role = Role.EMPLOYEE

    @property
    def is_admin(self) -> bool:
        return self.role == Role.ADMIN

    @property
    def is_privileged(self) -> bool:
        """Managers and admins may act on other employees' leave."""
        return self.role in (Role.MANAGER, Role.ADMIN)
