# ruff: noqa: B008, TC003
from __future__ import annotations

import uuid
from typing import Annotated

from fastapi import Depends, Header, Request

from leave_ledger.exceptions import ForbiddenError
from leave_ledger.models.enums import Role
from leave_ledger.schemas.auth import AuthContext
from leave_ledger.services.directory import EmployeeDirectory
from leave_ledger.services.notification import Notifier


async def get_auth_context(
    x_user_id: uuid.UUID = Header(),
    x_role: Role = Header(default=Role.EMPLOYEE),
) -> AuthContext:
    """Extract dev auth context from request headers."""
    return AuthContext(user_id=x_user_id, role=x_role)


AuthDep = Annotated[AuthContext, Depends(get_auth_context)]


async def require_admin(
    auth: AuthDep,
) -> AuthContext:
    """Require admin role for the request."""
    if not auth.is_admin:
        raise ForbiddenError("Admin access required")
    return auth


AdminDep = Annotated[AuthContext, Depends(require_admin)]


async def require_manager(
    auth: AuthDep,
) -> AuthContext:
    """Require manager or admin role for the request."""
    if not auth.is_privileged:
        raise ForbiddenError("Manager or admin access required")
    return auth


ManagerDep = Annotated[AuthContext, Depends(require_manager)]


def get_directory(request: Request) -> EmployeeDirectory:
    """The employee directory owned by the running application."""
    return request.app.state.directory


DirectoryDep = Annotated[EmployeeDirectory, Depends(get_directory)]


def get_notifier(request: Request) -> Notifier:
    """The notifier owned by the running application."""
    return request.app.state.notifier


NotifierDep = Annotated[Notifier, Depends(get_notifier)]
