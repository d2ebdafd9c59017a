# ruff: noqa: B008, TC003
from __future__ import annotations

import uuid
from typing import Annotated

from fastapi import Depends, Header

from leave_ledger.config import get_settings
from leave_ledger.exceptions import NotAuthorized
from leave_ledger.schemas.auth import AuthContext


async def get_auth_context(
    x_user_id: uuid.UUID = Header(),
    x_role: str = Header(default="EMPLOYEE"),
) -> AuthContext:
    """Extract dev auth context from request headers."""
    return AuthContext(user_id=x_user_id, role=x_role)


AuthDep = Annotated[AuthContext, Depends(get_auth_context)]


async def require_admin(
    auth: AuthDep,
) -> AuthContext:
    """Require an administrative role for the request."""
    if auth.role not in get_settings().admin_roles:
        raise NotAuthorized("Admin access required")
    return auth


AdminDep = Annotated[AuthContext, Depends(require_admin)]


def ensure_self_or_admin(auth: AuthContext, employee_id: uuid.UUID) -> None:
    """Employees may only read their own data; admins may read anyone's."""
    if employee_id != auth.user_id and auth.role not in get_settings().admin_roles:
        raise NotAuthorized("Cannot access another employee's leave data")
