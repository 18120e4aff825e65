# ruff: noqa: B008, TC003
from __future__ import annotations

import uuid
from typing import Annotated

from fastapi import Depends, Header, Request

from leave_tracker.exceptions import AuthorizationError
from leave_tracker.models.enums import UserRole
from leave_tracker.schemas.auth import Principal
from leave_tracker.services.container import LeaveServices


async def get_principal(
    x_user_id: uuid.UUID = Header(),
    x_role: UserRole = Header(default=UserRole.MEMBER),
    x_user_email: str | None = Header(default=None),
    x_user_name: str | None = Header(default=None),
) -> Principal:
    """Extract the acting principal from the identity headers."""
    return Principal(id=x_user_id, role=x_role, email=x_user_email, name=x_user_name)


PrincipalDep = Annotated[Principal, Depends(get_principal)]


async def require_admin(
    principal: PrincipalDep,
) -> Principal:
    """Require admin role for the request."""
    if not principal.is_admin:
        raise AuthorizationError()
    return principal


AdminDep = Annotated[Principal, Depends(require_admin)]


def get_services(request: Request) -> LeaveServices:
    """Return the services built for this application instance."""
    return request.app.state.services


ServicesDep = Annotated[LeaveServices, Depends(get_services)]
