"""
FastAPI dependencies: the session factory and the authenticated caller.

Authentication itself happens upstream; the gateway forwards the verified
identity in the ``X-User-Id`` and ``X-User-Role`` headers.
"""

from __future__ import annotations

from collections.abc import Awaitable, Callable
from dataclasses import dataclass

from fastapi import Depends, Header
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from ..db import repo
from ..db.models import Role
from ..errors import Forbidden, Unauthorized


def get_sessionmaker() -> async_sessionmaker[AsyncSession]:
    return repo.get_session()


@dataclass(frozen=True)
class Caller:
    user_id: int
    role: Role


async def get_caller(
    x_user_id: str | None = Header(None),
    x_user_role: str | None = Header(None),
) -> Caller:
    if not x_user_id or not x_user_role:
        raise Unauthorized("Authentication required")
    try:
        user_id = int(x_user_id)
        role = Role(x_user_role.strip().upper())
    except ValueError as e:
        raise Unauthorized("Invalid caller identity") from e
    return Caller(user_id=user_id, role=role)


def require_roles(*roles: Role) -> Callable[..., Awaitable[Caller]]:
    """Dependency factory rejecting callers whose role is not in ``roles``."""

    async def _check(caller: Caller = Depends(get_caller)) -> Caller:
        if caller.role not in roles:
            raise Forbidden("Insufficient permissions")
        return caller

    return _check
