"""Shared FastAPI dependencies for the caller's family context and role gating.

Authentication happens upstream. The gateway forwards the already verified
family membership as ``X-Family-ID``, ``X-User-ID`` and ``X-Family-Role``
headers; this module only turns them into a ``FamilyContext`` and checks the
minimum role an endpoint needs.
"""

import secrets
from dataclasses import dataclass
from enum import Enum
from typing import Callable, Optional
from uuid import UUID

from fastapi import Depends, Header, HTTPException, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer

from budget_engine.config import settings


class FamilyRole(str, Enum):
    """Family roles, lowest privilege first."""

    VIEWER = "viewer"
    MEMBER = "member"
    ADMIN = "admin"

    @property
    def rank(self) -> int:
        return list(FamilyRole).index(self)


@dataclass(frozen=True)
class FamilyContext:
    """An already authorized caller acting inside one family."""

    family_id: UUID
    user_id: Optional[UUID]
    role: FamilyRole


async def get_family_context(
    x_family_id: UUID = Header(..., description="Family the caller acts in"),
    x_user_id: Optional[UUID] = Header(None, description="Acting user"),
    x_family_role: str = Header(FamilyRole.VIEWER.value, description="Caller's family role"),
) -> FamilyContext:
    """Build the family context from gateway headers.

    Raises HTTPException 403 if the role is unknown.
    """
    try:
        role = FamilyRole(x_family_role.lower())
    except ValueError:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail=f"Unknown family role '{x_family_role}'",
        )
    return FamilyContext(family_id=x_family_id, user_id=x_user_id, role=role)


def require_role(minimum: FamilyRole) -> Callable:
    """Dependency factory admitting callers whose role is at least ``minimum``."""

    async def checker(context: FamilyContext = Depends(get_family_context)) -> FamilyContext:
        if context.role.rank < minimum.rank:
            raise HTTPException(
                status_code=status.HTTP_403_FORBIDDEN,
                detail=f"This action requires the {minimum.value} role",
            )
        return context

    return checker


cron_bearer = HTTPBearer(auto_error=False)


async def verify_cron_secret(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(cron_bearer),
) -> None:
    """Admit the external scheduler presenting ``Bearer <cron_secret>``.

    Raises HTTPException 401 otherwise.
    """
    if credentials is None or not secrets.compare_digest(
        credentials.credentials, settings.cron_secret
    ):
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid cron credentials",
            headers={"WWW-Authenticate": "Bearer"},
        )
