"""
Request dependencies: database session, authenticated user, tenant context
and permission/feature guards.

Tenant routes declare what they need in one place::

    ctx: TenantContext = Depends(require_tenant("donors:write", feature="donors_manage"))
"""

from __future__ import annotations

import hmac
from dataclasses import dataclass
from typing import Annotated, Callable, Optional

from fastapi import Depends, HTTPException, Request, status
from sqlalchemy.ext.asyncio import AsyncSession

from binevo.billing.plans import effective_plan, has_feature, has_permission
from binevo.core.database import get_session
from binevo.core.database.entities import Ngo, User
from binevo.core.models.domain import UserRole
from binevo.server.core import constant
from binevo.server.core.config import settings
from binevo.server.core.security import decode_access_token

SessionDep = Annotated[AsyncSession, Depends(get_session)]


def client_ip(request: Request) -> Optional[str]:
    forwarded = request.headers.get("x-forwarded-for")
    if forwarded:
        return forwarded.split(",")[0].strip()
    return request.client.host if request.client else None


def bearer_token(request: Request) -> Optional[str]:
    header = request.headers.get("authorization", "")
    scheme, _, token = header.partition(" ")
    if scheme.lower() == "bearer" and token.strip():
        return token.strip()
    return None


async def get_current_user(request: Request, session: SessionDep) -> User:
    """Resolve the session token (Bearer header or cookie) to an active user."""
    token = bearer_token(request) or request.cookies.get(constant.SESSION_COOKIE_NAME)
    if not token:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Not authenticated")
    claims = decode_access_token(token)
    if not claims or not claims.get("sub"):
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Invalid or expired session")

    user = await session.get(User, claims["sub"])
    if user is None or not user.is_active:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="User not found or inactive")
    request.state.token_claims = claims
    return user


CurrentUser = Annotated[User, Depends(get_current_user)]


@dataclass
class TenantContext:
    user: User
    ngo: Ngo
    plan: str

    @property
    def ngo_id(self) -> str:
        return self.ngo.id

    @property
    def user_id(self) -> str:
        return self.user.id


async def get_tenant_context(user: CurrentUser, session: SessionDep) -> TenantContext:
    if not user.ngo_id:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="No NGO associated")
    ngo = await session.get(Ngo, user.ngo_id)
    if ngo is None:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="No NGO associated")
    return TenantContext(user=user, ngo=ngo, plan=effective_plan(ngo, user.role))


Tenant = Annotated[TenantContext, Depends(get_tenant_context)]


def require_tenant(permission: Optional[str] = None, *, feature: Optional[str] = None) -> Callable:
    """Dependency factory checking a role permission and/or a plan feature."""

    async def dependency(ctx: Tenant) -> TenantContext:
        if permission and not has_permission(ctx.user.role, permission):
            raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Insufficient permissions")
        if feature and not has_feature(ctx.plan, feature, ctx.user.role):
            raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Feature not available on your plan")
        return ctx

    return dependency


async def require_super_admin(user: CurrentUser) -> User:
    if user.role != UserRole.SUPER_ADMIN.value:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Super admin access required")
    return user


SuperAdmin = Annotated[User, Depends(require_super_admin)]


async def verify_cron_secret(request: Request) -> None:
    """Accept ``?key=``, ``?secret=`` or a Bearer token; open when no secret is set."""
    expected = settings.cron_secret
    if not expected:
        return
    supplied = request.query_params.get("key") or request.query_params.get("secret") or bearer_token(request)
    if not supplied or not hmac.compare_digest(supplied, expected):
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Invalid cron secret")
