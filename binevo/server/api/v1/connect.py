"""
Stripe Connect Endpoints.

Onboarding of the NGO's Express account, its status and the Express
dashboard login link.
"""

from __future__ import annotations

from fastapi import APIRouter, Depends, Request
from sqlalchemy.ext.asyncio import AsyncSession

from binevo.core.audit import record_audit
from binevo.core.database import get_session
from binevo.core.models.io.billing import ConnectStatusRead, LinkResponse
from binevo.payments.connect import create_dashboard_link, create_onboarding_link, refresh_account_status
from binevo.server.services.deps import TenantContext, client_ip, require_tenant

router = APIRouter(tags=["connect"])


def to_status(ctx: TenantContext) -> ConnectStatusRead:
    ngo = ctx.ngo
    return ConnectStatusRead(
        stripe_connect_id=ngo.stripe_connect_id,
        status=ngo.stripe_connect_status,
        onboarded=ngo.stripe_connect_onboarded,
        charges_enabled=ngo.stripe_charges_enabled,
        payouts_enabled=ngo.stripe_payouts_enabled,
        requirements=ngo.stripe_requirements,
        last_sync_at=ngo.stripe_last_sync_at,
    )


@router.post(
    "/onboard",
    response_model=LinkResponse,
    summary="Start Connect Onboarding",
    description="Create the Express account on first use and return a hosted onboarding link.",
)
async def onboard(
    request: Request,
    ctx: TenantContext = Depends(require_tenant("settings:write")),
    session: AsyncSession = Depends(get_session),
) -> LinkResponse:
    had_account = bool(ctx.ngo.stripe_connect_id)
    url = await create_onboarding_link(session, ctx.ngo)
    if not had_account:
        await record_audit(
            session,
            action="STRIPE_CONNECT_CREATED",
            entity_type="Ngo",
            entity_id=ctx.ngo_id,
            ngo_id=ctx.ngo_id,
            user_id=ctx.user_id,
            details={"account_id": ctx.ngo.stripe_connect_id},
            ip_address=client_ip(request),
        )
    return LinkResponse(url=url)


@router.get("/status", response_model=ConnectStatusRead, summary="Connect Account Status")
async def connect_status(
    refresh: bool = False,
    ctx: TenantContext = Depends(require_tenant("settings:read")),
    session: AsyncSession = Depends(get_session),
) -> ConnectStatusRead:
    """Stored status; with ``refresh=true`` the account is re-read from Stripe first."""
    if refresh and ctx.ngo.stripe_connect_id:
        await refresh_account_status(session, ctx.ngo)
    return to_status(ctx)


@router.post("/dashboard", response_model=LinkResponse, summary="Express Dashboard Link")
async def dashboard_link(
    ctx: TenantContext = Depends(require_tenant("settings:read")),
    session: AsyncSession = Depends(get_session),
) -> LinkResponse:
    return LinkResponse(url=await create_dashboard_link(session, ctx.ngo))
