"""
Donation Pledge Endpoints.

NGO admins match announced bank transfer and Revolut payments against their
statements and verify or reject them.
"""

from __future__ import annotations

from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Query, Request, status
from sqlalchemy.ext.asyncio import AsyncSession
from sqlmodel import select

from binevo.core.audit import record_audit
from binevo.core.database import get_session
from binevo.core.database.entities import DonationPledge
from binevo.core.models.domain import PledgeStatus
from binevo.core.models.io.pledges import PledgeList, PledgeRead, PledgeReview
from binevo.crm.pledges import pledge_counts, reject_pledge, verify_pledge
from binevo.server.services.deps import TenantContext, client_ip, require_tenant

router = APIRouter(tags=["pledges"])

PLEDGE_LIST_LIMIT = 100


async def _get_pledge(session: AsyncSession, ngo_id: str, pledge_id: str) -> DonationPledge:
    pledge = await session.get(DonationPledge, pledge_id)
    if pledge is None or pledge.ngo_id != ngo_id:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Pledge not found")
    return pledge


@router.get("", response_model=PledgeList, summary="List Pledges")
async def list_pledges(
    status_filter: Optional[PledgeStatus] = Query(None, alias="status"),
    ctx: TenantContext = Depends(require_tenant("donors:read")),
    session: AsyncSession = Depends(get_session),
) -> PledgeList:
    stmt = select(DonationPledge).where(DonationPledge.ngo_id == ctx.ngo_id)
    if status_filter:
        stmt = stmt.where(DonationPledge.status == status_filter.value)
    stmt = stmt.order_by(DonationPledge.created_at.desc()).limit(PLEDGE_LIST_LIMIT)
    pledges = (await session.execute(stmt)).scalars().all()
    return PledgeList(
        items=[PledgeRead.model_validate(pledge) for pledge in pledges],
        counts=await pledge_counts(session, ctx.ngo_id),
    )


@router.post(
    "/{pledge_id}/verify",
    response_model=PledgeRead,
    summary="Verify a Pledge",
    description="Confirms the payment arrived and records it as a completed donation.",
)
async def verify(
    pledge_id: str,
    payload: PledgeReview,
    request: Request,
    ctx: TenantContext = Depends(require_tenant("pledges:verify")),
    session: AsyncSession = Depends(get_session),
) -> PledgeRead:
    pledge = await _get_pledge(session, ctx.ngo_id, pledge_id)
    donation = await verify_pledge(
        session,
        ctx.ngo,
        pledge,
        verified_by=ctx.user_id,
        amount=payload.amount,
        admin_notes=payload.admin_notes,
    )
    await record_audit(
        session,
        action="PLEDGE_VERIFIED",
        entity_type="DonationPledge",
        entity_id=pledge.id,
        ngo_id=ctx.ngo_id,
        user_id=ctx.user_id,
        details={"reference_code": pledge.reference_code, "amount": donation.amount, "donation_id": donation.id},
        ip_address=client_ip(request),
    )
    return PledgeRead.model_validate(pledge)


@router.post("/{pledge_id}/reject", response_model=PledgeRead, summary="Reject a Pledge")
async def reject(
    pledge_id: str,
    payload: PledgeReview,
    request: Request,
    ctx: TenantContext = Depends(require_tenant("pledges:verify")),
    session: AsyncSession = Depends(get_session),
) -> PledgeRead:
    pledge = await _get_pledge(session, ctx.ngo_id, pledge_id)
    await reject_pledge(session, pledge, verified_by=ctx.user_id, admin_notes=payload.admin_notes)
    await record_audit(
        session,
        action="PLEDGE_REJECTED",
        entity_type="DonationPledge",
        entity_id=pledge.id,
        ngo_id=ctx.ngo_id,
        user_id=ctx.user_id,
        details={"reference_code": pledge.reference_code},
        ip_address=client_ip(request),
    )
    return PledgeRead.model_validate(pledge)
