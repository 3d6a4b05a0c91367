"""
Donation Endpoints.

Paginated donation history and manual recording of offline gifts.
"""

from __future__ import annotations

from datetime import datetime
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Query, Request, status
from sqlalchemy.ext.asyncio import AsyncSession
from sqlmodel import select

from binevo.core.audit import record_audit
from binevo.core.database import get_session
from binevo.core.database.entities import Campaign, Donation, Donor
from binevo.core.database.repositories import TenantRepository, paginate, pagination_meta
from binevo.core.models.io.common import Page
from binevo.core.models.io.donations import DonationRead, ManualDonationCreate
from binevo.crm.donations import record_manual_donation
from binevo.server.core.security import encrypt_pii
from binevo.server.services.deps import TenantContext, client_ip, require_tenant

router = APIRouter(tags=["donations"])


@router.get(
    "",
    response_model=Page[DonationRead],
    summary="List Donations",
    description="Donations of the caller's NGO, newest first.",
)
async def list_donations(
    page: int = Query(1, ge=1),
    limit: int = Query(20, ge=1, le=100),
    status_filter: Optional[str] = Query(None, alias="status"),
    source: Optional[str] = None,
    donor_id: Optional[str] = None,
    campaign_id: Optional[str] = None,
    date_from: Optional[datetime] = None,
    date_to: Optional[datetime] = None,
    min_amount: Optional[float] = None,
    max_amount: Optional[float] = None,
    ctx: TenantContext = Depends(require_tenant("donors:read", feature="donors_view")),
    session: AsyncSession = Depends(get_session),
) -> Page[DonationRead]:
    stmt = (
        select(Donation, Donor.name, Donor.email)
        .outerjoin(Donor, Donor.id == Donation.donor_id)
        .where(Donation.ngo_id == ctx.ngo_id)
    )
    if status_filter:
        stmt = stmt.where(Donation.status == status_filter.upper())
    if source:
        stmt = stmt.where(Donation.source == source)
    if donor_id:
        stmt = stmt.where(Donation.donor_id == donor_id)
    if campaign_id:
        stmt = stmt.where(Donation.campaign_id == campaign_id)
    if date_from:
        stmt = stmt.where(Donation.created_at >= date_from)
    if date_to:
        stmt = stmt.where(Donation.created_at <= date_to)
    if min_amount is not None:
        stmt = stmt.where(Donation.amount >= min_amount)
    if max_amount is not None:
        stmt = stmt.where(Donation.amount <= max_amount)
    stmt = stmt.order_by(Donation.created_at.desc())

    rows, total = await paginate(session, stmt, page, limit, scalars=False)
    items = []
    for donation, donor_name, donor_email in rows:
        item = DonationRead.model_validate(donation)
        item.donor_name = donor_name
        item.donor_email = donor_email
        items.append(item)
    return Page[DonationRead](items=items, pagination=pagination_meta(page, limit, total))


@router.post(
    "",
    response_model=DonationRead,
    status_code=status.HTTP_201_CREATED,
    summary="Record Manual Donation",
    responses={404: {"description": "Donor or campaign not found"}},
)
async def create_manual_donation(
    payload: ManualDonationCreate,
    request: Request,
    ctx: TenantContext = Depends(require_tenant("donors:write", feature="donors_manage")),
    session: AsyncSession = Depends(get_session),
) -> DonationRead:
    """
    Record a bank transfer or cash gift.

    The donation is completed immediately: donor totals, the NGO's public
    counters and the campaign's raised amount are updated, and
    ``NEW_DONATION`` automations fire. When only ``donor_email`` is given,
    the donor is looked up by email and created if missing.
    """
    donor: Optional[Donor] = None
    if payload.donor_id:
        donor = await TenantRepository(session, Donor).get(ctx.ngo_id, payload.donor_id)
        if donor is None:
            raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Donor not found")
    elif payload.donor_email:
        email = payload.donor_email.lower()
        donor = (
            await session.execute(select(Donor).where((Donor.ngo_id == ctx.ngo_id) & (Donor.email == email)))
        ).scalars().first()
        if donor is None:
            donor = Donor(
                ngo_id=ctx.ngo_id,
                email=email,
                email_encrypted=encrypt_pii(email),
                name=payload.donor_name,
                source=payload.source,
            )
            session.add(donor)
            await session.flush()

    if payload.campaign_id:
        campaign = await TenantRepository(session, Campaign).get(ctx.ngo_id, payload.campaign_id)
        if campaign is None:
            raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Campaign not found")

    donation = await record_manual_donation(
        session,
        ctx.ngo,
        donor,
        amount=payload.amount,
        source=payload.source,
        currency=payload.currency,
        campaign_id=payload.campaign_id,
        notes=payload.notes,
        is_recurring=payload.is_recurring,
    )
    await record_audit(
        session,
        action="DONATION_RECORDED",
        entity_type="Donation",
        entity_id=donation.id,
        ngo_id=ctx.ngo_id,
        user_id=ctx.user_id,
        details={"amount": donation.amount, "source": donation.source},
        ip_address=client_ip(request),
    )
    item = DonationRead.model_validate(donation)
    if donor is not None:
        item.donor_name = donor.name
        item.donor_email = donor.email
    return item
