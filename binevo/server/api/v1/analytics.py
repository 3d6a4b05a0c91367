"""
Dashboard Analytics Endpoints.
"""

from __future__ import annotations

from collections import defaultdict
from datetime import datetime
from typing import Dict, List

from fastapi import APIRouter, Depends
from sqlalchemy import func
from sqlalchemy.ext.asyncio import AsyncSession
from sqlmodel import select

from binevo.billing.donation_fee import round_money
from binevo.core.database import get_session
from binevo.core.database.base import utc_now
from binevo.core.database.entities import Campaign, Donation, Donor, Message
from binevo.core.models.domain import CampaignStatus, DonationStatus, DonorStatus
from binevo.core.models.io.analytics import AnalyticsOverview, AnalyticsTotals, MonthlyPoint, TopCampaign
from binevo.server.services.deps import TenantContext, require_tenant

router = APIRouter(tags=["analytics"])

MONTHS_SHOWN = 6
TOP_CAMPAIGNS = 5


def last_months(now: datetime, count: int = MONTHS_SHOWN) -> List[str]:
    """``YYYY-MM`` keys for the last ``count`` months, oldest first, current month included."""
    year, month = now.year, now.month
    keys = []
    for _ in range(count):
        keys.append(f"{year:04d}-{month:02d}")
        month -= 1
        if month == 0:
            year, month = year - 1, 12
    return list(reversed(keys))


async def _scalar(session: AsyncSession, stmt):
    return (await session.execute(stmt)).scalar_one()


@router.get(
    "",
    response_model=AnalyticsOverview,
    summary="Analytics Overview",
    description="Totals, a six month donation series and the best performing campaigns.",
)
async def overview(
    ctx: TenantContext = Depends(require_tenant("analytics:read", feature="analytics")),
    session: AsyncSession = Depends(get_session),
) -> AnalyticsOverview:
    ngo_id = ctx.ngo_id
    completed = (Donation.ngo_id == ngo_id) & (Donation.status == DonationStatus.COMPLETED.value)
    not_deleted = (Donor.ngo_id == ngo_id) & (Donor.status != DonorStatus.DELETED.value)

    total_donors = await _scalar(session, select(func.count()).select_from(Donor).where(not_deleted))
    active_donors = await _scalar(
        session,
        select(func.count()).select_from(Donor).where(
            (Donor.ngo_id == ngo_id) & (Donor.status == DonorStatus.ACTIVE.value)
        ),
    )
    raised, donation_count = (
        await session.execute(select(func.coalesce(func.sum(Donation.amount), 0.0), func.count()).where(completed))
    ).one()
    campaigns_sent = await _scalar(
        session,
        select(func.count()).select_from(Campaign).where(
            (Campaign.ngo_id == ngo_id) & (Campaign.status == CampaignStatus.SENT.value)
        ),
    )
    messages_sent = await _scalar(
        session,
        select(func.coalesce(func.sum(Message.sent_count), 0)).where(Message.ngo_id == ngo_id),
    )

    now = utc_now()
    months = last_months(now)
    since = datetime(int(months[0][:4]), int(months[0][5:]), 1)
    amounts: Dict[str, float] = defaultdict(float)
    counts: Dict[str, int] = defaultdict(int)
    donations = (
        await session.execute(
            select(Donation.amount, Donation.created_at).where(completed & (Donation.created_at >= since))
        )
    ).all()
    for amount, created_at in donations:
        key = f"{created_at:%Y-%m}"
        amounts[key] += amount
        counts[key] += 1
    new_donors: Dict[str, int] = defaultdict(int)
    for (created_at,) in (
        await session.execute(select(Donor.created_at).where(not_deleted & (Donor.created_at >= since)))
    ).all():
        new_donors[f"{created_at:%Y-%m}"] += 1

    top = (
        await session.execute(
            select(Campaign)
            .where(Campaign.ngo_id == ngo_id)
            .order_by(Campaign.raised_amount.desc(), Campaign.total_sent.desc())
            .limit(TOP_CAMPAIGNS)
        )
    ).scalars().all()

    return AnalyticsOverview(
        totals=AnalyticsTotals(
            total_donors=total_donors,
            active_donors=active_donors,
            total_raised=round_money(raised or 0.0),
            donation_count=donation_count,
            average_donation=round_money(raised / donation_count) if donation_count else 0.0,
            campaigns_sent=campaigns_sent,
            messages_sent=int(messages_sent or 0),
        ),
        monthly=[
            MonthlyPoint(month=m, amount=round_money(amounts[m]), donations=counts[m], new_donors=new_donors[m])
            for m in months
        ],
        top_campaigns=[
            TopCampaign(
                id=c.id,
                name=c.name,
                raised_amount=c.raised_amount,
                goal_amount=c.goal_amount,
                total_sent=c.total_sent,
            )
            for c in top
        ],
    )
