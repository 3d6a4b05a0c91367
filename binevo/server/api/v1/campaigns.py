"""
Campaign Endpoints.

Campaign CRUD, the built-in templates and sending to a donor segment.
"""

from __future__ import annotations

from typing import List, Optional

from fastapi import APIRouter, Depends, HTTPException, Query, Request, status
from sqlalchemy import update
from sqlalchemy.ext.asyncio import AsyncSession

from binevo.billing.plans import has_feature
from binevo.core.audit import record_audit
from binevo.core.database import get_session
from binevo.core.database.base import utc_now
from binevo.core.database.entities import Campaign, Donation, Message
from binevo.core.database.repositories import TenantRepository, paginate, pagination_meta
from binevo.core.models.domain import CampaignStatus
from binevo.core.models.io.campaigns import (
    CampaignCreate,
    CampaignRead,
    CampaignSendResult,
    CampaignTemplate,
    CampaignUpdate,
)
from binevo.core.models.io.common import Page
from binevo.messaging.campaign_sender import SENDABLE_STATUSES, send_campaign
from binevo.messaging.templates import CAMPAIGN_TEMPLATES
from binevo.server.services.deps import TenantContext, client_ip, require_tenant

router = APIRouter(tags=["campaigns"])


async def get_campaign_or_404(session: AsyncSession, ngo_id: str, campaign_id: str) -> Campaign:
    campaign = await TenantRepository(session, Campaign).get(ngo_id, campaign_id)
    if campaign is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Campaign not found")
    return campaign


@router.get("", response_model=Page[CampaignRead], summary="List Campaigns")
async def list_campaigns(
    page: int = Query(1, ge=1),
    limit: int = Query(20, ge=1, le=100),
    status_filter: Optional[str] = Query(None, alias="status"),
    type_filter: Optional[str] = Query(None, alias="type"),
    ctx: TenantContext = Depends(require_tenant("campaigns:read")),
    session: AsyncSession = Depends(get_session),
) -> Page[CampaignRead]:
    repo = TenantRepository(session, Campaign)
    stmt = repo.select_for(ctx.ngo_id)
    if status_filter:
        stmt = stmt.where(Campaign.status == status_filter.upper())
    if type_filter:
        stmt = stmt.where(Campaign.type == type_filter.upper())
    campaigns, total = await paginate(session, stmt.order_by(Campaign.created_at.desc()), page, limit)
    return Page[CampaignRead](
        items=[CampaignRead.model_validate(c) for c in campaigns],
        pagination=pagination_meta(page, limit, total),
    )


@router.get("/templates", response_model=List[CampaignTemplate], summary="Campaign Templates")
async def list_templates(ctx: TenantContext = Depends(require_tenant("campaigns:read"))) -> List[CampaignTemplate]:
    return [CampaignTemplate(**template) for template in CAMPAIGN_TEMPLATES]


@router.post(
    "",
    response_model=CampaignRead,
    status_code=status.HTTP_201_CREATED,
    summary="Create Campaign",
    description="Create a draft (or scheduled) campaign. A/B campaigns need the ab_testing plan feature.",
)
async def create_campaign(
    payload: CampaignCreate,
    request: Request,
    ctx: TenantContext = Depends(require_tenant("campaigns:write")),
    session: AsyncSession = Depends(get_session),
) -> CampaignRead:
    if payload.is_ab_test and not has_feature(ctx.plan, "ab_testing", ctx.user.role):
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Feature not available on your plan")

    campaign = Campaign(
        ngo_id=ctx.ngo_id,
        name=payload.name,
        type=payload.type.value,
        channel=payload.channel.value,
        status=CampaignStatus.SCHEDULED.value if payload.scheduled_at else CampaignStatus.DRAFT.value,
        subject=payload.subject,
        email_body=payload.email_body,
        sms_body=payload.sms_body,
        preview_text=payload.preview_text,
        segment_query=payload.segment_query.model_dump(mode="json") if payload.segment_query else None,
        is_ab_test=payload.is_ab_test,
        is_public=payload.is_public,
        description=payload.description,
        goal_amount=payload.goal_amount,
        scheduled_at=payload.scheduled_at,
    )
    session.add(campaign)
    await record_audit(
        session,
        action="CAMPAIGN_CREATED",
        entity_type="Campaign",
        entity_id=campaign.id,
        ngo_id=ctx.ngo_id,
        user_id=ctx.user_id,
        details={"name": campaign.name, "channel": campaign.channel},
        ip_address=client_ip(request),
        commit=False,
    )
    await session.commit()
    return CampaignRead.model_validate(campaign)


@router.get("/{campaign_id}", response_model=CampaignRead, summary="Get Campaign")
async def get_campaign(
    campaign_id: str,
    ctx: TenantContext = Depends(require_tenant("campaigns:read")),
    session: AsyncSession = Depends(get_session),
) -> CampaignRead:
    return CampaignRead.model_validate(await get_campaign_or_404(session, ctx.ngo_id, campaign_id))


@router.patch(
    "/{campaign_id}",
    response_model=CampaignRead,
    summary="Update Campaign",
    responses={400: {"description": "Only draft or scheduled campaigns can be edited"}},
)
async def update_campaign(
    campaign_id: str,
    payload: CampaignUpdate,
    ctx: TenantContext = Depends(require_tenant("campaigns:write")),
    session: AsyncSession = Depends(get_session),
) -> CampaignRead:
    campaign = await get_campaign_or_404(session, ctx.ngo_id, campaign_id)
    if campaign.status not in SENDABLE_STATUSES:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Only draft or scheduled campaigns can be edited",
        )
    changes = payload.model_dump(exclude_unset=True, exclude={"segment_query"})
    for key, value in changes.items():
        setattr(campaign, key, value.value if hasattr(value, "value") else value)
    if "segment_query" in payload.model_fields_set:
        campaign.segment_query = payload.segment_query.model_dump(mode="json") if payload.segment_query else None
    if "scheduled_at" in changes:
        campaign.status = CampaignStatus.SCHEDULED.value if campaign.scheduled_at else CampaignStatus.DRAFT.value
    campaign.updated_at = utc_now()
    session.add(campaign)
    await session.commit()
    return CampaignRead.model_validate(campaign)


@router.delete(
    "/{campaign_id}",
    status_code=status.HTTP_204_NO_CONTENT,
    summary="Delete Campaign",
    responses={400: {"description": "Campaign is being sent"}},
)
async def delete_campaign(
    campaign_id: str,
    request: Request,
    ctx: TenantContext = Depends(require_tenant("campaigns:write")),
    session: AsyncSession = Depends(get_session),
) -> None:
    campaign = await get_campaign_or_404(session, ctx.ngo_id, campaign_id)
    if campaign.status == CampaignStatus.SENDING.value:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Campaign is being sent")
    await session.execute(update(Donation).where(Donation.campaign_id == campaign.id).values(campaign_id=None))
    await session.execute(update(Message).where(Message.campaign_id == campaign.id).values(campaign_id=None))
    await session.delete(campaign)
    await record_audit(
        session,
        action="CAMPAIGN_DELETED",
        entity_type="Campaign",
        entity_id=campaign.id,
        ngo_id=ctx.ngo_id,
        user_id=ctx.user_id,
        details={"name": campaign.name},
        ip_address=client_ip(request),
        commit=False,
    )
    await session.commit()


@router.post(
    "/{campaign_id}/send",
    response_model=CampaignSendResult,
    summary="Send Campaign",
    responses={
        400: {"description": "Campaign is not sendable or has no content"},
        403: {"description": "Channel not included in the plan"},
    },
)
async def send(
    campaign_id: str,
    request: Request,
    ctx: TenantContext = Depends(require_tenant("campaigns:send")),
    session: AsyncSession = Depends(get_session),
) -> CampaignSendResult:
    """
    Send a draft or scheduled campaign now.

    Recipients are the NGO's active, non-anonymised donors with consent and
    an address for the campaign channel, narrowed by the campaign segment.
    Each delivery is recorded; provider failures are counted, not raised.
    """
    campaign = await get_campaign_or_404(session, ctx.ngo_id, campaign_id)
    result = await send_campaign(
        session,
        ctx.ngo,
        campaign,
        plan=ctx.plan,
        user_id=ctx.user_id,
        ip_address=client_ip(request),
    )
    return CampaignSendResult(**result)
