"""
Public Mini-site Endpoints.

Unauthenticated data for NGO mini-sites and public campaign pages, plus
newsletter signup and Formular 230 submissions.
"""

from __future__ import annotations

from fastapi import APIRouter, Depends, HTTPException, Request, status
from sqlalchemy.ext.asyncio import AsyncSession
from sqlmodel import select

from binevo.billing.donation_fee import get_fee_description
from binevo.billing.plans import effective_plan, get_donor_limit, is_over_donor_limit
from binevo.core.audit import record_audit
from binevo.core.database import get_session
from binevo.core.database.entities import Campaign, Ngo
from binevo.core.errors import PlanLimitReachedError
from binevo.core.logging_config import get_logger
from binevo.core.models.domain import AutomationTrigger, CampaignStatus
from binevo.core.models.io.common import MessageResponse
from binevo.core.models.io.donations import DonationMethods
from binevo.core.models.io.public import PublicCampaign, PublicCampaignPage, PublicNgo, SubscribeRequest
from binevo.core.models.io.tax_forms import Formular230Create, Formular230Submitted
from binevo.crm.donor_io import active_donor_count
from binevo.crm.subscribers import find_donor_by_email, upsert_public_donor
from binevo.crm.tax_forms import create_formular_230
from binevo.messaging.automation_engine import TriggerContext, fire_automation_trigger
from binevo.payments.connect import accepts_card_donations
from binevo.server.services.deps import client_ip

logger = get_logger(__name__)

router = APIRouter(tags=["public"])


async def get_public_ngo(session: AsyncSession, slug: str) -> Ngo:
    ngo = (await session.execute(select(Ngo).where(Ngo.slug == slug))).scalars().first()
    if ngo is None or not ngo.is_active:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="NGO not found")
    return ngo


def donation_methods(ngo: Ngo) -> DonationMethods:
    card = accepts_card_donations(ngo)
    bank_transfer = bool(ngo.iban)
    revolut = bool(ngo.revolut_tag or ngo.revolut_link)
    enabled = (("card", card), ("bank_transfer", bank_transfer), ("revolut", revolut))
    return DonationMethods(
        card=card,
        bank_transfer=bank_transfer,
        iban=ngo.iban if bank_transfer else None,
        bank_name=ngo.bank_name if bank_transfer else None,
        revolut=revolut,
        revolut_tag=ngo.revolut_tag if revolut else None,
        revolut_phone=ngo.revolut_phone if revolut else None,
        revolut_link=ngo.revolut_link if revolut else None,
        methods=[name for name, on in enabled if on],
    )


@router.get(
    "/ngo/{slug}",
    response_model=PublicNgo,
    summary="Mini-site Data",
    responses={404: {"description": "Unknown, inactive or unpublished NGO"}},
)
async def get_minisite(slug: str, session: AsyncSession = Depends(get_session)) -> PublicNgo:
    ngo = await get_public_ngo(session, slug)
    if not ngo.minisite_published:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="NGO not found")
    campaigns = (
        await session.execute(
            select(Campaign)
            .where(
                (Campaign.ngo_id == ngo.id)
                & (Campaign.is_public == True)  # noqa: E712
                & (Campaign.status != CampaignStatus.CANCELLED.value)
            )
            .order_by(Campaign.created_at.desc())
        )
    ).scalars().all()
    return PublicNgo(
        id=ngo.id,
        name=ngo.name,
        slug=ngo.slug,
        description=ngo.description,
        logo_url=ngo.logo_url,
        website=ngo.website,
        email=ngo.email,
        phone=ngo.phone,
        city=ngo.city,
        county=ngo.county,
        is_verified=ngo.is_verified,
        total_raised=ngo.total_raised,
        donor_count=ngo.donor_count_public,
        minisite_config=ngo.minisite_config or {},
        accepts_online_donations=accepts_card_donations(ngo),
        fee_description=get_fee_description(effective_plan(ngo)),
        campaigns=[PublicCampaign.model_validate(c) for c in campaigns],
    )


@router.get("/campaigns/{campaign_id}", response_model=PublicCampaignPage, summary="Public Campaign Page")
async def get_public_campaign(campaign_id: str, session: AsyncSession = Depends(get_session)) -> PublicCampaignPage:
    campaign = await session.get(Campaign, campaign_id)
    if campaign is None or not campaign.is_public or campaign.status == CampaignStatus.CANCELLED.value:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Campaign not found")
    ngo = await session.get(Ngo, campaign.ngo_id)
    if ngo is None or not ngo.is_active:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Campaign not found")

    page = PublicCampaignPage(
        **PublicCampaign.model_validate(campaign).model_dump(),
        ngo_name=ngo.name,
        ngo_slug=ngo.slug,
        ngo_logo_url=ngo.logo_url,
        accepts_online_donations=accepts_card_donations(ngo),
    )
    if campaign.goal_amount:
        page.progress_percent = round(min(100.0, campaign.raised_amount * 100 / campaign.goal_amount), 1)
    return page


@router.get("/donate/methods/{slug}", response_model=DonationMethods, summary="Available Donation Methods")
async def get_donation_methods(slug: str, session: AsyncSession = Depends(get_session)) -> DonationMethods:
    return donation_methods(await get_public_ngo(session, slug))


@router.post(
    "/ngo/{slug}/subscribe",
    response_model=MessageResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Newsletter Signup",
    responses={
        400: {"description": "Email and privacy consent are required"},
        404: {"description": "Unknown or inactive NGO"},
    },
)
async def subscribe(
    slug: str,
    payload: SubscribeRequest,
    request: Request,
    session: AsyncSession = Depends(get_session),
) -> MessageResponse:
    """
    Subscribe a visitor to the NGO's newsletter.

    The visitor must agree to email communication and to the privacy
    policy. Existing donors are matched by email; new subscribers count
    against the plan's donor limit. ``NEW_SUBSCRIBER`` automations fire
    for every successful signup.
    """
    if not payload.email_consent or not payload.privacy_consent:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Email consent and privacy consent are required",
        )
    ngo = await get_public_ngo(session, slug)

    if await find_donor_by_email(session, ngo.id, payload.email) is None:
        current = await active_donor_count(session, ngo.id)
        plan = effective_plan(ngo)
        if is_over_donor_limit(plan, current):
            logger.warning(f"Signup rejected for NGO {ngo.id}: donor limit of {get_donor_limit(plan)} reached")
            raise PlanLimitReachedError(
                "This organisation cannot accept new subscribers right now",
                code="DONOR_LIMIT_REACHED",
            )

    ip_address = client_ip(request)
    donor, created = await upsert_public_donor(
        session,
        ngo.id,
        email=payload.email,
        name=payload.name,
        phone=payload.phone,
        email_consent=payload.email_consent,
        sms_consent=payload.sms_consent,
        privacy_consent=payload.privacy_consent,
        source="newsletter",
        ip_address=ip_address,
        user_agent=request.headers.get("user-agent"),
    )
    await record_audit(
        session,
        action="NEWSLETTER_SUBSCRIBED",
        entity_type="Donor",
        entity_id=donor.id,
        ngo_id=ngo.id,
        details={"created": created},
        ip_address=ip_address,
        commit=False,
    )
    await session.commit()

    await fire_automation_trigger(
        session,
        AutomationTrigger.NEW_SUBSCRIBER.value,
        TriggerContext(ngo_id=ngo.id, donor_id=donor.id, data={"source": "newsletter"}),
    )
    return MessageResponse(message="Te-ai abonat cu succes")


@router.post(
    "/formular-230/{slug}",
    response_model=Formular230Submitted,
    status_code=status.HTTP_201_CREATED,
    summary="Submit a Formular 230",
    responses={400: {"description": "Invalid CNP"}, 404: {"description": "Unknown or inactive NGO"}},
)
async def submit_formular_230(
    slug: str,
    payload: Formular230Create,
    session: AsyncSession = Depends(get_session),
) -> Formular230Submitted:
    ngo = await get_public_ngo(session, slug)
    data = payload.model_dump()
    data["ngo_iban"] = ngo.iban
    form = await create_formular_230(session, ngo, data, source="public")
    return Formular230Submitted(id=form.id)
