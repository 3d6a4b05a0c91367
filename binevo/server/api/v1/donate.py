"""
Online Donation Endpoint.

Starts a card donation: the donation is stored as PENDING and completed by
the Stripe Connect webhook once the payment succeeds. Bank transfer and
Revolut donations are announced as pledges and confirmed by the NGO.
"""

from __future__ import annotations

from fastapi import APIRouter, Depends, HTTPException, Request, status
from sqlalchemy.ext.asyncio import AsyncSession

from binevo.core.database import get_session
from binevo.core.database.entities import Campaign, Donation
from binevo.core.errors import PaymentProviderError
from binevo.core.logging_config import get_logger
from binevo.core.models.domain import DonationSource, DonationStatus, PledgeMethod
from binevo.core.models.io.donations import DonateRequest, DonateResponse
from binevo.core.models.io.pledges import BankDetails, PledgeCreate, PledgeCreated, RevolutDetails
from binevo.core.monitoring import log_business_event
from binevo.crm.donations import online_fee_for
from binevo.crm.pledges import create_pledge
from binevo.crm.subscribers import upsert_public_donor
from binevo.payments.connect import accepts_card_donations, create_donation_checkout
from binevo.server.api.v1.public import get_public_ngo
from binevo.server.services.deps import client_ip

logger = get_logger(__name__)

router = APIRouter(tags=["donate"])


@router.post(
    "",
    response_model=DonateResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Start a Card Donation",
    responses={
        400: {"description": "NGO does not accept card donations or invalid campaign"},
        404: {"description": "Unknown or inactive NGO"},
        502: {"description": "Stripe rejected the checkout session"},
    },
)
async def donate(
    payload: DonateRequest,
    request: Request,
    session: AsyncSession = Depends(get_session),
) -> DonateResponse:
    """
    Create a PENDING donation and a Stripe Checkout session for it.

    The platform fee follows the NGO's plan and overrides and is charged as
    the Connect application fee; the rest is transferred to the NGO's
    account. The donor is matched by email or created.
    """
    ngo = await get_public_ngo(session, payload.ngo_slug)
    if not accepts_card_donations(ngo):
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="This organisation does not accept online donations yet",
        )
    if payload.campaign_id:
        campaign = await session.get(Campaign, payload.campaign_id)
        if campaign is None or campaign.ngo_id != ngo.id:
            raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Invalid campaign")

    donor, _ = await upsert_public_donor(
        session,
        ngo.id,
        email=payload.email,
        name=payload.name,
        phone=payload.phone,
        email_consent=payload.email_consent,
        privacy_consent=payload.privacy_consent,
        source="donation_form",
        ip_address=client_ip(request),
        user_agent=request.headers.get("user-agent"),
    )
    fee = online_fee_for(ngo, payload.amount)
    donation = Donation(
        ngo_id=ngo.id,
        donor_id=donor.id,
        campaign_id=payload.campaign_id,
        amount=fee.gross_amount,
        status=DonationStatus.PENDING.value,
        source=DonationSource.STRIPE_CONNECT.value,
        fee_amount=fee.fee_amount,
        net_amount=fee.net_amount,
        details={"fee": fee.as_dict()},
    )
    session.add(donation)
    await session.commit()

    try:
        checkout = await create_donation_checkout(session, ngo, donation, fee, donor_email=donor.email)
    except PaymentProviderError:
        donation.status = DonationStatus.FAILED.value
        donation.details = {**donation.details, "failure_reason": "checkout_creation_failed"}
        session.add(donation)
        await session.commit()
        raise

    donation.stripe_checkout_session_id = checkout.get("id")
    session.add(donation)
    await session.commit()
    log_business_event("donation_started", donation_id=donation.id, ngo_id=ngo.id, amount=donation.amount)
    return DonateResponse(
        donation_id=donation.id,
        checkout_url=checkout.get("url", ""),
        amount=donation.amount,
        fee_amount=donation.fee_amount,
        net_amount=donation.net_amount,
    )


@router.post(
    "/pledge",
    response_model=PledgeCreated,
    status_code=status.HTTP_201_CREATED,
    summary="Announce a Bank Transfer or Revolut Donation",
    responses={
        400: {"description": "The NGO has not set up this payment method"},
        404: {"description": "Unknown or inactive NGO"},
    },
)
async def create_donation_pledge(
    payload: PledgeCreate,
    session: AsyncSession = Depends(get_session),
) -> PledgeCreated:
    """
    Hand out a reference code the donor writes in the transfer description.

    The NGO confirms the pledge once the money shows up on its statement.
    """
    ngo = await get_public_ngo(session, payload.ngo_slug)
    pledge = await create_pledge(
        session,
        ngo,
        payment_method=payload.payment_method.value,
        amount=payload.amount,
        currency=payload.currency,
        donor_name=payload.donor_name,
        donor_email=payload.donor_email,
        donor_phone=payload.donor_phone,
    )
    created = PledgeCreated(
        pledge_id=pledge.id,
        reference_code=pledge.reference_code,
        payment_method=pledge.payment_method,
        message="",
    )
    if pledge.payment_method == PledgeMethod.REVOLUT.value:
        created.message = f"Foloseste referinta {pledge.reference_code} in mesajul platii Revolut."
        created.revolut_details = RevolutDetails(tag=ngo.revolut_tag, phone=ngo.revolut_phone, link=ngo.revolut_link)
    else:
        created.message = f"Foloseste referinta {pledge.reference_code} in descrierea transferului bancar."
        created.bank_details = BankDetails(beneficiary=ngo.name, iban=ngo.iban, bank_name=ngo.bank_name)
    log_business_event("pledge_created", ngo_id=ngo.id, method=pledge.payment_method)
    return created
