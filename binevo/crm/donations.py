"""
Donation lifecycle: completion, failure, refund and manual recording.

Completing a donation updates the donor aggregates, the NGO's public
counters and the campaign's raised amount, then fires ``NEW_DONATION``.
"""

from __future__ import annotations

from typing import Optional

from sqlalchemy.ext.asyncio import AsyncSession

from binevo.billing.donation_fee import calculate_fee_for_ngo, round_money
from binevo.billing.plans import effective_plan
from binevo.core.database.base import utc_now
from binevo.core.database.entities import Campaign, Donation, Donor, Ngo
from binevo.core.logging_config import get_logger
from binevo.core.models.domain import AutomationTrigger, DonationStatus, NotificationType
from binevo.core.monitoring import log_business_event
from binevo.messaging.automation_engine import TriggerContext, fire_automation_trigger
from binevo.messaging.notifications import create_notification

logger = get_logger(__name__)


async def _apply_totals(session: AsyncSession, donation: Donation, sign: int) -> None:
    ngo = await session.get(Ngo, donation.ngo_id)
    donor = await session.get(Donor, donation.donor_id) if donation.donor_id else None
    now = utc_now()

    if donor is not None:
        first_gift = donor.donation_count == 0
        donor.total_donated = round_money(max(0.0, donor.total_donated + sign * donation.amount))
        donor.donation_count = max(0, donor.donation_count + sign)
        if sign > 0:
            donor.last_donation_at = now
        donor.updated_at = now
        session.add(donor)
        if ngo is not None and sign > 0 and first_gift:
            ngo.donor_count_public += 1

    if ngo is not None:
        ngo.total_raised = round_money(max(0.0, ngo.total_raised + sign * donation.amount))
        ngo.updated_at = now
        session.add(ngo)

    if donation.campaign_id:
        campaign = await session.get(Campaign, donation.campaign_id)
        if campaign is not None:
            campaign.raised_amount = round_money(max(0.0, campaign.raised_amount + sign * donation.amount))
            session.add(campaign)


async def complete_donation(
    session: AsyncSession,
    donation: Donation,
    *,
    payment_intent_id: Optional[str] = None,
) -> bool:
    """Mark a pending donation completed. Returns False if it was not pending."""
    if donation.status != DonationStatus.PENDING.value:
        logger.debug(f"Donation {donation.id} already {donation.status}; ignoring completion")
        return False

    donation.status = DonationStatus.COMPLETED.value
    donation.completed_at = utc_now()
    donation.updated_at = utc_now()
    if payment_intent_id:
        donation.stripe_payment_intent_id = payment_intent_id
    session.add(donation)
    await _apply_totals(session, donation, +1)
    await create_notification(
        session,
        ngo_id=donation.ngo_id,
        type=NotificationType.DONATION_RECEIVED.value,
        title="Donatie noua primita",
        message=f"Ai primit o donatie de {donation.amount:.2f} {donation.currency}.",
        action_url="/dashboard/donations",
        details={"donation_id": donation.id, "amount": donation.amount},
        commit=False,
    )
    await session.commit()
    log_business_event("donation_completed", donation_id=donation.id, ngo_id=donation.ngo_id, amount=donation.amount)

    await fire_automation_trigger(
        session,
        AutomationTrigger.NEW_DONATION.value,
        TriggerContext(
            ngo_id=donation.ngo_id,
            donor_id=donation.donor_id,
            campaign_id=donation.campaign_id,
            data={"amount": donation.amount, "donation_id": donation.id},
        ),
    )
    return True


async def fail_donation(session: AsyncSession, donation: Donation, reason: Optional[str] = None) -> bool:
    if donation.status != DonationStatus.PENDING.value:
        return False
    donation.status = DonationStatus.FAILED.value
    donation.updated_at = utc_now()
    donation.details = {**(donation.details or {}), "failure_reason": reason}
    session.add(donation)
    await create_notification(
        session,
        ngo_id=donation.ngo_id,
        type=NotificationType.PAYMENT_FAILED.value,
        title="Plata esuata",
        message=f"O donatie de {donation.amount:.2f} {donation.currency} nu a putut fi procesata.",
        details={"donation_id": donation.id, "reason": reason},
        commit=False,
    )
    await session.commit()
    return True


async def refund_donation(session: AsyncSession, donation: Donation) -> bool:
    if donation.status != DonationStatus.COMPLETED.value:
        return False
    donation.status = DonationStatus.REFUNDED.value
    donation.updated_at = utc_now()
    session.add(donation)
    await _apply_totals(session, donation, -1)
    await session.commit()
    return True


async def record_manual_donation(
    session: AsyncSession,
    ngo: Ngo,
    donor: Optional[Donor],
    *,
    amount: float,
    source: str,
    currency: str = "RON",
    campaign_id: Optional[str] = None,
    notes: Optional[str] = None,
    is_recurring: bool = False,
) -> Donation:
    """Record an offline donation (bank transfer, cash). No platform fee applies."""
    donation = Donation(
        ngo_id=ngo.id,
        donor_id=donor.id if donor else None,
        campaign_id=campaign_id,
        amount=round_money(amount),
        currency=currency,
        status=DonationStatus.PENDING.value,
        source=source,
        is_recurring=is_recurring,
        fee_amount=0.0,
        net_amount=round_money(amount),
        details={"notes": notes} if notes else {},
    )
    session.add(donation)
    await session.flush()
    await complete_donation(session, donation)
    return donation


def online_fee_for(ngo: Ngo, amount: float):
    """Platform fee for an online donation to ``ngo`` at its current plan."""
    return calculate_fee_for_ngo(amount, ngo, plan=effective_plan(ngo))
