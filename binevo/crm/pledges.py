"""
Donation pledges: donors announce a bank transfer or Revolut payment with a
reference code, and NGO admins later confirm it against their statement.

Verifying a pledge records a completed donation (source ``manual_pledge``)
through the regular donation lifecycle, so donor and NGO totals move the
same way they do for any other gift.
"""

from __future__ import annotations

import secrets
from typing import Dict, Optional

from sqlalchemy import func
from sqlalchemy.ext.asyncio import AsyncSession
from sqlmodel import select

from binevo.billing.plans import effective_plan, is_over_donor_limit
from binevo.core.database.base import utc_now
from binevo.core.database.entities import Donation, DonationPledge, Ngo
from binevo.core.errors import ConflictError, InvalidRequestError
from binevo.core.logging_config import get_logger
from binevo.core.models.domain import DonationSource, NotificationType, PledgeMethod, PledgeStatus
from binevo.messaging.notifications import create_notification

from .donations import record_manual_donation
from .donor_io import active_donor_count
from .subscribers import find_donor_by_email, upsert_public_donor

logger = get_logger(__name__)

REFERENCE_ALPHABET = "ABCDEFGHJKLMNPQRSTUVWXYZ23456789"
REFERENCE_LENGTH = 6
REFERENCE_ATTEMPTS = 5


def generate_reference_code() -> str:
    return "ONG-" + "".join(secrets.choice(REFERENCE_ALPHABET) for _ in range(REFERENCE_LENGTH))


def method_configured(ngo: Ngo, method: str) -> bool:
    if method == PledgeMethod.BANK_TRANSFER.value:
        return bool(ngo.iban)
    if method == PledgeMethod.REVOLUT.value:
        return bool(ngo.revolut_tag or ngo.revolut_link)
    return False


async def _unused_reference(session: AsyncSession) -> str:
    for _ in range(REFERENCE_ATTEMPTS):
        code = generate_reference_code()
        taken = await session.execute(select(DonationPledge.id).where(DonationPledge.reference_code == code))
        if taken.first() is None:
            return code
    raise ConflictError("Could not allocate a pledge reference code")


async def create_pledge(
    session: AsyncSession,
    ngo: Ngo,
    *,
    payment_method: str,
    amount: Optional[float] = None,
    currency: str = "RON",
    donor_name: Optional[str] = None,
    donor_email: Optional[str] = None,
    donor_phone: Optional[str] = None,
) -> DonationPledge:
    if not method_configured(ngo, payment_method):
        raise InvalidRequestError(f"{payment_method} is not configured for this NGO", code="METHOD_NOT_CONFIGURED")
    pledge = DonationPledge(
        ngo_id=ngo.id,
        reference_code=await _unused_reference(session),
        payment_method=payment_method,
        amount=amount,
        currency=currency,
        donor_name=donor_name,
        donor_email=donor_email.lower() if donor_email else None,
        donor_phone=donor_phone,
    )
    session.add(pledge)
    await create_notification(
        session,
        ngo_id=ngo.id,
        type=NotificationType.PLEDGE_RECEIVED.value,
        title="Angajament de donatie nou",
        message=f"Un donator a anuntat o plata prin {payment_method} cu referinta {pledge.reference_code}.",
        action_url="/dashboard/donations/pledges",
        commit=False,
    )
    await session.commit()
    logger.info(f"Pledge {pledge.reference_code} created for NGO {ngo.id} via {payment_method}")
    return pledge


async def pledge_counts(session: AsyncSession, ngo_id: str) -> Dict[str, int]:
    rows = await session.execute(
        select(DonationPledge.status, func.count())
        .where(DonationPledge.ngo_id == ngo_id)
        .group_by(DonationPledge.status)
    )
    by_status = {status: count for status, count in rows.all()}
    return {status.value.lower(): by_status.get(status.value, 0) for status in PledgeStatus}


async def _may_link_donor(session: AsyncSession, ngo: Ngo, email: str) -> bool:
    """A new donor row is only created while the plan still has room for it."""
    if await find_donor_by_email(session, ngo.id, email) is not None:
        return True
    if is_over_donor_limit(effective_plan(ngo), await active_donor_count(session, ngo.id)):
        logger.warning(f"Donor limit reached for NGO {ngo.id}; pledge donation recorded without a donor")
        return False
    return True


def _ensure_pending(pledge: DonationPledge) -> None:
    if pledge.status != PledgeStatus.PENDING.value:
        raise InvalidRequestError(f"Pledge {pledge.reference_code} was already {pledge.status.lower()}")


async def verify_pledge(
    session: AsyncSession,
    ngo: Ngo,
    pledge: DonationPledge,
    *,
    verified_by: str,
    amount: Optional[float] = None,
    admin_notes: Optional[str] = None,
) -> Donation:
    """Confirm the money arrived: record the donation and close the pledge."""
    _ensure_pending(pledge)
    received = amount or pledge.amount
    if not received or received <= 0:
        raise InvalidRequestError("An amount is required to verify a pledge")

    donor = None
    if pledge.donor_email and await _may_link_donor(session, ngo, pledge.donor_email):
        donor, _ = await upsert_public_donor(
            session,
            ngo.id,
            email=pledge.donor_email,
            name=pledge.donor_name,
            phone=pledge.donor_phone,
            privacy_consent=True,
            source=DonationSource.MANUAL_PLEDGE.value,
        )

    donation = await record_manual_donation(
        session,
        ngo,
        donor,
        amount=received,
        source=DonationSource.MANUAL_PLEDGE.value,
        currency=pledge.currency,
        notes=f"Pledge {pledge.reference_code} ({pledge.payment_method})",
    )
    donation.details = {
        **(donation.details or {}),
        "pledge_id": pledge.id,
        "reference_code": pledge.reference_code,
        "payment_provider": pledge.payment_method,
        "verified_by": verified_by,
    }
    session.add(donation)

    now = utc_now()
    pledge.status = PledgeStatus.VERIFIED.value
    pledge.amount = received
    pledge.admin_notes = admin_notes
    pledge.verified_by = verified_by
    pledge.verified_at = now
    pledge.donation_id = donation.id
    pledge.updated_at = now
    session.add(pledge)
    await session.commit()
    return donation


async def reject_pledge(
    session: AsyncSession,
    pledge: DonationPledge,
    *,
    verified_by: str,
    admin_notes: Optional[str] = None,
) -> DonationPledge:
    _ensure_pending(pledge)
    now = utc_now()
    pledge.status = PledgeStatus.REJECTED.value
    pledge.admin_notes = admin_notes
    pledge.verified_by = verified_by
    pledge.verified_at = now
    pledge.updated_at = now
    session.add(pledge)
    await session.commit()
    return pledge
