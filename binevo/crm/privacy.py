"""
GDPR tooling: full donor data export and irreversible anonymisation.
"""

from __future__ import annotations

from typing import Any, Dict, Optional

from sqlalchemy import delete, update
from sqlalchemy.ext.asyncio import AsyncSession
from sqlmodel import select

from binevo.core.audit import record_audit
from binevo.core.database.base import utc_now
from binevo.core.database.entities import (
    ConsentRecord,
    Donation,
    Donor,
    DonorTagAssignment,
    Message,
    MessageRecipient,
)
from binevo.core.errors import NotFoundError
from binevo.core.logging_config import get_logger
from binevo.core.models.domain import DonorStatus
from binevo.server.core.security import decrypt_pii

from .tags import tag_names_by_donor

logger = get_logger(__name__)

ANONYMIZED_ADDRESS = "[anonymized]"


def _iso(value) -> Optional[str]:
    return value.isoformat() if value else None


async def _tenant_donor(session: AsyncSession, ngo_id: str, donor_id: str) -> Donor:
    stmt = select(Donor).where((Donor.id == donor_id) & (Donor.ngo_id == ngo_id))
    donor = (await session.execute(stmt)).scalars().first()
    if donor is None:
        raise NotFoundError("Donor not found")
    return donor


async def export_donor_data(
    session: AsyncSession,
    ngo_id: str,
    donor_id: str,
    *,
    user_id: Optional[str] = None,
    ip_address: Optional[str] = None,
) -> Dict[str, Any]:
    """Everything held about a donor, with PII decrypted."""
    donor = await _tenant_donor(session, ngo_id, donor_id)

    donations = (
        await session.execute(select(Donation).where(Donation.donor_id == donor.id).order_by(Donation.created_at))
    ).scalars().all()
    consents = (
        await session.execute(
            select(ConsentRecord).where(ConsentRecord.donor_id == donor.id).order_by(ConsentRecord.created_at)
        )
    ).scalars().all()
    messages = (
        await session.execute(
            select(MessageRecipient, Message)
            .join(Message, Message.id == MessageRecipient.message_id)
            .where(MessageRecipient.donor_id == donor.id)
            .order_by(MessageRecipient.created_at)
        )
    ).all()
    tags = (await tag_names_by_donor(session, [donor.id]))[donor.id]

    export = {
        "donor": {
            "id": donor.id,
            "name": donor.name,
            "email": decrypt_pii(donor.email_encrypted) or donor.email,
            "phone": decrypt_pii(donor.phone_encrypted) or donor.phone,
            "donor_type": donor.donor_type,
            "company_name": donor.company_name,
            "company_cui": donor.company_cui,
            "preferred_channel": donor.preferred_channel,
            "status": donor.status,
            "notes": donor.notes,
            "email_consent": donor.email_consent,
            "sms_consent": donor.sms_consent,
            "privacy_consent": donor.privacy_consent,
            "source": donor.source,
            "total_donated": donor.total_donated,
            "donation_count": donor.donation_count,
            "last_donation_at": _iso(donor.last_donation_at),
            "created_at": _iso(donor.created_at),
        },
        "tags": tags,
        "donations": [
            {
                "id": d.id,
                "amount": d.amount,
                "currency": d.currency,
                "status": d.status,
                "source": d.source,
                "created_at": _iso(d.created_at),
            }
            for d in donations
        ],
        "consents": [
            {
                "type": c.type,
                "granted": c.granted,
                "source": c.source,
                "ip_address": c.ip_address,
                "created_at": _iso(c.created_at),
            }
            for c in consents
        ],
        "messages": [
            {
                "channel": recipient.channel,
                "subject": message.subject,
                "status": recipient.status,
                "sent_at": _iso(message.sent_at or recipient.created_at),
            }
            for recipient, message in messages
        ],
        "exported_at": utc_now().isoformat(),
    }

    await record_audit(
        session,
        action="GDPR_DATA_EXPORTED",
        entity_type="Donor",
        entity_id=donor.id,
        ngo_id=ngo_id,
        user_id=user_id,
        ip_address=ip_address,
    )
    return export


async def anonymize_donor(
    session: AsyncSession,
    ngo_id: str,
    donor_id: str,
    *,
    user_id: Optional[str] = None,
    ip_address: Optional[str] = None,
) -> Donor:
    """Erase a donor's personal data in one transaction.

    Donation rows are kept for accounting; they only reference the donor id.
    """
    donor = await _tenant_donor(session, ngo_id, donor_id)

    donor.email = None
    donor.email_encrypted = None
    donor.phone = None
    donor.phone_encrypted = None
    donor.name = None
    donor.notes = None
    donor.company_name = None
    donor.company_cui = None
    donor.status = DonorStatus.DELETED.value
    donor.email_consent = False
    donor.sms_consent = False
    donor.privacy_consent = False
    donor.is_anonymized = True
    donor.updated_at = utc_now()
    session.add(donor)

    await session.execute(delete(DonorTagAssignment).where(DonorTagAssignment.donor_id == donor.id))
    await session.execute(
        update(MessageRecipient).where(MessageRecipient.donor_id == donor.id).values(address=ANONYMIZED_ADDRESS)
    )
    await session.execute(delete(ConsentRecord).where(ConsentRecord.donor_id == donor.id))
    await record_audit(
        session,
        action="GDPR_DATA_DELETED",
        entity_type="Donor",
        entity_id=donor.id,
        ngo_id=ngo_id,
        user_id=user_id,
        ip_address=ip_address,
        commit=False,
    )
    await session.commit()
    logger.info(f"Anonymised donor {donor.id} of NGO {ngo_id}")
    return donor
