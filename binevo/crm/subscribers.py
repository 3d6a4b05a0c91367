"""
Donors arriving through public surfaces: newsletter signups, online
donations and unsubscribe links.
"""

from __future__ import annotations

from typing import Optional, Tuple

from sqlalchemy.ext.asyncio import AsyncSession
from sqlmodel import select

from binevo.core.audit import record_audit
from binevo.core.database.base import utc_now
from binevo.core.database.entities import ConsentRecord, Donor
from binevo.core.errors import NotFoundError
from binevo.core.models.domain import DonorStatus
from binevo.server.core.security import encrypt_pii

CHANNEL_EMAIL = "EMAIL"
CHANNEL_SMS = "SMS"
CHANNEL_ALL = "ALL"


async def find_donor_by_email(session: AsyncSession, ngo_id: str, email: str) -> Optional[Donor]:
    stmt = select(Donor).where((Donor.ngo_id == ngo_id) & (Donor.email == email.lower()))
    return (await session.execute(stmt)).scalars().first()


def record_consent(
    session: AsyncSession,
    donor: Donor,
    consent_type: str,
    granted: bool,
    *,
    source: str,
    ip_address: Optional[str] = None,
    user_agent: Optional[str] = None,
) -> None:
    session.add(
        ConsentRecord(
            donor_id=donor.id,
            type=consent_type,
            granted=granted,
            source=source,
            ip_address=ip_address,
            user_agent=(user_agent or "")[:512] or None,
        )
    )


async def upsert_public_donor(
    session: AsyncSession,
    ngo_id: str,
    *,
    email: str,
    name: Optional[str] = None,
    phone: Optional[str] = None,
    email_consent: bool = False,
    sms_consent: bool = False,
    privacy_consent: bool = False,
    source: str,
    ip_address: Optional[str] = None,
    user_agent: Optional[str] = None,
) -> Tuple[Donor, bool]:
    """Find the donor by email or create it, then apply newly granted consents.

    Consents are only ever granted here, never withdrawn; a donor who had
    unsubscribed and opts in again is reactivated. Does not commit.
    Returns ``(donor, created)``.
    """
    email = email.lower()
    donor = await find_donor_by_email(session, ngo_id, email)
    created = donor is None
    if donor is None:
        donor = Donor(
            ngo_id=ngo_id,
            email=email,
            email_encrypted=encrypt_pii(email),
            phone=phone,
            phone_encrypted=encrypt_pii(phone),
            name=name,
            source=source,
        )
        session.add(donor)
        await session.flush()
    else:
        donor.name = donor.name or name
        if phone and not donor.phone:
            donor.phone = phone
            donor.phone_encrypted = encrypt_pii(phone)

    granted = {"EMAIL": email_consent, "SMS": sms_consent and bool(donor.phone), "PRIVACY": privacy_consent}
    fields = {"EMAIL": "email_consent", "SMS": "sms_consent", "PRIVACY": "privacy_consent"}
    for consent_type, wanted in granted.items():
        if wanted and not getattr(donor, fields[consent_type]):
            setattr(donor, fields[consent_type], True)
            record_consent(
                session, donor, consent_type, True, source=source, ip_address=ip_address, user_agent=user_agent
            )

    if donor.status == DonorStatus.UNSUBSCRIBED.value and email_consent:
        donor.status = DonorStatus.ACTIVE.value
    donor.updated_at = utc_now()
    session.add(donor)
    return donor, created


async def unsubscribe_donor(
    session: AsyncSession,
    ngo_id: str,
    donor_id: str,
    channel: str = CHANNEL_EMAIL,
    *,
    source: str = "unsubscribe",
    ip_address: Optional[str] = None,
    user_agent: Optional[str] = None,
) -> Donor:
    """Withdraw consent for ``channel`` (EMAIL, SMS or ALL) and commit.

    A donor left without any channel is marked UNSUBSCRIBED. Repeating the
    call is harmless.
    """
    stmt = select(Donor).where((Donor.id == donor_id) & (Donor.ngo_id == ngo_id))
    donor = (await session.execute(stmt)).scalars().first()
    if donor is None or donor.is_anonymized:
        raise NotFoundError("Subscriber not found")

    channel = (channel or CHANNEL_EMAIL).upper()
    withdrawn = []
    if channel in (CHANNEL_EMAIL, CHANNEL_ALL) and donor.email_consent:
        donor.email_consent = False
        withdrawn.append(CHANNEL_EMAIL)
    if channel in (CHANNEL_SMS, CHANNEL_ALL) and donor.sms_consent:
        donor.sms_consent = False
        withdrawn.append(CHANNEL_SMS)
    for consent_type in withdrawn:
        record_consent(
            session, donor, consent_type, False, source=source, ip_address=ip_address, user_agent=user_agent
        )

    if not donor.email_consent and not donor.sms_consent and donor.status == DonorStatus.ACTIVE.value:
        donor.status = DonorStatus.UNSUBSCRIBED.value
    donor.updated_at = utc_now()
    session.add(donor)
    await record_audit(
        session,
        action="DONOR_UNSUBSCRIBED",
        entity_type="Donor",
        entity_id=donor.id,
        ngo_id=ngo_id,
        details={"channel": channel, "withdrawn": withdrawn, "source": source},
        ip_address=ip_address,
        commit=False,
    )
    await session.commit()
    return donor
