"""
Delivery status reported back by the email and SMS providers.

SendGrid posts batches of events (delivered, open, click, bounce, spam
report, unsubscribe) and Twilio posts one status callback per SMS, plus the
donors' replies. Each event updates the matching ``MessageRecipient`` and
the campaign counters; unsubscribes and STOP replies withdraw consent.

Counters move once per recipient: a repeated open or a retried webhook does
not count twice.
"""

from __future__ import annotations

import base64
import hashlib
import hmac
import re
from datetime import datetime, timezone
from typing import Any, Dict, Iterable, List, Mapping, Optional

from cryptography.exceptions import InvalidSignature
from cryptography.hazmat.primitives import hashes, serialization
from cryptography.hazmat.primitives.asymmetric import ec
from sqlalchemy import or_
from sqlalchemy.ext.asyncio import AsyncSession
from sqlmodel import select

from binevo.core.database.base import utc_now
from binevo.core.database.entities import Campaign, Donor, Message, MessageRecipient
from binevo.core.logging_config import get_logger
from binevo.core.models.domain import Channel, DeliveryStatus
from binevo.crm.subscribers import CHANNEL_EMAIL, CHANNEL_SMS, unsubscribe_donor

logger = get_logger(__name__)

EMPTY_TWIML = '<?xml version="1.0" encoding="UTF-8"?><Response></Response>'
OPT_OUT_KEYWORDS = frozenset({"STOP", "UNSUBSCRIBE", "CANCEL"})

# Engagement only moves forward; the other statuses always win.
_PROGRESS = {
    DeliveryStatus.SENT.value: 0,
    DeliveryStatus.DELIVERED.value: 1,
    DeliveryStatus.OPENED.value: 2,
    DeliveryStatus.CLICKED.value: 3,
}


def verify_sendgrid_signature(verification_key: str, signature: str, timestamp: str, body: bytes) -> bool:
    """Check SendGrid's signed event webhook (ECDSA P-256 over timestamp + body).

    ``verification_key`` is the base64 DER public key from the SendGrid
    settings page; a PEM key is accepted as well.
    """
    try:
        if verification_key.lstrip().startswith("-----BEGIN"):
            public_key = serialization.load_pem_public_key(verification_key.encode())
        else:
            public_key = serialization.load_der_public_key(base64.b64decode(verification_key))
        public_key.verify(
            base64.b64decode(signature), timestamp.encode() + body, ec.ECDSA(hashes.SHA256())
        )
    except (InvalidSignature, ValueError, TypeError) as e:
        logger.warning(f"SendGrid webhook signature rejected: {type(e).__name__}")
        return False
    return True


def twilio_signature(auth_token: str, url: str, params: Mapping[str, str]) -> str:
    payload = url + "".join(f"{key}{params[key]}" for key in sorted(params))
    digest = hmac.new(auth_token.encode(), payload.encode(), hashlib.sha1).digest()
    return base64.b64encode(digest).decode("ascii")


def verify_twilio_signature(auth_token: str, url: str, params: Mapping[str, str], signature: Optional[str]) -> bool:
    if not signature:
        return False
    return hmac.compare_digest(twilio_signature(auth_token, url, params), signature)


def _event_time(timestamp: Any) -> datetime:
    try:
        return datetime.fromtimestamp(int(timestamp), tz=timezone.utc)
    except (TypeError, ValueError, OverflowError):
        return utc_now()


async def find_recipient(
    session: AsyncSession,
    channel: str,
    *,
    provider_message_id: Optional[str] = None,
    addresses: Iterable[str] = (),
) -> Optional[MessageRecipient]:
    """The recipient row by provider id, else the latest one sent to ``addresses``."""
    if provider_message_id:
        stmt = select(MessageRecipient).where(MessageRecipient.provider_message_id == provider_message_id)
        recipient = (await session.execute(stmt)).scalars().first()
        if recipient is not None:
            return recipient
    addresses = [a for a in addresses if a]
    if not addresses:
        return None
    stmt = (
        select(MessageRecipient)
        .where((MessageRecipient.channel == channel) & (MessageRecipient.address.in_(addresses)))
        .order_by(MessageRecipient.created_at.desc())
    )
    return (await session.execute(stmt)).scalars().first()


async def _bump_campaign(session: AsyncSession, recipient: MessageRecipient, counter: str) -> None:
    message = await session.get(Message, recipient.message_id)
    if message is None or not message.campaign_id:
        return
    campaign = await session.get(Campaign, message.campaign_id)
    if campaign is None:
        return
    setattr(campaign, counter, getattr(campaign, counter) + 1)
    campaign.updated_at = utc_now()
    session.add(campaign)


def _advance(recipient: MessageRecipient, status: str) -> None:
    current = _PROGRESS.get(recipient.status)
    if current is not None and _PROGRESS[status] > current:
        recipient.status = status


async def apply_sendgrid_event(session: AsyncSession, event: Mapping[str, Any]) -> Optional[MessageRecipient]:
    """Apply one SendGrid event and return the matched recipient. Does not commit."""
    kind = event.get("event")
    sg_message_id = str(event.get("sg_message_id") or "").split(".", 1)[0]
    recipient = await find_recipient(
        session,
        Channel.EMAIL.value,
        provider_message_id=sg_message_id or None,
        addresses=[str(event.get("email") or "").lower()],
    )
    if recipient is None:
        return None

    when = _event_time(event.get("timestamp"))
    counter = None
    if kind == "delivered":
        if recipient.delivered_at is None:
            recipient.delivered_at = when
            counter = "total_delivered"
        _advance(recipient, DeliveryStatus.DELIVERED.value)
    elif kind == "open":
        if recipient.opened_at is None:
            recipient.opened_at = when
            counter = "total_opened"
        _advance(recipient, DeliveryStatus.OPENED.value)
    elif kind == "click":
        if recipient.clicked_at is None:
            recipient.clicked_at = when
            counter = "total_clicked"
        _advance(recipient, DeliveryStatus.CLICKED.value)
    elif kind in ("bounce", "dropped"):
        if recipient.bounced_at is None:
            recipient.bounced_at = when
            counter = "total_bounced"
        recipient.status = DeliveryStatus.BOUNCED.value
        recipient.error_message = event.get("reason") or event.get("response") or recipient.error_message
    elif kind == "spamreport":
        if recipient.status != DeliveryStatus.COMPLAINED.value:
            counter = "total_complaints"
        recipient.status = DeliveryStatus.COMPLAINED.value
    elif kind in ("unsubscribe", "group_unsubscribe"):
        if recipient.status != DeliveryStatus.UNSUBSCRIBED.value:
            counter = "total_unsubscribed"
        recipient.status = DeliveryStatus.UNSUBSCRIBED.value
    else:
        logger.debug(f"Ignoring SendGrid event {kind}")
        return recipient

    session.add(recipient)
    if counter:
        await _bump_campaign(session, recipient, counter)
    return recipient


async def apply_sendgrid_events(session: AsyncSession, events: List[Mapping[str, Any]]) -> Dict[str, int]:
    """Apply a SendGrid batch, then withdraw email consent for unsubscribes."""
    matched = 0
    unsubscribed: List[str] = []
    for event in events:
        if not isinstance(event, Mapping):
            continue
        recipient = await apply_sendgrid_event(session, event)
        if recipient is None:
            continue
        matched += 1
        if event.get("event") in ("unsubscribe", "group_unsubscribe") and recipient.donor_id:
            unsubscribed.append(recipient.donor_id)
    await session.commit()

    opted_out = 0
    for donor_id in dict.fromkeys(unsubscribed):
        donor = await session.get(Donor, donor_id)
        if donor is None or donor.is_anonymized:
            continue
        await unsubscribe_donor(session, donor.ngo_id, donor.id, CHANNEL_EMAIL, source="sendgrid_unsubscribe")
        opted_out += 1
    logger.info(f"SendGrid webhook: {len(events)} events, {matched} matched, {opted_out} unsubscribed")
    return {"events": len(events), "matched": matched, "unsubscribed": opted_out}


def _phone_variants(phone: str) -> List[str]:
    digits = re.sub(r"\D", "", phone)
    variants = {phone, digits, phone.lstrip("+")}
    if digits.startswith("40") and len(digits) == 11:
        variants.add("0" + digits[2:])
    return [v for v in variants if v]


async def apply_twilio_status(
    session: AsyncSession,
    *,
    message_sid: str,
    message_status: str,
    to: Optional[str] = None,
    error_code: Optional[str] = None,
    error_message: Optional[str] = None,
) -> bool:
    """Apply a Twilio status callback and commit; returns whether a recipient matched."""
    recipient = await find_recipient(
        session, Channel.SMS.value, provider_message_id=message_sid, addresses=_phone_variants(to or "")
    )
    if recipient is None:
        return False

    if message_status == "delivered":
        if recipient.delivered_at is None:
            recipient.delivered_at = utc_now()
            await _bump_campaign(session, recipient, "total_delivered")
        _advance(recipient, DeliveryStatus.DELIVERED.value)
    elif message_status in ("failed", "undelivered"):
        recipient.status = DeliveryStatus.FAILED.value
        recipient.error_message = error_message or error_code or f"SMS {message_status}"
    else:
        return True
    session.add(recipient)
    await session.commit()
    return True


def is_opt_out(body: Optional[str]) -> bool:
    return (body or "").strip().upper() in OPT_OUT_KEYWORDS


async def opt_out_sms_sender(session: AsyncSession, phone: str) -> int:
    """Withdraw SMS consent from every donor with this number; returns how many."""
    digits = re.sub(r"\D", "", phone)
    if not digits:
        return 0
    conditions = [Donor.phone.in_(_phone_variants(phone))]
    if len(digits) >= 9:
        conditions.append(Donor.phone.endswith(digits[-9:]))
    stmt = select(Donor).where(or_(*conditions) & (Donor.sms_consent == True))  # noqa: E712
    donors = list((await session.execute(stmt)).scalars().all())
    opted_out = 0
    for donor in donors:
        if donor.is_anonymized:
            continue
        await unsubscribe_donor(session, donor.ngo_id, donor.id, CHANNEL_SMS, source="sms_reply_stop")
        opted_out += 1
    logger.info(f"SMS STOP from ...{digits[-4:]}: {opted_out} donors opted out")
    return opted_out
