"""
Campaign delivery.

A campaign is sent once: it moves DRAFT/SCHEDULED -> SENDING -> SENT and
produces one ``Message`` plus a ``MessageRecipient`` row per delivery
attempt.
"""

from __future__ import annotations

from datetime import datetime
from typing import Any, Dict, List, Optional, Tuple

from sqlalchemy.ext.asyncio import AsyncSession
from sqlmodel import select

from binevo.billing.plans import has_feature
from binevo.core.audit import record_audit
from binevo.core.database.base import utc_now
from binevo.core.database.entities import Campaign, Donor, DonorTagAssignment, Message, MessageRecipient, Ngo, Tag
from binevo.core.errors import InvalidRequestError, PlanFeatureUnavailableError
from binevo.core.logging_config import get_logger
from binevo.core.models.domain import CampaignStatus, Channel, DonorStatus, NotificationType
from binevo.core.monitoring import log_business_event

from .automation_engine import render_template
from .email import ngo_email_config, send_email, unsubscribe_url
from .notifications import create_notification
from .sms import ngo_sms_config, send_sms

logger = get_logger(__name__)

SENDABLE_STATUSES = (CampaignStatus.DRAFT.value, CampaignStatus.SCHEDULED.value)


def _parse_date(value: Any) -> Optional[datetime]:
    if not value:
        return None
    if isinstance(value, datetime):
        return value
    try:
        return datetime.fromisoformat(str(value).replace("Z", ""))
    except ValueError as e:
        raise InvalidRequestError(f"Invalid date in segment: {value}") from e


def channels_for(campaign_channel: str) -> Tuple[bool, bool]:
    """Return (email, sms) flags for a campaign channel."""
    return (
        campaign_channel in (Channel.EMAIL.value, Channel.BOTH.value),
        campaign_channel in (Channel.SMS.value, Channel.BOTH.value),
    )


def required_features(campaign_channel: str) -> List[str]:
    use_email, use_sms = channels_for(campaign_channel)
    features = []
    if use_email:
        features.append("campaigns_email")
    if use_sms:
        features.append("campaigns_sms")
    return features


def build_recipient_query(ngo_id: str, channel: str, segment: Optional[Dict[str, Any]] = None):
    """Donors reachable on ``channel`` and matching the campaign segment."""
    use_email, use_sms = channels_for(channel)
    stmt = select(Donor).where(
        (Donor.ngo_id == ngo_id)
        & (Donor.status == DonorStatus.ACTIVE.value)
        & (Donor.is_anonymized == False)  # noqa: E712
    )

    reachable = []
    if use_email:
        reachable.append((Donor.email_consent == True) & Donor.email.is_not(None))  # noqa: E712
    if use_sms:
        reachable.append((Donor.sms_consent == True) & Donor.phone.is_not(None))  # noqa: E712
    if len(reachable) == 1:
        stmt = stmt.where(reachable[0])
    elif reachable:
        stmt = stmt.where(reachable[0] | reachable[1])

    segment = segment or {}
    tags = [t for t in segment.get("tags") or [] if t]
    if tags:
        tagged = (
            select(DonorTagAssignment.donor_id)
            .join(Tag, Tag.id == DonorTagAssignment.tag_id)
            .where((Tag.ngo_id == ngo_id) & (Tag.name.in_(tags)))
        )
        stmt = stmt.where(Donor.id.in_(tagged))
    if segment.get("min_amount") is not None:
        stmt = stmt.where(Donor.total_donated >= float(segment["min_amount"]))
    if segment.get("max_amount") is not None:
        stmt = stmt.where(Donor.total_donated <= float(segment["max_amount"]))
    donated_after = _parse_date(segment.get("donated_after"))
    if donated_after is not None:
        stmt = stmt.where(Donor.last_donation_at >= donated_after)
    donated_before = _parse_date(segment.get("donated_before"))
    if donated_before is not None:
        stmt = stmt.where(Donor.last_donation_at <= donated_before)
    return stmt.order_by(Donor.created_at)


async def send_campaign(
    session: AsyncSession,
    ngo: Ngo,
    campaign: Campaign,
    *,
    plan: str,
    user_id: Optional[str] = None,
    ip_address: Optional[str] = None,
) -> Dict[str, Any]:
    if campaign.status not in SENDABLE_STATUSES:
        raise InvalidRequestError(f"Campaign cannot be sent from status {campaign.status}", code="INVALID_STATUS")
    for feature in required_features(campaign.channel):
        if not has_feature(plan, feature):
            raise PlanFeatureUnavailableError("Feature not available on your plan", extra={"feature": feature})

    use_email, use_sms = channels_for(campaign.channel)
    if use_email and not (campaign.subject and campaign.email_body):
        raise InvalidRequestError("Email campaigns need a subject and a body")
    if use_sms and not campaign.sms_body:
        raise InvalidRequestError("SMS campaigns need an SMS body")

    campaign.status = CampaignStatus.SENDING.value
    campaign.updated_at = utc_now()
    session.add(campaign)
    await session.commit()

    donors = list(
        (await session.execute(build_recipient_query(ngo.id, campaign.channel, campaign.segment_query))).scalars().all()
    )
    message = Message(
        ngo_id=ngo.id,
        campaign_id=campaign.id,
        channel=campaign.channel,
        subject=campaign.subject,
        body=campaign.email_body or campaign.sms_body or "",
    )
    session.add(message)
    await session.flush()

    email_config = ngo_email_config(ngo) if use_email else None
    sms_config = ngo_sms_config(ngo) if use_sms else None
    sent = 0
    failed = 0

    for donor in donors:
        if use_email and donor.email and donor.email_consent:
            result = await send_email(
                donor.email,
                render_template(campaign.subject or "", donor, ngo),
                render_template(campaign.email_body or "", donor, ngo),
                config=email_config,
                unsubscribe=unsubscribe_url(ngo.slug, donor.id),
            )
            session.add(
                MessageRecipient(
                    message_id=message.id,
                    donor_id=donor.id,
                    channel=Channel.EMAIL.value,
                    address=donor.email,
                    status="SENT" if result.success else "FAILED",
                    provider_message_id=result.message_id,
                    error_message=result.error,
                )
            )
            sent, failed = (sent + 1, failed) if result.success else (sent, failed + 1)

        if use_sms and donor.phone and donor.sms_consent:
            result = await send_sms(
                donor.phone,
                render_template(campaign.sms_body or "", donor, ngo),
                config=sms_config,
            )
            session.add(
                MessageRecipient(
                    message_id=message.id,
                    donor_id=donor.id,
                    channel=Channel.SMS.value,
                    address=donor.phone,
                    status="SENT" if result.success else "FAILED",
                    provider_message_id=result.message_id,
                    error_message=result.error,
                )
            )
            sent, failed = (sent + 1, failed) if result.success else (sent, failed + 1)

    now = utc_now()
    message.status = "SENT"
    message.sent_count = sent
    message.failed_count = failed
    message.sent_at = now
    session.add(message)

    campaign.status = CampaignStatus.SENT.value
    campaign.sent_at = now
    campaign.recipient_count = len(donors)
    campaign.total_sent = sent
    campaign.total_failed = failed
    campaign.updated_at = now
    session.add(campaign)

    await create_notification(
        session,
        ngo_id=ngo.id,
        type=NotificationType.CAMPAIGN_SENT.value,
        title="Campanie trimisa",
        message=f"Campania '{campaign.name}' a fost trimisa catre {len(donors)} destinatari.",
        action_url=f"/dashboard/campaigns/{campaign.id}",
        details={"campaign_id": campaign.id, "sent": sent, "failed": failed},
        commit=False,
    )
    await record_audit(
        session,
        action="CAMPAIGN_SENT",
        entity_type="Campaign",
        entity_id=campaign.id,
        ngo_id=ngo.id,
        user_id=user_id,
        ip_address=ip_address,
        details={"recipients": len(donors), "sent": sent, "failed": failed},
        commit=False,
    )
    await session.commit()
    log_business_event("campaign_sent", campaign_id=campaign.id, ngo_id=ngo.id, sent=sent, failed=failed)

    return {
        "campaign_id": campaign.id,
        "message_id": message.id,
        "recipients": len(donors),
        "sent": sent,
        "failed": failed,
    }
