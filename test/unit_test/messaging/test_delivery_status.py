"""
Unit tests for provider delivery events: recipient matching, campaign
counters, unsubscribes, STOP replies and webhook signatures.
"""

import base64
import hashlib
import hmac

import pytest
from cryptography.hazmat.primitives import hashes, serialization
from cryptography.hazmat.primitives.asymmetric import ec
from sqlmodel import select

from binevo.core.database.entities import Campaign, ConsentRecord, Donor, Message, MessageRecipient
from binevo.messaging.delivery_status import (
    apply_sendgrid_events,
    apply_twilio_status,
    is_opt_out,
    opt_out_sms_sender,
    twilio_signature,
    verify_sendgrid_signature,
    verify_twilio_signature,
)


async def _sent_campaign(session, ngo, channel="EMAIL", address="ion@example.ro", provider_id="sg_msg_1"):
    donor = Donor(ngo_id=ngo.id, email="ion@example.ro", phone="0722000111", email_consent=True, sms_consent=True)
    campaign = Campaign(ngo_id=ngo.id, name="Iarna", status="SENT")
    session.add_all([donor, campaign])
    await session.flush()
    message = Message(ngo_id=ngo.id, campaign_id=campaign.id, channel=channel, status="SENT")
    session.add(message)
    await session.flush()
    recipient = MessageRecipient(
        message_id=message.id, donor_id=donor.id, channel=channel, address=address, provider_message_id=provider_id
    )
    session.add(recipient)
    await session.commit()
    return donor, campaign, recipient


class TestSendGridEvents:
    @pytest.mark.asyncio
    async def test_engagement_moves_forward_and_counts_once(self, session, ngo):
        _, campaign, recipient = await _sent_campaign(session, ngo)
        events = [
            {"event": "delivered", "email": "ion@example.ro", "sg_message_id": "sg_msg_1.filter0001", "timestamp": 1},
            {"event": "click", "email": "ion@example.ro", "sg_message_id": "sg_msg_1.filter0001"},
            {"event": "open", "email": "ion@example.ro", "sg_message_id": "sg_msg_1.filter0001"},
            {"event": "open", "email": "ion@example.ro", "sg_message_id": "sg_msg_1.filter0001"},
        ]

        result = await apply_sendgrid_events(session, events)

        assert result == {"events": 4, "matched": 4, "unsubscribed": 0}
        assert recipient.status == "CLICKED"
        assert recipient.delivered_at.year == 1970
        assert (campaign.total_delivered, campaign.total_opened, campaign.total_clicked) == (1, 1, 1)

    @pytest.mark.asyncio
    async def test_bounce_records_reason(self, session, ngo):
        _, campaign, recipient = await _sent_campaign(session, ngo)

        await apply_sendgrid_events(session, [{"event": "bounce", "email": "ion@example.ro", "reason": "550 no user"}])

        assert recipient.status == "BOUNCED"
        assert recipient.error_message == "550 no user"
        assert recipient.bounced_at is not None
        assert campaign.total_bounced == 1

    @pytest.mark.asyncio
    async def test_spam_report(self, session, ngo):
        _, campaign, recipient = await _sent_campaign(session, ngo)

        await apply_sendgrid_events(session, [{"event": "spamreport", "email": "ion@example.ro"}] * 2)

        assert recipient.status == "COMPLAINED"
        assert campaign.total_complaints == 1

    @pytest.mark.asyncio
    async def test_unsubscribe_withdraws_email_consent(self, session, ngo):
        donor, campaign, recipient = await _sent_campaign(session, ngo)

        result = await apply_sendgrid_events(session, [{"event": "group_unsubscribe", "email": "ION@example.ro"}])

        assert result["unsubscribed"] == 1
        assert recipient.status == "UNSUBSCRIBED"
        assert campaign.total_unsubscribed == 1
        await session.refresh(donor)
        assert donor.email_consent is False
        assert donor.sms_consent is True
        consent = (await session.execute(select(ConsentRecord))).scalars().one()
        assert (consent.type, consent.granted, consent.source) == ("EMAIL", False, "sendgrid_unsubscribe")

    @pytest.mark.asyncio
    async def test_unknown_address_and_junk_are_skipped(self, session, ngo):
        await _sent_campaign(session, ngo)

        result = await apply_sendgrid_events(session, [{"event": "open", "email": "altcineva@example.ro"}, "junk"])

        assert result == {"events": 2, "matched": 0, "unsubscribed": 0}


class TestTwilio:
    @pytest.mark.asyncio
    async def test_delivered_by_message_sid(self, session, ngo):
        _, campaign, recipient = await _sent_campaign(
            session, ngo, channel="SMS", address="+40722000111", provider_id="SM123"
        )

        matched = await apply_twilio_status(session, message_sid="SM123", message_status="delivered")

        assert matched is True
        assert recipient.status == "DELIVERED"
        assert campaign.total_delivered == 1

    @pytest.mark.asyncio
    async def test_failed_falls_back_to_address(self, session, ngo):
        _, _, recipient = await _sent_campaign(session, ngo, channel="SMS", address="+40722000111", provider_id=None)

        await apply_twilio_status(
            session, message_sid="SM999", message_status="undelivered", to="+40722000111", error_code="30003"
        )

        assert recipient.status == "FAILED"
        assert recipient.error_message == "30003"

    @pytest.mark.asyncio
    async def test_unknown_sid(self, session):
        assert await apply_twilio_status(session, message_sid="SM0", message_status="delivered") is False

    @pytest.mark.parametrize(
        "body,expected", [("STOP", True), (" cancel ", True), ("Unsubscribe", True), ("Stai", False)]
    )
    def test_opt_out_keywords(self, body, expected):
        assert is_opt_out(body) is expected

    @pytest.mark.asyncio
    async def test_stop_reply_withdraws_sms_consent(self, session, ngo):
        donor = Donor(ngo_id=ngo.id, email="ion@example.ro", phone="0722000111", email_consent=True, sms_consent=True)
        session.add(donor)
        await session.commit()

        assert await opt_out_sms_sender(session, "+40722000111") == 1

        await session.refresh(donor)
        assert donor.sms_consent is False
        assert donor.email_consent is True
        consent = (await session.execute(select(ConsentRecord))).scalars().one()
        assert (consent.type, consent.source) == ("SMS", "sms_reply_stop")


class TestSignatures:
    def test_sendgrid_signature(self):
        private_key = ec.generate_private_key(ec.SECP256R1())
        public_der = private_key.public_key().public_bytes(
            serialization.Encoding.DER, serialization.PublicFormat.SubjectPublicKeyInfo
        )
        verification_key = base64.b64encode(public_der).decode()
        body = b'[{"event":"open"}]'
        signature = base64.b64encode(private_key.sign(b"1700000000" + body, ec.ECDSA(hashes.SHA256()))).decode()

        assert verify_sendgrid_signature(verification_key, signature, "1700000000", body)
        assert not verify_sendgrid_signature(verification_key, signature, "1700000001", body)
        assert not verify_sendgrid_signature(verification_key, "bm90LWEtc2lnbmF0dXJl", "1700000000", body)

    def test_twilio_signature(self):
        url = "https://binevo.ro/api/v1/webhooks/twilio"
        params = {"MessageSid": "SM123", "MessageStatus": "delivered", "To": "+40722000111"}
        signed = url + "MessageSidSM123MessageStatusdeliveredTo+40722000111"
        expected = base64.b64encode(hmac.new(b"token", signed.encode(), hashlib.sha1).digest()).decode()

        assert twilio_signature("token", url, params) == expected
        assert verify_twilio_signature("token", url, params, expected)
        assert not verify_twilio_signature("token", url, params, None)
        assert not verify_twilio_signature("other", url, params, expected)
