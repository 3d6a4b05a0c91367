"""
Unit tests for Stripe webhook signature checks and event handling.
"""

import json

import pytest
from sqlmodel import select

from binevo.billing.invoice_generator import create_subscription_invoice
from binevo.core.database.entities import Donation, Donor, Notification
from binevo.core.errors import InvalidRequestError
from binevo.payments.webhooks import (
    handle_connect_event,
    handle_platform_event,
    sign_payload,
    verify_signature,
)

SECRET = "whsec_test"


class TestVerifySignature:
    def test_valid_signature_returns_event(self):
        payload = json.dumps({"id": "evt_1", "type": "account.updated"}).encode()
        header = sign_payload(payload, SECRET, timestamp=1_700_000_000)

        event = verify_signature(payload, header, SECRET, now=1_700_000_010)

        assert event["id"] == "evt_1"

    def test_any_v1_signature_may_match(self):
        payload = b'{"id": "evt_2"}'
        good = sign_payload(payload, SECRET, timestamp=1_700_000_000)
        header = f"t=1700000000,v1=deadbeef,{good.split(',')[1]}"

        assert verify_signature(payload, header, SECRET, now=1_700_000_000)["id"] == "evt_2"

    def test_wrong_secret(self):
        payload = b"{}"
        header = sign_payload(payload, "whsec_other", timestamp=1_700_000_000)

        with pytest.raises(InvalidRequestError, match="Invalid webhook signature"):
            verify_signature(payload, header, SECRET, now=1_700_000_000)

    def test_tampered_payload(self):
        header = sign_payload(b'{"amount": 10}', SECRET, timestamp=1_700_000_000)

        with pytest.raises(InvalidRequestError):
            verify_signature(b'{"amount": 1000}', header, SECRET, now=1_700_000_000)

    def test_timestamp_outside_tolerance(self):
        payload = b"{}"
        header = sign_payload(payload, SECRET, timestamp=1_700_000_000)

        with pytest.raises(InvalidRequestError, match="tolerance"):
            verify_signature(payload, header, SECRET, now=1_700_000_000 + 301)

    @pytest.mark.parametrize("header", [None, "", "t=abc,v1=00", "v1=00", "t=1700000000"])
    def test_missing_or_malformed_header(self, header):
        with pytest.raises(InvalidRequestError):
            verify_signature(b"{}", header, SECRET, now=1_700_000_000)


def _event(event_type: str, obj: dict) -> dict:
    return {"id": "evt_test", "type": event_type, "data": {"object": obj}}


async def _pending_donation(session, ngo, amount=120.0) -> Donation:
    donor = Donor(ngo_id=ngo.id, email="ion@example.ro", name="Ion")
    session.add(donor)
    await session.flush()
    donation = Donation(
        ngo_id=ngo.id,
        donor_id=donor.id,
        amount=amount,
        source="stripe_connect",
        stripe_checkout_session_id="cs_test_1",
    )
    session.add(donation)
    await session.commit()
    return donation


@pytest.mark.asyncio
class TestConnectEvents:
    async def test_account_updated_activates_and_notifies(self, session, ngo):
        ngo.stripe_connect_id = "acct_1"
        ngo.stripe_connect_status = "pending"
        session.add(ngo)
        await session.commit()

        result = await handle_connect_event(
            session, _event("account.updated", {"id": "acct_1", "charges_enabled": True, "payouts_enabled": True})
        )

        assert result == {"handled": True, "status": "active"}
        types = (await session.execute(select(Notification.type))).scalars().all()
        assert types == ["CONNECT_ACTIVE"]

    async def test_account_updated_for_unknown_account(self, session):
        result = await handle_connect_event(session, _event("account.updated", {"id": "acct_missing"}))

        assert result["handled"] is False

    async def test_checkout_completed_settles_donation_once(self, session, ngo):
        donation = await _pending_donation(session, ngo)
        obj = {
            "object": "checkout.session",
            "id": "cs_test_1",
            "payment_status": "paid",
            "payment_intent": "pi_1",
        }

        first = await handle_connect_event(session, _event("checkout.session.completed", obj))
        second = await handle_connect_event(session, _event("checkout.session.completed", obj))

        assert first == {"handled": True, "completed": True}
        assert second == {"handled": True, "completed": False}
        await session.refresh(donation)
        assert donation.status == "COMPLETED"
        assert donation.stripe_payment_intent_id == "pi_1"
        donor = await session.get(Donor, donation.donor_id)
        assert donor.donation_count == 1
        assert donor.total_donated == 120.0
        await session.refresh(ngo)
        assert ngo.total_raised == 120.0
        assert ngo.donor_count_public == 1

    async def test_unpaid_checkout_is_ignored(self, session, ngo):
        await _pending_donation(session, ngo)

        result = await handle_connect_event(
            session,
            _event(
                "checkout.session.completed",
                {"object": "checkout.session", "id": "cs_test_1", "payment_status": "unpaid"},
            ),
        )

        assert result == {"handled": False, "reason": "not paid"}

    async def test_payment_failed_uses_metadata(self, session, ngo):
        donation = await _pending_donation(session, ngo)

        result = await handle_connect_event(
            session,
            _event(
                "payment_intent.payment_failed",
                {
                    "object": "payment_intent",
                    "id": "pi_9",
                    "metadata": {"donation_id": donation.id},
                    "last_payment_error": {"message": "card_declined"},
                },
            ),
        )

        assert result == {"handled": True, "failed": True}
        assert donation.status == "FAILED"
        assert donation.details["failure_reason"] == "card_declined"

    async def test_refund_reverses_totals(self, session, ngo):
        donation = await _pending_donation(session, ngo, amount=80.0)
        paid = {"object": "payment_intent", "id": "pi_5", "metadata": {"donation_id": donation.id}}
        await handle_connect_event(session, _event("payment_intent.succeeded", paid))

        result = await handle_connect_event(
            session, _event("charge.refunded", {"object": "charge", "id": "ch_1", "payment_intent": "pi_5"})
        )

        assert result == {"handled": True, "refunded": True}
        assert donation.status == "REFUNDED"
        await session.refresh(ngo)
        assert ngo.total_raised == 0.0

    async def test_unhandled_event_type(self, session):
        result = await handle_connect_event(session, _event("customer.created", {}))

        assert result == {"handled": False, "reason": "ignored event customer.created"}


@pytest.mark.asyncio
async def test_platform_checkout_pays_invoice(session, ngo):
    invoice = await create_subscription_invoice(session, ngo, "PRO", send_email=False)

    result = await handle_platform_event(
        session,
        _event(
            "checkout.session.completed",
            {"object": "checkout.session", "payment_status": "paid", "metadata": {"invoice_id": invoice.id}},
        ),
    )

    assert result == {"handled": True, "paid": True}
    assert invoice.status == "PAID"
    assert invoice.payment_method == "card"
    await session.refresh(ngo)
    assert ngo.subscription_plan == "PRO"
