"""
Unit tests for the donation lifecycle and its aggregate counters.
"""

import pytest
from sqlmodel import select

from binevo.core.database.entities import Campaign, Donation, Donor, Notification
from binevo.crm.donations import (
    complete_donation,
    fail_donation,
    online_fee_for,
    record_manual_donation,
    refund_donation,
)


async def _donor(session, ngo) -> Donor:
    donor = Donor(ngo_id=ngo.id, email="ion@example.ro", name="Ion")
    session.add(donor)
    await session.commit()
    return donor


@pytest.mark.asyncio
async def test_manual_donation_updates_all_totals(session, ngo):
    donor = await _donor(session, ngo)
    campaign = Campaign(ngo_id=ngo.id, name="Iarna calda", goal_amount=1000.0)
    session.add(campaign)
    await session.commit()

    donation = await record_manual_donation(
        session, ngo, donor, amount=250.456, source="bank_transfer", campaign_id=campaign.id, notes="OP 12"
    )

    assert donation.status == "COMPLETED"
    assert donation.amount == 250.46
    assert donation.fee_amount == 0.0
    assert donation.net_amount == 250.46
    assert donation.details == {"notes": "OP 12"}
    await session.refresh(donor)
    assert donor.donation_count == 1
    assert donor.total_donated == 250.46
    assert donor.last_donation_at is not None
    await session.refresh(ngo)
    assert ngo.total_raised == 250.46
    assert ngo.donor_count_public == 1
    await session.refresh(campaign)
    assert campaign.raised_amount == 250.46
    types = (await session.execute(select(Notification.type))).scalars().all()
    assert types == ["DONATION_RECEIVED"]


@pytest.mark.asyncio
async def test_public_donor_count_only_grows_on_first_gift(session, ngo):
    donor = await _donor(session, ngo)

    await record_manual_donation(session, ngo, donor, amount=10, source="cash")
    await record_manual_donation(session, ngo, donor, amount=20, source="cash")

    await session.refresh(ngo)
    assert ngo.donor_count_public == 1
    assert ngo.total_raised == 30.0


@pytest.mark.asyncio
async def test_anonymous_manual_donation(session, ngo):
    donation = await record_manual_donation(session, ngo, None, amount=50, source="cash")

    assert donation.donor_id is None
    await session.refresh(ngo)
    assert ngo.total_raised == 50.0
    assert ngo.donor_count_public == 0


@pytest.mark.asyncio
async def test_state_transitions_are_guarded(session, ngo):
    donor = await _donor(session, ngo)
    donation = Donation(ngo_id=ngo.id, donor_id=donor.id, amount=40.0, source="stripe_connect")
    session.add(donation)
    await session.commit()

    assert await refund_donation(session, donation) is False
    assert await complete_donation(session, donation, payment_intent_id="pi_1") is True
    assert await complete_donation(session, donation) is False
    assert await fail_donation(session, donation, "late") is False
    assert await refund_donation(session, donation) is True

    await session.refresh(donor)
    assert donor.donation_count == 0
    assert donor.total_donated == 0.0


@pytest.mark.asyncio
async def test_fail_donation_notifies(session, ngo):
    donation = Donation(ngo_id=ngo.id, amount=40.0, source="stripe_connect")
    session.add(donation)
    await session.commit()

    assert await fail_donation(session, donation, "card_declined") is True

    assert donation.status == "FAILED"
    notification = (await session.execute(select(Notification))).scalars().one()
    assert notification.type == "PAYMENT_FAILED"
    assert notification.details["reason"] == "card_declined"


@pytest.mark.parametrize(
    "plan, status, expected_fee",
    [
        ("BASIC", "active", 4.0),
        ("PRO", "active", 1.5),
        ("ELITE", "active", 0.0),
        ("ELITE", "expired", 4.0),
    ],
)
@pytest.mark.asyncio
async def test_online_fee_follows_effective_plan(ngo, plan, status, expected_fee):
    ngo.subscription_plan = plan
    ngo.subscription_status = status

    assert online_fee_for(ngo, 100.0).fee_amount == expected_fee
