"""
Unit tests for donation pledges: reference codes, verification into a
completed donation, and rejection.
"""

import pytest
from sqlmodel import select

from binevo.core.database.entities import Donation, Donor, Ngo, Notification
from binevo.core.errors import InvalidRequestError
from binevo.crm import pledges
from binevo.crm.pledges import (
    create_pledge,
    generate_reference_code,
    method_configured,
    pledge_counts,
    reject_pledge,
    verify_pledge,
)


async def _bank_ngo(session, ngo):
    ngo.iban = "RO49AAAA1B31007593840000"
    session.add(ngo)
    await session.commit()
    return ngo


def test_reference_code_format():
    code = generate_reference_code()

    assert code.startswith("ONG-")
    assert len(code) == 10
    assert not set(code[4:]) & set("01IO")


def test_method_configured():
    ngo = Ngo(name="Asociatia Speranta", slug="asociatia-speranta")

    assert not method_configured(ngo, "bank_transfer")
    assert not method_configured(ngo, "revolut")

    ngo.revolut_link = "https://revolut.me/speranta"
    assert method_configured(ngo, "revolut")
    assert not method_configured(ngo, "paypal")


@pytest.mark.asyncio
async def test_create_pledge_notifies_ngo(session, ngo):
    await _bank_ngo(session, ngo)

    pledge = await create_pledge(
        session, ngo, payment_method="bank_transfer", amount=150.0, donor_email="Maria@Example.ro"
    )

    assert pledge.status == "PENDING"
    assert pledge.donor_email == "maria@example.ro"
    notification = (await session.execute(select(Notification))).scalars().one()
    assert notification.type == "PLEDGE_RECEIVED"
    assert pledge.reference_code in notification.message


@pytest.mark.asyncio
async def test_create_pledge_requires_configured_method(session, ngo):
    with pytest.raises(InvalidRequestError) as exc_info:
        await create_pledge(session, ngo, payment_method="revolut")

    assert exc_info.value.code == "METHOD_NOT_CONFIGURED"


@pytest.mark.asyncio
async def test_verify_pledge_records_completed_donation(session, ngo):
    await _bank_ngo(session, ngo)
    pledge = await create_pledge(
        session, ngo, payment_method="bank_transfer", amount=100.0, donor_name="Maria", donor_email="maria@example.ro"
    )

    donation = await verify_pledge(session, ngo, pledge, verified_by="user_1", amount=120.0, admin_notes="OP 77")

    assert donation.status == "COMPLETED"
    assert donation.source == "manual_pledge"
    assert donation.amount == 120.0
    assert donation.details["reference_code"] == pledge.reference_code
    assert pledge.status == "VERIFIED"
    assert pledge.donation_id == donation.id
    assert pledge.amount == 120.0
    assert pledge.verified_by == "user_1"
    donor = await session.get(Donor, donation.donor_id)
    assert donor.email == "maria@example.ro"
    assert donor.source == "manual_pledge"
    assert await pledge_counts(session, ngo.id) == {"pending": 0, "verified": 1, "rejected": 0}


@pytest.mark.asyncio
async def test_verify_pledge_without_amount(session, ngo):
    await _bank_ngo(session, ngo)
    pledge = await create_pledge(session, ngo, payment_method="bank_transfer")

    with pytest.raises(InvalidRequestError):
        await verify_pledge(session, ngo, pledge, verified_by="user_1")


@pytest.mark.asyncio
async def test_verify_pledge_over_donor_limit_keeps_donation(session, ngo, monkeypatch):
    await _bank_ngo(session, ngo)
    monkeypatch.setattr(pledges, "is_over_donor_limit", lambda plan, current: True)
    pledge = await create_pledge(
        session, ngo, payment_method="bank_transfer", amount=50.0, donor_email="nou@example.ro"
    )

    donation = await verify_pledge(session, ngo, pledge, verified_by="user_1")

    assert donation.donor_id is None
    assert (await session.execute(select(Donor))).scalars().first() is None


@pytest.mark.asyncio
async def test_reject_pledge_is_final(session, ngo):
    await _bank_ngo(session, ngo)
    pledge = await create_pledge(session, ngo, payment_method="bank_transfer", amount=30.0)

    await reject_pledge(session, pledge, verified_by="user_1", admin_notes="Nu a ajuns")

    assert pledge.status == "REJECTED"
    assert (await session.execute(select(Donation))).scalars().first() is None
    with pytest.raises(InvalidRequestError, match="already rejected"):
        await verify_pledge(session, ngo, pledge, verified_by="user_1")
