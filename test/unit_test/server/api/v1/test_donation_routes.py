import pytest
from httpx import AsyncClient
from sqlmodel import select

from binevo.core.database.entities import Donation, Donor

pytestmark = pytest.mark.asyncio

URL = "/api/v1/donations"


async def test_manual_donation_creates_donor(client: AsyncClient, session, ngo, auth_headers):
    response = await client.post(
        URL,
        json={"amount": 200, "donor_email": "Nou@Example.ro", "donor_name": "Dan", "source": "cash"},
        headers=auth_headers,
    )

    assert response.status_code == 201
    body = response.json()
    assert body["status"] == "COMPLETED"
    assert body["donor_email"] == "nou@example.ro"
    assert body["donor_name"] == "Dan"
    donor = (await session.execute(select(Donor).where(Donor.email == "nou@example.ro"))).scalars().one()
    assert donor.total_donated == 200.0
    assert donor.email_encrypted


async def test_existing_donor_by_email(client: AsyncClient, session, ngo, auth_headers):
    donor = Donor(ngo_id=ngo.id, email="ion@example.ro", name="Ion")
    session.add(donor)
    await session.commit()

    await client.post(URL, json={"amount": 50, "donor_email": "ion@example.ro"}, headers=auth_headers)

    donors = (await session.execute(select(Donor))).scalars().all()
    assert len(donors) == 1


@pytest.mark.parametrize("field", ["donor_id", "campaign_id"])
async def test_unknown_references(client: AsyncClient, auth_headers, field):
    response = await client.post(URL, json={"amount": 10, field: "missing"}, headers=auth_headers)

    assert response.status_code == 404


async def test_list_filters(client: AsyncClient, session, ngo, auth_headers):
    donor = Donor(ngo_id=ngo.id, email="ion@example.ro", name="Ion")
    session.add(donor)
    await session.flush()
    session.add_all(
        [
            Donation(ngo_id=ngo.id, donor_id=donor.id, amount=300.0, status="COMPLETED", source="stripe_connect"),
            Donation(ngo_id=ngo.id, donor_id=donor.id, amount=40.0, status="COMPLETED", source="cash"),
            Donation(ngo_id=ngo.id, amount=70.0, status="FAILED", source="stripe_connect"),
        ]
    )
    await session.commit()

    completed = await client.get(URL, params={"status": "completed"}, headers=auth_headers)
    large = await client.get(URL, params={"min_amount": 100}, headers=auth_headers)
    cash = await client.get(URL, params={"source": "cash"}, headers=auth_headers)

    assert completed.json()["pagination"]["total"] == 2
    assert [d["amount"] for d in large.json()["items"]] == [300.0]
    assert large.json()["items"][0]["donor_name"] == "Ion"
    assert [d["amount"] for d in cash.json()["items"]] == [40.0]


async def test_non_positive_amount(client: AsyncClient, auth_headers):
    response = await client.post(URL, json={"amount": 0}, headers=auth_headers)

    assert response.status_code == 422
