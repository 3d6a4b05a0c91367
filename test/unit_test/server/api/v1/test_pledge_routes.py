"""
API tests for bank transfer and Revolut pledges: the public announcement and
the dashboard review.
"""

import pytest
from httpx import AsyncClient
from sqlmodel import select

from binevo.core.database.entities import AuditLog, DonationPledge, User
from binevo.server.core.security import hash_password

pytestmark = pytest.mark.asyncio

URL = "/api/v1/pledges"


async def _pledge(client: AsyncClient, session, ngo, **overrides) -> dict:
    ngo.iban = "RO49AAAA1B31007593840000"
    ngo.bank_name = "Banca Transilvania"
    session.add(ngo)
    await session.commit()
    payload = {"ngo_slug": ngo.slug, "payment_method": "bank_transfer", "amount": 200, "donor_email": "m@example.ro"}
    payload.update(overrides)
    response = await client.post("/api/v1/donate/pledge", json=payload)
    assert response.status_code == 201
    return response.json()


async def test_bank_transfer_pledge(client: AsyncClient, session, ngo):
    body = await _pledge(client, session, ngo)

    assert body["reference_code"].startswith("ONG-")
    assert body["message"] == f"Foloseste referinta {body['reference_code']} in descrierea transferului bancar."
    assert body["bank_details"] == {
        "beneficiary": "Asociatia Speranta",
        "iban": "RO49AAAA1B31007593840000",
        "bank_name": "Banca Transilvania",
    }
    assert body["revolut_details"] is None


async def test_revolut_pledge(client: AsyncClient, session, ngo):
    ngo.revolut_tag = "@speranta"
    session.add(ngo)
    await session.commit()

    response = await client.post("/api/v1/donate/pledge", json={"ngo_slug": ngo.slug, "payment_method": "revolut"})

    body = response.json()
    assert response.status_code == 201
    assert body["message"].endswith("in mesajul platii Revolut.")
    assert body["revolut_details"]["tag"] == "@speranta"


async def test_pledge_for_unconfigured_method(client: AsyncClient, ngo):
    response = await client.post("/api/v1/donate/pledge", json={"ngo_slug": ngo.slug, "payment_method": "revolut"})

    assert response.status_code == 400
    assert response.json()["code"] == "METHOD_NOT_CONFIGURED"


async def test_pledge_for_unknown_ngo(client: AsyncClient):
    response = await client.post("/api/v1/donate/pledge", json={"ngo_slug": "nu-exista", "payment_method": "revolut"})

    assert response.status_code == 404


async def test_list_and_verify(client: AsyncClient, session, ngo, auth_headers):
    created = await _pledge(client, session, ngo)

    pending = await client.get(URL, params={"status": "PENDING"}, headers=auth_headers)
    verified = await client.post(
        f"{URL}/{created['pledge_id']}/verify", json={"amount": 180, "admin_notes": "OP 42"}, headers=auth_headers
    )
    listed = await client.get(URL, headers=auth_headers)

    assert [item["id"] for item in pending.json()["items"]] == [created["pledge_id"]]
    assert verified.status_code == 200
    assert verified.json()["status"] == "VERIFIED"
    assert verified.json()["amount"] == 180.0
    assert verified.json()["donation_id"]
    assert listed.json()["counts"] == {"pending": 0, "verified": 1, "rejected": 0}
    actions = (await session.execute(select(AuditLog.action))).scalars().all()
    assert "PLEDGE_VERIFIED" in actions
    await session.refresh(ngo)
    assert ngo.total_raised == 180.0


async def test_reject_then_verify(client: AsyncClient, session, ngo, auth_headers):
    created = await _pledge(client, session, ngo)
    url = f"{URL}/{created['pledge_id']}"

    rejected = await client.post(f"{url}/reject", json={"admin_notes": "Lipsa"}, headers=auth_headers)
    again = await client.post(f"{url}/verify", json={}, headers=auth_headers)

    assert rejected.json()["status"] == "REJECTED"
    assert again.status_code == 400


async def test_staff_cannot_verify(client: AsyncClient, session, ngo, make_auth_headers):
    created = await _pledge(client, session, ngo)
    staff = User(
        email="staff@speranta.ro", password_hash=hash_password("x" * 10), name="Ion", role="STAFF", ngo_id=ngo.id
    )
    session.add(staff)
    await session.commit()
    headers = make_auth_headers(staff)

    assert (await client.get(URL, headers=headers)).status_code == 200
    response = await client.post(f"{URL}/{created['pledge_id']}/verify", json={}, headers=headers)
    assert response.status_code == 403


async def test_foreign_pledge_is_hidden(client: AsyncClient, session, ngo, auth_headers):
    foreign = DonationPledge(ngo_id="alt-ngo", reference_code="ONG-AAAAAA", payment_method="revolut")
    session.add(foreign)
    await session.commit()

    response = await client.post(f"{URL}/{foreign.id}/reject", json={}, headers=auth_headers)

    assert response.status_code == 404
