"""
API tests for the donor CRM endpoints.
"""

import pytest
from httpx import AsyncClient
from sqlmodel import select

from binevo.core.database.entities import ConsentRecord, Donor, User
from binevo.server.api.v1 import donors as donors_routes
from binevo.server.core.security import hash_password

pytestmark = pytest.mark.asyncio

URL = "/api/v1/donors"


async def _seed(session, ngo):
    rows = [
        Donor(ngo_id=ngo.id, email="ion@example.ro", name="Ion Pop", total_donated=500.0, donation_count=3),
        Donor(ngo_id=ngo.id, email="maria@example.ro", name="Maria", total_donated=50.0, preferred_channel="SMS"),
        Donor(ngo_id=ngo.id, email="sters@example.ro", name="Sters", status="DELETED"),
        Donor(
            ngo_id=ngo.id,
            email="contact@firma.ro",
            donor_type="COMPANY",
            company_name="Firma Verde SRL",
            company_cui="RO999",
        ),
    ]
    session.add_all(rows)
    await session.commit()
    return rows


async def test_create_donor(client: AsyncClient, session, auth_headers):
    payload = {
        "email": "Nou@Example.ro",
        "name": "Donator Nou",
        "email_consent": True,
        "privacy_consent": True,
        "tags": ["lunar", "vip"],
    }

    response = await client.post(URL, json=payload, headers=auth_headers)

    assert response.status_code == 201
    body = response.json()
    assert body["email"] == "nou@example.ro"
    assert body["tags"] == ["lunar", "vip"]
    assert body["source"] == "manual"
    consent_types = (await session.execute(select(ConsentRecord.type))).scalars().all()
    assert sorted(consent_types) == ["EMAIL", "PRIVACY"]


async def test_create_requires_contact(client: AsyncClient, auth_headers):
    response = await client.post(URL, json={"name": "Fara contact"}, headers=auth_headers)

    assert response.status_code == 422


async def test_create_duplicate_email(client: AsyncClient, session, ngo, auth_headers):
    await _seed(session, ngo)

    response = await client.post(URL, json={"email": "ION@example.ro"}, headers=auth_headers)

    assert response.status_code == 409


async def test_create_respects_plan_limit(client: AsyncClient, session, ngo, auth_headers, monkeypatch):
    await _seed(session, ngo)
    monkeypatch.setattr(donors_routes, "is_over_donor_limit", lambda plan, current: current >= 3)

    response = await client.post(URL, json={"email": "unul-in-plus@example.ro"}, headers=auth_headers)

    assert response.status_code == 403
    assert response.json()["code"] == "DONOR_LIMIT_REACHED"
    assert response.json()["limit"] == 500


async def test_list_excludes_deleted_and_paginates(client: AsyncClient, session, ngo, auth_headers):
    await _seed(session, ngo)

    response = await client.get(URL, params={"limit": 2, "sort": "email", "order": "asc"}, headers=auth_headers)

    body = response.json()
    assert response.status_code == 200
    assert body["pagination"] == {"page": 1, "limit": 2, "total": 3, "total_pages": 2}
    assert [d["email"] for d in body["items"]] == ["contact@firma.ro", "ion@example.ro"]


@pytest.mark.parametrize(
    "params, expected",
    [
        ({"search": "mari"}, ["maria@example.ro"]),
        ({"channel": "sms"}, ["maria@example.ro"]),
        ({"min_amount": 100}, ["ion@example.ro"]),
        ({"status": "deleted"}, ["sters@example.ro"]),
        ({"search": "Verde", "donor_type": "company"}, ["contact@firma.ro"]),
    ],
)
async def test_list_filters(client: AsyncClient, session, ngo, auth_headers, params, expected):
    await _seed(session, ngo)

    response = await client.get(URL, params=params, headers=auth_headers)

    assert [d["email"] for d in response.json()["items"]] == expected


async def test_list_by_tag(client: AsyncClient, session, ngo, auth_headers):
    await _seed(session, ngo)
    created = await client.post(URL, json={"email": "tag@example.ro", "tags": ["vip"]}, headers=auth_headers)

    response = await client.get(URL, params={"tags": "vip,altul"}, headers=auth_headers)

    assert [d["id"] for d in response.json()["items"]] == [created.json()["id"]]


async def test_get_update_and_delete(client: AsyncClient, session, ngo, auth_headers):
    ion, *_ = await _seed(session, ngo)

    detail = await client.get(f"{URL}/{ion.id}", headers=auth_headers)
    assert detail.status_code == 200
    assert detail.json()["recent_donations"] == []

    updated = await client.patch(
        f"{URL}/{ion.id}", json={"name": "Ion Popescu", "sms_consent": True, "tags": ["major"]}, headers=auth_headers
    )
    assert updated.status_code == 200
    assert updated.json()["name"] == "Ion Popescu"
    assert updated.json()["tags"] == ["major"]
    consent = (await session.execute(select(ConsentRecord))).scalars().one()
    assert (consent.type, consent.granted) == ("SMS", True)

    deleted = await client.delete(f"{URL}/{ion.id}", headers=auth_headers)
    assert deleted.status_code == 204
    await session.refresh(ion)
    assert ion.status == "DELETED"


async def test_update_email_clash(client: AsyncClient, session, ngo, auth_headers):
    ion, maria, *_ = await _seed(session, ngo)

    response = await client.patch(f"{URL}/{maria.id}", json={"email": ion.email}, headers=auth_headers)

    assert response.status_code == 409


async def test_other_tenant_gets_404(client: AsyncClient, session, ngo, auth_headers):
    from binevo.core.database.entities import Ngo

    other = Ngo(name="Alt ONG", slug="alt-ong")
    session.add(other)
    await session.flush()
    foreign = Donor(ngo_id=other.id, email="strain@example.ro")
    session.add(foreign)
    await session.commit()

    assert (await client.get(f"{URL}/{foreign.id}", headers=auth_headers)).status_code == 404
    assert (await client.delete(f"{URL}/{foreign.id}", headers=auth_headers)).status_code == 404


async def test_viewer_cannot_write(client: AsyncClient, session, ngo, make_auth_headers):
    viewer = User(
        email="viewer@speranta.ro", password_hash=hash_password("x" * 10), name="Vasile", role="VIEWER", ngo_id=ngo.id
    )
    session.add(viewer)
    await session.commit()
    headers = make_auth_headers(viewer)

    assert (await client.get(URL, headers=headers)).status_code == 200
    response = await client.post(URL, json={"email": "a@example.ro"}, headers=headers)
    assert response.status_code == 403
    assert response.json()["detail"] == "Insufficient permissions"


async def test_requires_authentication(client: AsyncClient):
    assert (await client.get(URL)).status_code == 401


async def test_export_and_import_csv(client: AsyncClient, session, ngo, auth_headers):
    await _seed(session, ngo)

    export = await client.get(f"{URL}/export", headers=auth_headers)
    assert export.status_code == 200
    assert export.headers["content-type"].startswith("text/csv")
    assert "donatori-asociatia-speranta-" in export.headers["content-disposition"]
    lines = export.text.strip().splitlines()
    assert lines[0].startswith("email,name,phone")
    assert len(lines) == 4

    csv_body = "email,name\nion@example.ro,Dublura\nnou@example.ro,Nou\n"
    imported = await client.post(
        f"{URL}/import", files={"file": ("donatori.csv", csv_body, "text/csv")}, headers=auth_headers
    )
    assert imported.status_code == 200
    assert imported.json() == {
        "imported": 1,
        "skipped": 1,
        "errors": ["Row 2: duplicate email ion@example.ro"],
    }
