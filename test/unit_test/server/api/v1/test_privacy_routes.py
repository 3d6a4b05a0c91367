import pytest
from httpx import AsyncClient
from sqlmodel import select

from binevo.core.database.entities import AuditLog, Donor, User
from binevo.crm.subscribers import upsert_public_donor
from binevo.server.core.security import hash_password

pytestmark = pytest.mark.asyncio

URL = "/api/v1/gdpr/donors"


async def _donor(session, ngo) -> Donor:
    donor, _ = await upsert_public_donor(
        session,
        ngo.id,
        email="maria@example.ro",
        name="Maria Ionescu",
        email_consent=True,
        privacy_consent=True,
        source="newsletter",
    )
    return donor


async def test_export(client: AsyncClient, session, ngo, ngo_admin, auth_headers):
    donor = await _donor(session, ngo)

    response = await client.get(f"{URL}/{donor.id}/export", headers=auth_headers)

    assert response.status_code == 200
    assert response.json()["donor"]["email"] == "maria@example.ro"
    actions = (await session.execute(select(AuditLog.action))).scalars().all()
    assert "GDPR_DATA_EXPORTED" in actions


async def test_anonymize(client: AsyncClient, session, ngo, auth_headers):
    donor = await _donor(session, ngo)

    response = await client.post(f"{URL}/{donor.id}/anonymize", headers=auth_headers)

    assert response.status_code == 200
    assert response.json()["message"] == "Donor data anonymised"
    await session.refresh(donor)
    assert donor.is_anonymized is True
    assert donor.email is None


async def test_unknown_donor(client: AsyncClient, auth_headers):
    response = await client.get(f"{URL}/missing/export", headers=auth_headers)

    assert response.status_code == 404
    assert response.json()["code"] == "NOT_FOUND"


async def test_viewer_is_forbidden(client: AsyncClient, session, ngo, make_auth_headers):
    donor = await _donor(session, ngo)
    viewer = User(
        email="viewer@speranta.ro", password_hash=hash_password("x" * 10), name="Vasile", role="VIEWER", ngo_id=ngo.id
    )
    session.add(viewer)
    await session.commit()

    response = await client.post(f"{URL}/{donor.id}/anonymize", headers=make_auth_headers(viewer))

    assert response.status_code == 403
    assert response.json()["detail"] == "Insufficient permissions"
