import pytest
from httpx import AsyncClient
from sqlmodel import select

from binevo.core.database.entities import AuditLog, User
from binevo.server.core.security import hash_password

pytestmark = pytest.mark.asyncio

URL = "/api/v1/settings"


async def test_profile_update_is_audited(client: AsyncClient, session, auth_headers):
    response = await client.patch(
        f"{URL}/profile", json={"name": "Asociatia Speranta Noua", "city": "Oradea"}, headers=auth_headers
    )

    assert response.status_code == 200
    assert response.json()["name"] == "Asociatia Speranta Noua"
    audit = (await session.execute(select(AuditLog).where(AuditLog.action == "SETTINGS_UPDATED"))).scalars().one()
    assert audit.details == {"section": "profile", "fields": ["city", "name"]}


async def test_sendgrid_key_is_write_only(client: AsyncClient, auth_headers):
    saved = await client.patch(
        f"{URL}/email", json={"sender_name": "Speranta", "sendgrid_api_key": "SG.secret"}, headers=auth_headers
    )
    cleared = await client.patch(f"{URL}/email", json={"sendgrid_api_key": ""}, headers=auth_headers)

    assert saved.json()["sendgrid_api_key_set"] is True
    assert "sendgrid_api_key" not in saved.json()
    assert cleared.json()["sendgrid_api_key_set"] is False
    assert cleared.json()["sender_name"] == "Speranta"


async def test_publish_minisite(client: AsyncClient, auth_headers):
    response = await client.patch(
        f"{URL}/minisite", json={"config": {"headline": "Ajuta-ne"}, "published": True}, headers=auth_headers
    )

    assert response.json()["minisite_published"] is True
    assert response.json()["minisite_config"] == {"headline": "Ajuta-ne"}


async def test_invite_and_manage_member(client: AsyncClient, session, ngo_admin, auth_headers):
    invited = await client.post(
        f"{URL}/team", json={"email": "Maria@Speranta.ro", "name": "Maria", "role": "VIEWER"}, headers=auth_headers
    )

    assert invited.status_code == 201
    member_id = invited.json()["id"]
    assert invited.json()["email"] == "maria@speranta.ro"
    assert invited.json()["role"] == "VIEWER"

    promoted = await client.patch(f"{URL}/team/{member_id}", json={"role": "STAFF"}, headers=auth_headers)
    assert promoted.json()["role"] == "STAFF"

    team = await client.get(f"{URL}/team", headers=auth_headers)
    assert [u["email"] for u in team.json()] == [ngo_admin.email, "maria@speranta.ro"]

    removed = await client.delete(f"{URL}/team/{member_id}", headers=auth_headers)
    assert removed.status_code == 204
    assert await session.get(User, member_id) is None


async def test_invite_existing_email(client: AsyncClient, ngo_admin, auth_headers):
    response = await client.post(
        f"{URL}/team", json={"email": ngo_admin.email, "name": "Dublura"}, headers=auth_headers
    )

    assert response.status_code == 409


async def test_cannot_invite_super_admin(client: AsyncClient, auth_headers):
    response = await client.post(
        f"{URL}/team", json={"email": "x@speranta.ro", "name": "Root", "role": "SUPER_ADMIN"}, headers=auth_headers
    )

    assert response.status_code == 400
    assert response.json()["detail"] == "Invalid role"


async def test_cannot_demote_or_remove_self(client: AsyncClient, ngo_admin, auth_headers):
    demote = await client.patch(f"{URL}/team/{ngo_admin.id}", json={"role": "VIEWER"}, headers=auth_headers)
    remove = await client.delete(f"{URL}/team/{ngo_admin.id}", headers=auth_headers)

    assert demote.json()["detail"] == "You cannot demote or disable yourself"
    assert remove.json()["detail"] == "You cannot remove yourself"


async def test_staff_cannot_change_settings(client: AsyncClient, session, ngo, make_auth_headers):
    staff = User(
        email="staff@speranta.ro", password_hash=hash_password("x" * 10), name="Ion", role="STAFF", ngo_id=ngo.id
    )
    session.add(staff)
    await session.commit()

    response = await client.patch(f"{URL}/profile", json={"city": "Arad"}, headers=make_auth_headers(staff))

    assert response.status_code == 403


async def test_profile_revolut_details(client: AsyncClient, auth_headers):
    response = await client.patch(
        f"{URL}/profile",
        json={"revolut_tag": "@speranta", "revolut_link": "https://revolut.me/speranta"},
        headers=auth_headers,
    )

    assert response.status_code == 200
    assert response.json()["revolut_tag"] == "@speranta"
    assert response.json()["revolut_link"] == "https://revolut.me/speranta"
