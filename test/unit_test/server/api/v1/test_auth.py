"""
API tests for registration, login, the current session and password reset.
"""

import pytest
from httpx import AsyncClient
from sqlmodel import select

from binevo.core.database.entities import AuditLog, Ngo, PasswordResetToken, User
from binevo.server.core import constant

pytestmark = pytest.mark.asyncio

REGISTER = {
    "email": "Director@Ajutor.ro",
    "password": "O-parola-buna",
    "name": "Elena Marin",
    "ngo_name": "Fundația Ajutor Național",
}


async def test_register_creates_ngo_and_admin(client: AsyncClient, session):
    response = await client.post("/api/v1/auth/register", json=REGISTER)

    assert response.status_code == 201
    body = response.json()
    assert body["user"]["email"] == "director@ajutor.ro"
    assert body["user"]["role"] == "NGO_ADMIN"
    assert body["ngo"]["slug"] == "fundatia-ajutor-national"
    assert body["plan"] == "BASIC"
    assert body["token"]
    assert constant.SESSION_COOKIE_NAME in response.cookies
    user = (await session.execute(select(User))).scalars().one()
    assert user.password_hash != REGISTER["password"]
    actions = (await session.execute(select(AuditLog.action))).scalars().all()
    assert actions == ["USER_REGISTERED"]


async def test_register_suffixes_taken_slug(client: AsyncClient, session, ngo):
    payload = {**REGISTER, "ngo_name": ngo.name}

    response = await client.post("/api/v1/auth/register", json=payload)

    assert response.status_code == 201
    slug = response.json()["ngo"]["slug"]
    assert slug.startswith("asociatia-speranta-")
    assert slug != ngo.slug
    assert len((await session.execute(select(Ngo))).scalars().all()) == 2


async def test_register_duplicate_email(client: AsyncClient, ngo_admin):
    response = await client.post("/api/v1/auth/register", json={**REGISTER, "email": "ADMIN@speranta.ro"})

    assert response.status_code == 409


async def test_register_validation(client: AsyncClient):
    response = await client.post("/api/v1/auth/register", json={**REGISTER, "password": "scurt"})

    assert response.status_code == 422


async def test_login_and_me(client: AsyncClient, ngo_admin):
    login = await client.post("/api/v1/auth/login", json={"email": "admin@speranta.ro", "password": "Parola123!"})

    assert login.status_code == 200
    token = login.json()["token"]
    me = await client.get("/api/v1/auth/me", headers={"Authorization": f"Bearer {token}"})
    assert me.status_code == 200
    assert me.json()["user"]["id"] == ngo_admin.id
    assert me.json()["ngo"]["name"] == "Asociatia Speranta"
    assert me.json()["user"]["last_login_at"] is not None


@pytest.mark.parametrize(
    "email, password",
    [("admin@speranta.ro", "gresit-gresit"), ("nimeni@speranta.ro", "Parola123!")],
)
async def test_login_rejects_bad_credentials(client: AsyncClient, ngo_admin, email, password):
    response = await client.post("/api/v1/auth/login", json={"email": email, "password": password})

    assert response.status_code == 401
    assert response.json()["detail"] == "Invalid email or password"


async def test_login_disabled_account(client: AsyncClient, session, ngo_admin):
    ngo_admin.is_active = False
    session.add(ngo_admin)
    await session.commit()

    response = await client.post("/api/v1/auth/login", json={"email": "admin@speranta.ro", "password": "Parola123!"})

    assert response.status_code == 401


async def test_me_requires_session(client: AsyncClient):
    assert (await client.get("/api/v1/auth/me")).status_code == 401
    invalid = await client.get("/api/v1/auth/me", headers={"Authorization": "Bearer nonsense"})
    assert invalid.status_code == 401


async def test_me_accepts_cookie(client: AsyncClient, auth_headers):
    token = auth_headers["Authorization"].split(" ", 1)[1]
    client.cookies.set(constant.SESSION_COOKIE_NAME, token)

    assert (await client.get("/api/v1/auth/me")).status_code == 200


async def test_password_reset_flow(client: AsyncClient, session, ngo_admin):
    first = await client.post("/api/v1/auth/forgot-password", json={"email": "admin@speranta.ro"})
    again = await client.post("/api/v1/auth/forgot-password", json={"email": "admin@speranta.ro"})
    unknown = await client.post("/api/v1/auth/forgot-password", json={"email": "nimeni@speranta.ro"})

    assert first.json() == again.json() == unknown.json()
    [record] = (await session.execute(select(PasswordResetToken))).scalars().all()

    reset = await client.post(
        "/api/v1/auth/reset-password", json={"token": record.token, "password": "Parola-Noua-1"}
    )
    assert reset.status_code == 200
    reused = await client.post(
        "/api/v1/auth/reset-password", json={"token": record.token, "password": "Alta-Parola-2"}
    )
    assert reused.status_code == 400

    login = await client.post(
        "/api/v1/auth/login", json={"email": "admin@speranta.ro", "password": "Parola-Noua-1"}
    )
    assert login.status_code == 200


async def test_reset_with_unknown_token(client: AsyncClient):
    response = await client.post("/api/v1/auth/reset-password", json={"token": "nope", "password": "Parola-Noua-1"})

    assert response.status_code == 400
