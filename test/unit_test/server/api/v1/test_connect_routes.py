import httpx
import pytest
from httpx import AsyncClient

from binevo.payments import connect
from binevo.payments.stripe_client import StripeClient

pytestmark = pytest.mark.asyncio

URL = "/api/v1/stripe/connect"


@pytest.fixture
def fake_stripe(monkeypatch):
    def handler(request: httpx.Request) -> httpx.Response:
        path = request.url.path
        if path.endswith("/accounts"):
            return httpx.Response(200, json={"id": "acct_nou"})
        if path.endswith("/account_links"):
            return httpx.Response(200, json={"url": "http://mock-stripe/onboarding"})
        if path.endswith("/login_links"):
            return httpx.Response(200, json={"url": "http://mock-stripe/express"})
        return httpx.Response(200, json={"id": "acct_nou", "charges_enabled": True, "payouts_enabled": True})

    async def fake_client(session=None):
        return StripeClient("sk_test", base_url="http://mock-stripe/v1", transport=httpx.MockTransport(handler))

    monkeypatch.setattr(connect, "get_stripe_client", fake_client)


async def test_onboard_then_refresh_status(client: AsyncClient, auth_headers, fake_stripe):
    onboard = await client.post(f"{URL}/onboard", headers=auth_headers)
    stored = await client.get(f"{URL}/status", headers=auth_headers)
    refreshed = await client.get(f"{URL}/status", params={"refresh": True}, headers=auth_headers)
    dashboard = await client.post(f"{URL}/dashboard", headers=auth_headers)

    assert onboard.json() == {"url": "http://mock-stripe/onboarding"}
    assert stored.json()["stripe_connect_id"] == "acct_nou"
    assert stored.json()["status"] == "pending"
    assert refreshed.json()["status"] == "active"
    assert refreshed.json()["onboarded"] is True
    assert dashboard.json() == {"url": "http://mock-stripe/express"}


async def test_dashboard_before_onboarding(client: AsyncClient, auth_headers):
    response = await client.post(f"{URL}/dashboard", headers=auth_headers)

    assert response.status_code == 400
    assert response.json()["code"] == "CONNECT_NOT_CREATED"


async def test_onboard_without_stripe(client: AsyncClient, auth_headers):
    response = await client.post(f"{URL}/onboard", headers=auth_headers)

    assert response.status_code == 400
    assert response.json()["code"] == "STRIPE_NOT_CONFIGURED"
