import functools
from urllib.parse import parse_qsl

import httpx
import pytest
from httpx import AsyncClient

from binevo.billing.invoice_generator import create_subscription_invoice, mark_invoice_paid
from binevo.core.database.entities import PLATFORM_SETTINGS_ID, PlatformSettings
from binevo.payments import invoice_checkout, netopia
from binevo.payments.stripe_client import StripeClient

pytestmark = pytest.mark.asyncio


@pytest.fixture
def stripe_requests(monkeypatch):
    captured = []

    def handler(request: httpx.Request) -> httpx.Response:
        captured.append(dict(parse_qsl(request.content.decode())))
        return httpx.Response(200, json={"id": "cs_inv_1", "url": "http://mock-stripe/pay/cs_inv_1"})

    async def fake_client(session):
        return StripeClient("sk_test", base_url="http://mock-stripe/v1", transport=httpx.MockTransport(handler))

    monkeypatch.setattr(invoice_checkout, "get_stripe_client", fake_client)
    return captured


async def test_overview(client: AsyncClient, ngo, auth_headers):
    response = await client.get("/api/v1/billing", headers=auth_headers)

    assert response.status_code == 200
    body = response.json()
    assert body["plan"] == "BASIC"
    assert body["invoices"] == []
    assert [(p["plan"], p["monthly_price"]) for p in body["plans"]] == [("BASIC", 0), ("PRO", 149), ("ELITE", 349)]
    elite = body["plans"][2]
    assert elite["max_donors"] == -1
    assert "linkedin_prospects" in elite["features"]


async def test_checkout_opens_stripe_session(client: AsyncClient, auth_headers, stripe_requests):
    response = await client.post("/api/v1/billing/checkout", json={"plan": "ELITE", "months": 2}, headers=auth_headers)

    assert response.status_code == 201
    body = response.json()
    assert body["checkout_url"] == "http://mock-stripe/pay/cs_inv_1"
    [form] = stripe_requests
    assert form["line_items[0][price_data][unit_amount]"] == "69800"
    assert form["metadata[invoice_id]"] == body["invoice_id"]

    overview = await client.get("/api/v1/billing", headers=auth_headers)
    assert [i["invoice_number"] for i in overview.json()["invoices"]] == [body["invoice_number"]]
    assert overview.json()["plan"] == "BASIC"


async def test_checkout_rejects_free_plan(client: AsyncClient, auth_headers):
    response = await client.post("/api/v1/billing/checkout", json={"plan": "BASIC"}, headers=auth_headers)

    assert response.status_code == 422


async def test_checkout_without_stripe(client: AsyncClient, auth_headers):
    response = await client.post("/api/v1/billing/checkout", json={"plan": "PRO"}, headers=auth_headers)

    assert response.status_code == 400
    assert response.json()["code"] == "STRIPE_NOT_CONFIGURED"


async def test_public_invoice_by_token(client: AsyncClient, session, ngo, stripe_requests):
    invoice = await create_subscription_invoice(session, ngo, "PRO", send_email=False)

    shown = await client.get("/api/v1/invoices/by-token", params={"token": invoice.payment_token})
    paid = await client.post("/api/v1/invoices/by-token/pay", params={"token": invoice.payment_token})

    assert shown.status_code == 200
    assert shown.json()["invoice_number"] == invoice.invoice_number
    assert paid.json()["checkout_session_id"] == "cs_inv_1"
    assert stripe_requests[0]["success_url"].endswith("?paid=1")


async def test_paid_invoice_cannot_be_paid_again(client: AsyncClient, session, ngo, stripe_requests):
    invoice = await create_subscription_invoice(session, ngo, "PRO", send_email=False)
    await mark_invoice_paid(session, invoice, payment_method="bank_transfer")

    response = await client.post("/api/v1/invoices/by-token/pay", params={"token": invoice.payment_token})

    assert response.status_code == 400
    assert stripe_requests == []


async def test_unknown_token(client: AsyncClient):
    response = await client.get("/api/v1/invoices/by-token", params={"token": "necunoscut"})

    assert response.status_code == 404


async def test_pay_invoice_with_netopia(client: AsyncClient, session, ngo, monkeypatch):
    session.add(
        PlatformSettings(
            id=PLATFORM_SETTINGS_ID, netopia_enabled=True, netopia_api_key="ntp_key", netopia_merchant_id="POS-1"
        )
    )
    await session.commit()
    invoice = await create_subscription_invoice(session, ngo, "PRO", send_email=False)

    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(200, json={"payment": {"ntpID": "NTP-9", "paymentURL": "http://mock-netopia/pay/9"}})

    monkeypatch.setattr(
        netopia,
        "NetopiaClient",
        functools.partial(
            netopia.NetopiaClient,
            start_url="http://mock-netopia/payment/card/start",
            transport=httpx.MockTransport(handler),
        ),
    )

    response = await client.post(
        "/api/v1/invoices/by-token/pay", params={"token": invoice.payment_token, "method": "netopia"}
    )

    assert response.status_code == 200
    assert response.json()["checkout_url"] == "http://mock-netopia/pay/9"
    assert response.json()["checkout_session_id"] == "NTP-9"


async def test_pay_invoice_with_unknown_method(client: AsyncClient, session, ngo):
    invoice = await create_subscription_invoice(session, ngo, "PRO", send_email=False)

    response = await client.post(
        "/api/v1/invoices/by-token/pay", params={"token": invoice.payment_token, "method": "paypal"}
    )

    assert response.status_code == 422


@pytest.fixture
def admin_alerts(monkeypatch, tmp_path):
    from binevo.server.api.v1 import invoices as invoice_routes
    from binevo.server.core.config import settings

    monkeypatch.setattr(settings, "upload_dir", str(tmp_path))
    sent = []

    async def fake_email_super_admins(session, subject, html):
        sent.append(subject)
        return 1

    monkeypatch.setattr(invoice_routes, "email_super_admins", fake_email_super_admins)
    return sent


async def test_payment_proof_is_stored_and_admins_alerted(client: AsyncClient, session, ngo, admin_alerts, tmp_path):
    invoice = await create_subscription_invoice(session, ngo, "PRO", send_email=False)

    response = await client.post(
        "/api/v1/invoices/by-token/proof",
        data={"token": invoice.payment_token, "note": "OP din 12 martie"},
        files={"proof": ("op.pdf", b"%PDF-1.4 dovada", "application/pdf")},
    )

    assert response.status_code == 200
    body = response.json()
    assert body["status"] != "PAID"
    assert body["payment_proof_url"].startswith(f"/uploads/proofs/{invoice.invoice_number}-")
    stored = tmp_path / "proofs" / body["payment_proof_url"].rsplit("/", 1)[1]
    assert stored.read_bytes() == b"%PDF-1.4 dovada"
    await session.refresh(invoice)
    assert invoice.payment_proof_note == "OP din 12 martie"
    assert invoice.payment_method == "bank_transfer"
    assert admin_alerts == [f"Dovada de plata: factura {invoice.invoice_number}"]


async def test_payment_proof_note_only(client: AsyncClient, session, ngo, admin_alerts):
    invoice = await create_subscription_invoice(session, ngo, "PRO", send_email=False)

    response = await client.post(
        "/api/v1/invoices/by-token/proof", data={"token": invoice.payment_token, "note": "Platit prin OP"}
    )

    assert response.status_code == 200
    assert response.json()["payment_proof_url"] is None


async def test_payment_proof_rejections(client: AsyncClient, session, ngo, admin_alerts, monkeypatch):
    from binevo.server.core.config import settings

    invoice = await create_subscription_invoice(session, ngo, "PRO", send_email=False)
    url = "/api/v1/invoices/by-token/proof"
    token = {"token": invoice.payment_token}

    empty = await client.post(url, data=token)
    wrong_type = await client.post(url, data=token, files={"proof": ("a.txt", b"text", "text/plain")})
    monkeypatch.setattr(settings, "max_proof_upload_bytes", 4)
    too_large = await client.post(url, data=token, files={"proof": ("a.png", b"\x89PNG\r\n", "image/png")})

    assert empty.status_code == 400
    assert wrong_type.status_code == 400
    assert too_large.status_code == 413
    assert admin_alerts == []


async def test_payment_proof_for_paid_invoice(client: AsyncClient, session, ngo, admin_alerts):
    invoice = await create_subscription_invoice(session, ngo, "PRO", send_email=False)
    await mark_invoice_paid(session, invoice, payment_method="card")

    response = await client.post(
        "/api/v1/invoices/by-token/proof", data={"token": invoice.payment_token, "note": "dublura"}
    )

    assert response.status_code == 400
    assert response.json()["detail"] == "Invoice is already paid"
