"""
Unit tests for Netopia invoice payments: credentials, payment start, IPN
verification and IPN handling.
"""

import json
import time

import httpx
import jwt
import pytest
from cryptography.hazmat.primitives import serialization
from cryptography.hazmat.primitives.asymmetric import rsa
from sqlmodel import select

from binevo.billing.invoice_generator import create_subscription_invoice
from binevo.core.database.entities import PLATFORM_SETTINGS_ID, Notification, PlatformSettings
from binevo.core.errors import InvalidRequestError, PaymentProviderError, ServiceNotConfiguredError
from binevo.payments.netopia import (
    PRODUCTION_START_URL,
    SANDBOX_START_URL,
    NetopiaClient,
    NetopiaCredentials,
    body_digest,
    get_netopia_credentials,
    handle_ipn,
    is_payment_successful,
    start_invoice_payment,
    status_label,
    verify_ipn,
)
from binevo.server.core.config import settings

POS_SIGNATURE = "XXXX-YYYY-ZZZZ"


@pytest.fixture(scope="module")
def rsa_keys():
    private_key = rsa.generate_private_key(public_exponent=65537, key_size=2048)
    private_pem = private_key.private_bytes(
        serialization.Encoding.PEM, serialization.PrivateFormat.PKCS8, serialization.NoEncryption()
    )
    public_pem = private_key.public_key().public_bytes(
        serialization.Encoding.PEM, serialization.PublicFormat.SubjectPublicKeyInfo
    )
    return private_pem, public_pem.decode()


def verification_token(private_pem: bytes, body: bytes, **overrides) -> str:
    claims = {
        "iss": "NETOPIA Payments",
        "aud": POS_SIGNATURE,
        "iat": int(time.time()),
        "sub": body_digest(body),
    }
    claims.update(overrides)
    return jwt.encode(claims, private_pem, algorithm="RS512")


def credentials(public_key=None) -> NetopiaCredentials:
    return NetopiaCredentials(
        api_key="ntp_api_key",
        pos_signature=POS_SIGNATURE,
        public_key=public_key,
        sandbox=True,
        notify_url="http://localhost:8000/api/v1/webhooks/netopia",
        source="env",
    )


def ipn_body(order_id: str, status: int) -> dict:
    return {
        "order": {"orderID": order_id, "ntpID": "1234567"},
        "payment": {"status": status, "ntpID": "1234567", "amount": 99.0, "currency": "RON"},
    }


class TestStatuses:
    @pytest.mark.parametrize("status", [3, 5])
    def test_confirmed_statuses_are_successful(self, status):
        assert is_payment_successful(status)

    @pytest.mark.parametrize("status", [0, 1, 2, 6, 10, 12, 15, -1, None])
    def test_other_statuses_are_not(self, status):
        assert not is_payment_successful(status)

    def test_labels(self):
        assert status_label(3) == "Confirmata"
        assert status_label(10) == "Refuzata"
        assert status_label(99) == "Necunoscuta"
        assert status_label(None) == "Necunoscuta"


class TestCredentials:
    async def test_environment_wins(self, session, monkeypatch):
        monkeypatch.setattr(settings, "netopia_api_key", "env_key")
        monkeypatch.setattr(settings, "netopia_pos_signature", "ENV-POS")
        monkeypatch.setattr(settings, "netopia_sandbox", False)
        session.add(
            PlatformSettings(
                id=PLATFORM_SETTINGS_ID, netopia_enabled=True, netopia_api_key="db_key", netopia_merchant_id="DB"
            )
        )
        await session.commit()

        found = await get_netopia_credentials(session)

        assert found.source == "env"
        assert found.pos_signature == "ENV-POS"
        assert found.start_url == PRODUCTION_START_URL
        assert found.notify_url.endswith("/api/v1/webhooks/netopia")

    async def test_platform_settings_row(self, session):
        session.add(
            PlatformSettings(
                id=PLATFORM_SETTINGS_ID,
                netopia_enabled=True,
                netopia_api_key="db_key",
                netopia_merchant_id="DB-POS",
                netopia_notify_url="https://binevo.ro/ipn",
            )
        )
        await session.commit()

        found = await get_netopia_credentials(session)

        assert found.source == "database"
        assert found.api_key == "db_key"
        assert found.start_url == SANDBOX_START_URL
        assert found.notify_url == "https://binevo.ro/ipn"

    async def test_disabled_processor(self, session):
        session.add(
            PlatformSettings(
                id=PLATFORM_SETTINGS_ID, netopia_enabled=False, netopia_api_key="k", netopia_merchant_id="m"
            )
        )
        await session.commit()

        assert await get_netopia_credentials(session) is None


class TestStartPayment:
    async def test_starts_payment_and_stores_ntp_id(self, session, ngo):
        invoice = await create_subscription_invoice(session, ngo, "PRO", send_email=False)
        seen = []

        def handler(request: httpx.Request) -> httpx.Response:
            seen.append((request.headers["Authorization"], json.loads(request.content)))
            return httpx.Response(
                200, json={"payment": {"ntpID": "NTP-1", "status": 1, "paymentURL": "http://mock-netopia/pay/NTP-1"}}
            )

        client = NetopiaClient(
            credentials(),
            start_url="http://mock-netopia/payment/card/start",
            transport=httpx.MockTransport(handler),
        )

        started = await start_invoice_payment(session, invoice, client=client)

        assert started == {"url": "http://mock-netopia/pay/NTP-1", "ntp_id": "NTP-1"}
        assert invoice.details["netopia_ntp_id"] == "NTP-1"
        api_key, payload = seen[0]
        assert api_key == "ntp_api_key"
        assert payload["order"]["orderID"] == invoice.id
        assert payload["order"]["posSignature"] == POS_SIGNATURE
        assert payload["order"]["amount"] == invoice.total_amount
        assert payload["order"]["billing"]["country"] == 642
        assert payload["config"]["redirectUrl"].endswith(f"/factura/{invoice.payment_token}?netopia=true")

    async def test_provider_error(self, session, ngo):
        invoice = await create_subscription_invoice(session, ngo, "PRO", send_email=False)
        client = NetopiaClient(
            credentials(),
            start_url="http://mock-netopia/payment/card/start",
            transport=httpx.MockTransport(lambda request: httpx.Response(401, json={"message": "bad key"})),
        )

        with pytest.raises(PaymentProviderError):
            await start_invoice_payment(session, invoice, client=client)

    async def test_missing_payment_url_reports_provider_message(self, session, ngo):
        invoice = await create_subscription_invoice(session, ngo, "PRO", send_email=False)
        client = NetopiaClient(
            credentials(),
            start_url="http://mock-netopia/payment/card/start",
            transport=httpx.MockTransport(
                lambda request: httpx.Response(200, json={"error": {"code": "99", "message": "Invalid POS"}})
            ),
        )

        with pytest.raises(PaymentProviderError, match="Invalid POS"):
            await start_invoice_payment(session, invoice, client=client)

    async def test_not_configured(self, session, ngo):
        invoice = await create_subscription_invoice(session, ngo, "PRO", send_email=False)

        with pytest.raises(ServiceNotConfiguredError):
            await start_invoice_payment(session, invoice)

    async def test_paid_invoice_is_rejected(self, session, ngo):
        invoice = await create_subscription_invoice(session, ngo, "PRO", send_email=False)
        invoice.status = "PAID"

        with pytest.raises(InvalidRequestError):
            await start_invoice_payment(session, invoice, client=NetopiaClient(credentials()))


class TestVerifyIpn:
    def test_valid_token(self, rsa_keys):
        private_pem, public_pem = rsa_keys
        body = json.dumps(ipn_body("inv_1", 3)).encode()

        payload = verify_ipn(body, verification_token(private_pem, body), public_pem, POS_SIGNATURE)

        assert payload["order"]["orderID"] == "inv_1"

    def test_tampered_body(self, rsa_keys):
        private_pem, public_pem = rsa_keys
        body = json.dumps(ipn_body("inv_1", 10)).encode()
        token = verification_token(private_pem, body)

        with pytest.raises(InvalidRequestError, match="does not match"):
            verify_ipn(json.dumps(ipn_body("inv_1", 3)).encode(), token, public_pem, POS_SIGNATURE)

    def test_wrong_audience(self, rsa_keys):
        private_pem, public_pem = rsa_keys
        body = b"{}"
        token = verification_token(private_pem, body, aud="OTHER-POS")

        with pytest.raises(InvalidRequestError):
            verify_ipn(body, token, public_pem, POS_SIGNATURE)

    def test_foreign_key(self, rsa_keys):
        _, public_pem = rsa_keys
        other = rsa.generate_private_key(public_exponent=65537, key_size=2048).private_bytes(
            serialization.Encoding.PEM, serialization.PrivateFormat.PKCS8, serialization.NoEncryption()
        )
        body = b"{}"

        with pytest.raises(InvalidRequestError):
            verify_ipn(body, verification_token(other, body), public_pem, POS_SIGNATURE)

    @pytest.mark.parametrize("token", [None, "", "not-a-jwt"])
    def test_missing_or_malformed_token(self, rsa_keys, token):
        with pytest.raises(InvalidRequestError):
            verify_ipn(b"{}", token, rsa_keys[1], POS_SIGNATURE)


class TestHandleIpn:
    async def test_confirmed_payment_settles_invoice(self, session, ngo):
        invoice = await create_subscription_invoice(session, ngo, "PRO", send_email=False)

        result = await handle_ipn(session, ipn_body(invoice.id, 3))

        assert result == {"handled": True, "paid": True, "status": "Confirmata"}
        assert invoice.status == "PAID"
        assert invoice.payment_method == "netopia"
        assert invoice.details["netopia_ntp_id"] == "1234567"
        assert ngo.subscription_plan == "PRO"
        titles = (await session.execute(select(Notification.title))).scalars().all()
        assert "Plata confirmata - Netopia" in titles

    async def test_declined_payment_is_recorded(self, session, ngo):
        invoice = await create_subscription_invoice(session, ngo, "PRO", send_email=False)

        result = await handle_ipn(session, ipn_body(invoice.id, 10))

        assert result["paid"] is False
        assert invoice.status != "PAID"
        assert invoice.details["netopia_status_label"] == "Refuzata"
        assert "netopia_declined_at" in invoice.details

    async def test_unknown_invoice(self, session):
        assert await handle_ipn(session, ipn_body("nu-exista", 3)) == {"handled": False, "reason": "unknown invoice"}

    async def test_missing_order(self, session):
        assert (await handle_ipn(session, {"payment": {"status": 3}}))["handled"] is False
