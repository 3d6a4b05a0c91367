import base64
import json

import jwt
import pytest
from cryptography.hazmat.primitives import hashes, serialization
from cryptography.hazmat.primitives.asymmetric import ec, rsa
from httpx import AsyncClient

from binevo.billing.invoice_generator import create_subscription_invoice
from binevo.core.database.entities import PLATFORM_SETTINGS_ID, Donor, Message, MessageRecipient, PlatformSettings
from binevo.messaging.delivery_status import twilio_signature
from binevo.messaging.sms import status_callback_url
from binevo.payments.netopia import body_digest
from binevo.payments.webhooks import sign_payload
from binevo.server.core.config import settings

pytestmark = pytest.mark.asyncio

CONNECT_URL = "/api/v1/webhooks/stripe-connect"
PLATFORM_URL = "/api/v1/webhooks/stripe"
NETOPIA_URL = "/api/v1/webhooks/netopia"


def _body(event_type: str, obj: dict) -> bytes:
    return json.dumps({"id": "evt_test", "type": event_type, "data": {"object": obj}}).encode()


async def test_connect_event_with_env_secret(client: AsyncClient, session, ngo, monkeypatch):
    monkeypatch.setattr(settings, "stripe_secret_key", "sk_test")
    monkeypatch.setattr(settings, "stripe_connect_webhook_secret", "whsec_connect")
    ngo.stripe_connect_id = "acct_1"
    session.add(ngo)
    await session.commit()
    payload = _body("account.updated", {"id": "acct_1", "charges_enabled": True, "payouts_enabled": True})

    response = await client.post(
        CONNECT_URL,
        content=payload,
        headers={"Stripe-Signature": sign_payload(payload, "whsec_connect"), "Content-Type": "application/json"},
    )

    assert response.status_code == 200
    assert response.json() == {"received": True, "handled": True, "status": "active"}


async def test_platform_event_with_database_secret(client: AsyncClient, session):
    session.add(PlatformSettings(id=PLATFORM_SETTINGS_ID, stripe_webhook_secret="whsec_db"))
    await session.commit()
    payload = _body("customer.created", {})

    response = await client.post(
        PLATFORM_URL, content=payload, headers={"Stripe-Signature": sign_payload(payload, "whsec_db")}
    )

    assert response.status_code == 200
    assert response.json()["received"] is True
    assert response.json()["handled"] is False


async def test_invalid_signature(client: AsyncClient, monkeypatch):
    monkeypatch.setattr(settings, "stripe_secret_key", "sk_test")
    monkeypatch.setattr(settings, "stripe_webhook_secret", "whsec_platform")
    payload = _body("customer.created", {})

    response = await client.post(
        PLATFORM_URL, content=payload, headers={"Stripe-Signature": sign_payload(payload, "whsec_other")}
    )

    assert response.status_code == 400
    assert response.json()["code"] == "INVALID_SIGNATURE"


async def test_missing_signature_header(client: AsyncClient, monkeypatch):
    monkeypatch.setattr(settings, "stripe_secret_key", "sk_test")
    monkeypatch.setattr(settings, "stripe_connect_webhook_secret", "whsec_connect")

    response = await client.post(CONNECT_URL, content=b"{}")

    assert response.status_code == 400


async def test_secret_not_configured(client: AsyncClient):
    response = await client.post(CONNECT_URL, content=b"{}", headers={"Stripe-Signature": "t=1,v1=00"})

    assert response.status_code == 400
    assert response.json()["code"] == "SERVICE_NOT_CONFIGURED"


@pytest.fixture(scope="module")
def netopia_keys():
    key = rsa.generate_private_key(public_exponent=65537, key_size=2048)
    private_pem = key.private_bytes(
        serialization.Encoding.PEM, serialization.PrivateFormat.PKCS8, serialization.NoEncryption()
    )
    public_pem = key.public_key().public_bytes(
        serialization.Encoding.PEM, serialization.PublicFormat.SubjectPublicKeyInfo
    )
    return private_pem, public_pem.decode()


async def _enable_netopia(session, public_key):
    session.add(
        PlatformSettings(
            id=PLATFORM_SETTINGS_ID,
            netopia_enabled=True,
            netopia_api_key="ntp_key",
            netopia_merchant_id="POS-1",
            netopia_public_key=public_key,
        )
    )
    await session.commit()


async def test_netopia_ipn_marks_invoice_paid(client: AsyncClient, session, ngo, netopia_keys):
    private_pem, public_pem = netopia_keys
    await _enable_netopia(session, public_pem)
    invoice = await create_subscription_invoice(session, ngo, "PRO", send_email=False)
    payload = json.dumps({"order": {"orderID": invoice.id}, "payment": {"status": 3, "ntpID": "N1"}}).encode()
    token = jwt.encode(
        {"iss": "NETOPIA Payments", "aud": "POS-1", "sub": body_digest(payload)}, private_pem, algorithm="RS512"
    )

    response = await client.post(NETOPIA_URL, content=payload, headers={"Verification-token": token})

    assert response.status_code == 200
    assert response.json() == {"errorCode": 0, "errorMessage": ""}
    await session.refresh(invoice)
    assert invoice.status == "PAID"
    assert invoice.payment_method == "netopia"


async def test_netopia_ipn_with_bad_token(client: AsyncClient, session, netopia_keys):
    await _enable_netopia(session, netopia_keys[1])

    response = await client.post(NETOPIA_URL, content=b"{}", headers={"Verification-token": "forged"})

    assert response.status_code == 200
    assert response.json()["errorCode"] == 1


async def test_netopia_ipn_when_not_configured(client: AsyncClient):
    response = await client.post(NETOPIA_URL, content=b"{}")

    assert response.json()["errorCode"] == 1
    assert "not configured" in response.json()["errorMessage"]


SENDGRID_URL = "/api/v1/webhooks/sendgrid"
TWILIO_URL = "/api/v1/webhooks/twilio"


async def _email_recipient(session, ngo) -> MessageRecipient:
    message = Message(ngo_id=ngo.id, channel="EMAIL", status="SENT")
    session.add(message)
    await session.flush()
    recipient = MessageRecipient(message_id=message.id, channel="EMAIL", address="ion@example.ro")
    session.add(recipient)
    await session.commit()
    return recipient


async def test_sendgrid_events_without_verification_key(client: AsyncClient, session, ngo, monkeypatch):
    monkeypatch.setattr(settings, "sendgrid_webhook_verification_key", None)
    recipient = await _email_recipient(session, ngo)

    response = await client.post(SENDGRID_URL, json=[{"event": "delivered", "email": "ion@example.ro"}])

    assert response.status_code == 200
    assert response.json() == {"received": True, "events": 1, "matched": 1, "unsubscribed": 0}
    await session.refresh(recipient)
    assert recipient.status == "DELIVERED"


async def test_sendgrid_signed_events(client: AsyncClient, session, ngo, monkeypatch):
    private_key = ec.generate_private_key(ec.SECP256R1())
    public_der = private_key.public_key().public_bytes(
        serialization.Encoding.DER, serialization.PublicFormat.SubjectPublicKeyInfo
    )
    monkeypatch.setattr(settings, "sendgrid_webhook_verification_key", base64.b64encode(public_der).decode())
    body = json.dumps([{"event": "open", "email": "ion@example.ro"}]).encode()
    signature = base64.b64encode(private_key.sign(b"1700000000" + body, ec.ECDSA(hashes.SHA256()))).decode()
    headers = {
        "X-Twilio-Email-Event-Webhook-Signature": signature,
        "X-Twilio-Email-Event-Webhook-Timestamp": "1700000000",
        "Content-Type": "application/json",
    }

    signed = await client.post(SENDGRID_URL, content=body, headers=headers)
    unsigned = await client.post(SENDGRID_URL, content=body, headers={"Content-Type": "application/json"})
    tampered = await client.post(SENDGRID_URL, content=body + b" ", headers=headers)

    assert signed.status_code == 200
    assert unsigned.status_code == 401
    assert tampered.status_code == 401
    assert tampered.json()["code"] == "INVALID_SIGNATURE"


async def test_sendgrid_rejects_non_list_payload(client: AsyncClient, monkeypatch):
    monkeypatch.setattr(settings, "sendgrid_webhook_verification_key", None)

    response = await client.post(SENDGRID_URL, json={"event": "open"})

    assert response.status_code == 400


async def test_twilio_stop_reply(client: AsyncClient, session, ngo, monkeypatch):
    monkeypatch.setattr(settings, "twilio_auth_token", None)
    donor = Donor(ngo_id=ngo.id, email="ion@example.ro", phone="0722000111", sms_consent=True, email_consent=True)
    session.add(donor)
    await session.commit()

    response = await client.post(TWILIO_URL, data={"From": "+40722000111", "Body": "STOP"})

    assert response.status_code == 200
    assert response.headers["content-type"].startswith("text/xml")
    assert response.text == '<?xml version="1.0" encoding="UTF-8"?><Response></Response>'
    await session.refresh(donor)
    assert donor.sms_consent is False


async def test_twilio_signed_status_callback(client: AsyncClient, session, ngo, monkeypatch):
    monkeypatch.setattr(settings, "twilio_auth_token", "twilio_token")
    message = Message(ngo_id=ngo.id, channel="SMS", status="SENT")
    session.add(message)
    await session.flush()
    recipient = MessageRecipient(
        message_id=message.id, channel="SMS", address="+40722000111", provider_message_id="SM42"
    )
    session.add(recipient)
    await session.commit()
    params = {"MessageSid": "SM42", "MessageStatus": "failed", "ErrorMessage": "Unreachable"}
    signature = twilio_signature("twilio_token", status_callback_url(), params)

    forged = await client.post(TWILIO_URL, data=params, headers={"X-Twilio-Signature": "forged"})
    signed = await client.post(TWILIO_URL, data=params, headers={"X-Twilio-Signature": signature})

    assert forged.status_code == 403
    assert signed.status_code == 200
    await session.refresh(recipient)
    assert recipient.status == "FAILED"
    assert recipient.error_message == "Unreachable"
