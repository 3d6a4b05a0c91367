"""
Netopia Payments (V2 card API) for platform invoices.

A payment starts with ``POST /payment/card/start`` and the NGO is sent to
the returned ``paymentURL``. Netopia reports the outcome to the IPN
webhook; each IPN carries a ``Verification-token`` header, an RS512 JWT
issued by Netopia for our POS signature whose ``sub`` claim is the base64
SHA-512 digest of the request body.
"""

from __future__ import annotations

import base64
import hashlib
import hmac
import json
from dataclasses import dataclass
from enum import IntEnum
from typing import Any, Dict, Optional

import httpx
import jwt
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from binevo.billing.invoice_generator import mark_invoice_paid
from binevo.core.database.base import utc_now
from binevo.core.database.entities import PLATFORM_SETTINGS_ID, Invoice, PlatformSettings
from binevo.core.errors import InvalidRequestError, PaymentProviderError, ServiceNotConfiguredError
from binevo.core.logging_config import get_logger
from binevo.core.models.domain import InvoiceStatus, NotificationType
from binevo.messaging.notifications import create_notification
from binevo.server.core.config import settings

logger = get_logger(__name__)

SANDBOX_START_URL = "https://sandbox.netopia-payments.com/payment/card/start"
PRODUCTION_START_URL = "https://secure.mobilpay.ro/pay/payment/card/start"
IPN_ISSUER = "NETOPIA Payments"
IPN_ALGORITHM = "RS512"
ROMANIA_NUMERIC_CODE = 642


class NetopiaStatus(IntEnum):
    ERROR = -1
    NEW = 0
    PENDING_AUTH = 1
    PENDING = 2
    CONFIRMED = 3
    PAID_PENDING = 5
    SCHEDULED = 6
    DECLINED = 10
    REVERSED = 11
    REFUNDED = 12
    REJECTED = 15


STATUS_LABELS = {
    NetopiaStatus.NEW: "Noua",
    NetopiaStatus.PENDING_AUTH: "In asteptare autorizare",
    NetopiaStatus.PENDING: "In procesare",
    NetopiaStatus.CONFIRMED: "Confirmata",
    NetopiaStatus.PAID_PENDING: "Confirmata (in curs de decontare)",
    NetopiaStatus.SCHEDULED: "Programata",
    NetopiaStatus.DECLINED: "Refuzata",
    NetopiaStatus.REVERSED: "Reversata",
    NetopiaStatus.REFUNDED: "Rambursata",
    NetopiaStatus.REJECTED: "Respinsa",
}


def is_payment_successful(status: Optional[int]) -> bool:
    return status in (NetopiaStatus.CONFIRMED, NetopiaStatus.PAID_PENDING)


def status_label(status: Optional[int]) -> str:
    try:
        return STATUS_LABELS.get(NetopiaStatus(status), "Necunoscuta")
    except ValueError:
        return "Necunoscuta"


@dataclass(frozen=True)
class NetopiaCredentials:
    api_key: str
    pos_signature: str
    public_key: Optional[str]
    sandbox: bool
    notify_url: str
    source: str

    @property
    def start_url(self) -> str:
        return SANDBOX_START_URL if self.sandbox else PRODUCTION_START_URL


def _default_notify_url() -> str:
    return f"{settings.app_url.rstrip('/')}/api/v1/webhooks/netopia"


async def get_netopia_credentials(session: Optional[AsyncSession]) -> Optional[NetopiaCredentials]:
    """Environment first, then the platform settings row; ``None`` when Netopia is off."""
    env = settings.netopia
    if env.api_key and env.pos_signature:
        return NetopiaCredentials(
            api_key=env.api_key,
            pos_signature=env.pos_signature,
            public_key=env.public_key,
            sandbox=env.sandbox,
            notify_url=env.notify_url or _default_notify_url(),
            source="env",
        )
    if session is None:
        return None
    try:
        platform = await session.get(PlatformSettings, PLATFORM_SETTINGS_ID)
    except SQLAlchemyError as e:
        logger.error(f"Could not read Netopia settings: {e}")
        return None
    if platform is None or not platform.netopia_enabled:
        return None
    if not platform.netopia_api_key or not platform.netopia_merchant_id:
        return None
    return NetopiaCredentials(
        api_key=platform.netopia_api_key,
        pos_signature=platform.netopia_merchant_id,
        public_key=platform.netopia_public_key,
        sandbox=platform.netopia_sandbox,
        notify_url=platform.netopia_notify_url or _default_notify_url(),
        source="database",
    )


def _billing_contact(invoice: Invoice) -> Dict[str, Any]:
    first_name, _, last_name = (invoice.buyer_name or "").partition(" ")
    city = invoice.buyer_city or "Bucuresti"
    return {
        "email": invoice.buyer_email or "",
        "phone": "0700000000",
        "firstName": first_name or invoice.buyer_name,
        "lastName": last_name or first_name or invoice.buyer_name,
        "city": city,
        "country": ROMANIA_NUMERIC_CODE,
        "countryName": "Romania",
        "state": invoice.buyer_county or city,
        "postalCode": "000000",
        "details": invoice.buyer_address or "",
    }


def build_start_payload(invoice: Invoice, credentials: NetopiaCredentials) -> Dict[str, Any]:
    description = f"Factura {invoice.invoice_number}"
    contact = _billing_contact(invoice)
    return {
        "config": {
            "emailTemplate": "",
            "notifyUrl": credentials.notify_url,
            "redirectUrl": f"{settings.app_url.rstrip('/')}/factura/{invoice.payment_token}?netopia=true",
            "language": "ro",
        },
        "payment": {
            "options": {"installments": 0, "bonus": 0},
            "instrument": {"type": "card"},
            "data": {"invoice_id": invoice.id, "ngo_id": invoice.ngo_id},
        },
        "order": {
            "ntpID": "",
            "posSignature": credentials.pos_signature,
            "dateTime": utc_now().isoformat(),
            "description": description,
            "orderID": invoice.id,
            "amount": invoice.total_amount,
            "currency": invoice.currency,
            "billing": contact,
            "shipping": contact,
            "products": [
                {
                    "name": description,
                    "code": invoice.invoice_number,
                    "category": "subscription",
                    "price": invoice.total_amount,
                    "vat": 0,
                }
            ],
        },
    }


class NetopiaClient:
    """Starts card payments against the Netopia V2 API."""

    def __init__(
        self,
        credentials: NetopiaCredentials,
        *,
        start_url: Optional[str] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
        timeout: float = 20.0,
    ) -> None:
        self.credentials = credentials
        self._start_url = start_url or credentials.start_url
        self._transport = transport
        self._timeout = timeout

    async def start_payment(self, invoice: Invoice) -> Dict[str, Any]:
        payload = build_start_payload(invoice, self.credentials)
        headers = {"Authorization": self.credentials.api_key, "Content-Type": "application/json"}
        try:
            async with httpx.AsyncClient(timeout=self._timeout, transport=self._transport) as client:
                response = await client.post(self._start_url, json=payload, headers=headers)
        except httpx.HTTPError as e:
            logger.error(f"Netopia start for invoice {invoice.invoice_number} failed: {e}")
            raise PaymentProviderError(f"Netopia request failed: {e}") from e

        if response.status_code >= 400:
            logger.error(f"Netopia returned {response.status_code}: {response.text[:500]}")
            raise PaymentProviderError(
                f"Netopia error {response.status_code}", extra={"netopia_status": response.status_code}
            )
        return response.json() if response.content else {}


async def start_invoice_payment(
    session: AsyncSession,
    invoice: Invoice,
    *,
    client: Optional[NetopiaClient] = None,
) -> Dict[str, Any]:
    """Start a Netopia payment for an unpaid invoice; returns ``{"url", "ntp_id"}``."""
    if invoice.status in (InvoiceStatus.PAID.value, InvoiceStatus.CANCELLED.value):
        raise InvalidRequestError(f"Invoice {invoice.invoice_number} is {invoice.status.lower()}")
    if client is None:
        credentials = await get_netopia_credentials(session)
        if credentials is None:
            raise ServiceNotConfiguredError("Netopia is not configured")
        client = NetopiaClient(credentials)

    result = await client.start_payment(invoice)
    payment = result.get("payment") or {}
    url = payment.get("paymentURL")
    if not url:
        error = result.get("error") or {}
        message = error.get("message") or "no payment URL returned"
        raise PaymentProviderError(f"Netopia: {message}", extra={"netopia_code": error.get("code")})
    invoice.details = {**(invoice.details or {}), "netopia_ntp_id": payment.get("ntpID")}
    invoice.updated_at = utc_now()
    session.add(invoice)
    await session.commit()
    return {"url": url, "ntp_id": payment.get("ntpID")}


def body_digest(body: bytes) -> str:
    return base64.b64encode(hashlib.sha512(body).digest()).decode("ascii")


def verify_ipn(body: bytes, verification_token: Optional[str], public_key: str, pos_signature: str) -> Dict[str, Any]:
    """Check an IPN's ``Verification-token`` and return the decoded body."""
    if not verification_token:
        raise InvalidRequestError("Missing Verification-token header", code="INVALID_SIGNATURE")
    try:
        claims = jwt.decode(
            verification_token,
            public_key,
            algorithms=[IPN_ALGORITHM],
            audience=pos_signature,
            issuer=IPN_ISSUER,
        )
    except jwt.PyJWTError as e:
        raise InvalidRequestError(f"Invalid IPN token: {e}", code="INVALID_SIGNATURE") from e
    if not hmac.compare_digest(str(claims.get("sub", "")), body_digest(body)):
        raise InvalidRequestError("IPN body does not match its token", code="INVALID_SIGNATURE")
    try:
        return json.loads(body)
    except ValueError as e:
        raise InvalidRequestError("IPN payload is not valid JSON") from e


def ipn_response(error_code: int = 0, message: str = "") -> Dict[str, Any]:
    return {"errorCode": error_code, "errorMessage": message}


async def handle_ipn(session: AsyncSession, payload: Dict[str, Any]) -> Dict[str, Any]:
    order = payload.get("order") or {}
    payment = payload.get("payment") or {}
    order_id = order.get("orderID")
    if not order_id:
        logger.warning("Netopia IPN without orderID")
        return {"handled": False, "reason": "missing order"}

    status = payment.get("status", order.get("status"))
    ntp_id = payment.get("ntpID") or order.get("ntpID") or ""
    logger.info(f"Netopia IPN for order {order_id}: status {status} ({ntp_id})")

    invoice = await session.get(Invoice, order_id)
    if invoice is None:
        return {"handled": False, "reason": "unknown invoice"}

    now = utc_now()
    details = {
        **(invoice.details or {}),
        "netopia_status": status,
        "netopia_status_label": status_label(status),
        "netopia_ntp_id": ntp_id,
        "netopia_updated_at": now.isoformat(),
    }
    if status in (NetopiaStatus.DECLINED, NetopiaStatus.REJECTED):
        details["netopia_declined_at"] = now.isoformat()
    invoice.details = details
    session.add(invoice)

    if not is_payment_successful(status):
        await session.commit()
        return {"handled": True, "paid": False, "status": status_label(status)}

    paid = await mark_invoice_paid(session, invoice, payment_method="netopia", now=now)
    if paid and invoice.subscription_plan:
        await create_notification(
            session,
            ngo_id=invoice.ngo_id,
            type=NotificationType.SUBSCRIPTION_UPGRADED.value,
            title="Plata confirmata - Netopia",
            message=(
                f"Plata de {invoice.total_amount:.2f} {invoice.currency} pentru abonamentul "
                f"{invoice.subscription_plan} a fost confirmata."
            ),
            action_url="/dashboard/billing",
        )
    return {"handled": True, "paid": paid, "status": status_label(status)}
