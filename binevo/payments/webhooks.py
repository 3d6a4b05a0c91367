"""
Stripe webhook verification and event handling.

Connect events update NGO accounts and donations; platform events settle
subscription invoices paid by card.
"""

from __future__ import annotations

import hashlib
import hmac
import json
import time
from typing import Any, Dict, Optional

from sqlalchemy.ext.asyncio import AsyncSession
from sqlmodel import select

from binevo.billing.invoice_generator import mark_invoice_paid
from binevo.core.database.entities import Donation, Invoice, Ngo
from binevo.core.errors import InvalidRequestError
from binevo.core.logging_config import get_logger
from binevo.core.models.domain import ConnectStatus, NotificationType
from binevo.crm.donations import complete_donation, fail_donation, refund_donation
from binevo.messaging.notifications import create_notification

from .connect import apply_account_status

logger = get_logger(__name__)

SIGNATURE_TOLERANCE_SECONDS = 300


def verify_signature(
    payload: bytes,
    signature_header: Optional[str],
    secret: str,
    *,
    tolerance: int = SIGNATURE_TOLERANCE_SECONDS,
    now: Optional[float] = None,
) -> Dict[str, Any]:
    """Check a ``Stripe-Signature`` header and return the decoded event."""
    if not signature_header:
        raise InvalidRequestError("Missing Stripe-Signature header", code="INVALID_SIGNATURE")

    timestamp: Optional[int] = None
    signatures = []
    for part in signature_header.split(","):
        key, _, value = part.strip().partition("=")
        if key == "t" and value.isdigit():
            timestamp = int(value)
        elif key == "v1":
            signatures.append(value)
    if timestamp is None or not signatures:
        raise InvalidRequestError("Malformed Stripe-Signature header", code="INVALID_SIGNATURE")

    signed = f"{timestamp}.".encode("utf-8") + payload
    expected = hmac.new(secret.encode("utf-8"), signed, hashlib.sha256).hexdigest()
    if not any(hmac.compare_digest(expected, candidate) for candidate in signatures):
        raise InvalidRequestError("Invalid webhook signature", code="INVALID_SIGNATURE")

    current = now if now is not None else time.time()
    if abs(current - timestamp) > tolerance:
        raise InvalidRequestError("Webhook timestamp outside tolerance", code="INVALID_SIGNATURE")

    try:
        return json.loads(payload)
    except ValueError as e:
        raise InvalidRequestError("Webhook payload is not valid JSON") from e


def sign_payload(payload: bytes, secret: str, timestamp: Optional[int] = None) -> str:
    """Build a ``Stripe-Signature`` header value (used by tests and tooling)."""
    ts = timestamp if timestamp is not None else int(time.time())
    digest = hmac.new(secret.encode("utf-8"), f"{ts}.".encode("utf-8") + payload, hashlib.sha256).hexdigest()
    return f"t={ts},v1={digest}"


async def _find_donation(session: AsyncSession, obj: Dict[str, Any]) -> Optional[Donation]:
    metadata = obj.get("metadata") or {}
    donation_id = metadata.get("donation_id")
    if donation_id:
        donation = await session.get(Donation, donation_id)
        if donation is not None:
            return donation

    object_type = obj.get("object")
    if object_type == "checkout.session":
        column = Donation.stripe_checkout_session_id
        value = obj.get("id")
    else:
        column = Donation.stripe_payment_intent_id
        value = obj.get("payment_intent") if object_type == "charge" else obj.get("id")
    if not value:
        return None
    return (await session.execute(select(Donation).where(column == value))).scalars().first()


async def handle_connect_event(session: AsyncSession, event: Dict[str, Any]) -> Dict[str, Any]:
    event_type = event.get("type", "")
    obj = (event.get("data") or {}).get("object") or {}
    logger.info(f"Stripe Connect event {event_type} ({event.get('id')})")

    if event_type == "account.updated":
        ngo = (await session.execute(select(Ngo).where(Ngo.stripe_connect_id == obj.get("id")))).scalars().first()
        if ngo is None:
            return {"handled": False, "reason": "unknown account"}
        previous = apply_account_status(ngo, obj)
        session.add(ngo)
        if previous != ngo.stripe_connect_status:
            if ngo.stripe_connect_status == ConnectStatus.ACTIVE.value:
                await create_notification(
                    session,
                    ngo_id=ngo.id,
                    type=NotificationType.CONNECT_ACTIVE.value,
                    title="Plati online activate",
                    message="Contul Stripe este activ. Poti primi donatii cu cardul.",
                    commit=False,
                )
            elif ngo.stripe_connect_status == ConnectStatus.RESTRICTED.value:
                await create_notification(
                    session,
                    ngo_id=ngo.id,
                    type=NotificationType.CONNECT_RESTRICTED.value,
                    title="Cont Stripe restrictionat",
                    message="Stripe are nevoie de informatii suplimentare pentru a activa platile.",
                    action_url="/dashboard/settings",
                    commit=False,
                )
        await session.commit()
        return {"handled": True, "status": ngo.stripe_connect_status}

    if event_type == "checkout.session.completed":
        if obj.get("payment_status") != "paid":
            return {"handled": False, "reason": "not paid"}
        donation = await _find_donation(session, obj)
        if donation is None:
            return {"handled": False, "reason": "unknown donation"}
        completed = await complete_donation(session, donation, payment_intent_id=obj.get("payment_intent"))
        return {"handled": True, "completed": completed}

    if event_type == "payment_intent.succeeded":
        donation = await _find_donation(session, obj)
        if donation is None:
            return {"handled": False, "reason": "unknown donation"}
        completed = await complete_donation(session, donation, payment_intent_id=obj.get("id"))
        return {"handled": True, "completed": completed}

    if event_type == "payment_intent.payment_failed":
        donation = await _find_donation(session, obj)
        if donation is None:
            return {"handled": False, "reason": "unknown donation"}
        reason = (obj.get("last_payment_error") or {}).get("message")
        return {"handled": True, "failed": await fail_donation(session, donation, reason)}

    if event_type == "charge.refunded":
        donation = await _find_donation(session, obj)
        if donation is None:
            return {"handled": False, "reason": "unknown donation"}
        return {"handled": True, "refunded": await refund_donation(session, donation)}

    return {"handled": False, "reason": f"ignored event {event_type}"}


async def handle_platform_event(session: AsyncSession, event: Dict[str, Any]) -> Dict[str, Any]:
    event_type = event.get("type", "")
    obj = (event.get("data") or {}).get("object") or {}
    logger.info(f"Stripe platform event {event_type} ({event.get('id')})")

    if event_type == "checkout.session.completed" and obj.get("payment_status") == "paid":
        invoice_id = (obj.get("metadata") or {}).get("invoice_id")
        invoice = await session.get(Invoice, invoice_id) if invoice_id else None
        if invoice is None:
            return {"handled": False, "reason": "unknown invoice"}
        paid = await mark_invoice_paid(session, invoice, payment_method="card")
        return {"handled": True, "paid": paid}

    return {"handled": False, "reason": f"ignored event {event_type}"}
