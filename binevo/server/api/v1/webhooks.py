"""
Provider Webhook Endpoints.

Stripe posts to two endpoints, one per signing secret: events from connected
NGO accounts (donations, account status) and events from the platform account
(subscription invoice payments). Netopia posts invoice payment IPNs; SendGrid
and Twilio report email and SMS delivery status.
"""

from __future__ import annotations

import json
from typing import Any, Dict, Optional

from fastapi import APIRouter, Depends, Header, Request
from fastapi.responses import Response
from sqlalchemy.ext.asyncio import AsyncSession

from binevo.core.database import get_session
from binevo.core.errors import (
    AuthenticationError,
    BinevoError,
    InvalidRequestError,
    PermissionDeniedError,
    ServiceNotConfiguredError,
)
from binevo.core.logging_config import get_logger
from binevo.messaging.delivery_status import (
    EMPTY_TWIML,
    apply_sendgrid_events,
    apply_twilio_status,
    is_opt_out,
    opt_out_sms_sender,
    verify_sendgrid_signature,
    verify_twilio_signature,
)
from binevo.messaging.sms import status_callback_url
from binevo.payments.netopia import get_netopia_credentials, handle_ipn, ipn_response, verify_ipn
from binevo.payments.stripe_keys import get_stripe_keys
from binevo.payments.webhooks import handle_connect_event, handle_platform_event, verify_signature
from binevo.server.core.config import settings

logger = get_logger(__name__)

router = APIRouter(tags=["webhooks"])


@router.post(
    "/stripe-connect",
    response_model=Dict[str, Any],
    summary="Stripe Connect Webhook",
    responses={400: {"description": "Missing secret or invalid signature"}},
)
async def stripe_connect_webhook(
    request: Request,
    stripe_signature: Optional[str] = Header(None, alias="Stripe-Signature"),
    session: AsyncSession = Depends(get_session),
) -> Dict[str, Any]:
    keys = await get_stripe_keys(session)
    if not keys.connect_webhook_secret:
        raise ServiceNotConfiguredError("Stripe Connect webhook secret is not configured")
    event = verify_signature(await request.body(), stripe_signature, keys.connect_webhook_secret)
    result = await handle_connect_event(session, event)
    return {"received": True, **result}


@router.post(
    "/stripe",
    response_model=Dict[str, Any],
    summary="Stripe Platform Webhook",
    responses={400: {"description": "Missing secret or invalid signature"}},
)
async def stripe_platform_webhook(
    request: Request,
    stripe_signature: Optional[str] = Header(None, alias="Stripe-Signature"),
    session: AsyncSession = Depends(get_session),
) -> Dict[str, Any]:
    keys = await get_stripe_keys(session)
    if not keys.webhook_secret:
        raise ServiceNotConfiguredError("Stripe webhook secret is not configured")
    event = verify_signature(await request.body(), stripe_signature, keys.webhook_secret)
    result = await handle_platform_event(session, event)
    return {"received": True, **result}


@router.post(
    "/netopia",
    response_model=Dict[str, Any],
    summary="Netopia IPN",
    responses={200: {"description": "Always 200; errorCode 1 tells Netopia the IPN was not accepted"}},
)
async def netopia_ipn(
    request: Request,
    verification_token: Optional[str] = Header(None, alias="Verification-token"),
    session: AsyncSession = Depends(get_session),
) -> Dict[str, Any]:
    body = await request.body()
    try:
        credentials = await get_netopia_credentials(session)
        if credentials is None or not credentials.public_key:
            raise ServiceNotConfiguredError("Netopia IPN verification key is not configured")
        payload = verify_ipn(body, verification_token, credentials.public_key, credentials.pos_signature)
        await handle_ipn(session, payload)
    except BinevoError as e:
        logger.error(f"Netopia IPN rejected: {e.message}")
        return ipn_response(1, e.message)
    return ipn_response(0)


@router.post(
    "/sendgrid",
    response_model=Dict[str, Any],
    summary="SendGrid Event Webhook",
    responses={400: {"description": "Payload is not an event list"}, 401: {"description": "Invalid signature"}},
)
async def sendgrid_events(
    request: Request,
    signature: Optional[str] = Header(None, alias="X-Twilio-Email-Event-Webhook-Signature"),
    timestamp: Optional[str] = Header(None, alias="X-Twilio-Email-Event-Webhook-Timestamp"),
    session: AsyncSession = Depends(get_session),
) -> Dict[str, Any]:
    body = await request.body()
    verification_key = settings.email.sendgrid_webhook_verification_key
    if verification_key:
        if not signature or not timestamp:
            raise AuthenticationError("Missing webhook signature", code="INVALID_SIGNATURE")
        if not verify_sendgrid_signature(verification_key, signature, timestamp, body):
            raise AuthenticationError("Invalid webhook signature", code="INVALID_SIGNATURE")
    try:
        events = json.loads(body)
    except ValueError as e:
        raise InvalidRequestError("Invalid payload") from e
    if not isinstance(events, list):
        raise InvalidRequestError("Invalid payload")
    result = await apply_sendgrid_events(session, events)
    return {"received": True, **result}


@router.post(
    "/twilio",
    summary="Twilio SMS Status and Reply Webhook",
    response_class=Response,
    responses={200: {"content": {"text/xml": {}}}, 403: {"description": "Invalid signature"}},
)
async def twilio_events(
    request: Request,
    signature: Optional[str] = Header(None, alias="X-Twilio-Signature"),
    session: AsyncSession = Depends(get_session),
) -> Response:
    """Status callbacks for outbound SMS and inbound replies; STOP opts the sender out."""
    params = {key: str(value) for key, value in (await request.form()).items()}
    auth_token = settings.sms.auth_token
    if auth_token and not verify_twilio_signature(auth_token, status_callback_url(), params, signature):
        raise PermissionDeniedError("Invalid Twilio signature", code="INVALID_SIGNATURE")

    if is_opt_out(params.get("Body")) and params.get("From"):
        await opt_out_sms_sender(session, params["From"])
    elif params.get("MessageSid") and params.get("MessageStatus"):
        await apply_twilio_status(
            session,
            message_sid=params["MessageSid"],
            message_status=params["MessageStatus"],
            to=params.get("To"),
            error_code=params.get("ErrorCode"),
            error_message=params.get("ErrorMessage"),
        )
    return Response(content=EMPTY_TWIML, media_type="text/xml")
