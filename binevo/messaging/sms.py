"""
Outbound SMS over Twilio.
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from typing import Any, Optional

import httpx

from binevo.core.logging_config import get_logger
from binevo.server.core.config import settings

from .email import SendResult

logger = get_logger(__name__)

TWILIO_URL = "https://api.twilio.com/2010-04-01/Accounts/{sid}/Messages.json"
STOP_SUFFIX = "\n\nReply STOP to unsubscribe."


@dataclass
class SMSProviderConfig:
    account_sid: Optional[str]
    auth_token: Optional[str]
    from_number: Optional[str]

    @property
    def is_configured(self) -> bool:
        return bool(self.account_sid and self.auth_token and self.from_number)


def ngo_sms_config(ngo: Any = None) -> SMSProviderConfig:
    """NGO Twilio credentials when set, otherwise the platform account."""
    cfg = settings.sms
    if ngo is not None and ngo.twilio_account_sid and ngo.twilio_auth_token:
        return SMSProviderConfig(
            account_sid=ngo.twilio_account_sid,
            auth_token=ngo.twilio_auth_token,
            from_number=ngo.twilio_phone_number or ngo.sms_sender_id or cfg.phone_number,
        )
    return SMSProviderConfig(
        account_sid=cfg.account_sid,
        auth_token=cfg.auth_token,
        from_number=(getattr(ngo, "sms_sender_id", None) or cfg.phone_number),
    )


def format_phone_number(phone: str) -> str:
    """Normalise a Romanian number to E.164 (``07xx`` becomes ``+407xx``)."""
    digits = re.sub(r"\D", "", phone)
    if digits.startswith("0"):
        return f"+40{digits[1:]}"
    return f"+{digits}"


def with_stop_instructions(body: str) -> str:
    if body.rstrip().upper().endswith("STOP"):
        return body
    return f"{body}{STOP_SUFFIX}"


def status_callback_url() -> str:
    return f"{settings.app_url.rstrip('/')}/api/v1/webhooks/twilio"


async def send_sms(
    to: str,
    body: str,
    *,
    config: Optional[SMSProviderConfig] = None,
    transport: Optional[httpx.AsyncBaseTransport] = None,
) -> SendResult:
    config = config or ngo_sms_config()
    if not config.is_configured:
        logger.warning("Twilio is not configured; SMS not sent")
        return SendResult(success=False, provider="twilio", error="SMS provider not configured")

    try:
        async with httpx.AsyncClient(timeout=15.0, transport=transport) as client:
            response = await client.post(
                TWILIO_URL.format(sid=config.account_sid),
                data={
                    "To": format_phone_number(to),
                    "From": config.from_number or "",
                    "Body": with_stop_instructions(body),
                    "StatusCallback": status_callback_url(),
                },
                auth=(config.account_sid or "", config.auth_token or ""),
            )
    except httpx.HTTPError as e:
        logger.error(f"SMS to {to} failed: {e}")
        return SendResult(success=False, provider="twilio", error=str(e))

    if response.status_code >= 400:
        logger.error(f"Twilio rejected SMS: {response.status_code} {response.text[:200]}")
        return SendResult(success=False, provider="twilio", error=f"Twilio error {response.status_code}")
    return SendResult(success=True, provider="twilio", message_id=response.json().get("sid"))
