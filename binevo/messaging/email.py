"""
Outbound email over SendGrid or Mailgun.

Senders never raise for provider failures: every call returns a
``SendResult`` so bulk senders can record per-recipient outcomes.
"""

from __future__ import annotations

import html
import re
from dataclasses import dataclass
from typing import Any, Dict, Optional

import httpx

from binevo.core.logging_config import get_logger
from binevo.server.core.config import settings

logger = get_logger(__name__)

SENDGRID_URL = "https://api.sendgrid.com/v3/mail/send"
MAILGUN_URL = "https://api.eu.mailgun.net/v3/{domain}/messages"
HTTP_TIMEOUT = 15.0


@dataclass
class SendResult:
    success: bool
    provider: str
    message_id: Optional[str] = None
    error: Optional[str] = None


@dataclass
class EmailProviderConfig:
    provider: str
    from_email: str
    from_name: str
    sendgrid_api_key: Optional[str] = None
    mailgun_api_key: Optional[str] = None
    mailgun_domain: Optional[str] = None

    @property
    def is_configured(self) -> bool:
        if self.provider == "mailgun":
            return bool(self.mailgun_api_key and self.mailgun_domain)
        return bool(self.sendgrid_api_key)


def platform_email_config(platform: Any = None) -> EmailProviderConfig:
    """Provider config from the environment, completed by the platform settings row."""
    cfg = settings.email
    return EmailProviderConfig(
        provider=(getattr(platform, "email_provider", None) or cfg.provider),
        from_email=(getattr(platform, "email_from", None) or cfg.from_email),
        from_name=(getattr(platform, "email_from_name", None) or cfg.from_name),
        sendgrid_api_key=cfg.sendgrid_api_key or getattr(platform, "sendgrid_api_key", None),
        mailgun_api_key=cfg.mailgun_api_key or getattr(platform, "mailgun_api_key", None),
        mailgun_domain=cfg.mailgun_domain or getattr(platform, "mailgun_domain", None),
    )


def ngo_email_config(ngo: Any, platform: Any = None) -> EmailProviderConfig:
    """NGOs may send through their own SendGrid key and sender identity."""
    base = platform_email_config(platform)
    if ngo.sendgrid_api_key:
        base.provider = "sendgrid"
        base.sendgrid_api_key = ngo.sendgrid_api_key
    base.from_email = ngo.sender_email or base.from_email
    base.from_name = ngo.sender_name or ngo.name or base.from_name
    return base


def unsubscribe_url(ngo_slug: str, donor_id: str) -> str:
    return f"{settings.app_url}/api/v1/unsubscribe?ngo={ngo_slug}&did={donor_id}"


def html_to_text(body: str) -> str:
    text = re.sub(r"<br\s*/?>", "\n", body, flags=re.IGNORECASE)
    text = re.sub(r"</p>", "\n\n", text, flags=re.IGNORECASE)
    text = re.sub(r"<[^>]+>", "", text)
    return html.unescape(text).strip()


def with_unsubscribe_footer(body: str, unsubscribe: Optional[str]) -> str:
    if not unsubscribe:
        return body
    footer = (
        '<p style="font-size:12px;color:#888;margin-top:32px">'
        "Nu mai doriti sa primiti aceste emailuri? "
        f'<a href="{html.escape(unsubscribe)}">Dezabonare</a></p>'
    )
    return f"{body}{footer}"


async def send_email(
    to: str,
    subject: str,
    html_body: str,
    *,
    config: Optional[EmailProviderConfig] = None,
    unsubscribe: Optional[str] = None,
    reply_to: Optional[str] = None,
    transport: Optional[httpx.AsyncBaseTransport] = None,
) -> SendResult:
    """Send one email with the given provider configuration."""
    config = config or platform_email_config()
    if not config.is_configured:
        logger.warning(f"Email provider '{config.provider}' is not configured; not sending '{subject}'")
        return SendResult(success=False, provider=config.provider, error="Email provider not configured")

    body = with_unsubscribe_footer(html_body, unsubscribe)
    try:
        async with httpx.AsyncClient(timeout=HTTP_TIMEOUT, transport=transport) as client:
            if config.provider == "mailgun":
                return await _send_mailgun(client, config, to, subject, body, reply_to)
            return await _send_sendgrid(client, config, to, subject, body, reply_to)
    except httpx.HTTPError as e:
        logger.error(f"Email to {to} failed: {e}")
        return SendResult(success=False, provider=config.provider, error=str(e))


async def _send_sendgrid(
    client: httpx.AsyncClient,
    config: EmailProviderConfig,
    to: str,
    subject: str,
    body: str,
    reply_to: Optional[str],
) -> SendResult:
    payload: Dict[str, Any] = {
        "personalizations": [{"to": [{"email": to}]}],
        "from": {"email": config.from_email, "name": config.from_name},
        "subject": subject,
        "content": [
            {"type": "text/plain", "value": html_to_text(body)},
            {"type": "text/html", "value": body},
        ],
    }
    if reply_to:
        payload["reply_to"] = {"email": reply_to}
    response = await client.post(
        SENDGRID_URL,
        json=payload,
        headers={"Authorization": f"Bearer {config.sendgrid_api_key}"},
    )
    if response.status_code >= 400:
        logger.error(f"SendGrid rejected email to {to}: {response.status_code} {response.text[:200]}")
        return SendResult(success=False, provider="sendgrid", error=f"SendGrid error {response.status_code}")
    return SendResult(success=True, provider="sendgrid", message_id=response.headers.get("x-message-id"))


async def _send_mailgun(
    client: httpx.AsyncClient,
    config: EmailProviderConfig,
    to: str,
    subject: str,
    body: str,
    reply_to: Optional[str],
) -> SendResult:
    data = {
        "from": f"{config.from_name} <{config.from_email}>",
        "to": to,
        "subject": subject,
        "html": body,
        "text": html_to_text(body),
    }
    if reply_to:
        data["h:Reply-To"] = reply_to
    response = await client.post(
        MAILGUN_URL.format(domain=config.mailgun_domain),
        data=data,
        auth=("api", config.mailgun_api_key or ""),
    )
    if response.status_code >= 400:
        logger.error(f"Mailgun rejected email to {to}: {response.status_code} {response.text[:200]}")
        return SendResult(success=False, provider="mailgun", error=f"Mailgun error {response.status_code}")
    return SendResult(success=True, provider="mailgun", message_id=response.json().get("id"))
