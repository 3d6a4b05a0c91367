"""
Minimal async Stripe REST client.

Stripe's API takes ``application/x-www-form-urlencoded`` bodies with
bracketed keys for nested values (``metadata[ngo_id]=...``), which
``encode_form`` produces.
"""

from __future__ import annotations

from typing import Any, Dict, List, Optional, Tuple

import httpx

from binevo.core.errors import PaymentProviderError
from binevo.core.logging_config import get_logger
from binevo.server.core.config import settings

logger = get_logger(__name__)


def encode_form(params: Dict[str, Any], prefix: str = "") -> List[Tuple[str, str]]:
    """Flatten nested params into Stripe's bracket notation."""
    pairs: List[Tuple[str, str]] = []
    for key, value in params.items():
        full_key = f"{prefix}[{key}]" if prefix else str(key)
        if value is None:
            continue
        if isinstance(value, dict):
            pairs.extend(encode_form(value, full_key))
        elif isinstance(value, (list, tuple)):
            for index, item in enumerate(value):
                item_key = f"{full_key}[{index}]"
                if isinstance(item, dict):
                    pairs.extend(encode_form(item, item_key))
                else:
                    pairs.append((item_key, _scalar(item)))
        else:
            pairs.append((full_key, _scalar(value)))
    return pairs


def _scalar(value: Any) -> str:
    if isinstance(value, bool):
        return "true" if value else "false"
    return str(value)


class StripeClient:
    """Thin wrapper over the Stripe endpoints Binevo uses."""

    def __init__(
        self,
        secret_key: str,
        *,
        base_url: Optional[str] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
        timeout: float = 20.0,
    ) -> None:
        self._secret_key = secret_key
        self._base_url = (base_url or settings.stripe_api_base).rstrip("/")
        self._transport = transport
        self._timeout = timeout

    async def request(
        self,
        method: str,
        path: str,
        params: Optional[Dict[str, Any]] = None,
        *,
        stripe_account: Optional[str] = None,
    ) -> Dict[str, Any]:
        headers = {"Authorization": f"Bearer {self._secret_key}"}
        if stripe_account:
            headers["Stripe-Account"] = stripe_account
        url = f"{self._base_url}{path}"
        form = encode_form(params or {})
        try:
            async with httpx.AsyncClient(timeout=self._timeout, transport=self._transport) as client:
                if method == "GET":
                    response = await client.get(url, params=form, headers=headers)
                else:
                    response = await client.request(method, url, data=dict(form), headers=headers)
        except httpx.HTTPError as e:
            logger.error(f"Stripe {method} {path} failed: {e}")
            raise PaymentProviderError(f"Stripe request failed: {e}") from e

        body = response.json() if response.content else {}
        if response.status_code >= 400:
            message = (body.get("error") or {}).get("message") or f"Stripe error {response.status_code}"
            logger.error(f"Stripe {method} {path} returned {response.status_code}: {message}")
            raise PaymentProviderError(message, extra={"stripe_status": response.status_code})
        return body

    # Connect accounts

    async def create_express_account(self, *, email: Optional[str], ngo_id: str, ngo_name: str) -> Dict[str, Any]:
        return await self.request(
            "POST",
            "/accounts",
            {
                "type": "express",
                "country": "RO",
                "email": email,
                "business_type": "non_profit",
                "business_profile": {"name": ngo_name},
                "capabilities": {
                    "card_payments": {"requested": True},
                    "transfers": {"requested": True},
                },
                "metadata": {"ngo_id": ngo_id},
            },
        )

    async def retrieve_account(self, account_id: str) -> Dict[str, Any]:
        return await self.request("GET", f"/accounts/{account_id}")

    async def create_account_link(self, account_id: str, *, refresh_url: str, return_url: str) -> Dict[str, Any]:
        return await self.request(
            "POST",
            "/account_links",
            {
                "account": account_id,
                "refresh_url": refresh_url,
                "return_url": return_url,
                "type": "account_onboarding",
            },
        )

    async def create_login_link(self, account_id: str) -> Dict[str, Any]:
        return await self.request("POST", f"/accounts/{account_id}/login_links")

    # Checkout

    async def create_checkout_session(self, params: Dict[str, Any]) -> Dict[str, Any]:
        return await self.request("POST", "/checkout/sessions", params)
