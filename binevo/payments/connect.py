"""
Stripe Connect: per-NGO Express accounts used to collect donations.

An NGO is ``active`` once Stripe enables both charges and payouts on its
account, ``restricted`` when details were submitted but charges are off,
and ``pending`` otherwise.
"""

from __future__ import annotations

from typing import Any, Dict, Optional

from sqlalchemy.ext.asyncio import AsyncSession
from sqlmodel import select

from binevo.billing.donation_fee import DonationFee
from binevo.core.database.base import utc_now
from binevo.core.database.entities import Donation, Ngo
from binevo.core.errors import PaymentProviderError, ServiceNotConfiguredError
from binevo.core.logging_config import get_logger
from binevo.core.models.domain import ConnectStatus
from binevo.server.core.config import settings

from .stripe_client import StripeClient
from .stripe_keys import get_stripe_keys

logger = get_logger(__name__)


async def get_stripe_client(session: Optional[AsyncSession] = None) -> StripeClient:
    keys = await get_stripe_keys(session)
    if not keys.is_configured:
        raise ServiceNotConfiguredError("Stripe is not configured", code="STRIPE_NOT_CONFIGURED")
    return StripeClient(keys.secret_key or "")


def derive_connect_status(account: Dict[str, Any]) -> Dict[str, Any]:
    """Map a Stripe account object onto the fields stored on the NGO."""
    charges_enabled = bool(account.get("charges_enabled"))
    payouts_enabled = bool(account.get("payouts_enabled"))
    details_submitted = bool(account.get("details_submitted"))

    if charges_enabled and payouts_enabled:
        status = ConnectStatus.ACTIVE.value
    elif details_submitted and not charges_enabled:
        status = ConnectStatus.RESTRICTED.value
    else:
        status = ConnectStatus.PENDING.value

    requirements = account.get("requirements") or {}
    return {
        "status": status,
        "onboarded": status == ConnectStatus.ACTIVE.value,
        "charges_enabled": charges_enabled,
        "payouts_enabled": payouts_enabled,
        "requirements": {
            "currently_due": requirements.get("currently_due") or [],
            "eventually_due": requirements.get("eventually_due") or [],
            "disabled_reason": requirements.get("disabled_reason"),
        },
    }


def apply_account_status(ngo: Ngo, account: Dict[str, Any]) -> str:
    """Copy the derived status onto ``ngo`` and return the previous status."""
    previous = ngo.stripe_connect_status
    derived = derive_connect_status(account)
    ngo.stripe_connect_status = derived["status"]
    ngo.stripe_connect_onboarded = derived["onboarded"]
    ngo.stripe_charges_enabled = derived["charges_enabled"]
    ngo.stripe_payouts_enabled = derived["payouts_enabled"]
    ngo.stripe_requirements = derived["requirements"]
    ngo.stripe_last_sync_at = utc_now()
    ngo.updated_at = utc_now()
    return previous


def accepts_card_donations(ngo: Ngo) -> bool:
    return bool(
        ngo.stripe_connect_id
        and ngo.stripe_connect_status == ConnectStatus.ACTIVE.value
        and ngo.stripe_connect_onboarded
    )


async def create_onboarding_link(session: AsyncSession, ngo: Ngo, client: Optional[StripeClient] = None) -> str:
    """Create the Express account if needed and return a hosted onboarding URL."""
    client = client or await get_stripe_client(session)

    if not ngo.stripe_connect_id:
        account = await client.create_express_account(email=ngo.email, ngo_id=ngo.id, ngo_name=ngo.name)
        ngo.stripe_connect_id = account["id"]
        ngo.stripe_connect_status = ConnectStatus.PENDING.value
        ngo.updated_at = utc_now()
        session.add(ngo)
        await session.commit()
        logger.info(f"Created Stripe Connect account {account['id']} for NGO {ngo.id}")

    link = await client.create_account_link(
        ngo.stripe_connect_id,
        refresh_url=f"{settings.app_url}/dashboard/settings?connect=refresh",
        return_url=f"{settings.app_url}/dashboard/settings?connect=success",
    )
    return link["url"]


async def refresh_account_status(session: AsyncSession, ngo: Ngo, client: Optional[StripeClient] = None) -> Ngo:
    if not ngo.stripe_connect_id:
        return ngo
    client = client or await get_stripe_client(session)
    account = await client.retrieve_account(ngo.stripe_connect_id)
    apply_account_status(ngo, account)
    session.add(ngo)
    await session.commit()
    return ngo


async def create_dashboard_link(session: AsyncSession, ngo: Ngo, client: Optional[StripeClient] = None) -> str:
    if not ngo.stripe_connect_id:
        raise ServiceNotConfiguredError("Stripe Connect account not created", code="CONNECT_NOT_CREATED")
    client = client or await get_stripe_client(session)
    link = await client.create_login_link(ngo.stripe_connect_id)
    return link["url"]


async def sync_connect_accounts(session: AsyncSession, client: Optional[StripeClient] = None) -> Dict[str, Any]:
    """Refresh every active NGO's Connect status. Failures are counted, not raised."""
    client = client or await get_stripe_client(session)
    stmt = select(Ngo).where((Ngo.is_active == True) & (Ngo.stripe_connect_id != None))  # noqa: E711,E712
    ngos = list((await session.execute(stmt)).scalars().all())

    synced = 0
    errors = 0
    for ngo in ngos:
        try:
            account = await client.retrieve_account(ngo.stripe_connect_id or "")
        except PaymentProviderError as e:
            logger.error(f"Stripe sync failed for NGO {ngo.id}: {e}")
            errors += 1
            continue
        apply_account_status(ngo, account)
        session.add(ngo)
        synced += 1

    await session.commit()
    logger.info(f"Stripe Connect sync: total={len(ngos)}, synced={synced}, errors={errors}")
    return {"message": "Stripe sync completed", "total": len(ngos), "synced": synced, "errors": errors}


async def create_donation_checkout(
    session: AsyncSession,
    ngo: Ngo,
    donation: Donation,
    fee: DonationFee,
    *,
    donor_email: Optional[str],
    client: Optional[StripeClient] = None,
) -> Dict[str, Any]:
    """Checkout session on the platform account that transfers the net to the NGO."""
    client = client or await get_stripe_client(session)
    amount_bani = int(round(donation.amount * 100))
    params: Dict[str, Any] = {
        "mode": "payment",
        "payment_method_types": ["card"],
        "customer_email": donor_email,
        "line_items": [
            {
                "quantity": 1,
                "price_data": {
                    "currency": donation.currency.lower(),
                    "unit_amount": amount_bani,
                    "product_data": {"name": f"Donatie pentru {ngo.name}"},
                },
            }
        ],
        "payment_intent_data": {
            "transfer_data": {"destination": ngo.stripe_connect_id},
            "metadata": {"donation_id": donation.id, "ngo_id": ngo.id},
        },
        "metadata": {"donation_id": donation.id, "ngo_id": ngo.id},
        "success_url": f"{settings.app_url}/s/{ngo.slug}/multumim?donation={donation.id}",
        "cancel_url": f"{settings.app_url}/s/{ngo.slug}?canceled=1",
    }
    if fee.fee_amount_cents > 0:
        params["payment_intent_data"]["application_fee_amount"] = fee.fee_amount_cents
    return await client.create_checkout_session(params)
