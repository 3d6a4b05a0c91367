"""
Card payment of platform invoices through Stripe Checkout on the platform
account. The ``checkout.session.completed`` platform webhook settles the
invoice via its ``invoice_id`` metadata.
"""

from __future__ import annotations

from typing import Any, Dict, Optional

from sqlalchemy.ext.asyncio import AsyncSession

from binevo.billing.invoice_generator import pay_url
from binevo.core.database.entities import Invoice
from binevo.core.errors import InvalidRequestError
from binevo.core.models.domain import InvoiceStatus

from .connect import get_stripe_client
from .stripe_client import StripeClient


async def create_invoice_checkout(
    session: AsyncSession,
    invoice: Invoice,
    *,
    client: Optional[StripeClient] = None,
) -> Dict[str, Any]:
    if invoice.status in (InvoiceStatus.PAID.value, InvoiceStatus.CANCELLED.value):
        raise InvalidRequestError(f"Invoice {invoice.invoice_number} is {invoice.status.lower()}")
    client = client or await get_stripe_client(session)
    checkout = await client.create_checkout_session(
        {
            "mode": "payment",
            "payment_method_types": ["card"],
            "customer_email": invoice.buyer_email,
            "line_items": [
                {
                    "quantity": 1,
                    "price_data": {
                        "currency": invoice.currency.lower(),
                        "unit_amount": int(round(invoice.total_amount * 100)),
                        "product_data": {"name": f"Factura {invoice.invoice_number}"},
                    },
                }
            ],
            "metadata": {"invoice_id": invoice.id, "ngo_id": invoice.ngo_id},
            "success_url": f"{pay_url(invoice)}?paid=1",
            "cancel_url": pay_url(invoice),
        }
    )
    invoice.stripe_checkout_session_id = checkout.get("id")
    session.add(invoice)
    await session.commit()
    return checkout
