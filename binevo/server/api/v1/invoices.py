"""
Public Invoice Endpoints.

Invoices emailed to NGOs carry a payment link with an unguessable token;
these endpoints show the invoice, start its online payment (Stripe or
Netopia) and accept a bank transfer proof without login.
"""

from __future__ import annotations

from typing import Optional

from fastapi import APIRouter, Depends, File, Form, HTTPException, Query, UploadFile, status
from sqlalchemy.ext.asyncio import AsyncSession
from sqlmodel import select

from binevo.core.database import get_session
from binevo.core.database.base import utc_now
from binevo.core.database.entities import Invoice
from binevo.core.logging_config import get_logger
from binevo.core.models.domain import InvoiceStatus
from binevo.core.models.io.billing import CheckoutResponse
from binevo.core.models.io.public import PublicInvoice
from binevo.messaging.notifications import email_super_admins
from binevo.messaging.templates import admin_alert_email
from binevo.payments.invoice_checkout import create_invoice_checkout
from binevo.payments.netopia import start_invoice_payment
from binevo.server.api.v1.uploads import save_upload
from binevo.server.core.config import settings

logger = get_logger(__name__)

router = APIRouter(tags=["invoices"])

PROOF_TYPES = {
    "image/jpeg": "jpg",
    "image/png": "png",
    "image/webp": "webp",
    "application/pdf": "pdf",
}


async def get_invoice_by_token(session: AsyncSession, token: str) -> Invoice:
    invoice = (await session.execute(select(Invoice).where(Invoice.payment_token == token))).scalars().first()
    if invoice is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Invoice not found")
    return invoice


@router.get("/by-token", response_model=PublicInvoice, summary="Invoice by Payment Token")
async def invoice_by_token(
    token: str = Query(..., min_length=8),
    session: AsyncSession = Depends(get_session),
) -> PublicInvoice:
    return PublicInvoice.model_validate(await get_invoice_by_token(session, token))


@router.post(
    "/by-token/pay",
    response_model=CheckoutResponse,
    summary="Pay Invoice Online",
    responses={
        400: {"description": "Invoice already paid or cancelled, or the processor is not configured"},
        404: {"description": "Unknown token"},
    },
)
async def pay_by_token(
    token: str = Query(..., min_length=8),
    method: str = Query("card", pattern="^(card|netopia)$"),
    session: AsyncSession = Depends(get_session),
) -> CheckoutResponse:
    """Start an online payment: Stripe Checkout for ``card``, the Netopia card page for ``netopia``."""
    invoice = await get_invoice_by_token(session, token)
    if method == "netopia":
        started = await start_invoice_payment(session, invoice)
        return CheckoutResponse(
            invoice_id=invoice.id,
            invoice_number=invoice.invoice_number,
            checkout_url=started["url"],
            checkout_session_id=started["ntp_id"],
        )
    checkout = await create_invoice_checkout(session, invoice)
    return CheckoutResponse(
        invoice_id=invoice.id,
        invoice_number=invoice.invoice_number,
        checkout_url=checkout.get("url"),
        checkout_session_id=checkout.get("id"),
    )


@router.post(
    "/by-token/proof",
    response_model=PublicInvoice,
    summary="Submit Bank Transfer Proof",
    responses={
        400: {"description": "Invoice already paid, unsupported file type or nothing submitted"},
        404: {"description": "Unknown token"},
        413: {"description": "File larger than the upload limit"},
    },
)
async def submit_payment_proof(
    token: str = Form(..., min_length=8),
    proof: Optional[UploadFile] = File(None),
    note: Optional[str] = Form(None, max_length=2000),
    session: AsyncSession = Depends(get_session),
) -> PublicInvoice:
    """
    Attach a transfer receipt and/or a note to an invoice.

    The invoice stays unpaid; platform admins are alerted and mark it paid
    once the money is on the statement.
    """
    invoice = await get_invoice_by_token(session, token)
    if invoice.status == InvoiceStatus.PAID.value:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Invoice is already paid")
    if proof is None and not note:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Attach a receipt or write a note")

    if proof is not None:
        extension = PROOF_TYPES.get((proof.content_type or "").lower())
        if extension is None:
            raise HTTPException(
                status_code=status.HTTP_400_BAD_REQUEST,
                detail="Unsupported file type. Allowed: JPEG, PNG, WEBP, PDF",
            )
        data = await proof.read()
        if len(data) > settings.max_proof_upload_bytes:
            raise HTTPException(status_code=status.HTTP_413_REQUEST_ENTITY_TOO_LARGE, detail="File too large")
        if not data:
            raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Empty file")
        invoice.payment_proof_url = save_upload(data, "proofs", invoice.invoice_number, extension)

    if note:
        invoice.payment_proof_note = note
    invoice.payment_method = "bank_transfer"
    invoice.updated_at = utc_now()
    session.add(invoice)
    await session.commit()
    logger.info(f"Payment proof received for invoice {invoice.invoice_number}")

    subject, html = admin_alert_email(
        f"Dovada de plata: factura {invoice.invoice_number}",
        f"{invoice.buyer_name} a trimis o dovada de plata pentru factura {invoice.invoice_number} "
        f"({invoice.total_amount:.2f} {invoice.currency}). Verifica extrasul si marcheaza factura ca platita.",
        f"{settings.app_url.rstrip('/')}/admin/invoices/{invoice.id}",
    )
    await email_super_admins(session, subject, html)
    return PublicInvoice.model_validate(invoice)
