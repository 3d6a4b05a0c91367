"""
Platform invoicing: subscription invoices, monthly recurring runs, payment
settlement and the overdue reminder / suspension ladder.
"""

from __future__ import annotations

from datetime import datetime, timedelta
from typing import Any, Dict, Optional, Tuple

from sqlalchemy.ext.asyncio import AsyncSession
from sqlmodel import select

from binevo.core.audit import record_audit
from binevo.core.database.base import utc_now
from binevo.core.database.entities import Invoice, Ngo, PLATFORM_SETTINGS_ID, PlatformSettings
from binevo.core.errors import EmailDeliveryError, InvalidRequestError
from binevo.core.logging_config import get_logger
from binevo.core.models.domain import (
    InvoiceStatus,
    NotificationType,
    SubscriptionPlan,
    SubscriptionStatus,
)
from binevo.core.monitoring import log_business_event
from binevo.messaging import templates
from binevo.messaging.notifications import (
    create_notification,
    email_ngo_admins,
    get_ngo_admin_emails,
    send_platform_email,
)
from binevo.server.core.config import settings
from binevo.server.core.security import generate_token

from .donation_fee import round_money
from .plans import plan_price
from .subscription_manager import extend_expiry

logger = get_logger(__name__)

ROMANIAN_MONTHS = [
    "Ianuarie",
    "Februarie",
    "Martie",
    "Aprilie",
    "Mai",
    "Iunie",
    "Iulie",
    "August",
    "Septembrie",
    "Octombrie",
    "Noiembrie",
    "Decembrie",
]

UNPAID_STATUSES = (InvoiceStatus.ISSUED.value, InvoiceStatus.SENT.value, InvoiceStatus.OVERDUE.value)
SECOND_WARNING_DAY = 5
SUSPENSION_DAY = 10
UPCOMING_REMINDER_DAYS = 3


async def get_platform_settings(session: AsyncSession) -> PlatformSettings:
    """Load the settings singleton, creating it with defaults on first use."""
    platform = await session.get(PlatformSettings, PLATFORM_SETTINGS_ID)
    if platform is None:
        platform = PlatformSettings(id=PLATFORM_SETTINGS_ID)
        session.add(platform)
        await session.flush()
    return platform


def billing_month_of(moment: datetime) -> str:
    return moment.strftime("%Y-%m")


def billing_month_label(month: str) -> str:
    year, number = month.split("-")
    return f"{ROMANIAN_MONTHS[int(number) - 1]} {year}"


def allocate_invoice_number(platform: PlatformSettings) -> Tuple[str, str]:
    """Reserve the next number (``SERIES-0001``) and advance the counter."""
    series = platform.invoice_series or platform.invoice_prefix or "BNV"
    number = f"{series}-{platform.invoice_next_number:04d}"
    platform.invoice_next_number += 1
    platform.updated_at = utc_now()
    return number, series


def pay_url(invoice: Invoice) -> str:
    return f"{settings.app_url}/factura/{invoice.payment_token}"


def _date_label(value: datetime) -> str:
    return value.strftime("%d.%m.%Y")


async def create_invoice(
    session: AsyncSession,
    ngo: Ngo,
    *,
    items: list[Dict[str, Any]],
    subscription_plan: Optional[str] = None,
    subscription_month: Optional[str] = None,
    notes: Optional[str] = None,
    now: Optional[datetime] = None,
) -> Invoice:
    """Issue an invoice from ``items`` (each with description, quantity, unit_price)."""
    if not items:
        raise InvalidRequestError("An invoice needs at least one item")
    now = now or utc_now()
    platform = await get_platform_settings(session)
    number, series = allocate_invoice_number(platform)
    vat_rate = platform.invoice_vat_rate if platform.company_vat_payer else 0.0

    lines = []
    subtotal = 0.0
    for item in items:
        quantity = float(item.get("quantity", 1))
        unit_price = float(item["unit_price"])
        line_total = round_money(quantity * unit_price)
        subtotal += line_total
        lines.append(
            {
                "description": item["description"],
                "quantity": quantity,
                "unit": item.get("unit", "luna"),
                "unit_price": unit_price,
                "vat_rate": vat_rate,
                "total": line_total,
            }
        )
    subtotal = round_money(subtotal)
    vat_amount = round_money(subtotal * vat_rate / 100)

    invoice = Invoice(
        ngo_id=ngo.id,
        invoice_number=number,
        invoice_series=series,
        status=InvoiceStatus.ISSUED.value,
        issue_date=now,
        due_date=now + timedelta(days=platform.invoice_payment_terms_days),
        seller_name=platform.company_name,
        seller_cui=platform.company_cui,
        seller_reg_com=platform.company_reg_com,
        seller_address=platform.company_address,
        seller_city=platform.company_city,
        seller_county=platform.company_county,
        seller_iban=platform.company_iban,
        seller_bank=platform.company_bank,
        seller_vat_payer=platform.company_vat_payer,
        buyer_name=ngo.billing_name or ngo.name,
        buyer_cui=ngo.billing_cui or ngo.cui,
        buyer_address=ngo.billing_address or ngo.address,
        buyer_city=ngo.billing_city or ngo.city,
        buyer_county=ngo.billing_county or ngo.county,
        buyer_email=ngo.billing_email or ngo.email,
        items=lines,
        subtotal=subtotal,
        vat_rate=vat_rate,
        vat_amount=vat_amount,
        total_amount=round_money(subtotal + vat_amount),
        subscription_plan=subscription_plan,
        subscription_month=subscription_month,
        payment_token=generate_token(32),
        notes=notes,
    )
    session.add(platform)
    session.add(invoice)
    await create_notification(
        session,
        ngo_id=ngo.id,
        type=NotificationType.INVOICE_ISSUED.value,
        title=f"Factura {number}",
        message=f"A fost emisa factura {number} in valoare de {invoice.total_amount:.2f} RON.",
        action_url="/dashboard/billing",
        details={"invoice_id": invoice.id},
        commit=False,
    )
    await session.commit()
    logger.info(f"Issued invoice {number} for NGO {ngo.id}: {invoice.total_amount:.2f} RON")
    return invoice


async def create_subscription_invoice(
    session: AsyncSession,
    ngo: Ngo,
    plan: str,
    *,
    billing_month: Optional[str] = None,
    months: int = 1,
    send_email: bool = True,
    now: Optional[datetime] = None,
) -> Invoice:
    if plan not in (SubscriptionPlan.PRO.value, SubscriptionPlan.ELITE.value):
        raise InvalidRequestError("Only paid plans can be invoiced")
    now = now or utc_now()
    month = billing_month or billing_month_of(now)
    price = plan_price(plan)
    invoice = await create_invoice(
        session,
        ngo,
        items=[
            {
                "description": f"Abonament Binevo {plan} - {billing_month_label(month)}",
                "quantity": months,
                "unit": "luna",
                "unit_price": price,
            }
        ],
        subscription_plan=plan,
        subscription_month=month,
        now=now,
    )
    if send_email:
        await send_invoice_email(session, invoice, ngo)
    return invoice


async def send_invoice_email(session: AsyncSession, invoice: Invoice, ngo: Ngo) -> bool:
    subject, body = templates.invoice_email(
        ngo.name, invoice.invoice_number, invoice.total_amount, _date_label(invoice.due_date), pay_url(invoice)
    )
    if invoice.buyer_email:
        result = await send_platform_email(session, invoice.buyer_email, subject, body)
        sent = result.success
    else:
        sent = await email_ngo_admins(session, ngo.id, subject, body) > 0
    if sent and invoice.status == InvoiceStatus.ISSUED.value:
        invoice.status = InvoiceStatus.SENT.value
        session.add(invoice)
        await session.commit()
    return sent


async def invoice_recipient(session: AsyncSession, invoice: Invoice, ngo: Ngo) -> Optional[str]:
    """Buyer email on the invoice, then the NGO billing address, then its first admin."""
    if invoice.buyer_email:
        return invoice.buyer_email
    if ngo.billing_email:
        return ngo.billing_email
    admins = await get_ngo_admin_emails(session, ngo.id)
    return admins[0] if admins else None


async def deliver_invoice_email(session: AsyncSession, invoice: Invoice, ngo: Ngo) -> str:
    """Email the invoice to a single recipient on request; returns the address used."""
    recipient = await invoice_recipient(session, invoice, ngo)
    if not recipient:
        raise InvalidRequestError(f"No email address for invoice {invoice.invoice_number}", code="NO_RECIPIENT")
    subject, body = templates.invoice_email(
        ngo.name, invoice.invoice_number, invoice.total_amount, _date_label(invoice.due_date), pay_url(invoice)
    )
    result = await send_platform_email(session, recipient, subject, body)
    if not result.success:
        raise EmailDeliveryError(f"Invoice email could not be sent: {result.error}")
    if invoice.status in (InvoiceStatus.DRAFT.value, InvoiceStatus.ISSUED.value):
        invoice.status = InvoiceStatus.SENT.value
        invoice.updated_at = utc_now()
        session.add(invoice)
        await session.commit()
    logger.info(f"Invoice {invoice.invoice_number} emailed to {recipient}")
    return recipient


async def generate_monthly_recurring_invoices(session: AsyncSession, now: Optional[datetime] = None) -> Dict[str, Any]:
    """Invoice every active paid NGO once per calendar month."""
    now = now or utc_now()
    month = billing_month_of(now)
    stmt = select(Ngo).where(
        (Ngo.is_active == True)  # noqa: E712
        & (Ngo.subscription_status == SubscriptionStatus.ACTIVE.value)
        & (Ngo.subscription_plan.in_([SubscriptionPlan.PRO.value, SubscriptionPlan.ELITE.value]))
    )
    ngos = list((await session.execute(stmt)).scalars().all())
    results: Dict[str, Any] = {"generated": 0, "skipped": 0, "errors": []}
    for ngo in ngos:
        existing = await session.execute(
            select(Invoice.id).where(
                (Invoice.ngo_id == ngo.id)
                & (Invoice.subscription_month == month)
                & (Invoice.status != InvoiceStatus.CANCELLED.value)
            )
        )
        if existing.first() is not None:
            results["skipped"] += 1
            continue
        try:
            await create_subscription_invoice(session, ngo, ngo.subscription_plan, billing_month=month, now=now)
            results["generated"] += 1
        except InvalidRequestError as e:
            results["errors"].append(f"{ngo.id}: {e.message}")
    return results


async def mark_invoice_paid(
    session: AsyncSession,
    invoice: Invoice,
    *,
    payment_method: Optional[str] = None,
    marked_by: Optional[str] = None,
    now: Optional[datetime] = None,
) -> bool:
    """Settle an invoice; subscription invoices activate the plan for one more month."""
    if invoice.status == InvoiceStatus.PAID.value:
        return False
    now = now or utc_now()
    invoice.status = InvoiceStatus.PAID.value
    invoice.paid_at = now
    invoice.payment_method = payment_method or invoice.payment_method
    invoice.updated_at = now
    session.add(invoice)

    ngo = await session.get(Ngo, invoice.ngo_id)
    if ngo is not None and invoice.subscription_plan:
        months = int(sum(float(item.get("quantity", 1)) for item in invoice.items) or 1)
        ngo.subscription_plan = invoice.subscription_plan
        ngo.subscription_status = SubscriptionStatus.ACTIVE.value
        ngo.subscription_start_at = ngo.subscription_start_at or now
        ngo.subscription_expires_at = extend_expiry(ngo.subscription_expires_at, months, now)
        ngo.last_expiration_notice = None
        ngo.updated_at = now
        session.add(ngo)

    await record_audit(
        session,
        action="INVOICE_PAID",
        entity_type="Invoice",
        entity_id=invoice.id,
        ngo_id=invoice.ngo_id,
        user_id=marked_by,
        details={"invoice_number": invoice.invoice_number, "payment_method": invoice.payment_method},
        commit=False,
    )
    await session.commit()
    log_business_event("invoice_paid", invoice=invoice.invoice_number, total=invoice.total_amount)

    if invoice.buyer_email:
        subject, body = templates.invoice_paid_email(invoice.invoice_number, invoice.total_amount)
        await send_platform_email(session, invoice.buyer_email, subject, body)
    return True


async def _remind(session: AsyncSession, invoice: Invoice, stage: str) -> None:
    subject, body = templates.payment_reminder_email(
        invoice.invoice_number, invoice.total_amount, _date_label(invoice.due_date), pay_url(invoice), stage
    )
    if invoice.buyer_email:
        await send_platform_email(session, invoice.buyer_email, subject, body)
    else:
        await email_ngo_admins(session, invoice.ngo_id, subject, body)


async def check_overdue_invoices(session: AsyncSession, now: Optional[datetime] = None) -> Dict[str, int]:
    """Walk unpaid invoices past due: mark overdue, warn again at day 5, suspend at day 10."""
    now = now or utc_now()
    stmt = select(Invoice).where((Invoice.status.in_(UNPAID_STATUSES)) & (Invoice.due_date < now))
    invoices = list((await session.execute(stmt)).scalars().all())
    results = {"overdue": 0, "second_warnings": 0, "suspended": 0}

    for invoice in invoices:
        days_overdue = (now - invoice.due_date).days
        details = dict(invoice.details or {})

        if invoice.status != InvoiceStatus.OVERDUE.value:
            invoice.status = InvoiceStatus.OVERDUE.value
            details["first_reminder_at"] = now.isoformat()
            await _remind(session, invoice, "overdue")
            await create_notification(
                session,
                ngo_id=invoice.ngo_id,
                type=NotificationType.INVOICE_OVERDUE.value,
                title=f"Factura {invoice.invoice_number} restanta",
                message="Te rugam sa achiti factura pentru a evita suspendarea contului.",
                action_url="/dashboard/billing",
                commit=False,
            )
            results["overdue"] += 1

        if SECOND_WARNING_DAY <= days_overdue < SUSPENSION_DAY and "second_warning_at" not in details:
            details["second_warning_at"] = now.isoformat()
            await _remind(session, invoice, "second_warning")
            results["second_warnings"] += 1

        if days_overdue >= SUSPENSION_DAY and "suspended_at" not in details:
            details["suspended_at"] = now.isoformat()
            ngo = await session.get(Ngo, invoice.ngo_id)
            if ngo is not None:
                old_plan = ngo.subscription_plan
                ngo.subscription_plan = SubscriptionPlan.BASIC.value
                ngo.subscription_status = SubscriptionStatus.SUSPENDED.value
                ngo.updated_at = now
                session.add(ngo)
                await record_audit(
                    session,
                    action="SUBSCRIPTION_SUSPENDED",
                    entity_type="Ngo",
                    entity_id=ngo.id,
                    ngo_id=ngo.id,
                    details={"invoice_id": invoice.id, "old_plan": old_plan, "days_overdue": days_overdue},
                    commit=False,
                )
            await _remind(session, invoice, "suspended")
            results["suspended"] += 1

        invoice.details = details
        invoice.updated_at = now
        session.add(invoice)

    await session.commit()
    logger.info(f"Overdue invoice check: {results}")
    return results


async def send_upcoming_payment_reminders(session: AsyncSession, now: Optional[datetime] = None) -> int:
    """Remind once about invoices due within the next three days."""
    now = now or utc_now()
    stmt = select(Invoice).where(
        (Invoice.status.in_((InvoiceStatus.ISSUED.value, InvoiceStatus.SENT.value)))
        & (Invoice.due_date >= now)
        & (Invoice.due_date <= now + timedelta(days=UPCOMING_REMINDER_DAYS))
    )
    sent = 0
    for invoice in (await session.execute(stmt)).scalars().all():
        details = dict(invoice.details or {})
        if "upcoming_reminder_at" in details:
            continue
        await _remind(session, invoice, "upcoming")
        details["upcoming_reminder_at"] = now.isoformat()
        invoice.details = details
        session.add(invoice)
        sent += 1
    await session.commit()
    return sent
