"""
Dashboard Billing Endpoints.

Shows the NGO's plan and invoices, and lets its administrators pay a plan
upgrade or an open invoice by card through Stripe Checkout.
"""

from __future__ import annotations

from fastapi import APIRouter, Depends, HTTPException, Request, status
from sqlalchemy.ext.asyncio import AsyncSession
from sqlmodel import select

from binevo.billing.donation_fee import get_fee_description
from binevo.billing.invoice_generator import create_subscription_invoice
from binevo.billing.plans import PLAN_FEATURES, PLAN_LIMITS, effective_plan
from binevo.core.audit import record_audit
from binevo.core.database import get_session
from binevo.core.database.entities import Invoice
from binevo.core.database.repositories import TenantRepository
from binevo.core.logging_config import get_logger
from binevo.core.models.io.admin import InvoiceRead
from binevo.core.models.io.billing import BillingCheckoutRequest, BillingOverview, CheckoutResponse, PlanInfo
from binevo.payments.invoice_checkout import create_invoice_checkout
from binevo.server.services.deps import TenantContext, client_ip, require_tenant

logger = get_logger(__name__)

router = APIRouter(tags=["billing"])


def plan_catalogue() -> list[PlanInfo]:
    return [
        PlanInfo(
            plan=plan,
            monthly_price=limits["monthly_price"],
            max_donors=limits["max_donors"],
            max_active_automations=limits["max_active_automations"],
            features=sorted(PLAN_FEATURES[plan]),
            fee_description=get_fee_description(plan),
        )
        for plan, limits in PLAN_LIMITS.items()
    ]


@router.get("", response_model=BillingOverview, summary="Billing Overview")
async def overview(
    ctx: TenantContext = Depends(require_tenant("settings:read")),
    session: AsyncSession = Depends(get_session),
) -> BillingOverview:
    invoices = (
        await session.execute(
            select(Invoice).where(Invoice.ngo_id == ctx.ngo_id).order_by(Invoice.issue_date.desc())
        )
    ).scalars().all()
    plan = effective_plan(ctx.ngo)
    return BillingOverview(
        plan=plan,
        subscription_plan=ctx.ngo.subscription_plan,
        subscription_status=ctx.ngo.subscription_status,
        subscription_expires_at=ctx.ngo.subscription_expires_at,
        auto_renew=ctx.ngo.auto_renew,
        fee_description=get_fee_description(plan),
        invoices=[InvoiceRead.model_validate(i) for i in invoices],
        plans=plan_catalogue(),
    )


@router.post(
    "/checkout",
    response_model=CheckoutResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Pay a Plan by Card",
    responses={400: {"description": "Stripe not configured or invalid plan"}},
)
async def checkout(
    payload: BillingCheckoutRequest,
    request: Request,
    ctx: TenantContext = Depends(require_tenant("settings:write")),
    session: AsyncSession = Depends(get_session),
) -> CheckoutResponse:
    """
    Issue a subscription invoice for ``months`` of ``plan`` and open a
    Stripe Checkout session for it on the platform account.

    The plan is activated when Stripe reports the payment through the
    platform webhook, not here.
    """
    invoice = await create_subscription_invoice(
        session, ctx.ngo, payload.plan, months=payload.months, send_email=False
    )
    session_data = await create_invoice_checkout(session, invoice)
    await record_audit(
        session,
        action="SUBSCRIPTION_CHECKOUT_STARTED",
        entity_type="Invoice",
        entity_id=invoice.id,
        ngo_id=ctx.ngo_id,
        user_id=ctx.user_id,
        details={"plan": payload.plan, "months": payload.months, "invoice_number": invoice.invoice_number},
        ip_address=client_ip(request),
    )
    return CheckoutResponse(
        invoice_id=invoice.id,
        invoice_number=invoice.invoice_number,
        checkout_url=session_data.get("url"),
        checkout_session_id=session_data.get("id"),
    )


@router.post("/invoices/{invoice_id}/pay", response_model=CheckoutResponse, summary="Pay an Invoice by Card")
async def pay_invoice(
    invoice_id: str,
    ctx: TenantContext = Depends(require_tenant("settings:write")),
    session: AsyncSession = Depends(get_session),
) -> CheckoutResponse:
    invoice = await TenantRepository(session, Invoice).get(ctx.ngo_id, invoice_id)
    if invoice is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Invoice not found")
    session_data = await create_invoice_checkout(session, invoice)
    return CheckoutResponse(
        invoice_id=invoice.id,
        invoice_number=invoice.invoice_number,
        checkout_url=session_data.get("url"),
        checkout_session_id=session_data.get("id"),
    )
