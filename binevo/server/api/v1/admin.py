"""
Super-admin Back Office Endpoints.

Platform statistics, NGO and user management, subscriptions, platform
settings, platform invoices (including e-Factura) and impersonation.
Every route requires a SUPER_ADMIN session.
"""

from __future__ import annotations

from typing import Any, Dict, Optional

from fastapi import APIRouter, Depends, HTTPException, Query, Request, status
from fastapi.responses import Response
from sqlalchemy import func, or_
from sqlalchemy.ext.asyncio import AsyncSession
from sqlmodel import select

from binevo.billing.donation_fee import get_fee_description
from binevo.billing.efactura import generate_ubl_xml, upload_to_anaf
from binevo.billing.invoice_generator import (
    create_invoice,
    create_subscription_invoice,
    deliver_invoice_email,
    get_platform_settings,
    mark_invoice_paid,
    send_invoice_email,
)
from binevo.billing.plans import PLAN_ORDER, effective_plan
from binevo.billing.subscription_manager import assign_subscription, get_subscription_summary, renew_subscription
from binevo.core.audit import record_audit
from binevo.core.database import get_session
from binevo.core.database.base import utc_now
from binevo.core.database.entities import Donation, Donor, Invoice, Ngo, PlatformSettings, User
from binevo.core.database.repositories import count_rows, paginate, pagination_meta
from binevo.core.logging_config import get_logger
from binevo.core.models.domain import DonationStatus, UserRole
from binevo.core.models.io.admin import (
    AdminStats,
    ImpersonateResponse,
    InvoiceCreate,
    InvoiceEmailSent,
    InvoiceRead,
    MarkPaidRequest,
    NgoAdminDetail,
    NgoAdminListItem,
    NgoAdminUpdate,
    PlatformSettingsRead,
    PlatformSettingsUpdate,
    SubscriptionAssign,
    SubscriptionInvoiceCreate,
    SubscriptionRenew,
    UserAdminUpdate,
    VerifyRequest,
)
from binevo.core.models.io.auth import UserRead
from binevo.core.models.io.common import Page
from binevo.payments.stripe_keys import invalidate_stripe_keys_cache
from binevo.server.core.security import create_access_token
from binevo.server.services.deps import SuperAdmin, client_ip, require_super_admin

logger = get_logger(__name__)

router = APIRouter(tags=["admin"], dependencies=[Depends(require_super_admin)])

IMPERSONATION_TTL_MINUTES = 60
STRIPE_FIELDS = {
    "stripe_enabled",
    "stripe_secret_key",
    "stripe_publishable_key",
    "stripe_webhook_secret",
    "stripe_connect_webhook_secret",
}
SECRET_FIELDS = {
    "stripe_secret_key",
    "stripe_webhook_secret",
    "stripe_connect_webhook_secret",
    "netopia_api_key",
    "sendgrid_api_key",
    "mailgun_api_key",
    "anaf_access_token",
}


async def get_ngo_or_404(session: AsyncSession, ngo_id: str) -> Ngo:
    ngo = await session.get(Ngo, ngo_id)
    if ngo is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="NGO not found")
    return ngo


async def get_invoice_or_404(session: AsyncSession, invoice_id: str) -> Invoice:
    invoice = await session.get(Invoice, invoice_id)
    if invoice is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Invoice not found")
    return invoice


def to_platform_read(platform: PlatformSettings) -> PlatformSettingsRead:
    read = PlatformSettingsRead.model_validate(platform)
    read.stripe_secret_key_set = bool(platform.stripe_secret_key)
    read.stripe_webhook_secret_set = bool(platform.stripe_webhook_secret or platform.stripe_connect_webhook_secret)
    read.netopia_api_key_set = bool(platform.netopia_api_key)
    read.netopia_public_key_set = bool(platform.netopia_public_key)
    read.sendgrid_api_key_set = bool(platform.sendgrid_api_key)
    read.mailgun_api_key_set = bool(platform.mailgun_api_key)
    read.anaf_token_set = bool(platform.anaf_access_token)
    return read


async def ngo_detail(session: AsyncSession, ngo: Ngo) -> NgoAdminDetail:
    detail = NgoAdminDetail.model_validate(ngo)
    detail.fee_description = get_fee_description(effective_plan(ngo))
    detail.user_count = await count_rows(session, select(User).where(User.ngo_id == ngo.id))
    detail.donor_count = await count_rows(session, select(Donor).where(Donor.ngo_id == ngo.id))
    detail.donation_count = await count_rows(session, select(Donation).where(Donation.ngo_id == ngo.id))
    return detail


@router.get("/stats", response_model=AdminStats, summary="Platform Statistics")
async def stats(session: AsyncSession = Depends(get_session)) -> AdminStats:
    plan_rows = (
        await session.execute(select(Ngo.subscription_plan, func.count()).group_by(Ngo.subscription_plan))
    ).all()
    total_raised = (
        await session.execute(
            select(func.coalesce(func.sum(Donation.amount), 0.0)).where(
                Donation.status == DonationStatus.COMPLETED.value
            )
        )
    ).scalar_one()
    by_plan = {plan: 0 for plan in PLAN_ORDER}
    by_plan.update({plan: count for plan, count in plan_rows})
    return AdminStats(
        ngos=await count_rows(session, select(Ngo)),
        active_ngos=await count_rows(session, select(Ngo).where(Ngo.is_active == True)),  # noqa: E712
        users=await count_rows(session, select(User)),
        donors=await count_rows(session, select(Donor)),
        donations=await count_rows(session, select(Donation)),
        total_raised=float(total_raised or 0.0),
        by_plan=by_plan,
    )


# NGOs


@router.get("/ngos", response_model=Page[NgoAdminListItem], summary="List NGOs")
async def list_ngos(
    page: int = Query(1, ge=1),
    limit: int = Query(20, ge=1, le=100),
    search: Optional[str] = None,
    plan: Optional[str] = None,
    is_active: Optional[bool] = None,
    session: AsyncSession = Depends(get_session),
) -> Page[NgoAdminListItem]:
    stmt = select(Ngo)
    if search:
        pattern = f"%{search.strip()}%"
        stmt = stmt.where(or_(Ngo.name.ilike(pattern), Ngo.slug.ilike(pattern), Ngo.email.ilike(pattern)))
    if plan:
        stmt = stmt.where(Ngo.subscription_plan == plan.upper())
    if is_active is not None:
        stmt = stmt.where(Ngo.is_active == is_active)
    rows, total = await paginate(session, stmt.order_by(Ngo.created_at.desc()), page, limit)
    return Page[NgoAdminListItem](
        items=[NgoAdminListItem.model_validate(n) for n in rows],
        pagination=pagination_meta(page, limit, total),
    )


@router.get("/ngos/{ngo_id}", response_model=NgoAdminDetail, summary="NGO Detail")
async def get_ngo(ngo_id: str, session: AsyncSession = Depends(get_session)) -> NgoAdminDetail:
    return await ngo_detail(session, await get_ngo_or_404(session, ngo_id))


@router.patch("/ngos/{ngo_id}", response_model=NgoAdminDetail, summary="Update NGO")
async def update_ngo(
    ngo_id: str,
    payload: NgoAdminUpdate,
    request: Request,
    admin: SuperAdmin,
    session: AsyncSession = Depends(get_session),
) -> NgoAdminDetail:
    """
    Update an NGO's status, notes and donation fee overrides.

    ``clear_fee_overrides`` resets the three fee fields to null so the plan
    defaults apply again; it wins over any fee values sent alongside it.
    """
    ngo = await get_ngo_or_404(session, ngo_id)
    changes = payload.model_dump(exclude_unset=True, exclude={"clear_fee_overrides"})
    for key, value in changes.items():
        setattr(ngo, key, value)
    if payload.clear_fee_overrides:
        ngo.donation_fee_percent = None
        ngo.donation_fee_fixed_amount = None
        ngo.donation_fee_min_amount = None
        changes["clear_fee_overrides"] = True
    ngo.updated_at = utc_now()
    session.add(ngo)
    await record_audit(
        session,
        action="NGO_UPDATED",
        entity_type="Ngo",
        entity_id=ngo.id,
        ngo_id=ngo.id,
        user_id=admin.id,
        details=changes,
        ip_address=client_ip(request),
        commit=False,
    )
    await session.commit()
    return await ngo_detail(session, ngo)


@router.post("/ngos/{ngo_id}/verify", response_model=NgoAdminDetail, summary="Set Verification Badge")
async def verify_ngo(
    ngo_id: str,
    payload: VerifyRequest,
    request: Request,
    admin: SuperAdmin,
    session: AsyncSession = Depends(get_session),
) -> NgoAdminDetail:
    ngo = await get_ngo_or_404(session, ngo_id)
    ngo.is_verified = payload.is_verified
    ngo.updated_at = utc_now()
    session.add(ngo)
    await record_audit(
        session,
        action="NGO_VERIFIED" if payload.is_verified else "NGO_UNVERIFIED",
        entity_type="Ngo",
        entity_id=ngo.id,
        ngo_id=ngo.id,
        user_id=admin.id,
        ip_address=client_ip(request),
        commit=False,
    )
    await session.commit()
    return await ngo_detail(session, ngo)


@router.post("/ngos/{ngo_id}/subscription", response_model=NgoAdminDetail, summary="Assign Subscription")
async def assign_ngo_subscription(
    ngo_id: str,
    payload: SubscriptionAssign,
    admin: SuperAdmin,
    session: AsyncSession = Depends(get_session),
) -> NgoAdminDetail:
    ngo = await assign_subscription(
        session,
        ngo_id,
        payload.plan.value,
        duration_months=payload.duration_months,
        assigned_by=admin.id,
        notes=payload.notes,
        send_email=payload.send_email,
    )
    return await ngo_detail(session, ngo)


@router.post("/ngos/{ngo_id}/subscription/renew", response_model=NgoAdminDetail, summary="Renew Subscription")
async def renew_ngo_subscription(
    ngo_id: str,
    payload: SubscriptionRenew,
    admin: SuperAdmin,
    session: AsyncSession = Depends(get_session),
) -> NgoAdminDetail:
    ngo = await renew_subscription(session, ngo_id, payload.months, renewed_by=admin.id)
    return await ngo_detail(session, ngo)


@router.get("/subscriptions/summary", response_model=Dict[str, Any], summary="Subscription Summary")
async def subscription_summary(session: AsyncSession = Depends(get_session)) -> Dict[str, Any]:
    return await get_subscription_summary(session)


@router.post(
    "/ngos/{ngo_id}/impersonate",
    response_model=ImpersonateResponse,
    summary="Impersonate NGO Administrator",
    responses={404: {"description": "NGO or active administrator not found"}},
)
async def impersonate(
    ngo_id: str,
    request: Request,
    admin: SuperAdmin,
    session: AsyncSession = Depends(get_session),
) -> ImpersonateResponse:
    """
    Issue a short-lived session token for the NGO's first active
    administrator. The token carries an ``impersonated_by`` claim with the
    super admin's id, and every impersonation is audited.
    """
    ngo = await get_ngo_or_404(session, ngo_id)
    target = (
        await session.execute(
            select(User)
            .where(
                (User.ngo_id == ngo.id)
                & (User.role == UserRole.NGO_ADMIN.value)
                & (User.is_active == True)  # noqa: E712
            )
            .order_by(User.created_at)
        )
    ).scalars().first()
    if target is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="No active administrator for this NGO")

    token = create_access_token(
        target.id,
        role=target.role,
        ngo_id=ngo.id,
        plan=effective_plan(ngo, target.role),
        expires_minutes=IMPERSONATION_TTL_MINUTES,
        extra_claims={"impersonated_by": admin.id},
    )
    await record_audit(
        session,
        action="USER_IMPERSONATED",
        entity_type="User",
        entity_id=target.id,
        ngo_id=ngo.id,
        user_id=admin.id,
        details={"target_email": target.email},
        ip_address=client_ip(request),
    )
    logger.warning(f"Super admin {admin.id} impersonating user {target.id} of NGO {ngo.id}")
    return ImpersonateResponse(
        token=token, user_id=target.id, ngo_id=ngo.id, expires_in_minutes=IMPERSONATION_TTL_MINUTES
    )


# Users


@router.get("/users", response_model=Page[UserRead], summary="List Users")
async def list_users(
    page: int = Query(1, ge=1),
    limit: int = Query(20, ge=1, le=100),
    search: Optional[str] = None,
    role: Optional[str] = None,
    ngo_id: Optional[str] = None,
    session: AsyncSession = Depends(get_session),
) -> Page[UserRead]:
    stmt = select(User)
    if search:
        pattern = f"%{search.strip()}%"
        stmt = stmt.where(or_(User.email.ilike(pattern), User.name.ilike(pattern)))
    if role:
        stmt = stmt.where(User.role == role.upper())
    if ngo_id:
        stmt = stmt.where(User.ngo_id == ngo_id)
    rows, total = await paginate(session, stmt.order_by(User.created_at.desc()), page, limit)
    return Page[UserRead](
        items=[UserRead.model_validate(u) for u in rows], pagination=pagination_meta(page, limit, total)
    )


@router.patch("/users/{user_id}", response_model=UserRead, summary="Update User")
async def update_user(
    user_id: str,
    payload: UserAdminUpdate,
    request: Request,
    admin: SuperAdmin,
    session: AsyncSession = Depends(get_session),
) -> UserRead:
    user = await session.get(User, user_id)
    if user is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="User not found")
    if user.id == admin.id and (payload.is_active is False or (payload.role and payload.role != UserRole.SUPER_ADMIN)):
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="You cannot demote or disable yourself")
    changes = payload.model_dump(exclude_unset=True)
    if changes.get("ngo_id"):
        await get_ngo_or_404(session, changes["ngo_id"])
    for key, value in changes.items():
        setattr(user, key, value.value if hasattr(value, "value") else value)
    user.updated_at = utc_now()
    session.add(user)
    await record_audit(
        session,
        action="USER_UPDATED",
        entity_type="User",
        entity_id=user.id,
        ngo_id=user.ngo_id,
        user_id=admin.id,
        details={k: (v.value if hasattr(v, "value") else v) for k, v in changes.items()},
        ip_address=client_ip(request),
        commit=False,
    )
    await session.commit()
    return UserRead.model_validate(user)


# Platform settings


@router.get("/settings", response_model=PlatformSettingsRead, summary="Platform Settings")
async def get_settings(session: AsyncSession = Depends(get_session)) -> PlatformSettingsRead:
    platform = await get_platform_settings(session)
    await session.commit()
    return to_platform_read(platform)


@router.patch("/settings", response_model=PlatformSettingsRead, summary="Update Platform Settings")
async def update_settings(
    payload: PlatformSettingsUpdate,
    request: Request,
    admin: SuperAdmin,
    session: AsyncSession = Depends(get_session),
) -> PlatformSettingsRead:
    """
    Update platform settings. Secret fields are write-only: an empty string
    clears a secret, omitting it keeps the stored value. Changing any Stripe
    field drops the cached Stripe keys.
    """
    platform = await get_platform_settings(session)
    changes = payload.model_dump(exclude_unset=True)
    for key, value in changes.items():
        if key in SECRET_FIELDS and value == "":
            value = None
        setattr(platform, key, value)
    platform.updated_at = utc_now()
    session.add(platform)
    await record_audit(
        session,
        action="PLATFORM_SETTINGS_UPDATED",
        entity_type="PlatformSettings",
        entity_id=platform.id,
        user_id=admin.id,
        details={"fields": sorted(changes)},
        ip_address=client_ip(request),
        commit=False,
    )
    await session.commit()
    if STRIPE_FIELDS & changes.keys():
        invalidate_stripe_keys_cache()
    return to_platform_read(platform)


# Invoices


@router.get("/invoices", response_model=Page[InvoiceRead], summary="List Invoices")
async def list_invoices(
    page: int = Query(1, ge=1),
    limit: int = Query(20, ge=1, le=100),
    ngo_id: Optional[str] = None,
    status_filter: Optional[str] = Query(None, alias="status"),
    session: AsyncSession = Depends(get_session),
) -> Page[InvoiceRead]:
    stmt = select(Invoice)
    if ngo_id:
        stmt = stmt.where(Invoice.ngo_id == ngo_id)
    if status_filter:
        stmt = stmt.where(Invoice.status == status_filter.upper())
    rows, total = await paginate(session, stmt.order_by(Invoice.issue_date.desc()), page, limit)
    return Page[InvoiceRead](
        items=[InvoiceRead.model_validate(i) for i in rows],
        pagination=pagination_meta(page, limit, total),
    )


@router.get("/invoices/{invoice_id}", response_model=InvoiceRead, summary="Invoice Detail")
async def get_invoice(invoice_id: str, session: AsyncSession = Depends(get_session)) -> InvoiceRead:
    return InvoiceRead.model_validate(await get_invoice_or_404(session, invoice_id))


@router.post("/invoices", response_model=InvoiceRead, status_code=status.HTTP_201_CREATED, summary="Create Invoice")
async def create_manual_invoice(
    payload: InvoiceCreate,
    admin: SuperAdmin,
    session: AsyncSession = Depends(get_session),
) -> InvoiceRead:
    ngo = await get_ngo_or_404(session, payload.ngo_id)
    invoice = await create_invoice(
        session, ngo, items=[item.model_dump() for item in payload.items], notes=payload.notes
    )
    await record_audit(
        session,
        action="INVOICE_CREATED",
        entity_type="Invoice",
        entity_id=invoice.id,
        ngo_id=ngo.id,
        user_id=admin.id,
        details={"invoice_number": invoice.invoice_number, "total": invoice.total_amount},
    )
    if payload.send_email:
        await send_invoice_email(session, invoice, ngo)
    return InvoiceRead.model_validate(invoice)


@router.post(
    "/ngos/{ngo_id}/invoices/subscription",
    response_model=InvoiceRead,
    status_code=status.HTTP_201_CREATED,
    summary="Create Subscription Invoice",
)
async def create_ngo_subscription_invoice(
    ngo_id: str,
    payload: SubscriptionInvoiceCreate,
    session: AsyncSession = Depends(get_session),
) -> InvoiceRead:
    ngo = await get_ngo_or_404(session, ngo_id)
    invoice = await create_subscription_invoice(session, ngo, payload.plan.value, months=payload.months)
    return InvoiceRead.model_validate(invoice)


@router.post("/invoices/{invoice_id}/mark-paid", response_model=InvoiceRead, summary="Mark Invoice Paid")
async def mark_paid(
    invoice_id: str,
    payload: MarkPaidRequest,
    admin: SuperAdmin,
    session: AsyncSession = Depends(get_session),
) -> InvoiceRead:
    invoice = await get_invoice_or_404(session, invoice_id)
    await mark_invoice_paid(session, invoice, payment_method=payload.payment_method, marked_by=admin.id)
    return InvoiceRead.model_validate(invoice)


@router.post(
    "/invoices/{invoice_id}/send-email",
    response_model=InvoiceEmailSent,
    summary="Email Invoice",
    responses={400: {"description": "No recipient address"}, 502: {"description": "The email provider failed"}},
)
async def email_invoice(
    invoice_id: str,
    admin: SuperAdmin,
    session: AsyncSession = Depends(get_session),
) -> InvoiceEmailSent:
    invoice = await get_invoice_or_404(session, invoice_id)
    ngo = await get_ngo_or_404(session, invoice.ngo_id)
    recipient = await deliver_invoice_email(session, invoice, ngo)
    await record_audit(
        session,
        action="INVOICE_EMAILED",
        entity_type="Invoice",
        entity_id=invoice.id,
        ngo_id=ngo.id,
        user_id=admin.id,
        details={"invoice_number": invoice.invoice_number, "sent_to": recipient},
    )
    return InvoiceEmailSent(
        message=f"Factura {invoice.invoice_number} a fost trimisa la {recipient}",
        sent_to=recipient,
        status=invoice.status,
    )


@router.get("/invoices/{invoice_id}/efactura.xml", summary="e-Factura UBL Export")
async def export_ubl(invoice_id: str, session: AsyncSession = Depends(get_session)) -> Response:
    invoice = await get_invoice_or_404(session, invoice_id)
    return Response(
        content=generate_ubl_xml(invoice),
        media_type="application/xml",
        headers={"Content-Disposition": f'attachment; filename="{invoice.invoice_number}.xml"'},
    )


@router.post("/invoices/{invoice_id}/efactura/upload", response_model=InvoiceRead, summary="Upload to ANAF SPV")
async def upload_efactura(
    invoice_id: str,
    admin: SuperAdmin,
    session: AsyncSession = Depends(get_session),
) -> InvoiceRead:
    invoice = await get_invoice_or_404(session, invoice_id)
    platform = await get_platform_settings(session)
    upload_index = await upload_to_anaf(invoice, platform)
    invoice.efactura_status = "uploaded"
    invoice.efactura_upload_id = upload_index
    invoice.updated_at = utc_now()
    session.add(invoice)
    await record_audit(
        session,
        action="EFACTURA_UPLOADED",
        entity_type="Invoice",
        entity_id=invoice.id,
        ngo_id=invoice.ngo_id,
        user_id=admin.id,
        details={"upload_index": upload_index},
        commit=False,
    )
    await session.commit()
    return InvoiceRead.model_validate(invoice)

