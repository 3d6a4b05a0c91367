"""
Donor CRM Endpoints.

List, search and manage an NGO's donors, and move them in and out of the
system as CSV.
"""

from __future__ import annotations

from datetime import datetime
from typing import Optional

from fastapi import APIRouter, Depends, File, HTTPException, Query, Request, UploadFile, status
from fastapi.responses import Response
from sqlalchemy import or_
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession
from sqlmodel import select

from binevo.billing.plans import get_donor_limit, is_over_donor_limit
from binevo.core.audit import record_audit
from binevo.core.database import get_session
from binevo.core.database.base import utc_now
from binevo.core.database.entities import ConsentRecord, Donation, Donor, DonorTagAssignment, Tag
from binevo.core.database.repositories import TenantRepository, paginate, pagination_meta
from binevo.core.errors import PlanLimitReachedError
from binevo.core.logging_config import get_logger
from binevo.core.models.domain import DonorStatus, DonorType
from binevo.core.models.io.common import Page
from binevo.core.models.io.donors import ConsentRead, DonorCreate, DonorDetail, DonorRead, DonorUpdate, ImportResult
from binevo.crm.donor_io import active_donor_count, export_donors_csv, import_donors_csv
from binevo.crm.tags import assign_tags, replace_tags, tag_names_by_donor
from binevo.server.core.config import settings
from binevo.server.core.security import encrypt_pii
from binevo.server.services.deps import TenantContext, client_ip, require_tenant

logger = get_logger(__name__)

router = APIRouter(tags=["donors"])

SORTABLE_COLUMNS = {
    "created_at": Donor.created_at,
    "name": Donor.name,
    "email": Donor.email,
    "total_donated": Donor.total_donated,
    "donation_count": Donor.donation_count,
    "last_donation_at": Donor.last_donation_at,
}


def donor_filters(
    ngo_id: str,
    *,
    search: Optional[str] = None,
    status_filter: Optional[str] = None,
    channel: Optional[str] = None,
    tags: Optional[str] = None,
    date_from: Optional[datetime] = None,
    date_to: Optional[datetime] = None,
    min_amount: Optional[float] = None,
    max_amount: Optional[float] = None,
    donor_type: Optional[str] = None,
):
    stmt = select(Donor).where(Donor.ngo_id == ngo_id)
    if status_filter:
        stmt = stmt.where(Donor.status == status_filter.upper())
    else:
        stmt = stmt.where(Donor.status != DonorStatus.DELETED.value)
    if search:
        pattern = f"%{search.strip()}%"
        conditions = [Donor.name.ilike(pattern), Donor.email.ilike(pattern), Donor.phone.ilike(pattern)]
        if donor_type and donor_type.upper() == DonorType.COMPANY.value:
            conditions += [Donor.company_name.ilike(pattern), Donor.company_cui.ilike(pattern)]
        stmt = stmt.where(or_(*conditions))
    if channel:
        stmt = stmt.where(Donor.preferred_channel == channel.upper())
    if donor_type:
        stmt = stmt.where(Donor.donor_type == donor_type.upper())
    tag_names = [t.strip() for t in (tags or "").split(",") if t.strip()]
    if tag_names:
        tagged = (
            select(DonorTagAssignment.donor_id)
            .join(Tag, Tag.id == DonorTagAssignment.tag_id)
            .where((Tag.ngo_id == ngo_id) & (Tag.name.in_(tag_names)))
        )
        stmt = stmt.where(Donor.id.in_(tagged))
    if date_from:
        stmt = stmt.where(Donor.created_at >= date_from)
    if date_to:
        stmt = stmt.where(Donor.created_at <= date_to)
    if min_amount is not None:
        stmt = stmt.where(Donor.total_donated >= min_amount)
    if max_amount is not None:
        stmt = stmt.where(Donor.total_donated <= max_amount)
    return stmt


def to_read(donor: Donor, tags: list[str]) -> DonorRead:
    item = DonorRead.model_validate(donor)
    item.tags = tags
    return item


async def get_donor_or_404(session: AsyncSession, ngo_id: str, donor_id: str) -> Donor:
    donor = await TenantRepository(session, Donor).get(ngo_id, donor_id)
    if donor is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Donor not found")
    return donor


@router.get(
    "",
    response_model=Page[DonorRead],
    summary="List Donors",
    description="Paginated donor list with search, filters and sorting.",
)
async def list_donors(
    page: int = Query(1, ge=1),
    limit: int = Query(20, ge=1, le=100),
    search: Optional[str] = None,
    status_filter: Optional[str] = Query(None, alias="status"),
    channel: Optional[str] = None,
    tags: Optional[str] = Query(None, description="Comma-separated tag names"),
    date_from: Optional[datetime] = None,
    date_to: Optional[datetime] = None,
    min_amount: Optional[float] = None,
    max_amount: Optional[float] = None,
    donor_type: Optional[str] = None,
    sort: str = Query("created_at"),
    order: str = Query("desc", pattern="^(asc|desc)$"),
    ctx: TenantContext = Depends(require_tenant("donors:read", feature="donors_view")),
    session: AsyncSession = Depends(get_session),
) -> Page[DonorRead]:
    """
    List donors of the caller's NGO.

    - **search**: matches name, email and phone (and company name/CUI for company donors).
    - **tags**: donors carrying any of the given tags.
    - **sort**: one of created_at, name, email, total_donated, donation_count, last_donation_at.
    """
    stmt = donor_filters(
        ctx.ngo_id,
        search=search,
        status_filter=status_filter,
        channel=channel,
        tags=tags,
        date_from=date_from,
        date_to=date_to,
        min_amount=min_amount,
        max_amount=max_amount,
        donor_type=donor_type,
    )
    column = SORTABLE_COLUMNS.get(sort, Donor.created_at)
    stmt = stmt.order_by(column.asc() if order == "asc" else column.desc())
    donors, total = await paginate(session, stmt, page, limit)
    tags_by_donor = await tag_names_by_donor(session, [d.id for d in donors])
    return Page[DonorRead](
        items=[to_read(d, tags_by_donor.get(d.id, [])) for d in donors],
        pagination=pagination_meta(page, limit, total),
    )


@router.post(
    "",
    response_model=DonorRead,
    status_code=status.HTTP_201_CREATED,
    summary="Create Donor",
    responses={
        403: {"description": "Insufficient permissions or plan donor limit reached"},
        409: {"description": "A donor with this email already exists"},
    },
)
async def create_donor(
    payload: DonorCreate,
    request: Request,
    ctx: TenantContext = Depends(require_tenant("donors:write", feature="donors_manage")),
    session: AsyncSession = Depends(get_session),
) -> DonorRead:
    if is_over_donor_limit(ctx.plan, await active_donor_count(session, ctx.ngo_id)):
        raise PlanLimitReachedError(
            "Donor limit reached for your plan",
            code="DONOR_LIMIT_REACHED",
            extra={"limit": get_donor_limit(ctx.plan)},
        )

    email = payload.email.lower() if payload.email else None
    if email:
        duplicate = await session.execute(select(Donor.id).where((Donor.ngo_id == ctx.ngo_id) & (Donor.email == email)))
        if duplicate.first() is not None:
            raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail="A donor with this email already exists")

    donor = Donor(
        ngo_id=ctx.ngo_id,
        email=email,
        email_encrypted=encrypt_pii(email),
        phone=payload.phone,
        phone_encrypted=encrypt_pii(payload.phone),
        name=payload.name,
        notes=payload.notes,
        preferred_channel=payload.preferred_channel.value,
        donor_type=payload.donor_type.value,
        company_name=payload.company_name,
        company_cui=payload.company_cui,
        email_consent=payload.email_consent,
        sms_consent=payload.sms_consent,
        privacy_consent=payload.privacy_consent,
        source="manual",
    )
    session.add(donor)
    await session.flush()
    granted_consents = {"EMAIL": payload.email_consent, "SMS": payload.sms_consent, "PRIVACY": payload.privacy_consent}
    for consent_type, granted in granted_consents.items():
        if granted:
            session.add(
                ConsentRecord(
                    donor_id=donor.id, type=consent_type, granted=True, source="manual", ip_address=client_ip(request)
                )
            )
    tags = await assign_tags(session, ctx.ngo_id, donor.id, payload.tags)
    await record_audit(
        session,
        action="DONOR_CREATED",
        entity_type="Donor",
        entity_id=donor.id,
        ngo_id=ctx.ngo_id,
        user_id=ctx.user_id,
        ip_address=client_ip(request),
        commit=False,
    )
    try:
        await session.commit()
    except IntegrityError as e:
        await session.rollback()
        raise HTTPException(
            status_code=status.HTTP_409_CONFLICT, detail="A donor with this email already exists"
        ) from e
    return to_read(donor, sorted(t.name for t in tags))


@router.get(
    "/export",
    summary="Export Donors (CSV)",
    response_class=Response,
    responses={200: {"content": {"text/csv": {}}}},
)
async def export_donors(
    search: Optional[str] = None,
    status_filter: Optional[str] = Query(None, alias="status"),
    tags: Optional[str] = None,
    ctx: TenantContext = Depends(require_tenant("donors:read", feature="export_csv")),
    session: AsyncSession = Depends(get_session),
) -> Response:
    stmt = donor_filters(ctx.ngo_id, search=search, status_filter=status_filter, tags=tags).order_by(
        Donor.created_at
    )
    donors = list((await session.execute(stmt)).scalars().all())
    content = export_donors_csv(donors, await tag_names_by_donor(session, [d.id for d in donors]))
    filename = f"donatori-{ctx.ngo.slug}-{utc_now():%Y%m%d}.csv"
    return Response(
        content=content,
        media_type="text/csv; charset=utf-8",
        headers={"Content-Disposition": f'attachment; filename="{filename}"'},
    )


@router.post(
    "/import",
    response_model=ImportResult,
    summary="Import Donors (CSV)",
    description="Upload a CSV file. Rows are deduplicated by email and the plan donor limit is respected.",
)
async def import_donors(
    request: Request,
    file: UploadFile = File(...),
    ctx: TenantContext = Depends(require_tenant("donors:write", feature="donors_manage")),
    session: AsyncSession = Depends(get_session),
) -> ImportResult:
    raw = await file.read()
    if len(raw) > settings.max_upload_bytes * 5:
        raise HTTPException(status_code=status.HTTP_413_REQUEST_ENTITY_TOO_LARGE, detail="File too large")
    try:
        content = raw.decode("utf-8")
    except UnicodeDecodeError:
        content = raw.decode("latin-1")
    report = await import_donors_csv(session, ctx.ngo_id, ctx.plan, content)
    await record_audit(
        session,
        action="DONORS_IMPORTED",
        entity_type="Donor",
        ngo_id=ctx.ngo_id,
        user_id=ctx.user_id,
        details={"imported": report.imported, "skipped": report.skipped, "filename": file.filename},
        ip_address=client_ip(request),
    )
    return ImportResult(**report.as_dict())


@router.get("/{donor_id}", response_model=DonorDetail, summary="Get Donor")
async def get_donor(
    donor_id: str,
    ctx: TenantContext = Depends(require_tenant("donors:read", feature="donors_view")),
    session: AsyncSession = Depends(get_session),
) -> DonorDetail:
    """Donor profile with tags, the last 10 donations and the consent history."""
    donor = await get_donor_or_404(session, ctx.ngo_id, donor_id)
    donations = (
        await session.execute(
            select(Donation).where(Donation.donor_id == donor.id).order_by(Donation.created_at.desc()).limit(10)
        )
    ).scalars().all()
    consents = (
        await session.execute(
            select(ConsentRecord).where(ConsentRecord.donor_id == donor.id).order_by(ConsentRecord.created_at.desc())
        )
    ).scalars().all()
    detail = DonorDetail.model_validate(donor)
    detail.tags = (await tag_names_by_donor(session, [donor.id]))[donor.id]
    detail.recent_donations = [
        {
            "id": d.id,
            "amount": d.amount,
            "currency": d.currency,
            "status": d.status,
            "source": d.source,
            "created_at": d.created_at.isoformat(),
        }
        for d in donations
    ]
    detail.consents = [ConsentRead.model_validate(c) for c in consents]
    return detail


@router.patch("/{donor_id}", response_model=DonorRead, summary="Update Donor")
async def update_donor(
    donor_id: str,
    payload: DonorUpdate,
    request: Request,
    ctx: TenantContext = Depends(require_tenant("donors:write", feature="donors_manage")),
    session: AsyncSession = Depends(get_session),
) -> DonorRead:
    donor = await get_donor_or_404(session, ctx.ngo_id, donor_id)
    if donor.is_anonymized:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Anonymised donors cannot be edited")

    changes = payload.model_dump(exclude_unset=True, exclude={"tags"})
    if "email" in changes and changes["email"]:
        changes["email"] = changes["email"].lower()
        clash = await session.execute(
            select(Donor.id).where(
                (Donor.ngo_id == ctx.ngo_id) & (Donor.email == changes["email"]) & (Donor.id != donor.id)
            )
        )
        if clash.first() is not None:
            raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail="A donor with this email already exists")

    for consent_type, field in (("EMAIL", "email_consent"), ("SMS", "sms_consent"), ("PRIVACY", "privacy_consent")):
        if field in changes and changes[field] != getattr(donor, field):
            session.add(
                ConsentRecord(
                    donor_id=donor.id,
                    type=consent_type,
                    granted=bool(changes[field]),
                    source="manual",
                    ip_address=client_ip(request),
                )
            )

    for key, value in changes.items():
        setattr(donor, key, value.value if hasattr(value, "value") else value)
    if "email" in changes:
        donor.email_encrypted = encrypt_pii(donor.email)
    if "phone" in changes:
        donor.phone_encrypted = encrypt_pii(donor.phone)
    donor.updated_at = utc_now()
    session.add(donor)

    if payload.tags is not None:
        await replace_tags(session, ctx.ngo_id, donor.id, payload.tags)
    await record_audit(
        session,
        action="DONOR_UPDATED",
        entity_type="Donor",
        entity_id=donor.id,
        ngo_id=ctx.ngo_id,
        user_id=ctx.user_id,
        details={"fields": sorted(changes)},
        ip_address=client_ip(request),
        commit=False,
    )
    await session.commit()
    return to_read(donor, (await tag_names_by_donor(session, [donor.id]))[donor.id])


@router.delete("/{donor_id}", status_code=status.HTTP_204_NO_CONTENT, summary="Delete Donor")
async def delete_donor(
    donor_id: str,
    request: Request,
    ctx: TenantContext = Depends(require_tenant("donors:delete", feature="donors_manage")),
    session: AsyncSession = Depends(get_session),
) -> None:
    """
    Soft-delete a donor.

    The row is kept (status DELETED) so that its donations still add up;
    use the GDPR anonymise endpoint to erase personal data.
    """
    donor = await get_donor_or_404(session, ctx.ngo_id, donor_id)
    donor.status = DonorStatus.DELETED.value
    donor.email_consent = False
    donor.sms_consent = False
    donor.updated_at = utc_now()
    session.add(donor)
    await record_audit(
        session,
        action="DONOR_DELETED",
        entity_type="Donor",
        entity_id=donor.id,
        ngo_id=ctx.ngo_id,
        user_id=ctx.user_id,
        ip_address=client_ip(request),
        commit=False,
    )
    await session.commit()
