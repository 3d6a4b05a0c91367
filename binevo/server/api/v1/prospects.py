"""
LinkedIn Prospecting Endpoints.

The browser extension imports profiles with a per-NGO API token; dashboard
users manage those tokens and work the saved prospect list.
"""

from __future__ import annotations

from typing import List, Optional

from fastapi import APIRouter, Depends, HTTPException, Query, Request, status
from sqlalchemy import or_
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession
from sqlmodel import select

from binevo.core.audit import record_audit
from binevo.core.database import get_session
from binevo.core.database.base import utc_now
from binevo.core.database.entities import ApiToken, LinkedInProspect
from binevo.core.database.repositories import TenantRepository, paginate, pagination_meta
from binevo.core.logging_config import get_logger
from binevo.core.models.io.common import MessageResponse, Page
from binevo.core.models.io.prospects import (
    ApiTokenCreate,
    ApiTokenCreated,
    ApiTokenRead,
    ProspectCreate,
    ProspectImportRequest,
    ProspectImportResult,
    ProspectRead,
    ProspectUpdate,
)
from binevo.crm.prospects import FEATURE, authenticate_api_token, import_prospects, normalize_profile_url
from binevo.server.core.security import generate_api_token, mask_token
from binevo.server.services.deps import TenantContext, bearer_token, client_ip, require_tenant

logger = get_logger(__name__)

router = APIRouter(tags=["prospects"])


def to_token_read(token: ApiToken) -> ApiTokenRead:
    return ApiTokenRead(
        id=token.id,
        name=token.name,
        token_preview=mask_token(token.token),
        is_active=token.is_active,
        last_used_at=token.last_used_at,
        created_at=token.created_at,
    )


async def get_prospect_or_404(session: AsyncSession, ngo_id: str, prospect_id: str) -> LinkedInProspect:
    prospect = await TenantRepository(session, LinkedInProspect).get(ngo_id, prospect_id)
    if prospect is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Prospect not found")
    return prospect


@router.post(
    "/import",
    response_model=ProspectImportResult,
    summary="Import Prospects from the Browser Extension",
    responses={
        400: {"description": "Empty prospect list"},
        401: {"description": "Missing, invalid or revoked API token"},
        403: {"description": "Plan does not include LinkedIn prospecting"},
        429: {"description": "Daily import limit reached"},
    },
)
async def import_from_extension(
    payload: ProspectImportRequest,
    request: Request,
    session: AsyncSession = Depends(get_session),
) -> ProspectImportResult:
    """
    Import profiles captured by the extension.

    Authenticates with ``Authorization: Bearer ngo_...``. Each NGO may
    import a limited number of profiles per UTC day; a batch larger than
    what is left is truncated. Profiles already saved (same normalised URL)
    are counted as duplicates.
    """
    api_token = await authenticate_api_token(session, bearer_token(request))
    result = await import_prospects(session, api_token, [item.model_dump() for item in payload.prospects])
    return ProspectImportResult(**result)


@router.get("/tokens", response_model=List[ApiTokenRead], summary="List Extension Tokens")
async def list_tokens(
    ctx: TenantContext = Depends(require_tenant("prospects:read", feature=FEATURE)),
    session: AsyncSession = Depends(get_session),
) -> List[ApiTokenRead]:
    tokens = await TenantRepository(session, ApiToken).list(ctx.ngo_id, order_by=ApiToken.created_at.desc())
    return [to_token_read(t) for t in tokens]


@router.post(
    "/tokens",
    response_model=ApiTokenCreated,
    status_code=status.HTTP_201_CREATED,
    summary="Create Extension Token",
    description="The full token is returned only in this response; later listings show a masked preview.",
)
async def create_token(
    payload: ApiTokenCreate,
    request: Request,
    ctx: TenantContext = Depends(require_tenant("prospects:write", feature=FEATURE)),
    session: AsyncSession = Depends(get_session),
) -> ApiTokenCreated:
    token = ApiToken(ngo_id=ctx.ngo_id, user_id=ctx.user_id, token=generate_api_token(), name=payload.name)
    session.add(token)
    await record_audit(
        session,
        action="API_TOKEN_CREATED",
        entity_type="ApiToken",
        entity_id=token.id,
        ngo_id=ctx.ngo_id,
        user_id=ctx.user_id,
        details={"name": token.name},
        ip_address=client_ip(request),
    )
    return ApiTokenCreated(**to_token_read(token).model_dump(), token=token.token)


@router.delete("/tokens/{token_id}", response_model=MessageResponse, summary="Revoke Extension Token")
async def revoke_token(
    token_id: str,
    request: Request,
    ctx: TenantContext = Depends(require_tenant("prospects:write", feature=FEATURE)),
    session: AsyncSession = Depends(get_session),
) -> MessageResponse:
    token = await TenantRepository(session, ApiToken).get(ctx.ngo_id, token_id)
    if token is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Token not found")
    token.is_active = False
    session.add(token)
    await record_audit(
        session,
        action="API_TOKEN_REVOKED",
        entity_type="ApiToken",
        entity_id=token.id,
        ngo_id=ctx.ngo_id,
        user_id=ctx.user_id,
        ip_address=client_ip(request),
    )
    return MessageResponse(message="Token revoked")


@router.get("", response_model=Page[ProspectRead], summary="List Prospects")
async def list_prospects(
    page: int = Query(1, ge=1),
    limit: int = Query(20, ge=1, le=100),
    search: Optional[str] = None,
    status_filter: Optional[str] = Query(None, alias="status"),
    ctx: TenantContext = Depends(require_tenant("prospects:read", feature=FEATURE)),
    session: AsyncSession = Depends(get_session),
) -> Page[ProspectRead]:
    stmt = select(LinkedInProspect).where(LinkedInProspect.ngo_id == ctx.ngo_id)
    if status_filter:
        stmt = stmt.where(LinkedInProspect.status == status_filter.upper())
    if search:
        pattern = f"%{search.strip()}%"
        stmt = stmt.where(
            or_(
                LinkedInProspect.full_name.ilike(pattern),
                LinkedInProspect.company.ilike(pattern),
                LinkedInProspect.headline.ilike(pattern),
                LinkedInProspect.location.ilike(pattern),
            )
        )
    rows, total = await paginate(session, stmt.order_by(LinkedInProspect.created_at.desc()), page, limit)
    return Page[ProspectRead](
        items=[ProspectRead.model_validate(p) for p in rows],
        pagination=pagination_meta(page, limit, total),
    )


@router.post(
    "",
    response_model=ProspectRead,
    status_code=status.HTTP_201_CREATED,
    summary="Add Prospect",
    responses={409: {"description": "Profile already saved"}},
)
async def create_prospect(
    payload: ProspectCreate,
    ctx: TenantContext = Depends(require_tenant("prospects:write", feature=FEATURE)),
    session: AsyncSession = Depends(get_session),
) -> ProspectRead:
    prospect = LinkedInProspect(
        ngo_id=ctx.ngo_id,
        full_name=payload.full_name,
        profile_url=normalize_profile_url(payload.profile_url),
        headline=payload.headline,
        company=payload.company,
        location=payload.location,
        notes=payload.notes,
        tags=payload.tags,
        import_source="manual",
        imported_by=ctx.user_id,
    )
    session.add(prospect)
    try:
        await session.commit()
    except IntegrityError:
        await session.rollback()
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail="Prospect already exists")
    await session.refresh(prospect)
    return ProspectRead.model_validate(prospect)


@router.get("/{prospect_id}", response_model=ProspectRead, summary="Get Prospect")
async def get_prospect(
    prospect_id: str,
    ctx: TenantContext = Depends(require_tenant("prospects:read", feature=FEATURE)),
    session: AsyncSession = Depends(get_session),
) -> ProspectRead:
    return ProspectRead.model_validate(await get_prospect_or_404(session, ctx.ngo_id, prospect_id))


@router.patch("/{prospect_id}", response_model=ProspectRead, summary="Update Prospect")
async def update_prospect(
    prospect_id: str,
    payload: ProspectUpdate,
    ctx: TenantContext = Depends(require_tenant("prospects:write", feature=FEATURE)),
    session: AsyncSession = Depends(get_session),
) -> ProspectRead:
    prospect = await get_prospect_or_404(session, ctx.ngo_id, prospect_id)
    for key, value in payload.model_dump(exclude_unset=True).items():
        setattr(prospect, key, value)
    prospect.updated_at = utc_now()
    session.add(prospect)
    await session.commit()
    await session.refresh(prospect)
    return ProspectRead.model_validate(prospect)


@router.delete("/{prospect_id}", status_code=status.HTTP_204_NO_CONTENT, summary="Delete Prospect")
async def delete_prospect(
    prospect_id: str,
    ctx: TenantContext = Depends(require_tenant("prospects:write", feature=FEATURE)),
    session: AsyncSession = Depends(get_session),
) -> None:
    if not await TenantRepository(session, LinkedInProspect).delete(ctx.ngo_id, prospect_id):
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Prospect not found")
