"""
Formular 230 Endpoints.

Staff type in paper forms collected from donors; the mini-site submission
lives with the other public routes.
"""

from __future__ import annotations

from typing import List, Optional

from fastapi import APIRouter, Depends, Query, Request, status
from sqlalchemy.ext.asyncio import AsyncSession
from sqlmodel import select

from binevo.core.audit import record_audit
from binevo.core.database import get_session
from binevo.core.database.entities import Formular230
from binevo.core.models.io.tax_forms import Formular230DashboardCreate, Formular230Read
from binevo.crm.tax_forms import create_formular_230
from binevo.server.services.deps import TenantContext, client_ip, require_tenant

router = APIRouter(tags=["formular-230"])


@router.get("", response_model=List[Formular230Read], summary="List Formular 230 Submissions")
async def list_forms(
    tax_year: Optional[int] = Query(None, ge=2000, le=2100),
    ctx: TenantContext = Depends(require_tenant("donors:read")),
    session: AsyncSession = Depends(get_session),
) -> List[Formular230Read]:
    stmt = select(Formular230).where(Formular230.ngo_id == ctx.ngo_id)
    if tax_year:
        stmt = stmt.where(Formular230.tax_year == tax_year)
    forms = (await session.execute(stmt.order_by(Formular230.created_at.desc()))).scalars().all()
    return [Formular230Read.model_validate(form) for form in forms]


@router.post(
    "",
    response_model=Formular230Read,
    status_code=status.HTTP_201_CREATED,
    summary="Record a Formular 230",
    responses={400: {"description": "Invalid CNP"}},
)
async def create_form(
    payload: Formular230DashboardCreate,
    request: Request,
    ctx: TenantContext = Depends(require_tenant("donors:write")),
    session: AsyncSession = Depends(get_session),
) -> Formular230Read:
    data = payload.model_dump()
    data["ngo_iban"] = data.get("ngo_iban") or ctx.ngo.iban
    form = await create_formular_230(session, ctx.ngo, data, source="dashboard")
    await record_audit(
        session,
        action="FORMULAR_230_CREATED",
        entity_type="Formular230",
        entity_id=form.id,
        ngo_id=ctx.ngo_id,
        user_id=ctx.user_id,
        details={"tax_year": form.tax_year},
        ip_address=client_ip(request),
    )
    return Formular230Read.model_validate(form)
