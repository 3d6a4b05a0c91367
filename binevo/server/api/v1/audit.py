"""
Audit Log Endpoints.
"""

from __future__ import annotations

from typing import Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession
from sqlmodel import select

from binevo.core.database import get_session
from binevo.core.database.entities import AuditLog
from binevo.core.database.repositories import paginate, pagination_meta
from binevo.core.models.io.analytics import AuditLogRead
from binevo.core.models.io.common import Page
from binevo.server.services.deps import TenantContext, require_tenant

router = APIRouter(tags=["audit"])


@router.get("", response_model=Page[AuditLogRead], summary="List Audit Log")
async def list_audit_logs(
    page: int = Query(1, ge=1),
    limit: int = Query(50, ge=1, le=100),
    action: Optional[str] = None,
    entity_type: Optional[str] = None,
    ctx: TenantContext = Depends(require_tenant("audit:read")),
    session: AsyncSession = Depends(get_session),
) -> Page[AuditLogRead]:
    stmt = select(AuditLog).where(AuditLog.ngo_id == ctx.ngo_id)
    if action:
        stmt = stmt.where(AuditLog.action == action)
    if entity_type:
        stmt = stmt.where(AuditLog.entity_type == entity_type)
    rows, total = await paginate(session, stmt.order_by(AuditLog.created_at.desc()), page, limit)
    return Page[AuditLogRead](
        items=[AuditLogRead.model_validate(r) for r in rows],
        pagination=pagination_meta(page, limit, total),
    )
