"""
In-app Notification Endpoints.
"""

from __future__ import annotations

from fastapi import APIRouter, Depends, Query
from sqlalchemy import func, update
from sqlalchemy.ext.asyncio import AsyncSession
from sqlmodel import select

from binevo.core.database import get_session
from binevo.core.database.entities import Notification
from binevo.core.database.repositories import paginate, pagination_meta
from binevo.core.models.io.common import MessageResponse, Page
from binevo.core.models.io.notifications import MarkReadRequest, NotificationRead
from binevo.server.services.deps import Tenant, TenantContext

router = APIRouter(tags=["notifications"])


def _visible_to(ctx: TenantContext):
    return (Notification.ngo_id == ctx.ngo_id) & (
        (Notification.user_id.is_(None)) | (Notification.user_id == ctx.user_id)
    )


@router.get("", response_model=Page[NotificationRead], summary="List Notifications")
async def list_notifications(
    ctx: Tenant,
    page: int = Query(1, ge=1),
    limit: int = Query(20, ge=1, le=100),
    unread: bool = Query(False, description="Only unread notifications"),
    session: AsyncSession = Depends(get_session),
) -> Page[NotificationRead]:
    stmt = select(Notification).where(_visible_to(ctx))
    if unread:
        stmt = stmt.where(Notification.is_read == False)  # noqa: E712
    rows, total = await paginate(session, stmt.order_by(Notification.created_at.desc()), page, limit)
    return Page[NotificationRead](
        items=[NotificationRead.model_validate(n) for n in rows],
        pagination=pagination_meta(page, limit, total),
    )


@router.get("/unread-count", summary="Unread Notification Count")
async def unread_count(ctx: Tenant, session: AsyncSession = Depends(get_session)) -> dict:
    unread = Notification.is_read == False  # noqa: E712
    stmt = select(func.count()).select_from(Notification).where(_visible_to(ctx) & unread)
    return {"unread": (await session.execute(stmt)).scalar_one()}


@router.post("/read", response_model=MessageResponse, summary="Mark Notifications Read")
async def mark_read(
    payload: MarkReadRequest,
    ctx: Tenant,
    session: AsyncSession = Depends(get_session),
) -> MessageResponse:
    stmt = update(Notification).where(_visible_to(ctx) & (Notification.is_read == False))  # noqa: E712
    if not payload.all:
        if not payload.ids:
            return MessageResponse(message="0 notifications marked as read")
        stmt = stmt.where(Notification.id.in_(payload.ids))
    result = await session.execute(stmt.values(is_read=True))
    await session.commit()
    return MessageResponse(message=f"{result.rowcount} notifications marked as read")
