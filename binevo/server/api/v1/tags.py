"""
Donor Tag Endpoints.
"""

from __future__ import annotations

from typing import List

from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy import delete, func
from sqlalchemy.ext.asyncio import AsyncSession
from sqlmodel import select

from binevo.core.database import get_session
from binevo.core.database.entities import DonorTagAssignment, Tag
from binevo.core.models.io.donors import TagCreate, TagRead
from binevo.server.services.deps import TenantContext, require_tenant

router = APIRouter(tags=["tags"])


@router.get("", response_model=List[TagRead], summary="List Tags")
async def list_tags(
    ctx: TenantContext = Depends(require_tenant("donors:read", feature="donors_view")),
    session: AsyncSession = Depends(get_session),
) -> List[TagRead]:
    stmt = (
        select(Tag, func.count(DonorTagAssignment.donor_id))
        .outerjoin(DonorTagAssignment, DonorTagAssignment.tag_id == Tag.id)
        .where(Tag.ngo_id == ctx.ngo_id)
        .group_by(Tag.id)
        .order_by(Tag.name)
    )
    rows = (await session.execute(stmt)).all()
    return [TagRead(id=tag.id, name=tag.name, color=tag.color, donor_count=count) for tag, count in rows]


@router.post(
    "",
    response_model=TagRead,
    status_code=status.HTTP_201_CREATED,
    summary="Create Tag",
    responses={409: {"description": "Tag name already used by this NGO"}},
)
async def create_tag(
    payload: TagCreate,
    ctx: TenantContext = Depends(require_tenant("donors:write", feature="donors_manage")),
    session: AsyncSession = Depends(get_session),
) -> TagRead:
    name = payload.name.strip()
    existing = await session.execute(select(Tag.id).where((Tag.ngo_id == ctx.ngo_id) & (Tag.name == name)))
    if existing.first() is not None:
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail="Tag already exists")
    tag = Tag(ngo_id=ctx.ngo_id, name=name, color=payload.color)
    session.add(tag)
    await session.commit()
    return TagRead(id=tag.id, name=tag.name, color=tag.color, donor_count=0)


@router.delete("/{tag_id}", status_code=status.HTTP_204_NO_CONTENT, summary="Delete Tag")
async def delete_tag(
    tag_id: str,
    ctx: TenantContext = Depends(require_tenant("donors:write", feature="donors_manage")),
    session: AsyncSession = Depends(get_session),
) -> None:
    tag = (await session.execute(select(Tag).where((Tag.id == tag_id) & (Tag.ngo_id == ctx.ngo_id)))).scalars().first()
    if tag is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Tag not found")
    await session.execute(delete(DonorTagAssignment).where(DonorTagAssignment.tag_id == tag.id))
    await session.delete(tag)
    await session.commit()
