"""
Tag helpers shared by the donor routes, CSV import and automations.
"""

from __future__ import annotations

from typing import Dict, Iterable, List

from sqlalchemy import delete
from sqlalchemy.ext.asyncio import AsyncSession
from sqlmodel import select

from binevo.core.database.entities import DonorTagAssignment, Tag


async def get_or_create_tag(session: AsyncSession, ngo_id: str, name: str) -> Tag:
    name = name.strip()
    stmt = select(Tag).where((Tag.ngo_id == ngo_id) & (Tag.name == name))
    tag = (await session.execute(stmt)).scalars().first()
    if tag is None:
        tag = Tag(ngo_id=ngo_id, name=name)
        session.add(tag)
        await session.flush()
    return tag


async def assign_tags(session: AsyncSession, ngo_id: str, donor_id: str, names: Iterable[str]) -> List[Tag]:
    """Attach tags by name, creating missing ones. Does not commit."""
    tags = []
    for name in {n.strip() for n in names if n and n.strip()}:
        tag = await get_or_create_tag(session, ngo_id, name)
        existing = await session.get(DonorTagAssignment, (donor_id, tag.id))
        if existing is None:
            session.add(DonorTagAssignment(donor_id=donor_id, tag_id=tag.id))
        tags.append(tag)
    return tags


async def remove_tag(session: AsyncSession, ngo_id: str, donor_id: str, name: str) -> bool:
    stmt = select(Tag).where((Tag.ngo_id == ngo_id) & (Tag.name == name.strip()))
    tag = (await session.execute(stmt)).scalars().first()
    if tag is None:
        return False
    result = await session.execute(
        delete(DonorTagAssignment).where(
            (DonorTagAssignment.donor_id == donor_id) & (DonorTagAssignment.tag_id == tag.id)
        )
    )
    return bool(result.rowcount)


async def replace_tags(session: AsyncSession, ngo_id: str, donor_id: str, names: Iterable[str]) -> List[Tag]:
    await session.execute(delete(DonorTagAssignment).where(DonorTagAssignment.donor_id == donor_id))
    return await assign_tags(session, ngo_id, donor_id, names)


async def tag_names_by_donor(session: AsyncSession, donor_ids: List[str]) -> Dict[str, List[str]]:
    if not donor_ids:
        return {}
    stmt = (
        select(DonorTagAssignment.donor_id, Tag.name)
        .join(Tag, Tag.id == DonorTagAssignment.tag_id)
        .where(DonorTagAssignment.donor_id.in_(donor_ids))
    )
    names: Dict[str, List[str]] = {donor_id: [] for donor_id in donor_ids}
    for donor_id, tag_name in (await session.execute(stmt)).all():
        names[donor_id].append(tag_name)
    for tag_list in names.values():
        tag_list.sort()
    return names
