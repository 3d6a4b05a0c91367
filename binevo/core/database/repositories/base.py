"""
Base repository and query utilities.

Every tenant-owned table carries an ``ngo_id`` column; ``TenantRepository``
scopes all reads and deletes to one NGO so routers cannot leak rows across
tenants by forgetting a filter.
"""

from __future__ import annotations

import math
from typing import Any, Dict, Generic, List, Optional, Sequence, Tuple, Type, TypeVar

from sqlalchemy import func
from sqlalchemy.ext.asyncio import AsyncSession
from sqlmodel import SQLModel, select

EntityType = TypeVar("EntityType", bound=SQLModel)


class QueryBuilder:
    """Utility class for building SQLModel-based database queries."""

    @staticmethod
    def apply_filters(stmt, model: Type[EntityType], filters: Dict[str, Any]):
        """Apply equality filters, ignoring ``None`` values and unknown columns."""
        for key, value in filters.items():
            if value is not None and hasattr(model, key):
                stmt = stmt.where(getattr(model, key) == value)
        return stmt

    @staticmethod
    def apply_pagination(stmt, limit: Optional[int], offset: Optional[int]):
        if offset:
            stmt = stmt.offset(offset)
        if limit:
            stmt = stmt.limit(limit)
        return stmt


def pagination_meta(page: int, limit: int, total: int) -> Dict[str, int]:
    return {
        "page": page,
        "limit": limit,
        "total": total,
        "total_pages": math.ceil(total / limit) if limit else 0,
    }


async def count_rows(session: AsyncSession, stmt) -> int:
    """Count the rows a select statement would return."""
    count_stmt = select(func.count()).select_from(stmt.order_by(None).subquery())
    return int((await session.execute(count_stmt)).scalar_one())


async def paginate(
    session: AsyncSession, stmt, page: int, limit: int, *, scalars: bool = True
) -> Tuple[Sequence[Any], int]:
    """Run ``stmt`` for one page and return ``(rows, total)``.

    With ``scalars=False`` the rows are tuples, for statements selecting
    more than one entity or column.
    """
    total = await count_rows(session, stmt)
    paged = QueryBuilder.apply_pagination(stmt, limit, (page - 1) * limit)
    result = await session.execute(paged)
    rows = result.scalars().all() if scalars else result.all()
    return rows, total


class TenantRepository(Generic[EntityType]):
    """CRUD helpers for a table owned by an NGO."""

    def __init__(self, session: AsyncSession, model: Type[EntityType]) -> None:
        self.session = session
        self.model = model

    def select_for(self, ngo_id: str):
        return select(self.model).where(getattr(self.model, "ngo_id") == ngo_id)

    async def get(self, ngo_id: str, entity_id: str) -> Optional[EntityType]:
        stmt = self.select_for(ngo_id).where(getattr(self.model, "id") == entity_id)
        return (await self.session.execute(stmt)).scalars().first()

    async def list(self, ngo_id: str, filters: Optional[Dict[str, Any]] = None, order_by=None) -> List[EntityType]:
        stmt = QueryBuilder.apply_filters(self.select_for(ngo_id), self.model, filters or {})
        if order_by is not None:
            stmt = stmt.order_by(order_by)
        return list((await self.session.execute(stmt)).scalars().all())

    async def count(self, ngo_id: str, filters: Optional[Dict[str, Any]] = None) -> int:
        stmt = QueryBuilder.apply_filters(self.select_for(ngo_id), self.model, filters or {})
        return await count_rows(self.session, stmt)

    async def add(self, entity: EntityType) -> EntityType:
        self.session.add(entity)
        await self.session.commit()
        await self.session.refresh(entity)
        return entity

    async def delete(self, ngo_id: str, entity_id: str) -> bool:
        entity = await self.get(ngo_id, entity_id)
        if entity is None:
            return False
        await self.session.delete(entity)
        await self.session.commit()
        return True
