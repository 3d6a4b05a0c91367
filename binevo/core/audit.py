"""
Audit trail helper.

Writing an audit entry must never break the operation being audited, so
database errors are logged and rolled back instead of propagated.
"""

from __future__ import annotations

from typing import Any, Dict, Optional

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from binevo.core.database.entities import AuditLog
from binevo.core.logging_config import get_logger

logger = get_logger(__name__)


async def record_audit(
    session: AsyncSession,
    *,
    action: str,
    entity_type: str,
    entity_id: Optional[str] = None,
    ngo_id: Optional[str] = None,
    user_id: Optional[str] = None,
    details: Optional[Dict[str, Any]] = None,
    ip_address: Optional[str] = None,
    commit: bool = True,
) -> Optional[AuditLog]:
    """Persist an audit entry.

    With ``commit=False`` the entry is only added to the session so it becomes
    part of the caller's transaction.
    """
    entry = AuditLog(
        ngo_id=ngo_id,
        user_id=user_id,
        action=action,
        entity_type=entity_type,
        entity_id=entity_id,
        details=details or {},
        ip_address=ip_address,
    )
    session.add(entry)
    if not commit:
        return entry
    try:
        await session.commit()
    except SQLAlchemyError as e:
        logger.error(f"Failed to write audit log {action} for {entity_type}:{entity_id}: {e}")
        await session.rollback()
        return None
    return entry
