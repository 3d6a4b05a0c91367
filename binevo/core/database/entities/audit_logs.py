"""
Audit log entity.
"""

from __future__ import annotations

from datetime import datetime
from typing import Any, Dict, Optional

from sqlmodel import JSON, Field

from ..base import Base, new_id, utc_now


class AuditLog(Base, table=True):
    """Append-only record of security and business relevant actions.

    Table: bv_audit_logs
    """

    __tablename__ = "bv_audit_logs"

    id: str = Field(default_factory=new_id, primary_key=True, max_length=64)
    ngo_id: Optional[str] = Field(default=None, index=True, max_length=64)
    user_id: Optional[str] = Field(default=None, max_length=64)
    action: str = Field(max_length=64, index=True)
    entity_type: str = Field(max_length=64)
    entity_id: Optional[str] = Field(default=None, max_length=64)
    details: Dict[str, Any] = Field(default_factory=dict, sa_type=JSON)
    ip_address: Optional[str] = Field(default=None, max_length=64)
    created_at: datetime = Field(default_factory=utc_now, index=True)

    def __repr__(self) -> str:
        return f"AuditLog(action={self.action}, entity={self.entity_type}:{self.entity_id})"
