"""
In-app notification entity.
"""

from __future__ import annotations

from datetime import datetime
from typing import Any, Dict, Optional

from sqlmodel import JSON, Field

from ..base import Base, new_id, utc_now


class Notification(Base, table=True):
    """Table: bv_notifications"""

    __tablename__ = "bv_notifications"

    id: str = Field(default_factory=new_id, primary_key=True, max_length=64)
    ngo_id: str = Field(foreign_key="bv_ngos.id", index=True, max_length=64)
    user_id: Optional[str] = Field(default=None, foreign_key="bv_users.id", max_length=64)
    type: str = Field(max_length=32)
    title: str = Field(max_length=255)
    message: str
    action_url: Optional[str] = Field(default=None, max_length=512)
    is_read: bool = Field(default=False, index=True)
    details: Dict[str, Any] = Field(default_factory=dict, sa_type=JSON)
    created_at: datetime = Field(default_factory=utc_now, index=True)
