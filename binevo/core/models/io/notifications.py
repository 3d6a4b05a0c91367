"""
In-app notification I/O models.
"""

from __future__ import annotations

from datetime import datetime
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field


class NotificationRead(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    type: str
    title: str
    message: str
    action_url: Optional[str] = None
    is_read: bool
    details: Dict[str, Any] = Field(default_factory=dict)
    created_at: datetime


class MarkReadRequest(BaseModel):
    ids: List[str] = Field(default_factory=list, description="Notification ids; ignored when all=true")
    all: bool = False
