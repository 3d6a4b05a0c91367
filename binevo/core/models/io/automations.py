"""
Automation I/O models.
"""

from __future__ import annotations

from datetime import datetime
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field

from binevo.core.models.domain import AutomationAction, AutomationTrigger


class AutomationStepIn(BaseModel):
    action: AutomationAction
    config: Dict[str, Any] = Field(default_factory=dict, description="Action parameters (subject, body, tag...)")
    delay_minutes: int = Field(default=0, ge=0, description="Wait before running this step")


class AutomationStepRead(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    position: int
    action: str
    config: Dict[str, Any]
    delay_minutes: int


class AutomationCreate(BaseModel):
    name: str = Field(min_length=1, max_length=255)
    description: Optional[str] = None
    trigger: AutomationTrigger
    trigger_config: Dict[str, Any] = Field(default_factory=dict)
    is_active: bool = False
    steps: List[AutomationStepIn] = Field(default_factory=list)


class AutomationUpdate(BaseModel):
    name: Optional[str] = Field(default=None, min_length=1, max_length=255)
    description: Optional[str] = None
    trigger: Optional[AutomationTrigger] = None
    trigger_config: Optional[Dict[str, Any]] = None
    is_active: Optional[bool] = None
    steps: Optional[List[AutomationStepIn]] = Field(default=None, description="Replaces all steps when given")


class AutomationRead(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    name: str
    description: Optional[str] = None
    trigger: str
    trigger_config: Dict[str, Any]
    is_active: bool
    run_count: int
    last_run_at: Optional[datetime] = None
    created_at: datetime
    updated_at: datetime
    steps: List[AutomationStepRead] = Field(default_factory=list)
