"""
Automation entities: definitions, ordered steps and executions.
"""

from __future__ import annotations

from datetime import datetime
from typing import Any, Dict, Optional

from sqlmodel import JSON, Field

from ..base import Base, new_id, utc_now


class Automation(Base, table=True):
    """Table: bv_automations"""

    __tablename__ = "bv_automations"

    id: str = Field(default_factory=new_id, primary_key=True, max_length=64)
    ngo_id: str = Field(foreign_key="bv_ngos.id", index=True, max_length=64)
    name: str = Field(max_length=255)
    description: Optional[str] = None
    trigger: str = Field(max_length=32, index=True)
    trigger_config: Dict[str, Any] = Field(default_factory=dict, sa_type=JSON)
    is_active: bool = Field(default=False)
    run_count: int = Field(default=0)
    last_run_at: Optional[datetime] = None
    created_at: datetime = Field(default_factory=utc_now)
    updated_at: datetime = Field(default_factory=utc_now)


class AutomationStep(Base, table=True):
    """Table: bv_automation_steps"""

    __tablename__ = "bv_automation_steps"

    id: str = Field(default_factory=new_id, primary_key=True, max_length=64)
    automation_id: str = Field(foreign_key="bv_automations.id", index=True, max_length=64)
    position: int = Field(default=0)
    action: str = Field(max_length=32)
    config: Dict[str, Any] = Field(default_factory=dict, sa_type=JSON)
    delay_minutes: int = Field(default=0)


class AutomationExecution(Base, table=True):
    """Progress of one automation run for one donor.

    Table: bv_automation_executions
    """

    __tablename__ = "bv_automation_executions"

    id: str = Field(default_factory=new_id, primary_key=True, max_length=64)
    automation_id: str = Field(foreign_key="bv_automations.id", index=True, max_length=64)
    ngo_id: str = Field(foreign_key="bv_ngos.id", index=True, max_length=64)
    donor_id: Optional[str] = Field(default=None, foreign_key="bv_donors.id", max_length=64)
    status: str = Field(default="running", max_length=16, index=True)
    current_step: int = Field(default=0)
    context: Dict[str, Any] = Field(default_factory=dict, sa_type=JSON)
    error: Optional[str] = None
    resume_at: Optional[datetime] = Field(default=None, index=True)
    started_at: datetime = Field(default_factory=utc_now)
    completed_at: Optional[datetime] = None
