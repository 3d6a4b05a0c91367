"""
Dashboard analytics and audit log I/O models.
"""

from __future__ import annotations

from datetime import datetime
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field


class AnalyticsTotals(BaseModel):
    total_donors: int
    active_donors: int
    total_raised: float
    donation_count: int
    average_donation: float
    campaigns_sent: int
    messages_sent: int


class MonthlyPoint(BaseModel):
    month: str = Field(description="YYYY-MM")
    amount: float
    donations: int
    new_donors: int


class TopCampaign(BaseModel):
    id: str
    name: str
    raised_amount: float
    goal_amount: Optional[float] = None
    total_sent: int


class AnalyticsOverview(BaseModel):
    totals: AnalyticsTotals
    monthly: List[MonthlyPoint]
    top_campaigns: List[TopCampaign]


class AuditLogRead(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    user_id: Optional[str] = None
    action: str
    entity_type: str
    entity_id: Optional[str] = None
    details: Dict[str, Any] = Field(default_factory=dict)
    ip_address: Optional[str] = None
    created_at: datetime
