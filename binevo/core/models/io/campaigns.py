"""
Campaign I/O models.
"""

from __future__ import annotations

from datetime import datetime
from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field

from binevo.core.models.domain import CampaignType, Channel


class SegmentQuery(BaseModel):
    """Recipient filter applied on top of consent and status rules."""

    tags: List[str] = Field(default_factory=list, description="Donor must carry one of these tags")
    min_amount: Optional[float] = Field(default=None, ge=0, description="Minimum total donated")
    max_amount: Optional[float] = Field(default=None, ge=0, description="Maximum total donated")
    donated_after: Optional[datetime] = None
    donated_before: Optional[datetime] = None


class CampaignCreate(BaseModel):
    name: str = Field(min_length=1, max_length=255)
    type: CampaignType = CampaignType.CUSTOM
    channel: Channel = Channel.EMAIL
    subject: Optional[str] = Field(default=None, max_length=255)
    email_body: Optional[str] = None
    sms_body: Optional[str] = None
    preview_text: Optional[str] = Field(default=None, max_length=255)
    segment_query: Optional[SegmentQuery] = None
    is_ab_test: bool = False
    is_public: bool = False
    description: Optional[str] = None
    goal_amount: Optional[float] = Field(default=None, gt=0)
    scheduled_at: Optional[datetime] = None


class CampaignUpdate(BaseModel):
    name: Optional[str] = Field(default=None, min_length=1, max_length=255)
    type: Optional[CampaignType] = None
    channel: Optional[Channel] = None
    subject: Optional[str] = Field(default=None, max_length=255)
    email_body: Optional[str] = None
    sms_body: Optional[str] = None
    preview_text: Optional[str] = Field(default=None, max_length=255)
    segment_query: Optional[SegmentQuery] = None
    is_ab_test: Optional[bool] = None
    is_public: Optional[bool] = None
    description: Optional[str] = None
    goal_amount: Optional[float] = Field(default=None, gt=0)
    scheduled_at: Optional[datetime] = None


class CampaignRead(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    name: str
    type: str
    channel: str
    status: str
    subject: Optional[str] = None
    email_body: Optional[str] = None
    sms_body: Optional[str] = None
    preview_text: Optional[str] = None
    segment_query: Optional[dict] = None
    is_ab_test: bool
    is_public: bool
    description: Optional[str] = None
    goal_amount: Optional[float] = None
    raised_amount: float
    scheduled_at: Optional[datetime] = None
    sent_at: Optional[datetime] = None
    recipient_count: int
    total_sent: int
    total_failed: int
    created_at: datetime
    updated_at: datetime


class CampaignSendResult(BaseModel):
    campaign_id: str
    message_id: str
    recipients: int
    sent: int
    failed: int


class CampaignTemplate(BaseModel):
    type: str
    name: str
    subject: str
    email_body: str
    sms_body: str
