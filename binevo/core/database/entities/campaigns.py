"""
Campaign entities: campaign definitions and their delivery records.
"""

from __future__ import annotations

from datetime import datetime
from typing import Any, Dict, Optional

from sqlmodel import JSON, Field

from ..base import Base, new_id, utc_now


class Campaign(Base, table=True):
    """Table: bv_campaigns"""

    __tablename__ = "bv_campaigns"

    id: str = Field(default_factory=new_id, primary_key=True, max_length=64)
    ngo_id: str = Field(foreign_key="bv_ngos.id", index=True, max_length=64)
    name: str = Field(max_length=255)
    type: str = Field(default="CUSTOM", max_length=32)
    channel: str = Field(default="EMAIL", max_length=8)
    status: str = Field(default="DRAFT", max_length=16, index=True)
    subject: Optional[str] = Field(default=None, max_length=255)
    email_body: Optional[str] = None
    sms_body: Optional[str] = None
    preview_text: Optional[str] = Field(default=None, max_length=255)
    segment_query: Optional[Dict[str, Any]] = Field(default=None, sa_type=JSON)
    is_ab_test: bool = Field(default=False)
    is_public: bool = Field(default=False)
    description: Optional[str] = None
    goal_amount: Optional[float] = None
    raised_amount: float = Field(default=0.0)
    scheduled_at: Optional[datetime] = None
    sent_at: Optional[datetime] = None
    recipient_count: int = Field(default=0)
    total_sent: int = Field(default=0)
    total_failed: int = Field(default=0)
    total_delivered: int = Field(default=0)
    total_opened: int = Field(default=0)
    total_clicked: int = Field(default=0)
    total_bounced: int = Field(default=0)
    total_complaints: int = Field(default=0)
    total_unsubscribed: int = Field(default=0)
    created_at: datetime = Field(default_factory=utc_now)
    updated_at: datetime = Field(default_factory=utc_now)

    def __repr__(self) -> str:
        return f"Campaign(id={self.id}, name={self.name}, status={self.status})"


class Message(Base, table=True):
    """One send of a campaign (or an automation email) over one channel.

    Table: bv_messages
    """

    __tablename__ = "bv_messages"

    id: str = Field(default_factory=new_id, primary_key=True, max_length=64)
    ngo_id: str = Field(foreign_key="bv_ngos.id", index=True, max_length=64)
    campaign_id: Optional[str] = Field(default=None, foreign_key="bv_campaigns.id", index=True, max_length=64)
    channel: str = Field(max_length=8)
    subject: Optional[str] = Field(default=None, max_length=255)
    body: str = ""
    status: str = Field(default="SENDING", max_length=16)
    sent_count: int = Field(default=0)
    failed_count: int = Field(default=0)
    sent_at: Optional[datetime] = None
    created_at: datetime = Field(default_factory=utc_now)


class MessageRecipient(Base, table=True):
    """Table: bv_message_recipients"""

    __tablename__ = "bv_message_recipients"

    id: str = Field(default_factory=new_id, primary_key=True, max_length=64)
    message_id: str = Field(foreign_key="bv_messages.id", index=True, max_length=64)
    donor_id: Optional[str] = Field(default=None, foreign_key="bv_donors.id", index=True, max_length=64)
    channel: str = Field(max_length=8)
    address: str = Field(max_length=255)
    status: str = Field(default="SENT", max_length=16)
    provider_message_id: Optional[str] = Field(default=None, max_length=255, index=True)
    error_message: Optional[str] = None
    delivered_at: Optional[datetime] = None
    opened_at: Optional[datetime] = None
    clicked_at: Optional[datetime] = None
    bounced_at: Optional[datetime] = None
    created_at: datetime = Field(default_factory=utc_now)
