"""
Donation entity.
"""

from __future__ import annotations

from datetime import datetime
from typing import Any, Dict, Optional

from sqlmodel import JSON, Field

from ..base import Base, new_id, utc_now


class Donation(Base, table=True):
    """A single donation, online or recorded manually.

    Table: bv_donations
    """

    __tablename__ = "bv_donations"

    id: str = Field(default_factory=new_id, primary_key=True, max_length=64)
    ngo_id: str = Field(foreign_key="bv_ngos.id", index=True, max_length=64)
    donor_id: Optional[str] = Field(default=None, foreign_key="bv_donors.id", index=True, max_length=64)
    campaign_id: Optional[str] = Field(default=None, foreign_key="bv_campaigns.id", index=True, max_length=64)
    amount: float
    currency: str = Field(default="RON", max_length=8)
    status: str = Field(default="PENDING", max_length=16, index=True)
    source: str = Field(default="manual", max_length=32)
    is_recurring: bool = Field(default=False)
    fee_amount: float = Field(default=0.0)
    net_amount: float = Field(default=0.0)
    stripe_payment_intent_id: Optional[str] = Field(default=None, max_length=128, index=True)
    stripe_checkout_session_id: Optional[str] = Field(default=None, max_length=128, index=True)
    details: Dict[str, Any] = Field(default_factory=dict, sa_type=JSON)
    completed_at: Optional[datetime] = None
    created_at: datetime = Field(default_factory=utc_now, index=True)
    updated_at: datetime = Field(default_factory=utc_now)

    def __repr__(self) -> str:
        return f"Donation(id={self.id}, amount={self.amount}, status={self.status})"
