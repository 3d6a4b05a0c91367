"""
Donation pledge entity.
"""

from __future__ import annotations

from datetime import datetime
from typing import Optional

from sqlmodel import Field

from ..base import Base, new_id, utc_now


class DonationPledge(Base, table=True):
    """A donor's announced bank transfer or Revolut payment, awaiting verification.

    Table: bv_donation_pledges
    """

    __tablename__ = "bv_donation_pledges"

    id: str = Field(default_factory=new_id, primary_key=True, max_length=64)
    ngo_id: str = Field(foreign_key="bv_ngos.id", index=True, max_length=64)
    reference_code: str = Field(max_length=16, unique=True, index=True)
    payment_method: str = Field(max_length=32)
    amount: Optional[float] = None
    currency: str = Field(default="RON", max_length=8)
    donor_name: Optional[str] = Field(default=None, max_length=255)
    donor_email: Optional[str] = Field(default=None, max_length=255)
    donor_phone: Optional[str] = Field(default=None, max_length=64)
    status: str = Field(default="PENDING", max_length=16, index=True)
    admin_notes: Optional[str] = None
    verified_by: Optional[str] = Field(default=None, max_length=64)
    verified_at: Optional[datetime] = None
    donation_id: Optional[str] = Field(default=None, foreign_key="bv_donations.id", max_length=64)
    created_at: datetime = Field(default_factory=utc_now, index=True)
    updated_at: datetime = Field(default_factory=utc_now)

    def __repr__(self) -> str:
        return f"DonationPledge(reference={self.reference_code}, status={self.status})"
