"""
Donation pledge I/O models: the public bank transfer / Revolut flow and its
verification in the dashboard.
"""

from __future__ import annotations

from datetime import datetime
from typing import Dict, List, Optional

from pydantic import BaseModel, ConfigDict, EmailStr, Field

from binevo.core.models.domain import PledgeMethod


class PledgeCreate(BaseModel):
    ngo_slug: str
    payment_method: PledgeMethod
    amount: Optional[float] = Field(default=None, gt=0, description="Announced amount; confirmed on verification")
    currency: str = Field(default="RON", max_length=3)
    donor_name: Optional[str] = Field(default=None, max_length=255)
    donor_email: Optional[EmailStr] = None
    donor_phone: Optional[str] = Field(default=None, max_length=64)


class BankDetails(BaseModel):
    beneficiary: str
    iban: Optional[str] = None
    bank_name: Optional[str] = None


class RevolutDetails(BaseModel):
    tag: Optional[str] = None
    phone: Optional[str] = None
    link: Optional[str] = None


class PledgeCreated(BaseModel):
    pledge_id: str
    reference_code: str
    payment_method: str
    message: str
    bank_details: Optional[BankDetails] = None
    revolut_details: Optional[RevolutDetails] = None


class PledgeRead(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    reference_code: str
    payment_method: str
    amount: Optional[float] = None
    currency: str
    donor_name: Optional[str] = None
    donor_email: Optional[str] = None
    donor_phone: Optional[str] = None
    status: str
    admin_notes: Optional[str] = None
    verified_by: Optional[str] = None
    verified_at: Optional[datetime] = None
    donation_id: Optional[str] = None
    created_at: datetime


class PledgeList(BaseModel):
    items: List[PledgeRead]
    counts: Dict[str, int] = Field(description="Pledges per status: pending, verified, rejected")


class PledgeReview(BaseModel):
    amount: Optional[float] = Field(default=None, gt=0, description="Amount actually received; defaults to the pledge")
    admin_notes: Optional[str] = None
