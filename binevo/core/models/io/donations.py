"""
Donation I/O models, including the public donate flow.
"""

from __future__ import annotations

from datetime import datetime
from typing import List, Optional

from pydantic import BaseModel, ConfigDict, EmailStr, Field


class DonationRead(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    donor_id: Optional[str] = None
    campaign_id: Optional[str] = None
    amount: float
    currency: str
    status: str
    source: str
    is_recurring: bool
    fee_amount: float
    net_amount: float
    created_at: datetime
    completed_at: Optional[datetime] = None
    donor_name: Optional[str] = None
    donor_email: Optional[str] = None


class ManualDonationCreate(BaseModel):
    """An offline donation recorded by NGO staff."""

    amount: float = Field(gt=0, description="Amount in RON")
    source: str = Field(default="bank_transfer", pattern="^(bank_transfer|cash|manual)$")
    donor_id: Optional[str] = None
    donor_email: Optional[EmailStr] = Field(default=None, description="Used to find or create the donor")
    donor_name: Optional[str] = None
    campaign_id: Optional[str] = None
    currency: str = Field(default="RON", max_length=3)
    notes: Optional[str] = None
    is_recurring: bool = False


class DonateRequest(BaseModel):
    ngo_slug: str
    amount: float = Field(ge=1, description="Amount in RON, minimum 1")
    email: EmailStr
    name: Optional[str] = Field(default=None, max_length=255)
    phone: Optional[str] = Field(default=None, max_length=64)
    campaign_id: Optional[str] = None
    email_consent: bool = False
    privacy_consent: bool = False


class DonateResponse(BaseModel):
    donation_id: str
    checkout_url: str
    amount: float
    fee_amount: float
    net_amount: float


class DonationMethods(BaseModel):
    card: bool
    bank_transfer: bool
    iban: Optional[str] = None
    bank_name: Optional[str] = None
    revolut: bool = False
    revolut_tag: Optional[str] = None
    revolut_phone: Optional[str] = None
    revolut_link: Optional[str] = None
    methods: List[str]
