"""
Public (unauthenticated) surface I/O models.
"""

from __future__ import annotations

from datetime import datetime
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, EmailStr, Field


class SubscribeRequest(BaseModel):
    email: EmailStr
    name: Optional[str] = Field(default=None, max_length=255)
    phone: Optional[str] = Field(default=None, max_length=64)
    email_consent: bool = False
    sms_consent: bool = False
    privacy_consent: bool = False


class UnsubscribeRequest(BaseModel):
    ngo_slug: str
    donor_id: str
    channel: Optional[str] = Field(default=None, pattern="^(EMAIL|SMS|ALL)$", description="Defaults to EMAIL")


class PublicCampaign(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    name: str
    type: str
    description: Optional[str] = None
    goal_amount: Optional[float] = None
    raised_amount: float
    created_at: datetime


class PublicNgo(BaseModel):
    """What an NGO's mini-site shows to visitors."""

    id: str
    name: str
    slug: str
    description: Optional[str] = None
    logo_url: Optional[str] = None
    website: Optional[str] = None
    email: Optional[str] = None
    phone: Optional[str] = None
    city: Optional[str] = None
    county: Optional[str] = None
    is_verified: bool
    total_raised: float
    donor_count: int
    minisite_config: Dict[str, Any] = Field(default_factory=dict)
    accepts_online_donations: bool
    fee_description: str
    campaigns: List[PublicCampaign] = Field(default_factory=list)


class PublicCampaignPage(PublicCampaign):
    ngo_name: str
    ngo_slug: str
    ngo_logo_url: Optional[str] = None
    accepts_online_donations: bool
    progress_percent: Optional[float] = None


class PublicInvoice(BaseModel):
    """Invoice as shown on the payment page reached through its payment token."""

    model_config = ConfigDict(from_attributes=True)

    invoice_number: str
    status: str
    issue_date: datetime
    due_date: datetime
    paid_at: Optional[datetime] = None
    seller_name: str
    seller_cui: Optional[str] = None
    seller_address: Optional[str] = None
    seller_iban: Optional[str] = None
    seller_bank: Optional[str] = None
    buyer_name: str
    buyer_cui: Optional[str] = None
    buyer_address: Optional[str] = None
    items: List[Dict[str, Any]]
    subtotal: float
    vat_rate: float
    vat_amount: float
    total_amount: float
    currency: str
    payment_proof_url: Optional[str] = None
