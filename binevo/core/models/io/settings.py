"""
NGO settings and team management I/O models.
"""

from __future__ import annotations

from datetime import datetime
from typing import Any, Dict, Optional

from pydantic import BaseModel, ConfigDict, EmailStr, Field

from binevo.core.models.domain import UserRole


class NgoRead(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    name: str
    slug: str
    description: Optional[str] = None
    logo_url: Optional[str] = None
    website: Optional[str] = None
    email: Optional[str] = None
    phone: Optional[str] = None
    cui: Optional[str] = None
    address: Optional[str] = None
    city: Optional[str] = None
    county: Optional[str] = None
    iban: Optional[str] = None
    bank_name: Optional[str] = None
    revolut_tag: Optional[str] = None
    revolut_phone: Optional[str] = None
    revolut_link: Optional[str] = None
    is_active: bool
    is_verified: bool
    subscription_plan: str
    subscription_status: str
    subscription_expires_at: Optional[datetime] = None
    auto_renew: bool
    payment_method: Optional[str] = None
    stripe_connect_status: str
    stripe_charges_enabled: bool
    sender_email: Optional[str] = None
    sender_name: Optional[str] = None
    sms_sender_id: Optional[str] = None
    billing_name: Optional[str] = None
    billing_cui: Optional[str] = None
    billing_address: Optional[str] = None
    billing_city: Optional[str] = None
    billing_county: Optional[str] = None
    billing_email: Optional[str] = None
    minisite_config: Dict[str, Any] = Field(default_factory=dict)
    minisite_published: bool
    total_raised: float
    donor_count_public: int
    created_at: datetime


class NgoProfileUpdate(BaseModel):
    name: Optional[str] = Field(default=None, min_length=2, max_length=255)
    description: Optional[str] = None
    logo_url: Optional[str] = Field(default=None, max_length=1024)
    website: Optional[str] = Field(default=None, max_length=512)
    email: Optional[EmailStr] = None
    phone: Optional[str] = Field(default=None, max_length=64)
    cui: Optional[str] = Field(default=None, max_length=32)
    address: Optional[str] = None
    city: Optional[str] = Field(default=None, max_length=128)
    county: Optional[str] = Field(default=None, max_length=128)
    iban: Optional[str] = Field(default=None, max_length=64)
    bank_name: Optional[str] = Field(default=None, max_length=128)
    revolut_tag: Optional[str] = Field(default=None, max_length=64)
    revolut_phone: Optional[str] = Field(default=None, max_length=32)
    revolut_link: Optional[str] = Field(default=None, max_length=512)
    billing_name: Optional[str] = Field(default=None, max_length=255)
    billing_cui: Optional[str] = Field(default=None, max_length=32)
    billing_address: Optional[str] = None
    billing_city: Optional[str] = Field(default=None, max_length=128)
    billing_county: Optional[str] = Field(default=None, max_length=128)
    billing_email: Optional[EmailStr] = None


class EmailSenderUpdate(BaseModel):
    sender_email: Optional[EmailStr] = None
    sender_name: Optional[str] = Field(default=None, max_length=255)
    sendgrid_api_key: Optional[str] = Field(default=None, description="Write-only; empty string clears it")


class SmsSenderUpdate(BaseModel):
    sms_sender_id: Optional[str] = Field(default=None, max_length=11)
    twilio_account_sid: Optional[str] = None
    twilio_auth_token: Optional[str] = Field(default=None, description="Write-only")
    twilio_phone_number: Optional[str] = Field(default=None, max_length=32)


class PaymentPreferencesUpdate(BaseModel):
    payment_method: Optional[str] = Field(default=None, pattern="^(card|bank_transfer)$")
    auto_renew: Optional[bool] = None


class MinisiteUpdate(BaseModel):
    config: Optional[Dict[str, Any]] = Field(default=None, description="Free-form mini-site layout and content")
    published: Optional[bool] = None


class TeamInvite(BaseModel):
    email: EmailStr
    name: str = Field(min_length=2, max_length=255)
    role: UserRole = UserRole.STAFF


class TeamMemberUpdate(BaseModel):
    role: Optional[UserRole] = None
    is_active: Optional[bool] = None
    name: Optional[str] = Field(default=None, min_length=2, max_length=255)


class NgoSettingsRead(NgoRead):
    """NGO settings as shown to its administrators; secrets are reported as set/unset only."""

    sendgrid_api_key_set: bool = False
    twilio_configured: bool = False
    twilio_phone_number: Optional[str] = None
