"""
Donor and tag I/O models.
"""

from __future__ import annotations

from datetime import datetime
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, EmailStr, Field, model_validator

from binevo.core.models.domain import Channel, DonorStatus, DonorType


class DonorCreate(BaseModel):
    email: Optional[EmailStr] = None
    phone: Optional[str] = Field(default=None, max_length=64)
    name: Optional[str] = Field(default=None, max_length=255)
    notes: Optional[str] = None
    preferred_channel: Channel = Channel.EMAIL
    donor_type: DonorType = DonorType.INDIVIDUAL
    company_name: Optional[str] = Field(default=None, max_length=255)
    company_cui: Optional[str] = Field(default=None, max_length=32)
    email_consent: bool = False
    sms_consent: bool = False
    privacy_consent: bool = False
    tags: List[str] = Field(default_factory=list, description="Tag names; missing tags are created")

    @model_validator(mode="after")
    def _needs_contact(self) -> "DonorCreate":
        if not self.email and not self.phone:
            raise ValueError("Either email or phone is required")
        return self


class DonorUpdate(BaseModel):
    email: Optional[EmailStr] = None
    phone: Optional[str] = Field(default=None, max_length=64)
    name: Optional[str] = Field(default=None, max_length=255)
    notes: Optional[str] = None
    preferred_channel: Optional[Channel] = None
    donor_type: Optional[DonorType] = None
    company_name: Optional[str] = Field(default=None, max_length=255)
    company_cui: Optional[str] = Field(default=None, max_length=32)
    status: Optional[DonorStatus] = None
    email_consent: Optional[bool] = None
    sms_consent: Optional[bool] = None
    privacy_consent: Optional[bool] = None
    tags: Optional[List[str]] = Field(default=None, description="Replaces the donor's tags when given")


class DonorRead(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    email: Optional[str] = None
    phone: Optional[str] = None
    name: Optional[str] = None
    notes: Optional[str] = None
    preferred_channel: str
    donor_type: str
    company_name: Optional[str] = None
    company_cui: Optional[str] = None
    status: str
    email_consent: bool
    sms_consent: bool
    privacy_consent: bool
    is_anonymized: bool
    source: Optional[str] = None
    total_donated: float
    donation_count: int
    last_donation_at: Optional[datetime] = None
    created_at: datetime
    updated_at: datetime
    tags: List[str] = Field(default_factory=list)


class ConsentRead(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    type: str
    granted: bool
    source: str
    created_at: datetime


class DonorDetail(DonorRead):
    recent_donations: List[Dict[str, Any]] = Field(default_factory=list, description="Last 10 donations")
    consents: List[ConsentRead] = Field(default_factory=list)


class TagCreate(BaseModel):
    name: str = Field(min_length=1, max_length=64)
    color: str = Field(default="#6366f1", max_length=16)


class TagRead(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    name: str
    color: str
    donor_count: int = 0


class ImportResult(BaseModel):
    imported: int
    skipped: int
    errors: List[str]
