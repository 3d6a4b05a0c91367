"""
Donor CRM entities: donors, tags and consent history.
"""

from __future__ import annotations

from datetime import datetime
from typing import Optional

from sqlalchemy import UniqueConstraint
from sqlmodel import Field

from ..base import Base, new_id, utc_now


class Donor(Base, table=True):
    """A donor or subscriber of one NGO.

    Email and phone are kept in plain form for lookups and duplicate checks,
    and encrypted for export. Anonymisation clears both.

    Table: bv_donors
    """

    __tablename__ = "bv_donors"
    __table_args__ = (UniqueConstraint("ngo_id", "email", name="uq_bv_donors_ngo_email"),)

    id: str = Field(default_factory=new_id, primary_key=True, max_length=64)
    ngo_id: str = Field(foreign_key="bv_ngos.id", index=True, max_length=64)
    email: Optional[str] = Field(default=None, max_length=255, index=True)
    email_encrypted: Optional[str] = None
    phone: Optional[str] = Field(default=None, max_length=64)
    phone_encrypted: Optional[str] = None
    name: Optional[str] = Field(default=None, max_length=255)
    notes: Optional[str] = None
    preferred_channel: str = Field(default="EMAIL", max_length=8)
    donor_type: str = Field(default="INDIVIDUAL", max_length=16)
    company_name: Optional[str] = Field(default=None, max_length=255)
    company_cui: Optional[str] = Field(default=None, max_length=32)
    status: str = Field(default="ACTIVE", max_length=16, index=True)
    email_consent: bool = Field(default=False)
    sms_consent: bool = Field(default=False)
    privacy_consent: bool = Field(default=False)
    is_anonymized: bool = Field(default=False)
    source: Optional[str] = Field(default=None, max_length=64)
    total_donated: float = Field(default=0.0)
    donation_count: int = Field(default=0)
    last_donation_at: Optional[datetime] = None
    created_at: datetime = Field(default_factory=utc_now)
    updated_at: datetime = Field(default_factory=utc_now)

    def __repr__(self) -> str:
        return f"Donor(id={self.id}, ngo_id={self.ngo_id}, status={self.status})"


class Tag(Base, table=True):
    """Table: bv_tags"""

    __tablename__ = "bv_tags"
    __table_args__ = (UniqueConstraint("ngo_id", "name", name="uq_bv_tags_ngo_name"),)

    id: str = Field(default_factory=new_id, primary_key=True, max_length=64)
    ngo_id: str = Field(foreign_key="bv_ngos.id", index=True, max_length=64)
    name: str = Field(max_length=64)
    color: str = Field(default="#6366f1", max_length=16)
    created_at: datetime = Field(default_factory=utc_now)


class DonorTagAssignment(Base, table=True):
    """Table: bv_donor_tags"""

    __tablename__ = "bv_donor_tags"

    donor_id: str = Field(foreign_key="bv_donors.id", primary_key=True, max_length=64)
    tag_id: str = Field(foreign_key="bv_tags.id", primary_key=True, max_length=64)
    created_at: datetime = Field(default_factory=utc_now)


class ConsentRecord(Base, table=True):
    """A single grant or withdrawal of consent.

    Table: bv_consent_records
    """

    __tablename__ = "bv_consent_records"

    id: str = Field(default_factory=new_id, primary_key=True, max_length=64)
    donor_id: str = Field(foreign_key="bv_donors.id", index=True, max_length=64)
    type: str = Field(max_length=32)
    granted: bool
    source: str = Field(max_length=64)
    ip_address: Optional[str] = Field(default=None, max_length=64)
    user_agent: Optional[str] = Field(default=None, max_length=512)
    created_at: datetime = Field(default_factory=utc_now)
