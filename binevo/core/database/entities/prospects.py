"""
LinkedIn prospect entity.
"""

from __future__ import annotations

from datetime import datetime
from typing import List, Optional

from sqlalchemy import UniqueConstraint
from sqlmodel import JSON, Field

from ..base import Base, new_id, utc_now


class LinkedInProspect(Base, table=True):
    """A LinkedIn profile saved by an NGO, usually from the browser extension.

    Table: bv_linkedin_prospects
    """

    __tablename__ = "bv_linkedin_prospects"
    __table_args__ = (UniqueConstraint("ngo_id", "profile_url", name="uq_bv_prospects_ngo_url"),)

    id: str = Field(default_factory=new_id, primary_key=True, max_length=64)
    ngo_id: str = Field(foreign_key="bv_ngos.id", index=True, max_length=64)
    full_name: str = Field(max_length=255)
    headline: Optional[str] = Field(default=None, max_length=512)
    company: Optional[str] = Field(default=None, max_length=255)
    location: Optional[str] = Field(default=None, max_length=255)
    profile_url: str = Field(max_length=512)
    profile_image_url: Optional[str] = Field(default=None, max_length=1024)
    status: str = Field(default="NEW", max_length=16)
    notes: Optional[str] = None
    tags: List[str] = Field(default_factory=list, sa_type=JSON)
    import_source: str = Field(default="chrome_extension", max_length=32)
    imported_by: Optional[str] = Field(default=None, max_length=64)
    created_at: datetime = Field(default_factory=utc_now, index=True)
    updated_at: datetime = Field(default_factory=utc_now)
