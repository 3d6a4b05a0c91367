"""
LinkedIn prospect and extension token I/O models.
"""

from __future__ import annotations

from datetime import datetime
from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel


class ProspectItem(BaseModel):
    """One profile as captured by the browser extension (camelCase on the wire)."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    full_name: Optional[str] = Field(default=None, max_length=255)
    headline: Optional[str] = Field(default=None, max_length=512)
    company: Optional[str] = Field(default=None, max_length=255)
    location: Optional[str] = Field(default=None, max_length=255)
    profile_url: Optional[str] = Field(default=None, max_length=1024)
    profile_image_url: Optional[str] = Field(default=None, max_length=1024)
    tags: List[str] = Field(default_factory=list)


class ProspectImportRequest(BaseModel):
    prospects: List[ProspectItem] = Field(default_factory=list)


class ProspectImportResult(BaseModel):
    imported: int
    duplicates: int
    errors: List[str]
    daily_remaining: int
    ngo_name: str


class ProspectCreate(BaseModel):
    full_name: str = Field(min_length=1, max_length=255)
    profile_url: str = Field(min_length=1, max_length=1024)
    headline: Optional[str] = Field(default=None, max_length=512)
    company: Optional[str] = Field(default=None, max_length=255)
    location: Optional[str] = Field(default=None, max_length=255)
    notes: Optional[str] = None
    tags: List[str] = Field(default_factory=list)


class ProspectUpdate(BaseModel):
    status: Optional[str] = Field(default=None, pattern="^(NEW|CONTACTED|RESPONDED|CONVERTED|ARCHIVED)$")
    notes: Optional[str] = None
    tags: Optional[List[str]] = None


class ProspectRead(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    full_name: str
    headline: Optional[str] = None
    company: Optional[str] = None
    location: Optional[str] = None
    profile_url: str
    profile_image_url: Optional[str] = None
    status: str
    notes: Optional[str] = None
    tags: List[str]
    import_source: str
    created_at: datetime


class ApiTokenCreate(BaseModel):
    name: str = Field(default="Chrome Extension", min_length=1, max_length=255)


class ApiTokenRead(BaseModel):
    id: str
    name: str
    token_preview: str
    is_active: bool
    last_used_at: Optional[datetime] = None
    created_at: datetime


class ApiTokenCreated(ApiTokenRead):
    token: str = Field(description="Full token; shown only once")
