"""
Formular 230 I/O models.
"""

from __future__ import annotations

from datetime import datetime
from typing import Optional

from pydantic import BaseModel, ConfigDict, EmailStr, Field


class Formular230Create(BaseModel):
    """A taxpayer's redirection request, as typed in the dashboard or on the mini-site."""

    first_name: str = Field(min_length=1, max_length=128)
    last_name: str = Field(min_length=1, max_length=128)
    cnp: Optional[str] = Field(default=None, pattern=r"^\d{13}$")
    street: Optional[str] = Field(default=None, max_length=255)
    number: Optional[str] = Field(default=None, max_length=32)
    block: Optional[str] = Field(default=None, max_length=32)
    staircase: Optional[str] = Field(default=None, max_length=32)
    floor: Optional[str] = Field(default=None, max_length=32)
    apartment: Optional[str] = Field(default=None, max_length=32)
    city: str = Field(default="", max_length=128)
    county: str = Field(default="", max_length=128)
    postal_code: Optional[str] = Field(default=None, max_length=16)
    phone: Optional[str] = Field(default=None, max_length=64)
    email: Optional[EmailStr] = None
    tax_year: Optional[int] = Field(default=None, ge=2000, le=2100, description="Defaults to the current year")


class Formular230DashboardCreate(Formular230Create):
    ngo_iban: Optional[str] = Field(default=None, max_length=64)
    ngo_contract_nr: Optional[str] = Field(default=None, max_length=64)


class Formular230Read(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    first_name: str
    last_name: str
    cnp_last4: Optional[str] = None
    street: Optional[str] = None
    number: Optional[str] = None
    block: Optional[str] = None
    staircase: Optional[str] = None
    floor: Optional[str] = None
    apartment: Optional[str] = None
    city: str
    county: str
    postal_code: Optional[str] = None
    phone: Optional[str] = None
    email: Optional[str] = None
    ngo_name: str
    ngo_cui: str
    ngo_iban: Optional[str] = None
    ngo_contract_nr: Optional[str] = None
    tax_year: int
    percentage: float
    source: str
    created_at: datetime


class Formular230Submitted(BaseModel):
    id: str
