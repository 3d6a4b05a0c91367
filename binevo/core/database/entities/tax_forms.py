"""
Formular 230 entity: a taxpayer's request to redirect 3.5% of their income
tax to an NGO.
"""

from __future__ import annotations

from datetime import datetime
from typing import Optional

from sqlmodel import Field

from ..base import Base, new_id, utc_now


class Formular230(Base, table=True):
    """Table: bv_formular_230

    The CNP is stored encrypted; ``cnp_last4`` is kept for display.
    """

    __tablename__ = "bv_formular_230"

    id: str = Field(default_factory=new_id, primary_key=True, max_length=64)
    ngo_id: str = Field(foreign_key="bv_ngos.id", index=True, max_length=64)
    first_name: str = Field(max_length=128)
    last_name: str = Field(max_length=128)
    cnp_encrypted: Optional[str] = None
    cnp_last4: Optional[str] = Field(default=None, max_length=4)
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
    email: Optional[str] = Field(default=None, max_length=255)
    ngo_name: str = Field(max_length=255)
    ngo_cui: str = Field(default="", max_length=32)
    ngo_iban: Optional[str] = Field(default=None, max_length=64)
    ngo_contract_nr: Optional[str] = Field(default=None, max_length=64)
    tax_year: int
    percentage: float = Field(default=3.5)
    source: str = Field(default="dashboard", max_length=16)
    created_at: datetime = Field(default_factory=utc_now, index=True)

    def __repr__(self) -> str:
        return f"Formular230(id={self.id}, ngo_id={self.ngo_id}, tax_year={self.tax_year})"
