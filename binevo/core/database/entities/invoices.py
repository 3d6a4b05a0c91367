"""
Platform invoice entity (Binevo bills NGOs for subscriptions).
"""

from __future__ import annotations

from datetime import datetime
from typing import Any, Dict, List, Optional

from sqlmodel import JSON, Field

from ..base import Base, new_id, utc_now


class Invoice(Base, table=True):
    """Table: bv_invoices"""

    __tablename__ = "bv_invoices"

    id: str = Field(default_factory=new_id, primary_key=True, max_length=64)
    ngo_id: str = Field(foreign_key="bv_ngos.id", index=True, max_length=64)
    invoice_number: str = Field(max_length=64, unique=True, index=True)
    invoice_series: str = Field(max_length=32)
    status: str = Field(default="ISSUED", max_length=16, index=True)
    issue_date: datetime = Field(default_factory=utc_now)
    due_date: datetime
    paid_at: Optional[datetime] = None

    seller_name: str = Field(max_length=255)
    seller_cui: Optional[str] = Field(default=None, max_length=32)
    seller_reg_com: Optional[str] = Field(default=None, max_length=64)
    seller_address: Optional[str] = Field(default=None, max_length=512)
    seller_city: Optional[str] = Field(default=None, max_length=128)
    seller_county: Optional[str] = Field(default=None, max_length=128)
    seller_iban: Optional[str] = Field(default=None, max_length=64)
    seller_bank: Optional[str] = Field(default=None, max_length=128)
    seller_vat_payer: bool = Field(default=False)

    buyer_name: str = Field(max_length=255)
    buyer_cui: Optional[str] = Field(default=None, max_length=32)
    buyer_address: Optional[str] = Field(default=None, max_length=512)
    buyer_city: Optional[str] = Field(default=None, max_length=128)
    buyer_county: Optional[str] = Field(default=None, max_length=128)
    buyer_email: Optional[str] = Field(default=None, max_length=255)

    items: List[Dict[str, Any]] = Field(default_factory=list, sa_type=JSON)
    subtotal: float = Field(default=0.0)
    vat_rate: float = Field(default=0.0)
    vat_amount: float = Field(default=0.0)
    total_amount: float = Field(default=0.0)
    currency: str = Field(default="RON", max_length=8)

    subscription_plan: Optional[str] = Field(default=None, max_length=16)
    subscription_month: Optional[str] = Field(default=None, max_length=7, index=True)
    payment_token: str = Field(max_length=128, unique=True, index=True)
    payment_method: Optional[str] = Field(default=None, max_length=32)
    stripe_checkout_session_id: Optional[str] = Field(default=None, max_length=128)
    payment_proof_url: Optional[str] = Field(default=None, max_length=512)
    payment_proof_note: Optional[str] = None
    efactura_status: Optional[str] = Field(default=None, max_length=32)
    efactura_upload_id: Optional[str] = Field(default=None, max_length=64)
    notes: Optional[str] = None
    details: Dict[str, Any] = Field(default_factory=dict, sa_type=JSON)
    created_at: datetime = Field(default_factory=utc_now)
    updated_at: datetime = Field(default_factory=utc_now)

    def __repr__(self) -> str:
        return f"Invoice(number={self.invoice_number}, status={self.status}, total={self.total_amount})"
