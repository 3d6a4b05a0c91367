"""
Dashboard billing and Stripe Connect I/O models.
"""

from __future__ import annotations

from datetime import datetime
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, Field

from binevo.core.models.io.admin import InvoiceRead


class PlanInfo(BaseModel):
    plan: str
    monthly_price: int
    max_donors: int = Field(description="-1 means unlimited")
    max_active_automations: int
    features: List[str]
    fee_description: str


class BillingOverview(BaseModel):
    plan: str = Field(description="Plan currently in effect")
    subscription_plan: str = Field(description="Stored plan")
    subscription_status: str
    subscription_expires_at: Optional[datetime] = None
    auto_renew: bool
    fee_description: str
    invoices: List[InvoiceRead]
    plans: List[PlanInfo]


class BillingCheckoutRequest(BaseModel):
    plan: str = Field(pattern="^(PRO|ELITE)$")
    months: int = Field(default=1, ge=1, le=12)


class CheckoutResponse(BaseModel):
    invoice_id: str
    invoice_number: str
    checkout_url: Optional[str] = None
    checkout_session_id: Optional[str] = None


class ConnectStatusRead(BaseModel):
    stripe_connect_id: Optional[str] = None
    status: str
    onboarded: bool
    charges_enabled: bool
    payouts_enabled: bool
    requirements: Optional[Dict[str, Any]] = None
    last_sync_at: Optional[datetime] = None


class LinkResponse(BaseModel):
    url: str
