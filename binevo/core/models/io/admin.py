"""
Super-admin back-office I/O models.
"""

from __future__ import annotations

from datetime import datetime
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, EmailStr, Field

from binevo.core.models.domain import SubscriptionPlan, UserRole


class NgoAdminUpdate(BaseModel):
    name: Optional[str] = Field(default=None, min_length=2, max_length=255)
    is_active: Optional[bool] = None
    is_verified: Optional[bool] = None
    donation_fee_percent: Optional[float] = Field(default=None, ge=0, le=100)
    donation_fee_fixed_amount: Optional[float] = Field(default=None, ge=0)
    donation_fee_min_amount: Optional[float] = Field(default=None, ge=0)
    clear_fee_overrides: bool = Field(default=False, description="Reset all fee overrides to plan defaults")
    subscription_notes: Optional[str] = None
    auto_renew: Optional[bool] = None


class VerifyRequest(BaseModel):
    is_verified: bool = True


class SubscriptionAssign(BaseModel):
    plan: SubscriptionPlan
    duration_months: Optional[int] = Field(default=1, ge=1, le=60, description="None for no expiry")
    notes: Optional[str] = None
    send_email: bool = True


class SubscriptionRenew(BaseModel):
    months: int = Field(default=1, ge=1, le=60)


class UserAdminUpdate(BaseModel):
    role: Optional[UserRole] = None
    is_active: Optional[bool] = None
    ngo_id: Optional[str] = None


class PlatformSettingsUpdate(BaseModel):
    """Secrets are write-only: they are accepted here but never returned."""

    stripe_enabled: Optional[bool] = None
    stripe_secret_key: Optional[str] = None
    stripe_publishable_key: Optional[str] = None
    stripe_webhook_secret: Optional[str] = None
    stripe_connect_webhook_secret: Optional[str] = None
    netopia_enabled: Optional[bool] = None
    netopia_api_key: Optional[str] = None
    netopia_merchant_id: Optional[str] = Field(default=None, max_length=128)
    netopia_public_key: Optional[str] = None
    netopia_sandbox: Optional[bool] = None
    netopia_notify_url: Optional[str] = Field(default=None, max_length=512)
    email_provider: Optional[str] = Field(default=None, pattern="^(sendgrid|mailgun)$")
    email_from: Optional[EmailStr] = None
    email_from_name: Optional[str] = None
    sendgrid_api_key: Optional[str] = None
    mailgun_api_key: Optional[str] = None
    mailgun_domain: Optional[str] = None
    company_name: Optional[str] = None
    company_cui: Optional[str] = None
    company_reg_com: Optional[str] = None
    company_address: Optional[str] = None
    company_city: Optional[str] = None
    company_county: Optional[str] = None
    company_email: Optional[EmailStr] = None
    company_iban: Optional[str] = None
    company_bank: Optional[str] = None
    company_vat_payer: Optional[bool] = None
    invoice_prefix: Optional[str] = Field(default=None, max_length=16)
    invoice_series: Optional[str] = Field(default=None, max_length=32)
    invoice_next_number: Optional[int] = Field(default=None, ge=1)
    invoice_vat_rate: Optional[float] = Field(default=None, ge=0, le=100)
    invoice_payment_terms_days: Optional[int] = Field(default=None, ge=0, le=120)
    anaf_environment: Optional[str] = Field(default=None, pattern="^(test|prod)$")
    anaf_access_token: Optional[str] = None


class PlatformSettingsRead(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    stripe_enabled: bool
    stripe_publishable_key: Optional[str] = None
    stripe_secret_key_set: bool = False
    stripe_webhook_secret_set: bool = False
    netopia_enabled: bool = False
    netopia_api_key_set: bool = False
    netopia_merchant_id: Optional[str] = None
    netopia_public_key_set: bool = False
    netopia_sandbox: bool = True
    netopia_notify_url: Optional[str] = None
    email_provider: Optional[str] = None
    email_from: Optional[str] = None
    email_from_name: Optional[str] = None
    sendgrid_api_key_set: bool = False
    mailgun_api_key_set: bool = False
    mailgun_domain: Optional[str] = None
    company_name: str
    company_cui: Optional[str] = None
    company_reg_com: Optional[str] = None
    company_address: Optional[str] = None
    company_city: Optional[str] = None
    company_county: Optional[str] = None
    company_email: Optional[str] = None
    company_iban: Optional[str] = None
    company_bank: Optional[str] = None
    company_vat_payer: bool
    invoice_prefix: str
    invoice_series: Optional[str] = None
    invoice_next_number: int
    invoice_vat_rate: float
    invoice_payment_terms_days: int
    anaf_environment: str
    anaf_token_set: bool = False


class InvoiceItemIn(BaseModel):
    description: str = Field(min_length=1, max_length=255)
    quantity: float = Field(default=1, gt=0)
    unit_price: float = Field(ge=0)
    unit: str = "luna"


class InvoiceCreate(BaseModel):
    ngo_id: str
    items: List[InvoiceItemIn] = Field(min_length=1)
    notes: Optional[str] = None
    send_email: bool = True


class SubscriptionInvoiceCreate(BaseModel):
    plan: SubscriptionPlan
    months: int = Field(default=1, ge=1, le=12)


class MarkPaidRequest(BaseModel):
    payment_method: str = Field(default="bank_transfer", pattern="^(bank_transfer|card|cash|other)$")


class InvoiceEmailSent(BaseModel):
    message: str
    sent_to: str
    status: str


class InvoiceRead(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    ngo_id: str
    invoice_number: str
    invoice_series: str
    status: str
    issue_date: datetime
    due_date: datetime
    paid_at: Optional[datetime] = None
    seller_name: str
    seller_cui: Optional[str] = None
    seller_address: Optional[str] = None
    seller_iban: Optional[str] = None
    seller_bank: Optional[str] = None
    seller_vat_payer: bool
    buyer_name: str
    buyer_cui: Optional[str] = None
    buyer_address: Optional[str] = None
    buyer_email: Optional[str] = None
    items: List[Dict[str, Any]]
    subtotal: float
    vat_rate: float
    vat_amount: float
    total_amount: float
    currency: str
    subscription_plan: Optional[str] = None
    subscription_month: Optional[str] = None
    payment_method: Optional[str] = None
    payment_proof_url: Optional[str] = None
    payment_proof_note: Optional[str] = None
    efactura_status: Optional[str] = None
    efactura_upload_id: Optional[str] = None
    notes: Optional[str] = None
    created_at: datetime


class AdminStats(BaseModel):
    ngos: int
    active_ngos: int
    users: int
    donors: int
    donations: int
    total_raised: float
    by_plan: Dict[str, int]


class NgoAdminListItem(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    name: str
    slug: str
    email: Optional[str] = None
    is_active: bool
    is_verified: bool
    subscription_plan: str
    subscription_status: str
    subscription_expires_at: Optional[datetime] = None
    stripe_connect_status: str
    total_raised: float
    created_at: datetime


class NgoAdminDetail(NgoAdminListItem):
    cui: Optional[str] = None
    phone: Optional[str] = None
    city: Optional[str] = None
    county: Optional[str] = None
    subscription_start_at: Optional[datetime] = None
    subscription_assigned_by: Optional[str] = None
    subscription_notes: Optional[str] = None
    auto_renew: bool
    donation_fee_percent: Optional[float] = None
    donation_fee_fixed_amount: Optional[float] = None
    donation_fee_min_amount: Optional[float] = None
    fee_description: Optional[str] = None
    stripe_connect_id: Optional[str] = None
    stripe_charges_enabled: bool
    stripe_payouts_enabled: bool
    user_count: int = 0
    donor_count: int = 0
    donation_count: int = 0


class ImpersonateResponse(BaseModel):
    token: str
    user_id: str
    ngo_id: str
    expires_in_minutes: int
