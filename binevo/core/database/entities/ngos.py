"""
NGO (tenant) entity.

The NGO row carries the tenant profile together with its subscription,
Stripe Connect, messaging sender and mini-site configuration.
"""

from __future__ import annotations

from datetime import datetime
from typing import Any, Dict, Optional

from sqlmodel import JSON, Field

from ..base import Base, new_id, utc_now


class Ngo(Base, table=True):
    """Entity for a tenant organisation.

    Table: bv_ngos
    """

    __tablename__ = "bv_ngos"

    id: str = Field(default_factory=new_id, primary_key=True, max_length=64)
    name: str = Field(max_length=255)
    slug: str = Field(max_length=255, unique=True, index=True)
    description: Optional[str] = None
    logo_url: Optional[str] = Field(default=None, max_length=512)
    website: Optional[str] = Field(default=None, max_length=512)
    email: Optional[str] = Field(default=None, max_length=255)
    phone: Optional[str] = Field(default=None, max_length=64)
    cui: Optional[str] = Field(default=None, max_length=32)
    address: Optional[str] = Field(default=None, max_length=512)
    city: Optional[str] = Field(default=None, max_length=128)
    county: Optional[str] = Field(default=None, max_length=128)
    iban: Optional[str] = Field(default=None, max_length=64)
    bank_name: Optional[str] = Field(default=None, max_length=128)
    revolut_tag: Optional[str] = Field(default=None, max_length=64)
    revolut_phone: Optional[str] = Field(default=None, max_length=32)
    revolut_link: Optional[str] = Field(default=None, max_length=512)
    is_active: bool = Field(default=True)
    is_verified: bool = Field(default=False)

    # Subscription
    subscription_plan: str = Field(default="BASIC", max_length=16)
    subscription_status: str = Field(default="active", max_length=16)
    subscription_start_at: Optional[datetime] = None
    subscription_expires_at: Optional[datetime] = Field(default=None, index=True)
    subscription_assigned_by: Optional[str] = Field(default=None, max_length=64)
    subscription_notes: Optional[str] = None
    last_expiration_notice: Optional[datetime] = None
    auto_renew: bool = Field(default=False)
    stripe_subscription_id: Optional[str] = Field(default=None, max_length=128)
    stripe_customer_id: Optional[str] = Field(default=None, max_length=128)
    stripe_payment_method_id: Optional[str] = Field(default=None, max_length=128)
    payment_method: Optional[str] = Field(default=None, max_length=32)

    # Donation fee overrides (null means plan default)
    donation_fee_percent: Optional[float] = None
    donation_fee_fixed_amount: Optional[float] = None
    donation_fee_min_amount: Optional[float] = None

    # Stripe Connect
    stripe_connect_id: Optional[str] = Field(default=None, max_length=128)
    stripe_connect_status: str = Field(default="not_created", max_length=16)
    stripe_connect_onboarded: bool = Field(default=False)
    stripe_charges_enabled: bool = Field(default=False)
    stripe_payouts_enabled: bool = Field(default=False)
    stripe_requirements: Optional[Dict[str, Any]] = Field(default=None, sa_type=JSON)
    stripe_last_sync_at: Optional[datetime] = None

    # Public counters
    total_raised: float = Field(default=0.0)
    donor_count_public: int = Field(default=0)

    # Messaging senders
    sender_email: Optional[str] = Field(default=None, max_length=255)
    sender_name: Optional[str] = Field(default=None, max_length=255)
    sendgrid_api_key: Optional[str] = Field(default=None, max_length=512)
    sms_sender_id: Optional[str] = Field(default=None, max_length=32)
    twilio_account_sid: Optional[str] = Field(default=None, max_length=128)
    twilio_auth_token: Optional[str] = Field(default=None, max_length=512)
    twilio_phone_number: Optional[str] = Field(default=None, max_length=32)

    # Billing identity (buyer on platform invoices)
    billing_name: Optional[str] = Field(default=None, max_length=255)
    billing_cui: Optional[str] = Field(default=None, max_length=32)
    billing_address: Optional[str] = Field(default=None, max_length=512)
    billing_city: Optional[str] = Field(default=None, max_length=128)
    billing_county: Optional[str] = Field(default=None, max_length=128)
    billing_email: Optional[str] = Field(default=None, max_length=255)

    # Mini-site
    minisite_config: Dict[str, Any] = Field(default_factory=dict, sa_type=JSON)
    minisite_published: bool = Field(default=True)

    created_at: datetime = Field(default_factory=utc_now)
    updated_at: datetime = Field(default_factory=utc_now)

    def __repr__(self) -> str:
        return f"Ngo(id={self.id}, slug={self.slug}, plan={self.subscription_plan})"
