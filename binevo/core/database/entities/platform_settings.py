"""
Platform-wide settings singleton (row id ``"platform"``).

Holds payment provider keys editable from the admin back office, the
platform's own billing identity and the invoice numbering counter.
"""

from __future__ import annotations

from datetime import datetime
from typing import Optional

from sqlmodel import Field

from ..base import Base, utc_now

PLATFORM_SETTINGS_ID = "platform"


class PlatformSettings(Base, table=True):
    """Table: bv_platform_settings"""

    __tablename__ = "bv_platform_settings"

    id: str = Field(default=PLATFORM_SETTINGS_ID, primary_key=True, max_length=32)

    stripe_enabled: bool = Field(default=False)
    stripe_secret_key: Optional[str] = Field(default=None, max_length=512)
    stripe_publishable_key: Optional[str] = Field(default=None, max_length=512)
    stripe_webhook_secret: Optional[str] = Field(default=None, max_length=512)
    stripe_connect_webhook_secret: Optional[str] = Field(default=None, max_length=512)

    netopia_enabled: bool = Field(default=False)
    netopia_api_key: Optional[str] = Field(default=None, max_length=512)
    netopia_merchant_id: Optional[str] = Field(default=None, max_length=128)
    netopia_public_key: Optional[str] = None
    netopia_sandbox: bool = Field(default=True)
    netopia_notify_url: Optional[str] = Field(default=None, max_length=512)

    email_provider: Optional[str] = Field(default=None, max_length=32)
    email_from: Optional[str] = Field(default=None, max_length=255)
    email_from_name: Optional[str] = Field(default=None, max_length=255)
    sendgrid_api_key: Optional[str] = Field(default=None, max_length=512)
    mailgun_api_key: Optional[str] = Field(default=None, max_length=512)
    mailgun_domain: Optional[str] = Field(default=None, max_length=255)

    company_name: str = Field(default="Binevo SRL", max_length=255)
    company_cui: Optional[str] = Field(default=None, max_length=32)
    company_reg_com: Optional[str] = Field(default=None, max_length=64)
    company_address: Optional[str] = Field(default=None, max_length=512)
    company_city: Optional[str] = Field(default=None, max_length=128)
    company_county: Optional[str] = Field(default=None, max_length=128)
    company_email: Optional[str] = Field(default=None, max_length=255)
    company_iban: Optional[str] = Field(default=None, max_length=64)
    company_bank: Optional[str] = Field(default=None, max_length=128)
    company_vat_payer: bool = Field(default=False)

    invoice_prefix: str = Field(default="BNV", max_length=16)
    invoice_series: Optional[str] = Field(default=None, max_length=16)
    invoice_next_number: int = Field(default=1)
    invoice_vat_rate: float = Field(default=19.0)
    invoice_payment_terms_days: int = Field(default=15)

    anaf_environment: str = Field(default="test", max_length=8)
    anaf_access_token: Optional[str] = None
    anaf_token_expires_at: Optional[datetime] = None

    updated_at: datetime = Field(default_factory=utc_now)
