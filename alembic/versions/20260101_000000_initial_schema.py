"""Initial schema for Binevo

Revision ID: 20260101_000000
Revises: None
Create Date: 2026-01-01 00:00:00.000000

Creates every bv_ table of the platform:
- Tenants and users (NGOs, users, password reset tokens, extension API tokens)
- Donor CRM (donors, tags, tag assignments, consent history, donations)
- Messaging (campaigns, messages, recipients, automations, notifications)
- Platform billing (invoices, platform settings singleton)
- LinkedIn prospects and the audit log

It also seeds the platform settings row.

Revision format: YYYYMMDD_HHMMSS_description

"""

from datetime import datetime, timezone
from typing import Sequence, Union

import sqlalchemy as sa

from alembic import op

# revision identifiers, used by Alembic.
revision: str = "20260101_000000"
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def _id() -> sa.Column:
    return sa.Column("id", sa.String(64), nullable=False)


def _ngo_fk(nullable: bool = False) -> sa.Column:
    return sa.Column("ngo_id", sa.String(64), sa.ForeignKey("bv_ngos.id"), nullable=nullable)


def _timestamps() -> list:
    return [
        sa.Column("created_at", sa.DateTime(), nullable=False),
        sa.Column("updated_at", sa.DateTime(), nullable=False),
    ]


def upgrade() -> None:
    """Create all tables and seed the platform settings."""

    # Create bv_ngos table
    op.create_table(
        "bv_ngos",
        _id(),
        sa.Column("name", sa.String(255), nullable=False),
        sa.Column("slug", sa.String(255), nullable=False),
        sa.Column("description", sa.Text(), nullable=True),
        sa.Column("logo_url", sa.String(512), nullable=True),
        sa.Column("website", sa.String(512), nullable=True),
        sa.Column("email", sa.String(255), nullable=True),
        sa.Column("phone", sa.String(64), nullable=True),
        sa.Column("cui", sa.String(32), nullable=True),
        sa.Column("address", sa.String(512), nullable=True),
        sa.Column("city", sa.String(128), nullable=True),
        sa.Column("county", sa.String(128), nullable=True),
        sa.Column("iban", sa.String(64), nullable=True),
        sa.Column("bank_name", sa.String(128), nullable=True),
        sa.Column("revolut_tag", sa.String(64), nullable=True),
        sa.Column("revolut_phone", sa.String(32), nullable=True),
        sa.Column("revolut_link", sa.String(512), nullable=True),
        sa.Column("is_active", sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column("is_verified", sa.Boolean(), nullable=False, server_default=sa.false()),
        # Subscription
        sa.Column("subscription_plan", sa.String(16), nullable=False, server_default="BASIC"),
        sa.Column("subscription_status", sa.String(16), nullable=False, server_default="active"),
        sa.Column("subscription_start_at", sa.DateTime(), nullable=True),
        sa.Column("subscription_expires_at", sa.DateTime(), nullable=True),
        sa.Column("subscription_assigned_by", sa.String(64), nullable=True),
        sa.Column("subscription_notes", sa.Text(), nullable=True),
        sa.Column("last_expiration_notice", sa.DateTime(), nullable=True),
        sa.Column("auto_renew", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("stripe_subscription_id", sa.String(128), nullable=True),
        sa.Column("stripe_customer_id", sa.String(128), nullable=True),
        sa.Column("stripe_payment_method_id", sa.String(128), nullable=True),
        sa.Column("payment_method", sa.String(32), nullable=True),
        # Donation fee overrides
        sa.Column("donation_fee_percent", sa.Float(), nullable=True),
        sa.Column("donation_fee_fixed_amount", sa.Float(), nullable=True),
        sa.Column("donation_fee_min_amount", sa.Float(), nullable=True),
        # Stripe Connect
        sa.Column("stripe_connect_id", sa.String(128), nullable=True),
        sa.Column("stripe_connect_status", sa.String(16), nullable=False, server_default="not_created"),
        sa.Column("stripe_connect_onboarded", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("stripe_charges_enabled", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("stripe_payouts_enabled", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("stripe_requirements", sa.JSON(), nullable=True),
        sa.Column("stripe_last_sync_at", sa.DateTime(), nullable=True),
        # Public counters
        sa.Column("total_raised", sa.Float(), nullable=False, server_default="0"),
        sa.Column("donor_count_public", sa.Integer(), nullable=False, server_default="0"),
        # Messaging senders
        sa.Column("sender_email", sa.String(255), nullable=True),
        sa.Column("sender_name", sa.String(255), nullable=True),
        sa.Column("sendgrid_api_key", sa.String(512), nullable=True),
        sa.Column("sms_sender_id", sa.String(32), nullable=True),
        sa.Column("twilio_account_sid", sa.String(128), nullable=True),
        sa.Column("twilio_auth_token", sa.String(512), nullable=True),
        sa.Column("twilio_phone_number", sa.String(32), nullable=True),
        # Billing identity
        sa.Column("billing_name", sa.String(255), nullable=True),
        sa.Column("billing_cui", sa.String(32), nullable=True),
        sa.Column("billing_address", sa.String(512), nullable=True),
        sa.Column("billing_city", sa.String(128), nullable=True),
        sa.Column("billing_county", sa.String(128), nullable=True),
        sa.Column("billing_email", sa.String(255), nullable=True),
        # Mini-site
        sa.Column("minisite_config", sa.JSON(), nullable=False, server_default="{}"),
        sa.Column("minisite_published", sa.Boolean(), nullable=False, server_default=sa.true()),
        *_timestamps(),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("slug", name="uq_bv_ngos_slug"),
        sa.Index("ix_bv_ngos_slug", "slug"),
        sa.Index("ix_bv_ngos_subscription_expires_at", "subscription_expires_at"),
    )

    # Create bv_users table
    op.create_table(
        "bv_users",
        _id(),
        sa.Column("email", sa.String(255), nullable=False),
        sa.Column("password_hash", sa.String(255), nullable=False),
        sa.Column("name", sa.String(255), nullable=False),
        sa.Column("role", sa.String(32), nullable=False, server_default="NGO_ADMIN"),
        _ngo_fk(nullable=True),
        sa.Column("is_active", sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column("last_login_at", sa.DateTime(), nullable=True),
        *_timestamps(),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("email", name="uq_bv_users_email"),
        sa.Index("ix_bv_users_email", "email"),
        sa.Index("ix_bv_users_ngo_id", "ngo_id"),
    )

    # Create bv_password_reset_tokens table
    op.create_table(
        "bv_password_reset_tokens",
        _id(),
        sa.Column("token", sa.String(128), nullable=False),
        sa.Column("user_id", sa.String(64), sa.ForeignKey("bv_users.id"), nullable=False),
        sa.Column("expires_at", sa.DateTime(), nullable=False),
        sa.Column("used_at", sa.DateTime(), nullable=True),
        sa.Column("created_at", sa.DateTime(), nullable=False),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("token", name="uq_bv_password_reset_tokens_token"),
        sa.Index("ix_bv_password_reset_tokens_user_id", "user_id"),
    )

    # Create bv_api_tokens table
    op.create_table(
        "bv_api_tokens",
        _id(),
        _ngo_fk(),
        sa.Column("user_id", sa.String(64), sa.ForeignKey("bv_users.id"), nullable=True),
        sa.Column("token", sa.String(128), nullable=False),
        sa.Column("name", sa.String(255), nullable=False, server_default="Chrome Extension"),
        sa.Column("is_active", sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column("last_used_at", sa.DateTime(), nullable=True),
        sa.Column("created_at", sa.DateTime(), nullable=False),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("token", name="uq_bv_api_tokens_token"),
        sa.Index("ix_bv_api_tokens_ngo_id", "ngo_id"),
    )

    # Create bv_donors table
    op.create_table(
        "bv_donors",
        _id(),
        _ngo_fk(),
        sa.Column("email", sa.String(255), nullable=True),
        sa.Column("email_encrypted", sa.Text(), nullable=True),
        sa.Column("phone", sa.String(64), nullable=True),
        sa.Column("phone_encrypted", sa.Text(), nullable=True),
        sa.Column("name", sa.String(255), nullable=True),
        sa.Column("notes", sa.Text(), nullable=True),
        sa.Column("preferred_channel", sa.String(8), nullable=False, server_default="EMAIL"),
        sa.Column("donor_type", sa.String(16), nullable=False, server_default="INDIVIDUAL"),
        sa.Column("company_name", sa.String(255), nullable=True),
        sa.Column("company_cui", sa.String(32), nullable=True),
        sa.Column("status", sa.String(16), nullable=False, server_default="ACTIVE"),
        sa.Column("email_consent", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("sms_consent", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("privacy_consent", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("is_anonymized", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("source", sa.String(64), nullable=True),
        sa.Column("total_donated", sa.Float(), nullable=False, server_default="0"),
        sa.Column("donation_count", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("last_donation_at", sa.DateTime(), nullable=True),
        *_timestamps(),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("ngo_id", "email", name="uq_bv_donors_ngo_email"),
        sa.Index("ix_bv_donors_ngo_id", "ngo_id"),
        sa.Index("ix_bv_donors_email", "email"),
        sa.Index("ix_bv_donors_status", "status"),
    )

    # Create bv_tags table
    op.create_table(
        "bv_tags",
        _id(),
        _ngo_fk(),
        sa.Column("name", sa.String(64), nullable=False),
        sa.Column("color", sa.String(16), nullable=False, server_default="#6366f1"),
        sa.Column("created_at", sa.DateTime(), nullable=False),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("ngo_id", "name", name="uq_bv_tags_ngo_name"),
        sa.Index("ix_bv_tags_ngo_id", "ngo_id"),
    )

    # Create bv_donor_tags table
    op.create_table(
        "bv_donor_tags",
        sa.Column("donor_id", sa.String(64), sa.ForeignKey("bv_donors.id"), nullable=False),
        sa.Column("tag_id", sa.String(64), sa.ForeignKey("bv_tags.id"), nullable=False),
        sa.Column("created_at", sa.DateTime(), nullable=False),
        sa.PrimaryKeyConstraint("donor_id", "tag_id"),
    )

    # Create bv_consent_records table
    op.create_table(
        "bv_consent_records",
        _id(),
        sa.Column("donor_id", sa.String(64), sa.ForeignKey("bv_donors.id"), nullable=False),
        sa.Column("type", sa.String(32), nullable=False),
        sa.Column("granted", sa.Boolean(), nullable=False),
        sa.Column("source", sa.String(64), nullable=False),
        sa.Column("ip_address", sa.String(64), nullable=True),
        sa.Column("user_agent", sa.String(512), nullable=True),
        sa.Column("created_at", sa.DateTime(), nullable=False),
        sa.PrimaryKeyConstraint("id"),
        sa.Index("ix_bv_consent_records_donor_id", "donor_id"),
    )

    # Create bv_campaigns table
    op.create_table(
        "bv_campaigns",
        _id(),
        _ngo_fk(),
        sa.Column("name", sa.String(255), nullable=False),
        sa.Column("type", sa.String(32), nullable=False, server_default="CUSTOM"),
        sa.Column("channel", sa.String(8), nullable=False, server_default="EMAIL"),
        sa.Column("status", sa.String(16), nullable=False, server_default="DRAFT"),
        sa.Column("subject", sa.String(255), nullable=True),
        sa.Column("email_body", sa.Text(), nullable=True),
        sa.Column("sms_body", sa.Text(), nullable=True),
        sa.Column("preview_text", sa.String(255), nullable=True),
        sa.Column("segment_query", sa.JSON(), nullable=True),
        sa.Column("is_ab_test", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("is_public", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("description", sa.Text(), nullable=True),
        sa.Column("goal_amount", sa.Float(), nullable=True),
        sa.Column("raised_amount", sa.Float(), nullable=False, server_default="0"),
        sa.Column("scheduled_at", sa.DateTime(), nullable=True),
        sa.Column("sent_at", sa.DateTime(), nullable=True),
        sa.Column("recipient_count", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("total_sent", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("total_failed", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("total_delivered", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("total_opened", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("total_clicked", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("total_bounced", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("total_complaints", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("total_unsubscribed", sa.Integer(), nullable=False, server_default="0"),
        *_timestamps(),
        sa.PrimaryKeyConstraint("id"),
        sa.Index("ix_bv_campaigns_ngo_id", "ngo_id"),
        sa.Index("ix_bv_campaigns_status", "status"),
    )

    # Create bv_donations table
    op.create_table(
        "bv_donations",
        _id(),
        _ngo_fk(),
        sa.Column("donor_id", sa.String(64), sa.ForeignKey("bv_donors.id"), nullable=True),
        sa.Column("campaign_id", sa.String(64), sa.ForeignKey("bv_campaigns.id"), nullable=True),
        sa.Column("amount", sa.Float(), nullable=False),
        sa.Column("currency", sa.String(8), nullable=False, server_default="RON"),
        sa.Column("status", sa.String(16), nullable=False, server_default="PENDING"),
        sa.Column("source", sa.String(32), nullable=False, server_default="manual"),
        sa.Column("is_recurring", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("fee_amount", sa.Float(), nullable=False, server_default="0"),
        sa.Column("net_amount", sa.Float(), nullable=False, server_default="0"),
        sa.Column("stripe_payment_intent_id", sa.String(128), nullable=True),
        sa.Column("stripe_checkout_session_id", sa.String(128), nullable=True),
        sa.Column("details", sa.JSON(), nullable=False, server_default="{}"),
        sa.Column("completed_at", sa.DateTime(), nullable=True),
        *_timestamps(),
        sa.PrimaryKeyConstraint("id"),
        sa.Index("ix_bv_donations_ngo_id", "ngo_id"),
        sa.Index("ix_bv_donations_donor_id", "donor_id"),
        sa.Index("ix_bv_donations_campaign_id", "campaign_id"),
        sa.Index("ix_bv_donations_status", "status"),
        sa.Index("ix_bv_donations_stripe_payment_intent_id", "stripe_payment_intent_id"),
        sa.Index("ix_bv_donations_stripe_checkout_session_id", "stripe_checkout_session_id"),
        sa.Index("ix_bv_donations_created_at", "created_at"),
    )

    # Create bv_donation_pledges table
    op.create_table(
        "bv_donation_pledges",
        _id(),
        _ngo_fk(),
        sa.Column("reference_code", sa.String(16), nullable=False),
        sa.Column("payment_method", sa.String(32), nullable=False),
        sa.Column("amount", sa.Float(), nullable=True),
        sa.Column("currency", sa.String(8), nullable=False, server_default="RON"),
        sa.Column("donor_name", sa.String(255), nullable=True),
        sa.Column("donor_email", sa.String(255), nullable=True),
        sa.Column("donor_phone", sa.String(64), nullable=True),
        sa.Column("status", sa.String(16), nullable=False, server_default="PENDING"),
        sa.Column("admin_notes", sa.Text(), nullable=True),
        sa.Column("verified_by", sa.String(64), nullable=True),
        sa.Column("verified_at", sa.DateTime(), nullable=True),
        sa.Column("donation_id", sa.String(64), sa.ForeignKey("bv_donations.id"), nullable=True),
        *_timestamps(),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("reference_code", name="uq_bv_donation_pledges_reference_code"),
        sa.Index("ix_bv_donation_pledges_ngo_id", "ngo_id"),
        sa.Index("ix_bv_donation_pledges_status", "status"),
        sa.Index("ix_bv_donation_pledges_created_at", "created_at"),
    )

    # Create bv_formular_230 table
    op.create_table(
        "bv_formular_230",
        _id(),
        _ngo_fk(),
        sa.Column("first_name", sa.String(128), nullable=False),
        sa.Column("last_name", sa.String(128), nullable=False),
        sa.Column("cnp_encrypted", sa.Text(), nullable=True),
        sa.Column("cnp_last4", sa.String(4), nullable=True),
        sa.Column("street", sa.String(255), nullable=True),
        sa.Column("number", sa.String(32), nullable=True),
        sa.Column("block", sa.String(32), nullable=True),
        sa.Column("staircase", sa.String(32), nullable=True),
        sa.Column("floor", sa.String(32), nullable=True),
        sa.Column("apartment", sa.String(32), nullable=True),
        sa.Column("city", sa.String(128), nullable=False, server_default=""),
        sa.Column("county", sa.String(128), nullable=False, server_default=""),
        sa.Column("postal_code", sa.String(16), nullable=True),
        sa.Column("phone", sa.String(64), nullable=True),
        sa.Column("email", sa.String(255), nullable=True),
        sa.Column("ngo_name", sa.String(255), nullable=False),
        sa.Column("ngo_cui", sa.String(32), nullable=False, server_default=""),
        sa.Column("ngo_iban", sa.String(64), nullable=True),
        sa.Column("ngo_contract_nr", sa.String(64), nullable=True),
        sa.Column("tax_year", sa.Integer(), nullable=False),
        sa.Column("percentage", sa.Float(), nullable=False, server_default="3.5"),
        sa.Column("source", sa.String(16), nullable=False, server_default="dashboard"),
        sa.Column("created_at", sa.DateTime(), nullable=False),
        sa.PrimaryKeyConstraint("id"),
        sa.Index("ix_bv_formular_230_ngo_id", "ngo_id"),
        sa.Index("ix_bv_formular_230_created_at", "created_at"),
    )

    # Create bv_messages table
    op.create_table(
        "bv_messages",
        _id(),
        _ngo_fk(),
        sa.Column("campaign_id", sa.String(64), sa.ForeignKey("bv_campaigns.id"), nullable=True),
        sa.Column("channel", sa.String(8), nullable=False),
        sa.Column("subject", sa.String(255), nullable=True),
        sa.Column("body", sa.Text(), nullable=False, server_default=""),
        sa.Column("status", sa.String(16), nullable=False, server_default="SENDING"),
        sa.Column("sent_count", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("failed_count", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("sent_at", sa.DateTime(), nullable=True),
        sa.Column("created_at", sa.DateTime(), nullable=False),
        sa.PrimaryKeyConstraint("id"),
        sa.Index("ix_bv_messages_ngo_id", "ngo_id"),
        sa.Index("ix_bv_messages_campaign_id", "campaign_id"),
    )

    # Create bv_message_recipients table
    op.create_table(
        "bv_message_recipients",
        _id(),
        sa.Column("message_id", sa.String(64), sa.ForeignKey("bv_messages.id"), nullable=False),
        sa.Column("donor_id", sa.String(64), sa.ForeignKey("bv_donors.id"), nullable=True),
        sa.Column("channel", sa.String(8), nullable=False),
        sa.Column("address", sa.String(255), nullable=False),
        sa.Column("status", sa.String(16), nullable=False, server_default="SENT"),
        sa.Column("provider_message_id", sa.String(255), nullable=True),
        sa.Column("error_message", sa.Text(), nullable=True),
        sa.Column("delivered_at", sa.DateTime(), nullable=True),
        sa.Column("opened_at", sa.DateTime(), nullable=True),
        sa.Column("clicked_at", sa.DateTime(), nullable=True),
        sa.Column("bounced_at", sa.DateTime(), nullable=True),
        sa.Column("created_at", sa.DateTime(), nullable=False),
        sa.PrimaryKeyConstraint("id"),
        sa.Index("ix_bv_message_recipients_message_id", "message_id"),
        sa.Index("ix_bv_message_recipients_donor_id", "donor_id"),
        sa.Index("ix_bv_message_recipients_provider_message_id", "provider_message_id"),
    )

    # Create bv_automations table
    op.create_table(
        "bv_automations",
        _id(),
        _ngo_fk(),
        sa.Column("name", sa.String(255), nullable=False),
        sa.Column("description", sa.Text(), nullable=True),
        sa.Column("trigger", sa.String(32), nullable=False),
        sa.Column("trigger_config", sa.JSON(), nullable=False, server_default="{}"),
        sa.Column("is_active", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("run_count", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("last_run_at", sa.DateTime(), nullable=True),
        *_timestamps(),
        sa.PrimaryKeyConstraint("id"),
        sa.Index("ix_bv_automations_ngo_id", "ngo_id"),
        sa.Index("ix_bv_automations_trigger", "trigger"),
    )

    # Create bv_automation_steps table
    op.create_table(
        "bv_automation_steps",
        _id(),
        sa.Column("automation_id", sa.String(64), sa.ForeignKey("bv_automations.id"), nullable=False),
        sa.Column("position", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("action", sa.String(32), nullable=False),
        sa.Column("config", sa.JSON(), nullable=False, server_default="{}"),
        sa.Column("delay_minutes", sa.Integer(), nullable=False, server_default="0"),
        sa.PrimaryKeyConstraint("id"),
        sa.Index("ix_bv_automation_steps_automation_id", "automation_id"),
    )

    # Create bv_automation_executions table
    op.create_table(
        "bv_automation_executions",
        _id(),
        sa.Column("automation_id", sa.String(64), sa.ForeignKey("bv_automations.id"), nullable=False),
        _ngo_fk(),
        sa.Column("donor_id", sa.String(64), sa.ForeignKey("bv_donors.id"), nullable=True),
        sa.Column("status", sa.String(16), nullable=False, server_default="running"),
        sa.Column("current_step", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("context", sa.JSON(), nullable=False, server_default="{}"),
        sa.Column("error", sa.Text(), nullable=True),
        sa.Column("resume_at", sa.DateTime(), nullable=True),
        sa.Column("started_at", sa.DateTime(), nullable=False),
        sa.Column("completed_at", sa.DateTime(), nullable=True),
        sa.PrimaryKeyConstraint("id"),
        sa.Index("ix_bv_automation_executions_automation_id", "automation_id"),
        sa.Index("ix_bv_automation_executions_ngo_id", "ngo_id"),
        sa.Index("ix_bv_automation_executions_status", "status"),
        sa.Index("ix_bv_automation_executions_resume_at", "resume_at"),
    )

    # Create bv_notifications table
    op.create_table(
        "bv_notifications",
        _id(),
        _ngo_fk(),
        sa.Column("user_id", sa.String(64), sa.ForeignKey("bv_users.id"), nullable=True),
        sa.Column("type", sa.String(32), nullable=False),
        sa.Column("title", sa.String(255), nullable=False),
        sa.Column("message", sa.Text(), nullable=False),
        sa.Column("action_url", sa.String(512), nullable=True),
        sa.Column("is_read", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("details", sa.JSON(), nullable=False, server_default="{}"),
        sa.Column("created_at", sa.DateTime(), nullable=False),
        sa.PrimaryKeyConstraint("id"),
        sa.Index("ix_bv_notifications_ngo_id", "ngo_id"),
        sa.Index("ix_bv_notifications_is_read", "is_read"),
        sa.Index("ix_bv_notifications_created_at", "created_at"),
    )

    # Create bv_invoices table
    op.create_table(
        "bv_invoices",
        _id(),
        _ngo_fk(),
        sa.Column("invoice_number", sa.String(64), nullable=False),
        sa.Column("invoice_series", sa.String(32), nullable=False),
        sa.Column("status", sa.String(16), nullable=False, server_default="ISSUED"),
        sa.Column("issue_date", sa.DateTime(), nullable=False),
        sa.Column("due_date", sa.DateTime(), nullable=False),
        sa.Column("paid_at", sa.DateTime(), nullable=True),
        sa.Column("seller_name", sa.String(255), nullable=False),
        sa.Column("seller_cui", sa.String(32), nullable=True),
        sa.Column("seller_reg_com", sa.String(64), nullable=True),
        sa.Column("seller_address", sa.String(512), nullable=True),
        sa.Column("seller_city", sa.String(128), nullable=True),
        sa.Column("seller_county", sa.String(128), nullable=True),
        sa.Column("seller_iban", sa.String(64), nullable=True),
        sa.Column("seller_bank", sa.String(128), nullable=True),
        sa.Column("seller_vat_payer", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("buyer_name", sa.String(255), nullable=False),
        sa.Column("buyer_cui", sa.String(32), nullable=True),
        sa.Column("buyer_address", sa.String(512), nullable=True),
        sa.Column("buyer_city", sa.String(128), nullable=True),
        sa.Column("buyer_county", sa.String(128), nullable=True),
        sa.Column("buyer_email", sa.String(255), nullable=True),
        sa.Column("items", sa.JSON(), nullable=False, server_default="[]"),
        sa.Column("subtotal", sa.Float(), nullable=False, server_default="0"),
        sa.Column("vat_rate", sa.Float(), nullable=False, server_default="0"),
        sa.Column("vat_amount", sa.Float(), nullable=False, server_default="0"),
        sa.Column("total_amount", sa.Float(), nullable=False, server_default="0"),
        sa.Column("currency", sa.String(8), nullable=False, server_default="RON"),
        sa.Column("subscription_plan", sa.String(16), nullable=True),
        sa.Column("subscription_month", sa.String(7), nullable=True),
        sa.Column("payment_token", sa.String(128), nullable=False),
        sa.Column("payment_method", sa.String(32), nullable=True),
        sa.Column("stripe_checkout_session_id", sa.String(128), nullable=True),
        sa.Column("payment_proof_url", sa.String(512), nullable=True),
        sa.Column("payment_proof_note", sa.Text(), nullable=True),
        sa.Column("efactura_status", sa.String(32), nullable=True),
        sa.Column("efactura_upload_id", sa.String(64), nullable=True),
        sa.Column("notes", sa.Text(), nullable=True),
        sa.Column("details", sa.JSON(), nullable=False, server_default="{}"),
        *_timestamps(),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("invoice_number", name="uq_bv_invoices_invoice_number"),
        sa.UniqueConstraint("payment_token", name="uq_bv_invoices_payment_token"),
        sa.Index("ix_bv_invoices_ngo_id", "ngo_id"),
        sa.Index("ix_bv_invoices_status", "status"),
        sa.Index("ix_bv_invoices_subscription_month", "subscription_month"),
    )

    # Create bv_platform_settings table
    op.create_table(
        "bv_platform_settings",
        sa.Column("id", sa.String(32), nullable=False),
        sa.Column("stripe_enabled", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("stripe_secret_key", sa.String(512), nullable=True),
        sa.Column("stripe_publishable_key", sa.String(512), nullable=True),
        sa.Column("stripe_webhook_secret", sa.String(512), nullable=True),
        sa.Column("stripe_connect_webhook_secret", sa.String(512), nullable=True),
        sa.Column("netopia_enabled", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("netopia_api_key", sa.String(512), nullable=True),
        sa.Column("netopia_merchant_id", sa.String(128), nullable=True),
        sa.Column("netopia_public_key", sa.Text(), nullable=True),
        sa.Column("netopia_sandbox", sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column("netopia_notify_url", sa.String(512), nullable=True),
        sa.Column("email_provider", sa.String(32), nullable=True),
        sa.Column("email_from", sa.String(255), nullable=True),
        sa.Column("email_from_name", sa.String(255), nullable=True),
        sa.Column("sendgrid_api_key", sa.String(512), nullable=True),
        sa.Column("mailgun_api_key", sa.String(512), nullable=True),
        sa.Column("mailgun_domain", sa.String(255), nullable=True),
        sa.Column("company_name", sa.String(255), nullable=False, server_default="Binevo SRL"),
        sa.Column("company_cui", sa.String(32), nullable=True),
        sa.Column("company_reg_com", sa.String(64), nullable=True),
        sa.Column("company_address", sa.String(512), nullable=True),
        sa.Column("company_city", sa.String(128), nullable=True),
        sa.Column("company_county", sa.String(128), nullable=True),
        sa.Column("company_email", sa.String(255), nullable=True),
        sa.Column("company_iban", sa.String(64), nullable=True),
        sa.Column("company_bank", sa.String(128), nullable=True),
        sa.Column("company_vat_payer", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("invoice_prefix", sa.String(16), nullable=False, server_default="BNV"),
        sa.Column("invoice_series", sa.String(16), nullable=True),
        sa.Column("invoice_next_number", sa.Integer(), nullable=False, server_default="1"),
        sa.Column("invoice_vat_rate", sa.Float(), nullable=False, server_default="19"),
        sa.Column("invoice_payment_terms_days", sa.Integer(), nullable=False, server_default="15"),
        sa.Column("anaf_environment", sa.String(8), nullable=False, server_default="test"),
        sa.Column("anaf_access_token", sa.Text(), nullable=True),
        sa.Column("anaf_token_expires_at", sa.DateTime(), nullable=True),
        sa.Column("updated_at", sa.DateTime(), nullable=False),
        sa.PrimaryKeyConstraint("id"),
    )

    # Create bv_linkedin_prospects table
    op.create_table(
        "bv_linkedin_prospects",
        _id(),
        _ngo_fk(),
        sa.Column("full_name", sa.String(255), nullable=False),
        sa.Column("headline", sa.String(512), nullable=True),
        sa.Column("company", sa.String(255), nullable=True),
        sa.Column("location", sa.String(255), nullable=True),
        sa.Column("profile_url", sa.String(512), nullable=False),
        sa.Column("profile_image_url", sa.String(1024), nullable=True),
        sa.Column("status", sa.String(16), nullable=False, server_default="NEW"),
        sa.Column("notes", sa.Text(), nullable=True),
        sa.Column("tags", sa.JSON(), nullable=False, server_default="[]"),
        sa.Column("import_source", sa.String(32), nullable=False, server_default="chrome_extension"),
        sa.Column("imported_by", sa.String(64), nullable=True),
        *_timestamps(),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("ngo_id", "profile_url", name="uq_bv_prospects_ngo_url"),
        sa.Index("ix_bv_linkedin_prospects_ngo_id", "ngo_id"),
        sa.Index("ix_bv_linkedin_prospects_created_at", "created_at"),
    )

    # Create bv_audit_logs table
    op.create_table(
        "bv_audit_logs",
        _id(),
        sa.Column("ngo_id", sa.String(64), nullable=True),
        sa.Column("user_id", sa.String(64), nullable=True),
        sa.Column("action", sa.String(64), nullable=False),
        sa.Column("entity_type", sa.String(64), nullable=False),
        sa.Column("entity_id", sa.String(64), nullable=True),
        sa.Column("details", sa.JSON(), nullable=False, server_default="{}"),
        sa.Column("ip_address", sa.String(64), nullable=True),
        sa.Column("created_at", sa.DateTime(), nullable=False),
        sa.PrimaryKeyConstraint("id"),
        sa.Index("ix_bv_audit_logs_ngo_id", "ngo_id"),
        sa.Index("ix_bv_audit_logs_action", "action"),
        sa.Index("ix_bv_audit_logs_created_at", "created_at"),
    )

    # Seed the platform settings singleton
    platform_settings = sa.table(
        "bv_platform_settings",
        sa.column("id", sa.String),
        sa.column("company_name", sa.String),
        sa.column("invoice_prefix", sa.String),
        sa.column("invoice_next_number", sa.Integer),
        sa.column("invoice_vat_rate", sa.Float),
        sa.column("invoice_payment_terms_days", sa.Integer),
        sa.column("anaf_environment", sa.String),
        sa.column("updated_at", sa.DateTime),
    )
    op.bulk_insert(
        platform_settings,
        [
            {
                "id": "platform",
                "company_name": "Binevo SRL",
                "invoice_prefix": "BNV",
                "invoice_next_number": 1,
                "invoice_vat_rate": 19.0,
                "invoice_payment_terms_days": 15,
                "anaf_environment": "test",
                "updated_at": datetime.now(timezone.utc).replace(tzinfo=None),
            }
        ],
    )


def downgrade() -> None:
    """Drop all tables in reverse dependency order."""
    for table in (
        "bv_audit_logs",
        "bv_formular_230",
        "bv_donation_pledges",
        "bv_linkedin_prospects",
        "bv_platform_settings",
        "bv_invoices",
        "bv_notifications",
        "bv_automation_executions",
        "bv_automation_steps",
        "bv_automations",
        "bv_message_recipients",
        "bv_messages",
        "bv_donations",
        "bv_campaigns",
        "bv_consent_records",
        "bv_donor_tags",
        "bv_tags",
        "bv_donors",
        "bv_api_tokens",
        "bv_password_reset_tokens",
        "bv_users",
        "bv_ngos",
    ):
        op.drop_table(table)
