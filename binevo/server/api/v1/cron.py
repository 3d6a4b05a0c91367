"""
Scheduled Job Endpoints.

Called by an external scheduler. Every job is idempotent for the day it
runs, so a retried call does not send duplicate emails or invoices.
"""

from __future__ import annotations

from typing import Any, Dict

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from binevo.billing.invoice_generator import (
    check_overdue_invoices,
    generate_monthly_recurring_invoices,
    send_upcoming_payment_reminders,
)
from binevo.billing.subscription_manager import check_expiring_subscriptions
from binevo.core.database import get_session
from binevo.core.logging_config import get_logger
from binevo.messaging.automation_engine import resume_delayed_automations
from binevo.payments.connect import sync_connect_accounts
from binevo.server.services.deps import verify_cron_secret

logger = get_logger(__name__)

router = APIRouter(tags=["cron"], dependencies=[Depends(verify_cron_secret)])


@router.get("/subscriptions", response_model=Dict[str, Any], summary="Subscription Expiry Sweep")
async def subscriptions_job(session: AsyncSession = Depends(get_session)) -> Dict[str, Any]:
    """Warn NGOs about expiring plans, send last warnings and downgrade after the grace period."""
    return await check_expiring_subscriptions(session)


@router.get("/stripe-sync", response_model=Dict[str, Any], summary="Stripe Connect Status Sync")
async def stripe_sync_job(session: AsyncSession = Depends(get_session)) -> Dict[str, Any]:
    return await sync_connect_accounts(session)


@router.get("/billing", response_model=Dict[str, Any], summary="Billing Run")
async def billing_job(session: AsyncSession = Depends(get_session)) -> Dict[str, Any]:
    """
    Issue this month's recurring invoices, walk overdue invoices and send
    reminders for invoices due soon.
    """
    invoices = await generate_monthly_recurring_invoices(session)
    overdue = await check_overdue_invoices(session)
    reminders = await send_upcoming_payment_reminders(session)
    logger.info(f"Billing run: generated={invoices['generated']}, overdue={overdue}, reminders={reminders}")
    return {"invoices": invoices, "overdue": overdue, "upcoming_reminders": reminders}


@router.get("/automations", response_model=Dict[str, Any], summary="Resume Delayed Automations")
async def automations_job(session: AsyncSession = Depends(get_session)) -> Dict[str, Any]:
    return await resume_delayed_automations(session)
