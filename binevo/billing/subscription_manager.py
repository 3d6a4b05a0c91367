"""
Subscription lifecycle.

Super admins assign plans manually (or a paid invoice activates one); the
daily cron warns NGOs before expiry, keeps a five day grace period after
it, then downgrades to BASIC.
"""

from __future__ import annotations

import math
from datetime import datetime, timedelta
from typing import Any, Dict, Optional

from sqlalchemy.ext.asyncio import AsyncSession
from sqlmodel import select

from binevo.core.audit import record_audit
from binevo.core.database.base import utc_now
from binevo.core.database.entities import Ngo
from binevo.core.errors import InvalidRequestError, NotFoundError
from binevo.core.logging_config import get_logger
from binevo.core.models.domain import NotificationType, SubscriptionPlan, SubscriptionStatus
from binevo.core.monitoring import log_business_event
from binevo.messaging import templates
from binevo.messaging.notifications import create_notification, email_ngo_admins
from binevo.server.core.config import settings

from .plans import PLAN_ORDER, plan_price

logger = get_logger(__name__)

DAYS_PER_MONTH = 30
WARN_DAYS_BEFORE = 3
GRACE_DAYS = 5
LAST_WARNING_FROM_DAY = 3
NOTICE_INTERVAL_DAYS = 2


def _date_label(value: Optional[datetime]) -> Optional[str]:
    return value.strftime("%d.%m.%Y") if value else None


def _billing_url() -> str:
    return f"{settings.app_url}/dashboard/billing"


def _change_type(old_plan: str, new_plan: str) -> str:
    old_rank = PLAN_ORDER.get(old_plan, 0)
    new_rank = PLAN_ORDER.get(new_plan, 0)
    if new_rank > old_rank:
        return NotificationType.SUBSCRIPTION_UPGRADED.value
    if new_rank < old_rank:
        return NotificationType.SUBSCRIPTION_DOWNGRADED.value
    return NotificationType.SUBSCRIPTION_RENEWED.value


async def assign_subscription(
    session: AsyncSession,
    ngo_id: str,
    plan: str,
    *,
    duration_months: Optional[int] = None,
    assigned_by: Optional[str] = None,
    notes: Optional[str] = None,
    send_email: bool = True,
    now: Optional[datetime] = None,
) -> Ngo:
    """Set an NGO's plan. ``duration_months=None`` means no expiry."""
    if plan not in PLAN_ORDER:
        raise InvalidRequestError(f"Unknown plan {plan}")
    if duration_months is not None and duration_months < 1:
        raise InvalidRequestError("duration_months must be at least 1")
    ngo = await session.get(Ngo, ngo_id)
    if ngo is None:
        raise NotFoundError("NGO not found")

    now = now or utc_now()
    old_plan = ngo.subscription_plan
    ngo.subscription_plan = plan
    ngo.subscription_status = SubscriptionStatus.ACTIVE.value
    ngo.subscription_start_at = now
    ngo.subscription_expires_at = now + timedelta(days=duration_months * DAYS_PER_MONTH) if duration_months else None
    ngo.subscription_assigned_by = assigned_by
    ngo.subscription_notes = notes
    ngo.last_expiration_notice = None
    ngo.updated_at = now
    session.add(ngo)

    change = _change_type(old_plan, plan)
    await create_notification(
        session,
        ngo_id=ngo.id,
        type=change,
        title=f"Abonament {plan}",
        message=(
            f"Abonamentul {plan} este activ pana la {_date_label(ngo.subscription_expires_at)}."
            if ngo.subscription_expires_at
            else f"Abonamentul {plan} este activ."
        ),
        action_url="/dashboard/billing",
        details={"old_plan": old_plan, "new_plan": plan, "duration_months": duration_months},
        commit=False,
    )
    await record_audit(
        session,
        action="SUBSCRIPTION_ASSIGNED",
        entity_type="Ngo",
        entity_id=ngo.id,
        ngo_id=ngo.id,
        user_id=assigned_by,
        details={"old_plan": old_plan, "new_plan": plan, "duration_months": duration_months, "notes": notes},
        commit=False,
    )
    await session.commit()
    log_business_event("subscription_assigned", ngo_id=ngo.id, plan=plan, previous_plan=old_plan)

    if send_email:
        subject, body = templates.subscription_changed_email(ngo.name, plan, _date_label(ngo.subscription_expires_at))
        await email_ngo_admins(session, ngo.id, subject, body)
    return ngo


def extend_expiry(current_expiry: Optional[datetime], months: int, now: datetime) -> datetime:
    """Extend from the current expiry if still in the future, otherwise from now."""
    base = current_expiry if current_expiry and current_expiry > now else now
    return base + timedelta(days=months * DAYS_PER_MONTH)


async def renew_subscription(
    session: AsyncSession,
    ngo_id: str,
    months: int = 1,
    *,
    renewed_by: Optional[str] = None,
    now: Optional[datetime] = None,
) -> Ngo:
    if months < 1:
        raise InvalidRequestError("months must be at least 1")
    ngo = await session.get(Ngo, ngo_id)
    if ngo is None:
        raise NotFoundError("NGO not found")

    now = now or utc_now()
    ngo.subscription_expires_at = extend_expiry(ngo.subscription_expires_at, months, now)
    ngo.subscription_status = SubscriptionStatus.ACTIVE.value
    ngo.last_expiration_notice = None
    ngo.updated_at = now
    session.add(ngo)
    await record_audit(
        session,
        action="SUBSCRIPTION_RENEWED",
        entity_type="Ngo",
        entity_id=ngo.id,
        ngo_id=ngo.id,
        user_id=renewed_by,
        details={"months": months, "expires_at": ngo.subscription_expires_at.isoformat()},
        commit=False,
    )
    await session.commit()
    return ngo


def _noticed_recently(ngo: Ngo, now: datetime) -> bool:
    return bool(
        ngo.last_expiration_notice and ngo.last_expiration_notice > now - timedelta(days=NOTICE_INTERVAL_DAYS)
    )


async def check_expiring_subscriptions(session: AsyncSession, now: Optional[datetime] = None) -> Dict[str, Any]:
    """Daily subscription sweep: warn, count the grace period, downgrade."""
    now = now or utc_now()
    results = {"expiring": 0, "expired": 0, "warned": 0, "renewed": 0, "suspended": 0, "errors": []}
    paid_plans = [SubscriptionPlan.PRO.value, SubscriptionPlan.ELITE.value]

    # 1. Expiring within the warning window
    expiring_stmt = select(Ngo).where(
        (Ngo.subscription_plan.in_(paid_plans))
        & (Ngo.subscription_status == SubscriptionStatus.ACTIVE.value)
        & (Ngo.subscription_expires_at != None)  # noqa: E711
        & (Ngo.subscription_expires_at > now)
        & (Ngo.subscription_expires_at <= now + timedelta(days=WARN_DAYS_BEFORE))
    )
    for ngo in (await session.execute(expiring_stmt)).scalars().all():
        if _noticed_recently(ngo, now):
            continue
        if ngo.auto_renew and ngo.stripe_subscription_id:
            results["renewed"] += 1
            continue
        try:
            days_left = max(1, math.ceil((ngo.subscription_expires_at - now).total_seconds() / 86400))
            ngo.last_expiration_notice = now
            session.add(ngo)
            await create_notification(
                session,
                ngo_id=ngo.id,
                type=NotificationType.SUBSCRIPTION_EXPIRING.value,
                title="Abonamentul expira curand",
                message=f"Abonamentul {ngo.subscription_plan} expira in {days_left} zile.",
                action_url="/dashboard/billing",
            )
            subject, body = templates.subscription_expiring_email(
                ngo.name, ngo.subscription_plan, days_left, _billing_url()
            )
            await email_ngo_admins(session, ngo.id, subject, body)
            results["expiring"] += 1
        except Exception as e:
            logger.error(f"Expiry warning failed for NGO {ngo.id}: {e}", exc_info=True)
            results["errors"].append(f"{ngo.id}: {e}")

    # 2. Expired, still inside the grace period
    grace_stmt = select(Ngo).where(
        (Ngo.subscription_plan.in_(paid_plans))
        & (Ngo.subscription_expires_at != None)  # noqa: E711
        & (Ngo.subscription_expires_at <= now)
        & (Ngo.subscription_expires_at > now - timedelta(days=GRACE_DAYS))
    )
    for ngo in (await session.execute(grace_stmt)).scalars().all():
        if ngo.auto_renew and ngo.stripe_subscription_id:
            continue
        results["expired"] += 1
        days_past = (now - ngo.subscription_expires_at).days
        if days_past < LAST_WARNING_FROM_DAY or _noticed_recently(ngo, now):
            continue
        try:
            days_left = max(0, GRACE_DAYS - days_past)
            ngo.last_expiration_notice = now
            session.add(ngo)
            await create_notification(
                session,
                ngo_id=ngo.id,
                type=NotificationType.SUBSCRIPTION_EXPIRED.value,
                title="Ultima notificare: abonament expirat",
                message=f"In {days_left} zile contul va trece pe planul Basic.",
                action_url="/dashboard/billing",
            )
            subject, body = templates.subscription_last_warning_email(
                ngo.name, ngo.subscription_plan, days_left, _billing_url()
            )
            await email_ngo_admins(session, ngo.id, subject, body)
            results["warned"] += 1
        except Exception as e:
            logger.error(f"Grace warning failed for NGO {ngo.id}: {e}", exc_info=True)
            results["errors"].append(f"{ngo.id}: {e}")

    # 3. Past the grace period: downgrade
    lapsed_stmt = select(Ngo).where(
        (Ngo.subscription_plan.in_(paid_plans))
        & (Ngo.subscription_expires_at != None)  # noqa: E711
        & (Ngo.subscription_status == SubscriptionStatus.ACTIVE.value)
        & (Ngo.subscription_expires_at <= now - timedelta(days=GRACE_DAYS))
    )
    for ngo in (await session.execute(lapsed_stmt)).scalars().all():
        if ngo.auto_renew and ngo.stripe_subscription_id:
            results["renewed"] += 1
            continue
        try:
            old_plan = ngo.subscription_plan
            ngo.subscription_plan = SubscriptionPlan.BASIC.value
            ngo.subscription_status = SubscriptionStatus.EXPIRED.value
            ngo.subscription_expires_at = None
            ngo.last_expiration_notice = None
            ngo.updated_at = now
            session.add(ngo)
            await record_audit(
                session,
                action="SUBSCRIPTION_EXPIRED",
                entity_type="Ngo",
                entity_id=ngo.id,
                ngo_id=ngo.id,
                details={"old_plan": old_plan, "new_plan": SubscriptionPlan.BASIC.value},
                commit=False,
            )
            await create_notification(
                session,
                ngo_id=ngo.id,
                type=NotificationType.SUBSCRIPTION_DOWNGRADED.value,
                title="Cont trecut pe Basic",
                message=f"Abonamentul {old_plan} a expirat.",
                action_url="/dashboard/billing",
            )
            subject, body = templates.subscription_downgraded_email(ngo.name, old_plan)
            await email_ngo_admins(session, ngo.id, subject, body)
            results["suspended"] += 1
            log_business_event("subscription_expired", ngo_id=ngo.id, old_plan=old_plan)
        except Exception as e:
            logger.error(f"Downgrade failed for NGO {ngo.id}: {e}", exc_info=True)
            results["errors"].append(f"{ngo.id}: {e}")

    await session.commit()
    logger.info(
        f"Subscription sweep: expiring={results['expiring']}, expired={results['expired']}, "
        f"warned={results['warned']}, renewed={results['renewed']}, suspended={results['suspended']}, "
        f"errors={len(results['errors'])}"
    )
    return results


async def get_subscription_summary(session: AsyncSession, now: Optional[datetime] = None) -> Dict[str, Any]:
    now = now or utc_now()
    ngos = list((await session.execute(select(Ngo).where(Ngo.is_active == True))).scalars().all())  # noqa: E712

    by_plan = {plan: 0 for plan in PLAN_ORDER}
    expiring_soon = 0
    expired = 0
    monthly_revenue = 0
    for ngo in ngos:
        by_plan[ngo.subscription_plan] = by_plan.get(ngo.subscription_plan, 0) + 1
        if ngo.subscription_status == SubscriptionStatus.EXPIRED.value:
            expired += 1
            continue
        if ngo.subscription_expires_at and now < ngo.subscription_expires_at <= now + timedelta(days=7):
            expiring_soon += 1
        if ngo.subscription_status == SubscriptionStatus.ACTIVE.value:
            monthly_revenue += plan_price(ngo.subscription_plan)

    return {
        "total": len(ngos),
        "by_plan": by_plan,
        "expiring_soon": expiring_soon,
        "expired": expired,
        "monthly_revenue": monthly_revenue,
        "annual_revenue": monthly_revenue * 12,
    }
