"""
Unit tests for the subscription lifecycle: manual assignment, renewal and
the daily expiry sweep.
"""

from datetime import datetime, timedelta

import pytest
from sqlmodel import select

from binevo.billing.subscription_manager import (
    assign_subscription,
    check_expiring_subscriptions,
    extend_expiry,
    get_subscription_summary,
    renew_subscription,
)
from binevo.core.database.entities import AuditLog, Ngo, Notification
from binevo.core.errors import InvalidRequestError, NotFoundError

NOW = datetime(2026, 3, 10, 12, 0, 0)


async def _make_ngo(session, slug: str, plan: str = "PRO", expires_at=None, **kwargs) -> Ngo:
    ngo = Ngo(name=slug.title(), slug=slug, subscription_plan=plan, subscription_expires_at=expires_at, **kwargs)
    session.add(ngo)
    await session.commit()
    return ngo


async def _notifications(session, ngo_id: str):
    stmt = select(Notification).where(Notification.ngo_id == ngo_id)
    return list((await session.execute(stmt)).scalars().all())


class TestAssignSubscription:
    async def test_assign_sets_plan_and_expiry(self, session, ngo, super_admin):
        updated = await assign_subscription(
            session, ngo.id, "PRO", duration_months=2, assigned_by=super_admin.id, notes="promo", now=NOW
        )

        assert updated.subscription_plan == "PRO"
        assert updated.subscription_status == "active"
        assert updated.subscription_start_at == NOW
        assert updated.subscription_expires_at == NOW + timedelta(days=60)
        assert updated.subscription_assigned_by == super_admin.id

    async def test_assign_records_notification_and_audit(self, session, ngo):
        await assign_subscription(session, ngo.id, "ELITE", duration_months=1, now=NOW, send_email=False)

        notifications = await _notifications(session, ngo.id)
        assert [n.type for n in notifications] == ["SUBSCRIPTION_UPGRADED"]
        stmt = select(AuditLog).where(AuditLog.action == "SUBSCRIPTION_ASSIGNED")
        audit = (await session.execute(stmt)).scalars().all()
        assert len(audit) == 1
        assert audit[0].details["new_plan"] == "ELITE"

    async def test_assign_without_duration_never_expires(self, session, ngo):
        updated = await assign_subscription(session, ngo.id, "PRO", duration_months=None, now=NOW)

        assert updated.subscription_expires_at is None

    async def test_downgrade_notification_type(self, session):
        ngo = await _make_ngo(session, "elite-ngo", plan="ELITE")

        await assign_subscription(session, ngo.id, "BASIC", now=NOW, send_email=False)

        assert [n.type for n in await _notifications(session, ngo.id)] == ["SUBSCRIPTION_DOWNGRADED"]

    async def test_unknown_plan_is_rejected(self, session, ngo):
        with pytest.raises(InvalidRequestError):
            await assign_subscription(session, ngo.id, "GOLD")

    async def test_missing_ngo(self, session):
        with pytest.raises(NotFoundError):
            await assign_subscription(session, "does-not-exist", "PRO")


class TestRenewSubscription:
    def test_extend_from_future_expiry(self):
        future = NOW + timedelta(days=10)
        assert extend_expiry(future, 1, NOW) == future + timedelta(days=30)

    def test_extend_from_now_when_already_expired(self):
        past = NOW - timedelta(days=10)
        assert extend_expiry(past, 1, NOW) == NOW + timedelta(days=30)

    async def test_renew_reactivates(self, session):
        ngo = await _make_ngo(
            session, "lapsed", expires_at=NOW - timedelta(days=1), subscription_status="suspended"
        )

        renewed = await renew_subscription(session, ngo.id, 3, now=NOW)

        assert renewed.subscription_status == "active"
        assert renewed.subscription_expires_at == NOW + timedelta(days=90)

    async def test_renew_rejects_zero_months(self, session, ngo):
        with pytest.raises(InvalidRequestError):
            await renew_subscription(session, ngo.id, 0)


class TestExpirySweep:
    async def test_warns_once_within_window(self, session):
        ngo = await _make_ngo(session, "expiring", expires_at=NOW + timedelta(days=2))

        first = await check_expiring_subscriptions(session, now=NOW)
        second = await check_expiring_subscriptions(session, now=NOW + timedelta(hours=6))

        assert first["expiring"] == 1
        assert second["expiring"] == 0
        await session.refresh(ngo)
        assert ngo.last_expiration_notice == NOW
        assert [n.type for n in await _notifications(session, ngo.id)] == ["SUBSCRIPTION_EXPIRING"]

    async def test_auto_renewing_subscription_is_not_warned(self, session):
        await _make_ngo(
            session,
            "auto",
            expires_at=NOW + timedelta(days=1),
            auto_renew=True,
            stripe_subscription_id="sub_123",
        )

        results = await check_expiring_subscriptions(session, now=NOW)

        assert results["renewed"] == 1
        assert results["expiring"] == 0

    async def test_warning_rounds_days_left_up(self, session):
        ngo = await _make_ngo(session, "half-days", expires_at=NOW + timedelta(days=2, hours=12))

        await check_expiring_subscriptions(session, now=NOW)

        [notification] = await _notifications(session, ngo.id)
        assert "in 3 zile" in notification.message

    async def test_auto_renewing_subscription_is_not_downgraded(self, session):
        ngo = await _make_ngo(
            session,
            "auto-lapsed",
            expires_at=NOW - timedelta(days=6),
            auto_renew=True,
            stripe_subscription_id="sub_1",
        )

        results = await check_expiring_subscriptions(session, now=NOW)

        assert results["renewed"] == 1
        assert results["suspended"] == 0
        await session.refresh(ngo)
        assert ngo.subscription_plan == "PRO"
        assert ngo.subscription_status == "active"

    async def test_suspended_subscription_is_not_downgraded_by_the_sweep(self, session):
        await _make_ngo(session, "suspended", expires_at=NOW - timedelta(days=20), subscription_status="suspended")

        results = await check_expiring_subscriptions(session, now=NOW)

        assert results["suspended"] == 0

    async def test_last_warning_inside_grace_period(self, session):
        await _make_ngo(session, "grace", expires_at=NOW - timedelta(days=3, hours=1))

        results = await check_expiring_subscriptions(session, now=NOW)

        assert results["expired"] == 1
        assert results["warned"] == 1

    async def test_early_grace_period_is_counted_but_not_warned(self, session):
        await _make_ngo(session, "fresh-expired", expires_at=NOW - timedelta(days=1))

        results = await check_expiring_subscriptions(session, now=NOW)

        assert results["expired"] == 1
        assert results["warned"] == 0

    async def test_downgrades_after_grace_period(self, session):
        ngo = await _make_ngo(session, "lapsed-elite", plan="ELITE", expires_at=NOW - timedelta(days=6))

        results = await check_expiring_subscriptions(session, now=NOW)

        assert results["suspended"] == 1
        await session.refresh(ngo)
        assert ngo.subscription_plan == "BASIC"
        assert ngo.subscription_status == "expired"
        assert ngo.subscription_expires_at is None

    async def test_basic_plans_are_ignored(self, session):
        await _make_ngo(session, "basic", plan="BASIC", expires_at=NOW - timedelta(days=30))

        results = await check_expiring_subscriptions(session, now=NOW)

        assert results["suspended"] == 0
        assert results["errors"] == []


async def test_subscription_summary(session):
    await _make_ngo(session, "pro-a", plan="PRO", expires_at=NOW + timedelta(days=3))
    await _make_ngo(session, "elite-a", plan="ELITE", expires_at=NOW + timedelta(days=90))
    await _make_ngo(session, "gone", plan="BASIC", subscription_status="expired")

    summary = await get_subscription_summary(session, now=NOW)

    assert summary["total"] == 3
    assert summary["by_plan"] == {"BASIC": 1, "PRO": 1, "ELITE": 1}
    assert summary["expiring_soon"] == 1
    assert summary["expired"] == 1
    assert summary["monthly_revenue"] == 149 + 349
    assert summary["annual_revenue"] == (149 + 349) * 12
