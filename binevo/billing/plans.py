"""
Plans, features and role permissions.

``has_permission`` answers "may this role do X", ``has_feature`` answers
"does this plan include X". Routers check both.
"""

from __future__ import annotations

from typing import Any, Dict, FrozenSet, Optional

from binevo.core.models.domain import SubscriptionPlan, SubscriptionStatus, UserRole

UNLIMITED = -1

_BASIC_FEATURES = frozenset(
    {
        "donors_view",
        "donors_manage",
        "campaigns_email",
        "ai_generator",
        "automations_basic",
        "gdpr_tools",
        "analytics",
        "export_csv",
    }
)
_PRO_FEATURES = _BASIC_FEATURES | {"campaigns_sms", "automations_advanced"}
_ELITE_FEATURES = _PRO_FEATURES | {"ab_testing", "ai_optimization", "linkedin_prospects"}

PLAN_FEATURES: Dict[str, FrozenSet[str]] = {
    SubscriptionPlan.BASIC.value: _BASIC_FEATURES,
    SubscriptionPlan.PRO.value: frozenset(_PRO_FEATURES),
    SubscriptionPlan.ELITE.value: frozenset(_ELITE_FEATURES),
}

PLAN_LIMITS: Dict[str, Dict[str, int]] = {
    SubscriptionPlan.BASIC.value: {"max_donors": 500, "max_active_automations": 3, "monthly_price": 0},
    SubscriptionPlan.PRO.value: {"max_donors": 5000, "max_active_automations": 20, "monthly_price": 149},
    SubscriptionPlan.ELITE.value: {
        "max_donors": UNLIMITED,
        "max_active_automations": UNLIMITED,
        "monthly_price": 349,
    },
}

PLAN_ORDER: Dict[str, int] = {
    SubscriptionPlan.BASIC.value: 0,
    SubscriptionPlan.PRO.value: 1,
    SubscriptionPlan.ELITE.value: 2,
}

ROLE_PERMISSIONS: Dict[str, FrozenSet[str]] = {
    UserRole.SUPER_ADMIN.value: frozenset({"*"}),
    UserRole.NGO_ADMIN.value: frozenset(
        {
            "donors:read",
            "donors:write",
            "donors:delete",
            "campaigns:read",
            "campaigns:write",
            "campaigns:send",
            "automations:read",
            "automations:write",
            "settings:read",
            "settings:write",
            "analytics:read",
            "audit:read",
            "gdpr:export",
            "gdpr:delete",
            "prospects:read",
            "prospects:write",
            "pledges:verify",
        }
    ),
    UserRole.STAFF.value: frozenset(
        {
            "donors:read",
            "donors:write",
            "campaigns:read",
            "campaigns:write",
            "automations:read",
            "analytics:read",
            "prospects:read",
            "prospects:write",
        }
    ),
    UserRole.VIEWER.value: frozenset({"donors:read", "campaigns:read", "analytics:read"}),
}


def has_permission(role: str, permission: str) -> bool:
    granted = ROLE_PERMISSIONS.get(role)
    if not granted:
        return False
    return "*" in granted or permission in granted


def has_feature(plan: str, feature: str, role: Optional[str] = None) -> bool:
    if role == UserRole.SUPER_ADMIN.value:
        return True
    return feature in PLAN_FEATURES.get(plan, frozenset())


def get_plan_limit(plan: str, key: str) -> int:
    limits = PLAN_LIMITS.get(plan, PLAN_LIMITS[SubscriptionPlan.BASIC.value])
    return limits[key]


def get_donor_limit(plan: str) -> int:
    return get_plan_limit(plan, "max_donors")


def is_over_limit(plan: str, key: str, current: int) -> bool:
    """True when adding one more item would exceed the plan limit."""
    limit = get_plan_limit(plan, key)
    return limit != UNLIMITED and current >= limit


def is_over_donor_limit(plan: str, current: int) -> bool:
    return is_over_limit(plan, "max_donors", current)


def effective_plan(ngo: Any, role: Optional[str] = None) -> str:
    """Plan whose features apply right now.

    Super admins see everything; an expired or suspended subscription falls
    back to BASIC even if the stored plan was not downgraded yet.
    """
    if role == UserRole.SUPER_ADMIN.value:
        return SubscriptionPlan.ELITE.value
    if ngo is None:
        return SubscriptionPlan.BASIC.value
    if ngo.subscription_status in (SubscriptionStatus.EXPIRED.value, SubscriptionStatus.SUSPENDED.value):
        return SubscriptionPlan.BASIC.value
    plan = ngo.subscription_plan or SubscriptionPlan.BASIC.value
    return plan if plan in PLAN_FEATURES else SubscriptionPlan.BASIC.value


def plan_price(plan: str) -> int:
    return get_plan_limit(plan, "monthly_price")
