"""
Platform fee charged on online donations.

Each plan has a default (percent, fixed amount, minimum); an NGO may carry
individual overrides set by a super admin, applied field by field.
"""

from __future__ import annotations

from dataclasses import dataclass
from decimal import ROUND_HALF_UP, Decimal
from typing import Any, Dict, Optional

from binevo.core.models.domain import SubscriptionPlan


@dataclass(frozen=True)
class FeeConfig:
    percent: float
    fixed_amount: float
    min_amount: float


@dataclass(frozen=True)
class DonationFee:
    fee_amount: float
    fee_amount_cents: int
    net_amount: float
    gross_amount: float
    percent: float
    fixed_amount: float
    min_amount: float

    def as_dict(self) -> Dict[str, Any]:
        return {
            "fee_amount": self.fee_amount,
            "fee_amount_cents": self.fee_amount_cents,
            "net_amount": self.net_amount,
            "gross_amount": self.gross_amount,
            "percent": self.percent,
            "fixed_amount": self.fixed_amount,
            "min_amount": self.min_amount,
        }


PLAN_FEE_DEFAULTS: Dict[str, FeeConfig] = {
    SubscriptionPlan.BASIC.value: FeeConfig(percent=3.0, fixed_amount=1.0, min_amount=1.0),
    SubscriptionPlan.PRO.value: FeeConfig(percent=1.5, fixed_amount=0.0, min_amount=0.0),
    SubscriptionPlan.ELITE.value: FeeConfig(percent=0.0, fixed_amount=0.0, min_amount=0.0),
}

_FEE_DESCRIPTIONS = {
    SubscriptionPlan.ELITE.value: "0% comision platforma",
    SubscriptionPlan.PRO.value: "1.5% comision platforma",
}
_DEFAULT_DESCRIPTION = "3% + 1 RON comision platforma (minim 1 RON)"


def round_money(value: float) -> float:
    """Round half-up to two decimals (bani)."""
    return float(Decimal(str(value)).quantize(Decimal("0.01"), rounding=ROUND_HALF_UP))


def resolve_fee_config(
    plan: str,
    percent: Optional[float] = None,
    fixed_amount: Optional[float] = None,
    min_amount: Optional[float] = None,
) -> FeeConfig:
    defaults = PLAN_FEE_DEFAULTS.get(plan, PLAN_FEE_DEFAULTS[SubscriptionPlan.BASIC.value])
    return FeeConfig(
        percent=defaults.percent if percent is None else percent,
        fixed_amount=defaults.fixed_amount if fixed_amount is None else fixed_amount,
        min_amount=defaults.min_amount if min_amount is None else min_amount,
    )


def calculate_donation_fee(
    amount: float,
    plan: str,
    percent: Optional[float] = None,
    fixed_amount: Optional[float] = None,
    min_amount: Optional[float] = None,
) -> DonationFee:
    """Compute the platform fee for a donation of ``amount`` RON.

    The fee is raised to the minimum when one is set and never exceeds the
    donation itself.
    """
    config = resolve_fee_config(plan, percent, fixed_amount, min_amount)

    fee = amount * config.percent / 100 + config.fixed_amount
    if config.min_amount > 0 and fee < config.min_amount:
        fee = config.min_amount
    fee = min(fee, amount)
    fee = round_money(fee)

    return DonationFee(
        fee_amount=fee,
        fee_amount_cents=int(Decimal(str(fee * 100)).quantize(Decimal("1"), rounding=ROUND_HALF_UP)),
        net_amount=round_money(amount - fee),
        gross_amount=amount,
        percent=config.percent,
        fixed_amount=config.fixed_amount,
        min_amount=config.min_amount,
    )


def calculate_fee_for_ngo(amount: float, ngo: Any, plan: Optional[str] = None) -> DonationFee:
    """Fee for ``ngo`` using its plan (or ``plan``) and its stored overrides."""
    return calculate_donation_fee(
        amount,
        plan or ngo.subscription_plan,
        percent=ngo.donation_fee_percent,
        fixed_amount=ngo.donation_fee_fixed_amount,
        min_amount=ngo.donation_fee_min_amount,
    )


def get_fee_description(plan: str) -> str:
    return _FEE_DESCRIPTIONS.get(plan, _DEFAULT_DESCRIPTION)
