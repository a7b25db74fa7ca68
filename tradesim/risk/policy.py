from __future__ import annotations

import math
from dataclasses import dataclass

from tradesim.models.profile import (
    DrawdownAction,
    FixedRatioSizing,
    KellyFractionalSizing,
    LossRuleAction,
    PercentOfBalanceSizing,
    PercentOfInitialLimits,
    RiskProfile,
    RMultipleLimits,
)
from tradesim.models.types import round_cents

# Tie-break order when two rules share a trigger: the harsher action wins.
_LOSS_RULE_SEVERITY = {
    LossRuleAction.REDUCE_RISK: 0,
    LossRuleAction.STOP_DAY: 1,
    LossRuleAction.PAUSE_WEEK: 2,
}


@dataclass(frozen=True)
class EffectiveRisk:
    base_risk_cents: int
    risk_cents: int
    daily_limit_cents: int | None
    weekly_limit_cents: int | None
    monthly_limit_cents: int | None
    risk_multiplier: float
    recovery_steps_cents: tuple[int, ...]
    pause_today: bool = False
    stop_today: bool = False
    pause_week: bool = False

    @property
    def blocked(self) -> bool:
        return self.pause_today or self.stop_today or self.pause_week


def kelly_fraction(win_rate_pct: float, reward_risk_ratio: float) -> float:
    """Full Kelly fraction f* = W - (1 - W) / R, floored at zero."""
    if reward_risk_ratio <= 0:
        return 0.0
    w = win_rate_pct / 100.0
    return max(0.0, w - (1 - w) / reward_risk_ratio)


def fixed_ratio_contracts(profit_cents: float, delta_cents: int) -> int:
    if delta_cents <= 0:
        return 1
    profit = max(0.0, profit_cents)
    return math.floor((-1 + math.sqrt(1 + 8 * profit / delta_cents)) / 2) + 1


def drawdown_recovered(
    current_drawdown_pct: float,
    trough_drawdown_pct: float,
    recovery_threshold_pct: float,
) -> bool:
    """True once the account has won back `recovery_threshold_pct` of its worst drawdown."""
    if recovery_threshold_pct <= 0 or trough_drawdown_pct <= 0:
        return False
    return current_drawdown_pct <= trough_drawdown_pct * (1 - recovery_threshold_pct / 100.0)


class RiskPolicyResolver:
    def __init__(self, profile: RiskProfile, initial_balance_cents: int):
        self.profile = profile
        self.initial_balance_cents = initial_balance_cents

    def resolve(
        self,
        balance_cents: int,
        accumulated_profit_cents: int,
        drawdown_pct: float,
        consecutive_losing_days: int,
        drawdown_is_recovered: bool = False,
        drawdown_pause_served: bool = False,
    ) -> EffectiveRisk:
        base_risk = self.effective_base_risk(balance_cents, accumulated_profit_cents)
        daily, weekly, monthly = self.effective_limits(base_risk)

        dd_mult, pause_today = self.drawdown_adjustment(
            drawdown_pct, drawdown_is_recovered, drawdown_pause_served,
        )
        loss_mult, stop_today, pause_week = self.consecutive_loss_adjustment(consecutive_losing_days)

        multiplier = dd_mult * loss_mult
        risk = max(1, round_cents(base_risk * multiplier))
        steps = tuple(
            max(1, round_cents(risk * self.profile.step_multiplier(step)))
            for step in self.profile.recovery_steps
        )

        return EffectiveRisk(
            base_risk_cents=base_risk,
            risk_cents=risk,
            daily_limit_cents=daily,
            weekly_limit_cents=weekly,
            monthly_limit_cents=monthly,
            risk_multiplier=multiplier,
            recovery_steps_cents=steps,
            pause_today=pause_today,
            stop_today=stop_today,
            pause_week=pause_week,
        )

    def effective_base_risk(self, balance_cents: int, accumulated_profit_cents: int) -> int:
        sizing = self.profile.sizing

        if isinstance(sizing, PercentOfBalanceSizing):
            return max(1, round_cents(balance_cents * sizing.risk_percent / 100.0))

        if isinstance(sizing, FixedRatioSizing):
            contracts = fixed_ratio_contracts(accumulated_profit_cents, sizing.delta_cents)
            return contracts * sizing.base_contract_risk_cents

        if isinstance(sizing, KellyFractionalSizing):
            divisor = sizing.divisor if sizing.divisor > 0 else 1.0
            f = kelly_fraction(self.profile.win_rate, self.profile.reward_risk_ratio) / divisor
            return max(1, round_cents(balance_cents * f))

        return self.profile.base_risk_cents

    def effective_limits(self, base_risk_cents: int) -> tuple[int | None, int | None, int | None]:
        p = self.profile
        fixed = (p.daily_loss_limit_cents, p.weekly_loss_limit_cents, p.monthly_loss_limit_cents)
        limits = p.limits

        if isinstance(limits, PercentOfInitialLimits):
            scale = self.initial_balance_cents / 100.0
        elif isinstance(limits, RMultipleLimits):
            scale = float(base_risk_cents)
        else:
            return tuple(_active_limit(v) for v in fixed)

        params = (limits.daily, limits.weekly, limits.monthly)
        return tuple(
            _active_limit(round_cents(scale * param) if param is not None else fallback)
            for param, fallback in zip(params, fixed)
        )

    def drawdown_adjustment(
        self, drawdown_pct: float, recovered: bool, pause_served: bool = False,
    ) -> tuple[float, bool]:
        control = self.profile.drawdown_control
        if control is None or not control.tiers or recovered:
            return 1.0, False

        applicable = [t for t in control.tiers if t.drawdown_percent <= drawdown_pct]
        if pause_served:
            # Pause already sat out at this depth; reduce tiers still apply until a new low.
            applicable = [t for t in applicable if t.action is not DrawdownAction.PAUSE]
        if not applicable:
            return 1.0, False

        tier = max(
            applicable,
            key=lambda t: (
                t.drawdown_percent,
                t.action is DrawdownAction.PAUSE,
                t.reduce_percent,
            ),
        )
        if tier.action is DrawdownAction.PAUSE:
            return 0.0, True
        return _reduction(tier.reduce_percent), False

    def consecutive_loss_adjustment(self, losing_days: int) -> tuple[float, bool, bool]:
        rules = self.profile.consecutive_loss_rules
        applicable = [r for r in rules if r.consecutive_days <= losing_days]
        if not applicable:
            return 1.0, False, False

        rule = max(
            applicable,
            key=lambda r: (r.consecutive_days, _LOSS_RULE_SEVERITY[r.action], r.reduce_percent),
        )
        if rule.action is LossRuleAction.STOP_DAY:
            return 0.0, True, False
        if rule.action is LossRuleAction.PAUSE_WEEK:
            return 0.0, False, True
        return _reduction(rule.reduce_percent), False, False


def _active_limit(limit_cents: int | None) -> int | None:
    # A zero or negative limit means "no limit".
    if limit_cents is None or limit_cents <= 0:
        return None
    return limit_cents


def _reduction(reduce_percent: float) -> float:
    return max(0.0, 1 - reduce_percent / 100.0)
