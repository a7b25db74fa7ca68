"""Turn a stored risk-profile record into a flat `RiskProfile` for simulation.

A record is the plain dict shape used by the journal (and by `settings.yaml`):
limits and targets at the top level, the day-level decision tree nested under
``decision_tree``. Tag values (``type``, ``action``, ``limit_mode``) use the
same camelCase strings as the enums in ``tradesim.models.profile``.
"""
from __future__ import annotations

from tradesim.models.profile import (
    CompoundingGain,
    ConsecutiveLossRule,
    DrawdownAction,
    DrawdownControl,
    DrawdownTier,
    FixedCentsLimits,
    FixedRatioSizing,
    FixedSizing,
    GainMode,
    KellyFractionalSizing,
    LossLimits,
    LossRuleAction,
    PercentOfBalanceSizing,
    PercentOfInitialLimits,
    RecoveryStep,
    RiskProfile,
    RiskSizing,
    RMultipleLimits,
    SingleTargetGain,
)
from tradesim.models.types import round_cents


def resolve_recovery_steps(sequence: list[dict], base_risk_cents: int) -> tuple[RecoveryStep, ...]:
    steps: list[RecoveryStep] = []
    previous = base_risk_cents
    for raw in sequence:
        calc = raw["type"]
        if calc == "percentOfBase":
            risk = round_cents(base_risk_cents * raw["percent"] / 100.0)
        elif calc == "sameAsPrevious":
            risk = previous
        elif calc == "fixedCents":
            risk = int(raw["amount_cents"])
        else:
            raise ValueError(f"Unknown recovery step type: {calc}")

        multiplier = risk / base_risk_cents if base_risk_cents > 0 else 0.0
        steps.append(RecoveryStep(risk_cents=risk, risk_multiplier=multiplier))
        previous = risk
    return tuple(steps)


def parse_sizing(raw: dict | None) -> RiskSizing:
    if not raw:
        return FixedSizing()
    kind = raw["type"]
    if kind == "fixed":
        return FixedSizing()
    if kind == "percentOfBalance":
        return PercentOfBalanceSizing(risk_percent=raw["risk_percent"])
    if kind == "fixedRatio":
        return FixedRatioSizing(
            delta_cents=raw["delta_cents"],
            base_contract_risk_cents=raw["base_contract_risk_cents"],
        )
    if kind == "kellyFractional":
        return KellyFractionalSizing(divisor=raw["divisor"])
    raise ValueError(f"Unknown risk sizing type: {kind}")


def parse_limits(mode: str | None, limits_percent: dict | None, limits_r: dict | None) -> LossLimits:
    if mode is None or mode == "fixedCents":
        return FixedCentsLimits()
    if mode == "percentOfInitial":
        raw = limits_percent or {}
        return PercentOfInitialLimits(
            daily=raw.get("daily"), weekly=raw.get("weekly"), monthly=raw.get("monthly"),
        )
    if mode == "rMultiples":
        raw = limits_r or {}
        return RMultipleLimits(
            daily=raw.get("daily"), weekly=raw.get("weekly"), monthly=raw.get("monthly"),
        )
    raise ValueError(f"Unknown limit mode: {mode}")


def parse_gain_mode(raw: dict | None) -> tuple[GainMode, int | None]:
    """Returns the gain mode and the target it declares, if any."""
    if not raw:
        return SingleTargetGain(), None
    kind = raw["type"]
    if kind == "compounding":
        mode = CompoundingGain(
            reinvestment_percent=raw["reinvestment_percent"],
            stop_on_first_loss=raw.get("stop_on_first_loss", True),
        )
        return mode, raw.get("daily_target_cents")
    if kind == "singleTarget":
        return SingleTargetGain(), raw.get("daily_target_cents")
    raise ValueError(f"Unknown gain mode type: {kind}")


def parse_drawdown_control(raw: dict | None) -> DrawdownControl | None:
    if not raw:
        return None
    tiers = tuple(
        DrawdownTier(
            drawdown_percent=t["drawdown_percent"],
            action=DrawdownAction(t["action"]),
            reduce_percent=t.get("reduce_percent", 0.0),
        )
        for t in raw.get("tiers", [])
    )
    return DrawdownControl(
        tiers=tiers,
        recovery_threshold_percent=raw.get("recovery_threshold_percent", 0.0),
    )


def parse_loss_rules(raw: list[dict] | None) -> tuple[ConsecutiveLossRule, ...]:
    return tuple(
        ConsecutiveLossRule(
            consecutive_days=r["consecutive_days"],
            action=LossRuleAction(r["action"]),
            reduce_percent=r.get("reduce_percent", 0.0),
        )
        for r in raw or []
    )


def build_profile_for_sim(
    record: dict,
    *,
    win_rate: float,
    reward_risk_ratio: float,
    breakeven_rate: float = 0.0,
    commission_cents: int = 0,
    trading_days_per_month: int = 22,
    trading_days_per_week: int = 5,
) -> RiskProfile:
    tree = record.get("decision_tree", {})
    base_risk = int(record["base_risk_cents"])
    recovery = tree.get("loss_recovery", {})

    gain_mode, tree_target = parse_gain_mode(tree.get("gain_mode"))
    target = tree_target if tree_target is not None else record.get("daily_profit_target_cents")

    return RiskProfile(
        name=record.get("name", "unnamed"),
        win_rate=win_rate,
        reward_risk_ratio=reward_risk_ratio,
        breakeven_rate=breakeven_rate,
        base_risk_cents=base_risk,
        daily_loss_limit_cents=record.get("daily_loss_cents"),
        weekly_loss_limit_cents=record.get("weekly_loss_cents"),
        monthly_loss_limit_cents=record.get("monthly_loss_cents"),
        daily_target_cents=target,
        recovery_steps=resolve_recovery_steps(recovery.get("sequence", []), base_risk),
        execute_all_recovery_steps=recovery.get("execute_all_regardless", False),
        stop_after_recovery_sequence=recovery.get("stop_after_sequence", True),
        gain_mode=gain_mode,
        trading_days_per_month=trading_days_per_month,
        trading_days_per_week=trading_days_per_week,
        commission_cents=commission_cents,
        sizing=parse_sizing(tree.get("risk_sizing")),
        limits=parse_limits(tree.get("limit_mode"), tree.get("limits_percent"), tree.get("limits_r")),
        drawdown_control=parse_drawdown_control(tree.get("drawdown_control")),
        consecutive_loss_rules=parse_loss_rules(tree.get("consecutive_loss_rules")),
    )
