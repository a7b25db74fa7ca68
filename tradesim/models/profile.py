from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Union


class DrawdownAction(Enum):
    REDUCE_RISK = "reduceRisk"
    PAUSE = "pause"


class LossRuleAction(Enum):
    REDUCE_RISK = "reduceRisk"
    STOP_DAY = "stopDay"
    PAUSE_WEEK = "pauseWeek"


# ── Risk sizing modes ─────────────────────────────────────────────


@dataclass(frozen=True)
class FixedSizing:
    pass


@dataclass(frozen=True)
class PercentOfBalanceSizing:
    risk_percent: float


@dataclass(frozen=True)
class FixedRatioSizing:
    """Ralph Vince fixed ratio: one extra contract per `delta_cents` of profit."""

    delta_cents: int
    base_contract_risk_cents: int


@dataclass(frozen=True)
class KellyFractionalSizing:
    divisor: float


RiskSizing = Union[FixedSizing, PercentOfBalanceSizing, FixedRatioSizing, KellyFractionalSizing]


# ── Limit modes ───────────────────────────────────────────────────


@dataclass(frozen=True)
class FixedCentsLimits:
    pass


@dataclass(frozen=True)
class PercentOfInitialLimits:
    daily: float | None = None
    weekly: float | None = None
    monthly: float | None = None


@dataclass(frozen=True)
class RMultipleLimits:
    daily: float | None = None
    weekly: float | None = None
    monthly: float | None = None


LossLimits = Union[FixedCentsLimits, PercentOfInitialLimits, RMultipleLimits]


# ── Gain modes ────────────────────────────────────────────────────


@dataclass(frozen=True)
class SingleTargetGain:
    pass


@dataclass(frozen=True)
class CompoundingGain:
    reinvestment_percent: float
    stop_on_first_loss: bool = True


GainMode = Union[SingleTargetGain, CompoundingGain]


# ── Ladder, tiers, rules ──────────────────────────────────────────


@dataclass(frozen=True)
class RecoveryStep:
    risk_cents: int
    risk_multiplier: float | None = None  # relative to the un-adjusted base risk


@dataclass(frozen=True)
class DrawdownTier:
    drawdown_percent: float
    action: DrawdownAction
    reduce_percent: float = 0.0


@dataclass(frozen=True)
class DrawdownControl:
    tiers: tuple[DrawdownTier, ...] = ()
    recovery_threshold_percent: float = 0.0


@dataclass(frozen=True)
class ConsecutiveLossRule:
    consecutive_days: int
    action: LossRuleAction
    reduce_percent: float = 0.0


@dataclass(frozen=True)
class RiskProfile:
    name: str
    win_rate: float  # % of decisive (non-breakeven) trades
    reward_risk_ratio: float
    base_risk_cents: int
    breakeven_rate: float = 0.0  # % of all trades
    daily_loss_limit_cents: int | None = None
    weekly_loss_limit_cents: int | None = None
    monthly_loss_limit_cents: int | None = None
    daily_target_cents: int | None = None
    recovery_steps: tuple[RecoveryStep, ...] = ()
    execute_all_recovery_steps: bool = False
    stop_after_recovery_sequence: bool = True  # informational; the ladder always stops after its last step
    gain_mode: GainMode = field(default_factory=SingleTargetGain)
    trading_days_per_month: int = 22
    trading_days_per_week: int = 5
    commission_cents: int = 0
    sizing: RiskSizing = field(default_factory=FixedSizing)
    limits: LossLimits = field(default_factory=FixedCentsLimits)
    drawdown_control: DrawdownControl | None = None
    consecutive_loss_rules: tuple[ConsecutiveLossRule, ...] = ()

    @property
    def reinvestment_percent(self) -> float:
        if isinstance(self.gain_mode, CompoundingGain):
            return self.gain_mode.reinvestment_percent
        return 0.0

    @property
    def stop_on_first_loss(self) -> bool:
        if isinstance(self.gain_mode, CompoundingGain):
            return self.gain_mode.stop_on_first_loss
        return True

    def step_multiplier(self, step: RecoveryStep) -> float:
        if step.risk_multiplier is not None:
            return step.risk_multiplier
        if self.base_risk_cents <= 0:
            return 0.0
        return step.risk_cents / self.base_risk_cents


@dataclass(frozen=True)
class SimulationRequest:
    profile: RiskProfile
    simulation_count: int
    initial_balance_cents: int
    months_per_run: int = 1
    ruin_threshold_percent: float = 50.0

    @property
    def ruin_balance_cents(self) -> float:
        return self.initial_balance_cents * (1 - self.ruin_threshold_percent / 100.0)
