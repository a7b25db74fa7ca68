from __future__ import annotations

import math
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum

from tradesim.models.profile import SimulationRequest


def round_cents(amount: float) -> int:
    # Half-up, not banker's rounding: 0.5 cent always rounds away from the floor.
    return int(math.floor(amount + 0.5))


class TradeMode(Enum):
    BASE = "base"
    LOSS_RECOVERY = "lossRecovery"
    GAIN_COMPOUNDING = "gainCompounding"


class DayMode(Enum):
    LOSS_RECOVERY = "lossRecovery"
    GAIN_COMPOUNDING = "gainCompounding"


class TradeOutcome(Enum):
    WIN = "win"
    LOSS = "loss"
    BREAKEVEN = "breakeven"


class SkipReason(Enum):
    MONTHLY_LIMIT = "monthlyLimit"
    WEEKLY_LIMIT = "weeklyLimit"
    WEEK_PAUSED = "weekPaused"
    DRAWDOWN_PAUSE = "drawdownPause"
    CONSECUTIVE_LOSS_STOP = "consecutiveLossStop"


@dataclass(frozen=True)
class Trade:
    """A closed trade from the journal, used to derive a profile's edge."""

    outcome: TradeOutcome
    r_multiple: float | None
    pnl_cents: int
    risk_cents: int | None
    commission_cents: int
    entry_time: datetime
    strategy_name: str = ""


@dataclass
class SimulatedTrade:
    day_number: int
    trade_number_in_day: int
    mode: TradeMode
    risk_cents: int
    outcome: TradeOutcome
    pnl_cents: int
    commission_cents: int
    day_pnl_cents: int
    balance_after_cents: int

    @property
    def is_win(self) -> bool:
        return self.outcome is TradeOutcome.WIN

    @property
    def is_breakeven(self) -> bool:
        return self.outcome is TradeOutcome.BREAKEVEN

    @property
    def is_loss(self) -> bool:
        return self.outcome is TradeOutcome.LOSS


@dataclass
class SimulatedDay:
    day_number: int
    week_number: int
    mode: DayMode
    trades: list[SimulatedTrade] = field(default_factory=list)
    day_pnl_cents: int = 0
    target_hit: bool = False
    skipped: bool = False
    skip_reason: SkipReason | None = None
    effective_risk_cents: int = 0


@dataclass
class MonthSummary:
    month_number: int
    days: list[SimulatedDay]
    starting_balance_cents: int
    ending_balance_cents: int
    total_pnl_cents: int
    total_trades: int
    total_trading_days: int
    days_in_loss_recovery: int
    days_in_gain_compounding: int
    days_target_hit: int
    skip_counts: dict[SkipReason, int]
    times_weekly_limit_hit: int
    monthly_limit_hit: bool

    @property
    def return_percent(self) -> float:
        if self.starting_balance_cents == 0:
            return 0.0
        return self.total_pnl_cents / self.starting_balance_cents * 100


@dataclass
class SimulationRun:
    days: list[SimulatedDay]
    months: list[MonthSummary]
    initial_balance_cents: int
    final_balance_cents: int
    total_pnl_cents: int
    total_trades: int
    total_trading_days: int
    days_in_loss_recovery: int
    days_in_gain_compounding: int
    days_target_hit: int
    skip_counts: dict[SkipReason, int]
    times_weekly_limit_hit: int
    months_monthly_limit_hit: int
    peak_balance_cents: int
    max_drawdown_cents: int
    max_drawdown_percent: float
    min_balance_cents: int
    reached_ruin: bool

    @property
    def monthly_limit_hit(self) -> bool:
        return self.months_monthly_limit_hit > 0

    @property
    def total_return_percent(self) -> float:
        if self.initial_balance_cents == 0:
            return 0.0
        return (self.final_balance_cents - self.initial_balance_cents) / self.initial_balance_cents * 100

    @property
    def days_skipped_weekly_limit(self) -> int:
        return self.skip_counts.get(SkipReason.WEEKLY_LIMIT, 0)

    @property
    def days_skipped_monthly_limit(self) -> int:
        return self.skip_counts.get(SkipReason.MONTHLY_LIMIT, 0)


@dataclass(frozen=True)
class DistributionBucket:
    range_start: float
    range_end: float
    count: int
    percentage: float


@dataclass
class SimulationStatistics:
    median_pnl_cents: float
    mean_pnl_cents: float
    best_case_pnl_cents: float
    worst_case_pnl_cents: float
    median_return_percent: float
    mean_return_percent: float
    profitable_runs_pct: float
    monthly_limit_hit_pct: float
    avg_trading_days: float
    avg_days_in_loss_recovery: float
    avg_days_in_gain_compounding: float
    avg_days_target_hit: float
    avg_days_skipped_weekly_limit: float
    avg_days_skipped_monthly_limit: float
    avg_days_skipped_paused: float
    avg_trades: float
    median_max_drawdown_percent: float
    worst_max_drawdown_percent: float
    mean_max_drawdown_percent: float
    sharpe_ratio: float
    sortino_ratio: float
    profit_factor: float
    expected_daily_pnl_cents: float
    risk_of_ruin_percent: float
    median_min_balance_percent: float


@dataclass
class SimulationResult:
    request: SimulationRequest
    statistics: SimulationStatistics
    distribution: list[DistributionBucket]
    sample_run: SimulationRun
