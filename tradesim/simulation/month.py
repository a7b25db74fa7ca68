from __future__ import annotations

import math
from dataclasses import dataclass

from tradesim.models.profile import RiskProfile
from tradesim.models.types import DayMode, MonthSummary, SimulatedDay, SkipReason
from tradesim.risk.policy import EffectiveRisk, RiskPolicyResolver, drawdown_recovered
from tradesim.simulation.day import simulate_day
from tradesim.simulation.observer import NullObserver, SimulationObserver
from tradesim.simulation.outcome import RandomSource


@dataclass
class RunState:
    """Account state carried across days and months of a single run."""

    initial_balance_cents: int
    balance_cents: int
    peak_balance_cents: int
    min_balance_cents: int
    accumulated_profit_cents: int = 0
    max_drawdown_cents: int = 0
    max_drawdown_percent: float = 0.0
    trough_drawdown_percent: float = 0.0
    consecutive_losing_days: int = 0
    week_paused: bool = False
    drawdown_paused: bool = False
    pause_served_drawdown_percent: float | None = None
    day_offset: int = 0
    week_offset: int = 0

    @classmethod
    def start(cls, initial_balance_cents: int) -> RunState:
        return cls(
            initial_balance_cents=initial_balance_cents,
            balance_cents=initial_balance_cents,
            peak_balance_cents=initial_balance_cents,
            min_balance_cents=initial_balance_cents,
        )

    @property
    def drawdown_cents(self) -> int:
        return self.peak_balance_cents - self.balance_cents

    @property
    def drawdown_percent(self) -> float:
        if self.peak_balance_cents <= 0:
            return 0.0
        return self.drawdown_cents / self.peak_balance_cents * 100

    def apply_day(self, day: SimulatedDay) -> None:
        for trade in day.trades:
            self.min_balance_cents = min(self.min_balance_cents, trade.balance_after_cents)

        self.balance_cents += day.day_pnl_cents
        self.accumulated_profit_cents += day.day_pnl_cents
        self.min_balance_cents = min(self.min_balance_cents, self.balance_cents)

        if day.day_pnl_cents >= 0:
            self.consecutive_losing_days = 0
        else:
            self.consecutive_losing_days += 1

        if self.balance_cents >= self.peak_balance_cents:
            self.peak_balance_cents = self.balance_cents
            self.trough_drawdown_percent = 0.0
            self.pause_served_drawdown_percent = None

        dd_pct = self.drawdown_percent
        self.trough_drawdown_percent = max(self.trough_drawdown_percent, dd_pct)
        self.max_drawdown_cents = max(self.max_drawdown_cents, self.drawdown_cents)
        self.max_drawdown_percent = max(self.max_drawdown_percent, dd_pct)


def simulate_month(
    profile: RiskProfile,
    resolver: RiskPolicyResolver,
    state: RunState,
    month_number: int,
    random_source: RandomSource,
    observer: SimulationObserver | None = None,
    run_index: int = 0,
) -> MonthSummary:
    observer = observer or NullObserver()
    per_week = max(1, profile.trading_days_per_week)
    starting_balance = state.balance_cents

    days: list[SimulatedDay] = []
    skip_counts = {reason: 0 for reason in SkipReason}
    monthly_pnl = 0
    weekly_pnl = 0
    total_trades = 0
    recovery_days = 0
    compounding_days = 0
    target_days = 0
    weekly_limit_hits = 0
    monthly_limit_hit = False

    for day_in_month in range(1, profile.trading_days_per_month + 1):
        day_number = state.day_offset + day_in_month
        week_number = state.week_offset + math.ceil(day_in_month / per_week)

        if (day_in_month - 1) % per_week == 0:
            weekly_pnl = 0
            state.week_paused = False
            state.drawdown_paused = False

        effective = resolver.resolve(
            balance_cents=state.balance_cents,
            accumulated_profit_cents=state.accumulated_profit_cents,
            drawdown_pct=state.drawdown_percent,
            consecutive_losing_days=state.consecutive_losing_days,
            drawdown_is_recovered=_is_recovered(profile, state),
            drawdown_pause_served=_pause_served(state),
        )

        skip_reason = _gate(effective, state, monthly_pnl, weekly_pnl)
        if skip_reason is not None:
            if skip_reason is SkipReason.MONTHLY_LIMIT:
                monthly_limit_hit = True
            skip_counts[skip_reason] += 1
            day = SimulatedDay(
                day_number=day_number,
                week_number=week_number,
                mode=DayMode.LOSS_RECOVERY,
                skipped=True,
                skip_reason=skip_reason,
            )
            days.append(day)
            observer.on_day(run_index, day)
            continue

        day = simulate_day(
            profile,
            effective,
            state.balance_cents,
            day_number,
            week_number,
            random_source,
            on_trade=lambda t: observer.on_trade(run_index, t),
        )
        days.append(day)
        observer.on_day(run_index, day)

        state.apply_day(day)
        monthly_pnl += day.day_pnl_cents
        weekly_pnl += day.day_pnl_cents
        total_trades += len(day.trades)

        if day.mode is DayMode.LOSS_RECOVERY:
            recovery_days += 1
        else:
            compounding_days += 1
        if day.target_hit:
            target_days += 1

        if effective.weekly_limit_cents is not None and weekly_pnl <= -effective.weekly_limit_cents:
            weekly_limit_hits += 1
        if effective.monthly_limit_cents is not None and monthly_pnl <= -effective.monthly_limit_cents:
            monthly_limit_hit = True

    state.day_offset += profile.trading_days_per_month
    state.week_offset += math.ceil(profile.trading_days_per_month / per_week)
    state.week_paused = False
    state.drawdown_paused = False

    summary = MonthSummary(
        month_number=month_number,
        days=days,
        starting_balance_cents=starting_balance,
        ending_balance_cents=state.balance_cents,
        total_pnl_cents=monthly_pnl,
        total_trades=total_trades,
        total_trading_days=sum(1 for d in days if not d.skipped),
        days_in_loss_recovery=recovery_days,
        days_in_gain_compounding=compounding_days,
        days_target_hit=target_days,
        skip_counts=skip_counts,
        times_weekly_limit_hit=weekly_limit_hits,
        monthly_limit_hit=monthly_limit_hit,
    )
    observer.on_month(run_index, summary)
    return summary


def _is_recovered(profile: RiskProfile, state: RunState) -> bool:
    control = profile.drawdown_control
    if control is None:
        return False
    return drawdown_recovered(
        state.drawdown_percent,
        state.trough_drawdown_percent,
        control.recovery_threshold_percent,
    )


def _pause_served(state: RunState) -> bool:
    served = state.pause_served_drawdown_percent
    return served is not None and state.drawdown_percent <= served


def _gate(
    effective: EffectiveRisk,
    state: RunState,
    monthly_pnl: int,
    weekly_pnl: int,
) -> SkipReason | None:
    if effective.monthly_limit_cents is not None and monthly_pnl <= -effective.monthly_limit_cents:
        return SkipReason.MONTHLY_LIMIT
    if effective.weekly_limit_cents is not None and weekly_pnl <= -effective.weekly_limit_cents:
        return SkipReason.WEEKLY_LIMIT
    if state.week_paused:
        return SkipReason.WEEK_PAUSED
    if state.drawdown_paused:
        return SkipReason.DRAWDOWN_PAUSE
    if effective.pause_today:
        # Sit out the rest of the week; the pause re-arms only below this depth.
        state.drawdown_paused = True
        state.pause_served_drawdown_percent = state.drawdown_percent
        return SkipReason.DRAWDOWN_PAUSE
    if effective.stop_today or effective.pause_week:
        # Sitting out serves the losing streak; otherwise the rule would fire forever.
        state.consecutive_losing_days = 0
        if effective.pause_week:
            state.week_paused = True
        return SkipReason.CONSECUTIVE_LOSS_STOP
    return None
