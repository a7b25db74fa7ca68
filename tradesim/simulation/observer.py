from __future__ import annotations

from typing import Protocol

import structlog

from tradesim.models.types import MonthSummary, SimulatedDay, SimulatedTrade

logger = structlog.get_logger()


class SimulationObserver(Protocol):
    def on_trade(self, run_index: int, trade: SimulatedTrade) -> None: ...

    def on_day(self, run_index: int, day: SimulatedDay) -> None: ...

    def on_month(self, run_index: int, month: MonthSummary) -> None: ...


class NullObserver:
    def on_trade(self, run_index: int, trade: SimulatedTrade) -> None:
        pass

    def on_day(self, run_index: int, day: SimulatedDay) -> None:
        pass

    def on_month(self, run_index: int, month: MonthSummary) -> None:
        pass


class StructlogObserver:
    """Emits a structured trace of the first `max_runs` runs at debug level."""

    def __init__(self, max_runs: int = 1):
        self.max_runs = max_runs
        self.log = logger.bind(component="mc_trace")

    def _traced(self, run_index: int) -> bool:
        return run_index < self.max_runs

    def on_trade(self, run_index: int, trade: SimulatedTrade) -> None:
        if not self._traced(run_index):
            return
        self.log.debug(
            "trade_simulated",
            run=run_index,
            day=trade.day_number,
            trade=trade.trade_number_in_day,
            mode=trade.mode.value,
            outcome=trade.outcome.value,
            risk_cents=trade.risk_cents,
            pnl_cents=trade.pnl_cents,
            day_pnl_cents=trade.day_pnl_cents,
        )

    def on_day(self, run_index: int, day: SimulatedDay) -> None:
        if not self._traced(run_index):
            return
        if day.skipped:
            self.log.debug(
                "day_skipped",
                run=run_index,
                day=day.day_number,
                week=day.week_number,
                reason=day.skip_reason.value if day.skip_reason else None,
            )
            return
        self.log.debug(
            "day_simulated",
            run=run_index,
            day=day.day_number,
            week=day.week_number,
            mode=day.mode.value,
            trades=len(day.trades),
            day_pnl_cents=day.day_pnl_cents,
            target_hit=day.target_hit,
        )

    def on_month(self, run_index: int, month: MonthSummary) -> None:
        if not self._traced(run_index):
            return
        self.log.debug(
            "month_simulated",
            run=run_index,
            month=month.month_number,
            pnl_cents=month.total_pnl_cents,
            trades=month.total_trades,
            trading_days=month.total_trading_days,
            recovery_days=month.days_in_loss_recovery,
            compounding_days=month.days_in_gain_compounding,
            target_days=month.days_target_hit,
            monthly_limit_hit=month.monthly_limit_hit,
        )
