from __future__ import annotations

import numpy as np

from tradesim.models.profile import SimulationRequest
from tradesim.models.types import (
    DistributionBucket,
    SimulationRun,
    SimulationStatistics,
    SkipReason,
)

BUCKET_COUNT = 20
PROFIT_FACTOR_CAP = 999.0

_PAUSE_REASONS = (
    SkipReason.WEEK_PAUSED,
    SkipReason.DRAWDOWN_PAUSE,
    SkipReason.CONSECUTIVE_LOSS_STOP,
)


def aggregate_statistics(runs: list[SimulationRun], request: SimulationRequest) -> SimulationStatistics:
    if not runs:
        raise ValueError("Cannot aggregate statistics over zero runs")

    pnls = np.sort(np.array([r.total_pnl_cents for r in runs], dtype=float))
    returns = np.sort(np.array([r.total_return_percent for r in runs], dtype=float))
    drawdowns = np.sort(np.array([r.max_drawdown_percent for r in runs], dtype=float))
    n = len(runs)

    mean_return = float(np.mean(returns))
    return_std = float(np.std(returns))
    sharpe = mean_return / return_std if return_std > 0 else 0.0

    downside = returns[returns < 0]
    downside_dev = float(np.sqrt(np.mean(downside ** 2))) if len(downside) > 0 else 1.0
    sortino = mean_return / downside_dev if downside_dev > 0 else 0.0

    gross_profit = float(np.sum(pnls[pnls > 0]))
    gross_loss = float(np.abs(np.sum(pnls[pnls < 0])))
    if gross_loss > 0:
        profit_factor = min(gross_profit / gross_loss, PROFIT_FACTOR_CAP)
    else:
        profit_factor = PROFIT_FACTOR_CAP if gross_profit > 0 else 0.0

    total_days = sum(r.total_trading_days for r in runs)
    expected_daily = float(np.sum(pnls)) / total_days if total_days > 0 else 0.0

    initial = request.initial_balance_cents
    min_balance_pcts = np.array(
        [r.min_balance_cents / initial * 100 if initial > 0 else 0.0 for r in runs],
    )

    return SimulationStatistics(
        median_pnl_cents=float(np.median(pnls)),
        mean_pnl_cents=float(np.mean(pnls)),
        best_case_pnl_cents=_percentile(pnls, 95),
        worst_case_pnl_cents=_percentile(pnls, 5),
        median_return_percent=float(np.median(returns)),
        mean_return_percent=mean_return,
        profitable_runs_pct=sum(1 for r in runs if r.total_pnl_cents > 0) / n * 100,
        monthly_limit_hit_pct=sum(1 for r in runs if r.monthly_limit_hit) / n * 100,
        avg_trading_days=_mean(r.total_trading_days for r in runs),
        avg_days_in_loss_recovery=_mean(r.days_in_loss_recovery for r in runs),
        avg_days_in_gain_compounding=_mean(r.days_in_gain_compounding for r in runs),
        avg_days_target_hit=_mean(r.days_target_hit for r in runs),
        avg_days_skipped_weekly_limit=_mean(r.days_skipped_weekly_limit for r in runs),
        avg_days_skipped_monthly_limit=_mean(r.days_skipped_monthly_limit for r in runs),
        avg_days_skipped_paused=_mean(
            sum(r.skip_counts.get(reason, 0) for reason in _PAUSE_REASONS) for r in runs
        ),
        avg_trades=_mean(r.total_trades for r in runs),
        median_max_drawdown_percent=float(np.median(drawdowns)),
        worst_max_drawdown_percent=_percentile(drawdowns, 95),
        mean_max_drawdown_percent=float(np.mean(drawdowns)),
        sharpe_ratio=sharpe,
        sortino_ratio=sortino,
        profit_factor=profit_factor,
        expected_daily_pnl_cents=expected_daily,
        risk_of_ruin_percent=sum(1 for r in runs if r.reached_ruin) / n * 100,
        median_min_balance_percent=float(np.median(min_balance_pcts)),
    )


def calculate_distribution(runs: list[SimulationRun]) -> list[DistributionBucket]:
    if not runs:
        return []

    pnls = np.array([r.total_pnl_cents for r in runs], dtype=float)
    lo = float(np.min(pnls))
    hi = float(np.max(pnls))
    width = (hi - lo) / BUCKET_COUNT or 1.0

    buckets: list[DistributionBucket] = []
    for i in range(BUCKET_COUNT):
        start = lo + i * width
        end = lo + (i + 1) * width
        if i == BUCKET_COUNT - 1:
            end = max(end, hi)
            count = int(np.sum((pnls >= start) & (pnls <= end)))
        else:
            count = int(np.sum((pnls >= start) & (pnls < end)))
        buckets.append(DistributionBucket(
            range_start=start,
            range_end=end,
            count=count,
            percentage=count / len(runs) * 100,
        ))
    return buckets


def select_sample_run(runs: list[SimulationRun]) -> SimulationRun:
    """The run at the middle index by total P&L (lower median on even counts)."""
    if not runs:
        raise ValueError("Cannot select a sample run from zero runs")
    ordered = sorted(runs, key=lambda r: r.total_pnl_cents)
    return ordered[(len(ordered) - 1) // 2]


def _percentile(sorted_values: np.ndarray, p: float) -> float:
    # Nearest-rank: the smallest value with at least p% of samples at or below it.
    idx = int(np.ceil(p / 100 * len(sorted_values))) - 1
    idx = max(0, min(idx, len(sorted_values) - 1))
    return float(sorted_values[idx])


def _mean(values) -> float:
    arr = np.fromiter(values, dtype=float)
    return float(np.mean(arr)) if len(arr) > 0 else 0.0
