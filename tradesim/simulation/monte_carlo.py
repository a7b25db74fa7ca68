from __future__ import annotations

from collections.abc import Callable

import structlog

from tradesim.models.profile import SimulationRequest
from tradesim.models.types import SimulatedDay, SimulationResult, SimulationRun, SkipReason
from tradesim.risk.policy import RiskPolicyResolver
from tradesim.simulation.month import RunState, simulate_month
from tradesim.simulation.observer import NullObserver, SimulationObserver
from tradesim.simulation.outcome import RandomSource, numpy_random_source
from tradesim.simulation.statistics import (
    aggregate_statistics,
    calculate_distribution,
    select_sample_run,
)

logger = structlog.get_logger()


class SimulationCancelled(Exception):
    pass


def simulate_run(
    request: SimulationRequest,
    random_source: RandomSource,
    observer: SimulationObserver | None = None,
    run_index: int = 0,
) -> SimulationRun:
    """Chain `months_per_run` months into one independent trading career."""
    profile = request.profile
    resolver = RiskPolicyResolver(profile, request.initial_balance_cents)
    state = RunState.start(request.initial_balance_cents)

    months = [
        simulate_month(profile, resolver, state, month, random_source, observer, run_index)
        for month in range(1, request.months_per_run + 1)
    ]

    days: list[SimulatedDay] = [d for m in months for d in m.days]
    skip_counts = {reason: sum(m.skip_counts[reason] for m in months) for reason in SkipReason}

    return SimulationRun(
        days=days,
        months=months,
        initial_balance_cents=request.initial_balance_cents,
        final_balance_cents=state.balance_cents,
        total_pnl_cents=sum(m.total_pnl_cents for m in months),
        total_trades=sum(m.total_trades for m in months),
        total_trading_days=sum(m.total_trading_days for m in months),
        days_in_loss_recovery=sum(m.days_in_loss_recovery for m in months),
        days_in_gain_compounding=sum(m.days_in_gain_compounding for m in months),
        days_target_hit=sum(m.days_target_hit for m in months),
        skip_counts=skip_counts,
        times_weekly_limit_hit=sum(m.times_weekly_limit_hit for m in months),
        months_monthly_limit_hit=sum(1 for m in months if m.monthly_limit_hit),
        peak_balance_cents=state.peak_balance_cents,
        max_drawdown_cents=state.max_drawdown_cents,
        max_drawdown_percent=state.max_drawdown_percent,
        min_balance_cents=state.min_balance_cents,
        reached_ruin=state.min_balance_cents <= request.ruin_balance_cents,
    )


def simulate(
    request: SimulationRequest,
    random_source: RandomSource | None = None,
    observer: SimulationObserver | None = None,
    should_cancel: Callable[[], bool] | None = None,
) -> SimulationResult:
    """Run `simulation_count` independent careers and aggregate them."""
    if request.simulation_count < 1:
        raise ValueError(f"simulation_count must be at least 1, got {request.simulation_count}")
    random_source = random_source or numpy_random_source()
    observer = observer or NullObserver()

    logger.info(
        "simulation_started",
        profile=request.profile.name,
        runs=request.simulation_count,
        months=request.months_per_run,
        initial_balance_cents=request.initial_balance_cents,
    )

    runs: list[SimulationRun] = []
    for i in range(request.simulation_count):
        if should_cancel is not None and should_cancel():
            logger.warning("simulation_cancelled", completed_runs=i)
            raise SimulationCancelled(f"Cancelled after {i} runs")
        runs.append(simulate_run(request, random_source, observer, run_index=i))

    statistics = aggregate_statistics(runs, request)
    distribution = calculate_distribution(runs)
    sample_run = select_sample_run(runs)

    logger.info(
        "simulation_finished",
        runs=len(runs),
        median_pnl_cents=statistics.median_pnl_cents,
        risk_of_ruin_pct=round(statistics.risk_of_ruin_percent, 2),
    )

    return SimulationResult(
        request=request,
        statistics=statistics,
        distribution=distribution,
        sample_run=sample_run,
    )
