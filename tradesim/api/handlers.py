from __future__ import annotations

from dataclasses import fields, is_dataclass
from enum import Enum

import structlog
from pydantic import ValidationError

from tradesim.api.schemas import BacktestInformedPayload, SimulationPayload
from tradesim.api.validation import format_validation_errors
from tradesim.models.profile import (
    CompoundingGain,
    FixedCentsLimits,
    FixedRatioSizing,
    FixedSizing,
    KellyFractionalSizing,
    PercentOfBalanceSizing,
    PercentOfInitialLimits,
    RMultipleLimits,
    SimulationRequest,
    SingleTargetGain,
)
from tradesim.models.types import SimulationResult, SimulationRun, Trade
from tradesim.profiles.builder import build_profile_for_sim
from tradesim.profiles.trade_stats import MIN_TRADES_FOR_SIMULATION, compute_source_stats
from tradesim.simulation.monte_carlo import simulate
from tradesim.simulation.observer import SimulationObserver
from tradesim.simulation.outcome import RandomSource

logger = structlog.get_logger()

# Tags written next to variant dataclasses so serialized profiles stay readable.
_VARIANT_TAGS = {
    FixedSizing: "fixed",
    PercentOfBalanceSizing: "percentOfBalance",
    FixedRatioSizing: "fixedRatio",
    KellyFractionalSizing: "kellyFractional",
    FixedCentsLimits: "fixedCents",
    PercentOfInitialLimits: "percentOfInitial",
    RMultipleLimits: "rMultiples",
    SingleTargetGain: "singleTarget",
    CompoundingGain: "compounding",
}


def _success(message: str, data: dict) -> dict:
    return {"status": "success", "message": message, "data": data}


def _error(message: str, code: str, details: list[str]) -> dict:
    return {
        "status": "error",
        "message": message,
        "errors": [{"code": code, "detail": d} for d in details],
    }


def _plain(value):
    if isinstance(value, Enum):
        return value.value
    if is_dataclass(value) and not isinstance(value, type):
        out = {}
        tag = _VARIANT_TAGS.get(type(value))
        if tag is not None:
            out["type"] = tag
        for f in fields(value):
            out[f.name] = _plain(getattr(value, f.name))
        return out
    if isinstance(value, dict):
        return {_plain(k): _plain(v) for k, v in value.items()}
    if isinstance(value, (list, tuple)):
        return [_plain(v) for v in value]
    return value


def run_to_dict(run: SimulationRun) -> dict:
    out = _plain(run)
    out["total_return_percent"] = run.total_return_percent
    out["monthly_limit_hit"] = run.monthly_limit_hit
    out["days_skipped_weekly_limit"] = run.days_skipped_weekly_limit
    out["days_skipped_monthly_limit"] = run.days_skipped_monthly_limit
    for month_out, month in zip(out["months"], run.months):
        month_out["return_percent"] = month.return_percent
    return out


def result_to_dict(result: SimulationResult) -> dict:
    """JSON-ready view of a result: enums as their string values, cents as ints."""
    return {
        "request": _plain(result.request),
        "statistics": _plain(result.statistics),
        "distribution": _plain(result.distribution),
        "sample_run": run_to_dict(result.sample_run),
    }


def _run(
    params: SimulationPayload,
    random_source: RandomSource | None,
    observer: SimulationObserver | None,
) -> SimulationResult:
    profile = build_profile_for_sim(
        params.profile.model_dump(),
        win_rate=params.win_rate,
        reward_risk_ratio=params.reward_risk_ratio,
        breakeven_rate=params.breakeven_rate,
        commission_cents=params.commission_cents,
        trading_days_per_month=params.trading_days_per_month,
        trading_days_per_week=params.trading_days_per_week,
    )
    request = SimulationRequest(
        profile=profile,
        simulation_count=params.simulation_count,
        initial_balance_cents=params.initial_balance_cents,
        months_per_run=params.months_per_run,
        ruin_threshold_percent=params.ruin_threshold_percent,
    )
    return simulate(request, random_source=random_source, observer=observer)


def handle_simulation(
    payload: dict,
    random_source: RandomSource | None = None,
    observer: SimulationObserver | None = None,
) -> dict:
    try:
        params = SimulationPayload.model_validate(payload)
    except ValidationError as e:
        problems = format_validation_errors(e)
        logger.warning("simulation_request_rejected", problems=problems)
        return _error("Invalid simulation parameters", "VALIDATION_ERROR", problems)

    try:
        result = _run(params, random_source, observer)
    except Exception as e:
        logger.error("simulation_failed", error=str(e))
        return _error("Failed to run simulation", "SIMULATION_ERROR", [str(e)])

    return _success("Simulation completed", result_to_dict(result))


def _clamp(value: float, lo: float, hi: float) -> float:
    return max(lo, min(hi, value))


def handle_backtest_informed_simulation(
    trades: list[Trade],
    payload: dict,
    random_source: RandomSource | None = None,
    observer: SimulationObserver | None = None,
) -> dict:
    """Simulate a profile against the edge measured on historical trades.

    Win rate, reward:risk, breakeven rate and commission come from
    `compute_source_stats`; they are clamped into the ranges a manual
    simulation accepts. The source statistics are returned alongside the
    result under ``source_stats``.
    """
    try:
        params = BacktestInformedPayload.model_validate(payload)
    except ValidationError as e:
        problems = format_validation_errors(e)
        logger.warning("simulation_request_rejected", problems=problems)
        return _error("Invalid simulation parameters", "VALIDATION_ERROR", problems)

    stats = compute_source_stats(trades)
    if stats.get("error") == "no_trades":
        return _error("No trades to derive an edge from", "NO_TRADES", ["No completed trades found"])
    if stats["total_trades"] < MIN_TRADES_FOR_SIMULATION:
        return _error(
            "Not enough trades to derive an edge",
            "INSUFFICIENT_TRADES",
            [f"Need at least {MIN_TRADES_FOR_SIMULATION} trades, got {stats['total_trades']}"],
        )

    # Budget cap and ranges are re-checked on the derived edge.
    manual = {
        **params.model_dump(),
        "win_rate": _clamp(stats["decisive_win_rate_pct"], 1, 99),
        "reward_risk_ratio": _clamp(stats["reward_risk_ratio"], 0.1, 20),
        "breakeven_rate": _clamp(stats["breakeven_rate_pct"], 0, 80),
        "commission_cents": stats["avg_commission_cents"],
    }
    try:
        derived = SimulationPayload.model_validate(manual)
    except ValidationError as e:
        problems = format_validation_errors(e)
        logger.warning("simulation_request_rejected", problems=problems)
        return _error("Invalid simulation parameters", "VALIDATION_ERROR", problems)

    logger.info(
        "edge_derived",
        trades=stats["total_trades"],
        win_rate=derived.win_rate,
        reward_risk_ratio=derived.reward_risk_ratio,
        breakeven_rate=derived.breakeven_rate,
    )

    try:
        result = _run(derived, random_source, observer)
    except Exception as e:
        logger.error("simulation_failed", error=str(e))
        return _error("Failed to run simulation", "SIMULATION_ERROR", [str(e)])

    data = result_to_dict(result)
    data["source_stats"] = stats
    return _success("Simulation completed", data)
