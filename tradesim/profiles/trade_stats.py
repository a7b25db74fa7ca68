from __future__ import annotations

from collections import defaultdict

import numpy as np

from tradesim.models.types import Trade, TradeOutcome
from tradesim.risk.policy import kelly_fraction

MIN_TRADES_FOR_SIMULATION = 10
PROFIT_FACTOR_CAP = 999.0


def compute_source_stats(trades: list[Trade]) -> dict:
    """Edge statistics of a set of journal trades, in the simulator's terms.

    `decisive_win_rate_pct` excludes breakevens and is what a `RiskProfile`
    expects as `win_rate`; `breakeven_rate_pct` is over all trades.
    """
    if not trades:
        return {"error": "no_trades", "total_trades": 0}

    total = len(trades)
    wins = sum(1 for t in trades if t.outcome is TradeOutcome.WIN)
    losses = sum(1 for t in trades if t.outcome is TradeOutcome.LOSS)
    breakevens = total - wins - losses
    decisive = wins + losses

    r_values = np.array([t.r_multiple for t in trades if t.r_multiple is not None], dtype=float)
    winning_r = r_values[r_values > 0]
    losing_r = np.abs(r_values[r_values < 0])

    avg_win_r = float(np.mean(winning_r)) if len(winning_r) > 0 else 1.0
    avg_loss_r = float(np.mean(losing_r)) if len(losing_r) > 0 else 1.0
    reward_risk = avg_win_r / avg_loss_r if avg_loss_r > 0 else 1.0

    gross_profit_r = float(np.sum(winning_r))
    gross_loss_r = float(np.sum(losing_r))
    if gross_loss_r > 0:
        profit_factor = min(gross_profit_r / gross_loss_r, PROFIT_FACTOR_CAP)
    else:
        profit_factor = PROFIT_FACTOR_CAP if gross_profit_r > 0 else 0.0

    total_commission = sum(t.commission_cents for t in trades)
    total_risk = sum(t.risk_cents or 0 for t in trades)
    commission_impact = total_commission / total_risk * 100 if total_risk > 0 else 0.0

    decisive_win_rate = wins / decisive * 100 if decisive > 0 else 0.0
    kelly = kelly_fraction(decisive_win_rate, reward_risk) * 100

    by_strategy: dict[str, dict[str, int]] = defaultdict(lambda: {"trades": 0, "wins": 0})
    for t in trades:
        entry = by_strategy[t.strategy_name or "No Strategy"]
        entry["trades"] += 1
        if t.outcome is TradeOutcome.WIN:
            entry["wins"] += 1

    entry_times = [t.entry_time for t in trades]

    return {
        "total_trades": total,
        "winning_trades": wins,
        "losing_trades": losses,
        "breakeven_trades": breakevens,
        "win_rate_pct": round(wins / total * 100, 2),
        "decisive_win_rate_pct": round(decisive_win_rate, 2),
        "breakeven_rate_pct": round(breakevens / total * 100, 2),
        "avg_win_r": round(avg_win_r, 4),
        "avg_loss_r": round(avg_loss_r, 4),
        "reward_risk_ratio": round(reward_risk, 4),
        "profit_factor": round(profit_factor, 3),
        "avg_r": round(float(np.mean(r_values)), 4) if len(r_values) > 0 else 0.0,
        "avg_commission_cents": int(round(total_commission / total)),
        "commission_impact_pct": round(commission_impact, 3),
        "kelly_full_pct": round(kelly, 2),
        "kelly_half_pct": round(kelly / 2, 2),
        "kelly_quarter_pct": round(kelly / 4, 2),
        "strategies": {
            name: {
                "trades": s["trades"],
                "win_rate_pct": round(s["wins"] / s["trades"] * 100, 2),
            }
            for name, s in by_strategy.items()
        },
        "date_from": min(entry_times).isoformat(),
        "date_to": max(entry_times).isoformat(),
    }
