from __future__ import annotations

from collections.abc import Callable, Iterable
from itertools import cycle

import numpy as np

from tradesim.models.types import SimulatedTrade, TradeMode, TradeOutcome, round_cents

RandomSource = Callable[[], float]


def numpy_random_source(seed: int | None = None) -> RandomSource:
    return np.random.default_rng(seed).random


def sequence_random_source(draws: Iterable[float]) -> RandomSource:
    """Replays `draws` (each in [0, 1)) forever."""
    it = cycle(list(draws))
    return lambda: next(it)


def roll_outcome(draw: float, win_rate: float, breakeven_rate: float) -> TradeOutcome:
    roll = draw * 100
    if roll < breakeven_rate:
        return TradeOutcome.BREAKEVEN
    decisive = 100 - breakeven_rate
    if decisive <= 0:
        return TradeOutcome.BREAKEVEN
    if (roll - breakeven_rate) / decisive * 100 < win_rate:
        return TradeOutcome.WIN
    return TradeOutcome.LOSS


def trade_pnl(outcome: TradeOutcome, risk_cents: int, reward_risk_ratio: float, commission_cents: int) -> int:
    if outcome is TradeOutcome.BREAKEVEN:
        return -commission_cents
    if outcome is TradeOutcome.WIN:
        return round_cents(risk_cents * reward_risk_ratio) - commission_cents
    return -risk_cents - commission_cents


def simulate_trade(
    *,
    risk_cents: int,
    win_rate: float,
    breakeven_rate: float,
    reward_risk_ratio: float,
    commission_cents: int,
    day_number: int,
    trade_number_in_day: int,
    mode: TradeMode,
    day_pnl_cents: int,
    balance_cents: int,
    random_source: RandomSource,
) -> SimulatedTrade:
    outcome = roll_outcome(random_source(), win_rate, breakeven_rate)
    pnl = trade_pnl(outcome, risk_cents, reward_risk_ratio, commission_cents)
    return SimulatedTrade(
        day_number=day_number,
        trade_number_in_day=trade_number_in_day,
        mode=mode,
        risk_cents=risk_cents,
        outcome=outcome,
        pnl_cents=pnl,
        commission_cents=commission_cents,
        day_pnl_cents=day_pnl_cents + pnl,
        balance_after_cents=balance_cents + pnl,
    )
