from __future__ import annotations

from collections.abc import Callable

from tradesim.models.profile import RiskProfile
from tradesim.models.types import DayMode, SimulatedDay, SimulatedTrade, TradeMode, round_cents
from tradesim.risk.policy import EffectiveRisk
from tradesim.simulation.outcome import RandomSource, simulate_trade

MAX_COMPOUNDING_TRADES = 50  # safety valve for reinvestment percentages near 100


class _DayLedger:
    def __init__(
        self,
        profile: RiskProfile,
        balance_cents: int,
        day_number: int,
        random_source: RandomSource,
        on_trade: Callable[[SimulatedTrade], None] | None,
    ):
        self.profile = profile
        self.balance_cents = balance_cents
        self.day_number = day_number
        self.random_source = random_source
        self.on_trade = on_trade
        self.trades: list[SimulatedTrade] = []
        self.pnl_cents = 0

    def take(self, risk_cents: int, mode: TradeMode) -> SimulatedTrade:
        p = self.profile
        trade = simulate_trade(
            risk_cents=risk_cents,
            win_rate=p.win_rate,
            breakeven_rate=p.breakeven_rate,
            reward_risk_ratio=p.reward_risk_ratio,
            commission_cents=p.commission_cents,
            day_number=self.day_number,
            trade_number_in_day=len(self.trades) + 1,
            mode=mode,
            day_pnl_cents=self.pnl_cents,
            balance_cents=self.balance_cents + self.pnl_cents,
            random_source=self.random_source,
        )
        self.trades.append(trade)
        self.pnl_cents += trade.pnl_cents
        if self.on_trade is not None:
            self.on_trade(trade)
        return trade


def simulate_day(
    profile: RiskProfile,
    effective: EffectiveRisk,
    balance_cents: int,
    day_number: int,
    week_number: int,
    random_source: RandomSource,
    on_trade: Callable[[SimulatedTrade], None] | None = None,
) -> SimulatedDay:
    """Run one day of the decision tree.

    T1 is always taken at the effective risk. A losing T1 walks the recovery
    ladder, a winning T1 enters gain mode, a breakeven T1 ends the day. The
    daily loss limit acts as a circuit breaker in both branches.
    """
    ledger = _DayLedger(profile, balance_cents, day_number, random_source, on_trade)
    target_hit = False

    t1 = ledger.take(effective.risk_cents, TradeMode.BASE)

    if t1.is_breakeven:
        mode = DayMode.GAIN_COMPOUNDING
    elif t1.is_loss:
        mode = DayMode.LOSS_RECOVERY
        _run_recovery_ladder(ledger, effective)
    else:
        mode = DayMode.GAIN_COMPOUNDING
        target_hit = _run_gain_mode(ledger, effective)

    return SimulatedDay(
        day_number=day_number,
        week_number=week_number,
        mode=mode,
        trades=ledger.trades,
        day_pnl_cents=ledger.pnl_cents,
        target_hit=target_hit,
        effective_risk_cents=effective.risk_cents,
    )


def _run_recovery_ladder(ledger: _DayLedger, effective: EffectiveRisk) -> None:
    limit = effective.daily_limit_cents
    commission = ledger.profile.commission_cents

    for step_risk in effective.recovery_steps_cents:
        if limit is not None and ledger.pnl_cents <= -limit:
            break

        risk = step_risk
        if limit is not None:
            # Reserve this trade's commission so a full loss lands at the limit, not past it.
            remaining = limit + ledger.pnl_cents - commission
            risk = min(step_risk, remaining)
            if risk <= 0:
                break

        trade = ledger.take(risk, TradeMode.LOSS_RECOVERY)
        if trade.is_win and not ledger.profile.execute_all_recovery_steps:
            break


def _run_gain_mode(ledger: _DayLedger, effective: EffectiveRisk) -> bool:
    profile = ledger.profile
    target = profile.daily_target_cents
    reinvest_pct = profile.reinvestment_percent

    def target_met() -> bool:
        return target is not None and ledger.pnl_cents >= target

    if reinvest_pct == 0:
        return target_met()

    limit = effective.daily_limit_cents
    accumulated_gain = ledger.pnl_cents

    for _ in range(MAX_COMPOUNDING_TRADES):
        if target_met():
            return True

        risk = round_cents(accumulated_gain * reinvest_pct / 100.0)
        if risk <= 0:
            break
        if limit is not None and ledger.pnl_cents - risk - profile.commission_cents < -limit:
            break

        trade = ledger.take(risk, TradeMode.GAIN_COMPOUNDING)
        if trade.is_breakeven:
            continue
        if trade.is_win:
            accumulated_gain = ledger.pnl_cents
        elif profile.stop_on_first_loss:
            break
        else:
            accumulated_gain = max(0, ledger.pnl_cents)
            if accumulated_gain <= 0:
                break

    return target_met()
