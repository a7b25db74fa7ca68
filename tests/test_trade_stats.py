from datetime import datetime, timedelta

import pytest

from tradesim.models.types import Trade, TradeOutcome
from tradesim.profiles.trade_stats import PROFIT_FACTOR_CAP, compute_source_stats


def _make_trade(outcome, r_multiple, day=0, **overrides):
    defaults = dict(
        outcome=outcome,
        r_multiple=r_multiple,
        pnl_cents=int(r_multiple * 1000) if r_multiple is not None else 0,
        risk_cents=1000,
        commission_cents=100,
        entry_time=datetime(2024, 3, 1, 14, 30) + timedelta(days=day),
        strategy_name="ORB",
    )
    defaults.update(overrides)
    return Trade(**defaults)


@pytest.fixture
def journal():
    trades = [_make_trade(TradeOutcome.WIN, 2.0, day=i) for i in range(6)]
    trades += [_make_trade(TradeOutcome.LOSS, -1.0, day=6 + i) for i in range(3)]
    trades.append(_make_trade(TradeOutcome.BREAKEVEN, 0.0, day=9))
    return trades


class TestSourceStats:
    def test_counts_and_rates(self, journal):
        stats = compute_source_stats(journal)
        assert stats["total_trades"] == 10
        assert stats["winning_trades"] == 6
        assert stats["losing_trades"] == 3
        assert stats["breakeven_trades"] == 1
        assert stats["win_rate_pct"] == 60.0
        assert stats["decisive_win_rate_pct"] == pytest.approx(66.67)
        assert stats["breakeven_rate_pct"] == 10.0

    def test_r_statistics(self, journal):
        stats = compute_source_stats(journal)
        assert stats["avg_win_r"] == 2.0
        assert stats["avg_loss_r"] == 1.0
        assert stats["reward_risk_ratio"] == 2.0
        assert stats["profit_factor"] == 4.0
        assert stats["avg_r"] == pytest.approx(0.9)

    def test_commission(self, journal):
        stats = compute_source_stats(journal)
        assert stats["avg_commission_cents"] == 100
        assert stats["commission_impact_pct"] == pytest.approx(10.0)

    def test_kelly(self, journal):
        stats = compute_source_stats(journal)
        assert stats["kelly_full_pct"] == pytest.approx(50.0)
        assert stats["kelly_half_pct"] == pytest.approx(25.0)
        assert stats["kelly_quarter_pct"] == pytest.approx(12.5)

    def test_strategies_and_dates(self, journal):
        journal[0] = _make_trade(TradeOutcome.WIN, 2.0, strategy_name="")
        stats = compute_source_stats(journal)
        assert stats["strategies"]["ORB"] == {"trades": 9, "win_rate_pct": pytest.approx(55.56)}
        assert stats["strategies"]["No Strategy"] == {"trades": 1, "win_rate_pct": 100.0}
        assert stats["date_from"] == "2024-03-01T14:30:00"
        assert stats["date_to"] == "2024-03-10T14:30:00"

    def test_no_losses_caps_profit_factor(self):
        stats = compute_source_stats([_make_trade(TradeOutcome.WIN, 1.5, day=i) for i in range(3)])
        assert stats["profit_factor"] == PROFIT_FACTOR_CAP
        assert stats["avg_loss_r"] == 1.0
        assert stats["reward_risk_ratio"] == 1.5

    def test_missing_r_multiples_fall_back(self):
        trades = [_make_trade(TradeOutcome.WIN, None), _make_trade(TradeOutcome.LOSS, None, day=1)]
        stats = compute_source_stats(trades)
        assert stats["reward_risk_ratio"] == 1.0
        assert stats["avg_r"] == 0.0
        assert stats["profit_factor"] == 0.0

    def test_empty(self):
        assert compute_source_stats([]) == {"error": "no_trades", "total_trades": 0}
