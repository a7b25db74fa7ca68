import pytest

from tradesim.models.profile import (
    ConsecutiveLossRule,
    DrawdownAction,
    DrawdownControl,
    DrawdownTier,
    LossRuleAction,
    RiskProfile,
)
from tradesim.models.types import (
    DayMode,
    SimulatedDay,
    SimulatedTrade,
    SkipReason,
    TradeMode,
    TradeOutcome,
)
from tradesim.risk.policy import RiskPolicyResolver
from tradesim.simulation.month import RunState, simulate_month
from tradesim.simulation.outcome import sequence_random_source

WIN = 0.1
LOSS = 0.9


def _make_profile(**overrides):
    defaults = dict(
        name="test",
        win_rate=50.0,
        reward_risk_ratio=2.0,
        base_risk_cents=10000,
        trading_days_per_month=5,
        trading_days_per_week=5,
    )
    defaults.update(overrides)
    return RiskProfile(**defaults)


def _month(profile, draws, initial=1_000_000, state=None, month_number=1):
    state = state or RunState.start(initial)
    resolver = RiskPolicyResolver(profile, initial)
    summary = simulate_month(profile, resolver, state, month_number, sequence_random_source(draws))
    return summary, state


def _make_trade(pnl, balance_after):
    return SimulatedTrade(
        day_number=1,
        trade_number_in_day=1,
        mode=TradeMode.BASE,
        risk_cents=abs(pnl),
        outcome=TradeOutcome.LOSS if pnl < 0 else TradeOutcome.WIN,
        pnl_cents=pnl,
        commission_cents=0,
        day_pnl_cents=pnl,
        balance_after_cents=balance_after,
    )


class TestMonthTotals:
    def test_all_wins(self):
        summary, state = _month(_make_profile(), [WIN])
        assert summary.total_trades == 5
        assert summary.total_trading_days == 5
        assert summary.total_pnl_cents == 100000
        assert summary.ending_balance_cents == 1_100_000
        assert state.balance_cents == 1_100_000
        assert summary.days_in_gain_compounding == 5
        assert summary.days_in_loss_recovery == 0
        assert summary.return_percent == pytest.approx(10.0)

    def test_pnl_conservation(self):
        profile = _make_profile(daily_loss_limit_cents=25000, trading_days_per_month=10)
        summary, _ = _month(profile, [0.3, 0.7, 0.6, 0.2, 0.9])
        assert summary.total_pnl_cents == sum(d.day_pnl_cents for d in summary.days)
        for day in summary.days:
            assert day.day_pnl_cents == sum(t.pnl_cents for t in day.trades)
        assert summary.ending_balance_cents == summary.starting_balance_cents + summary.total_pnl_cents

    def test_target_days_counted(self):
        summary, _ = _month(_make_profile(daily_target_cents=20000), [WIN, LOSS])
        assert summary.days_target_hit == 3


class TestLimits:
    def test_monthly_limit_skips_rest_of_month(self):
        profile = _make_profile(monthly_loss_limit_cents=20000)
        summary, _ = _month(profile, [LOSS])
        assert summary.monthly_limit_hit
        assert summary.total_trading_days == 2
        assert summary.skip_counts[SkipReason.MONTHLY_LIMIT] == 3
        assert all(d.skipped and d.skip_reason is SkipReason.MONTHLY_LIMIT for d in summary.days[2:])

    def test_weekly_limit_resets_each_week(self):
        profile = _make_profile(weekly_loss_limit_cents=10000, trading_days_per_month=4, trading_days_per_week=2)
        summary, _ = _month(profile, [LOSS])
        assert [d.week_number for d in summary.days] == [1, 1, 2, 2]
        assert [d.skipped for d in summary.days] == [False, True, False, True]
        assert summary.skip_counts[SkipReason.WEEKLY_LIMIT] == 2
        assert summary.times_weekly_limit_hit == 2
        assert not summary.monthly_limit_hit

    def test_skipped_days_trade_nothing(self):
        profile = _make_profile(monthly_loss_limit_cents=10000)
        summary, _ = _month(profile, [LOSS])
        for day in summary.days[1:]:
            assert day.trades == []
            assert day.day_pnl_cents == 0


class TestPauses:
    def test_stop_day_serves_the_streak(self):
        profile = _make_profile(consecutive_loss_rules=(ConsecutiveLossRule(2, LossRuleAction.STOP_DAY),))
        summary, _ = _month(profile, [LOSS])
        assert [d.skipped for d in summary.days] == [False, False, True, False, False]
        assert summary.skip_counts[SkipReason.CONSECUTIVE_LOSS_STOP] == 1

    def test_pause_week_skips_to_next_week(self):
        profile = _make_profile(
            trading_days_per_month=6,
            trading_days_per_week=3,
            consecutive_loss_rules=(ConsecutiveLossRule(1, LossRuleAction.PAUSE_WEEK),),
        )
        summary, _ = _month(profile, [LOSS])
        assert [d.skip_reason for d in summary.days] == [
            None,
            SkipReason.CONSECUTIVE_LOSS_STOP,
            SkipReason.WEEK_PAUSED,
            None,
            SkipReason.CONSECUTIVE_LOSS_STOP,
            SkipReason.WEEK_PAUSED,
        ]
        assert summary.total_trading_days == 2

    def test_drawdown_pause(self):
        profile = _make_profile(
            drawdown_control=DrawdownControl(tiers=(DrawdownTier(15, DrawdownAction.PAUSE),)),
        )
        summary, _ = _month(profile, [LOSS], initial=100000)
        assert summary.total_trading_days == 2
        assert summary.skip_counts[SkipReason.DRAWDOWN_PAUSE] == 3

    def test_drawdown_pause_ends_with_the_week(self):
        profile = _make_profile(
            trading_days_per_month=10,
            drawdown_control=DrawdownControl(
                tiers=(DrawdownTier(15, DrawdownAction.PAUSE),),
                recovery_threshold_percent=50,
            ),
        )
        summary, state = _month(profile, [LOSS, LOSS, WIN], initial=100000)
        paused = SkipReason.DRAWDOWN_PAUSE
        # week 2 resumes at the served depth, wins back to a new peak, then falls again
        assert [d.skip_reason for d in summary.days] == [
            None, None, paused, paused, paused,
            None, None, None, paused, paused,
        ]
        assert summary.total_trading_days == 5
        assert state.pause_served_drawdown_percent == pytest.approx(20.0)

    def test_served_pause_rearms_at_a_deeper_low(self):
        profile = _make_profile(
            trading_days_per_month=10,
            drawdown_control=DrawdownControl(tiers=(DrawdownTier(15, DrawdownAction.PAUSE),)),
        )
        summary, _ = _month(profile, [LOSS], initial=100000)
        paused = SkipReason.DRAWDOWN_PAUSE
        assert [d.skip_reason for d in summary.days] == [
            None, None, paused, paused, paused,
            None, paused, paused, paused, paused,
        ]

    def test_drawdown_pause_clears_at_month_end(self):
        profile = _make_profile(
            trading_days_per_week=10,
            drawdown_control=DrawdownControl(tiers=(DrawdownTier(15, DrawdownAction.PAUSE),)),
        )
        first, state = _month(profile, [LOSS], initial=100000)
        assert first.total_trading_days == 2
        second, _ = _month(profile, [WIN], state=state, month_number=2)
        assert second.total_trading_days == 5


class TestNumbering:
    def test_days_and_weeks_continue_across_months(self):
        profile = _make_profile(trading_days_per_week=2)
        first, state = _month(profile, [WIN])
        second, _ = _month(profile, [WIN], state=state, month_number=2)
        assert [d.week_number for d in first.days] == [1, 1, 2, 2, 3]
        assert [d.week_number for d in second.days] == [4, 4, 5, 5, 6]
        assert [d.day_number for d in second.days] == [6, 7, 8, 9, 10]
        assert second.starting_balance_cents == first.ending_balance_cents


class TestRunState:
    def test_intraday_low_counts_toward_min_balance(self):
        state = RunState.start(100000)
        day = SimulatedDay(
            day_number=1,
            week_number=1,
            mode=DayMode.LOSS_RECOVERY,
            trades=[_make_trade(-10000, 90000), _make_trade(5000, 95000)],
            day_pnl_cents=-5000,
        )
        state.apply_day(day)
        assert state.min_balance_cents == 90000
        assert state.balance_cents == 95000
        assert state.consecutive_losing_days == 1
        assert state.max_drawdown_cents == 5000
        assert state.max_drawdown_percent == pytest.approx(5.0)

    def test_new_peak_resets_trough(self):
        state = RunState.start(100000)
        state.apply_day(SimulatedDay(1, 1, DayMode.LOSS_RECOVERY, day_pnl_cents=-20000))
        assert state.trough_drawdown_percent == pytest.approx(20.0)
        state.apply_day(SimulatedDay(2, 1, DayMode.GAIN_COMPOUNDING, day_pnl_cents=30000))
        assert state.peak_balance_cents == 110000
        assert state.trough_drawdown_percent == 0.0
        assert state.max_drawdown_percent == pytest.approx(20.0)
        assert state.consecutive_losing_days == 0

    def test_flat_day_breaks_losing_streak(self):
        state = RunState.start(100000)
        state.apply_day(SimulatedDay(1, 1, DayMode.LOSS_RECOVERY, day_pnl_cents=-100))
        state.apply_day(SimulatedDay(2, 1, DayMode.GAIN_COMPOUNDING, day_pnl_cents=0))
        assert state.consecutive_losing_days == 0
