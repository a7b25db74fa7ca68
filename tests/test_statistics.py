import pytest

from tradesim.models.profile import RiskProfile, SimulationRequest
from tradesim.models.types import SimulationRun, SkipReason
from tradesim.simulation.statistics import (
    BUCKET_COUNT,
    PROFIT_FACTOR_CAP,
    aggregate_statistics,
    calculate_distribution,
    select_sample_run,
)

INITIAL = 100000


def _make_run(pnl=0, **overrides):
    defaults = dict(
        days=[],
        months=[],
        initial_balance_cents=INITIAL,
        final_balance_cents=INITIAL + pnl,
        total_pnl_cents=pnl,
        total_trades=0,
        total_trading_days=1,
        days_in_loss_recovery=0,
        days_in_gain_compounding=0,
        days_target_hit=0,
        skip_counts={reason: 0 for reason in SkipReason},
        times_weekly_limit_hit=0,
        months_monthly_limit_hit=0,
        peak_balance_cents=max(INITIAL, INITIAL + pnl),
        max_drawdown_cents=0,
        max_drawdown_percent=0.0,
        min_balance_cents=min(INITIAL, INITIAL + pnl),
        reached_ruin=False,
    )
    defaults.update(overrides)
    return SimulationRun(**defaults)


def _make_request(count=5):
    profile = RiskProfile(name="test", win_rate=50.0, reward_risk_ratio=2.0, base_risk_cents=1000)
    return SimulationRequest(profile=profile, simulation_count=count, initial_balance_cents=INITIAL)


@pytest.fixture
def symmetric_runs():
    return [_make_run(p) for p in (200, -100, 0, 100, -200)]


class TestAggregateStatistics:
    def test_central_tendency(self, symmetric_runs):
        stats = aggregate_statistics(symmetric_runs, _make_request())
        assert stats.median_pnl_cents == 0.0
        assert stats.mean_pnl_cents == 0.0
        assert stats.median_return_percent == pytest.approx(0.0)

    def test_nearest_rank_percentiles(self, symmetric_runs):
        stats = aggregate_statistics(symmetric_runs, _make_request())
        assert stats.best_case_pnl_cents == 200.0
        assert stats.worst_case_pnl_cents == -200.0

    def test_profitable_share(self, symmetric_runs):
        stats = aggregate_statistics(symmetric_runs, _make_request())
        assert stats.profitable_runs_pct == pytest.approx(40.0)

    def test_profit_factor(self, symmetric_runs):
        stats = aggregate_statistics(symmetric_runs, _make_request())
        assert stats.profit_factor == pytest.approx(1.0)

    def test_profit_factor_capped_without_losses(self):
        runs = [_make_run(p) for p in (100, 200)]
        assert aggregate_statistics(runs, _make_request(2)).profit_factor == PROFIT_FACTOR_CAP

    def test_profit_factor_zero_when_flat(self):
        runs = [_make_run(0), _make_run(0)]
        assert aggregate_statistics(runs, _make_request(2)).profit_factor == 0.0

    def test_sharpe_zero_on_zero_mean(self, symmetric_runs):
        assert aggregate_statistics(symmetric_runs, _make_request()).sharpe_ratio == pytest.approx(0.0)

    def test_sharpe_uses_population_std(self):
        # returns 1% and 3%: mean 2, population std 1
        runs = [_make_run(1000), _make_run(3000)]
        assert aggregate_statistics(runs, _make_request(2)).sharpe_ratio == pytest.approx(2.0)

    def test_sortino_without_losing_runs(self):
        runs = [_make_run(1000), _make_run(2000), _make_run(3000)]
        assert aggregate_statistics(runs, _make_request(3)).sortino_ratio == pytest.approx(2.0)

    def test_sortino_with_losing_runs(self):
        # returns -1%, 3%: mean 1, downside deviation 1
        runs = [_make_run(-1000), _make_run(3000)]
        assert aggregate_statistics(runs, _make_request(2)).sortino_ratio == pytest.approx(1.0)

    def test_expected_daily_pnl(self):
        runs = [_make_run(1000, total_trading_days=4), _make_run(-200, total_trading_days=6)]
        assert aggregate_statistics(runs, _make_request(2)).expected_daily_pnl_cents == pytest.approx(80.0)

    def test_drawdown_stats(self):
        runs = [_make_run(0, max_drawdown_percent=dd) for dd in (1.0, 2.0, 3.0, 4.0, 10.0)]
        stats = aggregate_statistics(runs, _make_request())
        assert stats.median_max_drawdown_percent == 3.0
        assert stats.worst_max_drawdown_percent == 10.0
        assert stats.mean_max_drawdown_percent == pytest.approx(4.0)

    def test_ruin_and_min_balance(self):
        runs = [
            _make_run(-60000, reached_ruin=True),
            _make_run(0, min_balance_cents=90000),
            _make_run(0, min_balance_cents=80000),
            _make_run(500),
        ]
        stats = aggregate_statistics(runs, _make_request(4))
        assert stats.risk_of_ruin_percent == pytest.approx(25.0)
        assert stats.median_min_balance_percent == pytest.approx(85.0)

    def test_day_averages(self):
        paused = {reason: 0 for reason in SkipReason}
        paused[SkipReason.DRAWDOWN_PAUSE] = 2
        paused[SkipReason.WEEK_PAUSED] = 1
        paused[SkipReason.WEEKLY_LIMIT] = 4
        runs = [
            _make_run(0, total_trading_days=10, total_trades=20, skip_counts=paused, months_monthly_limit_hit=1),
            _make_run(0, total_trading_days=20, total_trades=30),
        ]
        stats = aggregate_statistics(runs, _make_request(2))
        assert stats.avg_trading_days == pytest.approx(15.0)
        assert stats.avg_trades == pytest.approx(25.0)
        assert stats.avg_days_skipped_paused == pytest.approx(1.5)
        assert stats.avg_days_skipped_weekly_limit == pytest.approx(2.0)
        assert stats.monthly_limit_hit_pct == pytest.approx(50.0)

    def test_empty_runs_rejected(self):
        with pytest.raises(ValueError):
            aggregate_statistics([], _make_request())


class TestDistribution:
    def test_buckets_cover_every_run(self, symmetric_runs):
        buckets = calculate_distribution(symmetric_runs)
        assert len(buckets) == BUCKET_COUNT
        assert sum(b.count for b in buckets) == 5
        assert sum(b.percentage for b in buckets) == pytest.approx(100.0)
        assert buckets[0].range_start == -200.0
        assert buckets[-1].range_end == 200.0
        assert buckets[-1].count == 1  # max is inclusive

    def test_identical_pnls_land_in_first_bucket(self):
        buckets = calculate_distribution([_make_run(500) for _ in range(3)])
        assert buckets[0].count == 3
        assert buckets[0].range_end - buckets[0].range_start == 1.0

    def test_empty(self):
        assert calculate_distribution([]) == []


class TestSampleRun:
    def test_odd_count_is_median(self):
        runs = [_make_run(p) for p in (3, 1, 2)]
        assert select_sample_run(runs).total_pnl_cents == 2

    def test_even_count_takes_lower_middle(self):
        runs = [_make_run(p) for p in (5, 1, 3, 2)]
        assert select_sample_run(runs).total_pnl_cents == 2

    def test_empty_rejected(self):
        with pytest.raises(ValueError):
            select_sample_run([])
