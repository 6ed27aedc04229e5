"""
tests/test_risk_scorer.py
Test cases for position risk scoring
"""

import pytest

from riskdesk.core.entities import RiskLevel
from riskdesk.core.metrics import MetricsCalculator
from riskdesk.core.risk_scorer import (
    PositionRiskScorer,
    level_for_score,
    performance_level,
    weight_pct,
)
from tests import SampleDataGenerator


def score(entry, current, shares=100, portfolio_total=None, **kwargs):
    position = SampleDataGenerator.position(
        "ABC", shares=shares, entry_price=entry, current_price=current, **kwargs
    )
    metrics = MetricsCalculator().compute_metrics(position, None)
    total = position.value * 10 if portfolio_total is None else portfolio_total
    return PositionRiskScorer().score_risk(position, metrics, total)


class TestLevelForScore:
    @pytest.mark.parametrize(
        "value,expected",
        [(0, RiskLevel.LOW), (1, RiskLevel.LOW), (2, RiskLevel.MEDIUM), (3, RiskLevel.MEDIUM),
         (4, RiskLevel.HIGH), (5, RiskLevel.HIGH)],
    )
    def test_tiers(self, thresholds, value, expected):
        assert level_for_score(value, thresholds) == expected

    def test_weight_of_empty_portfolio_is_zero(self):
        assert weight_pct(1000.0, 0.0) == 0.0
        assert weight_pct(250.0, 1000.0) == 25.0


class TestPositionRiskScorer:
    def test_small_move_small_weight_is_low(self):
        risk = score(100.0, 105.0)
        assert risk.risk_score == 0
        assert risk.risk_level == RiskLevel.LOW
        assert risk.portfolio_weight_pct == pytest.approx(10.0)

    @pytest.mark.parametrize(
        "current,points",
        [(115.0, 0), (125.0, 1), (160.0, 2), (210.0, 3), (75.0, 1), (45.0, 2)],
    )
    def test_magnitude_tiers(self, current, points):
        assert score(100.0, current).risk_score == points

    def test_losses_count_by_magnitude(self):
        gain = score(100.0, 130.0)
        loss = score(100.0, 70.0)
        assert gain.risk_score == loss.risk_score == 1

    @pytest.mark.parametrize("total,points", [(10_000.0, 2), (40_000.0, 1), (100_000.0, 0)])
    def test_weight_tiers(self, total, points):
        # Position value is 100 * 100 = 10,000
        assert score(100.0, 100.0, portfolio_total=total).risk_score == points

    def test_magnitude_boundary_is_exclusive(self):
        # Exactly a 20% move stays in the lower tier
        risk = score(100.0, 120.0)
        assert risk.risk_score == 0

    def test_combined_score_is_high(self):
        risk = score(100.0, 250.0, portfolio_total=25_000.0 / 0.5)
        assert risk.risk_score == 5
        assert risk.risk_level == RiskLevel.HIGH

    def test_pnl_and_stop_distance(self):
        risk = score(50.0, 45.0, stop_loss=40.5)
        assert risk.pnl_pct == pytest.approx(-10.0)
        assert risk.stop_loss_distance_pct == pytest.approx(10.0)

    def test_no_stop_distance_without_stop(self):
        assert score(50.0, 45.0).stop_loss_distance_pct is None


class TestPerformanceScore:
    def performance(self, closes, entry, current, **kwargs):
        position = SampleDataGenerator.position(
            "ABC", entry_price=entry, current_price=current, **kwargs
        )
        series = SampleDataGenerator.series_from_closes("ABC", closes) if closes else None
        metrics = MetricsCalculator().compute_metrics(position, series)
        return PositionRiskScorer().performance_score(position, metrics)

    def test_strong_history(self):
        closes = [80.0] * 30 + [96.0] * 30 + [120.0]
        assert self.performance(closes, 100.0, 120.0) == 4

    def test_weak_history(self):
        closes = [200.0] * 30 + [160.0] * 30 + [120.0]
        assert self.performance(closes, 150.0, 120.0) == -4

    def test_flat_history_near_high(self):
        assert self.performance([100.0] * 61, 100.0, 100.0) == 1

    def test_short_history_skips_period_returns(self):
        # Too short to split into two 30-day periods; only the high and entry count
        closes = [50.0, 100.0, 120.0]
        assert self.performance(closes, 100.0, 120.0) == 2

    @pytest.mark.parametrize(
        "entry,current,points",
        [(100.0, 110.0, 1), (100.0, 95.0, 0), (100.0, 85.0, -1)],
    )
    def test_estimated_metrics_use_entry_only(self, entry, current, points):
        assert self.performance(None, entry, current) == points

    @pytest.mark.parametrize(
        "stop,points",
        [(106.0, -1), (100.0, 0), (90.0, 1)],
    )
    def test_stop_distance_bands(self, stop, points):
        # Entry rule alone gives +1 at a current price of 110
        assert self.performance(None, 100.0, 110.0, stop_loss=stop) == points

    def test_score_risk_carries_performance_score(self):
        assert score(100.0, 110.0).performance_score == 1


class TestPerformanceLevel:
    @pytest.mark.parametrize(
        "performance,stop_distance,expected",
        [
            (3, None, RiskLevel.LOW),
            (0, None, RiskLevel.LOW),
            (-1, None, RiskLevel.MEDIUM),
            (-2, None, RiskLevel.HIGH),
            (1, 8.0, RiskLevel.MEDIUM),
            (1, 4.0, RiskLevel.HIGH),
            (-3, 8.0, RiskLevel.HIGH),
        ],
    )
    def test_levels(self, thresholds, performance, stop_distance, expected):
        assert performance_level(performance, stop_distance, thresholds) == expected
