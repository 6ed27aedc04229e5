"""
tests/test_aggregator.py
Test cases for portfolio aggregation
"""

import random

import pytest

from riskdesk.core.aggregator import PortfolioAggregator
from riskdesk.core.entities import RiskLevel
from riskdesk.core.metrics import MetricsCalculator
from riskdesk.core.risk_scorer import PositionRiskScorer
from tests import SampleDataGenerator


def aggregate(positions, series=None):
    series = series or {}
    calc = MetricsCalculator()
    scorer = PositionRiskScorer()

    metrics = {p.ticker: calc.compute_metrics(p, series.get(p.ticker)) for p in positions}
    total = sum(p.value for p in positions)
    risks = {p.ticker: scorer.score_risk(p, metrics[p.ticker], total) for p in positions}
    return PortfolioAggregator().aggregate("P1", positions, metrics, risks)


class TestPortfolioAggregator:
    def test_empty_portfolio_is_all_zeros(self):
        summary = aggregate([])

        assert summary.total_value == 0.0
        assert summary.weighted_return_pct == 0.0
        assert summary.avg_risk_score == 0.0
        assert summary.diversification_score == 0.0
        assert summary.concentration_risk == RiskLevel.LOW
        assert summary.risk_level == RiskLevel.LOW
        assert summary.position_risks == []
        assert summary.alerts == []

    def test_two_equal_positions_in_different_sectors(self):
        positions = [
            SampleDataGenerator.position("AAA", 100, 100.0, 100.0, sector="Technology"),
            SampleDataGenerator.position("BBB", 100, 100.0, 100.0, sector="Healthcare"),
        ]
        summary = aggregate(positions)

        assert summary.total_value == pytest.approx(20_000.0)
        assert summary.max_weight_pct == pytest.approx(50.0)
        assert summary.diversification_score == pytest.approx(100.0)
        assert summary.concentration_risk == RiskLevel.HIGH
        assert summary.risk_level == RiskLevel.HIGH
        assert summary.sector_weights == {
            "Technology": pytest.approx(50.0),
            "Healthcare": pytest.approx(50.0),
        }

    def test_total_value_is_order_independent(self):
        positions = [
            SampleDataGenerator.position(f"T{i}", shares=10 + i, current_price=20.0 + 3 * i)
            for i in range(8)
        ]
        shuffled = positions[:]
        random.Random(3).shuffle(shuffled)

        expected = sum(p.shares * p.current_price for p in positions)
        assert aggregate(positions).total_value == pytest.approx(expected)
        assert aggregate(shuffled).total_value == pytest.approx(expected)

    def test_identical_returns_give_same_weighted_return(self):
        positions = [
            SampleDataGenerator.position("AAA", 10, 100.0, 110.0),
            SampleDataGenerator.position("BBB", 70, 50.0, 55.0),
            SampleDataGenerator.position("CCC", 5, 20.0, 22.0),
        ]
        summary = aggregate(positions)

        assert summary.weighted_return_pct == pytest.approx(10.0)
        assert summary.weighted_volatility_pct == pytest.approx(5.0)
        # Recomputed from the weighted figures: (10 - 2) / 5
        assert summary.sharpe_ratio == pytest.approx(1.6)

    def test_estimated_share_of_value(self):
        positions = [
            SampleDataGenerator.position("LIVE", 100, 100.0, 100.0),
            SampleDataGenerator.position("GONE", 300, 100.0, 100.0),
        ]
        series = {"LIVE": SampleDataGenerator.generate_price_series("LIVE")}
        summary = aggregate(positions, series)

        assert summary.estimated
        assert summary.estimated_value_pct == pytest.approx(75.0)

    def test_unknown_counts_as_a_sector(self):
        positions = [
            SampleDataGenerator.position("AAA", sector="Technology"),
            SampleDataGenerator.position("BBB"),
            SampleDataGenerator.position("CCC", sector=""),
            SampleDataGenerator.position("DDD", sector="Technology"),
        ]
        summary = aggregate(positions)

        assert summary.sector_weights["Unknown"] == pytest.approx(50.0)
        assert summary.diversification_score == pytest.approx(50.0)

    def test_diversification_is_bounded(self):
        positions = [
            SampleDataGenerator.position(f"T{i}", sector=f"S{i % 3}") for i in range(10)
        ]
        score = aggregate(positions).diversification_score
        assert 0.0 <= score <= 100.0
        assert score == pytest.approx(30.0)

    def test_risk_counts(self):
        positions = [
            SampleDataGenerator.position("BIG", 1000, 10.0, 25.0),
            SampleDataGenerator.position("MID", 100, 10.0, 16.0),
        ] + [SampleDataGenerator.position(f"S{i}", 100, 10.0, 10.0) for i in range(8)]
        summary = aggregate(positions)

        # BIG: 150% move and ~72% weight; MID: 60% move
        assert summary.high_risk_positions == 1
        assert summary.medium_risk_positions == 1
        assert summary.low_risk_positions == 8

    def test_medium_concentration(self):
        positions = [SampleDataGenerator.position("BIG", shares=250)] + [
            SampleDataGenerator.position(f"S{i}", shares=125) for i in range(6)
        ]
        summary = aggregate(positions)

        assert summary.max_weight_pct == pytest.approx(25.0)
        assert summary.concentration_risk == RiskLevel.MEDIUM
        assert summary.risk_level == RiskLevel.MEDIUM
