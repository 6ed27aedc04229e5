"""
tests/test_metrics.py
Test cases for per-position metrics
"""

import math
import unittest
from datetime import datetime

import pandas as pd

from config.settings import RiskThresholds
from riskdesk.core.entities import PriceSeries
from riskdesk.core.metrics import MetricsCalculator
from tests import AS_OF, SampleDataGenerator


class TestPriceSeries(unittest.TestCase):
    """Test PriceSeries construction rules"""

    def test_rejects_unordered_dates(self):
        closes = pd.Series(
            [100.0, 101.0], index=pd.DatetimeIndex(["2024-06-03", "2024-06-01"])
        )
        with self.assertRaises(ValueError):
            PriceSeries("AAPL", closes)

    def test_rejects_duplicate_dates(self):
        closes = pd.Series(
            [100.0, 101.0], index=pd.DatetimeIndex(["2024-06-03", "2024-06-03"])
        )
        with self.assertRaises(ValueError):
            PriceSeries("AAPL", closes)

    def test_strips_timezone(self):
        series = SampleDataGenerator.generate_price_series("AAPL", days=5)
        self.assertIsNone(series.closes.index.tz)
        self.assertEqual(series.as_of.date(), AS_OF.date())

    def test_empty_series(self):
        series = PriceSeries.empty("AAPL")
        self.assertTrue(series.is_empty)
        self.assertIsNone(series.as_of)
        self.assertEqual(len(series), 0)


class TestMetricsCalculator(unittest.TestCase):
    """Test cases for MetricsCalculator"""

    def setUp(self):
        self.calc = MetricsCalculator()
        self.position = SampleDataGenerator.position("AAPL", entry_price=50.0, current_price=45.0)

    def metrics_for(self, closes, calc=None, **kwargs):
        series = SampleDataGenerator.series_from_closes("AAPL", closes)
        return (calc or self.calc).compute_metrics(self.position, series, **kwargs)

    def test_constant_series_has_zero_volatility_and_sentinel_sharpe(self):
        metrics = self.metrics_for([100.0] * 30)

        self.assertEqual(metrics.total_return_pct, 0.0)
        self.assertEqual(metrics.annualized_volatility_pct, 0.0)
        self.assertEqual(metrics.sharpe_ratio, 0.0)
        self.assertEqual(metrics.max_drawdown_pct, 0.0)
        self.assertTrue(metrics.has_sufficient_history)
        self.assertFalse(metrics.estimated)

    def test_total_return_uses_window_boundaries(self):
        metrics = self.metrics_for([100.0, 104.0, 110.0])
        self.assertAlmostEqual(metrics.total_return_pct, 10.0)
        self.assertEqual(metrics.period_high_price, 110.0)

    def test_lookback_trims_to_most_recent_closes(self):
        closes = [50.0] * 20 + [100.0 + i for i in range(10)]
        metrics = self.metrics_for(closes, lookback_days=10)

        self.assertEqual(metrics.observations, 10)
        self.assertAlmostEqual(metrics.total_return_pct, 9.0)

    def test_annualized_volatility_uses_sample_std(self):
        metrics = self.metrics_for([100.0, 110.0, 99.0])

        expected_vol = math.sqrt(200.0) * math.sqrt(252)
        self.assertAlmostEqual(metrics.annualized_volatility_pct, expected_vol, places=6)
        self.assertAlmostEqual(metrics.mean_daily_return_pct, 0.0, places=9)
        self.assertAlmostEqual(metrics.sharpe_ratio, -2.0 / expected_vol, places=9)

    def test_single_return_is_insufficient_for_volatility(self):
        metrics = self.metrics_for([100.0, 110.0])

        self.assertEqual(metrics.annualized_volatility_pct, 0.0)
        self.assertEqual(metrics.sharpe_ratio, 0.0)
        self.assertFalse(metrics.has_sufficient_history)

    def test_sharpe_uses_risk_free_rate(self):
        # Alternating +1%/-0.5%-ish moves produce a positive mean return
        closes = [100.0]
        for i in range(40):
            closes.append(closes[-1] * (1.01 if i % 2 == 0 else 0.995))
        series = SampleDataGenerator.series_from_closes("AAPL", closes)

        low_rf = self.calc.compute_metrics(self.position, series, risk_free_rate_pct=0.0)
        high_rf = self.calc.compute_metrics(self.position, series, risk_free_rate_pct=10.0)
        self.assertGreater(low_rf.sharpe_ratio, high_rf.sharpe_ratio)

    def test_max_drawdown(self):
        metrics = self.metrics_for([100.0, 120.0, 90.0, 110.0])
        self.assertAlmostEqual(metrics.max_drawdown_pct, 25.0)

    def test_non_decreasing_series_has_no_drawdown(self):
        metrics = self.metrics_for([100.0, 100.0, 101.0, 105.0, 105.0])
        self.assertEqual(metrics.max_drawdown_pct, 0.0)

    def test_drawdown_never_negative(self):
        series = SampleDataGenerator.generate_price_series("AAPL", days=120, volatility=0.05)
        metrics = self.calc.compute_metrics(self.position, series)
        self.assertGreaterEqual(metrics.max_drawdown_pct, 0.0)
        self.assertEqual(metrics.observations, 90)

    def test_period_returns_split_window(self):
        calc = MetricsCalculator(RiskThresholds(period_days=2))
        metrics = self.metrics_for([100.0, 105.0, 110.0, 99.0, 121.0], calc=calc)

        self.assertTrue(metrics.has_period_returns)
        self.assertAlmostEqual(metrics.current_period_return_pct, 10.0)
        self.assertAlmostEqual(metrics.prior_period_return_pct, 10.0)

    def test_period_returns_need_two_full_periods(self):
        calc = MetricsCalculator(RiskThresholds(period_days=2))
        metrics = self.metrics_for([100.0, 105.0, 110.0, 99.0], calc=calc)

        self.assertFalse(metrics.has_period_returns)
        self.assertEqual(metrics.current_period_return_pct, 0.0)
        self.assertEqual(metrics.prior_period_return_pct, 0.0)

    def test_period_returns_default_to_halves(self):
        calc = MetricsCalculator(RiskThresholds(period_days=None))
        metrics = self.metrics_for([100.0, 90.0, 80.0, 100.0, 110.0, 120.0, 110.0], calc=calc)

        # Halves of three closes each: 100 -> 100 and 100 -> 110
        self.assertTrue(metrics.has_period_returns)
        self.assertAlmostEqual(metrics.prior_period_return_pct, 0.0)
        self.assertAlmostEqual(metrics.current_period_return_pct, 10.0)

    def test_invalid_lookback_raises(self):
        series = SampleDataGenerator.series_from_closes("AAPL", [100.0, 101.0])
        with self.assertRaises(ValueError):
            self.calc.compute_metrics(self.position, series, lookback_days=0)

    def test_price_as_of_comes_from_series(self):
        metrics = self.metrics_for([100.0, 101.0, 102.0])
        self.assertEqual(metrics.price_as_of, datetime(AS_OF.year, AS_OF.month, AS_OF.day))


class TestFallbackMetrics(unittest.TestCase):
    """Test the entry-vs-current estimate used without history"""

    def setUp(self):
        self.calc = MetricsCalculator()

    def test_missing_series_uses_estimate(self):
        position = SampleDataGenerator.position("XYZ", entry_price=50.0, current_price=45.0)
        metrics = self.calc.compute_metrics(position, None)

        self.assertTrue(metrics.estimated)
        self.assertAlmostEqual(metrics.total_return_pct, -10.0)
        self.assertAlmostEqual(metrics.annualized_volatility_pct, 5.0)
        self.assertAlmostEqual(metrics.sharpe_ratio, (-10.0 - 2.0) / 5.0)
        self.assertEqual(metrics.max_drawdown_pct, 0.0)
        self.assertEqual(metrics.period_high_price, 50.0)
        self.assertFalse(metrics.has_period_returns)

    def test_empty_series_uses_estimate(self):
        position = SampleDataGenerator.position("XYZ", entry_price=40.0, current_price=50.0)
        metrics = self.calc.compute_metrics(position, PriceSeries.empty("XYZ"))

        self.assertTrue(metrics.estimated)
        self.assertAlmostEqual(metrics.total_return_pct, 25.0)
        self.assertEqual(metrics.period_high_price, 50.0)

    def test_unchanged_price_estimate_has_sentinel_sharpe(self):
        position = SampleDataGenerator.position("XYZ", entry_price=50.0, current_price=50.0)
        metrics = self.calc.compute_metrics(position, None)

        self.assertEqual(metrics.annualized_volatility_pct, 0.0)
        self.assertEqual(metrics.sharpe_ratio, 0.0)


if __name__ == "__main__":
    unittest.main()
