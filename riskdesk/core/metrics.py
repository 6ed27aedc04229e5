"""
riskdesk/core/metrics.py - Return, volatility, Sharpe and drawdown for one position
"""

import logging
from typing import Optional, Tuple

import numpy as np
import pandas as pd

from config.settings import RiskThresholds
from .entities import Position, PositionMetrics, PriceSeries


class MetricsCalculator:
    """
    Computes per-position performance metrics from a daily close series

    All percentages are plain numbers (12.5 means 12.5%). When no history
    is available the calculator degrades to an entry-vs-current estimate
    and marks the result as estimated.
    """

    def __init__(self, thresholds: Optional[RiskThresholds] = None):
        self.thresholds = thresholds or RiskThresholds()
        self.logger = logging.getLogger(__name__)

    def compute_metrics(
        self,
        position: Position,
        price_series: Optional[PriceSeries],
        lookback_days: Optional[int] = None,
        risk_free_rate_pct: Optional[float] = None,
    ) -> PositionMetrics:
        """
        Compute metrics for one position

        Args:
            position: Position snapshot
            price_series: Daily closes for the position's ticker (may be empty or None)
            lookback_days: Number of trailing closes to use (defaults to configuration)
            risk_free_rate_pct: Annual risk-free rate in percent (defaults to configuration)

        Returns:
            PositionMetrics object

        Raises:
            ValueError: if lookback_days is less than 1
        """
        if lookback_days is None:
            lookback_days = self.thresholds.lookback_days
        if risk_free_rate_pct is None:
            risk_free_rate_pct = self.thresholds.risk_free_rate_pct

        if lookback_days < 1:
            raise ValueError(f"lookback_days must be at least 1, got {lookback_days}")

        if price_series is None or price_series.is_empty:
            self.logger.warning(
                f"No price history for {position.ticker}, estimating from entry price"
            )
            return self.estimate_metrics(position, risk_free_rate_pct)

        window = price_series.closes.iloc[-lookback_days:]
        returns = self.daily_returns(window)

        first_price = float(window.iloc[0])
        last_price = float(window.iloc[-1])
        total_return = (last_price - first_price) / first_price * 100

        volatility = self.annualized_volatility(returns)
        mean_daily = float(returns.mean()) if len(returns) > 0 else 0.0
        annualized_return = mean_daily * self.thresholds.trading_days_per_year

        current_period, prior_period, has_periods = self.period_returns(window)

        return PositionMetrics(
            ticker=position.ticker,
            total_return_pct=total_return,
            annualized_volatility_pct=volatility,
            sharpe_ratio=self.sharpe_ratio(annualized_return, volatility, risk_free_rate_pct),
            max_drawdown_pct=self.max_drawdown(window),
            period_high_price=float(window.max()),
            prior_period_return_pct=prior_period,
            current_period_return_pct=current_period,
            mean_daily_return_pct=mean_daily,
            annualized_return_pct=annualized_return,
            observations=len(window),
            has_sufficient_history=len(returns) >= 2,
            has_period_returns=has_periods,
            estimated=False,
            price_as_of=price_series.as_of,
        )

    def estimate_metrics(self, position: Position, risk_free_rate_pct: float) -> PositionMetrics:
        """Fallback metrics from entry and current price only"""
        entry = float(position.entry_price)
        current = float(position.current_price)
        total_return = (current - entry) / entry * 100

        # Rough proxy: a share of the realised move stands in for volatility
        volatility = self.thresholds.fallback_volatility_fraction * abs(total_return)

        return PositionMetrics(
            ticker=position.ticker,
            total_return_pct=total_return,
            annualized_volatility_pct=volatility,
            sharpe_ratio=self.sharpe_ratio(total_return, volatility, risk_free_rate_pct),
            max_drawdown_pct=0.0,
            period_high_price=max(entry, current),
            prior_period_return_pct=0.0,
            current_period_return_pct=0.0,
            mean_daily_return_pct=0.0,
            annualized_return_pct=total_return,
            observations=0,
            has_sufficient_history=False,
            has_period_returns=False,
            estimated=True,
            price_as_of=position.price_as_of,
        )

    @staticmethod
    def daily_returns(closes: pd.Series) -> pd.Series:
        """Simple percentage change between consecutive closes"""
        return closes.pct_change().dropna() * 100

    def annualized_volatility(self, returns: pd.Series) -> float:
        """Sample standard deviation of daily returns, annualized

        Returns 0 when fewer than two daily returns exist.
        """
        if len(returns) < 2:
            return 0.0
        volatility = float(returns.std(ddof=1)) * np.sqrt(self.thresholds.trading_days_per_year)
        return volatility if np.isfinite(volatility) else 0.0

    @staticmethod
    def sharpe_ratio(return_pct: float, volatility_pct: float, risk_free_rate_pct: float) -> float:
        """Excess annual return per unit of annual volatility (0 when volatility is 0)"""
        if volatility_pct <= 0 or not np.isfinite(volatility_pct):
            return 0.0
        sharpe = (return_pct - risk_free_rate_pct) / volatility_pct
        return float(sharpe) if np.isfinite(sharpe) else 0.0

    @staticmethod
    def max_drawdown(closes: pd.Series) -> float:
        """Largest decline from a running peak, in percent (always >= 0)"""
        if closes.empty:
            return 0.0
        running_peak = closes.cummax()
        drawdowns = (running_peak - closes) / running_peak * 100
        return max(0.0, float(drawdowns.max()))

    def period_returns(self, closes: pd.Series) -> Tuple[float, float, bool]:
        """
        Current and prior period returns from the window's boundary prices

        The window is split into two back-to-back periods of
        ``period_days`` closes each (two equal halves when unset).

        Returns:
            (current_period_return_pct, prior_period_return_pct, available)
        """
        count = len(closes)
        size = self.thresholds.period_days or (count - 1) // 2

        if size < 1 or count < 2 * size + 1:
            return 0.0, 0.0, False

        values = closes.to_numpy(dtype=float)
        end = values[-1]
        middle = values[-1 - size]
        start = values[-1 - 2 * size]

        current_period = (end - middle) / middle * 100
        prior_period = (middle - start) / start * 100
        return float(current_period), float(prior_period), True
