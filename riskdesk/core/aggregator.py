"""
riskdesk/core/aggregator.py - Portfolio-level metrics from per-position results
"""

import logging
from typing import Dict, List, Optional

import numpy as np

from config.settings import RiskThresholds
from .entities import (
    PortfolioRiskSummary,
    Position,
    PositionMetrics,
    PositionRisk,
    RiskLevel,
)
from .metrics import MetricsCalculator
from .risk_scorer import level_for_score


class PortfolioAggregator:
    """
    Combines per-position metrics and risks into a portfolio summary

    Return and volatility are value-weighted. The portfolio Sharpe ratio is
    recomputed from the weighted figures rather than averaged, since an
    average of Sharpe ratios is not itself a Sharpe ratio.
    """

    def __init__(self, thresholds: Optional[RiskThresholds] = None):
        self.thresholds = thresholds or RiskThresholds()
        self.logger = logging.getLogger(__name__)

    def aggregate(
        self,
        portfolio_id: str,
        positions: List[Position],
        metrics_by_ticker: Dict[str, PositionMetrics],
        risks_by_ticker: Dict[str, PositionRisk],
    ) -> PortfolioRiskSummary:
        """Build a PortfolioRiskSummary (without alerts) for one portfolio"""
        summary = PortfolioRiskSummary(portfolio_id=portfolio_id)

        if not positions:
            return summary

        values = np.array([p.value for p in positions], dtype=float)
        total_value = float(values.sum())
        summary.total_value = total_value

        metrics = [metrics_by_ticker[p.ticker] for p in positions]
        risks = [risks_by_ticker[p.ticker] for p in positions]

        if total_value > 0:
            weights = values / total_value
            returns = np.array([m.total_return_pct for m in metrics])
            volatilities = np.array([m.annualized_volatility_pct for m in metrics])
            annual_returns = np.array([m.annualized_return_pct for m in metrics])

            summary.weighted_return_pct = float(np.dot(weights, returns))
            summary.weighted_volatility_pct = float(np.dot(weights, volatilities))
            summary.sharpe_ratio = MetricsCalculator.sharpe_ratio(
                float(np.dot(weights, annual_returns)),
                summary.weighted_volatility_pct,
                self.thresholds.risk_free_rate_pct,
            )
            summary.max_weight_pct = float(weights.max() * 100)

            sector_weights: Dict[str, float] = {}
            for position, weight in zip(positions, weights):
                sector_weights[position.sector] = sector_weights.get(position.sector, 0.0) + float(weight * 100)
            summary.sector_weights = sector_weights

            estimated_value = sum(v for v, m in zip(values, metrics) if m.estimated)
            summary.estimated_value_pct = float(estimated_value / total_value * 100)

        summary.avg_risk_score = float(np.mean([r.risk_score for r in risks]))
        summary.concentration_risk = self.concentration_level(summary.max_weight_pct)
        summary.diversification_score = self.diversification_score(positions)

        summary.high_risk_positions = sum(1 for r in risks if r.risk_level == RiskLevel.HIGH)
        summary.medium_risk_positions = sum(1 for r in risks if r.risk_level == RiskLevel.MEDIUM)
        summary.low_risk_positions = sum(1 for r in risks if r.risk_level == RiskLevel.LOW)

        summary.position_risks = risks
        summary.estimated = any(m.estimated for m in metrics)
        summary.risk_level = self.portfolio_level(summary)

        self.logger.debug(
            f"Aggregated {portfolio_id}: value={total_value:.2f}, "
            f"avg_risk={summary.avg_risk_score:.2f}, concentration={summary.concentration_risk.value}"
        )
        return summary

    def concentration_level(self, max_weight_pct: float) -> RiskLevel:
        if max_weight_pct > self.thresholds.concentration_high_pct:
            return RiskLevel.HIGH
        elif max_weight_pct > self.thresholds.concentration_medium_pct:
            return RiskLevel.MEDIUM
        return RiskLevel.LOW

    @staticmethod
    def diversification_score(positions: List[Position]) -> float:
        """Distinct sectors per position, scaled to 0-100

        Ignores position sizes, so a 2-position/2-sector portfolio scores
        the same as a 20-position/20-sector one.
        """
        if not positions:
            return 0.0
        sectors = {p.sector for p in positions}
        return min(100.0, len(sectors) / len(positions) * 100)

    def portfolio_level(self, summary: PortfolioRiskSummary) -> RiskLevel:
        """Worse of the average-score level and the concentration level"""
        score_level = level_for_score(summary.avg_risk_score, self.thresholds)
        if summary.concentration_risk.rank > score_level.rank:
            return summary.concentration_risk
        return score_level
