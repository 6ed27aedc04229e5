"""
riskdesk/core/risk_scorer.py - Discrete risk score for a single position
"""

from typing import Optional

from config.settings import RiskThresholds
from .entities import Position, PositionMetrics, PositionRisk, RiskLevel


def level_for_score(score: float, thresholds: RiskThresholds) -> RiskLevel:
    """Map a 0-5 risk score onto Low/Medium/High"""
    if score >= thresholds.high_risk_score:
        return RiskLevel.HIGH
    elif score >= thresholds.medium_risk_score:
        return RiskLevel.MEDIUM
    return RiskLevel.LOW


def weight_pct(position_value: float, total_value: float) -> float:
    """Share of the portfolio held in one position (0 for an empty portfolio)"""
    if total_value <= 0:
        return 0.0
    return position_value / total_value * 100


def stop_distance_pct(position: Position) -> Optional[float]:
    """How far the current price sits above the stop, as % of the current price"""
    if position.stop_loss is None:
        return None
    return (position.current_price - position.stop_loss) / position.current_price * 100


def performance_level(
    performance_score: int, stop_distance: Optional[float], thresholds: RiskThresholds
) -> RiskLevel:
    """Risk level implied by a performance score and the stop distance band"""
    level = RiskLevel.LOW
    if performance_score <= thresholds.weak_performance_score:
        level = RiskLevel.HIGH
    elif performance_score < 0:
        level = RiskLevel.MEDIUM

    if stop_distance is not None:
        if stop_distance < thresholds.stop_danger_pct:
            level = max(level, RiskLevel.HIGH, key=lambda lvl: lvl.rank)
        elif stop_distance < thresholds.stop_caution_pct:
            level = max(level, RiskLevel.MEDIUM, key=lambda lvl: lvl.rank)
    return level


class PositionRiskScorer:
    """
    Scores a position from its P&L magnitude and its portfolio weight

    Points accumulate from two independent tiers (highest matching tier
    only within each) and the total maps onto a risk level:
    - |total return| > 100% -> 3, > 50% -> 2, > 20% -> 1
    - weight > 30% -> 2, > 20% -> 1
    """

    def __init__(self, thresholds: Optional[RiskThresholds] = None):
        self.thresholds = thresholds or RiskThresholds()

    def score_risk(
        self, position: Position, metrics: PositionMetrics, portfolio_total_value: float
    ) -> PositionRisk:
        position_value = position.value
        weight = weight_pct(position_value, portfolio_total_value)

        score = self._magnitude_points(abs(metrics.total_return_pct)) + self._weight_points(weight)

        stop_distance = stop_distance_pct(position)

        return PositionRisk(
            ticker=position.ticker,
            portfolio_id=position.portfolio_id,
            position_value=position_value,
            portfolio_weight_pct=weight,
            pnl_pct=(position.current_price - position.entry_price) / position.entry_price * 100,
            risk_score=score,
            risk_level=level_for_score(score, self.thresholds),
            metrics=metrics,
            stop_loss_distance_pct=stop_distance,
            performance_score=self.performance_score(position, metrics),
        )

    def performance_score(self, position: Position, metrics: PositionMetrics) -> int:
        """
        Signed strength score used by position decisions

        +1/-1 for trading near/far below the period high, +1/-1 for each
        period return beyond the momentum band, +1 above entry and -1 well
        below it, and -1 or -2 when the stop loss is close. The period high
        only counts for metrics built from real history, and the period
        returns only when the series was long enough to split.
        """
        t = self.thresholds
        current = position.current_price
        score = 0

        if not metrics.estimated and metrics.period_high_price > 0:
            if current >= metrics.period_high_price * t.near_high_ratio:
                score += 1
            if current <= metrics.period_high_price * t.far_high_ratio:
                score -= 1

        if metrics.has_period_returns:
            for period_return in (
                metrics.current_period_return_pct,
                metrics.prior_period_return_pct,
            ):
                if period_return >= t.momentum_pct:
                    score += 1
                if period_return <= -t.momentum_pct:
                    score -= 1

        if current > position.entry_price:
            score += 1
        if current < position.entry_price * t.entry_drawdown_ratio:
            score -= 1

        stop_distance = stop_distance_pct(position)
        if stop_distance is not None:
            if stop_distance < t.stop_danger_pct:
                score -= 2
            elif stop_distance < t.stop_caution_pct:
                score -= 1

        return score

    def _magnitude_points(self, magnitude: float) -> int:
        t = self.thresholds
        if magnitude > t.pnl_high_pct:
            return 3
        elif magnitude > t.pnl_medium_pct:
            return 2
        elif magnitude > t.pnl_low_pct:
            return 1
        return 0

    def _weight_points(self, weight: float) -> int:
        t = self.thresholds
        if weight > t.weight_high_pct:
            return 2
        elif weight > t.weight_medium_pct:
            return 1
        return 0
