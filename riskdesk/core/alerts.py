"""
riskdesk/core/alerts.py - Threshold rules that turn risk results into alerts
"""

from datetime import datetime
from typing import Iterable, List, Optional

from config.settings import RiskThresholds
from .entities import (
    Alert,
    AlertAction,
    AlertSeverity,
    AlertType,
    PortfolioRiskSummary,
    Position,
    PositionMetrics,
    PositionRisk,
    RiskLevel,
)


def sort_alerts(alerts: Iterable[Alert]) -> List[Alert]:
    """Most severe first, newest first within a severity"""
    return sorted(
        alerts,
        key=lambda a: (a.severity.rank, a.timestamp),
        reverse=True,
    )


def escalate_risk_level(level: RiskLevel, alerts: Iterable[Alert]) -> RiskLevel:
    """Raise a risk level to match the alerts it carries

    Any CRITICAL alert makes the level Critical; any HIGH alert lifts it
    to at least High.
    """
    severities = {a.severity for a in alerts}
    if AlertSeverity.CRITICAL in severities:
        return RiskLevel.CRITICAL
    if AlertSeverity.HIGH in severities and level.rank < RiskLevel.HIGH.rank:
        return RiskLevel.HIGH
    return level


class AlertGenerator:
    """
    Evaluates positions and portfolios against the alert rules

    Every rule is evaluated independently, so one position may carry
    several alerts at once. Output is unsorted; use sort_alerts for display.
    """

    def __init__(self, thresholds: Optional[RiskThresholds] = None):
        self.thresholds = thresholds or RiskThresholds()

    def generate_alerts(
        self,
        position: Position,
        metrics: PositionMetrics,
        risk: PositionRisk,
        timestamp: Optional[datetime] = None,
    ) -> List[Alert]:
        """Per-position alerts: stop loss, take profit and position size

        Every rule receives the same position, risk and timestamp. The
        current rules read only prices and weights, so ``metrics`` is
        accepted for rules that need history but is not consulted yet.
        """
        timestamp = timestamp or datetime.now()
        alerts = []

        for rule in (self._stop_loss_alert, self._take_profit_alert, self._position_size_alert):
            alert = rule(position, risk, timestamp)
            if alert is not None:
                alerts.append(alert)

        return alerts

    def generate_portfolio_alerts(
        self, summary: PortfolioRiskSummary, timestamp: Optional[datetime] = None
    ) -> List[Alert]:
        """Portfolio-level alerts: aggregate risk and data quality"""
        timestamp = timestamp or datetime.now()
        alerts = []

        if not summary.position_risks:
            return alerts

        score_high = summary.avg_risk_score >= self.thresholds.high_risk_score
        concentration_high = summary.concentration_risk == RiskLevel.HIGH

        if score_high and concentration_high:
            alerts.append(
                Alert(
                    type=AlertType.PORTFOLIO_RISK,
                    severity=AlertSeverity.CRITICAL,
                    message=(
                        f"Portfolio risk is CRITICAL: average risk score "
                        f"{summary.avg_risk_score:.1f}/5 with {summary.max_weight_pct:.1f}% "
                        f"in a single position - reduce exposure"
                    ),
                    action=AlertAction.REDUCE,
                    timestamp=timestamp,
                    portfolio_id=summary.portfolio_id,
                )
            )
        elif concentration_high:
            alerts.append(
                Alert(
                    type=AlertType.PORTFOLIO_RISK,
                    severity=AlertSeverity.HIGH,
                    message=(
                        f"Portfolio has {summary.max_weight_pct:.1f}% concentration "
                        f"in a single position - consider rebalancing"
                    ),
                    action=AlertAction.REDUCE,
                    timestamp=timestamp,
                    portfolio_id=summary.portfolio_id,
                )
            )
        elif score_high:
            alerts.append(
                Alert(
                    type=AlertType.PORTFOLIO_RISK,
                    severity=AlertSeverity.HIGH,
                    message=(
                        f"Portfolio average risk score is HIGH "
                        f"({summary.avg_risk_score:.1f}/5) - monitor closely"
                    ),
                    action=AlertAction.MONITOR,
                    timestamp=timestamp,
                    portfolio_id=summary.portfolio_id,
                )
            )

        if summary.estimated_value_pct >= self.thresholds.estimated_value_alert_pct:
            alerts.append(
                Alert(
                    type=AlertType.MARKET_CONDITION,
                    severity=AlertSeverity.LOW,
                    message=(
                        f"Market data unavailable for {summary.estimated_value_pct:.0f}% "
                        f"of portfolio value - metrics are estimates"
                    ),
                    action=AlertAction.MONITOR,
                    timestamp=timestamp,
                    portfolio_id=summary.portfolio_id,
                )
            )

        return alerts

    def _stop_loss_alert(
        self, position: Position, risk: PositionRisk, timestamp: datetime
    ) -> Optional[Alert]:
        stop = position.stop_loss
        if stop is None:
            return None

        current = position.current_price
        if current <= stop:
            severity = AlertSeverity.CRITICAL
            action = AlertAction.SELL
            message = f"CRITICAL: {position.ticker} hit stop loss at ${stop:.2f} (current ${current:.2f})"
        elif current <= stop * (1 + self.thresholds.stop_loss_proximity_pct / 100):
            severity = AlertSeverity.HIGH
            action = AlertAction.MONITOR
            above_stop_pct = (current - stop) / stop * 100
            message = (
                f"{position.ticker} is {above_stop_pct:.1f}% above its stop loss "
                f"at ${stop:.2f} (current ${current:.2f})"
            )
        else:
            return None

        return Alert(
            type=AlertType.STOP_LOSS,
            severity=severity,
            message=message,
            action=action,
            timestamp=timestamp,
            ticker=position.ticker,
            portfolio_id=position.portfolio_id,
            current_price=current,
            entry_price=position.entry_price,
            stop_loss=stop,
        )

    def _take_profit_alert(
        self, position: Position, risk: PositionRisk, timestamp: datetime
    ) -> Optional[Alert]:
        target = position.take_profit
        if target is None:
            return None

        current = position.current_price
        if current >= target:
            severity = AlertSeverity.MEDIUM
            action = AlertAction.SELL
            message = f"{position.ticker} reached take profit at ${target:.2f} - lock in gains"
        elif current >= target * (1 - self.thresholds.take_profit_proximity_pct / 100):
            severity = AlertSeverity.LOW
            action = AlertAction.MONITOR
            message = f"{position.ticker} is approaching take profit at ${target:.2f}"
        else:
            return None

        return Alert(
            type=AlertType.TAKE_PROFIT,
            severity=severity,
            message=message,
            action=action,
            timestamp=timestamp,
            ticker=position.ticker,
            portfolio_id=position.portfolio_id,
            current_price=current,
            entry_price=position.entry_price,
            take_profit=target,
        )

    def _position_size_alert(
        self, position: Position, risk: PositionRisk, timestamp: datetime
    ) -> Optional[Alert]:
        weight = risk.portfolio_weight_pct
        if weight > self.thresholds.concentration_high_pct:
            severity = AlertSeverity.HIGH
        elif weight > self.thresholds.concentration_medium_pct:
            severity = AlertSeverity.MEDIUM
        else:
            return None

        return Alert(
            type=AlertType.POSITION_SIZE,
            severity=severity,
            message=f"{position.ticker} represents {weight:.1f}% of portfolio - consider reducing",
            action=AlertAction.REDUCE,
            timestamp=timestamp,
            ticker=position.ticker,
            portfolio_id=position.portfolio_id,
            current_price=position.current_price,
        )
