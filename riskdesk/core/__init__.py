"""
riskdesk/core/__init__.py
Risk engine

The SQLAlchemy-backed adapters (data_manager, portfolio_manager) are
imported from their modules directly; they depend on riskdesk.models,
which itself imports the entities defined here.
"""

from .aggregator import PortfolioAggregator
from .alerts import AlertGenerator, escalate_risk_level, sort_alerts
from .entities import (
    Alert,
    AlertAction,
    AlertSeverity,
    AlertType,
    OverallRiskSummary,
    PortfolioRiskSummary,
    PortfolioRollup,
    Position,
    PositionDecision,
    PositionMetrics,
    PositionRisk,
    PriceSeries,
    RiskLevel,
    SkippedPosition,
)
from .errors import PortfolioNotFoundError, RiskEngineError
from .metrics import MetricsCalculator
from .risk_scorer import PositionRiskScorer
from .risk_service import RiskSummaryOrchestrator
from .validation import validate_position

__all__ = [
    "Alert",
    "AlertAction",
    "AlertGenerator",
    "AlertSeverity",
    "AlertType",
    "MetricsCalculator",
    "OverallRiskSummary",
    "PortfolioAggregator",
    "PortfolioNotFoundError",
    "PortfolioRiskSummary",
    "PortfolioRollup",
    "Position",
    "PositionDecision",
    "PositionMetrics",
    "PositionRisk",
    "PositionRiskScorer",
    "PriceSeries",
    "RiskEngineError",
    "RiskLevel",
    "RiskSummaryOrchestrator",
    "SkippedPosition",
    "escalate_risk_level",
    "sort_alerts",
    "validate_position",
]
