"""
riskdesk/core/entities.py - Domain types shared by the risk engine

Inputs (Position, PriceSeries) are read-only snapshots supplied by the
portfolio store and the price provider. Everything else is derived,
allocated fresh on every evaluation and never persisted by the engine.
"""

from dataclasses import dataclass, field, fields
from datetime import date, datetime
from enum import Enum
from typing import Any, Dict, Iterable, List, Optional, Tuple, Union

import numpy as np
import pandas as pd

UNKNOWN_SECTOR = "Unknown"

# Risk scores live on a 0-5 scale per position; summaries report 0-100
MAX_RISK_SCORE = 5
RISK_SCORE_SCALE = 100 / MAX_RISK_SCORE


class RiskLevel(Enum):
    LOW = "Low"
    MEDIUM = "Medium"
    HIGH = "High"
    CRITICAL = "Critical"

    @property
    def rank(self) -> int:
        return _LEVEL_RANK[self]


class AlertType(Enum):
    STOP_LOSS = "STOP_LOSS"
    TAKE_PROFIT = "TAKE_PROFIT"
    POSITION_SIZE = "POSITION_SIZE"
    PORTFOLIO_RISK = "PORTFOLIO_RISK"
    MARKET_CONDITION = "MARKET_CONDITION"


class AlertSeverity(Enum):
    LOW = "LOW"
    MEDIUM = "MEDIUM"
    HIGH = "HIGH"
    CRITICAL = "CRITICAL"

    @property
    def rank(self) -> int:
        return _SEVERITY_RANK[self]


class AlertAction(Enum):
    SELL = "SELL"
    HOLD = "HOLD"
    REDUCE = "REDUCE"
    MONITOR = "MONITOR"


_LEVEL_RANK = {
    RiskLevel.LOW: 1,
    RiskLevel.MEDIUM: 2,
    RiskLevel.HIGH: 3,
    RiskLevel.CRITICAL: 4,
}

_SEVERITY_RANK = {
    AlertSeverity.LOW: 1,
    AlertSeverity.MEDIUM: 2,
    AlertSeverity.HIGH: 3,
    AlertSeverity.CRITICAL: 4,
}


def _plain(value: Any) -> Any:
    """Convert a value into JSON-safe plain data"""
    if isinstance(value, Enum):
        return value.value
    if isinstance(value, (datetime, date)):
        return value.isoformat()
    if isinstance(value, np.generic):
        return value.item()
    if isinstance(value, dict):
        return {k: _plain(v) for k, v in value.items()}
    if isinstance(value, (list, tuple)):
        return [_plain(v) for v in value]
    if hasattr(value, "to_dict"):
        return value.to_dict()
    return value


class _Serializable:
    """Shallow dataclass serializer; nested entities serialize themselves"""

    def to_dict(self) -> Dict[str, Any]:
        return {f.name: _plain(getattr(self, f.name)) for f in fields(self)}  # type: ignore[arg-type]


@dataclass(frozen=True)
class Position(_Serializable):
    """A held quantity of one instrument"""

    ticker: str
    shares: float
    entry_price: float
    current_price: float
    portfolio_id: str
    stop_loss: Optional[float] = None
    take_profit: Optional[float] = None
    sector: str = UNKNOWN_SECTOR
    price_as_of: Optional[datetime] = None

    def __post_init__(self) -> None:
        if not self.sector:
            object.__setattr__(self, "sector", UNKNOWN_SECTOR)

    @property
    def value(self) -> float:
        return float(self.shares) * float(self.current_price)


@dataclass(eq=False)
class PriceSeries:
    """Chronologically ordered daily closes for one ticker

    ``closes`` is a float Series indexed by a tz-naive DatetimeIndex with
    strictly increasing dates. An empty series is valid and signals that
    no history is available.
    """

    ticker: str
    closes: pd.Series

    def __post_init__(self) -> None:
        closes = self.closes.astype(float)
        index = pd.DatetimeIndex(closes.index)
        if index.tz is not None:
            index = index.tz_localize(None)
        closes.index = index

        if len(closes) > 1 and not (index.is_monotonic_increasing and index.is_unique):
            raise ValueError(f"{self.ticker}: price series dates must be strictly increasing")

        self.closes = closes

    @classmethod
    def empty(cls, ticker: str) -> "PriceSeries":
        return cls(ticker, pd.Series([], index=pd.DatetimeIndex([]), dtype=float))

    @classmethod
    def from_pairs(
        cls, ticker: str, pairs: Iterable[Tuple[Union[date, datetime, str], float]]
    ) -> "PriceSeries":
        """Build from (date, close) pairs already in chronological order"""
        pairs = list(pairs)
        if not pairs:
            return cls.empty(ticker)
        dates, values = zip(*pairs)
        return cls(ticker, pd.Series(values, index=pd.DatetimeIndex(dates), dtype=float))

    @classmethod
    def from_frame(cls, ticker: str, data: pd.DataFrame, column: str = "Close") -> "PriceSeries":
        """Build from an OHLCV DataFrame such as a yfinance history download"""
        if data is None or data.empty or column not in data.columns:
            return cls.empty(ticker)
        return cls(ticker, data[column].dropna())

    @property
    def is_empty(self) -> bool:
        return self.closes.empty

    @property
    def as_of(self) -> Optional[datetime]:
        if self.closes.empty:
            return None
        return self.closes.index[-1].to_pydatetime()

    def __len__(self) -> int:
        return len(self.closes)


@dataclass(frozen=True)
class PositionMetrics(_Serializable):
    """Performance metrics for one position over a lookback window

    ``estimated`` marks output of the entry-vs-current fallback used when
    no price history was available. ``has_sufficient_history`` is False
    when volatility could not be measured, in which case a volatility of 0
    means "unknown", not "riskless".
    """

    ticker: str
    total_return_pct: float
    annualized_volatility_pct: float
    sharpe_ratio: float
    max_drawdown_pct: float
    period_high_price: float
    prior_period_return_pct: float
    current_period_return_pct: float
    mean_daily_return_pct: float = 0.0
    annualized_return_pct: float = 0.0
    observations: int = 0
    has_sufficient_history: bool = False
    has_period_returns: bool = False
    estimated: bool = False
    price_as_of: Optional[datetime] = None


@dataclass
class Alert(_Serializable):
    type: AlertType
    severity: AlertSeverity
    message: str
    action: AlertAction
    timestamp: datetime
    ticker: Optional[str] = None
    portfolio_id: Optional[str] = None
    current_price: Optional[float] = None
    entry_price: Optional[float] = None
    stop_loss: Optional[float] = None
    take_profit: Optional[float] = None


@dataclass
class PositionRisk(_Serializable):
    ticker: str
    portfolio_id: str
    position_value: float
    portfolio_weight_pct: float
    pnl_pct: float
    risk_score: int
    risk_level: RiskLevel
    metrics: PositionMetrics
    stop_loss_distance_pct: Optional[float] = None
    alerts: List[Alert] = field(default_factory=list)
    performance_score: int = 0


@dataclass(frozen=True)
class SkippedPosition(_Serializable):
    """A position excluded from aggregation and why"""

    ticker: str
    reason: str


@dataclass
class PortfolioRiskSummary(_Serializable):
    portfolio_id: str
    total_value: float = 0.0
    weighted_return_pct: float = 0.0
    weighted_volatility_pct: float = 0.0
    sharpe_ratio: float = 0.0
    avg_risk_score: float = 0.0
    max_weight_pct: float = 0.0
    concentration_risk: RiskLevel = RiskLevel.LOW
    diversification_score: float = 0.0
    risk_level: RiskLevel = RiskLevel.LOW
    high_risk_positions: int = 0
    medium_risk_positions: int = 0
    low_risk_positions: int = 0
    estimated_value_pct: float = 0.0
    sector_weights: Dict[str, float] = field(default_factory=dict)
    position_risks: List[PositionRisk] = field(default_factory=list)
    alerts: List[Alert] = field(default_factory=list)
    skipped: List[SkippedPosition] = field(default_factory=list)
    estimated: bool = False
    degraded: bool = False

    def all_alerts(self) -> List[Alert]:
        """Position alerts followed by portfolio-level alerts"""
        collected = [alert for risk in self.position_risks for alert in risk.alerts]
        collected.extend(self.alerts)
        return collected


@dataclass
class PortfolioRollup(_Serializable):
    portfolio_id: str
    total_value: float
    risk_score: float
    risk_level: RiskLevel
    alert_count: int
    degraded: bool = False


@dataclass
class OverallRiskSummary(_Serializable):
    user_id: str
    risk_level: RiskLevel
    weighted_risk_score: float
    total_value: float
    portfolio_count: int
    critical_alerts: int
    high_alerts: int
    portfolios: List[PortfolioRollup]
    generated_at: datetime
    degraded: bool = False


@dataclass(frozen=True)
class PositionDecision(_Serializable):
    """Recommended action for one position; never executed by the engine"""

    ticker: str
    portfolio_id: str
    action: AlertAction
    reason: str
    risk_level: RiskLevel
    performance_score: int = 0
