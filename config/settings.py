"""
config/settings.py - Configuration management
"""

import os
import json
from dataclasses import dataclass, asdict, fields
from typing import Dict, List, Any, Optional, cast


@dataclass(frozen=True)
class RiskThresholds:
    """Versioned threshold set used by every risk engine component

    Percentages are plain numbers (30.0 means 30%). Bump ``version``
    whenever a value changes so stored summaries can be traced back to
    the rules that produced them.
    """

    version: str = "1.0"

    # Metrics
    risk_free_rate_pct: float = 2.0
    lookback_days: int = 90
    period_days: Optional[int] = 30
    trading_days_per_year: int = 252
    fallback_volatility_fraction: float = 0.5

    # Position scoring: P&L magnitude tiers and portfolio weight tiers
    pnl_high_pct: float = 100.0
    pnl_medium_pct: float = 50.0
    pnl_low_pct: float = 20.0
    weight_high_pct: float = 30.0
    weight_medium_pct: float = 20.0
    high_risk_score: int = 4
    medium_risk_score: int = 2

    # Portfolio concentration
    concentration_high_pct: float = 30.0
    concentration_medium_pct: float = 20.0

    # Alerts
    stop_loss_proximity_pct: float = 5.0
    take_profit_proximity_pct: float = 5.0
    estimated_value_alert_pct: float = 50.0

    # Decisions: performance score inputs
    momentum_pct: float = 10.0
    near_high_ratio: float = 0.90
    far_high_ratio: float = 0.70
    entry_drawdown_ratio: float = 0.90
    stop_danger_pct: float = 5.0
    stop_caution_pct: float = 10.0
    weak_performance_score: int = -2
    strong_performance_score: int = 2

    # Orchestration
    max_series_age_days: int = 7
    summary_timeout_seconds: float = 30.0
    max_workers: int = 5

    def __post_init__(self) -> None:
        issues = self.validate()
        if issues:
            raise ValueError(f"Invalid risk thresholds: {'; '.join(issues)}")

    def validate(self) -> List[str]:
        """Return a list of problems with this threshold set"""
        issues = []

        if self.lookback_days < 1:
            issues.append("lookback_days must be at least 1")
        if self.period_days is not None and self.period_days < 1:
            issues.append("period_days must be at least 1 when set")
        if self.trading_days_per_year <= 0:
            issues.append("trading_days_per_year must be positive")
        if self.fallback_volatility_fraction < 0:
            issues.append("fallback_volatility_fraction must not be negative")
        if not self.pnl_high_pct > self.pnl_medium_pct > self.pnl_low_pct > 0:
            issues.append("P&L tiers must be positive and strictly decreasing")
        if not self.weight_high_pct > self.weight_medium_pct > 0:
            issues.append("Weight tiers must be positive and strictly decreasing")
        if not self.concentration_high_pct > self.concentration_medium_pct > 0:
            issues.append("Concentration tiers must be positive and strictly decreasing")
        if not self.high_risk_score > self.medium_risk_score > 0:
            issues.append("Risk score levels must be positive and strictly decreasing")
        if self.stop_loss_proximity_pct < 0 or self.take_profit_proximity_pct < 0:
            issues.append("Proximity bands must not be negative")
        if self.momentum_pct <= 0:
            issues.append("momentum_pct must be positive")
        if not 0 < self.far_high_ratio < self.near_high_ratio <= 1:
            issues.append("Period high ratios must satisfy 0 < far < near <= 1")
        if not 0 < self.entry_drawdown_ratio <= 1:
            issues.append("entry_drawdown_ratio must be in (0, 1]")
        if not 0 < self.stop_danger_pct < self.stop_caution_pct:
            issues.append("Stop distance bands must be positive and strictly increasing")
        if not self.weak_performance_score < 0 < self.strong_performance_score:
            issues.append("Performance score bounds must straddle zero")
        if self.max_series_age_days < 0:
            issues.append("max_series_age_days must not be negative")
        if self.summary_timeout_seconds <= 0:
            issues.append("summary_timeout_seconds must be positive")
        if self.max_workers < 1:
            issues.append("max_workers must be at least 1")

        return issues

    @classmethod
    def from_dict(cls, data: Optional[Dict[str, Any]]) -> "RiskThresholds":
        """Build thresholds from a config section, ignoring unknown keys"""
        known = {f.name for f in fields(cls)}
        values = {k: v for k, v in (data or {}).items() if k in known}
        return cls(**values)

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


class Config:
    """Application configuration

    Values come from a JSON file (``CONFIG_PATH``, default ``config.json``)
    with environment variables taking precedence for deployment settings.
    Database configuration via environment variables:
    - DATABASE_URL: full SQLAlchemy connection string (optional)
    - DATABASE_PATH: SQLite file used when DATABASE_URL is not set
    """

    _config_data = None

    @classmethod
    def _load_config(cls) -> Dict:
        """Load configuration from file"""
        if cls._config_data is None:
            config_path = os.getenv("CONFIG_PATH", "config.json")
            try:
                with open(config_path, "r") as f:
                    cls._config_data = json.load(f)
            except FileNotFoundError:
                cls._config_data = cls._get_default_config()
        return cls._config_data

    @classmethod
    def _get_default_config(cls) -> Dict:
        """Default configuration"""
        return {
            "risk_engine": RiskThresholds().to_dict(),
            "data": {
                "database_path": "data/riskdesk.db",
                "cache_ttl_hours": 6,
                "min_request_interval": 0.1,
            },
            "api": {
                # Development mode overrides host to 127.0.0.1
                "host": "0.0.0.0",
                "port": 5000,
                "debug": False,
                "cors_enabled": True,
            },
        }

    @classmethod
    def reload(cls) -> None:
        """Drop the cached configuration so the next access re-reads it"""
        cls._config_data = None

    @classmethod
    def RISK_THRESHOLDS(cls) -> RiskThresholds:
        return RiskThresholds.from_dict(cls._load_config().get("risk_engine"))

    @classmethod
    def DATABASE_PATH(cls) -> str:
        return os.getenv(
            "DATABASE_PATH",
            cls.get("data.database_path", "data/riskdesk.db"),
        )

    @classmethod
    def DATABASE_URL(cls) -> str:
        return os.getenv("DATABASE_URL") or f"sqlite:///{cls.DATABASE_PATH()}"

    @classmethod
    def CACHE_TTL_HOURS(cls) -> float:
        return cast(float, cls.get("data.cache_ttl_hours", 6))

    @classmethod
    def MIN_REQUEST_INTERVAL(cls) -> float:
        return cast(float, cls.get("data.min_request_interval", 0.1))

    @classmethod
    def API_HOST(cls) -> str:
        return os.getenv("HOST", cls.get("api.host", "0.0.0.0"))

    @classmethod
    def API_PORT(cls) -> int:
        return int(os.getenv("PORT", cls.get("api.port", 5000)))

    @classmethod
    def get(cls, path: str, default: Any = None) -> Any:
        """Get configuration value by dot-separated path"""
        keys = path.split(".")
        value = cls._load_config()

        for key in keys:
            if isinstance(value, dict) and key in value:
                value = value[key]
            else:
                return default

        return value

    @classmethod
    def validate_config(cls) -> List[str]:
        """Validate configuration and return list of issues"""
        issues = []
        config = cls._load_config()

        try:
            RiskThresholds.from_dict(config.get("risk_engine"))
        except (TypeError, ValueError) as e:
            issues.append(str(e))

        ttl = config.get("data", {}).get("cache_ttl_hours", 6)
        if not isinstance(ttl, (int, float)) or ttl < 0:
            issues.append("Invalid cache_ttl_hours")

        port = config.get("api", {}).get("port", 5000)
        if not isinstance(port, int) or not 0 < port < 65536:
            issues.append("Invalid api port")

        return issues

    @classmethod
    def save_config(cls, config_data: Dict) -> bool:
        """Save configuration to file"""
        try:
            config_path = os.getenv("CONFIG_PATH", "config.json")
            with open(config_path, "w") as f:
                json.dump(config_data, f, indent=2)
            # Next access reloads from file
            cls._config_data = None
            return True
        except OSError:
            return False


# Environment-specific configurations
class DevelopmentConfig(Config):
    """Development configuration"""

    DEBUG = True
    TESTING = False

    @classmethod
    def API_HOST(cls) -> str:
        return "127.0.0.1"


class ProductionConfig(Config):
    """Production configuration"""

    DEBUG = False
    TESTING = False

    @classmethod
    def API_PORT(cls) -> int:
        return int(os.getenv("PORT", 8080))


class TestingConfig(Config):
    """Testing configuration"""

    DEBUG = True
    TESTING = True

    @classmethod
    def DATABASE_PATH(cls) -> str:
        return os.getenv("DATABASE_PATH", "data/test_riskdesk.db")


def get_config(env: Optional[str] = None) -> type[Config]:
    """Get configuration for an environment name (defaults to FLASK_ENV)"""
    env = env or os.getenv("FLASK_ENV", "production")

    if env == "development":
        return DevelopmentConfig
    elif env == "testing":
        return TestingConfig
    else:
        return ProductionConfig
