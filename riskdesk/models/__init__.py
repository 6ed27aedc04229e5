"""
SQLAlchemy ORM models package

Provides data models for all database tables:
- Portfolio: Portfolio, PortfolioPosition
- Market data: DailyClose
"""

from riskdesk.models.base import Base, TimestampMixin
from riskdesk.models.market_data import DailyClose
from riskdesk.models.portfolio import Portfolio, PortfolioPosition

__all__ = [
    "Base",
    "TimestampMixin",
    "DailyClose",
    "Portfolio",
    "PortfolioPosition",
]
