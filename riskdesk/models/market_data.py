"""
Market data cache

Tables:
- daily_closes: Daily closing prices per ticker, used when the live
  provider is unavailable
"""

from datetime import date as date_type

from sqlalchemy import Date, Float, Index, String, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column

from riskdesk.models.base import Base, TimestampMixin


class DailyClose(Base, TimestampMixin):
    __tablename__ = "daily_closes"
    __table_args__ = (
        UniqueConstraint("ticker", "date"),
        Index("idx_daily_closes_ticker_date", "ticker", "date"),
    )

    id: Mapped[int] = mapped_column(primary_key=True)
    ticker: Mapped[str] = mapped_column(String(16))
    date: Mapped[date_type] = mapped_column(Date())
    close: Mapped[float] = mapped_column(Float)
