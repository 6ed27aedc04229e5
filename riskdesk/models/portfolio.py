"""
Portfolio models for user-owned holdings

Tables:
- portfolios: One row per portfolio, owned by a user
- portfolio_positions: Holdings inside a portfolio, one row per ticker
"""

from datetime import datetime
from typing import List

from sqlalchemy import DateTime, Float, ForeignKey, String, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column, relationship

from riskdesk.core.entities import UNKNOWN_SECTOR, Position
from riskdesk.models.base import Base, TimestampMixin


class Portfolio(Base, TimestampMixin):
    """A named collection of positions belonging to one user"""

    __tablename__ = "portfolios"

    id: Mapped[str] = mapped_column(String(64), primary_key=True)
    user_id: Mapped[str] = mapped_column(String(64), index=True)
    name: Mapped[str | None] = mapped_column(String(120), default=None)

    positions: Mapped[List["PortfolioPosition"]] = relationship(
        back_populates="portfolio",
        cascade="all, delete-orphan",
        order_by="PortfolioPosition.id",
    )


class PortfolioPosition(Base, TimestampMixin):
    """A held position

    Prices are stored as floats; the risk engine works in float percentages
    and never needs exact decimal arithmetic.
    """

    __tablename__ = "portfolio_positions"
    __table_args__ = (UniqueConstraint("portfolio_id", "ticker"),)

    id: Mapped[int] = mapped_column(primary_key=True)
    portfolio_id: Mapped[str] = mapped_column(ForeignKey("portfolios.id", ondelete="CASCADE"))
    ticker: Mapped[str] = mapped_column(String(16))
    shares: Mapped[float] = mapped_column(Float)
    entry_price: Mapped[float] = mapped_column(Float)
    current_price: Mapped[float] = mapped_column(Float)
    stop_loss: Mapped[float | None] = mapped_column(Float, default=None)
    take_profit: Mapped[float | None] = mapped_column(Float, default=None)
    sector: Mapped[str] = mapped_column(String(64), default=UNKNOWN_SECTOR)
    price_updated_at: Mapped[datetime | None] = mapped_column(DateTime(), default=None)

    portfolio: Mapped[Portfolio] = relationship(back_populates="positions")

    def to_position(self) -> Position:
        """Detached read-only snapshot for the risk engine"""
        return Position(
            ticker=self.ticker,
            shares=self.shares,
            entry_price=self.entry_price,
            current_price=self.current_price,
            portfolio_id=self.portfolio_id,
            stop_loss=self.stop_loss,
            take_profit=self.take_profit,
            sector=self.sector or UNKNOWN_SECTOR,
            price_as_of=self.price_updated_at,
        )
