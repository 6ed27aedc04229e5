"""
riskdesk/core/portfolio_manager.py - Portfolio and position storage
"""

import logging
from datetime import datetime
from typing import Dict, List, Optional, Tuple

from sqlalchemy import delete, select

from riskdesk.models.portfolio import Portfolio, PortfolioPosition
from .entities import UNKNOWN_SECTOR, Position
from .validation import validate_position


class PortfolioManager:
    """Manages portfolios and their positions in the database

    Write operations return ``(success, issues)`` rather than raising, so
    callers can report every problem with a rejected position at once.
    Reads return detached ``Position`` snapshots for the risk engine.
    """

    def __init__(self, db_manager):
        self.db_manager = db_manager
        self.logger = logging.getLogger(__name__)

    def create_portfolio(
        self, portfolio_id: str, user_id: str, name: Optional[str] = None
    ) -> Tuple[bool, List[str]]:
        """Create a portfolio. Returns (success, issues)"""
        issues = []
        if not isinstance(portfolio_id, str) or not portfolio_id.strip():
            issues.append("Invalid portfolio id")
        if not isinstance(user_id, str) or not user_id.strip():
            issues.append("Invalid user id")
        if issues:
            return False, issues

        portfolio_id = portfolio_id.strip()

        try:
            with self.db_manager.session_context() as session:
                if session.get(Portfolio, portfolio_id) is not None:
                    return False, [f"Portfolio {portfolio_id} already exists"]
                session.add(Portfolio(id=portfolio_id, user_id=user_id.strip(), name=name))

            self.logger.info(f"Created portfolio {portfolio_id} for user {user_id}")
            return True, []

        except Exception as e:
            return False, [f"Database error: {str(e)}"]

    def delete_portfolio(self, portfolio_id: str) -> Tuple[bool, List[str]]:
        """Delete a portfolio and all of its positions. Returns (success, issues)"""
        try:
            with self.db_manager.session_context() as session:
                portfolio = session.get(Portfolio, portfolio_id)
                if portfolio is None:
                    return False, [f"Portfolio {portfolio_id} not found"]
                session.delete(portfolio)
            return True, []

        except Exception as e:
            return False, [f"Database error: {str(e)}"]

    def add_or_update_position(
        self,
        portfolio_id: str,
        ticker: str,
        shares: float,
        entry_price: float,
        current_price: float,
        stop_loss: Optional[float] = None,
        take_profit: Optional[float] = None,
        sector: Optional[str] = None,
        price_updated_at: Optional[datetime] = None,
    ) -> Tuple[bool, List[str]]:
        """Add or update a position. Returns (success, issues)"""
        if not isinstance(ticker, str) or not ticker.strip():
            return False, ["Invalid ticker"]

        position = Position(
            ticker=ticker.upper().strip(),
            shares=shares,
            entry_price=entry_price,
            current_price=current_price,
            portfolio_id=portfolio_id,
            stop_loss=stop_loss,
            take_profit=take_profit,
            sector=sector or UNKNOWN_SECTOR,
            price_as_of=price_updated_at,
        )
        issues = validate_position(position)
        if issues:
            return False, issues

        try:
            with self.db_manager.session_context() as session:
                if session.get(Portfolio, portfolio_id) is None:
                    return False, [f"Portfolio {portfolio_id} not found"]

                row = session.scalar(
                    select(PortfolioPosition).where(
                        PortfolioPosition.portfolio_id == portfolio_id,
                        PortfolioPosition.ticker == position.ticker,
                    )
                )
                if row is None:
                    row = PortfolioPosition(portfolio_id=portfolio_id, ticker=position.ticker)
                    session.add(row)

                row.shares = float(position.shares)
                row.entry_price = float(position.entry_price)
                row.current_price = float(position.current_price)
                row.stop_loss = None if stop_loss is None else float(stop_loss)
                row.take_profit = None if take_profit is None else float(take_profit)
                row.sector = position.sector
                row.price_updated_at = price_updated_at or datetime.now()

            return True, []

        except Exception as e:
            return False, [f"Database error: {str(e)}"]

    def remove_position(self, portfolio_id: str, ticker: str) -> Tuple[bool, List[str]]:
        """Remove a position. Returns (success, issues)"""
        ticker = ticker.upper().strip()

        try:
            with self.db_manager.session_context() as session:
                result = session.execute(
                    delete(PortfolioPosition).where(
                        PortfolioPosition.portfolio_id == portfolio_id,
                        PortfolioPosition.ticker == ticker,
                    )
                )
                if result.rowcount == 0:
                    return False, [f"Position {ticker} not found in {portfolio_id}"]
            return True, []

        except Exception as e:
            return False, [f"Database error: {str(e)}"]

    def update_prices(
        self, prices: Dict[str, Tuple[float, datetime]], portfolio_id: Optional[str] = None
    ) -> int:
        """Set current prices from ``{ticker: (price, as_of)}``. Returns rows updated"""
        updated = 0
        try:
            with self.db_manager.session_context() as session:
                query = select(PortfolioPosition).where(PortfolioPosition.ticker.in_(list(prices)))
                if portfolio_id is not None:
                    query = query.where(PortfolioPosition.portfolio_id == portfolio_id)

                for row in session.scalars(query):
                    price, as_of = prices[row.ticker]
                    if price is None or price <= 0:
                        continue
                    row.current_price = float(price)
                    row.price_updated_at = as_of
                    updated += 1

        except Exception as e:
            self.logger.error(f"Error updating prices: {e}")
            return 0

        self.logger.info(f"Updated prices for {updated} positions")
        return updated

    def list_portfolio_ids(self, user_id: str) -> List[str]:
        """Portfolio ids owned by a user, oldest first"""
        with self.db_manager.session_context() as session:
            return list(
                session.scalars(
                    select(Portfolio.id)
                    .where(Portfolio.user_id == user_id)
                    .order_by(Portfolio.created_at, Portfolio.id)
                )
            )

    def portfolio_exists(self, portfolio_id: str, user_id: Optional[str] = None) -> bool:
        with self.db_manager.session_context() as session:
            portfolio = session.get(Portfolio, portfolio_id)
            if portfolio is None:
                return False
            return user_id is None or portfolio.user_id == user_id

    def get_positions(self, portfolio_id: str) -> List[Position]:
        with self.db_manager.session_context() as session:
            rows = session.scalars(
                select(PortfolioPosition)
                .where(PortfolioPosition.portfolio_id == portfolio_id)
                .order_by(PortfolioPosition.ticker)
            )
            return [row.to_position() for row in rows]

    def get_all_tickers(self, user_id: Optional[str] = None) -> List[str]:
        """Distinct tickers held, optionally for one user only"""
        with self.db_manager.session_context() as session:
            query = select(PortfolioPosition.ticker).distinct()
            if user_id is not None:
                query = query.join(Portfolio).where(Portfolio.user_id == user_id)
            return sorted(session.scalars(query))
