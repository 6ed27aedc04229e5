"""
tests/__init__.py
Test package initialization with fixtures, stubs, and sample data
"""

import os
import sys
import tempfile
import threading
import unittest
from datetime import datetime
from typing import Dict, Iterable, Optional
from unittest.mock import MagicMock

import numpy as np
import pandas as pd

# Add project root to path
project_root = os.path.dirname(os.path.dirname(os.path.abspath(__file__)))
sys.path.insert(0, project_root)

from riskdesk.core.entities import Position, PriceSeries

# Fixed evaluation time so results are reproducible
AS_OF = datetime(2024, 6, 28, 16, 0)


class BaseTestCase(unittest.TestCase):
    """Base test case with a temporary SQLite database"""

    def setUp(self):
        """Set up test fixtures"""
        self.test_db = tempfile.NamedTemporaryFile(delete=False, suffix=".db")
        self.test_db.close()
        self.test_db_path = self.test_db.name
        self.database_url = f"sqlite:///{self.test_db_path}"

        os.environ["FLASK_ENV"] = "testing"
        os.environ["DATABASE_PATH"] = self.test_db_path

        from riskdesk.db import init_db_manager
        from riskdesk.core.portfolio_manager import PortfolioManager

        self.db_manager = init_db_manager(self.database_url)
        self.store = PortfolioManager(self.db_manager)

    def tearDown(self):
        """Clean up test fixtures"""
        import riskdesk.db as db_module

        if db_module._db_manager is not None:
            db_module._db_manager.close()
            db_module._db_manager = None

        os.environ.pop("DATABASE_PATH", None)

        if os.path.exists(self.test_db_path):
            try:
                os.unlink(self.test_db_path)
            except OSError:
                pass

    def add_portfolio(self, portfolio_id: str, user_id: str, positions: Iterable[Dict]) -> None:
        """Create a portfolio and its positions, failing the test on any rejection"""
        success, issues = self.store.create_portfolio(portfolio_id, user_id)
        self.assertTrue(success, issues)
        for position in positions:
            success, issues = self.store.add_or_update_position(portfolio_id, **position)
            self.assertTrue(success, issues)


# ============================================================================
# STUBS
# ============================================================================


class StubPriceProvider:
    """In-memory price provider

    Unknown tickers return an empty series. Tickers listed in ``slow``
    block until ``release()`` is called, to exercise request timeouts.
    """

    def __init__(self, series: Optional[Dict[str, PriceSeries]] = None, slow: Iterable[str] = ()):
        self.series = dict(series or {})
        self.slow = set(slow)
        self.calls = []
        self._released = threading.Event()
        self._lock = threading.Lock()

    def get_price_series(self, ticker: str, lookback_days: int = 90) -> PriceSeries:
        with self._lock:
            self.calls.append((ticker, lookback_days))
        if ticker in self.slow:
            self._released.wait(timeout=10)
        return self.series.get(ticker, PriceSeries.empty(ticker))

    def get_latest_price(self, ticker: str):
        series = self.series.get(ticker)
        if series is None or series.is_empty:
            return None
        return float(series.closes.iloc[-1]), series.as_of

    def release(self) -> None:
        self._released.set()


# ============================================================================
# SAMPLE DATA GENERATORS
# ============================================================================


class SampleDataGenerator:
    """Generate sample market data and positions for testing"""

    @staticmethod
    def business_dates(days: int, end: datetime = AS_OF) -> pd.DatetimeIndex:
        return pd.bdate_range(end=end.date(), periods=days)

    @staticmethod
    def generate_ohlcv_data(
        days: int = 100,
        start_price: float = 100.0,
        volatility: float = 0.02,
        end: datetime = AS_OF,
        seed: int = 42,
    ) -> pd.DataFrame:
        """OHLCV frame shaped like a yfinance history download"""
        rng = np.random.default_rng(seed)
        returns = rng.normal(0.0005, volatility, days - 1)
        closes = start_price * np.concatenate([[1.0], np.cumprod(1 + returns)])

        index = SampleDataGenerator.business_dates(days, end).tz_localize("America/New_York")
        index.name = "Date"
        return pd.DataFrame(
            {
                "Open": closes * 0.995,
                "High": closes * 1.01,
                "Low": closes * 0.99,
                "Close": closes,
                "Volume": rng.integers(1_000_000, 5_000_000, days),
                "Dividends": np.zeros(days),
                "Stock Splits": np.zeros(days),
            },
            index=index,
        )

    @staticmethod
    def generate_price_series(
        ticker: str,
        days: int = 91,
        start_price: float = 100.0,
        volatility: float = 0.02,
        end: datetime = AS_OF,
        seed: int = 7,
    ) -> PriceSeries:
        data = SampleDataGenerator.generate_ohlcv_data(days, start_price, volatility, end, seed)
        return PriceSeries.from_frame(ticker, data)

    @staticmethod
    def series_from_closes(ticker: str, closes, end: datetime = AS_OF) -> PriceSeries:
        closes = list(closes)
        dates = SampleDataGenerator.business_dates(len(closes), end)
        return PriceSeries(ticker, pd.Series(closes, index=dates, dtype=float))

    @staticmethod
    def position(
        ticker: str,
        shares: float = 100,
        entry_price: float = 100.0,
        current_price: float = 100.0,
        portfolio_id: str = "P1",
        **kwargs,
    ) -> Position:
        return Position(
            ticker=ticker,
            shares=shares,
            entry_price=entry_price,
            current_price=current_price,
            portfolio_id=portfolio_id,
            **kwargs,
        )


# ============================================================================
# MOCK HELPERS
# ============================================================================


class YFinanceMockHelper:
    """Helper for mocking yfinance API calls"""

    @staticmethod
    def create_mock_ticker(ticker_data: Dict[str, pd.DataFrame]):
        """Replacement for yfinance.Ticker whose history() serves canned frames"""

        def make_ticker(symbol):
            ticker = MagicMock()
            ticker.ticker = symbol
            ticker.history.return_value = ticker_data.get(symbol, pd.DataFrame())
            return ticker

        return MagicMock(side_effect=make_ticker)
