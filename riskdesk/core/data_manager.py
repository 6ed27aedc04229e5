"""
riskdesk/core/data_manager.py - Daily close history from Yahoo Finance
"""

import logging
import threading
import time
from datetime import datetime, timedelta
from typing import Dict, Optional, Tuple

import pandas as pd
import yfinance as yf
from sqlalchemy import select
from sqlalchemy.dialects.sqlite import insert as sqlite_insert
from sqlalchemy.dialects.postgresql import insert as postgresql_insert

from riskdesk.models.market_data import DailyClose
from .entities import PriceSeries


class DataManager:
    """
    Price history provider backed by yfinance

    Handles retrieval, cleaning, in-memory caching and error recovery. When
    a database manager is supplied, downloaded closes are persisted and
    served back if a later download fails. Never raises to callers: any
    failure yields an empty PriceSeries so the risk engine falls back to
    its estimate.
    """

    def __init__(
        self,
        db_manager=None,
        cache_ttl_hours: float = 6,
        min_request_interval: float = 0.1,
    ):
        self.db_manager = db_manager
        self.cache_ttl = timedelta(hours=cache_ttl_hours)
        self.logger = logging.getLogger(__name__)

        # ticker -> (fetched_at, closes, lookback_days the download covered)
        self._cache: Dict[str, Tuple[datetime, pd.Series, int]] = {}
        self._lock = threading.Lock()

        # Rate limiting
        self.last_request_time: Dict[str, float] = {}
        self.min_request_interval = min_request_interval

    def _rate_limit(self, ticker: str) -> None:
        with self._lock:
            now = time.time()
            wait_for = 0.0
            if ticker in self.last_request_time:
                elapsed = now - self.last_request_time[ticker]
                if elapsed < self.min_request_interval:
                    wait_for = self.min_request_interval - elapsed
            self.last_request_time[ticker] = now + wait_for
        if wait_for > 0:
            time.sleep(wait_for)

    def get_price_series(self, ticker: str, lookback_days: int = 90) -> PriceSeries:
        """
        Daily closes for a ticker, most recent ``lookback_days`` trading days

        Args:
            ticker: Stock symbol
            lookback_days: Number of trailing closes wanted

        Returns:
            PriceSeries (empty when nothing could be retrieved)
        """
        ticker = ticker.upper().strip()

        cached = self._get_cached(ticker, lookback_days)
        if cached is not None:
            self.logger.debug(f"Using cached closes for {ticker}")
            return PriceSeries(ticker, cached.iloc[-lookback_days:])

        try:
            self._rate_limit(ticker)

            # Calendar window wide enough to hold lookback_days trading days
            start = (datetime.now() - timedelta(days=int(lookback_days * 1.6) + 10)).date()
            self.logger.info(f"Downloading {ticker} daily closes since {start}")
            data = yf.Ticker(ticker).history(start=start.isoformat(), interval="1d")

            if data is None or data.empty:
                self.logger.warning(f"No data returned for {ticker}")
                return self._stored_series(ticker, lookback_days)

            closes = self._clean_closes(data)
            if closes.empty:
                self.logger.warning(f"No usable closes for {ticker}")
                return self._stored_series(ticker, lookback_days)

            self._put_cached(ticker, closes, lookback_days)
            self._store_closes(ticker, closes)

            self.logger.info(f"Retrieved {len(closes)} closes for {ticker}")
            return PriceSeries(ticker, closes.iloc[-lookback_days:])

        except Exception as e:
            self.logger.error(f"Error retrieving data for {ticker}: {e}")
            return self._stored_series(ticker, lookback_days)

    def get_latest_price(self, ticker: str) -> Optional[Tuple[float, datetime]]:
        """Most recent close and its date, or None when unavailable"""
        series = self.get_price_series(ticker, lookback_days=5)
        if series.is_empty:
            return None
        return float(series.closes.iloc[-1]), series.as_of

    def clear_cache(self) -> None:
        with self._lock:
            self._cache.clear()

    def _clean_closes(self, data: pd.DataFrame) -> pd.Series:
        """Close column with gaps forward-filled and non-positive prices dropped"""
        if "Close" not in data.columns:
            return pd.Series(dtype=float)

        data = data.dropna(how="all")

        # Forward fill missing values (max 3 consecutive)
        closes = data["Close"].ffill(limit=3).dropna()
        closes = closes[closes > 0]

        index = pd.DatetimeIndex(closes.index)
        if index.tz is not None:
            index = index.tz_localize(None)
        closes.index = index.normalize()

        # yfinance occasionally repeats the last session with a live quote
        closes = closes[~closes.index.duplicated(keep="last")].sort_index()
        return closes.astype(float)

    def _get_cached(self, ticker: str, lookback_days: int) -> Optional[pd.Series]:
        with self._lock:
            entry = self._cache.get(ticker)
        if entry is None:
            return None

        fetched_at, closes, covered = entry
        if datetime.now() - fetched_at > self.cache_ttl or covered < lookback_days:
            return None
        return closes

    def _put_cached(self, ticker: str, closes: pd.Series, lookback_days: int) -> None:
        with self._lock:
            self._cache[ticker] = (datetime.now(), closes, lookback_days)

    def _store_closes(self, ticker: str, closes: pd.Series) -> None:
        """Persist closes, ignoring dates already stored"""
        if self.db_manager is None or closes.empty:
            return

        rows = [
            {"ticker": ticker, "date": ts.date(), "close": float(value)}
            for ts, value in closes.items()
        ]

        try:
            insert = postgresql_insert if not self.db_manager.is_sqlite else sqlite_insert
            stmt = insert(DailyClose).values(rows).on_conflict_do_nothing(
                index_elements=["ticker", "date"]
            )
            with self.db_manager.session_context() as session:
                session.execute(stmt)
        except Exception as e:
            self.logger.warning(f"Could not store closes for {ticker}: {e}")

    def _stored_series(self, ticker: str, lookback_days: int) -> PriceSeries:
        """Closes persisted by earlier downloads, used as a fallback"""
        if self.db_manager is None:
            return PriceSeries.empty(ticker)

        try:
            with self.db_manager.session_context() as session:
                rows = session.execute(
                    select(DailyClose.date, DailyClose.close)
                    .where(DailyClose.ticker == ticker)
                    .order_by(DailyClose.date.desc())
                    .limit(lookback_days)
                ).all()
        except Exception as e:
            self.logger.error(f"Error retrieving stored closes for {ticker}: {e}")
            return PriceSeries.empty(ticker)

        if rows:
            self.logger.info(f"Returning {len(rows)} stored closes for {ticker}")
        return PriceSeries.from_pairs(ticker, reversed(rows))
