"""
riskdesk/core/risk_service.py - Cross-portfolio risk summaries for a user

Fans the per-ticker price fetches out over a thread pool, then runs the
metrics -> scoring -> aggregation -> alerts pipeline for every portfolio
once all fetches have finished or the request deadline has passed.
"""

import logging
from concurrent.futures import ThreadPoolExecutor, wait
from dataclasses import replace
from datetime import datetime, timedelta
from typing import Any, Dict, List, Optional, Set, Tuple

from config.settings import RiskThresholds
from .aggregator import PortfolioAggregator
from .alerts import AlertGenerator, escalate_risk_level, sort_alerts
from .entities import (
    RISK_SCORE_SCALE,
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
from .errors import PortfolioNotFoundError
from .metrics import MetricsCalculator
from .risk_scorer import PositionRiskScorer, performance_level
from .validation import normalize_position, validate_position


class RiskSummaryOrchestrator:
    """
    Runs the risk pipeline for every portfolio a user owns

    Collaborators are duck-typed:
    - store: list_portfolio_ids(user_id), portfolio_exists(portfolio_id, user_id=None),
      get_positions(portfolio_id)
    - provider: get_price_series(ticker, lookback_days) -> PriceSeries

    The orchestrator keeps no state between calls, so one instance may
    serve concurrent requests.
    """

    def __init__(
        self,
        store: Any,
        provider: Any,
        thresholds: Optional[RiskThresholds] = None,
    ):
        self.store = store
        self.provider = provider
        self.thresholds = thresholds or RiskThresholds()

        self.calculator = MetricsCalculator(self.thresholds)
        self.scorer = PositionRiskScorer(self.thresholds)
        self.aggregator = PortfolioAggregator(self.thresholds)
        self.alert_generator = AlertGenerator(self.thresholds)

        self.logger = logging.getLogger(__name__)

    # ------------------------------------------------------------------
    # Public entry points
    # ------------------------------------------------------------------

    def summarize(self, user_id: str, as_of: Optional[datetime] = None) -> OverallRiskSummary:
        """Value-weighted risk summary across all of a user's portfolios"""
        as_of = as_of or datetime.now()
        summaries = self.evaluate_user(user_id, as_of)

        total_value = sum(s.total_value for s in summaries)
        if total_value > 0:
            weighted_score = sum(s.avg_risk_score * s.total_value for s in summaries) / total_value
        else:
            weighted_score = 0.0
        risk_score = weighted_score * RISK_SCORE_SCALE

        all_alerts = [alert for s in summaries for alert in s.all_alerts()]
        critical = sum(1 for a in all_alerts if a.severity == AlertSeverity.CRITICAL)
        high = sum(1 for a in all_alerts if a.severity == AlertSeverity.HIGH)

        level = self.level_for_scaled_score(risk_score)
        level = escalate_risk_level(level, all_alerts)

        rollups = [
            PortfolioRollup(
                portfolio_id=s.portfolio_id,
                total_value=s.total_value,
                risk_score=s.avg_risk_score * RISK_SCORE_SCALE,
                risk_level=s.risk_level,
                alert_count=len(s.all_alerts()),
                degraded=s.degraded,
            )
            for s in summaries
        ]

        self.logger.info(
            f"Risk summary for user {user_id}: {len(summaries)} portfolios, "
            f"score={risk_score:.1f}, level={level.value}, critical={critical}, high={high}"
        )

        return OverallRiskSummary(
            user_id=user_id,
            risk_level=level,
            weighted_risk_score=risk_score,
            total_value=total_value,
            portfolio_count=len(summaries),
            critical_alerts=critical,
            high_alerts=high,
            portfolios=rollups,
            generated_at=as_of,
            degraded=any(s.degraded for s in summaries),
        )

    def detail(
        self,
        portfolio_id: str,
        user_id: Optional[str] = None,
        as_of: Optional[datetime] = None,
    ) -> PortfolioRiskSummary:
        """Full risk breakdown for one portfolio

        Raises:
            PortfolioNotFoundError: if the portfolio does not exist (or is
                not owned by ``user_id`` when one is given)
        """
        if not self.store.portfolio_exists(portfolio_id, user_id=user_id):
            raise PortfolioNotFoundError(portfolio_id)

        as_of = as_of or datetime.now()
        valid, skipped = self._partition_positions(self.store.get_positions(portfolio_id))
        series, timed_out = self.fetch_price_series({p.ticker for p in valid})
        return self.evaluate_portfolio(portfolio_id, valid, series, timed_out, as_of, skipped)

    def user_alerts(self, user_id: str, as_of: Optional[datetime] = None) -> List[Alert]:
        """Every position and portfolio alert for a user, most severe first"""
        summaries = self.evaluate_user(user_id, as_of or datetime.now())
        return sort_alerts(alert for s in summaries for alert in s.all_alerts())

    def update_decisions(
        self, user_id: str, as_of: Optional[datetime] = None
    ) -> List[PositionDecision]:
        """Recompute the pipeline and recommend one action per position

        Decisions are returned, never written back to the positions.
        """
        summaries = self.evaluate_user(user_id, as_of or datetime.now())
        decisions = [
            self.decide(risk) for summary in summaries for risk in summary.position_risks
        ]
        self.logger.info(f"Computed {len(decisions)} position decisions for user {user_id}")
        return decisions

    # ------------------------------------------------------------------
    # Pipeline
    # ------------------------------------------------------------------

    def evaluate_user(self, user_id: str, as_of: datetime) -> List[PortfolioRiskSummary]:
        """Evaluate all portfolios of a user with one shared fetch fan-out"""
        portfolio_ids = self.store.list_portfolio_ids(user_id)
        partitioned = {
            pid: self._partition_positions(self.store.get_positions(pid)) for pid in portfolio_ids
        }

        tickers = {p.ticker for valid, _ in partitioned.values() for p in valid}
        series, timed_out = self.fetch_price_series(tickers)

        return [
            self.evaluate_portfolio(pid, valid, series, timed_out, as_of, skipped)
            for pid, (valid, skipped) in partitioned.items()
        ]

    def fetch_price_series(self, tickers: Set[str]) -> Tuple[Dict[str, PriceSeries], Set[str]]:
        """
        Fetch price series for many tickers concurrently

        Waits for all fetches up to the configured timeout. Provider errors
        and fetches still running at the deadline leave the ticker without
        a series, which sends it down the fallback path.

        Returns:
            (series_by_ticker, timed_out_tickers)
        """
        results: Dict[str, PriceSeries] = {}
        timed_out: Set[str] = set()

        if not tickers:
            return results, timed_out

        lookback = self.thresholds.lookback_days
        executor = ThreadPoolExecutor(max_workers=min(self.thresholds.max_workers, len(tickers)))
        try:
            future_to_ticker = {
                executor.submit(self.provider.get_price_series, ticker, lookback): ticker
                for ticker in sorted(tickers)
            }
            done, not_done = wait(future_to_ticker, timeout=self.thresholds.summary_timeout_seconds)

            for future in done:
                ticker = future_to_ticker[future]
                try:
                    results[ticker] = future.result()
                except Exception as e:
                    self.logger.error(f"Price history fetch failed for {ticker}: {e}")

            for future in not_done:
                ticker = future_to_ticker[future]
                future.cancel()
                timed_out.add(ticker)
                self.logger.warning(f"Price history fetch timed out for {ticker}")
        finally:
            # Do not block the request on fetches that missed the deadline
            executor.shutdown(wait=False, cancel_futures=True)

        self.logger.info(
            f"Fetched price history for {len(results)}/{len(tickers)} tickers"
            + (f", {len(timed_out)} timed out" if timed_out else "")
        )
        return results, timed_out

    def evaluate_portfolio(
        self,
        portfolio_id: str,
        positions: List[Position],
        series_by_ticker: Dict[str, PriceSeries],
        timed_out: Set[str],
        as_of: datetime,
        skipped: Optional[List[SkippedPosition]] = None,
    ) -> PortfolioRiskSummary:
        """Run metrics, scoring, aggregation and alerts for one portfolio

        ``positions`` must already have passed ``_partition_positions``;
        the positions it rejected are passed through as ``skipped``.
        """
        valid: List[Position] = []
        metrics_by_ticker: Dict[str, PositionMetrics] = {}
        for position in positions:
            series = self._fresh_series(series_by_ticker.get(position.ticker), as_of)
            position, stale_price = self._refresh_current_price(position, series, as_of)

            metrics = self.calculator.compute_metrics(position, series)
            if stale_price:
                metrics = replace(metrics, estimated=True)

            valid.append(position)
            metrics_by_ticker[position.ticker] = metrics

        total_value = sum(p.value for p in valid)
        risks_by_ticker: Dict[str, PositionRisk] = {
            p.ticker: self.scorer.score_risk(p, metrics_by_ticker[p.ticker], total_value)
            for p in valid
        }

        summary = self.aggregator.aggregate(portfolio_id, valid, metrics_by_ticker, risks_by_ticker)
        summary.skipped = list(skipped or [])
        summary.degraded = any(p.ticker in timed_out for p in valid)

        for position in valid:
            risk = risks_by_ticker[position.ticker]
            risk.alerts = self.alert_generator.generate_alerts(
                position, metrics_by_ticker[position.ticker], risk, timestamp=as_of
            )
        summary.alerts = self.alert_generator.generate_portfolio_alerts(summary, timestamp=as_of)
        summary.risk_level = escalate_risk_level(summary.risk_level, summary.all_alerts())

        return summary

    def level_for_scaled_score(self, risk_score: float) -> RiskLevel:
        """Tier a 0-100 risk score with the position tiers scaled by 20

        Anything above the scaled High tier (an average above 4) is Critical.
        """
        high = self.thresholds.high_risk_score * RISK_SCORE_SCALE
        if risk_score > high:
            return RiskLevel.CRITICAL
        elif risk_score >= high:
            return RiskLevel.HIGH
        elif risk_score >= self.thresholds.medium_risk_score * RISK_SCORE_SCALE:
            return RiskLevel.MEDIUM
        return RiskLevel.LOW

    def decide(self, risk: PositionRisk) -> PositionDecision:
        """Recommended action for a position

        Alerts decide first: SELL, then REDUCE on a position size alert,
        then MONITOR on any other alert. A position without alerts is held
        unless its performance score marks it weak, which asks for
        monitoring instead.
        """
        t = self.thresholds
        alerts = sort_alerts(risk.alerts)
        performance = risk.performance_score

        sell = [a for a in alerts if a.action == AlertAction.SELL]
        reduce = [a for a in alerts if a.type == AlertType.POSITION_SIZE]

        if sell:
            action, reason = AlertAction.SELL, sell[0].message
        elif reduce:
            action, reason = AlertAction.REDUCE, reduce[0].message
        elif alerts:
            action, reason = AlertAction.MONITOR, alerts[0].message
        elif performance <= t.weak_performance_score:
            action, reason = AlertAction.MONITOR, f"Weak position (performance score {performance})"
        else:
            label = "Strong" if performance >= t.strong_performance_score else "Neutral"
            action, reason = (
                AlertAction.HOLD,
                f"{label} position (performance score {performance}, risk score {risk.risk_score}/5)",
            )

        level = escalate_risk_level(risk.risk_level, alerts)
        level = max(
            level,
            performance_level(performance, risk.stop_loss_distance_pct, t),
            key=lambda lvl: lvl.rank,
        )

        return PositionDecision(
            ticker=risk.ticker,
            portfolio_id=risk.portfolio_id,
            action=action,
            reason=reason,
            risk_level=level,
            performance_score=performance,
        )

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    def _partition_positions(
        self, positions: List[Position]
    ) -> Tuple[List[Position], List[SkippedPosition]]:
        valid: List[Position] = []
        skipped: List[SkippedPosition] = []
        seen: Set[str] = set()

        for position in positions:
            issues = validate_position(position)
            if not issues and position.ticker in seen:
                issues = ["Duplicate ticker in portfolio"]

            if issues:
                reason = "; ".join(issues)
                self.logger.warning(
                    f"Skipping position {position.ticker!r} in {position.portfolio_id}: {reason}"
                )
                skipped.append(SkippedPosition(ticker=str(position.ticker), reason=reason))
                continue

            seen.add(position.ticker)
            valid.append(normalize_position(position))

        return valid, skipped

    def _refresh_current_price(
        self, position: Position, series: Optional[PriceSeries], as_of: datetime
    ) -> Tuple[Position, bool]:
        """
        Replace a stale current price with the latest close when one is newer

        Returns:
            (position, stale) where ``stale`` means the current price is too
            old and no fresher close was available
        """
        priced_at = position.price_as_of
        max_age = timedelta(days=self.thresholds.max_series_age_days)
        if priced_at is None or as_of - priced_at <= max_age:
            return position, False

        if series is not None and not series.is_empty and series.as_of > priced_at:
            last_close = float(series.closes.iloc[-1])
            self.logger.info(
                f"Current price for {position.ticker} is stale ({priced_at.date()}), "
                f"using close {last_close:.2f} from {series.as_of.date()}"
            )
            return replace(position, current_price=last_close, price_as_of=series.as_of), False

        self.logger.warning(
            f"Current price for {position.ticker} is stale ({priced_at.date()}) "
            f"and no fresher close is available, marking metrics estimated"
        )
        return position, True

    def _fresh_series(
        self, series: Optional[PriceSeries], as_of: datetime
    ) -> Optional[PriceSeries]:
        """Drop a series whose last close is too old to describe the position"""
        if series is None or series.is_empty:
            return series

        max_age = timedelta(days=self.thresholds.max_series_age_days)
        last_close = series.as_of
        if last_close is not None and as_of - last_close > max_age:
            self.logger.warning(
                f"Price history for {series.ticker} is stale (last close {last_close.date()}), "
                f"using estimate"
            )
            return None
        return series
