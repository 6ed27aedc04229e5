"""
CLI commands for the risk desk

Provides commands for:
- Database setup
- Managing portfolios and positions
- Refreshing current prices
- Printing risk summaries, portfolio breakdowns, alerts and decisions
"""

import json
import sys
import logging
import click
from typing import Any, Dict, Optional

# Setup logging
logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
)
logger = logging.getLogger(__name__)

SEVERITY_CHOICES = ["LOW", "MEDIUM", "HIGH", "CRITICAL"]


def _services(ctx: click.Context) -> Dict[str, Any]:
    """Build (once per invocation) the database, store, provider and orchestrator

    Tests pre-populate ``ctx.obj`` with a db_manager and/or provider.
    """
    from riskdesk.core.data_manager import DataManager
    from riskdesk.core.portfolio_manager import PortfolioManager
    from riskdesk.core.risk_service import RiskSummaryOrchestrator
    from riskdesk.db import DatabaseManager
    from config.settings import Config

    obj = ctx.ensure_object(dict)
    if "orchestrator" in obj:
        return obj

    if obj.get("db_manager") is None:
        obj["db_manager"] = DatabaseManager(obj.get("database_url") or Config.DATABASE_URL())
        obj["db_manager"].init_db()
    if obj.get("provider") is None:
        obj["provider"] = DataManager(
            db_manager=obj["db_manager"],
            cache_ttl_hours=Config.CACHE_TTL_HOURS(),
            min_request_interval=Config.MIN_REQUEST_INTERVAL(),
        )

    obj["store"] = PortfolioManager(obj["db_manager"])
    obj["orchestrator"] = RiskSummaryOrchestrator(
        obj["store"], obj["provider"], Config.RISK_THRESHOLDS()
    )
    return obj


def _fail(message: str) -> None:
    click.echo(f"Error: {message}", err=True)
    sys.exit(1)


def _echo_json(data: Dict[str, Any]) -> None:
    click.echo(json.dumps(data, indent=2))


@click.group()
@click.option("--database-url", default=None, help="SQLAlchemy URL (defaults to configuration)")
@click.pass_context
def cli(ctx: click.Context, database_url: Optional[str]) -> None:
    """Risk Desk CLI - portfolio risk commands"""
    ctx.ensure_object(dict)
    if database_url:
        ctx.obj["database_url"] = database_url


@cli.command()
@click.pass_context
def init_db(ctx: click.Context) -> None:
    """Create database tables"""
    try:
        services = _services(ctx)
        info = services["db_manager"].get_database_info()
        click.echo(f"✓ Database ready ({info['database_type']}: {info['database_url']})")
        click.echo(f"✓ Tables: {', '.join(info['tables'])}")

    except Exception as e:
        logger.exception("Database initialization failed")
        _fail(str(e))


@cli.command()
@click.option("--portfolio", "portfolio_id", required=True, help="Portfolio id")
@click.option("--user", "user_id", required=True, help="Owning user id")
@click.option("--name", default=None, help="Display name")
@click.pass_context
def create_portfolio(ctx: click.Context, portfolio_id: str, user_id: str, name: Optional[str]) -> None:
    """Create an empty portfolio for a user"""
    success, issues = _services(ctx)["store"].create_portfolio(portfolio_id, user_id, name)
    if not success:
        _fail("; ".join(issues))
    click.echo(f"✓ Created portfolio {portfolio_id} for user {user_id}")


@cli.command()
@click.option("--portfolio", "portfolio_id", required=True, help="Portfolio id")
@click.option("--ticker", required=True, help="Stock symbol")
@click.option("--shares", type=float, required=True)
@click.option("--entry-price", type=float, required=True)
@click.option("--current-price", type=float, required=True)
@click.option("--stop-loss", type=float, default=None)
@click.option("--take-profit", type=float, default=None)
@click.option("--sector", default=None)
@click.pass_context
def add_position(
    ctx: click.Context,
    portfolio_id: str,
    ticker: str,
    shares: float,
    entry_price: float,
    current_price: float,
    stop_loss: Optional[float],
    take_profit: Optional[float],
    sector: Optional[str],
) -> None:
    """Add a position, or replace the existing position for the ticker"""
    success, issues = _services(ctx)["store"].add_or_update_position(
        portfolio_id,
        ticker,
        shares,
        entry_price,
        current_price,
        stop_loss=stop_loss,
        take_profit=take_profit,
        sector=sector,
    )
    if not success:
        _fail("; ".join(issues))
    click.echo(f"✓ {ticker.upper()} saved in {portfolio_id}")


@cli.command()
@click.option("--portfolio", "portfolio_id", required=True, help="Portfolio id")
@click.option("--ticker", required=True, help="Stock symbol")
@click.pass_context
def remove_position(ctx: click.Context, portfolio_id: str, ticker: str) -> None:
    """Remove a position from a portfolio"""
    success, issues = _services(ctx)["store"].remove_position(portfolio_id, ticker)
    if not success:
        _fail("; ".join(issues))
    click.echo(f"✓ {ticker.upper()} removed from {portfolio_id}")


@cli.command()
@click.option("--user", "user_id", default=None, help="Only refresh this user's tickers")
@click.pass_context
def refresh_prices(ctx: click.Context, user_id: Optional[str]) -> None:
    """Update current prices from the latest daily closes"""
    services = _services(ctx)
    tickers = services["store"].get_all_tickers(user_id)
    if not tickers:
        click.echo("No positions to refresh")
        return

    prices = {}
    for ticker in tickers:
        latest = services["provider"].get_latest_price(ticker)
        if latest is None:
            click.echo(f"  ! No price for {ticker}", err=True)
            continue
        prices[ticker] = latest

    updated = services["store"].update_prices(prices)
    click.echo(f"✓ Updated {updated} positions across {len(prices)}/{len(tickers)} tickers")


@cli.command()
@click.option("--user", "user_id", required=True, help="User id")
@click.option("--json", "as_json", is_flag=True, help="Print raw JSON")
@click.pass_context
def summary(ctx: click.Context, user_id: str, as_json: bool) -> None:
    """Overall risk summary across a user's portfolios"""
    result = _services(ctx)["orchestrator"].summarize(user_id)
    if as_json:
        _echo_json(result.to_dict())
        return

    click.echo("\n" + "=" * 60)
    click.echo(f"Risk summary for {user_id}")
    click.echo("=" * 60)
    click.echo(f"Risk level:    {result.risk_level.value}")
    click.echo(f"Risk score:    {result.weighted_risk_score:.1f}/100")
    click.echo(f"Total value:   ${result.total_value:,.2f}")
    click.echo(f"Portfolios:    {result.portfolio_count}")
    click.echo(f"Alerts:        {result.critical_alerts} critical, {result.high_alerts} high")
    for rollup in result.portfolios:
        flag = " (degraded)" if rollup.degraded else ""
        click.echo(
            f"  {rollup.portfolio_id:<16} ${rollup.total_value:>14,.2f}  "
            f"{rollup.risk_level.value:<8} {rollup.alert_count} alerts{flag}"
        )
    click.echo("=" * 60 + "\n")


@cli.command()
@click.option("--portfolio", "portfolio_id", required=True, help="Portfolio id")
@click.option("--user", "user_id", default=None, help="Require the portfolio to belong to this user")
@click.option("--json", "as_json", is_flag=True, help="Print raw JSON")
@click.pass_context
def detail(ctx: click.Context, portfolio_id: str, user_id: Optional[str], as_json: bool) -> None:
    """Per-position risk breakdown for one portfolio"""
    from riskdesk.core.errors import PortfolioNotFoundError

    try:
        result = _services(ctx)["orchestrator"].detail(portfolio_id, user_id=user_id)
    except PortfolioNotFoundError as e:
        _fail(str(e))
        return

    if as_json:
        _echo_json(result.to_dict())
        return

    click.echo(f"\nPortfolio {portfolio_id}: {result.risk_level.value} risk")
    click.echo(f"Value ${result.total_value:,.2f} | return {result.weighted_return_pct:.2f}% | "
               f"volatility {result.weighted_volatility_pct:.2f}% | Sharpe {result.sharpe_ratio:.2f}")
    click.echo(f"Concentration {result.concentration_risk.value} ({result.max_weight_pct:.1f}% max) | "
               f"diversification {result.diversification_score:.0f}/100")
    if result.estimated:
        click.echo(f"Estimated metrics cover {result.estimated_value_pct:.0f}% of value")

    click.echo("-" * 60)
    for risk in result.position_risks:
        click.echo(
            f"  {risk.ticker:<8} {risk.portfolio_weight_pct:>6.1f}%  score {risk.risk_score}/5  "
            f"{risk.risk_level.value:<6}  P&L {risk.pnl_pct:+.1f}%"
        )
        for alert in risk.alerts:
            click.echo(f"      [{alert.severity.value}] {alert.message}")
    for alert in result.alerts:
        click.echo(f"  [{alert.severity.value}] {alert.message}")
    for skipped in result.skipped:
        click.echo(f"  skipped {skipped.ticker}: {skipped.reason}")


@cli.command()
@click.option("--user", "user_id", required=True, help="User id")
@click.option("--severity", type=click.Choice(SEVERITY_CHOICES, case_sensitive=False), default="LOW",
              help="Minimum severity to show")
@click.pass_context
def alerts(ctx: click.Context, user_id: str, severity: str) -> None:
    """All alerts for a user, most severe first"""
    from riskdesk.core.entities import AlertSeverity

    threshold = AlertSeverity(severity.upper())
    found = [
        alert
        for alert in _services(ctx)["orchestrator"].user_alerts(user_id)
        if alert.severity.rank >= threshold.rank
    ]
    if not found:
        click.echo("No alerts")
        return

    for alert in found:
        subject = alert.ticker or alert.portfolio_id
        click.echo(f"[{alert.severity.value:<8}] {alert.type.value:<16} {subject}: {alert.message} -> {alert.action.value}")


@cli.command()
@click.option("--user", "user_id", required=True, help="User id")
@click.pass_context
def decisions(ctx: click.Context, user_id: str) -> None:
    """Recommended action for each of a user's positions"""
    result = _services(ctx)["orchestrator"].update_decisions(user_id)
    if not result:
        click.echo("No positions")
        return

    for decision in result:
        click.echo(
            f"{decision.portfolio_id:<16} {decision.ticker:<8} {decision.action.value:<8} "
            f"{decision.reason}"
        )


if __name__ == "__main__":
    cli()
