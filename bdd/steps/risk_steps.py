"""
Risk Step Definitions

Step implementations for portfolio risk BDD scenarios. Price history is
never downloaded, so every position uses the entry-vs-current estimate.
"""

from behave import given, when, then

from riskdesk.core.entities import PriceSeries
from riskdesk.core.errors import PortfolioNotFoundError
from riskdesk.core.portfolio_manager import PortfolioManager
from riskdesk.core.risk_service import RiskSummaryOrchestrator
from riskdesk.db import DatabaseManager


class NoHistoryProvider:
    def get_price_series(self, ticker, lookback_days=90):
        return PriceSeries.empty(ticker)


@given("the risk desk is initialized")
def step_risk_desk_initialized(context):
    """Start from an empty in-memory database."""
    context.db_manager = DatabaseManager("sqlite://")
    context.db_manager.init_db()
    context.store = PortfolioManager(context.db_manager)
    context.orchestrator = RiskSummaryOrchestrator(context.store, NoHistoryProvider())


@given('user "{user_id}" has a portfolio "{portfolio_id}"')
def step_user_has_portfolio(context, user_id, portfolio_id):
    success, issues = context.store.create_portfolio(portfolio_id, user_id)
    assert success, issues
    context.user_id = user_id


@given('the portfolio "{portfolio_id}" holds {shares:d} shares of "{ticker}" bought at {entry:f} now at {current:f}')
def step_portfolio_holds(context, portfolio_id, shares, ticker, entry, current):
    success, issues = context.store.add_or_update_position(portfolio_id, ticker, shares, entry, current)
    assert success, issues


@given(
    'the portfolio "{portfolio_id}" holds {shares:d} shares of "{ticker}" '
    "bought at {entry:f} now at {current:f} with stop loss {stop:f}"
)
def step_portfolio_holds_with_stop(context, portfolio_id, shares, ticker, entry, current, stop):
    success, issues = context.store.add_or_update_position(
        portfolio_id, ticker, shares, entry, current, stop_loss=stop
    )
    assert success, issues


@given(
    'the portfolio "{portfolio_id}" holds {shares:d} shares of "{ticker}" '
    "bought at {entry:f} now at {current:f} with take profit {target:f}"
)
def step_portfolio_holds_with_target(context, portfolio_id, shares, ticker, entry, current, target):
    success, issues = context.store.add_or_update_position(
        portfolio_id, ticker, shares, entry, current, take_profit=target
    )
    assert success, issues


@when("the user requests their risk summary")
def step_request_summary(context):
    context.summary = context.orchestrator.summarize(context.user_id)
    context.alerts = context.orchestrator.user_alerts(context.user_id)
    context.logger.info(f"Risk level {context.summary.risk_level.value}")


@when("the user requests their alerts")
def step_request_alerts(context):
    context.alerts = context.orchestrator.user_alerts(context.user_id)


@when('the user requests the risk detail for portfolio "{portfolio_id}"')
def step_request_detail(context, portfolio_id):
    try:
        context.detail = context.orchestrator.detail(portfolio_id, user_id=context.user_id)
    except PortfolioNotFoundError as e:
        context.last_error = e


@then('the overall risk level should be "{level}"')
def step_overall_level(context, level):
    assert (
        context.summary.risk_level.value == level
    ), f"Expected {level} but found {context.summary.risk_level.value}"


@then("there should be {count:d} critical alert")
@then("there should be {count:d} critical alerts")
def step_critical_alert_count(context, count):
    assert (
        context.summary.critical_alerts == count
    ), f"Expected {count} critical alerts but found {context.summary.critical_alerts}"


@then('there should be a "{alert_type}" alert for "{ticker}" with severity "{severity}"')
def step_alert_present(context, alert_type, ticker, severity):
    matching = [
        a for a in context.alerts if a.type.value == alert_type and a.ticker == ticker
    ]
    assert matching, f"No {alert_type} alert for {ticker}"
    assert matching[0].severity.value == severity, f"Severity was {matching[0].severity.value}"


@then('the recommended action for "{ticker}" should be "{action}"')
def step_recommended_action(context, ticker, action):
    decisions = {d.ticker: d for d in context.orchestrator.update_decisions(context.user_id)}
    assert ticker in decisions, f"No decision for {ticker}"
    assert (
        decisions[ticker].action.value == action
    ), f"Expected {action} but found {decisions[ticker].action.value}"


@then("the portfolio should not be found")
def step_portfolio_not_found(context):
    assert isinstance(context.last_error, PortfolioNotFoundError), "Expected PortfolioNotFoundError"
