"""
riskdesk/core/errors.py - Exceptions raised by the risk engine

Data problems (missing history, invalid positions, slow providers) never
surface as exceptions; they are reported through flags on the results.
These classes cover lookups that cannot produce a result at all.
"""


class RiskEngineError(Exception):
    """Base class for risk engine errors"""


class PortfolioNotFoundError(RiskEngineError):
    """Requested portfolio does not exist or belongs to another user"""

    def __init__(self, portfolio_id: str):
        super().__init__(f"Portfolio {portfolio_id} not found")
        self.portfolio_id = portfolio_id
