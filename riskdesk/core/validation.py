"""
riskdesk/core/validation.py - Position checks applied at the engine boundary
"""

import math
from dataclasses import replace
from decimal import Decimal
from numbers import Real
from typing import Any, List

from .entities import Position

# Stores may hand back SQL Numeric columns as Decimal and pandas-backed values as numpy scalars
_NUMERIC_TYPES = (Real, Decimal)


def _is_positive_number(value: Any) -> bool:
    if isinstance(value, bool) or not isinstance(value, _NUMERIC_TYPES):
        return False
    try:
        number = float(value)
    except (TypeError, ValueError, OverflowError):
        return False
    return math.isfinite(number) and number > 0


def validate_position(position: Position) -> List[str]:
    """Return the reasons a position cannot be evaluated (empty if valid)"""
    issues = []

    if not isinstance(position.ticker, str) or not position.ticker.strip():
        issues.append("Invalid ticker")

    if not _is_positive_number(position.shares):
        issues.append("Shares must be a positive number")

    if not _is_positive_number(position.entry_price):
        issues.append("Entry price must be a positive number")

    if not _is_positive_number(position.current_price):
        issues.append("Current price must be a positive number")

    if position.stop_loss is not None and not _is_positive_number(position.stop_loss):
        issues.append("Stop loss must be a positive number when set")

    if position.take_profit is not None and not _is_positive_number(position.take_profit):
        issues.append("Take profit must be a positive number when set")

    return issues


def normalize_position(position: Position) -> Position:
    """Copy of a validated position with every quantity and price as a float"""

    def as_float(value):
        return None if value is None else float(value)

    return replace(
        position,
        shares=float(position.shares),
        entry_price=float(position.entry_price),
        current_price=float(position.current_price),
        stop_loss=as_float(position.stop_loss),
        take_profit=as_float(position.take_profit),
    )
