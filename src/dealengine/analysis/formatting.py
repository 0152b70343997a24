# src/dealengine/analysis/formatting.py
from __future__ import annotations

import math


def fmt_currency(value: float) -> str:
    """$1,234 style, whole dollars, leading minus for losses."""
    if math.isinf(value):
        return "∞" if value > 0 else "-∞"
    sign = "-" if value < 0 else ""
    return f"{sign}${abs(value):,.0f}"


def fmt_pct(value: float, digits: int = 1) -> str:
    if math.isinf(value):
        return "∞"
    return f"{value:.{digits}f}%"


def format_ratio(value: float, no_debt_label: str = "No Debt") -> str:
    """
    DSCR-style ratio. +inf means there is nothing to cover (no debt service),
    so it renders as a label instead of a number.
    """
    if math.isinf(value) and value > 0:
        return no_debt_label
    if math.isinf(value):
        return "-∞"
    return f"{value:.2f}x"


def format_break_even(value: float) -> str:
    # +inf: gross margin is not positive, no revenue level breaks even
    if math.isinf(value):
        return "∞"
    return fmt_currency(value)
