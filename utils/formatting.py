"""
Formatting and rounding utilities.
"""

import math
from decimal import ROUND_HALF_UP, Decimal

# Floats at or above 2**52 have no fractional part to round
EXACT_INTEGER_FLOAT = 2.0 ** 52


def round_half_up(value: float, decimals: int = 0):
    """
    Round half away from zero, matching how assessors round money.

    Python's built-in round() uses banker's rounding, which makes
    evidence figures drift by a dollar on exact halves.

    Args:
        value: The number to round.
        decimals: Decimal places to keep (0 returns an int).

    Returns:
        int when decimals is 0, otherwise float.

    Raises:
        ValueError: If value is NaN or infinite.
    """
    value = float(value)
    if not math.isfinite(value):
        raise ValueError(f"Cannot round non-finite value {value!r}")
    if abs(value) >= EXACT_INTEGER_FLOAT:
        return int(value) if decimals == 0 else value
    quantum = Decimal(1).scaleb(-decimals)
    rounded = Decimal(repr(value)).quantize(quantum, rounding=ROUND_HALF_UP)
    if decimals == 0:
        return int(rounded)
    return float(rounded)


def format_currency(amount: float, currency: str = "USD") -> str:
    """
    Format an amount as whole-unit currency.

    Args:
        amount: The amount in whole units (e.g., dollars, not cents).
        currency: Currency code (default USD).

    Returns:
        Formatted currency string.
    """
    symbols = {
        "USD": "$",
        "GBP": "£",
        "EUR": "€",
    }
    symbol = symbols.get(currency, currency + " ")
    whole = round_half_up(amount)
    if whole < 0:
        return f"-{symbol}{abs(whole):,}"
    return f"{symbol}{whole:,}"


def format_percent(value: float, decimals: int = 1) -> str:
    """
    Format a number as a percentage.

    Args:
        value: The percentage value.
        decimals: Number of decimal places.

    Returns:
        Formatted percentage string.
    """
    return f"{round_half_up(value, decimals):.{decimals}f}%"
