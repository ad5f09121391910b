"""
Tests for rounding and formatting helpers.
"""

import pytest
from pathlib import Path
import sys

# Add project root to path
sys.path.insert(0, str(Path(__file__).parent.parent))

from utils.formatting import format_currency, format_percent, round_half_up


class TestRoundHalfUp:

    @pytest.mark.parametrize("value,decimals,expected", [
        (2.5, 0, 3),
        (-2.5, 0, -3),
        (42.45, 1, 42.5),
        (0.12345, 4, 0.1235),
    ])
    def test_halves_round_away_from_zero(self, value, decimals, expected):
        assert round_half_up(value, decimals) == expected

    def test_values_beyond_decimal_precision(self):
        assert round_half_up(3.496e36) == int(3.496e36)
        assert round_half_up(1e20, 2) == 1e20

    @pytest.mark.parametrize("value", [float("nan"), float("inf"), float("-inf")])
    def test_non_finite_raises_value_error(self, value):
        with pytest.raises(ValueError):
            round_half_up(value)


class TestFormatting:

    def test_currency(self):
        assert format_currency(1234.5) == "$1,235"
        assert format_currency(-500) == "-$500"

    def test_percent(self):
        assert format_percent(12.345) == "12.3%"
