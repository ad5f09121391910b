"""
Utility modules for the assessment engine.
"""

from .formatting import format_currency, format_percent, round_half_up
from .config import Config, configure_logging

__all__ = [
    "format_currency",
    "format_percent",
    "round_half_up",
    "Config",
    "configure_logging",
]
