"""Utils: timeframes, exchange filters."""

from autotrader.utils.timeframes import timeframe_minutes, timeframe_ms, is_short_timeframe
from autotrader.utils.exchange_filters import SymbolFilters, parse_symbol_filters, round_price, round_quantity

__all__ = [
    "timeframe_minutes",
    "timeframe_ms",
    "is_short_timeframe",
    "SymbolFilters",
    "parse_symbol_filters",
    "round_price",
    "round_quantity",
]
