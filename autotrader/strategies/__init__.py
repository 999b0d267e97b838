"""Strategies: base interface and the SMA/RSI replay rule."""

from autotrader.strategies.base import BaseStrategy
from autotrader.strategies.sma_rsi import SmaRsiTrendStrategy

__all__ = ["BaseStrategy", "SmaRsiTrendStrategy"]
