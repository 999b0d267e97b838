"""Core: config, types, logging."""

from autotrader.core.config import load_config, Config
from autotrader.core.types import (
    BotConfiguration,
    MarketType,
    ProfitTakingStrategy,
    SignalSide,
    SignalSourceType,
    UnifiedSignal,
    normalize_symbol,
)
from autotrader.core.logger import setup_logging

__all__ = [
    "load_config",
    "Config",
    "BotConfiguration",
    "MarketType",
    "ProfitTakingStrategy",
    "SignalSide",
    "SignalSourceType",
    "UnifiedSignal",
    "normalize_symbol",
    "setup_logging",
]
