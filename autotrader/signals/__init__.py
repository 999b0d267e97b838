"""Signals: store interface, source adapters, router."""

from autotrader.signals.store import SignalQuery, SignalStore, InMemorySignalStore, parse_timestamp
from autotrader.signals.base import SignalAdapter, SignalResult, SignalMappingError, resolve_side
from autotrader.signals.adapters import (
    AiSignalAdapter,
    RealtimeAiSignalAdapter,
    TradingViewSignalAdapter,
    LegacySignalAdapter,
)
from autotrader.signals.router import SignalRouter, resolve_source

__all__ = [
    "SignalQuery",
    "SignalStore",
    "InMemorySignalStore",
    "parse_timestamp",
    "SignalAdapter",
    "SignalResult",
    "SignalMappingError",
    "resolve_side",
    "AiSignalAdapter",
    "RealtimeAiSignalAdapter",
    "TradingViewSignalAdapter",
    "LegacySignalAdapter",
    "SignalRouter",
    "resolve_source",
]
