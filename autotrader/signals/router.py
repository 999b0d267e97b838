"""
Signal router: pick the adapter for a bot's configured source and fetch one signal.
"""

from __future__ import annotations
import logging
from datetime import datetime
from typing import Optional

from autotrader.core.types import BotConfiguration, SignalSourceType
from autotrader.signals.adapters import (
    AiSignalAdapter,
    LegacySignalAdapter,
    RealtimeAiSignalAdapter,
    TradingViewSignalAdapter,
)
from autotrader.signals.base import SignalAdapter, SignalResult
from autotrader.signals.store import SignalStore

logger = logging.getLogger("autotrader.signals.router")


def resolve_source(value: Optional[str]) -> SignalSourceType:
    """Map a configured source string to the enum; unknown or empty values become AI."""
    try:
        return SignalSourceType(str(value or SignalSourceType.AI.value).strip().lower())
    except ValueError:
        logger.warning("Unknown signal source %r, falling back to %s", value, SignalSourceType.AI.value)
        return SignalSourceType.AI


class SignalRouter:
    """Closed mapping from SignalSourceType to one adapter instance."""

    def __init__(self, store: SignalStore):
        self.adapters: dict[SignalSourceType, SignalAdapter] = {
            SignalSourceType.AI: AiSignalAdapter(store),
            SignalSourceType.REALTIME_AI: RealtimeAiSignalAdapter(store),
            SignalSourceType.TRADINGVIEW: TradingViewSignalAdapter(store),
            SignalSourceType.LEGACY: LegacySignalAdapter(store),
        }

    def adapter_for(self, bot: BotConfiguration) -> SignalAdapter:
        return self.adapters[resolve_source(bot.signal_source)]

    def route(self, account_id: str, bot: BotConfiguration, now: Optional[datetime] = None) -> SignalResult:
        """Fetch the freshest signal for account_id from its configured source. Read-only."""
        adapter = self.adapter_for(bot)
        if not bot.is_active:
            return SignalResult(signal=None, source=adapter.source, error="bot inactive")
        if bot.account_id != account_id:
            logger.warning("Routing account=%s with bot configured for account=%s", account_id, bot.account_id)
        result = adapter.fetch(bot, now=now)
        if result.signal is None:
            logger.info("account=%s source=%s no signal: %s", account_id, adapter.source.value, result.error)
        return result
