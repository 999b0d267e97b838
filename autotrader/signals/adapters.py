"""
Concrete source adapters: AI history, realtime AI, TradingView webhooks, legacy engine.
"""

from __future__ import annotations
from datetime import datetime

from autotrader.core.types import BotConfiguration, SignalSourceType
from autotrader.signals.base import SignalAdapter
from autotrader.signals.store import SignalQuery
from autotrader.utils.timeframes import is_short_timeframe


class AiSignalAdapter(SignalAdapter):
    """Fused AI signals. 15 minute window on scalping timeframes, one hour otherwise."""

    source = SignalSourceType.AI
    table = "ai_signals_history"
    side_field = "final_side"
    confidence_fields = ("final_confidence",)
    stop_field = "stop_loss"
    target_field = "take_profit"
    default_min_confidence = 55.0
    default_strategy_name = "AI Ultra Signal"

    def window_minutes(self, bot: BotConfiguration) -> float:
        return 15.0 if is_short_timeframe(bot.default_timeframe or self.default_timeframe) else 60.0

    def build_query(self, bot: BotConfiguration, now: datetime) -> SignalQuery:
        query = super().build_query(bot, now)
        query.side_field = self.side_field
        query.sides = ("BUY", "SELL", "STRONG_BUY", "STRONG_SELL")
        return query


class RealtimeAiSignalAdapter(SignalAdapter):
    """Same table as AI, but only the last minute and only the first allowed symbol."""

    source = SignalSourceType.REALTIME_AI
    table = "ai_signals_history"
    side_field = "side"
    confidence_fields = ("final_confidence", "confidence")
    stop_field = "stop_loss"
    target_field = "take_profit"
    default_min_confidence = 60.0
    default_strategy_name = "AI Ultra Signal (Real-Time)"

    def window_minutes(self, bot: BotConfiguration) -> float:
        return 1.0

    def symbols(self, bot: BotConfiguration) -> list[str]:
        if not bot.allowed_symbols:
            return []
        return [bot.allowed_symbols[0].replace("/", "")]

    def build_query(self, bot: BotConfiguration, now: datetime) -> SignalQuery:
        query = super().build_query(bot, now)
        query.side_field = self.side_field
        query.sides = ("BUY", "SELL")
        return query


class TradingViewSignalAdapter(SignalAdapter):
    """Webhook alerts stored per account, consumed while execution_status is PENDING."""

    source = SignalSourceType.TRADINGVIEW
    table = "tradingview_signals"
    default_strategy_name = "TradingView"
    account_scoped = True

    def build_query(self, bot: BotConfiguration, now: datetime) -> SignalQuery:
        query = super().build_query(bot, now)
        query.status_field = "execution_status"
        query.status = "PENDING"
        return query


class LegacySignalAdapter(SignalAdapter):
    source = SignalSourceType.LEGACY
    table = "trading_signals"
    default_strategy_name = "Legacy Engine"
    account_scoped = True
