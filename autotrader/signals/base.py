"""
Source adapter interface: query a signal store, map the freshest row to UnifiedSignal.
"""

from __future__ import annotations
import logging
from abc import ABC
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Any, Optional

from autotrader.core.types import (
    BotConfiguration,
    MarketType,
    SignalSide,
    SignalSourceType,
    UnifiedSignal,
)
from autotrader.signals.store import SignalQuery, SignalStore, parse_timestamp

logger = logging.getLogger("autotrader.signals")


class SignalMappingError(ValueError):
    """A store row could not be turned into a UnifiedSignal."""


@dataclass
class SignalResult:
    """Adapter/router output. signal is None when nothing tradable was found."""
    signal: Optional[UnifiedSignal]
    source: SignalSourceType
    error: Optional[str] = None


def resolve_side(value: Any) -> Optional[SignalSide]:
    """
    Map a raw side/signal_type to BUY or SELL.
    STRONG_BUY / STRONG_SELL count as their direction; WAIT, HOLD and blanks give None.
    """
    text = str(value or "").strip().upper()
    if "BUY" in text:
        return SignalSide.BUY
    if "SELL" in text:
        return SignalSide.SELL
    return None


def _opt_float(value: Any) -> Optional[float]:
    if value is None or value == "":
        return None
    return float(value)


class SignalAdapter(ABC):
    """
    One adapter per signal source. Subclasses set the table and field names;
    fetch() never raises, every failure becomes SignalResult(signal=None, error=...).
    """

    source: SignalSourceType
    table: str
    side_field: str = "signal_type"
    confidence_fields: tuple[str, ...] = ("confidence_score",)
    stop_field: str = "stop_loss_price"
    target_field: str = "take_profit_price"
    default_min_confidence: float = 70.0
    default_timeframe: str = "15m"
    default_strategy_name: str = ""
    account_scoped: bool = False

    def __init__(self, store: SignalStore):
        self.store = store

    def window_minutes(self, bot: BotConfiguration) -> float:
        """Recency window for this source."""
        return 30.0

    def min_confidence(self, bot: BotConfiguration) -> float:
        if bot.min_confidence is not None and bot.min_confidence > 0:
            return float(bot.min_confidence)
        return self.default_min_confidence

    def symbols(self, bot: BotConfiguration) -> list[str]:
        return list(bot.allowed_symbols)

    def build_query(self, bot: BotConfiguration, now: datetime) -> SignalQuery:
        return SignalQuery(
            table=self.table,
            account_id=bot.account_id if self.account_scoped else None,
            symbols=self.symbols(bot),
            timeframe=bot.default_timeframe or None,
            confidence_fields=self.confidence_fields,
            min_confidence=self.min_confidence(bot),
            created_after=now - timedelta(minutes=self.window_minutes(bot)),
            limit=1,
        )

    def fetch(self, bot: BotConfiguration, now: Optional[datetime] = None) -> SignalResult:
        now = now or datetime.now(timezone.utc)
        try:
            rows = self.store.fetch(self.build_query(bot, now))
            if not rows:
                return SignalResult(signal=None, source=self.source, error="no fresh signal")
            signal = self.to_signal(rows[0], bot)
        except Exception as e:
            logger.warning("%s adapter failed for account=%s: %s", self.source.value, bot.account_id, e)
            return SignalResult(signal=None, source=self.source, error=str(e))
        logger.debug("%s signal %s %s %s conf=%.1f", self.source.value, signal.id, signal.symbol,
                     signal.side.value, signal.confidence)
        return SignalResult(signal=signal, source=self.source)

    def confidence(self, row: dict) -> float:
        for name in self.confidence_fields:
            value = row.get(name)
            if value not in (None, "", 0):
                return max(0.0, min(100.0, float(value)))
        return 0.0

    def to_signal(self, row: dict, bot: BotConfiguration) -> UnifiedSignal:
        raw_side = row.get(self.side_field)
        side = resolve_side(raw_side)
        if side is None:
            raise SignalMappingError(f"neutral side {raw_side!r} on signal {row.get('id')}")
        generated_at = parse_timestamp(row.get("created_at"))
        if generated_at is None:
            raise SignalMappingError(f"signal {row.get('id')} has no created_at")
        leverage = row.get("leverage")
        market_type = row.get("market_type")
        return UnifiedSignal(
            id=str(row.get("id")),
            account_id=bot.account_id,
            symbol=str(row.get("symbol", "")),
            timeframe=row.get("timeframe") or bot.default_timeframe or self.default_timeframe,
            side=side,
            source=self.source,
            generated_at=generated_at,
            confidence=self.confidence(row),
            entry_price=_opt_float(row.get("entry_price")),
            stop_loss=_opt_float(row.get(self.stop_field)),
            take_profit=_opt_float(row.get(self.target_field)),
            leverage=int(leverage) if leverage else None,
            market_type=MarketType(str(market_type).lower()) if market_type else None,
            strategy_name=row.get("strategy_name") or self.default_strategy_name,
            raw=dict(row),
        )
