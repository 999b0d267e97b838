"""
Decision gate: ordered eligibility filters, first failure wins.
Pure functions of FilterContext + GateOptions; no I/O.
"""

from __future__ import annotations
import math
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Callable, Optional

from autotrader.core.types import (
    BotConfiguration,
    SignalSide,
    SignalSourceType,
    UnifiedSignal,
    normalize_symbol,
)
from autotrader.signals.adapters import (
    AiSignalAdapter,
    LegacySignalAdapter,
    RealtimeAiSignalAdapter,
    TradingViewSignalAdapter,
)

SOURCE_MIN_CONFIDENCE = {
    adapter.source: adapter.default_min_confidence
    for adapter in (AiSignalAdapter, RealtimeAiSignalAdapter, TradingViewSignalAdapter, LegacySignalAdapter)
}

# Rejection codes
BOT_DISABLED = "BOT_DISABLED"
MARKET_TYPE_MISMATCH = "MARKET_TYPE_MISMATCH"
SYMBOL_BLACKLISTED = "SYMBOL_BLACKLISTED"
SYMBOL_NOT_ALLOWED = "SYMBOL_NOT_ALLOWED"
COOLDOWN_ACTIVE = "COOLDOWN_ACTIVE"
MAX_TRADES_REACHED = "MAX_TRADES_REACHED"
LONG_TRADES_DISABLED = "LONG_TRADES_DISABLED"
SHORT_TRADES_DISABLED = "SHORT_TRADES_DISABLED"
EXCHANGE_UNHEALTHY = "EXCHANGE_UNHEALTHY"
LOW_CONFIDENCE = "LOW_CONFIDENCE"


@dataclass
class FilterResult:
    passed: bool
    reason: str = ""
    code: Optional[str] = None


PASSED = FilterResult(passed=True)


@dataclass
class GateOptions:
    cooldown_minutes: float = 15.0
    min_confidence: Optional[float] = None
    default_max_trades: int = 5


@dataclass
class FilterContext:
    """Everything one gate evaluation looks at. Symbol lists default to the bot's."""
    signal: UnifiedSignal
    bot: BotConfiguration
    active_trades_count: int = 0
    exchange_healthy: bool = True
    last_trade_time: Optional[datetime] = None
    allowed_symbols: Optional[list[str]] = None
    blacklist_symbols: Optional[list[str]] = None
    now: datetime = field(default_factory=lambda: datetime.now(timezone.utc))

    def __post_init__(self):
        if self.allowed_symbols is None:
            self.allowed_symbols = list(self.bot.allowed_symbols)
        if self.blacklist_symbols is None:
            self.blacklist_symbols = list(self.bot.blacklist_symbols)


def filter_bot_enabled(ctx: FilterContext, options: GateOptions) -> FilterResult:
    if not ctx.bot.is_active:
        return FilterResult(False, "Bot is not active for this account", BOT_DISABLED)
    return PASSED


def filter_market_type(ctx: FilterContext, options: GateOptions) -> FilterResult:
    """Signals without a declared market type are accepted for either bot type."""
    declared = ctx.signal.market_type
    if declared is not None and declared != ctx.bot.market_type:
        return FilterResult(
            False,
            f"Signal market type {declared.value} does not match bot market type {ctx.bot.market_type.value}",
            MARKET_TYPE_MISMATCH,
        )
    return PASSED


def filter_symbol_allowed(ctx: FilterContext, options: GateOptions) -> FilterResult:
    symbol = normalize_symbol(ctx.signal.symbol)
    if symbol in {normalize_symbol(s) for s in ctx.blacklist_symbols or []}:
        return FilterResult(False, f"Symbol {ctx.signal.symbol} is in blacklist", SYMBOL_BLACKLISTED)
    allowed = {normalize_symbol(s) for s in ctx.allowed_symbols or []}
    if allowed and symbol not in allowed:
        return FilterResult(False, f"Symbol {ctx.signal.symbol} is not in allowed list", SYMBOL_NOT_ALLOWED)
    return PASSED


def filter_cooldown(ctx: FilterContext, options: GateOptions) -> FilterResult:
    if ctx.last_trade_time is None:
        return PASSED
    cooldown_s = options.cooldown_minutes * 60.0
    elapsed = (ctx.now - ctx.last_trade_time).total_seconds()
    if elapsed < cooldown_s:
        remaining = math.ceil((cooldown_s - elapsed) / 60.0)
        return FilterResult(False, f"Cooldown period active. Wait {remaining} more minutes", COOLDOWN_ACTIVE)
    return PASSED


def filter_max_concurrent_trades(ctx: FilterContext, options: GateOptions) -> FilterResult:
    max_trades = ctx.bot.max_active_trades if ctx.bot.max_active_trades > 0 else options.default_max_trades
    if ctx.active_trades_count >= max_trades:
        return FilterResult(
            False,
            f"Maximum active trades limit reached ({ctx.active_trades_count}/{max_trades})",
            MAX_TRADES_REACHED,
        )
    return PASSED


def filter_trade_direction(ctx: FilterContext, options: GateOptions) -> FilterResult:
    if ctx.signal.side == SignalSide.BUY and not ctx.bot.allow_long_trades:
        return FilterResult(False, "Long trades are not allowed", LONG_TRADES_DISABLED)
    if ctx.signal.side == SignalSide.SELL and not ctx.bot.allow_short_trades:
        return FilterResult(False, "Short trades are not allowed", SHORT_TRADES_DISABLED)
    return PASSED


def filter_exchange_health(ctx: FilterContext, options: GateOptions) -> FilterResult:
    if not ctx.exchange_healthy:
        return FilterResult(False, "Exchange health check failed", EXCHANGE_UNHEALTHY)
    return PASSED


def min_confidence_for(ctx: FilterContext, options: GateOptions) -> float:
    """Explicit option, else bot setting, else the source's default."""
    if options.min_confidence is not None:
        return float(options.min_confidence)
    if ctx.bot.min_confidence is not None and ctx.bot.min_confidence > 0:
        return float(ctx.bot.min_confidence)
    return SOURCE_MIN_CONFIDENCE.get(ctx.signal.source, SOURCE_MIN_CONFIDENCE[SignalSourceType.AI])


def filter_confidence(ctx: FilterContext, options: GateOptions) -> FilterResult:
    threshold = min_confidence_for(ctx, options)
    if ctx.signal.confidence < threshold:
        return FilterResult(
            False,
            f"Confidence score ({ctx.signal.confidence:g}) below minimum ({threshold:g})",
            LOW_CONFIDENCE,
        )
    return PASSED


FILTERS: tuple[Callable[[FilterContext, GateOptions], FilterResult], ...] = (
    filter_bot_enabled,
    filter_market_type,
    filter_symbol_allowed,
    filter_cooldown,
    filter_max_concurrent_trades,
    filter_trade_direction,
    filter_exchange_health,
    filter_confidence,
)


def evaluate(ctx: FilterContext, options: Optional[GateOptions] = None) -> FilterResult:
    """Run FILTERS in order and return the first failure, or PASSED."""
    options = options or GateOptions()
    for check in FILTERS:
        result = check(ctx, options)
        if not result.passed:
            return result
    return PASSED
