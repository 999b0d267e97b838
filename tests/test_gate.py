"""Unit tests for the decision gate filter order and individual filters."""

from datetime import datetime, timedelta, timezone

import pytest
from autotrader.core.types import BotConfiguration, MarketType, SignalSide, SignalSourceType, UnifiedSignal
from autotrader.gate import FILTERS, FilterContext, GateOptions, evaluate, min_confidence_for

NOW = datetime(2025, 3, 1, 12, 0, tzinfo=timezone.utc)


def make_signal(**overrides):
    values = dict(
        id="sig-1", account_id="acc-1", symbol="BTCUSDT", timeframe="15m", side=SignalSide.BUY,
        source=SignalSourceType.TRADINGVIEW, generated_at=NOW, confidence=80.0, entry_price=100.0,
    )
    values.update(overrides)
    return UnifiedSignal(**values)


def make_bot(**overrides):
    values = dict(account_id="acc-1", is_active=True, min_confidence=70, max_active_trades=3)
    values.update(overrides)
    return BotConfiguration(**values)


def ctx(signal=None, bot=None, **overrides):
    values = dict(signal=signal or make_signal(), bot=bot or make_bot(), now=NOW)
    values.update(overrides)
    return FilterContext(**values)


def test_clean_context_passes():
    result = evaluate(ctx())
    assert result.passed
    assert result.code is None


def test_filter_order_is_fixed():
    names = [f.__name__ for f in FILTERS]
    assert names == [
        "filter_bot_enabled",
        "filter_market_type",
        "filter_symbol_allowed",
        "filter_cooldown",
        "filter_max_concurrent_trades",
        "filter_trade_direction",
        "filter_exchange_health",
        "filter_confidence",
    ]


def everything_wrong(**bot_overrides):
    """Context failing every filter at once; bot_overrides switch individual ones back on."""
    bot_values = dict(
        is_active=False, market_type=MarketType.SPOT, blacklist_symbols=["BTCUSDT"],
        allow_long_trades=False, max_active_trades=2,
    )
    bot_values.update(bot_overrides)
    return dict(
        signal=make_signal(market_type=MarketType.FUTURES, confidence=10.0),
        bot=make_bot(**bot_values),
        active_trades_count=2,
        exchange_healthy=False,
        last_trade_time=NOW - timedelta(minutes=1),
    )


def test_first_failure_wins_across_multiple_failures():
    assert evaluate(ctx(**everything_wrong())).code == "BOT_DISABLED"
    assert evaluate(ctx(**everything_wrong(is_active=True))).code == "MARKET_TYPE_MISMATCH"
    assert evaluate(ctx(**everything_wrong(is_active=True, market_type=MarketType.FUTURES))).code == \
        "SYMBOL_BLACKLISTED"


def test_failure_sequence_after_symbol_check():
    base = dict(is_active=True, market_type=MarketType.FUTURES, blacklist_symbols=[])
    c = everything_wrong(**base)
    assert evaluate(ctx(**c)).code == "COOLDOWN_ACTIVE"
    c["last_trade_time"] = None
    assert evaluate(ctx(**c)).code == "MAX_TRADES_REACHED"
    c["active_trades_count"] = 0
    assert evaluate(ctx(**c)).code == "LONG_TRADES_DISABLED"
    c["bot"] = make_bot(**{**base, "allow_long_trades": True})
    assert evaluate(ctx(**c)).code == "EXCHANGE_UNHEALTHY"
    c["exchange_healthy"] = True
    assert evaluate(ctx(**c)).code == "LOW_CONFIDENCE"


def test_symbol_allow_list_normalized():
    bot = make_bot(allowed_symbols=["BTC/USDT", "eth-usdt"])
    assert evaluate(ctx(signal=make_signal(symbol="ETHUSDT"), bot=bot)).passed
    result = evaluate(ctx(signal=make_signal(symbol="SOLUSDT"), bot=bot))
    assert result.code == "SYMBOL_NOT_ALLOWED"
    assert "SOLUSDT" in result.reason


def test_context_symbol_lists_override_bot():
    bot = make_bot(allowed_symbols=["BTCUSDT"])
    result = evaluate(ctx(bot=bot, allowed_symbols=["ETHUSDT"]))
    assert result.code == "SYMBOL_NOT_ALLOWED"


def test_signal_without_market_type_fits_any_bot():
    assert evaluate(ctx(bot=make_bot(market_type=MarketType.FUTURES))).passed


def test_cooldown_window_configurable():
    c = ctx(last_trade_time=NOW - timedelta(minutes=10))
    assert evaluate(c).code == "COOLDOWN_ACTIVE"
    assert "5 more minutes" in evaluate(c).reason
    assert evaluate(c, GateOptions(cooldown_minutes=5)).passed
    assert evaluate(ctx(last_trade_time=NOW - timedelta(minutes=15))).passed


def test_short_trades_disabled():
    result = evaluate(ctx(signal=make_signal(side=SignalSide.SELL), bot=make_bot(allow_short_trades=False)))
    assert result.code == "SHORT_TRADES_DISABLED"


def test_max_trades_default_when_unset():
    bot = make_bot(max_active_trades=0)
    assert evaluate(ctx(bot=bot, active_trades_count=4)).passed
    assert evaluate(ctx(bot=bot, active_trades_count=5)).code == "MAX_TRADES_REACHED"


@pytest.mark.parametrize("option,bot_min,source,expected", [
    (90.0, 70, SignalSourceType.AI, 90.0),
    (None, 65, SignalSourceType.AI, 65.0),
    (None, None, SignalSourceType.AI, 55.0),
    (None, None, SignalSourceType.REALTIME_AI, 60.0),
    (None, None, SignalSourceType.TRADINGVIEW, 70.0),
    (None, None, SignalSourceType.LEGACY, 70.0),
])
def test_min_confidence_resolution(option, bot_min, source, expected):
    c = ctx(signal=make_signal(source=source), bot=make_bot(min_confidence=bot_min))
    assert min_confidence_for(c, GateOptions(min_confidence=option)) == expected


def test_confidence_at_threshold_passes():
    assert evaluate(ctx(signal=make_signal(confidence=70.0))).passed
    assert evaluate(ctx(signal=make_signal(confidence=69.9))).code == "LOW_CONFIDENCE"
