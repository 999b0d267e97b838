"""Unit tests for signal adapters and router."""

import logging
from datetime import datetime, timedelta, timezone

import pytest
from autotrader.core.types import BotConfiguration, SignalSide, SignalSourceType
from autotrader.signals import (
    AiSignalAdapter,
    InMemorySignalStore,
    LegacySignalAdapter,
    RealtimeAiSignalAdapter,
    SignalQuery,
    SignalRouter,
    SignalStore,
    TradingViewSignalAdapter,
    resolve_side,
    resolve_source,
)

NOW = datetime(2025, 3, 1, 12, 0, tzinfo=timezone.utc)


def ago(minutes):
    return (NOW - timedelta(minutes=minutes)).isoformat()


def bot(**overrides):
    values = dict(account_id="acc-1", is_active=True, signal_source="ai", allowed_symbols=["BTCUSDT"])
    values.update(overrides)
    return BotConfiguration(**values)


class FailingStore(SignalStore):
    def fetch(self, query):
        raise ConnectionError("store unreachable")


@pytest.mark.parametrize("raw,expected", [
    ("BUY", SignalSide.BUY),
    ("STRONG_BUY", SignalSide.BUY),
    ("sell", SignalSide.SELL),
    ("STRONG_SELL", SignalSide.SELL),
    ("WAIT", None),
    ("HOLD", None),
    ("", None),
    (None, None),
])
def test_resolve_side(raw, expected):
    assert resolve_side(raw) == expected


def test_ai_adapter_maps_freshest_row():
    store = InMemorySignalStore({"ai_signals_history": [
        {"id": "old", "symbol": "BTCUSDT", "timeframe": "15m", "final_side": "SELL",
         "final_confidence": 90, "created_at": ago(10)},
        {"id": "new", "symbol": "BTCUSDT", "timeframe": "15m", "final_side": "BUY",
         "final_confidence": 80, "entry_price": 100.0, "stop_loss": 95.0, "take_profit": 103.0,
         "created_at": ago(2)},
    ]})
    result = AiSignalAdapter(store).fetch(bot(default_timeframe="15m"), now=NOW)
    assert result.error is None
    sig = result.signal
    assert sig.id == "new"
    assert sig.side == SignalSide.BUY
    assert sig.source == SignalSourceType.AI
    assert sig.account_id == "acc-1"
    assert sig.confidence == 80
    assert sig.stop_loss == 95.0
    assert sig.raw["id"] == "new"


def test_ai_adapter_window_depends_on_timeframe():
    rows = {"ai_signals_history": [
        {"id": "s1", "symbol": "BTCUSDT", "timeframe": "1h", "final_side": "BUY",
         "final_confidence": 80, "created_at": ago(30)},
    ]}
    assert AiSignalAdapter(InMemorySignalStore(rows)).fetch(bot(default_timeframe="1h"), now=NOW).signal is not None
    rows["ai_signals_history"][0]["timeframe"] = "15m"
    result = AiSignalAdapter(InMemorySignalStore(rows)).fetch(bot(default_timeframe="15m"), now=NOW)
    assert result.signal is None
    assert result.error


def test_ai_adapter_skips_newer_neutral_row():
    store = InMemorySignalStore({"ai_signals_history": [
        {"id": "buy", "symbol": "BTCUSDT", "timeframe": "15m", "final_side": "STRONG_BUY",
         "final_confidence": 80, "created_at": ago(5)},
        {"id": "w", "symbol": "BTCUSDT", "timeframe": "15m", "final_side": "WAIT",
         "final_confidence": 90, "created_at": ago(1)},
    ]})
    result = AiSignalAdapter(store).fetch(bot(), now=NOW)
    assert result.signal.id == "buy"
    assert result.signal.side == SignalSide.BUY


def test_neutral_side_is_rejected():
    store = InMemorySignalStore({"tradingview_signals": [
        {"id": "h", "user_id": "acc-1", "symbol": "BTCUSDT", "signal_type": "HOLD",
         "confidence_score": 90, "execution_status": "PENDING", "created_at": ago(1)},
    ]})
    result = TradingViewSignalAdapter(store).fetch(bot(signal_source="tradingview"), now=NOW)
    assert result.signal is None
    assert "neutral" in result.error


def test_ai_adapter_confidence_floor():
    store = InMemorySignalStore({"ai_signals_history": [
        {"id": "low", "symbol": "BTCUSDT", "timeframe": "15m", "final_side": "BUY",
         "final_confidence": 50, "created_at": ago(1)},
    ]})
    assert AiSignalAdapter(store).fetch(bot(), now=NOW).signal is None
    assert AiSignalAdapter(store).fetch(bot(min_confidence=40), now=NOW).signal is not None


def test_realtime_adapter_one_minute_and_first_symbol():
    store = InMemorySignalStore({"ai_signals_history": [
        {"id": "eth", "symbol": "ETHUSDT", "timeframe": "1m", "side": "SELL",
         "final_confidence": 0, "confidence": 75, "created_at": ago(0.5)},
        {"id": "btc-old", "symbol": "BTCUSDT", "timeframe": "1m", "side": "BUY",
         "final_confidence": 90, "created_at": ago(5)},
    ]})
    adapter = RealtimeAiSignalAdapter(store)
    assert adapter.fetch(bot(allowed_symbols=["BTC/USDT", "ETHUSDT"]), now=NOW).signal is None
    # a zero final_confidence falls back to confidence
    sig = adapter.fetch(bot(allowed_symbols=["ETH/USDT"]), now=NOW).signal
    assert sig.id == "eth"
    assert sig.confidence == 75
    assert sig.side == SignalSide.SELL
    assert sig.source == SignalSourceType.REALTIME_AI
    store.add("ai_signals_history", {"id": "eth-low", "symbol": "ETHUSDT", "timeframe": "1m", "side": "BUY",
                                     "confidence": 50, "created_at": ago(0.2)})
    assert adapter.fetch(bot(allowed_symbols=["ETH/USDT"]), now=NOW).signal.id == "eth"


def test_tradingview_adapter_account_scope_and_pending():
    store = InMemorySignalStore({"tradingview_signals": [
        {"id": "other", "user_id": "acc-2", "symbol": "BTCUSDT", "signal_type": "BUY",
         "confidence_score": 90, "execution_status": "PENDING", "created_at": ago(1)},
        {"id": "done", "user_id": "acc-1", "symbol": "BTCUSDT", "signal_type": "BUY",
         "confidence_score": 90, "execution_status": "EXECUTED", "created_at": ago(1)},
        {"id": "mine", "user_id": "acc-1", "symbol": "BTCUSDT", "signal_type": "STRONG_SELL",
         "confidence_score": 85, "execution_status": "PENDING", "stop_loss_price": 110.0,
         "take_profit_price": 90.0, "strategy_name": "Breakout", "created_at": ago(20)},
    ]})
    sig = TradingViewSignalAdapter(store).fetch(bot(signal_source="tradingview"), now=NOW).signal
    assert sig.id == "mine"
    assert sig.side == SignalSide.SELL
    assert sig.timeframe == "15m"
    assert sig.stop_loss == 110.0
    assert sig.strategy_name == "Breakout"


def test_legacy_adapter_thirty_minute_window():
    store = InMemorySignalStore({"trading_signals": [
        {"id": "l1", "user_id": "acc-1", "symbol": "BTCUSDT", "signal_type": "BUY",
         "confidence_score": 75, "created_at": ago(45)},
    ]})
    result = LegacySignalAdapter(store).fetch(bot(signal_source="legacy"), now=NOW)
    assert result.signal is None
    assert result.source == SignalSourceType.LEGACY


def test_adapter_failure_is_contained():
    result = AiSignalAdapter(FailingStore()).fetch(bot(), now=NOW)
    assert result.signal is None
    assert "unreachable" in result.error


def test_store_query_filters_symbols_normalized():
    store = InMemorySignalStore({"t": [
        {"id": "1", "symbol": "BTC/USDT", "created_at": ago(1)},
        {"id": "2", "symbol": "ETHUSDT", "created_at": ago(1)},
    ]})
    rows = store.fetch(SignalQuery(table="t", symbols=["BTCUSDT"], limit=5))
    assert [r["id"] for r in rows] == ["1"]


def test_resolve_source_unknown_falls_back_to_ai(caplog):
    with caplog.at_level(logging.WARNING, logger="autotrader.signals.router"):
        assert resolve_source("crystal_ball") == SignalSourceType.AI
    assert "crystal_ball" in caplog.text
    assert resolve_source(None) == SignalSourceType.AI
    assert resolve_source("TradingView") == SignalSourceType.TRADINGVIEW


def test_router_dispatch_and_inactive_bot():
    store = InMemorySignalStore({"trading_signals": [
        {"id": "l1", "user_id": "acc-1", "symbol": "BTCUSDT", "signal_type": "SELL",
         "confidence_score": 75, "created_at": ago(5)},
    ]})
    router = SignalRouter(store)
    result = router.route("acc-1", bot(signal_source="legacy"), now=NOW)
    assert result.signal.id == "l1"
    assert result.source == SignalSourceType.LEGACY

    inactive = router.route("acc-1", bot(signal_source="legacy", is_active=False), now=NOW)
    assert inactive.signal is None
    assert inactive.error == "bot inactive"


def test_router_unknown_source_uses_ai_adapter():
    store = InMemorySignalStore({"ai_signals_history": [
        {"id": "a1", "symbol": "BTCUSDT", "timeframe": "15m", "final_side": "BUY",
         "final_confidence": 80, "created_at": ago(1)},
    ]})
    result = SignalRouter(store).route("acc-1", bot(signal_source="mystery"), now=NOW)
    assert result.source == SignalSourceType.AI
    assert result.signal.id == "a1"
