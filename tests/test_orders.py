"""Unit tests for order normalization, sync and change detection."""

import logging
from dataclasses import replace

import pytest
from autotrader.core.types import MarketType
from autotrader.orders import (
    OrderStatus,
    has_order_status_changed,
    map_status,
    normalize_binance_order,
    normalize_okx_order,
    normalize_order,
    sync_order,
    sync_orders,
)


def binance_raw(**overrides):
    raw = {
        "symbol": "BTCUSDT", "orderId": 1001, "clientOrderId": "signal_s1_spot_buy",
        "price": "0", "origQty": "2", "executedQty": "2", "cummulativeQuoteQty": "201",
        "status": "FILLED", "timeInForce": "GTC", "type": "market", "side": "BUY",
        "time": 1700000000000, "updateTime": 1700000005000,
        "fills": [
            {"price": "100", "qty": "1", "commission": "0.1", "commissionAsset": "USDT"},
            {"price": "101", "qty": "1", "commission": "0.2", "commissionAsset": "USDT"},
        ],
    }
    raw.update(overrides)
    return raw


def okx_raw(**overrides):
    raw = {
        "instId": "BTC-USDT", "ordId": "okx-9", "clOrdId": "signal_s2_spot_buy", "px": "50",
        "sz": "4", "accFillSz": "1", "fillSz": "1", "state": "partially_filled", "ordType": "limit",
        "side": "buy", "tdMode": "cash", "fee": "-0.05", "feeCcy": "USDT",
        "cTime": "1700000000000", "uTime": "1700000010000",
    }
    raw.update(overrides)
    return raw


@pytest.mark.parametrize("raw,expected", [
    ("NEW", OrderStatus.NEW),
    ("PARTIALLY_FILLED", OrderStatus.PARTIALLY_FILLED),
    ("FILLED", OrderStatus.FILLED),
    ("CANCELED", OrderStatus.CANCELED),
    ("PENDING_CANCEL", OrderStatus.PENDING),
    ("REJECTED", OrderStatus.REJECTED),
    ("EXPIRED", OrderStatus.EXPIRED),
    ("SOMETHING_NEW", OrderStatus.PENDING),
])
def test_binance_status_table(raw, expected):
    assert map_status("binance", raw) == expected


@pytest.mark.parametrize("raw,expected", [
    ("live", OrderStatus.NEW),
    ("partially_filled", OrderStatus.PARTIALLY_FILLED),
    ("filled", OrderStatus.FILLED),
    ("canceled", OrderStatus.CANCELED),
    ("mmp_canceled", OrderStatus.PENDING),
])
def test_okx_status_table(raw, expected):
    assert map_status("okx", raw) == expected


def test_binance_fill_weighted_average_and_commission():
    o = normalize_binance_order(binance_raw())
    assert o.status == OrderStatus.FILLED
    assert o.avg_price == pytest.approx(100.5)
    assert o.commission == pytest.approx(0.3)
    assert o.commission_asset == "USDT"
    assert o.type == "MARKET"
    assert o.exchange_order_id == "1001"
    assert o.client_order_id == "signal_s1_spot_buy"
    assert o.price is None
    assert o.filled_at is not None
    assert o.cancelled_at is None


def test_binance_average_from_cumulative_quote():
    o = normalize_binance_order(binance_raw(fills=[], status="PARTIALLY_FILLED", executedQty="1",
                                            cummulativeQuoteQty="99"))
    assert o.avg_price == pytest.approx(99.0)
    assert o.remaining_quantity == pytest.approx(1.0)


def test_binance_average_falls_back_to_quoted_price():
    o = normalize_binance_order(binance_raw(fills=[], status="NEW", executedQty="0",
                                            cummulativeQuoteQty="0", price="95.5"))
    assert o.avg_price == 95.5
    assert o.filled_at is None
    unpriced = normalize_binance_order(binance_raw(fills=[], status="NEW", executedQty="0",
                                                   cummulativeQuoteQty="0", price="0"))
    assert unpriced.avg_price is None


def test_binance_futures_shape():
    raw = binance_raw(fills=None, cummulativeQuoteQty=None, cumQuote="402", avgPrice="100.5",
                      origQty="4", executedQty="4")
    o = normalize_binance_order(raw, MarketType.FUTURES)
    assert o.market_type == MarketType.FUTURES
    assert o.avg_price == pytest.approx(100.5)


def test_canceled_sets_cancelled_at():
    o = normalize_binance_order(binance_raw(status="CANCELED", executedQty="0", fills=[]))
    assert o.cancelled_at is not None
    assert o.filled_at is None


@pytest.mark.parametrize("raw", [
    binance_raw(),
    binance_raw(status="PARTIALLY_FILLED", executedQty="0.5", fills=[]),
    binance_raw(status="NEW", executedQty="0", fills=[]),
    binance_raw(status="FILLED", origQty="2", executedQty="1.99999999", fills=[]),
    binance_raw(status="PARTIALLY_FILLED", origQty="1", executedQty="3", fills=[]),
])
def test_remaining_is_quantity_minus_filled(raw):
    o = normalize_binance_order(raw)
    assert o.remaining_quantity == o.quantity - o.filled_quantity
    assert o.remaining_quantity >= 0
    if o.status == OrderStatus.FILLED:
        assert o.remaining_quantity == 0


def test_okx_normalization():
    o = normalize_okx_order(okx_raw())
    assert o.status == OrderStatus.PARTIALLY_FILLED
    assert o.exchange == "okx"
    assert o.side == "BUY"
    assert o.type == "LIMIT"
    assert o.quantity == 4.0
    assert o.filled_quantity == 1.0
    assert o.remaining_quantity == 3.0
    assert o.avg_price == 50.0
    assert o.commission == pytest.approx(0.05)
    assert o.commission_asset == "USDT"
    assert o.metadata["tdMode"] == "cash"


def test_okx_average_price_precedence():
    assert normalize_okx_order(okx_raw(avgPx="49.5", fillPx="49")).avg_price == 49.5
    assert normalize_okx_order(okx_raw(fillPx="49")).avg_price == 49.0


@pytest.mark.parametrize("overrides,expected", [
    ({"ordType": "market"}, "MARKET"),
    ({"ordType": "conditional", "slTriggerPx": "40"}, "STOP_LOSS"),
    ({"ordType": "conditional", "tpTriggerPx": "60"}, "TAKE_PROFIT"),
    ({"ordType": "post_only"}, "LIMIT"),
])
def test_okx_order_types(overrides, expected):
    assert normalize_okx_order(okx_raw(**overrides)).type == expected


def test_okx_filled_at_uses_update_time_without_fill_time():
    o = normalize_okx_order(okx_raw(state="filled", accFillSz="4"))
    assert o.filled_at == o.updated_at
    assert o.remaining_quantity == 0


def test_normalize_order_registry():
    assert normalize_order("BINANCE", binance_raw()).exchange == "binance"
    with pytest.raises(ValueError):
        normalize_order("kraken", {})


def test_has_order_status_changed_reflexive():
    o = normalize_binance_order(binance_raw(status="PARTIALLY_FILLED", executedQty="1", fills=[]))
    assert has_order_status_changed(o, o) is False
    assert has_order_status_changed(o, replace(o)) is False


@pytest.mark.parametrize("change", [
    {"status": OrderStatus.FILLED},
    {"filled_quantity": 1.5},
    {"quantity": 3.0},
    {"avg_price": 123.0},
])
def test_has_order_status_changed_sensitive(change):
    o = normalize_binance_order(binance_raw(status="PARTIALLY_FILLED", executedQty="1", fills=[]))
    assert has_order_status_changed(o, replace(o, **change)) is True


def test_sync_order_keeps_identity_and_updates_fill():
    stored = normalize_binance_order(binance_raw(status="NEW", executedQty="0", fills=[]))
    stored = replace(stored, id="db-1", account_id="acc-1")
    synced = sync_order(stored, binance_raw())
    assert synced.id == "db-1"
    assert synced.account_id == "acc-1"
    assert synced.status == OrderStatus.FILLED
    assert synced.filled_quantity == 2.0
    assert synced.avg_price == pytest.approx(100.5)
    assert has_order_status_changed(stored, synced)


def test_sync_order_never_leaves_terminal_status(caplog):
    stored = normalize_binance_order(binance_raw(status="CANCELED", executedQty="0", fills=[]))
    with caplog.at_level(logging.WARNING, logger="autotrader.orders"):
        synced = sync_order(stored, binance_raw(status="NEW", executedQty="0", fills=[]))
    assert synced is stored
    assert "keeping stored record" in caplog.text


def test_sync_orders_matches_by_id_and_client_id_and_keeps_missing(caplog):
    by_id = replace(normalize_binance_order(binance_raw(status="NEW", executedQty="0", fills=[])),
                    account_id="acc-1")
    by_client = replace(by_id, exchange_order_id="unknown", client_order_id="cid-2")
    missing = replace(by_id, exchange_order_id="404", client_order_id="cid-404")
    raws = [
        binance_raw(),
        binance_raw(orderId=2002, clientOrderId="cid-2", status="CANCELED", executedQty="0", fills=[]),
    ]
    with caplog.at_level(logging.INFO, logger="autotrader.orders"):
        synced = sync_orders("binance", [by_id, by_client, missing], raws)
    assert synced[0].status == OrderStatus.FILLED
    assert synced[1].status == OrderStatus.CANCELED
    assert synced[2] is missing
    assert "ORDER_NOT_FOUND_ON_EXCHANGE" in caplog.text
