"""Tests for the paper client and the Binance client against a stubbed python-binance Client."""

from datetime import datetime, timezone

import pytest
from requests.exceptions import ConnectionError as RequestsConnectionError

from autotrader.core.types import BotConfiguration, MarketType, SignalSide, SignalSourceType, UnifiedSignal
from autotrader.execution import BinanceClient, PaperExecutionClient, build_execution_payload
from autotrader.execution.binance_client import child_order_id
from autotrader.orders import OrderStatus, normalize_order

NOW = datetime(2025, 3, 1, 12, 0, tzinfo=timezone.utc)

SYMBOL_INFO = {
    "symbol": "BTCUSDT",
    "filters": [
        {"filterType": "LOT_SIZE", "minQty": "0.001", "stepSize": "0.001"},
        {"filterType": "PRICE_FILTER", "tickSize": "0.01"},
        {"filterType": "NOTIONAL", "minNotional": "5"},
    ],
}


def payload(entry=100.0, side=SignalSide.BUY, signal_id="sig-1", **bot_overrides):
    signal = UnifiedSignal(
        id=signal_id, account_id="acc-1", symbol="BTC/USDT", timeframe="15m", side=side,
        source=SignalSourceType.AI, generated_at=NOW, confidence=80.0, entry_price=entry,
    )
    bot_values = dict(account_id="acc-1", is_active=True)
    bot_values.update(bot_overrides)
    return build_execution_payload(signal, BotConfiguration(**bot_values), "binance", True)


class StubBinance:
    """Records order calls the way python-binance's Client receives them."""

    def __init__(self):
        self.orders = []
        self.futures_orders = []
        self.oco = []
        self.leverage = []
        self.ping_error = None

    def get_symbol_info(self, symbol):
        return SYMBOL_INFO

    def futures_exchange_info(self):
        return {"symbols": [SYMBOL_INFO]}

    def create_order(self, **params):
        self.orders.append(params)
        return {"orderId": len(self.orders), "clientOrderId": params.get("newClientOrderId"),
                "symbol": params["symbol"], "status": "NEW", "side": params["side"], "type": params["type"],
                "origQty": params["quantity"], "executedQty": "0"}

    def futures_create_order(self, **params):
        self.futures_orders.append(params)
        return {"orderId": len(self.futures_orders), "clientOrderId": params.get("newClientOrderId"),
                "status": "NEW", "symbol": params["symbol"], "origQty": params["quantity"], "executedQty": "0"}

    def create_oco_order(self, **params):
        self.oco.append(params)
        return {"orderListId": 1}

    def futures_change_leverage(self, **params):
        self.leverage.append(params)

    def ping(self):
        if self.ping_error is not None:
            raise self.ping_error
        return {}


def test_paper_fill_is_binance_shaped():
    client = PaperExecutionClient(fee_pct=0.1, clock=lambda: NOW.timestamp())
    raw = client.submit(payload())
    order = normalize_order("binance", raw)
    assert order.status == OrderStatus.FILLED
    assert order.filled_quantity == pytest.approx(1.0)
    assert order.avg_price == pytest.approx(100.0)
    assert order.commission == pytest.approx(0.1)
    assert order.client_order_id == "signal_sig-1_spot_buy"
    assert order.symbol == "BTCUSDT"


def test_paper_resubmit_returns_original_order():
    client = PaperExecutionClient()
    first = client.submit(payload())
    second = client.submit(payload())
    assert first["orderId"] == second["orderId"]
    assert len(client.fetch_orders("BTCUSDT", MarketType.SPOT)) == 1


def test_paper_rejects_without_price():
    raw = PaperExecutionClient().submit(payload(entry=None))
    assert raw["status"] == "REJECTED"
    assert raw["fills"] == []


def test_spot_buy_places_entry_ladder_and_oco():
    stub = StubBinance()
    client = BinanceClient("", "", client=stub)
    p = payload(dca_levels=2)
    entry = client.submit(p)
    assert entry["orderId"] == 1
    market, d1, d2 = stub.orders
    assert market["type"] == "MARKET"
    assert market["symbol"] == "BTCUSDT"
    assert market["quantity"] == "1.0"
    assert market["newClientOrderId"] == p.meta.client_order_id
    assert [d1["type"], d2["type"]] == ["LIMIT", "LIMIT"]
    assert d1["price"] == "98.0"
    assert d2["newClientOrderId"].endswith("_d2")
    (oco,) = stub.oco
    assert oco["side"] == "SELL"
    assert oco["price"] == "103.0"
    assert oco["stopPrice"] == "95.0"


def test_spot_sell_has_no_protective_orders():
    stub = StubBinance()
    BinanceClient("", "", client=stub).submit(payload(side=SignalSide.SELL))
    assert len(stub.orders) == 1
    assert stub.oco == []


def test_futures_trailing_exit_orders_are_reduce_only():
    stub = StubBinance()
    p = payload(market_type=MarketType.FUTURES, leverage=4, profit_taking_strategy="trailing",
                trailing_stop_distance=2, signal_id="3f2b8c1e-9a7d-4c2b-8e1f-5d6a7b8c9d0e")
    BinanceClient("", "", client=stub).submit(p)
    assert stub.leverage == [{"symbol": "BTCUSDT", "leverage": 4}]
    entry, stop, trailing = stub.futures_orders
    assert entry["type"] == "MARKET"
    assert stop["type"] == "STOP_MARKET" and stop["reduceOnly"] is True
    assert trailing["type"] == "TRAILING_STOP_MARKET"
    assert trailing["callbackRate"] == "2.0"
    assert all(len(o["newClientOrderId"]) <= 36 for o in stub.futures_orders)


def test_futures_partial_take_profits():
    stub = StubBinance()
    p = payload(market_type=MarketType.FUTURES, profit_taking_strategy="partial",
                partial_tp_percentages=(50, 0, 50), initial_order_percentage=100)
    BinanceClient("", "", client=stub).submit(p)
    partials = [o for o in stub.futures_orders if o["newClientOrderId"].endswith(("_p1", "_p2", "_p3"))]
    assert len(partials) == 2
    assert all(o["reduceOnly"] for o in partials)


def test_order_below_minimum_is_refused():
    stub = StubBinance()
    with pytest.raises(ValueError, match="below exchange minimum"):
        BinanceClient("", "", client=stub).submit(payload(total_capital=10, risk_percentage=1))
    assert stub.orders == []


def test_ping_reports_network_errors():
    stub = StubBinance()
    client = BinanceClient("", "", client=stub)
    assert client.ping() is True
    stub.ping_error = RequestsConnectionError("down")
    assert client.ping() is False


def test_child_order_id_stays_within_limit():
    parent = "x" * 36
    assert len(child_order_id(parent, "_oco")) == 36
    assert child_order_id("signal_a_spot_buy", "_sl") == "signal_a_spot_buy_sl"
