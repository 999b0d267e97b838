"""
Paper execution: fills the initial order at the plan's entry price, no network.
Orders are returned in Binance spot shape so the normal lifecycle path is exercised.
"""

from __future__ import annotations
import itertools
import logging
import threading
import time
from typing import Callable, Optional

from autotrader.core.types import MarketType, normalize_symbol
from autotrader.execution.base import ExecutionClient
from autotrader.execution.payload import ExecutionPayload

logger = logging.getLogger("autotrader.execution.paper")


class PaperExecutionClient(ExecutionClient):
    """In-memory exchange. Resubmitting a client order id returns the original order."""

    exchange = "binance"

    def __init__(self, fee_pct: float = 0.1, clock: Optional[Callable[[], float]] = None):
        self.fee_pct = fee_pct
        self._clock = clock or time.time
        self._ids = itertools.count(1)
        self._orders: dict[str, dict] = {}
        self._lock = threading.Lock()
        self.healthy = True

    def submit(self, payload: ExecutionPayload) -> dict:
        cid = payload.meta.client_order_id
        with self._lock:
            if cid in self._orders:
                logger.warning("Duplicate client order id %s, returning existing order", cid)
                return dict(self._orders[cid])
            order = self._fill(payload)
            self._orders[cid] = order
        logger.info(
            "PAPER %s %s %s qty=%.8f @ %.8f status=%s",
            payload.market_type.value, order["side"], order["symbol"],
            float(order["executedQty"]), payload.entry_price, order["status"],
        )
        return dict(order)

    def _fill(self, payload: ExecutionPayload) -> dict:
        now_ms = int(self._clock() * 1000)
        price = payload.entry_price
        qty = payload.initial_amount_usd / price if price > 0 else 0.0
        status = "FILLED" if qty > 0 else "REJECTED"
        notional = qty * price
        fills = []
        if qty > 0:
            fills.append({
                "price": str(price),
                "qty": str(qty),
                "commission": str(notional * self.fee_pct / 100.0),
                "commissionAsset": "USDT",
            })
        return {
            "orderId": next(self._ids),
            "clientOrderId": payload.meta.client_order_id,
            "symbol": normalize_symbol(payload.symbol),
            "side": payload.side.upper(),
            "type": "MARKET",
            "status": status,
            "price": "0",
            "origQty": str(qty),
            "executedQty": str(qty),
            "cummulativeQuoteQty": str(notional),
            "timeInForce": "GTC",
            "transactTime": now_ms,
            "updateTime": now_ms,
            "fills": fills,
        }

    def fetch_orders(self, symbol: str, market_type: MarketType) -> list[dict]:
        wanted = normalize_symbol(symbol)
        with self._lock:
            return [dict(o) for o in self._orders.values() if o["symbol"] == wanted]

    def ping(self) -> bool:
        return self.healthy
