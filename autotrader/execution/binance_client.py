"""
Binance spot / USDT-M futures execution with retry and rate-limit handling.
"""

from __future__ import annotations
import logging
import time
from typing import Optional

from binance.client import Client
from binance.exceptions import BinanceAPIException
from requests.exceptions import RequestException

from autotrader.core.types import MarketType, normalize_symbol
from autotrader.execution.base import ExecutionClient
from autotrader.execution.payload import MAX_CLIENT_ORDER_ID_LEN, ExecutionPayload
from autotrader.utils.exchange_filters import SymbolFilters, parse_symbol_filters, round_price, round_quantity

logger = logging.getLogger("autotrader.execution.binance")


def retry_on_rate_limit(max_retries: int = 3, base_delay: float = 1.0):
    """Decorator: retry on 429 or 418 (rate limit)."""
    def decorator(f):
        def wrapped(*args, **kwargs):
            last_exc = None
            for attempt in range(max_retries):
                try:
                    return f(*args, **kwargs)
                except BinanceAPIException as e:
                    last_exc = e
                    if e.status_code in (429, 418) and attempt < max_retries - 1:
                        delay = base_delay * (2 ** attempt)
                        logger.warning("Rate limited, retry in %.1fs (attempt %d)", delay, attempt + 1)
                        time.sleep(delay)
                    else:
                        raise
            raise last_exc
        return wrapped
    return decorator


def child_order_id(parent: str, suffix: str) -> str:
    """Client id for ladder/exit orders derived from the entry's id, kept within the length limit."""
    return parent[: MAX_CLIENT_ORDER_ID_LEN - len(suffix)] + suffix


class BinanceClient(ExecutionClient):
    """Binance spot and USDT-M futures (testnet and live)."""

    exchange = "binance"

    def __init__(self, api_key: str, api_secret: str, testnet: bool = True, client: Optional[Client] = None):
        self._client = client or Client(api_key, api_secret, testnet=testnet)
        logger.info("Binance: using %s", "TESTNET" if testnet else "LIVE")
        self._filters: dict[tuple[str, MarketType], SymbolFilters] = {}

    @retry_on_rate_limit(max_retries=2)
    def symbol_filters(self, symbol: str, market_type: MarketType) -> SymbolFilters:
        key = (symbol, market_type)
        if key not in self._filters:
            if market_type == MarketType.FUTURES:
                info = None
                for s in self._client.futures_exchange_info().get("symbols", []):
                    if s.get("symbol") == symbol:
                        info = s
                        break
            else:
                info = self._client.get_symbol_info(symbol)
            self._filters[key] = parse_symbol_filters(info)
        return self._filters[key]

    @retry_on_rate_limit(max_retries=2)
    def last_price(self, symbol: str, market_type: MarketType) -> float:
        if market_type == MarketType.FUTURES:
            return float(self._client.futures_symbol_ticker(symbol=symbol)["price"])
        return float(self._client.get_symbol_ticker(symbol=symbol)["price"])

    @retry_on_rate_limit(max_retries=3, base_delay=1.0)
    def _create_order(self, market_type: MarketType, **params) -> dict:
        if market_type == MarketType.FUTURES:
            return self._client.futures_create_order(**params)
        return self._client.create_order(**params)

    def set_leverage(self, symbol: str, leverage: int) -> None:
        try:
            self._client.futures_change_leverage(symbol=symbol, leverage=leverage)
            logger.info("Leverage set to %sx for %s", leverage, symbol)
        except BinanceAPIException as e:
            logger.warning("Could not set leverage: %s", e)

    def submit(self, payload: ExecutionPayload) -> dict:
        """
        Market entry with the payload's client order id, then DCA limits and exits.
        Entry errors propagate; ladder/exit errors are logged so the entry is still recorded.
        """
        symbol = normalize_symbol(payload.symbol)
        market = payload.market_type
        filters = self.symbol_filters(symbol, market)
        price = payload.entry_price if payload.entry_price > 0 else self.last_price(symbol, market)
        qty = round_quantity(payload.initial_amount_usd / price, filters.min_qty, filters.lot_step)
        if qty <= 0 or qty * price < filters.min_notional:
            raise ValueError(
                f"Order for {symbol} below exchange minimum (qty={qty}, notional={qty * price:.2f})"
            )
        if market == MarketType.FUTURES and payload.leverage:
            self.set_leverage(symbol, payload.leverage)

        side = payload.side.upper()
        cid = payload.meta.client_order_id
        entry = self._create_order(
            market, symbol=symbol, side=side, type="MARKET", quantity=str(qty), newClientOrderId=cid,
        )
        logger.info("Entry %s %s qty=%s orderId=%s", side, symbol, qty, entry.get("orderId"))
        try:
            self._place_ladder(payload, symbol, side, filters)
            self._place_exits(payload, symbol, side, qty, filters)
        except BinanceAPIException as e:
            logger.exception("Ladder/exit orders failed for %s: %s", cid, e)
        return entry

    def _place_ladder(self, payload: ExecutionPayload, symbol: str, side: str, filters: SymbolFilters) -> None:
        for level in payload.dca.levels:
            price = round_price(level.price, filters.price_tick)
            if price <= 0:
                continue
            qty = round_quantity(level.amount_usd / price, filters.min_qty, filters.lot_step)
            if qty <= 0:
                logger.warning("DCA level %d for %s below lot size, skipped", level.level, symbol)
                continue
            self._create_order(
                payload.market_type, symbol=symbol, side=side, type="LIMIT", timeInForce="GTC",
                quantity=str(qty), price=str(price),
                newClientOrderId=child_order_id(payload.meta.client_order_id, f"_d{level.level}"),
            )

    def _place_exits(self, payload: ExecutionPayload, symbol: str, side: str, qty: float,
                     filters: SymbolFilters) -> None:
        close_side = "SELL" if side == "BUY" else "BUY"
        cid = payload.meta.client_order_id
        stop = round_price(payload.risk.stop_loss_price, filters.price_tick)
        target = round_price(payload.risk.take_profit_price, filters.price_tick)
        if payload.market_type == MarketType.SPOT:
            if side != "BUY":
                logger.info("Spot sell %s: no protective orders", symbol)
                return
            # OCO: limit take-profit plus stop-limit stop-loss
            self._client.create_oco_order(
                symbol=symbol, side=close_side, quantity=str(qty), price=str(target),
                stopPrice=str(stop), stopLimitPrice=str(stop), stopLimitTimeInForce="GTC",
                listClientOrderId=child_order_id(cid, "_oco"),
            )
            return

        self._create_order(
            MarketType.FUTURES, symbol=symbol, side=close_side, type="STOP_MARKET",
            stopPrice=str(stop), quantity=str(qty), reduceOnly=True,
            newClientOrderId=child_order_id(cid, "_sl"),
        )
        trailing = payload.risk.trailing
        partials = payload.risk.partial_take_profits
        if trailing is not None:
            # callbackRate is a percentage, 0.1 to 5
            rate = min(5.0, max(0.1, trailing.trailing_distance * 100.0))
            self._create_order(
                MarketType.FUTURES, symbol=symbol, side=close_side, type="TRAILING_STOP_MARKET",
                quantity=str(qty), reduceOnly=True, callbackRate=str(round(rate, 1)),
                activationPrice=str(round_price(trailing.activation_price, filters.price_tick)),
                newClientOrderId=child_order_id(cid, "_tr"),
            )
        elif partials:
            for i, level in enumerate(partials, start=1):
                part_qty = round_quantity(qty * level.percentage / 100.0, filters.min_qty, filters.lot_step)
                if part_qty <= 0:
                    continue
                self._create_order(
                    MarketType.FUTURES, symbol=symbol, side=close_side, type="LIMIT", timeInForce="GTC",
                    quantity=str(part_qty), price=str(round_price(level.price, filters.price_tick)),
                    reduceOnly=True, newClientOrderId=child_order_id(cid, f"_p{i}"),
                )
        else:
            self._create_order(
                MarketType.FUTURES, symbol=symbol, side=close_side, type="LIMIT", timeInForce="GTC",
                quantity=str(qty), price=str(target), reduceOnly=True,
                newClientOrderId=child_order_id(cid, "_tp"),
            )

    @retry_on_rate_limit(max_retries=2)
    def fetch_orders(self, symbol: str, market_type: MarketType) -> list[dict]:
        symbol = normalize_symbol(symbol)
        if market_type == MarketType.FUTURES:
            return self._client.futures_get_all_orders(symbol=symbol, limit=50)
        return self._client.get_all_orders(symbol=symbol, limit=50)

    def ping(self) -> bool:
        try:
            self._client.ping()
            return True
        except (BinanceAPIException, RequestException) as e:
            logger.warning("Binance ping failed: %s", e)
            return False

    def available_balance(self, market_type: MarketType, asset: str = "USDT") -> Optional[float]:
        """Free quote balance, or None when it cannot be read."""
        try:
            if market_type == MarketType.FUTURES:
                for row in self._client.futures_account_balance():
                    if row.get("asset") == asset:
                        return float(row.get("availableBalance", row.get("balance", 0.0)))
                return None
            bal = self._client.get_asset_balance(asset=asset)
            return float(bal["free"]) if bal else None
        except BinanceAPIException as e:
            logger.warning("Balance lookup failed: %s", e)
            return None
