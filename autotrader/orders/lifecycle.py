"""
Order lifecycle: exchange order payloads -> canonical OrderRef.

Status mapping is data (STATUS_TABLES); each exchange adds one table, one entry in
ORDER_ID_FIELDS and one normalizer function registered in NORMALIZERS.
"""

from __future__ import annotations
import logging
from dataclasses import dataclass, field, replace
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Callable, Optional

from autotrader.core.logger import log_rejection
from autotrader.core.types import MarketType

logger = logging.getLogger("autotrader.orders")

ORDER_NOT_FOUND_ON_EXCHANGE = "ORDER_NOT_FOUND_ON_EXCHANGE"


class OrderStatus(str, Enum):
    NEW = "NEW"
    PARTIALLY_FILLED = "PARTIALLY_FILLED"
    FILLED = "FILLED"
    CANCELED = "CANCELED"
    PENDING = "PENDING"
    REJECTED = "REJECTED"
    EXPIRED = "EXPIRED"

    @property
    def is_terminal(self) -> bool:
        return self in TERMINAL_STATUSES


TERMINAL_STATUSES = frozenset({OrderStatus.FILLED, OrderStatus.CANCELED, OrderStatus.REJECTED, OrderStatus.EXPIRED})

STATUS_TABLES: dict[str, dict[str, OrderStatus]] = {
    "binance": {
        "NEW": OrderStatus.NEW,
        "PARTIALLY_FILLED": OrderStatus.PARTIALLY_FILLED,
        "FILLED": OrderStatus.FILLED,
        "CANCELED": OrderStatus.CANCELED,
        "PENDING_CANCEL": OrderStatus.PENDING,
        "REJECTED": OrderStatus.REJECTED,
        "EXPIRED": OrderStatus.EXPIRED,
    },
    "okx": {
        "live": OrderStatus.NEW,
        "partially_filled": OrderStatus.PARTIALLY_FILLED,
        "filled": OrderStatus.FILLED,
        "canceled": OrderStatus.CANCELED,
    },
}

# (exchange order id field, client order id field)
ORDER_ID_FIELDS: dict[str, tuple[str, str]] = {
    "binance": ("orderId", "clientOrderId"),
    "okx": ("ordId", "clOrdId"),
}


def map_status(exchange: str, raw_status: Any) -> OrderStatus:
    """Unknown statuses become PENDING."""
    return STATUS_TABLES.get(exchange, {}).get(str(raw_status), OrderStatus.PENDING)


@dataclass
class OrderRef:
    """Canonical order record. remaining_quantity is derived, never stored."""
    exchange_order_id: str
    exchange: str
    market_type: MarketType
    symbol: str
    side: str
    type: str
    status: OrderStatus
    quantity: float
    filled_quantity: float = 0.0
    price: Optional[float] = None
    avg_price: Optional[float] = None
    commission: float = 0.0
    commission_asset: Optional[str] = None
    time_in_force: Optional[str] = None
    client_order_id: Optional[str] = None
    account_id: str = ""
    id: str = ""
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None
    filled_at: Optional[datetime] = None
    cancelled_at: Optional[datetime] = None
    metadata: dict = field(default_factory=dict)

    @property
    def remaining_quantity(self) -> float:
        return self.quantity - self.filled_quantity

    @property
    def is_open(self) -> bool:
        return not self.status.is_terminal


def _f(value: Any) -> float:
    if value is None or value == "":
        return 0.0
    return float(value)


def _ts(ms: Any) -> Optional[datetime]:
    if ms in (None, "", 0, "0"):
        return None
    return datetime.fromtimestamp(int(ms) / 1000.0, tz=timezone.utc)


def _reconcile(status: OrderStatus, quantity: float, filled: float) -> tuple[float, float]:
    """FILLED means nothing remains; otherwise filled never exceeds quantity."""
    if status == OrderStatus.FILLED:
        quantity = max(quantity, filled)
        return quantity, quantity
    return quantity, min(max(0.0, filled), quantity)


def normalize_binance_order(raw: dict, market_type: MarketType = MarketType.SPOT) -> OrderRef:
    """Spot and futures order responses (fills, cummulativeQuoteQty / cumQuote, avgPrice)."""
    status = map_status("binance", raw.get("status"))
    quantity, filled = _reconcile(status, _f(raw.get("origQty")), _f(raw.get("executedQty")))
    price = _f(raw.get("price"))

    fills = raw.get("fills") or []
    fill_qty = sum(_f(f.get("qty")) for f in fills)
    quote = _f(raw.get("cummulativeQuoteQty") or raw.get("cumQuote"))
    avg_price: Optional[float] = None
    if fills and fill_qty > 0:
        avg_price = sum(_f(f.get("price")) * _f(f.get("qty")) for f in fills) / fill_qty
    elif filled > 0 and quote > 0:
        avg_price = quote / filled
    elif _f(raw.get("avgPrice")) > 0:
        avg_price = _f(raw.get("avgPrice"))
    elif price > 0:
        avg_price = price

    commission = sum(_f(f.get("commission")) for f in fills)
    commission_asset = fills[0].get("commissionAsset") if fills else None

    created = _ts(raw.get("time") or raw.get("transactTime") or raw.get("updateTime"))
    updated = _ts(raw.get("updateTime") or raw.get("time") or raw.get("transactTime"))
    ids = ORDER_ID_FIELDS["binance"]
    return OrderRef(
        exchange_order_id=str(raw.get(ids[0], "")),
        client_order_id=raw.get(ids[1]),
        exchange="binance",
        market_type=market_type,
        symbol=str(raw.get("symbol", "")),
        side=str(raw.get("side", "")).upper(),
        type=str(raw.get("type", "")).upper(),
        status=status,
        price=price if price > 0 else None,
        quantity=quantity,
        filled_quantity=filled,
        avg_price=avg_price,
        commission=commission,
        commission_asset=commission_asset,
        time_in_force=raw.get("timeInForce"),
        created_at=created,
        updated_at=updated,
        filled_at=updated if status == OrderStatus.FILLED or filled > 0 else None,
        cancelled_at=updated if status == OrderStatus.CANCELED else None,
    )


def _okx_order_type(raw: dict) -> str:
    kind = raw.get("ordType")
    if kind == "market":
        return "MARKET"
    if kind == "conditional":
        if raw.get("slTriggerPx") or raw.get("slOrdPx"):
            return "STOP_LOSS"
        if raw.get("tpTriggerPx") or raw.get("tpOrdPx"):
            return "TAKE_PROFIT"
    return "LIMIT"


def normalize_okx_order(raw: dict, market_type: MarketType = MarketType.SPOT) -> OrderRef:
    """OKX v5 order payload. Fees are reported negative; commission is their absolute value."""
    status = map_status("okx", raw.get("state"))
    quantity, filled = _reconcile(status, _f(raw.get("sz")), _f(raw.get("accFillSz") or raw.get("fillSz")))
    price = _f(raw.get("px"))

    avg_price: Optional[float] = None
    if _f(raw.get("avgPx")) > 0:
        avg_price = _f(raw.get("avgPx"))
    elif filled > 0 and _f(raw.get("fillPx")) > 0:
        avg_price = _f(raw.get("fillPx"))
    elif price > 0:
        avg_price = price

    created = _ts(raw.get("cTime"))
    updated = _ts(raw.get("uTime")) or created
    fill_time = _ts(raw.get("fillTime"))
    filled_at = None
    if (status == OrderStatus.FILLED or filled > 0) and fill_time:
        filled_at = fill_time
    elif status == OrderStatus.FILLED:
        filled_at = updated

    ids = ORDER_ID_FIELDS["okx"]
    return OrderRef(
        exchange_order_id=str(raw.get(ids[0], "")),
        client_order_id=raw.get(ids[1]) or None,
        exchange="okx",
        market_type=market_type,
        symbol=str(raw.get("instId", "")),
        side=str(raw.get("side", "")).upper(),
        type=_okx_order_type(raw),
        status=status,
        price=price if price > 0 else None,
        quantity=quantity,
        filled_quantity=filled,
        avg_price=avg_price,
        commission=abs(_f(raw.get("fee"))),
        commission_asset=raw.get("feeCcy") or None,
        created_at=created,
        updated_at=updated,
        filled_at=filled_at,
        cancelled_at=updated if status == OrderStatus.CANCELED else None,
        metadata={k: raw.get(k) for k in ("posSide", "tdMode", "lever") if raw.get(k) is not None},
    )


NORMALIZERS: dict[str, Callable[[dict, MarketType], OrderRef]] = {
    "binance": normalize_binance_order,
    "okx": normalize_okx_order,
}


def normalize_order(exchange: str, raw: dict, market_type: MarketType = MarketType.SPOT) -> OrderRef:
    try:
        normalizer = NORMALIZERS[exchange.lower()]
    except KeyError:
        raise ValueError(f"Unsupported exchange: {exchange}") from None
    return normalizer(raw, market_type)


def sync_order(existing: OrderRef, raw: dict) -> OrderRef:
    """
    Merge fresh exchange state into a stored order. Identity fields are kept;
    a terminal order is never moved to another status.
    """
    fresh = normalize_order(existing.exchange, raw, existing.market_type)
    if existing.status.is_terminal and fresh.status != existing.status:
        logger.warning(
            "Order %s is %s on record but exchange reports %s; keeping stored record",
            existing.exchange_order_id, existing.status.value, fresh.status.value,
        )
        return existing
    quantity = fresh.quantity if fresh.quantity > 0 else existing.quantity
    quantity, filled = _reconcile(fresh.status, quantity, fresh.filled_quantity)
    return replace(
        existing,
        status=fresh.status,
        quantity=quantity,
        filled_quantity=filled,
        avg_price=fresh.avg_price,
        commission=fresh.commission,
        commission_asset=fresh.commission_asset or existing.commission_asset,
        updated_at=fresh.updated_at or existing.updated_at,
        filled_at=fresh.filled_at or existing.filled_at,
        cancelled_at=fresh.cancelled_at or existing.cancelled_at,
    )


def sync_orders(exchange: str, refs: list[OrderRef], raws: list[dict]) -> list[OrderRef]:
    """
    Sync stored orders against the exchange's order list, matched by exchange id or client id.
    Orders the exchange did not return are passed through unchanged.
    """
    id_field, client_field = ORDER_ID_FIELDS[exchange.lower()]
    lookup: dict[str, dict] = {}
    for raw in raws:
        if raw.get(id_field) not in (None, ""):
            lookup[str(raw[id_field])] = raw
        if raw.get(client_field):
            lookup[str(raw[client_field])] = raw

    synced = []
    for ref in refs:
        raw = lookup.get(ref.exchange_order_id)
        if raw is None and ref.client_order_id:
            raw = lookup.get(ref.client_order_id)
        if raw is None:
            log_rejection(
                logger, ref.account_id, ORDER_NOT_FOUND_ON_EXCHANGE,
                f"order {ref.exchange_order_id} ({ref.symbol}) not returned by {exchange}, record kept",
            )
            synced.append(ref)
            continue
        synced.append(sync_order(ref, raw))
    return synced


def has_order_status_changed(old: OrderRef, new: OrderRef) -> bool:
    return (
        old.status != new.status
        or old.filled_quantity != new.filled_quantity
        or old.remaining_quantity != new.remaining_quantity
        or old.avg_price != new.avg_price
    )
