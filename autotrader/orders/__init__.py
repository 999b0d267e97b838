"""Orders: exchange status normalization and sync."""

from autotrader.orders.lifecycle import (
    NORMALIZERS,
    ORDER_ID_FIELDS,
    STATUS_TABLES,
    OrderRef,
    OrderStatus,
    has_order_status_changed,
    map_status,
    normalize_binance_order,
    normalize_okx_order,
    normalize_order,
    sync_order,
    sync_orders,
)

__all__ = [
    "NORMALIZERS",
    "ORDER_ID_FIELDS",
    "STATUS_TABLES",
    "OrderRef",
    "OrderStatus",
    "has_order_status_changed",
    "map_status",
    "normalize_binance_order",
    "normalize_okx_order",
    "normalize_order",
    "sync_order",
    "sync_orders",
]
