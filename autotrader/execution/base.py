"""Abstract execution interface: submit order plans, read back raw order status."""

from __future__ import annotations
from abc import ABC, abstractmethod

from autotrader.core.types import MarketType
from autotrader.execution.payload import ExecutionPayload


class ExecutionClient(ABC):
    """
    Exchange-facing side of the pipeline. Raw orders are returned in the exchange's own
    shape; orders.lifecycle normalizes them.
    """

    exchange: str = "binance"

    @abstractmethod
    def submit(self, payload: ExecutionPayload) -> dict:
        """Place the entry order (and any ladder/exit orders). Return the raw entry order."""
        pass

    @abstractmethod
    def fetch_orders(self, symbol: str, market_type: MarketType) -> list[dict]:
        """Recent raw orders for symbol."""
        pass

    def ping(self) -> bool:
        """Connectivity check used by the health probe. Default healthy."""
        return True
