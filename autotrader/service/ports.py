"""
Ports to the outside world (bots, account state, orders, exchange health)
with in-memory implementations for paper mode and tests.
"""

from __future__ import annotations
import threading
from abc import ABC, abstractmethod
from datetime import datetime
from typing import Iterable, Optional

from autotrader.core.types import BotConfiguration
from autotrader.execution.base import ExecutionClient
from autotrader.orders.lifecycle import OrderRef


class BotRepository(ABC):
    @abstractmethod
    def active_bots(self) -> list[BotConfiguration]:
        """Fresh configurations of every active bot."""
        pass


class AccountStateProvider(ABC):
    @abstractmethod
    def open_positions_count(self, account_id: str) -> int:
        pass

    @abstractmethod
    def last_trade_time(self, account_id: str) -> Optional[datetime]:
        pass

    def available_balance(self, account_id: str) -> Optional[float]:
        """Free quote balance, None when unknown."""
        return None

    def record_execution(self, account_id: str, when: datetime) -> None:
        """Called after a successful submission. External stores usually derive this themselves."""
        return None


class OrderStore(ABC):
    @abstractmethod
    def save(self, order: OrderRef) -> None:
        pass

    @abstractmethod
    def open_orders(self) -> list[OrderRef]:
        pass

    @abstractmethod
    def find_by_client_order_id(self, client_order_id: str) -> Optional[OrderRef]:
        pass


class HealthProbe(ABC):
    @abstractmethod
    def is_healthy(self, exchange: str) -> bool:
        pass


class InMemoryBotRepository(BotRepository):
    def __init__(self, bots: Iterable[BotConfiguration] = ()):
        self._bots = {b.account_id: b for b in bots}

    def upsert(self, bot: BotConfiguration) -> None:
        self._bots[bot.account_id] = bot

    def active_bots(self) -> list[BotConfiguration]:
        return [b for b in self._bots.values() if b.is_active]


class InMemoryAccountState(AccountStateProvider):
    def __init__(self, balances: Optional[dict[str, float]] = None):
        self._balances = dict(balances or {})
        self._open: dict[str, int] = {}
        self._last: dict[str, datetime] = {}
        self._lock = threading.Lock()

    def set_balance(self, account_id: str, balance: float) -> None:
        with self._lock:
            self._balances[account_id] = balance

    def set_open_positions(self, account_id: str, count: int) -> None:
        with self._lock:
            self._open[account_id] = count

    def open_positions_count(self, account_id: str) -> int:
        with self._lock:
            return self._open.get(account_id, 0)

    def last_trade_time(self, account_id: str) -> Optional[datetime]:
        with self._lock:
            return self._last.get(account_id)

    def available_balance(self, account_id: str) -> Optional[float]:
        with self._lock:
            return self._balances.get(account_id)

    def record_execution(self, account_id: str, when: datetime) -> None:
        with self._lock:
            self._open[account_id] = self._open.get(account_id, 0) + 1
            self._last[account_id] = when


class InMemoryOrderStore(OrderStore):
    """Orders keyed by (exchange, exchange order id)."""

    def __init__(self):
        self._orders: dict[tuple[str, str], OrderRef] = {}
        self._lock = threading.Lock()

    def save(self, order: OrderRef) -> None:
        with self._lock:
            self._orders[(order.exchange, order.exchange_order_id)] = order

    def all(self) -> list[OrderRef]:
        with self._lock:
            return list(self._orders.values())

    def open_orders(self) -> list[OrderRef]:
        return [o for o in self.all() if o.is_open]

    def find_by_client_order_id(self, client_order_id: str) -> Optional[OrderRef]:
        for order in self.all():
            if order.client_order_id == client_order_id:
                return order
        return None


class ClientHealthProbe(HealthProbe):
    """Health from each exchange client's ping(). Unknown exchanges are unhealthy."""

    def __init__(self, clients: dict[str, ExecutionClient]):
        self.clients = clients

    def is_healthy(self, exchange: str) -> bool:
        client = self.clients.get(exchange)
        return client is not None and client.ping()
