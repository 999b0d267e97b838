"""
Polling loop: one decision cycle per active account on a bounded worker pool,
plus the order status sync job.
"""

from __future__ import annotations
import logging
import threading
import time
from collections import defaultdict
from concurrent.futures import Future, ThreadPoolExecutor, wait
from typing import Optional

from autotrader.core.types import BotConfiguration
from autotrader.execution.base import ExecutionClient
from autotrader.orders.lifecycle import has_order_status_changed, sync_orders
from autotrader.service.cycle import CycleResult, DecisionCycle
from autotrader.service.ports import BotRepository, OrderStore

logger = logging.getLogger("autotrader.service.scheduler")


class AutoTrader:
    """
    Runs DecisionCycle for every active bot. An account whose previous cycle is still
    in flight is skipped for the tick.
    """

    def __init__(self, bots: BotRepository, cycle: DecisionCycle, max_workers: int = 8,
                 sync_job: Optional["OrderSyncJob"] = None):
        self.bots = bots
        self.cycle = cycle
        self.sync_job = sync_job
        self._executor = ThreadPoolExecutor(max_workers=max(1, max_workers), thread_name_prefix="cycle")
        self._in_flight: set[str] = set()
        self._lock = threading.Lock()

    def _claim(self, account_id: str) -> bool:
        with self._lock:
            if account_id in self._in_flight:
                return False
            self._in_flight.add(account_id)
            return True

    def _release(self, account_id: str) -> None:
        with self._lock:
            self._in_flight.discard(account_id)

    def _guarded(self, bot: BotConfiguration) -> CycleResult:
        try:
            return self.cycle.run(bot)
        finally:
            self._release(bot.account_id)

    def tick(self) -> list[Future]:
        """Schedule one cycle per active, idle account. Does not wait."""
        futures = []
        for bot in self.bots.active_bots():
            if not self._claim(bot.account_id):
                logger.debug("account=%s cycle still running, skipped", bot.account_id)
                continue
            futures.append(self._executor.submit(self._guarded, bot))
        return futures

    def run_once(self) -> list[CycleResult]:
        """One tick, waiting for every scheduled cycle (and a sync pass if configured)."""
        futures = self.tick()
        wait(futures)
        results = [f.result() for f in futures]
        if self.sync_job is not None:
            self.sync_job.run_once()
        summary = defaultdict(int)
        for r in results:
            summary[r.status] += 1
        logger.info("Tick: %d accounts %s", len(results), dict(summary))
        return results

    def run_forever(self, interval_seconds: float) -> None:
        logger.info("Auto-trader started, polling every %.0fs", interval_seconds)
        try:
            while True:
                try:
                    self.tick()
                    if self.sync_job is not None:
                        self.sync_job.run_once()
                except Exception as e:
                    logger.exception("Scheduler tick error: %s", e)
                time.sleep(interval_seconds)
        except KeyboardInterrupt:
            logger.info("Shutdown by user")
        finally:
            self.close()

    def close(self) -> None:
        self._executor.shutdown(wait=True)


class OrderSyncJob:
    """Polls exchanges for stored open orders and persists changed records."""

    def __init__(self, orders: OrderStore, clients: dict[str, ExecutionClient]):
        self.orders = orders
        self.clients = clients

    def run_once(self) -> int:
        groups = defaultdict(list)
        for ref in self.orders.open_orders():
            groups[(ref.exchange, ref.symbol, ref.market_type)].append(ref)
        updated = 0
        for (exchange, symbol, market_type), refs in groups.items():
            client = self.clients.get(exchange)
            if client is None:
                logger.warning("No client for exchange %s, %d orders not synced", exchange, len(refs))
                continue
            try:
                raws = client.fetch_orders(symbol, market_type)
            except Exception as e:
                logger.warning("Order fetch failed for %s %s: %s", exchange, symbol, e)
                continue
            for old, new in zip(refs, sync_orders(exchange, refs, raws)):
                if has_order_status_changed(old, new):
                    self.orders.save(new)
                    updated += 1
                    logger.info("Order %s %s -> %s", new.exchange_order_id, old.status.value, new.status.value)
        return updated
