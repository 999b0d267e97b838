"""
One decision cycle for one account: route -> gate -> build -> submit -> normalize -> persist.
"""

from __future__ import annotations
import logging
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Optional

from autotrader.core.logger import log_rejection
from autotrader.core.types import BotConfiguration, UnifiedSignal
from autotrader.execution.base import ExecutionClient
from autotrader.execution.payload import ExecutionPayload, build_execution_payload
from autotrader.gate.filters import FilterContext, FilterResult, GateOptions, evaluate
from autotrader.orders.lifecycle import OrderRef, OrderStatus, normalize_order
from autotrader.service.ports import AccountStateProvider, HealthProbe, OrderStore
from autotrader.signals.router import SignalRouter

logger = logging.getLogger("autotrader.service.cycle")

STATUS_NO_SIGNAL = "no_signal"
STATUS_FILTERED = "filtered"
STATUS_SUBMITTED = "submitted"
STATUS_FAILED = "failed"
STATUS_REJECTED = "rejected"

DUPLICATE_ORDER = "DUPLICATE_ORDER"


@dataclass
class CycleResult:
    account_id: str
    status: str
    signal: Optional[UnifiedSignal] = None
    filter_result: Optional[FilterResult] = None
    payload: Optional[ExecutionPayload] = None
    order: Optional[OrderRef] = None
    error: Optional[str] = None


class DecisionCycle:
    """Strictly sequential per account. Nothing is written before submission succeeds."""

    def __init__(
        self,
        router: SignalRouter,
        accounts: AccountStateProvider,
        orders: OrderStore,
        health: HealthProbe,
        clients: dict[str, ExecutionClient],
        gate_options: Optional[GateOptions] = None,
    ):
        self.router = router
        self.accounts = accounts
        self.orders = orders
        self.health = health
        self.clients = clients
        self.gate_options = gate_options or GateOptions()

    def run(self, bot: BotConfiguration, now: Optional[datetime] = None) -> CycleResult:
        now = now or datetime.now(timezone.utc)
        account = bot.account_id
        try:
            return self._run(bot, account, now)
        except Exception as e:
            logger.exception("Decision cycle failed for account=%s: %s", account, e)
            return CycleResult(account_id=account, status=STATUS_FAILED, error=str(e))

    def _run(self, bot: BotConfiguration, account: str, now: datetime) -> CycleResult:
        routed = self.router.route(account, bot, now=now)
        signal = routed.signal
        if signal is None:
            return CycleResult(account_id=account, status=STATUS_NO_SIGNAL, error=routed.error)

        client = self.clients.get(bot.exchange)
        ctx = FilterContext(
            signal=signal,
            bot=bot,
            active_trades_count=self.accounts.open_positions_count(account),
            exchange_healthy=client is not None and self.health.is_healthy(bot.exchange),
            last_trade_time=self.accounts.last_trade_time(account),
            now=now,
        )
        verdict = evaluate(ctx, self.gate_options)
        if not verdict.passed:
            log_rejection(logger, account, verdict.code, verdict.reason)
            return CycleResult(account_id=account, status=STATUS_FILTERED, signal=signal, filter_result=verdict)

        payload = build_execution_payload(
            signal, bot, bot.exchange, bot.is_testnet, self.accounts.available_balance(account),
        )
        cid = payload.meta.client_order_id
        if self.orders.find_by_client_order_id(cid) is not None:
            verdict = FilterResult(False, f"Order {cid} already submitted", DUPLICATE_ORDER)
            log_rejection(logger, account, verdict.code, verdict.reason)
            return CycleResult(account_id=account, status=STATUS_FILTERED, signal=signal,
                               filter_result=verdict, payload=payload)

        raw = client.submit(payload)
        order = normalize_order(client.exchange, raw, payload.market_type)
        order.account_id = account
        order.client_order_id = order.client_order_id or cid
        order.metadata.update({"signal_id": signal.id, "source": signal.source.value})
        self.orders.save(order)
        if order.status in (OrderStatus.REJECTED, OrderStatus.EXPIRED):
            # kept in the store for idempotency, but not a trade for cooldown or position count
            logger.warning("account=%s entry %s for %s came back %s", account, cid, payload.symbol, order.status.value)
            return CycleResult(account_id=account, status=STATUS_REJECTED, signal=signal, filter_result=verdict,
                               payload=payload, order=order, error=f"entry order {order.status.value}")
        self.accounts.record_execution(account, now)
        logger.info(
            "account=%s submitted %s %s %s status=%s cid=%s",
            account, payload.side, payload.market_type.value, payload.symbol, order.status.value, cid,
        )
        return CycleResult(account_id=account, status=STATUS_SUBMITTED, signal=signal,
                           filter_result=verdict, payload=payload, order=order)
