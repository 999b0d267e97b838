"""Service: ports, decision cycle, scheduler and order sync."""

from autotrader.service.ports import (
    AccountStateProvider,
    BotRepository,
    ClientHealthProbe,
    HealthProbe,
    InMemoryAccountState,
    InMemoryBotRepository,
    InMemoryOrderStore,
    OrderStore,
)
from autotrader.service.cycle import CycleResult, DecisionCycle
from autotrader.service.scheduler import AutoTrader, OrderSyncJob

__all__ = [
    "AccountStateProvider",
    "BotRepository",
    "ClientHealthProbe",
    "HealthProbe",
    "InMemoryAccountState",
    "InMemoryBotRepository",
    "InMemoryOrderStore",
    "OrderStore",
    "CycleResult",
    "DecisionCycle",
    "AutoTrader",
    "OrderSyncJob",
]
