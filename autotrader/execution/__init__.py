"""Execution: payload builder, exchange abstraction, paper and Binance clients."""

from autotrader.execution.sizing import DcaLevel, build_dca_ladder, exit_prices, fit_ladder
from autotrader.execution.payload import (
    CapitalAllocation,
    DcaPlan,
    EffectivePolicy,
    ExecutionPayload,
    PartialTakeProfit,
    PayloadMeta,
    RiskParameters,
    TrailingStop,
    build_execution_payload,
    client_order_id_for,
    resolve_effective_policy,
)
from autotrader.execution.base import ExecutionClient
from autotrader.execution.paper import PaperExecutionClient
from autotrader.execution.binance_client import BinanceClient

__all__ = [
    "DcaLevel",
    "build_dca_ladder",
    "exit_prices",
    "fit_ladder",
    "CapitalAllocation",
    "DcaPlan",
    "EffectivePolicy",
    "ExecutionPayload",
    "PartialTakeProfit",
    "PayloadMeta",
    "RiskParameters",
    "TrailingStop",
    "build_execution_payload",
    "client_order_id_for",
    "resolve_effective_policy",
    "ExecutionClient",
    "PaperExecutionClient",
    "BinanceClient",
]
