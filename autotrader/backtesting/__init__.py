"""Backtesting: candle replay engine, historical feeds, validated runs."""

from autotrader.backtesting.engine import (
    BacktestEngine,
    BacktestResult,
    BacktestTrade,
    EquityPoint,
    compute_backtest_stats,
)
from autotrader.backtesting.data import BinanceHistoryFeed, CandleFeed, InMemoryCandleFeed
from autotrader.backtesting.runner import (
    BacktestDataError,
    BacktestError,
    BacktestReport,
    BacktestRequest,
    BacktestRequestError,
    run_backtest,
    validate_request,
)

__all__ = [
    "BacktestEngine",
    "BacktestResult",
    "BacktestTrade",
    "EquityPoint",
    "compute_backtest_stats",
    "BinanceHistoryFeed",
    "CandleFeed",
    "InMemoryCandleFeed",
    "BacktestDataError",
    "BacktestError",
    "BacktestReport",
    "BacktestRequest",
    "BacktestRequestError",
    "run_backtest",
    "validate_request",
]
