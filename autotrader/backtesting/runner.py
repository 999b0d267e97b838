"""
Backtest job: validate request, load candles, run engine, assemble report.
"""

from __future__ import annotations
import logging
import time
from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone
from typing import Any, List, Optional

from autotrader.analytics.metrics import PerformanceMetrics
from autotrader.backtesting.data import CandleFeed
from autotrader.backtesting.engine import BacktestEngine, BacktestTrade, EquityPoint
from autotrader.core.types import BotConfiguration, MarketType
from autotrader.strategies.base import BaseStrategy
from autotrader.strategies.sma_rsi import SmaRsiTrendStrategy

logger = logging.getLogger("autotrader.backtest.runner")

SUPPORTED_TIMEFRAMES = ("15m", "1h", "4h", "1D")
MAX_PERIOD = timedelta(days=365)


class BacktestError(Exception):
    pass


class BacktestRequestError(BacktestError):
    """Request failed validation; .errors lists every problem found."""

    def __init__(self, errors: List[str]):
        super().__init__("; ".join(errors))
        self.errors = errors


class BacktestDataError(BacktestError):
    """No historical candles for the requested range."""


def _aware(value: datetime) -> datetime:
    return value if value.tzinfo else value.replace(tzinfo=timezone.utc)


def parse_date(value: Any) -> datetime:
    """datetime or ISO date string -> aware UTC datetime."""
    if isinstance(value, datetime):
        return _aware(value)
    text = str(value).strip()
    if text.endswith("Z"):
        text = text[:-1] + "+00:00"
    return _aware(datetime.fromisoformat(text))


@dataclass
class BacktestRequest:
    symbol: str
    timeframe: str
    start: datetime
    end: datetime
    initial_capital: float
    bot: BotConfiguration
    # exchange and market_type label the run; history always comes from Binance spot, long only
    exchange: str = "binance"
    market_type: MarketType = MarketType.SPOT
    maker_fee_pct: float = 0.1
    taker_fee_pct: float = 0.1
    slippage_max_pct: Optional[float] = None
    equity_stride: int = 10


@dataclass
class BacktestReport:
    symbol: str
    timeframe: str
    start: datetime
    end: datetime
    initial_capital: float
    candles: int
    trades: List[BacktestTrade] = field(default_factory=list)
    equity_curve: List[EquityPoint] = field(default_factory=list)
    stats: Optional[PerformanceMetrics] = None
    execution_seconds: float = 0.0

    @property
    def total_pnl(self) -> float:
        return self.stats.total_pnl if self.stats else 0.0

    @property
    def return_pct(self) -> float:
        return self.stats.total_return_pct if self.stats else 0.0

    @property
    def max_drawdown_pct(self) -> float:
        return self.stats.max_drawdown_pct if self.stats else 0.0

    @property
    def win_rate(self) -> float:
        return self.stats.win_rate if self.stats else 0.0


def validate_request(request: BacktestRequest) -> List[str]:
    errors: List[str] = []
    if not request.symbol:
        errors.append("symbol is required")
    if request.timeframe not in SUPPORTED_TIMEFRAMES:
        errors.append(f"timeframe must be one of {', '.join(SUPPORTED_TIMEFRAMES)}")
    start, end = _aware(request.start), _aware(request.end)
    if start >= end:
        errors.append("start must be before end")
    elif end - start > MAX_PERIOD:
        errors.append("period cannot exceed 1 year")
    if request.initial_capital <= 0:
        errors.append("initial capital must be greater than 0")
    if request.taker_fee_pct < 0 or request.maker_fee_pct < 0:
        errors.append("fees cannot be negative")
    return errors


def run_backtest(
    request: BacktestRequest,
    feed: CandleFeed,
    strategy: Optional[BaseStrategy] = None,
) -> BacktestReport:
    """Raises BacktestRequestError on invalid input and BacktestDataError when no candles exist."""
    errors = validate_request(request)
    if errors:
        raise BacktestRequestError(errors)
    started = time.time()
    start, end = _aware(request.start), _aware(request.end)
    logger.info("Loading candles %s %s %s -> %s", request.symbol, request.timeframe,
                start.isoformat(), end.isoformat())
    df = feed.load(request.symbol, request.timeframe, start, end)
    if df is None or df.empty:
        raise BacktestDataError(
            f"No historical data for {request.symbol} {request.timeframe} "
            f"between {start.isoformat()} and {end.isoformat()}"
        )
    engine = BacktestEngine(
        strategy=strategy or SmaRsiTrendStrategy(),
        bot=request.bot,
        initial_capital=request.initial_capital,
        taker_fee_pct=request.taker_fee_pct,
        maker_fee_pct=request.maker_fee_pct,
        slippage_max_pct=request.slippage_max_pct,
        equity_stride=request.equity_stride,
    )
    result = engine.run(df)
    return BacktestReport(
        symbol=request.symbol,
        timeframe=request.timeframe,
        start=start,
        end=end,
        initial_capital=request.initial_capital,
        candles=len(df),
        trades=result.trades,
        equity_curve=result.equity_curve,
        stats=result.metrics,
        execution_seconds=time.time() - started,
    )
