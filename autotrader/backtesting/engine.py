"""
Backtest engine: single long position replayed candle by candle. DCA limit fills pay the maker fee.
Same exit-price and DCA-ladder helpers as the live payload builder.
"""

from __future__ import annotations
import logging
from dataclasses import dataclass, field
from datetime import datetime
from typing import List, Optional

import pandas as pd

from autotrader.analytics.metrics import PerformanceMetrics, compute_metrics
from autotrader.core.types import BotConfiguration, SignalSide
from autotrader.execution.payload import (
    DEFAULT_DCA_STEP_PCT,
    DEFAULT_STOP_LOSS_PCT,
    DEFAULT_TAKE_PROFIT_PCT,
)
from autotrader.execution.sizing import DcaLevel, build_dca_ladder, exit_prices
from autotrader.strategies.base import BaseStrategy

logger = logging.getLogger("autotrader.backtest")

# Replay sizes entries from the free balance, so the entry share defaults higher than live
DEFAULT_BACKTEST_INITIAL_PCT = 50.0

EXIT_TAKE_PROFIT = "take_profit"
EXIT_STOP_LOSS = "stop_loss"
EXIT_SIGNAL = "signal"
EXIT_TIMEOUT = "timeout"


@dataclass
class BacktestTrade:
    entry_time: datetime
    exit_time: datetime
    entry_price: float
    exit_price: float
    quantity: float
    cost: float
    fees: float
    risk_usd: float
    pnl_usd: float
    pnl_pct: float
    exit_reason: str
    dca_fills: int = 0

    @property
    def duration_hours(self) -> float:
        return (pd.Timestamp(self.exit_time) - pd.Timestamp(self.entry_time)).total_seconds() / 3600.0


@dataclass
class EquityPoint:
    time: datetime
    equity: float


@dataclass
class BacktestResult:
    """Backtest output: trades, sampled equity curve and metrics."""
    trades: List[BacktestTrade] = field(default_factory=list)
    equity_curve: List[EquityPoint] = field(default_factory=list)
    metrics: Optional[PerformanceMetrics] = None


@dataclass
class _Position:
    entry_time: datetime
    quantity: float
    notional: float
    cost: float
    fees: float
    risk_usd: float
    stop: float
    target: float
    ladder: List[DcaLevel] = field(default_factory=list)
    dca_fills: int = 0

    @property
    def avg_entry(self) -> float:
        return self.notional / self.quantity if self.quantity > 0 else 0.0


def compute_backtest_stats(
    trades: List[BacktestTrade],
    equity_curve: List[EquityPoint],
    initial_capital: float,
) -> PerformanceMetrics:
    return compute_metrics(
        [t.pnl_usd for t in trades],
        initial_capital,
        equity=[p.equity for p in equity_curve],
        risks=[t.risk_usd for t in trades],
        durations_hours=[t.duration_hours for t in trades],
    )


def _pct(value: float, default: float) -> float:
    return float(value) if value and value > 0 else default


class BacktestEngine:
    """
    Replays candles through a strategy rule with the bot's sizing and exit policy.
    Exits are checked from the candle after entry: stop beats target, both beat a SELL signal.
    """

    def __init__(
        self,
        strategy: BaseStrategy,
        bot: BotConfiguration,
        initial_capital: float = 10000.0,
        taker_fee_pct: float = 0.1,
        slippage_max_pct: Optional[float] = None,
        equity_stride: int = 10,
        maker_fee_pct: Optional[float] = None,
    ):
        self.strategy = strategy
        self.bot = bot
        self.initial_capital = initial_capital
        self.taker_fee_pct = taker_fee_pct
        # DCA levels rest as limit orders; None charges them the taker rate
        self.maker_fee_pct = taker_fee_pct if maker_fee_pct is None else maker_fee_pct
        self.slippage_pct = max(0.0, slippage_max_pct or 0.0)
        self.equity_stride = max(1, equity_stride)
        self.initial_pct = min(100.0, _pct(bot.initial_order_percentage, DEFAULT_BACKTEST_INITIAL_PCT))
        self.stop_pct = _pct(bot.stop_loss_percentage, DEFAULT_STOP_LOSS_PCT)
        self.target_pct = _pct(bot.take_profit_percentage, DEFAULT_TAKE_PROFIT_PCT)
        self.dca_levels = max(0, int(bot.dca_levels or 0))
        self.dca_step_pct = _pct(bot.dca_step_percentage, DEFAULT_DCA_STEP_PCT)

    def _fee(self, notional: float, maker: bool = False) -> float:
        return notional * (self.maker_fee_pct if maker else self.taker_fee_pct) / 100.0

    def _buy_fill(self, price: float) -> float:
        return price * (1 + self.slippage_pct / 100.0)

    def _sell_fill(self, price: float) -> float:
        return price * (1 - self.slippage_pct / 100.0)

    def _open(self, time: datetime, close: float, balance: float) -> Optional[_Position]:
        size = balance * self.initial_pct / 100.0
        fill = self._buy_fill(close)
        fee = self._fee(size)
        if fill <= 0 or size <= 0 or size + fee > balance:
            return None
        stop, target = exit_prices(fill, True, self.stop_pct, self.target_pct)
        ladder = build_dca_ladder(
            fill, True, balance * (100.0 - self.initial_pct) / 100.0, self.dca_levels, self.dca_step_pct,
        )
        return _Position(
            entry_time=time,
            quantity=size / fill,
            notional=size,
            cost=size + fee,
            fees=fee,
            risk_usd=size * self.stop_pct / 100.0,
            stop=stop,
            target=target,
            ladder=ladder,
        )

    def _fill_ladder(self, pos: _Position, low: float, balance: float) -> float:
        """Fill DCA levels reached by this candle's low and still above the stop. Returns spent cash."""
        spent = 0.0
        for level in list(pos.ladder):
            if low > level.price or level.price <= pos.stop:
                continue
            fee = self._fee(level.amount_usd, maker=True)
            if level.amount_usd <= 0 or level.amount_usd + fee > balance - spent:
                continue
            fill = self._buy_fill(level.price)
            pos.quantity += level.amount_usd / fill
            pos.notional += level.amount_usd
            pos.cost += level.amount_usd + fee
            pos.fees += fee
            pos.risk_usd += level.amount_usd * self.stop_pct / 100.0
            pos.dca_fills += 1
            pos.ladder.remove(level)
            spent += level.amount_usd + fee
            pos.stop, pos.target = exit_prices(pos.avg_entry, True, self.stop_pct, self.target_pct)
        return spent

    def _close(self, pos: _Position, time: datetime, price: float, reason: str) -> tuple[BacktestTrade, float]:
        fill = self._sell_fill(price)
        value = pos.quantity * fill
        fee = self._fee(value)
        proceeds = value - fee
        pnl = proceeds - pos.cost
        trade = BacktestTrade(
            entry_time=pos.entry_time,
            exit_time=time,
            entry_price=pos.avg_entry,
            exit_price=fill,
            quantity=pos.quantity,
            cost=pos.cost,
            fees=pos.fees + fee,
            risk_usd=pos.risk_usd,
            pnl_usd=pnl,
            pnl_pct=(pnl / pos.cost) * 100.0 if pos.cost > 0 else 0.0,
            exit_reason=reason,
            dca_fills=pos.dca_fills,
        )
        return trade, proceeds

    def run(self, df: pd.DataFrame) -> BacktestResult:
        """
        Run on OHLCV DataFrame (columns: time, open, high, low, close, volume), sorted by time.
        """
        if df.empty:
            return BacktestResult(metrics=compute_backtest_stats([], [], self.initial_capital))
        df = self.strategy.compute_indicators(df.reset_index(drop=True))
        balance = self.initial_capital
        trades: List[BacktestTrade] = []
        curve: List[EquityPoint] = []
        pos: Optional[_Position] = None
        last = len(df) - 1

        for i in range(self.strategy.warmup, len(df)):
            row = df.iloc[i]
            time = row["time"]
            high, low, close = float(row["high"]), float(row["low"]), float(row["close"])
            signal = self.strategy.signal_at(row, in_position=pos is not None)

            if pos is not None:
                balance -= self._fill_ladder(pos, low, balance)
                reason, price = None, close
                if low <= pos.stop:
                    reason, price = EXIT_STOP_LOSS, pos.stop
                elif high >= pos.target:
                    reason, price = EXIT_TAKE_PROFIT, pos.target
                elif signal == SignalSide.SELL:
                    reason = EXIT_SIGNAL
                if reason is not None:
                    trade, proceeds = self._close(pos, time, price, reason)
                    balance += proceeds
                    trades.append(trade)
                    pos = None
            elif signal == SignalSide.BUY:
                pos = self._open(time, close, balance)
                if pos is not None:
                    balance -= pos.cost
                    logger.debug("Entry %s @ %.4f qty=%.6f", time, pos.avg_entry, pos.quantity)

            if i % self.equity_stride == 0 and i != last:
                marked = balance + (pos.quantity * close if pos is not None else 0.0)
                curve.append(EquityPoint(time=time, equity=marked))

        if pos is not None:
            last_row = df.iloc[last]
            trade, proceeds = self._close(pos, last_row["time"], float(last_row["close"]), EXIT_TIMEOUT)
            balance += proceeds
            trades.append(trade)
        curve.append(EquityPoint(time=df.iloc[last]["time"], equity=balance))

        logger.info("Backtest done: %d candles, %d trades, final equity %.2f", len(df), len(trades), balance)
        return BacktestResult(
            trades=trades,
            equity_curve=curve,
            metrics=compute_backtest_stats(trades, curve, self.initial_capital),
        )
