"""
Performance metrics: max drawdown, win rate, profit factor, expectancy, R multiples.
"""

from __future__ import annotations
from dataclasses import dataclass
from typing import List, Optional, Sequence

import numpy as np


@dataclass
class PerformanceMetrics:
    """Aggregate backtest statistics. win_rate and percentages are 0-100."""
    total_trades: int
    winning_trades: int
    losing_trades: int
    win_rate: float
    total_pnl: float
    avg_pnl: float
    total_return_pct: float
    final_equity: float
    max_win: float
    max_loss: float
    profit_factor: float
    max_drawdown_pct: float
    avg_r: float
    avg_trade_duration_hours: float


def max_drawdown(equity: Sequence[float]) -> float:
    """Largest peak-to-trough decline in percent, as a positive number (15.0 = 15%)."""
    if len(equity) == 0:
        return 0.0
    arr = np.asarray(equity, dtype=float)
    peak = np.maximum.accumulate(arr)
    dd = (peak - arr) / np.where(peak > 0, peak, 1)
    return float(np.max(dd)) * 100.0


def win_rate(pnls: List[float]) -> float:
    """Fraction of trades with positive PnL."""
    if not pnls:
        return 0.0
    return sum(1 for p in pnls if p > 0) / len(pnls)


def profit_factor(pnls: List[float]) -> float:
    """Gross profit / gross loss. 0 with no wins, inf with wins and no losses."""
    wins = sum(p for p in pnls if p > 0)
    losses = sum(-p for p in pnls if p < 0)
    if losses <= 0:
        return float("inf") if wins > 0 else 0.0
    return wins / losses


def expectancy(pnls: List[float]) -> float:
    """Average PnL per trade."""
    if not pnls:
        return 0.0
    return sum(pnls) / len(pnls)


def r_multiples(pnls: List[float], risks: List[float]) -> List[float]:
    """PnL per unit of initial risk. Trades with no defined risk are skipped."""
    return [p / r for p, r in zip(pnls, risks) if r > 0]


def compute_metrics(
    pnls: List[float],
    initial_capital: float,
    equity: Optional[Sequence[float]] = None,
    risks: Optional[List[float]] = None,
    durations_hours: Optional[List[float]] = None,
) -> PerformanceMetrics:
    """
    Compute metrics from trade PnLs. equity is the sampled equity curve; if None it is
    rebuilt from initial_capital plus the running PnL sum.
    """
    if equity is None or len(equity) == 0:
        equity = list(np.cumsum([initial_capital] + list(pnls)))
    total_pnl = sum(pnls)
    final_equity = initial_capital + total_pnl
    rs = r_multiples(pnls, risks or [])
    durations = durations_hours or []
    return PerformanceMetrics(
        total_trades=len(pnls),
        winning_trades=sum(1 for p in pnls if p > 0),
        losing_trades=sum(1 for p in pnls if p < 0),
        win_rate=win_rate(pnls) * 100.0,
        total_pnl=total_pnl,
        avg_pnl=expectancy(pnls),
        total_return_pct=(total_pnl / initial_capital * 100.0) if initial_capital > 0 else 0.0,
        final_equity=final_equity,
        max_win=max((p for p in pnls if p > 0), default=0.0),
        max_loss=min((p for p in pnls if p < 0), default=0.0),
        profit_factor=profit_factor(pnls),
        max_drawdown_pct=max_drawdown(equity),
        avg_r=sum(rs) / len(rs) if rs else 0.0,
        avg_trade_duration_hours=sum(durations) / len(durations) if durations else 0.0,
    )
