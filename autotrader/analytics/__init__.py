"""Analytics: performance metrics (MDD, win rate, profit factor, R multiples)."""

from autotrader.analytics.metrics import (
    PerformanceMetrics,
    compute_metrics,
    max_drawdown,
    win_rate,
    profit_factor,
    expectancy,
    r_multiples,
)

__all__ = [
    "PerformanceMetrics",
    "compute_metrics",
    "max_drawdown",
    "win_rate",
    "profit_factor",
    "expectancy",
    "r_multiples",
]
