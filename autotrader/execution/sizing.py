"""
Sizing helpers shared by the live payload builder and the backtest engine.
"""

from __future__ import annotations
import math
from dataclasses import dataclass
from typing import Optional


@dataclass
class DcaLevel:
    """One averaging order: 1-based level, trigger price, quote amount."""
    level: int
    price: float
    amount_usd: float


def exit_prices(
    entry_price: float,
    is_buy: bool,
    stop_loss_pct: float,
    take_profit_pct: float,
    stop_loss: Optional[float] = None,
    take_profit: Optional[float] = None,
) -> tuple[float, float]:
    """
    Stop and target prices. Explicit positive prices win; otherwise entry +/- pct.
    BUY: stop below, target above. SELL: mirrored.
    """
    direction = 1.0 if is_buy else -1.0
    stop = stop_loss if stop_loss and stop_loss > 0 else entry_price * (1 - direction * stop_loss_pct / 100.0)
    target = take_profit if take_profit and take_profit > 0 else entry_price * (1 + direction * take_profit_pct / 100.0)
    return stop, target


def build_dca_ladder(
    entry_price: float,
    is_buy: bool,
    budget_usd: float,
    levels: int,
    step_pct: float,
) -> list[DcaLevel]:
    """
    Split budget evenly over `levels` averaging orders stepping step_pct further from entry
    per level (lower for BUY, higher for SELL). The last level takes the rounding remainder
    so the amounts always sum to the budget.
    """
    if levels <= 0:
        return []
    budget = max(0.0, budget_usd)
    per_level = budget / levels
    direction = -1.0 if is_buy else 1.0
    ladder: list[DcaLevel] = []
    allocated = 0.0
    for i in range(1, levels + 1):
        amount = per_level if i < levels else max(0.0, budget - allocated)
        allocated += amount
        price = max(0.0, entry_price * (1 + direction * step_pct * i / 100.0))
        ladder.append(DcaLevel(level=i, price=price, amount_usd=amount))
    return ladder


def fit_ladder(initial_usd: float, ladder: list[DcaLevel], total_usd: float) -> list[DcaLevel]:
    """
    Trim amounts from the last level backwards until initial + sum(levels) <= total
    holds exactly in float arithmetic.
    """
    def planned() -> float:
        return initial_usd + sum(level.amount_usd for level in ladder)

    for level in reversed(ladder):
        excess = planned() - total_usd
        if excess <= 0:
            break
        level.amount_usd = max(0.0, level.amount_usd - excess)
        while level.amount_usd > 0 and planned() > total_usd:
            level.amount_usd = math.nextafter(level.amount_usd, 0.0)
    return ladder
