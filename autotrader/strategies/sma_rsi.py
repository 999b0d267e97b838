"""
SMA trend + RSI band rule used by the backtest replay.
Uses only closes up to and including the evaluated candle.
"""

from __future__ import annotations
from typing import Optional

import numpy as np
import pandas as pd

from autotrader.core.types import SignalSide
from autotrader.strategies.base import BaseStrategy


class SmaRsiTrendStrategy(BaseStrategy):
    """
    Buy (flat): SMA_fast > SMA_slow and rsi_low < RSI < rsi_high.
    Sell (in position): SMA_fast < SMA_slow, or RSI outside the band.
    """

    def __init__(
        self,
        sma_fast: int = 20,
        sma_slow: int = 50,
        rsi_len: int = 14,
        rsi_low: float = 25.0,
        rsi_high: float = 75.0,
        warmup: int = 50,
    ):
        self.sma_fast = sma_fast
        self.sma_slow = sma_slow
        self.rsi_len = rsi_len
        self.rsi_low = rsi_low
        self.rsi_high = rsi_high
        self.warmup = max(warmup, sma_slow)

    def compute_indicators(self, df: pd.DataFrame) -> pd.DataFrame:
        df = df.copy()
        close = df["close"].astype(float)
        df["sma_fast"] = close.rolling(self.sma_fast).mean()
        df["sma_slow"] = close.rolling(self.sma_slow).mean()
        delta = close.diff()
        up = delta.clip(lower=0).rolling(self.rsi_len).mean()
        down = (-delta).clip(lower=0).rolling(self.rsi_len).mean()
        rs = up / down.replace(0, np.nan)
        rsi = 100 - (100 / (1 + rs))
        # no losses in the window: 100, or 50 when the window is flat
        df["rsi"] = rsi.where(down != 0, np.where(up > 0, 100.0, 50.0))
        return df

    def signal_at(self, row: pd.Series, in_position: bool) -> Optional[SignalSide]:
        fast, slow, rsi = row.get("sma_fast"), row.get("sma_slow"), row.get("rsi")
        if pd.isna(fast) or pd.isna(slow) or pd.isna(rsi):
            return None
        if not in_position:
            if fast > slow and self.rsi_low < rsi < self.rsi_high:
                return SignalSide.BUY
            return None
        if fast < slow or rsi > self.rsi_high or rsi < self.rsi_low:
            return SignalSide.SELL
        return None
