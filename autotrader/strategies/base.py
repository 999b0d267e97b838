"""Abstract strategy: indicators + rule-based signal for candle replay."""

from __future__ import annotations
from abc import ABC, abstractmethod
from typing import Optional

import pandas as pd

from autotrader.core.types import SignalSide


class BaseStrategy(ABC):
    """Strategy computes indicators once per frame and maps a row to BUY, SELL or nothing."""

    warmup: int = 50

    @abstractmethod
    def compute_indicators(self, df: pd.DataFrame) -> pd.DataFrame:
        """Add indicator columns to OHLCV DataFrame. No lookahead."""
        pass

    @abstractmethod
    def signal_at(self, row: pd.Series, in_position: bool) -> Optional[SignalSide]:
        """Signal for one closed candle whose indicator columns are already computed."""
        pass

    def get_signal(self, df: pd.DataFrame, in_position: bool = False) -> Optional[SignalSide]:
        """Signal for the last closed candle of df."""
        if len(df) < self.warmup:
            return None
        return self.signal_at(self.compute_indicators(df).iloc[-1], in_position)
