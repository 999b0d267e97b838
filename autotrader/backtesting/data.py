"""
Historical candle feeds. BinanceHistoryFeed pages the public klines endpoint (no keys needed).
"""

from __future__ import annotations
import logging
import time
from abc import ABC, abstractmethod
from datetime import datetime, timezone
from typing import Optional

import pandas as pd
import requests

from autotrader.core.types import normalize_symbol
from autotrader.utils.timeframes import binance_interval

logger = logging.getLogger("autotrader.backtest.data")

CANDLE_COLUMNS = ["time", "open", "high", "low", "close", "volume"]
KLINE_COLUMNS = [
    "open_time", "open", "high", "low", "close", "volume",
    "close_time", "quote_av", "num_trades", "tb_base_av", "tb_quote_av", "ignore",
]


def to_ms(value: datetime) -> int:
    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    return int(value.timestamp() * 1000)


def klines_to_frame(raw: list) -> pd.DataFrame:
    """Binance kline rows -> OHLCV frame with UTC timestamps."""
    if not raw:
        return pd.DataFrame(columns=CANDLE_COLUMNS)
    df = pd.DataFrame(raw, columns=KLINE_COLUMNS)
    df[["open", "high", "low", "close", "volume"]] = df[["open", "high", "low", "close", "volume"]].astype(float)
    df["time"] = pd.to_datetime(df["open_time"].astype("int64"), unit="ms", utc=True)
    return df[CANDLE_COLUMNS]


class CandleFeed(ABC):
    """Source of historical OHLCV candles."""

    @abstractmethod
    def load(self, symbol: str, timeframe: str, start: datetime, end: datetime) -> pd.DataFrame:
        """Candles with open time in [start, end], sorted, columns CANDLE_COLUMNS."""
        pass


class InMemoryCandleFeed(CandleFeed):
    """Serves a prepared frame, filtered to the requested range."""

    def __init__(self, df: pd.DataFrame):
        self.df = df

    def load(self, symbol: str, timeframe: str, start: datetime, end: datetime) -> pd.DataFrame:
        times = pd.to_datetime(self.df["time"], utc=True)
        mask = (times >= pd.Timestamp(to_ms(start), unit="ms", tz="UTC")) & \
               (times <= pd.Timestamp(to_ms(end), unit="ms", tz="UTC"))
        return self.df.loc[mask, CANDLE_COLUMNS].reset_index(drop=True)


class BinanceHistoryFeed(CandleFeed):
    """Paginated GET /api/v3/klines. Backtests use Binance history whatever the live exchange."""

    def __init__(
        self,
        base_url: str = "https://api.binance.com",
        session: Optional[requests.Session] = None,
        limit: int = 1000,
        pause_seconds: float = 0.1,
        timeout: float = 10.0,
    ):
        self.base_url = base_url.rstrip("/")
        self.session = session or requests.Session()
        self.limit = limit
        self.pause_seconds = pause_seconds
        self.timeout = timeout

    def _page(self, symbol: str, interval: str, start_ms: int, end_ms: int) -> list:
        resp = self.session.get(
            f"{self.base_url}/api/v3/klines",
            params={"symbol": symbol, "interval": interval, "startTime": start_ms,
                    "endTime": end_ms, "limit": self.limit},
            timeout=self.timeout,
        )
        resp.raise_for_status()
        return resp.json()

    def load(self, symbol: str, timeframe: str, start: datetime, end: datetime) -> pd.DataFrame:
        symbol = normalize_symbol(symbol)
        interval = binance_interval(timeframe)
        start_ms, end_ms = to_ms(start), to_ms(end)
        rows: list = []
        cursor = start_ms
        while cursor <= end_ms:
            page = self._page(symbol, interval, cursor, end_ms)
            if not page:
                break
            rows.extend(page)
            cursor = int(page[-1][0]) + 1
            if len(page) < self.limit:
                break
            time.sleep(self.pause_seconds)
        logger.info("Loaded %d %s %s candles from Binance", len(rows), symbol, interval)
        df = klines_to_frame(rows)
        if df.empty:
            return df
        df = df.drop_duplicates(subset="time").sort_values("time")
        mask = (df["time"] >= pd.Timestamp(start_ms, unit="ms", tz="UTC")) & \
               (df["time"] <= pd.Timestamp(end_ms, unit="ms", tz="UTC"))
        return df.loc[mask].reset_index(drop=True)
