"""
Core data types: signals, bot configuration, candles.
"""

from __future__ import annotations
from dataclasses import dataclass, field, fields
from datetime import datetime
from enum import Enum
from typing import Any, Optional


class SignalSide(str, Enum):
    BUY = "BUY"
    SELL = "SELL"

    @property
    def order_side(self) -> str:
        """Lower-case side used in order plans ("buy" / "sell")."""
        return self.value.lower()


class MarketType(str, Enum):
    SPOT = "spot"
    FUTURES = "futures"


class SignalSourceType(str, Enum):
    AI = "ai"
    REALTIME_AI = "realtime_ai"
    TRADINGVIEW = "tradingview"
    LEGACY = "legacy"


class ProfitTakingStrategy(str, Enum):
    FIXED = "fixed"
    TRAILING = "trailing"
    PARTIAL = "partial"


@dataclass(frozen=True)
class UnifiedSignal:
    """One trading opportunity, independent of the source that produced it."""
    id: str
    account_id: str
    symbol: str
    timeframe: str
    side: SignalSide
    source: SignalSourceType
    generated_at: datetime
    confidence: float = 0.0
    entry_price: Optional[float] = None
    stop_loss: Optional[float] = None
    take_profit: Optional[float] = None
    leverage: Optional[int] = None
    market_type: Optional[MarketType] = None
    strategy_name: str = ""
    raw: dict = field(default_factory=dict, compare=False, hash=False)

    @property
    def is_buy(self) -> bool:
        return self.side == SignalSide.BUY


def normalize_symbol(symbol: str) -> str:
    """BTC/USDT, btc-usdt and BTC_USDT all become BTCUSDT."""
    return "".join(ch for ch in (symbol or "").upper() if ch not in "/-_ ")


def _as_list(value: Any) -> list[str]:
    if not value:
        return []
    if isinstance(value, str):
        return [s.strip() for s in value.split(",") if s.strip()]
    return [str(v) for v in value]


@dataclass
class BotConfiguration:
    """Per-account trading policy. Loaded fresh for every decision cycle."""
    account_id: str
    is_active: bool = False
    signal_source: str = SignalSourceType.AI.value
    market_type: MarketType = MarketType.SPOT
    allowed_symbols: list[str] = field(default_factory=list)
    blacklist_symbols: list[str] = field(default_factory=list)
    min_confidence: Optional[float] = None
    default_timeframe: Optional[str] = None
    # Capital and risk
    total_capital: float = 1000.0
    risk_percentage: float = 2.0
    max_active_trades: int = 5
    allow_long_trades: bool = True
    allow_short_trades: bool = True
    # Entry ladder
    initial_order_percentage: float = 25.0
    dca_levels: int = 0
    dca_step_percentage: float = 2.0
    # Exits
    stop_loss_percentage: float = 5.0
    take_profit_percentage: float = 3.0
    leverage: int = 1
    profit_taking_strategy: str = ProfitTakingStrategy.FIXED.value
    trailing_stop_distance: float = 1.0
    partial_tp_percentages: tuple[float, float, float] = (25.0, 25.0, 25.0)
    # Routing
    exchange: str = "binance"
    is_testnet: bool = True

    @classmethod
    def from_dict(cls, data: dict, account_id: Optional[str] = None) -> "BotConfiguration":
        """Build from a store row or YAML mapping. Unknown keys are ignored."""
        known = {f.name for f in fields(cls)}
        values = {k: v for k, v in (data or {}).items() if k in known and v is not None}
        if account_id is not None:
            values["account_id"] = account_id
        elif "account_id" not in values:
            values["account_id"] = str(data.get("user_id", "")) if data else ""
        if "market_type" in values:
            values["market_type"] = MarketType(str(values["market_type"]).lower())
        for key in ("allowed_symbols", "blacklist_symbols"):
            if key in values:
                values[key] = _as_list(values[key])
        if "partial_tp_percentages" in values:
            pcts = [float(p) for p in values["partial_tp_percentages"]][:3]
            values["partial_tp_percentages"] = tuple(pcts + [0.0] * (3 - len(pcts)))
        # store rows keep one column per partial level
        columns = [f"partial_tp_percentage_{i}" for i in (1, 2, 3)]
        if data and any(data.get(c) is not None for c in columns):
            base = values.get("partial_tp_percentages", cls.partial_tp_percentages)
            values["partial_tp_percentages"] = tuple(
                float(data[c]) if data.get(c) is not None else float(base[i]) for i, c in enumerate(columns)
            )
        if "signal_source" in values:
            values["signal_source"] = str(values["signal_source"]).lower()
        return cls(**values)
