"""
Load configuration from config.yaml and .env. API keys only from env.
"""

from __future__ import annotations
import os
from pathlib import Path
from typing import Any, Optional

import yaml
from dotenv import load_dotenv

from autotrader.core.types import BotConfiguration


def _env_path(project_root: Optional[Path] = None) -> Path:
    root = project_root or Path(__file__).resolve().parents[2]
    return root / ".env"


def load_dotenv_if_exists(project_root: Optional[Path] = None) -> None:
    """Load .env from project root if present."""
    path = _env_path(project_root)
    if path.exists():
        load_dotenv(path)


def load_config(config_path: Optional[Path] = None, project_root: Optional[Path] = None) -> "Config":
    """Load config.yaml and overlay with env. Returns Config."""
    load_dotenv_if_exists(project_root)
    root = project_root or Path(__file__).resolve().parents[2]
    path = config_path or root / "config.yaml"
    data: dict[str, Any] = {}
    if path.exists():
        with open(path, "r", encoding="utf-8") as f:
            data = yaml.safe_load(f) or {}

    def env(key: str, default: str = "") -> str:
        return os.getenv(key, default).strip()

    def env_bool(key: str, default: bool = False) -> bool:
        return os.getenv(key, str(default)).lower() in ("true", "1", "yes")

    def env_int(key: str, default: int = 0) -> int:
        try:
            return int(os.getenv(key, str(default)))
        except ValueError:
            return default

    def env_float(key: str, default: float = 0.0) -> float:
        try:
            return float(os.getenv(key, str(default)))
        except ValueError:
            return default

    def env_opt_float(key: str, default: Optional[float]) -> Optional[float]:
        raw = os.getenv(key)
        if raw is None or not raw.strip():
            return default
        try:
            return float(raw)
        except ValueError:
            return default

    api = data.get("api", {}) or {}
    gate = data.get("gate", {}) or {}
    scheduler = data.get("scheduler", {}) or {}
    logging_cfg = data.get("logging", {}) or {}
    backtest = data.get("backtest", {}) or {}

    use_testnet = env_bool("USE_TESTNET", api.get("use_testnet", True))
    # Dedicated testnet/mainnet keys so both can live in .env and USE_TESTNET switches
    if use_testnet:
        binance_api_key = env("BINANCE_TESTNET_API_KEY") or env("BINANCE_API_KEY")
        binance_api_secret = env("BINANCE_TESTNET_API_SECRET") or env("BINANCE_API_SECRET")
    else:
        binance_api_key = env("BINANCE_MAINNET_API_KEY") or env("BINANCE_API_KEY")
        binance_api_secret = env("BINANCE_MAINNET_API_SECRET") or env("BINANCE_API_SECRET")

    bot_data = dict(data.get("bot", {}) or {})
    bot_data.setdefault("is_testnet", use_testnet)
    bot = BotConfiguration.from_dict(bot_data, account_id=str(bot_data.get("account_id", "paper")))

    return Config(
        binance_api_key=binance_api_key,
        binance_api_secret=binance_api_secret,
        exchange=env("EXCHANGE", api.get("exchange", "binance")).lower(),
        use_testnet=use_testnet,
        bot=bot,
        # Gate
        cooldown_minutes=env_float("COOLDOWN_MINUTES", gate.get("cooldown_minutes", 15.0)),
        min_confidence=env_opt_float("MIN_CONFIDENCE", gate.get("min_confidence")),
        # Scheduler
        poll_interval_seconds=env_float("POLL_INTERVAL_SECONDS", scheduler.get("poll_interval_seconds", 30.0)),
        max_workers=env_int("MAX_WORKERS", scheduler.get("max_workers", 8)),
        # Logging
        log_level=env("LOG_LEVEL", logging_cfg.get("level", "INFO")),
        log_dir=Path(logging_cfg.get("log_dir", "logs")),
        log_file=logging_cfg.get("log_file", "autotrader.log"),
        # Backtest
        backtest_symbol=env("BACKTEST_SYMBOL", backtest.get("symbol", "BTCUSDT")).upper(),
        backtest_timeframe=env("BACKTEST_TIMEFRAME", backtest.get("timeframe", "1h")),
        backtest_start=backtest.get("start_date"),
        backtest_end=backtest.get("end_date"),
        backtest_initial_capital=float(backtest.get("initial_capital", 10000.0)),
        maker_fee_pct=float(backtest.get("maker_fee_pct", 0.1)),
        taker_fee_pct=float(backtest.get("taker_fee_pct", 0.1)),
        slippage_max_pct=backtest.get("slippage_max_pct"),
        equity_stride=int(backtest.get("equity_stride", 10)),
    )


class Config:
    """Unified configuration. Immutable after load."""

    __slots__ = (
        "binance_api_key", "binance_api_secret", "exchange", "use_testnet", "bot",
        "cooldown_minutes", "min_confidence",
        "poll_interval_seconds", "max_workers",
        "log_level", "log_dir", "log_file",
        "backtest_symbol", "backtest_timeframe", "backtest_start", "backtest_end",
        "backtest_initial_capital", "maker_fee_pct", "taker_fee_pct", "slippage_max_pct",
        "equity_stride",
    )

    def __init__(
        self,
        binance_api_key: str = "",
        binance_api_secret: str = "",
        exchange: str = "binance",
        use_testnet: bool = True,
        bot: Optional[BotConfiguration] = None,
        cooldown_minutes: float = 15.0,
        min_confidence: Optional[float] = None,
        poll_interval_seconds: float = 30.0,
        max_workers: int = 8,
        log_level: str = "INFO",
        log_dir: Path = None,
        log_file: str = "autotrader.log",
        backtest_symbol: str = "BTCUSDT",
        backtest_timeframe: str = "1h",
        backtest_start: Optional[str] = None,
        backtest_end: Optional[str] = None,
        backtest_initial_capital: float = 10000.0,
        maker_fee_pct: float = 0.1,
        taker_fee_pct: float = 0.1,
        slippage_max_pct: Optional[float] = None,
        equity_stride: int = 10,
    ):
        self.binance_api_key = binance_api_key
        self.binance_api_secret = binance_api_secret
        self.exchange = exchange
        self.use_testnet = use_testnet
        self.bot = bot or BotConfiguration(account_id="paper")
        self.cooldown_minutes = cooldown_minutes
        self.min_confidence = min_confidence
        self.poll_interval_seconds = poll_interval_seconds
        self.max_workers = max(1, max_workers)
        self.log_level = log_level
        self.log_dir = Path(log_dir) if log_dir else Path("logs")
        self.log_file = log_file
        self.backtest_symbol = backtest_symbol
        self.backtest_timeframe = backtest_timeframe
        self.backtest_start = backtest_start
        self.backtest_end = backtest_end
        self.backtest_initial_capital = backtest_initial_capital
        self.maker_fee_pct = maker_fee_pct
        self.taker_fee_pct = taker_fee_pct
        self.slippage_max_pct = float(slippage_max_pct) if slippage_max_pct is not None else None
        self.equity_stride = max(1, equity_stride)
