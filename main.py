#!/usr/bin/env python3
"""
Auto-trader CLI: backtest | paper | live
Usage:
  python main.py backtest [--config config.yaml]
  python main.py paper [--config config.yaml] [--signals signals.yaml] [--once]
  python main.py live [--config config.yaml] [--signals signals.yaml] [--once]
"""

from __future__ import annotations
import argparse
import logging
import sys
from datetime import datetime, timedelta, timezone
from pathlib import Path

import yaml

# Project root
ROOT = Path(__file__).resolve().parent
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

from autotrader.core.config import Config, load_config
from autotrader.core.logger import setup_logging
from autotrader.backtesting import (
    BacktestDataError,
    BacktestRequest,
    BacktestRequestError,
    BinanceHistoryFeed,
    run_backtest,
)
from autotrader.backtesting.runner import parse_date
from autotrader.execution import BinanceClient, PaperExecutionClient
from autotrader.gate import GateOptions
from autotrader.service import (
    AutoTrader,
    ClientHealthProbe,
    DecisionCycle,
    InMemoryAccountState,
    InMemoryBotRepository,
    InMemoryOrderStore,
    OrderSyncJob,
)
from autotrader.signals import InMemorySignalStore, SignalRouter

logger = logging.getLogger("autotrader")


def run_backtest_cmd(config_path: Path | None) -> int:
    """Run backtest over the configured period using Binance public history."""
    config = load_config(config_path, ROOT)
    setup_logging(config.log_level, config.log_dir, config.log_file)
    end = parse_date(config.backtest_end) if config.backtest_end else datetime.now(timezone.utc)
    start = parse_date(config.backtest_start) if config.backtest_start else end - timedelta(days=30)
    request = BacktestRequest(
        symbol=config.backtest_symbol,
        timeframe=config.backtest_timeframe,
        start=start,
        end=end,
        initial_capital=config.backtest_initial_capital,
        bot=config.bot,
        exchange=config.exchange,
        market_type=config.bot.market_type,
        maker_fee_pct=config.maker_fee_pct,
        taker_fee_pct=config.taker_fee_pct,
        slippage_max_pct=config.slippage_max_pct,
        equity_stride=config.equity_stride,
    )
    try:
        report = run_backtest(request, BinanceHistoryFeed())
    except BacktestRequestError as e:
        for err in e.errors:
            logger.error("Invalid backtest request: %s", err)
        return 1
    except BacktestDataError as e:
        logger.error("Backtest aborted: %s", e)
        return 1
    m = report.stats
    print("\n--- Backtest Results ---")
    print(f"{report.symbol} {report.timeframe} {report.start:%Y-%m-%d} -> {report.end:%Y-%m-%d} ({report.candles} candles)")
    print(f"Total trades: {m.total_trades} (wins: {m.winning_trades}, losses: {m.losing_trades})")
    print(f"Total PnL: {m.total_pnl:.2f} USD ({m.total_return_pct:.2f}%)")
    print(f"Max drawdown: {m.max_drawdown_pct:.2f}%")
    print(f"Win rate: {m.win_rate:.1f}%")
    print(f"Profit factor: {m.profit_factor:.2f}")
    print(f"Avg R: {m.avg_r:.2f} | Max win: {m.max_win:.2f} | Max loss: {m.max_loss:.2f}")
    print(f"Avg trade duration: {m.avg_trade_duration_hours:.1f}h")
    return 0


def load_signal_store(path: Path | None) -> InMemorySignalStore:
    """Seed the in-memory store from a YAML mapping of table -> rows. Rows without created_at are stamped now."""
    store = InMemorySignalStore()
    if path is None:
        return store
    with open(path, "r", encoding="utf-8") as f:
        data = yaml.safe_load(f) or {}
    now = datetime.now(timezone.utc)
    for table, rows in data.items():
        for row in rows or []:
            row.setdefault("created_at", now)
            store.add(table, row)
    return store


def build_trader(config: Config, client, signals_path: Path | None) -> AutoTrader:
    clients = {client.exchange: client}
    orders = InMemoryOrderStore()
    accounts = InMemoryAccountState()
    if hasattr(client, "available_balance"):
        balance = client.available_balance(config.bot.market_type)
        if balance is not None:
            accounts.set_balance(config.bot.account_id, balance)
    cycle = DecisionCycle(
        router=SignalRouter(load_signal_store(signals_path)),
        accounts=accounts,
        orders=orders,
        health=ClientHealthProbe(clients),
        clients=clients,
        gate_options=GateOptions(cooldown_minutes=config.cooldown_minutes, min_confidence=config.min_confidence),
    )
    return AutoTrader(
        InMemoryBotRepository([config.bot]),
        cycle,
        max_workers=config.max_workers,
        sync_job=OrderSyncJob(orders, clients),
    )


def run_trader(config_path: Path | None, signals_path: Path | None, once: bool, live: bool) -> int:
    """Run the decision loop with the paper or Binance client."""
    config = load_config(config_path, ROOT)
    setup_logging(config.log_level, config.log_dir, config.log_file)
    if live:
        if not config.binance_api_key or not config.binance_api_secret:
            logger.error("Missing BINANCE_API_KEY or BINANCE_API_SECRET in .env")
            return 1
        client = BinanceClient(config.binance_api_key, config.binance_api_secret, testnet=config.use_testnet)
    else:
        client = PaperExecutionClient(fee_pct=config.taker_fee_pct)
    trader = build_trader(config, client, signals_path)
    if once:
        try:
            for result in trader.run_once():
                print(f"{result.account_id}: {result.status}"
                      + (f" ({result.filter_result.code})" if result.filter_result and result.filter_result.code else "")
                      + (f" - {result.error}" if result.error else ""))
        finally:
            trader.close()
        return 0
    trader.run_forever(config.poll_interval_seconds)
    return 0


def main() -> int:
    parser = argparse.ArgumentParser(description="Auto-trader CLI")
    parser.add_argument("mode", choices=["backtest", "paper", "live"], help="Run backtest, paper or live")
    parser.add_argument("--config", type=Path, default=None, help="Path to config.yaml")
    parser.add_argument("--signals", type=Path, default=None, help="YAML file of signal rows per table")
    parser.add_argument("--once", action="store_true", help="Run a single polling tick and exit")
    args = parser.parse_args()
    if args.mode == "backtest":
        return run_backtest_cmd(args.config)
    return run_trader(args.config, args.signals, args.once, live=args.mode == "live")


if __name__ == "__main__":
    sys.exit(main())
