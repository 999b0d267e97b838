"""Signal-to-execution auto-trader with backtest replay."""

__version__ = "0.1.0"
