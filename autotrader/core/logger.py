"""
Logging setup for the autotrader logger tree. File + console.
"""

from __future__ import annotations
import logging
import sys
from pathlib import Path
from typing import Optional

LOGGER_NAME = "autotrader"


def setup_logging(
    level: str = "INFO",
    log_dir: Optional[Path] = None,
    log_file: Optional[str] = None,
) -> logging.Logger:
    """
    Configure the autotrader logger: console and optional file.
    Never log API keys or secrets.
    """
    log_level = getattr(logging, level.upper(), logging.INFO)
    root = logging.getLogger(LOGGER_NAME)
    root.setLevel(log_level)
    root.handlers.clear()

    fmt = "%(asctime)s | %(levelname)-8s | %(name)s | %(message)s"
    date_fmt = "%Y-%m-%d %H:%M:%S"
    formatter = logging.Formatter(fmt, datefmt=date_fmt)

    console = logging.StreamHandler(sys.stdout)
    console.setFormatter(formatter)
    root.addHandler(console)

    if log_dir and log_file:
        log_dir = Path(log_dir)
        log_dir.mkdir(parents=True, exist_ok=True)
        path = log_dir / log_file
        fh = logging.FileHandler(path, encoding="utf-8")
        fh.setFormatter(formatter)
        root.addHandler(fh)

    # HTTP clients log every request at DEBUG; keep them out of the cycle logs
    for noisy in ("urllib3", "binance"):
        logging.getLogger(noisy).setLevel(max(log_level, logging.WARNING))

    return root


def log_rejection(logger: logging.Logger, account_id: str, code: str, reason: str) -> None:
    """Structured one-line log for gate rejections and sync mismatches."""
    logger.info("account=%s code=%s reason=%s", account_id, code, reason)
