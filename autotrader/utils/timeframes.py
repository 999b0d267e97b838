"""Timeframe string helpers: minutes, milliseconds, short/long classification."""

SHORT_TIMEFRAMES = ("1m", "3m", "5m", "15m")


def timeframe_minutes(tf: str) -> int:
    """Convert exchange-style timeframe (e.g. '5m', '1h', '1D', '1w') to minutes."""
    tf = tf.strip()
    unit = tf[-1:]
    try:
        count = int(tf[:-1])
    except ValueError:
        raise ValueError(f"Unsupported timeframe: {tf}") from None
    if unit == "m":
        return count
    if unit in ("h", "H"):
        return count * 60
    if unit in ("d", "D"):
        return count * 60 * 24
    if unit in ("w", "W"):
        return count * 60 * 24 * 7
    raise ValueError(f"Unsupported timeframe: {tf}")


def timeframe_ms(tf: str) -> int:
    return timeframe_minutes(tf) * 60 * 1000


def is_short_timeframe(tf: str) -> bool:
    """Intraday scalping timeframes get tighter signal recency windows."""
    return tf.strip() in SHORT_TIMEFRAMES


def binance_interval(tf: str) -> str:
    """Binance klines use lower-case day/week units ('1D' -> '1d')."""
    tf = tf.strip()
    if tf[-1:] in ("D", "W", "H"):
        return tf[:-1] + tf[-1].lower()
    return tf
