"""
Read-only signal store interface and an in-memory implementation.

Adapters describe what they want with a SignalQuery; the store decides how to
fetch it (SQL, REST, in-memory). Rows are plain dicts.
"""

from __future__ import annotations
import threading
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Optional

from autotrader.core.types import normalize_symbol


def parse_timestamp(value: Any) -> Optional[datetime]:
    """Accept datetime, ISO-8601 string (with or without 'Z') or epoch milliseconds."""
    if value is None or value == "":
        return None
    if isinstance(value, datetime):
        return value if value.tzinfo else value.replace(tzinfo=timezone.utc)
    if isinstance(value, (int, float)):
        return datetime.fromtimestamp(float(value) / 1000.0, tz=timezone.utc)
    text = str(value).strip()
    if text.endswith("Z"):
        text = text[:-1] + "+00:00"
    parsed = datetime.fromisoformat(text)
    return parsed if parsed.tzinfo else parsed.replace(tzinfo=timezone.utc)


@dataclass
class SignalQuery:
    """Freshest-row query against one signal table."""
    table: str
    account_id: Optional[str] = None
    symbols: list[str] = field(default_factory=list)
    timeframe: Optional[str] = None
    confidence_fields: tuple[str, ...] = ("confidence_score",)
    min_confidence: Optional[float] = None
    side_field: Optional[str] = None
    sides: tuple[str, ...] = ()
    status_field: Optional[str] = None
    status: Optional[str] = None
    created_after: Optional[datetime] = None
    limit: int = 1


class SignalStore(ABC):
    """Opaque query service over persisted signal rows."""

    @abstractmethod
    def fetch(self, query: SignalQuery) -> list[dict]:
        """Return matching rows, newest first, at most query.limit."""
        pass


class InMemorySignalStore(SignalStore):
    """Rows kept per table in memory. Used by paper mode and tests."""

    def __init__(self, tables: Optional[dict[str, list[dict]]] = None):
        self._tables: dict[str, list[dict]] = {k: list(v) for k, v in (tables or {}).items()}
        self._lock = threading.Lock()

    def add(self, table: str, row: dict) -> None:
        with self._lock:
            self._tables.setdefault(table, []).append(dict(row))

    def fetch(self, query: SignalQuery) -> list[dict]:
        with self._lock:
            rows = list(self._tables.get(query.table, []))
        matched = [r for r in rows if self._matches(r, query)]
        matched.sort(key=lambda r: parse_timestamp(r.get("created_at")) or datetime.min.replace(tzinfo=timezone.utc),
                     reverse=True)
        return matched[: max(0, query.limit)]

    @staticmethod
    def _matches(row: dict, query: SignalQuery) -> bool:
        if query.account_id is not None and str(row.get("user_id", row.get("account_id", ""))) != query.account_id:
            return False
        if query.symbols:
            wanted = {normalize_symbol(s) for s in query.symbols}
            if normalize_symbol(row.get("symbol", "")) not in wanted:
                return False
        if query.timeframe and row.get("timeframe") != query.timeframe:
            return False
        if query.min_confidence is not None:
            conf = next((row[f] for f in query.confidence_fields if row.get(f) not in (None, "", 0)), None)
            if conf is None or float(conf) < query.min_confidence:
                return False
        if query.side_field and query.sides:
            if str(row.get(query.side_field, "")).upper() not in query.sides:
                return False
        if query.status_field and query.status is not None:
            if row.get(query.status_field) != query.status:
                return False
        if query.created_after is not None:
            created = parse_timestamp(row.get("created_at"))
            if created is None or created < query.created_after:
                return False
        return True
