"""
Total conversions for values coming back from the graph store.

Every helper returns a default instead of raising when the value has an
unexpected type, so a malformed property never aborts a whole query.
"""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Any, List, Optional


def to_str(value: Any, default: str = "") -> str:
    if value is None:
        return default
    if isinstance(value, str):
        return value
    if isinstance(value, bytes):
        return value.decode("utf-8", errors="replace")
    if isinstance(value, (int, float)) and not isinstance(value, bool):
        return str(value)
    return default


def to_float(value: Any, default: float = 0.0) -> float:
    if isinstance(value, bool):
        return default
    if isinstance(value, (int, float)):
        return float(value)
    return default


def to_int(value: Any, default: int = 0) -> int:
    if isinstance(value, bool):
        return default
    if isinstance(value, int):
        return value
    if isinstance(value, float) and value.is_integer():
        return int(value)
    return default


def to_datetime(value: Any) -> Optional[datetime]:
    """Neo4j temporal, ``datetime`` or RFC 3339 string → aware UTC datetime."""
    if value is None:
        return None
    if hasattr(value, "to_native"):  # neo4j.time.DateTime
        try:
            value = value.to_native()
        except (ValueError, TypeError):
            return None
    if isinstance(value, datetime):
        return as_utc(value)
    if isinstance(value, str) and value:
        try:
            return as_utc(datetime.fromisoformat(value.replace("Z", "+00:00")))
        except ValueError:
            return None
    return None


def to_str_list(value: Any) -> List[str]:
    if not isinstance(value, (list, tuple)):
        return []
    return [s for s in (to_str(v) for v in value) if s]


def as_utc(value: datetime) -> datetime:
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def format_time(value: Optional[datetime]) -> str:
    """UTC RFC 3339 with microseconds, empty string for missing values."""
    if value is None:
        return ""
    return as_utc(value).isoformat().replace("+00:00", "Z")
