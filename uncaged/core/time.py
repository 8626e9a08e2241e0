"""
Helpers de fecha/hora en UTC compartidos por servicios y repositorios.

Mongo guarda fechas en UTC sin zona; pymongo asume UTC para datetimes naive.
"""
from __future__ import annotations

from datetime import datetime, timezone
from typing import Callable

Clock = Callable[[], datetime]


def now_utc() -> datetime:
    return datetime.now(timezone.utc)


def as_utc(dt: datetime) -> datetime:
    """Normaliza a timezone-aware en UTC (naive se interpreta como UTC)."""
    if dt.tzinfo is None:
        return dt.replace(tzinfo=timezone.utc)
    return dt.astimezone(timezone.utc)


def to_bson(dt: datetime) -> datetime:
    """Convierte a datetime naive en UTC, tal como lo devuelve Mongo."""
    return as_utc(dt).replace(tzinfo=None)
