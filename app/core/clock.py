"""
Time helpers shared by the engine.

All timestamps are UTC-aware. SQLite hands DateTime(timezone=True) columns
back naive, so anything read from storage goes through as_utc() before it is
compared.
"""
from __future__ import annotations

from datetime import date, datetime, timedelta, timezone
from typing import Optional

from app.core.config import settings


def utcnow() -> datetime:
    return datetime.now(tz=timezone.utc)


def as_utc(dt: datetime) -> datetime:
    if dt.tzinfo is None:
        return dt.replace(tzinfo=timezone.utc)
    return dt.astimezone(timezone.utc)


def game_day(now: Optional[datetime] = None) -> date:
    """Calendar date of `now` under the configured day-boundary offset."""
    moment = as_utc(now) if now is not None else utcnow()
    offset = timedelta(minutes=settings.DAY_BOUNDARY_UTC_OFFSET_MINUTES)
    return (moment + offset).date()
