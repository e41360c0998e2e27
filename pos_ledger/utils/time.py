"""Time helpers and report window presets.

Orders are stored with UTC timestamps, so every window boundary is computed in
UTC as well. Windows are half-open: ``start <= created_at < end``.
"""

from __future__ import annotations

from datetime import datetime, timedelta, timezone

REPORT_PRESETS: tuple[str, ...] = ("today", "yesterday", "last-7-days")


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def ensure_utc(value: datetime) -> datetime:
    """Treat naive datetimes as UTC and convert aware ones to UTC.

    SQLite hands back naive values even for timezone-aware columns.
    """
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def start_of_day(now: datetime) -> datetime:
    return ensure_utc(now).replace(hour=0, minute=0, second=0, microsecond=0)


def today_window(now: datetime | None = None) -> tuple[datetime, datetime]:
    """Return today's UTC window boundaries."""
    start = start_of_day(now or utcnow())
    return start, start + timedelta(days=1)


def preset_window(preset: str, now: datetime | None = None) -> tuple[datetime, datetime]:
    """Resolve a named report preset into ``(period_start, period_end)``."""
    start, end = today_window(now)
    if preset == "today":
        return start, end
    if preset == "yesterday":
        return start - timedelta(days=1), start
    if preset == "last-7-days":
        return start - timedelta(days=7), end
    raise ValueError(f"Unknown report preset: {preset}")


def preceding_window(period_start: datetime, period_end: datetime) -> tuple[datetime, datetime]:
    """Window of identical length ending where the given one starts."""
    return period_start - (period_end - period_start), period_start
