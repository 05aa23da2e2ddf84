"""Local-zone display formatting for timestamps in prompts, plus local day and hour checks."""

from __future__ import annotations

from datetime import datetime
from datetime import timezone
from typing import Callable
from zoneinfo import ZoneInfo
from zoneinfo import ZoneInfoNotFoundError


DISPLAY_FORMAT = "%d/%m/%Y %H:%M"


def _require_aware_datetime(value: datetime, *, arg_name: str) -> datetime:
    if not isinstance(value, datetime):
        raise ValueError(f"{arg_name} must be a datetime")
    if value.tzinfo is None or value.utcoffset() is None:
        raise ValueError(f"{arg_name} must be timezone-aware")
    return value


def _require_timezone(timezone_name: str) -> ZoneInfo:
    clean = str(timezone_name or "").strip()
    if not clean:
        raise ValueError("Unknown timezone_name: ''")
    try:
        return ZoneInfo(clean)
    except ZoneInfoNotFoundError as exc:
        raise ValueError(f"Unknown timezone_name: {clean}") from exc


def resolve_timezone(timezone_name: str) -> ZoneInfo:
    """Like _require_timezone, but falls back to UTC with a config warning."""
    try:
        return _require_timezone(timezone_name)
    except ValueError as exc:
        print(f"[CFG] {exc}; using UTC")
        return ZoneInfo("UTC")


def format_display_timestamp(dt: datetime, tz: ZoneInfo) -> str:
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=timezone.utc)
    return dt.astimezone(tz).strftime(DISPLAY_FORMAT)


def make_display_formatter(timezone_name: str) -> Callable[[datetime], str]:
    tz = resolve_timezone(timezone_name)

    def _format(dt: datetime) -> str:
        return format_display_timestamp(dt, tz)

    return _format


def local_now(tz: ZoneInfo, now: datetime | None = None) -> datetime:
    if now is None:
        return datetime.now(tz)
    return _require_aware_datetime(now, arg_name="now").astimezone(tz)


def local_day_key(tz: ZoneInfo, now: datetime | None = None) -> str:
    return local_now(tz, now).strftime("%Y-%m-%d")


def within_local_hours(tz: ZoneInfo, start_hour: int, end_hour: int, now: datetime | None = None) -> bool:
    hour = local_now(tz, now).hour
    return int(start_hour) <= hour < int(end_hour)
