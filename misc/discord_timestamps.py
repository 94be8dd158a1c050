"""Time helpers shared by the quota lockout and user-facing replies. All Discord <t:...> tags are built here."""

from __future__ import annotations

from datetime import datetime
from datetime import timedelta
from datetime import timezone


DISCORD_TIMESTAMP_STYLES = {"t", "T", "d", "D", "f", "F", "R"}


def _validate_style(style: str) -> str:
    clean = str(style or "").strip() or "f"
    if clean not in DISCORD_TIMESTAMP_STYLES:
        raise ValueError(f"Invalid Discord timestamp style: {clean}")
    return clean


def _require_aware_datetime(value: datetime, *, arg_name: str) -> datetime:
    if not isinstance(value, datetime):
        raise ValueError(f"{arg_name} must be a datetime")
    if value.tzinfo is None or value.utcoffset() is None:
        raise ValueError(f"{arg_name} must be timezone-aware")
    return value


def format_discord_timestamp(dt: datetime, style: str = "f") -> str:
    aware = _require_aware_datetime(dt, arg_name="dt")
    style_clean = _validate_style(style)
    return f"<t:{int(aware.timestamp())}:{style_clean}>"


def epoch_timestamp_tag(epoch_seconds: float, style: str = "R") -> str:
    return format_discord_timestamp(datetime.fromtimestamp(float(epoch_seconds), tz=timezone.utc), style=style)


def next_utc_midnight(now: datetime) -> datetime:
    """First 00:00 UTC strictly after `now`."""
    aware = _require_aware_datetime(now, arg_name="now").astimezone(timezone.utc)
    today = datetime(aware.year, aware.month, aware.day, tzinfo=timezone.utc)
    return today + timedelta(days=1)


def next_utc_midnight_epoch(now_epoch: float) -> float:
    return next_utc_midnight(datetime.fromtimestamp(float(now_epoch), tz=timezone.utc)).timestamp()


def format_time_ago(seconds: float) -> str:
    total = int(seconds)
    if total < 0:
        return "in the future (clock mismatch?)"
    if total < 60:
        return "just now"

    parts: list[str] = []
    for unit, size in (("d", 86400), ("h", 3600), ("m", 60)):
        value, total = divmod(total, size)
        if value:
            parts.append(f"{value}{unit}")
    return " ".join(parts[:2]) + " ago"
