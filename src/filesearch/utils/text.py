"""Text helpers for raw query input and for display."""

from __future__ import annotations

from datetime import datetime, timedelta

DATE_FORMAT = "%Y-%m-%d"
DISPLAY_FORMAT = "%Y-%m-%d %H:%M:%S"

# SQLite INTEGER range
INT64_MIN = -(1 << 63)
INT64_MAX = (1 << 63) - 1


def normalize_text(value: str | None) -> str | None:
    """Trim whitespace; empty input means "no value"."""
    if value is None:
        return None
    value = value.strip()
    return value or None


def normalize_extension(value: str | None) -> str | None:
    """Strip a single leading dot and lowercase, so ".TXT" becomes "txt"."""
    value = normalize_text(value)
    if value is None:
        return None
    if value.startswith("."):
        value = value[1:]
    return value.lower() or None


def parse_int(value: str | int | None) -> int | None:
    """Parse an integer filter, returning None for anything unparsable.

    Values outside the signed 64-bit range cannot be stored or compared by
    SQLite and are treated as unparsable too.
    """
    if value is None or isinstance(value, bool):
        return None
    if not isinstance(value, int):
        try:
            value = int(value.strip())
        except (AttributeError, ValueError):
            return None
    if not INT64_MIN <= value <= INT64_MAX:
        return None
    return value


def parse_date(value: str | None, *, end_of_day: bool = False) -> int | None:
    """Parse a YYYY-MM-DD date in local time into epoch milliseconds.

    With ``end_of_day`` the last millisecond of that day is returned so the
    date can be used as an inclusive upper bound.
    """
    value = normalize_text(value)
    if value is None:
        return None
    try:
        moment = datetime.strptime(value, DATE_FORMAT)
    except ValueError:
        return None
    if end_of_day:
        return int((moment + timedelta(days=1)).timestamp() * 1000) - 1
    return int(moment.timestamp() * 1000)


def human_size(size: int) -> str:
    """Format a byte count, e.g. 1536 -> "1.5 KB"."""
    if size < 1024:
        return f"{size} B"
    value = float(size)
    for unit in "KMGTPE":
        value /= 1024
        if value < 1024 or unit == "E":
            return f"{value:.1f} {unit}B"
    return f"{size} B"  # pragma: no cover


def format_timestamp(millis: int) -> str:
    """Format epoch milliseconds in local time."""
    return datetime.fromtimestamp(millis / 1000).strftime(DISPLAY_FORMAT)
