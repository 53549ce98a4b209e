from __future__ import annotations

from datetime import date, datetime, timezone


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


def utc_now_iso(seconds: bool = True) -> str:
    """
    Return current UTC time in ISO-8601 format.
    - If seconds is True, use seconds precision (stable strings).
    - Else, use milliseconds precision.
    """
    if seconds:
        return utc_now().isoformat(timespec="seconds")
    return utc_now().isoformat(timespec="milliseconds")


def parse_iso_date(value: str) -> date:
    """
    Parse YYYY-MM-DD (or a full ISO timestamp, keeping the date part).
    """
    raw = (value or "").strip()
    if not raw:
        raise ValueError("Empty date value")
    try:
        return date.fromisoformat(raw[:10])
    except ValueError as e:
        raise ValueError(f"Invalid date '{value}', expected YYYY-MM-DD") from e


def parse_compact_date(value: object) -> date:
    """
    Parse dates encoded as YYYYMMDD integers or strings (Azure cost rows use this form).
    """
    raw = str(value).strip()
    if len(raw) == 8 and raw.isdigit():
        return date(int(raw[0:4]), int(raw[4:6]), int(raw[6:8]))
    return parse_iso_date(raw)
