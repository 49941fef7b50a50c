from __future__ import annotations

"""Timestamp helpers for entity payloads and cache expiry."""

from datetime import datetime, timezone
from typing import Any, Optional


def utc_now() -> datetime:
    """Timezone-aware current time, truncated to milliseconds."""
    now = datetime.now(timezone.utc)
    return now.replace(microsecond=(now.microsecond // 1000) * 1000)


def parse_timestamp(value: Any) -> datetime:
    """Parse API timestamps (ISO-8601, epoch millis, datetimes) into aware UTC."""
    if isinstance(value, datetime):
        parsed = value
    elif isinstance(value, (int, float)) and not isinstance(value, bool):
        parsed = datetime.fromtimestamp(value / 1000.0, tz=timezone.utc)
    else:
        text = str(value or "").strip()
        if not text:
            raise ValueError("Timestamp must not be empty")
        normalized = text.replace(" ", "T")
        if normalized.endswith("Z"):
            normalized = normalized[:-1] + "+00:00"
        try:
            parsed = datetime.fromisoformat(normalized)
        except ValueError:
            parsed = _parse_with_fallback(text)

    if parsed.tzinfo is None or parsed.tzinfo.utcoffset(parsed) is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed.astimezone(timezone.utc)


def parse_optional_timestamp(value: Any) -> Optional[datetime]:
    if value is None or (isinstance(value, str) and not value.strip()):
        return None
    return parse_timestamp(value)


def format_timestamp(value: Optional[datetime]) -> Optional[str]:
    if value is None:
        return None
    return parse_timestamp(value).isoformat().replace("+00:00", "Z")


def _parse_with_fallback(text: str) -> datetime:
    fallback_formats = (
        "%Y-%m-%d",
        "%Y-%m-%d %H:%M:%S",
        "%Y-%m-%d_%H-%M-%S",
    )
    for fmt in fallback_formats:
        try:
            return datetime.strptime(text, fmt)
        except ValueError:
            continue
    raise ValueError(f"Unrecognized timestamp: {text!r}")


__all__ = [
    "format_timestamp",
    "parse_optional_timestamp",
    "parse_timestamp",
    "utc_now",
]
