"""ISO-8601 helpers for API payloads and JSON storage."""

from __future__ import annotations

import re
from datetime import datetime, timezone
from typing import Any, Optional

# fromisoformat before 3.11 only takes 3 or 6 fraction digits
_FRACTION = re.compile(r"(T\d{2}:\d{2}:\d{2})\.(\d+)")


def parse_timestamp(value: Any) -> Optional[datetime]:
    """
    Parse an ISO-8601 string into a naive UTC datetime.

    Returns None for missing, non-string or unparsable values so a bad
    timestamp never rejects the record that carries it.
    """
    if isinstance(value, datetime):
        return _to_naive_utc(value)
    if not isinstance(value, str):
        return None
    text = value.strip()
    if not text:
        return None
    if text[-1] in "zZ":
        text = text[:-1] + "+00:00"
    text = _FRACTION.sub(lambda m: f"{m.group(1)}.{(m.group(2) + '000000')[:6]}", text, count=1)
    try:
        parsed = datetime.fromisoformat(text)
    except ValueError:
        return None
    return _to_naive_utc(parsed)


def format_timestamp(value: Optional[datetime]) -> str:
    if value is None:
        return ""
    return value.isoformat()


def _to_naive_utc(value: datetime) -> datetime:
    if value.tzinfo is None:
        return value
    return value.astimezone(timezone.utc).replace(tzinfo=None)
