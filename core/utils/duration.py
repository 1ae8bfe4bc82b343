"""Duration string parsing (``90s``, ``30m``, ``1h30m``, ``1.5h``)."""

import re
from datetime import timedelta

_UNITS = {
    "ms": timedelta(milliseconds=1),
    "s": timedelta(seconds=1),
    "m": timedelta(minutes=1),
    "h": timedelta(hours=1),
}

_PART = re.compile(r"(\d+(?:\.\d+)?)(ms|h|m|s)")


def parse_duration(value: str) -> timedelta:
    """Parse a duration string made of number+unit parts.

    Raises:
        ValueError: If the string is empty or malformed
    """
    text = (value or "").strip()
    if not text:
        raise ValueError("Empty duration")
    if text == "0":
        return timedelta()

    total = timedelta()
    position = 0
    for match in _PART.finditer(text):
        if match.start() != position:
            break
        total += float(match.group(1)) * _UNITS[match.group(2)]
        position = match.end()

    if position != len(text):
        raise ValueError(f"Invalid duration '{value}'")
    return total


def duration_or_default(value: str, default: timedelta) -> timedelta:
    """Parse ``value`` when set, otherwise return ``default``."""
    if not value:
        return default
    return parse_duration(value)
