"""Duration parsing for cache expiry settings.

Expiry values arrive from configuration as strings ("1h", "90s", "1h30m",
"2 days") or from code as numbers of seconds or ``timedelta`` objects. Everything
is normalized to float seconds.
"""

import math
import re
from datetime import timedelta

from cachelayer.domain.exceptions import ConfigurationError

_UNIT_SECONDS: dict[str, float] = {
    "ms": 0.001,
    "millisecond": 0.001,
    "milliseconds": 0.001,
    "s": 1.0,
    "sec": 1.0,
    "secs": 1.0,
    "second": 1.0,
    "seconds": 1.0,
    "m": 60.0,
    "min": 60.0,
    "mins": 60.0,
    "minute": 60.0,
    "minutes": 60.0,
    "h": 3600.0,
    "hr": 3600.0,
    "hrs": 3600.0,
    "hour": 3600.0,
    "hours": 3600.0,
    "d": 86400.0,
    "day": 86400.0,
    "days": 86400.0,
    "w": 604800.0,
    "week": 604800.0,
    "weeks": 604800.0,
}

_PART_RE = re.compile(r"(\d+(?:\.\d+)?)\s*([a-z]+)")


def parse_duration(value: str | int | float | timedelta) -> float:
    """
    Convert a duration to seconds.

    Args:
        value: Seconds as a number, a ``timedelta``, a bare numeric string
            (seconds) or a unit string such as "1h30m" or "2 days"

    Returns:
        Duration in seconds

    Raises:
        ConfigurationError: If the value is negative, not finite or unparseable
    """
    if isinstance(value, bool):
        raise ConfigurationError(f"Invalid duration: {value!r}")

    if isinstance(value, timedelta):
        seconds = value.total_seconds()
    elif isinstance(value, (int, float)):
        seconds = float(value)
    elif isinstance(value, str):
        seconds = _parse_duration_string(value)
    else:
        raise ConfigurationError(f"Invalid duration type: {type(value).__name__}")

    if not math.isfinite(seconds) or seconds < 0:
        raise ConfigurationError(f"Duration must be a finite, non-negative number: {value!r}")
    return seconds


def _parse_duration_string(text: str) -> float:
    normalized = text.strip().lower()
    if not normalized:
        raise ConfigurationError("Empty duration string")

    try:
        return float(normalized)
    except ValueError:
        pass

    total = 0.0
    position = 0
    for match in _PART_RE.finditer(normalized):
        # Only whitespace may separate the parts
        if normalized[position : match.start()].strip():
            break
        amount, unit = match.groups()
        if unit not in _UNIT_SECONDS:
            raise ConfigurationError(f"Unknown duration unit '{unit}' in {text!r}")
        total += float(amount) * _UNIT_SECONDS[unit]
        position = match.end()

    if position == 0 or normalized[position:].strip():
        raise ConfigurationError(f"Unparseable duration: {text!r}")
    return total
