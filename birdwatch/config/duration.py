"""Parsing of scan interval strings."""

import re

# Bounds for the scan interval
MIN_INTERVAL_SECONDS = 60
MAX_INTERVAL_SECONDS = 86400

_ISO_PATTERN = re.compile(r"^P(?:(\d+)D)?(?:T(?:(\d+)H)?(?:(\d+)M)?(?:(\d+(?:\.\d+)?)S)?)?$")
_HUMAN_PATTERN = re.compile(r"(\d+)([smhd])")
_UNIT_SECONDS = {"s": 1, "m": 60, "h": 3600, "d": 86400}


class DurationParseError(ValueError):
    """Raised when a duration string cannot be parsed."""


def parse_duration(duration_str: str) -> int:
    """
    Convert a duration string to whole seconds.

    Accepts human-readable units (``30m``, ``1h30m``, ``2d``) and ISO-8601
    durations (``PT30M``, ``P1D``).

    Raises:
        DurationParseError: If the string is empty, malformed or zero

    Examples:
        >>> parse_duration("30m")
        1800
        >>> parse_duration("PT1H")
        3600
    """
    text = duration_str.strip() if isinstance(duration_str, str) else ""
    if not text:
        raise DurationParseError("Duration string cannot be empty")

    if text.upper().startswith("P"):
        seconds = _parse_iso8601(text.upper())
    else:
        seconds = _parse_human(text.lower())

    if seconds == 0:
        raise DurationParseError(f"Duration cannot be zero: '{duration_str}'")

    return seconds


def _parse_iso8601(text: str) -> int:
    match = _ISO_PATTERN.match(text)
    if not match or text in ("P", "PT"):
        raise DurationParseError(
            f"Invalid ISO-8601 duration format: '{text}'. "
            "Expected format like 'P1D', 'PT1H30M' or 'PT30M'"
        )

    days, hours, minutes, seconds = match.groups()
    return (
        int(days or 0) * 86400
        + int(hours or 0) * 3600
        + int(minutes or 0) * 60
        + int(float(seconds or 0))
    )


def _parse_human(text: str) -> int:
    compact = re.sub(r"\s+", "", text)
    matches = _HUMAN_PATTERN.findall(compact)

    if not matches or "".join(num + unit for num, unit in matches) != compact:
        raise DurationParseError(
            f"Invalid duration format: '{text}'. "
            "Use digits followed by s, m, h or d, e.g. '30m' or '1h30m'"
        )

    return sum(int(num) * _UNIT_SECONDS[unit] for num, unit in matches)


def validate_duration_range(
    duration_seconds: int,
    min_seconds: int = MIN_INTERVAL_SECONDS,
    max_seconds: int = MAX_INTERVAL_SECONDS,
) -> None:
    """Raise DurationParseError if the duration falls outside the bounds."""
    if duration_seconds < min_seconds:
        raise DurationParseError(
            f"Scan interval too short: {duration_seconds}s. Minimum is {min_seconds}s."
        )
    if duration_seconds > max_seconds:
        raise DurationParseError(
            f"Scan interval too long: {duration_seconds}s. Maximum is {max_seconds}s."
        )
