"""Duration parsing for the check interval setting.

Accepts short human-readable forms ("30m", "12h", "1d", "1w", "1d12h")
and ISO-8601 durations ("PT30M", "P1D", "P1W", "P1DT12H").
"""

import re

_UNIT_SECONDS = {
    "s": 1,
    "m": 60,
    "h": 3600,
    "d": 86400,
    "w": 604800,
}

_HUMAN_TOKEN = re.compile(r"(\d+)([smhdw])")
_ISO_PATTERN = re.compile(
    r"^P(?:(?P<w>\d+)W)?(?:(?P<d>\d+)D)?"
    r"(?:T(?:(?P<h>\d+)H)?(?:(?P<m>\d+)M)?(?:(?P<s>\d+(?:\.\d+)?)S)?)?$"
)


class DurationParseError(ValueError):
    """Raised when a duration string cannot be parsed."""


def parse_duration(duration_str: str) -> int:
    """
    Parse a duration string to whole seconds.

    Raises:
        DurationParseError: If the string is empty, malformed, or zero

    Examples:
        >>> parse_duration("24h")
        86400
        >>> parse_duration("P1D")
        86400
        >>> parse_duration("1d12h")
        129600
    """
    text = (duration_str or "").strip()
    if not text:
        raise DurationParseError("Duration string cannot be empty")

    if text.upper().startswith("P"):
        total = _parse_iso8601(text.upper())
    else:
        total = _parse_human(text.lower())

    if total == 0:
        raise DurationParseError(f"Duration cannot be zero: '{duration_str}'")
    return total


def _parse_iso8601(text: str) -> int:
    match = _ISO_PATTERN.match(text)
    # "P" and "PT" alone match the pattern with every group empty
    if not match or text in ("P", "PT") or text.endswith("T"):
        raise DurationParseError(
            f"Invalid ISO-8601 duration format: '{text}'. "
            "Expected format like 'P1D', 'P1W', 'PT12H', or 'PT30M'"
        )

    parts = match.groupdict()
    total = 0
    for unit in ("w", "d", "h", "m"):
        if parts[unit]:
            total += int(parts[unit]) * _UNIT_SECONDS[unit]
    if parts["s"]:
        total += int(float(parts["s"]))
    return total


def _parse_human(text: str) -> int:
    compact = re.sub(r"\s+", "", text)
    tokens = _HUMAN_TOKEN.findall(compact)

    if not tokens:
        raise DurationParseError(
            f"Invalid duration format: '{text}'. "
            "Expected format like '30m', '12h', '1d', '1w', or combinations like '1d12h'"
        )

    if "".join(num + unit for num, unit in tokens) != compact:
        raise DurationParseError(
            f"Invalid characters in duration: '{text}'. "
            "Use only digits and units: s, m, h, d, w"
        )

    return sum(int(num) * _UNIT_SECONDS[unit] for num, unit in tokens)


def validate_duration_range(
    duration_seconds: int,
    min_seconds: int = 300,  # 5 minutes
    max_seconds: int = 604800,  # 7 days
) -> None:
    """
    Validate that a check interval is within the accepted range.

    Raises:
        DurationParseError: If duration is outside the valid range
    """
    if duration_seconds < min_seconds:
        raise DurationParseError(
            f"Check interval too short: {describe_seconds(duration_seconds)}. "
            f"Minimum is {describe_seconds(min_seconds)}."
        )

    if duration_seconds > max_seconds:
        raise DurationParseError(
            f"Check interval too long: {describe_seconds(duration_seconds)}. "
            f"Maximum is {describe_seconds(max_seconds)}."
        )


def describe_seconds(seconds: int) -> str:
    """Render seconds in the largest whole unit, e.g. "2 hours"."""
    for name, size in (("day", 86400), ("hour", 3600), ("minute", 60)):
        if seconds >= size:
            count = seconds // size
            return f"{count} {name}{'s' if count != 1 else ''}"
    return f"{seconds} second{'s' if seconds != 1 else ''}"
