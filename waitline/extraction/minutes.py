import re

MINUTE_PATTERNS = tuple(
    re.compile(p, re.IGNORECASE)
    for p in (
        r"(\d+)\s*min",
        r"(\d+)\s*minute",
        r"wait[^\d]*(\d+)",
        r"(\d+)[^\d]*wait",
    )
)

HOURS_AND_MINUTES = re.compile(
    r"(?:(\d+)\s*(?:hours?|hrs?|h)\b)?\s*(?:(\d+)\s*(?:minutes?|mins?|m)\b)?",
    re.IGNORECASE,
)


def parse_duration_minutes(text: str) -> int | None:
    """'1 hour 30 min' -> 90, '45 minutes' -> 45; None when nothing matches."""
    for match in HOURS_AND_MINUTES.finditer(text or ""):
        hours, minutes = match.group(1), match.group(2)
        if hours is None and minutes is None:
            continue
        total = int(hours or 0) * 60 + int(minutes or 0)
        if total > 0:
            return total
    return None


def extract_minutes(text: str | None) -> int | None:
    """Pull a wait in minutes out of free text such as 'Wait: 20' or '15 min'."""
    if not text:
        return None
    duration = parse_duration_minutes(text)
    if duration is not None:
        return duration
    for pattern in MINUTE_PATTERNS:
        match = pattern.search(text)
        if match:
            return int(match.group(1))
    return None
