from __future__ import annotations

import logging
import re
from datetime import datetime, timedelta, timezone

from dateutil import parser as date_parser

logger = logging.getLogger(__name__)

_DOTTED_LONG = re.compile(r"(\d{1,2})\.(\d{1,2})\.(\d{4})")
_DOTTED_SHORT = re.compile(r"(\d{1,2})\.(\d{1,2})\.(\d{2})")
_RELATIVE = re.compile(r"(\d+)\s+(day|days|hour|hours|minute|minutes|second|seconds)\s+ago")
_SLASHED = re.compile(r"(\d{1,2})/(\d{1,2})/(\d{4})")

_UNIT_SECONDS = {
    "second": 1,
    "minute": 60,
    "hour": 60 * 60,
    "day": 24 * 60 * 60,
}


def parse_flexible_date(value: str | None, *, now: datetime | None = None) -> datetime:
    """Never raises; unrecognized input yields the current UTC time."""
    current = now or datetime.now(timezone.utc)
    if not value or not value.strip():
        return current
    text = value.strip()
    try:
        if "." in text:
            dotted = _parse_dotted(text)
            if dotted is not None:
                return dotted
        if "ago" in text:
            return _parse_relative(text, current)
        if "/" in text:
            slashed = _parse_slashed(text)
            if slashed is not None:
                return slashed
        parsed = date_parser.parse(text)
    except (ValueError, OverflowError) as exc:
        logger.debug("date_parse_failed", extra={"extra_fields": {"value": text, "error": repr(exc)}})
        return current
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


def _parse_dotted(text: str) -> datetime | None:
    match = _DOTTED_LONG.search(text)
    if match:
        day, month, year = (int(part) for part in match.groups())
        return datetime(year, month, day, tzinfo=timezone.utc)
    match = _DOTTED_SHORT.search(text)
    if match:
        day, month, short_year = (int(part) for part in match.groups())
        year = 2000 + short_year if short_year < 50 else 1900 + short_year
        return datetime(year, month, day, tzinfo=timezone.utc)
    return None


def _parse_relative(text: str, current: datetime) -> datetime:
    match = _RELATIVE.search(text)
    if not match:
        return current
    amount = int(match.group(1))
    unit = match.group(2).rstrip("s")
    return current - timedelta(seconds=amount * _UNIT_SECONDS[unit])


def _parse_slashed(text: str) -> datetime | None:
    match = _SLASHED.search(text)
    if not match:
        return None
    first, second, year = (int(part) for part in match.groups())
    if first > 12:
        day, month = first, second
    else:
        # second > 12 means month/day; when both fit a month this is a guess.
        month, day = first, second
    return datetime(year, month, day, tzinfo=timezone.utc)
