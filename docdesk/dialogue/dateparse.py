"""Natural-language date and time parsing for the booking dialogue.

All dates are resolved against the current UTC date and returned as
``YYYY-MM-DD`` strings; times are returned as 24-hour ``HH:MM`` strings.
Both parsers return ``None`` when nothing matches.
"""

from __future__ import annotations

import re
from datetime import UTC, date, datetime, timedelta

WEEKDAYS = ("monday", "tuesday", "wednesday", "thursday", "friday", "saturday", "sunday")

_NUMBER_WORDS = {
    "one": 1, "two": 2, "three": 3, "four": 4, "five": 5, "six": 6, "seven": 7,
    "eight": 8, "nine": 9, "ten": 10, "eleven": 11, "twelve": 12, "fourteen": 14,
}

_DAY_AFTER_TOMORROW = {
    "day after tomorrow",
    "the day after tomorrow",
    "day after tmrw",
    "overmorrow",
}

# Tried in order; %m and %d also accept single digits, which covers the
# M/d/yyyy and d/M/yyyy spellings.
ABSOLUTE_DATE_FORMATS = (
    "%Y-%m-%d",
    "%m/%d/%Y",
    "%d/%m/%Y",
    "%m-%d-%Y",
    "%d-%m-%Y",
)

_IN_N_DAYS = re.compile(r"^in (\w+) days?$")
_N_DAYS_FROM_NOW = re.compile(r"^(\w+) days? from (?:now|today)$")

_HOUR_MERIDIEM = re.compile(r"^(1[0-2]|0?[1-9])\s?([ap])\.?m\.?$")
_HOUR_MINUTE_MERIDIEM = re.compile(r"^(1[0-2]|0?[1-9]):([0-5]\d)\s?([ap])\.?m\.?$")
_TWENTY_FOUR_HOUR = re.compile(r"^([01]?\d|2[0-3]):([0-5]\d)$")


def today_utc(now: datetime | None = None) -> date:
    return (now or datetime.now(UTC)).astimezone(UTC).date()


def _count(word: str) -> int | None:
    if word.isdigit():
        return int(word)
    return _NUMBER_WORDS.get(word)


def _weekday_offset(target: int, today: date, mode: str) -> int:
    """Days from *today* to the requested weekday.

    ``bare`` and ``this``: the next occurrence, today included.
    ``next``: that weekday in the following calendar week (Monday-start),
    so "next Monday" on a Monday is seven days out.
    """
    if mode == "next":
        return (7 - today.weekday()) + target
    return (target - today.weekday()) % 7


def parse_date(text: str, now: datetime | None = None) -> str | None:
    """Resolve *text* to a ``YYYY-MM-DD`` UTC calendar date, or ``None``."""
    if not text:
        return None
    value = " ".join(text.strip().lower().split())
    today = today_utc(now)

    resolved: date | None = None
    if value == "today":
        resolved = today
    elif value in ("tomorrow", "tmrw", "tmr"):
        resolved = today + timedelta(days=1)
    elif value in _DAY_AFTER_TOMORROW:
        resolved = today + timedelta(days=2)
    elif value == "next week":
        resolved = today + timedelta(days=7)
    else:
        match = _IN_N_DAYS.match(value) or _N_DAYS_FROM_NOW.match(value)
        if match:
            days = _count(match.group(1))
            if days is not None:
                try:
                    resolved = today + timedelta(days=days)
                except OverflowError:
                    return None
        else:
            mode, _, name = value.rpartition(" ")
            mode = mode or "bare"
            if name in WEEKDAYS and mode in ("bare", "this", "next"):
                offset = _weekday_offset(WEEKDAYS.index(name), today, mode)
                resolved = today + timedelta(days=offset)

    if resolved is None:
        resolved = _parse_absolute(text.strip())
    return resolved.isoformat() if resolved else None


def _parse_absolute(value: str) -> date | None:
    for fmt in ABSOLUTE_DATE_FORMATS:
        try:
            return datetime.strptime(value, fmt).date()
        except ValueError:
            continue
    return None


def _to_24h(hour: int, minute: int, meridiem: str) -> str:
    if meridiem == "p" and hour != 12:
        hour += 12
    elif meridiem == "a" and hour == 12:
        hour = 0
    return f"{hour:02d}:{minute:02d}"


def parse_time(text: str) -> str | None:
    """Canonicalise "5 PM", "5:30 pm" or "17:30" to ``HH:MM``."""
    if not text:
        return None
    value = text.strip().lower()

    match = _HOUR_MERIDIEM.match(value)
    if match:
        return _to_24h(int(match.group(1)), 0, match.group(2))

    match = _HOUR_MINUTE_MERIDIEM.match(value)
    if match:
        return _to_24h(int(match.group(1)), int(match.group(2)), match.group(3))

    match = _TWENTY_FOUR_HOUR.match(value)
    if match:
        return f"{int(match.group(1)):02d}:{match.group(2)}"

    return None
