"""
Timestamp Parser

Converts the heterogeneous timestamp strings found in RFID reader exports
into epoch milliseconds while keeping the original text for display.

Supported shapes:
- ISO-like date-times: 2025-11-23 07:00:00.123, 2025-11-23T07:00:00Z,
  2025/11/23 07:00, with an optional Z or +hh:mm offset
- Day-first date-times: 23/11/2025 07:00:00, 23-11-2025 07:00:00.5
- Bare time of day: 07:00, 07:00:00, 07:00:00.250 (needs a reference date)
- Anything else pandas can read when it carries a four-digit year

Timestamps without an offset are read as UTC. An explicit offset is kept
on the TimeEntry so that a time of day can later be placed on the same
local calendar date. A bare time of day has no date of its own, so it only
becomes an instant when the caller supplies one.

Slash dates with the four-digit year last are read day-first; when that
gives an impossible date (11/23/2025) the month-first reading is used.
"""

import re
from dataclasses import dataclass
from datetime import date, datetime, timedelta, timezone
from typing import NamedTuple, Optional

import pandas as pd

EPOCH = datetime(1970, 1, 1, tzinfo=timezone.utc)
ONE_MS = timedelta(milliseconds=1)

_TIME_PART = r"(\d{1,2}):(\d{2})(?::(\d{2})(?:[.,](\d+))?)?"
_OFFSET_PART = r"(Z|[+-]\d{2}:?\d{2})?"

ISO_RE = re.compile(
    r"^(\d{4})[-/](\d{1,2})[-/](\d{1,2})(?:[ T]+" + _TIME_PART + r")?\s*" + _OFFSET_PART + r"$",
    re.IGNORECASE,
)
DAY_FIRST_RE = re.compile(
    r"^(\d{1,2})[-/.](\d{1,2})[-/.](\d{4})(?:[ T]+" + _TIME_PART + r")?\s*" + _OFFSET_PART + r"$",
    re.IGNORECASE,
)
BARE_TIME_RE = re.compile(r"^" + _TIME_PART + r"$")
TIME_OF_DAY_RE = re.compile(r"(\d{1,2}):(\d{2})(?::(\d{2}))?(?:\.(\d{1,3}))?")
ABSOLUTE_DATE_RE = re.compile(r"\d{4}-\d{2}-\d{2}")
YEAR_HINT_RE = re.compile(r"\d{4}")


@dataclass(frozen=True)
class TimeEntry:
    """A parsed scan time: epoch ms (None when unusable), the original text and its UTC offset."""
    ms: Optional[int]
    raw: str
    utc_offset_ms: int = 0

    @property
    def usable(self) -> bool:
        return self.ms is not None


class TimeOfDay(NamedTuple):
    hour: int
    minute: int
    second: int = 0
    millisecond: int = 0


def _fraction_to_ms(fraction: str | None) -> int:
    if not fraction:
        return 0
    return int(fraction[:3].ljust(3, "0"))


def _parse_offset(offset: str | None) -> timezone:
    if not offset or offset.upper() == "Z":
        return timezone.utc
    sign = -1 if offset[0] == "-" else 1
    digits = offset[1:].replace(":", "")
    delta = timedelta(hours=int(digits[:2]), minutes=int(digits[2:4]))
    return timezone(sign * delta)


def to_epoch_ms(dt: datetime) -> int:
    """Exact integer milliseconds since the epoch; naive datetimes are UTC."""
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=timezone.utc)
    return (dt - EPOCH) // ONE_MS


def from_epoch_ms(ms: int) -> datetime:
    return EPOCH + timedelta(milliseconds=ms)


def _build(year, month, day, hour, minute, second, fraction, offset) -> datetime | None:
    try:
        return datetime(
            int(year), int(month), int(day),
            int(hour or 0), int(minute or 0), int(second or 0),
            _fraction_to_ms(fraction) * 1000,
            tzinfo=_parse_offset(offset),
        )
    except ValueError:
        return None


def _entry(dt: datetime | None, text: str) -> "TimeEntry":
    if dt is None:
        return TimeEntry(None, text)
    return TimeEntry(to_epoch_ms(dt), text, dt.utcoffset() // ONE_MS)


def _parse_with_pandas(text: str) -> int | None:
    if not YEAR_HINT_RE.search(text):
        return None
    try:
        ts = pd.to_datetime(text, utc=True)
    except (ValueError, TypeError, OverflowError):
        return None
    if pd.isna(ts):
        return None
    return to_epoch_ms(ts.to_pydatetime())


def parse_time_of_day(raw: str | None) -> TimeOfDay | None:
    """
    Extract hours:minutes[:seconds[.fraction]] from a string.

    The fraction keeps at most millisecond precision ("5" is 500 ms).
    Returns None when no time is present or its fields are out of range.
    """
    m = TIME_OF_DAY_RE.search(str(raw or ""))
    if not m:
        return None
    hour, minute = int(m.group(1)), int(m.group(2))
    second = int(m.group(3) or 0)
    if hour > 23 or minute > 59 or second > 59:
        return None
    return TimeOfDay(hour, minute, second, _fraction_to_ms(m.group(4)))


def combine_with_date(reference_ms: int, tod: TimeOfDay | None, utc_offset_ms: int = 0) -> int | None:
    """
    Build an instant from the calendar date of reference_ms and a time of day.

    Both the date and the clock time are read at utc_offset_ms (the offset
    the reference was recorded in; UTC by default).

    Returns None when tod is missing.
    """
    if tod is None:
        return None
    tz = timezone(timedelta(milliseconds=utc_offset_ms))
    ref = from_epoch_ms(reference_ms).astimezone(tz)
    dt = datetime(
        ref.year, ref.month, ref.day,
        tod.hour, tod.minute, tod.second, tod.millisecond * 1000,
        tzinfo=tz,
    )
    return to_epoch_ms(dt)


def is_absolute(raw: str | None) -> bool:
    """True when the text carries a YYYY-MM-DD calendar date."""
    return bool(ABSOLUTE_DATE_RE.search(str(raw or "")))


def parse_timestamp(raw, reference_date: date | None = None) -> TimeEntry:
    """
    Parse a raw timestamp string.

    Args:
        raw: Text as it appears in the CSV cell
        reference_date: Calendar date used to anchor a bare time of day

    Returns:
        TimeEntry with ms set to epoch milliseconds, or None when the text
        cannot be turned into an instant. raw is the stripped input.
    """
    text = str(raw if raw is not None else "").strip()
    if not text:
        return TimeEntry(None, text)

    m = BARE_TIME_RE.match(text)
    if m:
        if reference_date is None:
            return TimeEntry(None, text)
        tod = parse_time_of_day(text)
        if tod is None:
            return TimeEntry(None, text)
        anchor = to_epoch_ms(datetime(reference_date.year, reference_date.month, reference_date.day))
        return TimeEntry(combine_with_date(anchor, tod), text)

    m = ISO_RE.match(text)
    if m:
        year, month, day, hour, minute, second, fraction, offset = m.groups()
        return _entry(_build(year, month, day, hour, minute, second, fraction, offset), text)

    m = DAY_FIRST_RE.match(text)
    if m:
        day, month, year, hour, minute, second, fraction, offset = m.groups()
        dt = _build(year, month, day, hour, minute, second, fraction, offset)
        if dt is None:
            # month-first export (11/23/2025)
            dt = _build(year, day, month, hour, minute, second, fraction, offset)
        if dt is not None:
            return _entry(dt, text)

    return TimeEntry(_parse_with_pandas(text), text)


def extract_time_of_day(raw: str | None) -> str:
    """Clock part of a timestamp ('2025-11-23 09:30:00.120' -> '09:30:00.120'), else the input."""
    text = str(raw or "").strip()
    m = TIME_OF_DAY_RE.search(text)
    return m.group(0) if m else text
