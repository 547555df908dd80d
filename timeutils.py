"""Calendar-day arithmetic: weekend rule, slot templates, minute-of-day offsets."""

import re
from datetime import date, datetime, time, timezone
from typing import List, Optional, Tuple
from zoneinfo import ZoneInfo

from models import Slot

DATE_RE = re.compile(r"^\d{4}-\d{2}-\d{2}$")
HHMM_RE = re.compile(r"^\d{2}:\d{2}$")

_OFFSET_RE = re.compile(r"T(\d{2}):(\d{2}).*([+-]\d{2}:?\d{2})$")
_LOOSE_HHMM_RE = re.compile(r"(\d{2}):(\d{2})")

MINUTES_PER_DAY = 24 * 60


def parse_day(value: str) -> date:
    return date.fromisoformat(value)


def is_valid_day(value: str) -> bool:
    if not DATE_RE.match(value or ""):
        return False
    try:
        parse_day(value)
    except ValueError:
        return False
    return True


def is_weekend(day: str) -> bool:
    """Saturday or Sunday. The date is pinned to noon UTC so no offset can shift it."""
    y, m, d = (int(part) for part in day.split("-"))
    noon = datetime(y, m, d, 12, 0, tzinfo=timezone.utc)
    return noon.weekday() >= 5


def hhmm(minutes: int) -> str:
    return f"{minutes // 60:02d}:{minutes % 60:02d}"


def hhmm_to_minutes(value: str) -> int:
    hours, minutes = value.split(":")
    return int(hours) * 60 + int(minutes)


def generate_slots(duration: int, window: Optional[Tuple[int, int]]) -> List[Slot]:
    """Hourly-aligned slots of `duration` minutes that fit inside the window."""
    if window is None:
        return []
    open_hour, close_hour = window
    last_start = close_hour * 60 - duration
    return [
        Slot(start=hhmm(t), end=hhmm(t + duration))
        for t in range(open_hour * 60, last_start + 1, 60)
    ]


def overlaps(a_start: int, a_end: int, b_start: int, b_end: int) -> bool:
    """Half-open interval overlap. Empty intervals overlap nothing."""
    if a_start >= a_end or b_start >= b_end:
        return False
    return a_start < b_end and b_start < a_end


def _to_local(value: str, tz: ZoneInfo) -> Optional[datetime]:
    try:
        parsed = datetime.fromisoformat(value.replace("Z", "+00:00"))
    except ValueError:
        return None
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed.astimezone(tz)


def to_minutes(value: str, tz: ZoneInfo) -> int:
    """
    Minutes since local midnight for a calendar timestamp.

    A timestamp with a numeric offset already carries the venue's wall-clock
    time, so HH:MM is read straight from the text. UTC ("Z") and offset-less
    values are converted to `tz` first. Anything unparsable falls back to the
    first HH:MM found, or 0.
    """
    text = str(value or "")
    match = _OFFSET_RE.search(text)
    if match:
        return int(match.group(1)) * 60 + int(match.group(2))

    local = _to_local(text, tz)
    if local is not None:
        return local.hour * 60 + local.minute

    loose = _LOOSE_HHMM_RE.search(text)
    if not loose:
        return 0
    return int(loose.group(1)) * 60 + int(loose.group(2))


def _local_date(value: str, tz: ZoneInfo) -> Optional[date]:
    if _OFFSET_RE.search(value):
        # Offset timestamps already hold the local calendar date
        try:
            return date.fromisoformat(value[:10])
        except ValueError:
            return None
    local = _to_local(value, tz)
    return local.date() if local else None


def event_span(start: str, end: str, day: str, tz: ZoneInfo) -> Tuple[int, int]:
    """Minute interval of a timed event clipped to the given local day."""
    start_min = to_minutes(start, tz)
    end_min = to_minutes(end, tz)

    target = parse_day(day)
    start_date = _local_date(start, tz)
    end_date = _local_date(end, tz)
    if start_date is not None and start_date < target:
        start_min = 0
    if end_date is not None and end_date > target:
        end_min = MINUTES_PER_DAY
    return start_min, end_min


def day_bounds(day: str, tz: ZoneInfo) -> Tuple[datetime, datetime]:
    """Local midnight to 23:59:59 of `day`, offset-aware."""
    target = parse_day(day)
    return (
        datetime.combine(target, time(0, 0, 0), tzinfo=tz),
        datetime.combine(target, time(23, 59, 59), tzinfo=tz),
    )


def local_iso(day: str, value: str) -> str:
    """Join a YYYY-MM-DD day and an HH:MM time into an offset-less local timestamp."""
    return f"{day}T{value}:00"
