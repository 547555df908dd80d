from dataclasses import dataclass
from typing import Any, Dict, FrozenSet, Optional

COURTS = (1, 2)
ALLOWED_DURATIONS = (60, 120)
CANCEL_LOOKAHEAD_DAYS = 120


@dataclass(frozen=True)
class RawEvent:
    """A calendar event as listed by the calendar API, flattened once."""

    id: str
    summary: str = ""
    description: str = ""
    location: str = ""
    start: str = ""  # "YYYY-MM-DD" for all-day events, RFC3339 otherwise
    end: str = ""

    @property
    def is_all_day(self) -> bool:
        return len(self.start) <= 10

    @property
    def text(self) -> str:
        return f"{self.summary} {self.description} {self.location}".lower()

    @classmethod
    def from_api(cls, item: Dict[str, Any]) -> "RawEvent":
        start = item.get("start") or {}
        end = item.get("end") or {}
        return cls(
            id=item.get("id", ""),
            summary=item.get("summary") or "",
            description=item.get("description") or "",
            location=item.get("location") or "",
            # dateTime is preferred; all-day events only carry date
            start=start.get("dateTime") or start.get("date") or "",
            end=end.get("dateTime") or end.get("date") or "",
        )


@dataclass(frozen=True)
class Verdict:
    kind: str  # "known" | "unknown_single"
    courts: FrozenSet[int] = frozenset()
    block_both: bool = False

    KNOWN = "known"
    UNKNOWN_SINGLE = "unknown_single"

    @classmethod
    def known(cls, *courts: int, block_both: bool = False) -> "Verdict":
        return cls(kind=cls.KNOWN, courts=frozenset(courts), block_both=block_both)

    @classmethod
    def unknown_single(cls) -> "Verdict":
        return cls(kind=cls.UNKNOWN_SINGLE)

    @property
    def is_known(self) -> bool:
        return self.kind == self.KNOWN


@dataclass(frozen=True)
class Slot:
    start: str
    end: str
    available_courts: int = len(COURTS)


@dataclass(frozen=True)
class BookingRequest:
    date: str
    start: str
    duration: int
    name: str
    phone: str
    email: Optional[str] = None


@dataclass(frozen=True)
class CourtAssignment:
    court: int
    start: str
    end: str
    event_id: str
    cancel_code: str
    shared_with_unknown: bool = False

    @property
    def court_label(self) -> str:
        return f"Quadra {self.court}"


@dataclass(frozen=True)
class CancelRequest:
    phone: str
    event_id: Optional[str] = None
    cancel_code: Optional[str] = None


@dataclass(frozen=True)
class Cancellation:
    event_id: str
    start: str
