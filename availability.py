from dataclasses import dataclass, replace
from typing import Iterable, List, Optional, Sequence, Set, Tuple
from zoneinfo import ZoneInfo

from classifier import EventClassifier
from models import COURTS, RawEvent, Slot
from timeutils import event_span, generate_slots, hhmm_to_minutes, overlaps


@dataclass
class Occupancy:
    """What a set of events occupies inside one time window."""

    known: Set[int]
    unknown: int = 0
    all_day: bool = False
    block_both: bool = False

    @property
    def remaining(self) -> int:
        if self.all_day or self.block_both:
            return 0
        free_after_known = max(0, len(COURTS) - len(self.known))
        # Each unattributed event claims at most one of the courts still free
        return max(0, free_after_known - min(self.unknown, free_after_known))


def events_in_window(
    events: Iterable[RawEvent], day: str, start: int, end: int, tz: ZoneInfo
) -> List[RawEvent]:
    """Events overlapping [start, end). All-day events always overlap."""
    found = []
    for event in events:
        if event.is_all_day:
            found.append(event)
            continue
        ev_start, ev_end = event_span(event.start, event.end, day, tz)
        if overlaps(start, end, ev_start, ev_end):
            found.append(event)
    return found


def tally(events: Iterable[RawEvent], classifier: EventClassifier) -> Occupancy:
    occupancy = Occupancy(known=set())
    for event in events:
        if event.is_all_day:
            return Occupancy(known=set(COURTS), all_day=True)
        verdict = classifier.classify(event)
        if verdict.block_both:
            return Occupancy(known=set(COURTS), block_both=True)
        if verdict.is_known:
            occupancy.known.update(verdict.courts)
        else:
            occupancy.unknown += 1
    return occupancy


def compute_availability(
    events: Sequence[RawEvent],
    day: str,
    duration: int,
    classifier: EventClassifier,
    window: Optional[Tuple[int, int]],
    tz: ZoneInfo,
) -> List[Slot]:
    """Slot template for the day, each slot annotated with its free-court count."""
    slots = []
    for slot in generate_slots(duration, window):
        start, end = hhmm_to_minutes(slot.start), hhmm_to_minutes(slot.end)
        occupancy = tally(events_in_window(events, day, start, end, tz), classifier)
        slots.append(replace(slot, available_courts=occupancy.remaining))
    return slots
