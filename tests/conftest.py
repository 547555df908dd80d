"""Shared fixtures: an in-memory calendar and event builders."""

import itertools
from typing import List, Optional

import pytest

from errors import UpstreamError
from models import RawEvent

DAY = "2026-01-29"  # a Thursday
SATURDAY = "2026-01-31"


def timed(summary: str, start: str, end: str, day: str = DAY, description: str = "",
          location: str = "", event_id: Optional[str] = None) -> RawEvent:
    """Event with -03:00 offset timestamps, as the calendar lists them for the venue."""
    return RawEvent(
        id=event_id or f"ev-{summary}-{start}",
        summary=summary,
        description=description,
        location=location,
        start=f"{day}T{start}:00-03:00",
        end=f"{day}T{end}:00-03:00",
    )


def all_day(summary: str, day: str = DAY) -> RawEvent:
    return RawEvent(id=f"allday-{summary}", summary=summary, start=day, end=day)


class FakeCalendar:
    """In-memory stand-in for the Google calendar."""

    def __init__(self, events: Optional[List[RawEvent]] = None):
        self.events = list(events or [])
        self.inserted = []
        self.deleted = []
        self.list_calls = []
        self._ids = itertools.count(1)

    async def authorize(self):
        return None

    async def list_events(self, time_min, time_max):
        self.list_calls.append((time_min, time_max))
        return list(self.events)

    async def list_events_for_day(self, day):
        self.list_calls.append(day)
        return [e for e in self.events if e.start[:10] == day]

    async def insert_event(self, summary, description, start, end, timezone):
        event_id = f"new-{next(self._ids)}"
        self.inserted.append({
            "id": event_id,
            "summary": summary,
            "description": description,
            "start": start,
            "end": end,
            "timezone": timezone,
        })
        return event_id

    async def delete_event(self, event_id):
        self.deleted.append(event_id)

    async def get_event(self, event_id):
        for event in self.events:
            if event.id == event_id:
                return event
        raise UpstreamError("Not Found", status=404)


@pytest.fixture
def calendar():
    return FakeCalendar()
