"""
Booking decision and cancellation.

A booking walks validating -> checking-conflicts -> assigning-court ->
committing -> done; any of the first three steps may reject. The conflict
check and the insert are two separate calendar calls with nothing holding the
slot in between, so two simultaneous requests for the last free court can both
succeed.
"""

import logging
import re
import secrets
from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone as dt_timezone
from typing import Callable, Optional, Protocol
from zoneinfo import ZoneInfo

from availability import events_in_window, tally
from calendar_source import CalendarSource
from classifier import EventClassifier
from config import BusinessHours
from errors import AuthorizationError, ConflictError, UpstreamError, ValidationError
from models import (
    ALLOWED_DURATIONS,
    CANCEL_LOOKAHEAD_DAYS,
    COURTS,
    BookingRequest,
    CancelRequest,
    Cancellation,
    CourtAssignment,
    RawEvent,
)
from timeutils import (
    HHMM_RE,
    generate_slots,
    hhmm,
    hhmm_to_minutes,
    is_valid_day,
    is_weekend,
    local_iso,
)

logger = logging.getLogger(__name__)

EMAIL_RE = re.compile(r"^[^@\s]+@[^@\s]+\.[^@\s]+$")
CANCEL_CODE_RE = re.compile(r"CancelCode:\s*([A-Z0-9]{4,12})", re.IGNORECASE)
WHATSAPP_RE = re.compile(r"^WhatsApp:\s*(.+)$", re.IGNORECASE | re.MULTILINE)

UNKNOWN_SHARE_NOTE = (
    "Obs: havia aula/evento sem quadra definida nesse horário. "
    "Confirme com a equipe para evitar conflito."
)


def generate_cancel_code() -> str:
    """Six upper-case hex characters, short enough to type on a phone."""
    return secrets.token_hex(3).upper()


def _digits(value: str) -> str:
    return re.sub(r"\D", "", value)


def phone_matches(description: str, phone: str) -> bool:
    phone = phone.strip().lower()
    if not phone:
        return False
    if phone in description.lower():
        return True
    # Digits are compared against the WhatsApp line only
    digits = _digits(phone)
    if len(digits) < 8:
        return False
    return any(digits in _digits(stored) for stored in WHATSAPP_RE.findall(description))


class Authorizer(Protocol):
    def authorize(self, event: RawEvent, request: CancelRequest) -> None:
        """Raise AuthorizationError unless `request` may cancel `event`."""


class DescriptionAuthorizer:
    """
    Ownership check against the booking's own description text.

    The phone must appear in the description. When the description also carries
    a CancelCode, the caller must present the same code.
    """

    def authorize(self, event: RawEvent, request: CancelRequest) -> None:
        if not phone_matches(event.description, request.phone):
            raise AuthorizationError("Could not validate this booking for the given phone number.")

        match = CANCEL_CODE_RE.search(event.description)
        if match:
            expected = match.group(1).strip().upper()
            supplied = (request.cancel_code or "").strip().upper()
            if not supplied or supplied != expected:
                raise AuthorizationError("Invalid cancellation code.")


def build_description(request: BookingRequest, cancel_code: str, shared_with_unknown: bool) -> str:
    lines = [
        f"Cliente: {request.name.strip()}",
        f"WhatsApp: {request.phone.strip()}",
    ]
    if request.email:
        lines.append(f"Email: {request.email.strip()}")
    lines += [
        f"Duração: {'2h' if request.duration == 120 else '1h'}",
        "Origem: site",
        f"CancelCode: {cancel_code}",
    ]
    if shared_with_unknown:
        lines += ["", UNKNOWN_SHARE_NOTE]
    return "\n".join(lines) + "\n"


@dataclass
class BookingService:
    calendar: CalendarSource
    classifier: EventClassifier = field(default_factory=EventClassifier)
    hours: BusinessHours = field(default_factory=BusinessHours)
    timezone: str = "America/Sao_Paulo"
    require_email: bool = False
    authorizer: Authorizer = field(default_factory=DescriptionAuthorizer)
    cancel_code_factory: Callable[[], str] = generate_cancel_code
    clock: Callable[[], datetime] = lambda: datetime.now(dt_timezone.utc)

    @property
    def tz(self) -> ZoneInfo:
        return ZoneInfo(self.timezone)

    def window_for(self, day: str):
        return self.hours.window_for(is_weekend(day))

    def validate(self, request: BookingRequest) -> int:
        """Check the request fields and return the booking end, in minutes."""
        if not is_valid_day(request.date):
            raise ValidationError("date", "Invalid date (use YYYY-MM-DD).")
        if not HHMM_RE.match(request.start or ""):
            raise ValidationError("start", "Invalid start (use HH:MM).")
        if request.duration not in ALLOWED_DURATIONS:
            raise ValidationError("duration", "Invalid duration (60 or 120).")
        if not (request.name or "").strip():
            raise ValidationError("name", "Name is required.")
        if not (request.phone or "").strip():
            raise ValidationError("phone", "Phone is required.")

        email = (request.email or "").strip()
        if self.require_email and not email:
            raise ValidationError("email", "Email is required.")
        if email and not EMAIL_RE.match(email):
            raise ValidationError("email", "Invalid email.")

        window = self.window_for(request.date)
        if window is None:
            raise ConflictError("No walk-in bookings on Saturdays and Sundays.")

        end = hhmm_to_minutes(request.start) + request.duration
        template = {(slot.start, slot.end) for slot in generate_slots(request.duration, window)}
        if (request.start, hhmm(end)) not in template:
            raise ValidationError("start", "Start time is outside the booking grid for this day.")
        return end

    async def book(self, request: BookingRequest) -> CourtAssignment:
        # 1. Validating
        end_min = self.validate(request)
        start_min = hhmm_to_minutes(request.start)
        end = hhmm(end_min)

        # 2. Checking conflicts
        events = await self.calendar.list_events_for_day(request.date)
        clashing = events_in_window(events, request.date, start_min, end_min, self.tz)
        occupancy = tally(clashing, self.classifier)
        if occupancy.all_day or occupancy.block_both:
            raise ConflictError("This time slot is unavailable.")

        # 3. Assigning a court
        if min(len(COURTS), len(occupancy.known) + occupancy.unknown) >= len(COURTS):
            raise ConflictError("This time slot is fully booked (both courts taken).")
        free = [court for court in COURTS if court not in occupancy.known]
        # An unattributed event alone does not steer the choice away from court 1
        court = free[0] if free else COURTS[0]
        shared_with_unknown = occupancy.unknown > 0 and not occupancy.known

        # 4. Committing
        cancel_code = self.cancel_code_factory()
        event_id = await self.calendar.insert_event(
            summary=f"Locação Avulsa - Quadra {court}",
            description=build_description(request, cancel_code, shared_with_unknown),
            start=local_iso(request.date, request.start),
            end=local_iso(request.date, end),
            timezone=self.timezone,
        )
        logger.info("Booked Quadra %d on %s %s-%s (event %s)", court, request.date, request.start, end, event_id)

        # 5. Done
        return CourtAssignment(
            court=court,
            start=request.start,
            end=end,
            event_id=event_id,
            cancel_code=cancel_code,
            shared_with_unknown=shared_with_unknown,
        )

    async def find_upcoming_booking(self, phone: str) -> Optional[RawEvent]:
        """Earliest upcoming event whose description carries this phone."""
        now = self.clock().astimezone(self.tz)
        events = await self.calendar.list_events(now, now + timedelta(days=CANCEL_LOOKAHEAD_DAYS))
        for event in events:
            if phone_matches(event.description, phone):
                return event
        return None

    async def cancel(self, request: CancelRequest) -> Cancellation:
        if not (request.phone or "").strip():
            raise ValidationError("phone", "Phone is required.")

        if request.event_id and request.event_id.strip():
            try:
                event = await self.calendar.get_event(request.event_id.strip())
            except UpstreamError as exc:
                if exc.status in (404, 410):
                    raise AuthorizationError("Could not validate this booking for the given phone number.") from exc
                raise
        else:
            event = await self.find_upcoming_booking(request.phone)
            if event is None:
                raise AuthorizationError("No upcoming booking found for this phone number.")

        self.authorizer.authorize(event, request)
        await self.calendar.delete_event(event.id)
        logger.info("Cancelled booking %s", event.id)
        return Cancellation(event_id=event.id, start=event.start)
