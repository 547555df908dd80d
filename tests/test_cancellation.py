"""Unit tests for BookingService.cancel and the description authorizer."""
from datetime import datetime, timedelta, timezone

import pytest

from booking import BookingService, DescriptionAuthorizer, phone_matches
from conftest import FakeCalendar, timed
from errors import AuthorizationError, UpstreamError, ValidationError
from models import CANCEL_LOOKAHEAD_DAYS, CancelRequest, RawEvent

NOW = datetime(2026, 1, 20, 12, 0, tzinfo=timezone.utc)

BOOKING_DESCRIPTION = (
    "Cliente: Ana Souza\nWhatsApp: (11) 99999-0000\nDuração: 1h\nOrigem: site\nCancelCode: 7F3A2B\n"
)
STAFF_DESCRIPTION = "Turma iniciante\nHorário 18:00 às 19:00\n"


def booking_event(event_id="bk-1", day="2026-01-29", start="18:00", description=BOOKING_DESCRIPTION):
    return timed("Locação Avulsa - Quadra 1", start, "23:00", day=day, description=description, event_id=event_id)


def make_service(events):
    calendar = FakeCalendar(events)
    return BookingService(calendar=calendar, clock=lambda: NOW), calendar


class TestPhoneMatching:
    """Test cases for phone_matches."""

    def test_substring(self):
        assert phone_matches(BOOKING_DESCRIPTION, "99999-0000")

    def test_digits_only(self):
        assert phone_matches(BOOKING_DESCRIPTION, "11 999990000")

    def test_short_digit_runs_do_not_match(self):
        assert not phone_matches(BOOKING_DESCRIPTION, "0000 9")

    def test_other_phone(self):
        assert not phone_matches(BOOKING_DESCRIPTION, "21988887777")

    def test_blank(self):
        assert not phone_matches(BOOKING_DESCRIPTION, "   ")

    def test_digits_from_separate_fields_do_not_match(self):
        assert not phone_matches(STAFF_DESCRIPTION, "1800-1900")

    def test_digits_only_read_the_whatsapp_line(self):
        description = "Cliente: Ana 1199\nWhatsApp: 99990000\n"
        assert not phone_matches(description, "11 9999 9000 0")
        assert phone_matches(description, "9999-0000")


class TestDescriptionAuthorizer:
    """Test cases for DescriptionAuthorizer."""

    def test_phone_and_code(self):
        DescriptionAuthorizer().authorize(
            booking_event(), CancelRequest(phone="11999990000", cancel_code="7f3a2b")
        )

    def test_code_required_when_stored(self):
        with pytest.raises(AuthorizationError, match="code"):
            DescriptionAuthorizer().authorize(booking_event(), CancelRequest(phone="11999990000"))

    def test_wrong_code(self):
        with pytest.raises(AuthorizationError):
            DescriptionAuthorizer().authorize(
                booking_event(), CancelRequest(phone="11999990000", cancel_code="000000")
            )

    def test_phone_alone_when_no_code_stored(self):
        event = booking_event(description="Cliente: Ana\nWhatsApp: 11999990000\n")
        DescriptionAuthorizer().authorize(event, CancelRequest(phone="11999990000"))

    def test_wrong_phone(self):
        with pytest.raises(AuthorizationError):
            DescriptionAuthorizer().authorize(
                booking_event(), CancelRequest(phone="21988887777", cancel_code="7F3A2B")
            )


class TestCancel:
    """Test cases for BookingService.cancel."""

    @pytest.mark.asyncio
    async def test_cancel_by_event_id(self):
        service, calendar = make_service([booking_event()])
        result = await service.cancel(CancelRequest(phone="11999990000", event_id="bk-1", cancel_code="7F3A2B"))
        assert result.event_id == "bk-1"
        assert calendar.deleted == ["bk-1"]

    @pytest.mark.asyncio
    async def test_phone_required(self):
        service, calendar = make_service([booking_event()])
        with pytest.raises(ValidationError) as exc_info:
            await service.cancel(CancelRequest(phone=" ", event_id="bk-1"))
        assert exc_info.value.field == "phone"
        assert calendar.deleted == []

    @pytest.mark.asyncio
    async def test_unknown_event_id(self):
        service, calendar = make_service([])
        with pytest.raises(AuthorizationError):
            await service.cancel(CancelRequest(phone="11999990000", event_id="missing", cancel_code="7F3A2B"))
        assert calendar.deleted == []

    @pytest.mark.asyncio
    async def test_other_upstream_errors_propagate(self):
        service, calendar = make_service([])

        async def broken(event_id):
            raise UpstreamError("boom", status=503)

        calendar.get_event = broken
        with pytest.raises(UpstreamError):
            await service.cancel(CancelRequest(phone="11999990000", event_id="bk-1"))

    @pytest.mark.asyncio
    async def test_wrong_phone_does_not_delete(self):
        service, calendar = make_service([booking_event()])
        with pytest.raises(AuthorizationError):
            await service.cancel(CancelRequest(phone="21988887777", event_id="bk-1", cancel_code="7F3A2B"))
        assert calendar.deleted == []

    @pytest.mark.asyncio
    async def test_earliest_upcoming_booking_chosen(self):
        other = RawEvent(id="other", summary="Aula", description="WhatsApp: 21988887777",
                         start="2026-01-25T18:00:00-03:00", end="2026-01-25T19:00:00-03:00")
        events = [other, booking_event("bk-early", day="2026-01-27"), booking_event("bk-late", day="2026-02-10")]
        service, calendar = make_service(events)

        result = await service.cancel(CancelRequest(phone="11999990000", cancel_code="7F3A2B"))

        assert result.event_id == "bk-early"
        assert calendar.deleted == ["bk-early"]
        time_min, time_max = calendar.list_calls[0]
        assert time_max - time_min == timedelta(days=CANCEL_LOOKAHEAD_DAYS)
        assert time_min == NOW

    @pytest.mark.asyncio
    async def test_no_upcoming_booking(self):
        service, calendar = make_service([booking_event()])
        with pytest.raises(AuthorizationError, match="No upcoming booking"):
            await service.cancel(CancelRequest(phone="21988887777"))
        assert calendar.deleted == []

    @pytest.mark.asyncio
    async def test_staff_event_digits_do_not_authorize(self):
        staff = timed("Turma iniciante", "18:00", "19:00", day="2026-01-29",
                      description=STAFF_DESCRIPTION, event_id="staff-1")
        service, calendar = make_service([staff])
        with pytest.raises(AuthorizationError):
            await service.cancel(CancelRequest(phone="1800-1900"))
        assert calendar.deleted == []
