import logging
from html import escape
from typing import List, Optional

import resend

from models import BookingRequest, CourtAssignment

logger = logging.getLogger(__name__)


def booking_confirmation_html(request: BookingRequest, assignment: CourtAssignment) -> str:
    return (
        f"<p>Olá {escape(request.name.strip())},</p>"
        f"<p>Sua reserva está confirmada: <strong>{assignment.court_label}</strong> "
        f"em {escape(request.date)}, das {assignment.start} às {assignment.end}.</p>"
        f"<p>Código de cancelamento: <strong>{assignment.cancel_code}</strong></p>"
    )


class BookingNotifier:
    """Sends the post-booking e-mail. A failed send is logged and never raised."""

    def __init__(self, api_key: Optional[str], from_address: str, venue_address: Optional[str] = None):
        self.api_key = api_key
        self.from_address = from_address
        self.venue_address = venue_address

    def recipients(self, request: BookingRequest) -> List[str]:
        found = []
        if request.email and request.email.strip():
            found.append(request.email.strip())
        if self.venue_address:
            found.append(self.venue_address)
        return found

    def notify(self, request: BookingRequest, assignment: CourtAssignment) -> bool:
        recipients = self.recipients(request)
        if not recipients:
            return False
        if not self.api_key:
            logger.info("RESEND_API_KEY not set, skipping confirmation e-mail for %s", assignment.event_id)
            return False

        resend.api_key = self.api_key
        try:
            response = resend.Emails.send({
                "from": self.from_address,
                "to": recipients,
                "subject": f"Reserva confirmada - {assignment.court_label} {request.date} {assignment.start}",
                "html": booking_confirmation_html(request, assignment),
            })
        except Exception as e:
            logger.error(f"Confirmation e-mail for {assignment.event_id} failed: {e}")
            return False

        logger.info(f"Confirmation e-mail sent for {assignment.event_id}: {response}")
        return True
