from typing import Optional


class BookingError(Exception):
    """Base class for every rejection the booking core can produce."""

    status_code = 500

    def __init__(self, reason: str):
        super().__init__(reason)
        self.reason = reason


class ValidationError(BookingError):
    """Malformed or off-grid input. Always names the offending field."""

    status_code = 400

    def __init__(self, field: str, reason: str):
        super().__init__(reason)
        self.field = field


class ConflictError(BookingError):
    """The slot is unavailable or fully booked."""

    status_code = 409


class AuthorizationError(BookingError):
    status_code = 403


class UpstreamError(BookingError):
    """Calendar unreachable, bad credentials or an unexpected API answer."""

    status_code = 500

    def __init__(self, reason: str, status: Optional[int] = None):
        super().__init__(reason)
        self.status = status
