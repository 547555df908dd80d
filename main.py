import logging
from typing import List

from fastapi import BackgroundTasks, Depends, FastAPI, HTTPException, Request, status
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from pydantic import BaseModel
import uvicorn

from availability import compute_availability
from booking import BookingService
from calendar_source import CalendarSource, GoogleCalendarSource
from classifier import EventClassifier
from config import Settings
from errors import BookingError, UpstreamError
from models import ALLOWED_DURATIONS, BookingRequest, CancelRequest
from notifications import BookingNotifier
from timeutils import is_valid_day, is_weekend

settings = Settings.from_env()

logging.basicConfig(
    level=getattr(logging, settings.log_level.upper(), logging.INFO),
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
)
logger = logging.getLogger(__name__)

logging.getLogger("httpx").setLevel(logging.WARNING)
logging.getLogger("httpcore").setLevel(logging.WARNING)

app = FastAPI(title="Court Booking API")


# Pydantic Schemas for Request/Response
class SlotOut(BaseModel):
    start: str
    end: str
    availableCourts: int


class SlotsResponse(BaseModel):
    date: str
    duration: int
    slots: List[SlotOut]
    weekendBlocked: bool | None = None


class BookingCreate(BaseModel):
    date: str = ""
    start: str = ""
    duration: int = 60
    name: str = ""
    phone: str = ""
    email: str | None = None


class BookingOut(BaseModel):
    ok: bool = True
    court: str
    courtNumber: int
    start: str
    end: str
    eventId: str
    cancelCode: str


class CancelIn(BaseModel):
    phone: str = ""
    eventId: str | None = None
    cancelCode: str | None = None


class CancelOut(BaseModel):
    ok: bool = True
    eventId: str


# --- Dependencies ---
def get_settings() -> Settings:
    return settings


def get_calendar(request: Request, current: Settings = Depends(get_settings)) -> CalendarSource:
    missing = current.missing_settings()
    calendar = getattr(request.app.state, "calendar", None)
    if missing or calendar is None:
        logger.error("Calendar not configured, missing: %s", ", ".join(missing) or "client not started")
        raise HTTPException(status_code=500, detail="Booking service is not configured.")
    return calendar


def get_booking_service(
    calendar: CalendarSource = Depends(get_calendar),
    current: Settings = Depends(get_settings),
) -> BookingService:
    return BookingService(
        calendar=calendar,
        classifier=EventClassifier(current.classifier),
        hours=current.hours,
        timezone=current.timezone,
        require_email=current.require_email,
    )


def get_notifier(current: Settings = Depends(get_settings)) -> BookingNotifier:
    return BookingNotifier(
        api_key=current.resend_api_key,
        from_address=current.email_from,
        venue_address=current.venue_notify_email,
    )


def _reject(exc: Exception, generic: str) -> HTTPException:
    """Turn a core error into the HTTP answer; upstream detail stays in the log."""
    if isinstance(exc, BookingError) and not isinstance(exc, UpstreamError):
        return HTTPException(status_code=exc.status_code, detail=exc.reason)
    logger.error(f"{generic} ({type(exc).__name__}: {exc})", exc_info=exc)
    return HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail=generic)


@app.on_event("startup")
async def on_startup():
    # One shared client for the whole process; stays unset until configured
    app.state.calendar = None
    missing = settings.missing_settings()
    if missing:
        logger.warning("Calendar not configured, missing: %s", ", ".join(missing))
        return
    app.state.calendar = GoogleCalendarSource(
        calendar_id=settings.calendar_id,
        account=settings.service_account,
        timezone=settings.timezone,
    )


@app.on_event("shutdown")
async def on_shutdown():
    calendar = getattr(app.state, "calendar", None)
    if isinstance(calendar, GoogleCalendarSource):
        await calendar.aclose()


@app.get("/health")
async def health(current: Settings = Depends(get_settings)):
    missing = current.missing_settings()
    if missing:
        return JSONResponse(
            status_code=500,
            content={"ok": False, "error": f"Missing environment variables: {', '.join(missing)}"},
        )
    return {"ok": True}


# --- Endpoint: GET /api/slots ---
@app.get("/api/slots", response_model=SlotsResponse, response_model_exclude_none=True)
async def get_slots(
    date: str = "",
    duration: int = 60,
    current: Settings = Depends(get_settings),
    service: BookingService = Depends(get_booking_service),
):
    if not is_valid_day(date):
        raise HTTPException(status_code=400, detail="Invalid date (use YYYY-MM-DD).")
    if duration not in ALLOWED_DURATIONS:
        raise HTTPException(status_code=400, detail="Invalid duration (60 or 120).")

    window = current.hours.window_for(is_weekend(date))
    if window is None:
        return SlotsResponse(date=date, duration=duration, slots=[], weekendBlocked=True)

    try:
        events = await service.calendar.list_events_for_day(date)
    except Exception as exc:
        raise _reject(exc, "Could not load available times, please try again.") from exc

    slots = compute_availability(events, date, duration, service.classifier, window, service.tz)
    return SlotsResponse(
        date=date,
        duration=duration,
        slots=[SlotOut(start=s.start, end=s.end, availableCourts=s.available_courts) for s in slots],
    )


# --- Endpoint: POST /api/book ---
@app.post("/api/book", response_model=BookingOut)
async def book(
    booking_data: BookingCreate,
    background_tasks: BackgroundTasks,
    service: BookingService = Depends(get_booking_service),
    notifier: BookingNotifier = Depends(get_notifier),
):
    request = BookingRequest(
        date=booking_data.date,
        start=booking_data.start,
        duration=booking_data.duration,
        name=booking_data.name,
        phone=booking_data.phone,
        email=booking_data.email or None,
    )

    try:
        assignment = await service.book(request)
    except Exception as exc:
        raise _reject(exc, "Could not create the booking, please try again.") from exc

    # Runs after the response is sent; a failed e-mail never undoes the booking
    background_tasks.add_task(notifier.notify, request, assignment)

    return BookingOut(
        court=assignment.court_label,
        courtNumber=assignment.court,
        start=assignment.start,
        end=assignment.end,
        eventId=assignment.event_id,
        cancelCode=assignment.cancel_code,
    )


# --- Endpoint: POST /api/cancel ---
@app.post("/api/cancel", response_model=CancelOut)
async def cancel(
    cancel_data: CancelIn,
    service: BookingService = Depends(get_booking_service),
):
    try:
        cancellation = await service.cancel(
            CancelRequest(
                phone=cancel_data.phone,
                event_id=cancel_data.eventId,
                cancel_code=cancel_data.cancelCode,
            )
        )
    except Exception as exc:
        raise _reject(exc, "Could not cancel the booking, please try again.") from exc

    return CancelOut(eventId=cancellation.event_id)


app.add_middleware(
    CORSMiddleware,
    # An empty allow-list means any origin
    allow_origins=list(settings.allowed_origins) or ["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


if __name__ == "__main__":
    uvicorn.run(app, host="0.0.0.0", port=settings.port)
