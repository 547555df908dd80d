"""
Google Calendar collaborator.

Talks to the Calendar v3 REST API with a service-account token. Every failure
(network, auth, non-2xx answer) surfaces as UpstreamError.
"""

import logging
import time
from datetime import datetime
from typing import Any, Dict, List, Optional, Protocol
from urllib.parse import quote
from zoneinfo import ZoneInfo

import httpx
from jose import jwt
from jose.exceptions import JOSEError

from config import ServiceAccount
from errors import UpstreamError
from models import RawEvent
from timeutils import day_bounds

logger = logging.getLogger(__name__)

GOOGLE_CALENDAR_API = "https://www.googleapis.com/calendar/v3"
CALENDAR_SCOPE = "https://www.googleapis.com/auth/calendar"
JWT_BEARER_GRANT = "urn:ietf:params:oauth:grant-type:jwt-bearer"


class CalendarSource(Protocol):
    async def authorize(self) -> None: ...

    async def list_events(self, time_min: datetime, time_max: datetime) -> List[RawEvent]: ...

    async def list_events_for_day(self, day: str) -> List[RawEvent]: ...

    async def insert_event(self, summary: str, description: str, start: str, end: str, timezone: str) -> str: ...

    async def delete_event(self, event_id: str) -> None: ...

    async def get_event(self, event_id: str) -> RawEvent: ...


class ServiceAccountToken:
    """OAuth2 JWT-bearer flow for a Google service account, cached until near expiry."""

    REFRESH_MARGIN = 60

    def __init__(self, account: ServiceAccount, client: httpx.AsyncClient, scope: str = CALENDAR_SCOPE):
        self.account = account
        self.client = client
        self.scope = scope
        self._token: Optional[str] = None
        self._expires_at = 0.0

    def _assertion(self, now: int) -> str:
        claims = {
            "iss": self.account.client_email,
            "scope": self.scope,
            "aud": self.account.token_uri,
            "iat": now,
            "exp": now + 3600,
        }
        try:
            return jwt.encode(claims, self.account.private_key, algorithm="RS256")
        except JOSEError as exc:
            raise UpstreamError(f"Could not sign service account assertion: {exc}") from exc

    async def get(self) -> str:
        if self._token and time.time() < self._expires_at - self.REFRESH_MARGIN:
            return self._token

        now = int(time.time())
        try:
            response = await self.client.post(
                self.account.token_uri,
                data={"grant_type": JWT_BEARER_GRANT, "assertion": self._assertion(now)},
            )
        except httpx.HTTPError as exc:
            raise UpstreamError(f"Token request failed: {exc}") from exc

        if response.status_code != 200:
            raise UpstreamError(f"Token request rejected: {response.text}", status=response.status_code)

        tokens = response.json()
        access_token = tokens.get("access_token")
        if not access_token:
            raise UpstreamError("No access token in token response")

        self._token = access_token
        self._expires_at = now + int(tokens.get("expires_in", 3600))
        logger.info("Service account token refreshed for %s", self.account.client_email)
        return access_token


class GoogleCalendarSource:
    def __init__(
        self,
        calendar_id: str,
        account: ServiceAccount,
        timezone: str,
        client: Optional[httpx.AsyncClient] = None,
        timeout: float = 20.0,
    ):
        self.calendar_id = calendar_id
        self.timezone = timezone
        self.tz = ZoneInfo(timezone)
        self.client = client or httpx.AsyncClient(timeout=timeout)
        self.token = ServiceAccountToken(account, self.client)

    @property
    def events_url(self) -> str:
        return f"{GOOGLE_CALENDAR_API}/calendars/{quote(self.calendar_id, safe='')}/events"

    async def aclose(self) -> None:
        await self.client.aclose()

    async def authorize(self) -> None:
        await self.token.get()

    async def _request(self, method: str, url: str, **kwargs) -> httpx.Response:
        access_token = await self.token.get()
        try:
            response = await self.client.request(
                method, url, headers={"Authorization": f"Bearer {access_token}"}, **kwargs
            )
        except httpx.HTTPError as exc:
            raise UpstreamError(f"Calendar request failed: {exc}") from exc

        if response.status_code >= 400:
            raise UpstreamError(
                f"Calendar API {method} {url} answered {response.status_code}: {response.text}",
                status=response.status_code,
            )
        return response

    async def list_events(self, time_min: datetime, time_max: datetime) -> List[RawEvent]:
        """All event instances in the window, recurring ones expanded, ordered by start."""
        params: Dict[str, Any] = {
            "timeMin": time_min.isoformat(),
            "timeMax": time_max.isoformat(),
            "timeZone": self.timezone,
            "singleEvents": "true",
            "orderBy": "startTime",
            "maxResults": 250,
        }
        events: List[RawEvent] = []
        while True:
            data = (await self._request("GET", self.events_url, params=params)).json()
            events.extend(RawEvent.from_api(item) for item in data.get("items") or [])
            page_token = data.get("nextPageToken")
            if not page_token:
                break
            params["pageToken"] = page_token
        logger.debug("Listed %d events between %s and %s", len(events), time_min, time_max)
        return events

    async def list_events_for_day(self, day: str) -> List[RawEvent]:
        time_min, time_max = day_bounds(day, self.tz)
        return await self.list_events(time_min, time_max)

    async def insert_event(self, summary: str, description: str, start: str, end: str, timezone: str) -> str:
        body = {
            "summary": summary,
            "description": description,
            "start": {"dateTime": start, "timeZone": timezone},
            "end": {"dateTime": end, "timeZone": timezone},
        }
        created = (await self._request("POST", self.events_url, json=body)).json()
        event_id = created.get("id")
        if not event_id:
            raise UpstreamError("Calendar API created an event without an id")
        logger.info("Calendar event created: %s", event_id)
        return event_id

    async def delete_event(self, event_id: str) -> None:
        await self._request("DELETE", f"{self.events_url}/{quote(event_id, safe='')}")
        logger.info("Calendar event deleted: %s", event_id)

    async def get_event(self, event_id: str) -> RawEvent:
        response = await self._request("GET", f"{self.events_url}/{quote(event_id, safe='')}")
        return RawEvent.from_api(response.json())
