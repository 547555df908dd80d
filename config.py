import base64
import json
import logging
import os
from dataclasses import dataclass, field
from typing import List, Optional, Tuple

from dotenv import load_dotenv

from classifier import ClassifierConfig

# 1. Load environment variables from .env file
load_dotenv()

logger = logging.getLogger(__name__)

DEFAULT_TZ = "America/Sao_Paulo"
GOOGLE_TOKEN_URI = "https://oauth2.googleapis.com/token"


@dataclass(frozen=True)
class BusinessHours:
    """Opening windows as (open_hour, close_hour). weekend=None closes weekends."""

    weekday: Tuple[int, int] = (17, 23)
    weekend: Optional[Tuple[int, int]] = (9, 19)

    def window_for(self, weekend: bool) -> Optional[Tuple[int, int]]:
        return self.weekend if weekend else self.weekday


# First published rules: 18-23 on weekdays, no walk-in bookings on weekends
LEGACY_HOURS = BusinessHours(weekday=(18, 23), weekend=None)
CURRENT_HOURS = BusinessHours()


@dataclass(frozen=True)
class ServiceAccount:
    client_email: str
    private_key: str
    token_uri: str = GOOGLE_TOKEN_URI


@dataclass(frozen=True)
class Settings:
    timezone: str = DEFAULT_TZ
    calendar_id: Optional[str] = None
    service_account: Optional[ServiceAccount] = None
    allowed_origins: Tuple[str, ...] = ()
    hours: BusinessHours = CURRENT_HOURS
    classifier: ClassifierConfig = field(default_factory=ClassifierConfig)
    require_email: bool = False
    resend_api_key: Optional[str] = None
    email_from: str = "Reservas <reservas@example.com>"
    venue_notify_email: Optional[str] = None
    log_level: str = "INFO"
    port: int = 3000

    @classmethod
    def from_env(cls) -> "Settings":
        return cls(
            timezone=os.environ.get("BASE_TZ", DEFAULT_TZ),
            calendar_id=os.environ.get("GOOGLE_CALENDAR_ID") or None,
            service_account=load_service_account(),
            allowed_origins=parse_origins(os.environ.get("ALLOWED_ORIGINS", "")),
            hours=load_business_hours(),
            classifier=ClassifierConfig.from_json(
                os.environ.get("COURT_KEYWORDS_JSON"),
                unknown_blocks_both=os.environ.get("UNKNOWN_EVENT_POLICY", "single").lower() == "block_both",
            ),
            require_email=_env_flag("REQUIRE_EMAIL"),
            resend_api_key=os.environ.get("RESEND_API_KEY") or None,
            email_from=os.environ.get("EMAIL_FROM_ADDRESS", cls.email_from),
            venue_notify_email=os.environ.get("VENUE_NOTIFY_EMAIL") or None,
            log_level=os.environ.get("LOG_LEVEL", "INFO"),
            port=int(os.environ.get("PORT", "3000")),
        )

    def missing_settings(self) -> List[str]:
        """Names of the variables the calendar integration still needs."""
        missing = []
        if not self.calendar_id:
            missing.append("GOOGLE_CALENDAR_ID")
        # A full JSON credential replaces the separate email/key pair
        if not self.service_account or not self.service_account.client_email:
            missing.append("GOOGLE_SERVICE_ACCOUNT_EMAIL (or GOOGLE_SERVICE_ACCOUNT_JSON_BASE64)")
        if not self.service_account or not self.service_account.private_key:
            missing.append("GOOGLE_PRIVATE_KEY (or GOOGLE_SERVICE_ACCOUNT_JSON_BASE64)")
        return missing


def _env_flag(name: str, default: bool = False) -> bool:
    value = os.environ.get(name)
    if value is None:
        return default
    return value.strip().lower() in ("1", "true", "yes", "on")


def parse_origins(raw: str) -> Tuple[str, ...]:
    return tuple(origin.strip() for origin in raw.split(",") if origin.strip())


def parse_hours(raw: str) -> Optional[Tuple[int, int]]:
    """Parse "HH-HH" into an (open, close) pair; "closed" means no window."""
    value = raw.strip().lower()
    if value in ("", "closed", "none"):
        return None
    try:
        open_part, close_part = value.split("-", 1)
        opening, closing = int(open_part.split(":")[0]), int(close_part.split(":")[0])
    except ValueError as exc:
        raise ValueError(f"Invalid business hours: {raw!r} (use HH-HH)") from exc
    if not 0 <= opening < closing <= 23:
        raise ValueError(f"Invalid business hours: {raw!r}")
    return opening, closing


def load_business_hours() -> BusinessHours:
    base = LEGACY_HOURS if os.environ.get("SCHEDULE_REVISION", "").lower() == "legacy" else CURRENT_HOURS
    weekday = base.weekday
    weekend = base.weekend
    if os.environ.get("WEEKDAY_HOURS"):
        weekday = parse_hours(os.environ["WEEKDAY_HOURS"]) or weekday
    if "WEEKEND_HOURS" in os.environ:
        weekend = parse_hours(os.environ["WEEKEND_HOURS"])
    return BusinessHours(weekday=weekday, weekend=weekend)


def load_service_account() -> Optional[ServiceAccount]:
    """
    Build the service-account credential.

    A complete JSON key (base64 or raw text) takes priority over the separate
    GOOGLE_SERVICE_ACCOUNT_EMAIL / GOOGLE_PRIVATE_KEY variables.
    """
    email = os.environ.get("GOOGLE_SERVICE_ACCOUNT_EMAIL")
    private_key = os.environ.get("GOOGLE_PRIVATE_KEY")
    token_uri = GOOGLE_TOKEN_URI

    raw = None
    try:
        if os.environ.get("GOOGLE_SERVICE_ACCOUNT_JSON_BASE64"):
            raw = base64.b64decode(os.environ["GOOGLE_SERVICE_ACCOUNT_JSON_BASE64"]).decode("utf-8")
        elif os.environ.get("GOOGLE_SERVICE_ACCOUNT_JSON"):
            raw = os.environ["GOOGLE_SERVICE_ACCOUNT_JSON"]
        if raw:
            info = json.loads(raw)
            email = info.get("client_email") or email
            private_key = info.get("private_key") or private_key
            token_uri = info.get("token_uri") or token_uri
    except (ValueError, AttributeError) as exc:
        logger.warning("Ignoring malformed service account JSON: %s", exc)

    if not email and not private_key:
        return None

    # Hosting dashboards usually store the key with literal "\n"
    if private_key:
        private_key = private_key.replace("\\n", "\n")
    return ServiceAccount(client_email=email or "", private_key=private_key or "", token_uri=token_uri)
