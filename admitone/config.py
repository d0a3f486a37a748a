import os
from dataclasses import dataclass
from typing import Optional

from dotenv import load_dotenv

DEFAULT_SIGNING_SECRET = "dev_secret_change_me"


def _flag(name: str, default: str = "false") -> bool:
    return os.environ.get(name, default).strip().lower() == "true"


@dataclass(frozen=True)
class Settings:
    base_url: Optional[str] = None
    ticket_backend: str = "memory"
    database_url: Optional[str] = None
    redis_url: Optional[str] = None
    payment_backend: str = "stripe"
    stripe_secret_key: Optional[str] = None
    signing_secret: str = DEFAULT_SIGNING_SECRET
    require_station_token: bool = False
    default_station: str = "door"
    event_name: str = "Tickets"
    event_datetime: str = ""
    event_location: str = ""
    event_address: str = ""
    payment_link_url: str = ""
    log_level: str = "INFO"


def get_settings() -> Settings:
    load_dotenv()

    database_url = os.environ.get("DATABASE_URL") or None
    # Postgres when DATABASE_URL is present, otherwise the transient map
    backend = os.environ.get("TICKET_BACKEND") or ("sql" if database_url else "memory")

    return Settings(
        base_url=os.environ.get("BASE_URL") or None,
        ticket_backend=backend.lower(),
        database_url=database_url,
        redis_url=os.environ.get("REDIS_URL") or None,
        payment_backend=os.environ.get("PAYMENT_BACKEND", "stripe").lower(),
        stripe_secret_key=os.environ.get("STRIPE_SECRET_KEY") or None,
        signing_secret=os.environ.get("TICKET_SIGNING_SECRET", DEFAULT_SIGNING_SECRET),
        require_station_token=_flag("REQUIRE_STATION_TOKEN"),
        default_station=os.environ.get("DEFAULT_STATION", "door"),
        event_name=os.environ.get("EVENT_NAME", "Tickets"),
        event_datetime=os.environ.get("EVENT_DATETIME", ""),
        event_location=os.environ.get("EVENT_LOCATION", ""),
        event_address=os.environ.get("EVENT_ADDRESS", ""),
        payment_link_url=os.environ.get("PAYMENT_LINK_URL", ""),
        log_level=os.environ.get("LOG_LEVEL", "INFO").upper(),
    )
