import uuid
from datetime import datetime, timedelta, timezone
from typing import Optional

from jose import jwt
from jose.exceptions import JWTError

from .config import Settings
from .errors import InvalidStationToken


def mint_station_token(station: str, secret: str, ttl_minutes: int = 12 * 60) -> str:
    exp = int((datetime.now(timezone.utc) + timedelta(minutes=ttl_minutes)).timestamp())
    payload = {
        "station": station,
        "nonce": str(uuid.uuid4()),
        "exp": exp,
    }
    return jwt.encode(payload, secret, algorithm="HS256")


def verify_station_token(token: str, secret: str) -> dict:
    try:
        # exp is checked below so an expired token reports EXPIRED, not INVALID_TOKEN
        payload = jwt.decode(token, secret, algorithms=["HS256"], options={"verify_exp": False})
    except JWTError:
        raise ValueError("INVALID_TOKEN")

    now = datetime.now(timezone.utc).timestamp()
    exp = payload.get("exp")
    if exp is None or now > float(exp):
        raise ValueError("EXPIRED")

    for k in ["station", "nonce"]:
        if not payload.get(k):
            raise ValueError("INVALID_TOKEN")

    return payload


def resolve_station(token: Optional[str], settings: Settings) -> Optional[str]:
    """Map an optional station token to the redeeming actor.

    ``None`` means "no token, use the default station". Raises
    InvalidStationToken for a bad token, or for a missing one when tokens are required.
    """
    if not token:
        if settings.require_station_token:
            raise InvalidStationToken("MISSING_TOKEN")
        return None
    try:
        payload = verify_station_token(token, settings.signing_secret)
    except ValueError as e:
        raise InvalidStationToken(str(e))
    return payload["station"]
