from datetime import datetime
from typing import Optional

from fastapi import APIRouter, Header, HTTPException, Request
from pydantic import BaseModel

from .errors import InvalidStationToken
from .security import verify_station_token

router = APIRouter(prefix="/admin", tags=["admin"])


class TicketOut(BaseModel):
    ticket_id: str
    source_ref: str
    state: str
    created_at: datetime
    redeemed_at: Optional[datetime] = None
    redeemed_by: Optional[str] = None


def _require_station(request: Request, authorization: str | None) -> str:
    if not authorization or not authorization.lower().startswith("bearer "):
        raise InvalidStationToken("MISSING_TOKEN")
    token = authorization.split(" ", 1)[1].strip()
    try:
        payload = verify_station_token(token, request.app.state.settings.signing_secret)
    except ValueError as e:
        raise InvalidStationToken(str(e))
    return payload["station"]


# -------------------------
# Ticket lookup (door staff / support)
# -------------------------
@router.get("/tickets/{ticket_id}", response_model=TicketOut)
async def get_ticket(ticket_id: str, request: Request, authorization: str | None = Header(default=None)):
    _require_station(request, authorization)

    record = await request.app.state.store.get(ticket_id)
    if record is None:
        raise HTTPException(status_code=404, detail="ticket not found")
    return TicketOut(
        ticket_id=record.id,
        source_ref=record.source_ref,
        state=record.state.value,
        created_at=record.created_at,
        redeemed_at=record.redeemed_at,
        redeemed_by=record.redeemed_by,
    )
