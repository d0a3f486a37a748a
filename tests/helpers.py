import re

import httpx

BASE_URL = "https://tickets.example.com"
SIGNING_SECRET = "test_secret"

_OUTCOME = re.compile(r'data-outcome="([A-Z_]+)"')


async def open_ticket(client: httpx.AsyncClient, session_id: str) -> httpx.Response:
    return await client.get("/ticket", params={"session_id": session_id})


async def scan(client: httpx.AsyncClient, code: str, station: str | None = None) -> httpx.Response:
    params = {"code": code}
    if station is not None:
        params["station"] = station
    return await client.get("/checkin", params=params)


def outcome_of(r: httpx.Response) -> str:
    m = _OUTCOME.search(r.text)
    assert m, f"no outcome on check-in page (status {r.status_code}): {r.text[:200]}"
    return m.group(1)
