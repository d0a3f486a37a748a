import asyncio
import pytest

from admitone.store import RedeemOutcome, TicketState
from tests.helpers import open_ticket, scan, outcome_of

pytestmark = pytest.mark.asyncio


async def test_replay_basic(client):
    r = await open_ticket(client, "sess_123")
    assert r.status_code == 200

    r1 = await scan(client, "sess_123")
    assert r1.status_code == 200
    assert outcome_of(r1) == "OK"

    r2 = await scan(client, "sess_123")
    assert r2.status_code == 409
    assert outcome_of(r2) == "ALREADY_USED"


async def test_concurrent_redeem_one_wins(store):
    await store.create_if_absent("sess_123", "sess_123")

    results = await asyncio.gather(*[store.try_redeem("sess_123", f"door-{i}") for i in range(20)])

    assert results.count(RedeemOutcome.OK) == 1, f"Expected exactly 1 OK, got {results}"
    assert results.count(RedeemOutcome.ALREADY_USED) == 19

    winner = results.index(RedeemOutcome.OK)
    assert (await store.get("sess_123")).redeemed_by == f"door-{winner}"


async def test_concurrent_scan_one_wins(client, store):
    assert (await open_ticket(client, "sess_123")).status_code == 200

    results = await asyncio.gather(*[scan(client, "sess_123") for _ in range(20)])
    outcomes = [outcome_of(r) for r in results]

    assert outcomes.count("OK") == 1, f"Expected exactly 1 OK, got {outcomes}"
    assert outcomes.count("ALREADY_USED") == 19
    assert (await store.get("sess_123")).state is TicketState.REDEEMED


async def test_two_doors_race_on_fresh_ticket(client):
    assert (await open_ticket(client, "sess_123")).status_code == 200

    a, b = await asyncio.gather(scan(client, "sess_123"), scan(client, "sess_123"))

    assert sorted([outcome_of(a), outcome_of(b)]) == ["ALREADY_USED", "OK"]
    assert sorted([a.status_code, b.status_code]) == [200, 409]


async def test_concurrent_issue_creates_one_record(client, store):
    results = await asyncio.gather(*[open_ticket(client, "sess_123") for _ in range(10)])

    assert all(r.status_code == 200 for r in results)
    assert all("Ticket ID: sess_123" in r.text for r in results)
    assert await store.try_redeem("sess_123", "door") == RedeemOutcome.OK


async def test_racing_tickets_each_admit_once(store):
    for ref in ("sess_123", "sess_456"):
        await store.create_if_absent(ref, ref)

    calls = [store.try_redeem(ref, "door") for ref in ("sess_123", "sess_456") for _ in range(10)]
    results = await asyncio.gather(*calls)

    assert results[:10].count(RedeemOutcome.OK) == 1
    assert results[10:].count(RedeemOutcome.OK) == 1
