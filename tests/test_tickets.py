import pytest

from admitone.store import RedeemOutcome
from admitone.tickets import TicketIssuer, RedemptionCoordinator

pytestmark = pytest.mark.asyncio


async def test_issue_uses_payment_reference_as_ticket_id(store):
    issuer = TicketIssuer(store)

    assert await issuer.issue("sess_123") == "sess_123"
    assert await issuer.issue("sess_123") == "sess_123"

    t = await store.get("sess_123")
    assert t.source_ref == "sess_123"


async def test_check_in_defaults_to_door_actor(store):
    await TicketIssuer(store).issue("sess_123")
    coordinator = RedemptionCoordinator(store)

    assert await coordinator.check_in("sess_123") == RedeemOutcome.OK
    assert (await store.get("sess_123")).redeemed_by == "door"


async def test_check_in_records_named_station(store):
    await TicketIssuer(store).issue("sess_123")
    coordinator = RedemptionCoordinator(store, default_actor="main-entrance")

    assert await coordinator.check_in("sess_123", "gate-b") == RedeemOutcome.OK
    assert (await store.get("sess_123")).redeemed_by == "gate-b"


async def test_scenario_a_issue_then_admit_once(store):
    ticket_id = await TicketIssuer(store).issue("sess_123")
    coordinator = RedemptionCoordinator(store)

    assert ticket_id == "sess_123"
    assert await coordinator.check_in(ticket_id) == RedeemOutcome.OK
    assert await coordinator.check_in(ticket_id) == RedeemOutcome.ALREADY_USED


async def test_scenario_b_never_issued(store):
    assert await RedemptionCoordinator(store).check_in("sess_999") == RedeemOutcome.NOT_FOUND
