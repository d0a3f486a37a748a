from .logger import logger
from .store import TicketStore, RedeemOutcome


class TicketIssuer:
    """Mints one ticket per confirmed payment.

    The ticket id *is* the payment reference, so issuing twice for the same
    payment (a refreshed ticket page, a retried redirect) returns the same id
    and leaves a single record behind. Callers must have confirmed the payment.
    """

    def __init__(self, store: TicketStore):
        self.store = store

    async def issue(self, payment_ref: str) -> str:
        ticket_id = payment_ref
        await self.store.create_if_absent(ticket_id, payment_ref)
        logger.info(f"ISSUE: ticket {ticket_id} ready")
        return ticket_id


class RedemptionCoordinator:
    def __init__(self, store: TicketStore, default_actor: str = "door"):
        self.store = store
        self.default_actor = default_actor

    async def check_in(self, ticket_id: str, actor: str | None = None) -> RedeemOutcome:
        actor = actor or self.default_actor
        outcome = await self.store.try_redeem(ticket_id, actor)
        logger.info(f"CHECKIN: ticket={ticket_id} actor={actor} outcome={outcome.value}")
        return outcome
