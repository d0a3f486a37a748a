"""Ticket ledger: one record per ticket id, mutated only through two atomic operations.

``create_if_absent`` registers a ticket once; ``try_redeem`` flips it from
CREATED to REDEEMED once. Every backend gives the same guarantee: for a given
ticket id exactly one ``try_redeem`` caller ever observes ``OK``.
"""
import threading
from abc import ABC, abstractmethod
from dataclasses import dataclass, replace
from datetime import datetime, timezone
from enum import Enum
from typing import Optional

from .config import Settings
from .logger import logger


class TicketState(str, Enum):
    CREATED = "CREATED"
    REDEEMED = "REDEEMED"


class RedeemOutcome(str, Enum):
    OK = "OK"
    ALREADY_USED = "ALREADY_USED"
    NOT_FOUND = "NOT_FOUND"


@dataclass(frozen=True)
class TicketRecord:
    id: str
    source_ref: str
    state: TicketState
    created_at: datetime
    redeemed_at: Optional[datetime] = None
    redeemed_by: Optional[str] = None


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class TicketStore(ABC):
    @abstractmethod
    async def create_if_absent(self, ticket_id: str, source_ref: str) -> None:
        """Insert a CREATED record unless one already exists for ``ticket_id``."""

    @abstractmethod
    async def try_redeem(self, ticket_id: str, actor: str) -> RedeemOutcome:
        """Conditionally mark the ticket REDEEMED by ``actor``."""

    @abstractmethod
    async def get(self, ticket_id: str) -> Optional[TicketRecord]: ...

    async def exists(self, ticket_id: str) -> bool:
        return await self.get(ticket_id) is not None

    async def close(self) -> None:
        return None


class MemoryTicketStore(TicketStore):
    """Transient backend; everything is lost on restart."""

    def __init__(self):
        self._tickets: dict[str, TicketRecord] = {}
        self._locks: dict[str, threading.Lock] = {}

    def _lock_for(self, ticket_id: str) -> threading.Lock:
        # setdefault is atomic, so racing callers always share one lock per id
        return self._locks.setdefault(ticket_id, threading.Lock())

    async def create_if_absent(self, ticket_id: str, source_ref: str) -> None:
        with self._lock_for(ticket_id):
            if ticket_id in self._tickets:
                return
            self._tickets[ticket_id] = TicketRecord(
                id=ticket_id,
                source_ref=source_ref,
                state=TicketState.CREATED,
                created_at=utcnow(),
            )
        logger.info(f"STORE: created ticket {ticket_id}")

    async def try_redeem(self, ticket_id: str, actor: str) -> RedeemOutcome:
        # unknown ids never get a lock entry
        if ticket_id not in self._tickets:
            return RedeemOutcome.NOT_FOUND

        with self._lock_for(ticket_id):
            current = self._tickets[ticket_id]
            if current.state is TicketState.REDEEMED:
                return RedeemOutcome.ALREADY_USED
            self._tickets[ticket_id] = replace(
                current,
                state=TicketState.REDEEMED,
                redeemed_at=utcnow(),
                redeemed_by=actor,
            )
        return RedeemOutcome.OK

    async def get(self, ticket_id: str) -> Optional[TicketRecord]:
        return self._tickets.get(ticket_id)


def build_store(settings: Settings) -> TicketStore:
    backend = settings.ticket_backend

    if backend == "memory":
        logger.warning("STORE: using transient in-memory tickets; they are lost on restart")
        return MemoryTicketStore()

    if backend == "sql":
        if not settings.database_url:
            raise ValueError("TICKET_BACKEND=sql requires DATABASE_URL")
        from .sql_store import SqlTicketStore
        return SqlTicketStore.from_url(settings.database_url)

    if backend == "redis":
        if not settings.redis_url:
            raise ValueError("TICKET_BACKEND=redis requires REDIS_URL")
        from .redis_store import RedisTicketStore
        return RedisTicketStore.from_url(settings.redis_url)

    raise ValueError(f"unknown TICKET_BACKEND {backend!r}")
