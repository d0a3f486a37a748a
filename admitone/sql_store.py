from datetime import timezone
from typing import Optional

from fastapi.concurrency import run_in_threadpool
from sqlalchemy import update, select
from sqlalchemy.engine import Engine
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import sessionmaker

from .db import Base, make_engine, make_session_factory
from .errors import StoreUnavailable
from .logger import logger
from .models import Ticket
from .store import TicketStore, TicketRecord, TicketState, RedeemOutcome, utcnow


def _aware(value):
    # SQLite hands back naive datetimes; everything stored is UTC
    if value is not None and value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


def _to_record(t: Ticket) -> TicketRecord:
    return TicketRecord(
        id=t.id,
        source_ref=t.source_ref,
        state=TicketState(t.state),
        created_at=_aware(t.created_at),
        redeemed_at=_aware(t.redeemed_at),
        redeemed_by=t.redeemed_by,
    )


class SqlTicketStore(TicketStore):
    """Durable backend on a ``tickets`` table.

    Redemption is a single conditional UPDATE guarded by ``state = 'CREATED'``;
    the database row lock decides the one winner, so the affected row count is
    the outcome. Rows are never deleted, which makes the follow-up existence
    check after a losing UPDATE safe.
    """

    def __init__(self, engine: Engine, session_factory: Optional[sessionmaker] = None):
        self.engine = engine
        self.SessionLocal = session_factory or make_session_factory(engine)

    @classmethod
    def from_url(cls, database_url: str) -> "SqlTicketStore":
        return cls(make_engine(database_url))

    def create_schema(self) -> None:
        Base.metadata.create_all(bind=self.engine)

    async def create_if_absent(self, ticket_id: str, source_ref: str) -> None:
        await run_in_threadpool(self._create_if_absent, ticket_id, source_ref)

    async def try_redeem(self, ticket_id: str, actor: str) -> RedeemOutcome:
        return await run_in_threadpool(self._try_redeem, ticket_id, actor)

    async def get(self, ticket_id: str) -> Optional[TicketRecord]:
        return await run_in_threadpool(self._get, ticket_id)

    async def close(self) -> None:
        self.engine.dispose()

    def _create_if_absent(self, ticket_id: str, source_ref: str) -> None:
        db = self.SessionLocal()
        try:
            db.add(Ticket(
                id=ticket_id,
                source_ref=source_ref,
                state=TicketState.CREATED.value,
                created_at=utcnow(),
            ))
            db.commit()
            logger.info(f"STORE: created ticket {ticket_id}")
        except IntegrityError:
            # primary key already taken: the ticket was issued before
            db.rollback()
        except SQLAlchemyError as e:
            db.rollback()
            raise StoreUnavailable(f"create failed for {ticket_id}") from e
        finally:
            db.close()

    def _try_redeem(self, ticket_id: str, actor: str) -> RedeemOutcome:
        db = self.SessionLocal()
        try:
            res = db.execute(
                update(Ticket)
                .where(Ticket.id == ticket_id, Ticket.state == TicketState.CREATED.value)
                .values(state=TicketState.REDEEMED.value, redeemed_at=utcnow(), redeemed_by=actor)
            )
            db.commit()
            if res.rowcount == 1:
                return RedeemOutcome.OK

            found = db.execute(select(Ticket.id).where(Ticket.id == ticket_id)).first()
            return RedeemOutcome.ALREADY_USED if found else RedeemOutcome.NOT_FOUND
        except SQLAlchemyError as e:
            db.rollback()
            raise StoreUnavailable(f"redeem failed for {ticket_id}") from e
        finally:
            db.close()

    def _get(self, ticket_id: str) -> Optional[TicketRecord]:
        db = self.SessionLocal()
        try:
            t = db.get(Ticket, ticket_id)
            return _to_record(t) if t else None
        except SQLAlchemyError as e:
            raise StoreUnavailable(f"lookup failed for {ticket_id}") from e
        finally:
            db.close()
