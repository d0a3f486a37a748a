from datetime import datetime
from typing import Optional

from redis.asyncio import Redis
from redis.exceptions import RedisError

from .errors import StoreUnavailable
from .logger import logger
from .store import TicketStore, TicketRecord, TicketState, RedeemOutcome, utcnow

# KEYS[1] = ticket hash; ARGV = source_ref, created_at
CREATE_LUA = """
if redis.call('EXISTS', KEYS[1]) == 1 then
  return 0
end
redis.call('HSET', KEYS[1], 'source_ref', ARGV[1], 'state', 'CREATED', 'created_at', ARGV[2])
return 1
"""

# KEYS[1] = ticket hash; ARGV = redeemed_at, redeemed_by
REDEEM_LUA = """
if redis.call('EXISTS', KEYS[1]) == 0 then
  return 'NOT_FOUND'
end
if redis.call('HGET', KEYS[1], 'state') == 'REDEEMED' then
  return 'ALREADY_USED'
end
redis.call('HSET', KEYS[1], 'state', 'REDEEMED', 'redeemed_at', ARGV[1], 'redeemed_by', ARGV[2])
return 'OK'
"""


def _key(ticket_id: str) -> str:
    return f"ticket:{ticket_id}"


class RedisTicketStore(TicketStore):
    """One hash per ticket; create and redeem each run as a single server-side script."""

    def __init__(self, redis: Redis):
        self.redis = redis
        self._create = redis.register_script(CREATE_LUA)
        self._redeem = redis.register_script(REDEEM_LUA)

    @classmethod
    def from_url(cls, redis_url: str) -> "RedisTicketStore":
        return cls(Redis.from_url(redis_url, decode_responses=True))

    async def create_if_absent(self, ticket_id: str, source_ref: str) -> None:
        try:
            created = await self._create(keys=[_key(ticket_id)], args=[source_ref, utcnow().isoformat()])
        except RedisError as e:
            raise StoreUnavailable(f"create failed for {ticket_id}") from e
        if int(created):
            logger.info(f"STORE: created ticket {ticket_id}")

    async def try_redeem(self, ticket_id: str, actor: str) -> RedeemOutcome:
        try:
            raw = await self._redeem(keys=[_key(ticket_id)], args=[utcnow().isoformat(), actor])
        except RedisError as e:
            raise StoreUnavailable(f"redeem failed for {ticket_id}") from e
        if isinstance(raw, bytes):
            raw = raw.decode("utf-8")
        return RedeemOutcome(raw)

    async def get(self, ticket_id: str) -> Optional[TicketRecord]:
        try:
            data = await self.redis.hgetall(_key(ticket_id))
        except RedisError as e:
            raise StoreUnavailable(f"lookup failed for {ticket_id}") from e
        if not data:
            return None
        data = {
            (k.decode("utf-8") if isinstance(k, bytes) else k): (v.decode("utf-8") if isinstance(v, bytes) else v)
            for k, v in data.items()
        }
        redeemed_at = data.get("redeemed_at")
        return TicketRecord(
            id=ticket_id,
            source_ref=data["source_ref"],
            state=TicketState(data["state"]),
            created_at=datetime.fromisoformat(data["created_at"]),
            redeemed_at=datetime.fromisoformat(redeemed_at) if redeemed_at else None,
            redeemed_by=data.get("redeemed_by"),
        )

    async def close(self) -> None:
        await self.redis.aclose()
