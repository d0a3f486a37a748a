import httpx
import pytest
import pytest_asyncio
from fakeredis import FakeAsyncRedis, FakeServer

from admitone.config import Settings
from admitone.main import create_app
from admitone.payments import StaticConfirmer
from admitone.redis_store import RedisTicketStore
from admitone.sql_store import SqlTicketStore
from admitone.store import MemoryTicketStore

from tests.helpers import BASE_URL, SIGNING_SECRET

PAYMENTS = {
    "sess_123": "paid",
    "sess_456": "paid",
    "sess_unpaid": "unpaid",
}


@pytest_asyncio.fixture(params=["memory", "sql", "redis"])
async def store(request, tmp_path):
    if request.param == "memory":
        s = MemoryTicketStore()
    elif request.param == "sql":
        s = SqlTicketStore.from_url(f"sqlite:///{tmp_path / 'tickets.db'}")
        s.create_schema()
    else:
        s = RedisTicketStore(FakeAsyncRedis(server=FakeServer(), decode_responses=True))
    try:
        yield s
    finally:
        await s.close()


@pytest.fixture
def settings():
    return Settings(
        base_url=BASE_URL,
        payment_backend="static",
        signing_secret=SIGNING_SECRET,
        event_name="Basement Show",
        event_datetime="Fri 21:00",
        event_location="Warehouse 9",
        event_address="9 Dock Road",
    )


@pytest.fixture
def confirmer():
    return StaticConfirmer(PAYMENTS)


@pytest.fixture
def app(settings, store, confirmer):
    return create_app(settings=settings, store=store, confirmer=confirmer)


@pytest_asyncio.fixture
async def client(app):
    async with httpx.AsyncClient(transport=httpx.ASGITransport(app=app), base_url="http://testserver", timeout=10.0) as c:
        yield c
