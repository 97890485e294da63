import pytest
import pytest_asyncio
from bson import ObjectId
from httpx import ASGITransport, AsyncClient
from mongomock_motor import AsyncMongoMockClient

from beliefted.core.auth import create_access_token
from beliefted.db.mongodb import USERS, get_db
from beliefted.main import app
from beliefted.middleware.rate_limit import MemoryRateLimitStore, RateLimiter, get_rate_limiter
from beliefted.services.notifications import NotificationDispatcher, NotificationFanout, get_dispatcher
from beliefted.services.push import PushClient, get_push_client


class FakeClock:
    """Millisecond clock the tests move by hand"""

    def __init__(self, now: int = 1_700_000_000_000):
        self.now = now

    def __call__(self) -> int:
        return self.now

    def advance(self, ms: int) -> None:
        self.now += ms


@pytest.fixture
def db():
    return AsyncMongoMockClient()["beliefted_test"]


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def limiter(clock):
    return RateLimiter(store=MemoryRateLimitStore(), clock=clock)


@pytest_asyncio.fixture
async def dispatcher(db):
    dispatcher = NotificationDispatcher(NotificationFanout(db))
    dispatcher.start()
    yield dispatcher
    await dispatcher.stop()


@pytest.fixture
def push_client():
    # No project configured, so sends are skipped
    return PushClient()


@pytest.fixture
def make_user(db):
    async def _make_user(username: str, name: str = None, **fields) -> ObjectId:
        result = await db[USERS].insert_one(
            {"username": username, "name": name or username.title(), "image": None, **fields}
        )
        return result.inserted_id
    return _make_user


@pytest.fixture
def auth_headers():
    def _auth_headers(user_id) -> dict:
        return {"Authorization": f"Bearer {create_access_token(str(user_id))}"}
    return _auth_headers


@pytest_asyncio.fixture
async def client(db, limiter, dispatcher, push_client):
    app.dependency_overrides[get_db] = lambda: db
    app.dependency_overrides[get_rate_limiter] = lambda: limiter
    app.dependency_overrides[get_dispatcher] = lambda: dispatcher
    app.dependency_overrides[get_push_client] = lambda: push_client
    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as ac:
        yield ac
    app.dependency_overrides.clear()
