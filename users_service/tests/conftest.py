from datetime import datetime, timedelta, timezone

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient

from users_service.event_handler.broker import InMemoryBroker
from users_service.main import create_app
from users_service.users.directory import UserDirectory
from users_service.users.passwords import PasswordHasher
from users_service.users.repository import InMemoryUserRepository
from users_service.users.tokens import TokenService
from users_service.users.users import UserService

TEST_SECRET = "test-signing-key"
TEST_TTL = timedelta(minutes=30)


class FakeClock:
    """Controllable clock for token expiry tests."""

    def __init__(self, now: datetime):
        self.now = now

    def __call__(self) -> datetime:
        return self.now

    def advance(self, delta: timedelta) -> None:
        self.now = self.now + delta


@pytest.fixture
def clock():
    return FakeClock(datetime(2024, 1, 1, 12, 0, 0, tzinfo=timezone.utc))


@pytest.fixture
def hasher():
    # Minimum bcrypt cost keeps the suite fast
    return PasswordHasher(rounds=4)


@pytest.fixture
def token_service(clock):
    return TokenService(secret_key=TEST_SECRET, ttl=TEST_TTL, clock=clock)


@pytest.fixture
def repository():
    return InMemoryUserRepository()


@pytest.fixture
def broker():
    return InMemoryBroker()


@pytest.fixture
def user_service(repository, hasher, token_service, broker):
    return UserService(
        directory=UserDirectory(repository),
        hasher=hasher,
        tokens=token_service,
        broker=broker,
    )


@pytest.fixture
def app(user_service, broker):
    return create_app(user_service=user_service, broker=broker)


@pytest_asyncio.fixture
async def client(app):
    transport = ASGITransport(app=app)
    async with AsyncClient(base_url="http://test", transport=transport) as ac:
        yield ac
