"""
Test cases for the user service orchestration.
"""
import asyncio
import json

import jwt
import pytest
from conftest import TEST_SECRET

from users_service.users.directory import UserDirectory
from users_service.users.exceptions import (
    EmailAlreadyRegisteredError,
    InvalidCredentialsError,
    NotFoundError,
    PasswordHashError,
    PublishError,
    ValidationError,
)
from users_service.users.models import User
from users_service.users.passwords import PasswordHasher
from users_service.users.repository import InMemoryUserRepository
from users_service.users.users import UserCreate, UserService


class RecordingHasher(PasswordHasher):
    """Counts verify calls and remembers which hashes were checked."""

    def __init__(self):
        super().__init__(rounds=4)
        self.verified = []

    def verify(self, hashed, candidate):
        self.verified.append(hashed)
        return super().verify(hashed, candidate)


class FailingBroker:
    def __init__(self):
        self.attempts = 0

    async def publish(self, topic, message):
        self.attempts += 1
        raise PublishError(topic)


def ada_request(**overrides):
    data = {"name": "Ada", "surname": "Lovelace", "email": "ada@example.com", "password": "secret123"}
    data.update(overrides)
    return UserCreate(**data)


@pytest.mark.asyncio
async def test_create_returns_user_without_password(user_service, repository):
    user = await user_service.create(ada_request())

    assert user.id
    assert user.password == ""
    assert user.name == "Ada"
    assert user.email == "ada@example.com"

    stored = await repository.get(user.id)
    assert stored.password_hash
    assert stored.password_hash != "secret123"


@pytest.mark.asyncio
async def test_create_publishes_event(user_service, broker):
    received = []

    async def on_created(topic, message):
        received.append((topic, message))

    broker.subscribe("user.created", on_created)
    user = await user_service.create(ada_request())

    assert len(broker.events) == 1
    event = broker.events[0]
    assert event.topic == "user.created"
    assert event.headers == {"id": user.id}
    assert event.payload == {"id": user.id, "name": "Ada", "surname": "Lovelace", "email": "ada@example.com"}

    topic, message = received[0]
    assert topic == "user.created"
    assert "password" not in json.loads(message.body)


@pytest.mark.asyncio
async def test_create_requires_password(user_service, broker):
    with pytest.raises(ValidationError):
        await user_service.create(ada_request(password=""))
    assert broker.events == []


@pytest.mark.asyncio
async def test_create_duplicate_email_does_not_publish(user_service, broker):
    await user_service.create(ada_request())

    with pytest.raises(EmailAlreadyRegisteredError):
        await user_service.create(ada_request(name="Other"))
    assert len(broker.events) == 1


@pytest.mark.asyncio
async def test_publish_failure_does_not_fail_create(hasher, token_service, caplog):
    repository = InMemoryUserRepository()
    broker = FailingBroker()
    service = UserService(UserDirectory(repository), hasher, token_service, broker)

    user = await service.create(ada_request())

    assert broker.attempts == 1
    assert await repository.get(user.id) is not None
    assert "[pub]" in caplog.text


@pytest.mark.asyncio
async def test_get_and_get_all(user_service):
    ada = await user_service.create(ada_request())
    grace = await user_service.create(ada_request(name="Grace", surname="Hopper", email="grace@example.com"))

    assert (await user_service.get(ada.id)) == ada
    assert {u.id for u in await user_service.get_all()} == {ada.id, grace.id}


@pytest.mark.asyncio
async def test_get_unknown_user(user_service):
    with pytest.raises(NotFoundError):
        await user_service.get("does-not-exist")


@pytest.mark.asyncio
async def test_ada_scenario(user_service):
    user = await user_service.create(UserCreate(name="Ada", email="ada@example.com", password="secret123"))
    assert user.id and user.password == ""

    token = await user_service.authenticate("ada@example.com", "secret123")
    assert user_service.validate_token(token) is True

    with pytest.raises(InvalidCredentialsError):
        await user_service.authenticate("ada@example.com", "wrong")


@pytest.mark.asyncio
async def test_unknown_email_and_wrong_password_are_indistinguishable(user_service):
    await user_service.create(ada_request())

    with pytest.raises(InvalidCredentialsError) as unknown:
        await user_service.authenticate("nobody@example.com", "secret123")
    with pytest.raises(InvalidCredentialsError) as wrong:
        await user_service.authenticate("ada@example.com", "wrong")

    assert type(unknown.value) is type(wrong.value)
    assert unknown.value.message == wrong.value.message
    assert unknown.value.code == wrong.value.code


@pytest.mark.asyncio
async def test_token_claims_identify_user(user_service, token_service):
    user = await user_service.create(ada_request())
    token = await user_service.authenticate("ada@example.com", "secret123")

    assert token_service.validate(token).user.id == user.id


def test_validate_token_never_raises(user_service):
    assert user_service.validate_token("") is False
    assert user_service.validate_token("not.a.token") is False


@pytest.mark.asyncio
async def test_validate_token_false_after_expiry(user_service, clock, token_service):
    await user_service.create(ada_request())
    token = await user_service.authenticate("ada@example.com", "secret123")

    clock.advance(token_service.ttl)
    assert user_service.validate_token(token) is False


@pytest.mark.asyncio
async def test_concurrent_creates_get_distinct_ids(user_service):
    first, second = await asyncio.gather(
        user_service.create(ada_request()),
        user_service.create(ada_request(name="Grace", email="grace@example.com")),
    )

    assert first.id and second.id
    assert first.id != second.id


@pytest.mark.asyncio
async def test_mixed_case_domain_authenticates_as_registered(user_service, repository):
    user = await user_service.create(ada_request(email="Ada@Example.COM"))

    stored = await repository.get(user.id)
    assert stored.email == "Ada@example.com"

    token = await user_service.authenticate("Ada@Example.COM", "secret123")
    assert user_service.validate_token(token) is True
    assert await user_service.authenticate("Ada@example.com", "secret123")


@pytest.mark.asyncio
async def test_unknown_email_still_runs_password_check(token_service, broker):
    hasher = RecordingHasher()
    service = UserService(UserDirectory(InMemoryUserRepository()), hasher, token_service, broker)

    with pytest.raises(InvalidCredentialsError):
        await service.authenticate("nobody@example.com", "secret123")

    assert hasher.verified == [hasher.dummy_hash]
    assert hasher.dummy_hash.startswith("$2b$04$")


@pytest.mark.asyncio
async def test_corrupt_stored_hash_is_not_invalid_credentials(user_service, repository):
    await repository.create(User(id="u-1", name="Ada", email="ada@example.com", password_hash="not-a-bcrypt-hash"))

    with pytest.raises(PasswordHashError):
        await user_service.authenticate("ada@example.com", "secret123")


def test_validate_token_with_out_of_range_expiry(user_service):
    token = jwt.encode({"user": {"id": "u-1"}, "iss": "users", "exp": 10**20}, TEST_SECRET, algorithm="HS256")
    assert user_service.validate_token(token) is False
