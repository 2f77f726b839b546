"""
User repositories.

``UserRepository`` is the storage interface the directory depends on.
Lookups return None on a miss and raise StorageError when the backend
fails, so a missing user is never confused with an outage.
"""
import logging
from typing import Dict, List, Optional, Protocol
from sqlalchemy import select
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.ext.asyncio import async_sessionmaker

from users_service.users.exceptions import EmailAlreadyRegisteredError, StorageError
from users_service.users.models import User, UserRecord, marshal_user, unmarshal_user, unmarshal_user_collection

logger = logging.getLogger(__name__)


class UserRepository(Protocol):
    async def get_all(self) -> List[User]: ...

    async def get(self, user_id: str) -> Optional[User]: ...

    async def create(self, user: User) -> None: ...

    async def get_by_email(self, email: str) -> Optional[User]: ...


class SQLAlchemyUserRepository:
    """SQLAlchemy implementation of UserRepository."""

    def __init__(self, session_factory: async_sessionmaker):
        self._session_factory = session_factory

    async def get_all(self) -> List[User]:
        try:
            async with self._session_factory() as session:
                result = await session.execute(select(UserRecord).order_by(UserRecord.email))
                return unmarshal_user_collection(result.scalars().all())
        except SQLAlchemyError as e:
            raise StorageError(f"Failed to list users: {e}") from e

    async def get(self, user_id: str) -> Optional[User]:
        try:
            async with self._session_factory() as session:
                result = await session.execute(select(UserRecord).where(UserRecord.id == user_id))
                record = result.scalar_one_or_none()
        except SQLAlchemyError as e:
            raise StorageError(f"Failed to load user {user_id}: {e}") from e
        return unmarshal_user(record) if record is not None else None

    async def get_by_email(self, email: str) -> Optional[User]:
        try:
            async with self._session_factory() as session:
                result = await session.execute(select(UserRecord).where(UserRecord.email == email))
                record = result.scalar_one_or_none()
        except SQLAlchemyError as e:
            raise StorageError(f"Failed to look up user by email: {e}") from e
        return unmarshal_user(record) if record is not None else None

    async def create(self, user: User) -> None:
        try:
            async with self._session_factory() as session:
                session.add(marshal_user(user))
                await session.commit()
        except IntegrityError as e:
            # Match on the driver message; the rendered statement lists every column
            reason = str(getattr(e, "orig", e)).lower()
            if "unique" in reason and "email" in reason:
                raise EmailAlreadyRegisteredError(user.email) from e
            raise StorageError(f"Failed to create user: {e}") from e
        except SQLAlchemyError as e:
            raise StorageError(f"Failed to create user: {e}") from e
        logger.debug("Inserted user %s", user.id)


class InMemoryUserRepository:
    """Dict-backed UserRepository for tests and local runs."""

    def __init__(self, users: Optional[List[User]] = None):
        self._users: Dict[str, User] = {}
        for user in users or []:
            self._users[user.id] = user.model_copy()

    async def get_all(self) -> List[User]:
        return [user.model_copy() for user in sorted(self._users.values(), key=lambda u: u.email)]

    async def get(self, user_id: str) -> Optional[User]:
        user = self._users.get(user_id)
        return user.model_copy() if user is not None else None

    async def get_by_email(self, email: str) -> Optional[User]:
        for user in self._users.values():
            if user.email == email:
                return user.model_copy()
        return None

    async def create(self, user: User) -> None:
        if any(existing.email == user.email for existing in self._users.values()):
            raise EmailAlreadyRegisteredError(user.email)
        if user.id in self._users:
            raise StorageError(f"Duplicate user id: {user.id}")
        self._users[user.id] = user.model_copy()
