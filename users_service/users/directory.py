"""
User directory: lookup and creation of user records on top of a repository.
"""
from typing import List, Optional

from users_service.base_microservice import BaseMicroservice
from users_service.users.exceptions import EmailAlreadyRegisteredError, NotFoundError, StorageError, ValidationError
from users_service.users.models import User
from users_service.users.repository import UserRepository


class UserDirectory(BaseMicroservice):
    """
    Resolves users through a UserRepository.

    A repository miss becomes NotFoundError on ``get`` and None on
    ``find_by_email``. StorageError from the repository is logged and
    re-raised unchanged.
    """

    def __init__(self, repository: UserRepository):
        super().__init__("users.directory")
        self.repository = repository

    async def get(self, user_id: str) -> User:
        if not user_id:
            raise ValidationError("User id is required")
        try:
            user = await self.repository.get(user_id)
        except StorageError as e:
            self.log_error(e, context=f"get user {user_id}")
            raise
        if user is None:
            raise NotFoundError(user_id)
        return user

    async def get_all(self) -> List[User]:
        try:
            return await self.repository.get_all()
        except StorageError as e:
            self.log_error(e, context="list users")
            raise

    async def find_by_email(self, email: str) -> Optional[User]:
        try:
            return await self.repository.get_by_email(email)
        except StorageError as e:
            self.log_error(e, context="find user by email")
            raise

    async def create(self, user: User) -> User:
        """
        Persist a new user.

        Raises:
            ValidationError: If the user has no id or no password hash
            EmailAlreadyRegisteredError: If the email is already taken
            StorageError: If the repository fails
        """
        if not user.id:
            raise ValidationError("User id must be assigned before persisting")
        if not user.password_hash:
            raise ValidationError("User must have a password hash")

        if await self.find_by_email(user.email) is not None:
            raise EmailAlreadyRegisteredError(user.email)

        try:
            await self.repository.create(user)
        except StorageError as e:
            self.log_error(e, context=f"create user {user.id}")
            raise
        return user
