"""
User management service.

This module provides functionality for:
- Account creation, with a best-effort "user created" notification
- Account lookup
- Authentication and token validation
"""
import uuid
from typing import List
from fastapi.concurrency import run_in_threadpool
from pydantic import BaseModel, EmailStr, Field, TypeAdapter
from pydantic import ValidationError as PydanticValidationError

from users_service.base_microservice import BaseMicroservice
from users_service.event_handler.broker import Broker, BrokerMessage
from users_service.users.directory import UserDirectory
from users_service.users.exceptions import InvalidCredentialsError, TokenError, ValidationError
from users_service.users.models import User
from users_service.users.passwords import PasswordHasher
from users_service.users.tokens import TokenIssuer

USER_CREATED_TOPIC = "user.created"

_email_adapter = TypeAdapter(EmailStr)


def normalize_email(email: str) -> str:
    """
    Normalize an address the way EmailStr does on registration.

    Unparseable input is returned stripped so that lookups simply miss.
    """
    try:
        return _email_adapter.validate_python(email)
    except PydanticValidationError:
        return email.strip() if isinstance(email, str) else ""


# Pydantic models for request validation
class UserCreate(BaseModel):
    """Model for user registration."""
    name: str = Field(..., min_length=1, max_length=125)
    surname: str = Field(default="", max_length=125)
    email: EmailStr
    password: str = ""


class UserLogin(BaseModel):
    """Model for user authentication."""
    email: str
    password: str = ""


class UserOut(BaseModel):
    """Model for user information returned to clients."""
    id: str
    name: str
    surname: str
    email: str
    password: str = ""

    @classmethod
    def from_user(cls, user: User) -> "UserOut":
        return cls(**user.public_fields())


class TokenRequest(BaseModel):
    token: str = ""


class TokenOut(BaseModel):
    token: str


class TokenValidation(BaseModel):
    valid: bool


def new_user_id() -> str:
    return str(uuid.uuid4())


class UserService(BaseMicroservice):
    """
    Service for user management operations.
    """

    def __init__(
        self,
        directory: UserDirectory,
        hasher: PasswordHasher,
        tokens: TokenIssuer,
        broker: Broker,
        topic: str = USER_CREATED_TOPIC,
    ):
        super().__init__("users")
        self.directory = directory
        self.hasher = hasher
        self.tokens = tokens
        self.broker = broker
        self.topic = topic

    async def create(self, request: UserCreate) -> UserOut:
        """
        Register a new user.

        Args:
            request: User registration data

        Returns:
            The created user, without its password

        Raises:
            ValidationError: If the password is missing or the email is taken
            StorageError: If the repository fails
        """
        if not request.password:
            raise ValidationError("Password is required")

        password_hash = await run_in_threadpool(self.hasher.hash, request.password)
        user = User(
            id=new_user_id(),
            name=request.name,
            surname=request.surname,
            email=normalize_email(request.email),
            password_hash=password_hash,
        )
        await self.directory.create(user)
        self.log_event("user.created", {"id": user.id})

        await self._publish_created(user)
        return UserOut.from_user(user)

    async def get(self, user_id: str) -> UserOut:
        """
        Get user by ID.

        Raises:
            NotFoundError: If no user has this id
        """
        return UserOut.from_user(await self.directory.get(user_id))

    async def get_all(self) -> List[UserOut]:
        return [UserOut.from_user(user) for user in await self.directory.get_all()]

    async def authenticate(self, email: str, password: str) -> str:
        """
        Authenticate a user and return a token.

        An unknown email and a wrong password raise the same
        InvalidCredentialsError.
        """
        user = await self.directory.find_by_email(normalize_email(email))
        if user is None:
            # Unknown emails cost one bcrypt verify, like a wrong password
            await run_in_threadpool(self.hasher.verify, self.hasher.dummy_hash, password)
            self.log_event("user.authentication_failed", {"reason": "credentials"})
            raise InvalidCredentialsError()

        verified = await run_in_threadpool(self.hasher.verify, user.password_hash, password)
        if not verified:
            self.log_event("user.authentication_failed", {"reason": "credentials"})
            raise InvalidCredentialsError()

        token = self.tokens.issue(user)
        self.log_event("user.authenticated", {"id": user.id})
        return token

    def validate_token(self, token: str) -> bool:
        try:
            self.tokens.validate(token)
        except TokenError as e:
            self.logger.debug(f"Token rejected: {e.code}")
            return False
        return True

    async def _publish_created(self, user: User) -> None:
        message = BrokerMessage.from_payload(user.public_fields(), header={"id": user.id})
        try:
            await self.broker.publish(self.topic, message)
        except Exception as e:
            # Delivery is best effort; the user already exists
            self.log_error(e, context=f"[pub] {self.topic} for user {user.id}")
