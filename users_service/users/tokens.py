"""
JWT token handling for authentication.

This module provides functionality for:
- Issuing signed, expiring identity tokens
- Validating tokens and returning their claims
"""
from datetime import datetime, timedelta, timezone
from typing import Callable, Optional, Protocol
import jwt
from pydantic import BaseModel
from pydantic import ValidationError as PydanticValidationError

from users_service.users.exceptions import (
    ExpiredTokenError,
    InvalidSignatureError,
    InvalidUserError,
    MalformedTokenError,
)
from users_service.users.models import User

ALGORITHM = "HS256"
DEFAULT_ISSUER = "users"
DEFAULT_TTL = timedelta(minutes=30)


def _utcnow() -> datetime:
    return datetime.now(tz=timezone.utc)


class TokenUser(BaseModel):
    """User snapshot embedded in a token. Never carries the password hash."""
    id: str = ""
    name: str = ""
    surname: str = ""
    email: str = ""


class Claims(BaseModel):
    """Token payload model."""
    user: TokenUser
    iss: str
    exp: int
    iat: Optional[int] = None

    @property
    def expires_at(self) -> datetime:
        return datetime.fromtimestamp(self.exp, tz=timezone.utc)


class TokenIssuer(Protocol):
    def issue(self, user: User) -> str: ...

    def validate(self, token: str) -> Claims: ...


class TokenService:
    """
    Issue and validate HS256-signed identity tokens.

    Examples
    --------
    >>> service = TokenService(secret_key="your-secret-key")
    >>> token = service.issue(user)
    >>> service.validate(token).user.id == user.id
    True
    """

    def __init__(
        self,
        secret_key: str,
        ttl: timedelta = DEFAULT_TTL,
        issuer: str = DEFAULT_ISSUER,
        clock: Callable[[], datetime] = _utcnow,
    ):
        if not secret_key:
            raise ValueError("JWT secret key cannot be empty")
        if ttl <= timedelta(0):
            raise ValueError("Token TTL must be positive")

        self._secret_key = secret_key
        self._ttl = ttl
        self._issuer = issuer
        self._clock = clock

    @property
    def ttl(self) -> timedelta:
        return self._ttl

    def issue(self, user: User) -> str:
        """
        Create a signed token for a user.

        Args:
            user: The authenticated user

        Returns:
            Encoded JWT token string
        """
        now = self._clock()
        expires = now + self._ttl
        payload = {
            "user": TokenUser(**user.public_fields()).model_dump(),
            "sub": user.id,
            "iss": self._issuer,
            "iat": int(now.timestamp()),
            "exp": int(expires.timestamp()),
        }
        return jwt.encode(payload, self._secret_key, algorithm=ALGORITHM)

    def validate(self, token: str) -> Claims:
        """
        Verify a token and return its claims.

        Raises:
            InvalidSignatureError: If the signature does not match the key
            ExpiredTokenError: If the expiration instant has passed
            MalformedTokenError: If the token or its claims cannot be parsed
            InvalidUserError: If the token does not carry a user id
        """
        if not isinstance(token, str) or not token:
            raise MalformedTokenError("Token is empty")

        # Expiry is checked against the injected clock below
        try:
            payload = jwt.decode(
                token,
                self._secret_key,
                algorithms=[ALGORITHM],
                issuer=self._issuer,
                options={
                    "require": ["exp", "iss", "user"],
                    "verify_exp": False,
                    "verify_iat": False,
                },
            )
        except jwt.InvalidSignatureError as e:
            raise InvalidSignatureError() from e
        except jwt.InvalidTokenError as e:
            raise MalformedTokenError(f"Token is malformed: {e}") from e

        try:
            claims = Claims.model_validate(payload)
        except PydanticValidationError as e:
            raise MalformedTokenError("Token claims are malformed") from e

        try:
            expires_at = claims.expires_at
        except (OverflowError, OSError, ValueError) as e:
            raise MalformedTokenError("Token expiration is out of range") from e

        if self._clock() >= expires_at:
            raise ExpiredTokenError()

        if not claims.user.id:
            raise InvalidUserError()

        return claims
