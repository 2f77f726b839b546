"""
Users service exceptions.

Raised by the password hasher, token service, directory and repositories,
and mapped to HTTP responses by ``users_service.users.exception_handlers``.
"""


class UsersError(Exception):
    """Base exception for all users service errors."""

    code = "USERS_ERROR"

    def __init__(self, message: str = "Users service error"):
        self.message = message
        super().__init__(self.message)


class ValidationError(UsersError):
    """Raised when required input is missing or malformed."""

    code = "VALIDATION_ERROR"

    def __init__(self, message: str = "Invalid input"):
        super().__init__(message)


class EmailAlreadyRegisteredError(ValidationError):
    """Raised when creating a user whose email is already taken."""

    code = "EMAIL_ALREADY_REGISTERED"

    def __init__(self, email: str):
        self.email = email
        super().__init__(f"Email already registered: {email}")


class NotFoundError(UsersError):
    """Raised when a user lookup misses."""

    code = "USER_NOT_FOUND"

    def __init__(self, user_id: str):
        self.user_id = user_id
        super().__init__(f"User not found: {user_id}")


class InvalidCredentialsError(UsersError):
    """Raised when email or password is incorrect during authentication."""

    code = "INVALID_CREDENTIALS"

    def __init__(self, message: str = "Invalid email or password"):
        super().__init__(message)


class TokenError(UsersError):
    """Base class for token validation failures."""

    code = "INVALID_TOKEN"

    def __init__(self, message: str = "Invalid token"):
        super().__init__(message)


class MalformedTokenError(TokenError):
    code = "MALFORMED_TOKEN"

    def __init__(self, message: str = "Token is malformed"):
        super().__init__(message)


class InvalidSignatureError(TokenError):
    code = "INVALID_SIGNATURE"

    def __init__(self, message: str = "Token signature does not match"):
        super().__init__(message)


class ExpiredTokenError(TokenError):
    code = "TOKEN_EXPIRED"

    def __init__(self, message: str = "Token has expired"):
        super().__init__(message)


class InvalidUserError(TokenError):
    """Raised when a correctly signed token carries no user id."""

    code = "INVALID_USER"

    def __init__(self, message: str = "Token does not identify a user"):
        super().__init__(message)


class StorageError(UsersError):
    """Raised by repositories when the backing store fails."""

    code = "STORAGE_ERROR"

    def __init__(self, message: str = "Storage backend failure"):
        super().__init__(message)


class PublishError(UsersError):
    """Raised by brokers when an event cannot be delivered."""

    code = "PUBLISH_ERROR"

    def __init__(self, topic: str, message: str = "Event could not be published"):
        self.topic = topic
        super().__init__(f"{message} (topic: {topic})")


class PasswordHashError(UsersError):
    """Raised when a stored password hash is structurally invalid."""

    code = "INVALID_PASSWORD_HASH"

    def __init__(self, message: str = "Stored password hash is invalid"):
        super().__init__(message)
