"""
Password hashing.

Wraps bcrypt: salted, cost-parameterized digests in the self-describing
``$2b$<rounds>$<salt+hash>`` format, verified with a constant-time compare.
"""
from functools import cached_property

import bcrypt

from users_service.users.exceptions import PasswordHashError, ValidationError

# bcrypt only looks at the first 72 bytes of its input
MAX_PASSWORD_BYTES = 72
DEFAULT_ROUNDS = 12


class PasswordHasher:
    """
    Hash and verify passwords with bcrypt.

    Instances hold only the cost factor and a cached dummy hash, and are safe to share
    across concurrent requests.
    """

    def __init__(self, rounds: int = DEFAULT_ROUNDS):
        if not 4 <= rounds <= 31:
            raise ValueError("bcrypt rounds must be between 4 and 31")
        self.rounds = rounds

    @cached_property
    def dummy_hash(self) -> str:
        """A throwaway hash at this hasher's cost, verified when no user matches."""
        return bcrypt.hashpw(b"dummy-password", bcrypt.gensalt(rounds=self.rounds)).decode("utf-8")

    def hash(self, plaintext: str) -> str:
        """
        Generate a password hash.

        Args:
            plaintext: The password to hash

        Returns:
            The encoded bcrypt hash

        Raises:
            ValidationError: If the password is empty or too long
        """
        if not isinstance(plaintext, str) or not plaintext:
            raise ValidationError("Password is required")
        encoded = plaintext.encode("utf-8")
        if len(encoded) > MAX_PASSWORD_BYTES:
            raise ValidationError(f"Password must be at most {MAX_PASSWORD_BYTES} bytes")
        return bcrypt.hashpw(encoded, bcrypt.gensalt(rounds=self.rounds)).decode("utf-8")

    def verify(self, hashed: str, candidate: str) -> bool:
        """
        Check a candidate password against a stored hash.

        Returns False on any mismatch. A stored hash that bcrypt cannot
        parse raises PasswordHashError instead, since that points to bad
        data rather than a wrong password.
        """
        if not hashed:
            raise PasswordHashError("Stored password hash is empty")
        if not isinstance(candidate, str) or not candidate:
            return False
        encoded = candidate.encode("utf-8")
        if len(encoded) > MAX_PASSWORD_BYTES:
            return False
        try:
            return bcrypt.checkpw(encoded, hashed.encode("utf-8"))
        except ValueError as e:
            raise PasswordHashError() from e
