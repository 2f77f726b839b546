"""
User models for the users service.

This module defines:
- User, the record the service works with
- UserRecord, its SQLAlchemy table mapping
- Marshaling between the two and the public (hash-free) view
"""
from typing import Any, Dict, List
from pydantic import BaseModel
from sqlalchemy import Column, String
from users_service.base_microservice import Base


class User(BaseModel):
    """A user identity as stored by the service."""
    id: str = ""
    name: str
    surname: str = ""
    email: str
    password_hash: str = ""

    def public_fields(self) -> Dict[str, Any]:
        """Fields that may leave the service: everything but the hash."""
        return {
            "id": self.id,
            "name": self.name,
            "surname": self.surname,
            "email": self.email,
        }


class UserRecord(Base):
    """SQLAlchemy mapping of the users table."""
    __tablename__ = "users"

    id = Column(String(36), primary_key=True)
    name = Column(String(125), nullable=False)
    email = Column(String(225), unique=True, index=True, nullable=False)
    password = Column(String(225), nullable=False)
    surname = Column(String(125), nullable=True)


def marshal_user(user: User) -> UserRecord:
    return UserRecord(
        id=user.id,
        name=user.name,
        email=user.email,
        surname=user.surname,
        password=user.password_hash,
    )


def unmarshal_user(record: UserRecord) -> User:
    return User(
        id=record.id,
        name=record.name,
        email=record.email,
        surname=record.surname or "",
        password_hash=record.password,
    )


def unmarshal_user_collection(records: List[UserRecord]) -> List[User]:
    return [unmarshal_user(record) for record in records]
