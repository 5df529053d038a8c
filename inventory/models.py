"""Domain models for the book inventory service."""

from __future__ import annotations

import enum
import uuid
from dataclasses import dataclass, field, replace
from datetime import datetime, timezone
from typing import Optional


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


def new_identifier() -> str:
    return str(uuid.uuid4())


def normalize_email(email: str) -> str:
    return email.strip().lower()


class Role(str, enum.Enum):
    USER = "USER"
    ADMIN = "ADMIN"


@dataclass(frozen=True)
class Account:
    """Represents a registered user stored in the inventory database.

    ``password_hash`` is the opaque output of :class:`~inventory.passwords.PasswordHasher`
    and must never be returned to a client.
    """

    id: str
    email: str
    password_hash: str
    name: Optional[str] = None
    role: Role = Role.USER
    created_at: datetime = field(default_factory=utc_now)
    updated_at: datetime = field(default_factory=utc_now)

    @classmethod
    def create(
        cls,
        *,
        email: str,
        password_hash: str,
        name: Optional[str] = None,
        role: Role = Role.USER,
    ) -> "Account":
        now = utc_now()
        return cls(
            id=new_identifier(),
            email=normalize_email(email),
            password_hash=password_hash,
            name=name,
            role=role,
            created_at=now,
            updated_at=now,
        )

    def with_name(self, name: Optional[str]) -> "Account":
        return replace(self, name=name, updated_at=utc_now())

    def with_email(self, email: str) -> "Account":
        return replace(self, email=normalize_email(email), updated_at=utc_now())

    def with_role(self, role: Role) -> "Account":
        return replace(self, role=role, updated_at=utc_now())


@dataclass(frozen=True)
class TokenClaims:
    """Verified claims carried by an access or refresh token."""

    subject: str
    issued_at: datetime
    expires_at: datetime


@dataclass(frozen=True)
class Book:
    id: str
    title: str
    author: str
    isbn: str
    quantity: int = 0
    publisher: Optional[str] = None
    publish_year: Optional[int] = None
    description: Optional[str] = None
    price: Optional[float] = None
    image_url: Optional[str] = None
    category: Optional[str] = None
    created_at: datetime = field(default_factory=utc_now)
    updated_at: datetime = field(default_factory=utc_now)

    @property
    def is_available(self) -> bool:
        return self.quantity > 0

    def with_changes(self, **changes: object) -> "Book":
        return replace(self, **changes, updated_at=utc_now())  # type: ignore[arg-type]


__all__ = [
    "Account",
    "Book",
    "Role",
    "TokenClaims",
    "new_identifier",
    "normalize_email",
    "utc_now",
]
