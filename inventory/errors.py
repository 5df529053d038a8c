"""Exceptions raised by the inventory services.

Every error carries the HTTP status code the API reports for it. Messages on
credential and token failures do not say which check failed.
"""

from __future__ import annotations


class InventoryError(Exception):
    """Base class for errors surfaced to API clients."""

    status_code = 500
    default_message = "Internal Server Error"

    def __init__(self, message: str | None = None) -> None:
        self.message = message or self.default_message
        super().__init__(self.message)


class BadRequestError(InventoryError):
    status_code = 400
    default_message = "Bad request"


class AccountExistsError(InventoryError):
    status_code = 400
    default_message = "User with this email already exists"


class BookExistsError(InventoryError):
    status_code = 400
    default_message = "Book with this ISBN already exists"


class InvalidCredentialsError(InventoryError):
    status_code = 401
    default_message = "Invalid email or password"


class InvalidTokenError(InventoryError):
    status_code = 401
    default_message = "Invalid token"


class NotFoundError(InventoryError):
    status_code = 404
    default_message = "Not Found"


class ConflictError(InventoryError):
    """Raised by the storage layer when a uniqueness constraint rejects a write."""

    status_code = 409
    default_message = "Conflict"


class InternalError(InventoryError):
    status_code = 500


__all__ = [
    "AccountExistsError",
    "BadRequestError",
    "BookExistsError",
    "ConflictError",
    "InternalError",
    "InvalidCredentialsError",
    "InvalidTokenError",
    "InventoryError",
    "NotFoundError",
]
