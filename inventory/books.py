"""Book catalog operations used by the protected ``/api/books`` routes."""

from __future__ import annotations

import logging
from dataclasses import asdict, dataclass
from typing import Any, List, Mapping, Optional

import anyio

from .database import Database
from .errors import BookExistsError, ConflictError, NotFoundError
from .models import Book, new_identifier, utc_now

logger = logging.getLogger("inventory.books")

UPDATABLE_FIELDS = frozenset(
    {
        "title",
        "author",
        "isbn",
        "publisher",
        "publish_year",
        "description",
        "quantity",
        "price",
        "image_url",
        "category",
    }
)


@dataclass(frozen=True)
class CreateBookCommand:
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


class BookCatalog:
    def __init__(self, database: Database) -> None:
        self._database = database

    async def list_books(self) -> List[Book]:
        return await anyio.to_thread.run_sync(self._database.list_books)

    async def get_book(self, book_id: str) -> Book:
        book = await anyio.to_thread.run_sync(self._database.find_book_by_id, book_id)
        if book is None:
            raise NotFoundError("Book not found")
        return book

    async def create_book(self, command: CreateBookCommand) -> Book:
        isbn = command.isbn.strip()
        existing = await anyio.to_thread.run_sync(self._database.find_book_by_isbn, isbn)
        if existing is not None:
            raise BookExistsError()

        now = utc_now()
        fields = asdict(command)
        fields["isbn"] = isbn
        book = Book(id=new_identifier(), created_at=now, updated_at=now, **fields)

        try:
            created = await anyio.to_thread.run_sync(self._database.create_book, book)
        except ConflictError as exc:
            raise BookExistsError() from exc

        logger.info("Created book %s (%s)", created.id, created.isbn)
        return created

    async def update_book(self, book_id: str, changes: Mapping[str, Any]) -> Book:
        """Apply ``changes`` to an existing book.

        Only keys present in ``changes`` are modified; unknown keys raise
        :class:`ValueError`.
        """

        unknown = set(changes) - UPDATABLE_FIELDS
        if unknown:
            raise ValueError(f"Unknown book fields: {', '.join(sorted(unknown))}")

        book = await self.get_book(book_id)
        updates = dict(changes)

        isbn = updates.get("isbn")
        if isbn is not None:
            updates["isbn"] = isbn.strip()
            if updates["isbn"] != book.isbn:
                other = await anyio.to_thread.run_sync(self._database.find_book_by_isbn, updates["isbn"])
                if other is not None and other.id != book.id:
                    raise BookExistsError()

        try:
            updated = await anyio.to_thread.run_sync(self._database.update_book, book.with_changes(**updates))
        except ConflictError as exc:
            raise BookExistsError() from exc

        logger.info("Updated book %s", updated.id)
        return updated

    async def delete_book(self, book_id: str) -> None:
        await anyio.to_thread.run_sync(self._database.delete_book, book_id)
        logger.info("Deleted book %s", book_id)


__all__ = ["BookCatalog", "CreateBookCommand", "UPDATABLE_FIELDS"]
