"""SQLite-backed persistence for accounts and books."""
from __future__ import annotations

import sqlite3
from contextlib import contextmanager
from dataclasses import replace
from datetime import datetime
from pathlib import Path
from typing import Any, Dict, Iterator, List, Optional

from .errors import ConflictError, NotFoundError
from .models import Account, Book, Role, normalize_email

_BOOK_COLUMNS = (
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
)


def _ensure_directory(path: Path) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)


def _serialize_datetime(value: datetime) -> str:
    return value.isoformat()


def _parse_datetime(value: str) -> datetime:
    return datetime.fromisoformat(value)


class Database:
    """Simple wrapper around SQLite for persisting accounts and books.

    A new connection is opened for every call so the instance can be shared
    between worker threads. Email and ISBN uniqueness is enforced by the
    schema; callers receive :class:`ConflictError` when a write loses a race.
    """

    def __init__(self, path: Path) -> None:
        _ensure_directory(path)
        self._path = path

    def _connect(self) -> sqlite3.Connection:
        conn = sqlite3.connect(self._path, check_same_thread=False)
        conn.row_factory = sqlite3.Row
        conn.execute("PRAGMA foreign_keys = ON")
        return conn

    @contextmanager
    def _connection(self) -> Iterator[sqlite3.Connection]:
        conn = self._connect()
        try:
            with conn:
                yield conn
        finally:
            conn.close()

    def initialize(self) -> None:
        """Create the required tables if they do not already exist."""

        with self._connection() as conn:
            conn.executescript(
                """
                CREATE TABLE IF NOT EXISTS users (
                    id TEXT PRIMARY KEY,
                    email TEXT NOT NULL UNIQUE,
                    name TEXT,
                    password_hash TEXT NOT NULL,
                    role TEXT NOT NULL DEFAULT 'USER',
                    created_at TEXT NOT NULL,
                    updated_at TEXT NOT NULL
                );

                CREATE TABLE IF NOT EXISTS books (
                    id TEXT PRIMARY KEY,
                    title TEXT NOT NULL,
                    author TEXT NOT NULL,
                    isbn TEXT NOT NULL UNIQUE,
                    publisher TEXT,
                    publish_year INTEGER,
                    description TEXT,
                    quantity INTEGER NOT NULL DEFAULT 0,
                    price REAL,
                    image_url TEXT,
                    category TEXT,
                    created_at TEXT NOT NULL,
                    updated_at TEXT NOT NULL
                );

                CREATE INDEX IF NOT EXISTS idx_books_created_at ON books(created_at);
                """
            )

    # ------------------------------------------------------------------
    # Account directory
    # ------------------------------------------------------------------
    def create_account(self, account: Account) -> Account:
        """Insert ``account``; raise :class:`ConflictError` if the email is taken."""

        with self._connection() as conn:
            try:
                conn.execute(
                    """
                    INSERT INTO users (id, email, name, password_hash, role, created_at, updated_at)
                    VALUES (?, ?, ?, ?, ?, ?, ?)
                    """,
                    (
                        account.id,
                        normalize_email(account.email),
                        account.name,
                        account.password_hash,
                        account.role.value,
                        _serialize_datetime(account.created_at),
                        _serialize_datetime(account.updated_at),
                    ),
                )
            except sqlite3.IntegrityError as exc:
                raise ConflictError("A user with that email already exists") from exc

        created = self.find_account_by_id(account.id)
        if created is None:
            raise RuntimeError("Failed to load account after creation")
        return created

    def find_account_by_id(self, account_id: str) -> Optional[Account]:
        with self._connection() as conn:
            row = conn.execute("SELECT * FROM users WHERE id = ?", (account_id,)).fetchone()
        if row is None:
            return None
        return self._row_to_account(row)

    def find_account_by_email(self, email: str) -> Optional[Account]:
        with self._connection() as conn:
            row = conn.execute(
                "SELECT * FROM users WHERE email = ?",
                (normalize_email(email),),
            ).fetchone()
        if row is None:
            return None
        return self._row_to_account(row)

    def list_accounts(self) -> List[Account]:
        with self._connection() as conn:
            rows = conn.execute("SELECT * FROM users ORDER BY created_at").fetchall()
        return [self._row_to_account(row) for row in rows]

    def update_account(self, account: Account) -> Account:
        """Persist the mutable fields of ``account``."""

        with self._connection() as conn:
            try:
                cursor = conn.execute(
                    """
                    UPDATE users
                       SET email = ?, name = ?, password_hash = ?, role = ?, updated_at = ?
                     WHERE id = ?
                    """,
                    (
                        normalize_email(account.email),
                        account.name,
                        account.password_hash,
                        account.role.value,
                        _serialize_datetime(account.updated_at),
                        account.id,
                    ),
                )
            except sqlite3.IntegrityError as exc:
                raise ConflictError("A user with that email already exists") from exc
            if cursor.rowcount == 0:
                raise NotFoundError("User not found")

        refreshed = self.find_account_by_id(account.id)
        if refreshed is None:
            raise NotFoundError("User not found")
        return refreshed

    def delete_account(self, account_id: str) -> None:
        with self._connection() as conn:
            cursor = conn.execute("DELETE FROM users WHERE id = ?", (account_id,))
            if cursor.rowcount == 0:
                raise NotFoundError("User not found")

    # ------------------------------------------------------------------
    # Book storage
    # ------------------------------------------------------------------
    def list_books(self) -> List[Book]:
        with self._connection() as conn:
            rows = conn.execute("SELECT * FROM books ORDER BY created_at, title").fetchall()
        return [self._row_to_book(row) for row in rows]

    def find_book_by_id(self, book_id: str) -> Optional[Book]:
        with self._connection() as conn:
            row = conn.execute("SELECT * FROM books WHERE id = ?", (book_id,)).fetchone()
        if row is None:
            return None
        return self._row_to_book(row)

    def find_book_by_isbn(self, isbn: str) -> Optional[Book]:
        with self._connection() as conn:
            row = conn.execute("SELECT * FROM books WHERE isbn = ?", (isbn.strip(),)).fetchone()
        if row is None:
            return None
        return self._row_to_book(row)

    def create_book(self, book: Book) -> Book:
        values = self._book_values(book)
        columns = ["id", *_BOOK_COLUMNS, "created_at", "updated_at"]
        placeholders = ", ".join("?" for _ in columns)
        with self._connection() as conn:
            try:
                conn.execute(
                    f"INSERT INTO books ({', '.join(columns)}) VALUES ({placeholders})",
                    (
                        book.id,
                        *(values[column] for column in _BOOK_COLUMNS),
                        _serialize_datetime(book.created_at),
                        _serialize_datetime(book.updated_at),
                    ),
                )
            except sqlite3.IntegrityError as exc:
                raise ConflictError("A book with that ISBN already exists") from exc

        created = self.find_book_by_id(book.id)
        if created is None:
            raise RuntimeError("Failed to load book after creation")
        return created

    def update_book(self, book: Book) -> Book:
        values = self._book_values(book)
        assignments = ", ".join(f"{column} = ?" for column in _BOOK_COLUMNS)
        with self._connection() as conn:
            try:
                cursor = conn.execute(
                    f"UPDATE books SET {assignments}, updated_at = ? WHERE id = ?",
                    (
                        *(values[column] for column in _BOOK_COLUMNS),
                        _serialize_datetime(book.updated_at),
                        book.id,
                    ),
                )
            except sqlite3.IntegrityError as exc:
                raise ConflictError("A book with that ISBN already exists") from exc
            if cursor.rowcount == 0:
                raise NotFoundError("Book not found")

        refreshed = self.find_book_by_id(book.id)
        if refreshed is None:
            raise NotFoundError("Book not found")
        return refreshed

    def delete_book(self, book_id: str) -> None:
        with self._connection() as conn:
            cursor = conn.execute("DELETE FROM books WHERE id = ?", (book_id,))
            if cursor.rowcount == 0:
                raise NotFoundError("Book not found")

    # ------------------------------------------------------------------
    # Internal helpers
    # ------------------------------------------------------------------
    def _row_to_account(self, row: sqlite3.Row) -> Account:
        return Account(
            id=str(row["id"]),
            email=str(row["email"]),
            name=row["name"],
            password_hash=str(row["password_hash"]),
            role=Role(str(row["role"])),
            created_at=_parse_datetime(str(row["created_at"])),
            updated_at=_parse_datetime(str(row["updated_at"])),
        )

    def _row_to_book(self, row: sqlite3.Row) -> Book:
        return Book(
            id=str(row["id"]),
            title=str(row["title"]),
            author=str(row["author"]),
            isbn=str(row["isbn"]),
            publisher=row["publisher"],
            publish_year=row["publish_year"],
            description=row["description"],
            quantity=int(row["quantity"]),
            price=row["price"],
            image_url=row["image_url"],
            category=row["category"],
            created_at=_parse_datetime(str(row["created_at"])),
            updated_at=_parse_datetime(str(row["updated_at"])),
        )

    @staticmethod
    def _book_values(book: Book) -> Dict[str, Any]:
        normalized = replace(book, isbn=book.isbn.strip())
        return {column: getattr(normalized, column) for column in _BOOK_COLUMNS}


__all__ = ["Database"]
