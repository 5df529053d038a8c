from __future__ import annotations

from pathlib import Path

import pytest

from inventory.database import Database
from inventory.errors import ConflictError, NotFoundError
from inventory.models import Account, Book, Role, new_identifier


@pytest.fixture()
def database(tmp_path: Path) -> Database:
    db_path = tmp_path / "inventory.sqlite3"
    db = Database(db_path)
    db.initialize()
    return db


def _account(email: str = "owner@example.com", **kwargs) -> Account:
    return Account.create(email=email, password_hash="$2b$04$opaque", **kwargs)


def _book(isbn: str = "9780000000001", **kwargs) -> Book:
    fields = {"title": "Dune", "author": "Frank Herbert", "quantity": 2}
    fields.update(kwargs)
    return Book(id=new_identifier(), isbn=isbn, **fields)


def test_create_and_find_account(database: Database) -> None:
    created = database.create_account(_account("Owner@Example.com ", name="Owner"))

    assert created.email == "owner@example.com"
    assert created.role is Role.USER
    assert database.find_account_by_id(created.id) == created
    assert database.find_account_by_email("OWNER@example.com") == created
    assert database.find_account_by_email("missing@example.com") is None
    assert database.find_account_by_id("missing") is None


def test_duplicate_email_conflicts(database: Database) -> None:
    database.create_account(_account())

    with pytest.raises(ConflictError):
        database.create_account(_account("OWNER@example.com"))

    assert len(database.list_accounts()) == 1


def test_update_account_persists_changes(database: Database) -> None:
    created = database.create_account(_account())

    updated = database.update_account(created.with_role(Role.ADMIN).with_name("Renamed"))

    assert updated.role is Role.ADMIN
    assert updated.name == "Renamed"
    assert updated.updated_at >= created.updated_at
    assert updated.created_at == created.created_at


def test_update_account_rejects_taken_email(database: Database) -> None:
    database.create_account(_account("first@example.com"))
    second = database.create_account(_account("second@example.com"))

    with pytest.raises(ConflictError):
        database.update_account(second.with_email("first@example.com"))


def test_update_missing_account_raises(database: Database) -> None:
    with pytest.raises(NotFoundError):
        database.update_account(_account())


def test_delete_account(database: Database) -> None:
    created = database.create_account(_account())

    database.delete_account(created.id)

    assert database.find_account_by_id(created.id) is None
    with pytest.raises(NotFoundError):
        database.delete_account(created.id)


def test_book_storage_round_trip(database: Database) -> None:
    book = database.create_book(_book(publisher="Chilton", publish_year=1965, price=9.99))

    assert database.find_book_by_id(book.id) == book
    assert database.find_book_by_isbn("9780000000001") == book
    assert database.list_books() == [book]
    assert book.publish_year == 1965
    assert book.is_available


def test_duplicate_isbn_conflicts(database: Database) -> None:
    database.create_book(_book())

    with pytest.raises(ConflictError):
        database.create_book(_book(title="Another"))


def test_update_and_delete_book(database: Database) -> None:
    book = database.create_book(_book())

    updated = database.update_book(book.with_changes(quantity=0, category="Sci-Fi"))
    assert updated.quantity == 0
    assert updated.category == "Sci-Fi"
    assert not updated.is_available

    database.delete_book(book.id)
    assert database.find_book_by_id(book.id) is None
    with pytest.raises(NotFoundError):
        database.delete_book(book.id)
    with pytest.raises(NotFoundError):
        database.update_book(book)
