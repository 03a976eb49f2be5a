"""
Pytest configuration and shared fixtures.
"""

from typing import Any, Dict
from unittest.mock import AsyncMock, MagicMock

import pytest
from fastapi.testclient import TestClient
from pydantic import ValidationError

from api.database import BookStore
from api.errors import BookNotFoundError, BookValidationError, DuplicateBookError
from api.main import create_app
from api.models import Book, BookUpdate, describe_validation_error, parse_book_id


class InMemoryBookStore(BookStore):
    """BookStore stand-in that keeps documents in a dict instead of MongoDB."""

    def __init__(self):
        super().__init__("mongodb://unused", "library", "library")
        self.documents: Dict[int, Dict[str, Any]] = {}

    async def connect(self) -> None:
        pass

    async def disconnect(self) -> None:
        pass

    async def find_all(self):
        return [Book.model_validate(self.documents[key]) for key in sorted(self.documents)]

    async def find_by_id(self, raw_id):
        book_id = parse_book_id(raw_id)
        if book_id not in self.documents:
            raise BookNotFoundError(book_id)
        return Book.model_validate(self.documents[book_id])

    async def create(self, payload):
        try:
            book = Book.model_validate(payload)
        except ValidationError as e:
            raise BookValidationError(describe_validation_error(e)) from e
        if book.id in self.documents:
            raise DuplicateBookError(book.id)
        self.documents[book.id] = book.to_document()
        return book

    async def find_by_id_and_update(self, raw_id, changes):
        book_id = parse_book_id(raw_id)
        try:
            fields = BookUpdate.model_validate(changes).changes()
        except ValidationError as e:
            raise BookValidationError(describe_validation_error(e)) from e
        if book_id not in self.documents:
            raise BookNotFoundError(book_id)
        self.documents[book_id].update(fields)
        return Book.model_validate(self.documents[book_id])

    async def find_by_id_and_delete(self, raw_id):
        book_id = parse_book_id(raw_id)
        if book_id not in self.documents:
            raise BookNotFoundError(book_id)
        return Book.model_validate(self.documents.pop(book_id))

    async def save(self, book):
        try:
            book = Book.model_validate(book.model_dump())
        except ValidationError as e:
            raise BookValidationError(describe_validation_error(e)) from e
        if book.id not in self.documents:
            raise BookNotFoundError(book.id)
        self.documents[book.id] = book.to_document()
        return book

    async def health_check(self):
        return {"status": "healthy", "books_count": len(self.documents)}

    def seed(self, *books: Book) -> None:
        for book in books:
            self.documents[book.id] = book.to_document()


@pytest.fixture
def sample_book():
    """A book with copies in stock."""
    return Book(id=1, title="Dune", author="Frank Herbert", quantity=3)


@pytest.fixture
def sample_book_payload():
    """Valid create payload."""
    return {"id": 7, "title": "Emma", "author": "Jane Austen", "quantity": 2}


@pytest.fixture
def memory_store():
    """Empty in-memory book store."""
    return InMemoryBookStore()


@pytest.fixture
def client(memory_store):
    """Test client wired to the in-memory store."""
    return TestClient(create_app(store=memory_store))


@pytest.fixture
def mock_collection():
    """Mock motor collection with async CRUD methods."""
    collection = MagicMock()
    collection.find_one = AsyncMock(return_value=None)
    collection.insert_one = AsyncMock()
    collection.find_one_and_update = AsyncMock(return_value=None)
    collection.find_one_and_delete = AsyncMock(return_value=None)
    collection.replace_one = AsyncMock(return_value=MagicMock(matched_count=1))
    collection.count_documents = AsyncMock(return_value=0)
    collection.database.command = AsyncMock(return_value={"ok": 1})

    cursor = MagicMock()
    cursor.to_list = AsyncMock(return_value=[])
    collection.find.return_value.sort.return_value = cursor
    return collection


@pytest.fixture
def book_store(mock_collection):
    """BookStore bound to a mocked collection."""
    store = BookStore("mongodb://localhost:27017", "library", "library")
    store.collection = mock_collection
    return store
