"""
Typed errors raised by the book store and mapped to HTTP responses.
"""

from typing import Optional

from fastapi import status


class StoreError(Exception):
    """Base class for document store failures."""

    status_code: int = status.HTTP_500_INTERNAL_SERVER_ERROR
    message: str = "Internal server error"

    def __init__(self, message: Optional[str] = None):
        self.message = message or self.message
        super().__init__(self.message)


class InvalidBookIdError(StoreError):
    """Identifier could not be parsed as a book key."""

    status_code = status.HTTP_400_BAD_REQUEST
    message = "Invalid book ID format"

    def __init__(self, book_id=None):
        self.book_id = book_id
        super().__init__()


class BookValidationError(StoreError):
    """Document failed the book schema."""

    status_code = status.HTTP_400_BAD_REQUEST


class BookNotFoundError(StoreError):
    status_code = status.HTTP_404_NOT_FOUND

    def __init__(self, book_id):
        self.book_id = book_id
        super().__init__(f"No book found with ID {book_id}")


class DuplicateBookError(StoreError):
    status_code = status.HTTP_409_CONFLICT
    message = "Book with this ID already exists"

    def __init__(self, book_id=None):
        self.book_id = book_id
        super().__init__()


class StoreUnavailableError(StoreError):
    """Store could not be reached or was never connected."""

    message = "Database service not available"
