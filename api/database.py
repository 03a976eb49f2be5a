"""
MongoDB book store for the library API.
Handles connection, schema validation, and CRUD operations on the book collection.
"""

from typing import Any, Dict, List, Optional

import structlog
from motor.motor_asyncio import AsyncIOMotorClient, AsyncIOMotorCollection, AsyncIOMotorDatabase
from pydantic import ValidationError
from pymongo import ReturnDocument
from pymongo.errors import DuplicateKeyError, PyMongoError

from api.errors import (
    BookNotFoundError,
    BookValidationError,
    DuplicateBookError,
    StoreError,
    StoreUnavailableError,
)
from api.models import Book, BookUpdate, describe_validation_error, parse_book_id

logger = structlog.get_logger(__name__)


class BookStore:
    """
    Async MongoDB store for book documents.

    Every lookup parses its identifier first, so a malformed key surfaces as
    InvalidBookIdError before any query is sent. Driver errors that are not
    otherwise classified surface as StoreError.
    """

    def __init__(
        self,
        connection_url: str,
        database_name: str,
        collection_name: str,
        timeout_ms: int = 5000,
    ):
        """
        Initialize the book store.

        Args:
            connection_url: MongoDB connection URL
            database_name: Name of the database
            collection_name: Name of the book collection
            timeout_ms: Server selection timeout in milliseconds
        """
        self.connection_url = connection_url
        self.database_name = database_name
        self.collection_name = collection_name
        self.timeout_ms = timeout_ms
        self.client: Optional[AsyncIOMotorClient] = None
        self.database: Optional[AsyncIOMotorDatabase] = None
        self.collection: Optional[AsyncIOMotorCollection] = None

    async def connect(self) -> None:
        """Establish connection to MongoDB and verify it with a ping."""
        try:
            self.client = AsyncIOMotorClient(
                self.connection_url, serverSelectionTimeoutMS=self.timeout_ms
            )
            self.database = self.client[self.database_name]
            self.collection = self.database[self.collection_name]

            await self.client.admin.command("ping")
            logger.info("Successfully connected to MongoDB",
                        database=self.database_name,
                        collection=self.collection_name)

        except PyMongoError as e:
            logger.error("Failed to connect to MongoDB", error=str(e))
            raise StoreUnavailableError() from e

    async def disconnect(self) -> None:
        """Close MongoDB connection."""
        if self.client:
            self.client.close()
            logger.info("Disconnected from MongoDB")

    def _books(self) -> AsyncIOMotorCollection:
        if self.collection is None:
            raise StoreUnavailableError()
        return self.collection

    async def find_all(self) -> List[Book]:
        """Get every book, ordered by id."""
        try:
            cursor = self._books().find({}).sort("_id", 1)
            documents = await cursor.to_list(length=None)
        except PyMongoError as e:
            logger.error("Failed to get books", error=str(e))
            raise StoreError() from e

        return [Book.model_validate(document) for document in documents]

    async def find_by_id(self, raw_id: Any) -> Book:
        """
        Get a single book by ID.

        Args:
            raw_id: Book identifier, as received from the client

        Returns:
            The stored Book

        Raises:
            InvalidBookIdError: If the identifier is malformed
            BookNotFoundError: If no book has this identifier
        """
        book_id = parse_book_id(raw_id)
        try:
            document = await self._books().find_one({"_id": book_id})
        except PyMongoError as e:
            logger.error("Failed to get book by ID", book_id=book_id, error=str(e))
            raise StoreError() from e

        if document is None:
            raise BookNotFoundError(book_id)
        return Book.model_validate(document)

    async def create(self, payload: Dict[str, Any]) -> Book:
        """
        Validate a payload against the book schema and insert it.

        Raises:
            BookValidationError: If the payload violates the schema
            DuplicateBookError: If a book with the same id exists
        """
        try:
            book = Book.model_validate(payload)
        except ValidationError as e:
            raise BookValidationError(describe_validation_error(e)) from e

        try:
            await self._books().insert_one(book.to_document())
        except DuplicateKeyError as e:
            logger.warning("Book already exists", book_id=book.id)
            raise DuplicateBookError(book.id) from e
        except PyMongoError as e:
            logger.error("Failed to insert book", book_id=book.id, error=str(e))
            raise StoreError("Error saving the data") from e

        logger.debug("Successfully inserted book", book_id=book.id, title=book.title)
        return book

    async def find_by_id_and_update(self, raw_id: Any, changes: Dict[str, Any]) -> Book:
        """
        Apply a partial update and return the post-update document.

        Args:
            raw_id: Book identifier, as received from the client
            changes: Fields to set; unknown keys and ``id`` are ignored

        Returns:
            The updated Book
        """
        book_id = parse_book_id(raw_id)
        try:
            fields = BookUpdate.model_validate(changes).changes()
        except ValidationError as e:
            raise BookValidationError(describe_validation_error(e)) from e

        if not fields:
            return await self.find_by_id(book_id)

        try:
            document = await self._books().find_one_and_update(
                {"_id": book_id},
                {"$set": fields},
                return_document=ReturnDocument.AFTER,
            )
        except PyMongoError as e:
            logger.error("Failed to update book", book_id=book_id, error=str(e))
            raise StoreError() from e

        if document is None:
            logger.warning("Book not found for update", book_id=book_id)
            raise BookNotFoundError(book_id)

        logger.debug("Successfully updated book", book_id=book_id, fields=sorted(fields))
        return Book.model_validate(document)

    async def find_by_id_and_delete(self, raw_id: Any) -> Book:
        """Remove a book and return the deleted document."""
        book_id = parse_book_id(raw_id)
        try:
            document = await self._books().find_one_and_delete({"_id": book_id})
        except PyMongoError as e:
            logger.error("Failed to delete book", book_id=book_id, error=str(e))
            raise StoreError() from e

        if document is None:
            logger.warning("Book not found for deletion", book_id=book_id)
            raise BookNotFoundError(book_id)

        logger.debug("Successfully deleted book", book_id=book_id)
        return Book.model_validate(document)

    async def save(self, book: Book) -> Book:
        """
        Persist a book mutated in memory, re-validating it first.

        Raises:
            BookValidationError: If the mutation broke the schema
            BookNotFoundError: If the document was deleted in the meantime
        """
        try:
            book = Book.model_validate(book.model_dump())
        except ValidationError as e:
            raise BookValidationError(describe_validation_error(e)) from e

        try:
            result = await self._books().replace_one({"_id": book.id}, book.to_document())
        except PyMongoError as e:
            logger.error("Failed to save book", book_id=book.id, error=str(e))
            raise StoreError() from e

        if result.matched_count == 0:
            raise BookNotFoundError(book.id)
        return book

    async def health_check(self) -> Dict:
        """
        Perform database health check.

        Returns:
            Dictionary with health status
        """
        try:
            await self._books().database.command("ping")
            books_count = await self._books().count_documents({})

            return {
                "status": "healthy",
                "books_collection": "accessible",
                "books_count": books_count
            }
        except (PyMongoError, StoreError) as e:
            logger.error("Database health check failed", error=str(e))
            return {
                "status": "unhealthy",
                "error": str(e)
            }
