"""
API models and schemas for the library book API.
"""

from datetime import datetime
from typing import Any, Dict, List, Optional

from pydantic import AliasChoices, BaseModel, ConfigDict, Field, ValidationError, field_validator, model_validator

from api.errors import BookValidationError, InvalidBookIdError

REQUIRED_FIELDS_MESSAGE = "Missing required fields. Please provide id, title, author, and quantity"
QUANTITY_MESSAGE = "Quantity must be a non-negative number"

# BSON integers are signed 64-bit
MAX_INT64 = 2 ** 63 - 1
MIN_INT64 = -(2 ** 63)


def parse_book_id(raw: Any) -> int:
    """
    Parse a book identifier from a path segment or JSON value.

    Args:
        raw: Integer, integral float, or string holding an integer literal,
            within the signed 64-bit range

    Returns:
        The integer primary key

    Raises:
        InvalidBookIdError: If the value cannot be read as a book key
    """
    book_id = None
    if isinstance(raw, bool):
        raise InvalidBookIdError(raw)
    if isinstance(raw, int):
        book_id = raw
    elif isinstance(raw, float) and raw.is_integer():
        book_id = int(raw)
    elif isinstance(raw, str):
        try:
            book_id = int(raw.strip())
        except ValueError:
            pass

    if book_id is None or not MIN_INT64 <= book_id <= MAX_INT64:
        raise InvalidBookIdError(raw)
    return book_id


def describe_validation_error(error: ValidationError) -> str:
    """Flatten a pydantic ValidationError into a client-facing message."""
    parts = []
    for item in error.errors():
        location = ".".join(str(part) for part in item.get("loc", ()))
        parts.append(f"{location}: {item['msg']}" if location else item["msg"])
    return "; ".join(parts)


def check_new_book_payload(payload: Dict[str, Any]) -> None:
    """
    Presence and type checks run before a create reaches the store.

    Zero is a present value for both ``id`` and ``quantity``.
    """
    for field in ("id", "title", "author"):
        value = payload.get(field)
        if value is None or value == "":
            raise BookValidationError(REQUIRED_FIELDS_MESSAGE)
    if payload.get("quantity") is None:
        raise BookValidationError(REQUIRED_FIELDS_MESSAGE)

    quantity = payload["quantity"]
    if isinstance(quantity, bool) or not isinstance(quantity, (int, float)) or quantity < 0:
        raise BookValidationError(QUANTITY_MESSAGE)


class Book(BaseModel):
    """Book document as stored in the library collection."""
    id: int = Field(..., validation_alias=AliasChoices("id", "_id"), description="Caller-assigned book identifier")
    title: str = Field(..., min_length=1, description="Book title")
    author: str = Field(..., min_length=1, description="Book author")
    quantity: int = Field(..., ge=0, le=MAX_INT64, description="Copies available")

    model_config = ConfigDict(
        extra="ignore",
        json_schema_extra={
            "example": {"id": 1, "title": "Dune", "author": "Frank Herbert", "quantity": 3}
        },
    )

    @field_validator("id", mode="before")
    @classmethod
    def validate_id(cls, v):
        return parse_book_id(v)

    @field_validator("quantity", mode="before")
    @classmethod
    def reject_bool_quantity(cls, v):
        if isinstance(v, bool):
            raise ValueError(QUANTITY_MESSAGE)
        return v

    def to_document(self) -> Dict[str, Any]:
        """Serialize for MongoDB, keyed by ``_id``."""
        return {"_id": self.id, **self.model_dump(exclude={"id"})}


class BookUpdate(BaseModel):
    """Partial update; only fields present in the request are applied."""
    title: Optional[str] = Field(None, min_length=1)
    author: Optional[str] = Field(None, min_length=1)
    quantity: Optional[int] = Field(None, ge=0, le=MAX_INT64)

    model_config = ConfigDict(extra="ignore")

    @field_validator("quantity", mode="before")
    @classmethod
    def reject_bool_quantity(cls, v):
        if isinstance(v, bool):
            raise ValueError(QUANTITY_MESSAGE)
        return v

    @model_validator(mode="after")
    def reject_nulls(self):
        for name in self.model_fields_set:
            if getattr(self, name) is None:
                raise ValueError(f"{name} is required")
        return self

    def changes(self) -> Dict[str, Any]:
        return self.model_dump(exclude_unset=True)


class LibraryEmptyResponse(BaseModel):
    message: str = Field("Library is empty", description="Empty library notice")
    books: List[Book] = Field(default_factory=list, description="Always empty")


class DeleteResponse(BaseModel):
    message: str = Field("Book deleted successfully", description="Confirmation message")
    book: Book = Field(..., description="The deleted book")


class TakeBooksResult(BaseModel):
    """Outcome lists of a bulk take, in request order."""
    updated: List[Book] = Field(default_factory=list, description="Books whose quantity was decremented")
    not_found: List[str] = Field(default_factory=list, alias="notFound", description="Unknown ids")
    out_of_stock: List[str] = Field(default_factory=list, alias="outOfStock", description="Ids with no copies left")
    failed: List[str] = Field(default_factory=list, description="Ids that raised during lookup or save")

    model_config = ConfigDict(populate_by_name=True)

    @property
    def nothing_taken(self) -> bool:
        """True when no book was updated but some ids were identified as not-found or out-of-stock."""
        return not self.updated and bool(self.not_found or self.out_of_stock)


class TakeBooksFailure(BaseModel):
    """Body returned when no book in a bulk take could be decremented."""
    error: str = Field("No books were updated", description="Error message")
    not_found: List[str] = Field(default_factory=list, alias="notFound")
    out_of_stock: List[str] = Field(default_factory=list, alias="outOfStock")
    failed: List[str] = Field(default_factory=list)

    model_config = ConfigDict(populate_by_name=True)


class MessageResponse(BaseModel):
    message: str = Field(..., description="Message")


class ErrorResponse(BaseModel):
    """Error response model."""
    error: str = Field(..., description="Error message")
    detail: Optional[str] = Field(None, description="Additional error details")
    status_code: int = Field(..., description="HTTP status code")


class HealthResponse(BaseModel):
    """Health check response model."""
    status: str = Field(..., description="Service status")
    timestamp: datetime = Field(..., description="Current timestamp")
    version: str = Field(..., description="API version")
    database_status: str = Field(..., description="Database connection status")
