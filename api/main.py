"""
FastAPI main application for the Library Book API.
"""

from contextlib import asynccontextmanager
from datetime import datetime
from typing import Any, Dict, Optional

import structlog
from fastapi import Body, Depends, FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from api.config import config as api_config
from api.database import BookStore
from api.errors import StoreError, StoreUnavailableError
from api.inventory import take_books
from api.models import (
    DeleteResponse, ErrorResponse, HealthResponse, LibraryEmptyResponse,
    MessageResponse, TakeBooksFailure, check_new_book_payload
)

# Setup logging
logger = structlog.get_logger(__name__)

WELCOME_MESSAGE = "WELCOME TO REST API PROJECT"


def error_response(status_code: int, message: str) -> JSONResponse:
    return JSONResponse(
        status_code=status_code,
        content=ErrorResponse(error=message, status_code=status_code).model_dump()
    )


def get_store(request: Request) -> BookStore:
    """Resolve the store handle attached to the running application."""
    store = request.app.state.store
    if store is None:
        raise StoreUnavailableError()
    return store


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan manager."""
    # Startup
    logger.info("Starting Library Book API")

    owns_store = app.state.store is None
    if owns_store:
        if not api_config.mongodb_url:
            logger.error("MONGODB_URL is not defined in environment variables")
            raise StoreUnavailableError("MONGODB_URL is not defined")

        store = BookStore(
            connection_url=api_config.mongodb_url,
            database_name=api_config.mongodb_database,
            collection_name=api_config.mongodb_collection,
            timeout_ms=api_config.mongodb_timeout_ms,
        )
        # A failed ping aborts startup
        await store.connect()
        logger.info("Database connection established")
        app.state.store = store

    yield

    # Shutdown
    logger.info("Shutting down Library Book API")
    if owns_store and app.state.store:
        await app.state.store.disconnect()
        app.state.store = None


# Exception handlers
async def store_exception_handler(request: Request, exc: StoreError):
    """Map typed store errors to their status codes."""
    if exc.status_code >= status.HTTP_500_INTERNAL_SERVER_ERROR:
        logger.error("Store error", error=str(exc.__cause__ or exc), path=request.url.path)
    return error_response(exc.status_code, exc.message)


async def validation_exception_handler(request: Request, exc: RequestValidationError):
    """Malformed or missing JSON bodies are client errors."""
    logger.warning("Invalid request body", path=request.url.path, errors=len(exc.errors()))
    return error_response(status.HTTP_400_BAD_REQUEST, "Request body must be a JSON object")


async def general_exception_handler(request: Request, exc: Exception):
    """Handle general exceptions."""
    logger.error("Unhandled exception", error=str(exc), path=request.url.path)
    return error_response(status.HTTP_500_INTERNAL_SERVER_ERROR, "Internal server error")


async def welcome():
    """Liveness and welcome message."""
    return MessageResponse(message=WELCOME_MESSAGE)


async def health_check(request: Request):
    """Health check endpoint."""
    store = request.app.state.store
    db_status = "unavailable"
    if store is not None:
        health_info = await store.health_check()
        db_status = health_info.get("status", "unknown")

    return HealthResponse(
        status="healthy" if db_status == "healthy" else "degraded",
        timestamp=datetime.utcnow(),
        version=api_config.api_version,
        database_status=db_status
    )


async def get_books(store: BookStore = Depends(get_store)):
    """
    Get every book in the library.

    An empty library is a successful response with an explicit empty list.
    """
    books = await store.find_all()
    if not books:
        return JSONResponse(content=LibraryEmptyResponse().model_dump())
    return JSONResponse(content=[book.model_dump() for book in books])


async def get_book(book_id: str, store: BookStore = Depends(get_store)):
    """Get a single book by ID."""
    book = await store.find_by_id(book_id)
    return JSONResponse(content=book.model_dump())


async def create_book(
    payload: Dict[str, Any] = Body(...),
    store: BookStore = Depends(get_store)
):
    """
    Create a book.

    - **id**: caller-assigned integer identifier
    - **title**, **author**: non-empty strings
    - **quantity**: non-negative integer
    """
    check_new_book_payload(payload)
    book = await store.create(payload)
    logger.info("Book created", book_id=book.id)
    return JSONResponse(status_code=status.HTTP_201_CREATED, content=book.model_dump())


async def update_book(
    book_id: str,
    payload: Dict[str, Any] = Body(...),
    store: BookStore = Depends(get_store)
):
    """Update any subset of title, author and quantity."""
    book = await store.find_by_id_and_update(book_id, payload)
    logger.info("Book updated", book_id=book.id)
    return JSONResponse(content=book.model_dump())


async def delete_book(book_id: str, store: BookStore = Depends(get_store)):
    """Delete a book and return what was removed."""
    book = await store.find_by_id_and_delete(book_id)
    logger.info("Book deleted", book_id=book.id)
    return JSONResponse(content=DeleteResponse(book=book).model_dump())


async def take_book(ids: str, store: BookStore = Depends(get_store)):
    """
    Take one copy of each book in a comma-separated id list.

    Responds 400 when nothing was taken and at least one id was unknown or
    out of stock; otherwise 200 with all outcome lists.
    """
    result = await take_books(store, ids)
    if result.nothing_taken:
        failure = TakeBooksFailure(
            not_found=result.not_found,
            out_of_stock=result.out_of_stock,
            failed=result.failed
        )
        return JSONResponse(
            status_code=status.HTTP_400_BAD_REQUEST,
            content=failure.model_dump(by_alias=True)
        )
    return JSONResponse(content=result.model_dump(by_alias=True))


def create_app(store: Optional[BookStore] = None) -> FastAPI:
    """
    Build the application.

    Args:
        store: Pre-built store handle. When omitted, the lifespan hook
            connects a BookStore from configuration before serving.
    """
    app = FastAPI(
        title=api_config.api_title,
        description=api_config.api_description,
        version=api_config.api_version,
        lifespan=lifespan
    )
    app.state.store = store

    # Add CORS middleware
    app.add_middleware(
        CORSMiddleware,
        allow_origins=api_config.cors_origins,
        allow_credentials=api_config.cors_allow_credentials,
        allow_methods=api_config.cors_allow_methods,
        allow_headers=api_config.cors_allow_headers,
    )

    app.add_exception_handler(StoreError, store_exception_handler)
    app.add_exception_handler(RequestValidationError, validation_exception_handler)
    app.add_exception_handler(Exception, general_exception_handler)

    app.add_api_route("/", welcome, methods=["GET"], response_model=MessageResponse, tags=["General"])
    app.add_api_route("/health", health_check, methods=["GET"], response_model=HealthResponse, tags=["Health"])
    app.add_api_route("/getBooks", get_books, methods=["GET"], tags=["Books"])
    app.add_api_route("/getbook/{book_id}", get_book, methods=["GET"], tags=["Books"])
    app.add_api_route("/postbook", create_book, methods=["POST"],
                      status_code=status.HTTP_201_CREATED, tags=["Books"])
    app.add_api_route("/updatebook/{book_id}", update_book, methods=["PUT"], tags=["Books"])
    app.add_api_route("/deletebook/{book_id}", delete_book, methods=["DELETE"], tags=["Books"])
    app.add_api_route("/takebook/{ids}", take_book, methods=["PUT"], tags=["Books"])

    return app


app = create_app()


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(
        "api.main:app",
        host=api_config.host,
        port=api_config.port,
        reload=api_config.debug,
        log_level=api_config.log_level.lower()
    )
