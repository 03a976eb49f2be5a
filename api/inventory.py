"""
Bulk "take" of books: decrement the quantity of several books by one.

Ids are processed one after another, each as an independent
read-modify-write. Nothing is rolled back when a later id fails, and
concurrent takes on the same id can lose a decrement.
"""

from typing import List

import structlog

from api.database import BookStore
from api.errors import BookNotFoundError
from api.models import TakeBooksResult

logger = structlog.get_logger(__name__)


def split_ids(raw_ids: str) -> List[str]:
    """Split a comma-separated id list, trimming each entry."""
    return [book_id.strip() for book_id in raw_ids.split(",")]


async def take_books(store: BookStore, raw_ids: str) -> TakeBooksResult:
    """
    Take one copy of each requested book.

    Args:
        store: Book store to read from and save to
        raw_ids: Comma-separated book ids, as received in the path

    Returns:
        TakeBooksResult with updated books and the ids that were not found,
        out of stock, or failed
    """
    result = TakeBooksResult()

    for book_id in split_ids(raw_ids):
        try:
            book = await store.find_by_id(book_id)
            if book.quantity <= 0:
                result.out_of_stock.append(book_id)
                continue

            book.quantity -= 1
            result.updated.append(await store.save(book))

        except BookNotFoundError:
            result.not_found.append(book_id)
        except Exception as e:
            logger.error("Failed to take book", book_id=book_id, error=str(e))
            result.failed.append(book_id)

    logger.info("Bulk take completed",
                updated=len(result.updated),
                not_found=len(result.not_found),
                out_of_stock=len(result.out_of_stock),
                failed=len(result.failed))
    return result
