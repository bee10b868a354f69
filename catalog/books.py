"""
Book catalog store.
Handles filtered listing, owner-scoped mutation, categories, and stats over the books collection.
"""

import re
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional, Union

import structlog
from motor.motor_asyncio import AsyncIOMotorCollection
from pydantic import ValidationError
from pymongo import ReturnDocument
from pymongo.errors import PyMongoError

from .exceptions import InvalidInputError, StorageError
from .models import Book, BookFields, BookFilter, CatalogStats
from .users import UserStore, to_object_id

logger = structlog.get_logger(__name__)

# Newest first; equal timestamps keep insertion order
LISTING_SORT = [("created_at", -1), ("_id", 1)]


def build_filter_query(book_filter: Optional[BookFilter] = None, owner_id: Optional[str] = None) -> Dict[str, Any]:
    """
    Translate a listing filter into a MongoDB query.

    Args:
        book_filter: Optional filter; absent fields add no constraint
        owner_id: Restrict to books owned by this user

    Returns:
        MongoDB filter document
    """
    query: Dict[str, Any] = {}

    if owner_id is not None:
        query["owner_id"] = owner_id

    if book_filter is None or book_filter.is_empty():
        return query

    if book_filter.search:
        pattern = {"$regex": re.escape(book_filter.search), "$options": "i"}
        query["$or"] = [{"name": pattern}, {"description": pattern}]

    if book_filter.category:
        query["category"] = book_filter.category

    if book_filter.min_price is not None or book_filter.max_price is not None:
        price_filter = {}
        if book_filter.min_price is not None:
            price_filter["$gte"] = float(book_filter.min_price)
        if book_filter.max_price is not None:
            price_filter["$lte"] = float(book_filter.max_price)
        query["price"] = price_filter

    return query


def _coerce_fields(fields: Union[BookFields, Dict[str, Any]]) -> BookFields:
    if isinstance(fields, BookFields):
        return fields
    try:
        return BookFields.model_validate(fields)
    except ValidationError as e:
        raise InvalidInputError(f"Invalid book fields: {e.error_count()} validation error(s)") from e


class BookCatalogStore:
    """
    MongoDB-backed book catalog.

    Listing is global; mutation is always scoped by a single
    ``_id == target AND owner_id == requester`` predicate, so a book that
    belongs to someone else looks exactly like a missing one.
    """

    def __init__(self, books: AsyncIOMotorCollection, users: UserStore):
        self.books = books
        self.users = users

    async def create_indexes(self) -> None:
        """Create indexes for the listing and ownership query patterns."""
        try:
            await self.books.create_index("owner_id")
            await self.books.create_index("category")
            await self.books.create_index("price")
            await self.books.create_index("name")
            await self.books.create_index([("created_at", -1)])
            await self.books.create_index([("category", 1), ("price", 1)])
        except PyMongoError as e:
            logger.error("Failed to create book indexes", error=str(e))
            raise StorageError("Failed to create book indexes") from e

    async def list_all(self, book_filter: Optional[BookFilter] = None) -> List[Book]:
        """
        List every book matching the filter, newest first.

        Args:
            book_filter: Optional listing filter

        Returns:
            Matching books with their owners attached
        """
        return await self._find(build_filter_query(book_filter))

    async def list_by_owner(self, owner_id: str, book_filter: Optional[BookFilter] = None) -> List[Book]:
        """
        List the books owned by one user, newest first.

        Args:
            owner_id: Owning user
            book_filter: Optional listing filter

        Returns:
            Matching books with their owner attached
        """
        return await self._find(build_filter_query(book_filter, owner_id=owner_id))

    async def get_by_id(self, book_id: str) -> Optional[Book]:
        """Look up a single book regardless of owner."""
        object_id = to_object_id(book_id)
        if object_id is None:
            return None
        try:
            document = await self.books.find_one({"_id": object_id})
        except PyMongoError as e:
            logger.error("Failed to get book by ID", book_id=book_id, error=str(e))
            raise StorageError("Failed to retrieve book") from e

        if document is None:
            return None
        return (await self._attach_owners([document]))[0]

    async def create(self, owner_id: str, fields: Union[BookFields, Dict[str, Any]]) -> Book:
        """
        Create a book owned by ``owner_id``.

        Args:
            owner_id: Authenticated requester; becomes the permanent owner
            fields: Book metadata

        Returns:
            The persisted book as re-read from the store

        Raises:
            InvalidInputError: If the fields fail validation (nothing is written)
        """
        book_fields = _coerce_fields(fields)
        now = datetime.now(timezone.utc)
        document = {
            **book_fields.to_document(),
            "owner_id": owner_id,
            "created_at": now,
            "updated_at": now,
        }
        try:
            result = await self.books.insert_one(document)
        except PyMongoError as e:
            logger.error("Failed to create book", owner_id=owner_id, error=str(e))
            raise StorageError("Failed to create book") from e

        book_id = str(result.inserted_id)
        logger.info("Book created", book_id=book_id, owner_id=owner_id)

        book = await self.get_by_id(book_id)
        if book is None:
            raise StorageError("Book was created but could not be retrieved")
        return book

    async def update(
        self,
        book_id: str,
        owner_id: str,
        fields: Union[BookFields, Dict[str, Any]]
    ) -> Optional[Book]:
        """
        Overwrite every mutable field of a book owned by ``owner_id``.

        The ownership check and the write are one conditional update.

        Returns:
            The updated book, or None if no book with that id is owned by the requester
        """
        book_fields = _coerce_fields(fields)
        object_id = to_object_id(book_id)
        if object_id is None:
            return None

        update_data = book_fields.to_document()
        update_data["updated_at"] = datetime.now(timezone.utc)

        try:
            document = await self.books.find_one_and_update(
                {"_id": object_id, "owner_id": owner_id},
                {"$set": update_data},
                return_document=ReturnDocument.AFTER
            )
        except PyMongoError as e:
            logger.error("Failed to update book", book_id=book_id, error=str(e))
            raise StorageError("Failed to update book") from e

        if document is None:
            logger.warning("Book not found for update", book_id=book_id, owner_id=owner_id)
            return None

        logger.info("Book updated", book_id=book_id, owner_id=owner_id)
        return (await self._attach_owners([document]))[0]

    async def delete(self, book_id: str, owner_id: str) -> bool:
        """
        Delete a book owned by ``owner_id``.

        Returns:
            True if deleted, False if no such book is owned by the requester
        """
        object_id = to_object_id(book_id)
        if object_id is None:
            return False

        try:
            result = await self.books.delete_one({"_id": object_id, "owner_id": owner_id})
        except PyMongoError as e:
            logger.error("Failed to delete book", book_id=book_id, error=str(e))
            raise StorageError("Failed to delete book") from e

        if result.deleted_count == 0:
            logger.warning("Book not found for deletion", book_id=book_id, owner_id=owner_id)
            return False

        logger.info("Book deleted", book_id=book_id, owner_id=owner_id)
        return True

    async def list_categories(self) -> List[str]:
        """Get the sorted list of distinct categories across all owners."""
        try:
            categories = await self.books.distinct("category")
        except PyMongoError as e:
            logger.error("Failed to get categories", error=str(e))
            raise StorageError("Failed to retrieve categories") from e
        return sorted(categories)

    async def compute_stats(self, owner_id: str) -> CatalogStats:
        """Derive count, total value, and category count from the owner's unfiltered listing."""
        books = await self.list_by_owner(owner_id)
        return CatalogStats(
            count=len(books),
            total_value=round(sum(book.price for book in books), 2),
            distinct_categories=len({book.category for book in books})
        )

    async def _find(self, query: Dict[str, Any]) -> List[Book]:
        try:
            cursor = self.books.find(query).sort(LISTING_SORT)
            documents = await cursor.to_list(length=None)
        except PyMongoError as e:
            logger.error("Failed to list books", error=str(e), query=str(query))
            raise StorageError("Failed to retrieve books") from e

        logger.debug("Listed books", count=len(documents))
        return await self._attach_owners(documents)

    async def _attach_owners(self, documents: List[dict]) -> List[Book]:
        owners = await self.users.get_public_views(doc["owner_id"] for doc in documents)
        return [self._document_to_book(doc, owners.get(doc["owner_id"])) for doc in documents]

    @staticmethod
    def _document_to_book(document: dict, owner=None) -> Book:
        return Book(
            id=str(document["_id"]),
            owner_id=document["owner_id"],
            name=document["name"],
            category=document["category"],
            price=document["price"],
            description=document["description"],
            image_url=document.get("image_url"),
            file_url=document.get("file_url"),
            file_name=document.get("file_name"),
            file_size=document.get("file_size"),
            created_at=document["created_at"],
            updated_at=document["updated_at"],
            owner=owner,
        )
