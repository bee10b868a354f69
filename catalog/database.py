"""
MongoDB connection management for the bookstore.
Owns the Motor client and hands out the users and books collections.
"""

from typing import Any, Dict, Optional

import structlog
from motor.motor_asyncio import AsyncIOMotorClient, AsyncIOMotorCollection, AsyncIOMotorDatabase
from pymongo.errors import ConnectionFailure, PyMongoError

from .books import BookCatalogStore
from .users import UserStore

logger = structlog.get_logger(__name__)

USERS_COLLECTION = "users"
BOOKS_COLLECTION = "books"


class MongoDBManager:
    """
    Async MongoDB manager for the bookstore database.
    Handles connection, indexing, and wiring of the stores.
    """

    def __init__(
        self,
        connection_url: str,
        database_name: str,
        client: Optional[AsyncIOMotorClient] = None
    ):
        """
        Initialize MongoDB manager.

        Args:
            connection_url: MongoDB connection URL
            database_name: Name of the database
            client: Pre-built client, used instead of connecting to connection_url
        """
        self.connection_url = connection_url
        self.database_name = database_name
        self.client: Optional[AsyncIOMotorClient] = client
        self.database: Optional[AsyncIOMotorDatabase] = None
        if client is not None:
            self.database = client[database_name]

    async def connect(self) -> None:
        """Establish connection to MongoDB and make sure indexes exist."""
        try:
            if self.client is None:
                self.client = AsyncIOMotorClient(self.connection_url)
            self.database = self.client[self.database_name]

            # Test connection
            await self.client.admin.command('ping')
            logger.info("Successfully connected to MongoDB", database=self.database_name)

            await self.create_indexes()

        except ConnectionFailure as e:
            logger.error("Failed to connect to MongoDB", error=str(e))
            raise

    async def disconnect(self) -> None:
        """Close MongoDB connection."""
        if self.client:
            self.client.close()
            logger.info("Disconnected from MongoDB")

    @property
    def users(self) -> AsyncIOMotorCollection:
        return self._require_database()[USERS_COLLECTION]

    @property
    def books(self) -> AsyncIOMotorCollection:
        return self._require_database()[BOOKS_COLLECTION]

    def _require_database(self) -> AsyncIOMotorDatabase:
        if self.database is None:
            raise RuntimeError("MongoDBManager is not connected")
        return self.database

    def user_store(self) -> UserStore:
        return UserStore(self.users, self.books)

    def book_store(self) -> BookCatalogStore:
        return BookCatalogStore(self.books, self.user_store())

    async def create_indexes(self) -> None:
        """Create indexes for both collections."""
        await self.user_store().create_indexes()
        await self.book_store().create_indexes()
        logger.info("Successfully created MongoDB indexes")

    async def health_check(self) -> Dict[str, Any]:
        """
        Perform database health check.

        Returns:
            Dictionary with health status
        """
        try:
            await self._require_database().command("ping")

            users_count = await self.users.count_documents({})
            books_count = await self.books.count_documents({})

            return {
                "status": "healthy",
                "users_count": users_count,
                "books_count": books_count
            }
        except (PyMongoError, RuntimeError) as e:
            logger.error("Database health check failed", error=str(e))
            return {
                "status": "unhealthy",
                "error": str(e)
            }
