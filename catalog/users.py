"""
Identity store: registered users in the MongoDB users collection.
"""

from datetime import datetime, timezone
from typing import Dict, Iterable, Optional

import structlog
from bson import ObjectId
from bson.errors import InvalidId
from motor.motor_asyncio import AsyncIOMotorCollection
from pymongo.errors import DuplicateKeyError, PyMongoError

from .exceptions import DuplicateEmailError, StorageError
from .models import User, UserPublic

logger = structlog.get_logger(__name__)


def to_object_id(value: Optional[str]) -> Optional[ObjectId]:
    """Parse an identifier, returning None for anything that is not an ObjectId."""
    # ObjectId(None) would generate a fresh id
    if not isinstance(value, str):
        return None
    try:
        return ObjectId(value)
    except InvalidId:
        return None


class UserStore:
    """MongoDB-backed user records."""

    def __init__(self, users: AsyncIOMotorCollection, books: AsyncIOMotorCollection):
        self.users = users
        self.books = books

    async def create_indexes(self) -> None:
        """Emails are unique; they are stored lower-cased so the index is case-insensitive in effect."""
        try:
            await self.users.create_index("email", unique=True)
        except PyMongoError as e:
            logger.error("Failed to create user indexes", error=str(e))
            raise StorageError("Failed to create user indexes") from e

    async def create(self, email: str, password_hash: str, full_name: Optional[str] = None) -> User:
        """
        Insert a new user.

        Args:
            email: Login email, lower-cased before storing
            password_hash: Already-hashed password
            full_name: Optional display name

        Returns:
            The persisted user

        Raises:
            DuplicateEmailError: If the email is already registered
        """
        now = datetime.now(timezone.utc)
        document = {
            "email": email.strip().lower(),
            "password_hash": password_hash,
            "full_name": full_name,
            "created_at": now,
            "updated_at": now,
        }
        try:
            result = await self.users.insert_one(document)
            stored = await self.users.find_one({"_id": result.inserted_id})
        except DuplicateKeyError as e:
            logger.warning("User already exists", email=document["email"])
            raise DuplicateEmailError() from e
        except PyMongoError as e:
            logger.error("Failed to create user", error=str(e))
            raise StorageError("Failed to create user") from e

        if stored is None:
            raise StorageError("User was created but could not be retrieved")

        logger.info("User created", user_id=str(result.inserted_id))
        return self._document_to_user(stored)

    async def get_by_email(self, email: str) -> Optional[User]:
        if not email:
            return None
        try:
            document = await self.users.find_one({"email": email.strip().lower()})
        except PyMongoError as e:
            logger.error("Failed to find user by email", error=str(e))
            raise StorageError("Failed to find user") from e
        return self._document_to_user(document) if document else None

    async def get_by_id(self, user_id: str) -> Optional[User]:
        object_id = to_object_id(user_id)
        if object_id is None:
            return None
        try:
            document = await self.users.find_one({"_id": object_id})
        except PyMongoError as e:
            logger.error("Failed to find user by ID", user_id=user_id, error=str(e))
            raise StorageError("Failed to find user") from e
        return self._document_to_user(document) if document else None

    async def email_exists(self, email: str) -> bool:
        return await self.get_by_email(email) is not None

    async def get_public_views(self, user_ids: Iterable[str]) -> Dict[str, UserPublic]:
        """
        Batch lookup of public user views.

        Args:
            user_ids: Identifiers to resolve; unknown or malformed ones are skipped

        Returns:
            Mapping of user id to public view
        """
        object_ids = [oid for oid in (to_object_id(uid) for uid in set(user_ids)) if oid is not None]
        if not object_ids:
            return {}
        try:
            cursor = self.users.find({"_id": {"$in": object_ids}})
            documents = await cursor.to_list(length=None)
        except PyMongoError as e:
            logger.error("Failed to resolve book owners", error=str(e))
            raise StorageError("Failed to resolve book owners") from e
        return {
            str(document["_id"]): self._document_to_user(document).public_view()
            for document in documents
        }

    async def delete(self, user_id: str) -> bool:
        """
        Remove a user together with every book they own.

        Returns:
            True if the user existed, False otherwise
        """
        object_id = to_object_id(user_id)
        if object_id is None:
            return False
        try:
            books_result = await self.books.delete_many({"owner_id": user_id})
            result = await self.users.delete_one({"_id": object_id})
        except PyMongoError as e:
            logger.error("Failed to delete user", user_id=user_id, error=str(e))
            raise StorageError("Failed to delete user") from e

        if result.deleted_count == 0:
            logger.warning("User not found for deletion", user_id=user_id)
            return False

        logger.info("User deleted", user_id=user_id, books_deleted=books_result.deleted_count)
        return True

    @staticmethod
    def _document_to_user(document: dict) -> User:
        return User(
            id=str(document["_id"]),
            email=document["email"],
            password_hash=document["password_hash"],
            full_name=document.get("full_name"),
            created_at=document["created_at"],
            updated_at=document.get("updated_at", document["created_at"]),
        )
