"""
Pytest configuration and shared fixtures.
"""

from decimal import Decimal

import mongomock
import pytest

from api.auth import CredentialVerifier, TokenManager
from catalog.books import BookCatalogStore
from catalog.models import BookFields
from catalog.uploads import FileIntake
from catalog.users import UserStore


class AsyncCursor:
    """Awaitable view over a mongomock cursor."""

    def __init__(self, cursor):
        self._cursor = cursor

    def sort(self, *args, **kwargs):
        self._cursor = self._cursor.sort(*args, **kwargs)
        return self

    async def to_list(self, length=None):
        documents = list(self._cursor)
        return documents if length is None else documents[:length]


class AsyncCollection:
    """Exposes a mongomock collection through the awaitable Motor calling convention."""

    def __init__(self, collection):
        self._collection = collection

    def find(self, *args, **kwargs):
        return AsyncCursor(self._collection.find(*args, **kwargs))

    def __getattr__(self, name):
        method = getattr(self._collection, name)

        async def call(*args, **kwargs):
            return method(*args, **kwargs)
        return call


class AsyncDatabase:
    def __init__(self, database):
        self._database = database

    def __getattr__(self, name):
        return AsyncCollection(self._database[name])


@pytest.fixture
def mongo_database():
    """In-memory MongoDB database."""
    return AsyncDatabase(mongomock.MongoClient()["bookstore_test"])


@pytest.fixture
def user_store(mongo_database):
    return UserStore(mongo_database.users, mongo_database.books)


@pytest.fixture
def book_store(mongo_database, user_store):
    return BookCatalogStore(mongo_database.books, user_store)


@pytest.fixture
def token_manager():
    return TokenManager(
        secret_key="test-secret-key",
        expire_days=7,
        issuer="bookstore-api",
        audience="bookstore-clients"
    )


@pytest.fixture
def credential_verifier(user_store, token_manager):
    # Minimum bcrypt cost keeps the suite fast
    return CredentialVerifier(user_store, token_manager, bcrypt_rounds=4)


@pytest.fixture
def file_intake(tmp_path):
    return FileIntake(
        upload_root=tmp_path / "uploads",
        max_image_bytes=64,
        max_document_bytes=256
    )


@pytest.fixture
def sample_book_fields():
    """Create sample book fields for testing."""
    return BookFields(
        name="The Silent Orchard",
        category="Fiction",
        price=Decimal("9.99"),
        description="A quiet novel about an orchard that remembers.",
        image_url="http://testserver/uploads/images/cover.png",
        file_url="http://testserver/uploads/books/orchard.pdf",
        file_name="orchard.pdf",
        file_size=2048
    )


@pytest.fixture
def make_fields():
    """Factory for BookFields with defaults for the fields a test does not care about."""
    def _make(name, category="Fiction", price="10.00", description="A book"):
        return BookFields(name=name, category=category, price=Decimal(price), description=description)
    return _make
