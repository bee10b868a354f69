"""
Pydantic models for users, books, and catalog operations.
Implements validation for book metadata, listing filters, and upload results.
"""

from datetime import datetime
from decimal import Decimal
from enum import Enum
from typing import FrozenSet, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic.alias_generators import to_camel

MAX_PRICE = Decimal("99999.99")


class UserPublic(BaseModel):
    """Public view of a user, safe to embed in any response."""
    id: str = Field(..., description="Unique user identifier")
    email: str = Field(..., description="Lower-cased email address")
    full_name: Optional[str] = Field(None, description="Display name")
    created_at: datetime = Field(..., description="Registration timestamp")


class User(BaseModel):
    """
    Stored user record.
    The password hash never leaves the identity store except for verification.
    """
    id: str = Field(..., description="Unique user identifier")
    email: str = Field(..., description="Lower-cased email address")
    password_hash: str = Field(..., description="bcrypt hash of the password")
    full_name: Optional[str] = Field(None, max_length=255, description="Display name")
    created_at: datetime = Field(..., description="Creation timestamp")
    updated_at: datetime = Field(..., description="Last update timestamp")

    def public_view(self) -> UserPublic:
        """Strip the credential fields."""
        return UserPublic(
            id=self.id,
            email=self.email,
            full_name=self.full_name,
            created_at=self.created_at
        )


class Identity(BaseModel):
    """Identity decoded from a verified token, passed explicitly into every owner-scoped call."""
    user_id: str
    email: str


class BookFields(BaseModel):
    """
    Mutable book metadata supplied by the owner on create and update.
    """
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    name: str = Field(..., max_length=255, description="Book title")
    category: str = Field(..., max_length=100, description="Book category")
    price: Decimal = Field(..., ge=0, le=MAX_PRICE, decimal_places=2, description="Price")
    description: str = Field(..., max_length=1000, description="Book description")

    # Populated from File Intake results
    image_url: Optional[str] = Field(None, description="Cover image URL")
    file_url: Optional[str] = Field(None, description="Book file URL")
    file_name: Optional[str] = Field(None, description="Original book file name")
    file_size: Optional[int] = Field(None, ge=0, description="Book file size in bytes")

    @field_validator('price', mode='before')
    @classmethod
    def price_from_float(cls, v):
        """JSON numbers arrive as floats; go through str so 9.99 stays 9.99."""
        if isinstance(v, float):
            return Decimal(str(v))
        return v

    @field_validator('name', 'category', 'description')
    @classmethod
    def validate_not_blank(cls, v: str) -> str:
        """Required text fields must contain something besides whitespace."""
        if not v.strip():
            raise ValueError('must not be blank')
        return v

    def to_document(self) -> dict:
        """Convert to a MongoDB document fragment."""
        document = self.model_dump()
        # Decimal is not BSON-encodable; prices are stored as doubles
        document['price'] = float(self.price)
        return document


class Book(BaseModel):
    """Stored book record with its owner's public view attached."""
    id: str = Field(..., description="Unique book identifier")
    owner_id: str = Field(..., description="Identifier of the owning user")
    name: str
    category: str
    price: float
    description: str
    image_url: Optional[str] = None
    file_url: Optional[str] = None
    file_name: Optional[str] = None
    file_size: Optional[int] = None
    created_at: datetime
    updated_at: datetime
    owner: Optional[UserPublic] = Field(None, description="Owner's public view")


class BookFilter(BaseModel):
    """
    Listing filter. Every field is optional and independently combinable.
    An empty search or a blank category counts as absent; a price bound of 0 is a real bound.
    Bounds are applied as given, so an inverted range simply matches nothing.
    """
    search: Optional[str] = Field(None, description="Case-insensitive match on name or description")
    category: Optional[str] = Field(None, description="Exact category match")
    min_price: Optional[Decimal] = Field(None, ge=0, description="Inclusive lower price bound")
    max_price: Optional[Decimal] = Field(None, ge=0, description="Inclusive upper price bound")

    @field_validator('search')
    @classmethod
    def empty_search_to_none(cls, v: Optional[str]) -> Optional[str]:
        # Whitespace is a real substring to match
        return v or None

    @field_validator('category')
    @classmethod
    def blank_category_to_none(cls, v: Optional[str]) -> Optional[str]:
        if v is None or not v.strip():
            return None
        return v

    def is_empty(self) -> bool:
        return (
            self.search is None
            and self.category is None
            and self.min_price is None
            and self.max_price is None
        )


class CatalogStats(BaseModel):
    """Aggregate statistics over one owner's books. Recomputed on every request."""
    count: int = Field(..., ge=0, description="Number of books")
    total_value: float = Field(..., ge=0, description="Sum of book prices")
    distinct_categories: int = Field(..., ge=0, description="Number of distinct categories")


class UploadKind(str, Enum):
    """Kind of uploaded asset. The value doubles as the storage sub-directory."""
    IMAGE = "images"
    DOCUMENT = "books"

    @property
    def allowed_extensions(self) -> FrozenSet[str]:
        if self is UploadKind.IMAGE:
            return IMAGE_EXTENSIONS
        return DOCUMENT_EXTENSIONS

    @property
    def label(self) -> str:
        return "image" if self is UploadKind.IMAGE else "book file"


IMAGE_EXTENSIONS: FrozenSet[str] = frozenset({".jpg", ".jpeg", ".png", ".gif", ".webp"})
DOCUMENT_EXTENSIONS: FrozenSet[str] = frozenset({".pdf", ".epub", ".docx", ".doc", ".txt", ".mobi", ".azw3"})


class UploadResult(BaseModel):
    """Result of a stored upload."""
    url: str = Field(..., description="Publicly fetchable URL")
    file_name: str = Field(..., description="Original client-supplied file name")
    size: int = Field(..., ge=0, description="Stored size in bytes")
    stored_name: str = Field(..., description="Name of the file on disk")
