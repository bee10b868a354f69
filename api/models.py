"""
API models and schemas for the FastAPI application.
"""

from datetime import datetime
from decimal import Decimal
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic.alias_generators import to_camel

from catalog.models import Book, BookFilter, CatalogStats, UploadResult, UserPublic


class CamelModel(BaseModel):
    """Base for payloads exchanged with the web client in camelCase."""
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class RegisterRequest(CamelModel):
    """Registration payload."""
    email: str = Field(..., max_length=255, description="Login email")
    password: str = Field(..., min_length=6, max_length=128, description="Plaintext password")
    full_name: Optional[str] = Field(None, max_length=255, description="Display name")

    @field_validator('email')
    @classmethod
    def validate_email(cls, v):
        """Minimal shape check; the address is lower-cased by the identity store."""
        v = v.strip()
        local, _, domain = v.partition("@")
        if not local or not domain or " " in v:
            raise ValueError('email must be a valid email address')
        return v


class LoginRequest(CamelModel):
    """Login payload."""
    email: str = Field(..., description="Login email")
    password: str = Field(..., description="Plaintext password")


class UserResponse(CamelModel):
    """Public user view."""
    id: str = Field(..., description="Unique user identifier")
    email: str = Field(..., description="Email address")
    full_name: Optional[str] = Field(None, description="Display name")
    created_at: datetime = Field(..., description="Registration timestamp")

    @classmethod
    def from_user(cls, user: UserPublic) -> "UserResponse":
        return cls(
            id=user.id,
            email=user.email,
            full_name=user.full_name,
            created_at=user.created_at
        )


class AuthResponse(CamelModel):
    """Token plus the authenticated user's public view."""
    token: str = Field(..., description="Signed bearer token")
    user: UserResponse


class BookResponse(CamelModel):
    """Book response model for API."""
    id: str = Field(..., description="Unique book identifier")
    name: str = Field(..., description="Book title")
    category: str = Field(..., description="Book category")
    price: float = Field(..., description="Price")
    description: str = Field(..., description="Book description")
    user_id: str = Field(..., description="Owner identifier")
    created_at: datetime = Field(..., description="Creation timestamp")
    updated_at: datetime = Field(..., description="Last update timestamp")
    image_url: Optional[str] = Field(None, description="Cover image URL")
    file_url: Optional[str] = Field(None, description="Book file URL")
    file_name: Optional[str] = Field(None, description="Original book file name")
    file_size: Optional[int] = Field(None, description="Book file size in bytes")
    user: Optional[UserResponse] = Field(None, description="Owner's public view")

    @classmethod
    def from_book(cls, book: Book) -> "BookResponse":
        return cls(
            id=book.id,
            name=book.name,
            category=book.category,
            price=book.price,
            description=book.description,
            user_id=book.owner_id,
            created_at=book.created_at,
            updated_at=book.updated_at,
            image_url=book.image_url,
            file_url=book.file_url,
            file_name=book.file_name,
            file_size=book.file_size,
            user=UserResponse.from_user(book.owner) if book.owner else None
        )


class BookQueryParams(BaseModel):
    """Query parameters for book listing."""
    search: Optional[str] = Field(None, description="Search in name and description")
    category: Optional[str] = Field(None, description="Filter by category")
    min_price: Optional[Decimal] = Field(None, ge=0, description="Minimum price filter")
    max_price: Optional[Decimal] = Field(None, ge=0, description="Maximum price filter")
    # Accepted for client compatibility; listings are not paginated
    page: int = Field(1, ge=1, description="Page number")
    page_size: int = Field(20, ge=1, le=100, description="Items per page")

    def to_filter(self) -> BookFilter:
        return BookFilter(
            search=self.search,
            category=self.category,
            min_price=self.min_price,
            max_price=self.max_price
        )


class StatsResponse(CamelModel):
    """Aggregate statistics over the caller's books."""
    count: int = Field(..., description="Number of books")
    total_value: float = Field(..., description="Sum of book prices")
    distinct_categories: int = Field(..., description="Number of distinct categories")

    @classmethod
    def from_stats(cls, stats: CatalogStats) -> "StatsResponse":
        return cls(
            count=stats.count,
            total_value=stats.total_value,
            distinct_categories=stats.distinct_categories
        )


class UploadResponse(CamelModel):
    """Stored upload metadata."""
    url: str = Field(..., description="Public URL of the stored file")
    file_name: str = Field(..., description="Original file name")
    size: int = Field(..., description="Size in bytes")

    @classmethod
    def from_result(cls, result: UploadResult) -> "UploadResponse":
        return cls(url=result.url, file_name=result.file_name, size=result.size)


class MessageResponse(BaseModel):
    """Plain confirmation message."""
    message: str


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
