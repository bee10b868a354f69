"""
Unit tests for catalog models.
Tests validation of book fields, listing filters, and upload kinds.
"""

from datetime import datetime
from decimal import Decimal

import pytest
from pydantic import ValidationError

from catalog.models import BookFields, BookFilter, UploadKind, User


class TestBookFields:
    """Test cases for BookFields model."""

    def test_valid_book_fields(self, sample_book_fields):
        """Test creating valid book fields."""
        assert sample_book_fields.name == "The Silent Orchard"
        assert sample_book_fields.price == Decimal("9.99")
        assert sample_book_fields.file_size == 2048

    def test_accepts_camel_case_keys(self):
        """Web clients send camelCase."""
        fields = BookFields.model_validate({
            "name": "Book",
            "category": "Poetry",
            "price": 5,
            "description": "Verses",
            "imageUrl": "http://example.com/cover.png",
            "fileSize": 10
        })

        assert fields.image_url == "http://example.com/cover.png"
        assert fields.file_size == 10

    def test_float_price_keeps_two_decimals(self):
        """Test that a float price such as 9.99 is accepted."""
        fields = BookFields(name="Book", category="Poetry", price=9.99, description="Verses")
        assert fields.price == Decimal("9.99")

    def test_invalid_negative_price(self):
        """Test validation of negative prices."""
        with pytest.raises(ValidationError):
            BookFields(name="Book", category="Poetry", price=Decimal("-0.01"), description="Verses")

    def test_invalid_price_above_maximum(self):
        with pytest.raises(ValidationError):
            BookFields(name="Book", category="Poetry", price=Decimal("100000.00"), description="Verses")

    def test_price_at_maximum(self):
        fields = BookFields(name="Book", category="Poetry", price=Decimal("99999.99"), description="Verses")
        assert fields.price == Decimal("99999.99")

    def test_invalid_price_precision(self):
        """Prices are bounded to two fraction digits."""
        with pytest.raises(ValidationError):
            BookFields(name="Book", category="Poetry", price=Decimal("1.999"), description="Verses")

    @pytest.mark.parametrize("field,limit", [("name", 255), ("category", 100), ("description", 1000)])
    def test_oversize_strings(self, field, limit):
        """Test upper length bounds on text fields."""
        data = {"name": "Book", "category": "Poetry", "price": "1.00", "description": "Verses"}
        data[field] = "x" * limit
        BookFields(**data)

        data[field] = "x" * (limit + 1)
        with pytest.raises(ValidationError):
            BookFields(**data)

    def test_blank_required_field(self):
        with pytest.raises(ValidationError) as exc_info:
            BookFields(name="   ", category="Poetry", price="1.00", description="Verses")

        assert "must not be blank" in str(exc_info.value)

    def test_missing_required_field(self):
        with pytest.raises(ValidationError):
            BookFields(name="Book", price="1.00", description="Verses")

    def test_to_document_stores_price_as_float(self, sample_book_fields):
        document = sample_book_fields.to_document()

        assert document["price"] == 9.99
        assert isinstance(document["price"], float)
        assert document["image_url"] == "http://testserver/uploads/images/cover.png"


class TestBookFilter:
    """Test cases for BookFilter model."""

    def test_default_filter_is_empty(self):
        assert BookFilter().is_empty()

    def test_empty_text_counts_as_absent(self):
        book_filter = BookFilter(search="", category="  ")

        assert book_filter.search is None
        assert book_filter.category is None
        assert book_filter.is_empty()

    def test_whitespace_search_is_kept(self):
        book_filter = BookFilter(search=" ")

        assert book_filter.search == " "
        assert not book_filter.is_empty()

    def test_zero_price_is_a_real_bound(self):
        book_filter = BookFilter(max_price=Decimal("0"))

        assert book_filter.max_price == Decimal("0")
        assert not book_filter.is_empty()

    def test_min_above_max_accepted(self):
        book_filter = BookFilter(min_price=Decimal("20"), max_price=Decimal("10"))

        assert book_filter.min_price == Decimal("20")
        assert book_filter.max_price == Decimal("10")

    def test_negative_bound_rejected(self):
        with pytest.raises(ValidationError):
            BookFilter(min_price=Decimal("-1"))

    def test_equal_bounds_allowed(self):
        book_filter = BookFilter(min_price=Decimal("10"), max_price=Decimal("10"))
        assert book_filter.min_price == book_filter.max_price


class TestUser:
    """Test cases for User model."""

    def test_public_view_drops_password_hash(self):
        now = datetime(2025, 7, 7, 12, 0, 0)
        user = User(
            id="64b000000000000000000001",
            email="a@x.com",
            password_hash="$2b$04$hash",
            full_name="A",
            created_at=now,
            updated_at=now
        )

        view = user.public_view()

        assert view.email == "a@x.com"
        assert "password_hash" not in view.model_dump()


class TestUploadKind:
    """Test cases for UploadKind."""

    def test_image_extensions(self):
        assert ".webp" in UploadKind.IMAGE.allowed_extensions
        assert ".pdf" not in UploadKind.IMAGE.allowed_extensions

    def test_document_extensions(self):
        assert UploadKind.DOCUMENT.allowed_extensions == {
            ".pdf", ".epub", ".docx", ".doc", ".txt", ".mobi", ".azw3"
        }

    def test_values_match_storage_directories(self):
        assert UploadKind("images") is UploadKind.IMAGE
        assert UploadKind("books") is UploadKind.DOCUMENT
