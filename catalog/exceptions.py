"""
Exception hierarchy shared by the catalog stores and the API layer.
"""


class BookstoreError(Exception):
    """Base class for all bookstore errors."""

    def __init__(self, message: str = ""):
        super().__init__(message)
        self.message = message


class InvalidInputError(BookstoreError):
    """Malformed or out-of-range input, rejected before any write."""


class AuthenticationError(BookstoreError):
    """Missing, malformed, or expired identity token."""


class InvalidCredentialsError(BookstoreError):
    """Login failed. Deliberately does not say whether the email or the password was wrong."""

    def __init__(self, message: str = "Invalid email or password"):
        super().__init__(message)


class DuplicateEmailError(BookstoreError):
    """Registration attempted with an email that is already taken."""

    def __init__(self, message: str = "User with this email already exists"):
        super().__init__(message)


class NotFoundError(BookstoreError):
    """No record matched, including records that exist but belong to someone else."""


class StorageError(BookstoreError):
    """MongoDB or filesystem failure. The original cause is chained for logging."""
