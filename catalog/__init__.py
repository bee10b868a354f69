"""
Catalog package for the bookstore service.

This package contains:
- Domain models for users and books
- MongoDB connection and index management
- Book catalog store with filtering and ownership-scoped mutation
- Identity store for registered users
- File intake for cover images and book documents
"""

__version__ = "1.0.0"
