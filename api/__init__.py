"""
FastAPI RESTful API for the Bookstore.

This module provides a REST API for:
- Public catalog browsing and filtering
- Owner-scoped publishing of books
- Cover image and book file uploads
- Registration, login, and bearer-token authentication
"""
