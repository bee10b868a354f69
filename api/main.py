"""
FastAPI main application for the Bookstore API.
"""

from contextlib import asynccontextmanager
from datetime import datetime, timezone
from decimal import Decimal
from typing import List, Optional

import structlog
from fastapi import Depends, FastAPI, File, Form, Query, Request, Response, UploadFile, status
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from fastapi.staticfiles import StaticFiles
from starlette.exceptions import HTTPException as StarletteHTTPException

from api.auth import CredentialVerifier, get_current_identity, token_manager
from api.config import config as api_config
from api.models import (
    AuthResponse,
    BookQueryParams,
    BookResponse,
    ErrorResponse,
    HealthResponse,
    LoginRequest,
    MessageResponse,
    RegisterRequest,
    StatsResponse,
    UploadResponse,
    UserResponse,
)
from catalog.books import BookCatalogStore
from catalog.database import MongoDBManager
from catalog.exceptions import (
    AuthenticationError,
    BookstoreError,
    DuplicateEmailError,
    InvalidCredentialsError,
    InvalidInputError,
    NotFoundError,
    StorageError,
)
from catalog.models import BookFields, BookFilter, Identity, UploadKind
from catalog.uploads import FileIntake
from utilities.config import config
from utilities.logger import setup_logging

logger = structlog.get_logger(__name__)

# Global services, wired in the lifespan
db_manager: Optional[MongoDBManager] = None
catalog_store: Optional[BookCatalogStore] = None
credential_verifier: Optional[CredentialVerifier] = None
file_intake = FileIntake(
    upload_root=config.get_upload_root(),
    max_image_bytes=config.max_image_bytes,
    max_document_bytes=config.max_book_bytes
)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan manager."""
    global db_manager, catalog_store, credential_verifier

    setup_logging(
        log_level=config.log_level,
        log_format=config.log_format,
        log_file=config.get_log_file_path(),
        debug=config.debug
    )
    logger.info("Starting Bookstore API")

    manager = MongoDBManager(config.mongodb_url, config.mongodb_database)
    try:
        await manager.connect()
    except Exception as e:
        logger.error("Failed to connect to database", error=str(e))
        raise

    db_manager = manager
    catalog_store = manager.book_store()
    credential_verifier = CredentialVerifier(
        users=manager.user_store(),
        tokens=token_manager,
        bcrypt_rounds=api_config.bcrypt_rounds
    )
    file_intake.ensure_directories()

    yield

    logger.info("Shutting down Bookstore API")
    await manager.disconnect()


app = FastAPI(
    title=api_config.api_title,
    description="""
    REST API for a digital bookstore.

    ## Features

    * **Catalog**: Browse and filter every published book without signing in
    * **Publishing**: Create, update, and delete your own books
    * **Files**: Upload cover images and book files
    * **Authentication**: Signed bearer tokens issued at registration and login

    ## Authentication

    Endpoints that change data require a token:

    ```
    Authorization: Bearer your_token_here
    ```
    """,
    version=api_config.api_version,
    lifespan=lifespan
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=api_config.cors_origins,
    allow_credentials=api_config.cors_allow_credentials,
    allow_methods=api_config.cors_allow_methods,
    allow_headers=api_config.cors_allow_headers,
)

app.mount(
    "/uploads",
    StaticFiles(directory=str(config.get_upload_root()), check_dir=False),
    name="uploads"
)


# Exception handlers
ERROR_STATUS = {
    InvalidInputError: status.HTTP_400_BAD_REQUEST,
    DuplicateEmailError: status.HTTP_400_BAD_REQUEST,
    InvalidCredentialsError: status.HTTP_400_BAD_REQUEST,
    AuthenticationError: status.HTTP_401_UNAUTHORIZED,
    NotFoundError: status.HTTP_404_NOT_FOUND,
}


def _error_response(status_code: int, error: str, detail: Optional[str] = None, headers=None) -> JSONResponse:
    return JSONResponse(
        status_code=status_code,
        content=ErrorResponse(error=error, detail=detail, status_code=status_code).model_dump(),
        headers=headers
    )


@app.exception_handler(BookstoreError)
async def bookstore_exception_handler(request: Request, exc: BookstoreError):
    """Map domain errors onto HTTP responses."""
    if isinstance(exc, StorageError):
        logger.error(
            "Storage failure",
            error=exc.message,
            cause=str(exc.__cause__) if exc.__cause__ else None,
            path=request.url.path
        )
        detail = str(exc.__cause__) if config.debug and exc.__cause__ else None
        return _error_response(status.HTTP_500_INTERNAL_SERVER_ERROR, "Internal server error", detail)

    status_code = next(
        (code for exc_type, code in ERROR_STATUS.items() if isinstance(exc, exc_type)),
        status.HTTP_500_INTERNAL_SERVER_ERROR
    )
    headers = {"WWW-Authenticate": "Bearer"} if isinstance(exc, AuthenticationError) else None
    return _error_response(status_code, exc.message, headers=headers)


@app.exception_handler(RequestValidationError)
async def validation_exception_handler(request: Request, exc: RequestValidationError):
    """Report malformed requests as 400 with the offending locations."""
    locations = sorted({".".join(str(part) for part in error["loc"][1:]) for error in exc.errors()})
    return _error_response(
        status.HTTP_400_BAD_REQUEST,
        "Invalid input",
        detail=", ".join(loc for loc in locations if loc) or None
    )


@app.exception_handler(StarletteHTTPException)
async def http_exception_handler(request: Request, exc: StarletteHTTPException):
    """Handle HTTP exceptions."""
    return _error_response(exc.status_code, str(exc.detail), headers=exc.headers)


@app.exception_handler(Exception)
async def general_exception_handler(request: Request, exc: Exception):
    """Handle general exceptions."""
    logger.error("Unhandled exception", error=str(exc), path=request.url.path)
    return _error_response(
        status.HTTP_500_INTERNAL_SERVER_ERROR,
        "Internal server error",
        detail=str(exc) if config.debug else None
    )


# Dependencies
def get_catalog_store() -> BookCatalogStore:
    if catalog_store is None:
        raise StorageError("Database service not available")
    return catalog_store


def get_credential_verifier() -> CredentialVerifier:
    if credential_verifier is None:
        raise StorageError("Database service not available")
    return credential_verifier


def get_file_intake() -> FileIntake:
    return file_intake


def get_book_filter(
    search: Optional[str] = None,
    category: Optional[str] = None,
    min_price: Optional[Decimal] = Query(None, alias="minPrice"),
    max_price: Optional[Decimal] = Query(None, alias="maxPrice"),
    page: int = 1,
    page_size: int = Query(20, alias="pageSize")
) -> BookFilter:
    """Build the listing filter from query parameters."""
    try:
        query_params = BookQueryParams(
            search=search,
            category=category,
            min_price=min_price,
            max_price=max_price,
            page=page,
            page_size=page_size
        )
        return query_params.to_filter()
    except ValueError as e:
        raise InvalidInputError("Invalid filter parameters") from e


def _public_base_url(request: Request) -> str:
    return api_config.public_base_url or str(request.base_url)


# Health check endpoint (no authentication required)
@app.get("/health", response_model=HealthResponse, tags=["Health"])
async def health_check():
    """Health check endpoint."""
    db_status = "unavailable"
    if db_manager:
        health_info = await db_manager.health_check()
        db_status = health_info.get("status", "unknown")

    return HealthResponse(
        status="healthy" if db_status == "healthy" else "degraded",
        timestamp=datetime.now(timezone.utc),
        version=api_config.api_version,
        database_status=db_status
    )


# Auth endpoints
@app.post("/api/auth/register", response_model=AuthResponse, tags=["Auth"])
async def register(
    payload: RegisterRequest,
    verifier: CredentialVerifier = Depends(get_credential_verifier)
):
    """Register a new account and receive a token."""
    token, user = await verifier.register(payload.email, payload.password, payload.full_name)
    return AuthResponse(token=token, user=UserResponse.from_user(user))


@app.post("/api/auth/login", response_model=AuthResponse, tags=["Auth"])
async def login(
    payload: LoginRequest,
    verifier: CredentialVerifier = Depends(get_credential_verifier)
):
    """Log in with email and password."""
    token, user = await verifier.login(payload.email, payload.password)
    return AuthResponse(token=token, user=UserResponse.from_user(user))


# Books endpoints
@app.get("/api/books", response_model=List[BookResponse], tags=["Books"])
async def list_books(
    book_filter: BookFilter = Depends(get_book_filter),
    store: BookCatalogStore = Depends(get_catalog_store)
):
    """
    List every published book, newest first.

    - **search**: Case-insensitive match on name or description
    - **category**: Exact category
    - **minPrice** / **maxPrice**: Inclusive price bounds
    """
    books = await store.list_all(book_filter)
    return [BookResponse.from_book(book) for book in books]


@app.get("/api/books/my-books", response_model=List[BookResponse], tags=["Books"])
async def list_my_books(
    book_filter: BookFilter = Depends(get_book_filter),
    identity: Identity = Depends(get_current_identity),
    store: BookCatalogStore = Depends(get_catalog_store)
):
    """List the caller's own books with the same filters as the public listing."""
    books = await store.list_by_owner(identity.user_id, book_filter)
    return [BookResponse.from_book(book) for book in books]


@app.get("/api/books/my-stats", response_model=StatsResponse, tags=["Books"])
async def get_my_stats(
    identity: Identity = Depends(get_current_identity),
    store: BookCatalogStore = Depends(get_catalog_store)
):
    """Count, total value, and number of categories of the caller's books."""
    stats = await store.compute_stats(identity.user_id)
    return StatsResponse.from_stats(stats)


@app.get("/api/books/categories", response_model=List[str], tags=["Books"])
async def list_categories(store: BookCatalogStore = Depends(get_catalog_store)):
    """Distinct categories across the whole catalog."""
    return await store.list_categories()


@app.get("/api/books/{book_id}", response_model=BookResponse, tags=["Books"])
async def get_book(book_id: str, store: BookCatalogStore = Depends(get_catalog_store)):
    """Get a single book by ID."""
    book = await store.get_by_id(book_id)
    if book is None:
        raise NotFoundError("Book not found")
    return BookResponse.from_book(book)


@app.post(
    "/api/books",
    response_model=BookResponse,
    status_code=status.HTTP_201_CREATED,
    tags=["Books"]
)
async def create_book(
    payload: BookFields,
    identity: Identity = Depends(get_current_identity),
    store: BookCatalogStore = Depends(get_catalog_store)
):
    """Publish a book owned by the caller."""
    book = await store.create(identity.user_id, payload)
    return BookResponse.from_book(book)


@app.put("/api/books/{book_id}", response_model=BookResponse, tags=["Books"])
async def update_book(
    book_id: str,
    payload: BookFields,
    identity: Identity = Depends(get_current_identity),
    store: BookCatalogStore = Depends(get_catalog_store)
):
    """Replace the metadata of one of the caller's books."""
    book = await store.update(book_id, identity.user_id, payload)
    if book is None:
        raise NotFoundError("Book not found or you don't have permission to update it")
    return BookResponse.from_book(book)


@app.delete("/api/books/{book_id}", status_code=status.HTTP_204_NO_CONTENT, tags=["Books"])
async def delete_book(
    book_id: str,
    identity: Identity = Depends(get_current_identity),
    store: BookCatalogStore = Depends(get_catalog_store)
):
    """Delete one of the caller's books."""
    if not await store.delete(book_id, identity.user_id):
        raise NotFoundError("Book not found or you don't have permission to delete it")
    return Response(status_code=status.HTTP_204_NO_CONTENT)


# File endpoints
@app.post("/api/files/upload-image", response_model=UploadResponse, tags=["Files"])
async def upload_image(
    request: Request,
    file: UploadFile = File(...),
    book_id: Optional[str] = Form(None, alias="bookId"),
    identity: Identity = Depends(get_current_identity),
    intake: FileIntake = Depends(get_file_intake)
):
    """Upload a book cover image (jpg, jpeg, png, gif, webp; up to 5 MB)."""
    result = await intake.accept_upload(
        UploadKind.IMAGE,
        file,
        file.filename,
        file.size,
        identity.user_id,
        _public_base_url(request),
        book_id=book_id
    )
    return UploadResponse.from_result(result)


@app.post("/api/files/upload-book", response_model=UploadResponse, tags=["Files"])
async def upload_book_file(
    request: Request,
    file: UploadFile = File(...),
    book_id: Optional[str] = Form(None, alias="bookId"),
    identity: Identity = Depends(get_current_identity),
    intake: FileIntake = Depends(get_file_intake)
):
    """Upload a book file (pdf, epub, docx, doc, txt, mobi, azw3; up to 100 MB)."""
    result = await intake.accept_upload(
        UploadKind.DOCUMENT,
        file,
        file.filename,
        file.size,
        identity.user_id,
        _public_base_url(request),
        book_id=book_id
    )
    return UploadResponse.from_result(result)


@app.delete("/api/files/delete/{file_type}/{file_name}", response_model=MessageResponse, tags=["Files"])
async def delete_file(
    file_type: UploadKind,
    file_name: str,
    identity: Identity = Depends(get_current_identity),
    intake: FileIntake = Depends(get_file_intake)
):
    """Delete a previously uploaded file. ``file_type`` is ``images`` or ``books``."""
    if not intake.delete_upload(file_type, file_name):
        raise NotFoundError("File not found")
    logger.info("Upload removed", kind=file_type.value, file_name=file_name, user_id=identity.user_id)
    return MessageResponse(message="File deleted successfully")


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(
        "api.main:app",
        host=api_config.host,
        port=api_config.port,
        reload=config.debug,
        log_level="info"
    )
