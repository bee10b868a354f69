"""
File intake for book cover images and book documents.
Validates uploads and writes them under the local content root.
"""

import re
import uuid
from datetime import datetime, timezone
from pathlib import Path
from typing import Optional, Protocol

import structlog

from .exceptions import AuthenticationError, InvalidInputError, StorageError
from .models import UploadKind, UploadResult

logger = structlog.get_logger(__name__)

CHUNK_SIZE = 1024 * 1024
BOOK_ID_HINT = re.compile(r"^[A-Za-z0-9_-]{1,64}$")


class AsyncReadable(Protocol):
    async def read(self, size: int = -1) -> bytes: ...


class FileIntake:
    """
    Stores uploaded assets under ``<upload_root>/<images|books>/``.

    Stored names combine the book id hint (or a random UUID) with a
    microsecond UTC timestamp, so concurrent uploads never share a path.
    """

    def __init__(self, upload_root: Path, max_image_bytes: int, max_document_bytes: int):
        self.upload_root = Path(upload_root)
        self.max_bytes = {
            UploadKind.IMAGE: max_image_bytes,
            UploadKind.DOCUMENT: max_document_bytes,
        }

    def directory_for(self, kind: UploadKind) -> Path:
        return self.upload_root / kind.value

    def ensure_directories(self) -> None:
        for kind in UploadKind:
            self.directory_for(kind).mkdir(parents=True, exist_ok=True)

    def validate(self, kind: UploadKind, declared_name: Optional[str], declared_size: Optional[int]) -> str:
        """
        Check an upload before anything touches the disk.

        Args:
            kind: Image or document
            declared_name: Client-supplied file name
            declared_size: Client-declared size in bytes, if known

        Returns:
            The lower-cased file extension

        Raises:
            InvalidInputError: If the upload is empty, too large, or of a disallowed type
        """
        if not declared_name or declared_size == 0:
            raise InvalidInputError("No file provided")

        max_bytes = self.max_bytes[kind]
        if declared_size is not None and declared_size > max_bytes:
            raise InvalidInputError(
                f"File size exceeds maximum allowed size of {max_bytes // (1024 * 1024)}MB"
            )

        extension = Path(declared_name).suffix.lower()
        if extension not in kind.allowed_extensions:
            allowed = ", ".join(sorted(ext.lstrip(".") for ext in kind.allowed_extensions))
            raise InvalidInputError(f"Invalid file type. Allowed {kind.label} types: {allowed}")

        return extension

    async def accept_upload(
        self,
        kind: UploadKind,
        stream: AsyncReadable,
        declared_name: Optional[str],
        declared_size: Optional[int],
        owner_id: Optional[str],
        base_url: str,
        book_id: Optional[str] = None
    ) -> UploadResult:
        """
        Validate and store an uploaded file.

        Args:
            kind: Image or document
            stream: Async readable payload (e.g. a Starlette UploadFile)
            declared_name: Original client file name, returned for display
            declared_size: Client-declared size in bytes
            owner_id: Verified requester identity
            base_url: Public base URL the uploads are served under
            book_id: Optional book id hint used as the stored name prefix

        Returns:
            UploadResult with the public URL, original name, and byte size
        """
        if not owner_id:
            raise AuthenticationError("Authentication required")

        extension = self.validate(kind, declared_name, declared_size)

        if book_id is not None and not BOOK_ID_HINT.match(book_id):
            raise InvalidInputError("Invalid book id")

        timestamp = datetime.now(timezone.utc).strftime("%Y%m%d%H%M%S%f")
        stored_name = f"{book_id or uuid.uuid4()}-{timestamp}{extension}"
        directory = self.directory_for(kind)
        target = directory / stored_name
        max_bytes = self.max_bytes[kind]

        size = 0
        try:
            directory.mkdir(parents=True, exist_ok=True)
            with open(target, "wb") as f:
                while True:
                    chunk = await stream.read(CHUNK_SIZE)
                    if not chunk:
                        break
                    size += len(chunk)
                    if size > max_bytes:
                        break
                    f.write(chunk)
        except OSError as e:
            target.unlink(missing_ok=True)
            logger.error("Failed to store upload", kind=kind.value, stored_name=stored_name, error=str(e))
            raise StorageError(f"An error occurred while uploading the {kind.label}") from e

        if size > max_bytes:
            target.unlink(missing_ok=True)
            logger.warning("Upload exceeded size cap while streaming", kind=kind.value, owner_id=owner_id)
            raise InvalidInputError(
                f"File size exceeds maximum allowed size of {max_bytes // (1024 * 1024)}MB"
            )
        if size == 0:
            target.unlink(missing_ok=True)
            raise InvalidInputError("No file provided")

        logger.info(
            "File uploaded successfully",
            kind=kind.value,
            stored_name=stored_name,
            size=size,
            owner_id=owner_id
        )

        return UploadResult(
            url=f"{base_url.rstrip('/')}/uploads/{kind.value}/{stored_name}",
            file_name=declared_name,
            size=size,
            stored_name=stored_name
        )

    def delete_upload(self, kind: UploadKind, file_name: str) -> bool:
        """
        Delete a stored upload.

        Returns:
            True if deleted, False if no such file exists
        """
        if not file_name or file_name in (".", "..") or Path(file_name).name != file_name:
            raise InvalidInputError("Invalid file name")

        target = self.directory_for(kind) / file_name
        if not target.is_file():
            logger.warning("File not found for deletion", kind=kind.value, file_name=file_name)
            return False

        try:
            target.unlink()
        except FileNotFoundError:
            return False
        except OSError as e:
            logger.error("Failed to delete file", kind=kind.value, file_name=file_name, error=str(e))
            raise StorageError("An error occurred while deleting the file") from e

        logger.info("File deleted successfully", kind=kind.value, file_name=file_name)
        return True
