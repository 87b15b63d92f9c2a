"""Error types raised by the catalog core.

Every error carries a ``kind`` tag so callers can branch without matching on
messages, and a ``retryable`` flag separating technical faults (worth retrying)
from rejected data (must be corrected first).
"""
from typing import Optional


class CatalogError(Exception):
    """Base exception for all catalog errors."""

    kind = "catalog"
    retryable = False


class ValidationError(CatalogError):
    """A required field is missing or a field exceeds its limit."""

    kind = "validation"

    def __init__(self, field: str, message: Optional[str] = None):
        self.field = field
        super().__init__(message or f"Field '{field}' is required.")


class DuplicateIsbnError(CatalogError):
    """Another record already holds the ISBN being written."""

    kind = "duplicate_isbn"

    def __init__(self, isbn: str):
        self.isbn = isbn
        super().__init__(f"A book with ISBN {isbn} is already registered.")


class NotFoundError(CatalogError):
    """Lookup by id or by external ISBN found nothing."""

    kind = "not_found"


class EmptyOrMalformedError(CatalogError):
    """The import source is empty or structurally invalid."""

    kind = "malformed_source"


class ImportFileNotFoundError(CatalogError, FileNotFoundError):
    """The import path does not exist."""

    kind = "file_not_found"

    def __init__(self, path: str):
        self.path = path
        CatalogError.__init__(self, f"File not found: {path}")

    def __str__(self) -> str:
        return f"File not found: {self.path}"


class CatalogIOError(CatalogError):
    """Read or write fault on an import or export file."""

    kind = "io"
    retryable = True


class ExternalServiceError(CatalogError):
    """Network fault, non-200 response or unparseable body from the metadata provider."""

    kind = "external_service"
    retryable = True


class StorageError(CatalogError):
    """Fault in the underlying record store."""

    kind = "storage"
    retryable = True
