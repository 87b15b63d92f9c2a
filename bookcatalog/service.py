"""Catalog service: validation, ISBN uniqueness, statistics and enrichment."""
from typing import Any, Dict, List, Optional
import logging

from bookcatalog.client import MetadataProvider
from bookcatalog.errors import (
    CatalogError,
    DuplicateIsbnError,
    ExternalServiceError,
    NotFoundError,
    StorageError,
    ValidationError,
)
from bookcatalog.models import Book, ISBN_MAX_LENGTH, TITLE_MAX_LENGTH
from bookcatalog.store import RecordStore

logger = logging.getLogger(__name__)

NO_BOOKS = "Nenhum livro"

# Checked in this order; the first blank one is reported
REQUIRED_FIELDS = (
    ("title", "Title"),
    ("isbn", "ISBN"),
    ("authors", "Authors"),
    ("publication_date", "Publication date"),
)

MAX_LENGTHS = (
    ("title", "Title", TITLE_MAX_LENGTH),
    ("isbn", "ISBN", ISBN_MAX_LENGTH),
)


def validate_book(book: Book) -> None:
    """
    Check required fields and length limits.

    Raises:
        ValidationError: naming the first offending field
    """
    for field, label in REQUIRED_FIELDS:
        value = getattr(book, field)
        if value is None or not value.strip():
            logger.warning(f"Validation failed: {field} is blank")
            raise ValidationError(field, f"{label} is required.")

    for field, label, limit in MAX_LENGTHS:
        if len(getattr(book, field)) > limit:
            logger.warning(f"Validation failed: {field} longer than {limit}")
            raise ValidationError(field, f"{label} must have at most {limit} characters.")


class CatalogService:
    """Sole writer of the catalog."""

    def __init__(self, store: RecordStore, provider: Optional[MetadataProvider] = None):
        """
        Args:
            store: Record store holding the catalog
            provider: Metadata provider for external lookups (optional)
        """
        self.store = store
        self.provider = provider

    def save(self, book: Book) -> Book:
        """
        Validate and persist a record.

        Args:
            book: New record (no id) or updated record (id set)

        Returns:
            The persisted record with its id

        Raises:
            ValidationError: a required field is blank or too long
            DuplicateIsbnError: a different record already holds the ISBN
            StorageError: the store failed
        """
        logger.info(f"Saving book '{book.title}' (ISBN {book.isbn})")
        validate_book(book)

        existing = self.store.find_by_isbn(book.isbn)
        if existing is not None and (book.id is None or book.id != existing.id):
            logger.warning(f"Duplicate ISBN rejected: {book.isbn}")
            raise DuplicateIsbnError(book.isbn)

        try:
            saved = self.store.save(book)
        except Exception as e:
            logger.error(f"Failed to persist book: {e}")
            raise StorageError(f"Technical error while saving book: {e}") from e

        logger.info(f"Book saved with id {saved.id}")
        return saved

    def list_all(self) -> List[Book]:
        logger.debug("Listing all books")
        return self.store.find_all()

    def search(self, term: str) -> List[Book]:
        """
        Case-insensitive filter over title, authors, ISBN and publisher.

        An empty term returns the whole catalog.
        """
        term = (term or "").strip().lower()
        books = self.store.find_all()
        if not term:
            return books

        def matches(book: Book) -> bool:
            fields = (book.title, book.authors, book.isbn, book.publisher)
            return any(term in value.lower() for value in fields if value)

        return [book for book in books if matches(book)]

    def delete_by_id(self, book_id: int) -> None:
        logger.info(f"Deleting book {book_id}")
        try:
            self.store.delete_by_id(book_id)
        except Exception as e:
            logger.error(f"Failed to delete book {book_id}: {e}")
            raise StorageError(f"Technical error while deleting book: {e}") from e

    def get_by_id(self, book_id: int) -> Book:
        book = self.store.find_by_id(book_id)
        if book is None:
            logger.warning(f"Book not found for id {book_id}")
            raise NotFoundError(f"Book not found with id: {book_id}")
        return book

    def count_all(self) -> int:
        return self.store.count()

    def count_distinct_publishers(self) -> int:
        publishers = {book.publisher for book in self.store.find_all() if book.publisher}
        return len(publishers)

    def most_recent_title(self) -> str:
        # "Most recent" is the last record in the store's scan order
        books = self.store.find_all()
        if not books:
            return NO_BOOKS
        return books[-1].title

    def get_stats(self) -> Dict[str, Any]:
        """Dashboard figures in one call."""
        return {
            "total_books": self.count_all(),
            "distinct_publishers": self.count_distinct_publishers(),
            "most_recent_title": self.most_recent_title(),
        }

    def lookup_external(self, isbn: str) -> Book:
        """
        Fetch a fresh record from the metadata provider.

        Raises:
            NotFoundError: the provider has no entry for the ISBN
            ExternalServiceError: transport or parse failure
        """
        if self.provider is None:
            raise ExternalServiceError("No metadata provider configured")

        logger.info(f"External lookup for ISBN {isbn}")
        try:
            book = self.provider.fetch_book(isbn)
        except CatalogError:
            raise
        except Exception as e:
            logger.error(f"External lookup failed: {e}")
            raise ExternalServiceError(f"External lookup failed: {e}") from e

        if book is None:
            logger.warning(f"External provider returned nothing for ISBN {isbn}")
            raise NotFoundError(f"Book with ISBN {isbn} not found in the external catalog.")

        logger.info(f"Found '{book.title}' externally")
        return book

    def fetch_cover_image(self, isbn: str) -> Optional[bytes]:
        """Cover bytes for ``isbn``, or None. Never raises."""
        if self.provider is None:
            return None

        logger.debug(f"Fetching cover for ISBN {isbn}")
        try:
            return self.provider.download_cover(isbn)
        except Exception as e:
            logger.warning(f"Cover unavailable for ISBN {isbn}: {e}")
            return None

    def refresh_from_external(self, book_id: int) -> Book:
        """
        Re-fetch a stored record's metadata by its ISBN and save the merge.

        Raises:
            NotFoundError: unknown id, or the provider has no entry
            ExternalServiceError, ValidationError, DuplicateIsbnError, StorageError
        """
        current = self.get_by_id(book_id)
        found = self.lookup_external(current.isbn)
        return self.save(current.merged_with(found))
