"""Record store contract and an in-memory implementation."""
from abc import ABC, abstractmethod
from contextlib import contextmanager
from typing import Dict, Iterator, List, Optional
import logging

from bookcatalog.errors import StorageError
from bookcatalog.models import Book

logger = logging.getLogger(__name__)


class RecordStore(ABC):
    """Keyed persistence for book records."""

    @abstractmethod
    def find_by_id(self, book_id: int) -> Optional[Book]:
        """Return the record with this id, or None."""

    @abstractmethod
    def find_by_isbn(self, isbn: str) -> Optional[Book]:
        """Return the record holding this ISBN, or None."""

    @abstractmethod
    def save(self, book: Book) -> Book:
        """Insert when ``book.id`` is None, update otherwise. Returns the persisted value."""

    @abstractmethod
    def delete_by_id(self, book_id: int) -> None:
        """Delete the record if present. Absence is not an error."""

    @abstractmethod
    def find_all(self) -> List[Book]:
        """Full scan in the store's own order."""

    @abstractmethod
    def count(self) -> int:
        """Number of stored records."""

    @abstractmethod
    def unit_of_work(self):
        """Context manager grouping writes: commit on success, roll back on error."""


class InMemoryRecordStore(RecordStore):
    """Dict-backed store. Scans return records in insertion order."""

    def __init__(self):
        self._books: Dict[int, Book] = {}
        self._next_id = 1

    def find_by_id(self, book_id: int) -> Optional[Book]:
        return self._books.get(book_id)

    def find_by_isbn(self, isbn: str) -> Optional[Book]:
        for book in self._books.values():
            if book.isbn == isbn:
                return book
        return None

    def save(self, book: Book) -> Book:
        # Same guarantee a unique index gives a real database
        holder = self.find_by_isbn(book.isbn)
        if holder is not None and holder.id != book.id:
            raise StorageError(f"unique constraint violated on isbn {book.isbn!r}")

        if book.id is None:
            book = book.with_id(self._next_id)
            self._next_id += 1
        elif book.id >= self._next_id:
            self._next_id = book.id + 1

        self._books[book.id] = book
        return book

    def delete_by_id(self, book_id: int) -> None:
        self._books.pop(book_id, None)

    def find_all(self) -> List[Book]:
        return list(self._books.values())

    def count(self) -> int:
        return len(self._books)

    @contextmanager
    def unit_of_work(self) -> Iterator["InMemoryRecordStore"]:
        """Snapshot the records and restore them if the block raises."""
        snapshot = dict(self._books)
        next_id = self._next_id
        try:
            yield self
        except BaseException:
            self._books = snapshot
            self._next_id = next_id
            logger.info("Unit of work rolled back")
            raise
