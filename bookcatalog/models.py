"""Data models for catalog records."""
from dataclasses import dataclass, replace
from typing import Optional


TITLE_MAX_LENGTH = 255
ISBN_MAX_LENGTH = 20


@dataclass(frozen=True)
class Book:
    """A catalog record. ``id`` stays None until the store persists it."""
    title: str
    authors: str
    publication_date: str
    isbn: str
    publisher: Optional[str] = None
    related_titles: Optional[str] = None
    cover_image: Optional[bytes] = None
    id: Optional[int] = None

    @property
    def is_persisted(self) -> bool:
        return self.id is not None

    @property
    def has_cover(self) -> bool:
        return bool(self.cover_image)

    def with_id(self, book_id: int) -> "Book":
        return replace(self, id=book_id)

    def merged_with(self, found: "Book") -> "Book":
        """
        Merge looked-up metadata into this record.

        The identifier, ISBN and related titles are kept. The cover is only
        replaced when the looked-up record carries one.

        Args:
            found: Record produced by a metadata lookup

        Returns:
            New Book value; neither input is modified
        """
        return replace(
            self,
            title=found.title,
            authors=found.authors,
            publisher=found.publisher,
            publication_date=found.publication_date,
            cover_image=found.cover_image if found.has_cover else self.cover_image,
        )

    def __repr__(self) -> str:
        cover = f"{len(self.cover_image)} bytes" if self.cover_image else None
        return (
            f"Book(id={self.id!r}, isbn={self.isbn!r}, title={self.title!r}, "
            f"authors={self.authors!r}, publisher={self.publisher!r}, "
            f"publication_date={self.publication_date!r}, cover={cover})"
        )


@dataclass(frozen=True)
class ImportReport:
    """Aggregate counts of a CSV import."""
    created: int = 0
    updated: int = 0
    total_read: int = 0

    @property
    def summary(self) -> str:
        return f"{self.total_read} read, {self.created} created, {self.updated} updated"
