"""Tests for the Book value."""
import dataclasses

import pytest

from bookcatalog.models import Book, ImportReport
from tests.conftest import make_book


def test_book_is_immutable():
    book = make_book()
    with pytest.raises(dataclasses.FrozenInstanceError):
        book.title = "Changed"


def test_merged_with_keeps_identity():
    """Test merge keeps id, ISBN and related titles, takes looked-up metadata."""
    current = make_book(id=4, related_titles="Câmara Secreta", cover_image=b"x" * 200)
    found = Book(
        isbn=current.isbn,
        title="Harry Potter and the Philosopher's Stone",
        authors="Rowling",
        publication_date="1997",
        publisher="Bloomsbury",
    )

    merged = current.merged_with(found)

    assert merged.id == 4
    assert merged.isbn == current.isbn
    assert merged.related_titles == "Câmara Secreta"
    assert merged.title == found.title
    assert merged.publisher == "Bloomsbury"
    # found has no cover, so the stored one stays
    assert merged.cover_image == b"x" * 200
    assert current.title == "Harry Potter e a Pedra Filosofal"


def test_merged_with_replaces_cover():
    current = make_book(id=1, cover_image=b"old" * 50)
    found = make_book(cover_image=b"new" * 50)
    assert current.merged_with(found).cover_image == b"new" * 50


def test_repr_hides_cover_bytes():
    book = make_book(cover_image=b"\x00" * 300)
    assert "300 bytes" in repr(book)


def test_import_report_summary():
    assert ImportReport(created=2, updated=1, total_read=3).summary == "3 read, 2 created, 1 updated"
