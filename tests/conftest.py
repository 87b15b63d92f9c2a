"""Shared fixtures."""
import pytest

from bookcatalog.client import MetadataProvider
from bookcatalog.models import Book
from bookcatalog.service import CatalogService
from bookcatalog.store import InMemoryRecordStore


def make_book(**overrides) -> Book:
    fields = {
        "isbn": "978-8532530787",
        "title": "Harry Potter e a Pedra Filosofal",
        "authors": "J. K. Rowling",
        "publication_date": "2000",
        "publisher": "Rocco",
    }
    fields.update(overrides)
    return Book(**fields)


class FakeProvider(MetadataProvider):
    """In-memory metadata provider."""

    def __init__(self, books=None, covers=None, error=None):
        self.books = books or {}
        self.covers = covers or {}
        self.error = error
        self.calls = []

    def fetch_book(self, isbn):
        self.calls.append(isbn)
        if self.error is not None:
            raise self.error
        return self.books.get(isbn)

    def download_cover(self, isbn):
        if self.error is not None:
            raise self.error
        return self.covers.get(isbn)


@pytest.fixture
def store():
    return InMemoryRecordStore()


@pytest.fixture
def provider():
    return FakeProvider()


@pytest.fixture
def service(store, provider):
    return CatalogService(store, provider)
