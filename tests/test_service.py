"""Tests for the catalog service."""
from dataclasses import replace
from unittest.mock import MagicMock

import pytest

from bookcatalog.errors import (
    DuplicateIsbnError,
    ExternalServiceError,
    NotFoundError,
    StorageError,
    ValidationError,
)
from bookcatalog.service import NO_BOOKS, CatalogService
from tests.conftest import FakeProvider, make_book


def test_save_new_book(service):
    """Test a valid book with a fresh ISBN is saved and can be read back."""
    saved = service.save(make_book())

    assert saved.id is not None
    assert service.get_by_id(saved.id) == saved


def test_save_duplicate_isbn(service):
    service.save(make_book(isbn="978-1"))

    with pytest.raises(DuplicateIsbnError) as exc:
        service.save(make_book(isbn="978-1", title="Outro"))

    assert exc.value.isbn == "978-1"
    assert "978-1" in str(exc.value)
    assert not exc.value.retryable


def test_save_duplicate_isbn_with_other_id(service):
    service.save(make_book(isbn="978-1"))
    other = service.save(make_book(isbn="978-2"))

    with pytest.raises(DuplicateIsbnError):
        service.save(replace(other, isbn="978-1"))


def test_update_keeping_own_isbn(service):
    """Test saving a record with its own ISBN takes the update path."""
    saved = service.save(make_book(isbn="978-1"))

    updated = service.save(replace(saved, title="Edição revista"))

    assert updated.id == saved.id
    assert service.count_all() == 1
    assert service.get_by_id(saved.id).title == "Edição revista"


@pytest.mark.parametrize("field", ["title", "isbn", "authors", "publication_date"])
def test_required_fields(service, field):
    for blank in ("", "   ", None):
        with pytest.raises(ValidationError) as exc:
            service.save(make_book(**{field: blank}))
        assert exc.value.field == field
    assert service.count_all() == 0


def test_required_fields_order(service):
    """Test the first blank field in title, isbn, authors, date order is reported."""
    book = make_book(title="", isbn="", authors="", publication_date="")
    with pytest.raises(ValidationError) as exc:
        service.save(book)
    assert exc.value.field == "title"

    with pytest.raises(ValidationError) as exc:
        service.save(replace(book, title="T"))
    assert exc.value.field == "isbn"

    with pytest.raises(ValidationError) as exc:
        service.save(replace(book, title="T", isbn="1"))
    assert exc.value.field == "authors"

    with pytest.raises(ValidationError) as exc:
        service.save(replace(book, title="T", isbn="1", authors="A"))
    assert exc.value.field == "publication_date"


def test_length_limits(service):
    with pytest.raises(ValidationError) as exc:
        service.save(make_book(title="x" * 256))
    assert exc.value.field == "title"

    with pytest.raises(ValidationError) as exc:
        service.save(make_book(isbn="9" * 21))
    assert exc.value.field == "isbn"

    assert service.save(make_book(title="x" * 255, isbn="9" * 20)).id is not None


def test_storage_failure_is_wrapped():
    """Test a store fault surfaces as a retryable StorageError with the cause text."""
    store = MagicMock()
    store.find_by_isbn.return_value = None
    store.save.side_effect = RuntimeError("disk full")
    service = CatalogService(store)

    with pytest.raises(StorageError) as exc:
        service.save(make_book())

    assert "disk full" in str(exc.value)
    assert isinstance(exc.value.__cause__, RuntimeError)
    assert exc.value.retryable


def test_delete_and_missing_id(service):
    saved = service.save(make_book())
    service.delete_by_id(saved.id)
    service.delete_by_id(saved.id)

    with pytest.raises(NotFoundError) as exc:
        service.get_by_id(saved.id)
    assert str(saved.id) in str(exc.value)


def test_delete_storage_failure():
    store = MagicMock()
    store.delete_by_id.side_effect = RuntimeError("connection lost")
    with pytest.raises(StorageError):
        CatalogService(store).delete_by_id(1)


def test_count_distinct_publishers(service):
    for isbn, publisher in [("1", "Rocco"), ("2", "Arqueiro"), ("3", "Rocco"), ("4", None), ("5", "")]:
        service.save(make_book(isbn=isbn, publisher=publisher))
    assert service.count_distinct_publishers() == 2


def test_most_recent_title(service):
    assert service.most_recent_title() == NO_BOOKS

    service.save(make_book(isbn="1", title="Livro A"))
    service.save(make_book(isbn="2", title="Livro B"))

    assert service.most_recent_title() == "Livro B"


def test_get_stats(service):
    service.save(make_book(isbn="1", publisher="Rocco"))
    assert service.get_stats() == {
        "total_books": 1,
        "distinct_publishers": 1,
        "most_recent_title": "Harry Potter e a Pedra Filosofal",
    }


def test_search(service):
    service.save(make_book(isbn="1", title="O Hobbit", authors="Tolkien", publisher="HarperCollins"))
    service.save(make_book(isbn="2", title="Duna", authors="Frank Herbert", publisher="Aleph"))

    assert [b.title for b in service.search("hobbit")] == ["O Hobbit"]
    assert [b.title for b in service.search("ALEPH")] == ["Duna"]
    assert [b.isbn for b in service.search("2")] == ["2"]
    assert len(service.search("")) == 2


def test_lookup_external_found(store):
    found = make_book(isbn="978-9", title="Livro API")
    service = CatalogService(store, FakeProvider(books={"978-9": found}))

    assert service.lookup_external("978-9").title == "Livro API"
    # lookups never write to the catalog
    assert store.count() == 0


def test_lookup_external_not_found(service):
    with pytest.raises(NotFoundError):
        service.lookup_external("000")


def test_lookup_external_failure(store):
    service = CatalogService(store, FakeProvider(error=ConnectionError("refused")))

    with pytest.raises(ExternalServiceError) as exc:
        service.lookup_external("978-9")
    assert "refused" in str(exc.value)


def test_lookup_external_passes_catalog_errors(store):
    error = ExternalServiceError("HTTP error 503")
    service = CatalogService(store, FakeProvider(error=error))

    with pytest.raises(ExternalServiceError) as exc:
        service.lookup_external("978-9")
    assert exc.value is error


def test_lookup_without_provider(store):
    with pytest.raises(ExternalServiceError):
        CatalogService(store).lookup_external("978-9")


def test_fetch_cover_image(store):
    cover = b"\xff" * 500
    service = CatalogService(store, FakeProvider(covers={"978-9": cover}))
    assert service.fetch_cover_image("978-9") == cover
    assert service.fetch_cover_image("000") is None


def test_fetch_cover_image_swallows_errors(store):
    service = CatalogService(store, FakeProvider(error=RuntimeError("boom")))
    assert service.fetch_cover_image("978-9") is None


def test_refresh_from_external(store):
    provider = FakeProvider()
    service = CatalogService(store, provider)
    saved = service.save(make_book(isbn="978-9", title="Rascunho", related_titles="Série"))
    provider.books["978-9"] = make_book(
        isbn="978-9", title="Título Oficial", publisher="Companhia", cover_image=b"c" * 200
    )

    refreshed = service.refresh_from_external(saved.id)

    assert refreshed.id == saved.id
    assert refreshed.title == "Título Oficial"
    assert refreshed.related_titles == "Série"
    assert store.find_by_id(saved.id).has_cover
