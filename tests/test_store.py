"""Tests for the in-memory record store."""
import pytest

from bookcatalog.errors import StorageError
from tests.conftest import make_book


def test_save_assigns_sequential_ids(store):
    first = store.save(make_book(isbn="1"))
    second = store.save(make_book(isbn="2"))

    assert first.id == 1
    assert second.id == 2
    assert store.count() == 2


def test_save_updates_in_place(store):
    saved = store.save(make_book(isbn="1"))
    store.save(make_book(isbn="1", title="Novo", id=saved.id))

    assert store.count() == 1
    assert store.find_by_id(saved.id).title == "Novo"


def test_find_all_in_insertion_order(store):
    for isbn in ("3", "1", "2"):
        store.save(make_book(isbn=isbn))
    assert [b.isbn for b in store.find_all()] == ["3", "1", "2"]


def test_unique_isbn_enforced(store):
    store.save(make_book(isbn="1"))
    with pytest.raises(StorageError):
        store.save(make_book(isbn="1"))


def test_delete_missing_id_is_noop(store):
    store.delete_by_id(42)
    assert store.count() == 0


def test_unit_of_work_rolls_back(store):
    """Test that writes inside a failed unit of work disappear."""
    kept = store.save(make_book(isbn="1"))

    with pytest.raises(RuntimeError):
        with store.unit_of_work():
            store.save(make_book(isbn="2"))
            store.save(make_book(isbn="1", title="Changed", id=kept.id))
            raise RuntimeError("boom")

    assert store.count() == 1
    assert store.find_by_id(kept.id).title == kept.title
    # ids handed out inside the failed block are reused
    assert store.save(make_book(isbn="3")).id == 2


def test_unit_of_work_commits(store):
    with store.unit_of_work():
        store.save(make_book(isbn="1"))
    assert store.count() == 1
