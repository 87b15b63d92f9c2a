"""Bulk CSV import keyed by ISBN."""
import csv
from dataclasses import replace
from pathlib import Path
from typing import List, TextIO, Union
import logging

from bookcatalog.errors import (
    CatalogIOError,
    EmptyOrMalformedError,
    ImportFileNotFoundError,
)
from bookcatalog.models import Book, ImportReport
from bookcatalog.service import validate_book
from bookcatalog.store import RecordStore

logger = logging.getLogger(__name__)

ISBN_COLUMN = "ISBN"
TITLE_COLUMN = "Titulo"
AUTHORS_COLUMN = "Autores"
PUBLISHER_COLUMN = "Editora"
DATE_COLUMN = "Data"


class CsvImporter:
    """
    Merge a CSV file into the catalog.

    Rows whose ISBN is already stored update that record; the others create
    new records. The whole file is applied in one unit of work.
    """

    def __init__(self, store: RecordStore, validate_rows: bool = False):
        """
        Args:
            store: Record store to merge into
            validate_rows: Reject rows with blank required fields (off by default,
                blank titles and authors are imported as-is)
        """
        self.store = store
        self.validate_rows = validate_rows

    def import_from(self, source: Union[str, Path, TextIO]) -> ImportReport:
        """
        Import a CSV file or open text stream.

        Args:
            source: Path to a UTF-8 CSV file, or a text stream

        Returns:
            ImportReport with created/updated/read counts

        Raises:
            ImportFileNotFoundError: the path does not exist
            EmptyOrMalformedError: empty file, no ISBN column, or a malformed row
            CatalogIOError: the file could not be read
            ValidationError: a row is incomplete and ``validate_rows`` is set
            StorageError: the store failed; nothing was applied
        """
        if hasattr(source, "read"):
            return self._import_stream(source)

        path = Path(source)
        logger.info(f"Starting CSV import from {path}")
        if not path.exists():
            logger.error(f"CSV file not found: {path}")
            raise ImportFileNotFoundError(str(path))

        try:
            with open(path, newline="", encoding="utf-8-sig") as f:
                return self._import_stream(f)
        except OSError as e:
            logger.error(f"I/O error while reading {path}: {e}")
            raise CatalogIOError(f"Error reading CSV file: {e}") from e

    def _import_stream(self, stream: TextIO) -> ImportReport:
        reader = csv.reader(stream, strict=True)

        try:
            header = self._read_header(reader)
            positions = {name: index for index, name in enumerate(header)}

            created = updated = total = 0
            with self.store.unit_of_work():
                for row in reader:
                    if not row:
                        continue
                    total += 1
                    if len(row) != len(header):
                        raise EmptyOrMalformedError(
                            f"Line {reader.line_num}: expected {len(header)} fields, got {len(row)}"
                        )
                    values = [value.strip() for value in row]

                    def column(name: str) -> str:
                        index = positions.get(name)
                        return values[index] if index is not None else ""

                    book, is_update = self._merge_row(
                        isbn=column(ISBN_COLUMN),
                        title=column(TITLE_COLUMN),
                        authors=column(AUTHORS_COLUMN),
                        publisher=column(PUBLISHER_COLUMN),
                        publication_date=column(DATE_COLUMN),
                    )
                    if self.validate_rows:
                        validate_book(book)
                    self.store.save(book)

                    if is_update:
                        updated += 1
                    else:
                        created += 1
        except csv.Error as e:
            logger.error(f"Malformed CSV at line {reader.line_num}: {e}")
            raise EmptyOrMalformedError(f"Invalid CSV format at line {reader.line_num}: {e}") from e
        except UnicodeDecodeError as e:
            logger.error(f"CSV is not valid UTF-8: {e}")
            raise EmptyOrMalformedError(f"Invalid CSV encoding: {e}") from e

        report = ImportReport(created=created, updated=updated, total_read=total)
        logger.info(f"Import finished: {report.summary}")
        return report

    def _read_header(self, reader) -> List[str]:
        # Blank lines before the header are skipped like blank data rows
        header = next(reader, None)
        while header == []:
            header = next(reader, None)
        if not header or not any(name.strip() for name in header):
            raise EmptyOrMalformedError("The CSV file is empty or has an invalid format.")

        header = [name.strip() for name in header]
        if ISBN_COLUMN not in header:
            logger.error("Invalid CSV structure: ISBN column missing")
            raise EmptyOrMalformedError("Invalid CSV file: column 'ISBN' not found.")
        return header

    def _merge_row(self, isbn, title, authors, publisher, publication_date):
        """Build the record a row turns into. Returns ``(book, is_update)``."""
        existing = self.store.find_by_isbn(isbn)
        if existing is not None:
            logger.debug(f"Updating existing book, ISBN {isbn}")
            book = replace(
                existing,
                title=title,
                authors=authors,
                publisher=publisher,
                publication_date=publication_date,
            )
            return book, True

        logger.debug(f"Creating new book, ISBN {isbn}")
        book = Book(
            isbn=isbn,
            title=title,
            authors=authors,
            publisher=publisher,
            publication_date=publication_date,
        )
        return book, False
