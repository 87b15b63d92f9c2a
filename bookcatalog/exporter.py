"""CSV export of the full catalog."""
import csv
from pathlib import Path
from typing import Union
import logging

from bookcatalog.errors import CatalogIOError
from bookcatalog.store import RecordStore

logger = logging.getLogger(__name__)

EXPORT_HEADER = ["ID", "ISBN", "Titulo", "Autores", "Editora", "Data"]


def _cell(value) -> str:
    return "" if value is None else str(value)


class CsvExporter:
    """Write every stored record to a UTF-8 CSV file."""

    def __init__(self, store: RecordStore):
        self.store = store

    def export_to(self, destination: Union[str, Path]) -> Path:
        """
        Export the catalog, overwriting ``destination``.

        Args:
            destination: Target file; ``.csv`` is appended when missing

        Returns:
            Path of the written file

        Raises:
            CatalogIOError: empty destination, or the file could not be written
        """
        path = Path(str(destination).strip())
        if not path.name:
            raise CatalogIOError(f"Export destination {str(destination)!r} is not a file name.")

        if path.suffix.lower() != ".csv":
            path = path.with_name(path.name + ".csv")

        logger.info(f"Starting CSV export to {path}")
        books = self.store.find_all()
        logger.info(f"Books found for export: {len(books)}")

        try:
            with open(path, "w", newline="", encoding="utf-8") as f:
                writer = csv.writer(f)
                writer.writerow(EXPORT_HEADER)

                for book in books:
                    writer.writerow([
                        _cell(book.id),
                        _cell(book.isbn),
                        _cell(book.title),
                        _cell(book.authors),
                        _cell(book.publisher),
                        _cell(book.publication_date),
                    ])
        except OSError as e:
            logger.error(f"Failed to export CSV file: {e}")
            raise CatalogIOError(f"Error exporting CSV file: {e}") from e

        logger.info(f"Exported {len(books)} books to {path}")
        return path
