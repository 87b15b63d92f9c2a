"""PostgreSQL record store."""
import psycopg2
from psycopg2 import pool
from contextlib import contextmanager
from typing import Optional, List, Iterator
import logging

from bookcatalog.errors import StorageError
from bookcatalog.models import Book
from bookcatalog.store import RecordStore

logger = logging.getLogger(__name__)

_COLUMNS = """id, title, authors, publication_date, isbn, publisher,
              related_titles, cover_image"""


def _row_to_book(row) -> Book:
    """Build a Book from a ``books`` row selected with ``_COLUMNS``."""
    book_id, title, authors, publication_date, isbn, publisher, related, cover = row
    return Book(
        id=book_id,
        title=title,
        authors=authors,
        publication_date=publication_date,
        isbn=isbn,
        publisher=publisher,
        related_titles=related,
        # BYTEA comes back as a memoryview
        cover_image=bytes(cover) if cover is not None else None,
    )


class PostgresRecordStore(RecordStore):
    """PostgreSQL record store with connection pooling."""

    def __init__(self, connection_string: str, min_conn: int = 1, max_conn: int = 10):
        """
        Initialize database connection pool.

        Args:
            connection_string: PostgreSQL connection string
            min_conn: Minimum connections in pool
            max_conn: Maximum connections in pool
        """
        try:
            self.connection_pool = psycopg2.pool.SimpleConnectionPool(
                min_conn,
                max_conn,
                connection_string
            )
        except psycopg2.Error as e:
            logger.error(f"Failed to create connection pool: {e}")
            raise StorageError(f"Could not connect to database: {e}") from e

        # Connection pinned by an open unit of work
        self._tx_conn = None
        logger.info("Database connection pool created successfully")

    def _getconn(self):
        try:
            return self.connection_pool.getconn()
        except psycopg2.Error as e:
            logger.error(f"Could not get a database connection: {e}")
            raise StorageError(f"Could not get a database connection: {e}") from e

    def _rollback(self, conn):
        # A dropped connection fails the rollback too; the original fault is the one to report
        try:
            conn.rollback()
        except psycopg2.Error as e:
            logger.warning(f"Rollback failed: {e}")

    @contextmanager
    def _cursor(self):
        """
        Yield a cursor, committing afterwards unless a unit of work is open.

        psycopg2 errors are rolled back and re-raised as StorageError.
        """
        if self._tx_conn is not None:
            try:
                with self._tx_conn.cursor() as cur:
                    yield cur
            except psycopg2.Error as e:
                logger.error(f"Database error inside unit of work: {e}")
                raise StorageError(str(e)) from e
            return

        conn = self._getconn()
        try:
            with conn.cursor() as cur:
                yield cur
            conn.commit()
        except psycopg2.Error as e:
            self._rollback(conn)
            logger.error(f"Database error: {e}")
            raise StorageError(str(e)) from e
        except Exception:
            self._rollback(conn)
            raise
        finally:
            self.connection_pool.putconn(conn)

    def init_schema(self):
        """Create the books table if it doesn't exist."""
        with self._cursor() as cur:
            cur.execute("""
                CREATE TABLE IF NOT EXISTS books (
                    id SERIAL PRIMARY KEY,
                    title VARCHAR(255) NOT NULL,
                    authors TEXT NOT NULL,
                    publication_date VARCHAR(50),
                    isbn VARCHAR(20) NOT NULL UNIQUE,
                    publisher TEXT,
                    related_titles TEXT,
                    cover_image BYTEA,
                    created_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP,
                    updated_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP
                )
            """)
        logger.info("Database schema initialized successfully")

    def find_by_id(self, book_id: int) -> Optional[Book]:
        with self._cursor() as cur:
            cur.execute(f"SELECT {_COLUMNS} FROM books WHERE id = %s", (book_id,))
            row = cur.fetchone()
        return _row_to_book(row) if row else None

    def find_by_isbn(self, isbn: str) -> Optional[Book]:
        with self._cursor() as cur:
            cur.execute(f"SELECT {_COLUMNS} FROM books WHERE isbn = %s", (isbn,))
            row = cur.fetchone()
        return _row_to_book(row) if row else None

    def save(self, book: Book) -> Book:
        """
        Insert or update a book.

        Args:
            book: Book value; inserted when it has no id

        Returns:
            The persisted Book with its id populated
        """
        cover = psycopg2.Binary(book.cover_image) if book.cover_image is not None else None
        values = (
            book.title, book.authors, book.publication_date, book.isbn,
            book.publisher, book.related_titles, cover,
        )

        with self._cursor() as cur:
            if book.id is None:
                cur.execute("""
                    INSERT INTO books (
                        title, authors, publication_date, isbn, publisher,
                        related_titles, cover_image
                    ) VALUES (%s, %s, %s, %s, %s, %s, %s)
                    RETURNING id
                """, values)
                book_id = cur.fetchone()[0]
                logger.debug(f"Inserted book {book_id} (ISBN {book.isbn})")
                return book.with_id(book_id)

            cur.execute("""
                UPDATE books SET
                    title = %s,
                    authors = %s,
                    publication_date = %s,
                    isbn = %s,
                    publisher = %s,
                    related_titles = %s,
                    cover_image = %s,
                    updated_at = CURRENT_TIMESTAMP
                WHERE id = %s
            """, values + (book.id,))
            if cur.rowcount == 0:
                raise StorageError(f"No book with id {book.id} to update")
            logger.debug(f"Updated book {book.id} (ISBN {book.isbn})")
            return book

    def delete_by_id(self, book_id: int) -> None:
        with self._cursor() as cur:
            cur.execute("DELETE FROM books WHERE id = %s", (book_id,))

    def find_all(self) -> List[Book]:
        with self._cursor() as cur:
            cur.execute(f"SELECT {_COLUMNS} FROM books ORDER BY id")
            rows = cur.fetchall()
        return [_row_to_book(row) for row in rows]

    def count(self) -> int:
        with self._cursor() as cur:
            cur.execute("SELECT COUNT(*) FROM books")
            return cur.fetchone()[0]

    @contextmanager
    def unit_of_work(self) -> Iterator["PostgresRecordStore"]:
        """Run every statement in the block on one connection and one transaction."""
        if self._tx_conn is not None:
            # Nested blocks join the outer transaction
            yield self
            return

        conn = self._getconn()
        self._tx_conn = conn
        try:
            yield self
            conn.commit()
        except psycopg2.Error as e:
            self._rollback(conn)
            logger.error(f"Transaction rolled back: {e}")
            raise StorageError(str(e)) from e
        except BaseException:
            self._rollback(conn)
            logger.info("Transaction rolled back")
            raise
        finally:
            self._tx_conn = None
            self.connection_pool.putconn(conn)

    def close(self):
        """Close all connections in the pool."""
        if self.connection_pool:
            self.connection_pool.closeall()
            logger.info("Database connection pool closed")

    def __enter__(self):
        """Context manager entry."""
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        """Context manager exit."""
        self.close()
