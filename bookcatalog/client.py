"""HTTP client for the Open Library books and covers APIs."""
import time
import random
from abc import ABC, abstractmethod
from dataclasses import replace
import requests
from typing import Optional, Dict, Any, Tuple
import logging

from bookcatalog.errors import ExternalServiceError
from bookcatalog.models import Book
from bookcatalog.parse import (
    COVER_MIN_BYTES,
    bibkey,
    parse_lookup_response,
    usable_cover,
)

logger = logging.getLogger(__name__)


class MetadataProvider(ABC):
    """Bibliographic lookup by ISBN plus cover download."""

    @abstractmethod
    def fetch_book(self, isbn: str) -> Optional[Book]:
        """Return the record for ``isbn`` or None; raise ExternalServiceError on failure."""

    @abstractmethod
    def download_cover(self, isbn: str) -> Optional[bytes]:
        """Return usable cover bytes or None. Never raises."""


class OpenLibraryClient(MetadataProvider):
    """Client for Open Library with bounded timeouts, retries, and backoff."""

    API_URL = "https://openlibrary.org/api/books"
    COVERS_URL = "https://covers.openlibrary.org"

    def __init__(
        self,
        api_url: Optional[str] = None,
        covers_url: Optional[str] = None,
        connect_timeout: float = 5.0,
        read_timeout: float = 5.0,
        max_retries: int = 2,
        base_backoff: float = 0.5,
        cover_min_bytes: int = COVER_MIN_BYTES
    ):
        """
        Initialize Open Library client.

        Args:
            api_url: Books API endpoint
            covers_url: Covers host base URL
            connect_timeout: Connect timeout in seconds
            read_timeout: Read timeout in seconds
            max_retries: Maximum number of attempts per lookup
            base_backoff: Base delay for exponential backoff
            cover_min_bytes: Smallest cover size accepted as a real image
        """
        self.api_url = api_url or self.API_URL
        self.covers_url = (covers_url or self.COVERS_URL).rstrip("/")
        self.timeout: Tuple[float, float] = (connect_timeout, read_timeout)
        self.max_retries = max(1, max_retries)
        self.base_backoff = base_backoff
        self.cover_min_bytes = cover_min_bytes

        # Create session for connection pooling
        self.session = requests.Session()

    @classmethod
    def from_config(cls, config) -> "OpenLibraryClient":
        return cls(
            api_url=config.OPENLIBRARY_API_URL,
            covers_url=config.OPENLIBRARY_COVERS_URL,
            connect_timeout=config.CONNECT_TIMEOUT,
            read_timeout=config.READ_TIMEOUT,
            max_retries=config.DEFAULT_MAX_RETRIES,
            cover_min_bytes=config.COVER_MIN_BYTES,
        )

    def cover_url(self, isbn: str) -> str:
        return f"{self.covers_url}/b/isbn/{isbn}-M.jpg"

    def fetch_book(self, isbn: str) -> Optional[Book]:
        """
        Look a book up by ISBN and attach its cover when one is available.

        Args:
            isbn: ISBN as typed by the user

        Returns:
            Book or None if Open Library has no entry for the ISBN

        Raises:
            ExternalServiceError: network fault, non-200 status or malformed body
        """
        logger.info(f"Querying Open Library for ISBN {isbn}")
        params = {
            "bibkeys": bibkey(isbn),
            "jscmd": "data",
            "format": "json"
        }
        response_json = self._make_request_with_retry(self.api_url, params)

        try:
            book = parse_lookup_response(response_json, isbn)
        except (KeyError, IndexError, TypeError, AttributeError) as e:
            logger.error(f"Unexpected response shape for ISBN {isbn}: {e}")
            raise ExternalServiceError(f"Malformed Open Library response: {e}") from e

        if book is None:
            return None

        cover = self.download_cover(isbn)
        if cover is not None:
            book = replace(book, cover_image=cover)

        logger.info(f"Processed '{book.title}' for ISBN {isbn}")
        return book

    def download_cover(self, isbn: str) -> Optional[bytes]:
        """
        Download the medium cover for ``isbn``.

        Any failure is logged and reported as no cover.
        """
        url = self.cover_url(isbn)
        logger.debug(f"Downloading cover: {url}")
        try:
            response = self.session.get(url, timeout=self.timeout)
            if response.status_code != 200:
                logger.debug(f"No cover for ISBN {isbn} (status {response.status_code})")
                return None
            return usable_cover(response.content, self.cover_min_bytes)
        except requests.exceptions.RequestException as e:
            logger.warning(f"Could not download cover for ISBN {isbn}: {e}")
            return None

    def _make_request_with_retry(
        self,
        url: str,
        params: Dict[str, Any]
    ) -> Dict[str, Any]:
        """
        Make HTTP request with retry logic.

        Args:
            url: Request URL
            params: Query parameters

        Returns:
            Response JSON

        Raises:
            ExternalServiceError: when the request cannot be completed
        """
        last_error = "no attempt made"

        for attempt in range(self.max_retries):
            try:
                logger.debug(f"Request attempt {attempt + 1}/{self.max_retries}: {url}")

                response = self.session.get(
                    url,
                    params=params,
                    timeout=self.timeout
                )

                if response.status_code == 200:
                    try:
                        return response.json()
                    except ValueError as e:
                        raise ExternalServiceError(f"Invalid JSON from Open Library: {e}") from e

                last_error = f"HTTP error {response.status_code}"

                if response.status_code == 429 or response.status_code >= 500:
                    # Rate limited or server error - retryable
                    logger.warning(f"{last_error} on attempt {attempt + 1}")
                    if attempt < self.max_retries - 1:
                        self._backoff(attempt)
                        continue
                    break

                # Client error - don't retry
                logger.error(f"{last_error}: {url}")
                raise ExternalServiceError(last_error)

            except requests.exceptions.Timeout:
                last_error = "request timed out"
                logger.warning(f"Timeout on attempt {attempt + 1}")
                if attempt < self.max_retries - 1:
                    self._backoff(attempt)
                    continue

            except requests.exceptions.ConnectionError as e:
                last_error = f"connection error: {e}"
                logger.warning(f"Connection error on attempt {attempt + 1}: {e}")
                if attempt < self.max_retries - 1:
                    self._backoff(attempt)
                    continue

            except requests.exceptions.RequestException as e:
                logger.error(f"Unexpected request error: {e}")
                raise ExternalServiceError(f"Open Library request failed: {e}") from e

        logger.error(f"All {self.max_retries} attempts failed: {last_error}")
        raise ExternalServiceError(f"Open Library unavailable: {last_error}")

    def _backoff(self, attempt: int):
        """
        Sleep with exponential backoff and jitter.

        Args:
            attempt: Current attempt number (0-indexed)
        """
        delay = self.base_backoff * (2 ** attempt)
        jitter = random.uniform(0, delay)
        total_delay = delay + jitter

        logger.info(f"Backing off for {total_delay:.2f} seconds")
        time.sleep(total_delay)

    def close(self):
        """Close the session."""
        self.session.close()

    def __enter__(self):
        """Context manager entry."""
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        """Context manager exit."""
        self.close()
