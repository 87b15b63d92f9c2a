"""Async Open Library client for caller-owned, non-blocking lookups."""
import asyncio
from dataclasses import replace
import httpx
from typing import Dict, Iterable, Optional
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


class AsyncOpenLibraryClient:
    """Async client for parallel ISBN lookups."""

    API_URL = "https://openlibrary.org/api/books"
    COVERS_URL = "https://covers.openlibrary.org"

    def __init__(
        self,
        api_url: Optional[str] = None,
        covers_url: Optional[str] = None,
        connect_timeout: float = 5.0,
        read_timeout: float = 5.0,
        max_concurrent: int = 5,
        cover_min_bytes: int = COVER_MIN_BYTES,
        transport: Optional[httpx.AsyncBaseTransport] = None
    ):
        """
        Initialize async client.

        Args:
            api_url: Books API endpoint
            covers_url: Covers host base URL
            connect_timeout: Connect timeout in seconds
            read_timeout: Read timeout in seconds
            max_concurrent: Maximum concurrent requests
            cover_min_bytes: Smallest cover size accepted as a real image
            transport: Optional httpx transport (used by tests)
        """
        self.api_url = api_url or self.API_URL
        self.covers_url = (covers_url or self.COVERS_URL).rstrip("/")
        self.cover_min_bytes = cover_min_bytes
        self.semaphore = asyncio.Semaphore(max_concurrent)

        timeout = httpx.Timeout(read_timeout, connect=connect_timeout)
        self.client = httpx.AsyncClient(timeout=timeout, transport=transport)

    @classmethod
    def from_config(cls, config, max_concurrent: int = 5) -> "AsyncOpenLibraryClient":
        return cls(
            api_url=config.OPENLIBRARY_API_URL,
            covers_url=config.OPENLIBRARY_COVERS_URL,
            connect_timeout=config.CONNECT_TIMEOUT,
            read_timeout=config.READ_TIMEOUT,
            max_concurrent=max_concurrent,
            cover_min_bytes=config.COVER_MIN_BYTES,
        )

    async def lookup(self, isbn: str) -> Optional[Book]:
        """
        Look a book up asynchronously, cover included.

        Args:
            isbn: ISBN to look up

        Returns:
            Book or None if Open Library has no entry

        Raises:
            ExternalServiceError: network fault, non-200 status or malformed body
        """
        params = {"bibkeys": bibkey(isbn), "jscmd": "data", "format": "json"}

        # Use semaphore to limit concurrency
        async with self.semaphore:
            try:
                logger.info(f"Async lookup: ISBN {isbn}")
                response = await self.client.get(self.api_url, params=params)
            except httpx.HTTPError as e:
                logger.error(f"Async lookup failed for ISBN {isbn}: {e}")
                raise ExternalServiceError(f"Open Library request failed: {e}") from e

        if response.status_code != 200:
            logger.warning(f"Status {response.status_code} for ISBN {isbn}")
            raise ExternalServiceError(f"HTTP error {response.status_code}")

        try:
            book = parse_lookup_response(response.json(), isbn)
        except (ValueError, KeyError, IndexError, TypeError, AttributeError) as e:
            raise ExternalServiceError(f"Malformed Open Library response: {e}") from e

        if book is None:
            return None

        cover = await self.download_cover(isbn)
        return replace(book, cover_image=cover) if cover is not None else book

    async def download_cover(self, isbn: str) -> Optional[bytes]:
        """Download the medium cover; failures mean no cover."""
        url = f"{self.covers_url}/b/isbn/{isbn}-M.jpg"
        async with self.semaphore:
            try:
                response = await self.client.get(url, follow_redirects=True)
            except httpx.HTTPError as e:
                logger.warning(f"Could not download cover for ISBN {isbn}: {e}")
                return None

        if response.status_code != 200:
            return None
        return usable_cover(response.content, self.cover_min_bytes)

    async def lookup_many(self, isbns: Iterable[str]) -> Dict[str, Optional[Book]]:
        """
        Look up several ISBNs in parallel.

        Args:
            isbns: ISBNs to look up

        Returns:
            Mapping of ISBN to Book, or None for ISBNs that were not found or failed
        """
        isbns = list(dict.fromkeys(isbns))
        results = await asyncio.gather(
            *(self.lookup(isbn) for isbn in isbns),
            return_exceptions=True
        )

        books: Dict[str, Optional[Book]] = {}
        for isbn, result in zip(isbns, results):
            if isinstance(result, ExternalServiceError):
                logger.error(f"Lookup failed for ISBN {isbn}: {result}")
                books[isbn] = None
            elif isinstance(result, BaseException):
                raise result
            else:
                books[isbn] = result
        return books

    async def close(self):
        """Close the HTTP client."""
        await self.client.aclose()

    async def __aenter__(self):
        """Async context manager entry."""
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        """Async context manager exit."""
        await self.close()
