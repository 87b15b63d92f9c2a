"""Parse and normalize Open Library book API responses."""
import re
from typing import Dict, Any, Optional
import logging

from bookcatalog.models import Book

logger = logging.getLogger(__name__)

UNKNOWN_TITLE = "Título Desconhecido"
UNKNOWN_AUTHOR = "Autor Desconhecido"
UNKNOWN_PUBLISHER = "Editora n/d"
UNKNOWN_DATE = "S/D"

# Covers below this size are Open Library's transparent 1x1 placeholder
COVER_MIN_BYTES = 100

_YEAR_PATTERN = re.compile(r"\d{4}")


def bibkey(isbn: str) -> str:
    """Key under which the API returns the record for ``isbn``."""
    return f"ISBN:{isbn}"


def extract_year(raw_date: str) -> str:
    """
    Reduce a free-text publish date to its year.

    Args:
        raw_date: Date as sent by the API, e.g. "July 21, 2007"

    Returns:
        First run of four digits, or the raw string when there is none
    """
    match = _YEAR_PATTERN.search(raw_date)
    return match.group() if match else raw_date


def _first_name(entries: Any, fallback: str) -> str:
    if not entries:
        return fallback
    return entries[0]["name"]


def parse_lookup_response(response_json: Dict[str, Any], isbn: str) -> Optional[Book]:
    """
    Parse an Open Library ``jscmd=data`` response.

    Args:
        response_json: Complete API response JSON
        isbn: ISBN the request was made for

    Returns:
        Book without cover or id, or None when the response has no entry for the ISBN

    Raises:
        KeyError, IndexError, TypeError: the entry does not have the documented shape
    """
    if not response_json:
        logger.warning(f"Empty response for ISBN {isbn}")
        return None

    data = response_json.get(bibkey(isbn))
    if data is None:
        logger.warning(f"Key {bibkey(isbn)} not present in response")
        return None

    raw_date = data.get("publish_date")
    publication_date = extract_year(raw_date) if raw_date is not None else UNKNOWN_DATE

    return Book(
        isbn=isbn,
        title=data.get("title", UNKNOWN_TITLE),
        authors=_first_name(data.get("authors"), UNKNOWN_AUTHOR),
        publisher=_first_name(data.get("publishers"), UNKNOWN_PUBLISHER),
        publication_date=publication_date,
    )


def usable_cover(data: Optional[bytes], min_bytes: int = COVER_MIN_BYTES) -> Optional[bytes]:
    """Return the cover bytes, or None for an empty body or the placeholder pixel."""
    if not data:
        return None
    if len(data) < min_bytes:
        logger.debug(f"Cover has only {len(data)} bytes, likely a placeholder; ignoring")
        return None
    return data
