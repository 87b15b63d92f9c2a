#!/usr/bin/env python3
"""Book Catalog CLI - manual entry, CSV import/export and Open Library lookups."""
import argparse
import asyncio
from dataclasses import replace
import sys
import json
from tabulate import tabulate
from bookcatalog.async_client import AsyncOpenLibraryClient
from bookcatalog.client import OpenLibraryClient
from bookcatalog.config import Config
from bookcatalog.database import PostgresRecordStore
from bookcatalog.errors import CatalogError
from bookcatalog.exporter import CsvExporter
from bookcatalog.importer import CsvImporter
from bookcatalog.models import Book
from bookcatalog.service import CatalogService
import logging

logger = logging.getLogger(__name__)

# Errors caused by the input rather than by a technical fault
INPUT_ERROR_KINDS = {"validation", "duplicate_isbn", "malformed_source", "file_not_found"}


def setup_logging(config: Config):
    """Configure root logging."""
    logging.basicConfig(
        level=getattr(logging, config.LOG_LEVEL.upper(), logging.INFO),
        format='%(asctime)s - %(levelname)s - %(message)s'
    )


def setup_store(config: Config) -> PostgresRecordStore:
    """Initialize database."""
    store = PostgresRecordStore(config.DATABASE_URL)
    store.init_schema()
    return store


def truncate(text, width: int) -> str:
    text = text or ""
    return text[:width] + "..." if len(text) > width else text


def book_to_dict(book: Book) -> dict:
    return {
        "id": book.id,
        "isbn": book.isbn,
        "title": book.title,
        "authors": book.authors,
        "publisher": book.publisher,
        "publication_date": book.publication_date,
        "related_titles": book.related_titles,
        "has_cover": book.has_cover,
    }


def display_books(books, format_type: str):
    """Display books in specified format."""
    if format_type == "table":
        headers = ["ID", "ISBN", "Title", "Authors", "Publisher", "Date"]
        rows = [
            [
                book.id if book.id is not None else "-",
                book.isbn,
                truncate(book.title, 50),
                truncate(book.authors, 30),
                truncate(book.publisher, 25),
                book.publication_date or "",
            ]
            for book in books
        ]
        print("\n" + tabulate(rows, headers=headers, tablefmt="grid"))

    elif format_type == "json":
        print(json.dumps([book_to_dict(book) for book in books], indent=2, ensure_ascii=False))

    elif format_type == "compact":
        for i, book in enumerate(books, 1):
            print(f"{i}. {book.title} - {book.authors} ({book.isbn})")


def cmd_add(args, service: CatalogService):
    book = Book(
        isbn=args.isbn,
        title=args.title,
        authors=args.authors,
        publication_date=args.date,
        publisher=args.publisher,
        related_titles=args.related,
    )
    if args.cover:
        book = replace(book, cover_image=service.fetch_cover_image(args.isbn))
    saved = service.save(book)
    print(f"Saved book {saved.id}: {saved.title}")


def cmd_list(args, service: CatalogService):
    books = service.search(args.search) if args.search else service.list_all()
    display_books(books, args.format)


def cmd_show(args, service: CatalogService):
    book = service.get_by_id(args.id)
    rows = [[key, value] for key, value in book_to_dict(book).items()]
    print("\n" + tabulate(rows, tablefmt="plain"))


def cmd_delete(args, service: CatalogService):
    service.delete_by_id(args.id)
    print(f"Deleted book {args.id}")


def cmd_stats(args, service: CatalogService):
    """Show catalog statistics."""
    stats = service.get_stats()

    print("\n" + "=" * 50)
    print("CATALOG STATISTICS")
    print("=" * 50)
    print(f"Total books: {stats['total_books']}")
    print(f"Distinct publishers: {stats['distinct_publishers']}")
    print(f"Most recent title: {stats['most_recent_title']}")
    print("=" * 50 + "\n")


async def lookup_many_async(isbns, config: Config):
    async with AsyncOpenLibraryClient.from_config(config) as client:
        return await client.lookup_many(isbns)


def cmd_lookup(args, service: CatalogService, config: Config):
    if len(args.isbns) == 1:
        books = [service.lookup_external(args.isbns[0])]
    else:
        results = asyncio.run(lookup_many_async(args.isbns, config))
        for isbn, book in results.items():
            if book is None:
                logger.warning(f"No result for ISBN {isbn}")
        books = [book for book in results.values() if book is not None]

    display_books(books, args.format)

    if args.save and books:
        saved = service.save(books[0])
        print(f"Saved book {saved.id}: {saved.title}")


def cmd_refresh(args, service: CatalogService):
    book = service.refresh_from_external(args.id)
    print(f"Refreshed book {book.id}: {book.title}")


def cmd_import(args, store: PostgresRecordStore):
    report = CsvImporter(store, validate_rows=args.strict).import_from(args.file)
    print(f"Import finished: {report.summary}")


def cmd_export(args, store: PostgresRecordStore, config: Config):
    path = CsvExporter(store).export_to(args.output or config.DEFAULT_EXPORT_PATH)
    print(f"Exported catalog to {path}")


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description="Book Catalog - personal catalog manager",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  # Look a book up and store it
  %(prog)s lookup 9780545010221 --save

  # Bulk import and export
  %(prog)s import books.csv
  %(prog)s export --output backup

  # Show statistics
  %(prog)s stats
        """
    )

    subparsers = parser.add_subparsers(dest="command", help="Command to execute")

    add_parser = subparsers.add_parser("add", help="Add a book manually")
    add_parser.add_argument("isbn", help="ISBN")
    add_parser.add_argument("--title", required=True, help="Title")
    add_parser.add_argument("--authors", required=True, help="Author(s)")
    add_parser.add_argument("--date", required=True, help="Publication date or year")
    add_parser.add_argument("--publisher", help="Publisher")
    add_parser.add_argument("--related", help="Related titles")
    add_parser.add_argument("--cover", action="store_true", help="Download cover from Open Library")

    list_parser = subparsers.add_parser("list", help="List books")
    list_parser.add_argument("--search", help="Filter by title, authors, ISBN or publisher")
    list_parser.add_argument("--format", choices=["table", "json", "compact"], default="table", help="Output format")

    show_parser = subparsers.add_parser("show", help="Show one book")
    show_parser.add_argument("id", type=int, help="Book id")

    delete_parser = subparsers.add_parser("delete", help="Delete a book")
    delete_parser.add_argument("id", type=int, help="Book id")

    subparsers.add_parser("stats", help="Show catalog statistics")

    lookup_parser = subparsers.add_parser("lookup", help="Look ISBNs up on Open Library")
    lookup_parser.add_argument("isbns", nargs="+", help="One or more ISBNs")
    lookup_parser.add_argument("--format", choices=["table", "json", "compact"], default="table", help="Output format")
    lookup_parser.add_argument("--save", action="store_true", help="Save the first result")

    refresh_parser = subparsers.add_parser("refresh", help="Refresh a book from Open Library")
    refresh_parser.add_argument("id", type=int, help="Book id")

    import_parser = subparsers.add_parser("import", help="Import books from CSV")
    import_parser.add_argument("file", help="CSV file")
    import_parser.add_argument("--strict", action="store_true", help="Reject rows with blank required fields")

    export_parser = subparsers.add_parser("export", help="Export books to CSV")
    export_parser.add_argument("--output", help="Output file (default: books_export.csv)")

    return parser


def run(args, config: Config, store, provider) -> int:
    """Dispatch a parsed command. Returns the process exit code."""
    service = CatalogService(store, provider)
    try:
        if args.command == "add":
            cmd_add(args, service)
        elif args.command == "list":
            cmd_list(args, service)
        elif args.command == "show":
            cmd_show(args, service)
        elif args.command == "delete":
            cmd_delete(args, service)
        elif args.command == "stats":
            cmd_stats(args, service)
        elif args.command == "lookup":
            cmd_lookup(args, service, config)
        elif args.command == "refresh":
            cmd_refresh(args, service)
        elif args.command == "import":
            cmd_import(args, store)
        elif args.command == "export":
            cmd_export(args, store, config)
    except CatalogError as e:
        print(f"Error: {e}", file=sys.stderr)
        return 2 if e.kind in INPUT_ERROR_KINDS else 1
    return 0


def main():
    """Main CLI entry point."""
    parser = build_parser()
    args = parser.parse_args()

    if not args.command:
        parser.print_help()
        sys.exit(1)

    config = Config()
    setup_logging(config)

    try:
        store = setup_store(config)
    except CatalogError as e:
        print(f"Error: {e}", file=sys.stderr)
        sys.exit(1)

    try:
        with OpenLibraryClient.from_config(config) as provider:
            code = run(args, config, store, provider)
    except KeyboardInterrupt:
        logger.info("\n⚠️  Interrupted by user")
        code = 130
    finally:
        store.close()

    sys.exit(code)


if __name__ == "__main__":
    main()
