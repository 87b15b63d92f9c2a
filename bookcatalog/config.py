"""Configuration management."""
import os
from dotenv import load_dotenv

# Load environment variables
load_dotenv()


class Config:
    """Application configuration."""

    # Database
    DB_HOST = os.getenv("DB_HOST", "localhost")
    DB_PORT = os.getenv("DB_PORT", "5432")
    DB_NAME = os.getenv("DB_NAME", "bookcatalog")
    DB_USER = os.getenv("DB_USER", "postgres")
    DB_PASSWORD = os.getenv("DB_PASSWORD", "")

    @property
    def DATABASE_URL(self):
        """Build PostgreSQL connection string."""
        return f"postgresql://{self.DB_USER}:{self.DB_PASSWORD}@{self.DB_HOST}:{self.DB_PORT}/{self.DB_NAME}"

    # Open Library
    OPENLIBRARY_API_URL = os.getenv("OPENLIBRARY_API_URL", "https://openlibrary.org/api/books")
    OPENLIBRARY_COVERS_URL = os.getenv("OPENLIBRARY_COVERS_URL", "https://covers.openlibrary.org")

    # Network defaults
    CONNECT_TIMEOUT = float(os.getenv("CONNECT_TIMEOUT", "5"))
    READ_TIMEOUT = float(os.getenv("READ_TIMEOUT", "5"))
    DEFAULT_MAX_RETRIES = int(os.getenv("DEFAULT_MAX_RETRIES", "2"))

    # Covers smaller than this are the 1x1 placeholder
    COVER_MIN_BYTES = int(os.getenv("COVER_MIN_BYTES", "100"))

    DEFAULT_EXPORT_PATH = os.getenv("DEFAULT_EXPORT_PATH", "books_export.csv")
    LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO")
