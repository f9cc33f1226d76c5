"""
Error taxonomy for the ingestion pipeline.

Every error here is contained where it is raised: per entry, per source, or
per cycle. None of them escapes the ingestion runner.
"""

from typing import Optional


class IngestionError(Exception):
    """Base class for all pipeline errors."""

    def __init__(self, message: str, source: Optional[str] = None):
        super().__init__(message)
        self.source = source


class FetchError(IngestionError):
    """Transient network failure (timeout, DNS, TLS, HTTP status). Source skipped."""

    def __init__(self, message: str, source: Optional[str] = None, status_code: Optional[int] = None):
        super().__init__(message, source)
        self.status_code = status_code


class ParseError(IngestionError):
    """Malformed feed or API response body. Source skipped."""


class ConfigurationError(IngestionError):
    """Missing or rejected credentials. Disables the affected fetch path."""


class EntryValidationError(IngestionError):
    """Entry without a title or a resolvable link. Entry dropped."""


class DateParseError(IngestionError):
    """Unparseable timestamp. Recovered with the ingestion time."""


class ImageResolutionError(IngestionError):
    """Image candidate that cannot be turned into an absolute URL. Recovered with the placeholder."""


class CatalogConflictError(IngestionError):
    """Uniqueness constraint hit on save; the row already exists."""
