"""
Timestamp parsing for feed and API payloads.

Feeds publish RFC 822 dates (RSS) or W3C-DTF/ISO-8601 (Atom), sometimes
neither. The news API uses strict ISO-8601 instants. Unparseable values fall
back to the current time so the entry is still ingested.
"""

from datetime import datetime, timezone
from email.utils import parsedate_to_datetime
from enum import Enum
from typing import NamedTuple, Optional

from dateutil import parser as dateutil_parser

from .errors import DateParseError
from .logging_conf import get_logger

logger = get_logger(__name__)


class DateFormat(str, Enum):
    """Timestamp dialects understood by the normalizer."""
    FEED = "feed"
    ISO_INSTANT = "iso_instant"


class ParsedDate(NamedTuple):
    value: datetime
    is_fallback: bool


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


def as_utc(value: datetime) -> datetime:
    """Return an aware UTC datetime; naive values are taken as UTC."""
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def _parse_feed_date(raw: str) -> datetime:
    try:
        return parsedate_to_datetime(raw)
    except (TypeError, ValueError, IndexError):
        pass

    try:
        return dateutil_parser.isoparse(raw)
    except (ValueError, OverflowError):
        pass

    try:
        return dateutil_parser.parse(raw)
    except (ValueError, OverflowError) as e:
        raise DateParseError(f"Unrecognized feed date {raw!r}: {e}")


def _parse_iso_instant(raw: str) -> datetime:
    text = raw.strip()
    if text.endswith(("Z", "z")):
        text = text[:-1] + "+00:00"
    try:
        parsed = datetime.fromisoformat(text)
    except ValueError as e:
        raise DateParseError(f"Invalid ISO-8601 instant {raw!r}: {e}")
    if parsed.tzinfo is None:
        raise DateParseError(f"ISO-8601 instant without offset: {raw!r}")
    return parsed


def parse_timestamp(raw: Optional[str], fmt: DateFormat) -> datetime:
    """
    Parse a timestamp strictly.

    Raises:
        DateParseError: if the value is absent or cannot be parsed
    """
    if raw is None or not str(raw).strip():
        raise DateParseError("Missing timestamp")

    raw = str(raw).strip()
    if fmt == DateFormat.ISO_INSTANT:
        parsed = _parse_iso_instant(raw)
    else:
        parsed = _parse_feed_date(raw)
    return as_utc(parsed)


def parse_date(
    raw: Optional[str],
    fmt: DateFormat,
    context: Optional[str] = None,
) -> ParsedDate:
    """
    Parse a timestamp, falling back to the current UTC time.

    Args:
        raw: Raw timestamp string from the payload (may be None)
        fmt: Dialect of the payload
        context: Label for log messages (usually the entry title)

    Returns:
        ParsedDate with is_fallback set when the wall clock was used
    """
    try:
        return ParsedDate(parse_timestamp(raw, fmt), False)
    except DateParseError as e:
        logger.warning(
            "date_parse_fallback",
            raw=raw,
            format=fmt.value,
            entry=context,
            error=str(e),
        )
        return ParsedDate(utc_now(), True)
