"""
Entry normalization.

Maps a syndication RawEntry or a news API article onto a DraftArticle:
title and link are required, everything else degrades gracefully
(description/author empty, category defaulted, image placeholder,
published date falls back to now).
"""

from dataclasses import dataclass, field
from typing import Optional
from urllib.parse import urlparse

from bs4 import BeautifulSoup

from .config import DEFAULT_PLACEHOLDER_IMAGE_URL
from .dates import DateFormat, parse_date
from .errors import EntryValidationError
from .images import DEFAULT_PLACEHOLDER_DOMAINS, apply_image_fallback, extract_image
from .logging_conf import get_logger
from .models import DraftArticle, NewsApiArticle, RawEntry

logger = get_logger(__name__)

DEFAULT_FEED_CATEGORY = "General"


@dataclass
class NormalizeContext:
    """Per-source settings that shape normalization."""
    source_name: str
    default_category: str = DEFAULT_FEED_CATEGORY
    placeholder_image_url: str = DEFAULT_PLACEHOLDER_IMAGE_URL
    placeholder_domains: list[str] = field(
        default_factory=lambda: list(DEFAULT_PLACEHOLDER_DOMAINS)
    )


def clean_html(text: Optional[str]) -> Optional[str]:
    """Strip markup, collapse whitespace; empty results become None."""
    if not text:
        return None
    if "<" in text:
        text = BeautifulSoup(text, "lxml").get_text(separator=" ", strip=True)
    text = " ".join(text.split())
    return text or None


def _blank_to_none(value: Optional[str]) -> Optional[str]:
    if value is None:
        return None
    value = value.strip()
    return value or None


def require_fields(title: Optional[str], link: Optional[str]) -> tuple[str, str]:
    """
    Validate the fields an article cannot exist without.

    Returns:
        (title, link) stripped

    Raises:
        EntryValidationError: on a missing title or a link that is not an
            absolute http(s) URL
    """
    title = _blank_to_none(title)
    link = _blank_to_none(link)
    if not title:
        raise EntryValidationError(f"Entry has no title (link={link!r})")
    if not link:
        raise EntryValidationError(f"Entry {title!r} has no link")
    try:
        parsed = urlparse(link)
    except ValueError as e:
        raise EntryValidationError(f"Entry {title!r} has a malformed link {link!r}: {e}")
    if parsed.scheme.lower() not in ("http", "https") or not parsed.netloc:
        raise EntryValidationError(f"Entry {title!r} has an unresolvable link {link!r}")
    return title, link


def normalize_feed_entry(entry: RawEntry, context: NormalizeContext) -> Optional[DraftArticle]:
    """Normalize a syndication entry. Returns None when the entry is dropped."""
    try:
        title, link = require_fields(entry.title, entry.link)
    except EntryValidationError as e:
        logger.warning("entry_dropped", source=context.source_name, reason=str(e))
        return None

    published = parse_date(entry.published, DateFormat.FEED, context=title)

    categories = [c.strip() for c in entry.categories if c and c.strip()]
    category = categories[0] if categories else context.default_category

    return DraftArticle(
        url=link,
        title=title,
        description=clean_html(entry.summary),
        image_url=extract_image(
            entry,
            placeholder_url=context.placeholder_image_url,
            placeholder_domains=context.placeholder_domains,
        ),
        published_date=published.value,
        date_is_fallback=published.is_fallback,
        category=category,
        author=_blank_to_none(entry.author),
    )


def normalize_api_article(article: NewsApiArticle, context: NormalizeContext) -> Optional[DraftArticle]:
    """
    Normalize a news API article.

    The context's default_category is the queried topic.
    """
    try:
        title, link = require_fields(article.title, article.url)
    except EntryValidationError as e:
        logger.warning("entry_dropped", source=context.source_name, reason=str(e))
        return None

    published = parse_date(article.published_at, DateFormat.ISO_INSTANT, context=title)

    return DraftArticle(
        url=link,
        title=title,
        description=clean_html(article.description),
        image_url=apply_image_fallback(
            article.url_to_image,
            placeholder_url=context.placeholder_image_url,
            placeholder_domains=context.placeholder_domains,
        ),
        published_date=published.value,
        date_is_fallback=published.is_fallback,
        category=context.default_category,
        author=_blank_to_none(article.author),
    )
