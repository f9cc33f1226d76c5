"""
RSS/Atom feed source.

Fetches the feed body over HTTP, parses it with feedparser and normalizes
each entry. All entries of a feed belong to one Source, named after the
feed title.
"""

from dataclasses import dataclass, field
from typing import Any, Optional
from urllib.parse import urlparse

import feedparser
import httpx

from .base import Harvest, HarvestedItem, get_with_retries
from ..config import DEFAULT_PLACEHOLDER_IMAGE_URL
from ..errors import FetchError, ParseError
from ..images import DEFAULT_PLACEHOLDER_DOMAINS
from ..logging_conf import get_logger
from ..models import Enclosure, RawEntry, SourceInfo
from ..normalize import NormalizeContext, normalize_feed_entry

logger = get_logger(__name__)


@dataclass
class ParsedFeed:
    title: Optional[str]
    link: Optional[str]
    entries: list[RawEntry]


def _entry_enclosures(entry: Any) -> list[Enclosure]:
    enclosures = []
    for enc in entry.get("enclosures", []) or []:
        url = enc.get("href") or enc.get("url")
        if url:
            enclosures.append(Enclosure(url=url, type=enc.get("type")))
    # Media RSS attachments, declared after plain enclosures
    for media in entry.get("media_content", []) or []:
        url = media.get("url")
        if url:
            enclosures.append(Enclosure(url=url, type=media.get("type")))
    return enclosures


def _entry_author(entry: Any) -> Optional[str]:
    if entry.get("author"):
        return entry.get("author")
    names = [a.get("name") for a in entry.get("authors", []) or [] if a.get("name")]
    return ", ".join(names) if names else None


def to_raw_entry(entry: Any) -> RawEntry:
    """Reduce a feedparser entry to the fields the pipeline reads."""
    contents = entry.get("content") or []
    content = contents[0].get("value") if contents else None

    categories = []
    for tag in entry.get("tags", []) or []:
        term = tag.get("term") or tag.get("label")
        if term:
            categories.append(term)

    return RawEntry(
        title=entry.get("title"),
        link=entry.get("link"),
        summary=entry.get("summary") or entry.get("description"),
        content=content,
        enclosures=_entry_enclosures(entry),
        categories=categories,
        author=_entry_author(entry),
        published=entry.get("published") or entry.get("updated") or entry.get("created"),
    )


def parse_feed(body: str, label: str = "feed") -> ParsedFeed:
    """
    Parse an RSS/Atom document.

    Recoverable feed errors (bozo with entries) are logged; a document that
    yields neither entries nor a channel title is rejected.

    Raises:
        ParseError: if the body is not a usable feed
    """
    parsed = feedparser.parse(body)
    feed_meta = parsed.get("feed", {}) or {}
    title = (feed_meta.get("title") or "").strip() or None

    if parsed.bozo:
        if not parsed.entries and not title:
            raise ParseError(
                f"Malformed feed {label}: {parsed.get('bozo_exception')!r}",
                source=label,
            )
        logger.warning(
            "feed_parse_warning",
            source=label,
            error=str(parsed.get("bozo_exception")),
        )
    elif not parsed.entries and not title:
        raise ParseError(f"Document at {label} is not a feed", source=label)

    return ParsedFeed(
        title=title,
        link=feed_meta.get("link"),
        entries=[to_raw_entry(e) for e in parsed.entries],
    )


@dataclass
class SyndicationSource:
    """
    A configured feed URL.

    verify_tls is False only for feeds explicitly listed as insecure.
    """
    url: str
    verify_tls: bool = True
    max_attempts: int = 3
    placeholder_image_url: str = DEFAULT_PLACEHOLDER_IMAGE_URL
    placeholder_domains: list[str] = field(
        default_factory=lambda: list(DEFAULT_PLACEHOLDER_DOMAINS)
    )
    kind: str = "rss"

    @property
    def label(self) -> str:
        return self.url

    async def fetch(self, client: httpx.AsyncClient) -> str:
        """Fetch the raw feed body."""
        logger.info("fetching_feed", url=self.url, verify_tls=self.verify_tls)
        response = await get_with_retries(client, self.url, self.label, self.max_attempts)
        if response.is_error:
            raise FetchError(
                f"HTTP {response.status_code} fetching {self.url}",
                source=self.url,
                status_code=response.status_code,
            )
        if not response.text.strip():
            raise FetchError(f"Empty body from {self.url}", source=self.url)
        return response.text

    def source_info(self, feed: ParsedFeed) -> SourceInfo:
        name = feed.title or urlparse(self.url).netloc or self.url
        return SourceInfo(name=name, base_url=feed.link, rss_feed_url=self.url)

    def normalize(self, payload: str) -> Harvest:
        feed = parse_feed(payload, label=self.url)
        info = self.source_info(feed)
        context = NormalizeContext(
            source_name=info.name,
            placeholder_image_url=self.placeholder_image_url,
            placeholder_domains=self.placeholder_domains,
        )

        harvest = Harvest(entries_seen=len(feed.entries))
        for entry in feed.entries:
            try:
                draft = normalize_feed_entry(entry, context)
            except Exception as e:
                logger.warning("entry_normalize_error", source=info.name, entry=str(entry), error=str(e))
                continue
            if draft is not None:
                harvest.items.append(HarvestedItem(draft=draft, source=info))

        logger.info(
            "feed_normalized",
            source=info.name,
            total_entries=harvest.entries_seen,
            accepted=len(harvest.items),
        )
        return harvest
