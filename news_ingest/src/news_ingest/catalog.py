"""
Source resolution and article upserts.

Both operations are read-then-write without a surrounding transaction.
Concurrent writers are reconciled through the store's uniqueness
constraints: a conflicting insert means the row already exists, so it is
read back and the usual rules applied.
"""

from enum import Enum
from typing import Callable, Optional, Protocol

from .dates import as_utc
from .db import Article, Source
from .errors import CatalogConflictError
from .logging_conf import get_logger
from .models import DraftArticle, SourceInfo

logger = get_logger(__name__)


class Catalog(Protocol):
    """Store operations the pipeline depends on."""

    def find_source_by_name(self, name: str) -> Optional[Source]: ...

    def save_source(self, source: Source) -> Source: ...

    def find_article_by_url(self, url: str) -> Optional[Article]: ...

    def save_article(self, article: Article) -> Article: ...


class UpsertOutcome(str, Enum):
    CREATED = "created"
    UPDATED = "updated"
    UNCHANGED = "unchanged"


def resolve_source(
    catalog: Catalog,
    name: str,
    metadata: Callable[[], SourceInfo],
) -> Source:
    """
    Find a Source by exact name or create it from caller metadata.

    Args:
        catalog: Store to read and write
        name: Source name (case-sensitive)
        metadata: Called only when the source has to be created
    """
    existing = catalog.find_source_by_name(name)
    if existing is not None:
        return existing

    info = metadata()
    source = Source(
        name=name,
        base_url=info.base_url,
        rss_feed_url=info.rss_feed_url,
        api_key_ref=info.api_key_ref,
    )
    try:
        saved = catalog.save_source(source)
    except CatalogConflictError:
        # Another writer created it between our read and write
        existing = catalog.find_source_by_name(name)
        if existing is None:
            raise
        logger.info("source_created_concurrently", source=name)
        return existing

    logger.info("source_created", source=name, base_url=info.base_url)
    return saved


def _apply_draft(article: Article, draft: DraftArticle) -> None:
    article.title = draft.title
    article.description = draft.description
    article.image_url = draft.image_url
    article.published_date = draft.published_date
    article.author = draft.author
    article.category = draft.category


def _is_newer(draft: DraftArticle, existing: Article) -> bool:
    # A wall-clock fallback date says nothing about freshness
    if draft.date_is_fallback:
        return False
    return as_utc(draft.published_date) > as_utc(existing.published_date)


def _merge_existing(
    catalog: Catalog,
    existing: Article,
    draft: DraftArticle,
) -> tuple[Article, UpsertOutcome]:
    if not _is_newer(draft, existing):
        return existing, UpsertOutcome.UNCHANGED

    _apply_draft(existing, draft)
    saved = catalog.save_article(existing)
    logger.debug("article_updated", url=draft.url, published_date=draft.published_date.isoformat())
    return saved, UpsertOutcome.UPDATED


def upsert_article(
    catalog: Catalog,
    draft: DraftArticle,
    source: Source,
) -> tuple[Article, UpsertOutcome]:
    """
    Merge a draft into the catalog by URL with latest-wins semantics.

    Returns:
        Tuple of (article, outcome)
    """
    existing = catalog.find_article_by_url(draft.url)
    if existing is not None:
        return _merge_existing(catalog, existing, draft)

    article = Article(url=draft.url, view_count=0, source=source)
    _apply_draft(article, draft)
    try:
        saved = catalog.save_article(article)
    except CatalogConflictError:
        existing = catalog.find_article_by_url(draft.url)
        if existing is None:
            raise
        return _merge_existing(catalog, existing, draft)

    logger.debug("article_created", url=draft.url, source=source.name)
    return saved, UpsertOutcome.CREATED
