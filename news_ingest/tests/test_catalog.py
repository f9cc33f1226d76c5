"""
Tests for source resolution and article upserts.

Tests:
- Source find-or-create by exact name
- Article create / latest-wins update / unchanged
- Conflict recovery when another writer got there first
"""

import pytest
from datetime import datetime, timedelta, timezone
from unittest.mock import MagicMock

from news_ingest.catalog import UpsertOutcome, resolve_source, upsert_article
from news_ingest.db import Article, Database, Source
from news_ingest.errors import CatalogConflictError
from news_ingest.models import DraftArticle, SourceInfo

BASE_DATE = datetime(2024, 1, 15, 10, 0, tzinfo=timezone.utc)


def create_catalog():
    """In-memory catalog with fresh tables."""
    db = Database("sqlite://")
    db.create_tables()
    session = db.get_session()
    return db, session, db.catalog(session)


def create_draft(url="https://example.com/a", **kwargs) -> DraftArticle:
    defaults = {
        "url": url,
        "title": "Original title",
        "published_date": BASE_DATE,
        "image_url": "https://cdn.example.com/a.jpg",
        "category": "General",
        "description": "Original description",
    }
    defaults.update(kwargs)
    return DraftArticle(**defaults)


def feed_info(name="Example Feed") -> SourceInfo:
    return SourceInfo(name=name, base_url="https://example.com", rss_feed_url="https://example.com/rss")


class TestResolveSource:
    """Tests for source find-or-create."""

    def test_creates_source_with_metadata(self):
        """An unknown name creates a Source from the metadata."""
        db, session, catalog = create_catalog()

        source = resolve_source(catalog, "Example Feed", feed_info)

        assert source.id is not None
        assert source.base_url == "https://example.com"
        assert source.rss_feed_url == "https://example.com/rss"
        assert db.get_stats(session)["total_sources"] == 1

    def test_returns_existing_without_calling_metadata(self):
        """A known name is returned and metadata is not consulted."""
        _, session, catalog = create_catalog()
        first = resolve_source(catalog, "Example Feed", feed_info)
        metadata = MagicMock()

        second = resolve_source(catalog, "Example Feed", metadata)

        assert second.id == first.id
        metadata.assert_not_called()

    def test_names_are_case_sensitive(self):
        """Names differing only in case are different sources."""
        db, session, catalog = create_catalog()

        resolve_source(catalog, "Wired", lambda: SourceInfo(name="Wired"))
        resolve_source(catalog, "WIRED", lambda: SourceInfo(name="WIRED"))

        assert db.get_stats(session)["total_sources"] == 2

    def test_concurrent_creation_returns_existing(self):
        """A conflicting insert falls back to the row another writer created."""
        existing = Source(id=7, name="Example Feed")
        catalog = MagicMock()
        catalog.find_source_by_name.side_effect = [None, existing]
        catalog.save_source.side_effect = CatalogConflictError("duplicate")

        source = resolve_source(catalog, "Example Feed", feed_info)

        assert source is existing

    def test_conflict_without_row_is_raised(self):
        """A conflict that cannot be explained by an existing row propagates."""
        catalog = MagicMock()
        catalog.find_source_by_name.return_value = None
        catalog.save_source.side_effect = CatalogConflictError("something else")

        with pytest.raises(CatalogConflictError):
            resolve_source(catalog, "Example Feed", feed_info)


class TestUpsertArticle:
    """Tests for latest-wins upserts."""

    def test_creates_new_article(self):
        """An unknown URL creates an article with zero views."""
        _, session, catalog = create_catalog()
        source = resolve_source(catalog, "Example Feed", feed_info)

        article, outcome = upsert_article(catalog, create_draft(), source)

        assert outcome == UpsertOutcome.CREATED
        assert article.view_count == 0
        assert article.source_id == source.id
        assert article.title == "Original title"

    def test_newer_draft_overwrites(self):
        """A strictly newer date replaces the content fields."""
        _, session, catalog = create_catalog()
        source = resolve_source(catalog, "Example Feed", feed_info)
        upsert_article(catalog, create_draft(), source)

        newer = create_draft(
            title="Updated title",
            description=None,
            published_date=BASE_DATE + timedelta(hours=1),
            category="Tech",
        )
        article, outcome = upsert_article(catalog, newer, source)

        assert outcome == UpsertOutcome.UPDATED
        assert article.title == "Updated title"
        assert article.description is None
        assert article.category == "Tech"

    def test_same_date_is_unchanged(self):
        """An equal date leaves the stored article untouched."""
        _, session, catalog = create_catalog()
        source = resolve_source(catalog, "Example Feed", feed_info)
        upsert_article(catalog, create_draft(), source)

        article, outcome = upsert_article(catalog, create_draft(title="Other"), source)

        assert outcome == UpsertOutcome.UNCHANGED
        assert article.title == "Original title"

    def test_older_draft_is_ignored(self):
        """An older date never overwrites."""
        _, session, catalog = create_catalog()
        source = resolve_source(catalog, "Example Feed", feed_info)
        upsert_article(catalog, create_draft(), source)

        older = create_draft(title="Stale", published_date=BASE_DATE - timedelta(days=1))
        article, outcome = upsert_article(catalog, older, source)

        assert outcome == UpsertOutcome.UNCHANGED
        assert article.title == "Original title"

    def test_fallback_date_never_overwrites(self):
        """A draft dated by the wall clock does not count as newer."""
        _, session, catalog = create_catalog()
        source = resolve_source(catalog, "Example Feed", feed_info)
        upsert_article(catalog, create_draft(), source)

        fallback = create_draft(
            title="Undated",
            published_date=datetime.now(timezone.utc),
            date_is_fallback=True,
        )
        article, outcome = upsert_article(catalog, fallback, source)

        assert outcome == UpsertOutcome.UNCHANGED
        assert article.title == "Original title"

    def test_update_keeps_views_and_source(self):
        """Updates never touch the view count or the owning source."""
        _, session, catalog = create_catalog()
        source = resolve_source(catalog, "Example Feed", feed_info)
        other = resolve_source(catalog, "Other Feed", lambda: feed_info("Other Feed"))
        article, _ = upsert_article(catalog, create_draft(), source)
        article.view_count = 42
        session.commit()

        newer = create_draft(published_date=BASE_DATE + timedelta(hours=2))
        updated, outcome = upsert_article(catalog, newer, other)

        assert outcome == UpsertOutcome.UPDATED
        assert updated.view_count == 42
        assert updated.source_id == source.id

    def test_one_row_per_url(self):
        """Repeated upserts of one URL never duplicate it."""
        db, session, catalog = create_catalog()
        source = resolve_source(catalog, "Example Feed", feed_info)

        for hours in (0, 2, 1, 2):
            upsert_article(catalog, create_draft(published_date=BASE_DATE + timedelta(hours=hours)), source)

        assert db.get_stats(session)["total_articles"] == 1
        stored = session.query(Article).one()
        assert stored.published_date.replace(tzinfo=timezone.utc) == BASE_DATE + timedelta(hours=2)

    def test_insert_conflict_merges_into_existing(self):
        """If another writer inserted the URL first, latest-wins still applies."""
        existing = Article(url="https://example.com/a", title="Theirs", published_date=BASE_DATE)
        catalog = MagicMock()
        catalog.find_article_by_url.side_effect = [None, existing]
        catalog.save_article.side_effect = [CatalogConflictError("duplicate"), existing]

        newer = create_draft(title="Ours", published_date=BASE_DATE + timedelta(minutes=5))
        article, outcome = upsert_article(catalog, newer, Source(id=1, name="Example Feed"))

        assert outcome == UpsertOutcome.UPDATED
        assert article.title == "Ours"
