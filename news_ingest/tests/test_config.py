"""
Tests for settings parsing.
"""

import pytest

from news_ingest.config import DEFAULT_PLACEHOLDER_IMAGE_URL, Settings


class TestSettings:
    """Tests for environment-driven settings."""

    def test_defaults(self):
        """Defaults match the documented behaviour."""
        settings = Settings()

        assert settings.ingestion_interval_ms == 1_800_000
        assert settings.ingestion_interval_seconds == 1800.0
        assert settings.topic_list == ["technology"]
        assert settings.placeholder_image_url == DEFAULT_PLACEHOLDER_IMAGE_URL
        assert settings.placeholder_domain_list == ["via.placeholder.com"]

    def test_csv_lists_are_trimmed(self):
        """Comma-separated values ignore blanks and whitespace."""
        settings = Settings(
            rss_feeds=" https://a.example.com/rss ,, https://b.example.com/rss",
            news_api_topics="technology, science ,",
        )

        assert settings.feed_url_list == ["https://a.example.com/rss", "https://b.example.com/rss"]
        assert settings.topic_list == ["technology", "science"]

    def test_sample_key_counts_as_missing(self):
        """Sample placeholder keys do not enable the API."""
        assert Settings(news_api_key="your-news-api-key-here").has_api_key is False
        assert Settings(news_api_key="  ").has_api_key is False
        assert Settings(news_api_key="abc123").has_api_key is True

    def test_interval_must_be_positive(self):
        """A zero or negative interval is rejected."""
        with pytest.raises(ValueError):
            Settings(ingestion_interval_ms=0)

    def test_attempts_must_be_positive(self):
        with pytest.raises(ValueError):
            Settings(fetch_max_attempts=0)

    def test_explicit_database_url_wins(self):
        """A database URL overrides the SQLite path."""
        settings = Settings(database_url="postgresql://user:pw@db/news")

        assert settings.effective_database_url == "postgresql://user:pw@db/news"
        assert settings.is_postgres is True
