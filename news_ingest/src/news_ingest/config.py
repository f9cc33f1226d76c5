"""
Configuration management using Pydantic Settings.

All configuration is loaded from environment variables with sensible defaults.
"""

from pathlib import Path
from typing import Optional
from functools import lru_cache

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


DEFAULT_PLACEHOLDER_IMAGE_URL = "https://placehold.co/600x350/E0E0E0/333333?text=News+Image"

# Values shipped in sample configs that mean "no key configured"
PLACEHOLDER_API_KEYS = {"", "your-news-api-key-here", "changeme"}


def _split_csv(value: str) -> list[str]:
    return [part.strip() for part in value.split(",") if part.strip()]


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # Syndication feeds
    rss_feeds: str = Field("", description="Feed URLs, comma-separated")
    insecure_feeds: str = Field(
        "",
        description="Feed URLs fetched without TLS certificate verification, comma-separated",
    )

    # News search API
    news_api_key: str = Field("", description="News API key (empty disables API ingestion)")
    news_api_base_url: str = Field("https://newsapi.org/v2", description="News API root endpoint")
    news_api_topics: str = Field("technology", description="Topics queried per cycle, comma-separated")

    # Scheduling
    ingestion_interval_ms: int = Field(1_800_000, description="Ingestion period in milliseconds")

    # HTTP
    fetch_timeout: float = Field(20.0, description="Read timeout for feed/API requests (seconds)")
    fetch_connect_timeout: float = Field(10.0, description="Connect timeout (seconds)")
    fetch_max_attempts: int = Field(3, description="Attempts per fetch on transport errors")
    user_agent: str = Field(
        "Mozilla/5.0 (compatible; NewsIngest/1.0)",
        description="User-Agent sent with every request",
    )

    # Images
    placeholder_image_url: str = Field(
        DEFAULT_PLACEHOLDER_IMAGE_URL,
        description="Image used when no usable image is found",
    )
    placeholder_image_domains: str = Field(
        "via.placeholder.com",
        description="Image hosts treated as filler, comma-separated",
    )

    # Database
    database_url: Optional[str] = Field(None, description="PostgreSQL URL (leave empty for SQLite)")
    database_path: str = Field("./data/news_ingest.db", description="SQLite file path")

    # Server
    enable_scheduler: bool = Field(False, description="Start the scheduler inside the server")
    port: int = Field(8000, description="Health server port")

    # Logging
    log_level: str = Field("INFO", description="Log level")
    log_json: bool = Field(False, description="Output logs as JSON")

    @field_validator("ingestion_interval_ms", "fetch_max_attempts")
    @classmethod
    def must_be_positive(cls, v: int) -> int:
        if v <= 0:
            raise ValueError("must be a positive integer")
        return v

    @field_validator("rss_feeds", "insecure_feeds")
    @classmethod
    def validate_feed_urls(cls, v: str) -> str:
        """Every listed feed must be an http(s) URL."""
        for url in _split_csv(v):
            if not url.lower().startswith(("http://", "https://")):
                raise ValueError(f"Invalid feed URL: {url}")
        return v

    @property
    def feed_url_list(self) -> list[str]:
        """Configured feed URLs in declaration order."""
        return _split_csv(self.rss_feeds)

    @property
    def insecure_feed_set(self) -> set[str]:
        return set(_split_csv(self.insecure_feeds))

    @property
    def topic_list(self) -> list[str]:
        return _split_csv(self.news_api_topics)

    @property
    def placeholder_domain_list(self) -> list[str]:
        return [d.lower() for d in _split_csv(self.placeholder_image_domains)]

    @property
    def has_api_key(self) -> bool:
        """False when the key is missing or still the sample placeholder."""
        return self.news_api_key.strip() not in PLACEHOLDER_API_KEYS

    @property
    def ingestion_interval_seconds(self) -> float:
        return self.ingestion_interval_ms / 1000.0

    @property
    def effective_database_url(self) -> str:
        """Get the effective database URL (PostgreSQL or SQLite)."""
        if self.database_url:
            return self.database_url

        # Read-only filesystems (containers) fall back to /tmp
        db_path = Path(self.database_path)
        try:
            db_path.parent.mkdir(parents=True, exist_ok=True)
        except OSError:
            db_path = Path("/tmp") / db_path.name
            db_path.parent.mkdir(parents=True, exist_ok=True)

        return f"sqlite:///{db_path.absolute()}"

    @property
    def is_postgres(self) -> bool:
        """Check if using PostgreSQL."""
        return bool(self.database_url and "postgres" in self.database_url.lower())


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()


def clear_settings_cache():
    """Clear the settings cache (useful for tests)."""
    get_settings.cache_clear()
