"""
Configured source list.

Builds the sources one ingestion cycle iterates over: every configured
feed URL first, then one news API query per topic.
"""

from dataclasses import dataclass, field
from typing import Optional

from .base import FeedSource
from .newsapi import TopicSource
from .rss import SyndicationSource
from ..config import Settings, get_settings
from ..errors import ConfigurationError
from ..logging_conf import get_logger

logger = get_logger(__name__)


@dataclass
class SourcePlan:
    """Sources for one cycle, plus the reason API sources were left out."""
    sources: list[FeedSource] = field(default_factory=list)
    api_disabled_reason: Optional[str] = None

    @property
    def feed_count(self) -> int:
        return sum(1 for s in self.sources if s.kind == "rss")

    @property
    def topic_count(self) -> int:
        return sum(1 for s in self.sources if s.kind == "newsapi")


class SourceRegistry:
    """
    Turns settings into fetchable sources.

    Settings are re-read on every plan so a changed feed list takes effect
    on the next cycle.
    """

    def __init__(self, settings: Optional[Settings] = None):
        self._settings = settings

    @property
    def settings(self) -> Settings:
        return self._settings or get_settings()

    def feed_sources(self) -> list[SyndicationSource]:
        settings = self.settings
        insecure = settings.insecure_feed_set
        sources = []
        for url in settings.feed_url_list:
            verify = url not in insecure
            if not verify:
                logger.warning("feed_tls_verification_disabled", url=url)
            sources.append(SyndicationSource(
                url=url,
                verify_tls=verify,
                max_attempts=settings.fetch_max_attempts,
                placeholder_image_url=settings.placeholder_image_url,
                placeholder_domains=settings.placeholder_domain_list,
            ))
        return sources

    def topic_sources(self) -> list[TopicSource]:
        """
        One source per configured topic.

        Raises:
            ConfigurationError: if no usable API key is configured
        """
        settings = self.settings
        if not settings.has_api_key:
            raise ConfigurationError("News API key is not configured")
        return [
            TopicSource(
                topic=topic,
                base_url=settings.news_api_base_url,
                api_key=settings.news_api_key,
                max_attempts=settings.fetch_max_attempts,
                placeholder_image_url=settings.placeholder_image_url,
                placeholder_domains=settings.placeholder_domain_list,
            )
            for topic in settings.topic_list
        ]

    def plan(self) -> SourcePlan:
        """Build the ordered source list for one cycle."""
        plan = SourcePlan(sources=list(self.feed_sources()))
        if not plan.sources:
            logger.warning("no_feeds_configured")

        try:
            plan.sources.extend(self.topic_sources())
        except ConfigurationError as e:
            plan.api_disabled_reason = str(e)

        return plan

    def get_stats(self) -> dict:
        settings = self.settings
        return {
            "feeds": len(settings.feed_url_list),
            "insecure_feeds": len(settings.insecure_feed_set & set(settings.feed_url_list)),
            "topics": settings.topic_list,
            "api_enabled": settings.has_api_key,
        }


# Singleton instance
_registry_instance: Optional[SourceRegistry] = None


def get_source_registry() -> SourceRegistry:
    """Get or create the source registry instance."""
    global _registry_instance
    if _registry_instance is None:
        _registry_instance = SourceRegistry()
    return _registry_instance
