"""
Content sources module.

Provides the two kinds of article sources:
- RSS/Atom syndication feeds
- News search API topic queries
"""

from .base import FeedSource, Harvest, HarvestedItem
from .newsapi import TopicSource
from .registry import SourcePlan, SourceRegistry, get_source_registry
from .rss import SyndicationSource

__all__ = [
    "FeedSource",
    "Harvest",
    "HarvestedItem",
    "SourcePlan",
    "SourceRegistry",
    "SyndicationSource",
    "TopicSource",
    "get_source_registry",
]
