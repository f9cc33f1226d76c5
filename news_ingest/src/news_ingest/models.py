"""
In-pipeline records.

RawEntry is what the syndication parser hands to the normalizer,
NewsApiResponse is the deserialized news API envelope, DraftArticle is
what the normalizer hands to the upsert engine, and SourceInfo carries the
metadata used when a Source row has to be created.
"""

from dataclasses import dataclass, field
from datetime import datetime
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field


@dataclass(frozen=True)
class Enclosure:
    """A media attachment declared on a feed entry."""
    url: str
    type: Optional[str] = None


@dataclass
class RawEntry:
    """A syndication entry, reduced to the fields the pipeline reads."""
    title: Optional[str] = None
    link: Optional[str] = None
    summary: Optional[str] = None  # markup
    content: Optional[str] = None  # markup of the first content body
    enclosures: list[Enclosure] = field(default_factory=list)
    categories: list[str] = field(default_factory=list)
    author: Optional[str] = None
    published: Optional[str] = None  # raw timestamp string

    def __str__(self) -> str:
        return f"RawEntry({(self.title or '<untitled>')[:60]!r})"


@dataclass
class DraftArticle:
    """Normalized article data that has not been persisted yet."""
    url: str
    title: str
    published_date: datetime
    image_url: str
    category: str
    description: Optional[str] = None
    author: Optional[str] = None
    # True when published_date is the ingestion time, not the source's
    date_is_fallback: bool = False

    def to_dict(self) -> dict:
        return {
            "url": self.url,
            "title": self.title,
            "description": self.description,
            "image_url": self.image_url,
            "published_date": self.published_date.isoformat(),
            "category": self.category,
            "author": self.author,
            "date_is_fallback": self.date_is_fallback,
        }


@dataclass(frozen=True)
class SourceInfo:
    """Metadata for creating a Source the first time its name is seen."""
    name: str
    base_url: Optional[str] = None
    rss_feed_url: Optional[str] = None
    api_key_ref: Optional[str] = None


# News API envelope
class NewsApiSource(BaseModel):
    model_config = ConfigDict(extra="ignore")

    id: Optional[str] = None
    name: Optional[str] = None


class NewsApiArticle(BaseModel):
    model_config = ConfigDict(extra="ignore", populate_by_name=True)

    source: Optional[NewsApiSource] = None
    author: Optional[str] = None
    title: Optional[str] = None
    description: Optional[str] = None
    url: Optional[str] = None
    url_to_image: Optional[str] = Field(None, alias="urlToImage")
    published_at: Optional[str] = Field(None, alias="publishedAt")
    content: Optional[str] = None


class NewsApiResponse(BaseModel):
    model_config = ConfigDict(extra="ignore", populate_by_name=True)

    status: str
    total_results: int = Field(0, alias="totalResults")
    articles: list[NewsApiArticle] = Field(default_factory=list)
    # Present only on error envelopes
    code: Optional[str] = None
    message: Optional[str] = None
