"""
News search API source.

Queries the `/everything` endpoint of a NewsAPI-compatible service for one
topic keyword. Each returned article names its own publisher, so one topic
query can feed many Sources.
"""

from dataclasses import dataclass, field
from typing import Optional
from urllib.parse import urlparse

import httpx

from .base import Harvest, HarvestedItem, get_with_retries
from ..config import DEFAULT_PLACEHOLDER_IMAGE_URL, PLACEHOLDER_API_KEYS
from ..errors import ConfigurationError, FetchError, ParseError
from ..images import DEFAULT_PLACEHOLDER_DOMAINS
from ..logging_conf import get_logger
from ..models import NewsApiArticle, NewsApiResponse, SourceInfo
from ..normalize import NormalizeContext, normalize_api_article

logger = get_logger(__name__)

UNKNOWN_SOURCE_NAME = "Unknown News API Source"
API_KEY_SETTING = "news_api_key"

# Error codes returned when the key itself is the problem
API_KEY_ERROR_CODES = {"apiKeyMissing", "apiKeyInvalid", "apiKeyDisabled", "apiKeyExhausted"}


def extract_domain(url: Optional[str]) -> Optional[str]:
    """Host of a URL without a leading www., or None."""
    if not url:
        return None
    try:
        host = urlparse(url).hostname
    except ValueError:
        logger.warning("domain_extraction_failed", url=url)
        return None
    if not host:
        return None
    if host.startswith("www."):
        return host[4:]
    return host


def _error_code(response: httpx.Response) -> Optional[str]:
    try:
        body = response.json()
    except ValueError:
        return None
    if isinstance(body, dict):
        return body.get("code")
    return None


@dataclass
class TopicSource:
    """One topic keyword queried against the news API."""
    topic: str
    base_url: str
    api_key: str = field(repr=False)
    max_attempts: int = 3
    placeholder_image_url: str = DEFAULT_PLACEHOLDER_IMAGE_URL
    placeholder_domains: list[str] = field(
        default_factory=lambda: list(DEFAULT_PLACEHOLDER_DOMAINS)
    )
    verify_tls: bool = True
    kind: str = "newsapi"

    @property
    def label(self) -> str:
        return f"newsapi:{self.topic}"

    @property
    def endpoint(self) -> str:
        return f"{self.base_url.rstrip('/')}/everything"

    async def fetch(self, client: httpx.AsyncClient) -> NewsApiResponse:
        """Query the API for this topic and deserialize the envelope."""
        if self.api_key.strip() in PLACEHOLDER_API_KEYS:
            raise ConfigurationError("News API key is not configured", source=self.label)

        # Never log params: they carry the key
        logger.info("fetching_newsapi", topic=self.topic)
        response = await get_with_retries(
            client,
            self.endpoint,
            self.label,
            self.max_attempts,
            params={"q": self.topic, "apiKey": self.api_key},
        )

        if response.is_error:
            code = _error_code(response)
            if response.status_code == 401 or code in API_KEY_ERROR_CODES:
                raise ConfigurationError(
                    f"News API rejected the key (HTTP {response.status_code}, code={code})",
                    source=self.label,
                )
            raise FetchError(
                f"HTTP {response.status_code} from news API for {self.topic!r} (code={code})",
                source=self.label,
                status_code=response.status_code,
            )

        try:
            envelope = NewsApiResponse.model_validate(response.json())
        except ValueError as e:
            # ValidationError is a ValueError too
            raise ParseError(f"Malformed news API response for {self.topic!r}: {e}", source=self.label)

        if envelope.status != "ok":
            if envelope.code in API_KEY_ERROR_CODES:
                raise ConfigurationError(
                    f"News API rejected the key (code={envelope.code})",
                    source=self.label,
                )
            raise FetchError(
                f"News API error for {self.topic!r}: {envelope.code} {envelope.message}",
                source=self.label,
            )

        logger.info(
            "newsapi_fetched",
            topic=self.topic,
            total_results=envelope.total_results,
            received=len(envelope.articles),
        )
        return envelope

    def source_info(self, article: NewsApiArticle) -> SourceInfo:
        name = UNKNOWN_SOURCE_NAME
        if article.source is not None and article.source.name and article.source.name.strip():
            name = article.source.name.strip()
        return SourceInfo(
            name=name,
            base_url=extract_domain(article.url),
            api_key_ref=API_KEY_SETTING,
        )

    def normalize(self, payload: NewsApiResponse) -> Harvest:
        context = NormalizeContext(
            source_name=self.label,
            default_category=self.topic,
            placeholder_image_url=self.placeholder_image_url,
            placeholder_domains=self.placeholder_domains,
        )

        harvest = Harvest(entries_seen=len(payload.articles))
        for article in payload.articles:
            try:
                draft = normalize_api_article(article, context)
                if draft is None:
                    continue
                item = HarvestedItem(draft=draft, source=self.source_info(article))
            except Exception as e:
                logger.warning("entry_normalize_error", source=self.label, url=article.url, error=str(e))
                continue
            harvest.items.append(item)

        logger.info(
            "newsapi_normalized",
            topic=self.topic,
            total_entries=harvest.entries_seen,
            accepted=len(harvest.items),
        )
        return harvest
