"""
Common shape of content sources.

Two kinds exist, syndication feeds and news API topics. Both fetch a raw
payload over HTTP and normalize it into harvested items; the runner drives
them through this protocol without knowing which kind it holds.
"""

from dataclasses import dataclass, field
from typing import Any, Protocol

import httpx
from tenacity import AsyncRetrying, retry_if_exception_type, stop_after_attempt, wait_exponential

from ..errors import FetchError
from ..logging_conf import get_logger
from ..models import DraftArticle, SourceInfo

logger = get_logger(__name__)


@dataclass
class HarvestedItem:
    """A normalized article together with the source it belongs to."""
    draft: DraftArticle
    source: SourceInfo

    def __str__(self) -> str:
        return f"[{self.source.name}] {self.draft.title[:60]}"


@dataclass
class Harvest:
    """Result of normalizing one payload."""
    items: list[HarvestedItem] = field(default_factory=list)
    entries_seen: int = 0

    @property
    def entries_dropped(self) -> int:
        return self.entries_seen - len(self.items)


class FeedSource(Protocol):
    """Anything the ingestion runner can pull articles from."""

    kind: str
    label: str
    verify_tls: bool

    async def fetch(self, client: httpx.AsyncClient) -> Any:
        """Retrieve the raw payload. Raises FetchError/ParseError/ConfigurationError."""
        ...

    def normalize(self, payload: Any) -> Harvest:
        """Turn a payload into harvested items, dropping invalid entries."""
        ...


async def get_with_retries(
    client: httpx.AsyncClient,
    url: str,
    label: str,
    max_attempts: int = 3,
    **kwargs,
) -> httpx.Response:
    """
    GET a URL, retrying transport errors with exponential backoff.

    HTTP error statuses are returned to the caller untouched; transport
    failures that outlast the retries become FetchError.
    """
    try:
        async for attempt in AsyncRetrying(
            stop=stop_after_attempt(max_attempts),
            wait=wait_exponential(multiplier=1, min=1, max=10),
            retry=retry_if_exception_type(httpx.TransportError),
            reraise=True,
        ):
            with attempt:
                if attempt.retry_state.attempt_number > 1:
                    logger.debug(
                        "fetch_retry",
                        source=label,
                        attempt=attempt.retry_state.attempt_number,
                    )
                return await client.get(url, **kwargs)
    except httpx.TimeoutException as e:
        raise FetchError(f"Timed out fetching {label}: {e!r}", source=label)
    except httpx.TransportError as e:
        raise FetchError(f"Transport error fetching {label}: {e!r}", source=label)
