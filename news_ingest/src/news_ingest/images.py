"""
Representative image selection for feed entries.

Stages, first usable result wins:
1. image/* enclosure
2. first <img> in the summary markup, resolved against the entry link
3. first <img> in the content markup, resolved against the entry link
4. placeholder image

API articles carry their own image field and only go through stage 4.
"""

from typing import Iterable, Optional
from urllib.parse import urljoin, urlparse

from bs4 import BeautifulSoup

from .config import DEFAULT_PLACEHOLDER_IMAGE_URL
from .errors import ImageResolutionError
from .logging_conf import get_logger
from .models import Enclosure, RawEntry

logger = get_logger(__name__)

DEFAULT_PLACEHOLDER_DOMAINS = ("via.placeholder.com",)


def first_image_src(markup: Optional[str]) -> Optional[str]:
    """Return the src of the first <img> with a non-empty src, or None."""
    if not markup or "<img" not in markup.lower():
        return None

    soup = BeautifulSoup(markup, "lxml")
    for img in soup.find_all("img", src=True):
        src = img["src"].strip()
        if src:
            return src
    return None


def first_image_enclosure(enclosures: Iterable[Enclosure]) -> Optional[str]:
    for enclosure in enclosures:
        if enclosure.type and enclosure.type.lower().startswith("image/") and enclosure.url:
            return enclosure.url.strip()
    return None


def _is_absolute_http(url: str) -> bool:
    try:
        parsed = urlparse(url)
    except ValueError:
        return False
    return parsed.scheme in ("http", "https") and bool(parsed.netloc)


def resolve_image_url(src: str, base: Optional[str]) -> str:
    """
    Make an image URL absolute using the entry link as base.

    Raises:
        ImageResolutionError: if the result is not an absolute http(s) URL
    """
    if _is_absolute_http(src):
        return src
    if not base or not _is_absolute_http(base):
        raise ImageResolutionError(f"Cannot resolve {src!r} without an absolute base URL")
    try:
        resolved = urljoin(base, src)
    except ValueError as e:
        raise ImageResolutionError(f"Cannot resolve {src!r} against {base!r}: {e}")
    if not _is_absolute_http(resolved):
        raise ImageResolutionError(f"Resolved image URL is not http(s): {resolved!r}")
    return resolved


def is_placeholder_host(url: str, placeholder_domains: Iterable[str]) -> bool:
    """
    Raises:
        ImageResolutionError: if the URL cannot be parsed
    """
    try:
        host = (urlparse(url).hostname or "").lower()
    except ValueError as e:
        raise ImageResolutionError(f"Malformed image URL {url!r}: {e}")
    if not host:
        return False
    for domain in placeholder_domains:
        domain = domain.lower()
        if host == domain or host.endswith("." + domain):
            return True
    return False


def apply_image_fallback(
    candidate: Optional[str],
    placeholder_url: str = DEFAULT_PLACEHOLDER_IMAGE_URL,
    placeholder_domains: Iterable[str] = DEFAULT_PLACEHOLDER_DOMAINS,
) -> str:
    """Replace an empty or filler image URL with the platform placeholder."""
    if not candidate or not candidate.strip():
        return placeholder_url
    candidate = candidate.strip()
    try:
        if is_placeholder_host(candidate, placeholder_domains):
            return placeholder_url
    except ImageResolutionError as e:
        logger.warning("image_url_malformed", url=candidate, error=str(e))
        return placeholder_url
    return candidate


def find_entry_image(entry: RawEntry) -> Optional[str]:
    """Run stages 1-3 and return the first candidate, or None."""
    image = first_image_enclosure(entry.enclosures)
    if image:
        logger.debug("image_from_enclosure", entry=entry.title, url=image)
        return image

    image = first_image_src(entry.summary)
    if image:
        # feedparser copies HTML content into a missing summary, relative links included
        try:
            image = resolve_image_url(image, entry.link)
        except ImageResolutionError as e:
            logger.debug("summary_image_unresolvable", entry=entry.title, error=str(e))
        else:
            logger.debug("image_from_summary", entry=entry.title, url=image)
            return image

    image = first_image_src(entry.content)
    if image:
        try:
            image = resolve_image_url(image, entry.link)
        except ImageResolutionError as e:
            logger.warning("image_resolution_failed", entry=entry.title, error=str(e))
            return None
        logger.debug("image_from_content", entry=entry.title, url=image)
        return image

    return None


def extract_image(
    entry: RawEntry,
    placeholder_url: str = DEFAULT_PLACEHOLDER_IMAGE_URL,
    placeholder_domains: Iterable[str] = DEFAULT_PLACEHOLDER_DOMAINS,
) -> str:
    """Pick the image URL stored for a feed entry. Never returns empty."""
    return apply_image_fallback(
        find_entry_image(entry),
        placeholder_url=placeholder_url,
        placeholder_domains=placeholder_domains,
    )
