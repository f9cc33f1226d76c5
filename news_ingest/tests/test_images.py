"""
Tests for representative image selection.

Tests:
- Enclosure, summary and content stages in priority order
- Relative URL resolution against the entry link
- Placeholder substitution for missing and filler images
"""

import pytest

from news_ingest.errors import ImageResolutionError
from news_ingest.images import (
    apply_image_fallback,
    extract_image,
    first_image_src,
    is_placeholder_host,
    resolve_image_url,
)
from news_ingest.models import Enclosure, RawEntry

PLACEHOLDER = "https://placehold.co/600x350/E0E0E0/333333?text=News+Image"


def create_entry(**kwargs) -> RawEntry:
    """Create a feed entry with sensible defaults."""
    defaults = {
        "title": "Test entry",
        "link": "https://example.com/news/story",
    }
    defaults.update(kwargs)
    return RawEntry(**defaults)


class TestFirstImageSrc:
    """Tests for <img> extraction from markup."""

    def test_returns_first_image(self):
        """The first image in document order wins."""
        markup = '<p>Intro</p><img src="https://cdn.example.com/a.jpg"><img src="https://cdn.example.com/b.jpg">'

        assert first_image_src(markup) == "https://cdn.example.com/a.jpg"

    def test_skips_empty_src(self):
        """Images with an empty src are ignored."""
        markup = '<img src=""><img src="https://cdn.example.com/b.jpg">'

        assert first_image_src(markup) == "https://cdn.example.com/b.jpg"

    def test_no_image_returns_none(self):
        """Markup without images yields nothing."""
        assert first_image_src("<p>Just text</p>") is None
        assert first_image_src(None) is None
        assert first_image_src("") is None


class TestResolveImageUrl:
    """Tests for relative image resolution."""

    def test_absolute_url_is_unchanged(self):
        """Absolute URLs pass through."""
        url = "https://cdn.example.com/img.png"

        assert resolve_image_url(url, "https://example.com/story") == url

    def test_root_relative_url(self):
        """Root-relative URLs resolve against the link's host."""
        resolved = resolve_image_url("/images/x.jpg", "https://example.com/news/story")

        assert resolved == "https://example.com/images/x.jpg"

    def test_path_relative_url(self):
        """Path-relative URLs resolve against the link's directory."""
        resolved = resolve_image_url("x.jpg", "https://example.com/news/story")

        assert resolved == "https://example.com/news/x.jpg"

    def test_missing_base_raises(self):
        """A relative URL cannot be resolved without a base."""
        with pytest.raises(ImageResolutionError):
            resolve_image_url("/images/x.jpg", None)

    def test_non_http_base_raises(self):
        """The base must itself be an absolute http(s) URL."""
        with pytest.raises(ImageResolutionError):
            resolve_image_url("x.jpg", "ftp://example.com/story")


class TestPlaceholderFallback:
    """Tests for placeholder substitution."""

    def test_empty_candidate_gets_placeholder(self):
        """Missing images become the placeholder."""
        assert apply_image_fallback(None) == PLACEHOLDER
        assert apply_image_fallback("   ") == PLACEHOLDER

    def test_filler_host_gets_placeholder(self):
        """Known filler-image hosts are replaced."""
        assert apply_image_fallback("https://via.placeholder.com/300") == PLACEHOLDER

    def test_filler_subdomain_is_matched(self):
        """Subdomains of a filler host are also replaced."""
        assert is_placeholder_host("https://img.via.placeholder.com/1.png", ["via.placeholder.com"])

    def test_lookalike_host_is_kept(self):
        """Hosts merely ending with the same letters are not filler."""
        url = "https://notvia.placeholder.com.example.org/1.png"

        assert apply_image_fallback(url) == url

    def test_real_image_is_kept(self):
        """Real images pass through stripped."""
        assert apply_image_fallback(" https://cdn.example.com/a.jpg ") == "https://cdn.example.com/a.jpg"

    def test_custom_placeholder(self):
        """The placeholder URL and filler domains are configurable."""
        result = apply_image_fallback(
            "https://filler.test/img.png",
            placeholder_url="https://static.example.com/none.png",
            placeholder_domains=["filler.test"],
        )

        assert result == "https://static.example.com/none.png"

    def test_malformed_candidate_gets_placeholder(self):
        """A URL that cannot even be parsed is replaced, not raised."""
        assert apply_image_fallback("http://[bad/i.png") == PLACEHOLDER

    def test_malformed_host_check_raises_resolution_error(self):
        """Unparseable URLs surface as ImageResolutionError."""
        with pytest.raises(ImageResolutionError):
            is_placeholder_host("http://[bad/i.png", ["via.placeholder.com"])


class TestExtractImage:
    """Tests for the staged image pipeline."""

    def test_image_enclosure_wins(self):
        """An image/* enclosure beats inline images."""
        entry = create_entry(
            enclosures=[Enclosure(url="https://cdn.example.com/enc.jpg", type="image/jpeg")],
            summary='<img src="https://cdn.example.com/summary.jpg">',
        )

        assert extract_image(entry) == "https://cdn.example.com/enc.jpg"

    def test_non_image_enclosure_is_ignored(self):
        """Audio and other enclosures are not images."""
        entry = create_entry(
            enclosures=[Enclosure(url="https://cdn.example.com/ep.mp3", type="audio/mpeg")],
            summary='<img src="https://cdn.example.com/summary.jpg">',
        )

        assert extract_image(entry) == "https://cdn.example.com/summary.jpg"

    def test_summary_beats_content(self):
        """The summary image is preferred over the content image."""
        entry = create_entry(
            summary='<img src="https://cdn.example.com/summary.jpg">',
            content='<img src="https://cdn.example.com/content.jpg">',
        )

        assert extract_image(entry) == "https://cdn.example.com/summary.jpg"

    def test_relative_summary_image_is_resolved(self):
        """Summaries copied from content can carry relative images too."""
        entry = create_entry(summary='<img src="thumb.png">')

        assert extract_image(entry) == "https://example.com/news/thumb.png"

    def test_unresolvable_summary_image_falls_through_to_content(self):
        """A summary image that cannot be resolved gives way to the content stage."""
        entry = create_entry(
            summary='<img src="data:image/gif;base64,R0lGOD">',
            content='<img src="https://cdn.example.com/content.jpg">',
        )

        assert extract_image(entry) == "https://cdn.example.com/content.jpg"

    def test_relative_content_image_is_resolved(self):
        """Content images are resolved against the entry link."""
        entry = create_entry(content='<p>Body</p><img src="/images/x.jpg">')

        assert extract_image(entry) == "https://example.com/images/x.jpg"

    def test_unresolvable_content_image_gets_placeholder(self):
        """A content image that cannot be resolved falls back to the placeholder."""
        entry = create_entry(link=None, content='<img src="/images/x.jpg">')

        assert extract_image(entry) == PLACEHOLDER

    def test_no_image_anywhere(self):
        """Entries without images get the placeholder."""
        entry = create_entry(summary="<p>No pictures here</p>")

        assert extract_image(entry) == PLACEHOLDER

    def test_malformed_summary_image_gets_placeholder(self):
        """A bracketed, unparseable image URL falls back instead of failing the entry."""
        entry = create_entry(summary='<p>Story</p><img src="http://[broken/x.jpg">')

        assert extract_image(entry) == PLACEHOLDER

    def test_malformed_enclosure_gets_placeholder(self):
        """An unparseable enclosure URL is replaced by the placeholder."""
        entry = create_entry(
            enclosures=[Enclosure(url="http://[broken/x.jpg", type="image/jpeg")],
        )

        assert extract_image(entry) == PLACEHOLDER

    def test_filler_enclosure_gets_placeholder(self):
        """A filler enclosure is replaced, not skipped to the next stage."""
        entry = create_entry(
            enclosures=[Enclosure(url="https://via.placeholder.com/600", type="image/png")],
        )

        assert extract_image(entry) == PLACEHOLDER
