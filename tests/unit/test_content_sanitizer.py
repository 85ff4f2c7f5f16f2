"""
Tests for HtmlSanitizer
=======================

Allowlist rewriting, script/style removal and the tag-stripping fallback.
"""

import pytest
from unittest.mock import patch

from zenbridge.ingestion.content_sanitizer import HtmlSanitizer


class TestHtmlSanitizer:
    """Test suite for HtmlSanitizer.sanitize."""

    @pytest.fixture
    def sanitizer(self):
        return HtmlSanitizer()

    def test_empty_input(self, sanitizer):
        assert sanitizer.sanitize("") == ""
        assert sanitizer.sanitize(None) == ""

    def test_allowed_markup_unchanged(self, sanitizer):
        html = "<p>Hello <strong>bold</strong> and <em>em</em></p>"
        assert sanitizer.sanitize(html) == html

    def test_script_removed_with_text(self, sanitizer):
        html = "<p>Hello <script>alert('x')</script>world</p>"
        result = sanitizer.sanitize(html)

        assert result == "<p>Hello world</p>"
        assert "alert" not in result

    def test_style_removed_with_text(self, sanitizer):
        result = sanitizer.sanitize("<style>.a { color: red }</style><p>Text</p>")

        assert result == "<p>Text</p>"
        assert "color" not in result

    def test_disallowed_element_becomes_text(self, sanitizer):
        assert sanitizer.sanitize("<div>hello</div>") == "hello"

    def test_nested_disallowed_elements_flattened(self, sanitizer):
        """Allowed children of a disallowed element are flattened with it."""
        result = sanitizer.sanitize("<div><p>first</p><span>second</span></div>")

        assert result == "firstsecond"
        assert "<p>" not in result

    def test_disallowed_inside_allowed(self, sanitizer):
        result = sanitizer.sanitize("<p>Read <span class='x'>this</span> now</p>")
        assert result == "<p>Read this now</p>"

    def test_blank_disallowed_element_removed(self, sanitizer):
        result = sanitizer.sanitize("<p>Text</p><div>   </div>")
        assert result == "<p>Text</p>"

    def test_attributes_preserved(self, sanitizer):
        html = '<a href="https://example.com" onclick="track()">link</a>'
        result = sanitizer.sanitize(html)

        assert 'href="https://example.com"' in result
        assert 'onclick="track()"' in result

    def test_image_kept(self, sanitizer):
        result = sanitizer.sanitize('<p>Pic</p><img src="/a.jpg" alt="x">')

        assert "<img" in result
        assert 'src="/a.jpg"' in result

    def test_comments_removed(self, sanitizer):
        assert sanitizer.sanitize("<p>a<!-- hidden --></p>") == "<p>a</p>"

    def test_full_document_unwrapped(self, sanitizer):
        html = "<html><head><title>T</title></head><body><p>Body</p></body></html>"
        assert sanitizer.sanitize(html) == "<p>Body</p>"

    def test_all_headings_and_lists_allowed(self, sanitizer):
        html = "<h1>a</h1><h6>b</h6><ul><li>c</li></ul><ol><li>d</li></ol><blockquote>e</blockquote>"
        assert sanitizer.sanitize(html) == html

    def test_fallback_strips_tags_when_parsing_fails(self, sanitizer):
        html = "<p>Hi <script>bad()</script>there</p>"

        with patch(
            "zenbridge.ingestion.content_sanitizer.BeautifulSoup",
            side_effect=RuntimeError("parser crashed"),
        ):
            result = sanitizer.sanitize(html)

        assert result == "Hi there"


class TestExtractText:
    """Test suite for HtmlSanitizer.extract_text."""

    @pytest.fixture
    def sanitizer(self):
        return HtmlSanitizer()

    def test_whitespace_collapsed(self, sanitizer):
        assert sanitizer.extract_text("<p>Hello</p>\n\n<p>World</p>") == "Hello World"

    def test_script_text_excluded(self, sanitizer):
        assert sanitizer.extract_text("<p>Hi</p><script>x = 1</script>") == "Hi"

    def test_blank_input(self, sanitizer):
        assert sanitizer.extract_text("") == ""
        assert sanitizer.extract_text("   ") == ""
