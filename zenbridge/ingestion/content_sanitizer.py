"""
Content Sanitizer
=================

Allowlist HTML sanitizer for republished article content.

This module provides:
- Allowlist-based DOM rewrite (disallowed elements become their text)
- Script and style removal including their text
- Regex tag-stripping fallback when parsing fails
- Plain text extraction for descriptions
"""

import re
from typing import List

from bs4 import BeautifulSoup, Comment, NavigableString, Tag
from bs4.element import CData, ProcessingInstruction, Doctype, Declaration

from ..utils.logging import get_logger_for_component


class HtmlSanitizer:
    """
    Restricts article HTML to the tags accepted by the target platform.

    Allowed elements keep all of their attributes untouched. Anything else is
    replaced by its flattened text, or removed when that text is blank.
    """

    ALLOWED_ELEMENTS = frozenset({
        "p",
        "br",
        "b",
        "i",
        "strong",
        "em",
        "a",
        "img",
        "h1",
        "h2",
        "h3",
        "h4",
        "h5",
        "h6",
        "ul",
        "ol",
        "li",
        "blockquote",
    })

    # Removed together with their text content
    DROPPED_ELEMENTS = ["script", "style"]

    # Document structure, not content
    WRAPPER_ELEMENTS = ["html", "body"]

    SCRIPT_STYLE_PATTERN = re.compile(
        r"<(script|style)\b[^>]*>.*?</\1\s*>", re.IGNORECASE | re.DOTALL
    )
    TAG_PATTERN = re.compile(r"<[^>]*>")
    WHITESPACE_PATTERN = re.compile(r"\s+")

    def __init__(self):
        self.logger = get_logger_for_component("sanitizer")
        self.parser = "html.parser"

    def sanitize(self, html_content: str) -> str:
        """
        Rewrite an HTML fragment so only allowlisted elements remain.

        Args:
            html_content: Raw HTML fragment, possibly empty or malformed

        Returns:
            Sanitized HTML
        """
        if not html_content:
            return ""

        try:
            soup = BeautifulSoup(html_content, self.parser)

            self._remove_non_content(soup)

            # First pass collects, second pass mutates
            replacements = self._collect_disallowed(soup)
            for element in replacements:
                text = element.get_text()
                if text.strip():
                    element.replace_with(NavigableString(text))
                else:
                    element.decompose()

            sanitized = str(soup)
            self.logger.debug(
                f"Sanitized HTML: {len(html_content)} -> {len(sanitized)} chars, "
                f"{len(replacements)} elements flattened"
            )
            return sanitized

        except Exception as e:
            self.logger.warning(f"HTML parsing failed, stripping tags instead: {e}")
            return self.strip_tags(html_content)

    def strip_tags(self, html_content: str) -> str:
        """Brute-force fallback: drop script/style blocks, then every tag."""
        content = self.SCRIPT_STYLE_PATTERN.sub("", html_content)
        return self.TAG_PATTERN.sub("", content)

    def extract_text(self, html_content: str) -> str:
        """
        Extract plain text from HTML with whitespace collapsed.

        Args:
            html_content: HTML content to process

        Returns:
            Plain text content with all markup removed
        """
        if not html_content or not html_content.strip():
            return ""

        try:
            soup = BeautifulSoup(html_content, self.parser)
            for element in soup(self.DROPPED_ELEMENTS):
                element.decompose()
            text = soup.get_text(separator=" ")
        except Exception as e:
            self.logger.warning(f"Failed to extract text, using fallback: {e}")
            text = self.strip_tags(html_content)

        return self.WHITESPACE_PATTERN.sub(" ", text).strip()

    def _remove_non_content(self, soup: BeautifulSoup) -> None:
        """Drop script/style with text, markup comments and wrapper tags."""
        for element in soup.find_all(self.DROPPED_ELEMENTS):
            element.decompose()

        for node in soup.find_all(
            string=lambda s: isinstance(
                s, (Comment, CData, ProcessingInstruction, Doctype, Declaration)
            )
        ):
            node.extract()

        for head in soup.find_all("head"):
            head.decompose()

        for wrapper in soup.find_all(self.WRAPPER_ELEMENTS):
            wrapper.unwrap()

    def _collect_disallowed(self, soup: BeautifulSoup) -> List[Tag]:
        """Find the outermost disallowed elements without mutating the tree.

        Descendants of a disallowed element are flattened along with it, so
        only the outermost one is collected.
        """
        collected: List[Tag] = []
        stack = [child for child in reversed(soup.contents) if isinstance(child, Tag)]

        while stack:
            element = stack.pop()
            if element.name.lower() not in self.ALLOWED_ELEMENTS:
                collected.append(element)
                continue
            stack.extend(
                child for child in reversed(element.contents) if isinstance(child, Tag)
            )

        return collected
