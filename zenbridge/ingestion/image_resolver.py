"""
Image Resolver
==============

Resolves image sources in article HTML to absolute URLs and keeps only the
formats the target platform accepts (jpg, jpeg, png, webp over http/https).
"""

import re
from typing import List, Optional, Tuple
from urllib.parse import urljoin, urlparse

from bs4 import BeautifulSoup

from ..utils.logging import get_logger_for_component


ALLOWED_SCHEMES = ("http", "https")
ALLOWED_EXTENSION_PATTERN = re.compile(r"\.(jpe?g|png|webp)$", re.IGNORECASE)

MIME_TYPES = {
    "png": "image/png",
    "webp": "image/webp",
}
DEFAULT_MIME_TYPE = "image/jpeg"


def pick_base(link: Optional[str], site_link: Optional[str]) -> Optional[str]:
    """Article link when present, otherwise the configured site link."""
    return link or site_link or None


def mime_type_for(url: str) -> str:
    """MIME type derived from the URL's path extension."""
    path = urlparse(url).path
    extension = path.rsplit(".", 1)[-1].lower() if "." in path else ""
    return MIME_TYPES.get(extension, DEFAULT_MIME_TYPE)


class ImageResolver:
    """Locates, resolves and validates image URLs inside HTML content."""

    def __init__(self):
        self.logger = get_logger_for_component("image_resolver")
        self.parser = "html.parser"

    def resolve_image_url(self, src: Optional[str], base_url: Optional[str]) -> Optional[str]:
        """Resolve one image source.

        Args:
            src: Raw src attribute value
            base_url: Base for relative and scheme-relative sources

        Returns:
            Absolute URL, or None when the source is unusable
        """
        if not src or not src.strip():
            return None

        src = src.strip()

        try:
            resolved = urljoin(base_url, src) if base_url else src
            parsed = urlparse(resolved)
        except ValueError as e:
            self.logger.debug(f"Malformed image URL {src!r}: {e}")
            return None

        if parsed.scheme.lower() not in ALLOWED_SCHEMES or not parsed.netloc:
            return None

        if not ALLOWED_EXTENSION_PATTERN.search(parsed.path):
            return None

        return resolved

    def extract_image_urls(self, html_content: str, base_url: Optional[str]) -> List[str]:
        """List the usable image URLs in content without touching the markup."""
        if not html_content or "<img" not in html_content.lower():
            return []

        soup = BeautifulSoup(html_content, self.parser)
        images = []
        for img in soup.find_all("img"):
            resolved = self.resolve_image_url(img.get("src"), base_url)
            if resolved:
                images.append(resolved)
        return images

    def normalize_images(
        self, html_content: str, base_url: Optional[str]
    ) -> Tuple[str, List[str]]:
        """Rewrite content so every remaining image is usable.

        Images that fail resolution or the extension filter are removed from
        the markup; the rest get their absolute URL written back to ``src``.

        Returns:
            Rebuilt markup and the surviving image URLs in document order
        """
        if not html_content or "<img" not in html_content.lower():
            return html_content or "", []

        soup = BeautifulSoup(html_content, self.parser)
        images = []
        removed = 0

        for img in soup.find_all("img"):
            resolved = self.resolve_image_url(img.get("src"), base_url)
            if resolved is None:
                img.decompose()
                removed += 1
                continue
            img["src"] = resolved
            images.append(resolved)

        if removed:
            self.logger.debug(f"Removed {removed} unusable images")

        return str(soup), images
