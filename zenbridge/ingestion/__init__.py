"""
Zen Bridge Ingestion Module
===========================

Source feed ingestion and content transformation components.

This module handles:
- RSS/Atom feed fetching and parsing
- Allowlist HTML sanitization
- Image URL resolution and validation
- Category mapping onto the target platform taxonomy
"""

from .content_sanitizer import HtmlSanitizer
from .image_resolver import ImageResolver
from .category_mapper import CategoryMapper
from .feed_fetcher import FeedFetcher, FeedItem, ParsedFeed

__all__ = [
    "HtmlSanitizer",
    "ImageResolver",
    "CategoryMapper",
    "FeedFetcher",
    "FeedItem",
    "ParsedFeed",
]
