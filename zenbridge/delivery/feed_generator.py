"""
Zen Feed Generator
==================

Serializes processed, compliant articles into the RSS 2.0 document read by
the target platform.

Features:
- Channel metadata taken from the stored RSS configuration
- Images re-validated at render time and stripped from markup when unusable
- One enclosure per surviving image with an extension-derived MIME type
- Framework-agnostic response value for serving the feed
"""

import re
from dataclasses import dataclass
from datetime import datetime, timezone
from email.utils import format_datetime
from typing import Any, Dict, List, Optional
from xml.sax.saxutils import escape, quoteattr

from ..database.models import Article, ProcessingStats
from ..ingestion.image_resolver import ImageResolver, mime_type_for, pick_base
from ..storage.store import Store
from ..utils.logging import get_logger_for_component
from ..utils.exceptions import ConfigMissingError, handle_exception

FEED_PATH = "/zen-feed.xml"
RSS_CONTENT_TYPE = "application/rss+xml; charset=utf-8"
ERROR_CONTENT_TYPE = "text/plain"
ERROR_BODY = "Failed to generate RSS feed"
GENERATOR_NAME = "RSS to Zen Bridge"

CONTENT_NAMESPACE = "http://purl.org/rss/1.0/modules/content/"
MEDIA_NAMESPACE = "http://search.yahoo.com/mrss/"

RECENT_ARTICLES_LIMIT = 5

# Characters XML 1.0 does not allow anywhere in a document
INVALID_XML_CHARS = re.compile(r"[\x00-\x08\x0b\x0c\x0e-\x1f]")


def cdata(text: Optional[str]) -> str:
    """Wrap text in CDATA, splitting any embedded terminator."""
    text = INVALID_XML_CHARS.sub("", text or "")
    return "<![CDATA[" + text.replace("]]>", "]]]]><![CDATA[>") + "]]>"


def xml_text(text: Optional[str]) -> str:
    return escape(INVALID_XML_CHARS.sub("", text or ""))


def rfc822(value: datetime) -> str:
    """RFC 822 date in GMT, as used by RSS 2.0."""
    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    return format_datetime(value.astimezone(timezone.utc), usegmt=True)


@dataclass(frozen=True)
class FeedResponse:
    """What an HTTP layer needs to serve the feed."""
    status_code: int
    content_type: str
    body: str


class FeedGenerator:
    """Builds the output feed from the store."""

    def __init__(self, store: Store, resolver: Optional[ImageResolver] = None):
        self.store = store
        self.resolver = resolver or ImageResolver()
        self.logger = get_logger_for_component('feed_generator')

    def generate(self, now: Optional[datetime] = None) -> str:
        """Serialize the current compliant articles.

        Args:
            now: Build date override

        Returns:
            RSS 2.0 document

        Raises:
            ConfigMissingError: If no configuration exists
        """
        config = self.store.get_rss_config()
        if config is None:
            raise ConfigMissingError()

        articles = self.store.articles.get_published_articles()
        build_date = rfc822(now or datetime.now(timezone.utc))

        items = [self._render_item(article, config.site_link) for article in articles]

        parts = [
            '<?xml version="1.0" encoding="UTF-8"?>',
            f'<rss version="2.0" xmlns:content={quoteattr(CONTENT_NAMESPACE)} '
            f'xmlns:media={quoteattr(MEDIA_NAMESPACE)}>',
            '<channel>',
            f'<title>{cdata(config.title)}</title>',
            f'<link>{xml_text(config.site_link)}</link>',
            f'<description>{cdata(config.description)}</description>',
            f'<language>{xml_text(config.language)}</language>',
            f'<lastBuildDate>{build_date}</lastBuildDate>',
            f'<generator>{GENERATOR_NAME}</generator>',
            *items,
            '</channel>',
            '</rss>',
        ]

        self.logger.info(f"Generated feed with {len(items)} items")
        return "\n".join(parts) + "\n"

    def _render_item(self, article: Article, site_link: str) -> str:
        content, images = self.resolver.normalize_images(
            article.content, pick_base(article.link, site_link)
        )

        lines = [
            '<item>',
            f'<title>{cdata(article.title)}</title>',
            f'<link>{xml_text(article.link)}</link>',
            f'<pubDate>{rfc822(article.pub_date)}</pubDate>',
            f'<author>{cdata(article.author)}</author>',
        ]
        lines.extend(f'<category>{cdata(category)}</category>' for category in article.category)
        lines.append(f'<description>{cdata(article.description)}</description>')
        lines.append(f'<content:encoded>{cdata(content)}</content:encoded>')
        lines.extend(
            f'<enclosure url={quoteattr(url)} type={quoteattr(mime_type_for(url))}/>'
            for url in images
        )
        lines.append(f'<guid isPermaLink="true">{xml_text(article.link)}</guid>')
        lines.append('</item>')
        return "\n".join(lines)

    def render_response(self) -> FeedResponse:
        """Feed document, or a plain-text error when generation fails."""
        try:
            return FeedResponse(200, RSS_CONTENT_TYPE, self.generate())
        except Exception as e:
            handle_exception(e, self.logger, "feed generation")
            return FeedResponse(500, ERROR_CONTENT_TYPE, ERROR_BODY)

    def get_stats(self) -> ProcessingStats:
        """Counts recomputed from the article set."""
        config = self.store.get_rss_config()
        return ProcessingStats.from_articles(
            self.store.get_articles(),
            last_updated=config.last_checked if config else None,
        )

    def get_processing_status(
        self, is_processing: bool = False, current_step: str = "idle"
    ) -> Dict[str, Any]:
        """Pipeline activity plus the most recently created articles."""
        recent: List[Dict[str, Any]] = [
            {
                "id": article.id,
                "title": article.title,
                "status": article.status.value,
                "processed_at": article.processed_at,
            }
            for article in self.store.get_articles(limit=RECENT_ARTICLES_LIMIT)
        ]
        return {
            "is_processing": is_processing,
            "current_step": current_step,
            "recent_articles": recent,
        }
