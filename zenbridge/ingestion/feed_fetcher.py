"""
RSS Feed Fetcher
================

Single-attempt RSS/Atom feed fetching and parsing. Transport failures and
malformed documents are reported as distinct error types.
"""

import asyncio
import calendar
import ssl
from contextlib import asynccontextmanager
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, List, Optional

import aiohttp
import certifi
import feedparser

from ..config.settings import ZenBridgeSettings, get_settings
from ..utils.logging import get_logger_for_component
from ..utils.exceptions import (
    ErrorCode,
    FeedFetchError,
    FeedParseError,
    FeedTransportError,
)


@dataclass
class FeedItem:
    """One entry of the source feed, in feed order."""

    title: Optional[str]
    link: Optional[str]
    author: Optional[str] = None
    published: Optional[datetime] = None
    content: Optional[str] = None  # content:encoded / Atom content
    summary: Optional[str] = None  # RSS description / Atom summary
    categories: List[str] = field(default_factory=list)


@dataclass
class FeedMetadata:
    title: Optional[str] = None
    link: Optional[str] = None
    description: Optional[str] = None


@dataclass
class ParsedFeed:
    """Result of a successful fetch."""

    url: str
    metadata: FeedMetadata
    items: List[FeedItem]
    parse_warning: Optional[str] = None


class FeedFetcher:
    """Fetches one feed with a single HTTP attempt and parses it."""

    def __init__(self, timeout: int = None, settings: Optional[ZenBridgeSettings] = None):
        """Initialize feed fetcher.

        Args:
            timeout: Request timeout in seconds (default from config)
            settings: Settings instance (default: global settings)
        """
        settings = settings or get_settings()
        self.timeout = timeout or settings.limits.request_timeout
        self.user_agent = settings.limits.user_agent
        self.logger = get_logger_for_component("feed_fetcher")

        self.ssl_context = ssl.create_default_context(cafile=certifi.where())

    @asynccontextmanager
    async def get_session(self):
        """Get configured aiohttp session."""
        connector = aiohttp.TCPConnector(ssl=self.ssl_context, enable_cleanup_closed=True)
        timeout = aiohttp.ClientTimeout(total=self.timeout)
        headers = {
            "User-Agent": self.user_agent,
            "Accept": "application/rss+xml, application/atom+xml, application/xml, text/xml, */*",
        }

        async with aiohttp.ClientSession(
            connector=connector, timeout=timeout, headers=headers
        ) as session:
            yield session

    async def fetch(self, feed_url: str) -> ParsedFeed:
        """Download and parse the feed.

        Args:
            feed_url: URL of the RSS/Atom feed

        Returns:
            ParsedFeed with items in feed order

        Raises:
            FeedTransportError: HTTP status, network or timeout failure
            FeedParseError: The document is not a usable feed
        """
        if not feed_url or not feed_url.startswith(("http://", "https://")):
            raise FeedFetchError(
                f"Invalid feed URL: {feed_url!r}",
                feed_url=feed_url,
                error_code=ErrorCode.FEED_INVALID_URL,
                recoverable=False,
            )

        start_time = datetime.now(timezone.utc)
        self.logger.debug(f"Fetching feed: {feed_url}")

        try:
            async with self.get_session() as session:
                async with session.get(feed_url) as response:
                    if response.status != 200:
                        raise FeedTransportError(
                            f"HTTP {response.status}: {response.reason}",
                            feed_url=feed_url,
                            error_code=ErrorCode.FEED_HTTP_ERROR,
                            context={"status": response.status},
                        )
                    body = await response.read()

        except asyncio.TimeoutError as e:
            raise FeedTransportError(
                f"Request timeout after {self.timeout}s",
                feed_url=feed_url,
                error_code=ErrorCode.FEED_FETCH_TIMEOUT,
            ) from e
        except aiohttp.ClientError as e:
            raise FeedTransportError(
                f"Network error: {e}", feed_url=feed_url
            ) from e

        parsed = self.parse(body, feed_url)

        self.logger.info(
            f"Fetched {len(parsed.items)} items from {feed_url} "
            f"in {(datetime.now(timezone.utc) - start_time).total_seconds():.2f}s"
        )
        return parsed

    def parse(self, content: Any, feed_url: str) -> ParsedFeed:
        """Parse a downloaded document.

        Raises:
            FeedParseError: The document has no entries and is not a feed
        """
        feed_data = feedparser.parse(content)
        entries = getattr(feed_data, "entries", None) or []
        parse_warning = None

        if getattr(feed_data, "bozo", False):
            parse_warning = f"Feed parse error: {getattr(feed_data, 'bozo_exception', 'invalid XML structure')}"
            if not entries:
                raise FeedParseError(parse_warning, feed_url=feed_url)
            self.logger.info(f"Feed has parse warnings but contains entries: {feed_url}")

        elif not entries and not getattr(feed_data, "version", ""):
            raise FeedParseError("Document is not an RSS or Atom feed", feed_url=feed_url)

        channel = feed_data.feed
        metadata = FeedMetadata(
            title=channel.get("title"),
            link=channel.get("link"),
            description=channel.get("subtitle") or channel.get("description"),
        )

        return ParsedFeed(
            url=feed_url,
            metadata=metadata,
            items=[self._parse_entry(entry) for entry in entries],
            parse_warning=parse_warning,
        )

    def _parse_entry(self, entry: Any) -> FeedItem:
        return FeedItem(
            title=(entry.get("title") or "").strip() or None,
            link=(entry.get("link") or "").strip() or None,
            author=(entry.get("author") or entry.get("dc_creator") or "").strip() or None,
            published=self._parse_date(entry),
            content=self._extract_content(entry),
            summary=entry.get("summary") or entry.get("description"),
            categories=[
                tag.get("term") for tag in entry.get("tags", []) if tag.get("term")
            ],
        )

    def _extract_content(self, entry: Any) -> Optional[str]:
        """Full content (content:encoded or Atom content), if present."""
        for block in entry.get("content", []) or []:
            value = block.get("value") if isinstance(block, dict) else None
            if value and value.strip():
                return value
        return None

    def _parse_date(self, entry: Any) -> Optional[datetime]:
        """Parse publication date from entry as an aware UTC datetime."""
        for field_name in ("published_parsed", "updated_parsed", "created_parsed"):
            date_tuple = entry.get(field_name)
            if date_tuple:
                try:
                    # feedparser normalizes parsed dates to UTC
                    timestamp = calendar.timegm(date_tuple)
                    return datetime.fromtimestamp(timestamp, tz=timezone.utc)
                except (ValueError, OverflowError, TypeError):
                    continue
        return None
