"""
Tests for FeedFetcher
=====================

HTTP behaviour is mocked with aioresponses; parsing runs real feedparser.
"""

import asyncio
from datetime import datetime, timezone

import aiohttp
import pytest
from aioresponses import aioresponses

from zenbridge.ingestion.feed_fetcher import FeedFetcher
from zenbridge.utils.exceptions import (
    ErrorCode,
    FeedFetchError,
    FeedParseError,
    FeedTransportError,
)

from tests.feed_samples import SOURCE_URL, make_item, make_rss


ATOM_FEED = """<?xml version="1.0" encoding="utf-8"?>
<feed xmlns="http://www.w3.org/2005/Atom">
  <title>Atom Source</title>
  <link href="https://atom.example.com/"/>
  <updated>2025-01-06T10:00:00Z</updated>
  <entry>
    <title>Atom entry title</title>
    <link href="https://atom.example.com/entry/1"/>
    <id>urn:uuid:1</id>
    <updated>2025-01-06T10:00:00Z</updated>
    <summary>Only a summary here</summary>
  </entry>
</feed>
"""


class TestFeedFetcher:
    """Test suite for FeedFetcher.fetch."""

    @pytest.fixture
    def fetcher(self, test_settings):
        return FeedFetcher(settings=test_settings)

    @pytest.mark.asyncio
    async def test_successful_fetch(self, fetcher):
        body = make_rss(
            make_item(link="https://source.example.com/posts/1", categories=("Наука", "Спорт"))
            + make_item(title="Second article title", link="https://source.example.com/posts/2")
        )

        with aioresponses() as m:
            m.get(SOURCE_URL, status=200, body=body)
            parsed = await fetcher.fetch(SOURCE_URL)

        assert parsed.url == SOURCE_URL
        assert parsed.metadata.title == "Source Feed"
        assert [item.link for item in parsed.items] == [
            "https://source.example.com/posts/1",
            "https://source.example.com/posts/2",
        ]

        first = parsed.items[0]
        assert first.title == "Достаточно длинный заголовок"
        assert first.author == "Author Name"
        assert first.categories == ["Наука", "Спорт"]
        assert first.published == datetime(2025, 1, 6, 10, 0, tzinfo=timezone.utc)
        assert "<img" in first.content
        assert first.summary == "Short summary of the post"

    @pytest.mark.asyncio
    async def test_http_error_status(self, fetcher):
        with aioresponses() as m:
            m.get(SOURCE_URL, status=404)

            with pytest.raises(FeedTransportError) as exc_info:
                await fetcher.fetch(SOURCE_URL)

        assert exc_info.value.error_code == ErrorCode.FEED_HTTP_ERROR
        assert exc_info.value.context["status"] == 404
        assert exc_info.value.feed_url == SOURCE_URL

    @pytest.mark.asyncio
    async def test_timeout(self, fetcher):
        with aioresponses() as m:
            m.get(SOURCE_URL, exception=asyncio.TimeoutError())

            with pytest.raises(FeedTransportError) as exc_info:
                await fetcher.fetch(SOURCE_URL)

        assert exc_info.value.error_code == ErrorCode.FEED_FETCH_TIMEOUT

    @pytest.mark.asyncio
    async def test_network_error(self, fetcher):
        with aioresponses() as m:
            m.get(SOURCE_URL, exception=aiohttp.ClientConnectionError("refused"))

            with pytest.raises(FeedTransportError) as exc_info:
                await fetcher.fetch(SOURCE_URL)

        assert exc_info.value.error_code == ErrorCode.FEED_NETWORK_ERROR

    @pytest.mark.asyncio
    async def test_malformed_document(self, fetcher):
        with aioresponses() as m:
            m.get(SOURCE_URL, status=200, body="this is not a feed at all <<<")

            with pytest.raises(FeedParseError) as exc_info:
                await fetcher.fetch(SOURCE_URL)

        assert exc_info.value.error_code == ErrorCode.FEED_PARSE_ERROR

    @pytest.mark.asyncio
    async def test_parse_and_transport_errors_share_base(self, fetcher):
        with aioresponses() as m:
            m.get(SOURCE_URL, status=500)

            with pytest.raises(FeedFetchError):
                await fetcher.fetch(SOURCE_URL)

    @pytest.mark.asyncio
    async def test_invalid_url_rejected(self, fetcher):
        with pytest.raises(FeedFetchError) as exc_info:
            await fetcher.fetch("ftp://source.example.com/feed.xml")

        assert exc_info.value.error_code == ErrorCode.FEED_INVALID_URL

    @pytest.mark.asyncio
    async def test_empty_channel_is_valid(self, fetcher):
        with aioresponses() as m:
            m.get(SOURCE_URL, status=200, body=make_rss(""))
            parsed = await fetcher.fetch(SOURCE_URL)

        assert parsed.items == []


class TestFeedParsing:
    """Test suite for FeedFetcher.parse."""

    @pytest.fixture
    def fetcher(self, test_settings):
        return FeedFetcher(settings=test_settings)

    def test_atom_summary_only_entry(self, fetcher):
        parsed = fetcher.parse(ATOM_FEED, "https://atom.example.com/feed")

        assert len(parsed.items) == 1
        item = parsed.items[0]
        assert item.title == "Atom entry title"
        assert item.link == "https://atom.example.com/entry/1"
        assert item.content is None
        assert item.summary == "Only a summary here"
        assert item.categories == []

    def test_missing_title_and_link_are_none(self, fetcher):
        body = make_rss(make_item(title="", link=""))

        parsed = fetcher.parse(body, SOURCE_URL)

        assert parsed.items[0].title is None
        assert parsed.items[0].link is None
