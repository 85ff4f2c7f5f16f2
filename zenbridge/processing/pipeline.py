"""
Ingestion Pipeline
==================

Fetches the source feed, deduplicates items by link, builds pending
articles and drives each one through the processing state machine.
"""

from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import List, Optional

from ..config.settings import ZenBridgeSettings, get_settings
from ..database.models import Article, RssConfig, ArticleStatus, DEFAULT_AUTHOR
from ..ingestion.category_mapper import CategoryMapper
from ..ingestion.content_sanitizer import HtmlSanitizer
from ..ingestion.feed_fetcher import FeedFetcher, FeedItem
from ..ingestion.image_resolver import ImageResolver, pick_base
from ..storage.store import Store
from ..utils.logging import get_logger_for_component, PerformanceLogger
from ..utils.exceptions import (
    ConfigMissingError,
    DuplicateArticleError,
    FeedFetchError,
    ProcessingError,
    ErrorCode,
)
from .state_machine import ArticleStateMachine


DESCRIPTION_LIMIT = 160
ELLIPSIS = "..."


def build_description(text: str, limit: int = DESCRIPTION_LIMIT) -> str:
    """Truncate to ``limit`` characters, ellipsis included, when longer."""
    text = (text or "").strip()
    if len(text) <= limit:
        return text
    return text[: limit - len(ELLIPSIS)] + ELLIPSIS


class ItemOutcome(str, Enum):
    CREATED = "created"
    SKIPPED_MISSING_FIELDS = "skipped_missing_fields"
    SKIPPED_DUPLICATE = "skipped_duplicate"
    FAILED = "failed"


@dataclass
class ItemResult:
    outcome: ItemOutcome
    link: Optional[str] = None
    article: Optional[Article] = None
    error: Optional[str] = None


@dataclass
class CycleResult:
    """Summary of one fetch-and-process pass."""
    source_url: str
    items_seen: int = 0
    articles_created: int = 0
    skipped_missing_fields: int = 0
    skipped_duplicates: int = 0
    failed: int = 0
    compliant: int = 0
    errors: List[str] = field(default_factory=list)
    started_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))
    finished_at: Optional[datetime] = None

    @property
    def duration_seconds(self) -> float:
        if not self.finished_at:
            return 0.0
        return (self.finished_at - self.started_at).total_seconds()

    def record(self, item_result: ItemResult) -> None:
        outcome = item_result.outcome
        if outcome == ItemOutcome.CREATED:
            self.articles_created += 1
            article = item_result.article
            if article is not None and article.is_published:
                self.compliant += 1
        elif outcome == ItemOutcome.SKIPPED_MISSING_FIELDS:
            self.skipped_missing_fields += 1
        elif outcome == ItemOutcome.SKIPPED_DUPLICATE:
            self.skipped_duplicates += 1
        else:
            self.failed += 1
            self.errors.append(f"{item_result.link}: {item_result.error}")


@dataclass
class ProcessingState:
    """What the pipeline is doing right now."""
    is_processing: bool = False
    current_step: str = "idle"


class IngestionPipeline:
    """Complete ingestion cycle orchestrator."""

    def __init__(
        self,
        store: Store,
        fetcher: Optional[FeedFetcher] = None,
        sanitizer: Optional[HtmlSanitizer] = None,
        resolver: Optional[ImageResolver] = None,
        mapper: Optional[CategoryMapper] = None,
        state_machine: Optional[ArticleStateMachine] = None,
        settings: Optional[ZenBridgeSettings] = None,
    ):
        """Initialize ingestion pipeline.

        Args:
            store: Article and configuration store
            fetcher: Feed fetcher (default built from settings)
            sanitizer: HTML sanitizer
            resolver: Image resolver
            mapper: Category mapper
            state_machine: Processing state machine (default uses the
                configured compliance delay)
            settings: Settings instance (default: global settings)
        """
        self.store = store
        self.settings = settings or get_settings()
        self.logger = get_logger_for_component("pipeline")

        self.fetcher = fetcher or FeedFetcher(settings=self.settings)
        self.sanitizer = sanitizer or HtmlSanitizer()
        self.resolver = resolver or ImageResolver()
        self.mapper = mapper or CategoryMapper()
        self.state_machine = state_machine or ArticleStateMachine(
            store.articles,
            delay_seconds=self.settings.processing.compliance_delay_seconds,
        )

        self.state = ProcessingState()

    async def sync(self) -> CycleResult:
        """Run one cycle for the active configuration.

        Raises:
            ConfigMissingError: If there is no active configuration
            FeedFetchError: If the source feed cannot be fetched or parsed
        """
        config = self.store.get_rss_config()
        if config is None:
            raise ConfigMissingError()
        if not config.is_active:
            raise ConfigMissingError(
                f"RSS configuration {config.id} is inactive",
                error_code=ErrorCode.CONFIG_INACTIVE,
            )
        return await self.run_cycle(config)

    async def run_cycle(self, config: RssConfig) -> CycleResult:
        """Fetch the source feed and process every new item in feed order.

        ``last_checked`` is updated once, after all items were handled.
        A fetch or parse failure aborts the cycle before that update.
        """
        result = CycleResult(source_url=config.source_url)
        logger = get_logger_for_component("pipeline", feed_url=config.source_url)
        self.state = ProcessingState(is_processing=True, current_step="fetching feed")

        try:
            with PerformanceLogger(logger, "ingestion cycle", source_url=config.source_url):
                try:
                    parsed = await self.fetcher.fetch(config.source_url)
                except FeedFetchError as e:
                    logger.error(f"Feed fetch failed, cycle aborted: {e}")
                    raise

                result.items_seen = len(parsed.items)
                for index, item in enumerate(parsed.items, start=1):
                    self.state.current_step = f"processing item {index}/{result.items_seen}"
                    result.record(await self.process_item(item, config.site_link))

                self.state.current_step = "updating configuration"
                result.finished_at = datetime.now(timezone.utc)
                self.store.update_rss_config(config.id, last_checked=result.finished_at)
        finally:
            self.state = ProcessingState()

        logger.info(
            f"Cycle complete: {result.items_seen} items, {result.articles_created} created, "
            f"{result.compliant} compliant, {result.skipped_duplicates} duplicates, "
            f"{result.skipped_missing_fields} incomplete, {result.failed} failed"
        )
        return result

    async def process_item(self, item: FeedItem, site_link: Optional[str]) -> ItemResult:
        """Turn one feed item into a processed article.

        Failures are contained to this item. An article that was already
        stored when the failure happened is driven to ``error``.
        """
        if not item.title or not item.link:
            self.logger.debug(f"Skipping item without title or link: {item.link or item.title}")
            return ItemResult(ItemOutcome.SKIPPED_MISSING_FIELDS, link=item.link)

        created: Optional[Article] = None
        try:
            if self.store.articles.link_exists(item.link):
                self.logger.debug(f"Article already exists: {item.link}")
                return ItemResult(ItemOutcome.SKIPPED_DUPLICATE, link=item.link)

            try:
                created = self.store.create_article(self.build_article(item, site_link))
            except DuplicateArticleError:
                self.logger.info(f"Article created concurrently, skipping: {item.link}")
                return ItemResult(ItemOutcome.SKIPPED_DUPLICATE, link=item.link)

            self.logger.info(f"Created article: {created.title[:60]}")
            final = await self.state_machine.process(created.id)
            if final is None or final.status != ArticleStatus.PROCESSED:
                return ItemResult(
                    ItemOutcome.FAILED,
                    link=item.link,
                    article=final,
                    error=final.error_message if final else "article missing after creation",
                )
            return ItemResult(ItemOutcome.CREATED, link=item.link, article=final)

        except Exception as e:
            error = ProcessingError(
                f"Failed to process item {item.link}: {e}",
                article_id=created.id if created else None,
                context={"link": item.link},
            )
            self.logger.error(str(error), extra=error.to_dict())
            article = None
            if created is not None:
                try:
                    article = await self.state_machine.fail(created.id, str(e))
                except Exception as mark_error:
                    self.logger.error(
                        f"Could not mark article {created.id} as error: {mark_error}"
                    )
            return ItemResult(ItemOutcome.FAILED, link=item.link, article=article, error=str(e))

    def build_article(self, item: FeedItem, site_link: Optional[str]) -> Article:
        """Build a pending article from a feed item."""
        content = self.sanitizer.sanitize(item.content or item.summary or "")
        base_url = pick_base(item.link, site_link)

        description_source = self.sanitizer.extract_text(content) or \
            self.sanitizer.extract_text(item.summary or "")

        return Article(
            title=item.title,
            link=item.link,
            author=item.author or DEFAULT_AUTHOR,
            pub_date=item.published or datetime.now(timezone.utc),
            description=build_description(description_source),
            content=content,
            category=self.mapper.map_categories(item.categories),
            images=self.resolver.extract_image_urls(content, base_url),
            status=ArticleStatus.PENDING,
        )

    async def reprocess_article(self, article_id: str) -> Optional[Article]:
        """Reset an article to pending and run it through processing again.

        Raises:
            ArticleNotFoundError: If the article does not exist
        """
        await self.state_machine.reset(article_id)
        previous = self.state
        reprocessing = ProcessingState(is_processing=True, current_step=f"reprocessing {article_id}")
        self.state = reprocessing
        try:
            return await self.state_machine.process(article_id)
        finally:
            # a cycle that started or finished meanwhile has replaced the state already
            if self.state is reprocessing:
                self.state = previous
