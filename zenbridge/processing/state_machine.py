"""
Article Processing State Machine
================================

Drives one article through pending -> processing -> processed | error.
Compliance failures end in ``processed`` with ``zen_compliant=False``;
unexpected exceptions end in ``error``.
"""

import asyncio
from contextlib import asynccontextmanager
from datetime import datetime, timezone
from typing import AsyncIterator, Awaitable, Callable, Dict, Optional

from ..database.models import Article, ArticleStatus
from ..storage.article_repository import ArticleRepository
from ..utils.logging import get_logger_for_component
from ..utils.exceptions import ArticleNotFoundError
from .compliance import evaluate_compliance


SleepFunc = Callable[[float], Awaitable[None]]


class ArticleStateMachine:
    """Owns every status/compliance/processed_at change of an article."""

    def __init__(
        self,
        article_repository: ArticleRepository,
        delay_seconds: float = 1.0,
        sleep: SleepFunc = asyncio.sleep,
    ):
        """Initialize the state machine.

        Args:
            article_repository: Repository used for every transition
            delay_seconds: Pause inside the processing state
            sleep: Coroutine used for the pause, replaceable in tests
        """
        self.articles = article_repository
        self.delay_seconds = delay_seconds
        self.sleep = sleep
        self.logger = get_logger_for_component("state_machine")

        # One owner at a time per article id; entries live while someone holds or awaits them
        self._locks: Dict[str, asyncio.Lock] = {}
        self._lock_users: Dict[str, int] = {}

    @asynccontextmanager
    async def _article_lock(self, article_id: str) -> AsyncIterator[None]:
        lock = self._locks.setdefault(article_id, asyncio.Lock())
        self._lock_users[article_id] = self._lock_users.get(article_id, 0) + 1
        try:
            async with lock:
                yield
        finally:
            self._lock_users[article_id] -= 1
            if self._lock_users[article_id] == 0:
                del self._lock_users[article_id]
                del self._locks[article_id]

    async def process(self, article_id: str) -> Optional[Article]:
        """Run the processing transition for one article.

        Always finishes in ``processed`` or ``error`` once the article has
        entered ``processing``.

        Returns:
            The article in its terminal state, or None if it does not exist
        """
        async with self._article_lock(article_id):
            try:
                self.articles.update_article(article_id, status=ArticleStatus.PROCESSING)
            except ArticleNotFoundError:
                self.logger.warning(f"Article {article_id} disappeared before processing")
                return None

            try:
                if self.delay_seconds > 0:
                    await self.sleep(self.delay_seconds)

                article = self.articles.get_article(article_id)
                if article is None:
                    raise ArticleNotFoundError(article_id)

                result = evaluate_compliance(article)
                updated = self.articles.update_article(
                    article_id,
                    status=ArticleStatus.PROCESSED,
                    zen_compliant=result.compliant,
                    error_message=result.error_message,
                    processed_at=datetime.now(timezone.utc),
                )

                if result.compliant:
                    self.logger.info(f"Article processed and compliant: {article.title[:60]}")
                else:
                    self.logger.info(
                        f"Article not compliant ({result.reason}): {article.title[:60]}"
                    )
                return updated

            except Exception as e:
                self.logger.error(
                    f"Processing failed for article {article_id}: {e}",
                    extra={"article_id": article_id},
                )
                return self._mark_error(article_id, str(e))

    async def fail(self, article_id: str, message: str) -> Optional[Article]:
        """Move an article straight to ``error``."""
        async with self._article_lock(article_id):
            return self._mark_error(article_id, message)

    async def reset(self, article_id: str) -> Article:
        """Return an article to ``pending`` so it is evaluated from scratch.

        Raises:
            ArticleNotFoundError: If the article does not exist
        """
        async with self._article_lock(article_id):
            article = self.articles.update_article(
                article_id,
                status=ArticleStatus.PENDING,
                error_message=None,
                zen_compliant=False,
                processed_at=None,
            )
            self.logger.info(f"Article {article_id} reset to pending")
            return article

    def _mark_error(self, article_id: str, message: str) -> Optional[Article]:
        try:
            return self.articles.update_article(
                article_id,
                status=ArticleStatus.ERROR,
                error_message=message,
                zen_compliant=False,
                processed_at=datetime.now(timezone.utc),
            )
        except ArticleNotFoundError:
            self.logger.warning(f"Cannot mark missing article {article_id} as error")
            return None
