"""
Tests for ArticleStateMachine
=============================

Transitions pending -> processing -> processed | error and reset handling,
run against a real temp-file store.
"""

import asyncio

import pytest
from unittest.mock import patch

from zenbridge.database.models import ArticleStatus
from zenbridge.processing.compliance import COMPLIANCE_FAILURE_MESSAGE
from zenbridge.processing.state_machine import ArticleStateMachine
from zenbridge.utils.exceptions import ArticleNotFoundError


class TestArticleStateMachine:
    """Test suite for ArticleStateMachine."""

    @pytest.fixture
    def state_machine(self, store, no_sleep):
        return ArticleStateMachine(store.articles, delay_seconds=0.5, sleep=no_sleep)

    @pytest.mark.asyncio
    async def test_compliant_article_processed(self, store, make_article, state_machine):
        article = store.create_article(make_article())

        result = await state_machine.process(article.id)

        assert result.status == ArticleStatus.PROCESSED
        assert result.zen_compliant is True
        assert result.error_message is None
        assert result.processed_at is not None
        assert store.get_article(article.id) == result

    @pytest.mark.asyncio
    async def test_non_compliant_article_processed_with_message(
        self, store, make_article, state_machine
    ):
        article = store.create_article(make_article(title="Too short"))

        result = await state_machine.process(article.id)

        assert result.status == ArticleStatus.PROCESSED
        assert result.zen_compliant is False
        assert result.error_message == COMPLIANCE_FAILURE_MESSAGE

    @pytest.mark.asyncio
    async def test_delay_happens_inside_processing_state(self, store, make_article):
        article = store.create_article(make_article())
        observed = []

        async def observing_sleep(seconds):
            observed.append((seconds, store.get_article(article.id).status))

        machine = ArticleStateMachine(store.articles, delay_seconds=1.0, sleep=observing_sleep)
        await machine.process(article.id)

        assert observed == [(1.0, ArticleStatus.PROCESSING)]

    @pytest.mark.asyncio
    async def test_zero_delay_skips_sleep(self, store, make_article, no_sleep):
        article = store.create_article(make_article())
        machine = ArticleStateMachine(store.articles, delay_seconds=0, sleep=no_sleep)

        await machine.process(article.id)

        assert no_sleep.calls == []

    @pytest.mark.asyncio
    async def test_unexpected_exception_leads_to_error(
        self, store, make_article, state_machine
    ):
        article = store.create_article(make_article())

        with patch(
            "zenbridge.processing.state_machine.evaluate_compliance",
            side_effect=RuntimeError("classifier exploded"),
        ):
            result = await state_machine.process(article.id)

        assert result.status == ArticleStatus.ERROR
        assert result.error_message == "classifier exploded"
        assert result.zen_compliant is False
        assert result.processed_at is not None

    @pytest.mark.asyncio
    async def test_missing_article_returns_none(self, state_machine):
        assert await state_machine.process("does-not-exist") is None

    @pytest.mark.asyncio
    async def test_fail_marks_error(self, store, make_article, state_machine):
        article = store.create_article(make_article())

        result = await state_machine.fail(article.id, "storage hiccup")

        assert result.status == ArticleStatus.ERROR
        assert result.error_message == "storage hiccup"

    @pytest.mark.asyncio
    async def test_reset_clears_processing_fields(self, store, make_article, state_machine):
        article = store.create_article(make_article(title="Too short"))
        await state_machine.process(article.id)

        result = await state_machine.reset(article.id)

        assert result.status == ArticleStatus.PENDING
        assert result.error_message is None
        assert result.zen_compliant is False
        assert result.processed_at is None

    @pytest.mark.asyncio
    async def test_reset_missing_article_raises(self, state_machine):
        with pytest.raises(ArticleNotFoundError):
            await state_machine.reset("does-not-exist")

    @pytest.mark.asyncio
    async def test_reprocessing_restamps_processed_at(self, store, make_article, state_machine):
        article = store.create_article(make_article())
        first = await state_machine.process(article.id)

        await state_machine.reset(article.id)
        second = await state_machine.process(article.id)

        assert second.status == ArticleStatus.PROCESSED
        assert second.processed_at >= first.processed_at

    @pytest.mark.asyncio
    async def test_locks_dropped_after_transitions(self, store, make_article, state_machine):
        for _ in range(5):
            article = store.create_article(make_article())
            await state_machine.process(article.id)
        await state_machine.process("does-not-exist")
        with pytest.raises(ArticleNotFoundError):
            await state_machine.reset("does-not-exist")

        assert state_machine._locks == {}
        assert state_machine._lock_users == {}

    @pytest.mark.asyncio
    async def test_transitions_on_one_article_do_not_overlap(self, store, make_article):
        article = store.create_article(make_article())
        active = []
        peak = []

        async def tracking_sleep(seconds):
            active.append(seconds)
            peak.append(len(active))
            await asyncio.sleep(0.01)
            active.pop()

        machine = ArticleStateMachine(store.articles, delay_seconds=0.5, sleep=tracking_sleep)
        results = await asyncio.gather(machine.process(article.id), machine.process(article.id))

        assert max(peak) == 1
        assert len(peak) == 2
        assert all(r.status == ArticleStatus.PROCESSED for r in results)
        assert machine._locks == {}
