"""
Tests for Repository Components
===============================

Test suite for ArticleRepository and RssConfigRepository with coverage of
CRUD operations and error handling.
"""

import pytest
import tempfile
import os
from datetime import datetime, timezone, timedelta

from pydantic import ValidationError

from zenbridge.database.connection import DatabaseConnection
from zenbridge.database.schema import DatabaseSchema
from zenbridge.database.models import Article, ArticleStatus, RssConfig
from zenbridge.storage.article_repository import ArticleRepository
from zenbridge.storage.config_repository import RssConfigRepository
from zenbridge.utils.exceptions import (
    ArticleNotFoundError,
    DatabaseError,
    DuplicateArticleError,
    RssConfigNotFoundError,
)


@pytest.fixture
def temp_db():
    """Create temporary database for testing."""
    temp_file = tempfile.NamedTemporaryFile(suffix=".db", delete=False)
    db_path = temp_file.name
    temp_file.close()

    # Create schema
    schema = DatabaseSchema(db_path)
    schema.create_tables()

    yield db_path

    # Cleanup
    for suffix in ("", "-wal", "-shm"):
        try:
            os.unlink(db_path + suffix)
        except FileNotFoundError:
            pass


@pytest.fixture
def db_connection(temp_db):
    db_connection = DatabaseConnection(temp_db, pool_size=2)
    yield db_connection
    db_connection.close_all_connections()


class TestArticleRepository:
    """Test suite for ArticleRepository."""

    @pytest.fixture
    def article_repo(self, db_connection):
        """Create ArticleRepository with test database."""
        return ArticleRepository(db_connection)

    @pytest.fixture
    def sample_article(self):
        return Article(
            title="Test Article 1",
            link="https://example.com/article1",
            author="Author",
            description="Summary",
            content="<p>Content</p>",
            category=["Наука", "Спорт"],
            images=["https://example.com/a.jpg"],
        )

    def test_create_and_get_article(self, article_repo, sample_article):
        created = article_repo.create_article(sample_article)
        retrieved = article_repo.get_article(created.id)

        assert retrieved is not None
        assert retrieved.title == "Test Article 1"
        assert retrieved.link == "https://example.com/article1"
        assert retrieved.category == ["Наука", "Спорт"]
        assert retrieved.images == ["https://example.com/a.jpg"]
        assert retrieved.status == ArticleStatus.PENDING
        assert retrieved.zen_compliant is False
        assert retrieved.processed_at is None
        assert retrieved.pub_date == sample_article.pub_date

    def test_get_nonexistent_article(self, article_repo):
        assert article_repo.get_article("nonexistent") is None

    def test_get_article_by_link(self, article_repo, sample_article):
        article_repo.create_article(sample_article)

        found = article_repo.get_article_by_link("https://example.com/article1")

        assert found.id == sample_article.id
        assert article_repo.get_article_by_link("https://example.com/other") is None
        assert article_repo.link_exists("https://example.com/article1")
        assert not article_repo.link_exists("https://example.com/other")

    def test_duplicate_link_rejected(self, article_repo, sample_article):
        article_repo.create_article(sample_article)
        duplicate = Article(title="Other title", link=sample_article.link)

        with pytest.raises(DuplicateArticleError) as exc_info:
            article_repo.create_article(duplicate)

        assert exc_info.value.link == sample_article.link
        assert article_repo.get_article_count() == 1

    def test_update_article(self, article_repo, sample_article):
        article_repo.create_article(sample_article)
        processed_at = datetime.now(timezone.utc)

        updated = article_repo.update_article(
            sample_article.id,
            status=ArticleStatus.PROCESSED,
            zen_compliant=True,
            processed_at=processed_at,
        )

        assert updated.status == ArticleStatus.PROCESSED
        assert updated.zen_compliant is True
        assert updated.processed_at == processed_at
        assert updated.title == sample_article.title

    def test_update_can_clear_fields(self, article_repo, sample_article):
        article_repo.create_article(sample_article)
        article_repo.update_article(sample_article.id, error_message="failed")

        updated = article_repo.update_article(sample_article.id, error_message=None)

        assert updated.error_message is None

    def test_update_missing_article(self, article_repo):
        with pytest.raises(ArticleNotFoundError) as exc_info:
            article_repo.update_article("missing", status=ArticleStatus.PROCESSING)

        assert exc_info.value.article_id == "missing"

    def test_update_unknown_field(self, article_repo, sample_article):
        article_repo.create_article(sample_article)

        with pytest.raises(DatabaseError):
            article_repo.update_article(sample_article.id, link="https://example.com/new")

    def test_get_articles_newest_first(self, article_repo):
        now = datetime.now(timezone.utc)
        for offset in (2, 0, 1):
            article_repo.create_article(Article(
                title=f"Article {offset}",
                link=f"https://example.com/{offset}",
                created_at=now - timedelta(minutes=offset),
            ))

        articles = article_repo.get_articles()

        assert [a.title for a in articles] == ["Article 0", "Article 1", "Article 2"]
        assert [a.title for a in article_repo.get_articles(limit=2)] == ["Article 0", "Article 1"]

    def test_get_published_articles(self, article_repo):
        article_repo.create_article(Article(
            title="Published", link="https://example.com/p",
            status=ArticleStatus.PROCESSED, zen_compliant=True,
        ))
        article_repo.create_article(Article(
            title="Rejected", link="https://example.com/r",
            status=ArticleStatus.PROCESSED, zen_compliant=False,
        ))
        article_repo.create_article(Article(title="Pending", link="https://example.com/q"))

        published = article_repo.get_published_articles()

        assert [a.title for a in published] == ["Published"]

    def test_count_by_status(self, article_repo):
        article_repo.create_article(Article(title="A", link="https://example.com/a"))
        article_repo.create_article(Article(
            title="B", link="https://example.com/b", status=ArticleStatus.ERROR
        ))
        article_repo.create_article(Article(title="C", link="https://example.com/c"))

        assert article_repo.count_by_status() == {"pending": 2, "error": 1}
        assert article_repo.get_article_count() == 3


class TestRssConfigRepository:
    """Test suite for RssConfigRepository."""

    @pytest.fixture
    def config_repo(self, db_connection):
        return RssConfigRepository(db_connection)

    @pytest.fixture
    def sample_config(self):
        return RssConfig(
            source_url="https://example.com/feed.xml",
            title="Output",
            description="Output description",
            site_link="https://example.com",
        )

    def test_no_config(self, config_repo):
        assert config_repo.get_rss_config() is None
        assert config_repo.get_all_configs() == []

    def test_create_and_get(self, config_repo, sample_config):
        config_repo.create_rss_config(sample_config)

        config = config_repo.get_rss_config()

        assert config.id == sample_config.id
        assert config.language == "ru"
        assert config.check_interval == 30
        assert config.is_active is True
        assert config.last_checked is None

    def test_first_created_config_used(self, config_repo, sample_config):
        config_repo.create_rss_config(sample_config)
        config_repo.create_rss_config(RssConfig(
            source_url="https://second.example.com/feed",
            title="Second",
            description="",
            site_link="https://second.example.com",
            created_at=sample_config.created_at + timedelta(seconds=1),
        ))

        assert config_repo.get_rss_config().id == sample_config.id
        assert len(config_repo.get_all_configs()) == 2

    def test_update(self, config_repo, sample_config):
        config_repo.create_rss_config(sample_config)
        checked = datetime.now(timezone.utc)

        updated = config_repo.update_rss_config(
            sample_config.id, title="New title", last_checked=checked, is_active=False
        )
        stored = config_repo.get_rss_config()

        assert updated.title == "New title"
        assert stored.title == "New title"
        assert stored.last_checked == checked
        assert stored.is_active is False
        assert stored.source_url == sample_config.source_url

    def test_update_missing(self, config_repo):
        with pytest.raises(RssConfigNotFoundError):
            config_repo.update_rss_config("missing", title="x")

    def test_update_invalid_value_not_written(self, config_repo, sample_config):
        config_repo.create_rss_config(sample_config)

        with pytest.raises(ValidationError):
            config_repo.update_rss_config(sample_config.id, check_interval=0)
        with pytest.raises(ValidationError):
            config_repo.update_rss_config(sample_config.id, source_url="ftp://example.com/feed")

        assert config_repo.get_rss_config().check_interval == 30

    def test_update_unknown_field(self, config_repo, sample_config):
        config_repo.create_rss_config(sample_config)

        with pytest.raises(DatabaseError):
            config_repo.update_rss_config(sample_config.id, id="other")
