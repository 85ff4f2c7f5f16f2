"""
Store
=====

Facade over the article and configuration repositories. One instance is
built by the process entry point and handed to the pipeline and generator.
"""

from typing import List, Optional, Any

from ..config.settings import ZenBridgeSettings
from ..database.connection import DatabaseConnection
from ..database.schema import DatabaseSchema
from ..database.models import Article, RssConfig
from .article_repository import ArticleRepository
from .config_repository import RssConfigRepository


class Store:
    """Keyed article and configuration storage backed by SQLite."""

    def __init__(self, db_connection: DatabaseConnection):
        self.db = db_connection
        self.articles = ArticleRepository(db_connection)
        self.config = RssConfigRepository(db_connection)

    @classmethod
    def open(cls, settings: ZenBridgeSettings) -> "Store":
        """Create the schema if needed and connect."""
        DatabaseSchema(settings.database.path).create_tables()
        return cls(DatabaseConnection(settings.database.path, settings.database.pool_size))

    def close(self) -> None:
        self.db.close_all_connections()

    def __enter__(self) -> "Store":
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        self.close()

    # Articles

    def create_article(self, article: Article) -> Article:
        return self.articles.create_article(article)

    def get_article(self, article_id: str) -> Optional[Article]:
        return self.articles.get_article(article_id)

    def get_article_by_link(self, link: str) -> Optional[Article]:
        return self.articles.get_article_by_link(link)

    def update_article(self, article_id: str, **updates: Any) -> Article:
        return self.articles.update_article(article_id, **updates)

    def get_articles(self, limit: Optional[int] = None) -> List[Article]:
        return self.articles.get_articles(limit)

    # Configuration

    def get_rss_config(self) -> Optional[RssConfig]:
        return self.config.get_rss_config()

    def create_rss_config(self, config: RssConfig) -> RssConfig:
        return self.config.create_rss_config(config)

    def update_rss_config(self, config_id: str, **updates: Any) -> RssConfig:
        return self.config.update_rss_config(config_id, **updates)
