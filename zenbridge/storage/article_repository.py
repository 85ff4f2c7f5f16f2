"""
Article Repository
==================

Repository pattern implementation for Article CRUD operations with proper
error handling and data access abstraction.
"""

import json
import sqlite3
from datetime import datetime
from enum import Enum
from typing import List, Optional, Dict, Any

from ..database.models import Article, ArticleStatus
from ..database.connection import DatabaseConnection
from ..utils.logging import get_logger_for_component
from ..utils.exceptions import (
    DatabaseError,
    ArticleNotFoundError,
    DuplicateArticleError,
    ErrorCode,
)


UPDATABLE_FIELDS = frozenset({
    'title', 'author', 'pub_date', 'description', 'content', 'category',
    'images', 'status', 'error_message', 'zen_compliant', 'processed_at',
})


def to_db_value(value: Any) -> Any:
    """Convert a model value into its SQLite representation."""
    if isinstance(value, datetime):
        return value.isoformat()
    if isinstance(value, Enum):
        return value.value
    if isinstance(value, (list, tuple)):
        return json.dumps(list(value), ensure_ascii=False)
    return value


class ArticleRepository:
    """Repository for Article CRUD operations with database abstraction."""

    def __init__(self, db_connection: DatabaseConnection):
        """Initialize article repository.

        Args:
            db_connection: Database connection manager
        """
        self.db = db_connection
        self.logger = get_logger_for_component("article_repository")

    def create_article(self, article: Article) -> Article:
        """Persist a new article.

        Args:
            article: Article model to create

        Returns:
            The stored article

        Raises:
            DuplicateArticleError: If an article with the same link exists
            DatabaseError: If creation fails
        """
        try:
            with self.db.transaction() as conn:
                conn.execute(
                    """
                    INSERT INTO articles (id, title, link, author, pub_date, description,
                                          content, category, images, status, error_message,
                                          zen_compliant, created_at, processed_at)
                    VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
                    """,
                    tuple(to_db_value(v) for v in (
                        article.id, article.title, article.link, article.author,
                        article.pub_date, article.description, article.content,
                        article.category, article.images, article.status,
                        article.error_message, article.zen_compliant,
                        article.created_at, article.processed_at,
                    ))
                )

            self.logger.debug(f"Created article: {article.id}")
            return article

        except sqlite3.IntegrityError as e:
            if "articles.link" in str(e):
                raise DuplicateArticleError(article.link) from e
            raise DatabaseError(
                f"Failed to create article: {e}",
                error_code=ErrorCode.DATABASE_CONSTRAINT
            ) from e
        except sqlite3.Error as e:
            raise DatabaseError(
                f"Failed to create article: {e}",
                error_code=ErrorCode.DATABASE_ERROR
            ) from e

    def get_article(self, article_id: str) -> Optional[Article]:
        """Get article by ID, or None if not found."""
        row = self._fetch_one("SELECT * FROM articles WHERE id = ?", (article_id,))
        return Article.from_db_row(row) if row else None

    def get_article_by_link(self, link: str) -> Optional[Article]:
        """Get article by its source link, or None if not found."""
        row = self._fetch_one("SELECT * FROM articles WHERE link = ?", (link,))
        return Article.from_db_row(row) if row else None

    def link_exists(self, link: str) -> bool:
        row = self._fetch_one("SELECT 1 FROM articles WHERE link = ?", (link,))
        return row is not None

    def update_article(self, article_id: str, **updates: Any) -> Article:
        """Apply a partial update to one article.

        The existence check and the write share one IMMEDIATE transaction.

        Args:
            article_id: Article ID to update
            **updates: Field values to set

        Returns:
            The article after the update

        Raises:
            ArticleNotFoundError: If the article does not exist
            DatabaseError: If an unknown field is given or the update fails
        """
        unknown = set(updates) - UPDATABLE_FIELDS
        if unknown:
            raise DatabaseError(
                f"Cannot update article fields: {', '.join(sorted(unknown))}",
                error_code=ErrorCode.DATABASE_CONSTRAINT,
                recoverable=False,
            )

        try:
            with self.db.transaction() as conn:
                if updates:
                    set_clauses = ", ".join(f"{field} = ?" for field in updates)
                    values = [to_db_value(v) for v in updates.values()]
                    values.append(article_id)
                    cursor = conn.execute(
                        f"UPDATE articles SET {set_clauses} WHERE id = ?",
                        values
                    )
                    if cursor.rowcount == 0:
                        raise ArticleNotFoundError(article_id)

                row = conn.execute(
                    "SELECT * FROM articles WHERE id = ?", (article_id,)
                ).fetchone()
                if row is None:
                    raise ArticleNotFoundError(article_id)

            self.logger.debug(
                f"Updated article {article_id}: {', '.join(updates) or 'no fields'}"
            )
            return Article.from_db_row(row)

        except sqlite3.Error as e:
            raise DatabaseError(
                f"Failed to update article {article_id}: {e}",
                error_code=ErrorCode.DATABASE_TRANSACTION
            ) from e

    def get_articles(self, limit: Optional[int] = None) -> List[Article]:
        """Get all articles, most recently created first."""
        query = "SELECT * FROM articles ORDER BY created_at DESC, rowid DESC"
        params: tuple = ()
        if limit is not None:
            query += " LIMIT ?"
            params = (limit,)
        return [Article.from_db_row(row) for row in self._fetch_all(query, params)]

    def get_published_articles(self) -> List[Article]:
        """Get processed, compliant articles, most recently created first."""
        rows = self._fetch_all(
            """
            SELECT * FROM articles
            WHERE status = ? AND zen_compliant = 1
            ORDER BY created_at DESC, rowid DESC
            """,
            (ArticleStatus.PROCESSED.value,)
        )
        return [Article.from_db_row(row) for row in rows]

    def count_by_status(self) -> Dict[str, int]:
        """Get article count per status."""
        rows = self._fetch_all(
            "SELECT status, COUNT(*) AS count FROM articles GROUP BY status"
        )
        return {row['status']: row['count'] for row in rows}

    def get_article_count(self) -> int:
        row = self._fetch_one("SELECT COUNT(*) FROM articles")
        return row[0] if row else 0

    def _fetch_one(self, query: str, params: tuple = ()) -> Optional[sqlite3.Row]:
        try:
            return self.db.execute_one(query, params)
        except sqlite3.Error as e:
            raise DatabaseError(
                f"Article query failed: {e}",
                query=query,
                error_code=ErrorCode.DATABASE_ERROR
            ) from e

    def _fetch_all(self, query: str, params: tuple = ()) -> List[sqlite3.Row]:
        try:
            return self.db.execute_query(query, params)
        except sqlite3.Error as e:
            raise DatabaseError(
                f"Article query failed: {e}",
                query=query,
                error_code=ErrorCode.DATABASE_ERROR
            ) from e
