"""
RSS Config Repository
=====================

Repository for the source/output feed configuration. Only the first created
configuration is used by the pipeline and the feed generator.
"""

import sqlite3
from typing import List, Optional, Any

from ..database.connection import DatabaseConnection
from ..database.models import RssConfig
from ..utils.logging import get_logger_for_component
from ..utils.exceptions import DatabaseError, RssConfigNotFoundError, ErrorCode
from .article_repository import to_db_value


UPDATABLE_FIELDS = frozenset({
    'source_url', 'title', 'description', 'site_link', 'language',
    'check_interval', 'is_active', 'last_checked',
})


class RssConfigRepository:
    """Repository for managing the RSS configuration."""

    def __init__(self, db_connection: DatabaseConnection):
        self.db = db_connection
        self.logger = get_logger_for_component("config_repository")

    def create_rss_config(self, config: RssConfig) -> RssConfig:
        """Create a new RSS configuration.

        Raises:
            DatabaseError: If database operation fails
        """
        try:
            with self.db.transaction() as conn:
                conn.execute(
                    """
                    INSERT INTO rss_config (
                        id, source_url, title, description, site_link, language,
                        check_interval, is_active, last_checked, created_at
                    ) VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
                """,
                    tuple(to_db_value(v) for v in (
                        config.id, config.source_url, config.title,
                        config.description, config.site_link, config.language,
                        config.check_interval, config.is_active,
                        config.last_checked, config.created_at,
                    )),
                )

            self.logger.info(f"Created RSS config {config.id}: {config.source_url}")
            return config

        except sqlite3.Error as e:
            raise DatabaseError(
                f"Failed to create RSS config: {e}", error_code=ErrorCode.DATABASE_ERROR
            ) from e

    def get_rss_config(self) -> Optional[RssConfig]:
        """Get the configuration in use (the first one created)."""
        try:
            row = self.db.execute_one(
                "SELECT * FROM rss_config ORDER BY created_at ASC, rowid ASC LIMIT 1"
            )
        except sqlite3.Error as e:
            raise DatabaseError(
                f"Failed to load RSS config: {e}", error_code=ErrorCode.DATABASE_ERROR
            ) from e

        return RssConfig.from_db_row(row) if row else None

    def get_all_configs(self) -> List[RssConfig]:
        try:
            rows = self.db.execute_query(
                "SELECT * FROM rss_config ORDER BY created_at ASC, rowid ASC"
            )
        except sqlite3.Error as e:
            raise DatabaseError(
                f"Failed to list RSS configs: {e}", error_code=ErrorCode.DATABASE_ERROR
            ) from e

        return [RssConfig.from_db_row(row) for row in rows]

    def update_rss_config(self, config_id: str, **updates: Any) -> RssConfig:
        """Apply a partial update to one configuration.

        Raises:
            RssConfigNotFoundError: If the configuration does not exist
            DatabaseError: If an unknown field is given or the update fails
        """
        unknown = set(updates) - UPDATABLE_FIELDS
        if unknown:
            raise DatabaseError(
                f"Cannot update RSS config fields: {', '.join(sorted(unknown))}",
                error_code=ErrorCode.DATABASE_CONSTRAINT,
                recoverable=False,
            )

        try:
            with self.db.transaction() as conn:
                row = conn.execute(
                    "SELECT * FROM rss_config WHERE id = ?", (config_id,)
                ).fetchone()
                if row is None:
                    raise RssConfigNotFoundError(config_id)

                # Validate the merged result before writing
                merged = RssConfig(**{**dict(row), **updates})

                if updates:
                    set_clauses = ", ".join(f"{field} = ?" for field in updates)
                    values = [to_db_value(getattr(merged, field)) for field in updates]
                    values.append(config_id)
                    conn.execute(
                        f"UPDATE rss_config SET {set_clauses} WHERE id = ?", values
                    )

            self.logger.debug(f"Updated RSS config {config_id}: {', '.join(updates)}")
            return merged

        except sqlite3.Error as e:
            raise DatabaseError(
                f"Failed to update RSS config {config_id}: {e}",
                error_code=ErrorCode.DATABASE_TRANSACTION
            ) from e
