"""
Zen Bridge Database Schema
==========================

Two tables:

- ``articles``: one row per source item. ``link`` is UNIQUE, which is what
  makes re-fetching a feed idempotent. ``category`` and ``images`` hold JSON
  arrays.
- ``rss_config``: the source feed plus the output channel metadata.

All statements use IF NOT EXISTS, so ``create_tables`` can run on every start.
"""

import sqlite3
import logging
from pathlib import Path
from typing import Dict

logger = logging.getLogger(__name__)

TABLES: Dict[str, str] = {
    "articles": """
        CREATE TABLE IF NOT EXISTS articles (
            id TEXT PRIMARY KEY,
            title TEXT NOT NULL,
            link TEXT NOT NULL UNIQUE,
            author TEXT NOT NULL DEFAULT 'Unknown',
            pub_date TIMESTAMP NOT NULL,
            description TEXT NOT NULL DEFAULT '',
            content TEXT NOT NULL DEFAULT '',
            category TEXT NOT NULL DEFAULT '[]',
            images TEXT NOT NULL DEFAULT '[]',
            status TEXT NOT NULL DEFAULT 'pending'
                CHECK (status IN ('pending', 'processing', 'processed', 'error')),
            error_message TEXT,
            zen_compliant BOOLEAN NOT NULL DEFAULT 0,
            created_at TIMESTAMP NOT NULL,
            processed_at TIMESTAMP
        )
    """,
    "rss_config": """
        CREATE TABLE IF NOT EXISTS rss_config (
            id TEXT PRIMARY KEY,
            source_url TEXT NOT NULL,
            title TEXT NOT NULL,
            description TEXT NOT NULL,
            site_link TEXT NOT NULL,
            language TEXT NOT NULL DEFAULT 'ru',
            check_interval INTEGER NOT NULL DEFAULT 30 CHECK (check_interval > 0),
            is_active BOOLEAN NOT NULL DEFAULT 1,
            last_checked TIMESTAMP,
            created_at TIMESTAMP NOT NULL
        )
    """,
}

INDEXES = (
    # published feed: processed + compliant, newest first
    "CREATE INDEX IF NOT EXISTS idx_articles_status ON articles(status, zen_compliant)",
    "CREATE INDEX IF NOT EXISTS idx_articles_created ON articles(created_at)",
    "CREATE INDEX IF NOT EXISTS idx_rss_config_created ON rss_config(created_at)",
)


class DatabaseSchema:
    """Creates and checks the tables of one SQLite file."""

    def __init__(self, db_path: str = "data/zenbridge.db"):
        self.db_path = Path(db_path)
        self.db_path.parent.mkdir(parents=True, exist_ok=True)

    def get_connection(self) -> sqlite3.Connection:
        """Unpooled connection with ``sqlite3.Row`` rows."""
        conn = sqlite3.connect(self.db_path)
        conn.row_factory = sqlite3.Row
        return conn

    def create_tables(self) -> None:
        with self.get_connection() as conn:
            for ddl in TABLES.values():
                conn.execute(ddl)
            for ddl in INDEXES:
                conn.execute(ddl)
        logger.info(f"Schema ready in {self.db_path}")

    def verify_schema(self) -> bool:
        """True when every table in ``TABLES`` exists."""
        try:
            with self.get_connection() as conn:
                rows = conn.execute(
                    "SELECT name FROM sqlite_master WHERE type = 'table'"
                ).fetchall()
        except sqlite3.Error as e:
            logger.error(f"Cannot read schema of {self.db_path}: {e}")
            return False

        missing = set(TABLES) - {row["name"] for row in rows}
        if missing:
            logger.warning(f"Missing tables in {self.db_path}: {', '.join(sorted(missing))}")
            return False
        return True
