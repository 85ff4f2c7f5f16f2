"""
SQLite Connection Pool
======================

Pooled SQLite connections for the article store. Writes go through
``transaction()``, which takes the database write lock before the first
statement, so two partial updates of one article never interleave.
"""

import sqlite3
import threading
import logging
from contextlib import contextmanager
from pathlib import Path
from typing import Optional, Iterator, Any, List, Dict
from queue import LifoQueue, Empty, Full

logger = logging.getLogger(__name__)

CONNECTION_PRAGMAS = (
    "PRAGMA journal_mode = WAL",  # feed generation reads while a cycle writes
    "PRAGMA synchronous = NORMAL",
)

COUNTED_TABLES = ("articles", "rss_config")


class DatabaseConnection:
    """Thread-safe pool of connections to one SQLite file.

    Connections are opened lazily up to ``pool_size``; callers beyond that
    wait for an idle one and, after ``checkout_timeout``, get an extra
    connection that is closed again on check-in.
    """

    def __init__(
        self,
        db_path: str = "data/zenbridge.db",
        pool_size: int = 5,
        checkout_timeout: float = 10.0,
    ):
        self.db_path = Path(db_path)
        self.pool_size = pool_size
        self.checkout_timeout = checkout_timeout

        self._idle: LifoQueue = LifoQueue(maxsize=pool_size)
        self._open_count = 0
        self._count_lock = threading.Lock()

        self.db_path.parent.mkdir(parents=True, exist_ok=True)

    def _open(self) -> sqlite3.Connection:
        conn = sqlite3.connect(self.db_path, check_same_thread=False, timeout=30.0)
        for pragma in CONNECTION_PRAGMAS:
            conn.execute(pragma)
        conn.row_factory = sqlite3.Row

        with self._count_lock:
            self._open_count += 1
        logger.debug(f"Opened SQLite connection to {self.db_path} ({self._open_count} open)")
        return conn

    def _checkout(self) -> sqlite3.Connection:
        try:
            return self._idle.get_nowait()
        except Empty:
            pass

        with self._count_lock:
            below_limit = self._open_count < self.pool_size
        if below_limit:
            return self._open()

        try:
            return self._idle.get(timeout=self.checkout_timeout)
        except Empty:
            logger.warning(
                f"No idle SQLite connection after {self.checkout_timeout}s, opening an extra one"
            )
            return self._open()

    def _checkin(self, conn: sqlite3.Connection) -> None:
        try:
            self._idle.put_nowait(conn)
        except Full:
            conn.close()
            with self._count_lock:
                self._open_count -= 1

    @contextmanager
    def get_connection(self) -> Iterator[sqlite3.Connection]:
        """Borrow a pooled connection for the duration of the block."""
        conn = self._checkout()
        try:
            yield conn
        except sqlite3.Error as e:
            logger.error(f"SQLite error on {self.db_path}: {e}")
            conn.rollback()
            raise
        finally:
            self._checkin(conn)

    @contextmanager
    def transaction(self) -> Iterator[sqlite3.Connection]:
        """Run the block as one write transaction.

        BEGIN IMMEDIATE takes the write lock up front; the block is committed
        on success and rolled back on any exception.
        """
        with self.get_connection() as conn:
            conn.execute("BEGIN IMMEDIATE")
            try:
                yield conn
            except BaseException:
                conn.rollback()
                raise
            conn.commit()

    def execute_query(self, query: str, params: tuple = ()) -> List[sqlite3.Row]:
        with self.get_connection() as conn:
            return conn.execute(query, params).fetchall()

    def execute_one(self, query: str, params: tuple = ()) -> Optional[sqlite3.Row]:
        with self.get_connection() as conn:
            return conn.execute(query, params).fetchone()

    def get_database_info(self) -> Dict[str, Any]:
        """File size, row counts and pool usage."""
        with self.get_connection() as conn:
            page_count = conn.execute("PRAGMA page_count").fetchone()[0]
            page_size = conn.execute("PRAGMA page_size").fetchone()[0]
            table_counts = {
                table: conn.execute(f"SELECT COUNT(*) FROM {table}").fetchone()[0]
                for table in COUNTED_TABLES
            }

        return {
            "database_size_mb": page_count * page_size / (1024 * 1024),
            "table_counts": table_counts,
            "open_connections": self._open_count,
            "idle_connections": self._idle.qsize(),
        }

    def close_all_connections(self) -> None:
        """Close every idle connection; borrowed ones close on check-in."""
        closed = 0
        while True:
            try:
                conn = self._idle.get_nowait()
            except Empty:
                break
            conn.close()
            closed += 1

        with self._count_lock:
            self._open_count -= closed
        logger.debug(f"Closed {closed} SQLite connections to {self.db_path}")
