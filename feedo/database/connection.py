"""
Feedo Database Connection Management
====================================

SQLite connection pool shared by every repository. A connection is checked
out for the duration of one store operation and returned immediately, so no
connection is ever held across a network call. The pool has an explicit
lifecycle: it is opened by the service at start-up and closed at shutdown.
"""

import sqlite3
import threading
import logging
import time
from contextlib import contextmanager
from pathlib import Path
from typing import Optional, Generator, Any, Dict
from queue import Queue, Empty, Full

from ..utils.exceptions import DatabaseError, ErrorCode

logger = logging.getLogger(__name__)

TABLES = ("chats", "feeds", "feeds_items", "feeds_subscribers")


class DatabaseConnection:
    """Thread-safe SQLite database connection manager with pooling."""

    def __init__(self, db_path: str = "data/feedo.db", pool_size: int = 5, acquire_timeout: float = 10.0):
        """Initialize database connection manager.

        Args:
            db_path: Path to SQLite database file
            pool_size: Maximum number of idle connections kept in the pool
            acquire_timeout: Seconds to wait for a pooled connection before
                opening an extra one
        """
        self.db_path = Path(db_path)
        self.pool_size = pool_size
        self.pool: Queue = Queue(maxsize=pool_size)
        self.lock = threading.Lock()
        self._total_connections = 0
        self.acquire_timeout = acquire_timeout
        self._closed = False

        self.db_path.parent.mkdir(parents=True, exist_ok=True)
        self._initialize_pool()

    def _initialize_pool(self) -> None:
        for _ in range(self.pool_size):
            self.pool.put(self._create_connection())

    def _create_connection(self) -> sqlite3.Connection:
        conn = sqlite3.connect(
            self.db_path,
            check_same_thread=False,
            timeout=30.0
        )

        conn.execute("PRAGMA foreign_keys = ON")
        conn.execute("PRAGMA journal_mode = WAL")
        conn.execute("PRAGMA synchronous = NORMAL")
        conn.execute("PRAGMA temp_store = MEMORY")

        conn.row_factory = sqlite3.Row

        with self.lock:
            self._total_connections += 1

        logger.debug(f"Created database connection #{self._total_connections}")
        return conn

    @property
    def is_closed(self) -> bool:
        return self._closed

    def _acquire(self) -> sqlite3.Connection:
        started = time.monotonic()
        try:
            conn = self.pool.get(timeout=self.acquire_timeout)
        except Empty:
            logger.warning(f"No pooled connection after {self.acquire_timeout}s, opening an extra one")
            return self._create_connection()

        waited = time.monotonic() - started
        if waited > 1.0:
            logger.warning(f"Waited {waited:.2f}s for a pooled connection")
        return conn

    @contextmanager
    def get_connection(self) -> Generator[sqlite3.Connection, None, None]:
        """Check a connection out of the pool and return it afterwards.

        Usage:
            with db.get_connection() as conn:
                rows = conn.execute("SELECT * FROM feeds").fetchall()

        Raises:
            DatabaseError: If the pool has been closed
        """
        if self._closed:
            raise DatabaseError(
                "Connection pool is closed",
                error_code=ErrorCode.DATABASE_CONNECTION,
                recoverable=False
            )

        conn = self._acquire()
        try:
            yield conn
        except sqlite3.Error as e:
            logger.error(f"SQLite error, rolling back: {e}")
            raise
        finally:
            self._release(conn)

    def _release(self, conn: sqlite3.Connection) -> None:
        try:
            if conn.in_transaction:
                conn.rollback()
        except sqlite3.Error as e:
            logger.error(f"Rollback on release failed, discarding connection: {e}")
            self._discard(conn)
            return

        if self._closed:
            conn.close()
            return

        try:
            self.pool.put_nowait(conn)
        except Full:
            self._discard(conn)

    def _discard(self, conn: sqlite3.Connection) -> None:
        conn.close()
        with self.lock:
            self._total_connections -= 1

    @contextmanager
    def transaction(self) -> Generator[sqlite3.Connection, None, None]:
        """Run several statements atomically.

        Takes the write lock up front (``BEGIN IMMEDIATE``), commits when the
        block completes and rolls back when it raises.
        """
        with self.get_connection() as conn:
            conn.execute("BEGIN IMMEDIATE")
            try:
                yield conn
            except BaseException:
                conn.rollback()
                raise
            conn.commit()

    def get_database_info(self) -> Dict[str, Any]:
        """Size of the database file and row counts of the Feedo tables."""
        with self.get_connection() as conn:
            pages, = conn.execute("PRAGMA page_count").fetchone()
            page_size, = conn.execute("PRAGMA page_size").fetchone()
            existing = {
                row[0] for row in conn.execute("SELECT name FROM sqlite_master WHERE type = 'table'")
            }
            counts = {
                table: conn.execute(f"SELECT COUNT(*) FROM {table}").fetchone()[0] if table in existing else 0
                for table in TABLES
            }

        return {
            'database_size_mb': pages * page_size / (1024 * 1024),
            'page_count': pages,
            'page_size': page_size,
            'table_counts': counts,
            'idle_connections': self.pool.qsize(),
            'total_connections': self._total_connections,
        }

    def close_all_connections(self) -> None:
        """Close the pool. Connections checked out right now close on return."""
        if not self._closed:
            logger.info(f"Closing database pool for {self.db_path}")
        self._closed = True

        while not self.pool.empty():
            try:
                self.pool.get_nowait().close()
            except Empty:
                break

        with self.lock:
            self._total_connections = 0


_db_manager: Optional[DatabaseConnection] = None


def get_db_manager(db_path: str = "data/feedo.db", pool_size: int = 5) -> DatabaseConnection:
    """Get the process-wide database manager, reopening it if it was closed."""
    global _db_manager

    if _db_manager is None or _db_manager.is_closed:
        _db_manager = DatabaseConnection(db_path, pool_size)

    return _db_manager
