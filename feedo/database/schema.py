"""
Feedo Database Schema
=====================

SQLite schema for the feed notification store:
- chats: Telegram chats that have issued a command
- feeds: registered syndication sources, unique by link
- feeds_items: stored items, unique by (feed_id, link), with a monotonic id
- feeds_subscribers: per-chat subscription state and delivery cursor

``feeds_items.id`` is an AUTOINCREMENT key so ids are never reused and an
item inserted later always gets a larger id than every earlier item. The
delivery cursor in ``feeds_subscribers.last_notification_item_id`` relies on
that ordering.
"""

import sqlite3
import logging
from contextlib import closing
from pathlib import Path

logger = logging.getLogger(__name__)

EXPECTED_TABLES = {"chats", "feeds", "feeds_items", "feeds_subscribers"}


class DatabaseSchema:
    """Database schema manager for the Feedo SQLite database."""

    def __init__(self, db_path: str = "data/feedo.db"):
        self.db_path = Path(db_path)
        self.db_path.parent.mkdir(parents=True, exist_ok=True)

    def create_tables(self) -> None:
        """Create all tables and indexes. Safe to run on an existing database."""
        with closing(sqlite3.connect(self.db_path)) as conn:
            conn.execute("PRAGMA foreign_keys = ON")

            self._create_chats_table(conn)
            self._create_feeds_table(conn)
            self._create_items_table(conn)
            self._create_subscribers_table(conn)
            self._create_indexes(conn)

            conn.commit()
            logger.info("Database schema created successfully")

    def _create_chats_table(self, conn: sqlite3.Connection) -> None:
        conn.execute(
            """
            CREATE TABLE IF NOT EXISTS chats (
                id INTEGER PRIMARY KEY AUTOINCREMENT,
                chat_id INTEGER UNIQUE NOT NULL,
                title TEXT,
                type TEXT NOT NULL CHECK (type IN ('private', 'group', 'supergroup', 'channel')),
                joined BOOLEAN DEFAULT TRUE,
                created_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP,
                updated_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP
            )
        """
        )

    def _create_feeds_table(self, conn: sqlite3.Connection) -> None:
        conn.execute(
            """
            CREATE TABLE IF NOT EXISTS feeds (
                id INTEGER PRIMARY KEY AUTOINCREMENT,
                link TEXT UNIQUE NOT NULL,
                title TEXT NOT NULL,
                description TEXT,
                image TEXT,
                created_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP
            )
        """
        )

    def _create_items_table(self, conn: sqlite3.Connection) -> None:
        conn.execute(
            """
            CREATE TABLE IF NOT EXISTS feeds_items (
                id INTEGER PRIMARY KEY AUTOINCREMENT,
                feed_id INTEGER NOT NULL,
                link TEXT NOT NULL,
                title TEXT NOT NULL DEFAULT '',
                description TEXT NOT NULL DEFAULT '',
                publish_date INTEGER NOT NULL,
                created_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP,
                updated_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP,
                FOREIGN KEY (feed_id) REFERENCES feeds(id) ON DELETE CASCADE,
                UNIQUE(feed_id, link)
            )
        """
        )

    def _create_subscribers_table(self, conn: sqlite3.Connection) -> None:
        conn.execute(
            """
            CREATE TABLE IF NOT EXISTS feeds_subscribers (
                id INTEGER PRIMARY KEY AUTOINCREMENT,
                chat_id INTEGER NOT NULL,
                feed_id INTEGER NOT NULL,
                status BOOLEAN NOT NULL DEFAULT TRUE,
                last_notification_item_id INTEGER,
                last_notification_date INTEGER,
                add_date INTEGER NOT NULL,
                update_date INTEGER NOT NULL,
                FOREIGN KEY (chat_id) REFERENCES chats(id) ON DELETE CASCADE,
                FOREIGN KEY (feed_id) REFERENCES feeds(id) ON DELETE CASCADE,
                UNIQUE(chat_id, feed_id)
            )
        """
        )

    def _create_indexes(self, conn: sqlite3.Connection) -> None:
        indexes = [
            "CREATE INDEX IF NOT EXISTS idx_items_feed_publish ON feeds_items(feed_id, publish_date)",
            "CREATE INDEX IF NOT EXISTS idx_items_publish ON feeds_items(publish_date)",
            "CREATE INDEX IF NOT EXISTS idx_subscribers_feed_status ON feeds_subscribers(feed_id, status)",
            "CREATE INDEX IF NOT EXISTS idx_subscribers_chat_status ON feeds_subscribers(chat_id, status)",
        ]

        for index_sql in indexes:
            conn.execute(index_sql)

    def verify_schema(self) -> bool:
        """Check that every expected table exists and foreign keys hold."""
        try:
            with closing(sqlite3.connect(self.db_path)) as conn:
                cursor = conn.execute(
                    """
                    SELECT name FROM sqlite_master
                    WHERE type='table' AND name NOT LIKE 'sqlite_%'
                """
                )
                tables = {row[0] for row in cursor.fetchall()}

                missing = EXPECTED_TABLES - tables
                if missing:
                    logger.error(f"Missing tables: {sorted(missing)}")
                    return False

                violations = conn.execute("PRAGMA foreign_key_check").fetchall()
                if violations:
                    logger.error(f"Foreign key violations found: {len(violations)}")
                    return False

                logger.info("Database schema verification passed")
                return True

        except sqlite3.Error as e:
            logger.error(f"Schema verification failed: {e}")
            return False
