"""
Item Repository
===============

Storage for feed items. ``(feed_id, link)`` identifies an item; upserting
an existing key rewrites its text and publish date but never its id, so the
ids handed out by the store stay monotonic in insertion order.
"""

import sqlite3
from typing import List, Optional, Tuple

from ..database.connection import DatabaseConnection
from ..database.models import FeedItem
from ..utils.logging import get_logger_for_component
from ..utils.exceptions import DatabaseError, ErrorCode


class ItemRepository:
    """Repository for FeedItem CRUD operations."""

    def __init__(self, db_connection: DatabaseConnection):
        self.db = db_connection
        self.logger = get_logger_for_component("item_repository")

    def upsert_item(
        self,
        feed_id: int,
        link: str,
        title: str,
        description: str,
        publish_date: int,
    ) -> Tuple[FeedItem, bool]:
        """Insert an item or update the one already stored under the same link.

        Args:
            feed_id: Owning feed
            link: Item URL, already normalized
            title: Decoded item title
            description: Decoded item body
            publish_date: Publication time in unix seconds

        Returns:
            Tuple of the stored item and whether it was newly created

        Raises:
            DatabaseError: If the write fails; nothing is written in that case
        """
        try:
            with self.db.transaction() as conn:
                row = conn.execute(
                    "SELECT id FROM feeds_items WHERE feed_id = ? AND link = ?",
                    (feed_id, link),
                ).fetchone()

                if row:
                    item_id = row["id"]
                    conn.execute(
                        """
                        UPDATE feeds_items
                        SET title = ?, description = ?, publish_date = ?,
                            updated_at = CURRENT_TIMESTAMP
                        WHERE id = ?
                    """,
                        (title, description, publish_date, item_id),
                    )
                    created = False
                else:
                    cursor = conn.execute(
                        """
                        INSERT INTO feeds_items (feed_id, link, title, description, publish_date)
                        VALUES (?, ?, ?, ?, ?)
                    """,
                        (feed_id, link, title, description, publish_date),
                    )
                    item_id = cursor.lastrowid
                    created = True

            item = FeedItem(
                id=item_id,
                feed_id=feed_id,
                link=link,
                title=title,
                description=description,
                publish_date=publish_date,
            )
            return item, created

        except sqlite3.Error as e:
            self.logger.error(f"Failed to upsert item {link} for feed {feed_id}: {e}")
            raise DatabaseError(
                f"Failed to upsert item: {e}",
                error_code=ErrorCode.DATABASE_ERROR,
                context={"feed_id": feed_id, "link": link},
            ) from e

    def list_recent_items_by_feed(self, feed_id: int, since: int) -> List[FeedItem]:
        """Get a feed's items published at or after ``since``.

        Args:
            feed_id: Feed to read
            since: Window start in unix seconds

        Returns:
            Items ordered by publish date, then id
        """
        try:
            with self.db.get_connection() as conn:
                rows = conn.execute(
                    """
                    SELECT * FROM feeds_items
                    WHERE feed_id = ? AND publish_date >= ?
                    ORDER BY publish_date ASC, id ASC
                """,
                    (feed_id, since),
                ).fetchall()

            return [self._row_to_item(row) for row in rows]

        except sqlite3.Error as e:
            self.logger.error(f"Failed to list recent items for feed {feed_id}: {e}")
            raise DatabaseError(
                f"Failed to list recent items: {e}",
                error_code=ErrorCode.DATABASE_ERROR,
                context={"feed_id": feed_id},
            ) from e

    def list_items_by_feed(self, feed_id: int, limit: Optional[int] = None) -> List[FeedItem]:
        """Get a feed's items, newest id first."""
        query = "SELECT * FROM feeds_items WHERE feed_id = ? ORDER BY id DESC"
        params: tuple = (feed_id,)
        if limit is not None:
            query += " LIMIT ?"
            params = (feed_id, limit)

        try:
            with self.db.get_connection() as conn:
                rows = conn.execute(query, params).fetchall()

            return [self._row_to_item(row) for row in rows]

        except sqlite3.Error as e:
            raise DatabaseError(
                f"Failed to list items for feed {feed_id}: {e}",
                error_code=ErrorCode.DATABASE_ERROR,
            ) from e

    def get_newest_item_id(self, feed_id: int) -> Optional[int]:
        """Highest item id stored for a feed, or None for an empty feed."""
        try:
            with self.db.get_connection() as conn:
                row = conn.execute(
                    "SELECT MAX(id) AS newest FROM feeds_items WHERE feed_id = ?",
                    (feed_id,),
                ).fetchone()

            return row["newest"] if row else None

        except sqlite3.Error as e:
            raise DatabaseError(
                f"Failed to get newest item for feed {feed_id}: {e}",
                error_code=ErrorCode.DATABASE_ERROR,
            ) from e

    def count_items(self, feed_id: int) -> int:
        try:
            with self.db.get_connection() as conn:
                row = conn.execute(
                    "SELECT COUNT(*) FROM feeds_items WHERE feed_id = ?", (feed_id,)
                ).fetchone()

            return row[0]

        except sqlite3.Error as e:
            raise DatabaseError(
                f"Failed to count items for feed {feed_id}: {e}",
                error_code=ErrorCode.DATABASE_ERROR,
            ) from e

    def _row_to_item(self, row) -> FeedItem:
        return FeedItem(
            id=row["id"],
            feed_id=row["feed_id"],
            link=row["link"],
            title=row["title"],
            description=row["description"],
            publish_date=row["publish_date"],
        )
