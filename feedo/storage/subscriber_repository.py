"""
Subscriber Repository
=====================

Per-chat subscription rows and their delivery cursor.

``last_notification_item_id`` only ever moves forward: every statement that
writes it keeps the larger of the stored and the offered value.
"""

import sqlite3
import time
from typing import List, Optional, Tuple

from ..database.connection import DatabaseConnection
from ..database.models import Feed, Subscriber
from ..utils.logging import get_logger_for_component
from ..utils.exceptions import DatabaseError, ErrorCode


class SubscriberRepository:
    """Repository for Subscriber rows."""

    def __init__(self, db_connection: DatabaseConnection):
        """Initialize subscriber repository.

        Args:
            db_connection: Database connection manager
        """
        self.db = db_connection
        self.logger = get_logger_for_component("subscriber_repository")

    def upsert_subscriber(
        self, chat_id: int, feed_id: int, last_item_id: Optional[int]
    ) -> Subscriber:
        """Create or reactivate the subscription of a chat to a feed.

        A reactivated subscription keeps its cursor unless ``last_item_id``
        is ahead of it, so nothing already delivered is sent again and items
        published while unsubscribed are not replayed.

        Args:
            chat_id: chats.id of the subscribing chat
            feed_id: Feed to subscribe to
            last_item_id: Newest item id of the feed at subscription time

        Returns:
            The stored subscriber
        """
        now = int(time.time())
        try:
            with self.db.transaction() as conn:
                conn.execute(
                    """
                    INSERT INTO feeds_subscribers (
                        chat_id, feed_id, status, last_notification_item_id,
                        add_date, update_date
                    ) VALUES (?, ?, 1, ?, ?, ?)
                    ON CONFLICT(chat_id, feed_id) DO UPDATE SET
                        status = 1,
                        last_notification_item_id = MAX(
                            COALESCE(feeds_subscribers.last_notification_item_id, 0),
                            COALESCE(excluded.last_notification_item_id, 0)
                        ),
                        add_date = excluded.add_date,
                        update_date = excluded.update_date
                """,
                    (chat_id, feed_id, last_item_id, now, now),
                )
                row = conn.execute(
                    "SELECT * FROM feeds_subscribers WHERE chat_id = ? AND feed_id = ?",
                    (chat_id, feed_id),
                ).fetchone()

            subscriber = self._row_to_subscriber(row)
            self.logger.info(
                f"Subscribed chat {chat_id} to feed {feed_id} at cursor {subscriber.cursor}"
            )
            return subscriber

        except sqlite3.Error as e:
            self.logger.error(f"Failed to upsert subscriber chat={chat_id} feed={feed_id}: {e}")
            raise DatabaseError(
                f"Failed to upsert subscriber: {e}",
                error_code=ErrorCode.DATABASE_ERROR,
                context={"chat_id": chat_id, "feed_id": feed_id},
            ) from e

    def list_active_subscribers(self, feed_id: int) -> List[Subscriber]:
        """Get the active subscribers of a feed."""
        try:
            with self.db.get_connection() as conn:
                rows = conn.execute(
                    """
                    SELECT * FROM feeds_subscribers
                    WHERE feed_id = ? AND status = 1
                    ORDER BY id
                """,
                    (feed_id,),
                ).fetchall()

            return [self._row_to_subscriber(row) for row in rows]

        except sqlite3.Error as e:
            self.logger.error(f"Failed to list subscribers of feed {feed_id}: {e}")
            raise DatabaseError(
                f"Failed to list subscribers: {e}",
                error_code=ErrorCode.DATABASE_ERROR,
                context={"feed_id": feed_id},
            ) from e

    def advance_cursor(self, subscriber_id: int, item_id: int) -> bool:
        """Record that ``item_id`` was delivered to a subscriber.

        The update is skipped when the stored cursor is already at or past
        ``item_id``.

        Returns:
            True if the cursor moved
        """
        now = int(time.time())
        try:
            with self.db.get_connection() as conn:
                cursor = conn.execute(
                    """
                    UPDATE feeds_subscribers
                    SET last_notification_item_id = ?,
                        last_notification_date = ?,
                        update_date = ?
                    WHERE id = ?
                      AND (last_notification_item_id IS NULL OR last_notification_item_id < ?)
                """,
                    (item_id, now, now, subscriber_id, item_id),
                )
                conn.commit()

            return cursor.rowcount > 0

        except sqlite3.Error as e:
            self.logger.error(
                f"Failed to advance cursor of subscriber {subscriber_id} to {item_id}: {e}"
            )
            raise DatabaseError(
                f"Failed to advance cursor: {e}",
                error_code=ErrorCode.DATABASE_ERROR,
                context={"subscriber_id": subscriber_id, "item_id": item_id},
            ) from e

    def find_subscription(self, chat_id: int, feed_id: int) -> Optional[Subscriber]:
        """Get the subscription row of a chat for a feed, active or not."""
        try:
            with self.db.get_connection() as conn:
                row = conn.execute(
                    "SELECT * FROM feeds_subscribers WHERE chat_id = ? AND feed_id = ?",
                    (chat_id, feed_id),
                ).fetchone()

            return self._row_to_subscriber(row) if row else None

        except sqlite3.Error as e:
            raise DatabaseError(
                f"Failed to find subscription: {e}",
                error_code=ErrorCode.DATABASE_ERROR,
                context={"chat_id": chat_id, "feed_id": feed_id},
            ) from e

    def deactivate(self, subscriber_id: int) -> bool:
        """Soft-delete a subscription. The row and its cursor are kept."""
        try:
            with self.db.get_connection() as conn:
                cursor = conn.execute(
                    """
                    UPDATE feeds_subscribers SET status = 0, update_date = ?
                    WHERE id = ? AND status = 1
                """,
                    (int(time.time()), subscriber_id),
                )
                conn.commit()

            if cursor.rowcount > 0:
                self.logger.info(f"Deactivated subscriber {subscriber_id}")
                return True
            return False

        except sqlite3.Error as e:
            raise DatabaseError(
                f"Failed to deactivate subscriber {subscriber_id}: {e}",
                error_code=ErrorCode.DATABASE_ERROR,
            ) from e

    def list_subscriptions(self, chat_id: int) -> List[Tuple[Subscriber, Feed]]:
        """Get a chat's active subscriptions together with their feeds."""
        try:
            with self.db.get_connection() as conn:
                rows = conn.execute(
                    """
                    SELECT s.*, f.link AS feed_link, f.title AS feed_title,
                           f.description AS feed_description, f.image AS feed_image
                    FROM feeds_subscribers s
                    JOIN feeds f ON f.id = s.feed_id
                    WHERE s.chat_id = ? AND s.status = 1
                    ORDER BY s.add_date, s.id
                """,
                    (chat_id,),
                ).fetchall()

            return [
                (
                    self._row_to_subscriber(row),
                    Feed(
                        id=row["feed_id"],
                        link=row["feed_link"],
                        title=row["feed_title"],
                        description=row["feed_description"],
                        image=row["feed_image"],
                    ),
                )
                for row in rows
            ]

        except sqlite3.Error as e:
            raise DatabaseError(
                f"Failed to list subscriptions of chat {chat_id}: {e}",
                error_code=ErrorCode.DATABASE_ERROR,
            ) from e

    def _row_to_subscriber(self, row) -> Subscriber:
        return Subscriber(
            id=row["id"],
            chat_id=row["chat_id"],
            feed_id=row["feed_id"],
            status=bool(row["status"]),
            last_notification_item_id=row["last_notification_item_id"],
            last_notification_date=row["last_notification_date"],
            add_date=row["add_date"],
            update_date=row["update_date"],
        )
