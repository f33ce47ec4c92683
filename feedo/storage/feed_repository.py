"""
Feed Repository
===============

Repository pattern implementation for feed sources. Feeds are created once
per link and never deleted by the notification subsystem.
"""

import sqlite3
from typing import List, Optional

from ..database.connection import DatabaseConnection
from ..database.models import Feed
from ..utils.logging import get_logger_for_component
from ..utils.exceptions import DatabaseError, ErrorCode


class FeedRepository:
    """Repository for managing feed sources in the database."""

    def __init__(self, db_connection: DatabaseConnection):
        """Initialize feed repository.

        Args:
            db_connection: Database connection manager
        """
        self.db = db_connection
        self.logger = get_logger_for_component("feed_repository")

    def create_feed(
        self,
        link: str,
        title: str,
        description: Optional[str] = None,
        image: Optional[str] = None,
    ) -> Feed:
        """Create a new feed.

        Args:
            link: Feed URL, the feed's identity
            title: Feed title
            description: Feed description
            image: Feed image URL

        Returns:
            The created Feed with its id

        Raises:
            DatabaseError: If the insert fails, including a duplicate link
        """
        try:
            with self.db.get_connection() as conn:
                cursor = conn.execute(
                    """
                    INSERT INTO feeds (link, title, description, image)
                    VALUES (?, ?, ?, ?)
                """,
                    (link, title, description, image),
                )
                feed_id = cursor.lastrowid
                conn.commit()

            self.logger.info(f"Created feed {feed_id}: {link}")
            return Feed(
                id=feed_id, link=link, title=title, description=description, image=image
            )

        except sqlite3.IntegrityError as e:
            raise DatabaseError(
                f"Feed already exists: {link}",
                error_code=ErrorCode.DATABASE_CONSTRAINT,
                context={"link": link},
            ) from e
        except sqlite3.Error as e:
            self.logger.error(f"Failed to create feed {link}: {e}")
            raise DatabaseError(
                f"Failed to create feed: {e}", error_code=ErrorCode.DATABASE_ERROR
            ) from e

    def get_feed_by_id(self, feed_id: int) -> Optional[Feed]:
        try:
            with self.db.get_connection() as conn:
                row = conn.execute(
                    "SELECT * FROM feeds WHERE id = ?", (feed_id,)
                ).fetchone()

            return self._row_to_feed(row) if row else None

        except sqlite3.Error as e:
            self.logger.error(f"Failed to get feed {feed_id}: {e}")
            raise DatabaseError(
                f"Failed to get feed {feed_id}: {e}", error_code=ErrorCode.DATABASE_ERROR
            ) from e

    def find_feed_by_link(self, link: str) -> Optional[Feed]:
        """Look a feed up by its URL.

        Returns:
            Feed if registered, None otherwise
        """
        try:
            with self.db.get_connection() as conn:
                row = conn.execute(
                    "SELECT * FROM feeds WHERE link = ?", (link,)
                ).fetchone()

            return self._row_to_feed(row) if row else None

        except sqlite3.Error as e:
            self.logger.error(f"Failed to find feed by link {link}: {e}")
            raise DatabaseError(
                f"Failed to find feed {link}: {e}", error_code=ErrorCode.DATABASE_ERROR
            ) from e

    def list_feeds(self) -> List[Feed]:
        """Get every registered feed, oldest registration first."""
        try:
            with self.db.get_connection() as conn:
                rows = conn.execute("SELECT * FROM feeds ORDER BY id").fetchall()

            return [self._row_to_feed(row) for row in rows]

        except sqlite3.Error as e:
            self.logger.error(f"Failed to list feeds: {e}")
            raise DatabaseError(
                f"Failed to list feeds: {e}", error_code=ErrorCode.DATABASE_ERROR
            ) from e

    def list_feeds_with_recent_items(self, since: int) -> List[Feed]:
        """Get feeds that have at least one item published at or after ``since``.

        Args:
            since: Window start in unix seconds

        Returns:
            Matching feeds ordered by id
        """
        try:
            with self.db.get_connection() as conn:
                rows = conn.execute(
                    """
                    SELECT f.* FROM feeds f
                    WHERE EXISTS (
                        SELECT 1 FROM feeds_items i
                        WHERE i.feed_id = f.id AND i.publish_date >= ?
                    )
                    ORDER BY f.id
                """,
                    (since,),
                ).fetchall()

            return [self._row_to_feed(row) for row in rows]

        except sqlite3.Error as e:
            self.logger.error(f"Failed to list feeds with recent items: {e}")
            raise DatabaseError(
                f"Failed to list recent feeds: {e}", error_code=ErrorCode.DATABASE_ERROR
            ) from e

    def _row_to_feed(self, row) -> Feed:
        return Feed(
            id=row["id"],
            link=row["link"],
            title=row["title"],
            description=row["description"],
            image=row["image"],
        )
