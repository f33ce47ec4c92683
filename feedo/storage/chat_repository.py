"""Chat repository for database operations."""

import sqlite3
from typing import Optional

from ..database.connection import DatabaseConnection
from ..database.models import Chat, ChatType
from ..utils.logging import get_logger_for_component
from ..utils.exceptions import DatabaseError, ErrorCode


class ChatRepository:
    """Repository for the Telegram chats the bot has seen."""

    def __init__(self, db_connection: DatabaseConnection):
        self.db = db_connection
        self.logger = get_logger_for_component('chat_repository')

    def upsert_chat(self, chat_id: int, title: Optional[str], chat_type: ChatType) -> Chat:
        """Insert a chat or refresh its title and type.

        Args:
            chat_id: Telegram chat ID
            title: Chat title (None for private chats without one)
            chat_type: Telegram chat type

        Returns:
            The stored chat with its database id
        """
        try:
            with self.db.transaction() as conn:
                conn.execute("""
                    INSERT INTO chats (chat_id, title, type, joined)
                    VALUES (?, ?, ?, 1)
                    ON CONFLICT(chat_id) DO UPDATE SET
                        title = excluded.title,
                        type = excluded.type,
                        joined = 1,
                        updated_at = CURRENT_TIMESTAMP
                """, (chat_id, title, ChatType(chat_type).value))
                row = conn.execute(
                    "SELECT * FROM chats WHERE chat_id = ?", (chat_id,)
                ).fetchone()

            return self._row_to_chat(row)

        except sqlite3.Error as e:
            self.logger.error(f"Error upserting chat {chat_id}: {e}")
            raise DatabaseError(
                message=f"Failed to upsert chat {chat_id}",
                error_code=ErrorCode.DATABASE_ERROR,
                context={'chat_id': chat_id, 'operation': 'upsert_chat'}
            ) from e

    def set_joined(self, chat_id: int, joined: bool) -> bool:
        """Record whether the bot is a member of a chat.

        Returns:
            True if the chat was known
        """
        try:
            with self.db.get_connection() as conn:
                cursor = conn.execute("""
                    UPDATE chats SET joined = ?, updated_at = CURRENT_TIMESTAMP
                    WHERE chat_id = ?
                """, (joined, chat_id))
                conn.commit()

            return cursor.rowcount > 0

        except sqlite3.Error as e:
            self.logger.error(f"Error updating membership of chat {chat_id}: {e}")
            raise DatabaseError(
                message=f"Failed to update chat {chat_id}",
                error_code=ErrorCode.DATABASE_ERROR,
                context={'chat_id': chat_id, 'operation': 'set_joined'}
            ) from e

    def get_chat_by_id(self, id: int) -> Optional[Chat]:
        """Get a chat by its database id (the value stored in feeds_subscribers.chat_id)."""
        return self._get_one("SELECT * FROM chats WHERE id = ?", id)

    def get_chat_by_telegram_id(self, chat_id: int) -> Optional[Chat]:
        return self._get_one("SELECT * FROM chats WHERE chat_id = ?", chat_id)

    def _get_one(self, query: str, key: int) -> Optional[Chat]:
        try:
            with self.db.get_connection() as conn:
                row = conn.execute(query, (key,)).fetchone()

            return self._row_to_chat(row) if row else None

        except sqlite3.Error as e:
            self.logger.error(f"Error getting chat {key}: {e}")
            raise DatabaseError(
                message=f"Failed to get chat {key}",
                error_code=ErrorCode.DATABASE_ERROR,
                context={'key': key}
            ) from e

    def _row_to_chat(self, row) -> Chat:
        return Chat(
            id=row['id'],
            chat_id=row['chat_id'],
            title=row['title'],
            type=ChatType(row['type']),
            joined=bool(row['joined']),
        )
