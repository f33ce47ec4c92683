"""
Chat Tracking
=============

Keeps the ``chats`` table in step with Telegram:

- any message in a chat records the chat (title and type refreshed)
- the bot being added to a chat records it as joined
- the bot being removed or banned marks it as no longer joined
"""

from typing import Optional

from telegram import Chat as TelegramChat, ChatMember, Update
from telegram.ext import ContextTypes

from ..database.models import Chat, ChatType
from ..storage.chat_repository import ChatRepository
from ..utils.logging import get_logger_for_component
from ..utils.exceptions import DatabaseError

MEMBER_STATUSES = (ChatMember.MEMBER, ChatMember.ADMINISTRATOR, ChatMember.OWNER)
GONE_STATUSES = (ChatMember.LEFT, ChatMember.BANNED)


def chat_title(chat: TelegramChat) -> Optional[str]:
    """Group title, or the user's name for private chats."""
    return chat.title or chat.full_name or chat.username


class ChatTrackingHandler:
    """Records the chats the bot talks in."""

    def __init__(self, chat_repository: ChatRepository):
        self.chats = chat_repository
        self.logger = get_logger_for_component("chat_tracking")

    def remember_chat(self, chat: TelegramChat) -> Optional[Chat]:
        """Upsert a Telegram chat, returning None if the store is unavailable."""
        try:
            return self.chats.upsert_chat(chat.id, chat_title(chat), ChatType(chat.type))
        except DatabaseError as e:
            self.logger.error(f"Could not record chat {chat.id}: {e}", extra={"chat_id": chat.id})
            return None

    async def handle_message(self, update: Update, context: ContextTypes.DEFAULT_TYPE) -> None:
        """Record the chat of every incoming message."""
        if update.effective_chat is None:
            return
        self.remember_chat(update.effective_chat)

    async def handle_chat_member_update(self, update: Update, context: ContextTypes.DEFAULT_TYPE) -> None:
        """Handle the bot being added to or removed from a chat.

        Args:
            update: Telegram update object
            context: Bot context
        """
        member_update = update.my_chat_member
        if not member_update:
            return

        chat = member_update.chat
        old_status = member_update.old_chat_member.status
        new_status = member_update.new_chat_member.status

        if new_status in MEMBER_STATUSES and old_status not in MEMBER_STATUSES:
            if self.remember_chat(chat) is not None:
                self.logger.info(f"Joined chat {chat.id} ({chat_title(chat)})", extra={"chat_id": chat.id})

        elif new_status in GONE_STATUSES and old_status not in GONE_STATUSES:
            try:
                known = self.chats.set_joined(chat.id, False)
            except DatabaseError as e:
                self.logger.error(f"Could not record removal from chat {chat.id}: {e}")
                return
            if known:
                self.logger.info(f"Removed from chat {chat.id}", extra={"chat_id": chat.id})
