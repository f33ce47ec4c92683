"""
Feed Management Commands
========================

Telegram bot commands for managing a chat's feed subscriptions.

Commands:
- /list - List the feeds the chat is subscribed to
- /add <url> - Subscribe the chat to a feed
- /remove <url> - Unsubscribe the chat from a feed

In groups and supergroups only administrators may use these commands.
The command message is deleted once handled and the subscription list is
shown in its place.
"""

from typing import Optional

from telegram import ChatMember, LinkPreviewOptions, Update
from telegram.constants import ChatType as TelegramChatType, ParseMode
from telegram.error import TelegramError
from telegram.ext import ContextTypes

from ...database.models import ChatType
from ...delivery.message_formatter import MessageFormatter
from ...services.subscription_service import SubscriptionService
from ...utils.logging import get_logger_for_component
from ...utils.exceptions import FeedoError, get_user_friendly_message
from ..chat_tracking import chat_title

ADMIN_STATUSES = (ChatMember.ADMINISTRATOR, ChatMember.OWNER)


class FeedCommandHandler:
    """Handler for feed-related bot commands."""

    def __init__(
        self,
        subscription_service: SubscriptionService,
        formatter: Optional[MessageFormatter] = None,
        admin_user_id: Optional[str] = None,
    ):
        """Initialize feed command handler.

        Args:
            subscription_service: Subscription management
            formatter: Builds the subscription list
            admin_user_id: User allowed to manage any chat
        """
        self.subscriptions = subscription_service
        self.formatter = formatter or MessageFormatter()
        self.admin_user_id = admin_user_id
        self.logger = get_logger_for_component('feed_commands')

    async def handle_list(self, update: Update, context: ContextTypes.DEFAULT_TYPE) -> None:
        """Handle /list command - show the chat's feeds."""
        try:
            if not await self._check_admin(update, context):
                return

            await self._delete_command(update)
            await self._send_list(update, context)

        except Exception as e:
            await self._handle_error(update, context, "list", e)

    async def handle_add(self, update: Update, context: ContextTypes.DEFAULT_TYPE) -> None:
        """Handle /add <url> command - subscribe the chat to a feed."""
        try:
            if not await self._check_admin(update, context):
                return

            if not context.args:
                await self._reply(update, context, "Usage: <code>/add https://example.com/feed.xml</code>")
                return

            chat = update.effective_chat
            result = await self.subscriptions.subscribe(
                chat.id, context.args[0],
                chat_title=chat_title(chat),
                chat_type=ChatType(chat.type),
            )

            if result.already_subscribed:
                await self._reply(update, context, "This feed is already registered.")
                return

            self.logger.info(
                f"Chat {chat.id} subscribed to feed {result.feed.id}",
                extra={'chat_id': chat.id, 'feed_id': result.feed.id},
            )
            await self._delete_command(update)
            await self._send_list(update, context)

        except FeedoError as e:
            self.logger.warning(f"/add rejected: {e}")
            await self._reply(update, context, get_user_friendly_message(e))
        except Exception as e:
            await self._handle_error(update, context, "add", e)

    async def handle_remove(self, update: Update, context: ContextTypes.DEFAULT_TYPE) -> None:
        """Handle /remove <url> command - unsubscribe the chat from a feed."""
        try:
            if not await self._check_admin(update, context):
                return

            if not context.args:
                await self._reply(update, context, "Usage: <code>/remove https://example.com/feed.xml</code>")
                return

            chat = update.effective_chat
            feed = self.subscriptions.unsubscribe(chat.id, context.args[0])
            if feed is None:
                await self._reply(update, context, "This chat is not subscribed to that feed.")
                return

            self.logger.info(
                f"Chat {chat.id} unsubscribed from feed {feed.id}",
                extra={'chat_id': chat.id, 'feed_id': feed.id},
            )
            await self._delete_command(update)
            await self._send_list(update, context)

        except FeedoError as e:
            self.logger.warning(f"/remove rejected: {e}")
            await self._reply(update, context, get_user_friendly_message(e))
        except Exception as e:
            await self._handle_error(update, context, "remove", e)

    def build_list_message(self, chat_id: int) -> str:
        """Subscription summary for a chat."""
        feeds = [feed for _, feed in self.subscriptions.list_subscriptions(chat_id)]
        if not feeds:
            return "No feeds registered. Add one with <code>/add &lt;url&gt;</code>."

        if len(feeds) == 1:
            header = "There is 1 registered feed."
        else:
            header = f"There are {len(feeds)} registered feeds."
        return f"{header}\n\n{self.formatter.format_subscription_list(feeds)}"

    async def _send_list(self, update: Update, context: ContextTypes.DEFAULT_TYPE) -> None:
        chat_id = update.effective_chat.id
        await context.bot.send_message(
            chat_id=chat_id,
            text=self.build_list_message(chat_id),
            parse_mode=ParseMode.HTML,
            link_preview_options=LinkPreviewOptions(is_disabled=True),
        )

    async def _check_admin(self, update: Update, context: ContextTypes.DEFAULT_TYPE) -> bool:
        """Allow private chats, channel posts and group administrators."""
        chat = update.effective_chat
        if chat.type in (TelegramChatType.PRIVATE, TelegramChatType.CHANNEL):
            return True

        user = update.effective_user
        if user is None:
            return False
        if self.admin_user_id and str(user.id) == str(self.admin_user_id):
            return True

        member = await context.bot.get_chat_member(chat.id, user.id)
        if member.status in ADMIN_STATUSES:
            return True

        await self._reply(update, context, "Only chat administrators can manage feeds.")
        return False

    async def _delete_command(self, update: Update) -> None:
        message = update.effective_message
        if message is None:
            return
        try:
            await message.delete()
        except TelegramError as e:
            # Missing delete permission is normal in groups
            self.logger.debug(f"Could not delete command message: {e}")

    async def _reply(self, update: Update, context: ContextTypes.DEFAULT_TYPE, text: str) -> None:
        message = update.effective_message
        if message is not None:
            try:
                await message.reply_text(text, parse_mode=ParseMode.HTML)
                return
            except TelegramError as e:
                self.logger.debug(f"Reply failed, sending to chat instead: {e}")
        await context.bot.send_message(
            chat_id=update.effective_chat.id, text=text, parse_mode=ParseMode.HTML
        )

    async def _handle_error(
        self, update: Update, context: ContextTypes.DEFAULT_TYPE, command: str, error: Exception
    ) -> None:
        """Handle errors in command processing."""
        self.logger.error(f"Error in /{command} command: {error}", exc_info=True)
        try:
            await self._reply(
                update, context,
                f"Error processing /{command}. Please try again later.",
            )
        except TelegramError as e:
            self.logger.error(f"Failed to send error message: {e}")
