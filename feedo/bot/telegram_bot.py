"""
Feedo Telegram Bot Service
==========================

Builds the python-telegram-bot application, registers the feed commands
and chat tracking handlers, and runs the ingestion and notification tasks
inside the bot's event loop.

The bot's outbound calls go through ``AIORateLimiter``; notifications are
sent with the application's bot so commands and deliveries share it.
"""

from typing import List, Optional

from telegram import BotCommand, Update
from telegram.constants import ParseMode
from telegram.ext import (
    AIORateLimiter,
    Application,
    ApplicationBuilder,
    ChatMemberHandler,
    CommandHandler,
    ContextTypes,
    MessageHandler,
    filters,
)
from telegram.error import TelegramError

from ..config.settings import FeedoSettings, get_settings
from ..scheduler.service import FeedoService
from ..utils.logging import get_logger_for_component
from ..utils.exceptions import handle_exception
from .chat_tracking import ChatTrackingHandler
from .commands.feed_commands import FeedCommandHandler

BOT_COMMANDS = [
    BotCommand("list", "List the feeds of this chat"),
    BotCommand("add", "Subscribe this chat to a feed"),
    BotCommand("remove", "Unsubscribe this chat from a feed"),
    BotCommand("help", "Show available commands"),
]

HELP_TEXT = (
    "<b>Feedo</b> posts new items of RSS and Atom feeds to this chat.\n\n"
    "/list - list the feeds of this chat\n"
    "/add &lt;url&gt; - subscribe to a feed\n"
    "/remove &lt;url&gt; - unsubscribe from a feed\n\n"
    "In groups only administrators can manage feeds."
)

COMMAND_UPDATES = filters.UpdateType.MESSAGE | filters.UpdateType.CHANNEL_POST


class TelegramBotService:
    """Telegram bot with feed management commands and background delivery."""

    def __init__(self, settings: Optional[FeedoSettings] = None):
        self.settings = settings or get_settings()
        self.logger = get_logger_for_component("telegram_bot")

        self.application: Optional[Application] = None
        self.service: Optional[FeedoService] = None
        self.feed_commands: Optional[FeedCommandHandler] = None
        self.chat_tracking: Optional[ChatTrackingHandler] = None

    def build_application(self) -> Application:
        """Create the application, the runtime service and all handlers."""
        self.application = (
            ApplicationBuilder()
            .token(self.settings.telegram.bot_token)
            .rate_limiter(AIORateLimiter())
            .post_init(self._post_init)
            .post_stop(self._post_stop)
            .build()
        )

        self.service = FeedoService(self.settings, bot=self.application.bot)
        self.feed_commands = FeedCommandHandler(
            self.service.subscription_service,
            formatter=self.service.formatter,
            admin_user_id=self.settings.telegram.admin_user_id,
        )
        self.chat_tracking = ChatTrackingHandler(self.service.chat_repository)

        self._register_handlers(self.application)
        return self.application

    def _register_handlers(self, application: Application) -> None:
        """Register all command and message handlers."""
        # Runs ahead of the commands so the chat exists when they do
        application.add_handler(
            MessageHandler(filters.ALL, self.chat_tracking.handle_message), group=-1
        )

        application.add_handler(CommandHandler(["start", "help"], self._handle_help, filters=COMMAND_UPDATES))
        application.add_handler(CommandHandler("list", self.feed_commands.handle_list, filters=COMMAND_UPDATES))
        application.add_handler(CommandHandler("add", self.feed_commands.handle_add, filters=COMMAND_UPDATES))
        application.add_handler(CommandHandler("remove", self.feed_commands.handle_remove, filters=COMMAND_UPDATES))

        application.add_handler(
            ChatMemberHandler(
                self.chat_tracking.handle_chat_member_update,
                ChatMemberHandler.MY_CHAT_MEMBER,
            )
        )
        application.add_error_handler(self._handle_error)

        self.logger.info("All command handlers registered")

    async def _post_init(self, application: Application) -> None:
        await self._setup_bot_commands(application)
        await self.service.start()

    async def _post_stop(self, application: Application) -> None:
        await self.service.stop(timeout=self.settings.notification.send_timeout)

    async def _setup_bot_commands(self, application: Application) -> List[BotCommand]:
        """Publish the command menu; a failure only costs the menu."""
        try:
            await application.bot.set_my_commands(BOT_COMMANDS)
            self.logger.info(f"Set {len(BOT_COMMANDS)} bot commands")
        except TelegramError as e:
            self.logger.warning(f"Failed to set bot commands: {e}")
        return BOT_COMMANDS

    async def _handle_help(self, update: Update, context: ContextTypes.DEFAULT_TYPE) -> None:
        """Handle /start and /help."""
        await context.bot.send_message(
            chat_id=update.effective_chat.id, text=HELP_TEXT, parse_mode=ParseMode.HTML
        )

    async def _handle_error(self, update: object, context: ContextTypes.DEFAULT_TYPE) -> None:
        if isinstance(context.error, Exception):
            handle_exception(context.error, self.logger, "update handling")

    def run(self) -> None:
        """Build the application and poll until interrupted."""
        application = self.build_application()
        application.run_polling(allowed_updates=Update.ALL_TYPES, drop_pending_updates=True)
