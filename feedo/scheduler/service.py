"""
Feedo Service
=============

Owns the process-lifetime resources and wires the components together:

- the pooled SQLite connection and the repositories on top of it
- the shared HTTP session of the feed source client
- the Telegram bot used for delivery
- the ingestion and notification periodic tasks

Used by the bot process (tasks started from the application's post-init
hook), by the standalone scheduler and, without starting the tasks, by the
CLI for single cycles.
"""

import asyncio
from typing import Optional

from telegram import Bot
from telegram.ext import AIORateLimiter, ExtBot

from ..config.settings import FeedoSettings, get_settings
from ..database.connection import DatabaseConnection
from ..database.models import IngestionStats, ScanStats
from ..database.schema import DatabaseSchema
from ..delivery.dispatcher import Dispatcher
from ..delivery.message_formatter import MessageFormatter
from ..delivery.message_sender import MessageSender
from ..ingestion.content_cleaner import ContentCleaner
from ..ingestion.feed_source import FeedSourceClient
from ..ingestion.ingestion_engine import IngestionEngine
from ..services.subscription_service import SubscriptionService
from ..storage.chat_repository import ChatRepository
from ..storage.feed_repository import FeedRepository
from ..storage.item_repository import ItemRepository
from ..storage.subscriber_repository import SubscriberRepository
from ..utils.logging import get_logger_for_component
from .notification_scheduler import NotificationScheduler
from .periodic_task import PeriodicTask


class FeedoService:
    """Ingestion and notification runtime."""

    def __init__(self, settings: Optional[FeedoSettings] = None, bot: Optional[Bot] = None):
        """Initialize the service and its components.

        Args:
            settings: Application settings, the global settings by default
            bot: Bot to deliver with; when omitted a rate limited bot is
                created and owned by the service
        """
        self.settings = settings or get_settings()
        self.logger = get_logger_for_component("service")

        DatabaseSchema(self.settings.database.path).create_tables()
        self.db = DatabaseConnection(self.settings.database.path, self.settings.database.pool_size)

        self.feed_repository = FeedRepository(self.db)
        self.item_repository = ItemRepository(self.db)
        self.subscriber_repository = SubscriberRepository(self.db)
        self.chat_repository = ChatRepository(self.db)

        ingestion = self.settings.ingestion
        notification = self.settings.notification

        self.cleaner = ContentCleaner()
        self.source = FeedSourceClient(
            timeout=ingestion.fetch_timeout,
            max_connections=ingestion.max_concurrent_fetches * 2,
            user_agent=ingestion.user_agent,
        )
        self.ingestion_engine = IngestionEngine(
            self.feed_repository,
            self.item_repository,
            self.source,
            max_concurrent_fetches=ingestion.max_concurrent_fetches,
            fetch_timeout=ingestion.fetch_timeout,
            cleaner=self.cleaner,
        )
        self.subscription_service = SubscriptionService(
            self.feed_repository,
            self.item_repository,
            self.subscriber_repository,
            self.chat_repository,
            self.ingestion_engine,
        )

        self._owns_bot = bot is None
        self.bot = bot if bot is not None else ExtBot(
            token=self.settings.telegram.bot_token, rate_limiter=AIORateLimiter()
        )
        self.formatter = MessageFormatter(self.cleaner, max_length=notification.max_message_length)
        self.dispatcher = Dispatcher(
            MessageSender(self.bot),
            self.subscriber_repository,
            self.chat_repository,
            formatter=self.formatter,
            stagger_seconds=notification.stagger_seconds,
            send_timeout=notification.send_timeout,
        )
        self.notification_scheduler = NotificationScheduler(
            self.feed_repository,
            self.item_repository,
            self.subscriber_repository,
            self.dispatcher,
            lookback_hours=notification.lookback_hours,
            max_concurrent_deliveries=notification.max_concurrent_deliveries,
        )

        self.ingestion_task = PeriodicTask(
            "ingestion", self.run_ingestion_once, ingestion.interval_seconds
        )
        self.notification_task = PeriodicTask(
            "notification", self.run_notification_once, notification.interval_seconds
        )

        self._opened = False

    async def open(self) -> None:
        """Open the HTTP session and, if owned, initialize the bot."""
        if self._opened:
            return
        await self.source.start()
        if self._owns_bot:
            await self.bot.initialize()
        self._opened = True

    async def start(self) -> None:
        """Open resources and start both periodic tasks."""
        await self.open()
        self.ingestion_task.start()
        self.notification_task.start()
        self.logger.info(
            f"Started: ingestion every {self.ingestion_task.interval_seconds}s, "
            f"notification every {self.notification_task.interval_seconds}s"
        )

    async def stop(self, timeout: Optional[float] = None) -> None:
        """Stop the tasks, letting running cycles finish, then release resources.

        Args:
            timeout: Seconds to wait for each running cycle before cancelling it
        """
        # Both tasks stop scheduling before either is awaited
        self.ingestion_task.destroy()
        self.notification_task.destroy()
        await asyncio.gather(
            self.ingestion_task.stop(timeout),
            self.notification_task.stop(timeout),
        )

        if self._opened:
            await self.source.close()
            if self._owns_bot:
                await self.bot.shutdown()
            self._opened = False

        self.db.close_all_connections()
        self.logger.info("Stopped")

    async def __aenter__(self) -> "FeedoService":
        await self.open()
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        await self.stop()

    async def run_ingestion_once(self) -> IngestionStats:
        return await self.ingestion_engine.ingest_once()

    async def run_notification_once(self) -> ScanStats:
        return await self.notification_scheduler.scan_once()
