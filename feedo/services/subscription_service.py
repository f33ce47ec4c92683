"""
Subscription Service
====================

Shared subscription logic used by the bot commands and the CLI: register a
feed on first use, subscribe and unsubscribe chats, list a chat's feeds.

A new subscriber starts with its cursor on the newest stored item of the
feed, so subscribing never floods a chat with the feed's backlog; only items
stored after the subscription are delivered.
"""

import asyncio
from dataclasses import dataclass
from typing import List, Optional, Tuple

from ..database.models import ChatType, Feed, Subscriber
from ..ingestion.ingestion_engine import IngestionEngine
from ..storage.chat_repository import ChatRepository
from ..storage.feed_repository import FeedRepository
from ..storage.item_repository import ItemRepository
from ..storage.subscriber_repository import SubscriberRepository
from ..utils.logging import get_logger_for_component
from ..utils.exceptions import DatabaseError, ErrorCode, FeedFetchError
from ..utils.validators import URLValidator


@dataclass
class SubscribeResult:
    """Outcome of a subscribe request."""
    feed: Feed
    subscriber: Subscriber
    already_subscribed: bool = False


class SubscriptionService:
    """Feed registration and chat subscription management."""

    def __init__(
        self,
        feed_repository: FeedRepository,
        item_repository: ItemRepository,
        subscriber_repository: SubscriberRepository,
        chat_repository: ChatRepository,
        ingestion_engine: IngestionEngine,
    ):
        self.feeds = feed_repository
        self.items = item_repository
        self.subscribers = subscriber_repository
        self.chats = chat_repository
        self.engine = ingestion_engine
        self.logger = get_logger_for_component("subscription_service")

    async def register_feed(self, link: str) -> Feed:
        """Return the feed stored under ``link``, creating it if needed.

        A new feed is fetched once, stored with its metadata and populated
        with its current entries.

        Raises:
            ValidationError: If the link is not a usable feed URL
            FeedFetchError: If a new feed cannot be fetched or parsed
            DatabaseError: If the store fails
        """
        link = URLValidator.validate_feed_url(link)

        feed = self.feeds.find_feed_by_link(link)
        if feed is not None:
            return feed

        try:
            fetched = await asyncio.wait_for(
                self.engine.source.fetch(link), self.engine.fetch_timeout
            )
        except asyncio.TimeoutError as e:
            raise FeedFetchError(
                f"Fetching {link} timed out", feed_url=link,
                error_code=ErrorCode.FEED_FETCH_TIMEOUT,
            ) from e

        cleaner = self.engine.cleaner
        try:
            feed = self.feeds.create_feed(
                link=link,
                title=cleaner.decode_text(fetched.title) or link,
                description=cleaner.decode_text(fetched.description) or None,
                image=fetched.image,
            )
        except DatabaseError as e:
            # Registered concurrently by another chat
            if e.error_code != ErrorCode.DATABASE_CONSTRAINT:
                raise
            feed = self.feeds.find_feed_by_link(link)
            if feed is None:
                raise
            return feed

        merged = self.engine.merge_items(feed, fetched.items)
        self.logger.info(
            f"Registered feed {feed.id} ({feed.title}) with {merged.created} item(s)",
            extra={"feed_id": feed.id},
        )
        return feed

    async def subscribe(
        self,
        chat_id: int,
        link: str,
        chat_title: Optional[str] = None,
        chat_type: ChatType = ChatType.PRIVATE,
    ) -> SubscribeResult:
        """Subscribe a Telegram chat to a feed, registering both as needed."""
        chat = self.chats.upsert_chat(chat_id, chat_title, chat_type)
        feed = await self.register_feed(link)

        existing = self.subscribers.find_subscription(chat.id, feed.id)
        if existing is not None and existing.status:
            return SubscribeResult(feed=feed, subscriber=existing, already_subscribed=True)

        newest = self.items.get_newest_item_id(feed.id)
        subscriber = self.subscribers.upsert_subscriber(chat.id, feed.id, newest)
        return SubscribeResult(feed=feed, subscriber=subscriber)

    def unsubscribe(self, chat_id: int, link: str) -> Optional[Feed]:
        """Deactivate a chat's subscription.

        Returns:
            The feed unsubscribed from, or None if the chat was not subscribed
        """
        link = URLValidator.validate_feed_url(link)
        chat = self.chats.get_chat_by_telegram_id(chat_id)
        if chat is None:
            return None

        feed = self.feeds.find_feed_by_link(link)
        if feed is None:
            return None

        subscription = self.subscribers.find_subscription(chat.id, feed.id)
        if subscription is None or not subscription.status:
            return None

        self.subscribers.deactivate(subscription.id)
        return feed

    def list_subscriptions(self, chat_id: int) -> List[Tuple[Subscriber, Feed]]:
        """Active subscriptions of a Telegram chat."""
        chat = self.chats.get_chat_by_telegram_id(chat_id)
        if chat is None:
            return []
        return self.subscribers.list_subscriptions(chat.id)
