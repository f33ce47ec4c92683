"""
Dispatcher
==========

Delivers a subscriber's unseen items one after another.

For each item, in ascending id order:
1. wait the stagger interval (except before the first send)
2. send, bounded by the send timeout
3. on confirmation, move the subscriber's cursor to the item's id

The first failed send, timeout or cursor write ends the run for this
subscriber; the remaining items stay above the cursor and are retried by the
next notification cycle. An item is never sent before the one before it has
been confirmed and recorded, and the cursor is never written before the send
is confirmed, so delivery is at-least-once.
"""

import asyncio
from dataclasses import dataclass
from typing import List, Optional

from ..database.models import Feed, FeedItem, Subscriber
from ..storage.chat_repository import ChatRepository
from ..storage.subscriber_repository import SubscriberRepository
from ..utils.logging import get_logger_for_component
from ..utils.exceptions import DatabaseError, DeliveryError, ErrorCode
from .message_formatter import MessageFormatter
from .message_sender import MessageSender


@dataclass
class DeliveryResult:
    """Outcome of one subscriber's delivery run."""
    subscriber_id: int
    feed_id: int
    attempted: int = 0
    delivered: int = 0
    last_item_id: Optional[int] = None
    error: Optional[str] = None

    @property
    def success(self) -> bool:
        return self.error is None


class Dispatcher:
    """Sequential, staggered delivery with per-item cursor advancement."""

    def __init__(
        self,
        sender: MessageSender,
        subscriber_repository: SubscriberRepository,
        chat_repository: ChatRepository,
        formatter: Optional[MessageFormatter] = None,
        stagger_seconds: float = 1.0,
        send_timeout: float = 30,
    ):
        """Initialize dispatcher.

        Args:
            sender: Outbound message transport
            subscriber_repository: Store holding the delivery cursor
            chat_repository: Resolves a subscriber to its Telegram chat
            formatter: Message builder
            stagger_seconds: Pause between two sends to the same chat
            send_timeout: Seconds allowed for one send
        """
        self.sender = sender
        self.subscribers = subscriber_repository
        self.chats = chat_repository
        self.formatter = formatter or MessageFormatter()
        self.stagger_seconds = stagger_seconds
        self.send_timeout = send_timeout
        self.logger = get_logger_for_component('dispatcher')

    async def deliver(self, feed: Feed, subscriber: Subscriber, items: List[FeedItem]) -> DeliveryResult:
        """Deliver ``items`` to ``subscriber``, stopping at the first failure.

        Items at or below the subscriber's cursor are ignored.
        """
        result = DeliveryResult(subscriber_id=subscriber.id, feed_id=feed.id)
        pending = sorted(
            (item for item in items if item.id > subscriber.cursor),
            key=lambda item: item.id,
        )
        if not pending:
            return result

        try:
            chat = self.chats.get_chat_by_id(subscriber.chat_id)
        except DatabaseError as e:
            result.error = str(e)
            self.logger.error(f"Could not resolve chat of subscriber {subscriber.id}: {e}")
            return result

        if chat is None:
            error = DeliveryError(
                f"Subscriber {subscriber.id} references unknown chat {subscriber.chat_id}",
                error_code=ErrorCode.DELIVERY_CHAT_UNKNOWN,
            )
            result.error = str(error)
            self.logger.error(str(error), extra={'feed_id': feed.id})
            return result

        log_context = {'chat_id': chat.chat_id, 'feed_id': feed.id, 'subscriber_id': subscriber.id}

        for index, item in enumerate(pending):
            if index > 0 and self.stagger_seconds > 0:
                await asyncio.sleep(self.stagger_seconds)

            result.attempted += 1
            text = self.formatter.format_item(feed, item)

            try:
                await asyncio.wait_for(self.sender.send(chat.chat_id, text), self.send_timeout)
            except asyncio.TimeoutError:
                result.error = f"Send of item {item.id} timed out after {self.send_timeout}s"
                self.logger.warning(result.error, extra=log_context)
                break
            except DeliveryError as e:
                result.error = str(e)
                self.logger.warning(
                    f"Delivery of item {item.id} failed, {len(pending) - index} item(s) deferred: {e}",
                    extra=log_context,
                )
                break

            result.delivered += 1
            try:
                self.subscribers.advance_cursor(subscriber.id, item.id)
            except DatabaseError as e:
                # Sent but not recorded; the item will be sent again next cycle
                result.error = str(e)
                self.logger.error(
                    f"Item {item.id} sent but cursor not saved: {e}", extra=log_context
                )
                break

            result.last_item_id = item.id

        if result.delivered:
            self.logger.info(
                f"Delivered {result.delivered}/{len(pending)} item(s) of feed {feed.id} "
                f"to chat {chat.chat_id}",
                extra=log_context,
            )
        return result
