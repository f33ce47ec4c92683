"""
Feedo Storage Layer
===================

Repositories over the SQLite store, one per table.
"""

from .chat_repository import ChatRepository
from .feed_repository import FeedRepository
from .item_repository import ItemRepository
from .subscriber_repository import SubscriberRepository

__all__ = [
    "ChatRepository",
    "FeedRepository",
    "ItemRepository",
    "SubscriberRepository",
]
