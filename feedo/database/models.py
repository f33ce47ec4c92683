"""
Feedo Data Models
=================

Pydantic models for the rows of the Feedo store and for the values returned
by the feed source client, plus the plain dataclasses used to report what a
cycle did.
"""

from enum import Enum
from typing import List, Optional
from dataclasses import dataclass
from pydantic import BaseModel, Field, field_validator


class ChatType(str, Enum):
    """Telegram chat types."""
    PRIVATE = "private"
    GROUP = "group"
    SUPERGROUP = "supergroup"
    CHANNEL = "channel"


class Chat(BaseModel):
    """A Telegram chat known to the bot."""
    id: Optional[int] = Field(default=None, description="Database primary key")
    chat_id: int = Field(..., description="Telegram chat ID")
    title: Optional[str] = Field(default=None, max_length=255, description="Chat display name")
    type: ChatType = Field(..., description="Type of Telegram chat")
    joined: bool = Field(default=True, description="Whether the bot is still a member")

    def __str__(self) -> str:
        return f"Chat({self.title or '-'}:{self.chat_id})"


class Feed(BaseModel):
    """A registered syndication source. ``link`` is its identity."""
    id: Optional[int] = Field(default=None, description="Database primary key")
    link: str = Field(..., min_length=1, description="Feed URL")
    title: str = Field(..., description="Feed title")
    description: Optional[str] = Field(default=None, description="Feed description")
    image: Optional[str] = Field(default=None, description="Feed image URL")

    def __str__(self) -> str:
        return f"Feed({self.title or self.link})"


class FeedItem(BaseModel):
    """A stored feed item.

    ``id`` is assigned by the store and grows with insertion order; it is the
    unit of the per-subscriber delivery cursor.
    """
    id: Optional[int] = Field(default=None, description="Database primary key")
    feed_id: int = Field(..., description="Owning feed")
    link: str = Field(..., min_length=1, description="Item URL, unique within the feed")
    title: str = Field(default="", description="Item title")
    description: str = Field(default="", description="Item body, may contain markup")
    publish_date: int = Field(..., description="Publication time in unix seconds")

    def __str__(self) -> str:
        return f"FeedItem({self.id}:{self.title[:50]})"


class Subscriber(BaseModel):
    """A chat's subscription to a feed, with its delivery cursor."""
    id: Optional[int] = Field(default=None, description="Database primary key")
    chat_id: int = Field(..., description="References chats.id, not the Telegram id")
    feed_id: int = Field(..., description="Subscribed feed")
    status: bool = Field(default=True, description="Active flag; false means unsubscribed")
    last_notification_item_id: Optional[int] = Field(default=None, description="Highest item id confirmed delivered")
    last_notification_date: Optional[int] = Field(default=None, description="Unix seconds of the last confirmed delivery")
    add_date: int = Field(..., description="Unix seconds the subscription was created or renewed")
    update_date: int = Field(..., description="Unix seconds of the last change")

    @property
    def cursor(self) -> int:
        """Delivery watermark; a subscriber that never received anything is at 0."""
        return self.last_notification_item_id or 0

    def __str__(self) -> str:
        return f"Subscriber({self.id}:chat={self.chat_id}:feed={self.feed_id})"


class FetchedItem(BaseModel):
    """One entry as returned by the feed source, before it is stored."""
    title: str = Field(default="", description="Entry title")
    link: Optional[str] = Field(default=None, description="Entry URL")
    content: Optional[str] = Field(default=None, description="Entry body")
    pub_date: Optional[str] = Field(default=None, description="Raw RFC 822 publication date")
    iso_date: Optional[str] = Field(default=None, description="ISO 8601 publication date")

    @field_validator('title', mode='before')
    @classmethod
    def default_title(cls, v):
        return v or ""


class FetchResult(BaseModel):
    """A parsed feed document, newest entry first as published."""
    link: str = Field(..., description="URL the document was fetched from")
    title: str = Field(default="", description="Feed title")
    description: Optional[str] = Field(default=None, description="Feed description")
    image: Optional[str] = Field(default=None, description="Feed image URL")
    items: List[FetchedItem] = Field(default_factory=list)


@dataclass
class IngestionStats:
    """What one ingestion cycle did."""
    feeds_polled: int = 0
    feeds_succeeded: int = 0
    feeds_failed: int = 0
    items_created: int = 0
    items_updated: int = 0
    items_skipped: int = 0


@dataclass
class ScanStats:
    """What one notification cycle did."""
    feeds_scanned: int = 0
    subscribers_scanned: int = 0
    subscribers_notified: int = 0
    items_delivered: int = 0
    deliveries_failed: int = 0
