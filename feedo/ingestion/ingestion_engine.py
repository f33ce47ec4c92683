"""
Ingestion Engine
================

Polls every registered feed and merges the returned entries into the store.

Merge rules:
- entries are processed oldest first (feeds list newest first), so items
  inserted in one pass receive ids in publish order
- ``(feed_id, normalized link)`` is the identity; a known link is updated in
  place and keeps its id
- missing publish dates fall back to the time of ingestion
- a failure while polling one feed is logged and skipped; the other feeds
  of the cycle are unaffected and the feed is retried next cycle
"""

import asyncio
import time
from dataclasses import dataclass
from datetime import datetime, timezone
from email.utils import parsedate_to_datetime
from typing import List, Optional

from ..database.models import Feed, FetchedItem, IngestionStats
from ..storage.feed_repository import FeedRepository
from ..storage.item_repository import ItemRepository
from ..utils.logging import get_logger_for_component, PerformanceLogger
from ..utils.exceptions import DatabaseError, FeedoError
from .content_cleaner import ContentCleaner
from .feed_source import FeedSourceClient


@dataclass
class MergeResult:
    """Outcome of merging one fetch into the store."""

    created: int = 0
    updated: int = 0
    skipped: int = 0


def _to_utc(value: datetime) -> datetime:
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


def parse_publish_date(item: FetchedItem, now: Optional[int] = None) -> int:
    """Publication time of an entry in unix seconds.

    Tries the RFC 822 ``pub_date`` first, then the ISO 8601 ``iso_date``,
    then falls back to ``now``.
    """
    if item.pub_date:
        try:
            return int(_to_utc(parsedate_to_datetime(item.pub_date)).timestamp())
        except (TypeError, ValueError, IndexError):
            pass

    for candidate in (item.iso_date, item.pub_date):
        if not candidate:
            continue
        try:
            parsed = datetime.fromisoformat(candidate.strip().replace("Z", "+00:00"))
            return int(_to_utc(parsed).timestamp())
        except ValueError:
            continue

    return int(time.time()) if now is None else now


class IngestionEngine:
    """Fetches all feeds concurrently and merges their items."""

    def __init__(
        self,
        feed_repository: FeedRepository,
        item_repository: ItemRepository,
        source: FeedSourceClient,
        max_concurrent_fetches: int = 5,
        fetch_timeout: float = 30,
        cleaner: Optional[ContentCleaner] = None,
    ):
        """Initialize ingestion engine.

        Args:
            feed_repository: Feed store
            item_repository: Item store
            source: Client used to fetch feeds
            max_concurrent_fetches: Feeds polled in parallel
            fetch_timeout: Seconds allowed for one feed, fetch and parse
            cleaner: Text normalizer for titles, bodies and links
        """
        self.feeds = feed_repository
        self.items = item_repository
        self.source = source
        self.max_concurrent_fetches = max_concurrent_fetches
        self.fetch_timeout = fetch_timeout
        self.cleaner = cleaner or ContentCleaner()
        self.logger = get_logger_for_component("ingestion")

    async def ingest_once(self) -> IngestionStats:
        """Run one ingestion cycle over every registered feed.

        Raises:
            DatabaseError: Only if the feed list itself cannot be read
        """
        stats = IngestionStats()
        feeds = self.feeds.list_feeds()
        if not feeds:
            self.logger.debug("No feeds registered, nothing to ingest")
            return stats

        semaphore = asyncio.Semaphore(self.max_concurrent_fetches)

        async def ingest_with_semaphore(feed: Feed) -> None:
            async with semaphore:
                await self._ingest_guarded(feed, stats)

        with PerformanceLogger(self.logger, "ingestion cycle", feed_count=len(feeds)):
            await asyncio.gather(*(ingest_with_semaphore(feed) for feed in feeds))

        self.logger.info(
            f"Ingestion cycle: {stats.feeds_succeeded}/{stats.feeds_polled} feeds ok, "
            f"{stats.items_created} new, {stats.items_updated} updated, "
            f"{stats.items_skipped} skipped"
        )
        return stats

    async def _ingest_guarded(self, feed: Feed, stats: IngestionStats) -> None:
        stats.feeds_polled += 1
        try:
            result = await self.ingest_feed(feed)
        except asyncio.TimeoutError:
            stats.feeds_failed += 1
            self.logger.warning(
                f"Feed {feed.id} timed out after {self.fetch_timeout}s: {feed.link}",
                extra={"feed_id": feed.id},
            )
            return
        except FeedoError as e:
            stats.feeds_failed += 1
            self.logger.warning(
                f"Feed {feed.id} skipped this cycle: {e}",
                extra={"feed_id": feed.id, **e.to_dict()},
            )
            return
        except Exception as e:
            stats.feeds_failed += 1
            self.logger.error(
                f"Unexpected error ingesting feed {feed.id}: {e}",
                extra={"feed_id": feed.id},
                exc_info=True,
            )
            return

        stats.feeds_succeeded += 1
        stats.items_created += result.created
        stats.items_updated += result.updated
        stats.items_skipped += result.skipped

    async def ingest_feed(self, feed: Feed) -> MergeResult:
        """Fetch one feed and merge its entries.

        Raises:
            FeedFetchError: If the feed cannot be fetched or parsed
            asyncio.TimeoutError: If the fetch exceeds ``fetch_timeout``
        """
        fetched = await asyncio.wait_for(self.source.fetch(feed.link), self.fetch_timeout)
        return self.merge_items(feed, fetched.items)

    def merge_items(self, feed: Feed, items: List[FetchedItem]) -> MergeResult:
        """Upsert fetched entries, oldest first.

        Args:
            feed: Stored feed the entries belong to
            items: Entries in document order (newest first)

        Returns:
            Counts of created, updated and skipped entries
        """
        result = MergeResult()
        now = int(time.time())

        for item in reversed(items):
            link = self.cleaner.normalize_link(item.link)
            if not link:
                result.skipped += 1
                self.logger.warning(
                    f"Entry without link in feed {feed.id}, skipping: {item.title[:80]!r}",
                    extra={"feed_id": feed.id},
                )
                continue

            try:
                _, created = self.items.upsert_item(
                    feed_id=feed.id,
                    link=link,
                    title=self.cleaner.decode_text(item.title),
                    description=self.cleaner.decode_text(item.content),
                    publish_date=parse_publish_date(item, now),
                )
            except DatabaseError as e:
                result.skipped += 1
                self.logger.error(
                    f"Failed to store entry {link} of feed {feed.id}: {e}",
                    extra={"feed_id": feed.id},
                )
                continue

            if created:
                result.created += 1
            else:
                result.updated += 1

        self.logger.debug(
            f"Merged feed {feed.id}: {result.created} new, {result.updated} updated, "
            f"{result.skipped} skipped",
            extra={"feed_id": feed.id},
        )
        return result
