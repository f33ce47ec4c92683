"""
Notification Scheduler
======================

Finds, for every active subscriber, the stored items it has not been sent
yet and hands them to the dispatcher.

Only items published within the lookback window are considered. An item
that was stored but not delivered before it aged out of the window is
never delivered; this bounds catch-up after a long outage.
"""

import asyncio
import time
from typing import Callable, Iterable, List, Optional, Tuple

from ..database.models import Feed, FeedItem, ScanStats, Subscriber
from ..delivery.dispatcher import Dispatcher, DeliveryResult
from ..storage.feed_repository import FeedRepository
from ..storage.item_repository import ItemRepository
from ..storage.subscriber_repository import SubscriberRepository
from ..utils.logging import get_logger_for_component, PerformanceLogger
from ..utils.exceptions import DatabaseError

DeliveryJob = Tuple[Feed, Subscriber, List[FeedItem]]


def compute_unseen_items(items: Iterable[FeedItem], cursor: Optional[int]) -> List[FeedItem]:
    """Items with an id above ``cursor``, ascending by id."""
    watermark = cursor or 0
    return sorted((item for item in items if item.id > watermark), key=lambda item: item.id)


class NotificationScheduler:
    """Builds per-subscriber delivery jobs and runs them concurrently."""

    def __init__(
        self,
        feed_repository: FeedRepository,
        item_repository: ItemRepository,
        subscriber_repository: SubscriberRepository,
        dispatcher: Dispatcher,
        lookback_hours: float = 24,
        max_concurrent_deliveries: int = 5,
        clock: Callable[[], float] = time.time,
    ):
        """Initialize notification scheduler.

        Args:
            feed_repository: Feed store
            item_repository: Item store
            subscriber_repository: Subscriber store
            dispatcher: Per-subscriber sequential sender
            lookback_hours: Width of the window of items considered
            max_concurrent_deliveries: Subscribers served in parallel
            clock: Source of the current unix time
        """
        self.feeds = feed_repository
        self.items = item_repository
        self.subscribers = subscriber_repository
        self.dispatcher = dispatcher
        self.lookback_seconds = int(lookback_hours * 3600)
        self.max_concurrent_deliveries = max_concurrent_deliveries
        self.clock = clock
        self.logger = get_logger_for_component("notification")

    def window_start(self) -> int:
        return int(self.clock()) - self.lookback_seconds

    def collect_jobs(self, stats: ScanStats) -> List[DeliveryJob]:
        """Read the store and build one job per subscriber with unseen items.

        A store error for one feed skips that feed only.

        Raises:
            DatabaseError: If the list of recent feeds cannot be read
        """
        since = self.window_start()
        jobs: List[DeliveryJob] = []

        for feed in self.feeds.list_feeds_with_recent_items(since):
            stats.feeds_scanned += 1
            try:
                subscribers = self.subscribers.list_active_subscribers(feed.id)
                if not subscribers:
                    continue
                items = self.items.list_recent_items_by_feed(feed.id, since)
            except DatabaseError as e:
                self.logger.error(f"Skipping feed {feed.id} this cycle: {e}", extra={"feed_id": feed.id})
                continue

            for subscriber in subscribers:
                stats.subscribers_scanned += 1
                unseen = compute_unseen_items(items, subscriber.cursor)
                if unseen:
                    jobs.append((feed, subscriber, unseen))

        return jobs

    async def scan_once(self) -> ScanStats:
        """Run one notification cycle."""
        stats = ScanStats()

        with PerformanceLogger(self.logger, "notification cycle"):
            jobs = self.collect_jobs(stats)
            stats.subscribers_notified = len(jobs)

            if jobs:
                semaphore = asyncio.Semaphore(self.max_concurrent_deliveries)

                async def deliver_with_semaphore(job: DeliveryJob) -> Optional[DeliveryResult]:
                    async with semaphore:
                        return await self._deliver_guarded(*job)

                results = await asyncio.gather(*(deliver_with_semaphore(job) for job in jobs))

                for result in results:
                    if result is None:
                        stats.deliveries_failed += 1
                        continue
                    stats.items_delivered += result.delivered
                    if not result.success:
                        stats.deliveries_failed += 1

        if jobs:
            self.logger.info(
                f"Notification cycle: {stats.items_delivered} item(s) delivered to "
                f"{stats.subscribers_notified} subscriber(s), {stats.deliveries_failed} failed"
            )
        return stats

    async def _deliver_guarded(
        self, feed: Feed, subscriber: Subscriber, items: List[FeedItem]
    ) -> Optional[DeliveryResult]:
        try:
            return await self.dispatcher.deliver(feed, subscriber, items)
        except Exception as e:
            self.logger.error(
                f"Delivery to subscriber {subscriber.id} crashed: {e}",
                extra={"feed_id": feed.id},
                exc_info=True,
            )
            return None
