"""
Feed Source Client
==================

Fetches a remote RSS/Atom document over HTTP and parses it with feedparser
into a validated ``FetchResult``. One aiohttp session is shared by every
fetch while the client is open; it is created on ``start()`` (or entering
the async context) and closed on ``close()``.
"""

import asyncio
import ssl
from datetime import datetime, timezone
from typing import Any, Optional
from contextlib import asynccontextmanager

import aiohttp
import certifi
import feedparser

from ..database.models import FetchedItem, FetchResult
from ..utils.logging import get_logger_for_component
from ..utils.exceptions import FeedFetchError, ErrorCode

ACCEPT_HEADER = "application/rss+xml, application/atom+xml, application/xml, text/xml, */*"


class FeedSourceClient:
    """Async HTTP client returning parsed feeds."""

    def __init__(
        self,
        timeout: float = 30,
        max_connections: int = 10,
        user_agent: str = "Feedo/1.0",
    ):
        """Initialize feed source client.

        Args:
            timeout: Total seconds allowed for one request
            max_connections: Connection limit of the shared session
            user_agent: User-Agent header sent with every request
        """
        self.timeout = timeout
        self.max_connections = max_connections
        self.user_agent = user_agent
        self.logger = get_logger_for_component("feed_source")

        self.ssl_context = ssl.create_default_context(cafile=certifi.where())
        self._session: Optional[aiohttp.ClientSession] = None

    def _create_session(self) -> aiohttp.ClientSession:
        connector = aiohttp.TCPConnector(
            ssl=self.ssl_context,
            limit=self.max_connections,
            limit_per_host=5,
            enable_cleanup_closed=True,
        )
        headers = {
            "User-Agent": self.user_agent,
            "Accept": ACCEPT_HEADER,
            "Accept-Encoding": "gzip, deflate",
        }
        return aiohttp.ClientSession(
            connector=connector,
            timeout=aiohttp.ClientTimeout(total=self.timeout),
            headers=headers,
        )

    async def start(self) -> None:
        if self._session is None or self._session.closed:
            self._session = self._create_session()

    async def close(self) -> None:
        if self._session is not None and not self._session.closed:
            await self._session.close()
        self._session = None

    async def __aenter__(self) -> "FeedSourceClient":
        await self.start()
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        await self.close()

    @asynccontextmanager
    async def get_session(self):
        """Yield the shared session, or a short-lived one if the client is not open."""
        if self._session is not None and not self._session.closed:
            yield self._session
            return

        async with self._create_session() as session:
            yield session

    async def fetch(self, link: str) -> FetchResult:
        """Fetch and parse one feed.

        Args:
            link: Feed URL

        Returns:
            Parsed feed, entries in document order

        Raises:
            FeedFetchError: On network errors, non-200 responses, timeouts and
                documents feedparser cannot make sense of
        """
        try:
            async with self.get_session() as session:
                async with session.get(link) as response:
                    if response.status != 200:
                        raise FeedFetchError(
                            f"HTTP {response.status}: {response.reason}",
                            feed_url=link,
                            error_code=(
                                ErrorCode.FEED_NOT_FOUND
                                if response.status == 404
                                else ErrorCode.FEED_ACCESS_DENIED
                                if response.status in (401, 403)
                                else ErrorCode.FEED_NETWORK_ERROR
                            ),
                        )
                    body = await response.read()

        except asyncio.TimeoutError as e:
            raise FeedFetchError(
                f"Request timeout after {self.timeout}s",
                feed_url=link,
                error_code=ErrorCode.FEED_FETCH_TIMEOUT,
            ) from e
        except aiohttp.ClientError as e:
            raise FeedFetchError(
                f"Network error: {e}",
                feed_url=link,
                error_code=ErrorCode.FEED_NETWORK_ERROR,
            ) from e

        return self.parse_document(link, body)

    def parse_document(self, link: str, body: Any) -> FetchResult:
        """Turn a raw feed document into a FetchResult.

        A document with parse warnings is accepted as long as feedparser
        still found a feed title or entries in it.
        """
        feed_data = feedparser.parse(body)
        header = feed_data.get("feed", {})

        if feed_data.get("bozo") and not feed_data.entries and not header.get("title"):
            reason = feed_data.get("bozo_exception", "invalid XML structure")
            raise FeedFetchError(
                f"Feed parse error: {reason}",
                feed_url=link,
                error_code=ErrorCode.FEED_PARSE_ERROR,
                recoverable=True,
            )

        items = [self._entry_to_item(entry) for entry in feed_data.entries]
        image = header.get("image") or {}

        result = FetchResult(
            link=link,
            title=header.get("title") or link,
            description=header.get("subtitle") or header.get("description"),
            image=image.get("href") or image.get("url"),
            items=items,
        )
        self.logger.debug(f"Parsed {len(items)} entries from {link}")
        return result

    def _entry_to_item(self, entry: Any) -> FetchedItem:
        content = None
        if entry.get("content"):
            content = entry["content"][0].get("value")
        if not content:
            content = entry.get("summary") or entry.get("description")

        return FetchedItem(
            title=entry.get("title", ""),
            link=entry.get("link"),
            content=content,
            pub_date=entry.get("published") or entry.get("updated"),
            iso_date=self._iso_date(entry),
        )

    @staticmethod
    def _iso_date(entry: Any) -> Optional[str]:
        for field in ("published_parsed", "updated_parsed"):
            parsed = entry.get(field)
            if parsed:
                try:
                    return datetime(*parsed[:6], tzinfo=timezone.utc).isoformat()
                except (TypeError, ValueError):
                    continue
        return None
