"""
Message Formatter
=================

Builds the notification text for one feed item in Telegram HTML parse mode:

    <b>Feed title</b>

    <b>Item title</b>

    Item body

    https://item.link

Titles and link are escaped as plain text; the body goes through
``ContentCleaner.to_telegram_html``. Titles and link are capped before
markup is added; a message still over Telegram's length limit
has its body cut down to plain text and marked with an ellipsis.
"""

import html
from typing import List, Optional

from ..database.models import Feed, FeedItem
from ..ingestion.content_cleaner import ContentCleaner
from ..utils.logging import get_logger_for_component

TELEGRAM_MESSAGE_LIMIT = 4096
ELLIPSIS = "…"


class MessageFormatter:
    """Formats feed items as Telegram messages."""

    def __init__(self, cleaner: Optional[ContentCleaner] = None, max_length: int = TELEGRAM_MESSAGE_LIMIT):
        self.cleaner = cleaner or ContentCleaner()
        self.max_length = max_length
        self.logger = get_logger_for_component('message_formatter')

    def format_item(self, feed: Feed, item: FeedItem) -> str:
        """Render one item; never longer than ``max_length``.

        Titles and link are capped to fixed shares of ``max_length`` before
        markup is added, so only the body ever competes for the remainder.
        """
        head = [self._bold(feed.title, self.max_length // 8)]
        if item.title:
            head.append(self._bold(item.title, self.max_length // 4))
        tail = [self._fit_plain(item.link, self.max_length // 4)]

        body = self.cleaner.to_telegram_html(item.description)
        message = self._join(head, body, tail)
        if len(message) <= self.max_length:
            return message

        self.logger.debug(f"Truncating item {item.id}: {len(message)} chars")
        budget = self.max_length - len(self._join(head, "", tail)) - len("\n\n") - len(ELLIPSIS)
        body = self._cut_escaped(self.cleaner.extract_text(item.description), max(budget, 0))
        return self._join(head, body + ELLIPSIS if body else "", tail)

    def format_subscription_list(self, feeds: List[Feed]) -> str:
        """Bulleted list of linked feed titles."""
        return "\n".join(
            f'• <a href="{html.escape(feed.link, quote=True)}">{self._escape(feed.title)}</a>'
            for feed in feeds
        )

    def _bold(self, text: Optional[str], limit: int) -> str:
        return f"<b>{self._fit_plain(text, limit)}</b>"

    def _fit_plain(self, text: Optional[str], limit: int) -> str:
        escaped = self._escape(text)
        if len(escaped) <= limit:
            return escaped
        cut = self._cut_escaped(text, max(limit - len(ELLIPSIS), 0))
        return cut + ELLIPSIS if cut else ""

    def _cut_escaped(self, text: Optional[str], budget: int) -> str:
        """Escaped prefix of plain ``text`` no longer than ``budget``."""
        cut = (text or "")[:budget]
        escaped = self._escape(cut)
        # Escaping grows the text, shrink until it fits
        while len(escaped) > budget and cut:
            cut = cut[:-(len(escaped) - budget)]
            escaped = self._escape(cut)
        return escaped.rstrip()

    @staticmethod
    def _join(head: List[str], body: str, tail: List[str]) -> str:
        parts = head + ([body] if body else []) + tail
        return "\n\n".join(part for part in parts if part)

    @staticmethod
    def _escape(text: Optional[str]) -> str:
        return html.escape(text or "", quote=False)
