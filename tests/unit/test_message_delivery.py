"""
Message Delivery Tests
======================

Unit tests for MessageSender and MessageFormatter.
"""

import pytest
from unittest.mock import AsyncMock, MagicMock
from telegram.constants import ParseMode
from telegram.error import BadRequest, Forbidden, NetworkError, RetryAfter, TimedOut

from feedo.database.models import Feed, FeedItem
from feedo.delivery.message_formatter import ELLIPSIS, MessageFormatter
from feedo.delivery.message_sender import MessageSender
from feedo.utils.exceptions import DeliveryError, ErrorCode


class TestMessageSender:
    """Test suite for MessageSender."""

    @pytest.fixture
    def mock_bot(self):
        """Create mock Telegram bot."""
        bot = MagicMock()
        bot.send_message = AsyncMock()
        return bot

    @pytest.fixture
    def message_sender(self, mock_bot):
        return MessageSender(mock_bot)

    @pytest.mark.asyncio
    async def test_send_success(self, message_sender, mock_bot):
        confirmed = MagicMock(message_id=7)
        mock_bot.send_message.return_value = confirmed

        result = await message_sender.send(12345, "<b>Hi</b>")

        assert result is confirmed
        mock_bot.send_message.assert_awaited_once_with(
            chat_id=12345, text="<b>Hi</b>", parse_mode=ParseMode.HTML
        )

    @pytest.mark.asyncio
    @pytest.mark.parametrize("error, code, recoverable", [
        (BadRequest("Can't parse entities"), ErrorCode.DELIVERY_MESSAGE_REJECTED, False),
        (Forbidden("bot was blocked by the user"), ErrorCode.TELEGRAM_PERMISSION_DENIED, False),
        (RetryAfter(5), ErrorCode.TELEGRAM_API_ERROR, True),
        (TimedOut(), ErrorCode.DELIVERY_TIMEOUT, True),
        (NetworkError("connection reset"), ErrorCode.TELEGRAM_NETWORK_ERROR, True),
    ])
    async def test_send_failures_become_delivery_errors(
        self, message_sender, mock_bot, error, code, recoverable
    ):
        mock_bot.send_message.side_effect = error

        with pytest.raises(DeliveryError) as exc_info:
            await message_sender.send(12345, "text")

        assert exc_info.value.error_code == code
        assert exc_info.value.recoverable is recoverable
        assert exc_info.value.context["chat_id"] == 12345

    @pytest.mark.asyncio
    async def test_unconfirmed_send_is_failure(self, message_sender, mock_bot):
        mock_bot.send_message.return_value = None

        with pytest.raises(DeliveryError) as exc_info:
            await message_sender.send(12345, "text")

        assert exc_info.value.error_code == ErrorCode.DELIVERY_FAILED


class TestMessageFormatter:
    """Test suite for MessageFormatter."""

    @pytest.fixture
    def feed(self):
        return Feed(id=1, link="https://example.com/feed.xml", title="Example & Co")

    def make_item(self, **overrides):
        values = dict(
            id=10,
            feed_id=1,
            link="https://example.com/post?a=1&b=2",
            title="A <new> post",
            description="<p>Hello <strong>there</strong></p>",
            publish_date=1700000000,
        )
        values.update(overrides)
        return FeedItem(**values)

    def test_format_item_layout(self, feed):
        message = MessageFormatter().format_item(feed, self.make_item())

        assert message == (
            "<b>Example &amp; Co</b>\n\n"
            "<b>A &lt;new&gt; post</b>\n\n"
            "Hello <b>there</b>\n\n"
            "https://example.com/post?a=1&amp;b=2"
        )

    def test_format_item_without_title_or_body(self, feed):
        message = MessageFormatter().format_item(feed, self.make_item(title="", description=""))

        assert message == "<b>Example &amp; Co</b>\n\nhttps://example.com/post?a=1&amp;b=2"

    def test_long_body_is_truncated(self, feed):
        formatter = MessageFormatter(max_length=300)
        item = self.make_item(description="<p>" + "word & " * 200 + "</p>")

        message = formatter.format_item(feed, item)

        assert len(message) <= 300
        assert message.startswith("<b>Example &amp; Co</b>")
        assert message.endswith("https://example.com/post?a=1&amp;b=2")
        assert ELLIPSIS in message
        assert "<p>" not in message

    def test_oversized_titles_keep_markup_balanced(self):
        feed = Feed(id=1, link="https://example.com/feed.xml", title="F" * 5000)
        item = self.make_item(title="T&" * 2500, description="<p>" + "body " * 500 + "</p>")

        message = MessageFormatter().format_item(feed, item)

        assert len(message) <= 4096
        assert message.count("<b>") == message.count("</b>") == 2
        assert message.endswith("https://example.com/post?a=1&amp;b=2")
        assert "&amp" in message
        # No entity is cut in half
        assert "&a…" not in message and "&am…" not in message and "&amp…" not in message

    def test_oversized_link_is_capped(self, feed):
        item = self.make_item(link="https://example.com/" + "x" * 5000, description="")

        message = MessageFormatter(max_length=300).format_item(feed, item)

        assert len(message) <= 300
        assert message.count("<b>") == message.count("</b>")
        assert message.endswith(ELLIPSIS)

    def test_subscription_list(self):
        feeds = [
            Feed(id=1, link="https://a.example/rss?x=1&y=2", title="A <One>"),
            Feed(id=2, link="https://b.example/rss", title="B"),
        ]

        result = MessageFormatter().format_subscription_list(feeds)

        assert result.splitlines() == [
            '• <a href="https://a.example/rss?x=1&amp;y=2">A &lt;One&gt;</a>',
            '• <a href="https://b.example/rss">B</a>',
        ]
