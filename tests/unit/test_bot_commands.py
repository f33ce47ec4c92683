"""
Bot Commands Tests
==================

/list, /add and /remove handlers and chat tracking, with Telegram objects
replaced by mocks.
"""

import pytest
from unittest.mock import AsyncMock, MagicMock
from telegram import ChatMember
from telegram.error import BadRequest

from feedo.bot.chat_tracking import ChatTrackingHandler
from feedo.bot.commands.feed_commands import FeedCommandHandler
from feedo.database.models import ChatType, Feed, Subscriber
from feedo.services.subscription_service import SubscribeResult
from feedo.utils.exceptions import ErrorCode, FeedFetchError, ValidationError

FEED = Feed(id=1, link="https://example.com/feed.xml", title="Example Feed")
SUBSCRIBER = Subscriber(id=1, chat_id=1, feed_id=1, add_date=0, update_date=0)


def make_update(chat_type="private", chat_id=12345, user_id=777):
    update = MagicMock()
    update.effective_chat.id = chat_id
    update.effective_chat.type = chat_type
    update.effective_chat.title = "Test chat"
    update.effective_user.id = user_id
    update.effective_message.reply_text = AsyncMock()
    update.effective_message.delete = AsyncMock()
    return update


def make_context(args=None, member_status=ChatMember.MEMBER):
    context = MagicMock()
    context.args = args or []
    context.bot.send_message = AsyncMock()
    context.bot.get_chat_member = AsyncMock(return_value=MagicMock(status=member_status))
    return context


class TestFeedCommands:
    """Test suite for FeedCommandHandler."""

    @pytest.fixture
    def subscriptions(self):
        service = MagicMock()
        service.subscribe = AsyncMock(return_value=SubscribeResult(feed=FEED, subscriber=SUBSCRIBER))
        service.unsubscribe = MagicMock(return_value=FEED)
        service.list_subscriptions = MagicMock(return_value=[(SUBSCRIBER, FEED)])
        return service

    @pytest.fixture
    def handler(self, subscriptions):
        return FeedCommandHandler(subscriptions, admin_user_id="999")

    @pytest.mark.asyncio
    async def test_list(self, handler):
        update, context = make_update(), make_context()

        await handler.handle_list(update, context)

        update.effective_message.delete.assert_awaited_once()
        text = context.bot.send_message.await_args.kwargs["text"]
        assert "There is 1 registered feed." in text
        assert '<a href="https://example.com/feed.xml">Example Feed</a>' in text

    @pytest.mark.asyncio
    async def test_list_empty(self, handler, subscriptions):
        subscriptions.list_subscriptions.return_value = []
        update, context = make_update(), make_context()

        await handler.handle_list(update, context)

        assert "No feeds registered" in context.bot.send_message.await_args.kwargs["text"]

    def test_list_message_plural(self, handler, subscriptions):
        other = Feed(id=2, link="https://other.example/rss", title="Other")
        subscriptions.list_subscriptions.return_value = [(SUBSCRIBER, FEED), (SUBSCRIBER, other)]

        assert handler.build_list_message(12345).startswith("There are 2 registered feeds.")

    @pytest.mark.asyncio
    async def test_add_without_url_shows_usage(self, handler, subscriptions):
        update, context = make_update(), make_context()

        await handler.handle_add(update, context)

        assert "Usage" in update.effective_message.reply_text.await_args.args[0]
        subscriptions.subscribe.assert_not_called()

    @pytest.mark.asyncio
    async def test_add_subscribes_and_shows_list(self, handler, subscriptions):
        update = make_update(chat_type="group", chat_id=-100)
        context = make_context(args=["https://example.com/feed.xml"], member_status=ChatMember.ADMINISTRATOR)

        await handler.handle_add(update, context)

        subscriptions.subscribe.assert_awaited_once_with(
            -100, "https://example.com/feed.xml", chat_title="Test chat", chat_type=ChatType.GROUP
        )
        update.effective_message.delete.assert_awaited_once()
        assert "Example Feed" in context.bot.send_message.await_args.kwargs["text"]

    @pytest.mark.asyncio
    async def test_add_already_subscribed(self, handler, subscriptions):
        subscriptions.subscribe.return_value = SubscribeResult(feed=FEED, subscriber=SUBSCRIBER, already_subscribed=True)
        update, context = make_update(), make_context(args=["https://example.com/feed.xml"])

        await handler.handle_add(update, context)

        assert "already registered" in update.effective_message.reply_text.await_args.args[0]
        context.bot.send_message.assert_not_called()

    @pytest.mark.asyncio
    async def test_add_invalid_url(self, handler, subscriptions):
        subscriptions.subscribe.side_effect = ValidationError("URL scheme must be http or https", field_name="url")
        update, context = make_update(), make_context(args=["ftp://x"])

        await handler.handle_add(update, context)

        assert "Invalid url" in update.effective_message.reply_text.await_args.args[0]

    @pytest.mark.asyncio
    async def test_add_unreachable_feed(self, handler, subscriptions):
        subscriptions.subscribe.side_effect = FeedFetchError("HTTP 404", error_code=ErrorCode.FEED_NOT_FOUND)
        update, context = make_update(), make_context(args=["https://example.com/missing"])

        await handler.handle_add(update, context)

        assert "Feed could not be read" in update.effective_message.reply_text.await_args.args[0]

    @pytest.mark.asyncio
    async def test_group_member_is_refused(self, handler, subscriptions):
        update = make_update(chat_type="supergroup", chat_id=-100)
        context = make_context(args=["https://example.com/feed.xml"], member_status=ChatMember.MEMBER)

        await handler.handle_add(update, context)

        subscriptions.subscribe.assert_not_called()
        assert "administrators" in update.effective_message.reply_text.await_args.args[0]

    @pytest.mark.asyncio
    async def test_configured_admin_may_manage_any_group(self, handler, subscriptions):
        update = make_update(chat_type="supergroup", chat_id=-100, user_id=999)
        context = make_context(member_status=ChatMember.MEMBER)

        await handler.handle_list(update, context)

        context.bot.get_chat_member.assert_not_called()
        context.bot.send_message.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_remove(self, handler, subscriptions):
        update, context = make_update(), make_context(args=["https://example.com/feed.xml"])

        await handler.handle_remove(update, context)

        subscriptions.unsubscribe.assert_called_once_with(12345, "https://example.com/feed.xml")
        context.bot.send_message.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_remove_not_subscribed(self, handler, subscriptions):
        subscriptions.unsubscribe.return_value = None
        update, context = make_update(), make_context(args=["https://example.com/feed.xml"])

        await handler.handle_remove(update, context)

        assert "not subscribed" in update.effective_message.reply_text.await_args.args[0]

    @pytest.mark.asyncio
    async def test_undeletable_command_still_lists(self, handler):
        update, context = make_update(), make_context()
        update.effective_message.delete.side_effect = BadRequest("Message can't be deleted")

        await handler.handle_list(update, context)

        context.bot.send_message.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_unexpected_error_is_reported(self, handler, subscriptions):
        subscriptions.list_subscriptions.side_effect = RuntimeError("boom")
        update, context = make_update(), make_context()

        await handler.handle_list(update, context)

        assert "Error processing /list" in update.effective_message.reply_text.await_args.args[0]


class TestChatTracking:
    """Test suite for ChatTrackingHandler."""

    @pytest.fixture
    def handler(self, chat_repository):
        return ChatTrackingHandler(chat_repository)

    def make_member_update(self, old_status, new_status, chat_id=-100200):
        update = MagicMock()
        update.my_chat_member.chat.id = chat_id
        update.my_chat_member.chat.type = "supergroup"
        update.my_chat_member.chat.title = "Team"
        update.my_chat_member.old_chat_member.status = old_status
        update.my_chat_member.new_chat_member.status = new_status
        return update

    @pytest.mark.asyncio
    async def test_message_records_chat(self, handler, chat_repository):
        update = make_update(chat_type="group", chat_id=-42)

        await handler.handle_message(update, MagicMock())

        chat = chat_repository.get_chat_by_telegram_id(-42)
        assert chat.title == "Test chat"
        assert chat.type == ChatType.GROUP

    @pytest.mark.asyncio
    async def test_bot_added_and_removed(self, handler, chat_repository):
        await handler.handle_chat_member_update(
            self.make_member_update(ChatMember.LEFT, ChatMember.MEMBER), MagicMock()
        )
        assert chat_repository.get_chat_by_telegram_id(-100200).joined is True

        await handler.handle_chat_member_update(
            self.make_member_update(ChatMember.MEMBER, ChatMember.BANNED), MagicMock()
        )
        assert chat_repository.get_chat_by_telegram_id(-100200).joined is False

    @pytest.mark.asyncio
    async def test_removed_from_unknown_chat(self, handler, chat_repository):
        await handler.handle_chat_member_update(
            self.make_member_update(ChatMember.ADMINISTRATOR, ChatMember.LEFT, chat_id=-1), MagicMock()
        )

        assert chat_repository.get_chat_by_telegram_id(-1) is None

    @pytest.mark.asyncio
    async def test_no_member_update(self, handler):
        update = MagicMock()
        update.my_chat_member = None

        await handler.handle_chat_member_update(update, MagicMock())
