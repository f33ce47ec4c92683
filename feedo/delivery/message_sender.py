"""
Message Sender
==============

Thin wrapper around ``telegram.Bot.send_message`` that turns every way a
send can fail into a ``DeliveryError``. A send either returns the confirmed
``Message`` or raises; there is no retry here, an unconfirmed item is picked
up again by the next notification cycle.
"""

from telegram import Bot, Message
from telegram.error import TelegramError, BadRequest, Forbidden, TimedOut, NetworkError, RetryAfter
from telegram.constants import ParseMode

from ..utils.logging import get_logger_for_component
from ..utils.exceptions import DeliveryError, ErrorCode


class MessageSender:
    """Sends HTML formatted messages to Telegram chats."""

    def __init__(self, bot: Bot):
        """Initialize message sender.

        Args:
            bot: Telegram bot instance
        """
        self.bot = bot
        self.logger = get_logger_for_component('message_sender')

    async def send(self, chat_id: int, text: str, parse_mode: str = ParseMode.HTML) -> Message:
        """Send one message.

        Args:
            chat_id: Telegram chat ID
            text: Message text in the given parse mode
            parse_mode: Telegram parse mode, HTML by default

        Returns:
            The message as confirmed by Telegram

        Raises:
            DeliveryError: If Telegram did not confirm the message
        """
        try:
            message = await self.bot.send_message(
                chat_id=chat_id,
                text=text,
                parse_mode=parse_mode,
            )

        except BadRequest as e:
            # Invalid chat or message format
            self.logger.warning(f"Bad request sending to {chat_id}: {e}")
            raise DeliveryError(
                f"Message rejected: {e}", chat_id=chat_id,
                error_code=ErrorCode.DELIVERY_MESSAGE_REJECTED, recoverable=False
            ) from e

        except Forbidden as e:
            # Bot was blocked or kicked
            self.logger.warning(f"Forbidden to send to {chat_id}: {e}")
            raise DeliveryError(
                f"Bot cannot post to chat: {e}", chat_id=chat_id,
                error_code=ErrorCode.TELEGRAM_PERMISSION_DENIED, recoverable=False
            ) from e

        except RetryAfter as e:
            self.logger.warning(f"Rate limited sending to {chat_id}, retry after {e.retry_after}")
            raise DeliveryError(
                f"Rate limited: {e}", chat_id=chat_id,
                error_code=ErrorCode.TELEGRAM_API_ERROR
            ) from e

        except TimedOut as e:
            self.logger.warning(f"Timeout sending to {chat_id}: {e}")
            raise DeliveryError(
                f"Send timed out: {e}", chat_id=chat_id,
                error_code=ErrorCode.DELIVERY_TIMEOUT
            ) from e

        except NetworkError as e:
            self.logger.warning(f"Network error sending to {chat_id}: {e}")
            raise DeliveryError(
                f"Network error: {e}", chat_id=chat_id,
                error_code=ErrorCode.TELEGRAM_NETWORK_ERROR
            ) from e

        except TelegramError as e:
            self.logger.error(f"Telegram error sending to {chat_id}: {e}")
            raise DeliveryError(
                f"Telegram error: {e}", chat_id=chat_id,
                error_code=ErrorCode.TELEGRAM_API_ERROR
            ) from e

        if not message:
            raise DeliveryError(
                "Telegram returned no message", chat_id=chat_id,
                error_code=ErrorCode.DELIVERY_FAILED
            )

        return message
