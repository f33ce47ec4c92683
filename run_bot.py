#!/usr/bin/env python3
"""
Feedo Bot Runner
================

Main entry point for running the Feedo Telegram bot. The bot process also
runs the ingestion and notification cycles.
"""

import sys
import logging

from feedo.bot.telegram_bot import TelegramBotService
from feedo.config.settings import get_settings
from feedo.utils.exceptions import FeedoError
from feedo.utils.logging import configure_logging_from_settings


def main():
    """Main entry point for the bot service."""
    try:
        settings = get_settings()
    except FeedoError as e:
        print(f"❌ {e}")
        sys.exit(1)

    configure_logging_from_settings(settings)

    logger = logging.getLogger('feedo.bot_runner')
    logger.info("Starting Feedo Telegram Bot...")

    try:
        bot_service = TelegramBotService(settings)

        print("🤖 Feedo Bot is running! Press Ctrl+C to stop.")
        # Blocks until interrupted
        bot_service.run()

    except KeyboardInterrupt:
        print("👋 Bot stopped by user")
    except Exception as e:
        logger.error(f"Fatal error: {e}", exc_info=True)
        print(f"❌ Failed to start bot: {e}")
        sys.exit(1)


if __name__ == "__main__":
    main()
