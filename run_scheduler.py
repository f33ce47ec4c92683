#!/usr/bin/env python3
"""
Feedo Scheduler Runner
======================

Runs the ingestion and notification cycles without the bot's command
handlers, for deployments where commands are served by another process.
Stops cleanly on SIGINT and SIGTERM.
"""

import sys
import asyncio
import argparse
import logging
import signal

from feedo.config.settings import get_settings
from feedo.scheduler.service import FeedoService
from feedo.utils.logging import configure_logging_from_settings


async def run_service(service: FeedoService) -> None:
    """Start both tasks and wait for a termination signal."""
    stop_event = asyncio.Event()
    loop = asyncio.get_running_loop()
    for sig in (signal.SIGINT, signal.SIGTERM):
        try:
            loop.add_signal_handler(sig, stop_event.set)
        except NotImplementedError:
            # Windows: KeyboardInterrupt cancels the main task instead
            pass

    await service.start()
    try:
        await stop_event.wait()
    finally:
        await service.stop(timeout=service.settings.notification.send_timeout)


async def main():
    """Main entry point for the scheduler service."""
    parser = argparse.ArgumentParser(description='Feedo Scheduler')
    parser.add_argument('--once', action='store_true',
                        help='Run one ingestion and one notification cycle and exit')
    parser.add_argument('--debug', action='store_true', help='Enable debug logging')

    args = parser.parse_args()

    settings = get_settings()
    configure_logging_from_settings(settings, debug=args.debug)
    logger = logging.getLogger('feedo.scheduler_runner')
    logger.info("Starting Feedo scheduler...")

    service = FeedoService(settings)

    if args.once:
        async with service:
            ingestion = await service.run_ingestion_once()
            notification = await service.run_notification_once()
        print(f"Ingested {ingestion.items_created} new item(s) from {ingestion.feeds_polled} feed(s)")
        print(f"Delivered {notification.items_delivered} item(s), {notification.deliveries_failed} failure(s)")
        sys.exit(0 if notification.deliveries_failed == 0 else 1)

    print("📡 Feedo scheduler running. Press Ctrl+C to stop.")
    await run_service(service)
    logger.info("Scheduler stopped")


if __name__ == "__main__":
    try:
        asyncio.run(main())
    except KeyboardInterrupt:
        print("\n👋 Scheduler stopped by user")
