"""
Feedo - Feed Notifications for Telegram
=======================================

Polls RSS and Atom feeds, stores their items and posts every new item to the
Telegram chats subscribed to the feed.

Main Components:
- Database: SQLite with connection pooling and schema management
- Configuration: environment variables with Pydantic validation
- Ingestion: concurrent feed polling and idempotent item merge
- Notification: per-subscriber cursors and staggered delivery
- Telegram Bot: /list, /add and /remove commands
"""

__version__ = "1.0.0"
__author__ = "Feedo Development Team"
__description__ = "RSS and Atom feed notifications for Telegram chats"

from .config.settings import get_settings
from .database.connection import get_db_manager
from .database.schema import DatabaseSchema
from .utils.logging import configure_application_logging, get_logger_for_component
from .utils.exceptions import FeedoError

__all__ = [
    "get_settings",
    "get_db_manager",
    "DatabaseSchema",
    "configure_application_logging",
    "get_logger_for_component",
    "FeedoError",
]
