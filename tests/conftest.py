"""
PyTest Configuration and Fixtures
=================================

Shared fixtures and configuration for Feedo tests. Every test gets its own
temporary SQLite database with the schema already created.
"""

import pytest
import os
import sys
import time
from pathlib import Path

# Add project root to Python path
sys.path.insert(0, str(Path(__file__).parent.parent))

# Set test environment variables before any imports
os.environ["FEEDO_TELEGRAM__BOT_TOKEN"] = (
    "123456:ABC-DEF1234ghIkl-zyx57W2v1u123ew11_test"
)
os.environ["FEEDO_DEBUG"] = "true"


# ============================================================================
# Database Fixtures
# ============================================================================


@pytest.fixture
def test_database(tmp_path):
    """Temporary database file with the Feedo schema."""
    from feedo.database.schema import DatabaseSchema

    db_path = tmp_path / "feedo_test.db"
    DatabaseSchema(str(db_path)).create_tables()
    return str(db_path)


@pytest.fixture
def db_connection(test_database):
    """Create a database connection manager for testing."""
    from feedo.database.connection import DatabaseConnection

    connection = DatabaseConnection(test_database, pool_size=2)
    yield connection

    connection.close_all_connections()


@pytest.fixture
def feed_repository(db_connection):
    from feedo.storage.feed_repository import FeedRepository
    return FeedRepository(db_connection)


@pytest.fixture
def item_repository(db_connection):
    from feedo.storage.item_repository import ItemRepository
    return ItemRepository(db_connection)


@pytest.fixture
def subscriber_repository(db_connection):
    from feedo.storage.subscriber_repository import SubscriberRepository
    return SubscriberRepository(db_connection)


@pytest.fixture
def chat_repository(db_connection):
    from feedo.storage.chat_repository import ChatRepository
    return ChatRepository(db_connection)


# ============================================================================
# Sample Data
# ============================================================================


@pytest.fixture
def now():
    """Current unix time, fixed for the test."""
    return int(time.time())


@pytest.fixture
def sample_feed(feed_repository):
    """A stored feed."""
    return feed_repository.create_feed(
        link="https://example.com/feed.xml",
        title="Example Feed",
        description="Latest example news",
    )


@pytest.fixture
def sample_chat(chat_repository):
    """A stored private chat."""
    from feedo.database.models import ChatType
    return chat_repository.upsert_chat(12345, "Alice", ChatType.PRIVATE)


@pytest.fixture
def sample_fetch_result():
    """A parsed feed document, newest entry first."""
    from feedo.database.models import FetchedItem, FetchResult

    return FetchResult(
        link="https://example.com/feed.xml",
        title="Example Feed",
        description="Latest example news",
        items=[
            FetchedItem(
                title="Third post",
                link="https://example.com/3",
                content="<p>Third &amp; last</p>",
                pub_date="Wed, 03 Jan 2024 10:00:00 GMT",
            ),
            FetchedItem(
                title="Second post",
                link="https://example.com/2",
                content="<p>Second</p>",
                pub_date="Tue, 02 Jan 2024 10:00:00 GMT",
            ),
            FetchedItem(
                title="First post",
                link="https://example.com/1",
                content="<p>First</p>",
                iso_date="2024-01-01T10:00:00Z",
            ),
        ],
    )
