"""
Feedo Configuration System
==========================

Settings come from, in decreasing precedence: environment variables, a
``.env`` file, then the Field defaults below. Variables carry the
``FEEDO_`` prefix and ``__`` between section and key, for example
``FEEDO_NOTIFICATION__STAGGER_SECONDS=2``.
"""

import re
from pathlib import Path
from typing import List, Optional
from enum import Enum

from pydantic import BaseModel, Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from ..utils.exceptions import ConfigurationError

# <bot id>:<secret>, as issued by BotFather
BOT_TOKEN_PATTERN = re.compile(r"^\d+:[\w-]{20,}$")


class LogLevel(str, Enum):
    DEBUG = "DEBUG"
    INFO = "INFO"
    WARNING = "WARNING"
    ERROR = "ERROR"
    CRITICAL = "CRITICAL"


class IngestionSettings(BaseModel):
    """Feed polling configuration."""
    interval_seconds: float = Field(default=60, gt=0, description="Seconds between the end of one ingestion cycle and the start of the next")
    max_concurrent_fetches: int = Field(default=5, ge=1, le=50, description="Feeds fetched in parallel")
    fetch_timeout: float = Field(default=30, gt=0, le=300, description="Seconds allowed for one feed fetch")
    user_agent: str = Field(default="Feedo/1.0 (+https://t.me/)", description="User-Agent sent with feed requests")


class NotificationSettings(BaseModel):
    """Notification scan and delivery configuration."""
    interval_seconds: float = Field(default=60, gt=0, description="Seconds between the end of one notification cycle and the start of the next")
    lookback_hours: float = Field(default=24, gt=0, description="Only items published within this window are considered")
    stagger_seconds: float = Field(default=1.0, ge=0.0, le=60.0, description="Delay between consecutive messages to one chat")
    max_concurrent_deliveries: int = Field(default=5, ge=1, le=50, description="Subscribers served in parallel")
    send_timeout: float = Field(default=30, gt=0, le=300, description="Seconds allowed for one message send")
    max_message_length: int = Field(default=4096, ge=256, le=4096, description="Telegram message length limit")


class DatabaseSettings(BaseModel):
    path: str = Field(default="data/feedo.db", description="SQLite database file path")
    pool_size: int = Field(default=5, ge=1, le=20, description="Pooled SQLite connections")


class LoggingSettings(BaseModel):
    level: LogLevel = Field(default=LogLevel.INFO, description="Level of the feedo logger tree")
    file_path: Optional[str] = Field(default="logs/feedo.log", description="Rotating JSON log file, unset to disable")
    max_file_size_mb: int = Field(default=10, ge=1, le=100, description="Rotate the log file at this size")
    backup_count: int = Field(default=5, ge=1, le=20, description="Rotated log files kept")
    structured_logging: bool = Field(default=False, description="Use structured JSON logging on the console")
    console_logging: bool = Field(default=True, description="Log to stdout")


class TelegramSettings(BaseModel):
    """Telegram bot configuration."""
    bot_token: str = Field(..., description="Telegram bot token")
    admin_user_id: Optional[str] = Field(default=None, description="User allowed to manage subscriptions in any chat")

    @field_validator('bot_token')
    @classmethod
    def validate_bot_token(cls, v: str) -> str:
        v = v.strip()
        # Tokens ending in _test are accepted for development
        if v.endswith('_test') or BOT_TOKEN_PATTERN.match(v):
            return v
        raise ValueError("Bot token must look like <bot id>:<secret>")


class FeedoSettings(BaseSettings):
    """Main application settings."""

    telegram: TelegramSettings
    database: DatabaseSettings = Field(default_factory=DatabaseSettings)
    logging: LoggingSettings = Field(default_factory=LoggingSettings)
    ingestion: IngestionSettings = Field(default_factory=IngestionSettings)
    notification: NotificationSettings = Field(default_factory=NotificationSettings)

    app_name: str = Field(default="Feedo", description="Application name")
    version: str = Field(default="1.0.0", description="Application version")
    debug: bool = Field(default=False, description="Log at DEBUG regardless of logging.level")

    model_config = SettingsConfigDict(
        env_prefix="FEEDO_",
        env_nested_delimiter="__",
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
    )

    def validate_configuration(self) -> None:
        """Check cross-field constraints and create the data and log directories.

        Raises:
            ConfigurationError: Listing every problem found
        """
        problems: List[str] = []

        directories = {"database": self.database.path}
        if self.logging.file_path:
            directories["log file"] = self.logging.file_path

        for label, file_path in directories.items():
            try:
                Path(file_path).parent.mkdir(parents=True, exist_ok=True)
            except OSError as e:
                problems.append(f"cannot create {label} directory: {e}")

        if self.notification.send_timeout <= self.notification.stagger_seconds:
            problems.append("notification.send_timeout must exceed notification.stagger_seconds")

        if problems:
            raise ConfigurationError(f"Invalid configuration: {'; '.join(problems)}")

    def get_effective_log_level(self) -> str:
        return LogLevel.DEBUG.value if self.debug else self.logging.level.value


def load_settings() -> FeedoSettings:
    """Read and validate settings.

    ``.env`` is loaded into the process environment first so that other
    libraries see the same values.

    Raises:
        ConfigurationError: If configuration is missing or invalid
    """
    from dotenv import load_dotenv
    load_dotenv()

    try:
        settings = FeedoSettings()
    except ValueError as e:
        # pydantic's ValidationError is a ValueError
        raise ConfigurationError(f"Failed to load settings: {e}") from e

    settings.validate_configuration()
    return settings


_settings: Optional[FeedoSettings] = None


def get_settings(reload: bool = False) -> FeedoSettings:
    """Process-wide settings, loaded on first use or when ``reload`` is set."""
    global _settings

    if reload or _settings is None:
        _settings = load_settings()
    return _settings
