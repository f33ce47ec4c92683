"""
Feedo Custom Exceptions
=======================

Every Feedo error carries:

- an ``ErrorCode`` that also prefixes ``str(error)``
- a context dict that ends up in structured log records
- a message that is safe to show in a chat
- a recoverable flag: True when the next cycle may succeed

Subclasses only declare their defaults and which keyword arguments belong
in the context.
"""

from typing import Any, ClassVar, Dict, Optional
from enum import Enum


class ErrorCode(str, Enum):
    """Error codes for categorizing exceptions."""

    # Configuration (C)
    CONFIG_INVALID = "C001"

    # Store (D)
    DATABASE_CONNECTION = "D001"
    DATABASE_CONSTRAINT = "D003"
    DATABASE_ERROR = "D006"

    # Feed source (F)
    FEED_FETCH_TIMEOUT = "F002"
    FEED_PARSE_ERROR = "F003"
    FEED_NETWORK_ERROR = "F004"
    FEED_ACCESS_DENIED = "F005"
    FEED_NOT_FOUND = "F006"

    # Telegram transport (T)
    TELEGRAM_API_ERROR = "T001"
    TELEGRAM_PERMISSION_DENIED = "T004"
    TELEGRAM_NETWORK_ERROR = "T005"

    # Delivery (L)
    DELIVERY_FAILED = "L001"
    DELIVERY_CHAT_UNKNOWN = "L002"
    DELIVERY_MESSAGE_REJECTED = "L003"
    DELIVERY_TIMEOUT = "L004"

    # Validation (V)
    VALIDATION_REQUIRED_FIELD = "V001"
    VALIDATION_INVALID_FORMAT = "V002"

    # Anything else (S)
    SYSTEM_PERMISSION_DENIED = "S002"
    SYSTEM_UNEXPECTED = "S999"


class FeedoError(Exception):
    """Base exception for all Feedo errors."""

    default_code: ClassVar[Optional[ErrorCode]] = None
    default_user_message: ClassVar[Optional[str]] = None
    default_recoverable: ClassVar[bool] = False

    def __init__(
        self,
        message: str,
        error_code: Optional[ErrorCode] = None,
        context: Optional[Dict[str, Any]] = None,
        user_message: Optional[str] = None,
        recoverable: Optional[bool] = None,
        **details: Any,
    ):
        """Initialize Feedo error.

        Args:
            message: Technical error message for logging
            error_code: Categorized error code, the class default if omitted
            context: Additional context information
            user_message: Message safe to show in a chat
            recoverable: Whether a later cycle may succeed
            **details: Subclass specific context values; None values are dropped
        """
        super().__init__(message)
        self.error_code = error_code or self.default_code
        self.context = dict(context or {})
        self.context.update({key: value for key, value in details.items() if value is not None})
        self.user_message = user_message or self._default_user_message(message)
        self.recoverable = self.default_recoverable if recoverable is None else recoverable

    def _default_user_message(self, message: str) -> str:
        if self.default_user_message is None:
            return message
        return self.default_user_message.format(message=message)

    def to_dict(self) -> Dict[str, Any]:
        """Convert exception to dictionary for logging."""
        return {
            "error_type": type(self).__name__,
            "error_code": self.error_code.value if self.error_code else None,
            "error_message": str(self),
            "user_message": self.user_message,
            "context": self.context,
            "recoverable": self.recoverable,
        }

    def __str__(self) -> str:
        text = super().__str__()
        return f"[{self.error_code.value}] {text}" if self.error_code else text


class ConfigurationError(FeedoError):
    """Settings could not be loaded or are inconsistent."""

    default_code = ErrorCode.CONFIG_INVALID
    default_user_message = "Configuration error: {message}"

    def __init__(self, message: str, config_key: Optional[str] = None, **kwargs):
        super().__init__(message, config_key=config_key, **kwargs)


class DatabaseError(FeedoError):
    """Store errors. Recoverable by default: the next cycle retries."""

    default_code = ErrorCode.DATABASE_ERROR
    default_user_message = "Database operation failed"
    default_recoverable = True

    def __init__(self, message: str, query: Optional[str] = None, **kwargs):
        super().__init__(message, query=query, **kwargs)


class FeedError(FeedoError):
    """Feed source and parsing errors."""

    default_code = ErrorCode.FEED_NETWORK_ERROR
    default_user_message = "Feed could not be read: {message}"
    default_recoverable = True

    def __init__(self, message: str, feed_url: Optional[str] = None, **kwargs):
        """Initialize feed error.

        Args:
            message: Error message
            feed_url: Feed URL that caused the error
            **kwargs: Additional arguments for FeedoError
        """
        super().__init__(message, feed_url=feed_url, **kwargs)


class FeedFetchError(FeedError):
    """Remote feed could not be fetched or parsed."""


class DeliveryError(FeedoError):
    """Outbound message was not confirmed by the transport."""

    default_code = ErrorCode.DELIVERY_FAILED
    default_user_message = "Message delivery failed"
    default_recoverable = True

    def __init__(
        self,
        message: str,
        chat_id: Optional[int] = None,
        item_id: Optional[int] = None,
        **kwargs,
    ):
        super().__init__(message, chat_id=chat_id, item_id=item_id, **kwargs)


class ValidationError(FeedoError):
    """User supplied input was rejected."""

    default_code = ErrorCode.VALIDATION_INVALID_FORMAT

    def __init__(self, message: str, field_name: Optional[str] = None, **kwargs):
        kwargs.setdefault("user_message", f"Invalid {field_name or 'input'}: {message}")
        super().__init__(message, field_name=field_name, **kwargs)


# Builtin exception types and how handle_exception classifies them
_BUILTIN_CLASSIFICATION = (
    ((ConnectionError, TimeoutError), ErrorCode.FEED_NETWORK_ERROR, "Network connection failed", True),
    ((PermissionError,), ErrorCode.SYSTEM_PERMISSION_DENIED, "Access denied", False),
)


def handle_exception(
    exception: Exception,
    logger,
    operation: str,
    context: Optional[Dict[str, Any]] = None,
) -> FeedoError:
    """Log ``exception`` with structured context, wrapping it if needed.

    Args:
        exception: Original exception
        logger: Logger or LoggerAdapter to report to
        operation: What was being done, e.g. ``"update handling"``
        context: Additional context information

    Returns:
        ``exception`` itself if it is a FeedoError, otherwise a FeedoError
        categorized by the exception's type
    """
    if isinstance(exception, FeedoError):
        error = exception
    else:
        context = dict(context or {})
        context.update(operation=operation, original_exception_type=type(exception).__name__)

        code, user_message, recoverable = ErrorCode.SYSTEM_UNEXPECTED, "An unexpected error occurred", True
        for types, candidate_code, candidate_message, candidate_recoverable in _BUILTIN_CLASSIFICATION:
            if isinstance(exception, types):
                code, user_message, recoverable = candidate_code, candidate_message, candidate_recoverable
                break

        error = FeedoError(
            f"{type(exception).__name__} during {operation}: {exception}",
            error_code=code,
            context=context,
            user_message=user_message,
            recoverable=recoverable,
        )

    logger.error(f"Operation '{operation}' failed", extra=error.to_dict())
    return error


def get_user_friendly_message(exception: Exception) -> str:
    """Get a chat-safe message for any exception."""
    if isinstance(exception, FeedoError):
        return exception.user_message
    return "An unexpected error occurred. Please try again later."
