"""
Feedo Input Validators
======================

Validation for the values that arrive from chats and the command line:
feed URLs and Telegram chat ids.
"""

from urllib.parse import urlparse, urlunparse
from typing import Union

from .exceptions import ValidationError, ErrorCode


def _invalid(message: str, field_name: str, error_code: ErrorCode = ErrorCode.VALIDATION_INVALID_FORMAT) -> ValidationError:
    return ValidationError(message, error_code=error_code, field_name=field_name)


class URLValidator:
    """Feed URL validation and normalization."""

    ALLOWED_SCHEMES = ('http', 'https')

    @classmethod
    def validate_feed_url(cls, url: str) -> str:
        """Validate and normalize a feed URL.

        Scheme and host are lowercased and the fragment is dropped so that
        the same feed typed two ways maps to one Feed row.

        Args:
            url: URL to validate

        Returns:
            Normalized URL

        Raises:
            ValidationError: If URL is invalid
        """
        if not isinstance(url, str) or not url.strip():
            raise _invalid("URL is required", "url", ErrorCode.VALIDATION_REQUIRED_FIELD)

        url = url.strip()
        if any(char.isspace() for char in url):
            raise _invalid("URL must not contain whitespace", "url")

        try:
            parsed = urlparse(url)
        except ValueError as e:
            raise _invalid(f"Invalid URL format: {e}", "url") from e

        scheme = parsed.scheme.lower()
        if scheme not in cls.ALLOWED_SCHEMES:
            raise _invalid(f"URL scheme must be {' or '.join(cls.ALLOWED_SCHEMES)}", "url")
        if not parsed.hostname:
            raise _invalid("URL must include a hostname", "url")

        return urlunparse(parsed._replace(
            scheme=scheme,
            netloc=parsed.netloc.lower(),
            path=parsed.path or '/',
            fragment='',
        ))


class ChatValidator:

    @classmethod
    def validate_chat_id(cls, chat_id: Union[int, str]) -> int:
        """Parse a Telegram chat id.

        Group and channel ids are negative, user ids positive; zero is never
        a valid chat.
        """
        try:
            value = int(str(chat_id).strip())
        except ValueError as e:
            raise _invalid(f"Chat id must be an integer, got {chat_id!r}", "chat_id") from e

        if value == 0:
            raise _invalid("Chat id cannot be zero", "chat_id")
        return value
