"""
Constants and configuration for chat module features.

This module centralizes configuration values for:
- Error codes returned by chat services
- Message operations (content limits, tombstones, history paging, search)
- Attachment descriptors and uploads
- Typing presence and client polling

Values backed by a Django setting are read through the helpers at the
bottom of the module so tests can override them with `settings` fixtures.

Import example:
    from chat.constants import ERROR_CODES, MESSAGE_CONFIG
"""

from typing import Final

from django.conf import settings


# =============================================================================
# Error Codes
# =============================================================================


class ERROR_CODES:
    """Machine-readable error codes carried by ServiceResult.error_code."""

    NOT_A_MEMBER: Final[str] = "NOT_A_MEMBER"
    NOT_FOUND: Final[str] = "NOT_FOUND"
    FORBIDDEN: Final[str] = "FORBIDDEN"
    VALIDATION_ERROR: Final[str] = "VALIDATION_ERROR"


# =============================================================================
# Message Configuration
# =============================================================================


class MESSAGE_CONFIG:
    """Configuration for message operations."""

    # Content limits
    MAX_CONTENT_LENGTH: Final[int] = 10000  # Characters

    # Placeholder stored in place of the content of a deleted message
    TOMBSTONE_CONTENT: Final[str] = "[Message deleted]"

    # "@" followed by one or more ASCII word characters; the capture is stored raw
    MENTION_PATTERN: Final[str] = r"@(\w+)"

    # History paging
    DEFAULT_PAGE_SIZE: Final[int] = 50
    MAX_PAGE_SIZE: Final[int] = 100

    # Search settings
    SEARCH_MAX_RESULTS: Final[int] = 50

    # Cap for the cross-chat "new since" feed
    UNREAD_FEED_MAX_RESULTS: Final[int] = 100

    # Length of the reply preview snippet
    REPLY_PREVIEW_LENGTH: Final[int] = 120


# =============================================================================
# Attachment Configuration
# =============================================================================


class ATTACHMENT_CONFIG:
    """
    Configuration for message attachments.

    Attachments are opaque descriptors ({url, name, size, type}) produced by
    the upload endpoint or any external storage. Messages store them as-is.
    """

    MAX_ATTACHMENTS_PER_MESSAGE: Final[int] = 10
    REQUIRED_KEYS: Final[tuple] = ("url", "name")

    # Storage path prefix for uploaded files
    UPLOAD_PREFIX: Final[str] = "chat"
    MAX_UPLOAD_BYTES: Final[int] = 25 * 1024 * 1024  # 25MB
    MAX_FILENAME_LENGTH: Final[int] = 150


# =============================================================================
# Typing Presence Configuration
# =============================================================================


class TYPING_CONFIG:
    """Configuration for the in-process typing tracker."""

    # Seconds after the last signal before a typist is dropped
    TTL_SECONDS: Final[float] = 5.0

    # Number of independently locked shards
    SHARD_COUNT: Final[int] = 16


# =============================================================================
# Sync Configuration
# =============================================================================


class SYNC_CONFIG:
    """Configuration advertised to polling clients."""

    POLL_INTERVAL_SECONDS: Final[int] = 3


# =============================================================================
# Settings-backed accessors
# =============================================================================


def typing_ttl_seconds() -> float:
    return float(getattr(settings, "CHAT_TYPING_TTL_SECONDS", TYPING_CONFIG.TTL_SECONDS))


def typing_shard_count() -> int:
    return int(getattr(settings, "CHAT_TYPING_SHARDS", TYPING_CONFIG.SHARD_COUNT))


def message_page_size() -> int:
    return int(
        getattr(settings, "CHAT_MESSAGE_PAGE_SIZE", MESSAGE_CONFIG.DEFAULT_PAGE_SIZE)
    )


def message_max_page_size() -> int:
    return int(
        getattr(settings, "CHAT_MESSAGE_MAX_PAGE_SIZE", MESSAGE_CONFIG.MAX_PAGE_SIZE)
    )


def search_max_results() -> int:
    return int(
        getattr(settings, "CHAT_SEARCH_MAX_RESULTS", MESSAGE_CONFIG.SEARCH_MAX_RESULTS)
    )


def attachment_max_bytes() -> int:
    return int(
        getattr(settings, "CHAT_ATTACHMENT_MAX_BYTES", ATTACHMENT_CONFIG.MAX_UPLOAD_BYTES)
    )
