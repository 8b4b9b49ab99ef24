"""
Chat application configuration.

This app provides the chat system with:
- Project, direct (1:1) and group chats
- Chat-scoped roles combined with system roles for group management
- Message replies, mentions, attachments and soft deletion
- Read tracking and unread counts
- In-process typing indicators
"""

from django.apps import AppConfig


class ChatConfig(AppConfig):
    """
    Configuration for the chat application.

    ready() builds the process-wide TypingTracker and the TypingService
    around it. chat.urls hands that service to the views.
    """

    default_auto_field = "django.db.models.BigAutoField"
    name = "chat"
    verbose_name = "Chat"

    typing_tracker = None
    typing_service = None

    def ready(self):
        from chat.constants import typing_shard_count, typing_ttl_seconds
        from chat.presence import TypingTracker
        from chat.services import TypingService

        self.typing_tracker = TypingTracker(
            ttl_seconds=typing_ttl_seconds(),
            shard_count=typing_shard_count(),
        )
        self.typing_service = TypingService(self.typing_tracker)
