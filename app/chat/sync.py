"""
Polling sync for chat clients.

Clients stay current by polling; there is no push channel. Two pieces live
here:

SyncService.snapshot
    Server side. Bundles the latest history page, the current typists and
    the server clock into one response so a client needs a single request
    per poll interval.

MessageReconciler
    Client side. Merges polled pages (serialized messages, as returned by
    the API) into a local view keyed by message id. A later copy replaces
    the stored one, so edits and tombstones show up on the next poll, and
    re-delivering a page changes nothing. A message only moves forward
    (active, edited, deleted): a stale copy from a slow response never
    replaces a tombstone or an edit. The view is ordered by
    (created_at, id), never by arrival order.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from typing import TYPE_CHECKING, Any

from django.utils import timezone
from django.utils.dateparse import parse_datetime

from chat.constants import SYNC_CONFIG
from chat.services import MessageService
from core.services import BaseService, ServiceResult

if TYPE_CHECKING:
    from authentication.models import User
    from chat.services import TypingService


class SyncService(BaseService):
    """Assemble a poll response for one chat."""

    @classmethod
    def snapshot(
        cls,
        user: User,
        chat_id: int,
        typing_service: TypingService,
        limit: int | None = None,
    ) -> ServiceResult[dict[str, Any]]:
        """
        Returns:
            ServiceResult with {messages, typing_users, server_time,
            poll_interval}; membership failures as from get_messages.
        """
        messages = MessageService.get_messages(user, chat_id, limit=limit)
        if not messages.success:
            return messages

        typing = typing_service.get_typing_users(user, chat_id)
        return ServiceResult.success(
            {
                "messages": messages.data,
                "typing_users": typing.data if typing.success else [],
                "server_time": timezone.now(),
                "poll_interval": SYNC_CONFIG.POLL_INTERVAL_SECONDS,
            }
        )


@dataclass
class MergeResult:
    """Ids touched by one merge."""

    added: list[int] = field(default_factory=list)
    changed: list[int] = field(default_factory=list)

    @property
    def is_noop(self) -> bool:
        return not self.added and not self.changed


def _sort_key(message: dict[str, Any]) -> tuple[datetime, int]:
    created_at = message.get("created_at")
    if isinstance(created_at, str):
        created_at = parse_datetime(created_at)
    if created_at is None:
        raise ValueError(f"Message {message.get('id')} has no valid created_at")
    return created_at, message["id"]


def _stage(message: dict[str, Any]) -> int:
    if message.get("is_deleted") or message.get("deleted_at"):
        return 2
    return 1 if message.get("is_edited") else 0


class MessageReconciler:
    """
    Local message view of one chat, fed by polled pages.

    Usage:
        reconciler = MessageReconciler()
        result = reconciler.merge(response.json()["messages"])
        render(reconciler.messages)
    """

    def __init__(self, messages: list[dict[str, Any]] | None = None):
        self._by_id: dict[int, dict[str, Any]] = {}
        if messages:
            self.merge(messages)

    def merge(self, messages: list[dict[str, Any]]) -> MergeResult:
        """Fold a page into the view, replacing stored copies by id unless they are newer."""
        result = MergeResult()
        for message in messages:
            _sort_key(message)
            message_id = message["id"]
            current = self._by_id.get(message_id)
            if current is None:
                result.added.append(message_id)
            elif current == message or _stage(message) < _stage(current):
                continue
            else:
                result.changed.append(message_id)
            self._by_id[message_id] = dict(message)
        return result

    @property
    def messages(self) -> list[dict[str, Any]]:
        return sorted(self._by_id.values(), key=_sort_key)

    @property
    def oldest_id(self) -> int | None:
        """Cursor for loading the previous page with ?before=."""
        ordered = self.messages
        return ordered[0]["id"] if ordered else None

    def __len__(self) -> int:
        return len(self._by_id)

    def __contains__(self, message_id: int) -> bool:
        return message_id in self._by_id
