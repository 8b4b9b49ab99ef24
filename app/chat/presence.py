"""
In-process typing presence.

TypingTracker keeps "who is typing in which chat" in memory. Entries are
advisory and short lived: each expires TTL seconds after its last signal.
There is no background timer; expired entries of a chat are swept when
that chat is read.

State per (chat_id, user_id):

    Absent --set(is_typing=True)--> Typing
    Typing --set(is_typing=True)--> Typing (timestamp refreshed)
    Typing --set(is_typing=False) or TTL elapsed--> Absent

Concurrency:
    Chats are spread over a fixed number of shards, each guarded by its own
    lock. Every read and write of a chat happens under its shard's lock, so
    concurrent set/clear/scan calls never lose updates or observe a
    half-swept chat. Unrelated chats rarely contend.

Lifetime:
    One tracker is created in ChatConfig.ready() and handed to TypingService,
    which the views receive at URL configuration time. The tracker is never
    reached through module globals. State is per process: with several
    worker processes each one sees only the signals it received.
"""

from __future__ import annotations

import threading
import time
from dataclasses import dataclass, field
from typing import Callable

from chat.constants import TYPING_CONFIG


@dataclass(frozen=True)
class TypingEntry:
    """A single typing signal."""

    user_id: int
    display_name: str
    last_signal: float


@dataclass
class _Shard:
    lock: threading.Lock = field(default_factory=threading.Lock)
    chats: dict[int, dict[int, TypingEntry]] = field(default_factory=dict)


class TypingTracker:
    """
    Sharded, lock-guarded map of typing signals with sweep-on-read expiry.

    Args:
        ttl_seconds: Lifetime of a signal. An entry is still reported when
            exactly ttl_seconds old and dropped once older.
        shard_count: Number of independently locked shards.
        clock: Zero-argument callable returning seconds. Defaults to
            time.time(), looked up on every call.
    """

    def __init__(
        self,
        ttl_seconds: float = TYPING_CONFIG.TTL_SECONDS,
        shard_count: int = TYPING_CONFIG.SHARD_COUNT,
        clock: Callable[[], float] | None = None,
    ):
        if ttl_seconds <= 0:
            raise ValueError("ttl_seconds must be positive")
        if shard_count < 1:
            raise ValueError("shard_count must be at least 1")
        self.ttl_seconds = ttl_seconds
        self._clock = clock
        self._shards = [_Shard() for _ in range(shard_count)]

    def _now(self) -> float:
        if self._clock is not None:
            return self._clock()
        return time.time()

    def _shard(self, chat_id: int) -> _Shard:
        return self._shards[hash(chat_id) % len(self._shards)]

    def set(
        self,
        chat_id: int,
        user_id: int,
        display_name: str,
        is_typing: bool = True,
    ) -> None:
        """Record (or refresh) a typing signal, or clear it."""
        now = self._now()
        shard = self._shard(chat_id)
        with shard.lock:
            if is_typing:
                shard.chats.setdefault(chat_id, {})[user_id] = TypingEntry(
                    user_id=user_id,
                    display_name=display_name,
                    last_signal=now,
                )
                return

            typists = shard.chats.get(chat_id)
            if typists is None:
                return
            typists.pop(user_id, None)
            if not typists:
                del shard.chats[chat_id]

    def active(self, chat_id: int, exclude_user_id: int | None = None) -> list[TypingEntry]:
        """
        Return current typists in a chat, sweeping expired entries.

        The result is a snapshot ordered by display name. It may be stale
        by the time the caller renders it.
        """
        now = self._now()
        shard = self._shard(chat_id)
        with shard.lock:
            typists = shard.chats.get(chat_id)
            if not typists:
                return []

            expired = [
                user_id
                for user_id, entry in typists.items()
                if now - entry.last_signal > self.ttl_seconds
            ]
            for user_id in expired:
                del typists[user_id]
            if not typists:
                del shard.chats[chat_id]
                return []

            snapshot = [e for e in typists.values() if e.user_id != exclude_user_id]

        return sorted(snapshot, key=lambda e: (e.display_name, e.user_id))

    def discard_chat(self, chat_id: int) -> None:
        """Forget every signal of a chat (used when the chat is deleted)."""
        shard = self._shard(chat_id)
        with shard.lock:
            shard.chats.pop(chat_id, None)

    def clear(self) -> None:
        for shard in self._shards:
            with shard.lock:
                shard.chats.clear()

    def __len__(self) -> int:
        """Number of stored entries, expired ones included until swept."""
        total = 0
        for shard in self._shards:
            with shard.lock:
                total += sum(len(typists) for typists in shard.chats.values())
        return total
