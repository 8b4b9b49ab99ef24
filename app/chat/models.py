"""
Chat system models.

This module defines the data models for the chat system supporting:
- Project chats, one per external project reference
- Direct (1:1) chats between exactly two users
- Group chats with chat-scoped roles

Models:
    Chat: Container for messages between members
    DirectChatPair: Helper for enforcing uniqueness of direct chats
    Membership: User membership in a chat with role, favorite flag and read cursor
    Message: Individual message within a chat

Design Decisions:
    - Uniqueness of project and direct chats is enforced by the database,
      so concurrent get-or-create calls converge on one row
    - Membership.last_read only moves forward (see ReadTrackingService)
    - Messages are soft deleted into tombstones; rows are never removed
      individually so ordering and reply references stay valid
    - Chat.updated_at is bumped on every new message and drives list ordering
"""

from __future__ import annotations

from django.conf import settings
from django.db import models
from django.db.models import F, Q
from django.utils import timezone

from chat.constants import MESSAGE_CONFIG
from core.models import BaseModel


class ChatKind(models.TextChoices):
    """
    Kind of chat.

    PROJECT: Attached to an external project; anyone opening it joins
    DIRECT: Exactly two members, at most one per unordered user pair
    GROUP: Named chat with an ADMIN creator and managed membership
    """

    PROJECT = "PROJECT", "Project"
    DIRECT = "DIRECT", "Direct message"
    GROUP = "GROUP", "Group"


class ChatRole(models.TextChoices):
    """
    Role within a chat.

    Only meaningful for GROUP chats; members of PROJECT and DIRECT chats
    are all MEMBER.

    ADMIN: Can edit the group; can never be removed from it
    MANAGER: Can edit the group
    MEMBER: Can read and send messages
    """

    ADMIN = "ADMIN", "Admin"
    MANAGER = "MANAGER", "Manager"
    MEMBER = "MEMBER", "Member"


class Chat(BaseModel):
    """
    A chat of kind PROJECT, DIRECT or GROUP.

    Fields:
        kind: PROJECT, DIRECT or GROUP
        name: Display name (project and group chats)
        image: Optional image URL (group chats)
        project_ref: External project identifier (project chats only)
        created_at / updated_at: From BaseModel; updated_at moves on each message

    Constraints:
        - One PROJECT chat per project_ref
    """

    kind = models.CharField(
        max_length=10,
        choices=ChatKind.choices,
        db_index=True,
        help_text="Kind of chat",
    )
    name = models.CharField(
        max_length=200,
        blank=True,
        default="",
        help_text="Display name (empty for direct chats)",
    )
    image = models.CharField(
        max_length=500,
        blank=True,
        default="",
        help_text="Image URL shown for group chats",
    )
    project_ref = models.CharField(
        max_length=100,
        null=True,
        blank=True,
        db_index=True,
        help_text="External project identifier for project chats",
    )

    class Meta:
        ordering = ["-updated_at"]
        constraints = [
            models.UniqueConstraint(
                fields=["project_ref"],
                condition=Q(kind="PROJECT"),
                name="unique_project_chat",
            ),
        ]

    def __str__(self) -> str:
        return f"{self.get_kind_display()} chat {self.pk}: {self.name or '-'}"

    @property
    def is_group(self) -> bool:
        return self.kind == ChatKind.GROUP


class DirectChatPair(models.Model):
    """
    Canonical (lower, higher) user pair for a direct chat.

    The unique constraint on the pair is what makes concurrent
    get-or-create of the same direct chat converge on a single row.
    """

    chat = models.OneToOneField(
        Chat,
        on_delete=models.CASCADE,
        related_name="direct_pair",
    )
    user_lower = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.CASCADE,
        related_name="+",
    )
    user_higher = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.CASCADE,
        related_name="+",
    )

    class Meta:
        constraints = [
            models.UniqueConstraint(
                fields=["user_lower", "user_higher"],
                name="unique_direct_chat_pair",
            ),
            models.CheckConstraint(
                condition=Q(user_lower_id__lt=F("user_higher_id")),
                name="direct_pair_lower_less_than_higher",
            ),
        ]

    def __str__(self) -> str:
        return f"DirectChatPair({self.user_lower_id}, {self.user_higher_id})"

    @staticmethod
    def canonical(user_a_id: int, user_b_id: int) -> tuple[int, int]:
        """Return the pair ordered (lower, higher)."""
        return (user_a_id, user_b_id) if user_a_id < user_b_id else (user_b_id, user_a_id)


class Membership(models.Model):
    """
    A user's membership in a chat.

    Fields:
        chat / user: Unique pair
        role: Chat-scoped role (see ChatRole)
        is_favorite: Pinned to the top of the user's chat list
        last_read: Read cursor; messages created after it are unread
        joined_at: When the membership was created
    """

    chat = models.ForeignKey(
        Chat,
        on_delete=models.CASCADE,
        related_name="memberships",
    )
    user = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.CASCADE,
        related_name="chat_memberships",
    )
    role = models.CharField(
        max_length=10,
        choices=ChatRole.choices,
        default=ChatRole.MEMBER,
    )
    is_favorite = models.BooleanField(default=False)
    last_read = models.DateTimeField(
        default=timezone.now,
        help_text="Messages created after this instant count as unread",
    )
    joined_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        ordering = ["joined_at", "id"]
        constraints = [
            models.UniqueConstraint(
                fields=["chat", "user"],
                name="unique_chat_membership",
            ),
        ]
        indexes = [
            models.Index(fields=["user", "is_favorite"], name="chat_membership_user_fav_idx"),
        ]

    def __str__(self) -> str:
        return f"Membership(chat={self.chat_id}, user={self.user_id}, role={self.role})"


class Message(models.Model):
    """
    A message in a chat.

    Fields:
        chat: Owning chat
        author: Sender
        content: Text (the tombstone placeholder once deleted)
        attachments: Ordered list of opaque descriptors {url, name, size, type}
        mentions: Raw "@word" captures, in order, duplicates kept
        reply_to: Optional message in the same chat
        is_edited: Set by the first edit, never cleared
        created_at: Server receipt time, immutable
        deleted_at: Tombstone timestamp
    """

    chat = models.ForeignKey(
        Chat,
        on_delete=models.CASCADE,
        related_name="messages",
    )
    author = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.CASCADE,
        related_name="chat_messages",
    )
    content = models.TextField(blank=True, default="")
    attachments = models.JSONField(default=list, blank=True)
    mentions = models.JSONField(default=list, blank=True)
    reply_to = models.ForeignKey(
        "self",
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name="replies",
    )
    is_edited = models.BooleanField(default=False)
    created_at = models.DateTimeField(default=timezone.now, db_index=True, editable=False)
    deleted_at = models.DateTimeField(null=True, blank=True)

    class Meta:
        ordering = ["created_at", "id"]
        indexes = [
            models.Index(fields=["chat", "created_at"], name="chat_message_chat_created_idx"),
        ]

    def __str__(self) -> str:
        return f"Message {self.pk} in chat {self.chat_id}"

    @property
    def is_deleted(self) -> bool:
        return self.deleted_at is not None

    def get_display_content(self) -> str:
        """Content suitable for display; the placeholder for tombstones."""
        if self.is_deleted:
            return MESSAGE_CONFIG.TOMBSTONE_CONTENT
        return self.content
