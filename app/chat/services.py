"""
Chat service layer.

This module contains the business logic for the chat system:
- ChatDirectoryService: Chat lifecycle, membership, favorites, chat list and info
- MessageService: Send, edit, soft delete and history paging
- ReadTrackingService: Read cursors and unread counts
- MessageSearchService: Substring search within one chat
- AttachmentService: Attachment descriptors (validation, upload, per-chat listing)
- TypingService: Membership-checked facade over the in-process TypingTracker

All methods return ServiceResult. Expected failures carry one of the codes
in chat.constants.ERROR_CODES:
    NOT_A_MEMBER     caller has no membership row for the chat
    NOT_FOUND        chat, message or user does not exist
    FORBIDDEN        caller lacks the role or ownership for a mutation
    VALIDATION_ERROR malformed input or a rule such as "chat admins stay"

Concurrency notes:
    - Direct and project chats are created under database unique constraints;
      a losing concurrent insert re-queries and returns the winner's chat
    - Edit and delete are single conditional UPDATEs filtered on authorship,
      so no concurrent write can slip between the check and the write
    - mark_as_read only ever moves the read cursor forward
"""

from __future__ import annotations

import mimetypes
import os
import re
import uuid
from collections import defaultdict
from dataclasses import dataclass
from datetime import datetime
from typing import TYPE_CHECKING, Any

from django.core.files.storage import default_storage
from django.db import IntegrityError, transaction
from django.db.models import Count, F, OuterRef, Q, Subquery
from django.utils import timezone
from django.utils.text import get_valid_filename

from authentication.models import User
from chat.authorization import ChatAuthorizationService
from chat.constants import (
    ATTACHMENT_CONFIG,
    ERROR_CODES,
    MESSAGE_CONFIG,
    attachment_max_bytes,
    message_max_page_size,
    message_page_size,
    search_max_results,
)
from chat.models import Chat, ChatKind, ChatRole, DirectChatPair, Membership, Message
from chat.permissions import can_delete_group, can_edit_group, is_removable
from core.services import BaseService, ServiceResult

if TYPE_CHECKING:
    from django.core.files.uploadedfile import UploadedFile

    from chat.presence import TypingEntry, TypingTracker


MENTION_RE = re.compile(MESSAGE_CONFIG.MENTION_PATTERN, re.ASCII)


def extract_mentions(content: str) -> list[str]:
    """Raw "@word" captures in order of appearance, duplicates kept."""
    return MENTION_RE.findall(content or "")


# =============================================================================
# Read models
# =============================================================================


@dataclass
class ChatSummary:
    """One row of a user's chat list."""

    chat: Chat
    membership: Membership
    members: list[Membership]
    last_message: Message | None
    unread_count: int

    @property
    def activity_at(self) -> datetime:
        if self.last_message is not None:
            return self.last_message.created_at
        return self.chat.updated_at


@dataclass
class ChatInfo:
    """A chat as seen by one member, with what that member may do to it."""

    chat: Chat
    membership: Membership
    members: list[Membership]
    can_edit: bool
    can_delete: bool

    @property
    def user_role(self) -> str:
        return self.membership.role

    @property
    def user_system_role(self) -> str:
        return self.membership.user.system_role


# =============================================================================
# Chat Directory
# =============================================================================


class ChatDirectoryService(BaseService):
    """
    Chat lifecycle and membership.

    Direct and project chats are get-or-create: calling twice, in either
    order or concurrently, yields the same chat. The caller is always a
    member of the returned chat, even when an older chat row was missing
    their membership.
    """

    @classmethod
    def get_or_create_direct_chat(cls, user: User, other_user_id: int) -> ServiceResult[Chat]:
        """
        Get or create the direct chat between the caller and another user.

        Args:
            user: The caller
            other_user_id: ID of the other participant

        Returns:
            ServiceResult with the Chat, or failure:
                VALIDATION_ERROR when chatting with yourself
                NOT_FOUND when the other user does not exist or is inactive
        """
        if other_user_id == user.pk:
            return ServiceResult.failure(
                "Cannot start a direct chat with yourself",
                ERROR_CODES.VALIDATION_ERROR,
            )

        other = User.objects.filter(pk=other_user_id, is_active=True).first()
        if other is None:
            return ServiceResult.failure("User not found", ERROR_CODES.NOT_FOUND)

        lower, higher = DirectChatPair.canonical(user.pk, other.pk)
        chat = cls._find_direct(lower, higher)

        if chat is None:
            try:
                chat = cls._create_direct(lower, higher)
                cls.get_logger().info(
                    f"Created direct chat {chat.id} between users {lower} and {higher}"
                )
            except IntegrityError:
                # Lost the race to a concurrent create; the winner is committed
                chat = cls._find_direct(lower, higher)
                if chat is None:
                    raise
                cls.get_logger().info(
                    f"Direct chat {chat.id} for users {lower}/{higher} created concurrently"
                )

        cls._ensure_member(chat, user)
        return ServiceResult.success(chat)

    @classmethod
    def _find_direct(cls, lower: int, higher: int) -> Chat | None:
        return Chat.objects.filter(
            kind=ChatKind.DIRECT,
            direct_pair__user_lower_id=lower,
            direct_pair__user_higher_id=higher,
        ).first()

    @classmethod
    def _create_direct(cls, lower: int, higher: int) -> Chat:
        with transaction.atomic():
            chat = Chat.objects.create(kind=ChatKind.DIRECT)
            DirectChatPair.objects.create(
                chat=chat,
                user_lower_id=lower,
                user_higher_id=higher,
            )
            Membership.objects.bulk_create(
                [
                    Membership(chat=chat, user_id=lower),
                    Membership(chat=chat, user_id=higher),
                ]
            )
        return chat

    @classmethod
    def get_or_create_project_chat(
        cls,
        user: User,
        project_ref: str,
        project_name: str | None = None,
    ) -> ServiceResult[Chat]:
        """
        Get or create the chat of an external project.

        The chat is named "Chat: <project name>" (the reference stands in
        when no name is given). Opening a project chat joins it.
        """
        validation = cls.validate_required(project_ref=project_ref)
        if validation is not None:
            return validation
        project_ref = project_ref.strip()

        chat = cls._find_project(project_ref)
        if chat is None:
            name = f"Chat: {(project_name or '').strip() or project_ref}"
            try:
                chat = cls._create_project(project_ref, name, user)
                cls.get_logger().info(
                    f"Created project chat {chat.id} for project {project_ref}"
                )
            except IntegrityError:
                chat = cls._find_project(project_ref)
                if chat is None:
                    raise
                cls.get_logger().info(
                    f"Project chat {chat.id} for project {project_ref} created concurrently"
                )

        cls._ensure_member(chat, user)
        return ServiceResult.success(chat)

    @classmethod
    def _find_project(cls, project_ref: str) -> Chat | None:
        return Chat.objects.filter(kind=ChatKind.PROJECT, project_ref=project_ref).first()

    @classmethod
    def _create_project(cls, project_ref: str, name: str, user: User) -> Chat:
        with transaction.atomic():
            chat = Chat.objects.create(
                kind=ChatKind.PROJECT,
                name=name[:200],
                project_ref=project_ref,
            )
            Membership.objects.create(chat=chat, user=user)
        return chat

    @classmethod
    def _ensure_member(cls, chat: Chat, user: User) -> Membership:
        membership, created = Membership.objects.get_or_create(chat=chat, user=user)
        if created:
            cls.get_logger().info(f"Added user {user.pk} to chat {chat.id}")
        return membership

    @classmethod
    def create_group_chat(
        cls,
        user: User,
        name: str,
        member_ids: list[int] | None = None,
    ) -> ServiceResult[Chat]:
        """
        Create a group chat.

        The creator becomes the chat's ADMIN; every other listed user joins
        as MEMBER. Duplicate IDs and the creator's own ID are ignored.

        Returns:
            ServiceResult with the Chat, or VALIDATION_ERROR for a blank name
            or unknown/inactive member IDs.
        """
        validation = cls.validate_required(name=name)
        if validation is not None:
            return validation
        name = name.strip()

        member_result = cls._resolve_users(member_ids or [], exclude=user.pk)
        if not member_result.success:
            return member_result
        members = member_result.data

        with cls.atomic():
            chat = Chat.objects.create(kind=ChatKind.GROUP, name=name)
            Membership.objects.bulk_create(
                [Membership(chat=chat, user=user, role=ChatRole.ADMIN)]
                + [Membership(chat=chat, user=member, role=ChatRole.MEMBER) for member in members]
            )

        cls.get_logger().info(
            f"User {user.pk} created group chat {chat.id} with {len(members) + 1} members"
        )
        return ServiceResult.success(chat)

    @classmethod
    def _resolve_users(
        cls,
        user_ids: list[int],
        exclude: int | None = None,
        field_name: str = "member_ids",
    ) -> ServiceResult[list[User]]:
        ids = [uid for uid in dict.fromkeys(user_ids) if uid != exclude]
        users = list(User.objects.filter(pk__in=ids, is_active=True))
        missing = set(ids) - {u.pk for u in users}
        if missing:
            return ServiceResult.failure(
                "Some users do not exist",
                ERROR_CODES.VALIDATION_ERROR,
                errors={field_name: [f"Unknown user ids: {sorted(missing)}"]},
            )
        return ServiceResult.success(users)

    @classmethod
    def update_group_chat(
        cls,
        user: User,
        chat_id: int,
        name: str | None = None,
        image: str | None = None,
        add_member_ids: list[int] | None = None,
        remove_member_ids: list[int] | None = None,
    ) -> ServiceResult[Chat]:
        """
        Rename, change the image of, or add/remove members of a group chat.

        Authorized when the caller's system role is SUPERADMIN/ADMIN or
        their chat role is ADMIN/MANAGER. Adding existing members is a
        no-op. Removing a chat ADMIN is always rejected, whoever asks, and
        the whole update is then left unapplied.

        Returns:
            ServiceResult with the updated Chat, or failure:
                NOT_FOUND, NOT_A_MEMBER, FORBIDDEN, VALIDATION_ERROR
        """
        chat_result = ChatAuthorizationService.get_chat(chat_id)
        if not chat_result.success:
            return chat_result
        chat = chat_result.data

        membership = Membership.objects.filter(chat=chat, user=user).first()
        chat_role = membership.role if membership else None
        if not can_edit_group(user.system_role, chat_role):
            if membership is None:
                return ServiceResult.failure(
                    "You are not a member of this chat",
                    ERROR_CODES.NOT_A_MEMBER,
                )
            return ServiceResult.failure(
                "Only chat admins and managers can edit this group",
                ERROR_CODES.FORBIDDEN,
            )

        if not chat.is_group:
            return ServiceResult.failure(
                "Only group chats can be edited",
                ERROR_CODES.VALIDATION_ERROR,
            )

        if name is not None and not name.strip():
            return ServiceResult.failure(
                "Group name cannot be blank",
                ERROR_CODES.VALIDATION_ERROR,
                errors={"name": ["This field may not be blank."]},
            )

        remove_ids = list(dict.fromkeys(remove_member_ids or []))
        if remove_ids:
            protected = Membership.objects.filter(
                chat=chat, user_id__in=remove_ids
            ).exclude(role__in=[r for r in ChatRole.values if is_removable(r)])
            if protected.exists():
                return ServiceResult.failure(
                    "Chat admins cannot be removed from the group",
                    ERROR_CODES.VALIDATION_ERROR,
                    errors={"remove_member_ids": ["Chat admins cannot be removed."]},
                )

        add_result = cls._resolve_users(add_member_ids or [], field_name="add_member_ids")
        if not add_result.success:
            return add_result

        with cls.atomic():
            update_fields = []
            if name is not None:
                chat.name = name.strip()
                update_fields.append("name")
            if image is not None:
                chat.image = image
                update_fields.append("image")
            if update_fields:
                chat.save(update_fields=update_fields + ["updated_at"])

            existing = set(
                Membership.objects.filter(chat=chat).values_list("user_id", flat=True)
            )
            new_members = [
                Membership(chat=chat, user=member, role=ChatRole.MEMBER)
                for member in add_result.data
                if member.pk not in existing and member.pk not in remove_ids
            ]
            Membership.objects.bulk_create(new_members)

            removed = 0
            if remove_ids:
                removed, _ = Membership.objects.filter(
                    chat=chat, user_id__in=remove_ids
                ).delete()

        cls.get_logger().info(
            f"User {user.pk} updated group chat {chat.id}: fields={update_fields}, "
            f"added={len(new_members)}, removed={removed}"
        )
        return ServiceResult.success(chat)

    @classmethod
    def delete_group_chat(cls, user: User, chat_id: int) -> ServiceResult[int]:
        """
        Delete a group chat with all its messages and memberships.

        Only system SUPERADMIN/ADMIN may delete. Messages go first, then
        memberships, then the chat itself, all in one transaction.

        Returns:
            ServiceResult with the deleted chat's ID
        """
        chat_result = ChatAuthorizationService.get_chat(chat_id)
        if not chat_result.success:
            return chat_result
        chat = chat_result.data

        if not can_delete_group(user.system_role):
            return ServiceResult.failure(
                "Only administrators can delete group chats",
                ERROR_CODES.FORBIDDEN,
            )
        if not chat.is_group:
            return ServiceResult.failure(
                "Only group chats can be deleted",
                ERROR_CODES.VALIDATION_ERROR,
            )

        with cls.atomic():
            messages, _ = Message.objects.filter(chat=chat).delete()
            Membership.objects.filter(chat=chat).delete()
            chat.delete()

        cls.get_logger().info(
            f"User {user.pk} deleted group chat {chat_id} ({messages} messages)"
        )
        return ServiceResult.success(chat_id)

    @classmethod
    def toggle_favorite(cls, user: User, chat_id: int) -> ServiceResult[Membership]:
        """Flip the caller's favorite flag on a chat."""
        with cls.atomic():
            membership = (
                Membership.objects.select_for_update()
                .filter(chat_id=chat_id, user=user)
                .first()
            )
            if membership is None:
                return ServiceResult.failure(
                    "You are not a member of this chat",
                    ERROR_CODES.NOT_A_MEMBER,
                )
            membership.is_favorite = not membership.is_favorite
            membership.save(update_fields=["is_favorite"])

        return ServiceResult.success(membership)

    @classmethod
    def list_user_chats(cls, user: User) -> ServiceResult[list[ChatSummary]]:
        """
        All chats of the caller, favorites first, then most recent activity.

        Activity is the newest message's time, or the chat's updated_at
        when it has no messages. Unread counts are computed here, on read.
        """
        latest = (
            Message.objects.filter(chat_id=OuterRef("chat_id"))
            .order_by("-created_at", "-id")
            .values("id")[:1]
        )
        memberships = list(
            Membership.objects.filter(user=user)
            .select_related("chat", "user")
            .annotate(last_message_id=Subquery(latest))
        )
        chat_ids = [m.chat_id for m in memberships]

        last_messages = Message.objects.select_related("author").in_bulk(
            [m.last_message_id for m in memberships if m.last_message_id]
        )
        unread = ReadTrackingService.unread_counts(user, chat_ids)

        members_by_chat: dict[int, list[Membership]] = defaultdict(list)
        for member in Membership.objects.filter(chat_id__in=chat_ids).select_related("user"):
            members_by_chat[member.chat_id].append(member)

        summaries = [
            ChatSummary(
                chat=m.chat,
                membership=m,
                members=members_by_chat[m.chat_id],
                last_message=last_messages.get(m.last_message_id),
                unread_count=unread.get(m.chat_id, 0),
            )
            for m in memberships
        ]
        summaries.sort(key=lambda s: (s.activity_at, s.chat.id), reverse=True)
        summaries.sort(key=lambda s: not s.membership.is_favorite)
        return ServiceResult.success(summaries)

    @classmethod
    def get_chat_info(cls, user: User, chat_id: int) -> ServiceResult[ChatInfo]:
        """
        Chat details plus the caller's roles and what they may do.

        can_edit/can_delete are only ever true for group chats.
        """
        auth = ChatAuthorizationService.require_membership(user, chat_id)
        if not auth.success:
            return auth
        membership = auth.data
        membership.user = user
        chat = membership.chat

        members = list(Membership.objects.filter(chat=chat).select_related("user"))
        return ServiceResult.success(
            ChatInfo(
                chat=chat,
                membership=membership,
                members=members,
                can_edit=chat.is_group and can_edit_group(user.system_role, membership.role),
                can_delete=chat.is_group and can_delete_group(user.system_role),
            )
        )


# =============================================================================
# Message Store
# =============================================================================


class MessageService(BaseService):
    """
    Message creation, editing, soft deletion and history.

    Messages are never reordered or removed individually. Deleting turns a
    message into a tombstone: content becomes the placeholder, attachments
    and mentions are dropped, and the row keeps its position so replies
    pointing at it stay valid. Deleting a tombstone again succeeds without
    changing anything.
    """

    @classmethod
    def send_message(
        cls,
        user: User,
        chat_id: int,
        content: str,
        attachments: list[dict[str, Any]] | None = None,
        reply_to_id: int | None = None,
    ) -> ServiceResult[Message]:
        """
        Post a message to a chat.

        Mentions are extracted from the content as raw "@word" tokens. The
        chat's updated_at is bumped to the message's creation time.
        Content is stored exactly as given; whitespace-only content counts
        as empty.

        Returns:
            ServiceResult with the Message (author and reply_to joined), or:
                NOT_FOUND / NOT_A_MEMBER for the chat
                VALIDATION_ERROR for empty, oversized or malformed input
        """
        auth = ChatAuthorizationService.require_membership(user, chat_id)
        if not auth.success:
            return auth
        chat = auth.data.chat

        content = content or ""
        attachments = attachments or []

        if not content.strip() and not attachments:
            return ServiceResult.failure(
                "Message must have content or attachments",
                ERROR_CODES.VALIDATION_ERROR,
                errors={"content": ["This field may not be blank."]},
            )
        if len(content) > MESSAGE_CONFIG.MAX_CONTENT_LENGTH:
            return ServiceResult.failure(
                "Message is too long",
                ERROR_CODES.VALIDATION_ERROR,
                errors={
                    "content": [
                        f"Ensure this field has no more than "
                        f"{MESSAGE_CONFIG.MAX_CONTENT_LENGTH} characters."
                    ]
                },
            )

        attachment_errors = AttachmentService.validate_descriptors(attachments)
        if attachment_errors:
            return ServiceResult.failure(
                "Invalid attachments",
                ERROR_CODES.VALIDATION_ERROR,
                errors={"attachments": attachment_errors},
            )

        reply_to = None
        if reply_to_id is not None:
            reply_to = Message.objects.filter(pk=reply_to_id, chat=chat).first()
            if reply_to is None:
                return ServiceResult.failure(
                    "Replied-to message is not in this chat",
                    ERROR_CODES.VALIDATION_ERROR,
                    errors={"reply_to_id": ["Message not found in this chat."]},
                )

        with cls.atomic():
            message = Message.objects.create(
                chat=chat,
                author=user,
                content=content,
                attachments=attachments,
                mentions=extract_mentions(content),
                reply_to=reply_to,
            )
            # .update() skips auto_now, so the timestamp is passed explicitly
            Chat.objects.filter(pk=chat.pk).update(updated_at=message.created_at)

        cls.get_logger().info(
            f"User {user.pk} sent message {message.id} to chat {chat.id}"
        )
        return ServiceResult.success(cls._load(message.pk))

    @classmethod
    def _load(cls, message_id: int) -> Message:
        return Message.objects.select_related("author", "reply_to__author").get(pk=message_id)

    @classmethod
    def _own_message_filter(cls, message_id: int, chat_id: int | None) -> dict[str, Any]:
        filters: dict[str, Any] = {"pk": message_id}
        if chat_id is not None:
            filters["chat_id"] = chat_id
        return filters

    @classmethod
    def _explain_miss(cls, user: User, filters: dict[str, Any]) -> ServiceResult:
        """Turn a conditional update that matched nothing into the right error."""
        message = Message.objects.filter(**filters).first()
        if message is not None and message.author_id != user.pk:
            return ServiceResult.failure(
                "Only the author can modify this message",
                ERROR_CODES.FORBIDDEN,
            )
        return ServiceResult.failure("Message not found", ERROR_CODES.NOT_FOUND)

    @classmethod
    def edit_message(
        cls,
        user: User,
        message_id: int,
        content: str,
        chat_id: int | None = None,
    ) -> ServiceResult[Message]:
        """
        Replace the content of one of the caller's messages.

        A single UPDATE filtered on id, author and not-deleted performs both
        the authorship check and the write. Mentions are re-extracted from
        the new content. created_at and author never change. When chat_id
        is given, a message of another chat counts as missing.

        Returns:
            ServiceResult with the edited Message, or:
                FORBIDDEN when the message belongs to someone else
                NOT_FOUND when it does not exist or is already deleted
                VALIDATION_ERROR for blank or oversized content
        """
        content = content or ""
        if not content.strip():
            return ServiceResult.failure(
                "Content cannot be blank",
                ERROR_CODES.VALIDATION_ERROR,
                errors={"content": ["This field may not be blank."]},
            )
        if len(content) > MESSAGE_CONFIG.MAX_CONTENT_LENGTH:
            return ServiceResult.failure(
                "Message is too long",
                ERROR_CODES.VALIDATION_ERROR,
            )

        filters = cls._own_message_filter(message_id, chat_id)
        updated = Message.objects.filter(
            **filters,
            author=user,
            deleted_at__isnull=True,
        ).update(
            content=content,
            mentions=extract_mentions(content),
            is_edited=True,
        )
        if not updated:
            return cls._explain_miss(user, filters)

        cls.get_logger().info(f"User {user.pk} edited message {message_id}")
        return ServiceResult.success(cls._load(message_id))

    @classmethod
    def delete_message(
        cls,
        user: User,
        message_id: int,
        chat_id: int | None = None,
    ) -> ServiceResult[Message]:
        """
        Soft delete one of the caller's messages.

        Deleting an already deleted message of your own is a successful
        no-op returning the existing tombstone. is_edited is preserved.

        Returns:
            ServiceResult with the tombstone Message, or:
                FORBIDDEN when the message belongs to someone else
                NOT_FOUND when it does not exist
        """
        filters = cls._own_message_filter(message_id, chat_id)
        updated = Message.objects.filter(
            **filters,
            author=user,
            deleted_at__isnull=True,
        ).update(
            deleted_at=timezone.now(),
            content=MESSAGE_CONFIG.TOMBSTONE_CONTENT,
            attachments=[],
            mentions=[],
        )
        if updated:
            cls.get_logger().info(f"User {user.pk} deleted message {message_id}")
            return ServiceResult.success(cls._load(message_id))

        if Message.objects.filter(**filters, author=user, deleted_at__isnull=False).exists():
            return ServiceResult.success(cls._load(message_id))
        return cls._explain_miss(user, filters)

    @classmethod
    def get_messages(
        cls,
        user: User,
        chat_id: int,
        limit: int | None = None,
        before_message_id: int | None = None,
    ) -> ServiceResult[list[Message]]:
        """
        A page of chat history, oldest first.

        Without before_message_id this is the newest page. With it, the
        page holds the messages strictly older than that message, ordered
        by (created_at, id). Tombstones are included with placeholder
        content. limit is clamped to [1, CHAT_MESSAGE_MAX_PAGE_SIZE].
        """
        auth = ChatAuthorizationService.require_membership(user, chat_id)
        if not auth.success:
            return auth

        limit = message_page_size() if limit is None else limit
        limit = max(1, min(limit, message_max_page_size()))

        queryset = Message.objects.filter(chat_id=chat_id).select_related(
            "author", "reply_to__author"
        )

        if before_message_id is not None:
            anchor = (
                Message.objects.filter(pk=before_message_id, chat_id=chat_id)
                .values("created_at", "id")
                .first()
            )
            if anchor is None:
                return ServiceResult.failure(
                    "Message not found in this chat",
                    ERROR_CODES.NOT_FOUND,
                )
            queryset = queryset.filter(
                Q(created_at__lt=anchor["created_at"])
                | Q(created_at=anchor["created_at"], id__lt=anchor["id"])
            )

        page = list(queryset.order_by("-created_at", "-id")[:limit])
        page.reverse()
        return ServiceResult.success(page)


# =============================================================================
# Read Tracking
# =============================================================================


class ReadTrackingService(BaseService):
    """
    Read cursors and unread counts.

    A message is unread for a member when it was created after the member's
    last_read and written by someone else. Deleted messages still count:
    they arrived while the member was away. Counts are derived on every
    read, never stored. Failures here propagate to the caller.
    """

    @classmethod
    def _unread_messages(cls, user: User):
        # Both conditions in one filter() so they apply to the same membership row
        return (
            Message.objects.filter(
                chat__memberships__user=user,
                created_at__gt=F("chat__memberships__last_read"),
            )
            .exclude(author=user)
            .order_by()
        )

    @classmethod
    def mark_as_read(cls, user: User, chat_id: int) -> ServiceResult[datetime]:
        """
        Move the caller's read cursor for a chat to now.

        Updates every membership row matching (chat, user) in one statement
        and never moves a cursor backwards.
        """
        auth = ChatAuthorizationService.require_membership(user, chat_id)
        if not auth.success:
            return auth

        now = timezone.now()
        Membership.objects.filter(
            chat_id=chat_id,
            user=user,
            last_read__lt=now,
        ).update(last_read=now)
        return ServiceResult.success(now)

    @classmethod
    def unread_counts(cls, user: User, chat_ids: list[int] | None = None) -> dict[int, int]:
        """Unread message count per chat; chats with nothing unread are omitted."""
        queryset = cls._unread_messages(user)
        if chat_ids is not None:
            queryset = queryset.filter(chat_id__in=chat_ids)
        rows = queryset.values("chat_id").annotate(unread=Count("id"))
        return {row["chat_id"]: row["unread"] for row in rows}

    @classmethod
    def unread_count(cls, user: User, chat_id: int) -> int:
        return cls.unread_counts(user, [chat_id]).get(chat_id, 0)

    @classmethod
    def get_unread_count(cls, user: User) -> ServiceResult[int]:
        """
        Global unread indicator: number of chats with something unread.

        A chat counts when its newest message not written by the caller is
        later than the caller's read cursor.
        """
        count = cls._unread_messages(user).values("chat_id").distinct().count()
        return ServiceResult.success(count)

    @classmethod
    def get_unread_messages(
        cls,
        user: User,
        since: datetime | None,
    ) -> ServiceResult[list[Message]]:
        """
        Messages from others in the caller's chats created after `since`.

        Newest first, capped at MESSAGE_CONFIG.UNREAD_FEED_MAX_RESULTS.
        """
        if since is None:
            return ServiceResult.failure(
                "A valid 'since' timestamp is required",
                ERROR_CODES.VALIDATION_ERROR,
                errors={"since": ["Enter a valid ISO 8601 date/time."]},
            )
        if timezone.is_naive(since):
            since = timezone.make_aware(since)

        messages = list(
            Message.objects.filter(chat__memberships__user=user, created_at__gt=since)
            .exclude(author=user)
            .select_related("author", "chat")
            .order_by("-created_at", "-id")[: MESSAGE_CONFIG.UNREAD_FEED_MAX_RESULTS]
        )
        return ServiceResult.success(messages)


# =============================================================================
# Search
# =============================================================================


class MessageSearchService(BaseService):
    """Case-insensitive substring search over one chat's live messages."""

    @classmethod
    def search_messages_in_chat(
        cls,
        user: User,
        chat_id: int,
        query: str,
    ) -> ServiceResult[list[Message]]:
        """
        Find non-deleted messages containing `query`, newest first.

        Results are capped at CHAT_SEARCH_MAX_RESULTS.
        """
        query = (query or "").strip()
        if not query:
            return ServiceResult.failure(
                "Search query is required",
                ERROR_CODES.VALIDATION_ERROR,
                errors={"q": ["This field is required."]},
            )

        auth = ChatAuthorizationService.require_membership(user, chat_id)
        if not auth.success:
            return auth

        results = list(
            Message.objects.filter(
                chat_id=chat_id,
                deleted_at__isnull=True,
                content__icontains=query,
            )
            .select_related("author", "reply_to__author")
            .order_by("-created_at", "-id")[: search_max_results()]
        )
        cls.get_logger().debug(
            f"Search in chat {chat_id} by user {user.pk} matched {len(results)} messages"
        )
        return ServiceResult.success(results)


# =============================================================================
# Attachments
# =============================================================================


class AttachmentService(BaseService):
    """
    Attachment descriptors.

    The chat core never inspects file contents. Uploaded files are written
    to Django's default storage and described as {url, name, size, type};
    messages keep whatever descriptors they were sent verbatim.
    """

    @classmethod
    def validate_descriptors(cls, attachments: Any) -> list[str]:
        """Return a list of problems with a message's attachment list."""
        if not isinstance(attachments, list):
            return ["Attachments must be a list."]
        if len(attachments) > ATTACHMENT_CONFIG.MAX_ATTACHMENTS_PER_MESSAGE:
            return [
                f"At most {ATTACHMENT_CONFIG.MAX_ATTACHMENTS_PER_MESSAGE} "
                f"attachments per message."
            ]

        errors = []
        for index, descriptor in enumerate(attachments):
            if not isinstance(descriptor, dict):
                errors.append(f"Attachment {index} must be an object.")
                continue
            for key in ATTACHMENT_CONFIG.REQUIRED_KEYS:
                value = descriptor.get(key)
                if not isinstance(value, str) or not value.strip():
                    errors.append(f"Attachment {index} is missing '{key}'.")
        return errors

    @classmethod
    def store(cls, user: User, uploaded_file: UploadedFile) -> ServiceResult[dict[str, Any]]:
        """
        Save an uploaded file and return its descriptor.

        Files are stored as chat/<uuid>-<name> so names never collide.
        """
        size = uploaded_file.size or 0
        if size == 0:
            return ServiceResult.failure(
                "The uploaded file is empty",
                ERROR_CODES.VALIDATION_ERROR,
                errors={"file": ["The submitted file is empty."]},
            )
        max_bytes = attachment_max_bytes()
        if size > max_bytes:
            return ServiceResult.failure(
                "The uploaded file is too large",
                ERROR_CODES.VALIDATION_ERROR,
                errors={"file": [f"Files may be at most {max_bytes} bytes."]},
            )

        name = os.path.basename(uploaded_file.name or "").strip()
        if name in ("", ".", ".."):
            name = "file"
        name = name[-ATTACHMENT_CONFIG.MAX_FILENAME_LENGTH :]

        path = default_storage.save(
            f"{ATTACHMENT_CONFIG.UPLOAD_PREFIX}/{uuid.uuid4().hex}-{get_valid_filename(name)}",
            uploaded_file,
        )
        content_type = (
            getattr(uploaded_file, "content_type", None)
            or mimetypes.guess_type(name)[0]
            or "application/octet-stream"
        )

        cls.get_logger().info(f"User {user.pk} uploaded attachment {path} ({size} bytes)")
        return ServiceResult.success(
            {
                "url": default_storage.url(path),
                "name": name,
                "size": size,
                "type": content_type,
            }
        )

    @classmethod
    def get_chat_attachments(cls, user: User, chat_id: int) -> ServiceResult[list[dict[str, Any]]]:
        """
        Every attachment shared in a chat, newest message first.

        Each descriptor is extended with message_id, uploaded_at and
        uploaded_by. Deleted messages contribute nothing.
        """
        auth = ChatAuthorizationService.require_membership(user, chat_id)
        if not auth.success:
            return auth

        messages = (
            Message.objects.filter(chat_id=chat_id, deleted_at__isnull=True)
            .select_related("author")
            .order_by("-created_at", "-id")
        )

        attachments = []
        for message in messages:
            for descriptor in message.attachments or []:
                if not isinstance(descriptor, dict):
                    continue
                attachments.append(
                    {
                        **descriptor,
                        "message_id": message.id,
                        "uploaded_at": message.created_at,
                        "uploaded_by": message.author.display_name,
                    }
                )
        return ServiceResult.success(attachments)


# =============================================================================
# Typing Presence
# =============================================================================


class TypingService(BaseService):
    """
    Membership-checked access to the typing tracker.

    Unlike the other services this one is instantiated: it holds the
    process-wide TypingTracker it was given. Tracker failures are logged
    and swallowed because typing indicators are advisory. Membership
    failures are reported like everywhere else.
    """

    def __init__(self, tracker: TypingTracker):
        self.tracker = tracker

    def set_typing_status(
        self,
        user: User,
        chat_id: int,
        is_typing: bool,
    ) -> ServiceResult[bool]:
        auth = ChatAuthorizationService.require_membership(user, chat_id)
        if not auth.success:
            return auth

        try:
            self.tracker.set(chat_id, user.pk, user.display_name, is_typing)
        except Exception:
            self.get_logger().exception(
                f"Dropped typing signal for user {user.pk} in chat {chat_id}"
            )
        return ServiceResult.success(is_typing)

    def get_typing_users(self, user: User, chat_id: int) -> ServiceResult[list[TypingEntry]]:
        """Other members currently typing in the chat (never the caller)."""
        auth = ChatAuthorizationService.require_membership(user, chat_id)
        if not auth.success:
            return auth

        try:
            typists = self.tracker.active(chat_id, exclude_user_id=user.pk)
        except Exception:
            self.get_logger().exception(f"Could not read typing users for chat {chat_id}")
            typists = []
        return ServiceResult.success(typists)

    def forget_chat(self, chat_id: int) -> None:
        try:
            self.tracker.discard_chat(chat_id)
        except Exception:
            self.get_logger().exception(f"Could not discard typing state of chat {chat_id}")
