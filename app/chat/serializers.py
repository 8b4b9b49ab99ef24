"""
Serializers for chat API.

This module provides serializers for the chat system:
- Message serializers (read, create, edit, unread feed)
- Member serializers
- Chat serializers (list item, info, create, update)
- Typing, attachment and sync payloads

Serializer Hierarchy:
    MessageSerializer: Message with author, reply preview and tombstone handling
    MessagePreviewSerializer: Minimal message for chat list preview
    UnreadMessageSerializer: Message plus the chat it belongs to
    MessageCreateSerializer / MessageEditSerializer: Write payloads

    MemberSerializer: Membership with user info

    ChatSerializer: Plain chat returned by create endpoints
    ChatListItemSerializer: One ChatSummary row of the chat list
    ChatInfoSerializer: ChatInfo with members and the caller's rights
    DirectChatCreateSerializer / ProjectChatCreateSerializer /
    GroupChatCreateSerializer / GroupChatUpdateSerializer: Write payloads

Design Decisions:
    - Read and write serializers are separate
    - Write serializers only check shape; business rules live in the services
    - Deleted message content is always the placeholder, never the original
"""

from __future__ import annotations

from rest_framework import serializers

from authentication.serializers import UserSummarySerializer
from chat.constants import MESSAGE_CONFIG
from chat.models import Chat, ChatKind, Membership, Message

# =============================================================================
# Message Serializers
# =============================================================================


class ReplyPreviewSerializer(serializers.ModelSerializer):
    """Short excerpt of the message being replied to."""

    author_name = serializers.CharField(source="author.display_name", read_only=True)
    content = serializers.SerializerMethodField()
    is_deleted = serializers.BooleanField(read_only=True)

    class Meta:
        model = Message
        fields = ["id", "author_name", "content", "is_deleted"]
        read_only_fields = fields

    def get_content(self, obj: Message) -> str:
        return obj.get_display_content()[: MESSAGE_CONFIG.REPLY_PREVIEW_LENGTH]


class MessageSerializer(serializers.ModelSerializer):
    """
    Full message serializer for history, search and mutation responses.

    Tombstones keep their position with placeholder content and no
    attachments or mentions.
    """

    author = UserSummarySerializer(read_only=True)
    content = serializers.SerializerMethodField(
        help_text="Message content (placeholder if deleted)"
    )
    is_deleted = serializers.BooleanField(read_only=True)
    reply_to = ReplyPreviewSerializer(read_only=True, allow_null=True)

    class Meta:
        model = Message
        fields = [
            "id",
            "chat_id",
            "author",
            "content",
            "attachments",
            "mentions",
            "reply_to",
            "is_edited",
            "is_deleted",
            "created_at",
            "deleted_at",
        ]
        read_only_fields = fields

    def get_content(self, obj: Message) -> str:
        return obj.get_display_content()


class MessagePreviewSerializer(serializers.ModelSerializer):
    """Last message shown in the chat list."""

    author_name = serializers.CharField(source="author.display_name", read_only=True)
    content = serializers.SerializerMethodField()

    class Meta:
        model = Message
        fields = ["id", "author_name", "content", "created_at"]
        read_only_fields = fields

    def get_content(self, obj: Message) -> str:
        return obj.get_display_content()


class UnreadMessageSerializer(MessageSerializer):
    """Message from the cross-chat "new since" feed."""

    chat_name = serializers.CharField(source="chat.name", read_only=True)
    chat_kind = serializers.CharField(source="chat.kind", read_only=True)

    class Meta(MessageSerializer.Meta):
        fields = MessageSerializer.Meta.fields + ["chat_name", "chat_kind"]
        read_only_fields = fields


class MessageCreateSerializer(serializers.Serializer):
    """
    Serializer for sending messages.

    Content may be empty when attachments are present; the service enforces
    that at least one of them is given.
    """

    content = serializers.CharField(
        max_length=MESSAGE_CONFIG.MAX_CONTENT_LENGTH,
        required=False,
        allow_blank=True,
        default="",
        trim_whitespace=False,
        help_text="Message content (max 10,000 characters)",
    )
    attachments = serializers.ListField(
        child=serializers.DictField(),
        required=False,
        default=list,
        help_text="Attachment descriptors: {url, name, size, type}",
    )
    reply_to_id = serializers.IntegerField(
        required=False,
        allow_null=True,
        help_text="ID of a message in the same chat (optional)",
    )


class MessageEditSerializer(serializers.Serializer):
    """Serializer for editing a message's content."""

    content = serializers.CharField(
        max_length=MESSAGE_CONFIG.MAX_CONTENT_LENGTH,
        trim_whitespace=False,
        help_text="New message content",
    )


# =============================================================================
# Member Serializers
# =============================================================================


class MemberSerializer(serializers.ModelSerializer):
    """A chat member with user info and chat role."""

    user = UserSummarySerializer(read_only=True)

    class Meta:
        model = Membership
        fields = ["user", "role", "joined_at"]
        read_only_fields = fields


# =============================================================================
# Chat Serializers
# =============================================================================


class ChatSerializer(serializers.ModelSerializer):
    """Chat as returned by the create endpoints."""

    class Meta:
        model = Chat
        fields = [
            "id",
            "kind",
            "name",
            "image",
            "project_ref",
            "created_at",
            "updated_at",
        ]
        read_only_fields = fields


def _direct_display_name(members: list[Membership], request) -> str:
    user_id = request.user.pk if request is not None else None
    for member in members:
        if member.user_id != user_id:
            return member.user.display_name
    return ""


class ChatListItemSerializer(serializers.Serializer):
    """
    One row of the caller's chat list (a ChatSummary).

    display_name is the chat name, or the other participant's name for
    direct chats.
    """

    id = serializers.IntegerField(source="chat.id")
    kind = serializers.CharField(source="chat.kind")
    name = serializers.CharField(source="chat.name")
    display_name = serializers.SerializerMethodField()
    image = serializers.CharField(source="chat.image")
    project_ref = serializers.CharField(source="chat.project_ref", allow_null=True)
    role = serializers.CharField(source="membership.role")
    is_favorite = serializers.BooleanField(source="membership.is_favorite")
    last_read = serializers.DateTimeField(source="membership.last_read")
    unread_count = serializers.IntegerField()
    last_message = MessagePreviewSerializer(allow_null=True)
    members = MemberSerializer(many=True)
    updated_at = serializers.DateTimeField(source="chat.updated_at")

    def get_display_name(self, obj) -> str:
        if obj.chat.kind == ChatKind.DIRECT:
            return _direct_display_name(obj.members, self.context.get("request"))
        return obj.chat.name


class ChatInfoSerializer(serializers.Serializer):
    """A ChatInfo: chat details, members and what the caller may do."""

    id = serializers.IntegerField(source="chat.id")
    kind = serializers.CharField(source="chat.kind")
    name = serializers.CharField(source="chat.name")
    display_name = serializers.SerializerMethodField()
    image = serializers.CharField(source="chat.image")
    project_ref = serializers.CharField(source="chat.project_ref", allow_null=True)
    created_at = serializers.DateTimeField(source="chat.created_at")
    updated_at = serializers.DateTimeField(source="chat.updated_at")
    members = MemberSerializer(many=True)
    user_role = serializers.CharField()
    user_system_role = serializers.CharField()
    is_favorite = serializers.BooleanField(source="membership.is_favorite")
    can_edit = serializers.BooleanField()
    can_delete = serializers.BooleanField()

    def get_display_name(self, obj) -> str:
        if obj.chat.kind == ChatKind.DIRECT:
            return _direct_display_name(obj.members, self.context.get("request"))
        return obj.chat.name


class DirectChatCreateSerializer(serializers.Serializer):
    user_id = serializers.IntegerField(help_text="The other participant")


class ProjectChatCreateSerializer(serializers.Serializer):
    project_ref = serializers.CharField(
        max_length=100,
        help_text="External project identifier",
    )
    project_name = serializers.CharField(
        max_length=180,
        required=False,
        allow_blank=True,
        help_text="Used to name the chat on creation",
    )


class GroupChatCreateSerializer(serializers.Serializer):
    """
    Serializer for creating group chats.

    The creator is added as ADMIN automatically and need not be listed.
    """

    name = serializers.CharField(max_length=200, help_text="Group name")
    member_ids = serializers.ListField(
        child=serializers.IntegerField(),
        required=False,
        default=list,
        help_text="Users to add as members",
    )


class GroupChatUpdateSerializer(serializers.Serializer):
    """Partial update of a group chat; every field is optional."""

    name = serializers.CharField(
        max_length=200,
        required=False,
        allow_blank=True,
        help_text="New group name",
    )
    image = serializers.CharField(
        max_length=500,
        required=False,
        allow_blank=True,
        help_text="New image URL (empty to clear)",
    )
    add_member_ids = serializers.ListField(
        child=serializers.IntegerField(),
        required=False,
        default=list,
    )
    remove_member_ids = serializers.ListField(
        child=serializers.IntegerField(),
        required=False,
        default=list,
    )


class FavoriteSerializer(serializers.Serializer):
    chat_id = serializers.IntegerField()
    is_favorite = serializers.BooleanField()


class UnreadCountSerializer(serializers.Serializer):
    unread_chats = serializers.IntegerField(help_text="Chats with unread messages")


# =============================================================================
# Typing, Attachment and Sync Serializers
# =============================================================================


class TypingStatusSerializer(serializers.Serializer):
    is_typing = serializers.BooleanField(help_text="True while the user types")


class TypingUserSerializer(serializers.Serializer):
    """A TypingEntry."""

    user_id = serializers.IntegerField()
    display_name = serializers.CharField()


class AttachmentUploadSerializer(serializers.Serializer):
    file = serializers.FileField(allow_empty_file=True, help_text="File to attach")


class AttachmentDescriptorSerializer(serializers.Serializer):
    url = serializers.CharField()
    name = serializers.CharField()
    size = serializers.IntegerField(required=False)
    type = serializers.CharField(required=False)


class ChatAttachmentSerializer(AttachmentDescriptorSerializer):
    """A descriptor as listed for a chat, with where it was shared."""

    message_id = serializers.IntegerField()
    uploaded_at = serializers.DateTimeField()
    uploaded_by = serializers.CharField()


class SyncSnapshotSerializer(serializers.Serializer):
    messages = MessageSerializer(many=True)
    typing_users = TypingUserSerializer(many=True)
    server_time = serializers.DateTimeField()
    poll_interval = serializers.IntegerField()
