"""
Django admin configuration for chat models.

Provides admin interfaces for:
- Chat management with inline memberships
- Message moderation
"""

from django.contrib import admin

from chat.models import Chat, DirectChatPair, Membership, Message


class MembershipInline(admin.TabularInline):
    """Inline display of members in chat admin."""

    model = Membership
    extra = 0
    readonly_fields = ["joined_at", "last_read"]
    raw_id_fields = ["user"]


@admin.register(Chat)
class ChatAdmin(admin.ModelAdmin):
    list_display = ["id", "kind", "name", "project_ref", "created_at", "updated_at"]
    list_filter = ["kind", "created_at"]
    search_fields = ["name", "project_ref", "id"]
    readonly_fields = ["created_at", "updated_at"]
    inlines = [MembershipInline]
    ordering = ["-updated_at"]


@admin.register(DirectChatPair)
class DirectChatPairAdmin(admin.ModelAdmin):
    list_display = ["chat", "user_lower", "user_higher"]
    raw_id_fields = ["chat", "user_lower", "user_higher"]


@admin.register(Message)
class MessageAdmin(admin.ModelAdmin):
    """Admin interface for Message model."""

    list_display = ["id", "chat", "author", "short_content", "is_edited", "deleted_at", "created_at"]
    list_filter = ["is_edited", "created_at"]
    search_fields = ["content", "author__email"]
    readonly_fields = ["created_at", "deleted_at", "mentions"]
    raw_id_fields = ["chat", "author", "reply_to"]
    ordering = ["-created_at"]

    @admin.display(description="Content")
    def short_content(self, obj: Message) -> str:
        content = obj.get_display_content()
        return content[:60] + "..." if len(content) > 60 else content
