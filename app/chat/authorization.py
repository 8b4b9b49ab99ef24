"""
Service-level authorization for chat operations.

Every chat-scoped operation starts by resolving the caller's membership.
ChatAuthorizationService centralizes that lookup so all services report
the same error codes for the same situation.

Error Codes:
    NOT_FOUND: Chat does not exist
    NOT_A_MEMBER: Caller has no membership row for the chat

Usage:
    result = ChatAuthorizationService.require_membership(user, chat_id)
    if not result.success:
        return result
    membership = result.data
"""

from __future__ import annotations

from typing import TYPE_CHECKING

from chat.constants import ERROR_CODES
from chat.models import Chat, Membership
from core.services import ServiceResult

if TYPE_CHECKING:
    from authentication.models import User


class ChatAuthorizationService:
    """Stateless membership checks shared by the chat services."""

    @classmethod
    def is_member(cls, user: User, chat_id: int) -> bool:
        return Membership.objects.filter(chat_id=chat_id, user=user).exists()

    @classmethod
    def get_chat(cls, chat_id: int) -> ServiceResult[Chat]:
        chat = Chat.objects.filter(pk=chat_id).first()
        if chat is None:
            return ServiceResult.failure("Chat not found", ERROR_CODES.NOT_FOUND)
        return ServiceResult.success(chat)

    @classmethod
    def require_membership(cls, user: User, chat_id: int) -> ServiceResult[Membership]:
        """
        Resolve the caller's membership in a chat.

        Returns:
            ServiceResult with the Membership (chat joined), or a failure
            with NOT_FOUND when the chat does not exist and NOT_A_MEMBER
            when the caller does not belong to it.
        """
        membership = (
            Membership.objects.select_related("chat")
            .filter(chat_id=chat_id, user=user)
            .first()
        )
        if membership is not None:
            return ServiceResult.success(membership)

        if not Chat.objects.filter(pk=chat_id).exists():
            return ServiceResult.failure("Chat not found", ERROR_CODES.NOT_FOUND)
        return ServiceResult.failure(
            "You are not a member of this chat",
            ERROR_CODES.NOT_A_MEMBER,
        )
