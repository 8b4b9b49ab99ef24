"""
Permission evaluation for group chat administration.

Two independent authority levels combine with logical OR:

    System role (organization-wide):
        SUPERADMIN, ADMIN  -> may edit and delete any group chat

    Chat role (scoped to one chat):
        ADMIN, MANAGER     -> may edit that group chat, never delete it

These are plain functions over role values so they can be tested without a
database and reused by services and serializers alike.
"""

from __future__ import annotations

from authentication.models import SystemRole
from chat.models import ChatRole

GROUP_SYSTEM_AUTHORITIES = frozenset({SystemRole.SUPERADMIN, SystemRole.ADMIN})
GROUP_EDITOR_ROLES = frozenset({ChatRole.ADMIN, ChatRole.MANAGER})


def can_edit_group(system_role: str | None, chat_role: str | None) -> bool:
    """Rename, change image, add or remove members of a group chat."""
    return system_role in GROUP_SYSTEM_AUTHORITIES or chat_role in GROUP_EDITOR_ROLES


def can_delete_group(system_role: str | None) -> bool:
    """Delete a group chat. Chat-scoped roles never grant this."""
    return system_role in GROUP_SYSTEM_AUTHORITIES


def is_removable(chat_role: str | None) -> bool:
    """Chat ADMINs can never be removed from their group."""
    return chat_role != ChatRole.ADMIN
