"""
Authentication services.

UserDirectoryService answers "who can I start a chat with?" lookups. It is
the people-search side of the chat directory and deliberately knows nothing
about chats themselves.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

from django.db.models import Q

from core.services import BaseService, ServiceResult

if TYPE_CHECKING:
    from authentication.models import User


USER_SEARCH_LIMIT = 10


class UserDirectoryService(BaseService):
    """People search across active accounts."""

    @classmethod
    def search_users(
        cls,
        user: User,
        query: str,
        limit: int = USER_SEARCH_LIMIT,
    ) -> ServiceResult[list[User]]:
        """
        Find active users whose name or email contains the query.

        The caller is never included. A blank query yields an empty list
        rather than an error so the search box can be cleared freely.

        Args:
            user: The searching user (excluded from results)
            query: Case-insensitive substring to match
            limit: Maximum number of users returned

        Returns:
            ServiceResult with a list of users ordered by name then email
        """
        from authentication.models import User

        query = (query or "").strip()
        if not query:
            return ServiceResult.success([])

        users = list(
            User.objects.filter(is_active=True)
            .filter(Q(name__icontains=query) | Q(email__icontains=query))
            .exclude(pk=user.pk)
            .order_by("name", "email")[:limit]
        )

        cls.get_logger().debug(
            f"User search by {user.pk} for {query!r} returned {len(users)} users"
        )
        return ServiceResult.success(users)
