"""
Authentication views.

Endpoints:
    GET /api/v1/auth/me/              - Current user
    GET /api/v1/auth/users/search/    - People search (?q=)

JWT issuance (token/, token/refresh/) comes straight from simplejwt and is
wired in urls.py.
"""

from drf_spectacular.types import OpenApiTypes
from drf_spectacular.utils import OpenApiParameter, extend_schema
from rest_framework.permissions import IsAuthenticated
from rest_framework.response import Response
from rest_framework.views import APIView

from authentication.serializers import UserSerializer, UserSummarySerializer
from authentication.services import UserDirectoryService


class MeView(APIView):
    """Return the authenticated user."""

    permission_classes = [IsAuthenticated]

    @extend_schema(
        operation_id="get_current_user",
        summary="Get current user",
        tags=["Auth"],
        responses={200: UserSerializer},
    )
    def get(self, request):
        return Response(UserSerializer(request.user).data)


class UserSearchView(APIView):
    """
    Search active users by name or email.

    Used by the client when starting a direct chat or picking group members.
    At most 10 users are returned and the caller is never among them.
    """

    permission_classes = [IsAuthenticated]

    @extend_schema(
        operation_id="search_users",
        summary="Search users",
        tags=["Auth"],
        parameters=[
            OpenApiParameter(
                name="q",
                type=OpenApiTypes.STR,
                location=OpenApiParameter.QUERY,
                description="Substring of the user's name or email",
            ),
        ],
        responses={200: UserSummarySerializer(many=True)},
    )
    def get(self, request):
        result = UserDirectoryService.search_users(
            user=request.user,
            query=request.query_params.get("q", ""),
        )
        return Response(UserSummarySerializer(result.data, many=True).data)
