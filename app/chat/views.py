"""
ViewSets for chat API.

This module provides REST API endpoints for the chat system:
- ChatViewSet: Chat list, creation, info, group management and per-chat actions
- MessageViewSet: Message operations (nested under chat)
- AttachmentUploadView: File upload returning an attachment descriptor

URL Structure:
    /api/v1/chat/chats/                              GET
    /api/v1/chat/chats/direct/                       POST
    /api/v1/chat/chats/project/                      POST
    /api/v1/chat/chats/group/                        POST
    /api/v1/chat/chats/unread-count/                 GET
    /api/v1/chat/chats/unread-messages/?since=       GET
    /api/v1/chat/chats/{id}/                         GET, PATCH, DELETE
    /api/v1/chat/chats/{id}/favorite/                POST
    /api/v1/chat/chats/{id}/read/                    POST
    /api/v1/chat/chats/{id}/typing/                  GET, POST
    /api/v1/chat/chats/{id}/search/?q=               GET
    /api/v1/chat/chats/{id}/attachments/             GET
    /api/v1/chat/chats/{id}/sync/                    GET
    /api/v1/chat/chats/{id}/messages/                GET, POST
    /api/v1/chat/chats/{id}/messages/{pk}/           PATCH, DELETE
    /api/v1/chat/attachments/upload/                 POST

Design Decisions:
    - Views only parse input and render output; every rule is in chat.services
    - Service error codes map to HTTP statuses in error_response()
    - The typing service is passed in through as_view() by chat.urls
"""

from __future__ import annotations

from django.utils.dateparse import parse_datetime
from drf_spectacular.types import OpenApiTypes
from drf_spectacular.utils import (
    OpenApiParameter,
    OpenApiResponse,
    extend_schema,
)
from rest_framework import status, viewsets
from rest_framework.decorators import action
from rest_framework.parsers import FormParser, MultiPartParser
from rest_framework.permissions import IsAuthenticated
from rest_framework.response import Response
from rest_framework.views import APIView

from chat.constants import ERROR_CODES
from chat.serializers import (
    AttachmentDescriptorSerializer,
    AttachmentUploadSerializer,
    ChatAttachmentSerializer,
    ChatInfoSerializer,
    ChatListItemSerializer,
    ChatSerializer,
    DirectChatCreateSerializer,
    FavoriteSerializer,
    GroupChatCreateSerializer,
    GroupChatUpdateSerializer,
    MessageCreateSerializer,
    MessageEditSerializer,
    MessageSerializer,
    ProjectChatCreateSerializer,
    SyncSnapshotSerializer,
    TypingStatusSerializer,
    TypingUserSerializer,
    UnreadCountSerializer,
    UnreadMessageSerializer,
)
from chat.services import (
    AttachmentService,
    ChatDirectoryService,
    MessageSearchService,
    MessageService,
    ReadTrackingService,
)
from chat.sync import SyncService
from core.services import ServiceResult

ERROR_STATUS = {
    ERROR_CODES.NOT_A_MEMBER: status.HTTP_403_FORBIDDEN,
    ERROR_CODES.FORBIDDEN: status.HTTP_403_FORBIDDEN,
    ERROR_CODES.NOT_FOUND: status.HTTP_404_NOT_FOUND,
    ERROR_CODES.VALIDATION_ERROR: status.HTTP_400_BAD_REQUEST,
}

ERROR_RESPONSES = {
    400: OpenApiResponse(description="Validation error"),
    403: OpenApiResponse(description="Not a member, or not allowed"),
    404: OpenApiResponse(description="Chat or message not found"),
}


def error_response(result: ServiceResult) -> Response:
    """Render a failed ServiceResult with the status for its error code."""
    body = {"error": result.error, "error_code": result.error_code}
    if result.errors:
        body["errors"] = result.errors
    return Response(
        body,
        status=ERROR_STATUS.get(result.error_code, status.HTTP_400_BAD_REQUEST),
    )


def invalid_request(errors: dict, message: str = "Invalid request") -> Response:
    return Response(
        {
            "error": message,
            "error_code": ERROR_CODES.VALIDATION_ERROR,
            "errors": errors,
        },
        status=status.HTTP_400_BAD_REQUEST,
    )


def _optional_int(value: str | None, name: str) -> tuple[int | None, dict | None]:
    if value in (None, ""):
        return None, None
    try:
        return int(value), None
    except (TypeError, ValueError):
        return None, {name: ["A valid integer is required."]}


class ChatViewSet(viewsets.GenericViewSet):
    """
    ViewSet for chat operations.

    list:
        All chats of the current user with last message, unread count and
        members. Favorites first, then most recent activity.

    retrieve:
        Chat info with members, the caller's roles and can_edit/can_delete.

    partial_update:
        Rename, change image, add or remove members of a group chat.

    destroy:
        Delete a group chat with its messages (system admins only).
    """

    permission_classes = [IsAuthenticated]
    typing_service = None

    @extend_schema(
        operation_id="list_chats",
        summary="List chats",
        responses={200: ChatListItemSerializer(many=True)},
        tags=["Chat - Chats"],
    )
    def list(self, request):
        result = ChatDirectoryService.list_user_chats(request.user)
        serializer = ChatListItemSerializer(
            result.data, many=True, context={"request": request}
        )
        return Response(serializer.data)

    @extend_schema(
        operation_id="get_or_create_direct_chat",
        summary="Open direct chat",
        description="Returns the existing direct chat with the user or creates it.",
        request=DirectChatCreateSerializer,
        responses={200: ChatSerializer, **ERROR_RESPONSES},
        tags=["Chat - Chats"],
    )
    @action(detail=False, methods=["post"])
    def direct(self, request):
        serializer = DirectChatCreateSerializer(data=request.data)
        if not serializer.is_valid():
            return invalid_request(serializer.errors)

        result = ChatDirectoryService.get_or_create_direct_chat(
            user=request.user,
            other_user_id=serializer.validated_data["user_id"],
        )
        if not result.success:
            return error_response(result)
        return Response(ChatSerializer(result.data).data)

    @extend_schema(
        operation_id="get_or_create_project_chat",
        summary="Open project chat",
        description="Returns the chat of an external project, creating it on first use.",
        request=ProjectChatCreateSerializer,
        responses={200: ChatSerializer, **ERROR_RESPONSES},
        tags=["Chat - Chats"],
    )
    @action(detail=False, methods=["post"])
    def project(self, request):
        serializer = ProjectChatCreateSerializer(data=request.data)
        if not serializer.is_valid():
            return invalid_request(serializer.errors)

        result = ChatDirectoryService.get_or_create_project_chat(
            user=request.user,
            project_ref=serializer.validated_data["project_ref"],
            project_name=serializer.validated_data.get("project_name"),
        )
        if not result.success:
            return error_response(result)
        return Response(ChatSerializer(result.data).data)

    @extend_schema(
        operation_id="create_group_chat",
        summary="Create group chat",
        request=GroupChatCreateSerializer,
        responses={201: ChatSerializer, **ERROR_RESPONSES},
        tags=["Chat - Chats"],
    )
    @action(detail=False, methods=["post"])
    def group(self, request):
        serializer = GroupChatCreateSerializer(data=request.data)
        if not serializer.is_valid():
            return invalid_request(serializer.errors)

        result = ChatDirectoryService.create_group_chat(
            user=request.user,
            name=serializer.validated_data["name"],
            member_ids=serializer.validated_data["member_ids"],
        )
        if not result.success:
            return error_response(result)
        return Response(ChatSerializer(result.data).data, status=status.HTTP_201_CREATED)

    @extend_schema(
        operation_id="get_unread_chat_count",
        summary="Unread indicator",
        description="Number of chats holding messages the user has not read.",
        responses={200: UnreadCountSerializer},
        tags=["Chat - Read Tracking"],
    )
    @action(detail=False, methods=["get"], url_path="unread-count")
    def unread_count(self, request):
        result = ReadTrackingService.get_unread_count(request.user)
        return Response({"unread_chats": result.data})

    @extend_schema(
        operation_id="list_unread_messages",
        summary="Messages since",
        parameters=[
            OpenApiParameter(
                name="since",
                type=OpenApiTypes.DATETIME,
                location=OpenApiParameter.QUERY,
                required=True,
                description="ISO 8601 timestamp",
            ),
        ],
        responses={200: UnreadMessageSerializer(many=True), 400: ERROR_RESPONSES[400]},
        tags=["Chat - Read Tracking"],
    )
    @action(detail=False, methods=["get"], url_path="unread-messages")
    def unread_messages(self, request):
        raw = request.query_params.get("since", "")
        try:
            since = parse_datetime(raw) if raw else None
        except ValueError:
            since = None

        result = ReadTrackingService.get_unread_messages(request.user, since)
        if not result.success:
            return error_response(result)
        return Response(UnreadMessageSerializer(result.data, many=True).data)

    @extend_schema(
        operation_id="get_chat",
        summary="Get chat info",
        responses={200: ChatInfoSerializer, **ERROR_RESPONSES},
        tags=["Chat - Chats"],
    )
    def retrieve(self, request, pk=None):
        result = ChatDirectoryService.get_chat_info(request.user, int(pk))
        if not result.success:
            return error_response(result)
        return Response(ChatInfoSerializer(result.data, context={"request": request}).data)

    @extend_schema(
        operation_id="update_group_chat",
        summary="Update group chat",
        request=GroupChatUpdateSerializer,
        responses={200: ChatSerializer, **ERROR_RESPONSES},
        tags=["Chat - Chats"],
    )
    def partial_update(self, request, pk=None):
        serializer = GroupChatUpdateSerializer(data=request.data)
        if not serializer.is_valid():
            return invalid_request(serializer.errors)

        data = serializer.validated_data
        result = ChatDirectoryService.update_group_chat(
            user=request.user,
            chat_id=int(pk),
            name=data.get("name"),
            image=data.get("image"),
            add_member_ids=data["add_member_ids"],
            remove_member_ids=data["remove_member_ids"],
        )
        if not result.success:
            return error_response(result)
        return Response(ChatSerializer(result.data).data)

    @extend_schema(
        operation_id="delete_group_chat",
        summary="Delete group chat",
        responses={204: None, **ERROR_RESPONSES},
        tags=["Chat - Chats"],
    )
    def destroy(self, request, pk=None):
        result = ChatDirectoryService.delete_group_chat(request.user, int(pk))
        if not result.success:
            return error_response(result)

        self.typing_service.forget_chat(result.data)
        return Response(status=status.HTTP_204_NO_CONTENT)

    @extend_schema(
        operation_id="toggle_chat_favorite",
        summary="Toggle favorite",
        request=None,
        responses={200: FavoriteSerializer, **ERROR_RESPONSES},
        tags=["Chat - Chats"],
    )
    @action(detail=True, methods=["post"])
    def favorite(self, request, pk=None):
        result = ChatDirectoryService.toggle_favorite(request.user, int(pk))
        if not result.success:
            return error_response(result)
        membership = result.data
        return Response({"chat_id": membership.chat_id, "is_favorite": membership.is_favorite})

    @extend_schema(
        operation_id="mark_chat_read",
        summary="Mark chat as read",
        request=None,
        tags=["Chat - Read Tracking"],
    )
    @action(detail=True, methods=["post"])
    def read(self, request, pk=None):
        result = ReadTrackingService.mark_as_read(request.user, int(pk))
        if not result.success:
            return error_response(result)
        return Response({"status": "read", "last_read": result.data})

    @extend_schema(
        operation_id="chat_typing",
        summary="Typing indicator",
        description=(
            "GET lists the other members typing right now. POST records or "
            "clears the caller's own typing signal; signals expire after a "
            "few seconds without a refresh."
        ),
        request=TypingStatusSerializer,
        responses={200: TypingUserSerializer(many=True), **ERROR_RESPONSES},
        tags=["Chat - Typing"],
    )
    @action(detail=True, methods=["get", "post"])
    def typing(self, request, pk=None):
        if request.method == "POST":
            serializer = TypingStatusSerializer(data=request.data)
            if not serializer.is_valid():
                return invalid_request(serializer.errors)

            result = self.typing_service.set_typing_status(
                request.user, int(pk), serializer.validated_data["is_typing"]
            )
            if not result.success:
                return error_response(result)
            return Response({"is_typing": result.data})

        result = self.typing_service.get_typing_users(request.user, int(pk))
        if not result.success:
            return error_response(result)
        return Response(TypingUserSerializer(result.data, many=True).data)

    @extend_schema(
        operation_id="search_chat_messages",
        summary="Search messages",
        parameters=[
            OpenApiParameter(
                name="q",
                type=OpenApiTypes.STR,
                location=OpenApiParameter.QUERY,
                required=True,
                description="Case-insensitive substring",
            ),
        ],
        responses={200: MessageSerializer(many=True), **ERROR_RESPONSES},
        tags=["Chat - Messages"],
    )
    @action(detail=True, methods=["get"])
    def search(self, request, pk=None):
        result = MessageSearchService.search_messages_in_chat(
            request.user, int(pk), request.query_params.get("q", "")
        )
        if not result.success:
            return error_response(result)
        return Response(MessageSerializer(result.data, many=True).data)

    @extend_schema(
        operation_id="list_chat_attachments",
        summary="Shared files",
        responses={200: ChatAttachmentSerializer(many=True), **ERROR_RESPONSES},
        tags=["Chat - Attachments"],
    )
    @action(detail=True, methods=["get"])
    def attachments(self, request, pk=None):
        result = AttachmentService.get_chat_attachments(request.user, int(pk))
        if not result.success:
            return error_response(result)
        return Response(ChatAttachmentSerializer(result.data, many=True).data)

    @extend_schema(
        operation_id="sync_chat",
        summary="Poll chat",
        description="Latest messages and typing users in one response.",
        parameters=[
            OpenApiParameter(
                name="limit",
                type=OpenApiTypes.INT,
                location=OpenApiParameter.QUERY,
                description="History page size",
            ),
        ],
        responses={200: SyncSnapshotSerializer, **ERROR_RESPONSES},
        tags=["Chat - Sync"],
    )
    @action(detail=True, methods=["get"])
    def sync(self, request, pk=None):
        limit, errors = _optional_int(request.query_params.get("limit"), "limit")
        if errors:
            return invalid_request(errors)

        result = SyncService.snapshot(request.user, int(pk), self.typing_service, limit=limit)
        if not result.success:
            return error_response(result)
        return Response(SyncSnapshotSerializer(result.data).data)


class MessageViewSet(viewsets.GenericViewSet):
    """
    ViewSet for message operations within a chat.

    list:
        A history page, oldest first. Use ?before=<message id> for older pages.

    create:
        Send a message with optional attachments and reply reference.

    partial_update:
        Edit your own message.

    destroy:
        Soft delete your own message. Repeating the delete succeeds.
    """

    permission_classes = [IsAuthenticated]

    @extend_schema(
        operation_id="list_messages",
        summary="List messages",
        parameters=[
            OpenApiParameter(
                name="limit",
                type=OpenApiTypes.INT,
                location=OpenApiParameter.QUERY,
                description="Page size (1-100, default 50)",
            ),
            OpenApiParameter(
                name="before",
                type=OpenApiTypes.INT,
                location=OpenApiParameter.QUERY,
                description="Only messages older than this message",
            ),
        ],
        responses={200: MessageSerializer(many=True), **ERROR_RESPONSES},
        tags=["Chat - Messages"],
    )
    def list(self, request, chat_pk=None):
        limit, limit_errors = _optional_int(request.query_params.get("limit"), "limit")
        before, before_errors = _optional_int(request.query_params.get("before"), "before")
        if limit_errors or before_errors:
            return invalid_request({**(limit_errors or {}), **(before_errors or {})})

        result = MessageService.get_messages(
            request.user,
            int(chat_pk),
            limit=limit,
            before_message_id=before,
        )
        if not result.success:
            return error_response(result)
        return Response(MessageSerializer(result.data, many=True).data)

    @extend_schema(
        operation_id="send_message",
        summary="Send message",
        request=MessageCreateSerializer,
        responses={201: MessageSerializer, **ERROR_RESPONSES},
        tags=["Chat - Messages"],
    )
    def create(self, request, chat_pk=None):
        serializer = MessageCreateSerializer(data=request.data)
        if not serializer.is_valid():
            return invalid_request(serializer.errors)

        data = serializer.validated_data
        result = MessageService.send_message(
            user=request.user,
            chat_id=int(chat_pk),
            content=data["content"],
            attachments=data["attachments"],
            reply_to_id=data.get("reply_to_id"),
        )
        if not result.success:
            return error_response(result)
        return Response(MessageSerializer(result.data).data, status=status.HTTP_201_CREATED)

    @extend_schema(
        operation_id="edit_message",
        summary="Edit message",
        description="Replace the content of a message you sent. Deleted messages cannot be edited.",
        request=MessageEditSerializer,
        responses={200: MessageSerializer, **ERROR_RESPONSES},
        tags=["Chat - Messages"],
    )
    def partial_update(self, request, chat_pk=None, pk=None):
        serializer = MessageEditSerializer(data=request.data)
        if not serializer.is_valid():
            return invalid_request(serializer.errors)

        result = MessageService.edit_message(
            request.user,
            int(pk),
            serializer.validated_data["content"],
            chat_id=int(chat_pk),
        )
        if not result.success:
            return error_response(result)
        return Response(MessageSerializer(result.data).data)

    @extend_schema(
        operation_id="delete_message",
        summary="Delete message",
        responses={200: MessageSerializer, **ERROR_RESPONSES},
        tags=["Chat - Messages"],
    )
    def destroy(self, request, chat_pk=None, pk=None):
        result = MessageService.delete_message(request.user, int(pk), chat_id=int(chat_pk))
        if not result.success:
            return error_response(result)
        return Response(MessageSerializer(result.data).data)


class AttachmentUploadView(APIView):
    """
    Store an uploaded file and return its attachment descriptor.

    The descriptor is then sent in a message's attachments list.
    """

    permission_classes = [IsAuthenticated]
    parser_classes = [MultiPartParser, FormParser]

    @extend_schema(
        operation_id="upload_attachment",
        summary="Upload attachment",
        request={"multipart/form-data": AttachmentUploadSerializer},
        responses={201: AttachmentDescriptorSerializer, 400: ERROR_RESPONSES[400]},
        tags=["Chat - Attachments"],
    )
    def post(self, request):
        serializer = AttachmentUploadSerializer(data=request.data)
        if not serializer.is_valid():
            return invalid_request(serializer.errors)

        result = AttachmentService.store(request.user, serializer.validated_data["file"])
        if not result.success:
            return error_response(result)
        return Response(result.data, status=status.HTTP_201_CREATED)
