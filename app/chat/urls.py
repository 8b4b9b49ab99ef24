"""
URL configuration for chat API.

URL Structure:
    Chats:
        /chats/                          GET
        /chats/direct/                   POST
        /chats/project/                  POST
        /chats/group/                    POST
        /chats/unread-count/             GET
        /chats/unread-messages/          GET
        /chats/{id}/                     GET, PATCH, DELETE
        /chats/{id}/favorite/            POST
        /chats/{id}/read/                POST
        /chats/{id}/typing/              GET, POST
        /chats/{id}/search/              GET
        /chats/{id}/attachments/         GET
        /chats/{id}/sync/                GET

    Messages:
        /chats/{id}/messages/            GET, POST
        /chats/{id}/messages/{pk}/       PATCH, DELETE

    Attachments:
        /attachments/upload/             POST

Routes are declared explicitly so ChatViewSet can receive the app's
TypingService through as_view().

All URLs are prefixed with /api/v1/chat/ in the main URL configuration.
"""

from django.apps import apps
from django.urls import path

from chat.views import AttachmentUploadView, ChatViewSet, MessageViewSet

def chat_view(actions: dict[str, str]):
    return ChatViewSet.as_view(
        actions,
        typing_service=apps.get_app_config("chat").typing_service,
    )


app_name = "chat"

urlpatterns = [
    path("chats/", chat_view({"get": "list"}), name="chat-list"),
    path("chats/direct/", chat_view({"post": "direct"}), name="chat-direct"),
    path("chats/project/", chat_view({"post": "project"}), name="chat-project"),
    path("chats/group/", chat_view({"post": "group"}), name="chat-group"),
    path(
        "chats/unread-count/",
        chat_view({"get": "unread_count"}),
        name="chat-unread-count",
    ),
    path(
        "chats/unread-messages/",
        chat_view({"get": "unread_messages"}),
        name="chat-unread-messages",
    ),
    path(
        "chats/<int:pk>/",
        chat_view({"get": "retrieve", "patch": "partial_update", "delete": "destroy"}),
        name="chat-detail",
    ),
    path("chats/<int:pk>/favorite/", chat_view({"post": "favorite"}), name="chat-favorite"),
    path("chats/<int:pk>/read/", chat_view({"post": "read"}), name="chat-read"),
    path(
        "chats/<int:pk>/typing/",
        chat_view({"get": "typing", "post": "typing"}),
        name="chat-typing",
    ),
    path("chats/<int:pk>/search/", chat_view({"get": "search"}), name="chat-search"),
    path(
        "chats/<int:pk>/attachments/",
        chat_view({"get": "attachments"}),
        name="chat-attachments",
    ),
    path("chats/<int:pk>/sync/", chat_view({"get": "sync"}), name="chat-sync"),
    # Nested routes for messages
    path(
        "chats/<int:chat_pk>/messages/",
        MessageViewSet.as_view({"get": "list", "post": "create"}),
        name="chat-message-list",
    ),
    path(
        "chats/<int:chat_pk>/messages/<int:pk>/",
        MessageViewSet.as_view({"patch": "partial_update", "delete": "destroy"}),
        name="chat-message-detail",
    ),
    path(
        "attachments/upload/",
        AttachmentUploadView.as_view(),
        name="attachment-upload",
    ),
]
