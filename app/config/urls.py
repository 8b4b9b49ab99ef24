"""
URL configuration for the Django application.

URL Structure:
    /                              - ReDoc API documentation
    /admin/                        - Django admin interface
    /health/                       - Health check endpoint (for load balancers, Docker)
    /schema/                       - OpenAPI schema (YAML)
    /api/v1/auth/                  - Authentication endpoints
        token/                     - Obtain JWT pair (email/password)
        token/refresh/             - Refresh access token
        me/                        - Current user
        users/search/              - Find people to start a chat with
    /api/v1/chat/                  - Chat endpoints
        chats/                     - Chat list (favorites first, with unread counts)
        chats/direct/              - Get or create a direct chat
        chats/project/             - Get or create a project chat
        chats/group/               - Create a group chat
        chats/unread-count/        - Global unread indicator
        chats/unread-messages/     - Messages received since a timestamp
        chats/{id}/                - Chat info / update group / delete group
        chats/{id}/favorite/       - Toggle favorite
        chats/{id}/read/           - Mark chat as read
        chats/{id}/typing/         - Typing users / set typing status
        chats/{id}/search/         - Search messages in chat
        chats/{id}/attachments/    - Attachments shared in chat
        chats/{id}/sync/           - Poll snapshot (messages + typing)
        chats/{id}/messages/       - Message history / send
        chats/{id}/messages/{pk}/  - Edit / delete message
        attachments/upload/        - Store a file, returns its descriptor

For more information, see:
https://docs.djangoproject.com/en/5.2/topics/http/urls/
"""

from django.contrib import admin
from django.urls import include, path
from drf_spectacular.views import SpectacularAPIView, SpectacularRedocView

from core.views import health_check

# =============================================================================
# API v1 Routes
# =============================================================================
# All routes here are prefixed with /api/v1/ automatically
api_v1_patterns = [
    # Authentication
    path("auth/", include("authentication.urls")),
    # Chat
    path("chat/", include("chat.urls")),
]

urlpatterns = [
    # Documentation
    path("", SpectacularRedocView.as_view(url_name="schema"), name="redoc"),
    path("schema/", SpectacularAPIView.as_view(), name="schema"),
    # Admin
    path("admin/", admin.site.urls),
    # Health check (Docker, Kubernetes, load balancers)
    path("health/", health_check, name="health_check"),
    # API v1
    path("api/v1/", include(api_v1_patterns)),
]

# =============================================================================
# Admin Site Customization
# =============================================================================
admin.site.site_header = "Team Chat Admin"
admin.site.site_title = "Team Chat Admin Portal"
admin.site.index_title = "Welcome to the Team Chat Admin Portal"
