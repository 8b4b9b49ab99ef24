"""
Test configuration and fixtures for chat tests.

This module provides:
- Users with different chat and system roles
- A group chat with ADMIN, MANAGER and MEMBER members
- API client helpers for authenticated requests
- A clean typing tracker for every test

Usage:
    def test_example(group_chat, member_client):
        response = member_client.get(f"/api/v1/chat/chats/{group_chat.id}/")
        assert response.status_code == 200
"""

import pytest
from django.apps import apps
from rest_framework.test import APIClient
from rest_framework_simplejwt.tokens import RefreshToken

from authentication.models import SystemRole
from authentication.tests.factories import UserFactory
from chat.models import ChatRole
from chat.tests.factories import ChatFactory, MembershipFactory


@pytest.fixture(autouse=True)
def clear_typing_tracker():
    """The tracker lives for the whole process; isolate each test from it."""
    tracker = apps.get_app_config("chat").typing_tracker
    tracker.clear()
    yield tracker
    tracker.clear()


# =============================================================================
# User Fixtures
# =============================================================================


@pytest.fixture
def admin_user(db):
    """Chat ADMIN of group_chat (system role WORKER)."""
    return UserFactory(name="Alice Admin")


@pytest.fixture
def manager_user(db):
    """Chat MANAGER of group_chat."""
    return UserFactory(name="Mario Manager")


@pytest.fixture
def member_user(db):
    """Plain MEMBER of group_chat."""
    return UserFactory(name="Bea Member")


@pytest.fixture
def other_user(db):
    """Active user with no memberships."""
    return UserFactory(name="Oscar Other")


@pytest.fixture
def system_admin(db):
    """System ADMIN who is not a member of any chat."""
    return UserFactory(name="Sara Sysadmin", system_role=SystemRole.ADMIN)


@pytest.fixture
def superadmin(db):
    return UserFactory(name="Root", system_role=SystemRole.SUPERADMIN)


# =============================================================================
# Chat Fixtures
# =============================================================================


@pytest.fixture
def group_chat(db, admin_user, manager_user, member_user):
    """Group chat with one member per chat role."""
    chat = ChatFactory(name="Crew")
    MembershipFactory(chat=chat, user=admin_user, role=ChatRole.ADMIN)
    MembershipFactory(chat=chat, user=manager_user, role=ChatRole.MANAGER)
    MembershipFactory(chat=chat, user=member_user, role=ChatRole.MEMBER)
    return chat


# =============================================================================
# API Client Fixtures
# =============================================================================


@pytest.fixture
def api_client():
    """Unauthenticated API client."""
    return APIClient()


@pytest.fixture
def authenticated_client_factory(db):
    """
    Factory to create authenticated clients for any user.

    Usage:
        def test_example(authenticated_client_factory, some_user):
            client = authenticated_client_factory(some_user)
            response = client.get("/api/v1/chat/chats/")
    """

    def _make_client(user):
        client = APIClient()
        refresh = RefreshToken.for_user(user)
        client.credentials(HTTP_AUTHORIZATION=f"Bearer {refresh.access_token}")
        return client

    return _make_client


@pytest.fixture
def admin_client(authenticated_client_factory, admin_user):
    return authenticated_client_factory(admin_user)


@pytest.fixture
def manager_client(authenticated_client_factory, manager_user):
    return authenticated_client_factory(manager_user)


@pytest.fixture
def member_client(authenticated_client_factory, member_user):
    return authenticated_client_factory(member_user)


@pytest.fixture
def other_client(authenticated_client_factory, other_user):
    return authenticated_client_factory(other_user)


@pytest.fixture
def system_admin_client(authenticated_client_factory, system_admin):
    return authenticated_client_factory(system_admin)
