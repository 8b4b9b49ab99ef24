"""
Serializers for authentication models.

This module provides DRF serializers for:
- User model (current-user read)
- UserSummary (compact user embedded in chat payloads and search results)

Related files:
    - models.py: User model
    - views.py: Views that use these serializers
"""

from rest_framework import serializers

from authentication.models import User


class UserSerializer(serializers.ModelSerializer):
    """Serializer for the authenticated user's own account."""

    display_name = serializers.CharField(read_only=True)

    class Meta:
        model = User
        fields = [
            "id",
            "email",
            "name",
            "display_name",
            "system_role",
            "date_joined",
        ]
        read_only_fields = fields


class UserSummarySerializer(serializers.ModelSerializer):
    """Compact user representation for members, authors and search hits."""

    display_name = serializers.CharField(read_only=True)

    class Meta:
        model = User
        fields = ["id", "name", "email", "display_name"]
        read_only_fields = fields
