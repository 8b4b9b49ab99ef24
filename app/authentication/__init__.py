"""
Authentication application.

Provides the email-based user model, its system-wide roles, JWT login and
people search for starting chats.

Key components:
    - User model: Custom email-based user authentication with a system role
    - UserDirectoryService: People search

Usage:
    from authentication.models import User, SystemRole
    from authentication.services import UserDirectoryService
"""
