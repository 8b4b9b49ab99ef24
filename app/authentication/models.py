"""
Authentication models.

This module defines the user model for the chat backend:
- SystemRole: Organization-wide authority level, independent of any chat
- User: Custom user model with email-based authentication

Related files:
    - managers.py: Custom user manager for email-based creation
    - services.py: UserDirectoryService (people search)

Security:
    - User passwords hashed with Django's PBKDF2
"""

from django.contrib.auth.models import AbstractBaseUser, PermissionsMixin
from django.db import models

from authentication.managers import UserManager


class SystemRole(models.TextChoices):
    """
    Organization-wide role of a user.

    SUPERADMIN and ADMIN carry authority over every group chat; the
    other roles only act through their chat-scoped role.
    """

    SUPERADMIN = "SUPERADMIN", "Super admin"
    ADMIN = "ADMIN", "Admin"
    MANAGER = "MANAGER", "Manager"
    WORKER = "WORKER", "Worker"
    CLIENT = "CLIENT", "Client"


class User(AbstractBaseUser, PermissionsMixin):
    """
    Custom User model using email as the primary identifier.

    Fields:
        email: Primary identifier, unique, used for login
        name: Display name shown in chats (optional)
        system_role: Organization-wide role (see SystemRole)
        is_active: Whether the user account is active
        is_staff: Whether the user can access Django admin
        date_joined: When the user account was created
        updated_at: When the user record was last modified

    Usage:
        user = User.objects.create_user(
            email='user@example.com',
            password='securepassword',
            name='Ana García',
        )
    """

    email = models.EmailField(
        unique=True,
        db_index=True,
        max_length=254,
        help_text="User's email address (primary identifier)",
    )
    name = models.CharField(
        max_length=150,
        blank=True,
        default="",
        help_text="Display name shown to other chat members",
    )
    system_role = models.CharField(
        max_length=20,
        choices=SystemRole.choices,
        default=SystemRole.WORKER,
        db_index=True,
        help_text="Organization-wide role",
    )

    # Account status flags
    is_active = models.BooleanField(
        default=True,
        help_text="Whether this user account is active. Deselect instead of deleting.",
    )
    is_staff = models.BooleanField(
        default=False,
        help_text="Whether the user can access the admin site.",
    )

    # Timestamps
    date_joined = models.DateTimeField(
        auto_now_add=True,
        help_text="When the user account was created",
    )
    updated_at = models.DateTimeField(
        auto_now=True,
        help_text="When the user record was last modified",
    )

    USERNAME_FIELD = "email"
    REQUIRED_FIELDS = []

    objects = UserManager()

    class Meta:
        verbose_name = "user"
        verbose_name_plural = "users"
        ordering = ["-date_joined"]

    def __str__(self):
        """Return the user's email as string representation."""
        return self.email

    @property
    def display_name(self) -> str:
        """Name shown to other members; falls back to the email local part."""
        return self.name or self.email.split("@", 1)[0]

    def get_full_name(self):
        return self.display_name

    def get_short_name(self):
        return self.display_name
