"""
Base service layer patterns for business logic encapsulation.

This module provides foundational patterns for the service layer:
- ServiceResult: Standard result wrapper for consistent success/failure handling
- BaseService: Base class with common service utilities

Service Layer Philosophy:
    Services encapsulate business logic separate from views and models.
    Views handle HTTP concerns, models handle data, services handle logic.

Pattern Comparison:
    - ServiceResult: Use for expected failures (validation, membership, ownership)
    - Exceptions: Use for unexpected failures (database errors, bugs)

Usage:
    from core.services import BaseService, ServiceResult

    class FavoriteService(BaseService):
        @classmethod
        def toggle(cls, user, chat_id: int) -> ServiceResult[Membership]:
            membership = Membership.objects.filter(chat_id=chat_id, user=user).first()
            if membership is None:
                return ServiceResult.failure(
                    "You are not a member of this chat",
                    error_code="NOT_A_MEMBER",
                )

            membership.is_favorite = not membership.is_favorite
            membership.save(update_fields=["is_favorite"])

            cls.get_logger().info(f"User {user.id} toggled favorite on chat {chat_id}")
            return ServiceResult.success(membership)

    # In view
    result = FavoriteService.toggle(request.user, chat_id)
    if result.success:
        return Response(MembershipSerializer(result.data).data)
    return Response({"error": result.error, "error_code": result.error_code}, status=403)
"""

from __future__ import annotations

import logging
from contextlib import contextmanager
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Generic, TypeVar

from django.db import transaction

if TYPE_CHECKING:
    from collections.abc import Generator

# Generic type for ServiceResult data
T = TypeVar("T")


@dataclass
class ServiceResult(Generic[T]):
    """
    Standard result wrapper for service operations.

    Provides consistent success/failure handling without exceptions.
    Use this for expected failures (validation errors, business rule violations).

    Attributes:
        success: Whether the operation succeeded
        data: Result data if successful (None if failed)
        error: Error message if failed (None if successful)
        error_code: Machine-readable error code for client handling
        errors: Field-level errors for validation failures

    Usage:
        # Success case
        return ServiceResult.success(message)

        # Failure case
        return ServiceResult.failure("Message not found", "NOT_FOUND")

        # Validation errors with field details
        return ServiceResult.failure(
            "Validation failed",
            error_code="VALIDATION_ERROR",
            errors={"name": ["Group name is required"]}
        )
    """

    success: bool
    data: T | None = None
    error: str | None = None
    error_code: str | None = None
    errors: dict[str, list[str]] | None = field(default=None)

    @classmethod
    def success(cls, data: T) -> ServiceResult[T]:
        """
        Create a successful result.

        Args:
            data: The result data

        Returns:
            ServiceResult with success=True and data set
        """
        return cls(success=True, data=data)

    @classmethod
    def failure(
        cls,
        error: str,
        error_code: str | None = None,
        errors: dict[str, list[str]] | None = None,
    ) -> ServiceResult[T]:
        """
        Create a failed result.

        Args:
            error: Human-readable error message
            error_code: Machine-readable error code for client handling
            errors: Field-level errors (for validation failures)

        Returns:
            ServiceResult with success=False and error details
        """
        return cls(
            success=False,
            error=error,
            error_code=error_code,
            errors=errors,
        )

    def __bool__(self) -> bool:
        """Allow using result in boolean context (same as result.success)."""
        return self.success


class BaseService:
    """
    Base class for service layer classes.

    Provides common utilities for services:
    - Logging setup per service
    - Database transaction management
    - Required-field validation

    Design Notes:
        - Most services use @classmethod (no instance state)
        - Services that own a long-lived collaborator (e.g. the typing
          tracker) are instantiated once and handed to the views
        - Use ServiceResult for expected failures
        - Raise exceptions for unexpected failures
    """

    @classmethod
    def get_logger(cls) -> logging.Logger:
        """
        Get logger for this service.

        Returns a logger named after the service class for
        easy filtering in logs.
        """
        return logging.getLogger(f"{cls.__module__}.{cls.__name__}")

    @classmethod
    @contextmanager
    def atomic(cls) -> Generator[None, None, None]:
        """
        Execute operations in a database transaction.

        All database operations within this context manager are
        wrapped in a transaction. If any operation fails, all
        changes are rolled back.

        Example:
            with cls.atomic():
                Message.objects.filter(chat=chat).delete()
                Membership.objects.filter(chat=chat).delete()
                chat.delete()
        """
        with transaction.atomic():
            yield

    @classmethod
    def validate_required(cls, **kwargs) -> ServiceResult | None:
        """
        Validate that required fields are provided.

        Returns a failure result if any required field is None or blank.
        Returns None if all fields are valid.

        Example:
            validation = cls.validate_required(name=name)
            if validation is not None:
                return validation
        """
        errors = {}
        for field_name, value in kwargs.items():
            if value is None or (isinstance(value, str) and not value.strip()):
                errors[field_name] = ["This field is required."]

        if errors:
            return ServiceResult.failure(
                "Required fields missing",
                error_code="VALIDATION_ERROR",
                errors=errors,
            )
        return None
