"""
Base service layer patterns for business logic encapsulation.

This module provides foundational patterns for the service layer:
- ServiceResult: Result wrapper for handlers that report, rather than raise,
  expected failures (webhook handlers, notification dispatch)
- BaseService: Base class with logging and transaction helpers

Service Layer Philosophy:
    Services own domain state transitions. Views handle HTTP concerns,
    models hold data and FSM transitions, services decide what may happen.

Pattern Comparison:
    - Exceptions (core.exceptions): Domain operations invoked by users
      (booking transitions, settlement). The caller gets a stable code.
    - ServiceResult: Background handlers where the outcome is recorded
      (webhook event processed/failed) instead of propagated.

Usage:
    from core.services import BaseService, ServiceResult

    class ReferralService(BaseService):
        @classmethod
        def expire_old(cls) -> int:
            with cls.atomic():
                count = Referral.objects.filter(...).update(status="expired")
            cls.get_logger().info("Expired referrals", extra={"count": count})
            return count
"""

from __future__ import annotations

import logging
from contextlib import contextmanager
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Generic, TypeVar

from django.db import transaction

if TYPE_CHECKING:
    from collections.abc import Generator
    from typing import Any

# Generic type for ServiceResult data
T = TypeVar("T")


@dataclass
class ServiceResult(Generic[T]):
    """
    Standard result wrapper for service operations.

    Attributes:
        success: Whether the operation succeeded
        data: Result data if successful (None if failed)
        error: Error message if failed (None if successful)
        error_code: Machine-readable error code
        errors: Field-level errors for validation failures

    Usage:
        result = dispatch_webhook(event)
        if result.success:
            event.mark_processed()
        else:
            event.mark_failed(result.error)
    """

    success: bool
    data: T | None = None
    error: str | None = None
    error_code: str | None = None
    errors: dict[str, list[str]] | None = field(default=None)

    @classmethod
    def ok(cls, data: T) -> ServiceResult[T]:
        """Create a successful result. Alias for success()."""
        return cls(success=True, data=data)

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

    @classmethod
    def from_exception(cls, exc: Exception, error_code: str | None = None) -> ServiceResult[T]:
        """
        Create a failed result from an exception.

        Domain exceptions keep their own error_code and message; any other
        exception is reported by class name.

        Args:
            exc: The caught exception
            error_code: Optional error code override

        Returns:
            ServiceResult with error details from exception
        """
        code = error_code or getattr(exc, "error_code", None) or exc.__class__.__name__.upper()
        message = getattr(exc, "message", None) or str(exc)
        return cls(success=False, error=message, error_code=code)

    def to_response(self) -> dict[str, Any]:
        """
        Convert to API response format.

        Returns:
            Dict with success status and data or error details
        """
        if self.success:
            return {"success": True, "data": self.data}

        response: dict[str, Any] = {
            "success": False,
            "error": self.error,
        }
        if self.error_code:
            response["error_code"] = self.error_code
        if self.errors:
            response["errors"] = self.errors
        return response

    def __bool__(self) -> bool:
        """Allow using result in boolean context."""
        return self.success


class BaseService:
    """
    Base class for service layer classes.

    Provides:
    - Logging named after the concrete service class
    - Explicit transaction boundaries

    Design Notes:
        - Use @staticmethod or @classmethod (no instance state)
        - Raise core.exceptions subclasses for rule violations
        - Lock rows with select_for_update() inside cls.atomic()
    """

    @classmethod
    def get_logger(cls) -> logging.Logger:
        """
        Get logger for this service.

        Returns a logger named after the service class for easy filtering.
        """
        return logging.getLogger(f"{cls.__module__}.{cls.__name__}")

    @classmethod
    @contextmanager
    def atomic(cls) -> Generator[None, None, None]:
        """
        Execute operations in a database transaction.

        All database operations within this context manager are committed
        together or rolled back together. Nested use creates a savepoint.

        Example:
            with cls.atomic():
                booking = Booking.objects.select_for_update().get(id=booking_id)
                booking.cancel()
                booking.save()
        """
        with transaction.atomic():
            yield
