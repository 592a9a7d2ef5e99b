"""
Base exception classes for marketplace-wide error handling.

Every operational failure raised by a service (booking transitions, escrow
settlement, disputes, referrals, withdrawals) is a subclass of
BaseApplicationError so views can turn it into a stable JSON body with a
machine-readable code.

Exception Hierarchy:
    BaseApplicationError (base)
    ├── ValidationError - Bad request: invalid transition, malformed amounts
    ├── NotFoundError - Entity absent
    ├── PermissionDeniedError - Actor is not a party to the entity
    ├── ConflictError - Duplicate reference, already escrowed/settled/resolved
    └── ExternalServiceError - Payment gateway failures

HTTP mapping (see core.views.error_response):
    ValidationError       -> 400
    PermissionDeniedError -> 403
    NotFoundError         -> 404
    ConflictError         -> 409
    ExternalServiceError  -> 502

Usage:
    from core.exceptions import ConflictError, NotFoundError

    raise NotFoundError("Booking not found", error_code="BOOKING_NOT_FOUND")

    raise ConflictError(
        "Payment already released",
        error_code="ESCROW_ALREADY_SETTLED",
        details={"escrow_status": "released"},
    )

Note:
    DRF handles API-layer exceptions (serializer validation, authentication).
    These classes are for domain/business rules enforced by services.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from typing import Any


class BaseApplicationError(Exception):
    """
    Base exception for all marketplace domain errors.

    Attributes:
        message: Human-readable error description
        error_code: Machine-readable code for client-side handling
        details: Additional context (ids, current state, amounts)

    Example:
        try:
            BookingLifecycleManager.accept(booking_id, vendor)
        except BaseApplicationError as e:
            return error_response(e)
    """

    default_error_code: str = "APPLICATION_ERROR"

    def __init__(
        self,
        message: str,
        error_code: str | None = None,
        details: dict[str, Any] | None = None,
    ):
        """
        Initialize the exception.

        Args:
            message: Human-readable error description
            error_code: Machine-readable error code (defaults to class default)
            details: Additional error context
        """
        self.message = message
        self.error_code = error_code or self.default_error_code
        self.details = details or {}
        super().__init__(message)

    def to_dict(self) -> dict[str, Any]:
        """
        Convert exception to dictionary for API response.

        Returns:
            Dict with error, error_code, and (when present) details keys

        Example:
            {
                "error": "Booking not found",
                "error_code": "BOOKING_NOT_FOUND",
                "details": {"booking_id": "..."}
            }
        """
        result: dict[str, Any] = {
            "error": self.message,
            "error_code": self.error_code,
        }
        if self.details:
            result["details"] = self.details
        return result

    def __str__(self) -> str:
        """Return string representation with error code."""
        return f"[{self.error_code}] {self.message}"

    def __repr__(self) -> str:
        """Return detailed representation for debugging."""
        return (
            f"{self.__class__.__name__}("
            f"message={self.message!r}, "
            f"error_code={self.error_code!r}, "
            f"details={self.details!r})"
        )


class ValidationError(BaseApplicationError):
    """
    Raised when a request violates a business rule (HTTP 400).

    Use for:
    - Booking transitions attempted from the wrong status
    - Accepting a booking before escrow is held
    - Malformed or inconsistent amounts (partial refund split, withdrawals)
    - Missing required inputs (location for home-service vendors)

    Example:
        raise ValidationError(
            "Only accepted bookings can be started",
            error_code="INVALID_BOOKING_STATUS",
            details={"status": booking.status},
        )
    """

    default_error_code: str = "VALIDATION_ERROR"


class NotFoundError(BaseApplicationError):
    """
    Raised when a requested entity does not exist (HTTP 404).

    Example:
        booking = Booking.objects.filter(id=booking_id).first()
        if booking is None:
            raise NotFoundError(
                "Booking not found",
                error_code="BOOKING_NOT_FOUND",
                details={"booking_id": str(booking_id)},
            )
    """

    default_error_code: str = "NOT_FOUND"


class PermissionDeniedError(BaseApplicationError):
    """
    Raised when the acting user is not allowed to act on an entity (HTTP 403).

    Use for:
    - A user who is neither client nor vendor of the booking
    - A client trying a vendor-only transition (accept, reject, start)
    - Non-admins calling dispute administration operations

    Note:
        Authentication failures (missing/invalid credentials) are handled
        by DRF. This class covers authorization of domain actions.
    """

    default_error_code: str = "PERMISSION_DENIED"


class ConflictError(BaseApplicationError):
    """
    Raised when an operation conflicts with the current state (HTTP 409).

    Use for:
    - Paying for a booking that is already escrowed
    - Releasing or refunding a payment that was already settled
    - Resolving a dispute that is already resolved
    - Duplicate referral application

    Example:
        raise ConflictError(
            "Payment already refunded",
            error_code="ESCROW_ALREADY_SETTLED",
            details={"escrow_status": payment.escrow_status},
        )
    """

    default_error_code: str = "CONFLICT"


class ExternalServiceError(BaseApplicationError):
    """
    Raised when an external service call fails (HTTP 502).

    Use for payment gateway failures after retries are exhausted.
    Log the original error for debugging but keep internals out of the
    message returned to clients.
    """

    default_error_code: str = "EXTERNAL_SERVICE_ERROR"
