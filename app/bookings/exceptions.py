"""
Booking exceptions.

Each class also inherits the core exception that fixes its HTTP status.

Exception Hierarchy:
    BookingError (base)
    ├── BookingNotFoundError - Booking or service lookup (404)
    ├── BookingValidationError - Guard failed, wrong state (400)
    ├── BookingPermissionError - Caller is not the right party (403)
    └── BookingConflictError - An active dispute holds the escrow (409)
"""

from core.exceptions import (
    BaseApplicationError,
    ConflictError,
    NotFoundError,
    PermissionDeniedError,
    ValidationError,
)


class BookingError(BaseApplicationError):
    default_error_code: str = "BOOKING_ERROR"


class BookingNotFoundError(BookingError, NotFoundError):
    default_error_code: str = "BOOKING_NOT_FOUND"


class BookingValidationError(BookingError, ValidationError):
    """
    Raised when a booking guard fails.

    Use for:
    - Transition from the wrong status
    - Accepting before the payment is escrowed
    - Unverified vendor, missing home-service location
    """

    default_error_code: str = "BOOKING_VALIDATION_ERROR"


class BookingPermissionError(BookingError, PermissionDeniedError):
    default_error_code: str = "BOOKING_FORBIDDEN"


class BookingConflictError(BookingError, ConflictError):
    """Raised when an active dispute must settle the escrow instead."""

    default_error_code: str = "ACTIVE_DISPUTE_EXISTS"
