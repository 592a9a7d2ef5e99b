"""
Dispute exceptions.

Exception Hierarchy:
    DisputeError (base)
    ├── DisputeNotFoundError - Unknown dispute or booking (404)
    ├── DisputeValidationError - Wrong dispute or booking state (400)
    ├── DisputePermissionError - Caller is not a party or admin (403)
    └── DisputeConflictError - Booking already has an active dispute (409)
"""

from core.exceptions import (
    BaseApplicationError,
    ConflictError,
    NotFoundError,
    PermissionDeniedError,
    ValidationError,
)


class DisputeError(BaseApplicationError):
    default_error_code: str = "DISPUTE_ERROR"


class DisputeNotFoundError(DisputeError, NotFoundError):
    default_error_code: str = "DISPUTE_NOT_FOUND"


class DisputeValidationError(DisputeError, ValidationError):
    default_error_code: str = "DISPUTE_VALIDATION_ERROR"


class DisputePermissionError(DisputeError, PermissionDeniedError):
    default_error_code: str = "DISPUTE_FORBIDDEN"


class DisputeConflictError(DisputeError, ConflictError):
    default_error_code: str = "ACTIVE_DISPUTE_EXISTS"
