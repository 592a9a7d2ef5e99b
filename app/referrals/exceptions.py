"""
Referral exceptions.

Exception Hierarchy:
    ReferralError (base)
    ├── ReferralNotFoundError - Unknown code or referral (404)
    ├── ReferralValidationError - Self-referral (400)
    ├── ReferralPermissionError - Not a party to the referral (403)
    └── ReferralConflictError - Referee already referred (409)
"""

from core.exceptions import (
    BaseApplicationError,
    ConflictError,
    NotFoundError,
    PermissionDeniedError,
    ValidationError,
)


class ReferralError(BaseApplicationError):
    default_error_code: str = "REFERRAL_ERROR"


class ReferralNotFoundError(ReferralError, NotFoundError):
    default_error_code: str = "REFERRAL_NOT_FOUND"


class ReferralValidationError(ReferralError, ValidationError):
    default_error_code: str = "REFERRAL_INVALID"


class ReferralPermissionError(ReferralError, PermissionDeniedError):
    default_error_code: str = "REFERRAL_FORBIDDEN"


class ReferralConflictError(ReferralError, ConflictError):
    default_error_code: str = "REFERRAL_ALREADY_APPLIED"
