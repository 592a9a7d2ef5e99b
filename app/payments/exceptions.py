"""
Payment-specific exceptions for escrow, wallet and gateway operations.

This module provides a hierarchy of exceptions for payment operations.
Every class also inherits the core exception that fixes its HTTP status,
so views only need core.views.error_response.

Exception Hierarchy:
    PaymentError (base for payment domain)
    ├── PaymentNotFoundError - Payment/withdrawal/subscription lookup (404)
    ├── PaymentValidationError - Amount or state rule violated (400)
    ├── PaymentConflictError - Already escrowed / already settled (409)
    ├── PaymentPermissionError - Actor may not touch this payment (403)
    └── GatewayError - Paystack failures (502)
        ├── GatewayRequestError - Rejected request (permanent)
        ├── GatewayRateLimitError - HTTP 429 (transient, retry)
        ├── GatewayUnavailableError - 5xx / connection error (transient, retry)
        └── GatewayTimeoutError - No response in time (transient, retry)

    InvalidStateTransitionError - FSM transition not allowed (inherits ConflictError)
    WebhookSignatureError - Webhook HMAC mismatch (inherits ValidationError)

Usage:
    from payments.exceptions import PaymentConflictError, GatewayError

    if payment.escrow_status in SETTLED_ESCROW_STATUSES:
        raise PaymentConflictError(
            f"Payment already {payment.escrow_status}",
            error_code="ESCROW_ALREADY_SETTLED",
            details={"escrow_status": payment.escrow_status},
        )
"""

from __future__ import annotations

from typing import TYPE_CHECKING

from core.exceptions import (
    BaseApplicationError,
    ConflictError,
    ExternalServiceError,
    NotFoundError,
    PermissionDeniedError,
    ValidationError,
)

if TYPE_CHECKING:
    from typing import Any


# =============================================================================
# Payment Domain Exceptions
# =============================================================================


class PaymentError(BaseApplicationError):
    """
    Base exception for all payment operations.

    Example:
        try:
            escrow_ledger.release_payment(booking_id)
        except PaymentError as e:
            logger.error(f"Release failed: {e}")
            raise
    """

    default_error_code: str = "PAYMENT_ERROR"


class PaymentNotFoundError(PaymentError, NotFoundError):
    """
    Raised when a payment entity cannot be found.

    Use for:
    - Payment lookup by id or reference fails
    - Withdrawal or subscription lookup fails
    """

    default_error_code: str = "PAYMENT_NOT_FOUND"


class PaymentValidationError(PaymentError, ValidationError):
    """
    Raised when payment validation fails.

    Use for:
    - Releasing before the booking is completed
    - Settling a payment that was never paid
    - Split amounts that do not add up to the payment amount
    - Withdrawal below the minimum or with a wrong PIN
    """

    default_error_code: str = "PAYMENT_VALIDATION_ERROR"


class PaymentConflictError(PaymentError, ConflictError):
    """
    Raised when the payment is already past the requested step.

    Use for:
    - Initializing payment for an escrowed booking
    - Releasing, refunding or splitting a settled payment
    """

    default_error_code: str = "PAYMENT_CONFLICT"


class PaymentPermissionError(PaymentError, PermissionDeniedError):
    """Raised when the acting user may not operate on the payment."""

    default_error_code: str = "PAYMENT_FORBIDDEN"


# =============================================================================
# Gateway Exceptions
# =============================================================================


class GatewayError(PaymentError, ExternalServiceError):
    """
    Base exception for all Paystack errors.

    Use is_retryable to determine retry behavior:
    - True: Transient error, safe to retry with backoff
    - False: Permanent error, do not retry

    Attributes:
        status_code: HTTP status returned by the gateway (None if no response)
    """

    default_error_code: str = "GATEWAY_ERROR"
    is_retryable: bool = False

    def __init__(
        self,
        message: str,
        error_code: str | None = None,
        status_code: int | None = None,
        details: dict[str, Any] | None = None,
    ):
        details = details or {}
        if status_code is not None:
            details["status_code"] = status_code
        super().__init__(message, error_code=error_code, details=details)
        self.status_code = status_code


class GatewayRequestError(GatewayError):
    """
    Request rejected by Paystack (4xx other than 429, or status false).

    Permanent: the same request will fail again.
    """

    default_error_code: str = "GATEWAY_REQUEST_REJECTED"
    is_retryable: bool = False


class GatewayRateLimitError(GatewayError):
    """Rate limited by Paystack (HTTP 429)."""

    default_error_code: str = "GATEWAY_RATE_LIMITED"
    is_retryable: bool = True


class GatewayUnavailableError(GatewayError):
    """
    Paystack is temporarily unavailable.

    This covers:
    - Server errors (5xx)
    - Connection failures
    """

    default_error_code: str = "GATEWAY_UNAVAILABLE"
    is_retryable: bool = True


class GatewayTimeoutError(GatewayError):
    """
    Paystack call timed out (PAYSTACK_TIMEOUT_SECONDS).

    The operation may have succeeded on Paystack's side. Initialization is
    safe to retry because the payment reference is fixed per attempt, and
    Paystack rejects a duplicate reference.
    """

    default_error_code: str = "GATEWAY_TIMEOUT"
    is_retryable: bool = True


# =============================================================================
# State and Webhook Exceptions
# =============================================================================


class InvalidStateTransitionError(ConflictError):
    """
    Raised when a state machine transition is not allowed.

    This exception wraps django-fsm's TransitionNotAllowed to provide
    our standard error format with additional context.

    Example:
        from django_fsm import TransitionNotAllowed

        try:
            payment.release()
        except TransitionNotAllowed:
            raise InvalidStateTransitionError(
                f"Cannot release payment from '{payment.escrow_status}' state",
                details={
                    "current_state": payment.escrow_status,
                    "transition": "release",
                },
            )
    """

    default_error_code: str = "INVALID_STATE_TRANSITION"


class WebhookSignatureError(ValidationError):
    """Raised when a webhook's x-paystack-signature does not match the body."""

    default_error_code: str = "INVALID_WEBHOOK_SIGNATURE"


# =============================================================================
# Exports
# =============================================================================

__all__ = [
    # Payment domain
    "PaymentError",
    "PaymentNotFoundError",
    "PaymentValidationError",
    "PaymentConflictError",
    "PaymentPermissionError",
    # Gateway
    "GatewayError",
    "GatewayRequestError",
    "GatewayRateLimitError",
    "GatewayUnavailableError",
    "GatewayTimeoutError",
    # State and webhooks
    "InvalidStateTransitionError",
    "WebhookSignatureError",
]
