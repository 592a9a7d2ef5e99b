"""
Paystack API adapter for payment operations.

This module provides the PaystackAdapter class which encapsulates all
Paystack API interactions. All Paystack calls should go through this
adapter to ensure consistent error handling, timeouts, retries and
observability.

Features:
- Configurable timeout on every request
- Bounded retry with exponential backoff and jitter for transient failures
- Automatic error translation to domain exceptions
- Structured logging with timing metrics
- HMAC-SHA512 webhook signature verification

Configuration (via settings):
- PAYSTACK_SECRET_KEY: Secret key, also signs webhooks
- PAYSTACK_BASE_URL: API root (default: https://api.paystack.co)
- PAYSTACK_TIMEOUT_SECONDS: Request timeout (default: 10)
- PAYSTACK_MAX_RETRIES: Max retry attempts (default: 3)

Usage:
    from payments.adapters import PaystackAdapter

    result = PaystackAdapter.initialize(
        email=client.email,
        amount_minor_units=payment.amount * 100,
        reference=payment.reference,
        callback_url=callback_url,
    )
    redirect(result.authorization_url)
"""

from __future__ import annotations

import hashlib
import hmac
import logging
import random
import time
from dataclasses import dataclass, field
from typing import Any

import requests
from django.conf import settings

from payments.exceptions import (
    GatewayError,
    GatewayRateLimitError,
    GatewayRequestError,
    GatewayTimeoutError,
    GatewayUnavailableError,
)


# =============================================================================
# Data Types
# =============================================================================


@dataclass
class InitializeResult:
    """
    Result from transaction initialization.

    Attributes:
        authorization_url: Checkout page the client is redirected to
        access_code: Code for inline checkout
        reference: Reference echoed back by Paystack
    """

    authorization_url: str
    access_code: str
    reference: str
    raw_response: dict[str, Any] = field(default_factory=dict)


@dataclass
class VerifyResult:
    """
    Result from transaction verification.

    Attributes:
        status: Paystack transaction status (success, failed, abandoned, ...)
        reference: Transaction reference
        amount_minor_units: Charged amount in kobo
        authorization_code: Reusable card authorization (empty if none)
    """

    status: str
    reference: str
    amount_minor_units: int
    authorization_code: str = ""
    raw_response: dict[str, Any] = field(default_factory=dict)

    @property
    def is_successful(self) -> bool:
        return self.status == "success"


@dataclass
class TransferResult:
    """
    Result from Paystack Transfer operations.

    Attributes:
        transfer_code: Paystack transfer code (TRF_xxx)
        status: pending, success, failed, otp, ...
        reference: Our withdrawal reference
    """

    transfer_code: str
    status: str
    reference: str
    raw_response: dict[str, Any] = field(default_factory=dict)


# =============================================================================
# Retry Logic Helpers
# =============================================================================


def is_retryable_gateway_error(error: Exception) -> bool:
    """
    Check if a gateway error is retryable.

    Use this in Celery tasks to decide whether to retry:

        @shared_task(bind=True, max_retries=3)
        def process_withdrawal_transfer(self, withdrawal_id):
            try:
                withdrawal_service.process_withdrawal(...)
            except Exception as e:
                if is_retryable_gateway_error(e):
                    raise self.retry(exc=e, countdown=backoff_delay(self.request.retries))
                raise
    """
    if isinstance(error, GatewayError):
        return getattr(error, "is_retryable", False)
    return False


def backoff_delay(attempt: int, base: float = 1.0, max_delay: float = 60.0) -> float:
    """
    Calculate exponential backoff delay with jitter.

    Jitter prevents thundering herd when multiple workers retry simultaneously.

    Args:
        attempt: Current attempt number (0-indexed)
        base: Base delay in seconds (default: 1.0)
        max_delay: Maximum delay in seconds (default: 60.0)

    Returns:
        Delay in seconds with jitter (0-25% of calculated delay)

    Example:
        # Attempt 0: 1.0 - 1.25 seconds
        # Attempt 1: 2.0 - 2.5 seconds
        # Attempt 2: 4.0 - 5.0 seconds
        delay = backoff_delay(attempt=2)
    """
    delay = min(base * (2**attempt), max_delay)
    jitter = delay * random.uniform(0, 0.25)
    return delay + jitter


# =============================================================================
# Paystack Adapter
# =============================================================================


class PaystackAdapter:
    """
    Adapter for Paystack API operations.

    All methods are class methods - no instance state is maintained.
    Thread-safe for use from Celery workers.

    Only transient failures are retried: timeouts, connection errors,
    HTTP 429 and 5xx. A 4xx response or a body with "status": false is
    raised immediately as GatewayRequestError.
    """

    @classmethod
    def get_logger(cls) -> logging.Logger:
        return logging.getLogger(f"{cls.__module__}.{cls.__name__}")

    @staticmethod
    def _headers() -> dict[str, str]:
        return {
            "Authorization": f"Bearer {settings.PAYSTACK_SECRET_KEY}",
            "Content-Type": "application/json",
        }

    # =========================================================================
    # Core Operations
    # =========================================================================

    @classmethod
    def initialize(
        cls,
        email: str,
        amount_minor_units: int,
        reference: str,
        callback_url: str,
        metadata: dict[str, Any] | None = None,
    ) -> InitializeResult:
        """
        Initialize a checkout transaction.

        Args:
            email: Payer email
            amount_minor_units: Amount in kobo
            reference: Our unique payment reference
            callback_url: Where Paystack redirects after checkout
            metadata: Extra data echoed back in webhooks

        Raises:
            GatewayError: Any Paystack failure after retries
        """
        body = cls._request(
            "POST",
            "/transaction/initialize",
            operation="initialize",
            json={
                "email": email,
                "amount": amount_minor_units,
                "reference": reference,
                "callback_url": callback_url,
                "currency": getattr(settings, "PAYSTACK_CURRENCY", "NGN"),
                "metadata": metadata or {},
            },
            log_context={"reference": reference, "amount_minor_units": amount_minor_units},
        )
        data = body.get("data") or {}
        return InitializeResult(
            authorization_url=data.get("authorization_url", ""),
            access_code=data.get("access_code", ""),
            reference=data.get("reference", reference),
            raw_response=body,
        )

    @classmethod
    def verify(cls, reference: str) -> VerifyResult:
        """
        Verify a transaction by reference.

        Raises:
            GatewayError: Any Paystack failure after retries
        """
        body = cls._request(
            "GET",
            f"/transaction/verify/{reference}",
            operation="verify",
            log_context={"reference": reference},
        )
        data = body.get("data") or {}
        authorization = data.get("authorization") or {}
        return VerifyResult(
            status=data.get("status", ""),
            reference=data.get("reference", reference),
            amount_minor_units=int(data.get("amount") or 0),
            authorization_code=authorization.get("authorization_code", "") or "",
            raw_response=body,
        )

    @classmethod
    def create_transfer_recipient(
        cls,
        name: str,
        account_number: str,
        bank_code: str,
    ) -> str:
        """
        Register a bank account as a transfer recipient.

        Returns:
            The recipient code (RCP_xxx)
        """
        body = cls._request(
            "POST",
            "/transferrecipient",
            operation="create_transfer_recipient",
            json={
                "type": "nuban",
                "name": name,
                "account_number": account_number,
                "bank_code": bank_code,
                "currency": getattr(settings, "PAYSTACK_CURRENCY", "NGN"),
            },
            log_context={"bank_code": bank_code},
        )
        return (body.get("data") or {}).get("recipient_code", "")

    @classmethod
    def transfer(
        cls,
        recipient_code: str,
        amount_minor_units: int,
        reference: str,
        reason: str = "",
    ) -> TransferResult:
        """
        Send money from the Paystack balance to a recipient.

        The final outcome arrives later as a transfer.success,
        transfer.failed or transfer.reversed webhook.
        """
        body = cls._request(
            "POST",
            "/transfer",
            operation="transfer",
            json={
                "source": "balance",
                "amount": amount_minor_units,
                "recipient": recipient_code,
                "reference": reference,
                "reason": reason,
            },
            log_context={"reference": reference, "amount_minor_units": amount_minor_units},
        )
        data = body.get("data") or {}
        return TransferResult(
            transfer_code=data.get("transfer_code", ""),
            status=data.get("status", ""),
            reference=data.get("reference", reference),
            raw_response=body,
        )

    # =========================================================================
    # Webhook Verification
    # =========================================================================

    @staticmethod
    def compute_signature(payload: bytes) -> str:
        """HMAC-SHA512 of the raw body with the secret key, hex encoded."""
        return hmac.new(
            settings.PAYSTACK_SECRET_KEY.encode("utf-8"),
            payload,
            hashlib.sha512,
        ).hexdigest()

    @classmethod
    def verify_webhook_signature(cls, payload: bytes, signature: str | None) -> bool:
        """
        Check the x-paystack-signature header against the raw body.

        Comparison is constant-time. A missing signature or secret key
        never verifies.
        """
        if not signature or not settings.PAYSTACK_SECRET_KEY:
            return False
        return hmac.compare_digest(cls.compute_signature(payload), signature)

    # =========================================================================
    # Transport
    # =========================================================================

    @classmethod
    def _request(
        cls,
        method: str,
        path: str,
        operation: str,
        json: dict[str, Any] | None = None,
        log_context: dict[str, Any] | None = None,
    ) -> dict[str, Any]:
        """
        Send one API call, retrying transient failures.

        Returns:
            The decoded JSON body (status is true)

        Raises:
            GatewayRequestError: Permanent rejection
            GatewayRateLimitError / GatewayUnavailableError / GatewayTimeoutError:
                Transient failure that persisted past PAYSTACK_MAX_RETRIES
        """
        logger = cls.get_logger()
        max_retries = getattr(settings, "PAYSTACK_MAX_RETRIES", 3)
        timeout = getattr(settings, "PAYSTACK_TIMEOUT_SECONDS", 10)
        url = f"{settings.PAYSTACK_BASE_URL.rstrip('/')}{path}"
        context = {"operation": operation, **(log_context or {})}

        attempt = 0
        while True:
            start_time = time.time()
            logger.info("Starting Paystack operation", extra={**context, "attempt": attempt})
            try:
                body = cls._send(method, url, json=json, timeout=timeout)
                logger.info(
                    "Paystack operation completed",
                    extra={**context, "duration_ms": (time.time() - start_time) * 1000},
                )
                return body
            except GatewayError as e:
                duration_ms = (time.time() - start_time) * 1000
                if not e.is_retryable or attempt >= max_retries:
                    logger.error(
                        "Paystack operation failed",
                        extra={
                            **context,
                            "attempt": attempt,
                            "error_code": e.error_code,
                            "duration_ms": duration_ms,
                        },
                    )
                    raise
                delay = backoff_delay(attempt)
                logger.warning(
                    "Transient Paystack failure, retrying",
                    extra={
                        **context,
                        "attempt": attempt,
                        "error_code": e.error_code,
                        "retry_in_seconds": delay,
                    },
                )
                time.sleep(delay)
                attempt += 1

    @classmethod
    def _send(
        cls,
        method: str,
        url: str,
        json: dict[str, Any] | None,
        timeout: int,
    ) -> dict[str, Any]:
        """Perform the HTTP call and translate failures to domain exceptions."""
        try:
            response = requests.request(
                method,
                url,
                headers=cls._headers(),
                json=json,
                timeout=timeout,
            )
        except requests.exceptions.Timeout:
            raise GatewayTimeoutError("Paystack request timed out")
        except requests.exceptions.ConnectionError:
            raise GatewayUnavailableError("Could not connect to Paystack")
        except requests.exceptions.RequestException as e:
            raise GatewayUnavailableError(f"Paystack request failed: {e}")

        status_code = response.status_code
        if status_code == 429:
            raise GatewayRateLimitError(
                "Paystack rate limit exceeded",
                status_code=status_code,
            )
        if status_code >= 500:
            raise GatewayUnavailableError(
                "Paystack service error",
                status_code=status_code,
            )

        try:
            body = response.json()
        except ValueError:
            raise GatewayRequestError(
                "Paystack returned a non-JSON response",
                status_code=status_code,
            )

        if status_code >= 400 or not body.get("status"):
            raise GatewayRequestError(
                body.get("message") or "Paystack rejected the request",
                status_code=status_code,
            )
        return body


__all__ = [
    "InitializeResult",
    "PaystackAdapter",
    "TransferResult",
    "VerifyResult",
    "backoff_delay",
    "is_retryable_gateway_error",
]
