"""
Payment adapters for external services.

All Paystack API calls should go through PaystackAdapter to ensure
consistent error handling, timeouts, retries and observability.

Usage:
    from payments.adapters import PaystackAdapter

    result = PaystackAdapter.verify("PAY-1718000000000-9f3c2a1b")
    if result.is_successful:
        ...
"""

from payments.adapters.paystack_adapter import (
    InitializeResult,
    PaystackAdapter,
    TransferResult,
    VerifyResult,
    backoff_delay,
    is_retryable_gateway_error,
)

__all__ = [
    "InitializeResult",
    "PaystackAdapter",
    "TransferResult",
    "VerifyResult",
    "backoff_delay",
    "is_retryable_gateway_error",
]
