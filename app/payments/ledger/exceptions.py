"""
Ledger-specific exceptions for wallet operations.

This module provides a hierarchy of exceptions for wallet ledger operations,
inheriting from the core exception classes for API consistency.

Exception Hierarchy:
    LedgerError (base, 400)
    ├── WalletNotFound - Wallet owner lookup failures (404)
    ├── InsufficientBalance - Debit larger than the balance (400)
    └── LedgerInvariantError - Balance differs from the transaction log

Usage:
    from payments.ledger.exceptions import InsufficientBalance

    if balance_before < amount:
        raise InsufficientBalance(user.id, required=amount, available=balance_before)
"""

from __future__ import annotations

from typing import TYPE_CHECKING

from core.exceptions import NotFoundError, ValidationError

if TYPE_CHECKING:
    import uuid
    from typing import Any


class LedgerError(ValidationError):
    """
    Base exception for all wallet ledger operations.

    Example:
        try:
            wallet_ledger.debit(params)
        except LedgerError as e:
            logger.error(f"Wallet operation failed: {e}")
            raise
    """

    default_error_code: str = "LEDGER_ERROR"


class WalletNotFound(LedgerError, NotFoundError):
    """Raised when the wallet owner does not exist."""

    default_error_code: str = "WALLET_NOT_FOUND"


class InsufficientBalance(LedgerError):
    """
    Raised when a debit would take the wallet below zero.

    Attributes:
        user_id: Wallet owner
        required: Amount that was requested
        available: Balance at the time of the debit
    """

    default_error_code: str = "INSUFFICIENT_BALANCE"

    def __init__(
        self,
        user_id: uuid.UUID,
        required: int,
        available: int,
        error_code: str | None = None,
        details: dict[str, Any] | None = None,
    ):
        self.user_id = user_id
        self.required = required
        self.available = available

        full_details = {
            "user_id": str(user_id),
            "required": required,
            "available": available,
        }
        if details:
            full_details.update(details)

        super().__init__(
            message=f"Insufficient wallet balance: required {required}, available {available}",
            error_code=error_code,
            details=full_details,
        )


class LedgerInvariantError(LedgerError):
    """
    Raised when a wallet balance does not equal the sum of its transactions.

    This indicates a write that bypassed WalletLedger and needs manual
    investigation; it is never expected in normal operation.
    """

    default_error_code: str = "LEDGER_INVARIANT_VIOLATED"
