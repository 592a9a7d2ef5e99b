"""
Wallet ledger for user balances.

Every change to a user's wallet goes through WalletLedger, which pairs the
balance update with one immutable Transaction row.

Public API:
    Service:
        wallet_ledger - Singleton instance of WalletLedger
        WalletLedger - Class with all wallet operations

    Types:
        WalletEntryParams - Parameters for a credit or debit
        WalletStats - Wallet screen aggregates
        WalletReconciliation - Balance vs. transaction log

    Exceptions:
        LedgerError - Base exception for wallet operations
        WalletNotFound - Unknown wallet owner
        InsufficientBalance - Debit larger than the balance
        LedgerInvariantError - Balance differs from the log

Usage:
    from payments.ledger import wallet_ledger, WalletEntryParams, InsufficientBalance

    try:
        wallet_ledger.debit(WalletEntryParams(
            user_id=vendor.id,
            amount=5000,
            type=TransactionType.SUBSCRIPTION_PAYMENT,
        ))
    except InsufficientBalance as e:
        print(f"Need {e.required}, have {e.available}")
"""

from .exceptions import (
    InsufficientBalance,
    LedgerError,
    LedgerInvariantError,
    WalletNotFound,
)
from .services import WalletLedger, wallet_ledger
from .types import WalletEntryParams, WalletReconciliation, WalletStats

__all__ = [
    # Service
    "wallet_ledger",
    "WalletLedger",
    # Types
    "WalletEntryParams",
    "WalletReconciliation",
    "WalletStats",
    # Exceptions
    "LedgerError",
    "WalletNotFound",
    "InsufficientBalance",
    "LedgerInvariantError",
]
