"""
Data types for wallet ledger operations.

Types:
    WalletEntryParams: Parameters for one wallet credit or debit
    WalletStats: Aggregates shown on the wallet screen
    WalletReconciliation: Result of comparing a balance with its log

Usage:
    from payments.ledger.types import WalletEntryParams

    params = WalletEntryParams(
        user_id=vendor.id,
        amount=4500,
        type=TransactionType.BOOKING_PAYMENT,
        description="Payment released for booking",
        booking_id=booking.id,
        payment_id=payment.id,
        idempotency_key=f"release:{payment.id}",
    )
"""

from __future__ import annotations

import uuid
from dataclasses import dataclass, field
from typing import Any

from payments.state_machines import TransactionStatus


@dataclass
class WalletEntryParams:
    """
    Parameters for recording a wallet movement.

    amount is always positive; WalletLedger.credit and WalletLedger.debit
    decide the sign of the stored Transaction.

    Required Attributes:
        user_id: Wallet owner
        amount: Positive amount in whole currency units
        type: TransactionType value

    Optional Attributes:
        description: Human-readable description
        reference: Transaction reference (generated as TXN-... when empty)
        booking_id / payment_id / withdrawal_id: Links to the cause
        idempotency_key: A repeated call with the same key returns the first row
        status: Transaction status (withdrawal debits start pending)
        metadata: Arbitrary JSON-serializable data
    """

    user_id: uuid.UUID
    amount: int
    type: str

    description: str = ""
    reference: str | None = None
    booking_id: uuid.UUID | None = None
    payment_id: uuid.UUID | None = None
    withdrawal_id: uuid.UUID | None = None
    idempotency_key: str | None = None
    status: str = TransactionStatus.COMPLETED
    metadata: dict[str, Any] = field(default_factory=dict)

    def __post_init__(self) -> None:
        if self.amount <= 0:
            raise ValueError("amount must be positive")
        if self.idempotency_key == "":
            raise ValueError("idempotency_key must be None or non-empty")


@dataclass(frozen=True)
class WalletStats:
    balance: int
    total_received: int
    total_withdrawn: int
    pending_withdrawals: int

    def to_dict(self) -> dict[str, int]:
        return {
            "balance": self.balance,
            "total_received": self.total_received,
            "total_withdrawn": self.total_withdrawn,
            "pending_withdrawals": self.pending_withdrawals,
        }


@dataclass(frozen=True)
class WalletReconciliation:
    """Stored balance next to the sum of the transaction log."""

    user_id: uuid.UUID
    balance: int
    ledger_total: int

    @property
    def is_balanced(self) -> bool:
        return self.balance == self.ledger_total

    @property
    def difference(self) -> int:
        return self.balance - self.ledger_total
