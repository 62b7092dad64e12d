from __future__ import annotations
# chequebook/errors.py
"""
Error types for the chequebook. These are lightweight, serializable, and safe
to surface over RPC/logs.

Exports:
- ChequebookError (base)
- OutOfFunds
- InsufficientFunds
- NoCheque
- TransactionReverted
- CorruptState
- DeliveryFailed
"""


from typing import Any, Dict, Mapping, Optional
import json


class ChequebookError(Exception):
    """Base class for chequebook domain errors."""

    code: str = "CHEQUEBOOK_ERROR"

    def __init__(self, message: str = "", *, details: Optional[Mapping[str, Any]] = None) -> None:
        self.message = message or self.__class__.__name__
        self.details = dict(details or {})
        super().__init__(self.__str__())

    def to_dict(self) -> Dict[str, Any]:
        return {"code": self.code, "message": self.message, "details": self.details}

    def __str__(self) -> str:  # pragma: no cover - trivial
        if self.details:
            try:
                packed = json.dumps(self.details, sort_keys=True, separators=(",", ":"))
            except (TypeError, ValueError):
                packed = str(self.details)
            return f"{self.code}: {self.message} [{packed}]"
        return f"{self.code}: {self.message}"


class OutOfFunds(ChequebookError):
    """The chequebook has not enough free funds to cover a new cheque."""
    code = "CHEQUEBOOK_OUT_OF_FUNDS"

    def __init__(
        self,
        *,
        requested: int,
        available: int,
        beneficiary: Optional[str] = None,
        message: str = "chequebook out of funds",
        details: Optional[Mapping[str, Any]] = None,
    ) -> None:
        d = dict(details or {})
        # amounts are strings: uint256 values do not fit JSON numbers safely
        d.update({"requested": str(int(requested)), "available": str(int(available))})
        if beneficiary is not None:
            d.setdefault("beneficiary", beneficiary)
        self.requested = int(requested)
        self.available = int(available)
        super().__init__(message, details=d)


class InsufficientFunds(ChequebookError):
    """
    Not enough token balance for a user action: the owner's wallet for a
    deposit, or the uncommitted escrow balance for a withdrawal.
    """
    code = "CHEQUEBOOK_INSUFFICIENT_FUNDS"

    def __init__(
        self,
        *,
        requested: int,
        balance: int,
        action: Optional[str] = None,
        message: str = "insufficient token balance",
        details: Optional[Mapping[str, Any]] = None,
    ) -> None:
        d = dict(details or {})
        d.update({"requested": str(int(requested)), "balance": str(int(balance))})
        if action is not None:
            d.setdefault("action", action)
        self.requested = int(requested)
        self.balance = int(balance)
        super().__init__(message, details=d)


class NoCheque(ChequebookError):
    """No cheque has been issued to the beneficiary yet. Expected, not a fault."""
    code = "CHEQUEBOOK_NO_CHEQUE"

    def __init__(
        self,
        *,
        beneficiary: Optional[str] = None,
        message: str = "no cheque",
        details: Optional[Mapping[str, Any]] = None,
    ) -> None:
        d = dict(details or {})
        if beneficiary is not None:
            d.setdefault("beneficiary", beneficiary)
        super().__init__(message, details=d)


class TransactionReverted(ChequebookError):
    """A transaction was mined but its receipt reports failure."""
    code = "CHEQUEBOOK_TX_REVERTED"

    def __init__(
        self,
        *,
        tx_hash: Optional[str] = None,
        status: Optional[int] = None,
        message: str = "transaction reverted",
        details: Optional[Mapping[str, Any]] = None,
    ) -> None:
        d = dict(details or {})
        if tx_hash is not None:
            d["tx_hash"] = tx_hash
        if status is not None:
            d["status"] = int(status)
        super().__init__(message, details=d)


class CorruptState(ChequebookError):
    """
    Persisted ledger state cannot be decoded: a key under the cheque prefix
    without a valid beneficiary, an unparsable cheque record or counter.
    """
    code = "CHEQUEBOOK_CORRUPT_STATE"

    def __init__(
        self,
        message: str = "corrupt ledger state",
        *,
        key: Optional[bytes] = None,
        details: Optional[Mapping[str, Any]] = None,
    ) -> None:
        d = dict(details or {})
        if key is not None:
            d["key"] = key.decode("utf-8", "replace")
        super().__init__(message, details=d)


class DeliveryFailed(ChequebookError):
    """
    Convenience error for delivery functions. Issuance propagates whatever the
    delivery function raises, this class or not.
    """
    code = "CHEQUEBOOK_DELIVERY_FAILED"

    def __init__(
        self,
        message: str = "cheque delivery failed",
        *,
        beneficiary: Optional[str] = None,
        details: Optional[Mapping[str, Any]] = None,
    ) -> None:
        d = dict(details or {})
        if beneficiary is not None:
            d.setdefault("beneficiary", beneficiary)
        super().__init__(message, details=d)


__all__ = [
    "ChequebookError",
    "OutOfFunds",
    "InsufficientFunds",
    "NoCheque",
    "TransactionReverted",
    "CorruptState",
    "DeliveryFailed",
]
