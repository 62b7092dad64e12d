from __future__ import annotations

"""
Cheque issuance
===============

`ChequeIssuer.issue(beneficiary, amount, deliver)` runs, under one lock
shared by every beneficiary:

  1) available = balance + total_paid_out - total_issued; amount must fit
  2) baseline  = last cheque's cumulative payout for the beneficiary (or 0)
  3) cheque    = (chequebook, beneficiary, baseline + amount)
  4) sign it
  5) deliver(signed); if this raises, nothing has been persisted
  6) record the cheque and total_issued += amount in one KV batch

Order matters in 5 → 6. Persisting first would raise the beneficiary's
baseline and the total for a cheque nobody received; the next attempt would
then build on top of it and the gap would be given away. Persisting after
delivery leaves a failed attempt with no trace, so the same call can simply
be retried.

The lock is held across delivery. While one delivery is slow, all issuance
on this chequebook waits.
"""

import threading
from typing import Callable

from . import logging as clog
from . import metrics
from .accounting import BalanceAccountant
from .cheque import Address, Cheque, SignedCheque, to_address
from .errors import NoCheque, OutOfFunds
from .registry import ChequeRegistry
from .signer import ChequeSigner

log = clog.get_logger(__name__)

# Hands a signed cheque to its beneficiary; raises on failure.
Deliver = Callable[[SignedCheque], None]


class ChequeIssuer:
    def __init__(
        self,
        address: Address,
        registry: ChequeRegistry,
        accountant: BalanceAccountant,
        signer: ChequeSigner,
        *,
        metrics_enabled: bool = True,
    ) -> None:
        self.address = to_address(address)
        self.registry = registry
        self.accountant = accountant
        self.signer = signer
        self.metrics_enabled = metrics_enabled
        self._lock = threading.Lock()

    def issue(self, beneficiary: Address, amount: int, deliver: Deliver) -> SignedCheque:
        """
        Issue a cheque raising `beneficiary`'s cumulative payout by `amount`
        and pass it to `deliver`. Returns the cheque once it is delivered and
        recorded.

        Raises:
            ValueError: amount is not a positive int.
            OutOfFunds: amount exceeds the available balance.
            Whatever `deliver`, the signer, the chain or the store raise.
        """
        if isinstance(amount, bool) or not isinstance(amount, int) or amount <= 0:
            raise ValueError(f"amount must be a positive int, got {amount!r}")
        beneficiary = to_address(beneficiary)

        with self._lock:
            if not self.metrics_enabled:
                return self._issue_locked(beneficiary, amount, deliver)
            with metrics.time_issue():
                return self._issue_locked(beneficiary, amount, deliver)

    def _issue_locked(self, beneficiary: Address, amount: int, deliver: Deliver) -> SignedCheque:
        extra = {"beneficiary": beneficiary, "amount": amount}

        try:
            available = self.accountant.available_balance()
        except Exception:
            self._record("error")
            raise
        if amount > available:
            self._record("out_of_funds")
            log.warning("cheque exceeds available balance", extra={**extra, "available": available})
            raise OutOfFunds(requested=amount, available=available, beneficiary=beneficiary)

        try:
            baseline = self.registry.last_cheque(beneficiary).cumulative_payout
        except NoCheque:
            baseline = 0
        except Exception:
            self._record("error")
            raise

        try:
            cheque = Cheque(
                chequebook=self.address,
                beneficiary=beneficiary,
                cumulative_payout=baseline + amount,
            )
        except ValueError:
            self._record("error")
            log.warning("cumulative payout out of range", extra={**extra, "baseline": baseline})
            raise
        try:
            signed = SignedCheque(cheque=cheque, signature=self.signer.sign(cheque))
        except Exception:
            self._record("error")
            raise

        # deliver before persisting, see module docstring
        try:
            deliver(signed)
        except Exception:
            self._record("delivery_failed")
            log.warning("cheque delivery failed", extra=extra, exc_info=True)
            raise

        try:
            total = self.registry.record_issued(signed, amount)
        except Exception:
            self._record("error")
            log.error("cheque delivered but not recorded", extra=extra, exc_info=True)
            raise

        self._record("issued", amount)
        log.info(
            "cheque issued",
            extra={**extra, "cumulative_payout": cheque.cumulative_payout, "total_issued": total},
        )
        return signed

    def _record(self, result: str, amount: int = 0) -> None:
        if self.metrics_enabled:
            metrics.record_issue(result, amount)


__all__ = ["ChequeIssuer", "Deliver"]
