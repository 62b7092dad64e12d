from __future__ import annotations

"""
Balance accounting.

    available = balance + total_paid_out - total_issued

`balance + total_paid_out` is everything ever put into the chequebook
(deposits and withdrawals that cancel out aside); subtracting what we have
promised in cheques leaves the part of the balance no cheque covers yet.
That number bounds both new cheques and withdrawals.

Not serialized against issuance: a caller outside the issue lock gets a
best-effort snapshot. The issuer recomputes it under the lock.
"""

from . import metrics
from .chain import ChainOracle
from .registry import ChequeRegistry


class BalanceAccountant:
    def __init__(self, chain: ChainOracle, registry: ChequeRegistry, *, metrics_enabled: bool = True) -> None:
        self.chain = chain
        self.registry = registry
        self.metrics_enabled = metrics_enabled

    def balance(self) -> int:
        """Token balance of the chequebook contract."""
        return self.chain.balance()

    def total_issued(self) -> int:
        return self.registry.total_issued()

    def available_balance(self) -> int:
        """Balance not yet covered by issued cheques. Negative if over-committed."""
        total_issued = self.registry.total_issued()
        balance = self.chain.balance()
        total_paid_out = self.chain.total_paid_out()

        available = balance + total_paid_out - total_issued
        if self.metrics_enabled:
            metrics.record_available(available)
        return available


__all__ = ["BalanceAccountant"]
