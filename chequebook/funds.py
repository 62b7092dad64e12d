from __future__ import annotations

"""
Moving tokens in and out of the chequebook.

deposit:   ERC-20 transfer from the owner to the chequebook. The owner's
            token balance is checked first so an unaffordable transfer fails
            here instead of burning gas on-chain.
withdraw:  chequebook withdraw call. Only the uncommitted balance may leave;
            withdrawing funds that back outstanding cheques would let them
            bounce.
wait_for_deposit: block for the receipt; a mined-but-failed tx is
            TransactionReverted, transport/timeout errors propagate as raised.

deposit/withdraw return once the transaction is submitted, not confirmed.
"""

from typing import Optional

from . import logging as clog
from . import metrics
from .accounting import BalanceAccountant
from .chain import ABICallEncoder, CallEncoder, ChainOracle, TransactionService, TxRequest
from .cheque import Address, to_address
from .errors import InsufficientFunds, TransactionReverted

log = clog.get_logger(__name__)


def _check_amount(amount: int) -> None:
    if isinstance(amount, bool) or not isinstance(amount, int) or amount <= 0:
        raise ValueError(f"amount must be a positive int, got {amount!r}")


class FundsMover:
    def __init__(
        self,
        address: Address,
        token_address: Address,
        owner_address: Address,
        chain: ChainOracle,
        transactions: TransactionService,
        accountant: BalanceAccountant,
        *,
        encoder: Optional[CallEncoder] = None,
        metrics_enabled: bool = True,
    ) -> None:
        self.address = to_address(address)
        self.token_address = to_address(token_address)
        self.owner_address = to_address(owner_address)
        self.chain = chain
        self.transactions = transactions
        self.accountant = accountant
        self.encoder = encoder or ABICallEncoder()
        self.metrics_enabled = metrics_enabled

    def deposit(self, amount: int) -> bytes:
        """Start depositing `amount` tokens; returns the tx hash once broadcast."""
        _check_amount(amount)
        balance = self.chain.token_balance_of(self.owner_address)
        if balance < amount:
            self._record("deposit", "rejected")
            raise InsufficientFunds(requested=amount, balance=balance, action="deposit")

        request = TxRequest(to=self.token_address, data=self.encoder.transfer(self.address, amount))
        tx_hash = self.transactions.send(request)
        self._record("deposit", "submitted")
        log.info("deposit submitted", extra={"amount": amount, "tx_hash": tx_hash.hex()})
        return tx_hash

    def wait_for_deposit(self, tx_hash: bytes) -> None:
        """Wait for a deposit to be mined and check that it succeeded."""
        receipt = self.transactions.wait_for_receipt(tx_hash)
        if not receipt.ok:
            self._record("deposit", "reverted")
            raise TransactionReverted(tx_hash=tx_hash.hex(), status=receipt.status)
        self._record("deposit", "confirmed")

    def withdraw(self, amount: int) -> bytes:
        """Start withdrawing `amount` tokens; returns the tx hash once broadcast."""
        _check_amount(amount)
        available = self.accountant.available_balance()
        if available < amount:
            self._record("withdraw", "rejected")
            raise InsufficientFunds(requested=amount, balance=available, action="withdraw")

        request = TxRequest(to=self.address, data=self.encoder.withdraw(amount))
        tx_hash = self.transactions.send(request)
        self._record("withdraw", "submitted")
        log.info("withdraw submitted", extra={"amount": amount, "tx_hash": tx_hash.hex()})
        return tx_hash

    def _record(self, kind: str, result: str) -> None:
        if self.metrics_enabled:
            metrics.record_tx(kind, result)


__all__ = ["FundsMover"]
