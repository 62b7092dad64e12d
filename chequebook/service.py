from __future__ import annotations

"""
ChequebookService — one escrow contract, one issuer
===================================================

Wires the ledger store, chain oracle, transaction service and signer into
the accountant, registry, issuer and funds mover for a single chequebook.
Keep exactly one service per chequebook per process: the issue lock lives
on the instance, and two instances over the same store would not exclude
each other.

Example
-------
    svc = ChequebookService(
        address=CHEQUEBOOK, token_address=TOKEN, owner_address=OWNER,
        store=open_kv("sqlite:///chequebook.db"),
        chain=oracle, transactions=txs, signer=Ed25519ChequeSigner(),
    )
    svc.issue(peer, 1_000, deliver=send_over_p2p)
"""

from typing import Dict, Optional

from . import logging as clog
from .accounting import BalanceAccountant
from .chain import CallEncoder, ChainOracle, TransactionService
from .cheque import Address, SignedCheque, to_address
from .config import ChequebookConfig
from .db import open_kv
from .db.kv import KV
from .funds import FundsMover
from .issuer import ChequeIssuer, Deliver
from .registry import ChequeRegistry
from .signer import ChequeSigner

log = clog.get_logger(__name__)


class ChequebookService:
    def __init__(
        self,
        *,
        address: Address,
        token_address: Address,
        owner_address: Address,
        store: KV,
        chain: ChainOracle,
        transactions: TransactionService,
        signer: ChequeSigner,
        encoder: Optional[CallEncoder] = None,
        metrics_enabled: bool = True,
    ) -> None:
        self._address = to_address(address)
        self.store = store
        self.registry = ChequeRegistry(store, self._address)
        self.accountant = BalanceAccountant(chain, self.registry, metrics_enabled=metrics_enabled)
        self.issuer = ChequeIssuer(
            self._address, self.registry, self.accountant, signer, metrics_enabled=metrics_enabled
        )
        self.funds = FundsMover(
            self._address,
            token_address,
            owner_address,
            chain,
            transactions,
            self.accountant,
            encoder=encoder,
            metrics_enabled=metrics_enabled,
        )

    @classmethod
    def from_config(
        cls,
        config: ChequebookConfig,
        *,
        chain: ChainOracle,
        transactions: TransactionService,
        signer: ChequeSigner,
        encoder: Optional[CallEncoder] = None,
    ) -> "ChequebookService":
        """Apply the logging settings, open the configured ledger store and build the service."""
        config.validate()
        missing = [
            name
            for name in ("chequebook_address", "token_address", "owner_address")
            if getattr(config, name) is None
        ]
        if missing:
            raise ValueError(f"config is missing: {', '.join(missing)}")
        clog.configure(
            json=None if config.log_format is None else config.log_format == "json",
            level=config.log_level,
        )
        store = open_kv(config.db_uri)
        log.info("chequebook ledger opened", extra={"db_uri": config.db_uri})
        return cls(
            address=config.chequebook_address,  # type: ignore[arg-type]
            token_address=config.token_address,  # type: ignore[arg-type]
            owner_address=config.owner_address,  # type: ignore[arg-type]
            store=store,
            chain=chain,
            transactions=transactions,
            signer=signer,
            encoder=encoder,
            metrics_enabled=config.metrics_enabled,
        )

    @property
    def address(self) -> Address:
        """Address of the chequebook contract."""
        return self._address

    def close(self) -> None:
        self.store.close()

    # -- balances -------------------------------------------------------------

    def balance(self) -> int:
        return self.accountant.balance()

    def available_balance(self) -> int:
        return self.accountant.available_balance()

    def total_issued(self) -> int:
        return self.accountant.total_issued()

    # -- funds ----------------------------------------------------------------

    def deposit(self, amount: int) -> bytes:
        return self.funds.deposit(amount)

    def wait_for_deposit(self, tx_hash: bytes) -> None:
        self.funds.wait_for_deposit(tx_hash)

    def withdraw(self, amount: int) -> bytes:
        return self.funds.withdraw(amount)

    # -- cheques --------------------------------------------------------------

    def issue(self, beneficiary: Address, amount: int, deliver: Deliver) -> SignedCheque:
        return self.issuer.issue(beneficiary, amount, deliver)

    def last_cheque(self, beneficiary: Address) -> SignedCheque:
        return self.registry.last_cheque(beneficiary)

    def last_cheques(self) -> Dict[Address, SignedCheque]:
        return self.registry.last_cheques()


__all__ = ["ChequebookService"]
