from __future__ import annotations

import hashlib
import logging
import threading
from typing import Dict, List, Optional

import pytest

from chequebook.chain import RECEIPT_STATUS_SUCCESS, Receipt, TxRequest
from chequebook.cheque import Address, SignedCheque, to_address
from chequebook.db import MemoryKV, open_kv
from chequebook.service import ChequebookService
from chequebook.signer import Ed25519ChequeSigner

from . import CHEQUEBOOK, OWNER, TEST_SEED, TOKEN

# --------------------------- In-memory collaborators ---------------------------


class FakeChain:
    """Chain oracle with settable balances."""

    def __init__(self, balance: int = 0, total_paid_out: int = 0) -> None:
        self.escrow_balance = balance
        self.paid_out = total_paid_out
        self.token_balances: Dict[str, int] = {}
        self.calls = 0

    def balance(self) -> int:
        self.calls += 1
        return self.escrow_balance

    def total_paid_out(self) -> int:
        return self.paid_out

    def token_balance_of(self, address: Address) -> int:
        return self.token_balances.get(to_address(address), 0)

    def cash(self, amount: int) -> None:
        """Simulate a beneficiary cashing `amount` on-chain."""
        self.escrow_balance -= amount
        self.paid_out += amount


class FakeTransactions:
    """Records requests; receipts default to success."""

    def __init__(self) -> None:
        self.sent: List[TxRequest] = []
        self.statuses: Dict[bytes, int] = {}
        self._lock = threading.Lock()

    def send(self, request: TxRequest) -> bytes:
        with self._lock:
            self.sent.append(request)
            n = len(self.sent)
        return hashlib.sha3_256(b"tx" + n.to_bytes(4, "big") + request.data).digest()

    def wait_for_receipt(self, tx_hash: bytes) -> Receipt:
        return Receipt(tx_hash=tx_hash, status=self.statuses.get(tx_hash, RECEIPT_STATUS_SUCCESS))


class Inbox:
    """Delivery function that keeps what it was handed, optionally failing."""

    def __init__(self, fail_with: Optional[BaseException] = None) -> None:
        self.received: List[SignedCheque] = []
        self.fail_with = fail_with
        self._lock = threading.Lock()

    def __call__(self, cheque: SignedCheque) -> None:
        if self.fail_with is not None:
            raise self.fail_with
        with self._lock:
            self.received.append(cheque)


# --------------------------- Fixtures ---------------------------


@pytest.fixture(params=["memory", "sqlite"])
def store(request):
    kv = MemoryKV() if request.param == "memory" else open_kv("sqlite:///:memory:")
    yield kv
    kv.close()


@pytest.fixture
def chain() -> FakeChain:
    return FakeChain(balance=100)


@pytest.fixture
def txs() -> FakeTransactions:
    return FakeTransactions()


@pytest.fixture
def signer() -> Ed25519ChequeSigner:
    return Ed25519ChequeSigner.from_seed(TEST_SEED)


@pytest.fixture
def inbox() -> Inbox:
    return Inbox()


def make_service(store, chain, txs=None, signer=None) -> ChequebookService:
    return ChequebookService(
        address=CHEQUEBOOK,
        token_address=TOKEN,
        owner_address=OWNER,
        store=store,
        chain=chain,
        transactions=txs or FakeTransactions(),
        signer=signer or Ed25519ChequeSigner.from_seed(TEST_SEED),
    )


@pytest.fixture
def service(store, chain, txs, signer) -> ChequebookService:
    return make_service(store, chain, txs, signer)


@pytest.fixture
def root_logger():
    """Root logger whose handlers and level are restored after the test."""
    root = logging.getLogger()
    saved_handlers, saved_level = list(root.handlers), root.level
    yield root
    for h in list(root.handlers):
        root.removeHandler(h)
    for h in saved_handlers:
        root.addHandler(h)
    root.setLevel(saved_level)
