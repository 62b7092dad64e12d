from __future__ import annotations

"""
Chain-facing contracts
======================

The chequebook never talks to a node directly. It consumes three small
surfaces that a deployment wires to its RPC client of choice:

- ChainOracle: read-only views of the escrow contract and its token.
- TransactionService: broadcast a call and wait for its receipt.
- CallEncoder: turn "transfer"/"withdraw" into calldata.

Declared as Protocols (PEP 544) so backends can be duck-typed.

ABI encoding
------------
`ABICallEncoder` emits standard Solidity calldata for the two calls we make:

    transfer(address,uint256)  selector a9059cbb   (ERC-20, sent to the token)
    withdraw(uint256)          selector 2e1a7d4d   (sent to the chequebook)

Arguments are 32-byte big-endian words; addresses are left-padded.
"""

from dataclasses import dataclass
from typing import Optional, Protocol, runtime_checkable

from .cheque import Address, address_bytes, be_u256

RECEIPT_STATUS_SUCCESS = 1

TRANSFER_SELECTOR = bytes.fromhex("a9059cbb")
WITHDRAW_SELECTOR = bytes.fromhex("2e1a7d4d")


@dataclass(frozen=True)
class TxRequest:
    to: Address
    data: bytes
    value: int = 0
    gas_price: Optional[int] = None  # None: let the transaction service decide
    gas_limit: int = 0  # 0: estimate


@dataclass(frozen=True)
class Receipt:
    tx_hash: bytes
    status: int
    block_number: Optional[int] = None
    gas_used: Optional[int] = None

    @property
    def ok(self) -> bool:
        return self.status == RECEIPT_STATUS_SUCCESS


@runtime_checkable
class ChainOracle(Protocol):
    """Read-only chain queries. Faults (RPC/network) propagate as raised."""

    def balance(self) -> int:
        """Token balance currently held by the chequebook contract."""
        ...

    def total_paid_out(self) -> int:
        """Cumulative amount beneficiaries have cashed from the chequebook."""
        ...

    def token_balance_of(self, address: Address) -> int:
        """Token balance of an arbitrary account."""
        ...


@runtime_checkable
class TransactionService(Protocol):
    def send(self, request: TxRequest) -> bytes:
        """Sign and broadcast; return the tx hash once submitted."""
        ...

    def wait_for_receipt(self, tx_hash: bytes) -> Receipt:
        """Block until the transaction is mined."""
        ...


@runtime_checkable
class CallEncoder(Protocol):
    def transfer(self, to: Address, amount: int) -> bytes: ...
    def withdraw(self, amount: int) -> bytes: ...


def _word_address(addr: Address) -> bytes:
    return b"\x00" * 12 + address_bytes(addr)


class ABICallEncoder:
    """Solidity ABI calldata for the token transfer and chequebook withdraw."""

    def transfer(self, to: Address, amount: int) -> bytes:
        return TRANSFER_SELECTOR + _word_address(to) + be_u256(amount)

    def withdraw(self, amount: int) -> bytes:
        return WITHDRAW_SELECTOR + be_u256(amount)


__all__ = [
    "RECEIPT_STATUS_SUCCESS",
    "TRANSFER_SELECTOR",
    "WITHDRAW_SELECTOR",
    "TxRequest",
    "Receipt",
    "ChainOracle",
    "TransactionService",
    "CallEncoder",
    "ABICallEncoder",
]
