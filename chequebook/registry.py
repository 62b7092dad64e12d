from __future__ import annotations

"""
Cheque registry — the ledger keyspace
=====================================

Everything the chequebook persists lives under two reserved key shapes:

    b"chequebook_last_issued_cheque_" + <beneficiary as 40 lowercase hex>
        → SignedCheque storage blob (see chequebook.cheque)
    b"chequebook_total_issued_"
        → decimal ASCII total of every amount ever issued

Read paths (`last_cheque`, `last_cheques`, `total_issued`) are lock-free and
may observe an issuance in flight. The single write path, `record_issued`,
is only called by the issuer while it holds the issue lock; it writes the
cheque and the new total in one KV batch.
"""

from typing import Dict, Optional

from .cheque import Address, SignedCheque, address_hex, to_address
from .db.kv import KV
from .errors import CorruptState, NoCheque

LAST_ISSUED_CHEQUE_KEY_PREFIX = b"chequebook_last_issued_cheque_"
TOTAL_ISSUED_KEY = b"chequebook_total_issued_"


def last_issued_cheque_key(beneficiary: Address) -> bytes:
    """Key holding the last cheque issued to `beneficiary`."""
    return LAST_ISSUED_CHEQUE_KEY_PREFIX + address_hex(beneficiary).encode("ascii")


def key_beneficiary(key: bytes) -> Address:
    """
    Recover the beneficiary embedded in a ledger key. Raises CorruptState if
    the key is outside the prefix or its suffix is not an address.
    """
    if not key.startswith(LAST_ISSUED_CHEQUE_KEY_PREFIX):
        raise CorruptState("key outside cheque prefix", key=key)
    suffix = key[len(LAST_ISSUED_CHEQUE_KEY_PREFIX):]
    try:
        return to_address(suffix.decode("ascii"))
    except (UnicodeDecodeError, ValueError) as e:
        raise CorruptState("no beneficiary in key", key=key) from e


def _decode_cheque(key: bytes, blob: bytes) -> SignedCheque:
    try:
        return SignedCheque.from_bytes(blob)
    except (ValueError, KeyError, TypeError) as e:
        raise CorruptState(f"undecodable cheque record: {e}", key=key) from e


def _decode_total(blob: bytes) -> int:
    try:
        text = blob.decode("ascii")
        if not text.isdigit():
            raise ValueError(f"not a decimal integer: {text!r}")
        return int(text)
    except ValueError as e:
        raise CorruptState(f"undecodable total issued: {e}", key=TOTAL_ISSUED_KEY) from e


class ChequeRegistry:
    """
    Last-cheque bookkeeping over an injected KV store.

    Every record read back must belong to the beneficiary named by its key
    and, when `chequebook` is given, to that chequebook; anything else is
    CorruptState.
    """

    def __init__(self, store: KV, chequebook: Optional[Address] = None) -> None:
        self.store = store
        self.chequebook = to_address(chequebook) if chequebook is not None else None

    def last_cheque(self, beneficiary: Address) -> SignedCheque:
        """Last cheque issued to `beneficiary`; raises NoCheque if there is none."""
        beneficiary = to_address(beneficiary)
        key = last_issued_cheque_key(beneficiary)
        blob = self.store.get(key)
        if blob is None:
            raise NoCheque(beneficiary=beneficiary)
        cheque = _decode_cheque(key, blob)
        if cheque.beneficiary != beneficiary:
            raise CorruptState(f"record belongs to {cheque.beneficiary}", key=key)
        if self.chequebook is not None and cheque.chequebook != self.chequebook:
            raise CorruptState(f"record issued from {cheque.chequebook}", key=key)
        return cheque

    def last_cheques(self) -> Dict[Address, SignedCheque]:
        """Last cheque for every beneficiary that has one."""
        result: Dict[Address, SignedCheque] = {}
        for key, _ in self.store.iter_prefix(LAST_ISSUED_CHEQUE_KEY_PREFIX):
            beneficiary = key_beneficiary(key)
            if beneficiary in result:
                continue
            try:
                result[beneficiary] = self.last_cheque(beneficiary)
            except NoCheque as e:
                # only reachable through a non-canonical key (e.g. upper-case hex)
                raise CorruptState("ledger key without canonical entry", key=key) from e
        return result

    def total_issued(self) -> int:
        """Sum of all amounts ever issued; 0 before the first cheque."""
        blob = self.store.get(TOTAL_ISSUED_KEY)
        if blob is None:
            return 0
        return _decode_total(blob)

    def record_issued(self, cheque: SignedCheque, amount: int) -> int:
        """
        Persist `cheque` as its beneficiary's last cheque and add `amount` to
        the total, atomically. Returns the new total.

        Callers must hold the issue lock; the read-modify-write of the total
        is not safe otherwise.
        """
        new_total = self.total_issued() + amount
        with self.store.batch() as b:
            b.put(last_issued_cheque_key(cheque.beneficiary), cheque.to_bytes())
            b.put(TOTAL_ISSUED_KEY, str(new_total).encode("ascii"))
        return new_total


__all__ = [
    "LAST_ISSUED_CHEQUE_KEY_PREFIX",
    "TOTAL_ISSUED_KEY",
    "last_issued_cheque_key",
    "key_beneficiary",
    "ChequeRegistry",
]
