from __future__ import annotations

"""
Cheque types & encodings
========================

- Address: canonical `0x` + 40 lowercase hex chars (20 bytes).
- Cheque: (chequebook, beneficiary, cumulative_payout). The payout is the
  *total* ever authorized to the beneficiary from this chequebook; a newer
  cheque supersedes every older one.
- SignedCheque: a Cheque plus the issuer's signature over `Cheque.encode()`.

Two encodings live here:

Signing encoding (binary, fixed layout, domain separated)
    b"chequebook/cheque/v1" | chequebook[20] | beneficiary[20] | be_u256(cumulative_payout)

Storage encoding (compact JSON, sorted keys)
    {"beneficiary": "0x..", "chequebook": "0x..",
     "cumulative_payout": "<decimal>", "signature": "<hex>"}

Amounts are stored as decimal strings so uint256 values survive any JSON
reader unchanged.
"""

import json
import re
from dataclasses import dataclass
from typing import Any, Dict, NewType, Union

Address = NewType("Address", str)

ADDRESS_LEN = 20
UINT256_MAX = (1 << 256) - 1
CHEQUE_DOMAIN = b"chequebook/cheque/v1"

_HEX40 = re.compile(r"^[0-9a-fA-F]{40}$")


def to_address(value: Union[str, bytes, bytearray]) -> Address:
    """
    Normalize an address given as hex text (with or without 0x, any case) or
    as 20 raw bytes. Raises ValueError for anything else.
    """
    if isinstance(value, (bytes, bytearray)):
        if len(value) != ADDRESS_LEN:
            raise ValueError(f"address must be {ADDRESS_LEN} bytes (got {len(value)})")
        return Address("0x" + bytes(value).hex())
    if not isinstance(value, str):
        raise ValueError(f"unsupported address type: {type(value).__name__}")
    s = value.strip()
    if s[:2] in ("0x", "0X"):
        s = s[2:]
    if not _HEX40.match(s):
        raise ValueError(f"invalid address: {value!r}")
    return Address("0x" + s.lower())


def address_bytes(addr: Union[str, bytes, bytearray]) -> bytes:
    return bytes.fromhex(to_address(addr)[2:])


def address_hex(addr: Union[str, bytes, bytearray]) -> str:
    """Bare 40-char lowercase hex (no 0x), the form embedded in ledger keys."""
    return to_address(addr)[2:]


def be_u256(n: int) -> bytes:
    if not (0 <= n <= UINT256_MAX):
        raise ValueError("be_u256 out of range")
    return n.to_bytes(32, "big")


@dataclass(frozen=True)
class Cheque:
    chequebook: Address
    beneficiary: Address
    cumulative_payout: int

    def __post_init__(self) -> None:
        object.__setattr__(self, "chequebook", to_address(self.chequebook))
        object.__setattr__(self, "beneficiary", to_address(self.beneficiary))
        if isinstance(self.cumulative_payout, bool) or not isinstance(self.cumulative_payout, int):
            raise ValueError("cumulative_payout must be an int")
        if not (0 <= self.cumulative_payout <= UINT256_MAX):
            raise ValueError("cumulative_payout must be a uint256")

    def encode(self) -> bytes:
        """Canonical bytes covered by the issuer's signature."""
        return (
            CHEQUE_DOMAIN
            + address_bytes(self.chequebook)
            + address_bytes(self.beneficiary)
            + be_u256(self.cumulative_payout)
        )


@dataclass(frozen=True)
class SignedCheque:
    cheque: Cheque
    signature: bytes

    @property
    def chequebook(self) -> Address:
        return self.cheque.chequebook

    @property
    def beneficiary(self) -> Address:
        return self.cheque.beneficiary

    @property
    def cumulative_payout(self) -> int:
        return self.cheque.cumulative_payout

    def to_dict(self) -> Dict[str, Any]:
        return {
            "chequebook": self.cheque.chequebook,
            "beneficiary": self.cheque.beneficiary,
            "cumulative_payout": str(self.cheque.cumulative_payout),
            "signature": self.signature.hex(),
        }

    @staticmethod
    def from_dict(d: Dict[str, Any]) -> "SignedCheque":
        payout = d["cumulative_payout"]
        # decimal string only: no JSON numbers, signs, underscores or spaces
        if not isinstance(payout, str) or not (payout.isascii() and payout.isdigit()):
            raise ValueError(f"cumulative_payout must be a decimal string, got {payout!r}")
        return SignedCheque(
            cheque=Cheque(
                chequebook=to_address(d["chequebook"]),
                beneficiary=to_address(d["beneficiary"]),
                cumulative_payout=int(payout),
            ),
            signature=bytes.fromhex(d["signature"]),
        )

    def to_bytes(self) -> bytes:
        return json.dumps(self.to_dict(), sort_keys=True, separators=(",", ":")).encode("utf-8")

    @staticmethod
    def from_bytes(blob: bytes) -> "SignedCheque":
        """Decode a storage blob. Raises ValueError/KeyError on malformed input."""
        data = json.loads(blob.decode("utf-8"))
        if not isinstance(data, dict):
            raise ValueError("cheque record must be a JSON object")
        return SignedCheque.from_dict(data)


__all__ = [
    "Address",
    "ADDRESS_LEN",
    "UINT256_MAX",
    "CHEQUE_DOMAIN",
    "to_address",
    "address_bytes",
    "address_hex",
    "be_u256",
    "Cheque",
    "SignedCheque",
]
