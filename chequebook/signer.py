from __future__ import annotations

"""
Cheque signing.

The issuer only needs `sign(cheque) -> bytes`; which key and which scheme
sit behind it is up to the deployment. `Ed25519ChequeSigner` is the bundled
implementation (cryptography's Ed25519) signing `Cheque.encode()`.
"""

from typing import Optional, Protocol, runtime_checkable

from cryptography.hazmat.primitives import serialization
from cryptography.hazmat.primitives.asymmetric.ed25519 import (
    Ed25519PrivateKey,
    Ed25519PublicKey,
)

from .cheque import Cheque


@runtime_checkable
class ChequeSigner(Protocol):
    """Signs cheques on behalf of the chequebook owner."""

    def sign(self, cheque: Cheque) -> bytes:
        ...


class Ed25519ChequeSigner:
    """Ed25519 signer over the canonical cheque encoding."""

    def __init__(self, private_key: Optional[Ed25519PrivateKey] = None) -> None:
        self._key = private_key or Ed25519PrivateKey.generate()

    @classmethod
    def from_seed(cls, seed: bytes) -> "Ed25519ChequeSigner":
        if len(seed) != 32:
            raise ValueError("ed25519 seed must be 32 bytes")
        return cls(Ed25519PrivateKey.from_private_bytes(seed))

    @property
    def public_key(self) -> Ed25519PublicKey:
        return self._key.public_key()

    def public_key_bytes(self) -> bytes:
        return self.public_key.public_bytes(
            encoding=serialization.Encoding.Raw,
            format=serialization.PublicFormat.Raw,
        )

    def sign(self, cheque: Cheque) -> bytes:
        return self._key.sign(cheque.encode())


__all__ = ["ChequeSigner", "Ed25519ChequeSigner"]
