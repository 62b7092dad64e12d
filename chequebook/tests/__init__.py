from __future__ import annotations
"""
Chequebook test suite package.

Shared address constants live here so test modules and conftest agree on
them without importing each other.
"""


CHEQUEBOOK = "0x" + "cb" * 20
TOKEN = "0x" + "70" * 20
OWNER = "0x" + "0e" * 20
B1 = "0x" + "11" * 20
B2 = "0x" + "22" * 20
B3 = "0x" + "33" * 20

# Deterministic Ed25519 seed for the test signer.
TEST_SEED: bytes = bytes(range(32))


__all__ = ["CHEQUEBOOK", "TOKEN", "OWNER", "B1", "B2", "B3", "TEST_SEED"]
