from __future__ import annotations
"""
Chequebook - issuer-side accounting for escrow-backed cheques.

A chequebook is an on-chain escrow contract holding tokens. Its owner pays
counterparties off-chain by handing them signed cheques whose cumulative
payout only ever grows; beneficiaries cash the latest one on-chain. This
package keeps the owner honest: it never signs more than the escrow can
cover, persists what it issued in crash-safe order, and serializes issuance.

Public surface (lazily loaded):
- cheque, signer, chain, errors, config, metrics, logging
- registry, accounting, issuer, funds, service
- db, cli
"""


from typing import List

from .version import __version__

__all__: List[str] = [
    "__version__",
    # lazily importable subpackages/modules
    "cheque",
    "signer",
    "chain",
    "errors",
    "config",
    "metrics",
    "logging",
    "registry",
    "accounting",
    "issuer",
    "funds",
    "service",
    "db",
    "cli",
]

# --- Lazy module loader (PEP 562) -------------------------------------------------
import importlib


_lazy_modules = set(__all__) - {"__version__"}


def __getattr__(name: str):
    if name in _lazy_modules:
        return importlib.import_module(f".{name}", __name__)
    raise AttributeError(f"module {__name__!r} has no attribute {name!r}")


def __dir__():
    return sorted(set(globals().keys()) | _lazy_modules)


def get_version() -> str:
    """Return the chequebook package version string."""
    return __version__
