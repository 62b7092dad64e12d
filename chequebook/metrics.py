from __future__ import annotations

"""
Prometheus metrics for the chequebook.

We expose:
- issuance outcomes (issued / out_of_funds / delivery_failed / error)
- total value issued
- issuance latency (time the issue lock is held)
- last computed available balance
- deposit / withdraw submissions and deposit confirmations

Everything lives on a dedicated registry so embedding apps can choose to
merge it or expose it directly.
"""


import time
from contextlib import contextmanager
from typing import Iterator, Tuple

from prometheus_client import (CONTENT_TYPE_LATEST, CollectorRegistry, Counter,
                               Gauge, Histogram, generate_latest)

REGISTRY = CollectorRegistry()

# ────────────────────────────────────────────────────────────────────────────────
# Label conventions
#   result (issue): "issued" | "out_of_funds" | "delivery_failed" | "error"
#   kind (tx):      "deposit" | "withdraw"
#   result (tx):    "submitted" | "confirmed" | "reverted" | "rejected"
# ────────────────────────────────────────────────────────────────────────────────

CHEQUES_ISSUED = Counter(
    "chequebook_cheques_issued_total",
    "Cheque issuance attempts by result.",
    labelnames=("result",),
    registry=REGISTRY,
)

ISSUED_AMOUNT = Counter(
    "chequebook_issued_amount_total",
    "Sum of amounts issued in cheques (base units).",
    registry=REGISTRY,
)

ISSUE_SECONDS = Histogram(
    "chequebook_issue_seconds",
    "Time spent inside the serialized issuance section.",
    buckets=(0.001, 0.005, 0.01, 0.05, 0.1, 0.25, 0.5, 1.0, 2.5, 5.0, 10.0, 30.0),
    registry=REGISTRY,
)

AVAILABLE_BALANCE = Gauge(
    "chequebook_available_balance",
    "Last computed available (uncommitted) chequebook balance.",
    registry=REGISTRY,
)

TRANSACTIONS = Counter(
    "chequebook_transactions_total",
    "Deposit/withdraw transactions by kind and result.",
    labelnames=("kind", "result"),
    registry=REGISTRY,
)


@contextmanager
def time_issue() -> Iterator[None]:
    t0 = time.perf_counter()
    try:
        yield
    finally:
        ISSUE_SECONDS.observe(time.perf_counter() - t0)


def record_issue(result: str, amount: int = 0) -> None:
    CHEQUES_ISSUED.labels(result=result).inc()
    if result == "issued" and amount > 0:
        ISSUED_AMOUNT.inc(amount)


def record_available(amount: int) -> None:
    AVAILABLE_BALANCE.set(amount)


def record_tx(kind: str, result: str) -> None:
    TRANSACTIONS.labels(kind=kind, result=result).inc()


def render_latest() -> Tuple[bytes, str]:
    """Exposition payload and its content type."""
    return generate_latest(REGISTRY), CONTENT_TYPE_LATEST


__all__ = [
    "REGISTRY",
    "CHEQUES_ISSUED",
    "ISSUED_AMOUNT",
    "ISSUE_SECONDS",
    "AVAILABLE_BALANCE",
    "TRANSACTIONS",
    "time_issue",
    "record_issue",
    "record_available",
    "record_tx",
    "render_latest",
]
