from __future__ import annotations

import pytest
from cryptography.exceptions import InvalidSignature
from cryptography.hazmat.primitives.asymmetric.ed25519 import Ed25519PublicKey

from chequebook import metrics
from chequebook.cheque import UINT256_MAX
from chequebook.errors import DeliveryFailed, NoCheque, OutOfFunds
from chequebook.registry import TOTAL_ISSUED_KEY, last_issued_cheque_key

from . import B1, B2, CHEQUEBOOK
from .conftest import Inbox, make_service


def _snapshot(store, beneficiary):
    return store.get(last_issued_cheque_key(beneficiary)), store.get(TOTAL_ISSUED_KEY)


def test_worked_example(service, inbox):
    assert service.available_balance() == 100

    service.issue(B1, 30, inbox)
    assert service.last_cheque(B1).cumulative_payout == 30
    assert service.total_issued() == 30

    with pytest.raises(OutOfFunds) as ei:
        service.issue(B2, 80, inbox)
    assert ei.value.available == 70
    assert ei.value.requested == 80
    with pytest.raises(NoCheque):
        service.last_cheque(B2)
    assert service.total_issued() == 30

    service.issue(B2, 70, inbox)
    assert service.last_cheque(B2).cumulative_payout == 70
    assert service.total_issued() == 100
    assert service.available_balance() == 0


def test_cumulative_payout_is_running_sum(service, inbox):
    amounts = [5, 1, 12, 7]
    for a in amounts:
        service.issue(B1, a, inbox)
    payouts = [c.cumulative_payout for c in inbox.received]
    assert payouts == [5, 6, 18, 25]
    assert service.last_cheque(B1).cumulative_payout == sum(amounts)


def test_issue_returns_the_delivered_and_recorded_cheque(service, inbox, signer):
    signed = service.issue(B1, 10, inbox)
    assert inbox.received == [signed]
    assert service.last_cheque(B1) == signed
    assert signed.chequebook == CHEQUEBOOK
    assert signed.beneficiary == B1
    # raises InvalidSignature on mismatch
    signer.public_key.verify(signed.signature, signed.cheque.encode())


def test_signature_covers_the_cheque(service, inbox, signer):
    signed = service.issue(B1, 10, inbox)
    other = service.issue(B1, 1, inbox)
    with pytest.raises(InvalidSignature):
        signer.public_key.verify(signed.signature, other.cheque.encode())


def test_out_of_funds_touches_nothing(service, store, inbox):
    service.issue(B1, 40, inbox)
    before = _snapshot(store, B1)

    with pytest.raises(OutOfFunds):
        service.issue(B1, 61, inbox)

    assert _snapshot(store, B1) == before
    assert len(inbox.received) == 1


def test_exact_available_amount_is_allowed(service, inbox):
    service.issue(B1, 100, inbox)
    with pytest.raises(OutOfFunds):
        service.issue(B2, 1, inbox)


def test_failed_delivery_leaves_state_byte_identical(service, store, inbox):
    service.issue(B1, 10, inbox)
    before = _snapshot(store, B1)

    failing = Inbox(fail_with=DeliveryFailed(beneficiary=B1))
    with pytest.raises(DeliveryFailed):
        service.issue(B1, 20, failing)

    assert _snapshot(store, B1) == before
    # identical retry builds on the same baseline
    retried = service.issue(B1, 20, inbox)
    assert retried.cumulative_payout == 30
    assert service.total_issued() == 30


def test_delivery_error_is_propagated_verbatim(service, store):
    err = ConnectionResetError("peer went away")
    with pytest.raises(ConnectionResetError) as ei:
        service.issue(B2, 5, Inbox(fail_with=err))
    assert ei.value is err
    assert _snapshot(store, B2) == (None, None)


def test_deliver_called_once_per_issue(service):
    calls = []
    service.issue(B1, 3, calls.append)
    assert len(calls) == 1


def test_signer_failure_propagates_without_delivery(store, chain, inbox):
    class BrokenSigner:
        def sign(self, cheque):
            raise RuntimeError("hsm offline")

    svc = make_service(store, chain, signer=BrokenSigner())
    with pytest.raises(RuntimeError, match="hsm offline"):
        svc.issue(B1, 1, inbox)
    assert inbox.received == []
    assert svc.total_issued() == 0


def test_chain_failure_propagates(store, inbox):
    class DownChain:
        def balance(self):
            raise TimeoutError("rpc timeout")

        def total_paid_out(self):
            return 0

        def token_balance_of(self, address):
            return 0

    svc = make_service(store, DownChain())
    with pytest.raises(TimeoutError):
        svc.issue(B1, 1, inbox)
    assert inbox.received == []


def test_store_failure_after_delivery_propagates_and_keeps_writes_together(chain, inbox):
    from chequebook.db import MemoryKV

    class FailingCommitKV(MemoryKV):
        def _apply(self, ops):
            raise OSError("disk full")

    kv = FailingCommitKV()
    svc = make_service(kv, chain)
    with pytest.raises(OSError):
        svc.issue(B1, 10, inbox)
    # delivered, but neither the cheque nor the counter landed
    assert len(inbox.received) == 1
    assert _snapshot(kv, B1) == (None, None)


@pytest.mark.parametrize("amount", [0, -1, 1.5, True, "3"])
def test_amount_must_be_positive_int(service, inbox, amount):
    with pytest.raises(ValueError):
        service.issue(B1, amount, inbox)
    assert inbox.received == []


def test_redemptions_free_no_headroom(service, chain, inbox):
    service.issue(B1, 60, inbox)
    chain.cash(60)
    # cashing moves value from balance to paid-out; headroom is unchanged
    assert service.available_balance() == 40
    with pytest.raises(OutOfFunds):
        service.issue(B1, 41, inbox)


def test_deposits_grow_headroom(service, chain, inbox):
    service.issue(B1, 100, inbox)
    chain.escrow_balance += 50
    service.issue(B2, 50, inbox)
    assert service.total_issued() == 150


def test_cheque_verifies_against_exported_public_key(service, inbox, signer):
    signed = service.issue(B1, 10, inbox)
    raw = signer.public_key_bytes()
    assert len(raw) == 32
    Ed25519PublicKey.from_public_bytes(raw).verify(signed.signature, signed.cheque.encode())


def test_payout_past_uint256_is_counted_as_error(service, store, chain, inbox):
    service.issue(B1, 1, inbox)
    # headroom far beyond what a uint256 payout can still absorb
    chain.escrow_balance = 2 * UINT256_MAX
    errors = metrics.REGISTRY.get_sample_value("chequebook_cheques_issued_total", {"result": "error"}) or 0.0
    before = _snapshot(store, B1)

    with pytest.raises(ValueError):
        service.issue(B1, UINT256_MAX, inbox)

    assert metrics.REGISTRY.get_sample_value("chequebook_cheques_issued_total", {"result": "error"}) == errors + 1
    assert _snapshot(store, B1) == before
    assert len(inbox.received) == 1
