from __future__ import annotations

import json

import pytest

from chequebook.cheque import Cheque, SignedCheque
from chequebook.errors import CorruptState, NoCheque
from chequebook.registry import (LAST_ISSUED_CHEQUE_KEY_PREFIX, TOTAL_ISSUED_KEY,
                                 ChequeRegistry, key_beneficiary,
                                 last_issued_cheque_key)

from . import B1, B2, CHEQUEBOOK


def _signed(beneficiary: str, payout: int) -> SignedCheque:
    return SignedCheque(cheque=Cheque(CHEQUEBOOK, beneficiary, payout), signature=b"\xaa" * 64)


@pytest.fixture
def registry(store) -> ChequeRegistry:
    return ChequeRegistry(store)


def test_key_layout():
    assert last_issued_cheque_key(B1) == b"chequebook_last_issued_cheque_" + b"11" * 20
    assert key_beneficiary(last_issued_cheque_key(B2)) == B2
    assert not TOTAL_ISSUED_KEY.startswith(LAST_ISSUED_CHEQUE_KEY_PREFIX)


def test_no_cheque_is_a_distinct_outcome(registry):
    with pytest.raises(NoCheque) as ei:
        registry.last_cheque(B1)
    assert ei.value.details["beneficiary"] == B1
    assert registry.last_cheques() == {}


def test_total_issued_starts_at_zero(registry):
    assert registry.total_issued() == 0


def test_record_issued_writes_cheque_and_total(registry):
    assert registry.record_issued(_signed(B1, 30), 30) == 30
    assert registry.record_issued(_signed(B2, 5), 5) == 35
    assert registry.record_issued(_signed(B1, 40), 10) == 45

    assert registry.last_cheque(B1).cumulative_payout == 40
    assert registry.last_cheque(B2).cumulative_payout == 5
    assert registry.total_issued() == 45


def test_last_cheques_one_entry_per_beneficiary(registry):
    registry.record_issued(_signed(B1, 1), 1)
    registry.record_issued(_signed(B1, 2), 1)
    registry.record_issued(_signed(B2, 7), 7)

    got = registry.last_cheques()
    assert set(got) == {B1, B2}
    assert got[B1] == registry.last_cheque(B1)
    assert got[B2] == registry.last_cheque(B2)


def test_last_cheques_skips_beneficiary_seen_twice(registry, store):
    registry.record_issued(_signed(B1, 9), 9)
    # same beneficiary spelled in upper-case hex: decodes to an address already seen
    store.put(LAST_ISSUED_CHEQUE_KEY_PREFIX + ("AB" * 20).encode(), _signed("0x" + "ab" * 20, 1).to_bytes())
    store.put(last_issued_cheque_key("0x" + "ab" * 20), _signed("0x" + "ab" * 20, 3).to_bytes())

    got = registry.last_cheques()
    assert len(got) == 2
    assert got["0x" + "ab" * 20].cumulative_payout == 3


@pytest.mark.parametrize(
    "suffix",
    [b"", b"zz", b"11" * 19, b"11" * 21, b"\xff" * 40],
)
def test_last_cheques_unparsable_key_is_corruption(registry, store, suffix):
    registry.record_issued(_signed(B1, 1), 1)
    store.put(LAST_ISSUED_CHEQUE_KEY_PREFIX + suffix, b"{}")
    with pytest.raises(CorruptState):
        registry.last_cheques()


def test_non_canonical_key_without_canonical_entry_is_corruption(registry, store):
    store.put(LAST_ISSUED_CHEQUE_KEY_PREFIX + ("CD" * 20).encode(), _signed("0x" + "cd" * 20, 1).to_bytes())
    with pytest.raises(CorruptState):
        registry.last_cheques()


@pytest.mark.parametrize("blob", [b"not json", b"[]", b'{"beneficiary": "0x11"}', b"\xff\xfe"])
def test_undecodable_cheque_record_is_corruption(registry, store, blob):
    store.put(last_issued_cheque_key(B1), blob)
    with pytest.raises(CorruptState):
        registry.last_cheque(B1)


@pytest.mark.parametrize("blob", [b"", b"-5", b"12a", b"\xff"])
def test_undecodable_total_is_corruption(registry, store, blob):
    store.put(TOTAL_ISSUED_KEY, blob)
    with pytest.raises(CorruptState):
        registry.total_issued()


def test_record_under_another_beneficiarys_key_is_corruption(registry, store):
    store.put(last_issued_cheque_key(B1), _signed(B2, 5).to_bytes())
    with pytest.raises(CorruptState):
        registry.last_cheque(B1)
    with pytest.raises(CorruptState):
        registry.last_cheques()


def test_record_from_another_chequebook_is_corruption(store):
    foreign = SignedCheque(cheque=Cheque("0x" + "ee" * 20, B1, 5), signature=b"\xaa" * 64)
    store.put(last_issued_cheque_key(B1), foreign.to_bytes())

    bound = ChequeRegistry(store, CHEQUEBOOK)
    with pytest.raises(CorruptState):
        bound.last_cheque(B1)
    # without a bound chequebook only the beneficiary is checked
    assert ChequeRegistry(store).last_cheque(B1).cumulative_payout == 5


@pytest.mark.parametrize("payout", [1.9, 7, "1_000", "-1", " 12", "1e3", "١"])
def test_non_decimal_payout_is_corruption(registry, store, payout):
    record = json.loads(_signed(B1, 1).to_bytes())
    record["cumulative_payout"] = payout
    store.put(last_issued_cheque_key(B1), json.dumps(record).encode())
    with pytest.raises(CorruptState):
        registry.last_cheque(B1)
