from __future__ import annotations

import io
import json
import logging

import pytest

from chequebook import logging as clog
from chequebook import metrics
from chequebook.errors import DeliveryFailed, OutOfFunds

from . import B1
from .conftest import Inbox


def _sample(name: str, labels=None) -> float:
    return metrics.REGISTRY.get_sample_value(name, labels or {}) or 0.0


def _record(msg: str, **extra) -> logging.LogRecord:
    rec = logging.LogRecord("chequebook.test", logging.INFO, __file__, 1, msg, None, None)
    for k, v in extra.items():
        setattr(rec, k, v)
    return rec


def test_json_formatter_merges_context_and_extras():
    with clog.trace_scope("abc123") as tid:
        clog.bind(chequebook="0xcb")
        line = clog.JSONFormatter().format(_record("cheque issued", amount=10, tx_hash=b"\x01\x02"))
    payload = json.loads(line)
    assert tid == "abc123"
    assert payload["msg"] == "cheque issued"
    assert payload["trace_id"] == "abc123"
    assert payload["chequebook"] == "0xcb"
    assert payload["amount"] == 10
    assert payload["tx_hash"] == "0102"
    # scope restores the previous context
    assert "trace_id" not in clog.context()


def test_text_formatter_is_plain_off_tty():
    line = clog.TextFormatter(io.StringIO()).format(_record("hello", amount=3))
    assert "\x1b[" not in line
    assert "| hello amount=3" in line


def test_bind_unbind():
    clog.bind(component="issuer")
    assert clog.context()["component"] == "issuer"
    clog.unbind("component")
    assert "component" not in clog.context()


@pytest.mark.parametrize("env,expect_json", [("json", True), ("text", False)])
def test_configure_honours_format_env(monkeypatch, root_logger, env, expect_json):
    monkeypatch.setenv("CHEQUEBOOK_LOG_FORMAT", env)
    clog.configure(level="debug", stream=io.StringIO())
    handler = root_logger.handlers[-1]
    assert isinstance(handler.formatter, clog.JSONFormatter) is expect_json
    assert root_logger.level == logging.DEBUG


def test_issue_metrics(service, inbox):
    issued = _sample("chequebook_cheques_issued_total", {"result": "issued"})
    oof = _sample("chequebook_cheques_issued_total", {"result": "out_of_funds"})
    failed = _sample("chequebook_cheques_issued_total", {"result": "delivery_failed"})
    amount = _sample("chequebook_issued_amount_total")

    service.issue(B1, 40, inbox)
    with pytest.raises(OutOfFunds):
        service.issue(B1, 61, inbox)
    with pytest.raises(DeliveryFailed):
        service.issue(B1, 1, Inbox(fail_with=DeliveryFailed()))

    assert _sample("chequebook_cheques_issued_total", {"result": "issued"}) == issued + 1
    assert _sample("chequebook_cheques_issued_total", {"result": "out_of_funds"}) == oof + 1
    assert _sample("chequebook_cheques_issued_total", {"result": "delivery_failed"}) == failed + 1
    assert _sample("chequebook_issued_amount_total") == amount + 40
    assert _sample("chequebook_available_balance") == 60


def test_render_latest():
    body, content_type = metrics.render_latest()
    assert b"chequebook_cheques_issued_total" in body
    assert content_type.startswith("text/plain")
