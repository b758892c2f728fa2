from __future__ import annotations

import json
import logging

from safetrail.obs.logging import InfoSamplingFilter, JSONLogFormatter, bind_context, reset_context


def _record(level: int = logging.INFO, **extra) -> logging.LogRecord:
    record = logging.makeLogRecord({"name": "safetrail.test", "msg": "place_score_failed", "levelno": level})
    record.levelname = logging.getLevelName(level)
    for key, value in extra.items():
        setattr(record, key, value)
    return record


def test_formatter_emits_structured_fields() -> None:
    formatter = JSONLogFormatter(service="safetrail-scoring", environment="test", commit="abc123")
    payload = json.loads(formatter.format(_record(place_id="p1", score=50.0, password="hunter2")))

    assert payload["msg"] == "place_score_failed"
    assert payload["service"] == "safetrail-scoring"
    assert payload["env"] == "test"
    assert payload["place_id"] == "p1"
    assert payload["score"] == 50.0
    assert payload["password"] == "[redacted]"


def test_formatter_includes_bound_context() -> None:
    formatter = JSONLogFormatter()
    tokens = bind_context(request_id="req-1", report_id="r-9")
    try:
        payload = json.loads(formatter.format(_record()))
    finally:
        reset_context(tokens)

    assert payload["request_id"] == "req-1"
    assert payload["report_id"] == "r-9"
    assert "report_id" not in json.loads(formatter.format(_record()))


def test_sampling_keeps_warnings() -> None:
    sampler = InfoSamplingFilter(rate=0.0)
    assert sampler.filter(_record(logging.WARNING)) is True
    assert sampler.filter(_record(logging.ERROR)) is True
    assert sampler.filter(_record(logging.INFO)) is False
