# pylint: disable=missing-module-docstring,missing-function-docstring

import json
from typing import Any, Iterator

import pytest

from observability import logger, metrics


@pytest.fixture
def captured(monkeypatch: pytest.MonkeyPatch) -> Iterator[list[str]]:
    lines: list[str] = []
    # Patch the explicit output sink used by logger
    monkeypatch.setattr(logger, "_print", lines.append)
    yield lines
    logger.configure_logging(level="DEBUG", enabled=True)


def test_log_event_emits_valid_jsonl(captured):
    """
    Contract:
    - log_event emits exactly one JSONL line
    - caller fields are preserved as-is
    - ts_ms and level are filled in
    """
    payload: dict[str, Any] = {
        "event_type": "TEST",
        "value": 123,
    }

    logger.log_event(payload)

    # Exactly one line emitted
    assert len(captured) == 1

    decoded = json.loads(captured[0])
    assert decoded["event_type"] == "TEST"
    assert decoded["value"] == 123
    assert decoded["level"] == "INFO"
    assert isinstance(decoded["ts_ms"], int)

    # Caller's mapping is not mutated
    assert payload == {"event_type": "TEST", "value": 123}


def test_unserializable_payload_falls_back(captured):
    logger.log_event({"event_type": "TEST", "blob": object()})

    decoded = json.loads(captured[0])
    assert decoded["event_type"] == "LOGGER_SERIALIZATION_ERROR"
    assert "TEST" in decoded["original_event_repr"]


def test_level_filtering(captured):
    logger.configure_logging(level="WARNING")

    logger.log_event({"event_type": "QUIET"}, level="INFO")
    logger.log_event({"event_type": "LOUD"}, level="ERROR")

    assert [json.loads(line)["event_type"] for line in captured] == ["LOUD"]


def test_disabled_logging_emits_nothing(captured):
    logger.configure_logging(enabled=False)
    logger.log_event({"event_type": "TEST"}, level="ERROR")
    assert captured == []


def test_timed_emits_one_metric_even_on_error(captured):
    with pytest.raises(RuntimeError):
        with metrics.timed("transcription_latency", session_id="sess_1"):
            raise RuntimeError("boom")

    (line,) = captured
    decoded = json.loads(line)
    assert decoded["event_type"] == "METRIC_TIMER"
    assert decoded["metric"] == "transcription_latency"
    assert decoded["session_id"] == "sess_1"
    assert decoded["value_ms"] >= 0
    assert decoded["outcome"] == "error"


def test_timed_reports_ok_outcome_with_details(captured):
    with metrics.timed("turn_handoff_latency", details={"fragments": 3}):
        pass

    (line,) = captured
    decoded = json.loads(line)
    assert decoded["outcome"] == "ok"
    assert decoded["details"] == {"fragments": 3}
