# pylint: disable=missing-module-docstring,missing-function-docstring

import asyncio
import base64
from typing import Any

import pytest

import session.turns as turns_mod
from session.turns import TurnAccumulator
from fakes import FakeEncoder, FakeTranscriber, pcm_b64


@pytest.fixture(autouse=True)
def captured_logs(monkeypatch: pytest.MonkeyPatch) -> list[dict[str, Any]]:
    emitted: list[dict[str, Any]] = []
    monkeypatch.setattr(turns_mod, "log_event", lambda e, **kw: emitted.append(dict(e)))
    return emitted


def make_accumulator(
    *,
    encoder: FakeEncoder | None = None,
    transcriber: FakeTranscriber | None = None,
) -> tuple[TurnAccumulator, FakeEncoder, FakeTranscriber, list[str]]:
    encoder = encoder or FakeEncoder()
    transcriber = transcriber or FakeTranscriber()
    texts: list[str] = []
    acc = TurnAccumulator(
        encoder=encoder,
        transcriber=transcriber,
        on_transcription=texts.append,
    )
    return acc, encoder, transcriber, texts


# ---------------------------------------------------------------------
# Accumulation
# ---------------------------------------------------------------------

def test_buffer_preserves_delivery_order():
    acc, _, _, _ = make_accumulator()

    payloads = [pcm_b64(1), pcm_b64(2, 3), pcm_b64(4)]
    for p in payloads:
        acc.append(p)

    assert acc.payloads == tuple(payloads)
    assert len(acc) == 3


def test_take_turn_on_empty_buffer_returns_none():
    acc, _, _, _ = make_accumulator()
    assert acc.take_turn() is None
    assert acc.is_empty()


# ---------------------------------------------------------------------
# Hand-off
# ---------------------------------------------------------------------

def test_turn_complete_hands_off_concatenated_pcm_once():
    async def scenario() -> None:
        acc, encoder, transcriber, texts = make_accumulator()
        acc.append(pcm_b64(1, 2))
        acc.append(pcm_b64(3))

        task = acc.on_turn_complete()
        # Cleared at hand-off, before transcription finishes
        assert acc.is_empty()
        assert task is not None
        await task

        expected_pcm = base64.b64decode(pcm_b64(1, 2)) + base64.b64decode(pcm_b64(3))
        assert encoder.calls == [(expected_pcm, 24_000)]
        assert transcriber.calls == [(b"RIFF" + expected_pcm, "audio/wav")]
        assert texts == ["hello there"]
        assert acc.turns_handed_off == 1

    asyncio.run(scenario())


def test_empty_turn_complete_is_noop():
    async def scenario() -> None:
        acc, encoder, transcriber, texts = make_accumulator()

        assert acc.on_turn_complete() is None
        await acc.drain()

        assert encoder.calls == []
        assert transcriber.calls == []
        assert texts == []
        assert acc.turns_handed_off == 0

    asyncio.run(scenario())


def test_transcription_failure_is_logged_and_buffer_cleared(captured_logs):
    async def scenario() -> None:
        acc, _, _, texts = make_accumulator(transcriber=FakeTranscriber(fail=True))
        acc.append(pcm_b64(5))

        acc.on_turn_complete()
        await acc.drain()

        assert texts == []
        assert acc.is_empty()

        # Next turn starts clean
        acc.append(pcm_b64(6))
        assert acc.payloads == (pcm_b64(6),)

    asyncio.run(scenario())
    errors = [e for e in captured_logs if e["event_type"] == "TURN_TRANSCRIPTION_ERROR"]
    assert len(errors) == 1
    assert errors[0]["provider"] == "fake"


def test_encoding_failure_skips_transcription(captured_logs):
    async def scenario() -> FakeTranscriber:
        acc, _, transcriber, _ = make_accumulator(encoder=FakeEncoder(fail=True))
        acc.append(pcm_b64(5))
        acc.on_turn_complete()
        await acc.drain()
        assert acc.is_empty()
        return transcriber

    transcriber = asyncio.run(scenario())
    assert transcriber.calls == []
    assert any(e["event_type"] == "TURN_ENCODING_ERROR" for e in captured_logs)


def test_observer_failure_is_contained(captured_logs):
    async def scenario() -> None:
        def boom(_: str) -> None:
            raise RuntimeError("ui gone")

        acc = TurnAccumulator(
            encoder=FakeEncoder(),
            transcriber=FakeTranscriber(),
            on_transcription=boom,
        )
        acc.append(pcm_b64(1))
        acc.on_turn_complete()
        await acc.drain()

    asyncio.run(scenario())
    assert any(e.get("observer") == "on_transcription" for e in captured_logs)


def test_turns_are_handed_off_independently():
    async def scenario() -> None:
        acc, encoder, _, texts = make_accumulator()

        acc.append(pcm_b64(1))
        acc.on_turn_complete()
        acc.append(pcm_b64(2))
        acc.on_turn_complete()
        await acc.drain()

        assert [call[0] for call in encoder.calls] == [
            base64.b64decode(pcm_b64(1)),
            base64.b64decode(pcm_b64(2)),
        ]
        assert len(texts) == 2

    asyncio.run(scenario())


def test_cancel_pending_stops_inflight_transcription():
    class SlowTranscriber(FakeTranscriber):
        async def transcribe(self, audio: bytes, mime_type: str) -> str:
            await asyncio.sleep(10)
            return "never"

    async def scenario() -> list[str]:
        texts: list[str] = []
        acc = TurnAccumulator(
            encoder=FakeEncoder(),
            transcriber=SlowTranscriber(),
            on_transcription=texts.append,
        )
        acc.append(pcm_b64(1))
        task = acc.on_turn_complete()
        await asyncio.sleep(0)

        assert acc.cancel_pending() == 1
        with pytest.raises(asyncio.CancelledError):
            await task
        return texts

    assert asyncio.run(scenario()) == []
