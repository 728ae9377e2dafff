"""
Per-turn audio accumulation and transcription hand-off.

Core model:
- Every inbound audio fragment payload (base64, as delivered) is appended in
  delivery order, independently of playback.
- On turn-complete with a non-empty buffer, the buffer is snapshotted and
  cleared immediately, then handed off in a background task:
      decode + concatenate PCM -> WAV container @ 24kHz -> transcribe -> observer
- Turn-complete with an empty buffer does nothing.
- Hand-off failures (encoding, transcription, observer) are logged and never
  propagate. Because the buffer is cleared before the hand-off starts, a failed
  turn cannot leak into the next one.
"""

from __future__ import annotations

import asyncio
from typing import Callable

from adapters.transcription.base import TranscriptionAdapter, TranscriptionError
from audio.container import ContainerEncoder, EncodingError
from audio.pcm import b64_to_pcm_bytes
from constants import OUTPUT_SAMPLE_RATE_HZ
from observability.logger import log_event
from observability.metrics import timed


class TurnAccumulator:
    """
    Buffers one model turn of audio and hands it to transcription.

    Owned by LiveSession. Not thread-safe; event loop only.
    """

    def __init__(
        self,
        *,
        encoder: ContainerEncoder,
        transcriber: TranscriptionAdapter | None,
        on_transcription: Callable[[str], None] | None = None,
        sample_rate_hz: int = OUTPUT_SAMPLE_RATE_HZ,
        session_id: str | None = None,
    ) -> None:
        self._encoder = encoder
        self._transcriber = transcriber
        self._on_transcription = on_transcription
        self._sample_rate_hz = sample_rate_hz
        self._session_id = session_id

        self._payloads: list[str] = []
        self._pending: set[asyncio.Task[None]] = set()
        self._turns_handed_off: int = 0

    # ------------------------------------------------------------------
    # Introspection
    # ------------------------------------------------------------------

    @property
    def payloads(self) -> tuple[str, ...]:
        """Buffered base64 payloads, oldest first."""
        return tuple(self._payloads)

    @property
    def turns_handed_off(self) -> int:
        return self._turns_handed_off

    def __len__(self) -> int:
        return len(self._payloads)

    def is_empty(self) -> bool:
        return not self._payloads

    # ------------------------------------------------------------------
    # Accumulation
    # ------------------------------------------------------------------

    def append(self, b64_data: str) -> None:
        self._payloads.append(b64_data)

    def clear(self) -> None:
        """Drop the current turn without handing it off."""
        self._payloads.clear()

    def take_turn(self) -> tuple[str, ...] | None:
        """
        Snapshot and clear the buffer.

        Returns None (and leaves state untouched) when the buffer is empty.
        """
        if not self._payloads:
            return None
        turn = tuple(self._payloads)
        self._payloads.clear()
        return turn

    # ------------------------------------------------------------------
    # Hand-off
    # ------------------------------------------------------------------

    def on_turn_complete(self) -> asyncio.Task[None] | None:
        """
        Start the hand-off for the buffered turn.

        Returns the hand-off task, or None if there was nothing to hand off.
        Must be called from inside a running event loop.
        """
        turn = self.take_turn()
        if turn is None:
            return None

        self._turns_handed_off += 1
        task = asyncio.create_task(self._hand_off(turn))
        self._pending.add(task)
        task.add_done_callback(self._pending.discard)
        return task

    async def drain(self) -> None:
        """Wait for every in-flight hand-off to finish."""
        while self._pending:
            await asyncio.gather(*tuple(self._pending), return_exceptions=True)

    def cancel_pending(self) -> int:
        """Cancel in-flight hand-offs. Returns how many were cancelled."""
        cancelled = 0
        for task in tuple(self._pending):
            if not task.done():
                task.cancel()
                cancelled += 1
        return cancelled

    async def _hand_off(self, turn: tuple[str, ...]) -> None:
        with timed(
            "turn_handoff_latency",
            session_id=self._session_id,
            details={"fragments": len(turn)},
        ):
            try:
                raw_pcm = b"".join(b64_to_pcm_bytes(payload) for payload in turn)
                container = self._encoder.encode(raw_pcm, self._sample_rate_hz)
            except (EncodingError, ValueError) as e:
                log_event({
                    "event_type": "TURN_ENCODING_ERROR",
                    "session_id": self._session_id,
                    "fragments": len(turn),
                    "error": repr(e),
                }, level="ERROR")
                return

            if self._transcriber is None:
                log_event({
                    "event_type": "TURN_TRANSCRIPTION_SKIPPED",
                    "session_id": self._session_id,
                    "reason": "no_transcriber",
                })
                return

            try:
                with timed("transcription_latency", session_id=self._session_id):
                    text = await self._transcriber.transcribe(container, self._encoder.mime_type)
            except TranscriptionError as e:
                log_event({
                    "event_type": "TURN_TRANSCRIPTION_ERROR",
                    "session_id": self._session_id,
                    "provider": e.provider,
                    "error": str(e),
                }, level="ERROR")
                return
            except Exception as e:  # pylint: disable=broad-exception-caught
                log_event({
                    "event_type": "TURN_TRANSCRIPTION_ERROR",
                    "session_id": self._session_id,
                    "provider": getattr(self._transcriber, "name", ""),
                    "error": repr(e),
                }, level="ERROR")
                return

        log_event({
            "event_type": "TURN_TRANSCRIBED",
            "session_id": self._session_id,
            "chars": len(text),
        })

        if self._on_transcription is None:
            return
        try:
            self._on_transcription(text)
        except Exception as e:  # pylint: disable=broad-exception-caught
            log_event({
                "event_type": "OBSERVER_ERROR",
                "observer": "on_transcription",
                "session_id": self._session_id,
                "error": repr(e),
            }, level="ERROR")
