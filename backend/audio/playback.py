"""
Sequential playback of inbound audio fragments.

Core model:
- One fragment renders at a time. Completion of one render is the ONLY
  trigger that starts the next, so playback is strictly ordered and never
  overlaps, regardless of how fast fragments arrive.
- advance() is single-flight: it does nothing while a render is active or
  the queue is empty. There is no lock; everything runs on one event loop.
- Liveness is reported edge-triggered: playing=True on the idle->playing
  transition, playing=False when a render completes and the queue is empty
  (or on stop()). A level in 0-100 is reported per fragment.

Failure policy:
- Undecodable payloads are logged and dropped at enqueue().
- A render that fails to start is treated as completed so one bad fragment
  cannot stall the queue.
"""

from __future__ import annotations

import time
from typing import Callable

from audio.frames import PlaybackFragment
from audio.output import AudioOutput, RenderHandle
from audio.pcm import b64_to_pcm_bytes, display_level, pcm16le_to_float32
from audio.queues import FragmentQueue
from constants import OUTPUT_SAMPLE_RATE_HZ
from observability.logger import log_event


def _now_ms() -> int:
    return time.time_ns() // 1_000_000


class PlaybackQueue:
    """
    FIFO single-consumer audio player.

    Observers are optional and invoked synchronously. An observer that raises
    is logged and does not interrupt playback.
    """

    def __init__(
        self,
        *,
        output: AudioOutput,
        sample_rate_hz: int = OUTPUT_SAMPLE_RATE_HZ,
        on_playing_state_change: Callable[[bool], None] | None = None,
        on_audio_level_change: Callable[[float], None] | None = None,
        session_id: str | None = None,
    ) -> None:
        self._output = output
        self._queue = FragmentQueue(sample_rate_hz=sample_rate_hz)
        self._on_playing_state_change = on_playing_state_change
        self._on_audio_level_change = on_audio_level_change
        self._session_id = session_id

        # Single-flight guard
        self._is_playing: bool = False
        # Last playing state reported to the observer
        self._reported_playing: bool = False

        self._current: RenderHandle | None = None
        self._current_seq: int | None = None
        self._next_seq: int = 1

    # ------------------------------------------------------------------
    # Introspection
    # ------------------------------------------------------------------

    @property
    def is_playing(self) -> bool:
        return self._is_playing

    def __len__(self) -> int:
        return len(self._queue)

    def snapshot(self) -> dict[str, float | int | bool]:
        snap: dict[str, float | int | bool] = dict(self._queue.snapshot())
        snap["playing"] = self._is_playing
        return snap

    # ------------------------------------------------------------------
    # Public operations
    # ------------------------------------------------------------------

    def enqueue(self, b64_data: str) -> bool:
        """
        Decode a base64 PCM16LE payload, queue it, and try to advance.

        Returns False if the payload could not be decoded (dropped).
        """
        try:
            pcm_bytes = b64_to_pcm_bytes(b64_data)
        except ValueError as e:
            log_event({
                "event_type": "PLAYBACK_DECODE_ERROR",
                "session_id": self._session_id,
                "error": str(e),
            }, level="WARNING")
            return False

        fragment = PlaybackFragment(
            sequence_num=self._next_seq,
            samples=pcm16le_to_float32(pcm_bytes),
            ts_ms=_now_ms(),
        )
        self._next_seq += 1

        self._queue.enqueue(fragment)
        self.advance()
        return True

    def advance(self) -> None:
        """
        Start rendering the head fragment unless already playing or empty.

        Loops only when a render fails to start, so each failed fragment is
        skipped and the next one is tried immediately.
        """
        while not self._is_playing:
            fragment = self._queue.dequeue()
            if fragment is None:
                return

            self._is_playing = True
            self._report_playing(True)
            self._report_level(display_level(fragment.samples))

            seq = fragment.sequence_num
            self._current_seq = seq
            try:
                handle = self._output.render(
                    fragment.samples,
                    lambda seq=seq: self._on_render_complete(seq),
                )
                # An output may complete synchronously, in which case a later
                # fragment is already active and owns _current.
                if self._current_seq == seq:
                    self._current = handle
                return
            except Exception as e:  # pylint: disable=broad-exception-caught
                log_event({
                    "event_type": "PLAYBACK_RENDER_FAILED",
                    "session_id": self._session_id,
                    "seq_num": seq,
                    "error": repr(e),
                    **self._queue.snapshot(),
                }, level="ERROR")
                self._finish_render()

    def stop(self) -> None:
        """
        Hard-stop the active render, discard everything queued, report idle.
        """
        current = self._current
        self._current = None
        self._current_seq = None

        if current is not None:
            try:
                current.stop()
            except Exception as e:  # pylint: disable=broad-exception-caught
                log_event({
                    "event_type": "PLAYBACK_STOP_FAILED",
                    "session_id": self._session_id,
                    "error": repr(e),
                }, level="WARNING")

        discarded = self._queue.clear()
        self._is_playing = False
        self._reported_playing = False
        self._notify_playing(False)

        log_event({
            "event_type": "PLAYBACK_STOPPED",
            "session_id": self._session_id,
            "discarded_fragments": discarded,
        })

    # ------------------------------------------------------------------
    # Render completion
    # ------------------------------------------------------------------

    def _on_render_complete(self, seq: int) -> None:
        # A completion for anything but the active render is stale
        # (stopped, or already failed over).
        if seq != self._current_seq:
            return

        self._current = None
        self._current_seq = None
        self._finish_render()
        self.advance()

    def _finish_render(self) -> None:
        self._is_playing = False
        self._current = None
        self._current_seq = None
        if self._queue.is_empty():
            self._report_playing(False)

    # ------------------------------------------------------------------
    # Observer plumbing
    # ------------------------------------------------------------------

    def _report_playing(self, playing: bool) -> None:
        if playing == self._reported_playing:
            return
        self._reported_playing = playing
        self._notify_playing(playing)

    def _notify_playing(self, playing: bool) -> None:
        if self._on_playing_state_change is None:
            return
        try:
            self._on_playing_state_change(playing)
        except Exception as e:  # pylint: disable=broad-exception-caught
            log_event({
                "event_type": "OBSERVER_ERROR",
                "observer": "on_playing_state_change",
                "session_id": self._session_id,
                "error": repr(e),
            }, level="ERROR")

    def _report_level(self, level: float) -> None:
        if self._on_audio_level_change is None:
            return
        try:
            self._on_audio_level_change(level)
        except Exception as e:  # pylint: disable=broad-exception-caught
            log_event({
                "event_type": "OBSERVER_ERROR",
                "observer": "on_audio_level_change",
                "session_id": self._session_id,
                "error": repr(e),
            }, level="ERROR")
