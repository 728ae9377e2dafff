"""
sounddevice-backed AudioOutput.

One OutputStream per output, opened on the first render and kept running
until close(). The PortAudio callback feeds the active fragment and writes
silence while none is active, so consecutive fragments play without a
device reopen between them.

The callback runs on the PortAudio thread. The active fragment is shared
with the loop thread under a lock; completion is marshalled back onto the
asyncio loop with call_soon_threadsafe so PlaybackQueue only ever runs on the
loop thread.
"""

from __future__ import annotations

import asyncio
import threading
from typing import Any, Callable

import numpy as np
import sounddevice as sd

from audio.output import AudioOutput, PlaybackError, RenderHandle
from constants import OUTPUT_CHANNELS, OUTPUT_SAMPLE_RATE_HZ
from observability.logger import log_event


class _FragmentRender(RenderHandle):
    def __init__(
        self,
        *,
        output: SoundDeviceOutput,
        loop: asyncio.AbstractEventLoop,
        samples: np.ndarray,
        on_complete: Callable[[], None],
    ) -> None:
        self._output = output
        self._loop = loop
        self._on_complete = on_complete
        self.data = np.ascontiguousarray(samples, dtype=np.float32).reshape(-1, OUTPUT_CHANNELS)
        self.cursor = 0
        self.stopped = False

    def stop(self) -> None:
        self._output.cancel(self)

    # Called from the PortAudio thread, without the lock held
    def signal_finished(self) -> None:
        self._loop.call_soon_threadsafe(self._finish_on_loop)

    def _finish_on_loop(self) -> None:
        if self.stopped:
            return
        self._on_complete()


class SoundDeviceOutput(AudioOutput):
    """
    Plays float32 mono fragments on a PortAudio device.

    render() must be called from inside a running event loop.
    """

    def __init__(
        self,
        *,
        sample_rate_hz: int = OUTPUT_SAMPLE_RATE_HZ,
        device: int | None = None,
    ) -> None:
        self._sample_rate_hz = sample_rate_hz
        self._device = device

        self._lock = threading.Lock()
        self._stream: sd.OutputStream | None = None
        self._active: _FragmentRender | None = None

    def render(
        self,
        samples: np.ndarray,
        on_complete: Callable[[], None],
    ) -> RenderHandle:
        handle = _FragmentRender(
            output=self,
            loop=asyncio.get_running_loop(),
            samples=samples,
            on_complete=on_complete,
        )

        self._ensure_stream()

        with self._lock:
            if self._active is not None:
                raise PlaybackError("a render is already active on this output")
            if handle.data.shape[0] > 0:
                self._active = handle

        if handle.data.shape[0] == 0:
            # Nothing to play; complete on the next loop iteration
            handle.signal_finished()

        return handle

    def cancel(self, handle: _FragmentRender) -> None:
        with self._lock:
            handle.stopped = True
            if self._active is handle:
                self._active = None

    def close(self) -> None:
        with self._lock:
            if self._active is not None:
                self._active.stopped = True
            self._active = None
            stream = self._stream
            self._stream = None

        if stream is None:
            return
        try:
            stream.abort()
            stream.close()
        except sd.PortAudioError as e:
            log_event({
                "event_type": "PLAYBACK_CLOSE_FAILED",
                "error": repr(e),
            }, level="WARNING")

    # ------------------------------------------------------------------
    # Stream plumbing
    # ------------------------------------------------------------------

    def _ensure_stream(self) -> None:
        if self._stream is not None:
            return
        try:
            stream = sd.OutputStream(
                samplerate=self._sample_rate_hz,
                channels=OUTPUT_CHANNELS,
                dtype="float32",
                device=self._device,
                callback=self._callback,
            )
            stream.start()
        except (sd.PortAudioError, ValueError) as e:
            raise PlaybackError(f"output stream start failed: {e!r}") from e
        self._stream = stream

    def _callback(self, outdata: np.ndarray, frames: int, time_info: Any, status: Any) -> None:  # pylint: disable=unused-argument
        finished: _FragmentRender | None = None

        with self._lock:
            active = self._active
            if active is None:
                outdata.fill(0)
                return

            chunk = active.data[active.cursor:active.cursor + frames]
            n = len(chunk)
            outdata[:n] = chunk
            outdata[n:] = 0
            active.cursor += n

            if active.cursor >= active.data.shape[0]:
                self._active = None
                finished = active

        if finished is not None:
            finished.signal_finished()
