"""
Live audio session (one client == one session).

Responsibilities:
- Owns the transport handle and rebuilds it across reconnects
- Drives the handshake: setup request on open, READY on setupComplete
- Gates outbound media on READY (dropped, never buffered, otherwise)
- Decodes inbound messages and routes events:
    audio fragment -> TurnAccumulator + PlaybackQueue (in that order)
    turn complete  -> TurnAccumulator hand-off
- Applies the reconnect policy on close
- Contains every failure: nothing raised inside a reaction reaches the
  caller of a public operation, and nothing terminates the session

NOT responsible for:
- Audio capture (callers push base64 chunks)
- Rendering audio (AudioOutput) or transcription (TranscriptionAdapter)
- Envelope shapes (protocol.envelopes)

Concurrency:
- Single event loop. Inbound messages are processed one at a time in
  delivery order by the transport's receive task.
- Every transport gets a generation number; callbacks from a superseded
  transport are ignored.
"""

from __future__ import annotations

import asyncio
import functools
from dataclasses import dataclass
from typing import Any, Callable
from uuid import uuid4

from adapters.transcription.base import TranscriptionAdapter
from audio.container import ContainerEncoder, WavEncoder
from audio.output import AudioOutput
from audio.playback import PlaybackQueue
from config import LiveConfig
from constants import (
    LOG_PREVIEW_CHARS,
    OUTPUT_SAMPLE_RATE_HZ,
    WS_CLOSE_CODE_NORMAL,
    WS_CLOSE_REASON_EXPLICIT,
)
from observability.logger import log_event
from protocol.envelopes import (
    DecodeError,
    decode_server_message,
    encode_media_chunk,
    encode_setup,
)
from protocol.messages import (
    AudioFragment,
    ServerEvent,
    SetupComplete,
    TurnComplete,
    Unrecognized,
)
from session.reconnect import (
    ReconnectState,
    get_reconnect_delay_s,
    on_connect_requested,
    on_explicit_close,
    on_handshake,
    on_reconnect_scheduled,
    should_reconnect,
)
from session.state import OPEN_STATES, SessionState
from session.transport import Transport, TransportError, WebSocketTransport
from session.turns import TurnAccumulator


TransportFactory = Callable[..., Transport]


def _new_session_id() -> str:
    return f"sess_{uuid4().hex[:12]}"


def _preview(raw: str | bytes) -> str:
    if isinstance(raw, bytes):
        return raw[:LOG_PREVIEW_CHARS].decode("utf-8", errors="replace")
    return raw[:LOG_PREVIEW_CHARS]


@dataclass
class SessionObservers:
    """
    Optional synchronous callbacks.

    Each is invoked inside the reaction that produced it. An observer that
    raises is logged and otherwise ignored.
    """
    on_message: Callable[[str | bytes], None] | None = None
    on_setup_complete: Callable[[], None] | None = None
    on_playing_state_change: Callable[[bool], None] | None = None
    on_audio_level_change: Callable[[float], None] | None = None
    on_transcription: Callable[[str], None] | None = None


class LiveSession:
    """
    Persistent bidirectional audio session with auto-reconnect.

    Public operations: connect(), send_media_chunk(), disconnect(),
    stop_current_audio().
    """

    def __init__(
        self,
        *,
        config: LiveConfig,
        output: AudioOutput,
        transcriber: TranscriptionAdapter | None = None,
        encoder: ContainerEncoder | None = None,
        observers: SessionObservers | None = None,
        transport_factory: TransportFactory | None = None,
        session_id: str | None = None,
    ) -> None:
        self._config = config
        self._output = output
        self.session_id = session_id or _new_session_id()
        self._observers = observers or SessionObservers()

        if transport_factory is None:
            transport_factory = functools.partial(
                WebSocketTransport, url=config.websocket_url()
            )
        self._transport_factory = transport_factory

        self._transport: Transport | None = None
        self._generation: int = 0

        self._state: SessionState = SessionState.IDLE
        self._is_connected: bool = False
        self._is_setup_complete: bool = False
        self._reconnect: ReconnectState = ReconnectState()
        self._reconnect_task: asyncio.Task[None] | None = None

        self._playback = PlaybackQueue(
            output=output,
            sample_rate_hz=OUTPUT_SAMPLE_RATE_HZ,
            on_playing_state_change=self._observers.on_playing_state_change,
            on_audio_level_change=self._observers.on_audio_level_change,
            session_id=self.session_id,
        )
        self._turns = TurnAccumulator(
            encoder=encoder or WavEncoder(),
            transcriber=transcriber,
            on_transcription=self._observers.on_transcription,
            sample_rate_hz=OUTPUT_SAMPLE_RATE_HZ,
            session_id=self.session_id,
        )

    # ------------------------------------------------------------------
    # Read-only views
    # ------------------------------------------------------------------

    @property
    def state(self) -> SessionState:
        return self._state

    @property
    def is_connected(self) -> bool:
        return self._is_connected

    @property
    def is_setup_complete(self) -> bool:
        return self._is_setup_complete

    @property
    def reconnect_state(self) -> ReconnectState:
        return self._reconnect

    @property
    def reconnect_pending(self) -> bool:
        return self._reconnect_task is not None and not self._reconnect_task.done()

    @property
    def playback(self) -> PlaybackQueue:
        return self._playback

    @property
    def turns(self) -> TurnAccumulator:
        return self._turns

    def log_context(self) -> dict[str, Any]:
        return {
            "session_id": self.session_id,
            "state": self._state.value,
            "connected": self._is_connected,
            "setup_complete": self._is_setup_complete,
        }

    # ------------------------------------------------------------------
    # Public operations
    # ------------------------------------------------------------------

    async def connect(self) -> None:
        """Open the session. No-op while connecting, handshaking or READY."""
        if self._state in OPEN_STATES:
            return

        self._reconnect = on_connect_requested(self._reconnect)
        self._cancel_reconnect_timer()
        await self._open_transport()

    async def send_media_chunk(self, b64_data: str, mime_type: str) -> bool:
        """
        Forward one captured chunk.

        Returns True if it was written to the socket. Outside READY the chunk
        is silently dropped; the capture pipeline is the rate limiter.
        """
        transport = self._transport
        if (
            self._state is not SessionState.READY
            or transport is None
            or not self._is_connected
            or not self._is_setup_complete
        ):
            return False

        try:
            await transport.send(encode_media_chunk(b64_data, mime_type))
        except TransportError as e:
            log_event({
                "event_type": "MEDIA_SEND_FAILED",
                "error": str(e),
                **self.log_context(),
            }, level="WARNING")
            return False
        return True

    async def disconnect(self) -> None:
        """
        Explicit teardown. Never reconnects afterwards (until connect()).

        The handshake flag is cleared before the socket closes so no close
        notification can schedule a reconnect.
        """
        self._reconnect = on_explicit_close()
        self._is_setup_complete = False
        self._cancel_reconnect_timer()

        transport = self._transport
        self._transport = None
        # Make every callback from the old transport stale
        self._generation += 1

        if transport is not None:
            try:
                await transport.close(WS_CLOSE_CODE_NORMAL, WS_CLOSE_REASON_EXPLICIT)
            except TransportError as e:
                log_event({
                    "event_type": "TRANSPORT_CLOSE_FAILED",
                    "error": str(e),
                    **self.log_context(),
                }, level="WARNING")

        self._is_connected = False
        self._turns.clear()
        self._turns.cancel_pending()
        self._playback.stop()
        self._output.close()
        self._set_state(SessionState.CLOSED, reason="explicit_disconnect")

    def stop_current_audio(self) -> None:
        """Hard-stop playback and discard queued fragments."""
        self._playback.stop()

    # ------------------------------------------------------------------
    # Transport lifecycle
    # ------------------------------------------------------------------

    async def _open_transport(self) -> None:
        self._generation += 1
        gen = self._generation

        transport = self._transport_factory(
            on_open=functools.partial(self._handle_open, gen),
            on_message=functools.partial(self._handle_message, gen),
            on_error=functools.partial(self._handle_error, gen),
            on_close=functools.partial(self._handle_close, gen),
        )
        self._transport = transport
        self._set_state(SessionState.CONNECTING)

        try:
            await transport.open()
        except TransportError as e:
            log_event({
                "event_type": "TRANSPORT_OPEN_FAILED",
                "error": str(e),
                **self.log_context(),
            }, level="ERROR")
            # A failed open is an abnormal close of this generation.
            await self._handle_close(gen, False)
            return

        if gen != self._generation:
            # disconnect() ran while the socket was opening
            try:
                await transport.close(WS_CLOSE_CODE_NORMAL, WS_CLOSE_REASON_EXPLICIT)
            except TransportError as e:
                log_event({
                    "event_type": "TRANSPORT_CLOSE_FAILED",
                    "error": str(e),
                    **self.log_context(),
                }, level="WARNING")

    async def _handle_open(self, gen: int) -> None:
        if gen != self._generation or self._transport is None:
            return

        self._is_connected = True
        # Set before awaiting the send: the ack may be processed while the
        # send is still in flight.
        self._set_state(SessionState.AWAITING_HANDSHAKE)

        try:
            await self._transport.send(encode_setup(self._config.live_model))
        except TransportError as e:
            log_event({
                "event_type": "SETUP_SEND_FAILED",
                "error": str(e),
                **self.log_context(),
            }, level="ERROR")

    async def _handle_error(self, gen: int, error: Exception) -> None:
        log_event({
            "event_type": "TRANSPORT_ERROR",
            "stale": gen != self._generation,
            "error": str(error),
            **self.log_context(),
        }, level="ERROR")

    async def _handle_close(self, gen: int, was_clean: bool) -> None:
        if gen != self._generation:
            return

        self._transport = None
        self._is_connected = False
        self._is_setup_complete = False

        if should_reconnect(state=self._reconnect, was_clean=was_clean):
            self._schedule_reconnect()
            return

        self._set_state(SessionState.CLOSED, reason="clean" if was_clean else "abnormal")

    # ------------------------------------------------------------------
    # Reconnect
    # ------------------------------------------------------------------

    def _schedule_reconnect(self) -> None:
        self._reconnect = on_reconnect_scheduled(self._reconnect)
        delay_s = get_reconnect_delay_s(self._config.reconnect_delay_s)

        self._set_state(SessionState.RECONNECTING, reason="abnormal")
        log_event({
            "event_type": "RECONNECT_SCHEDULED",
            "delay_s": delay_s,
            "attempt": self._reconnect.attempts,
            **self.log_context(),
        }, level="WARNING")

        self._reconnect_task = asyncio.create_task(self._reconnect_after(delay_s))

    async def _reconnect_after(self, delay_s: float) -> None:
        await asyncio.sleep(delay_s)
        self._reconnect_task = None
        if self._reconnect.explicit_close:
            return
        await self.connect()

    def _cancel_reconnect_timer(self) -> None:
        task = self._reconnect_task
        self._reconnect_task = None
        if task is not None and not task.done() and task is not asyncio.current_task():
            task.cancel()

    # ------------------------------------------------------------------
    # Inbound routing
    # ------------------------------------------------------------------

    async def _handle_message(self, gen: int, raw: str | bytes) -> None:
        if gen != self._generation:
            return

        self._notify("on_message", raw)

        try:
            events = decode_server_message(raw)
        except DecodeError as e:
            log_event({
                "event_type": "MESSAGE_DECODE_ERROR",
                "error": str(e),
                "payload_preview": _preview(raw),
                **self.log_context(),
            }, level="WARNING")
            return

        for event in events:
            self._apply(event)

    def _apply(self, event: ServerEvent) -> None:
        if isinstance(event, SetupComplete):
            self._is_setup_complete = True
            self._reconnect = on_handshake(self._reconnect)
            self._set_state(SessionState.READY)
            self._notify("on_setup_complete")
        elif isinstance(event, AudioFragment):
            self._turns.append(event.data)
            self._playback.enqueue(event.data)
        elif isinstance(event, TurnComplete):
            self._turns.on_turn_complete()
        elif isinstance(event, Unrecognized):
            log_event({
                "event_type": "UNRECOGNIZED_MESSAGE",
                "keys": list(event.keys),
                "session_id": self.session_id,
            }, level="DEBUG")

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    def _set_state(self, new_state: SessionState, *, reason: str | None = None) -> None:
        old_state = self._state
        self._state = new_state
        if old_state is new_state:
            return
        log_event({
            "event_type": "SESSION_STATE_CHANGED",
            "session_id": self.session_id,
            "from": old_state.value,
            "to": new_state.value,
            "reason": reason,
        })

    def _notify(self, name: str, *args: Any) -> None:
        callback = getattr(self._observers, name)
        if callback is None:
            return
        try:
            callback(*args)
        except Exception as e:  # pylint: disable=broad-exception-caught
            log_event({
                "event_type": "OBSERVER_ERROR",
                "observer": name,
                "error": repr(e),
                **self.log_context(),
            }, level="ERROR")
