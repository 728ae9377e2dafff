"""
Connection transport for the live session.

Core model:
- One Transport instance == one websocket connection. Reconnecting means
  building a new Transport; instances are never reopened.
- Inbound messages are delivered by a single receive task, one at a time,
  in arrival order: on_message is awaited before the next message is read.
- on_close(was_clean) fires exactly once per successfully opened transport,
  after the receive task ends (remote close, local close(), or failure).

Design constraints:
- Transport knows nothing about envelopes, handshakes, or reconnect policy.
- An exception from on_message is logged and the loop continues; a bad
  message must never tear the connection down.
"""

from __future__ import annotations

import asyncio
from abc import ABC, abstractmethod
from typing import Awaitable, Callable

from websockets.asyncio.client import ClientConnection, connect as ws_connect
from websockets.exceptions import ConnectionClosed, WebSocketException

from constants import WS_CLOSE_CODE_NORMAL, WS_MAX_MESSAGE_BYTES
from observability.logger import log_event


OnOpen = Callable[[], Awaitable[None]]
OnMessage = Callable[[str | bytes], Awaitable[None]]
OnError = Callable[[Exception], Awaitable[None]]
OnClose = Callable[[bool], Awaitable[None]]


class TransportError(Exception):
    """Raised when the socket cannot be opened, written to, or closed."""


class Transport(ABC):
    """
    Abstract bidirectional text transport.

    Callbacks are supplied at construction and must be async.
    """

    def __init__(
        self,
        *,
        on_open: OnOpen,
        on_message: OnMessage,
        on_error: OnError,
        on_close: OnClose,
    ) -> None:
        self._on_open = on_open
        self._on_message = on_message
        self._on_error = on_error
        self._on_close = on_close

    @property
    @abstractmethod
    def is_open(self) -> bool:
        raise NotImplementedError

    @abstractmethod
    async def open(self) -> None:
        """
        Establish the connection, start delivery, then await on_open().

        Raises:
            TransportError if the connection cannot be established.
            on_close is NOT invoked in that case.
        """
        raise NotImplementedError

    @abstractmethod
    async def send(self, text: str) -> None:
        """
        Send one text frame.

        Raises:
            TransportError if the transport is not open or the write fails.
        """
        raise NotImplementedError

    @abstractmethod
    async def close(self, code: int = WS_CLOSE_CODE_NORMAL, reason: str = "") -> None:
        """Close the connection. Idempotent."""
        raise NotImplementedError


class WebSocketTransport(Transport):
    """websockets-backed Transport."""

    def __init__(
        self,
        *,
        url: str,
        on_open: OnOpen,
        on_message: OnMessage,
        on_error: OnError,
        on_close: OnClose,
        open_timeout_s: float = 10.0,
    ) -> None:
        super().__init__(
            on_open=on_open,
            on_message=on_message,
            on_error=on_error,
            on_close=on_close,
        )
        self._url = url
        self._open_timeout_s = open_timeout_s

        self._ws: ClientConnection | None = None
        self._recv_task: asyncio.Task[None] | None = None
        self._closing: bool = False

    @property
    def is_open(self) -> bool:
        return self._ws is not None and not self._closing

    # -------------------------------------------------------------------------
    # Connection management
    # -------------------------------------------------------------------------

    async def open(self) -> None:
        if self._ws is not None:
            return

        try:
            self._ws = await ws_connect(
                self._url,
                max_size=WS_MAX_MESSAGE_BYTES,
                open_timeout=self._open_timeout_s,
            )
        except (OSError, WebSocketException, asyncio.TimeoutError) as e:
            self._ws = None
            raise TransportError(f"websocket connect failed: {e!r}") from e

        # Start receiver loop once per connection.
        self._recv_task = asyncio.create_task(self._recv_loop(self._ws))

        await self._on_open()

    async def send(self, text: str) -> None:
        ws = self._ws
        if ws is None or self._closing:
            raise TransportError("websocket is not open")

        try:
            await ws.send(text)
        except WebSocketException as e:
            raise TransportError(f"websocket send failed: {e!r}") from e

    async def close(self, code: int = WS_CLOSE_CODE_NORMAL, reason: str = "") -> None:
        ws = self._ws
        if ws is None or self._closing:
            return
        self._closing = True

        try:
            await ws.close(code=code, reason=reason)
        except WebSocketException as e:
            raise TransportError(f"websocket close failed: {e!r}") from e
        finally:
            # Let the receive loop observe the close and report it, unless we
            # are being called from inside that loop.
            task = self._recv_task
            if task is not None and not task.done() and task is not asyncio.current_task():
                await task

    # -------------------------------------------------------------------------
    # Background loop
    # -------------------------------------------------------------------------

    async def _recv_loop(self, ws: ClientConnection) -> None:
        was_clean = True
        try:
            async for raw in ws:
                try:
                    await self._on_message(raw)
                except Exception as e:  # pylint: disable=broad-exception-caught
                    log_event({
                        "event_type": "TRANSPORT_MESSAGE_HANDLER_ERROR",
                        "error": repr(e),
                    }, level="ERROR")
        except ConnectionClosed as e:
            # Clean means close frames went both ways, whatever the code.
            was_clean = e.rcvd is not None and e.sent is not None
            if was_clean:
                log_event({
                    "event_type": "TRANSPORT_CLOSED_BY_PEER",
                    "code": e.rcvd.code,
                    "reason": e.rcvd.reason,
                }, level="WARNING")
            else:
                await self._on_error(TransportError(f"connection closed abnormally: {e!r}"))
        except (OSError, WebSocketException) as e:
            was_clean = False
            await self._on_error(TransportError(f"websocket receive failed: {e!r}"))
        finally:
            self._ws = None
            self._recv_task = None

        await self._on_close(was_clean)
