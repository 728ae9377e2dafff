"""
Reconnect policy.

Purpose:
- Centralize the auto-reconnect rule
- Keep LiveSession's close handler free of policy details

This module contains NO timers, NO async, NO side effects.
"""
from __future__ import annotations

from dataclasses import dataclass, replace

from constants import RECONNECT_DELAY_S


@dataclass(frozen=True)
class ReconnectState:
    """
    Immutable reconnect bookkeeping for one session.

    handshake_completed:
        A setupComplete has been received at least once since the last
        explicit disconnect. Survives transport teardown.

    explicit_close:
        The owner called disconnect(); no automatic reconnect until the
        next connect().

    attempts:
        Reconnects scheduled since the last successful handshake.
        Observability only: there is no cap.
    """
    handshake_completed: bool = False
    explicit_close: bool = False
    attempts: int = 0


def on_handshake(state: ReconnectState) -> ReconnectState:
    return replace(state, handshake_completed=True, explicit_close=False, attempts=0)


def on_connect_requested(state: ReconnectState) -> ReconnectState:
    return replace(state, explicit_close=False)


def on_explicit_close() -> ReconnectState:
    """Cleared before the socket closes so the close handler sees no handshake."""
    return ReconnectState(handshake_completed=False, explicit_close=True, attempts=0)


def on_reconnect_scheduled(state: ReconnectState) -> ReconnectState:
    return replace(state, attempts=state.attempts + 1)


def should_reconnect(*, state: ReconnectState, was_clean: bool) -> bool:
    """
    Reconnect iff the close was abnormal, a handshake had completed,
    and the owner did not ask to disconnect.
    """
    return (not was_clean) and state.handshake_completed and not state.explicit_close


def get_reconnect_delay_s(base_delay_s: float = RECONNECT_DELAY_S) -> float:
    """
    Fixed delay before every reconnect attempt.

    No exponential growth and no retry cap.
    """
    return base_delay_s
