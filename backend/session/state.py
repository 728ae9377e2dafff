"""
Live session lifecycle states.

IDLE -> CONNECTING -> AWAITING_HANDSHAKE -> READY -> CLOSED
CLOSED -> RECONNECTING -> CONNECTING   (abnormal close after a handshake)

Pure data owned by LiveSession. Transitions live in LiveSession only.
"""
from enum import Enum


class SessionState(str, Enum):
    """
    Connection + handshake lifecycle of one LiveSession.

    Media is only sent in READY.
    """
    IDLE = "IDLE"                              # Constructed, never connected
    CONNECTING = "CONNECTING"                  # Opening the websocket
    AWAITING_HANDSHAKE = "AWAITING_HANDSHAKE"  # Setup sent, no ack yet
    READY = "READY"                            # setupComplete received
    RECONNECTING = "RECONNECTING"              # Waiting out the reconnect delay
    CLOSED = "CLOSED"                          # Socket gone, no reconnect pending


# States in which connect() is a no-op
OPEN_STATES: frozenset[SessionState] = frozenset({
    SessionState.CONNECTING,
    SessionState.AWAITING_HANDSHAKE,
    SessionState.READY,
})
