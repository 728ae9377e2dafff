"""
Inbound server event definitions.

Rules:
- Events describe facts decoded from one inbound message.
- Events carry data only (no behavior).
- One message yields zero or more events, in the order they must be applied.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Union


class ServerEventType(str, Enum):
    """Canonical inbound event types understood by LiveSession."""

    SETUP_COMPLETE = "SETUP_COMPLETE"
    AUDIO_FRAGMENT = "AUDIO_FRAGMENT"
    TURN_COMPLETE = "TURN_COMPLETE"
    UNRECOGNIZED = "UNRECOGNIZED"


@dataclass(frozen=True)
class SetupComplete:
    """Handshake acknowledgement; media may flow after this."""
    event_type: ServerEventType = ServerEventType.SETUP_COMPLETE


@dataclass(frozen=True)
class AudioFragment:
    """
    One inline audio part of a model turn.

    data:
        Base64 PCM16LE mono payload, exactly as delivered (validated).
    mime_type:
        The part's declared mime type (always the 24kHz PCM tag).
    part_index:
        Position of the part within its message (debugging only).
    """
    data: str
    mime_type: str
    part_index: int = 0
    event_type: ServerEventType = ServerEventType.AUDIO_FRAGMENT


@dataclass(frozen=True)
class TurnComplete:
    """The model finished its turn."""
    event_type: ServerEventType = ServerEventType.TURN_COMPLETE


@dataclass(frozen=True)
class Unrecognized:
    """
    A well-formed envelope with nothing this client acts on
    (text parts, tool calls, interruptions, usage metadata...).
    """
    keys: tuple[str, ...] = ()
    event_type: ServerEventType = ServerEventType.UNRECOGNIZED


ServerEvent = Union[SetupComplete, AudioFragment, TurnComplete, Unrecognized]
