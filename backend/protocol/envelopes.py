# backend/protocol/envelopes.py
"""
JSON envelope codec for the Gemini Live BidiGenerateContent socket.

Client -> Server:
    {"setup": {"model": ..., "generation_config": {"response_modalities": ["AUDIO"]}}}
    {"realtime_input": {"media_chunks": [{"mime_type": ..., "data": <base64>}]}}

Server -> Client:
    {"setupComplete": {...}}
    {"serverContent": {"modelTurn": {"parts": [{"inlineData": {"mimeType": ..., "data": ...}}]}}}
    {"serverContent": {"turnComplete": true}}

Usage example:

    try:
        events = decode_server_message(raw)
    except DecodeError as e:
        log_event({"event_type": "MESSAGE_DECODE_ERROR", "error": str(e)})
        events = ()

    await transport.send(encode_media_chunk(b64_data, "audio/pcm;rate=16000"))

Encoding is pure and cannot fail. Decoding raises DecodeError; it never
returns partial results for a malformed message.
"""

from __future__ import annotations

import json
from typing import Any, Sequence

from audio.pcm import b64_to_pcm_bytes
from constants import (
    CANONICAL_PCM_MIME_TYPE,
    INBOUND_AUDIO_MIME_TYPE,
    RAW_PCM_MIME_ALIASES,
    RESPONSE_MODALITIES,
)
from protocol.messages import (
    AudioFragment,
    ServerEvent,
    SetupComplete,
    TurnComplete,
    Unrecognized,
)


# -------------------------
# Exceptions
# -------------------------

class DecodeError(Exception):
    """
    Raised when an inbound message is not a valid server envelope.

    The whole message is unsafe to process and must be skipped; the session
    itself is unaffected.
    """


# -------------------------
# Low-level helpers
# -------------------------

def _dumps(payload: dict[str, Any]) -> str:
    # Compact, single-line JSON
    return json.dumps(payload, ensure_ascii=False, separators=(",", ":"))


def _as_text(raw: str | bytes | bytearray | memoryview) -> str:
    if isinstance(raw, str):
        return raw
    try:
        return bytes(raw).decode("utf-8")
    except UnicodeDecodeError as e:
        raise DecodeError(f"binary message is not UTF-8: {e}") from e


def _expect_dict(value: Any, where: str) -> dict[str, Any]:
    if not isinstance(value, dict):
        raise DecodeError(f"{where} must be an object, got {type(value).__name__}")
    return value


# -------------------------
# Outbound
# -------------------------

def normalize_mime_type(mime_type: str) -> str:
    """
    Canonicalize raw-PCM MIME tags; pass everything else through untouched.

    "audio/pcm", "Audio/L16; rate=16000", "audio/raw;rate=16000" ->
    "audio/pcm" / "audio/pcm;rate=16000".
    """
    params = [p.strip() for p in mime_type.split(";")]
    base = params[0].lower()
    if base not in RAW_PCM_MIME_ALIASES:
        return mime_type

    rate: str | None = None
    for param in params[1:]:
        key, sep, value = param.partition("=")
        if sep and key.strip().lower() == "rate" and value.strip():
            rate = value.strip()

    if rate is None:
        return CANONICAL_PCM_MIME_TYPE
    return f"{CANONICAL_PCM_MIME_TYPE};rate={rate}"


def encode_setup(
    model: str,
    *,
    response_modalities: Sequence[str] = RESPONSE_MODALITIES,
) -> str:
    """Handshake request sent immediately after the socket opens."""
    return _dumps({
        "setup": {
            "model": model,
            "generation_config": {
                "response_modalities": list(response_modalities),
            },
        },
    })


def encode_media_chunk(b64_data: str, mime_type: str) -> str:
    """Wrap one captured, base64-encoded media chunk."""
    return _dumps({
        "realtime_input": {
            "media_chunks": [
                {
                    "mime_type": normalize_mime_type(mime_type),
                    "data": b64_data,
                },
            ],
        },
    })


# -------------------------
# Inbound
# -------------------------

def _decode_model_turn(model_turn: Any) -> list[ServerEvent]:
    turn = _expect_dict(model_turn, "serverContent.modelTurn")
    parts = turn.get("parts")
    if parts is None:
        return []
    if not isinstance(parts, list):
        raise DecodeError("serverContent.modelTurn.parts must be an array")

    fragments: list[ServerEvent] = []
    for index, part in enumerate(parts):
        part = _expect_dict(part, f"parts[{index}]")
        inline = part.get("inlineData")
        if inline is None:
            continue
        inline = _expect_dict(inline, f"parts[{index}].inlineData")

        mime_type = inline.get("mimeType")
        if mime_type != INBOUND_AUDIO_MIME_TYPE:
            continue

        data = inline.get("data")
        if not isinstance(data, str):
            raise DecodeError(f"parts[{index}].inlineData.data must be a string")
        try:
            b64_to_pcm_bytes(data)
        except ValueError as e:
            raise DecodeError(f"parts[{index}]: {e}") from e

        fragments.append(AudioFragment(data=data, mime_type=mime_type, part_index=index))

    return fragments


def decode_server_message(raw: str | bytes | bytearray | memoryview) -> tuple[ServerEvent, ...]:
    """
    Decode one inbound message into events, in application order.

    - setupComplete present -> (SetupComplete,) and nothing else
    - audio parts           -> one AudioFragment per part, array order
    - turnComplete == true  -> TurnComplete, after the message's fragments
    - anything else         -> (Unrecognized,)

    Raises:
        DecodeError for non-UTF-8 bytes, invalid JSON, non-object envelopes,
        wrongly shaped content, or invalid base64 audio.
    """
    text = _as_text(raw)
    try:
        data = json.loads(text)
    except json.JSONDecodeError as e:
        raise DecodeError(f"invalid JSON: {e}") from e

    data = _expect_dict(data, "message")

    if data.get("setupComplete") not in (None, False):
        return (SetupComplete(),)

    events: list[ServerEvent] = []

    server_content = data.get("serverContent")
    if server_content is not None:
        content = _expect_dict(server_content, "serverContent")

        model_turn = content.get("modelTurn")
        if model_turn is not None:
            events.extend(_decode_model_turn(model_turn))

        if content.get("turnComplete") is True:
            events.append(TurnComplete())

    if not events:
        return (Unrecognized(keys=tuple(sorted(data.keys()))),)

    return tuple(events)
