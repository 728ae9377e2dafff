"""
BEHAVIOR-AS-CONSTANTS
---------------------
Single source of truth for the behavioral invariants of the live audio client.

Rules:
- If changing a value changes runtime behavior, it belongs here.
- No magic numbers elsewhere in the codebase.
- Deployment-specific values (keys, model names, hosts) live in config.py.
"""

from __future__ import annotations

from typing import Final, Tuple

# =============================================================================
# Inbound audio (service -> client): PCM16 mono @ 24kHz
# =============================================================================

OUTPUT_SAMPLE_RATE_HZ: Final[int] = 24_000
OUTPUT_CHANNELS: Final[int] = 1
AUDIO_SAMPLE_WIDTH_BYTES: Final[int] = 2  # PCM16 (signed 16-bit)

INBOUND_AUDIO_MIME_TYPE: Final[str] = "audio/pcm;rate=24000"

# int16 -> float32 normalization divisor
PCM16_FULL_SCALE: Final[float] = 32768.0

# =============================================================================
# Outbound audio (client -> service)
# =============================================================================

CANONICAL_PCM_MIME_TYPE: Final[str] = "audio/pcm"

# MIME base types that denote raw little-endian PCM16
RAW_PCM_MIME_ALIASES: Final[Tuple[str, ...]] = (
    "audio/pcm",
    "audio/l16",
    "audio/raw",
)

RESPONSE_MODALITIES: Final[Tuple[str, ...]] = ("AUDIO",)

# Runner input format (16kHz mono PCM16, 20ms chunks)
INPUT_SAMPLE_RATE_HZ: Final[int] = 16_000
INPUT_CHUNK_MS: Final[int] = 20
INPUT_SAMPLES_PER_CHUNK: Final[int] = (INPUT_SAMPLE_RATE_HZ * INPUT_CHUNK_MS) // 1000

# =============================================================================
# Playback liveness reporting
# =============================================================================

AUDIO_LEVEL_MULTIPLIER: Final[float] = 500.0
AUDIO_LEVEL_MAX: Final[float] = 100.0

# =============================================================================
# Session lifecycle
# =============================================================================

RECONNECT_DELAY_S: Final[float] = 1.0
WS_CLOSE_CODE_NORMAL: Final[int] = 1000
WS_CLOSE_REASON_EXPLICIT: Final[str] = "Intentional disconnect"

# Gemini audio payloads are large; the websockets default (1 MiB) is too small.
WS_MAX_MESSAGE_BYTES: Final[int] = 2**24

LIVE_WS_PATH: Final[str] = (
    "/ws/google.ai.generativelanguage.v1alpha.GenerativeService.BidiGenerateContent"
)

# =============================================================================
# Turn transcription
# =============================================================================

WAV_MIME_TYPE: Final[str] = "audio/wav"

TRANSCRIPTION_PROMPT: Final[str] = (
    "Please transcribe the spoken language in this audio accurately. "
    "Ignore any background noise or non-speech sounds."
)

# Log preview truncation for raw payloads
LOG_PREVIEW_CHARS: Final[int] = 100
