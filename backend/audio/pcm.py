"""PCM conversion utilities."""
from __future__ import annotations

import base64
import binascii

import numpy as np

from constants import AUDIO_LEVEL_MAX, AUDIO_LEVEL_MULTIPLIER, PCM16_FULL_SCALE


def b64_to_pcm_bytes(b64_data: str) -> bytes:
    """
    Strict base64 decode of an inline audio payload.

    Raises:
        ValueError on invalid base64 (binascii.Error is a ValueError).
    """
    try:
        return base64.b64decode(b64_data, validate=True)
    except binascii.Error as e:
        raise ValueError(f"invalid base64 audio payload: {e}") from e


def pcm16le_to_float32(pcm_bytes: bytes) -> np.ndarray:
    """
    Convert PCM16 little-endian mono bytes to float32 in [-1.0, 1.0).

    No resampling. No channel mixing.
    """
    if len(pcm_bytes) % 2 != 0:
        # Truncated sample; drop the dangling byte.
        pcm_bytes = pcm_bytes[: len(pcm_bytes) - 1]

    audio_i16 = np.frombuffer(pcm_bytes, dtype="<i2")  # little-endian int16
    audio_f32 = audio_i16.astype(np.float32) / PCM16_FULL_SCALE
    return audio_f32


def display_level(samples: np.ndarray) -> float:
    """
    Mean absolute amplitude scaled into the 0-100 display range.

    level = min(mean(|x|) * 500, 100); an empty fragment reports 0.
    """
    if samples.size == 0:
        return 0.0
    mean_abs = float(np.mean(np.abs(samples)))
    return min(mean_abs * AUDIO_LEVEL_MULTIPLIER, AUDIO_LEVEL_MAX)
