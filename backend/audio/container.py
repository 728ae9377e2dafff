"""
Raw PCM -> playable container conversion.

Used by the turn accumulator before transcription: transcription backends take
a self-describing file, not headerless PCM.
"""

from __future__ import annotations

import io
from abc import ABC, abstractmethod

import numpy as np
import soundfile as sf

from constants import AUDIO_SAMPLE_WIDTH_BYTES, OUTPUT_CHANNELS, WAV_MIME_TYPE


class EncodingError(Exception):
    """Raised when raw PCM cannot be converted into a container."""


class ContainerEncoder(ABC):
    """
    Contract for the audio-container collaborator.

    encode() is synchronous and CPU-bound; inputs are one turn of audio
    (seconds, not minutes), so it runs inline on the event loop.
    """

    mime_type: str

    @abstractmethod
    def encode(self, raw_pcm: bytes, sample_rate: int) -> bytes:
        """
        Wrap PCM16LE mono bytes in a container.

        Raises:
            EncodingError on malformed input.
        """
        raise NotImplementedError


class WavEncoder(ContainerEncoder):
    """16-bit PCM WAV via soundfile."""

    mime_type = WAV_MIME_TYPE

    def encode(self, raw_pcm: bytes, sample_rate: int) -> bytes:
        if sample_rate <= 0:
            raise EncodingError(f"invalid sample rate: {sample_rate}")
        if not raw_pcm:
            raise EncodingError("empty PCM payload")
        if len(raw_pcm) % (AUDIO_SAMPLE_WIDTH_BYTES * OUTPUT_CHANNELS) != 0:
            raise EncodingError(
                f"PCM16 payload length {len(raw_pcm)} is not a whole number of samples"
            )

        samples = np.frombuffer(raw_pcm, dtype="<i2")

        buf = io.BytesIO()
        try:
            sf.write(buf, samples, sample_rate, format="WAV", subtype="PCM_16")
        except (RuntimeError, ValueError, TypeError) as e:
            # soundfile surfaces libsndfile failures as RuntimeError subclasses
            raise EncodingError(f"wav encode failed: {e!r}") from e

        return buf.getvalue()
