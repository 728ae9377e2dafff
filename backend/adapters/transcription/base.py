"""
Transcription adapter contract.

This module defines the *interface only*: no buffering, no turn tracking,
no retries.

Key invariants:
- One call transcribes one complete, self-describing audio container
  (one model turn).
- Every provider failure (network, quota, auth, model, empty result) is
  surfaced as TranscriptionError. Adapters never raise anything else for
  provider-side problems.
- The adapter MUST NOT retry internally; a failed turn is simply lost.
"""

from __future__ import annotations

from abc import ABC, abstractmethod


class TranscriptionError(Exception):
    """
    Raised when a transcription call fails.

    provider:
        Adapter name ("gemini", "openai") for log correlation.
    """

    def __init__(self, message: str, *, provider: str = "") -> None:
        super().__init__(message)
        self.provider = provider


class TranscriptionAdapter(ABC):
    """
    Abstract interface for a one-shot transcription backend.

    Non-responsibilities:
    - No container encoding (caller passes finished WAV bytes)
    - No turn accumulation or observer callbacks
    - No direct interaction with the live websocket
    """

    name: str = ""

    @abstractmethod
    async def transcribe(self, audio: bytes, mime_type: str) -> str:
        """
        Transcribe one audio container.

        Args:
            audio: Container bytes (e.g. WAV).
            mime_type: Container MIME type (e.g. "audio/wav").

        Returns:
            The recognized text, stripped.

        Raises:
            TranscriptionError on any provider failure.
        """
        raise NotImplementedError
