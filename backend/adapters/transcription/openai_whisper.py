"""
OpenAI transcription adapter (audio.transcriptions endpoint).

Alternative backend selected with TRANSCRIPTION_PROVIDER=openai.
"""

from __future__ import annotations

from typing import Any

from openai import AsyncOpenAI, OpenAIError

from adapters.transcription.base import TranscriptionAdapter, TranscriptionError


_EXTENSIONS: dict[str, str] = {
    "audio/wav": "wav",
    "audio/x-wav": "wav",
    "audio/mpeg": "mp3",
    "audio/ogg": "ogg",
    "audio/webm": "webm",
}


class OpenAITranscriptionAdapter(TranscriptionAdapter):
    """Whisper-family transcription through AsyncOpenAI."""

    name = "openai"

    def __init__(
        self,
        *,
        client: Any,  # Type: openai.AsyncOpenAI
        model: str = "whisper-1",
    ) -> None:
        self._client = client
        self._model = model

    @classmethod
    def from_api_key(cls, api_key: str, *, model: str = "whisper-1") -> OpenAITranscriptionAdapter:
        return cls(client=AsyncOpenAI(api_key=api_key), model=model)

    async def transcribe(self, audio: bytes, mime_type: str) -> str:
        ext = _EXTENSIONS.get(mime_type.split(";")[0].strip().lower(), "wav")

        try:
            result = await self._client.audio.transcriptions.create(
                model=self._model,
                file=(f"turn.{ext}", audio, mime_type),
            )
        except OpenAIError as e:
            raise TranscriptionError(
                f"openai transcription failed: {e!r}", provider=self.name
            ) from e

        return str(result.text).strip()
