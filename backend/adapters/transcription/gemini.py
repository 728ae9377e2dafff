"""
Gemini transcription adapter.

Sends one WAV turn plus a fixed instruction prompt to a small Gemini model and
returns the text response. Uses the `google-genai` SDK (google.genai), not the
deprecated `google-generativeai` package.
"""

from __future__ import annotations

from google import genai
from google.genai import types as genai_types

from adapters.transcription.base import TranscriptionAdapter, TranscriptionError
from constants import TRANSCRIPTION_PROMPT


class GeminiTranscriptionAdapter(TranscriptionAdapter):
    """
    Gemini generate_content transcription.

    The client is injectable so tests (and callers sharing one client)
    can supply their own.
    """

    name = "gemini"

    def __init__(
        self,
        *,
        api_key: str | None = None,
        model: str = "gemini-1.5-flash-8b",
        prompt: str = TRANSCRIPTION_PROMPT,
        client: genai.Client | None = None,
    ) -> None:
        if client is None:
            if not api_key:
                raise ValueError("GeminiTranscriptionAdapter needs api_key or client")
            client = genai.Client(api_key=api_key)
        self._client = client
        self._model = model
        self._prompt = prompt

    async def transcribe(self, audio: bytes, mime_type: str) -> str:
        contents = [
            genai_types.Part.from_bytes(data=audio, mime_type=mime_type),
            self._prompt,
        ]

        try:
            response = await self._client.aio.models.generate_content(
                model=self._model,
                contents=contents,
            )
        except Exception as e:  # pylint: disable=broad-exception-caught
            raise TranscriptionError(
                f"gemini generate_content failed: {e!r}", provider=self.name
            ) from e

        text = response.text
        if text is None:
            raise TranscriptionError(
                "gemini returned no text (blocked or empty response)", provider=self.name
            )
        return text.strip()
