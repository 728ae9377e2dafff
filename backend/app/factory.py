"""
Session factory.

Responsibilities:
- Build the transcription adapter selected by configuration
- Build a LiveSession with default collaborators

Keeps credential handling out of LiveSession: the session only ever sees a
LiveConfig and ready-made adapters.
"""

from __future__ import annotations

from adapters.transcription.base import TranscriptionAdapter
from adapters.transcription.gemini import GeminiTranscriptionAdapter
from adapters.transcription.openai_whisper import OpenAITranscriptionAdapter
from audio.output import AudioOutput
from config import LiveConfig
from session.live_session import LiveSession, SessionObservers


def build_transcriber(config: LiveConfig) -> TranscriptionAdapter | None:
    """
    Build the transcription adapter named by TRANSCRIPTION_PROVIDER.

    "none" disables transcription (turns are still accumulated and dropped).

    Raises:
        RuntimeError for an unknown provider or a missing API key.
    """
    provider = config.transcription_provider.lower()

    if provider == "none":
        return None

    if provider == "gemini":
        if not config.gemini_api_key:
            raise RuntimeError("GEMINI_API_KEY environment variable not set")
        return GeminiTranscriptionAdapter(
            api_key=config.gemini_api_key,
            model=config.transcription_model,
        )

    if provider == "openai":
        if not config.openai_api_key:
            raise RuntimeError("OPENAI_API_KEY environment variable not set")
        return OpenAITranscriptionAdapter.from_api_key(
            config.openai_api_key,
            model=config.openai_transcription_model,
        )

    raise RuntimeError(f"Unknown TRANSCRIPTION_PROVIDER: {config.transcription_provider}")


def build_session(
    config: LiveConfig,
    *,
    observers: SessionObservers | None = None,
    transcriber: TranscriptionAdapter | None = None,
    output: AudioOutput | None = None,
) -> LiveSession:
    """Wire a LiveSession with the speaker output unless one is supplied."""
    if output is None:
        # sounddevice loads PortAudio at import time
        from audio.sounddevice_output import SoundDeviceOutput  # pylint: disable=import-outside-toplevel
        output = SoundDeviceOutput(device=config.audio_output_device)

    return LiveSession(
        config=config,
        output=output,
        transcriber=transcriber,
        observers=observers,
    )
