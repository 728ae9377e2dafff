"""
Application configuration.

Responsibilities:
- Load deployment-specific configuration
- Read environment variables
- Provide a typed, immutable config object

Non-responsibilities:
- No session logic
- No protocol constants
- No runtime mutation
"""

from __future__ import annotations

import os
import urllib.parse
from dataclasses import dataclass

from constants import LIVE_WS_PATH, RECONNECT_DELAY_S


def _optional_int(raw: str | None) -> int | None:
    if raw is None or raw.strip() == "":
        return None
    return int(raw)


@dataclass(frozen=True)
class LiveConfig:
    """
    Immutable client configuration.

    Constructed once at process startup and injected into LiveSession
    and the transcription adapters. There is no module-level key.
    """

    # ------------------------------------------------------------------
    # Environment
    # ------------------------------------------------------------------

    env: str = "dev"
    log_level: str = "INFO"

    # ------------------------------------------------------------------
    # Live session
    # ------------------------------------------------------------------

    gemini_api_key: str | None = None
    live_model: str = "models/gemini-2.0-flash-exp"
    live_host: str = "generativelanguage.googleapis.com"
    reconnect_delay_s: float = RECONNECT_DELAY_S

    # ------------------------------------------------------------------
    # Transcription
    # ------------------------------------------------------------------

    transcription_provider: str = "gemini"
    transcription_model: str = "gemini-1.5-flash-8b"
    openai_api_key: str | None = None
    openai_transcription_model: str = "whisper-1"

    # ------------------------------------------------------------------
    # Audio output
    # ------------------------------------------------------------------

    audio_output_device: int | None = None

    # ------------------------------------------------------------------
    # Observability
    # ------------------------------------------------------------------

    enable_json_logs: bool = True

    # ------------------------------------------------------------------
    # Derived values
    # ------------------------------------------------------------------

    def websocket_url(self) -> str:
        """
        Full BidiGenerateContent websocket URL (API key as query param).

        Raises:
            ValueError if no Gemini API key is configured.
        """
        if not self.gemini_api_key:
            raise ValueError("GEMINI_API_KEY is required for a live session")

        qs = urllib.parse.urlencode({"key": self.gemini_api_key})
        return f"wss://{self.live_host}{LIVE_WS_PATH}?{qs}"

    # ------------------------------------------------------------------
    # Factory
    # ------------------------------------------------------------------

    @staticmethod
    def load_from_env() -> LiveConfig:
        """
        Load configuration from environment variables.

        Raises:
            ValueError if a numeric variable is malformed.
        """
        return LiveConfig(
            env=os.environ.get("ENV", "dev"),
            log_level=os.environ.get("LOG_LEVEL", "INFO"),

            gemini_api_key=os.environ.get("GEMINI_API_KEY"),
            live_model=os.environ.get("GEMINI_LIVE_MODEL", "models/gemini-2.0-flash-exp"),
            live_host=os.environ.get("GEMINI_LIVE_HOST", "generativelanguage.googleapis.com"),
            reconnect_delay_s=float(os.environ.get("RECONNECT_DELAY_S", str(RECONNECT_DELAY_S))),

            transcription_provider=os.environ.get("TRANSCRIPTION_PROVIDER", "gemini"),
            transcription_model=os.environ.get("TRANSCRIPTION_MODEL", "gemini-1.5-flash-8b"),
            openai_api_key=os.environ.get("OPENAI_API_KEY"),
            openai_transcription_model=os.environ.get("OPENAI_TRANSCRIPTION_MODEL", "whisper-1"),

            audio_output_device=_optional_int(os.environ.get("AUDIO_OUTPUT_DEVICE")),

            enable_json_logs=os.environ.get("ENABLE_JSON_LOGS", "1") == "1",
        )
