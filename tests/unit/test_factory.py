# pylint: disable=missing-module-docstring,missing-function-docstring

import pytest

from adapters.transcription.gemini import GeminiTranscriptionAdapter
from adapters.transcription.openai_whisper import OpenAITranscriptionAdapter
from app.factory import build_session, build_transcriber
from config import LiveConfig
from session.state import SessionState
from fakes import FakeOutput


def test_none_provider_disables_transcription():
    assert build_transcriber(LiveConfig(transcription_provider="none")) is None


def test_gemini_provider_uses_gemini_key():
    adapter = build_transcriber(LiveConfig(gemini_api_key="g-key"))
    assert isinstance(adapter, GeminiTranscriptionAdapter)


def test_openai_provider_uses_openai_key():
    adapter = build_transcriber(LiveConfig(transcription_provider="OpenAI", openai_api_key="o-key"))
    assert isinstance(adapter, OpenAITranscriptionAdapter)


@pytest.mark.parametrize(
    "config",
    [
        LiveConfig(transcription_provider="gemini"),
        LiveConfig(transcription_provider="openai", gemini_api_key="g-key"),
        LiveConfig(transcription_provider="vosk", gemini_api_key="g-key"),
    ],
)
def test_misconfiguration_fails_fast(config: LiveConfig):
    with pytest.raises(RuntimeError):
        build_transcriber(config)


def test_build_session_with_supplied_output_starts_idle():
    session = build_session(LiveConfig(gemini_api_key="g-key"), output=FakeOutput())

    assert session.state is SessionState.IDLE
    assert not session.is_connected


def test_build_session_without_key_is_rejected():
    with pytest.raises(ValueError):
        build_session(LiveConfig(), output=FakeOutput())
