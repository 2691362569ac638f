# pylint: disable=missing-module-docstring,missing-function-docstring
import pytest

from config import AppConfig, ConfigError
from services.tts_service import ElevenLabsTTSService
from spec import FINISH_GRACE_MS, PLAYBACK_STRATEGY_REMOTE, TTS_MODE_STREAM

_ENV_VARS = (
    "ENV",
    "LOG_LEVEL",
    "PLAYBACK_STRATEGY",
    "TTS_MODE",
    "FINISH_GRACE_MS",
    "ENABLE_FAST_PATHS",
    "DEEPGRAM_API_KEY",
    "RETRIEVAL_TIMEOUT_S",
    "MATCH_COUNT",
)


@pytest.fixture(autouse=True)
def clean_env(monkeypatch: pytest.MonkeyPatch) -> None:
    for name in _ENV_VARS:
        monkeypatch.delenv(name, raising=False)


def test_defaults() -> None:
    config = AppConfig.load_from_env()

    assert config.playback_strategy == PLAYBACK_STRATEGY_REMOTE
    assert config.tts_mode == TTS_MODE_STREAM
    assert config.finish_grace_ms == FINISH_GRACE_MS
    assert config.enable_fast_paths is True
    assert config.deepgram_api_key is None
    assert config.log_level == "INFO"


def test_values_are_read_from_env(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("PLAYBACK_STRATEGY", " Local ")
    monkeypatch.setenv("TTS_MODE", "buffered")
    monkeypatch.setenv("FINISH_GRACE_MS", "1500")
    monkeypatch.setenv("ENABLE_FAST_PATHS", "0")
    monkeypatch.setenv("LOG_LEVEL", "debug")

    config = AppConfig.load_from_env()

    assert config.playback_strategy == "local"
    assert config.tts_mode == "buffered"
    assert config.finish_grace_ms == 1500
    assert config.enable_fast_paths is False
    assert config.log_level == "DEBUG"


@pytest.mark.parametrize(
    ("name", "value"),
    [
        ("PLAYBACK_STRATEGY", "bluetooth"),
        ("TTS_MODE", "chunky"),
        ("RETRIEVAL_TIMEOUT_S", "soon"),
        ("FINISH_GRACE_MS", "nan"),
        ("MATCH_COUNT", "inf"),
        ("RETRIEVAL_TIMEOUT_S", "-inf"),
    ],
)
def test_unusable_values_raise(monkeypatch: pytest.MonkeyPatch, name: str, value: str) -> None:
    monkeypatch.setenv(name, value)

    with pytest.raises(ConfigError):
        AppConfig.load_from_env()


def test_tts_request_shape() -> None:
    service = ElevenLabsTTSService(
        api_key="k",
        voice_id="voice123",
        model_id="eleven_multilingual_v2",
        api_base="https://tts.example/v1/",
    )

    assert service.build_url() == "https://tts.example/v1/text-to-speech/voice123/stream"
    payload = service.build_payload("Olá")
    assert payload["text"] == "Olá"
    assert payload["model_id"] == "eleven_multilingual_v2"
    assert payload["voice_settings"] == {"stability": 0.5, "similarity_boost": 0.7}
