"""
Application configuration.

Responsibilities:
- Load deployment-specific configuration
- Read environment variables
- Provide a typed, immutable config object

Non-responsibilities:
- No orchestration logic
- No protocol constants (see spec.py)
- No runtime mutation
"""

from __future__ import annotations

import math
import os
from dataclasses import dataclass

from spec import (
    FINISH_GRACE_MS,
    LOCAL_SYNTHESIS_RATE_DEFAULT,
    PLAYBACK_STRATEGY_LOCAL,
    PLAYBACK_STRATEGY_REMOTE,
    RECOGNITION_LOCALE,
    RETRIEVAL_MATCH_COUNT,
    RETRIEVAL_MATCH_THRESHOLD,
    RETRIEVAL_TIMEOUT_S,
    TTS_MODE_BUFFERED,
    TTS_MODE_STREAM,
)


class ConfigError(ValueError):
    """Raised when an environment variable holds an unusable value."""


def _flag(name: str, default: str) -> bool:
    return os.environ.get(name, default) == "1"


def _choice(name: str, default: str, allowed: tuple[str, ...]) -> str:
    value = os.environ.get(name, default).strip().lower()
    if value not in allowed:
        raise ConfigError(f"{name} must be one of {allowed}, got {value!r}")
    return value


def _number(name: str, default: float) -> float:
    raw = os.environ.get(name)
    if raw is None or raw.strip() == "":
        return default
    try:
        value = float(raw)
    except ValueError as e:
        raise ConfigError(f"{name} must be numeric, got {raw!r}") from e
    if not math.isfinite(value):
        raise ConfigError(f"{name} must be finite, got {raw!r}")
    return value


@dataclass(frozen=True)
class AppConfig:
    """
    Immutable application configuration.

    Constructed once at process startup and passed downward to the
    app factory, the RAG/TTS services and every SessionGateway.
    """

    # ------------------------------------------------------------------
    # Environment
    # ------------------------------------------------------------------

    env: str = "dev"
    log_level: str = "INFO"
    enable_json_logs: bool = True

    # ------------------------------------------------------------------
    # Kiosk session: retrieval
    # ------------------------------------------------------------------

    retrieval_url: str = "http://127.0.0.1:8000/chat"
    retrieval_auth_token: str | None = None
    retrieval_timeout_s: float = RETRIEVAL_TIMEOUT_S
    enable_fast_paths: bool = True

    # ------------------------------------------------------------------
    # Kiosk session: playback
    # ------------------------------------------------------------------

    playback_strategy: str = PLAYBACK_STRATEGY_REMOTE
    tts_url: str = "http://127.0.0.1:8000/tts"
    tts_mode: str = TTS_MODE_STREAM
    synthesis_rate: float = LOCAL_SYNTHESIS_RATE_DEFAULT
    finish_grace_ms: int = FINISH_GRACE_MS

    # ------------------------------------------------------------------
    # Kiosk session: recognition
    # ------------------------------------------------------------------

    recognition_locale: str = RECOGNITION_LOCALE
    deepgram_api_key: str | None = None
    deepgram_model: str = "nova-2"

    # ------------------------------------------------------------------
    # RAG backend (/chat)
    # ------------------------------------------------------------------

    openai_api_key: str | None = None
    llm_model: str = "gpt-4o-mini"
    embedding_model: str = "text-embedding-3-small"
    vector_store_url: str | None = None
    vector_store_key: str | None = None
    match_threshold: float = RETRIEVAL_MATCH_THRESHOLD
    match_count: int = RETRIEVAL_MATCH_COUNT

    # ------------------------------------------------------------------
    # TTS backend (/tts)
    # ------------------------------------------------------------------

    elevenlabs_api_key: str | None = None
    elevenlabs_voice_id: str = "21m00Tcm4TlvDq8ikWAM"
    elevenlabs_model_id: str = "eleven_multilingual_v2"

    # ------------------------------------------------------------------
    # Factory
    # ------------------------------------------------------------------

    @staticmethod
    def load_from_env() -> AppConfig:
        """
        Load configuration from environment variables.

        Raises:
            ConfigError if a variable is present but unusable.
        """
        return AppConfig(
            env=os.environ.get("ENV", "dev"),
            log_level=os.environ.get("LOG_LEVEL", "INFO").upper(),
            enable_json_logs=_flag("ENABLE_JSON_LOGS", "1"),

            retrieval_url=os.environ.get("RETRIEVAL_URL", "http://127.0.0.1:8000/chat"),
            retrieval_auth_token=os.environ.get("RETRIEVAL_AUTH_TOKEN"),
            retrieval_timeout_s=_number("RETRIEVAL_TIMEOUT_S", RETRIEVAL_TIMEOUT_S),
            enable_fast_paths=_flag("ENABLE_FAST_PATHS", "1"),

            playback_strategy=_choice(
                "PLAYBACK_STRATEGY",
                PLAYBACK_STRATEGY_REMOTE,
                (PLAYBACK_STRATEGY_REMOTE, PLAYBACK_STRATEGY_LOCAL),
            ),
            tts_url=os.environ.get("TTS_URL", "http://127.0.0.1:8000/tts"),
            tts_mode=_choice("TTS_MODE", TTS_MODE_STREAM, (TTS_MODE_STREAM, TTS_MODE_BUFFERED)),
            synthesis_rate=_number("SYNTHESIS_RATE", LOCAL_SYNTHESIS_RATE_DEFAULT),
            finish_grace_ms=int(_number("FINISH_GRACE_MS", FINISH_GRACE_MS)),

            recognition_locale=os.environ.get("RECOGNITION_LOCALE", RECOGNITION_LOCALE),
            deepgram_api_key=os.environ.get("DEEPGRAM_API_KEY"),
            deepgram_model=os.environ.get("DEEPGRAM_MODEL", "nova-2"),

            openai_api_key=os.environ.get("OPENAI_API_KEY"),
            llm_model=os.environ.get("LLM_MODEL", "gpt-4o-mini"),
            embedding_model=os.environ.get("EMBEDDING_MODEL", "text-embedding-3-small"),
            vector_store_url=os.environ.get("VECTOR_STORE_URL"),
            vector_store_key=os.environ.get("VECTOR_STORE_KEY"),
            match_threshold=_number("MATCH_THRESHOLD", RETRIEVAL_MATCH_THRESHOLD),
            match_count=int(_number("MATCH_COUNT", RETRIEVAL_MATCH_COUNT)),

            elevenlabs_api_key=os.environ.get("ELEVENLABS_API_KEY"),
            elevenlabs_voice_id=os.environ.get("ELEVENLABS_VOICE_ID", "21m00Tcm4TlvDq8ikWAM"),
            elevenlabs_model_id=os.environ.get("ELEVENLABS_MODEL_ID", "eleven_multilingual_v2"),
        )
