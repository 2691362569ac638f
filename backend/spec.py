"""
BEHAVIOR-AS-CONSTANTS
---------------------
Single source of truth for all behavioral invariants in the kiosk assistant.

Rules:
- If changing a value changes runtime behavior, it belongs here.
- No magic numbers elsewhere in the codebase.
- Other modules MUST import from this file.
"""

from __future__ import annotations

from typing import Final, Mapping

# =============================================================================
# Mic Audio Format (PCM16 mono @ 16kHz, 20ms frames)
# =============================================================================

AUDIO_SAMPLE_RATE_HZ: Final[int] = 16_000
AUDIO_CHANNELS: Final[int] = 1
AUDIO_SAMPLE_WIDTH_BYTES: Final[int] = 2  # PCM16 (signed 16-bit)
AUDIO_FRAME_MS: Final[int] = 20

AUDIO_SAMPLES_PER_FRAME: Final[int] = (AUDIO_SAMPLE_RATE_HZ * AUDIO_FRAME_MS) // 1000
AUDIO_BYTES_PER_FRAME_PCM: Final[int] = AUDIO_SAMPLES_PER_FRAME * AUDIO_SAMPLE_WIDTH_BYTES

# =============================================================================
# Binary WebSocket Frame Formats
# =============================================================================
# Client → Server (mic audio): 4B seq_num + PCM frame
C2S_SEQ_NUM_BYTES: Final[int] = 4
C2S_FRAME_BYTES_TOTAL: Final[int] = C2S_SEQ_NUM_BYTES + AUDIO_BYTES_PER_FRAME_PCM

# Server → Client (synthesized audio): 4B run_id + 4B seq_num + encoded chunk
S2C_RUN_ID_BYTES: Final[int] = 4
S2C_SEQ_NUM_BYTES: Final[int] = 4
S2C_HEADER_BYTES: Final[int] = S2C_RUN_ID_BYTES + S2C_SEQ_NUM_BYTES
S2C_MAX_CHUNK_BYTES: Final[int] = 64 * 1024

SEQ_NUM_START: Final[int] = 1
SEQ_NUM_MAX: Final[int] = 2**32 - 1  # u32 wraparound

# =============================================================================
# Speech Recognition
# =============================================================================

RECOGNITION_LOCALE: Final[str] = "pt-BR"

# Browser-compatible error code for "nothing was heard"; returns silently to idle.
RECOGNITION_NO_SPEECH_CODE: Final[str] = "no-speech"
RECOGNITION_NO_SPEECH_TIMEOUT_S: Final[float] = 8.0
RECOGNITION_ENDPOINTING_MS: Final[int] = 800

# =============================================================================
# Retrieval
# =============================================================================

RETRIEVAL_TIMEOUT_S: Final[float] = 30.0
RETRIEVAL_MATCH_THRESHOLD: Final[float] = 0.2
RETRIEVAL_MATCH_COUNT: Final[int] = 5

# Id assigned by the RAG backend to every generated workflow.
DYNAMIC_WORKFLOW_ID: Final[str] = "dynamic_answer"

CHAT_TEMPERATURE: Final[float] = 0.7
CHAT_MAX_TOKENS: Final[int] = 500

# =============================================================================
# Playback
# =============================================================================

PLAYBACK_STRATEGY_REMOTE: Final[str] = "remote"
PLAYBACK_STRATEGY_LOCAL: Final[str] = "local"

TTS_MODE_STREAM: Final[str] = "stream"
TTS_MODE_BUFFERED: Final[str] = "buffered"

TTS_MEDIA_TYPE: Final[str] = "audio/mpeg"
TTS_STREAM_CHUNK_BYTES: Final[int] = 4096
TTS_OUTPUT_FORMAT: Final[str] = "mp3_44100_128"
TTS_OPTIMIZE_STREAMING_LATENCY: Final[int] = 3
TTS_VOICE_STABILITY: Final[float] = 0.5
TTS_VOICE_SIMILARITY_BOOST: Final[float] = 0.7

# Simulated clock for on-device synthesis (no real position is observable).
ESTIMATED_SECONDS_PER_CHAR: Final[float] = 0.1
LOCAL_SYNTHESIS_RATE_DEFAULT: Final[float] = 1.0

# Delay between natural playback end and returning to idle.
FINISH_GRACE_MS: Final[int] = 3_000

# =============================================================================
# Progress Synchronization
# =============================================================================

PROGRESS_TICK_MS: Final[int] = 100

# Below this playback fraction the first step stays highlighted.
PROGRESS_START_FRACTION: Final[float] = 0.01
# At or above this fraction the last step is highlighted.
PROGRESS_END_FRACTION: Final[float] = 0.99

# Weight used for a step with no narration and no description.
FALLBACK_STEP_WEIGHT: Final[int] = 3

# =============================================================================
# Kiosk UI strings (pt-BR)
# =============================================================================

CAPTION_LISTENING: Final[str] = "Ouvindo..."
CAPTION_PROCESSING: Final[str] = "Pensando na melhor resposta..."

MSG_RECOGNITION_UNAVAILABLE: Final[str] = "Reconhecimento de voz não disponível"
MSG_RECOGNITION_FAILED: Final[str] = "Erro no reconhecimento de voz"
MSG_RETRIEVAL_FAILED: Final[str] = "Erro ao processar a pergunta"
MSG_PLAYBACK_FAILED: Final[str] = "Erro ao reproduzir o áudio"

# =============================================================================
# Quick actions (kiosk buttons → canned questions)
# =============================================================================

QUICK_ACTIONS: Final[Mapping[str, str]] = {
    "pop_marketing": "Fluxo Marketing",
    "pop_comercial": "Fluxo Aplicação Técnica",
    "pop_industria": "Fluxo Setup de Empacotamento",
    "pop_totem": "Fluxo Prospecção de Negócios",
}
