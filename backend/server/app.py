"""
FastAPI app factory.

Responsibilities:
- Create and configure FastAPI app
- Apply logging settings
- Set up middleware
- Initialize shared resources (OpenAI client, RAG and TTS services)
- Register routes
"""

from __future__ import annotations

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from openai import AsyncOpenAI

from config import AppConfig
from observability.logger import configure_logging, log_event
from server.routes import register_routes
from services.chat_service import ChatService
from services.tts_service import ElevenLabsTTSService
from services.vector_store import VectorStoreClient


def create_app(config: AppConfig | None = None) -> FastAPI:
    """
    Create and configure the FastAPI application.

    Services whose credentials are missing are left as None; their
    routes answer 503 instead of failing at startup, so a kiosk-only
    deployment can point RETRIEVAL_URL and TTS_URL elsewhere.
    """
    if config is None:
        config = AppConfig.load_from_env()

    configure_logging(enabled=config.enable_json_logs, level=config.log_level)

    app = FastAPI(title="Kiosk Voice Assistant API")
    app.state.config = config

    # Middleware
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    app.state.chat_service = build_chat_service(config)
    app.state.tts_service = build_tts_service(config)

    log_event({
        "event_type": "app_created",
        "env": config.env,
        "chat_enabled": app.state.chat_service is not None,
        "tts_enabled": app.state.tts_service is not None,
        "recognition_enabled": bool(config.deepgram_api_key),
        "playback_strategy": config.playback_strategy,
    })

    # Routes
    register_routes(app)

    return app


def build_chat_service(config: AppConfig) -> ChatService | None:
    """Build the RAG service when OpenAI and the vector store are configured."""
    if not (config.openai_api_key and config.vector_store_url and config.vector_store_key):
        return None

    return ChatService(
        client=AsyncOpenAI(api_key=config.openai_api_key),
        vector_store=VectorStoreClient(
            url=config.vector_store_url,
            api_key=config.vector_store_key,
            match_threshold=config.match_threshold,
            match_count=config.match_count,
        ),
        model=config.llm_model,
        embedding_model=config.embedding_model,
    )


def build_tts_service(config: AppConfig) -> ElevenLabsTTSService | None:
    if not config.elevenlabs_api_key:
        return None

    return ElevenLabsTTSService(
        api_key=config.elevenlabs_api_key,
        voice_id=config.elevenlabs_voice_id,
        model_id=config.elevenlabs_model_id,
    )
