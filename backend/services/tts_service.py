"""
ElevenLabs streaming TTS proxy behind GET /tts.

The upstream response is relayed chunk by chunk as audio/mpeg so the
kiosk can start playing before synthesis finishes.
"""

from __future__ import annotations

import asyncio
from typing import AsyncIterator

import aiohttp

from services.errors import BackendError
from spec import (
    TTS_OPTIMIZE_STREAMING_LATENCY,
    TTS_OUTPUT_FORMAT,
    TTS_STREAM_CHUNK_BYTES,
    TTS_VOICE_SIMILARITY_BOOST,
    TTS_VOICE_STABILITY,
)

ELEVENLABS_API_BASE = "https://api.elevenlabs.io/v1"

# Upstream must start answering within this many seconds
_CONNECT_TIMEOUT_S = 10.0
_SOCK_READ_TIMEOUT_S = 15.0


class ElevenLabsTTSService:
    """Text -> streamed mp3 bytes."""

    def __init__(
        self,
        *,
        api_key: str,
        voice_id: str,
        model_id: str,
        api_base: str = ELEVENLABS_API_BASE,
    ) -> None:
        self._api_key = api_key
        self._voice_id = voice_id
        self._model_id = model_id
        self._api_base = api_base.rstrip("/")

    def build_url(self) -> str:
        return f"{self._api_base}/text-to-speech/{self._voice_id}/stream"

    def build_payload(self, text: str) -> dict[str, object]:
        return {
            "text": text,
            "model_id": self._model_id,
            "voice_settings": {
                "stability": TTS_VOICE_STABILITY,
                "similarity_boost": TTS_VOICE_SIMILARITY_BOOST,
            },
        }

    async def stream(self, text: str) -> AsyncIterator[bytes]:
        """
        Yield synthesized audio chunks for `text`.

        Raises:
            BackendError before the first chunk when the upstream request
            fails. Errors after the first chunk also raise BackendError;
            by then the HTTP status has already been sent.
        """
        if not text.strip():
            raise BackendError("text is required")

        timeout = aiohttp.ClientTimeout(
            total=None,
            connect=_CONNECT_TIMEOUT_S,
            sock_read=_SOCK_READ_TIMEOUT_S,
        )
        headers = {
            "xi-api-key": self._api_key,
            "Accept": "audio/mpeg",
        }
        params = {
            "output_format": TTS_OUTPUT_FORMAT,
            "optimize_streaming_latency": str(TTS_OPTIMIZE_STREAMING_LATENCY),
        }

        try:
            async with aiohttp.ClientSession(timeout=timeout) as s:
                async with s.post(
                    self.build_url(),
                    params=params,
                    json=self.build_payload(text),
                    headers=headers,
                ) as resp:
                    if resp.status != 200:
                        detail = await resp.text()
                        raise BackendError(
                            f"ElevenLabs HTTP {resp.status}: {detail[:200]}",
                            status=502,
                        )
                    async for chunk in resp.content.iter_chunked(TTS_STREAM_CHUNK_BYTES):
                        yield chunk
        except asyncio.TimeoutError as e:
            raise BackendError("ElevenLabs timeout", status=504) from e
        except aiohttp.ClientError as e:
            raise BackendError(f"ElevenLabs transport error: {type(e).__name__}", status=502) from e
