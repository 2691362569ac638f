"""
Playback strategies.

RemoteSynthesis:
    GET {tts_url}?text=... and forward the audio/mpeg bytes to the kiosk.
    In "stream" mode chunks are forwarded as they arrive; in "buffered"
    mode the complete resource is downloaded first. Progress comes from
    positions reported by the kiosk audio element.

LocalSynthesis:
    Ask the kiosk's on-device synthesizer to speak the text. There is no
    observable position, so progress is simulated from an estimated duration.
"""

from __future__ import annotations

import asyncio

import aiohttp

from adapters.playback.base import AudioSink, PlaybackError, PlaybackStrategy
from adapters.playback.time_base import (
    ReportedTimeBase,
    SimulatedTimeBase,
    TimeBase,
    estimate_duration_s,
)
from observability.metrics import timed
from spec import (
    LOCAL_SYNTHESIS_RATE_DEFAULT,
    PLAYBACK_STRATEGY_LOCAL,
    PLAYBACK_STRATEGY_REMOTE,
    RECOGNITION_LOCALE,
    S2C_MAX_CHUNK_BYTES,
    TTS_MEDIA_TYPE,
    TTS_MODE_BUFFERED,
    TTS_MODE_STREAM,
    TTS_STREAM_CHUNK_BYTES,
)

# Time allowed between two reads of the TTS stream.
_TTS_SOCK_READ_TIMEOUT_S = 15.0


def _split(data: bytes, size: int) -> list[bytes]:
    return [data[i:i + size] for i in range(0, len(data), size)]


class RemoteSynthesis(PlaybackStrategy):
    """Streaming (or buffered) download from the TTS endpoint."""

    name = PLAYBACK_STRATEGY_REMOTE

    def __init__(
        self,
        *,
        tts_url: str,
        mode: str = TTS_MODE_STREAM,
        session_id: str | None = None,
    ) -> None:
        if mode not in (TTS_MODE_STREAM, TTS_MODE_BUFFERED):
            raise ValueError(f"unknown TTS mode: {mode}")
        self._url = tts_url
        self._mode = mode
        self._session_id = session_id

    @property
    def buffered(self) -> bool:
        return self._mode == TTS_MODE_BUFFERED

    def time_base(self, text: str) -> TimeBase:
        return ReportedTimeBase()

    async def render(self, *, run_id: int, text: str, sink: AudioSink) -> None:
        timeout = aiohttp.ClientTimeout(total=None, sock_read=_TTS_SOCK_READ_TIMEOUT_S)
        try:
            async with aiohttp.ClientSession(timeout=timeout) as s:
                async with s.get(self._url, params={"text": text}) as resp:
                    if resp.status != 200:
                        raise PlaybackError(f"tts HTTP {resp.status}")

                    media_type = resp.headers.get("Content-Type", TTS_MEDIA_TYPE)
                    sink.begin_audio(run_id, media_type, self.buffered)

                    if self.buffered:
                        sent = await self._forward_buffered(run_id, resp, sink)
                    else:
                        sent = await self._forward_stream(run_id, resp, sink)

                    if sent == 0:
                        raise PlaybackError("tts returned no audio")
                    sink.end_audio(run_id)
        except asyncio.TimeoutError as e:
            raise PlaybackError("tts timeout") from e
        except aiohttp.ClientError as e:
            raise PlaybackError(f"tts transport error: {type(e).__name__}") from e

    async def _forward_stream(
        self, run_id: int, resp: aiohttp.ClientResponse, sink: AudioSink
    ) -> int:
        sent = 0
        with timed("tts_first_byte", session_id=self._session_id) as span:
            first = await resp.content.read(TTS_STREAM_CHUNK_BYTES)
            span.details["bytes"] = len(first)
        if first:
            sink.send_audio(run_id, first)
            sent += len(first)
        async for chunk in resp.content.iter_chunked(TTS_STREAM_CHUNK_BYTES):
            sink.send_audio(run_id, chunk)
            sent += len(chunk)
        return sent

    async def _forward_buffered(
        self, run_id: int, resp: aiohttp.ClientResponse, sink: AudioSink
    ) -> int:
        with timed("tts_download", session_id=self._session_id) as span:
            data = await resp.read()
            span.details["bytes"] = len(data)
        for chunk in _split(data, S2C_MAX_CHUNK_BYTES):
            sink.send_audio(run_id, chunk)
        return len(data)


class LocalSynthesis(PlaybackStrategy):
    """On-device synthesis on the kiosk with a simulated clock."""

    name = PLAYBACK_STRATEGY_LOCAL

    def __init__(
        self,
        *,
        language: str = RECOGNITION_LOCALE,
        rate: float = LOCAL_SYNTHESIS_RATE_DEFAULT,
    ) -> None:
        self._language = language
        self._rate = rate

    def time_base(self, text: str) -> TimeBase:
        return SimulatedTimeBase(estimate_duration_s(text, self._rate))

    async def render(self, *, run_id: int, text: str, sink: AudioSink) -> None:
        sink.speak(run_id, text, self._language, self._rate)
