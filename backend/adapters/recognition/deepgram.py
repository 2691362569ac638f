"""
Deepgram live recognition engine.

One Deepgram WebSocket per listening run (non-continuous recognition):
- Streams PCM16 16kHz mono mic frames.
- Interim results are enabled; every message yields a snapshot made of the
  finalized segments so far plus the current interim segment.
- The session ends on the first speech_final result or UtteranceEnd after
  speech was heard, or when finish() asks Deepgram to flush (CloseStream).
- If nothing is heard within RECOGNITION_NO_SPEECH_TIMEOUT_S the session
  fails with code "no-speech".

The engine knows nothing about run IDs or orchestrator events.
"""

from __future__ import annotations

import asyncio
import json
import urllib.parse
from typing import Any, AsyncIterator

from websockets.asyncio.client import ClientConnection, connect as ws_connect
from websockets.exceptions import ConnectionClosed, WebSocketException

from adapters.recognition.base import (
    RecognitionEngine,
    RecognitionFailure,
    RecognitionSession,
)
from spec import (
    AUDIO_CHANNELS,
    AUDIO_SAMPLE_RATE_HZ,
    RECOGNITION_ENDPOINTING_MS,
    RECOGNITION_NO_SPEECH_CODE,
    RECOGNITION_NO_SPEECH_TIMEOUT_S,
)

_DEEPGRAM_LISTEN_URL = "wss://api.deepgram.com/v1/listen"

# Queue items: a snapshot, a failure to raise, or None for "ended".
_QueueItem = str | RecognitionFailure | None


class DeepgramRecognitionSession(RecognitionSession):
    """Single-utterance Deepgram session; see module docstring."""

    def __init__(
        self,
        *,
        url: str,
        api_key: str,
        no_speech_timeout_s: float = RECOGNITION_NO_SPEECH_TIMEOUT_S,
    ) -> None:
        self._url = url
        self._api_key = api_key
        self._no_speech_timeout_s = no_speech_timeout_s

        self._ws: ClientConnection | None = None
        self._queue: asyncio.Queue[_QueueItem] = asyncio.Queue()
        self._recv_task: asyncio.Task[None] | None = None

        self._finalized: list[str] = []
        self._last_snapshot: str = ""
        self._heard_speech: bool = False
        self._finishing: bool = False
        self._ended: bool = False

    # ------------------------------------------------------------------
    # RecognitionSession contract
    # ------------------------------------------------------------------

    def __aiter__(self) -> AsyncIterator[str]:
        return self._iterate()

    async def send_audio(self, pcm_bytes: bytes) -> None:
        ws = self._ws
        if ws is None or self._finishing or self._ended:
            return
        try:
            await ws.send(pcm_bytes)
        except ConnectionClosed:
            self._end(RecognitionFailure("network", "deepgram socket closed"))

    async def finish(self) -> None:
        if self._finishing or self._ended:
            return
        self._finishing = True
        ws = self._ws
        if ws is None:
            self._end(None)
            return
        try:
            await ws.send(json.dumps({"type": "CloseStream"}))
        except ConnectionClosed:
            self._end(None)

    async def abort(self) -> None:
        self._finishing = True
        self._end(None)
        await self._close()

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    def _end(self, item: _QueueItem) -> None:
        if self._ended:
            return
        self._ended = True
        self._queue.put_nowait(item)

    async def _iterate(self) -> AsyncIterator[str]:
        try:
            self._ws = await ws_connect(
                self._url,
                additional_headers={"Authorization": f"Token {self._api_key}"},
                max_size=2**22,
            )
        except (OSError, WebSocketException) as e:
            raise RecognitionFailure("network", f"deepgram_connect_failed: {e!r}") from e

        self._recv_task = asyncio.create_task(self._recv_loop(self._ws))
        try:
            while True:
                timeout = None if self._heard_speech else self._no_speech_timeout_s
                try:
                    item = await asyncio.wait_for(self._queue.get(), timeout=timeout)
                except asyncio.TimeoutError as e:
                    raise RecognitionFailure(RECOGNITION_NO_SPEECH_CODE) from e

                if item is None:
                    return
                if isinstance(item, RecognitionFailure):
                    raise item
                yield item
        finally:
            await self._close()

    async def _close(self) -> None:
        task = self._recv_task
        self._recv_task = None
        if task is not None and not task.done():
            task.cancel()

        ws = self._ws
        self._ws = None
        if ws is not None:
            await ws.close()

    async def _recv_loop(self, ws: ClientConnection) -> None:
        try:
            async for raw in ws:
                try:
                    data = json.loads(raw)
                except (TypeError, ValueError):
                    continue
                self._handle_message(data)
        except ConnectionClosed:
            if not self._finishing:
                self._end(RecognitionFailure("network", "deepgram socket dropped"))
                return
        self._end(None)

    def _handle_message(self, data: dict[str, Any]) -> None:
        msg_type = data.get("type")

        if msg_type == "UtteranceEnd":
            if self._heard_speech:
                self._end(None)
            return

        if msg_type != "Results":
            return

        alternatives = data.get("channel", {}).get("alternatives") or [{}]
        segment = str(alternatives[0].get("transcript") or "").strip()

        if data.get("is_final"):
            if segment:
                self._finalized.append(segment)
            snapshot = " ".join(self._finalized)
        else:
            snapshot = " ".join(self._finalized + ([segment] if segment else []))

        if snapshot and snapshot != self._last_snapshot:
            self._last_snapshot = snapshot
            self._heard_speech = True
            self._queue.put_nowait(snapshot)

        if data.get("speech_final") and self._heard_speech:
            self._end(None)


class DeepgramRecognitionEngine(RecognitionEngine):
    """Builds one DeepgramRecognitionSession per listening run."""

    def __init__(self, *, api_key: str, model: str = "nova-2") -> None:
        self._api_key = api_key
        self._model = model

    def build_url(self, *, locale: str, interim_results: bool) -> str:
        params: dict[str, str] = {
            "model": self._model,
            "language": locale,
            "encoding": "linear16",
            "sample_rate": str(AUDIO_SAMPLE_RATE_HZ),
            "channels": str(AUDIO_CHANNELS),
            "punctuate": "true",
            "interim_results": "true" if interim_results else "false",
            "endpointing": str(RECOGNITION_ENDPOINTING_MS),
        }
        if interim_results:
            params["utterance_end_ms"] = "1000"
        return f"{_DEEPGRAM_LISTEN_URL}?{urllib.parse.urlencode(params)}"

    def open_session(self, *, locale: str, interim_results: bool = True) -> RecognitionSession:
        return DeepgramRecognitionSession(
            url=self.build_url(locale=locale, interim_results=interim_results),
            api_key=self._api_key,
        )
