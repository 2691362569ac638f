"""
Speech capture adapter.

Wraps a RecognitionEngine (or the absence of one) and turns one engine
session per listening run into orchestrator events:

- RecognitionResult(run_id, text) for every transcript snapshot
- exactly one terminal event per run:
    - RecognitionEnded(run_id, final_transcript), possibly empty, or
    - RecognitionError(run_id, code)
- RecognitionUnavailable(run_id) when the kiosk has no recognition capability

Design constraints:
- Adapter must not call the reducer directly; events are scheduled onto
  the runtime entry point (fire-and-forget).
- Adapter never decides whether a result is stale; the reducer gates on run_id.
- stop(run_id) forces early termination and still yields the terminal event.
"""

from __future__ import annotations

import asyncio
import time
from typing import Awaitable, Callable

from adapters.recognition.base import (
    RecognitionEngine,
    RecognitionFailure,
    RecognitionSession,
)
from observability.logger import log_event
from orchestrator.enums.service import Service
from orchestrator.events import (
    Event,
    EventType,
    RecognitionEnded,
    RecognitionError,
    RecognitionResult,
    RecognitionUnavailable,
)

# Upper bound on waiting for an aborted session to flush its terminal event.
_TEARDOWN_TIMEOUT_S = 1.0


def _now_ms() -> int:
    return int(time.time() * 1000)


class SpeechCaptureAdapter:
    """
    Capability-checked, run-scoped speech capture.

    Public interface (RecognitionAdapterProtocol):
    - available: whether an engine is configured
    - start(run_id, locale): open a fresh session for run_id
    - feed_audio(pcm_bytes): forward mic audio to the live session only
    - stop(run_id): force early termination of run_id (idempotent)
    - shutdown(): abort everything (session teardown)
    """

    def __init__(
        self,
        *,
        emit_event: Callable[[Event], Awaitable[None]],
        engine: RecognitionEngine | None,
        session_id: str,
    ) -> None:
        self._emit_async = emit_event
        self._engine = engine
        self._session_id = session_id

        self._run_id: int | None = None
        self._session: RecognitionSession | None = None
        self._task: asyncio.Task[None] | None = None
        self._transcript: str = ""

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    @property
    def available(self) -> bool:
        return self._engine is not None

    async def start(self, run_id: int, locale: str) -> None:
        """
        Begin a listening run.

        Fire-and-forget: returns once the session task is scheduled.
        """
        if self._engine is None:
            self._emit(
                RecognitionUnavailable(
                    event_type=EventType.RECOGNITION_UNAVAILABLE,
                    ts_ms=_now_ms(),
                    service=Service.RECOGNITION,
                    run_id=run_id,
                )
            )
            return

        await self._teardown()

        self._transcript = ""
        self._run_id = run_id
        session = self._engine.open_session(locale=locale, interim_results=True)
        self._session = session
        self._task = asyncio.create_task(self._consume(run_id, session))

        log_event({
            "ts_ms": _now_ms(),
            "event_type": "recognition_session_opened",
            "session_id": self._session_id,
            "recognition_run_id": run_id,
            "locale": locale,
        })

    async def feed_audio(self, pcm_bytes: bytes) -> None:
        session = self._session
        if session is None:
            return
        await session.send_audio(pcm_bytes)

    async def stop(self, run_id: int) -> None:
        """
        Request early termination of run_id.

        Safe when nothing is running or run_id is not the live run.
        """
        if self._run_id != run_id or self._session is None:
            return
        await self._session.finish()

    async def shutdown(self) -> None:
        await self._teardown()

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    def _emit(self, event: Event) -> None:
        # Emission is fire-and-forget; the runtime serializes transitions.
        asyncio.create_task(self._emit_async(event))

    async def _teardown(self) -> None:
        session = self._session
        task = self._task
        self._session = None
        self._task = None
        self._run_id = None

        if session is not None:
            await session.abort()

        if task is not None and not task.done():
            _, pending = await asyncio.wait({task}, timeout=_TEARDOWN_TIMEOUT_S)
            for t in pending:
                t.cancel()

    async def _consume(self, run_id: int, session: RecognitionSession) -> None:
        terminal: Event
        try:
            async for snapshot in session:
                if self._session is session:
                    self._transcript = snapshot
                self._emit(
                    RecognitionResult(
                        event_type=EventType.RECOGNITION_RESULT,
                        ts_ms=_now_ms(),
                        service=Service.RECOGNITION,
                        run_id=run_id,
                        text=snapshot,
                    )
                )
            terminal = RecognitionEnded(
                event_type=EventType.RECOGNITION_ENDED,
                ts_ms=_now_ms(),
                service=Service.RECOGNITION,
                run_id=run_id,
                text=self._transcript if self._session is session else "",
            )
        except RecognitionFailure as e:
            terminal = RecognitionError(
                event_type=EventType.RECOGNITION_ERROR,
                ts_ms=_now_ms(),
                service=Service.RECOGNITION,
                run_id=run_id,
                code=e.code,
            )
        except Exception as e:  # pylint: disable=broad-exception-caught
            log_event({
                "ts_ms": _now_ms(),
                "level": "ERROR",
                "event_type": "recognition_session_crashed",
                "session_id": self._session_id,
                "recognition_run_id": run_id,
                "exception": type(e).__name__,
                "message": str(e),
            })
            terminal = RecognitionError(
                event_type=EventType.RECOGNITION_ERROR,
                ts_ms=_now_ms(),
                service=Service.RECOGNITION,
                run_id=run_id,
                code="aborted",
            )

        if self._session is session:
            self._session = None
            self._task = None

        log_event({
            "ts_ms": _now_ms(),
            "event_type": "recognition_session_closed",
            "session_id": self._session_id,
            "recognition_run_id": run_id,
            "terminal": terminal.event_type.value,
        })
        self._emit(terminal)
