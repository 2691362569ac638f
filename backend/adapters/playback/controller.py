"""
Audio playback controller.

Owns the single live PlaybackSession and is the only component that
drives the kiosk's audio output.

Event model:
- PlaybackStarted / PlaybackEnded / PlaybackFailed are emitted for the
  live session only, asynchronously via emit_event.
- Kiosk reports (started, progress, ended, error) for any other run are
  ignored: a session that has been torn down is fully detached.

Guarantees:
- play() tears down the previous session before creating a new one.
- stop() is safe in any state (including never started) and idempotent.
- The grace delay after natural end is owned by the state machine.
"""

from __future__ import annotations

import asyncio
import time
from dataclasses import dataclass
from typing import Awaitable, Callable

from adapters.playback.base import AudioSink, PlaybackError, PlaybackStrategy
from adapters.playback.time_base import TimeBase
from observability.logger import log_event
from orchestrator.enums.service import Service
from orchestrator.events import (
    Event,
    EventType,
    PlaybackEnded,
    PlaybackFailed,
    PlaybackStarted,
)


def _now_ms() -> int:
    return int(time.time() * 1000)


@dataclass
class PlaybackSession:
    """Mutable bookkeeping for one playback run."""
    run_id: int
    text: str
    time_base: TimeBase
    task: asyncio.Task[None] | None = None
    started: bool = False
    paused: bool = False
    ended: bool = False


class AudioPlaybackController:
    """
    Strategy-agnostic playback controller.

    Public interface (PlaybackControllerProtocol):
    - play / pause / resume / stop
    - sample(run_id): (current_time, duration) while audibly playing
    - on_started / on_progress / on_ended / on_error: kiosk reports
    """

    def __init__(
        self,
        *,
        emit_event: Callable[[Event], Awaitable[None]],
        strategy: PlaybackStrategy,
        sink: AudioSink,
        session_id: str,
    ) -> None:
        self._emit_async = emit_event
        self._strategy = strategy
        self._sink = sink
        self._session_id = session_id
        self._session: PlaybackSession | None = None

    # ------------------------------------------------------------------
    # Commands
    # ------------------------------------------------------------------

    @property
    def strategy_name(self) -> str:
        return self._strategy.name

    @property
    def live_run_id(self) -> int | None:
        return self._session.run_id if self._session is not None else None

    async def play(self, run_id: int, text: str) -> None:
        """Start playback run_id; fire-and-forget after teardown of the previous run."""
        await self.stop()

        session = PlaybackSession(
            run_id=run_id,
            text=text,
            time_base=self._strategy.time_base(text),
        )
        self._session = session
        session.task = asyncio.create_task(self._deliver(session))

        log_event({
            "ts_ms": _now_ms(),
            "event_type": "playback_session_created",
            "session_id": self._session_id,
            "playback_run_id": run_id,
            "strategy": self._strategy.name,
            "text_len": len(text),
        })

    async def pause(self, run_id: int) -> None:
        session = self._live(run_id)
        if session is None or session.paused or session.ended:
            return
        session.paused = True
        session.time_base.pause()
        self._sink.pause(run_id)

    async def resume(self, run_id: int) -> None:
        session = self._live(run_id)
        if session is None or not session.paused or session.ended:
            return
        session.paused = False
        session.time_base.resume()
        self._sink.resume(run_id)

    async def stop(self, run_id: int | None = None) -> None:
        """
        Tear down the live session (or only run_id, when given).

        Detaches first so that late reports are ignored, then cancels
        delivery and silences the kiosk.
        """
        session = self._session
        if session is None:
            return
        if run_id is not None and session.run_id != run_id:
            return

        self._session = None

        task = session.task
        if task is not None and not task.done():
            task.cancel()
            await asyncio.gather(task, return_exceptions=True)

        if not session.ended:
            self._sink.stop(session.run_id)

        log_event({
            "ts_ms": _now_ms(),
            "event_type": "playback_session_stopped",
            "session_id": self._session_id,
            "playback_run_id": session.run_id,
            "ended": session.ended,
        })

    def sample(self, run_id: int) -> tuple[float, float] | None:
        """
        Current (position, duration) of run_id while it is audibly playing.

        None when the run is not live, not started, paused or ended.
        """
        session = self._live(run_id)
        if session is None or not session.started or session.paused or session.ended:
            return None
        return session.time_base.position()

    def is_paused(self, run_id: int) -> bool:
        session = self._live(run_id)
        return session is not None and session.paused

    # ------------------------------------------------------------------
    # Kiosk reports
    # ------------------------------------------------------------------

    def on_started(self, run_id: int) -> None:
        session = self._live(run_id)
        if session is None or session.started or session.ended:
            return
        session.started = True
        session.time_base.start()
        self._emit(
            PlaybackStarted(
                event_type=EventType.PLAYBACK_STARTED,
                ts_ms=_now_ms(),
                service=Service.PLAYBACK,
                run_id=run_id,
            )
        )

    def on_progress(self, run_id: int, current_time: float, duration: float) -> None:
        session = self._live(run_id)
        if session is None or session.ended:
            return
        session.time_base.report(current_time, duration)

    def on_ended(self, run_id: int) -> None:
        session = self._live(run_id)
        if session is None or session.ended:
            return
        session.ended = True
        self._emit(
            PlaybackEnded(
                event_type=EventType.PLAYBACK_ENDED,
                ts_ms=_now_ms(),
                service=Service.PLAYBACK,
                run_id=run_id,
            )
        )

    def on_error(self, run_id: int, reason: str) -> None:
        session = self._live(run_id)
        if session is None or session.ended:
            return
        session.ended = True
        log_event({
            "ts_ms": _now_ms(),
            "level": "WARNING",
            "event_type": "playback_failed",
            "session_id": self._session_id,
            "playback_run_id": run_id,
            "reason": reason,
        })
        self._emit(
            PlaybackFailed(
                event_type=EventType.PLAYBACK_FAILED,
                ts_ms=_now_ms(),
                service=Service.PLAYBACK,
                run_id=run_id,
                reason=reason,
            )
        )

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    def _live(self, run_id: int) -> PlaybackSession | None:
        session = self._session
        if session is None or session.run_id != run_id:
            return None
        return session

    def _emit(self, event: Event) -> None:
        asyncio.create_task(self._emit_async(event))

    async def _deliver(self, session: PlaybackSession) -> None:
        try:
            await self._strategy.render(
                run_id=session.run_id,
                text=session.text,
                sink=self._sink,
            )
        except PlaybackError as e:
            self.on_error(session.run_id, str(e))
        except Exception as e:  # pylint: disable=broad-exception-caught
            self.on_error(session.run_id, f"{type(e).__name__}: {e}")
