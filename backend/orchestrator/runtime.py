"""
Runtime execution shell for a single kiosk session.

Responsibilities:
- Own the conversation state
- Call the pure reducer
- Execute commands with side effects (recognition, retrieval, playback,
  progress sync, timers)
- Schedule and cancel timers and convert their expiry into events
- Publish the rendered state to the kiosk whenever it changes
"""

from __future__ import annotations

import asyncio
import time
from typing import TYPE_CHECKING

from adapters.retrieval.client import RetrievalError
from observability.logger import log_event
from orchestrator.commands import (
    AskRetrieval,
    CancelRetrieval,
    CancelTimer,
    Command,
    LogEvent,
    PausePlayback,
    ResumePlayback,
    StartPlayback,
    StartProgressSync,
    StartRecognition,
    StartTimer,
    StopPlayback,
    StopProgressSync,
    StopRecognition,
)
from orchestrator.enums.service import Service
from orchestrator.events import (
    Event,
    EventType,
    FinishGraceElapsed,
    RetrievalFailed,
    RetrievalSucceeded,
)
from orchestrator.reducer import reduce
from orchestrator.state_dataclass import KioskState
from orchestrator.view import render_state

if TYPE_CHECKING:
    from orchestrator.runtime_context import RuntimeExecutionContext


def _now_ms() -> int:
    return time.time_ns() // 1_000_000


class Runtime:
    """
    Runtime execution boundary for a single kiosk session.

    Architectural role:
    Runtime is the bridge between the pure orchestration layer
    (reducer + immutable state) and the imperative world
    (adapters, logging, IO, time).

    Guarantees:
    - Reducer is called exactly once per incoming event
    - Transitions are serialized: one event is fully processed (reduce,
      swap, execute commands) before the next one is reduced
    - All side effects occur *after* state has been updated
    - Runtime never performs orchestration logic itself
    - Adapters, timers and retrieval tasks re-enter through handle_event
      from their own tasks, never from inside command execution
    """

    def __init__(
        self,
        *,
        initial_state: KioskState,
        context: RuntimeExecutionContext,
    ) -> None:
        self._state = initial_state
        self._ctx = context
        self._lock = asyncio.Lock()
        self._timers: dict[str, asyncio.Task[None]] = {}
        self._retrievals: dict[int, asyncio.Task[None]] = {}

    @property
    def state(self) -> KioskState:
        """
        Current immutable conversation state.

        Only mutated internally by Runtime via the reducer; consumers
        must treat it as read-only.
        """
        return self._state

    async def handle_event(self, event: Event) -> None:
        """
        Process a single event through the orchestration pipeline.

        1. Reduce (current state, event)
        2. Swap in the new state
        3. Execute emitted commands in order
        4. Publish the rendered state if anything visible changed

        This is the *only* entry point for events affecting state.
        """
        async with self._lock:
            prev_view = render_state(self._state)
            new_state, commands = reduce(self._state, event)
            self._state = new_state

            for cmd in commands:
                await self._execute_command(cmd)

            view = render_state(self._state)
            if view != prev_view:
                self._ctx.publish(view)

    def publish_state(self) -> None:
        """Send the current state to the kiosk unconditionally."""
        self._ctx.publish(render_state(self._state))

    async def shutdown(self) -> None:
        """
        Cancel all in-flight timers and retrieval tasks and wait for them.

        Called by the gateway on disconnect, after SessionEnded.
        """
        tasks = list(self._timers.values()) + list(self._retrievals.values())
        for timer_id in list(self._timers.keys()):
            self._cancel_timer(timer_id)
        for run_id in list(self._retrievals.keys()):
            self._cancel_retrieval(run_id)

        if self._ctx.synchronizer is not None:
            self._ctx.synchronizer.cancel()

        current = asyncio.current_task()
        pending = [t for t in tasks if t is not current]
        if pending:
            await asyncio.gather(*pending, return_exceptions=True)

    # ------------------------------------------------------------------
    # Command execution (side effects)
    # ------------------------------------------------------------------

    async def _execute_command(self, cmd: Command) -> None:
        """Execute a single command with side effects."""

        if isinstance(cmd, LogEvent):
            log_event({
                **cmd.event,
                "session_id": self._ctx.session_id,
                "connection_status": self._ctx.connection_status.value,
            })

        elif isinstance(cmd, StartRecognition):
            assert self._ctx.capture is not None, "capture adapter missing"
            await self._ctx.capture.start(cmd.run_id, cmd.locale)

        elif isinstance(cmd, StopRecognition):
            if self._ctx.capture is not None:
                await self._ctx.capture.stop(cmd.run_id)

        elif isinstance(cmd, AskRetrieval):
            self._start_retrieval(cmd.run_id, cmd.question)

        elif isinstance(cmd, CancelRetrieval):
            self._cancel_retrieval(cmd.run_id)

        elif isinstance(cmd, StartPlayback):
            assert self._ctx.playback is not None, "playback controller missing"
            await self._ctx.playback.play(cmd.run_id, cmd.text)

        elif isinstance(cmd, PausePlayback):
            if self._ctx.playback is not None:
                await self._ctx.playback.pause(cmd.run_id)

        elif isinstance(cmd, ResumePlayback):
            if self._ctx.playback is not None:
                await self._ctx.playback.resume(cmd.run_id)

        elif isinstance(cmd, StopPlayback):
            if self._ctx.playback is not None:
                await self._ctx.playback.stop(cmd.run_id)

        elif isinstance(cmd, StartProgressSync):
            if self._ctx.synchronizer is not None:
                self._ctx.synchronizer.start(cmd.run_id, cmd.weights)

        elif isinstance(cmd, StopProgressSync):
            if self._ctx.synchronizer is not None:
                self._ctx.synchronizer.cancel()

        elif isinstance(cmd, StartTimer):
            self._start_timer(
                timer_id=cmd.timer_id,
                duration_ms=cmd.duration_ms,
                timeout_event_type=cmd.timeout_event_type,
                run_id=cmd.run_id,
            )

        elif isinstance(cmd, CancelTimer):
            self._cancel_timer(cmd.timer_id)

        else:
            raise TypeError(f"Unhandled command: {type(cmd).__name__}")

    # ------------------------------------------------------------------
    # Retrieval
    # ------------------------------------------------------------------

    def _start_retrieval(self, run_id: int, question: str) -> None:
        assert self._ctx.retrieval is not None, "retrieval client missing"
        client = self._ctx.retrieval

        async def _retrieval_task() -> None:
            try:
                result = await client.ask(question)
                event: Event = RetrievalSucceeded(
                    event_type=EventType.RETRIEVAL_SUCCEEDED,
                    ts_ms=_now_ms(),
                    service=Service.RETRIEVAL,
                    run_id=run_id,
                    reply_text=result.reply_text,
                    workflow=result.workflow,
                )
                log_event({
                    "ts_ms": _now_ms(),
                    "event_type": "retrieval_completed",
                    "session_id": self._ctx.session_id,
                    "retrieval_run_id": run_id,
                    "fast_path": result.fast_path,
                    "context_used": result.context_used,
                    "step_count": result.workflow.step_count if result.workflow else 0,
                })
            except RetrievalError as e:
                event = self._retrieval_failed(run_id, str(e))
            except asyncio.CancelledError:
                raise
            except Exception as e:  # pylint: disable=broad-exception-caught
                event = self._retrieval_failed(run_id, f"{type(e).__name__}: {e}")
            finally:
                if self._retrievals.get(run_id) is asyncio.current_task():
                    self._retrievals.pop(run_id, None)

            await self.handle_event(event)

        self._retrievals[run_id] = asyncio.create_task(_retrieval_task())

    def _retrieval_failed(self, run_id: int, reason: str) -> RetrievalFailed:
        log_event({
            "ts_ms": _now_ms(),
            "level": "WARNING",
            "event_type": "retrieval_failed",
            "session_id": self._ctx.session_id,
            "retrieval_run_id": run_id,
            "reason": reason,
        })
        return RetrievalFailed(
            event_type=EventType.RETRIEVAL_FAILED,
            ts_ms=_now_ms(),
            service=Service.RETRIEVAL,
            run_id=run_id,
            reason=reason,
        )

    def _cancel_retrieval(self, run_id: int) -> None:
        """Idempotent: safe when the run already finished or never started."""
        task = self._retrievals.pop(run_id, None)
        if task is not None and not task.done():
            task.cancel()

    # ------------------------------------------------------------------
    # Timers
    # ------------------------------------------------------------------

    def _start_timer(
        self,
        *,
        timer_id: str,
        duration_ms: int,
        timeout_event_type: EventType,
        run_id: int,
    ) -> None:
        """
        Start or replace a timer that emits a timeout event.

        Timer tasks re-enter handle_event() when they expire,
        maintaining the single event entry point invariant.
        """
        self._cancel_timer(timer_id)

        async def _timer_task() -> None:
            try:
                await asyncio.sleep(duration_ms / 1000.0)
                event = self._construct_timeout_event(
                    timeout_event_type=timeout_event_type,
                    run_id=run_id,
                )
                await self.handle_event(event)
            except asyncio.CancelledError:
                return
            finally:
                if self._timers.get(timer_id) is asyncio.current_task():
                    self._timers.pop(timer_id, None)

        self._timers[timer_id] = asyncio.create_task(_timer_task())

    def _cancel_timer(self, timer_id: str) -> None:
        """
        Cancel an in-flight timer if it exists.

        Idempotent. A timer whose own expiry event is being processed is
        left alone; it finishes once handle_event returns.
        """
        task = self._timers.pop(timer_id, None)
        if task is None or task.done() or task is asyncio.current_task():
            return
        task.cancel()

    def _construct_timeout_event(
        self,
        *,
        timeout_event_type: EventType,
        run_id: int,
    ) -> Event:
        if timeout_event_type is EventType.FINISH_GRACE_ELAPSED:
            return FinishGraceElapsed(
                event_type=timeout_event_type,
                ts_ms=_now_ms(),
                run_id=run_id,
            )
        raise ValueError(f"Unknown timeout event type: {timeout_event_type}")
