"""
Progress synchronizer ticker.

Samples the playback controller every PROGRESS_TICK_MS while a playback
run with a workflow is live and turns its position into StepIndexChanged
events through the pure mapping in orchestrator/progress.py.

Rules:
- No sample while paused, before start, after end, or with an unknown
  duration; the previous index simply stays.
- Events are emitted only when the index differs from the last one emitted.
- cancel() is idempotent; the timer task is owned here, never globally.
"""

from __future__ import annotations

import asyncio
import time
from typing import Awaitable, Callable

from orchestrator.enums.service import Service
from orchestrator.events import Event, EventType, StepIndexChanged
from orchestrator.progress import compute_step_index, playback_fraction
from spec import PROGRESS_TICK_MS

SampleFn = Callable[[int], "tuple[float, float] | None"]


def _now_ms() -> int:
    return int(time.time() * 1000)


class ProgressSynchronizer:
    """Periodic playback-progress sampler for one session."""

    def __init__(
        self,
        *,
        emit_event: Callable[[Event], Awaitable[None]],
        sample: SampleFn,
        tick_ms: int = PROGRESS_TICK_MS,
    ) -> None:
        self._emit_async = emit_event
        self._sample = sample
        self._tick_s = tick_ms / 1000.0

        self._run_id: int | None = None
        self._weights: tuple[int, ...] = ()
        self._last_index: int = 0
        self._task: asyncio.Task[None] | None = None

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    def start(self, run_id: int, weights: tuple[int, ...]) -> None:
        """Begin sampling run_id; replaces any previous ticker."""
        self.cancel()
        self._run_id = run_id
        self._weights = weights
        self._last_index = 0
        self._task = asyncio.create_task(self._loop())

    def cancel(self) -> None:
        task = self._task
        self._task = None
        self._run_id = None
        if task is not None and not task.done():
            task.cancel()

    def tick(self) -> int | None:
        """
        Take one sample.

        Returns the newly emitted index, or None when nothing was emitted.
        """
        run_id = self._run_id
        if run_id is None or not self._weights:
            return None

        position = self._sample(run_id)
        if position is None:
            return None

        fraction = playback_fraction(*position)
        if fraction is None:
            return None

        index = compute_step_index(self._weights, fraction)
        if index == self._last_index:
            return None

        self._last_index = index
        asyncio.create_task(
            self._emit_async(
                StepIndexChanged(
                    event_type=EventType.STEP_INDEX_CHANGED,
                    ts_ms=_now_ms(),
                    service=Service.PLAYBACK,
                    run_id=run_id,
                    step_index=index,
                )
            )
        )
        return index

    async def _loop(self) -> None:
        while True:
            await asyncio.sleep(self._tick_s)
            self.tick()
