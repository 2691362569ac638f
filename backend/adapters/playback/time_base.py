"""
Playback progress clocks.

A time base answers "where is playback now, out of how long?". The remote
strategy trusts positions reported by the kiosk audio element; the local
strategy has no observable position and simulates one from an estimated
duration.
"""

from __future__ import annotations

import math
import time
from abc import ABC, abstractmethod
from typing import Callable

from spec import ESTIMATED_SECONDS_PER_CHAR


def estimate_duration_s(text: str, rate: float) -> float:
    """Estimated narration length of `text` at the given rate multiplier."""
    if rate <= 0:
        rate = 1.0
    return len(text) * ESTIMATED_SECONDS_PER_CHAR / rate


class TimeBase(ABC):
    """Position source for one playback session."""

    @abstractmethod
    def position(self) -> tuple[float, float]:
        """Return (current_time_s, duration_s); duration may be NaN or inf."""
        raise NotImplementedError

    def start(self) -> None:
        """Playback began."""

    def pause(self) -> None:
        """Playback paused."""

    def resume(self) -> None:
        """Playback resumed."""

    def report(self, current_time: float, duration: float) -> None:
        """Position reported by the kiosk."""


class ReportedTimeBase(TimeBase):
    """Mirrors the last position reported by the kiosk audio element."""

    def __init__(self) -> None:
        self._current: float = 0.0
        self._duration: float = math.nan

    def position(self) -> tuple[float, float]:
        return self._current, self._duration

    def report(self, current_time: float, duration: float) -> None:
        self._current = current_time
        self._duration = duration


class SimulatedTimeBase(TimeBase):
    """
    Monotonic clock over an estimated duration.

    Elapsed time only accumulates between start/resume and pause, and is
    capped at the duration.
    """

    def __init__(
        self,
        duration_s: float,
        *,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self._duration = duration_s
        self._clock = clock
        self._elapsed: float = 0.0
        self._running_since: float | None = None

    def position(self) -> tuple[float, float]:
        elapsed = self._elapsed
        if self._running_since is not None:
            elapsed += self._clock() - self._running_since
        return min(elapsed, self._duration), self._duration

    def start(self) -> None:
        if self._running_since is None:
            self._running_since = self._clock()

    def pause(self) -> None:
        if self._running_since is not None:
            self._elapsed += self._clock() - self._running_since
            self._running_since = None

    def resume(self) -> None:
        self.start()
