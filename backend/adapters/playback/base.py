"""
Audio playback contracts.

- AudioSink: the only path to the kiosk's audio output (the browser).
- PlaybackStrategy: how a reply becomes audio (remote synthesis or the
  kiosk's on-device synthesizer) and which time base reports its progress.

No run-id gating or state machine knowledge lives here; the
AudioPlaybackController owns both.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Protocol

from adapters.playback.time_base import TimeBase


class PlaybackError(Exception):
    """Synthesis, download or playback failed for the current run."""


class AudioSink(Protocol):
    """
    Kiosk-side audio output.

    All methods enqueue work for the client and return immediately.
    """

    def begin_audio(self, run_id: int, media_type: str, buffered: bool) -> None: ...
    def send_audio(self, run_id: int, chunk: bytes) -> None: ...
    def end_audio(self, run_id: int) -> None: ...
    def speak(self, run_id: int, text: str, language: str, rate: float) -> None: ...
    def pause(self, run_id: int) -> None: ...
    def resume(self, run_id: int) -> None: ...
    def stop(self, run_id: int) -> None: ...


class PlaybackStrategy(ABC):
    """
    One way of turning reply text into audible output.

    Implementations are selected by configuration (PLAYBACK_STRATEGY).
    """

    name: str = ""

    @abstractmethod
    def time_base(self, text: str) -> TimeBase:
        """Create the progress clock for one playback session of `text`."""
        raise NotImplementedError

    @abstractmethod
    async def render(self, *, run_id: int, text: str, sink: AudioSink) -> None:
        """
        Deliver `text` to the sink as audio (or as a speak instruction).

        Returns once delivery is complete; playback itself ends when the
        kiosk reports it. Raises PlaybackError on failure. Cancellation
        must stop delivery promptly.
        """
        raise NotImplementedError
