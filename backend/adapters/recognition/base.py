"""
Speech recognition engine contract.

This module defines the *interface only*: no run-id gating, no state
machine knowledge, no event emission. The SpeechCaptureAdapter wraps an
engine and turns its sessions into orchestrator events.

Key invariants:
- One engine session per listening run; sessions are never reused.
- A session yields transcript *snapshots*: each supersedes the previous.
- Iteration ends normally when the engine decides speech is over, or when
  finish() was requested. Failures surface as RecognitionFailure.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import AsyncIterator


class RecognitionFailure(Exception):
    """
    Engine-level recognition failure.

    code follows the browser speech API vocabulary where one applies
    ("no-speech", "network", "audio-capture", ...).
    """

    def __init__(self, code: str, detail: str | None = None) -> None:
        super().__init__(f"{code}: {detail}" if detail else code)
        self.code = code
        self.detail = detail


class RecognitionSession(ABC):
    """
    A single non-continuous recognition session.

    Implementations are async iterables of transcript snapshots.
    """

    @abstractmethod
    def __aiter__(self) -> AsyncIterator[str]:
        raise NotImplementedError

    @abstractmethod
    async def send_audio(self, pcm_bytes: bytes) -> None:
        """
        Provide one PCM16 mic frame.

        Frames arriving after finish() or after the session ended are dropped.
        """
        raise NotImplementedError

    @abstractmethod
    async def finish(self) -> None:
        """
        Request early termination.

        The iterator must end promptly (normally, not with an error) after
        flushing whatever hypothesis the engine still holds. Idempotent.
        """
        raise NotImplementedError

    @abstractmethod
    async def abort(self) -> None:
        """Drop the session without waiting for a final hypothesis. Idempotent."""
        raise NotImplementedError


class RecognitionEngine(ABC):
    """Factory of recognition sessions for one locale."""

    @abstractmethod
    def open_session(self, *, locale: str, interim_results: bool = True) -> RecognitionSession:
        """Create a new, not-yet-connected session."""
        raise NotImplementedError
