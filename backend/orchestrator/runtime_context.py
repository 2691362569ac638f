"""
Runtime execution context.

Provides Runtime with live access to session-owned imperative resources
needed for command execution (adapters, synchronizer, outbound channel).

This module contains:
- Narrow Protocols (capabilities, not implementations)
- Zero orchestration logic
- Zero state mutation
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Any, Protocol, runtime_checkable

from session.connection_status import ConnectionStatus

if TYPE_CHECKING:
    from adapters.retrieval.client import RetrievalResult
    from session.kiosk_session import KioskSession


# ---------------------------------------------------------------------
# Adapter Protocols
# ---------------------------------------------------------------------

@runtime_checkable
class RecognitionAdapterProtocol(Protocol):
    @property
    def available(self) -> bool: ...
    async def start(self, run_id: int, locale: str) -> None: ...
    async def stop(self, run_id: int) -> None: ...
    async def shutdown(self) -> None: ...


@runtime_checkable
class RetrievalClientProtocol(Protocol):
    async def ask(self, question: str) -> RetrievalResult:
        """Raises RetrievalError on failure."""


@runtime_checkable
class PlaybackControllerProtocol(Protocol):
    async def play(self, run_id: int, text: str) -> None: ...
    async def pause(self, run_id: int) -> None: ...
    async def resume(self, run_id: int) -> None: ...
    async def stop(self, run_id: int | None = None) -> None: ...


@runtime_checkable
class ProgressSynchronizerProtocol(Protocol):
    def start(self, run_id: int, weights: tuple[int, ...]) -> None: ...
    def cancel(self) -> None: ...


# ---------------------------------------------------------------------
# Runtime Execution Context
# ---------------------------------------------------------------------

class RuntimeExecutionContext:
    """
    Imperative execution context for Runtime.

    Live views into session-owned resources, so Runtime does not need to
    cache anything.

    Runtime is allowed to:
    - Call adapters
    - Publish messages to the kiosk
    - Observe connection state

    Runtime is NOT allowed to:
    - Mutate session state directly
    - Perform orchestration decisions
    """

    def __init__(self, session: KioskSession) -> None:
        self.session = session

    # ----------------------------
    # Session metadata
    # ----------------------------

    @property
    def session_id(self) -> str:
        return self.session.session_id

    @property
    def connection_status(self) -> ConnectionStatus:
        return self.session.connection_status

    # ----------------------------
    # Adapters
    # ----------------------------

    @property
    def capture(self) -> RecognitionAdapterProtocol | None:
        return self.session.capture

    @property
    def retrieval(self) -> RetrievalClientProtocol | None:
        return self.session.retrieval

    @property
    def playback(self) -> PlaybackControllerProtocol | None:
        return self.session.playback

    @property
    def synchronizer(self) -> ProgressSynchronizerProtocol | None:
        return self.session.synchronizer

    # ----------------------------
    # Outbound
    # ----------------------------

    def publish(self, message: dict[str, Any]) -> None:
        self.session.enqueue_control(message)
