"""
Side-effect command definitions for the conversation runtime.

Rules:
- Commands are declarative requests for side effects.
- Commands are emitted by the reducer and executed by the runtime.
- No behavior, no async, no I/O, no clocks.

Invariant:
    - All concrete Command subclasses MUST be frozen dataclasses.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Any

from orchestrator.events import EventType


# =============================================================================
# Command Type Enumeration
# =============================================================================

class CommandType(str, Enum):
    """
    Canonical command types emitted by the reducer.

    Stable discriminants used for logging and runtime dispatch.
    """

    # Recognition
    START_RECOGNITION = "START_RECOGNITION"
    STOP_RECOGNITION = "STOP_RECOGNITION"

    # Retrieval
    ASK_RETRIEVAL = "ASK_RETRIEVAL"
    CANCEL_RETRIEVAL = "CANCEL_RETRIEVAL"

    # Playback
    START_PLAYBACK = "START_PLAYBACK"
    PAUSE_PLAYBACK = "PAUSE_PLAYBACK"
    RESUME_PLAYBACK = "RESUME_PLAYBACK"
    STOP_PLAYBACK = "STOP_PLAYBACK"

    # Progress
    START_PROGRESS_SYNC = "START_PROGRESS_SYNC"
    STOP_PROGRESS_SYNC = "STOP_PROGRESS_SYNC"

    # Timers
    START_TIMER = "START_TIMER"
    CANCEL_TIMER = "CANCEL_TIMER"

    # Observability
    LOG_EVENT = "LOG_EVENT"


# =============================================================================
# Base Command
# =============================================================================

class Command:
    """
    Base command type.

    command_type is an explicit discriminant and must never be inferred
    from Python type identity.
    """

    command_type: CommandType


# =============================================================================
# Recognition Commands
# =============================================================================

@dataclass(frozen=True)
class StartRecognition(Command):
    """Open a recognition session for run_id in the given locale."""
    run_id: int
    locale: str
    command_type: CommandType = CommandType.START_RECOGNITION


@dataclass(frozen=True)
class StopRecognition(Command):
    """Force the recognition run to terminate (idempotent)."""
    run_id: int
    command_type: CommandType = CommandType.STOP_RECOGNITION


# =============================================================================
# Retrieval Commands
# =============================================================================

@dataclass(frozen=True)
class AskRetrieval(Command):
    """
    Submit the question to the content retrieval client.

    The runtime must inject exactly one RetrievalSucceeded or
    RetrievalFailed for run_id, unless the run is cancelled first.
    """
    run_id: int
    question: str
    command_type: CommandType = CommandType.ASK_RETRIEVAL


@dataclass(frozen=True)
class CancelRetrieval(Command):
    """Abandon the in-flight retrieval run (idempotent)."""
    run_id: int
    command_type: CommandType = CommandType.CANCEL_RETRIEVAL


# =============================================================================
# Playback Commands
# =============================================================================

@dataclass(frozen=True)
class StartPlayback(Command):
    """Synthesize and play text as playback run_id."""
    run_id: int
    text: str
    command_type: CommandType = CommandType.START_PLAYBACK


@dataclass(frozen=True)
class PausePlayback(Command):
    run_id: int
    command_type: CommandType = CommandType.PAUSE_PLAYBACK


@dataclass(frozen=True)
class ResumePlayback(Command):
    run_id: int
    command_type: CommandType = CommandType.RESUME_PLAYBACK


@dataclass(frozen=True)
class StopPlayback(Command):
    """Tear down the playback session (safe in any state, idempotent)."""
    run_id: int
    command_type: CommandType = CommandType.STOP_PLAYBACK


# =============================================================================
# Progress Commands
# =============================================================================

@dataclass(frozen=True)
class StartProgressSync(Command):
    """
    Start sampling playback progress for run_id.

    weights are the per-step narration weights, in step order.
    """
    run_id: int
    weights: tuple[int, ...]
    command_type: CommandType = CommandType.START_PROGRESS_SYNC


@dataclass(frozen=True)
class StopProgressSync(Command):
    """Stop the progress ticker (idempotent)."""
    command_type: CommandType = CommandType.STOP_PROGRESS_SYNC


# =============================================================================
# Timer Commands
# =============================================================================

@dataclass(frozen=True)
class StartTimer(Command):
    """
    Request to start a named timer.

    On expiration, the runtime must inject the specified timeout event.
    """
    timer_id: str
    duration_ms: int
    timeout_event_type: EventType
    run_id: int = 0
    command_type: CommandType = CommandType.START_TIMER


@dataclass(frozen=True)
class CancelTimer(Command):
    """Request to cancel a previously scheduled timer."""
    timer_id: str
    command_type: CommandType = CommandType.CANCEL_TIMER


# =============================================================================
# Observability Commands
# =============================================================================

@dataclass(frozen=True)
class LogEvent(Command):
    """Request to emit a structured observability event."""
    event: dict[str, Any]
    command_type: CommandType = CommandType.LOG_EVENT
