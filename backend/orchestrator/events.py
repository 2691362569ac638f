"""
Unified event definitions for the conversation reducer.

Rules:
- Events describe facts that have occurred.
- Events carry data only (no behavior).
- All reducer decisions are based on these events.
- No clocks, no timers, no async, no side effects.

Timer events are not ServiceEvents, but carry run_id for stale gating.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum

from orchestrator.enums.service import Service
from orchestrator.workflow import Workflow


# =============================================================================
# Event Type Enumeration
# =============================================================================

class EventType(str, Enum):
    """
    Canonical event types understood by the reducer.

    Every (state, event_type) pair must be explicitly handled
    or explicitly ignored by the reducer.
    """

    # ------------------------------------------------------------------
    # Session lifecycle
    # ------------------------------------------------------------------
    SESSION_STARTED = "SESSION_STARTED"
    SESSION_ENDED = "SESSION_ENDED"

    # ------------------------------------------------------------------
    # User controls
    # ------------------------------------------------------------------
    START_LISTENING = "START_LISTENING"
    ASK_QUESTION = "ASK_QUESTION"
    USER_STOP = "USER_STOP"
    USER_PAUSE = "USER_PAUSE"
    USER_RESUME = "USER_RESUME"
    USER_FINISHED = "USER_FINISHED"

    # ------------------------------------------------------------------
    # Recognition
    # ------------------------------------------------------------------
    RECOGNITION_RESULT = "RECOGNITION_RESULT"
    RECOGNITION_ENDED = "RECOGNITION_ENDED"
    RECOGNITION_ERROR = "RECOGNITION_ERROR"
    RECOGNITION_UNAVAILABLE = "RECOGNITION_UNAVAILABLE"

    # ------------------------------------------------------------------
    # Retrieval
    # ------------------------------------------------------------------
    RETRIEVAL_SUCCEEDED = "RETRIEVAL_SUCCEEDED"
    RETRIEVAL_FAILED = "RETRIEVAL_FAILED"

    # ------------------------------------------------------------------
    # Playback / progress
    # ------------------------------------------------------------------
    PLAYBACK_STARTED = "PLAYBACK_STARTED"
    PLAYBACK_ENDED = "PLAYBACK_ENDED"
    PLAYBACK_FAILED = "PLAYBACK_FAILED"
    STEP_INDEX_CHANGED = "STEP_INDEX_CHANGED"

    # ------------------------------------------------------------------
    # Timers
    # ------------------------------------------------------------------
    FINISH_GRACE_ELAPSED = "FINISH_GRACE_ELAPSED"


# =============================================================================
# Base Event
# =============================================================================

@dataclass(frozen=True)
class Event:
    """
    Base event type.

    All events must specify:
    - event_type: discriminant
    - ts_ms: timestamp provided by the source (or fake in tests)
    """

    event_type: EventType
    ts_ms: int


@dataclass(frozen=True)
class ServiceEvent(Event):
    """
    Base class for events produced by a versioned service run.

    The reducer MUST ignore events whose run_id does not match the
    currently active run for that service.
    """

    service: Service
    run_id: int


# =============================================================================
# Session Events
# =============================================================================

@dataclass(frozen=True)
class SessionStarted(Event):
    """Kiosk connected; carries the recognition capability of the session."""
    session_id: str
    recognition_available: bool = True


@dataclass(frozen=True)
class SessionEnded(Event):
    """Kiosk disconnected; everything in flight must be torn down."""
    session_id: str
    reason: str | None = None


# =============================================================================
# User Control Events
# =============================================================================

@dataclass(frozen=True)
class StartListening(Event):
    """User pressed the talk button."""


@dataclass(frozen=True)
class AskQuestion(Event):
    """
    User submitted a question without speaking (quick action button).

    Enters processing directly from idle.
    """
    question: str
    source: str = "quick_action"


@dataclass(frozen=True)
class UserStop(Event):
    """Hard interrupt from any state."""


@dataclass(frozen=True)
class UserPause(Event):
    """Pause the reply while answering."""


@dataclass(frozen=True)
class UserResume(Event):
    """Resume a paused reply."""


@dataclass(frozen=True)
class UserFinished(Event):
    """User closed the answer before (or after) playback ended."""


# =============================================================================
# Recognition Events
# =============================================================================

@dataclass(frozen=True)
class RecognitionResult(ServiceEvent):
    """
    Latest hypothesis for the current listening session.

    Each result supersedes the previous one (snapshot, not delta).
    """
    text: str


@dataclass(frozen=True)
class RecognitionEnded(ServiceEvent):
    """
    Terminal event of a recognition run.

    text is the final transcript, possibly empty.
    """
    text: str


@dataclass(frozen=True)
class RecognitionError(ServiceEvent):
    """Terminal failure of a recognition run with an engine error code."""
    code: str


@dataclass(frozen=True)
class RecognitionUnavailable(ServiceEvent):
    """The session has no recognition capability."""


# =============================================================================
# Retrieval Events
# =============================================================================

@dataclass(frozen=True)
class RetrievalSucceeded(ServiceEvent):
    """Retrieval returned a reply and, optionally, a workflow with steps."""
    reply_text: str
    workflow: Workflow | None = None


@dataclass(frozen=True)
class RetrievalFailed(ServiceEvent):
    """Retrieval failed (HTTP error, transport error, malformed body)."""
    reason: str


# =============================================================================
# Playback Events
# =============================================================================

@dataclass(frozen=True)
class PlaybackStarted(ServiceEvent):
    """Audio output actually began."""


@dataclass(frozen=True)
class PlaybackEnded(ServiceEvent):
    """Audio output reached its natural end."""


@dataclass(frozen=True)
class PlaybackFailed(ServiceEvent):
    """Synthesis, download or playback of the reply failed."""
    reason: str


@dataclass(frozen=True)
class StepIndexChanged(ServiceEvent):
    """
    Progress synchronizer computed a new step index.

    Scoped to the playback run whose progress was sampled.
    """
    step_index: int


# =============================================================================
# Timer Events
# =============================================================================

@dataclass(frozen=True)
class FinishGraceElapsed(Event):
    """Grace delay after natural playback end has elapsed."""
    run_id: int
