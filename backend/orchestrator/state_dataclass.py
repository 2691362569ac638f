"""
Authoritative kiosk conversation state container.

Rules:
- This dataclass is a pure data model.
- It contains ALL state the reducer may ever need.
- No behavior; derived views live in orchestrator/view.py.
"""
from __future__ import annotations

from dataclasses import dataclass, field

from orchestrator.enums.error_kind import ErrorKind
from orchestrator.enums.state import ConversationState
from orchestrator.run_ids import RunIds
from orchestrator.workflow import Workflow
from spec import FINISH_GRACE_MS, RECOGNITION_LOCALE


@dataclass(frozen=True)
class AssistantError:
    """Advisory error shown to the user until the next interaction."""
    kind: ErrorKind
    message: str
    code: str | None = None


@dataclass(frozen=True)
class KioskState:
    """Immutable snapshot of all state owned by the conversation state machine."""

    # ------------------------------------------------------------------
    # Control state
    # ------------------------------------------------------------------
    state: ConversationState = ConversationState.IDLE

    # ------------------------------------------------------------------
    # Run/version tracking
    # ------------------------------------------------------------------
    active_runs: RunIds = field(default_factory=RunIds)

    # ------------------------------------------------------------------
    # Session capabilities / settings (fixed at session start)
    # ------------------------------------------------------------------
    recognition_available: bool = True
    locale: str = RECOGNITION_LOCALE
    finish_grace_ms: int = FINISH_GRACE_MS

    # ------------------------------------------------------------------
    # Question / answer
    # ------------------------------------------------------------------
    # Mirror of the recognition adapter's latest hypothesis
    transcript: str = ""
    # Question submitted to retrieval (spoken or quick action)
    question: str = ""
    reply_text: str = ""
    workflow: Workflow | None = None

    # ------------------------------------------------------------------
    # Playback presentation
    # ------------------------------------------------------------------
    current_step_index: int = 0
    is_paused: bool = False
    # True between natural playback end and the grace timer firing
    finishing: bool = False
    caption: str = ""

    # ------------------------------------------------------------------
    # Error handling
    # ------------------------------------------------------------------
    last_error: AssistantError | None = None
