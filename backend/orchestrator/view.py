"""
Kiosk-facing projection of KioskState.

The kiosk renders exactly what this returns; step status is derived here
from current_step_index and never stored.
"""

from __future__ import annotations

from typing import Any

from orchestrator.state_dataclass import KioskState
from orchestrator.workflow import workflow_to_dict


def render_state(state: KioskState) -> dict[str, Any]:
    error = state.last_error
    return {
        "type": "STATE",
        "state": state.state.value,
        "transcript": state.transcript,
        "question": state.question,
        "caption": state.caption,
        "workflow": (
            workflow_to_dict(state.workflow, state.current_step_index)
            if state.workflow is not None
            else None
        ),
        "current_step_index": state.current_step_index,
        "is_paused": state.is_paused,
        "finishing": state.finishing,
        "recognition_available": state.recognition_available,
        "error": (
            {"kind": error.kind.value, "message": error.message, "code": error.code}
            if error is not None
            else None
        ),
    }
