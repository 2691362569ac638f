"""
Workflow domain model.

A workflow is the structured procedure returned alongside a spoken reply.
It is built atomically from one retrieval response and never mutated;
step status is derived from the current step index at render time.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Any


class StepStatus(str, Enum):
    """Derived display status of a step."""

    PENDING = "pending"
    CURRENT = "current"
    COMPLETED = "completed"


@dataclass(frozen=True)
class WorkflowStep:
    """
    One step of a workflow.

    id is the step's ordinal rendered as a string, unique within its workflow.
    spoken_text is the narration for this step; when empty the description
    is what gets narrated.
    """
    id: str
    label: str
    description: str = ""
    spoken_text: str | None = None

    @property
    def narration(self) -> str:
        return self.spoken_text or self.description or ""


@dataclass(frozen=True)
class Workflow:
    """Immutable ordered sequence of steps with attribution metadata."""
    id: str
    title: str
    steps: tuple[WorkflowStep, ...]
    elaborated_by: str | None = None
    approved_by: str | None = None

    @property
    def step_count(self) -> int:
        return len(self.steps)

    def narration(self) -> str:
        """Space-joined narration of every step, in order."""
        return " ".join(step.narration for step in self.steps)


def step_status(index: int, current_index: int) -> StepStatus:
    if index < current_index:
        return StepStatus.COMPLETED
    if index == current_index:
        return StepStatus.CURRENT
    return StepStatus.PENDING


def workflow_to_dict(workflow: Workflow, current_index: int) -> dict[str, Any]:
    """Render a workflow for the kiosk, with statuses derived from current_index."""
    return {
        "id": workflow.id,
        "title": workflow.title,
        "elaborated_by": workflow.elaborated_by,
        "approved_by": workflow.approved_by,
        "steps": [
            {
                "id": step.id,
                "label": step.label,
                "description": step.description,
                "spoken_text": step.spoken_text,
                "status": step_status(i, current_index).value,
            }
            for i, step in enumerate(workflow.steps)
        ],
    }
