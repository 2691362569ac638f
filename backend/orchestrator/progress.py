"""
Pure step-progress mapping.

Maps a playback fraction in [0, 1] onto the index of the workflow step
being narrated, weighting each step by the length of its narration.

Rules:
- Pure: no IO, no clocks, no async.
- Deterministic and idempotent: same (weights, fraction) -> same index.
- Monotonic: a larger fraction never yields a smaller index.
"""

from __future__ import annotations

import math
from typing import Sequence

from orchestrator.workflow import Workflow, WorkflowStep
from spec import (
    FALLBACK_STEP_WEIGHT,
    PROGRESS_END_FRACTION,
    PROGRESS_START_FRACTION,
)


def step_weight(step: WorkflowStep) -> int:
    """Narration length of a step, or FALLBACK_STEP_WEIGHT when it has none."""
    return len(step.narration) or FALLBACK_STEP_WEIGHT


def step_weights(workflow: Workflow) -> tuple[int, ...]:
    return tuple(step_weight(step) for step in workflow.steps)


def playback_fraction(current_time: float, duration: float) -> float | None:
    """
    Convert a playback position into a fraction clamped to [0, 1].

    Returns None when the duration is unknown (NaN, infinite, non-positive)
    or the position is not a finite number; no progress can be computed.
    """
    if not math.isfinite(duration) or duration <= 0:
        return None
    if not math.isfinite(current_time):
        return None
    return min(max(current_time / duration, 0.0), 1.0)


def compute_step_index(weights: Sequence[int], fraction: float) -> int:
    """
    Return the index of the step being narrated at `fraction`.

    - fraction < PROGRESS_START_FRACTION -> 0
    - fraction >= PROGRESS_END_FRACTION  -> last index
    - otherwise the smallest i whose cumulative normalized weight >= fraction

    An empty sequence yields 0.
    """
    n = len(weights)
    if n == 0:
        return 0
    if fraction < PROGRESS_START_FRACTION:
        return 0
    if fraction >= PROGRESS_END_FRACTION:
        return n - 1

    total = sum(weights)
    if total <= 0:
        return 0

    cumulative = 0
    for i, weight in enumerate(weights):
        cumulative += weight
        if cumulative / total >= fraction:
            return i
    return n - 1
