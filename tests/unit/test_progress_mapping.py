# pylint: disable=missing-module-docstring,missing-function-docstring
import math

import pytest

from orchestrator.progress import (
    compute_step_index,
    playback_fraction,
    step_weight,
    step_weights,
)
from orchestrator.workflow import Workflow, WorkflowStep


def test_weighted_mapping_picks_step_by_narration_length() -> None:
    # cumulative: 80/285 = 0.28, 175/285 = 0.61, 1.0
    assert compute_step_index((80, 95, 110), 0.30) == 1
    assert compute_step_index((80, 95, 110), 0.20) == 0
    assert compute_step_index((80, 95, 110), 0.70) == 2


def test_start_and_end_thresholds() -> None:
    weights = (10, 10, 10)
    assert compute_step_index(weights, 0.0) == 0
    assert compute_step_index(weights, 0.009) == 0
    assert compute_step_index(weights, 0.99) == 2
    assert compute_step_index(weights, 1.0) == 2


def test_exact_boundary_belongs_to_earlier_step() -> None:
    assert compute_step_index((1, 1), 0.5) == 0


def test_empty_workflow_maps_to_zero() -> None:
    assert compute_step_index((), 0.5) == 0


def test_single_step_is_always_zero() -> None:
    for fraction in (0.0, 0.3, 0.98, 1.0):
        assert compute_step_index((42,), fraction) == 0


def test_mapping_is_monotonic() -> None:
    weights = (5, 120, 3, 60, 12)
    previous = 0
    for i in range(0, 101):
        index = compute_step_index(weights, i / 100)
        assert index >= previous
        previous = index


def test_step_without_narration_gets_fallback_weight() -> None:
    assert step_weight(WorkflowStep(id="0", label="vazio")) == 3
    assert step_weight(WorkflowStep(id="0", label="x", description="abcd")) == 4
    assert step_weight(WorkflowStep(id="0", label="x", description="abcd", spoken_text="ab")) == 2


def test_step_weights_follow_step_order() -> None:
    wf = Workflow(
        id="w",
        title="t",
        steps=(
            WorkflowStep(id="0", label="a", spoken_text="um"),
            WorkflowStep(id="1", label="b", description="três"),
        ),
    )
    assert step_weights(wf) == (2, 4)


@pytest.mark.parametrize("duration", [0.0, -1.0, math.nan, math.inf])
def test_unknown_duration_yields_no_fraction(duration: float) -> None:
    assert playback_fraction(1.0, duration) is None


def test_fraction_is_clamped() -> None:
    assert playback_fraction(-1.0, 10.0) == 0.0
    assert playback_fraction(5.0, 10.0) == 0.5
    assert playback_fraction(12.0, 10.0) == 1.0
    assert playback_fraction(math.nan, 10.0) is None
