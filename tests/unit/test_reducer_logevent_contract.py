# pylint: disable=missing-module-docstring,missing-function-docstring

import pytest

from orchestrator.reducer import reduce
from orchestrator.state_dataclass import KioskState
from orchestrator.events import (
    AskQuestion,
    Event,
    EventType,
    StartListening,
    UserPause,
    UserStop,
)
from orchestrator.commands import LogEvent


@pytest.mark.parametrize(
    "event",
    [
        StartListening(event_type=EventType.START_LISTENING, ts_ms=123),
        AskQuestion(event_type=EventType.ASK_QUESTION, ts_ms=123, question="Fluxo Marketing"),
        AskQuestion(event_type=EventType.ASK_QUESTION, ts_ms=123, question="   "),
        UserPause(event_type=EventType.USER_PAUSE, ts_ms=123),
        UserStop(event_type=EventType.USER_STOP, ts_ms=123),
    ],
)
def test_reducer_emits_logevent_with_required_fields(event: Event):
    _, commands = reduce(KioskState(), event)

    log_events = [c for c in commands if isinstance(c, LogEvent)]
    assert log_events, "Reducer must emit at least one LogEvent"

    for log in log_events:
        payload = log.event
        assert payload["ts_ms"] == 123
        assert payload["event_type"] == event.event_type.value
        assert set(payload) >= {"ts_ms", "state", "event_type", "decision", "run_ids", "details"}
        assert set(payload["run_ids"]) == {"recognition", "retrieval", "playback"}
