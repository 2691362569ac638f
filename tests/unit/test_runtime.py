# pylint: disable=missing-module-docstring,missing-function-docstring
import asyncio
from typing import Any

import pytest

from adapters.retrieval.client import RetrievalError, RetrievalResult
from orchestrator.enums.error_kind import ErrorKind
from orchestrator.enums.service import Service
from orchestrator.enums.state import ConversationState
from orchestrator.events import (
    AskQuestion,
    EventType,
    PlaybackEnded,
    SessionEnded,
    UserStop,
)
from orchestrator.runtime import Runtime
from orchestrator.runtime_context import RuntimeExecutionContext
from orchestrator.state_dataclass import KioskState
from orchestrator.workflow import Workflow, WorkflowStep
from session.connection_status import ConnectionStatus
from session.kiosk_session import KioskSession


# ---------------------------------------------------------------------
# Fakes
# ---------------------------------------------------------------------

class FakeRetrieval:
    def __init__(self, result: RetrievalResult | Exception | None = None) -> None:
        self.result = result
        self.questions: list[str] = []
        self.cancelled = False

    async def ask(self, question: str) -> RetrievalResult:
        self.questions.append(question)
        if self.result is None:
            try:
                await asyncio.Event().wait()
            except asyncio.CancelledError:
                self.cancelled = True
                raise
        if isinstance(self.result, Exception):
            raise self.result
        assert isinstance(self.result, RetrievalResult)
        return self.result


class FakePlayback:
    def __init__(self) -> None:
        self.calls: list[tuple[Any, ...]] = []

    async def play(self, run_id: int, text: str) -> None:
        self.calls.append(("play", run_id, text))

    async def pause(self, run_id: int) -> None:
        self.calls.append(("pause", run_id))

    async def resume(self, run_id: int) -> None:
        self.calls.append(("resume", run_id))

    async def stop(self, run_id: int | None = None) -> None:
        self.calls.append(("stop", run_id))


class FakeSynchronizer:
    def __init__(self) -> None:
        self.started: list[tuple[int, tuple[int, ...]]] = []
        self.cancels = 0

    def start(self, run_id: int, weights: tuple[int, ...]) -> None:
        self.started.append((run_id, weights))

    def cancel(self) -> None:
        self.cancels += 1


def make_runtime(
    retrieval: FakeRetrieval, *, finish_grace_ms: int = 0
) -> tuple[Runtime, KioskSession, FakePlayback, FakeSynchronizer]:
    session = KioskSession(session_id="sess_test", connection_status=ConnectionStatus.UP)
    playback = FakePlayback()
    synchronizer = FakeSynchronizer()
    session.retrieval = retrieval
    session.playback = playback
    session.synchronizer = synchronizer
    runtime = Runtime(
        initial_state=KioskState(finish_grace_ms=finish_grace_ms),
        context=RuntimeExecutionContext(session),
    )
    session.runtime = runtime
    return runtime, session, playback, synchronizer


def ask(question: str) -> AskQuestion:
    return AskQuestion(event_type=EventType.ASK_QUESTION, ts_ms=0, question=question)


def playback_ended(run_id: int) -> PlaybackEnded:
    return PlaybackEnded(
        event_type=EventType.PLAYBACK_ENDED,
        ts_ms=0,
        service=Service.PLAYBACK,
        run_id=run_id,
    )


def published_states(session: KioskSession) -> list[str]:
    return [
        m["state"]
        for m in session.drain_outbound()
        if isinstance(m, dict) and m.get("type") == "STATE"
    ]


async def settle() -> None:
    for _ in range(5):
        await asyncio.sleep(0)


WORKFLOW = Workflow(
    id="dynamic_answer",
    title="Fluxo",
    steps=(
        WorkflowStep(id="0", label="A", spoken_text="Primeiro."),
        WorkflowStep(id="1", label="B", spoken_text="Segundo."),
    ),
)


# ---------------------------------------------------------------------
# Tests
# ---------------------------------------------------------------------

@pytest.mark.asyncio
async def test_question_flows_through_retrieval_to_playback() -> None:
    retrieval = FakeRetrieval(RetrievalResult(reply_text=WORKFLOW.narration(), workflow=WORKFLOW))
    runtime, session, playback, synchronizer = make_runtime(retrieval)

    await runtime.handle_event(ask("Fluxo Marketing"))
    await settle()

    assert retrieval.questions == ["Fluxo Marketing"]
    assert runtime.state.state is ConversationState.ANSWERING
    run_id = runtime.state.active_runs.playback
    assert playback.calls == [("play", run_id, "Primeiro. Segundo.")]
    assert synchronizer.started == [(run_id, (9, 8))]
    assert published_states(session) == ["PROCESSING", "ANSWERING"]


@pytest.mark.asyncio
async def test_playback_end_without_grace_returns_to_idle() -> None:
    retrieval = FakeRetrieval(RetrievalResult(reply_text="Olá."))
    runtime, session, _, _ = make_runtime(retrieval, finish_grace_ms=0)

    await runtime.handle_event(ask("oi"))
    await settle()
    await runtime.handle_event(playback_ended(runtime.state.active_runs.playback))

    assert runtime.state.state is ConversationState.IDLE
    assert published_states(session)[-1] == "IDLE"


@pytest.mark.asyncio
async def test_grace_timer_finishes_answer() -> None:
    retrieval = FakeRetrieval(RetrievalResult(reply_text=WORKFLOW.narration(), workflow=WORKFLOW))
    runtime, _, _, _ = make_runtime(retrieval, finish_grace_ms=10)

    await runtime.handle_event(ask("oi"))
    await settle()
    await runtime.handle_event(playback_ended(runtime.state.active_runs.playback))

    assert runtime.state.finishing
    assert runtime.state.current_step_index == 1

    for _ in range(50):
        await asyncio.sleep(0.005)
        if runtime.state.state is ConversationState.IDLE:
            break

    assert runtime.state.state is ConversationState.IDLE
    assert runtime.state.workflow is None


@pytest.mark.asyncio
async def test_retrieval_failure_surfaces_error() -> None:
    runtime, _, playback, _ = make_runtime(FakeRetrieval(RetrievalError("HTTP 500")))

    await runtime.handle_event(ask("oi"))
    await settle()

    assert runtime.state.state is ConversationState.IDLE
    assert runtime.state.last_error is not None
    assert runtime.state.last_error.kind is ErrorKind.RETRIEVAL_FAILED
    assert "HTTP 500" in runtime.state.last_error.message
    assert playback.calls == []


@pytest.mark.asyncio
async def test_unexpected_retrieval_exception_is_a_failure() -> None:
    runtime, _, _, _ = make_runtime(FakeRetrieval(RuntimeError("kaput")))

    await runtime.handle_event(ask("oi"))
    await settle()

    assert runtime.state.last_error is not None
    assert "RuntimeError" in runtime.state.last_error.message


@pytest.mark.asyncio
async def test_stop_cancels_pending_retrieval() -> None:
    retrieval = FakeRetrieval()
    runtime, _, playback, synchronizer = make_runtime(retrieval)

    await runtime.handle_event(ask("oi"))
    await settle()
    assert runtime.state.state is ConversationState.PROCESSING

    await runtime.handle_event(UserStop(event_type=EventType.USER_STOP, ts_ms=0))
    await settle()

    assert retrieval.cancelled
    assert runtime.state.state is ConversationState.IDLE
    assert runtime.state.last_error is None
    assert ("stop", runtime.state.active_runs.playback) in playback.calls
    assert synchronizer.cancels >= 1


@pytest.mark.asyncio
async def test_shutdown_cancels_grace_timer() -> None:
    retrieval = FakeRetrieval(RetrievalResult(reply_text="Olá."))
    runtime, _, _, synchronizer = make_runtime(retrieval, finish_grace_ms=60_000)

    await runtime.handle_event(ask("oi"))
    await settle()
    await runtime.handle_event(playback_ended(runtime.state.active_runs.playback))
    assert runtime.state.finishing

    await runtime.handle_event(
        SessionEnded(event_type=EventType.SESSION_ENDED, ts_ms=0, session_id="sess_test")
    )
    await runtime.shutdown()

    assert runtime.state.state is ConversationState.IDLE
    assert synchronizer.cancels >= 1


@pytest.mark.asyncio
async def test_publish_state_is_unconditional() -> None:
    runtime, session, _, _ = make_runtime(FakeRetrieval())

    runtime.publish_state()
    runtime.publish_state()

    assert published_states(session) == ["IDLE", "IDLE"]
