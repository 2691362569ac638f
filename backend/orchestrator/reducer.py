"""
Pure conversation reducer.

(state, event) -> (new_state, commands)

Rules:
- Pure: no side effects, no IO, no clocks.
- Deterministic: output depends only on inputs.
- Total: every (state, event) pair is handled or explicitly ignored (logged).
"""

from __future__ import annotations

from dataclasses import replace
from typing import Any

from orchestrator.commands import (
    AskRetrieval,
    CancelRetrieval,
    CancelTimer,
    Command,
    LogEvent,
    PausePlayback,
    ResumePlayback,
    StartPlayback,
    StartProgressSync,
    StartRecognition,
    StartTimer,
    StopPlayback,
    StopProgressSync,
    StopRecognition,
)
from orchestrator.enums.error_kind import ErrorKind
from orchestrator.enums.service import Service
from orchestrator.enums.state import ConversationState
from orchestrator.events import (
    AskQuestion,
    Event,
    EventType,
    FinishGraceElapsed,
    PlaybackEnded,
    PlaybackFailed,
    PlaybackStarted,
    RecognitionEnded,
    RecognitionError,
    RecognitionResult,
    RecognitionUnavailable,
    RetrievalFailed,
    RetrievalSucceeded,
    ServiceEvent,
    SessionEnded,
    SessionStarted,
    StartListening,
    StepIndexChanged,
    UserFinished,
    UserPause,
    UserResume,
    UserStop,
)
from orchestrator.progress import step_weights
from orchestrator.state_dataclass import AssistantError, KioskState
from spec import (
    CAPTION_LISTENING,
    CAPTION_PROCESSING,
    MSG_PLAYBACK_FAILED,
    MSG_RECOGNITION_FAILED,
    MSG_RECOGNITION_UNAVAILABLE,
    MSG_RETRIEVAL_FAILED,
    RECOGNITION_NO_SPEECH_CODE,
)


# =============================================================================
# Invariants
# =============================================================================
# - Run IDs are bumped ONLY on a new start (recognition/retrieval/playback)
# - Stop and finish never bump run IDs; the state gate plus the next bump
#   discards late results
# - Stop and finish cancel every service unconditionally

# =============================================================================
# Timer IDs
# =============================================================================

TIMER_FINISH_GRACE = "finish_grace"


# =============================================================================
# Small helpers
# =============================================================================

def _log(
    state: KioskState,
    event: Event,
    decision: str,
    details: dict[str, Any] | None = None,
) -> LogEvent:
    return LogEvent(
        event={
            "ts_ms": event.ts_ms,
            "state": state.state.value,
            "event_type": event.event_type.value,
            "decision": decision,
            "run_ids": state.active_runs.as_dict(),
            "details": details or {},
        }
    )


def _logs_last(commands: tuple[Command, ...]) -> tuple[Command, ...]:
    non_logs: list[Command] = []
    logs: list[Command] = []
    state_change_logs: list[Command] = []

    for command in commands:
        if isinstance(command, LogEvent):
            if command.event.get("decision") == "state_changed":
                state_change_logs.append(command)
            else:
                logs.append(command)
        else:
            non_logs.append(command)

    return tuple(non_logs + logs + state_change_logs)


def _ignore(
    state: KioskState, event: Event, reason: str
) -> tuple[KioskState, tuple[Command, ...]]:
    return state, (_log(state, event, "ignore", {"reason": reason}),)


def _state_changed(
    old: KioskState, new: KioskState, event: Event, source: str
) -> LogEvent:
    return _log(
        new,
        event,
        "state_changed",
        {
            "from_state": old.state.value,
            "to_state": new.state.value,
            "source": source,
        },
    )


def _is_stale(state: KioskState, event: ServiceEvent) -> bool:
    return event.run_id != state.active_runs.active(event.service)


def _teardown(state: KioskState) -> tuple[Command, ...]:
    """Cancel every service and timer, regardless of what is running."""
    runs = state.active_runs
    return (
        StopRecognition(run_id=runs.recognition),
        CancelRetrieval(run_id=runs.retrieval),
        StopPlayback(run_id=runs.playback),
        StopProgressSync(),
        CancelTimer(timer_id=TIMER_FINISH_GRACE),
    )


def _to_idle(
    state: KioskState,
    *,
    error: AssistantError | None = None,
    clear_transcript: bool = False,
) -> KioskState:
    return replace(
        state,
        state=ConversationState.IDLE,
        transcript="" if clear_transcript else state.transcript,
        reply_text="",
        workflow=None,
        current_step_index=0,
        is_paused=False,
        finishing=False,
        caption="",
        last_error=error,
    )


def _begin_processing(
    state: KioskState, event: Event, question: str, source: str
) -> tuple[KioskState, tuple[Command, ...]]:
    new_runs = state.active_runs.bump(Service.RETRIEVAL)
    new_state = replace(
        state,
        state=ConversationState.PROCESSING,
        active_runs=new_runs,
        question=question,
        workflow=None,
        current_step_index=0,
        last_error=None,
        caption=CAPTION_PROCESSING,
    )
    return new_state, _logs_last((
        _log(
            new_state,
            event,
            "ask_retrieval",
            {"retrieval_run_id": new_runs.retrieval, "question_len": len(question)},
        ),
        AskRetrieval(run_id=new_runs.retrieval, question=question),
        _state_changed(state, new_state, event, source),
    ))


def _hard_stop(
    state: KioskState, event: Event, source: str
) -> tuple[KioskState, tuple[Command, ...]]:
    new_state = replace(
        _to_idle(state, clear_transcript=True),
        question="",
    )
    return new_state, _logs_last(
        _teardown(state)
        + (
            _log(new_state, event, "hard_stop", {"source": source}),
            _state_changed(state, new_state, event, source),
        )
    )


def _finish(
    state: KioskState,
    event: Event,
    source: str,
    error: AssistantError | None = None,
) -> tuple[KioskState, tuple[Command, ...]]:
    new_state = _to_idle(state, error=error)
    details: dict[str, Any] = {"source": source}
    if error is not None:
        details["error_kind"] = error.kind.value
    return new_state, _logs_last(
        _teardown(state)
        + (
            _log(new_state, event, "finish", details),
            _state_changed(state, new_state, event, source),
        )
    )


# =============================================================================
# Reducer entrypoint
# =============================================================================

def reduce(
    state: KioskState, event: Event
) -> tuple[KioskState, tuple[Command, ...]]:
    """
    Pure reducer for the kiosk conversation state machine.

    Given the current state and a single event, returns:
    - the next state
    - a tuple of commands describing required side effects

    Properties:
    - Deterministic: no IO, clocks, or randomness
    - Total: every (state, event) pair is handled or explicitly ignored
    - Version-safe: ignores events with stale run IDs
    """
    # ------------------------------------------------------------------
    # State-independent events
    # ------------------------------------------------------------------
    if isinstance(event, SessionStarted):
        new_state = replace(state, recognition_available=event.recognition_available)
        return new_state, (
            _log(
                new_state,
                event,
                "session_started",
                {
                    "session_id": event.session_id,
                    "recognition_available": event.recognition_available,
                },
            ),
        )

    if isinstance(event, SessionEnded):
        return _hard_stop(state, event, "session_ended")

    if isinstance(event, UserStop):
        return _hard_stop(state, event, "user_stop")

    # ============================
    # IDLE
    # ============================
    if state.state is ConversationState.IDLE:
        if isinstance(event, StartListening):
            if not state.recognition_available:
                new_state = replace(
                    state,
                    last_error=AssistantError(
                        kind=ErrorKind.RECOGNITION_UNAVAILABLE,
                        message=MSG_RECOGNITION_UNAVAILABLE,
                    ),
                )
                return new_state, (
                    _log(new_state, event, "recognition_unavailable"),
                )

            new_runs = state.active_runs.bump(Service.RECOGNITION)
            new_state = replace(
                state,
                state=ConversationState.LISTENING,
                active_runs=new_runs,
                transcript="",
                question="",
                reply_text="",
                workflow=None,
                current_step_index=0,
                is_paused=False,
                last_error=None,
                caption=CAPTION_LISTENING,
            )
            return new_state, _logs_last((
                _log(
                    new_state,
                    event,
                    "start_recognition",
                    {"recognition_run_id": new_runs.recognition},
                ),
                StartRecognition(run_id=new_runs.recognition, locale=state.locale),
                _state_changed(state, new_state, event, "start_listening"),
            ))

        if isinstance(event, AskQuestion):
            question = event.question.strip()
            if not question:
                return _ignore(state, event, "empty_question")
            return _begin_processing(state, event, question, event.source)

        return _ignore(state, event, "idle_unhandled")

    # ============================
    # LISTENING
    # ============================
    if state.state is ConversationState.LISTENING:
        if isinstance(event, RecognitionResult):
            if _is_stale(state, event):
                return _ignore(state, event, "recognition_result_stale")
            return replace(state, transcript=event.text), (
                _log(state, event, "recognition_result", {"len": len(event.text)}),
            )

        if isinstance(event, RecognitionEnded):
            if _is_stale(state, event):
                return _ignore(state, event, "recognition_ended_stale")

            final = event.text.strip()
            if final:
                listened = replace(state, transcript=event.text)
                return _begin_processing(listened, event, final, "recognition_ended")

            new_state = _to_idle(state, clear_transcript=True)
            return new_state, _logs_last((
                _log(new_state, event, "empty_transcript"),
                _state_changed(state, new_state, event, "recognition_ended_empty"),
            ))

        if isinstance(event, RecognitionError):
            if _is_stale(state, event):
                return _ignore(state, event, "recognition_error_stale")

            error: AssistantError | None = None
            if event.code != RECOGNITION_NO_SPEECH_CODE:
                error = AssistantError(
                    kind=ErrorKind.RECOGNITION_FAILED,
                    message=f"{MSG_RECOGNITION_FAILED}: {event.code}",
                    code=event.code,
                )
            new_state = _to_idle(state, error=error)
            return new_state, _logs_last((
                StopRecognition(run_id=event.run_id),
                _log(new_state, event, "recognition_error", {"code": event.code}),
                _state_changed(state, new_state, event, "recognition_error"),
            ))

        if isinstance(event, RecognitionUnavailable):
            if _is_stale(state, event):
                return _ignore(state, event, "recognition_unavailable_stale")
            new_state = replace(
                _to_idle(state),
                recognition_available=False,
                last_error=AssistantError(
                    kind=ErrorKind.RECOGNITION_UNAVAILABLE,
                    message=MSG_RECOGNITION_UNAVAILABLE,
                ),
            )
            return new_state, _logs_last((
                _log(new_state, event, "recognition_unavailable"),
                _state_changed(state, new_state, event, "recognition_unavailable"),
            ))

        if isinstance(event, (StartListening, AskQuestion)):
            return _ignore(state, event, "already_listening")

        return _ignore(state, event, "listening_unhandled")

    # ============================
    # PROCESSING
    # ============================
    if state.state is ConversationState.PROCESSING:
        if isinstance(event, RetrievalSucceeded):
            if _is_stale(state, event):
                return _ignore(state, event, "retrieval_succeeded_stale")

            workflow = event.workflow
            if workflow is not None and workflow.step_count == 0:
                workflow = None

            new_runs = state.active_runs.bump(Service.PLAYBACK)
            new_state = replace(
                state,
                state=ConversationState.ANSWERING,
                active_runs=new_runs,
                reply_text=event.reply_text,
                workflow=workflow,
                current_step_index=0,
                is_paused=False,
                finishing=False,
                caption=event.reply_text,
            )
            cmds: list[Command] = [
                _log(
                    new_state,
                    event,
                    "start_playback",
                    {
                        "playback_run_id": new_runs.playback,
                        "reply_len": len(event.reply_text),
                        "steps": workflow.step_count if workflow else 0,
                    },
                ),
                StartPlayback(run_id=new_runs.playback, text=event.reply_text),
            ]
            if workflow is not None:
                cmds.append(
                    StartProgressSync(
                        run_id=new_runs.playback,
                        weights=step_weights(workflow),
                    )
                )
            cmds.append(_state_changed(state, new_state, event, "retrieval_succeeded"))
            return new_state, _logs_last(tuple(cmds))

        if isinstance(event, RetrievalFailed):
            if _is_stale(state, event):
                return _ignore(state, event, "retrieval_failed_stale")
            new_state = _to_idle(
                state,
                error=AssistantError(
                    kind=ErrorKind.RETRIEVAL_FAILED,
                    message=f"{MSG_RETRIEVAL_FAILED}: {event.reason}",
                ),
            )
            return new_state, _logs_last((
                _log(new_state, event, "retrieval_failed", {"reason": event.reason}),
                _state_changed(state, new_state, event, "retrieval_failed"),
            ))

        if isinstance(event, (StartListening, AskQuestion)):
            return _ignore(state, event, "busy_processing")

        return _ignore(state, event, "processing_unhandled")

    # ============================
    # ANSWERING
    # ============================
    if state.state is ConversationState.ANSWERING:
        if isinstance(event, PlaybackStarted):
            if _is_stale(state, event):
                return _ignore(state, event, "playback_started_stale")
            return replace(state, is_paused=False), (
                _log(state, event, "playback_started"),
            )

        if isinstance(event, StepIndexChanged):
            if _is_stale(state, event):
                return _ignore(state, event, "step_index_stale")
            if state.workflow is None or state.finishing:
                return _ignore(state, event, "step_index_without_workflow")
            index = min(max(event.step_index, 0), state.workflow.step_count - 1)
            if index == state.current_step_index:
                return _ignore(state, event, "step_index_unchanged")
            new_state = replace(state, current_step_index=index)
            return new_state, (
                _log(
                    new_state,
                    event,
                    "step_index_changed",
                    {"from": state.current_step_index, "to": index},
                ),
            )

        if isinstance(event, UserPause):
            if state.is_paused or state.finishing:
                return _ignore(state, event, "pause_not_applicable")
            new_state = replace(state, is_paused=True)
            return new_state, _logs_last((
                PausePlayback(run_id=state.active_runs.playback),
                _log(new_state, event, "pause"),
            ))

        if isinstance(event, UserResume):
            if not state.is_paused:
                return _ignore(state, event, "resume_not_paused")
            new_state = replace(state, is_paused=False)
            return new_state, _logs_last((
                ResumePlayback(run_id=state.active_runs.playback),
                _log(new_state, event, "resume"),
            ))

        if isinstance(event, PlaybackEnded):
            if _is_stale(state, event):
                return _ignore(state, event, "playback_ended_stale")
            if state.finishing:
                return _ignore(state, event, "playback_already_ended")
            if state.finish_grace_ms <= 0:
                return _finish(state, event, "playback_ended")

            last_index = state.workflow.step_count - 1 if state.workflow else 0
            new_state = replace(
                state,
                finishing=True,
                is_paused=False,
                current_step_index=last_index,
            )
            return new_state, _logs_last((
                StopProgressSync(),
                StartTimer(
                    timer_id=TIMER_FINISH_GRACE,
                    duration_ms=state.finish_grace_ms,
                    timeout_event_type=EventType.FINISH_GRACE_ELAPSED,
                    run_id=state.active_runs.playback,
                ),
                _log(
                    new_state,
                    event,
                    "finish_grace_started",
                    {"duration_ms": state.finish_grace_ms},
                ),
            ))

        if isinstance(event, FinishGraceElapsed):
            if event.run_id != state.active_runs.playback or not state.finishing:
                return _ignore(state, event, "finish_grace_stale")
            return _finish(state, event, "finish_grace_elapsed")

        if isinstance(event, UserFinished):
            return _finish(state, event, "user_finished")

        if isinstance(event, PlaybackFailed):
            if _is_stale(state, event):
                return _ignore(state, event, "playback_failed_stale")
            return _finish(
                state,
                event,
                "playback_failed",
                error=AssistantError(
                    kind=ErrorKind.PLAYBACK_FAILED,
                    message=f"{MSG_PLAYBACK_FAILED}: {event.reason}",
                ),
            )

        if isinstance(event, (StartListening, AskQuestion)):
            return _ignore(state, event, "busy_answering")

        return _ignore(state, event, "answering_unhandled")

    return _ignore(state, event, "unknown_state")
