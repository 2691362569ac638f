# pylint: disable=missing-module-docstring,missing-function-docstring
import asyncio
from typing import AsyncIterator

import pytest

from adapters.recognition.base import (
    RecognitionEngine,
    RecognitionFailure,
    RecognitionSession,
)
from adapters.recognition.capture import SpeechCaptureAdapter
from orchestrator.events import (
    Event,
    RecognitionEnded,
    RecognitionError,
    RecognitionResult,
    RecognitionUnavailable,
)


class Recorder:
    def __init__(self) -> None:
        self.events: list[Event] = []

    async def __call__(self, event: Event) -> None:
        self.events.append(event)


class ScriptedSession(RecognitionSession):
    """Yields scripted snapshots, then waits for finish() unless told to end."""

    def __init__(self, snapshots: list[str], *, fail_code: str | None = None, wait: bool = False) -> None:
        self.snapshots = snapshots
        self.fail_code = fail_code
        self.wait = wait
        self.audio: list[bytes] = []
        self.finished = asyncio.Event()
        self.aborted = False

    async def _iterate(self) -> AsyncIterator[str]:
        for snapshot in self.snapshots:
            yield snapshot
        if self.fail_code is not None:
            raise RecognitionFailure(self.fail_code)
        if self.wait:
            await self.finished.wait()

    def __aiter__(self) -> AsyncIterator[str]:
        return self._iterate()

    async def send_audio(self, pcm_bytes: bytes) -> None:
        self.audio.append(pcm_bytes)

    async def finish(self) -> None:
        self.finished.set()

    async def abort(self) -> None:
        self.aborted = True
        self.finished.set()


class ScriptedEngine(RecognitionEngine):
    def __init__(self, *sessions: ScriptedSession) -> None:
        self.sessions = list(sessions)
        self.locales: list[str] = []

    def open_session(self, *, locale: str, interim_results: bool = True) -> RecognitionSession:
        self.locales.append(locale)
        return self.sessions.pop(0)


async def settle() -> None:
    for _ in range(5):
        await asyncio.sleep(0)


@pytest.mark.asyncio
async def test_results_then_single_ended_event() -> None:
    rec = Recorder()
    engine = ScriptedEngine(ScriptedSession(["qual", "qual o fluxo"]))
    capture = SpeechCaptureAdapter(emit_event=rec, engine=engine, session_id="sess_test")

    await capture.start(1, "pt-BR")
    await settle()

    assert engine.locales == ["pt-BR"]
    assert [type(e) for e in rec.events] == [RecognitionResult, RecognitionResult, RecognitionEnded]
    assert [e.text for e in rec.events[:2]] == ["qual", "qual o fluxo"]
    assert rec.events[-1].text == "qual o fluxo"
    assert all(e.run_id == 1 for e in rec.events)


@pytest.mark.asyncio
async def test_engine_failure_becomes_error_code() -> None:
    rec = Recorder()
    engine = ScriptedEngine(ScriptedSession([], fail_code="no-speech"))
    capture = SpeechCaptureAdapter(emit_event=rec, engine=engine, session_id="sess_test")

    await capture.start(2, "pt-BR")
    await settle()

    assert len(rec.events) == 1
    assert isinstance(rec.events[0], RecognitionError)
    assert rec.events[0].code == "no-speech"


@pytest.mark.asyncio
async def test_no_engine_reports_unavailable() -> None:
    rec = Recorder()
    capture = SpeechCaptureAdapter(emit_event=rec, engine=None, session_id="sess_test")

    assert not capture.available
    await capture.start(1, "pt-BR")
    await settle()

    assert len(rec.events) == 1
    assert isinstance(rec.events[0], RecognitionUnavailable)


@pytest.mark.asyncio
async def test_stop_ends_run_with_partial_transcript() -> None:
    rec = Recorder()
    session = ScriptedSession(["fluxo de"], wait=True)
    capture = SpeechCaptureAdapter(
        emit_event=rec, engine=ScriptedEngine(session), session_id="sess_test"
    )

    await capture.start(3, "pt-BR")
    await settle()
    await capture.feed_audio(b"\x00\x00")
    await capture.stop(99)          # not the live run
    await settle()
    assert not any(isinstance(e, RecognitionEnded) for e in rec.events)

    await capture.stop(3)
    await settle()

    assert session.audio == [b"\x00\x00"]
    ended = [e for e in rec.events if isinstance(e, RecognitionEnded)]
    assert len(ended) == 1
    assert ended[0].text == "fluxo de"


@pytest.mark.asyncio
async def test_shutdown_aborts_live_session() -> None:
    rec = Recorder()
    session = ScriptedSession([], wait=True)
    capture = SpeechCaptureAdapter(
        emit_event=rec, engine=ScriptedEngine(session), session_id="sess_test"
    )

    await capture.start(1, "pt-BR")
    await settle()
    await capture.shutdown()
    await settle()

    assert session.aborted
    await capture.feed_audio(b"late")
    assert session.audio == []
