"""
Session gateway.

Responsibilities:
- Owns KioskSession lifecycle
- Tracks connection_status independently of conversation state
- Builds the session's adapters from AppConfig
- Routes inbound JSON control messages -> conversation events
- Routes kiosk playback reports -> AudioPlaybackController
- Routes inbound binary mic frames -> SpeechCaptureAdapter
- Detects mic sequence gaps and logs them

NOT responsible for:
- Executing commands (Runtime)
- Any state machine logic (reducer)
- Socket IO (server/routes.py)
"""

from __future__ import annotations

import json
import time
from dataclasses import dataclass
from typing import Any, TYPE_CHECKING
from uuid import uuid4

from adapters.playback.base import PlaybackStrategy
from adapters.playback.client_sink import KioskClientSink
from adapters.playback.controller import AudioPlaybackController
from adapters.playback.strategies import LocalSynthesis, RemoteSynthesis
from adapters.recognition.capture import SpeechCaptureAdapter
from adapters.recognition.deepgram import DeepgramRecognitionEngine
from adapters.retrieval.client import ContentRetrievalClient
from adapters.retrieval.fast_paths import FAST_PATHS
from observability.logger import log_event
from orchestrator.events import (
    AskQuestion,
    Event,
    EventType,
    SessionEnded,
    SessionStarted,
    StartListening,
    UserFinished,
    UserPause,
    UserResume,
    UserStop,
)
from orchestrator.runtime import Runtime
from orchestrator.runtime_context import RuntimeExecutionContext
from orchestrator.state_dataclass import KioskState
from orchestrator.synchronizer import ProgressSynchronizer
from protocol.binary import (
    BinaryProtocolError,
    check_sequence_gap,
    decode_c2s_frame,
)
from session.connection_status import ConnectionStatus
from session.kiosk_session import KioskSession, OutboundMessage
from spec import (
    AUDIO_CHANNELS,
    AUDIO_FRAME_MS,
    AUDIO_SAMPLE_RATE_HZ,
    AUDIO_SAMPLE_WIDTH_BYTES,
    PLAYBACK_STRATEGY_LOCAL,
    QUICK_ACTIONS,
)

if TYPE_CHECKING:
    from config import AppConfig

# ------------------------------------------------------------------
# Helpers
# ------------------------------------------------------------------

def _now_ms() -> int:
    return time.time_ns() // 1_000_000


def _new_session_id() -> str:
    return f"sess_{uuid4().hex[:12]}"


# Simple user controls: message type -> event class
_CONTROL_EVENTS: dict[str, tuple[EventType, type[Event]]] = {
    "START_LISTENING": (EventType.START_LISTENING, StartListening),
    "STOP": (EventType.USER_STOP, UserStop),
    "PAUSE": (EventType.USER_PAUSE, UserPause),
    "RESUME": (EventType.USER_RESUME, UserResume),
    "FINISH": (EventType.USER_FINISHED, UserFinished),
}

_PLAYBACK_REPORTS = frozenset({
    "PLAYBACK_STARTED",
    "PLAYBACK_PROGRESS",
    "PLAYBACK_ENDED",
    "PLAYBACK_ERROR",
})


# ------------------------------------------------------------------
# Gateway result
# ------------------------------------------------------------------

@dataclass(frozen=True)
class GatewayResult:
    """
    Return value for gateway boundary methods.

    outbound:
        Messages to send to the kiosk, in order. dict items are sent as
        JSON text, bytes items as binary audio chunks.
    """
    outbound: tuple[OutboundMessage, ...] = ()


# ------------------------------------------------------------------
# SessionGateway
# ------------------------------------------------------------------

class SessionGateway:
    """One gateway == one kiosk session."""

    def __init__(self, *, config: AppConfig) -> None:
        self._config = config
        self.session: KioskSession | None = None

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    async def on_ws_connect(self) -> GatewayResult:
        """Called when a WebSocket connection is established."""
        session_id = _new_session_id()

        session = KioskSession(session_id=session_id)
        session.connection_status = ConnectionStatus.UP
        self.session = session

        runtime = Runtime(
            initial_state=KioskState(
                locale=self._config.recognition_locale,
                finish_grace_ms=self._config.finish_grace_ms,
            ),
            context=RuntimeExecutionContext(session=session),
        )
        session.runtime = runtime
        self._attach_adapters(session, runtime)

        init_msg: dict[str, Any] = {
            "type": "SESSION_INIT",
            "session_id": session_id,
            "audio_format": {
                "sample_rate": AUDIO_SAMPLE_RATE_HZ,
                "sample_width": AUDIO_SAMPLE_WIDTH_BYTES,
                "channels": AUDIO_CHANNELS,
                "frame_duration_ms": AUDIO_FRAME_MS,
            },
            "config": {
                "playback_strategy": self._config.playback_strategy,
                "recognition_locale": self._config.recognition_locale,
                "quick_actions": dict(QUICK_ACTIONS),
            },
        }
        session.enqueue_control(init_msg)

        await self._dispatch(
            SessionStarted(
                event_type=EventType.SESSION_STARTED,
                ts_ms=_now_ms(),
                session_id=session_id,
                recognition_available=session.capture.available,
            )
        )
        runtime.publish_state()

        log_event({
            "ts_ms": _now_ms(),
            "event_type": "ws_connected",
            **session.log_context(),
            "playback_strategy": session.playback.strategy_name,
            "recognition_available": session.capture.available,
        })

        return GatewayResult(outbound=self.drain())

    async def on_ws_disconnect(self, reason: str | None = None) -> GatewayResult:
        """Called when the WebSocket disconnects."""
        if self.session is None:
            log_event({
                "ts_ms": _now_ms(),
                "event_type": "ws_disconnect_without_session",
                "reason": reason,
            })
            return GatewayResult()

        session = self.session
        session.connection_status = ConnectionStatus.DOWN

        await self._dispatch(
            SessionEnded(
                event_type=EventType.SESSION_ENDED,
                ts_ms=_now_ms(),
                session_id=session.session_id,
                reason=reason,
            )
        )

        if session.runtime is not None:
            await session.runtime.shutdown()
        if session.playback is not None:
            await session.playback.stop()
        if session.capture is not None:
            await session.capture.shutdown()

        log_event({
            "ts_ms": _now_ms(),
            "event_type": "ws_disconnected",
            **session.log_context(),
            "reason": reason,
        })

        # Nothing can be delivered any more
        session.drain_outbound()
        return GatewayResult()

    # ------------------------------------------------------------------
    # Inbound
    # ------------------------------------------------------------------

    async def on_json_message(self, payload: str) -> GatewayResult:
        """Route inbound JSON to conversation events or playback reports."""
        if self.session is None:
            log_event({
                "ts_ms": _now_ms(),
                "event_type": "message_without_session",
                "payload_preview": payload[:100],
            })
            return GatewayResult()

        try:
            data = json.loads(payload)
        except json.JSONDecodeError as e:
            log_event({
                "ts_ms": _now_ms(),
                "level": "WARNING",
                "event_type": "json_decode_error",
                "session_id": self.session.session_id,
                "error": str(e),
                "payload_preview": payload[:100],
            })
            return GatewayResult()

        if not isinstance(data, dict):
            self._log_rejected(None, "not_an_object")
            return GatewayResult()

        msg_type = data.get("type")
        ts_ms = _now_ms()

        if msg_type in _PLAYBACK_REPORTS:
            self._route_playback_report(msg_type, data)
            return GatewayResult(outbound=self.drain())

        event: Event | None = None

        if msg_type in _CONTROL_EVENTS:
            event_type, event_cls = _CONTROL_EVENTS[msg_type]
            event = event_cls(event_type=event_type, ts_ms=ts_ms)

        elif msg_type == "ASK":
            question = data.get("question")
            if not isinstance(question, str):
                self._log_rejected(msg_type, "missing_question")
                return GatewayResult()
            event = AskQuestion(
                event_type=EventType.ASK_QUESTION,
                ts_ms=ts_ms,
                question=question,
                source="typed",
            )

        elif msg_type == "QUICK_ACTION":
            key = data.get("key")
            question = QUICK_ACTIONS.get(key) if isinstance(key, str) else None
            if question is None:
                self._log_rejected(msg_type, "unknown_quick_action")
                return GatewayResult()
            event = AskQuestion(
                event_type=EventType.ASK_QUESTION,
                ts_ms=ts_ms,
                question=question,
                source="quick_action",
            )

        else:
            self._log_rejected(msg_type, "unknown_message_type")
            return GatewayResult()

        await self._dispatch(event)
        return GatewayResult(outbound=self.drain())

    async def on_binary_message(self, payload: bytes) -> GatewayResult:
        """
        Handle an inbound binary mic frame.

        - Decode + validate
        - Detect sequence gaps (log only)
        - Forward PCM to the live recognition session, if any
        """
        if self.session is None:
            log_event({
                "ts_ms": _now_ms(),
                "event_type": "binary_without_session",
                "payload_len": len(payload),
            })
            return GatewayResult()

        session = self.session

        try:
            frame = decode_c2s_frame(payload, ts_ms=_now_ms())
        except BinaryProtocolError as e:
            log_event({
                "ts_ms": _now_ms(),
                "level": "WARNING",
                "event_type": "binary_decode_error",
                "session_id": session.session_id,
                "error": str(e),
                "payload_len": len(payload),
            })
            return GatewayResult()

        gap = check_sequence_gap(
            last_seq=session.last_mic_seq,
            current_seq=frame.sequence_num,
        )
        if gap.gap:
            log_event({
                "ts_ms": _now_ms(),
                "event_type": "mic_seq_gap_detected",
                "session_id": session.session_id,
                "expected": gap.expected,
                "actual": gap.actual,
                "gap_size": gap.gap_size,
            })
        session.last_mic_seq = frame.sequence_num

        if session.capture is not None:
            await session.capture.feed_audio(frame.pcm_bytes)

        return GatewayResult(outbound=self.drain())

    # ------------------------------------------------------------------
    # Outbound
    # ------------------------------------------------------------------

    def drain(self) -> tuple[OutboundMessage, ...]:
        if self.session is None:
            return ()
        return self.session.drain_outbound()

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    def _attach_adapters(self, session: KioskSession, runtime: Runtime) -> None:
        config = self._config
        session_id = session.session_id

        engine = None
        if config.deepgram_api_key:
            engine = DeepgramRecognitionEngine(
                api_key=config.deepgram_api_key,
                model=config.deepgram_model,
            )
        session.capture = SpeechCaptureAdapter(
            emit_event=runtime.handle_event,
            engine=engine,
            session_id=session_id,
        )

        session.retrieval = ContentRetrievalClient(
            url=config.retrieval_url,
            auth_token=config.retrieval_auth_token,
            timeout_s=config.retrieval_timeout_s,
            fast_paths=FAST_PATHS if config.enable_fast_paths else None,
            session_id=session_id,
        )

        strategy: PlaybackStrategy
        if config.playback_strategy == PLAYBACK_STRATEGY_LOCAL:
            strategy = LocalSynthesis(
                language=config.recognition_locale,
                rate=config.synthesis_rate,
            )
        else:
            strategy = RemoteSynthesis(
                tts_url=config.tts_url,
                mode=config.tts_mode,
                session_id=session_id,
            )

        controller = AudioPlaybackController(
            emit_event=runtime.handle_event,
            strategy=strategy,
            sink=KioskClientSink(session),
            session_id=session_id,
        )
        session.playback = controller

        session.synchronizer = ProgressSynchronizer(
            emit_event=runtime.handle_event,
            sample=controller.sample,
        )

    def _route_playback_report(self, msg_type: str, data: dict[str, Any]) -> None:
        assert self.session is not None
        controller = self.session.playback
        run_id = data.get("run_id")
        if controller is None or not isinstance(run_id, int):
            self._log_rejected(msg_type, "missing_run_id")
            return

        if msg_type == "PLAYBACK_STARTED":
            controller.on_started(run_id)
        elif msg_type == "PLAYBACK_PROGRESS":
            current = data.get("current_time")
            duration = data.get("duration")
            if not isinstance(current, (int, float)) or not isinstance(duration, (int, float)):
                self._log_rejected(msg_type, "bad_progress")
                return
            controller.on_progress(run_id, float(current), float(duration))
        elif msg_type == "PLAYBACK_ENDED":
            controller.on_ended(run_id)
        else:
            controller.on_error(run_id, str(data.get("reason") or "playback error"))

    def _log_rejected(self, msg_type: Any, reason: str) -> None:
        log_event({
            "ts_ms": _now_ms(),
            "level": "WARNING",
            "event_type": "message_rejected",
            "session_id": self.session.session_id if self.session else None,
            "msg_type": msg_type,
            "reason": reason,
        })

    async def _dispatch(self, event: Event) -> None:
        """Forward event into runtime; runtime owns all orchestration."""
        if self.session is None or self.session.runtime is None:
            log_event({
                "ts_ms": _now_ms(),
                "event_type": "dispatch_without_session",
                "dropped_event": event.event_type.value,
            })
            return

        await self.session.runtime.handle_event(event)
