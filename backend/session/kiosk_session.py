"""
Kiosk session container.

- Owns connection status (mutable, gateway-controlled)
- Holds the runtime and the session's adapters
- Owns the single ordered outbound channel to the kiosk
- NOT a state machine
- Contains no orchestration logic

Outbound ordering:
JSON control messages and binary audio chunks share one FIFO so that
AUDIO_BEGIN, the chunks of a run and AUDIO_END reach the kiosk in the
order they were produced.
"""

from __future__ import annotations

import asyncio
import time
from collections import deque
from dataclasses import dataclass, field
from typing import Any, TYPE_CHECKING, Union

from audio.frames import AudioChunk
from protocol.binary import encode_s2c_chunk, next_seq
from session.connection_status import ConnectionStatus
from spec import SEQ_NUM_START

if TYPE_CHECKING:
    from orchestrator.runtime import Runtime

OutboundMessage = Union[dict[str, Any], bytes]


# ---------------------------------------------------------------------
# KioskSession
# ---------------------------------------------------------------------


@dataclass
class KioskSession:
    """Mutable runtime container for a single kiosk connection."""

    # ------------------------------------------------------------------
    # Identity / lifecycle
    # ------------------------------------------------------------------

    session_id: str
    created_at: float = field(default_factory=time.time)

    # ------------------------------------------------------------------
    # Connection / gateway-controlled state
    # ------------------------------------------------------------------

    connection_status: ConnectionStatus = ConnectionStatus.DOWN

    # Last mic frame sequence number seen (gap detection only)
    last_mic_seq: int | None = None

    # ------------------------------------------------------------------
    # Runtime (executes commands + owns authoritative state)
    # ------------------------------------------------------------------

    runtime: Runtime | None = None

    # ------------------------------------------------------------------
    # Service adapters (concrete, side-effectful)
    # ------------------------------------------------------------------

    capture: Any = None
    retrieval: Any = None
    playback: Any = None
    synchronizer: Any = None

    # ------------------------------------------------------------------
    # Initialization
    # ------------------------------------------------------------------

    def __post_init__(self) -> None:
        self._outbound: deque[OutboundMessage] = deque()
        self._outbound_ready = asyncio.Event()
        self._audio_seq: dict[int, int] = {}

    # ------------------------------------------------------------------
    # Observability helpers (read-only)
    # ------------------------------------------------------------------

    def log_context(self) -> dict[str, Any]:
        """Standard logging context for this session."""
        return {
            "session_id": self.session_id,
            "connection_status": self.connection_status.value,
        }

    # ------------------------------------------------------------------
    # Outbound channel
    # ------------------------------------------------------------------

    def enqueue_control(self, msg: dict[str, Any]) -> None:
        """Enqueue a JSON control message for delivery to the kiosk."""
        self._outbound.append(msg)
        self._outbound_ready.set()

    def enqueue_audio(self, run_id: int, data: bytes) -> None:
        """
        Frame and enqueue one chunk of reply audio for run_id.

        Sequence numbers are per run and start at SEQ_NUM_START.
        """
        prev = self._audio_seq.get(run_id)
        seq = SEQ_NUM_START if prev is None else next_seq(prev)
        self._audio_seq[run_id] = seq

        self._outbound.append(
            encode_s2c_chunk(AudioChunk(run_id=run_id, sequence_num=seq, data=data))
        )
        self._outbound_ready.set()

    def drop_audio(self, run_id: int) -> int:
        """
        Discard undelivered audio chunks of run_id.

        Control messages are kept. Returns the number of chunks dropped.
        """
        self._audio_seq.pop(run_id, None)
        prefix = run_id.to_bytes(4, "little")
        kept: deque[OutboundMessage] = deque()
        dropped = 0
        for msg in self._outbound:
            if isinstance(msg, bytes) and msg[:4] == prefix:
                dropped += 1
                continue
            kept.append(msg)
        self._outbound = kept
        return dropped

    def drain_outbound(self) -> tuple[OutboundMessage, ...]:
        """
        Atomically drain all pending outbound messages.

        Returns a FIFO-ordered tuple (empty if nothing is pending). After
        this call the outbound queue is empty.
        """
        self._outbound_ready.clear()
        if not self._outbound:
            return ()
        out = tuple(self._outbound)
        self._outbound.clear()
        return out

    async def wait_outbound(self) -> None:
        """Block until at least one outbound message is pending."""
        await self._outbound_ready.wait()

    @property
    def outbound_depth(self) -> int:
        return len(self._outbound)
