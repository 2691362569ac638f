"""
Binary framing helpers for kiosk audio transport.

- Client → Server (mic):
    4 bytes  seq_num (u32, little-endian)
    640 bytes PCM16 audio (20ms @ 16kHz mono)

- Server → Client (synthesized reply audio):
    4 bytes  run_id  (u32, little-endian)
    4 bytes  seq_num (u32, little-endian)
    1..S2C_MAX_CHUNK_BYTES bytes of encoded audio (audio/mpeg)

The run_id lets the kiosk drop chunks of a playback run it was told to stop.
"""

from __future__ import annotations

import struct
from dataclasses import dataclass
from typing import Optional

from audio.frames import AudioFrame, AudioChunk
from spec import (
    AUDIO_BYTES_PER_FRAME_PCM,
    C2S_FRAME_BYTES_TOTAL,
    C2S_SEQ_NUM_BYTES,
    S2C_HEADER_BYTES,
    S2C_MAX_CHUNK_BYTES,
    SEQ_NUM_START,
    SEQ_NUM_MAX,
)


# -------------------------
# Exceptions
# -------------------------

class BinaryProtocolError(Exception):
    """Base class for binary protocol errors."""


class InvalidFrameLength(BinaryProtocolError):
    """
    Raised when a binary frame does not match the expected byte length.

    The frame is unsafe to process and must be dropped.
    """


class InvalidSequenceNumber(BinaryProtocolError):
    """Raised when a sequence number or run_id is outside the valid range."""


# -------------------------
# Low-level helpers
# -------------------------

def _u32_le(value: int) -> bytes:
    return struct.pack("<I", value)


def _read_u32_le(buf: bytes, offset: int = 0) -> int:
    return struct.unpack_from("<I", buf, offset)[0]


def next_seq(current: int) -> int:
    """Sequence number following `current`, with u32 wraparound."""
    return SEQ_NUM_START if current >= SEQ_NUM_MAX else current + 1


def is_seq_next(prev: int, current: int) -> bool:
    return current == next_seq(prev)


# -------------------------
# Client → Server (mic)
# -------------------------

def decode_c2s_frame(payload: bytes, *, ts_ms: int) -> AudioFrame:
    """Decode a client→server mic audio frame."""
    if len(payload) != C2S_FRAME_BYTES_TOTAL:
        raise InvalidFrameLength(
            f"C2S frame length {len(payload)} != {C2S_FRAME_BYTES_TOTAL}"
        )

    seq = _read_u32_le(payload, 0)
    if seq < SEQ_NUM_START:
        raise InvalidSequenceNumber(f"Invalid seq_num: {seq}")

    pcm_bytes = payload[C2S_SEQ_NUM_BYTES:]
    if len(pcm_bytes) != AUDIO_BYTES_PER_FRAME_PCM:
        raise InvalidFrameLength(
            f"PCM length {len(pcm_bytes)} != {AUDIO_BYTES_PER_FRAME_PCM}"
        )

    return AudioFrame(sequence_num=seq, pcm_bytes=pcm_bytes, ts_ms=ts_ms)


# -------------------------
# Server → Client (reply audio)
# -------------------------

def encode_s2c_chunk(chunk: AudioChunk) -> bytes:
    """Encode one reply-audio chunk for the kiosk."""
    if chunk.sequence_num < SEQ_NUM_START or chunk.sequence_num > SEQ_NUM_MAX:
        raise InvalidSequenceNumber(f"Invalid seq_num: {chunk.sequence_num}")

    # run_ids start at 1; 0 means "never started"
    if chunk.run_id < 1 or chunk.run_id > SEQ_NUM_MAX:
        raise InvalidSequenceNumber(f"Invalid run_id: {chunk.run_id}")

    if not chunk.data or len(chunk.data) > S2C_MAX_CHUNK_BYTES:
        raise InvalidFrameLength(
            f"chunk length {len(chunk.data)} not in 1..{S2C_MAX_CHUNK_BYTES}"
        )

    return _u32_le(chunk.run_id) + _u32_le(chunk.sequence_num) + chunk.data


def decode_s2c_chunk(payload: bytes) -> AudioChunk:
    """Inverse of encode_s2c_chunk (used by tests and tooling)."""
    if len(payload) <= S2C_HEADER_BYTES:
        raise InvalidFrameLength(f"S2C chunk length {len(payload)} too short")
    return AudioChunk(
        run_id=_read_u32_le(payload, 0),
        sequence_num=_read_u32_le(payload, 4),
        data=payload[S2C_HEADER_BYTES:],
    )


# -------------------------
# Sequence gap detection
# -------------------------

@dataclass(frozen=True)
class SeqCheckResult:
    """Result of a sequence continuity check."""
    gap: bool
    expected: int
    actual: int

    @property
    def gap_size(self) -> int:
        """Number of frames skipped (0 if no gap), wraparound aware."""
        if not self.gap:
            return 0
        if self.actual > self.expected:
            return self.actual - self.expected
        return (SEQ_NUM_MAX - self.expected + 1) + (self.actual - SEQ_NUM_START)


def check_sequence_gap(
    *,
    last_seq: Optional[int],
    current_seq: int,
) -> SeqCheckResult:
    """
    Check whether `current_seq` follows `last_seq`.

    Pure function; never raises.
    """
    if last_seq is None or is_seq_next(last_seq, current_seq):
        return SeqCheckResult(gap=False, expected=current_seq, actual=current_seq)

    return SeqCheckResult(gap=True, expected=next_seq(last_seq), actual=current_seq)
