"""
Audio transport primitives.

Pure data containers only.
"""

from __future__ import annotations
from dataclasses import dataclass


@dataclass(frozen=True)
class AudioFrame:
    """
    One 20ms PCM16 mic frame received from the kiosk.

    sequence_num:
        Monotonic sequence number provided by the kiosk; used for gap
        detection and debugging only.

    ts_ms:
        Wall-clock receive time (observability only).
    """
    sequence_num: int
    pcm_bytes: bytes
    ts_ms: int


@dataclass(frozen=True)
class AudioChunk:
    """
    One chunk of encoded reply audio sent to the kiosk.

    Chunks are not frame-aligned: they are whatever the TTS stream yielded.
    """
    run_id: int
    sequence_num: int
    data: bytes
