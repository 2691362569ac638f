# pylint: disable=missing-module-docstring,missing-function-docstring

import pytest

from audio.frames import AudioChunk
from protocol.binary import (
    decode_c2s_frame,
    decode_s2c_chunk,
    encode_s2c_chunk,
    check_sequence_gap,
    next_seq,
    InvalidFrameLength,
    InvalidSequenceNumber,
)
from spec import (
    AUDIO_BYTES_PER_FRAME_PCM,
    S2C_MAX_CHUNK_BYTES,
    SEQ_NUM_MAX,
    SEQ_NUM_START,
)


def make_valid_pcm() -> bytes:
    return b"\x00\x00" * (AUDIO_BYTES_PER_FRAME_PCM // 2)


# ---------------------------------------------------------------------
# Mic frames (kiosk -> server)
# ---------------------------------------------------------------------

def test_decode_valid_mic_frame():
    payload = (7).to_bytes(4, "little") + make_valid_pcm()

    frame = decode_c2s_frame(payload, ts_ms=123)

    assert frame.sequence_num == 7
    assert frame.pcm_bytes == make_valid_pcm()
    assert frame.ts_ms == 123


def test_decode_rejects_short_frame():
    payload = b"\x01\x00\x00\x00" + make_valid_pcm()[:-2]

    with pytest.raises(InvalidFrameLength):
        decode_c2s_frame(payload, ts_ms=123)


def test_decode_rejects_long_frame():
    payload = b"\x01\x00\x00\x00" + make_valid_pcm() + b"\x00\x00"

    with pytest.raises(InvalidFrameLength):
        decode_c2s_frame(payload, ts_ms=123)


def test_decode_rejects_seq_zero():
    payload = (0).to_bytes(4, "little") + make_valid_pcm()

    with pytest.raises(InvalidSequenceNumber):
        decode_c2s_frame(payload, ts_ms=123)


# ---------------------------------------------------------------------
# Reply audio chunks (server -> kiosk)
# ---------------------------------------------------------------------

def test_chunk_header_carries_run_id_then_seq():
    payload = encode_s2c_chunk(AudioChunk(run_id=3, sequence_num=9, data=b"mp3"))

    assert payload[:4] == (3).to_bytes(4, "little")
    assert payload[4:8] == (9).to_bytes(4, "little")
    assert decode_s2c_chunk(payload) == AudioChunk(run_id=3, sequence_num=9, data=b"mp3")


def test_encode_rejects_invalid_seq():
    with pytest.raises(InvalidSequenceNumber):
        encode_s2c_chunk(AudioChunk(run_id=1, sequence_num=0, data=b"x"))


def test_encode_rejects_invalid_run_id():
    with pytest.raises(InvalidSequenceNumber):
        encode_s2c_chunk(AudioChunk(run_id=0, sequence_num=1, data=b"x"))


@pytest.mark.parametrize("data", [b"", b"\x00" * (S2C_MAX_CHUNK_BYTES + 1)])
def test_encode_rejects_bad_chunk_length(data: bytes):
    with pytest.raises(InvalidFrameLength):
        encode_s2c_chunk(AudioChunk(run_id=1, sequence_num=1, data=data))


def test_decode_rejects_header_only_chunk():
    with pytest.raises(InvalidFrameLength):
        decode_s2c_chunk(b"\x01\x00\x00\x00\x01\x00\x00\x00")


# ---------------------------------------------------------------------
# Sequence gap detection
# ---------------------------------------------------------------------

def test_sequence_gap_detected():
    result = check_sequence_gap(last_seq=5, current_seq=8)

    assert result.gap is True
    assert result.expected == 6
    assert result.actual == 8
    assert result.gap_size == 2


def test_sequence_no_gap():
    result = check_sequence_gap(last_seq=5, current_seq=6)

    assert result.gap is False
    assert result.gap_size == 0


def test_first_frame_is_never_a_gap():
    assert check_sequence_gap(last_seq=None, current_seq=42).gap is False


def test_sequence_wraparound_no_gap():
    assert next_seq(SEQ_NUM_MAX) == SEQ_NUM_START
    result = check_sequence_gap(last_seq=SEQ_NUM_MAX, current_seq=SEQ_NUM_START)

    assert result.gap is False


def test_sequence_wraparound_gap():
    result = check_sequence_gap(last_seq=SEQ_NUM_MAX - 2, current_seq=1)

    assert result.gap is True
    assert result.gap_size == 2
