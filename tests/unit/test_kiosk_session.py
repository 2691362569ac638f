# pylint: disable=missing-module-docstring,missing-function-docstring

from adapters.playback.client_sink import KioskClientSink
from protocol.binary import decode_s2c_chunk
from session.connection_status import ConnectionStatus
from session.kiosk_session import KioskSession


def make_session() -> KioskSession:
    return KioskSession(session_id="sess_test", connection_status=ConnectionStatus.UP)


def test_control_and_audio_share_one_fifo() -> None:
    session = make_session()

    session.enqueue_control({"type": "AUDIO_BEGIN", "run_id": 1})
    session.enqueue_audio(1, b"aa")
    session.enqueue_audio(1, b"bb")
    session.enqueue_control({"type": "AUDIO_END", "run_id": 1})

    out = session.drain_outbound()

    assert out[0] == {"type": "AUDIO_BEGIN", "run_id": 1}
    assert isinstance(out[1], bytes) and isinstance(out[2], bytes)
    assert decode_s2c_chunk(out[1]).data == b"aa"
    assert decode_s2c_chunk(out[2]).data == b"bb"
    assert out[3] == {"type": "AUDIO_END", "run_id": 1}
    assert session.drain_outbound() == ()


def test_audio_sequence_numbers_are_per_run() -> None:
    session = make_session()

    session.enqueue_audio(1, b"a")
    session.enqueue_audio(1, b"b")
    session.enqueue_audio(2, b"c")

    seqs = [
        (chunk.run_id, chunk.sequence_num)
        for chunk in (decode_s2c_chunk(m) for m in session.drain_outbound())
    ]
    assert seqs == [(1, 1), (1, 2), (2, 1)]


def test_drop_audio_keeps_control_and_other_runs() -> None:
    session = make_session()

    session.enqueue_audio(1, b"old")
    session.enqueue_control({"type": "STATE"})
    session.enqueue_audio(2, b"new")
    session.enqueue_audio(1, b"old2")

    assert session.drop_audio(1) == 2
    assert session.outbound_depth == 2

    out = session.drain_outbound()
    assert out[0] == {"type": "STATE"}
    assert decode_s2c_chunk(out[1]).run_id == 2


def test_log_context() -> None:
    assert make_session().log_context() == {
        "session_id": "sess_test",
        "connection_status": "UP",
    }


# ---------------------------------------------------------------------
# Client sink
# ---------------------------------------------------------------------

def test_client_sink_maps_calls_to_messages() -> None:
    session = make_session()
    sink = KioskClientSink(session)

    sink.begin_audio(4, "audio/mpeg", True)
    sink.send_audio(4, b"chunk")
    sink.end_audio(4)
    sink.pause(4)
    sink.resume(4)
    sink.speak(5, "Olá", "pt-BR", 1.0)

    out = session.drain_outbound()
    assert out[0] == {"type": "AUDIO_BEGIN", "run_id": 4, "media_type": "audio/mpeg", "buffered": True}
    assert decode_s2c_chunk(out[1]).data == b"chunk"
    assert [m["type"] for m in out[2:] if isinstance(m, dict)] == [
        "AUDIO_END",
        "AUDIO_PAUSE",
        "AUDIO_RESUME",
        "SPEAK",
    ]
    assert out[-1] == {"type": "SPEAK", "run_id": 5, "text": "Olá", "lang": "pt-BR", "rate": 1.0}


def test_client_sink_stop_drops_pending_chunks() -> None:
    session = make_session()
    sink = KioskClientSink(session)

    sink.begin_audio(1, "audio/mpeg", False)
    sink.send_audio(1, b"x")
    sink.send_audio(1, b"y")
    sink.stop(1)

    assert session.drain_outbound() == (
        {"type": "AUDIO_BEGIN", "run_id": 1, "media_type": "audio/mpeg", "buffered": False},
        {"type": "AUDIO_STOP", "run_id": 1},
    )
