"""
AudioSink that delivers playback to the kiosk over the session's
WebSocket outbound channel.

Message mapping:
- begin_audio -> {"type": "AUDIO_BEGIN", run_id, media_type, buffered}
- send_audio  -> binary chunk (run_id + seq + bytes)
- end_audio   -> {"type": "AUDIO_END", run_id}
- speak       -> {"type": "SPEAK", run_id, text, lang, rate}
- pause       -> {"type": "AUDIO_PAUSE", run_id}
- resume      -> {"type": "AUDIO_RESUME", run_id}
- stop        -> {"type": "AUDIO_STOP", run_id} (undelivered chunks dropped)
"""

from __future__ import annotations

from session.kiosk_session import KioskSession


class KioskClientSink:
    """AudioSink bound to one KioskSession."""

    def __init__(self, session: KioskSession) -> None:
        self._session = session

    def begin_audio(self, run_id: int, media_type: str, buffered: bool) -> None:
        self._session.enqueue_control({
            "type": "AUDIO_BEGIN",
            "run_id": run_id,
            "media_type": media_type,
            "buffered": buffered,
        })

    def send_audio(self, run_id: int, chunk: bytes) -> None:
        self._session.enqueue_audio(run_id, chunk)

    def end_audio(self, run_id: int) -> None:
        self._session.enqueue_control({"type": "AUDIO_END", "run_id": run_id})

    def speak(self, run_id: int, text: str, language: str, rate: float) -> None:
        self._session.enqueue_control({
            "type": "SPEAK",
            "run_id": run_id,
            "text": text,
            "lang": language,
            "rate": rate,
        })

    def pause(self, run_id: int) -> None:
        self._session.enqueue_control({"type": "AUDIO_PAUSE", "run_id": run_id})

    def resume(self, run_id: int) -> None:
        self._session.enqueue_control({"type": "AUDIO_RESUME", "run_id": run_id})

    def stop(self, run_id: int) -> None:
        self._session.drop_audio(run_id)
        self._session.enqueue_control({"type": "AUDIO_STOP", "run_id": run_id})
