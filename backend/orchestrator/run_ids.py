"""
Run ID container for versioned asynchronous services.

Rules:
- Run IDs are monotonic integers.
- They are owned and incremented ONLY by the orchestrator reducer.
- Stopping a service never bumps its run ID; starting a new run does.
"""

from __future__ import annotations

from dataclasses import dataclass, replace

from orchestrator.enums.service import Service


@dataclass(frozen=True)
class RunIds:
    """
    Immutable container for active run IDs per service.

    Semantics:
    - A value of 0 means "no run has been started yet".
    - Once a run ID is incremented, it is never reused.
    """

    recognition: int = 0
    retrieval: int = 0
    playback: int = 0

    def active(self, service: Service) -> int:
        if service is Service.RECOGNITION:
            return self.recognition
        if service is Service.RETRIEVAL:
            return self.retrieval
        if service is Service.PLAYBACK:
            return self.playback
        raise ValueError(service)

    def bump(self, service: Service) -> RunIds:
        if service is Service.RECOGNITION:
            return replace(self, recognition=self.recognition + 1)
        if service is Service.RETRIEVAL:
            return replace(self, retrieval=self.retrieval + 1)
        if service is Service.PLAYBACK:
            return replace(self, playback=self.playback + 1)
        raise ValueError(service)

    def as_dict(self) -> dict[str, int]:
        return {
            "recognition": self.recognition,
            "retrieval": self.retrieval,
            "playback": self.playback,
        }
