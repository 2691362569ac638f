"""
Service enumeration for run-id–versioned asynchronous work.

Rules:
- This enum identifies versioned services only.
- It must NOT encode behavior or lifecycle rules.
- Reducer logic decides how services are started and cancelled.
"""

from __future__ import annotations

from enum import Enum


class Service(str, Enum):
    """
    Asynchronous services driven by the state machine.

    Each service:
    - Has at most one active run at a time
    - Is identified by a monotonically increasing run_id
    """

    RECOGNITION = "RECOGNITION"
    RETRIEVAL = "RETRIEVAL"
    PLAYBACK = "PLAYBACK"
