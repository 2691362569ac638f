"""
Conversation state enumeration.

Rules:
- This enum defines ONLY the kiosk conversation states.
- No behavior, no helper methods, no side effects.
- Transitions are defined exclusively in the reducer.
"""

from __future__ import annotations

from enum import Enum


class ConversationState(str, Enum):
    """
    The single conversation phase a kiosk session is in.

    IDLE:
        Waiting for the user (button press or quick action).
    LISTENING:
        A recognition run is capturing the question.
    PROCESSING:
        A retrieval run is in flight for the captured question.
    ANSWERING:
        The reply is being played and steps are being highlighted.
    """

    IDLE = "idle"
    LISTENING = "listening"
    PROCESSING = "processing"
    ANSWERING = "answering"
