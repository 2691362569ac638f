"""
Advisory error taxonomy surfaced to the kiosk.

Every kind returns the conversation to idle; none of them is fatal.
"""

from __future__ import annotations

from enum import Enum


class ErrorKind(str, Enum):
    """Classification of the last failure shown to the user."""

    RECOGNITION_UNAVAILABLE = "RecognitionUnavailable"
    RECOGNITION_FAILED = "RecognitionFailed"
    RETRIEVAL_FAILED = "RetrievalFailed"
    PLAYBACK_FAILED = "PlaybackFailed"
