"""
JSONL event logger.

- Write one JSON object per line
- Output to stdout
- No buffering, no batching
- Events below the configured level (or all events, when disabled) are dropped
"""

from __future__ import annotations

import json
import sys
from typing import Any, Mapping, Callable


_LEVELS: dict[str, int] = {
    "DEBUG": 10,
    "INFO": 20,
    "WARNING": 30,
    "ERROR": 40,
}


# ------------------------------------------------------------------
# Explicit output sink (patchable in tests)
# ------------------------------------------------------------------

def _stdout_print(line: str) -> None:
    sys.stdout.write(line + "\n")
    sys.stdout.flush()

_print: Callable[[str], None] = _stdout_print

_enabled: bool = True
_min_level: int = _LEVELS["DEBUG"]


def configure_logging(*, enabled: bool = True, level: str = "DEBUG") -> None:
    """
    Apply process-wide logging settings (called once by the app factory).

    Unknown level names fall back to DEBUG so nothing is silently lost.
    """
    global _enabled, _min_level  # pylint: disable=global-statement
    _enabled = enabled
    _min_level = _LEVELS.get(level.upper(), _LEVELS["DEBUG"])


def log_event(event: Mapping[str, Any]) -> None:
    """
    Write a single JSONL event to stdout.

    The caller is responsible for:
    - Supplying a fully-formed event dict
    - Including ts_ms, session_id, state, etc.

    An optional "level" key (DEBUG/INFO/WARNING/ERROR, default INFO) is
    compared against the configured minimum.

    This function never raises.
    """
    if not _enabled:
        return

    level = _LEVELS.get(str(event.get("level", "INFO")).upper(), _LEVELS["INFO"])
    if level < _min_level:
        return

    try:
        line = json.dumps(event, ensure_ascii=False, separators=(",", ":"))
    except (TypeError, ValueError) as e:
        # Last-resort fallback: logging must never crash the runtime
        fallback: dict[str, Any] = {
            "ts_ms": event.get("ts_ms"),
            "event_type": "LOGGER_SERIALIZATION_ERROR",
            "error": str(e),
            "original_event_repr": repr(event),
        }
        line = json.dumps(fallback, ensure_ascii=False, separators=(",", ":"))

    _print(line)
