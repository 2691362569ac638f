"""
Timing helpers for observability.

- Durations use monotonic time; event timestamps (ts_ms) use wall-clock time
- One metric = one METRIC_TIMER log event, never aggregated
- Prefer the `timed()` context manager so timers cannot leak
"""

from __future__ import annotations

import time
from contextlib import contextmanager
from dataclasses import dataclass, field
from typing import Any, Iterator

from observability.logger import log_event


@dataclass
class TimerSpan:
    """
    Live handle yielded by `timed()`.

    Callers may attach details while the block runs; they are merged into
    the emitted metric event.
    """
    name: str
    start_ns: int = field(default_factory=time.monotonic_ns)
    details: dict[str, Any] = field(default_factory=dict)

    def elapsed_ms(self) -> int:
        return (time.monotonic_ns() - self.start_ns) // 1_000_000


def emit_timer(
    span: TimerSpan,
    *,
    session_id: str | None = None,
    outcome: str = "ok",
) -> int:
    """Emit a METRIC_TIMER event for `span` and return its duration."""
    duration_ms = span.elapsed_ms()
    log_event({
        "ts_ms": int(time.time() * 1000),
        "event_type": "METRIC_TIMER",
        "metric": span.name,
        "value_ms": duration_ms,
        "session_id": session_id,
        "outcome": outcome,
        "details": span.details,
    })
    return duration_ms


@contextmanager
def timed(
    name: str,
    *,
    session_id: str | None = None,
    details: dict[str, Any] | None = None,
) -> Iterator[TimerSpan]:
    """
    Context manager for measuring durations safely.

    Guarantees:
    - Metric is emitted exactly once
    - Exceptions inside the block are re-raised; the metric records
      outcome="error" and the exception type

    Usage:
        with timed("retrieval_round_trip", session_id=sid) as span:
            result = await client.ask(question)
            span.details["steps"] = len(result.workflow.steps)
    """
    span = TimerSpan(name=name, details=dict(details or {}))
    try:
        yield span
    except BaseException as exc:
        span.details["exception"] = type(exc).__name__
        emit_timer(span, session_id=session_id, outcome="error")
        raise
    emit_timer(span, session_id=session_id)
