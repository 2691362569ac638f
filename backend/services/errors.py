"""Errors raised by the HTTP-facing backend services."""

from __future__ import annotations


class BackendError(Exception):
    """
    A backend service could not produce its result.

    status is the HTTP status the route should answer with; the message is
    returned to the caller as {"error": message}.
    """

    def __init__(self, message: str, *, status: int = 400) -> None:
        super().__init__(message)
        self.status = status
