"""
Content retrieval client.

Sends the user's question to the RAG endpoint and returns the spoken reply
plus the optional workflow.

Contract:
- POST {"message": question} -> {reply, workflow?, context_used?}
- Non-2xx, transport errors, timeouts and malformed bodies raise RetrievalError.
- When the workflow has steps, the reply is ALWAYS rebuilt as the
  space-joined narration of the steps, in order; the envelope "reply" is
  only used when there are no steps. This keeps step highlighting aligned
  with what is actually spoken.
- Fast paths are consulted first and never touch the network.
"""

from __future__ import annotations

import asyncio
from dataclasses import dataclass
from typing import Any, Mapping

import aiohttp

from adapters.retrieval.fast_paths import FAST_PATHS, match_fast_path
from observability.metrics import timed
from orchestrator.workflow import Workflow, WorkflowStep
from spec import DYNAMIC_WORKFLOW_ID, RETRIEVAL_TIMEOUT_S


class RetrievalError(Exception):
    """Retrieval failed; the message is surfaced to the user."""


@dataclass(frozen=True)
class RetrievalResult:
    reply_text: str
    workflow: Workflow | None = None
    context_used: int = 0
    fast_path: bool = False


# ---------------------------------------------------------------------
# Response parsing (pure)
# ---------------------------------------------------------------------

def parse_workflow(raw: Any) -> Workflow | None:
    """
    Build a Workflow from its wire form.

    Step ids are reassigned as ordinals; any status sent by the server is
    ignored (status is derived from the current step index).
    Returns None when the workflow is absent or has no steps.
    """
    if raw is None:
        return None
    if not isinstance(raw, dict):
        raise RetrievalError("malformed workflow")

    raw_steps = raw.get("steps") or []
    if not isinstance(raw_steps, list):
        raise RetrievalError("malformed workflow steps")

    steps: list[WorkflowStep] = []
    for index, raw_step in enumerate(raw_steps):
        if not isinstance(raw_step, dict):
            raise RetrievalError(f"malformed workflow step {index}")
        spoken = raw_step.get("spoken_text")
        steps.append(
            WorkflowStep(
                id=str(index),
                label=str(raw_step.get("label") or ""),
                description=str(raw_step.get("description") or ""),
                spoken_text=str(spoken) if spoken else None,
            )
        )

    if not steps:
        return None

    return Workflow(
        id=str(raw.get("id") or DYNAMIC_WORKFLOW_ID),
        title=str(raw.get("title") or ""),
        steps=tuple(steps),
        elaborated_by=raw.get("elaborated_by") or None,
        approved_by=raw.get("approved_by") or None,
    )


def parse_retrieval_response(status: int, body: Any) -> RetrievalResult:
    """Interpret one HTTP response from the retrieval endpoint."""
    if not 200 <= status < 300:
        if isinstance(body, dict) and isinstance(body.get("error"), str):
            raise RetrievalError(f"HTTP {status}: {body['error']}")
        raise RetrievalError(f"HTTP {status}")

    if not isinstance(body, dict):
        raise RetrievalError("malformed response body")

    if isinstance(body.get("error"), str):
        raise RetrievalError(body["error"])

    workflow = parse_workflow(body.get("workflow"))

    if workflow is not None:
        reply = workflow.narration()
    else:
        reply = body.get("reply")
        if not isinstance(reply, str):
            raise RetrievalError("malformed reply")

    if not reply.strip():
        raise RetrievalError("empty reply")

    context_used = body.get("context_used")
    return RetrievalResult(
        reply_text=reply,
        workflow=workflow,
        context_used=context_used if isinstance(context_used, int) else 0,
    )


# ---------------------------------------------------------------------
# Client
# ---------------------------------------------------------------------

class ContentRetrievalClient:
    """Async client for the RAG endpoint."""

    def __init__(
        self,
        *,
        url: str,
        auth_token: str | None = None,
        timeout_s: float = RETRIEVAL_TIMEOUT_S,
        fast_paths: Mapping[str, Workflow] | None = FAST_PATHS,
        session_id: str | None = None,
    ) -> None:
        self._url = url
        self._auth_token = auth_token
        self._timeout_s = timeout_s
        self._fast_paths = fast_paths
        self._session_id = session_id

    async def ask(self, question: str) -> RetrievalResult:
        """
        Return the reply (and workflow) for `question`.

        Raises:
            RetrievalError on any failure.
        """
        if self._fast_paths:
            workflow = match_fast_path(question, self._fast_paths)
            if workflow is not None:
                return RetrievalResult(
                    reply_text=workflow.narration(),
                    workflow=workflow,
                    fast_path=True,
                )

        with timed("retrieval_round_trip", session_id=self._session_id) as span:
            status, body = await self._post(question)
            span.details["status"] = status
            return parse_retrieval_response(status, body)

    async def _post(self, question: str) -> tuple[int, Any]:
        headers: dict[str, str] = {}
        if self._auth_token:
            headers["Authorization"] = f"Bearer {self._auth_token}"

        try:
            async with aiohttp.ClientSession() as s:
                async with s.post(
                    self._url,
                    json={"message": question},
                    headers=headers,
                    timeout=aiohttp.ClientTimeout(total=self._timeout_s),
                ) as resp:
                    try:
                        body = await resp.json(content_type=None)
                    except ValueError:
                        body = None
                    return resp.status, body
        except asyncio.TimeoutError as e:
            raise RetrievalError("timeout") from e
        except aiohttp.ClientError as e:
            raise RetrievalError(f"transport error: {type(e).__name__}") from e
