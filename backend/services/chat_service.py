"""
RAG chat service behind POST /chat.

Pipeline:
1. Embed the question (OpenAI embeddings)
2. Match documents in the vector store
3. Ask the chat model for a workflow in JSON mode
4. Build the response envelope; the reply is always the space-joined
   narration of the steps, never a separate model-written reply
"""

from __future__ import annotations

import json
import time
from typing import Any

from openai import AsyncOpenAI, OpenAIError

from observability.logger import log_event
from observability.metrics import timed
from orchestrator.workflow import Workflow, WorkflowStep, workflow_to_dict
from services.errors import BackendError
from services.prompts import (
    CONTEXT_PREFIX,
    DEFAULT_APPROVED_BY,
    DEFAULT_ELABORATED_BY,
    DEFAULT_WORKFLOW_TITLE,
    FALLBACK_SPOKEN_TEXT,
    FALLBACK_WORKFLOW_TITLE,
    SYSTEM_PROMPT_VERSION,
    build_system_prompt,
)
from services.vector_store import VectorStoreClient
from spec import CHAT_MAX_TOKENS, CHAT_TEMPERATURE, DYNAMIC_WORKFLOW_ID


def _now_ms() -> int:
    return int(time.time() * 1000)


def build_context_text(documents: list[dict[str, Any]]) -> str:
    """Join matched documents into the prompt's context block."""
    parts: list[str] = []
    for doc in documents:
        text = doc.get("content") or doc.get("text") or json.dumps(doc, ensure_ascii=False)
        parts.append(f"{CONTEXT_PREFIX}{text}")
    return "\n\n".join(parts)


def fallback_workflow() -> Workflow:
    return Workflow(
        id=DYNAMIC_WORKFLOW_ID,
        title=FALLBACK_WORKFLOW_TITLE,
        steps=(
            WorkflowStep(
                id="0",
                label=FALLBACK_WORKFLOW_TITLE,
                description=FALLBACK_SPOKEN_TEXT,
                spoken_text=FALLBACK_SPOKEN_TEXT,
            ),
        ),
        elaborated_by=DEFAULT_ELABORATED_BY,
        approved_by=DEFAULT_APPROVED_BY,
    )


def workflow_from_model_output(content: str | None) -> Workflow:
    """
    Build the dynamic workflow from the chat model's JSON output.

    Unparseable output, or output without usable steps, yields the
    apology workflow.
    """
    try:
        parsed = json.loads(content or "")
    except json.JSONDecodeError:
        return fallback_workflow()
    if not isinstance(parsed, dict):
        return fallback_workflow()

    raw_steps = parsed.get("steps")
    if not isinstance(raw_steps, list):
        return fallback_workflow()

    steps: list[WorkflowStep] = []
    for raw in raw_steps:
        if not isinstance(raw, dict):
            continue
        spoken = raw.get("spoken_text")
        steps.append(
            WorkflowStep(
                id=str(len(steps)),
                label=str(raw.get("label") or ""),
                description=str(raw.get("description") or ""),
                spoken_text=str(spoken) if spoken else None,
            )
        )

    if not steps:
        return fallback_workflow()

    return Workflow(
        id=DYNAMIC_WORKFLOW_ID,
        title=str(parsed.get("workflow_title") or DEFAULT_WORKFLOW_TITLE),
        steps=tuple(steps),
        elaborated_by=str(parsed.get("elaborated_by") or DEFAULT_ELABORATED_BY),
        approved_by=str(parsed.get("approved_by") or DEFAULT_APPROVED_BY),
    )


class ChatService:
    """Question -> {reply, workflow, context_used}."""

    def __init__(
        self,
        *,
        client: AsyncOpenAI,
        vector_store: VectorStoreClient,
        model: str,
        embedding_model: str,
    ) -> None:
        self._client = client
        self._vector_store = vector_store
        self._model = model
        self._embedding_model = embedding_model

    async def answer(self, message: Any) -> dict[str, Any]:
        """
        Answer one question.

        Raises:
            BackendError on any failure.
        """
        if not isinstance(message, str) or not message.strip():
            raise BackendError("Message is required")

        try:
            with timed("chat_embedding") as span:
                embedding_resp = await self._client.embeddings.create(
                    model=self._embedding_model,
                    input=message,
                )
                embedding = list(embedding_resp.data[0].embedding)
                span.details["dims"] = len(embedding)

            documents = await self._vector_store.match_documents(embedding)

            with timed("chat_completion", details={"model": self._model}):
                completion = await self._client.chat.completions.create(
                    model=self._model,
                    messages=[
                        {"role": "system", "content": build_system_prompt(build_context_text(documents))},
                        {"role": "user", "content": message},
                    ],
                    temperature=CHAT_TEMPERATURE,
                    max_tokens=CHAT_MAX_TOKENS,
                    response_format={"type": "json_object"},
                )
        except OpenAIError as e:
            raise BackendError(f"{type(e).__name__}: {e}") from e

        workflow = workflow_from_model_output(completion.choices[0].message.content)

        log_event({
            "ts_ms": _now_ms(),
            "event_type": "chat_answered",
            "system_prompt_version": SYSTEM_PROMPT_VERSION,
            "context_used": len(documents),
            "step_count": workflow.step_count,
            "fallback": workflow.title == FALLBACK_WORKFLOW_TITLE,
        })

        return {
            "reply": workflow.narration(),
            "workflow": workflow_to_dict(workflow, current_index=-1),
            "context_used": len(documents),
        }
