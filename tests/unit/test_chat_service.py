# pylint: disable=missing-module-docstring,missing-function-docstring
import json
from types import SimpleNamespace
from typing import Any

import pytest

from services.chat_service import (
    ChatService,
    build_context_text,
    workflow_from_model_output,
)
from services.errors import BackendError
from services.prompts import (
    DEFAULT_ELABORATED_BY,
    DEFAULT_WORKFLOW_TITLE,
    FALLBACK_SPOKEN_TEXT,
    FALLBACK_WORKFLOW_TITLE,
    build_system_prompt,
)


# ---------------------------------------------------------------------
# Fakes
# ---------------------------------------------------------------------

class FakeOpenAI:
    """Mimics the two AsyncOpenAI endpoints the chat service calls."""

    def __init__(self, content: str | None) -> None:
        self.content = content
        self.chat_kwargs: dict[str, Any] = {}
        self.embeddings = SimpleNamespace(create=self._embed)
        self.chat = SimpleNamespace(completions=SimpleNamespace(create=self._complete))

    async def _embed(self, *, model: str, input: str) -> Any:  # pylint: disable=redefined-builtin
        return SimpleNamespace(data=[SimpleNamespace(embedding=[0.1, 0.2, 0.3])])

    async def _complete(self, **kwargs: Any) -> Any:
        self.chat_kwargs = kwargs
        message = SimpleNamespace(content=self.content)
        return SimpleNamespace(choices=[SimpleNamespace(message=message)])


class FakeVectorStore:
    def __init__(self, documents: list[dict[str, Any]]) -> None:
        self.documents = documents
        self.embeddings: list[list[float]] = []

    async def match_documents(self, embedding: list[float]) -> list[dict[str, Any]]:
        self.embeddings.append(embedding)
        return self.documents


def make_service(content: str | None, documents: list[dict[str, Any]] | None = None) -> tuple[ChatService, FakeOpenAI]:
    client = FakeOpenAI(content)
    service = ChatService(
        client=client,  # type: ignore[arg-type]
        vector_store=FakeVectorStore(documents or []),  # type: ignore[arg-type]
        model="gpt-4o-mini",
        embedding_model="text-embedding-3-small",
    )
    return service, client


# ---------------------------------------------------------------------
# Model output parsing
# ---------------------------------------------------------------------

def test_model_output_becomes_ordinal_workflow() -> None:
    content = json.dumps({
        "workflow_title": "Fluxo Comercial",
        "steps": [
            {"id": "x", "label": "Contato", "description": "Ligar.", "spoken_text": "Primeiro ligamos."},
            {"id": "y", "label": "Proposta", "description": "Enviar proposta."},
        ],
    })

    workflow = workflow_from_model_output(content)

    assert workflow.title == "Fluxo Comercial"
    assert [s.id for s in workflow.steps] == ["0", "1"]
    assert workflow.elaborated_by == DEFAULT_ELABORATED_BY
    assert workflow.narration() == "Primeiro ligamos. Enviar proposta."


def test_missing_title_uses_default() -> None:
    workflow = workflow_from_model_output(json.dumps({"steps": [{"label": "a", "spoken_text": "b"}]}))
    assert workflow.title == DEFAULT_WORKFLOW_TITLE


def test_every_step_is_kept() -> None:
    steps = [{"label": str(i), "spoken_text": f"Passo {i}."} for i in range(10)]

    workflow = workflow_from_model_output(json.dumps({"steps": steps}))

    assert workflow.step_count == 10
    assert [s.id for s in workflow.steps] == [str(i) for i in range(10)]
    assert workflow.narration() == " ".join(f"Passo {i}." for i in range(10))


@pytest.mark.parametrize("content", [None, "", "not json", "[]", '{"steps": []}', '{"steps": "x"}'])
def test_unusable_output_yields_apology(content: str | None) -> None:
    workflow = workflow_from_model_output(content)
    assert workflow.title == FALLBACK_WORKFLOW_TITLE
    assert workflow.narration() == FALLBACK_SPOKEN_TEXT


def test_context_text_and_prompt() -> None:
    text = build_context_text([{"content": "Doc A"}, {"text": "Doc B"}])
    assert text == "[Contexto]: Doc A\n\n[Contexto]: Doc B"
    assert text in build_system_prompt(text)


# ---------------------------------------------------------------------
# Service
# ---------------------------------------------------------------------

@pytest.mark.asyncio
async def test_answer_builds_envelope() -> None:
    content = json.dumps({"steps": [{"label": "Único", "spoken_text": "Resposta."}]})
    service, client = make_service(content, [{"content": "Doc"}])

    payload = await service.answer("Como funciona?")

    assert payload["reply"] == "Resposta."
    assert payload["context_used"] == 1
    assert payload["workflow"]["steps"][0]["status"] == "pending"
    assert client.chat_kwargs["response_format"] == {"type": "json_object"}
    assert client.chat_kwargs["messages"][1] == {"role": "user", "content": "Como funciona?"}


@pytest.mark.asyncio
async def test_bad_model_output_still_answers() -> None:
    service, _ = make_service("desculpe")

    payload = await service.answer("Como funciona?")

    assert payload["reply"] == FALLBACK_SPOKEN_TEXT
    assert payload["workflow"]["title"] == FALLBACK_WORKFLOW_TITLE


@pytest.mark.parametrize("message", [None, "", "   ", 42])
@pytest.mark.asyncio
async def test_blank_message_rejected(message: Any) -> None:
    service, _ = make_service("{}")

    with pytest.raises(BackendError) as exc:
        await service.answer(message)

    assert str(exc.value) == "Message is required"
    assert exc.value.status == 400
