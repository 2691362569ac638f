# pylint: disable=missing-module-docstring,missing-function-docstring
from typing import Any

import pytest

from adapters.retrieval.client import (
    ContentRetrievalClient,
    RetrievalError,
    parse_retrieval_response,
    parse_workflow,
)
from adapters.retrieval.fast_paths import FAST_PATHS, match_fast_path, normalize_question


def wire_workflow(*steps: dict[str, Any]) -> dict[str, Any]:
    return {
        "id": "dynamic_answer",
        "title": "Fluxo Marketing",
        "elaborated_by": "Kariny Rassmussem",
        "approved_by": "Diogo Leonardo Barbosa",
        "steps": list(steps),
    }


# ---------------------------------------------------------------------
# Response parsing
# ---------------------------------------------------------------------

def test_reply_is_rebuilt_from_step_narration() -> None:
    body = {
        "reply": "something the model made up",
        "workflow": wire_workflow(
            {"id": "a", "label": "Um", "spoken_text": "Primeiro passo.", "status": "completed"},
            {"id": "b", "label": "Dois", "description": "Segundo passo."},
            {"id": "c", "label": "Três"},
        ),
        "context_used": 3,
    }
    result = parse_retrieval_response(200, body)

    assert result.reply_text == "Primeiro passo. Segundo passo. "
    assert result.context_used == 3
    assert result.workflow is not None
    assert [s.id for s in result.workflow.steps] == ["0", "1", "2"]
    assert result.workflow.elaborated_by == "Kariny Rassmussem"


def test_envelope_reply_used_without_workflow() -> None:
    result = parse_retrieval_response(200, {"reply": "Olá!"})
    assert result.reply_text == "Olá!"
    assert result.workflow is None


def test_empty_steps_means_no_workflow() -> None:
    result = parse_retrieval_response(200, {"reply": "Olá!", "workflow": wire_workflow()})
    assert result.workflow is None
    assert result.reply_text == "Olá!"


@pytest.mark.parametrize(
    ("status", "body", "message"),
    [
        (500, {"error": "boom"}, "HTTP 500: boom"),
        (502, None, "HTTP 502"),
        (200, ["not", "a", "dict"], "malformed response body"),
        (200, {"error": "Message is required"}, "Message is required"),
        (200, {"reply": 42}, "malformed reply"),
        (200, {"reply": "   "}, "empty reply"),
        (200, {"reply": "x", "workflow": "nope"}, "malformed workflow"),
    ],
)
def test_failures_raise_retrieval_error(status: int, body: Any, message: str) -> None:
    with pytest.raises(RetrievalError) as exc:
        parse_retrieval_response(status, body)
    assert str(exc.value) == message


def test_parse_workflow_rejects_non_object_steps() -> None:
    with pytest.raises(RetrievalError):
        parse_workflow({"steps": ["texto solto"]})


# ---------------------------------------------------------------------
# Fast paths
# ---------------------------------------------------------------------

def test_fast_path_matching_ignores_case_accents_and_spacing() -> None:
    assert normalize_question("  Fluxo   de MARKETING ") == "fluxo de marketing"
    assert match_fast_path("fluxo aplicacao tecnica") is not None
    assert match_fast_path("FLUXO DE APLICAÇÃO TÉCNICA") is not None
    assert match_fast_path("Qual o horário de almoço?") is None


def test_fast_path_workflows_have_steps() -> None:
    for workflow in FAST_PATHS.values():
        assert workflow.step_count >= 1
        assert workflow.narration()


# ---------------------------------------------------------------------
# Client
# ---------------------------------------------------------------------

@pytest.mark.asyncio
async def test_fast_path_skips_network(monkeypatch: pytest.MonkeyPatch) -> None:
    client = ContentRetrievalClient(url="http://retrieval.invalid/chat")

    async def no_network(question: str) -> tuple[int, Any]:
        raise AssertionError("network must not be used")

    monkeypatch.setattr(client, "_post", no_network)

    result = await client.ask("Fluxo Marketing")
    assert result.fast_path
    assert result.workflow is not None
    assert result.reply_text == result.workflow.narration()


@pytest.mark.asyncio
async def test_client_parses_endpoint_response(monkeypatch: pytest.MonkeyPatch) -> None:
    client = ContentRetrievalClient(url="http://retrieval.invalid/chat", fast_paths=None)
    seen: list[str] = []

    async def fake_post(question: str) -> tuple[int, Any]:
        seen.append(question)
        return 200, {
            "reply": "",
            "workflow": wire_workflow({"label": "Único", "spoken_text": "Resposta única."}),
            "context_used": 1,
        }

    monkeypatch.setattr(client, "_post", fake_post)

    result = await client.ask("Fluxo Marketing")
    assert seen == ["Fluxo Marketing"]
    assert not result.fast_path
    assert result.reply_text == "Resposta única."


@pytest.mark.asyncio
async def test_client_http_error_raises(monkeypatch: pytest.MonkeyPatch) -> None:
    client = ContentRetrievalClient(url="http://retrieval.invalid/chat", fast_paths=None)

    async def fake_post(question: str) -> tuple[int, Any]:
        return 500, {"error": "internal"}

    monkeypatch.setattr(client, "_post", fake_post)

    with pytest.raises(RetrievalError, match="HTTP 500"):
        await client.ask("qualquer coisa")
