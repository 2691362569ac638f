"""
Hard-coded answers for known frequent questions.

A fast path bypasses the retrieval endpoint entirely. Matching ignores
case, accents and repeated whitespace.
"""

from __future__ import annotations

import unicodedata
from typing import Mapping

from orchestrator.workflow import Workflow, WorkflowStep


def normalize_question(question: str) -> str:
    decomposed = unicodedata.normalize("NFKD", question)
    stripped = "".join(c for c in decomposed if not unicodedata.combining(c))
    return " ".join(stripped.casefold().split())


_MARKETING = Workflow(
    id="fast_marketing",
    title="Fluxo de Marketing",
    elaborated_by="Equipe de Marketing",
    approved_by="Diretoria Comercial",
    steps=(
        WorkflowStep(
            id="0",
            label="Briefing",
            description="Receber e registrar o briefing da campanha.",
            spoken_text="Primeiro, o time recebe o briefing da campanha e registra os objetivos.",
        ),
        WorkflowStep(
            id="1",
            label="Criação",
            description="Produzir as peças e submeter para revisão.",
            spoken_text="Em seguida, a criação produz as peças e envia tudo para revisão interna.",
        ),
        WorkflowStep(
            id="2",
            label="Aprovação e publicação",
            description="Aprovar com o cliente e publicar nos canais definidos.",
            spoken_text=(
                "Por fim, as peças são aprovadas com o cliente e publicadas "
                "nos canais definidos no briefing."
            ),
        ),
    ),
)

_APLICACAO_TECNICA = Workflow(
    id="fast_aplicacao_tecnica",
    title="Fluxo Aplicação Técnica",
    elaborated_by="Engenharia de Aplicação",
    approved_by="Gerência Técnica",
    steps=(
        WorkflowStep(
            id="0",
            label="Levantamento",
            description="Levantar os requisitos técnicos do cliente.",
            spoken_text="Começamos levantando os requisitos técnicos com o cliente.",
        ),
        WorkflowStep(
            id="1",
            label="Teste de aplicação",
            description="Executar testes com o material do cliente.",
            spoken_text="Depois executamos testes de aplicação com o material enviado pelo cliente.",
        ),
        WorkflowStep(
            id="2",
            label="Relatório",
            description="Emitir relatório técnico com a recomendação.",
            spoken_text="Por fim, emitimos um relatório técnico com a recomendação de solução.",
        ),
    ),
)


FAST_PATHS: Mapping[str, Workflow] = {
    normalize_question("Fluxo Marketing"): _MARKETING,
    normalize_question("Fluxo de Marketing"): _MARKETING,
    normalize_question("Fluxo Aplicação Técnica"): _APLICACAO_TECNICA,
    normalize_question("Fluxo de Aplicação Técnica"): _APLICACAO_TECNICA,
}


def match_fast_path(
    question: str, table: Mapping[str, Workflow] = FAST_PATHS
) -> Workflow | None:
    return table.get(normalize_question(question))
