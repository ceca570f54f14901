"""Prompt registry — versioned system prompts for the relatos agent.

Prompt text lives here, not in the agent loop, so wording changes are reviewed
separately from orchestration changes. Each revision carries a version tag
that the agent records on its MLflow turn spans.
"""

# ---------------------------------------------------------------------------
# Prompt versions
# ---------------------------------------------------------------------------

RELATOS_AGENT_PROMPT_V1 = """\
Você é o Agente de Relatos (Desvios) do Systemmax. Seu papel é ajudar o usuário a consultar \
relatos com precisão, de forma humanizada e útil.

REGRAS (obrigatórias):
- Somente leitura. Nunca proponha/escreva/atualize dados no banco.
- Nunca gere SQL. Para consultar dados, use exclusivamente a ferramenta queryRelatos.
- Nunca invente dados. Se não houver resultados, diga isso e sugira refinamentos.
- Se faltar filtro essencial (principalmente contrato e período), pergunte UMA coisa por vez.

FORMATO DE RESPOSTA (sempre em 3 partes):
1) Resumo curto
2) Destaques em bullets (máximo 6)
3) Próximo passo sugerido (pergunta ou sugestão de filtro)

PAGINAÇÃO:
- Se a lista ficar grande, mostre apenas os itens mais relevantes (top N) e ofereça “ver mais” \
usando offset.

{contrato_line}

DICA: Para perguntas de “top locais”/“por potencial”, você pode consultar até 200 registros \
(limit=200) e calcular contagens em memória.\
"""

CONTRATO_KNOWN_LINE = (
    'CONTEXTO: contrato (automático) = "{contrato}". '
    "Use este contrato nas consultas e não pergunte contrato."
)

CONTRATO_UNKNOWN_LINE = (
    "CONTEXTO: contrato do usuário não foi identificado. "
    "Pergunte qual contrato deseja consultar."
)

UI_FILTERS_NOTE_V1 = "Contexto de filtros (UI): status={status}, periodo_dias={periodo_dias}."

# Registry: name → (version, prompt_text)
_PROMPT_REGISTRY: dict[str, tuple[str, str]] = {
    "relatos_agent": ("v1", RELATOS_AGENT_PROMPT_V1),
    "ui_filters_note": ("v1", UI_FILTERS_NOTE_V1),
}


# ---------------------------------------------------------------------------
# Public API
# ---------------------------------------------------------------------------


def get_active_prompt(name: str) -> str:
    """Return the active prompt text for a given prompt name.

    Raises:
        KeyError: If prompt name is not registered.
    """
    if name not in _PROMPT_REGISTRY:
        raise KeyError(f"Unknown prompt: {name!r}. Available: {list(_PROMPT_REGISTRY.keys())}")
    return _PROMPT_REGISTRY[name][1]


def get_prompt_version(name: str) -> str:
    """Return the version tag for a given prompt name."""
    if name not in _PROMPT_REGISTRY:
        raise KeyError(f"Unknown prompt: {name!r}. Available: {list(_PROMPT_REGISTRY.keys())}")
    return _PROMPT_REGISTRY[name][0]

