"""Domain types for the relatos agent.

Request-scoped values only: nothing here is persisted. Every other module
imports its shared types from here to avoid circular imports.
"""

from dataclasses import dataclass, field
from typing import Any


# ---------------------------------------------------------------------------
# Controlled vocabularies
# ---------------------------------------------------------------------------

STATUS_VALUES = ("Aguardando Avaliação", "Em Andamento", "Concluído", "Vencido")

# Legacy spellings without accents, still sent by older screens
LEGACY_STATUS_ALIASES = {
    "Aguardando Avaliacao": "Aguardando Avaliação",
    "Concluido": "Concluído",
}

POTENCIAL_VALUES = ("Intolerável", "Substancial", "Moderado", "Trivial")


# ---------------------------------------------------------------------------
# Caller context
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class AgentContext:
    """Who is asking and which contracts (tenants) they may query.

    Built per request from upstream auth and never mutated afterwards.
    """

    user_id: int
    allowed_contratos: frozenset[str]
    selected_contrato: str | None = None

    def __post_init__(self) -> None:
        # Accept any iterable of codes; store an immutable set
        object.__setattr__(self, "allowed_contratos", frozenset(self.allowed_contratos))

    def allows(self, contrato: str | None) -> bool:
        return bool(contrato) and contrato in self.allowed_contratos

    @property
    def default_contrato(self) -> str | None:
        """The contract to use when none is requested, if it is unambiguous."""
        if self.allows(self.selected_contrato):
            return self.selected_contrato
        if len(self.allowed_contratos) == 1:
            return next(iter(self.allowed_contratos))
        return None


# ---------------------------------------------------------------------------
# Query results
# ---------------------------------------------------------------------------

@dataclass
class QueryRelatosResult:
    """One page of rows from the reporting view.

    has_more is True when the page came back full (returned == limit). It is
    a heuristic: a page that is exactly full still reports has_more even when
    no further row exists, since no total count is computed.
    """

    contrato: str
    limit: int
    offset: int
    returned: int
    has_more: bool
    rows: list[dict[str, Any]] = field(default_factory=list)
