"""Query parameters for the queryRelatos tool — schema, normalization, sanitization.

Tool-call arguments come from the LLM and are untrusted. They are parsed into
QueryRelatosParams (closed object, unknown keys rejected) before the data
access layer sees them. Free-text search is guarded twice:

1. Validation rejects characters that mean something to a filter grammar
   (parentheses, comma, '=', '&', '|').
2. Right before use, sanitize_search_text() removes LIKE metacharacters
   ('%', '_', '\\') and collapses whitespace.
"""

import re
from typing import Annotated, Literal
from uuid import UUID

from pydantic import AwareDatetime, BaseModel, ConfigDict, Field, StringConstraints, ValidationError, field_validator

from relatos.core.types import LEGACY_STATUS_ALIASES, POTENCIAL_VALUES, STATUS_VALUES

DEFAULT_LIMIT = 50
MAX_LIMIT = 200
MAX_OFFSET = 5000
MAX_SEARCH_CHARS = 80

TOOL_NAME = "queryRelatos"

# Canonical values plus the legacy unaccented spellings
StatusValue = Literal[
    "Aguardando Avaliação",
    "Em Andamento",
    "Concluído",
    "Vencido",
    "Aguardando Avaliacao",
    "Concluido",
]

PotencialValue = Literal["Intolerável", "Substancial", "Moderado", "Trivial"]

SearchText = Annotated[
    str,
    StringConstraints(strip_whitespace=True, min_length=1, max_length=MAX_SEARCH_CHARS, strict=True),
]

_FORBIDDEN_SEARCH_CHARS = re.compile(r"[(),=&|]")
_LIKE_METACHARS = re.compile(r"[%_\\]")


def normalize_status(value: str | None) -> str | None:
    """Map legacy status spellings to the canonical form. Idempotent."""
    if not value:
        return None
    return LEGACY_STATUS_ALIASES.get(value, value)


def sanitize_search_text(text: str) -> str:
    """Strip LIKE metacharacters and collapse runs of whitespace."""
    return " ".join(_LIKE_METACHARS.sub(" ", text).split())


class QueryRelatosParams(BaseModel):
    """Validated arguments of one queryRelatos call."""

    model_config = ConfigDict(extra="forbid")

    contrato: str | None = Field(None, min_length=1, max_length=64, strict=True)
    status: StatusValue | None = None
    potencial: PotencialValue | None = None
    equipe_id: UUID | None = None
    natureza_id: int | None = Field(None, gt=0)
    tipo_id: int | None = Field(None, gt=0)
    riscoassociado_id: int | None = Field(None, gt=0)
    ver_agir: bool | None = Field(None, strict=True)
    acao_cliente: bool | None = Field(None, strict=True)
    gerou_recusa: bool | None = Field(None, strict=True)
    date_from: AwareDatetime | None = None
    date_to: AwareDatetime | None = None
    search_text: SearchText | None = None
    limit: int = Field(DEFAULT_LIMIT, ge=1, le=MAX_LIMIT)
    offset: int = Field(0, ge=0, le=MAX_OFFSET)

    # Whole-number floats like 10.0 coerce to int; booleans do not
    @field_validator("natureza_id", "tipo_id", "riscoassociado_id", "limit", "offset", mode="before")
    @classmethod
    def _reject_bool_numbers(cls, value):
        if isinstance(value, bool):
            raise ValueError("esperado um número inteiro")
        return value

    @field_validator("search_text")
    @classmethod
    def _reject_filter_syntax(cls, value: str | None) -> str | None:
        if value is not None and _FORBIDDEN_SEARCH_CHARS.search(value):
            raise ValueError("search_text contém caracteres não permitidos")
        return value


def describe_validation_error(exc: ValidationError) -> list[dict[str, str]]:
    """JSON-safe summary of a ValidationError for tool-error payloads."""
    return [
        {"loc": ".".join(str(part) for part in err["loc"]) or "(root)", "msg": err["msg"]}
        for err in exc.errors(include_url=False)
    ]


# ---------------------------------------------------------------------------
# Tool definition for the LLM
# ---------------------------------------------------------------------------

QUERY_RELATOS_TOOL = {
    "type": "function",
    "function": {
        "name": TOOL_NAME,
        "description": (
            "Consulta relatos (desvios) na view vw_relatos_consulta. Somente leitura. "
            "Sempre informar o contrato e filtros opcionais."
        ),
        "parameters": {
            "type": "object",
            "additionalProperties": False,
            "properties": {
                "contrato": {"type": "string", "description": "Código do contrato"},
                "status": {"type": "string", "enum": list(STATUS_VALUES)},
                "potencial": {"type": "string", "enum": list(POTENCIAL_VALUES)},
                "equipe_id": {"type": "string", "description": "UUID da equipe"},
                "natureza_id": {"type": "integer"},
                "tipo_id": {"type": "integer"},
                "riscoassociado_id": {"type": "integer"},
                "ver_agir": {"type": "boolean"},
                "acao_cliente": {"type": "boolean"},
                "gerou_recusa": {"type": "boolean"},
                "date_from": {"type": "string", "description": "ISO datetime com fuso (created_at >=)"},
                "date_to": {"type": "string", "description": "ISO datetime com fuso (created_at <=)"},
                "search_text": {
                    "type": "string",
                    "description": "Busca textual (segura) em descricao/local/acao/observacao",
                },
                "limit": {"type": "integer", "description": f"Default {DEFAULT_LIMIT}, max {MAX_LIMIT}"},
                "offset": {"type": "integer", "description": f"Default 0, max {MAX_OFFSET}"},
            },
            "required": [],
        },
    },
}
