"""Core domain types shared across all relatos modules."""

from relatos.core.errors import (
    ConfigurationError,
    ContratoNotAllowedError,
    LLMProviderError,
    RelatosError,
    RelatosQueryError,
)
from relatos.core.types import (
    LEGACY_STATUS_ALIASES,
    POTENCIAL_VALUES,
    STATUS_VALUES,
    AgentContext,
    QueryRelatosResult,
)

__all__ = [
    "AgentContext",
    "ConfigurationError",
    "ContratoNotAllowedError",
    "LEGACY_STATUS_ALIASES",
    "LLMProviderError",
    "POTENCIAL_VALUES",
    "QueryRelatosResult",
    "RelatosError",
    "RelatosQueryError",
    "STATUS_VALUES",
]
