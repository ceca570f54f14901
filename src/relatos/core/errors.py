"""Exception hierarchy for the relatos agent."""


class RelatosError(Exception):
    """Base class for all relatos errors."""


class ConfigurationError(RelatosError):
    """A required setting (API key, database URL) is missing.

    Deployment bug: always propagated, never turned into tool content.
    """


class ContratoNotAllowedError(RelatosError):
    """The contract could not be resolved or the user may not query it."""


class RelatosQueryError(RelatosError):
    """The reporting database failed, timed out, or was unreachable."""


class LLMProviderError(RelatosError):
    """The LLM provider answered with a non-2xx status."""

    def __init__(self, status_code: int, body: str = "") -> None:
        self.status_code = status_code
        self.body = body[:500]
        super().__init__(f"Erro no provedor de IA: {status_code} {self.body}".strip())
