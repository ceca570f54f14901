"""FastAPI dependencies: caller identity and the shared contracts cache.

Token verification happens at the gateway in front of this service, which
forwards the verified identity as headers. This module only reads them.
"""

from dataclasses import dataclass
from typing import Annotated

from fastapi import Header, HTTPException, status

from relatos.config import settings
from relatos.retrieval.contratos import AllowedContratosCache


@dataclass(frozen=True)
class CallerIdentity:
    matricula: int
    contrato_raiz: str | None = None


_contratos_cache = AllowedContratosCache(ttl=settings.contratos_cache_ttl_seconds)


def get_contratos_cache() -> AllowedContratosCache:
    """Process-wide cache instance (override in tests via dependency_overrides)."""
    return _contratos_cache


def require_caller(
    x_user_matricula: Annotated[str | None, Header()] = None,
    x_contrato_raiz: Annotated[str | None, Header()] = None,
) -> CallerIdentity:
    """Mandatory identity — raises 401 when the gateway headers are missing."""
    if not x_user_matricula or not x_user_matricula.strip().isdigit():
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Não autorizado",
        )

    matricula = int(x_user_matricula.strip())
    if matricula <= 0:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Não autorizado",
        )

    contrato_raiz = x_contrato_raiz.strip() if x_contrato_raiz else None
    return CallerIdentity(matricula=matricula, contrato_raiz=contrato_raiz or None)
