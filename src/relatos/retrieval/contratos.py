"""Allowed-contract lookup for a user, with an injectable TTL cache.

The allow-list comes from usuario_contratos. It changes rarely but is read
on every agent request, so results are cached per matricula for a short TTL.
The cache is an explicit object passed to the lookup rather than a module
global, so tests and concurrent workers each control their own instance.
"""

import logging
import threading
import time

from sqlalchemy import select

from relatos.core.types import AgentContext
from relatos.storage.db import get_session
from relatos.storage.models import UsuarioContrato

logger = logging.getLogger(__name__)

DEFAULT_TTL_SECONDS = 300
DEFAULT_MAX_ENTRIES = 1000


class AllowedContratosCache:
    """Thread-safe TTL cache of matricula → allowed contract codes.

    Expired entries are dropped when read; when full, the entry that expires
    soonest is evicted to make room.
    """

    def __init__(
        self,
        ttl: float = DEFAULT_TTL_SECONDS,
        max_entries: int = DEFAULT_MAX_ENTRIES,
        clock=time.monotonic,
    ):
        self._ttl = ttl
        self._max = max_entries
        self._clock = clock
        self._entries: dict[int, tuple[float, tuple[str, ...]]] = {}
        self._lock = threading.Lock()

    def get(self, matricula: int) -> tuple[str, ...] | None:
        with self._lock:
            entry = self._entries.get(matricula)
            if entry is None:
                return None
            expires_at, codes = entry
            if self._clock() >= expires_at:
                del self._entries[matricula]
                return None
            return codes

    def set(self, matricula: int, codes: tuple[str, ...]) -> None:
        with self._lock:
            now = self._clock()
            self._purge_expired(now)
            if matricula not in self._entries and len(self._entries) >= self._max:
                soonest = min(self._entries, key=lambda k: self._entries[k][0])
                del self._entries[soonest]
            self._entries[matricula] = (now + self._ttl, codes)

    def _purge_expired(self, now: float) -> None:
        expired = [k for k, (expires_at, _) in self._entries.items() if now >= expires_at]
        for k in expired:
            del self._entries[k]


async def fetch_allowed_contratos(matricula: int) -> tuple[str, ...]:
    """Distinct, non-empty contract codes the user may query (sorted)."""
    stmt = (
        select(UsuarioContrato.codigo_contrato)
        .where(UsuarioContrato.matricula_usuario == matricula)
        .distinct()
    )
    session = await get_session()
    try:
        result = await session.execute(stmt)
        codes = {code for code in result.scalars().all() if code}
    finally:
        await session.close()
    return tuple(sorted(codes))


async def get_allowed_contratos(
    matricula: int,
    cache: AllowedContratosCache | None = None,
) -> tuple[str, ...]:
    """Allowed contracts for a user, served from cache when fresh."""
    if cache is not None:
        cached = cache.get(matricula)
        if cached is not None:
            return cached

    codes = await fetch_allowed_contratos(matricula)
    logger.debug("Loaded %d allowed contratos for user", len(codes), extra={"user_id": matricula})

    if cache is not None:
        cache.set(matricula, codes)
    return codes


async def build_agent_context(
    matricula: int,
    contrato_raiz: str | None = None,
    requested_contrato: str | None = None,
    cache: AllowedContratosCache | None = None,
) -> AgentContext:
    """Resolve the caller's AgentContext.

    A user bound to a root contract sees only that contract. Otherwise the
    allow-list comes from usuario_contratos. The selected contract is the
    one the caller asked for (if allowed), or the only allowed one.
    """
    if contrato_raiz:
        allowed: tuple[str, ...] = (contrato_raiz,)
    else:
        allowed = await get_allowed_contratos(matricula, cache=cache)

    if requested_contrato and requested_contrato in allowed:
        selected = requested_contrato
    elif len(allowed) == 1:
        selected = allowed[0]
    else:
        selected = None

    return AgentContext(user_id=matricula, allowed_contratos=frozenset(allowed), selected_contrato=selected)
