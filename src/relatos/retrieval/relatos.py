"""Read-only access to vw_relatos_consulta — the only data the agent can see.

The contrato equality filter is the tenant-isolation boundary: the database
credential can read every contract, so this module resolves the contract
against the caller's allow-list before any statement is built, and always
applies it. Everything else (status, potencial, ids, flags, dates, search)
is optional and only applied when present.
"""

import asyncio
import logging
import time
from datetime import datetime, timedelta, timezone

from sqlalchemy import Select, or_, select
from sqlalchemy.exc import SQLAlchemyError

from relatos.api.schemas import UiContext
from relatos.config import settings
from relatos.core.errors import ContratoNotAllowedError, RelatosQueryError
from relatos.core.types import AgentContext, QueryRelatosResult
from relatos.observability.tracing import start_span
from relatos.retrieval.params import QueryRelatosParams, normalize_status, sanitize_search_text
from relatos.storage.db import get_session
from relatos.storage.models import RelatoConsulta

logger = logging.getLogger(__name__)

RESULT_COLUMNS = (
    RelatoConsulta.id,
    RelatoConsulta.created_at,
    RelatoConsulta.status,
    RelatoConsulta.potencial,
    RelatoConsulta.local,
    RelatoConsulta.descricao,
    RelatoConsulta.ver_agir,
    RelatoConsulta.acao_cliente,
    RelatoConsulta.gerou_recusa,
    RelatoConsulta.data_limite,
    RelatoConsulta.natureza_nome,
    RelatoConsulta.tipo_nome,
    RelatoConsulta.risco_associado_nome,
    RelatoConsulta.equipe_nome,
    RelatoConsulta.autor_nome,
    RelatoConsulta.responsavel,
)

SEARCH_COLUMNS = (
    RelatoConsulta.descricao,
    RelatoConsulta.local,
    RelatoConsulta.acao,
    RelatoConsulta.observacao,
)


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def resolve_contrato(context: AgentContext, requested: str | None) -> str:
    """Pick the contract to query.

    Precedence: requested (if allowed) → selected (if allowed) → the user's
    only contract. Anything else is a permission error, never an empty result.
    """
    if context.allows(requested):
        return requested  # type: ignore[return-value]

    if requested:
        logger.warning(
            "Requested contrato is not allowed for user, falling back to default",
            extra={"user_id": context.user_id, "contrato": requested},
        )

    contrato = context.default_contrato
    if not contrato:
        raise ContratoNotAllowedError("Contrato não definido ou não permitido para o usuário.")
    return contrato


def resolve_date_range(
    params: QueryRelatosParams,
    ui: UiContext | None = None,
) -> tuple[datetime | None, datetime | None]:
    """Effective created_at window.

    A UI period (last N days) wins over explicit dates: it reflects what the
    user is looking at, while explicit dates were guessed by the model.
    """
    if ui and ui.periodo_dias:
        now = _utcnow()
        return now - timedelta(days=ui.periodo_dias), now
    return params.date_from, params.date_to


def build_relatos_query(
    contrato: str,
    params: QueryRelatosParams,
    *,
    status: str | None = None,
    date_from: datetime | None = None,
    date_to: datetime | None = None,
) -> Select:
    """Build the SELECT for one page of relatos. Values are always bound parameters."""
    stmt = (
        select(*RESULT_COLUMNS)
        .where(RelatoConsulta.contrato == contrato)
        .order_by(RelatoConsulta.created_at.desc())
        .offset(params.offset)
        .limit(params.limit)
    )

    equality_filters = (
        (RelatoConsulta.status, status),
        (RelatoConsulta.potencial, params.potencial),
        (RelatoConsulta.equipe_id, str(params.equipe_id) if params.equipe_id else None),
        (RelatoConsulta.natureza_id, params.natureza_id),
        (RelatoConsulta.tipo_id, params.tipo_id),
        (RelatoConsulta.riscoassociado_id, params.riscoassociado_id),
        (RelatoConsulta.ver_agir, params.ver_agir),
        (RelatoConsulta.acao_cliente, params.acao_cliente),
        (RelatoConsulta.gerou_recusa, params.gerou_recusa),
    )
    for column, value in equality_filters:
        if value is not None:
            stmt = stmt.where(column == value)

    if date_from is not None:
        stmt = stmt.where(RelatoConsulta.created_at >= date_from)
    if date_to is not None:
        stmt = stmt.where(RelatoConsulta.created_at <= date_to)

    if params.search_text:
        safe = sanitize_search_text(params.search_text)
        if safe:
            pattern = f"%{safe}%"
            stmt = stmt.where(or_(*(column.ilike(pattern) for column in SEARCH_COLUMNS)))

    return stmt


async def _fetch_rows(stmt: Select) -> list[dict]:
    timeout = settings.query_timeout_seconds
    session = await get_session()
    try:
        result = await asyncio.wait_for(session.execute(stmt), timeout=timeout)
        return [dict(row) for row in result.mappings().all()]
    except asyncio.TimeoutError:
        raise RelatosQueryError(f"Consulta de relatos excedeu o tempo limite de {timeout:g}s.") from None
    except (SQLAlchemyError, OSError) as e:
        raise RelatosQueryError(f"Falha ao consultar relatos ({type(e).__name__}).") from e
    finally:
        await session.close()


async def query_relatos(
    context: AgentContext,
    params: QueryRelatosParams,
    ui: UiContext | None = None,
) -> QueryRelatosResult:
    """Run one scoped, paginated read against the reporting view.

    Raises:
        ContratoNotAllowedError: no contract could be resolved for this user.
        RelatosQueryError: database error or timeout.
    """
    started = time.monotonic()

    status = normalize_status(params.status) or normalize_status(ui.status if ui else None)
    contrato = resolve_contrato(context, params.contrato)
    if not context.allows(contrato):
        raise ContratoNotAllowedError("Contrato não permitido para o usuário.")

    date_from, date_to = resolve_date_range(params, ui)
    stmt = build_relatos_query(
        contrato, params, status=status, date_from=date_from, date_to=date_to,
    )

    with start_span(name="query_relatos", span_type="RETRIEVER") as span:
        span.set_inputs({"contrato": contrato, "limit": params.limit, "offset": params.offset})
        rows = await _fetch_rows(stmt)
        span.set_outputs({"returned": len(rows)})

    filters = {
        "status": status,
        "potencial": params.potencial,
        "equipe_id": params.equipe_id,
        "natureza_id": params.natureza_id,
        "tipo_id": params.tipo_id,
        "riscoassociado_id": params.riscoassociado_id,
        "ver_agir": params.ver_agir,
        "acao_cliente": params.acao_cliente,
        "gerou_recusa": params.gerou_recusa,
        "date_from": date_from,
        "date_to": date_to,
        "has_search_text": bool(params.search_text),
        "limit": params.limit,
        "offset": params.offset,
        "ui_periodo_dias": ui.periodo_dias if ui else None,
    }
    duration_ms = round((time.monotonic() - started) * 1000, 1)
    logger.info(
        "relatos.query",
        extra={
            "user_id": context.user_id,
            "contrato": contrato,
            "filters": {k: v for k, v in filters.items() if v is not None},
            "duration_ms": duration_ms,
            "returned": len(rows),
        },
    )

    return QueryRelatosResult(
        contrato=contrato,
        limit=params.limit,
        offset=params.offset,
        returned=len(rows),
        has_more=len(rows) == params.limit,
        rows=rows,
    )
